from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_chain_oracle
from db.session import get_db_session
from schemas.magma_schema import RecordBurnRequest
from services.chain_oracle import ChainOracleClient
from services.ledger_service import record_burn
from services.profile_service import get_profile, get_leaderboard, count_users
from utils.responses import no_store_json
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/magma/record-burn")
async def record_burn_endpoint(
    payload: RecordBurnRequest,
    oracle: ChainOracleClient = Depends(get_chain_oracle),
    db: AsyncSession = Depends(get_db_session),
):
    result = await record_burn(
        payload.wallet_address,
        payload.tx_hash,
        payload.referrer,
        oracle=oracle,
        db=db,
    )
    return no_store_json(result.to_response())


@router.get("/api/magma/profile")
async def profile_endpoint(address: str = None, db: AsyncSession = Depends(get_db_session)):
    profile = await get_profile(address, db)
    return no_store_json(profile.model_dump(by_alias=True))


@router.get("/api/magma/leaderboard")
async def leaderboard_endpoint(limit: int = 10, db: AsyncSession = Depends(get_db_session)):
    board = await get_leaderboard(limit, db)
    return no_store_json(board.model_dump(by_alias=True))


@router.get("/api/magma/test-db")
async def test_db_endpoint(db: AsyncSession = Depends(get_db_session)):
    try:
        users_count = await count_users(db)
    except SQLAlchemyError as e:
        logger.error(f"test-db error: {e}")
        return no_store_json({"ok": False, "error": "Database connection failed"}, status_code=500)
    return no_store_json({"ok": True, "usersCount": users_count})
