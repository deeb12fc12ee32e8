from fastapi import APIRouter
from services.asset_service import get_wallet_assets
from utils.responses import no_store_json

router = APIRouter()

@router.get("/api/wallet-assets")
async def wallet_assets(address: str = None):
    return no_store_json(await get_wallet_assets(address))
