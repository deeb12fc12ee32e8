"""Burn ledger: verifies a claimed burn on-chain and awards MAGMA points once.

Exactly-once accounting rests on the unique ``magma_burns.tx_hash`` constraint.
The upfront lookup only short-circuits obvious duplicates; two concurrent
calls can both pass it, so the burn row is inserted first inside the unit of
work and the loser's ``IntegrityError`` is turned into the "already counted"
outcome after a rollback.
"""
from db.session import get_or_use_session
from db.models.magma_user import MagmaUser
from db.models.magma_burn import MagmaBurn
from core.config import settings
from core.errors import InvalidInput, InvalidBurn, InternalError
from schemas.magma_schema import BurnResult
from services.chain_oracle import ChainOracleClient, TransactionInfo
from utils.normalize import normalize_address, normalize_tx_hash
from utils.timing import timeit
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# MySQL deadlock / lock wait timeout; the whole unit of work can simply be replayed
RETRYABLE_MYSQL_ERRORS = (1213, 1205)


def _is_lock_conflict(error: OperationalError) -> bool:
    args = getattr(error.orig, "args", ())
    return bool(args) and args[0] in RETRYABLE_MYSQL_ERRORS


async def _burn_exists(db: AsyncSession, tx_hash: str) -> bool:
    result = await db.execute(select(MagmaBurn.id).where(MagmaBurn.tx_hash == tx_hash))
    return result.first() is not None


async def _current_total(db: AsyncSession, wallet: str) -> Optional[int]:
    result = await db.execute(
        select(MagmaUser.magma_points_total).where(MagmaUser.wallet_address == wallet)
    )
    return result.scalar_one_or_none()


async def _already_counted(db: AsyncSession, wallet: str) -> BurnResult:
    total = await _current_total(db, wallet)
    return BurnResult(
        already_counted=True,
        wallet=wallet,
        magma_points_total=total or 0,
        awarded_points=0,
        referral_points_awarded=0,
        is_new_user=total is None,
    )


def verify_burn(tx: TransactionInfo, wallet: str, incinerator: str) -> None:
    """Raise InvalidBurn unless ``tx`` is a successful call from ``wallet`` to the incinerator."""
    if tx.from_address == wallet and tx.to_address == incinerator and tx.status_ok:
        return
    raise InvalidBurn(
        "Transaction is not a valid burn for this wallet",
        details={"from": tx.from_address, "to": tx.to_address, "status": tx.status},
    )


async def _credit_referrer(db: AsyncSession, referrer: str, bonus: int, count_increment: int) -> None:
    result = await db.execute(
        select(MagmaUser.wallet_address).where(MagmaUser.wallet_address == referrer).with_for_update()
    )
    if result.first() is None:
        db.add(MagmaUser(
            wallet_address=referrer,
            magma_points_total=bonus,
            referral_points_earned=bonus,
            referral_count=count_increment,
        ))
        await db.flush()
        return
    await db.execute(
        update(MagmaUser)
        .where(MagmaUser.wallet_address == referrer)
        .values(
            magma_points_total=MagmaUser.magma_points_total + bonus,
            referral_points_earned=MagmaUser.referral_points_earned + bonus,
            referral_count=MagmaUser.referral_count + count_increment,
        )
        .execution_options(synchronize_session=False)
    )


async def _apply_burn(db: AsyncSession, wallet: str, tx_hash: str, referrer: Optional[str]) -> BurnResult:
    award = settings.MAGMA_PER_BURN
    bonus = settings.REFERRAL_POINTS

    # Claim the hash before touching balances
    db.add(MagmaBurn(wallet_address=wallet, tx_hash=tx_hash, points_awarded=award))
    await db.flush()

    result = await db.execute(
        select(MagmaUser.referred_by_wallet).where(MagmaUser.wallet_address == wallet).with_for_update()
    )
    row = result.first()
    is_new_user = row is None

    # First referrer wins; a stored referrer is never replaced
    effective_referrer = (row.referred_by_wallet if row else None) or referrer
    if effective_referrer == wallet:
        effective_referrer = None

    if is_new_user:
        db.add(MagmaUser(
            wallet_address=wallet,
            magma_points_total=award,
            referral_points_earned=0,
            referral_count=0,
            referred_by_wallet=effective_referrer,
        ))
        await db.flush()
    else:
        await db.execute(
            update(MagmaUser)
            .where(MagmaUser.wallet_address == wallet)
            .values(
                magma_points_total=MagmaUser.magma_points_total + award,
                referred_by_wallet=func.coalesce(MagmaUser.referred_by_wallet, effective_referrer),
            )
            .execution_options(synchronize_session=False)
        )

    referral_points_awarded = 0
    if effective_referrer:
        # Headcount only grows on the referred wallet's first recorded burn
        await _credit_referrer(db, effective_referrer, bonus, 1 if is_new_user else 0)
        referral_points_awarded = bonus

    total = await _current_total(db, wallet)
    return BurnResult(
        already_counted=False,
        wallet=wallet,
        magma_points_total=total if total is not None else award,
        awarded_points=award,
        referral_points_awarded=referral_points_awarded,
        is_new_user=is_new_user,
    )


async def _apply_with_retry(db: AsyncSession, wallet: str, tx_hash: str, referrer: Optional[str]) -> BurnResult:
    attempts = max(int(settings.LEDGER_APPLY_ATTEMPTS), 1)
    for attempt in range(1, attempts + 1):
        try:
            outcome = await _apply_burn(db, wallet, tx_hash, referrer)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            try:
                if await _burn_exists(db, tx_hash):
                    logger.info(f"Burn {tx_hash} was recorded by a concurrent request; reporting as already counted")
                    return await _already_counted(db, wallet)
            except SQLAlchemyError as check_error:
                logger.error(f"Duplicate check after conflict failed for {tx_hash}: {check_error}")
                raise InternalError("Internal error") from check_error
            # A concurrent first burn created one of the user rows; retry as an update
            logger.warning(f"User row conflict while recording {tx_hash} (attempt {attempt}/{attempts}): {e.orig}")
            continue
        except OperationalError as e:
            await db.rollback()
            if not _is_lock_conflict(e):
                logger.error(f"Failed to record burn {tx_hash}: {e}")
                raise InternalError("Internal error") from e
            logger.warning(f"Lock conflict while recording {tx_hash} (attempt {attempt}/{attempts}): {e.orig}")
            continue
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to record burn {tx_hash}: {e}")
            raise InternalError("Internal error") from e

        logger.info(
            f"Recorded burn {tx_hash} for {wallet}: +{outcome.awarded_points} MAGMA "
            f"(referral +{outcome.referral_points_awarded}, new_user={outcome.is_new_user})"
        )
        return outcome

    logger.error(f"Giving up on burn {tx_hash} after {attempts} conflicting attempts")
    raise InternalError("Internal error")


@timeit("record_burn")
async def record_burn(
    wallet_address: Optional[str],
    tx_hash: Optional[str],
    referrer: Optional[str] = None,
    oracle: Optional[ChainOracleClient] = None,
    db: AsyncSession = None,
) -> BurnResult:
    """Record a verified burn and award MAGMA points exactly once per transaction.

    Raises InvalidInput, OracleUnavailable, InvalidBurn or InternalError.
    Repeating a call is always safe: a known hash yields ``already_counted``.
    """
    wallet = normalize_address(wallet_address)
    if not wallet:
        raise InvalidInput("Invalid wallet address")
    normalized_hash = normalize_tx_hash(tx_hash)
    if not normalized_hash:
        raise InvalidInput("Invalid txHash")

    claimed_referrer = normalize_address(referrer)
    if claimed_referrer == wallet:
        claimed_referrer = None

    oracle = oracle or ChainOracleClient()

    async with get_or_use_session(db) as _db:
        try:
            if await _burn_exists(_db, normalized_hash):
                logger.info(f"Burn {normalized_hash} already counted")
                return await _already_counted(_db, wallet)
            # Release the connection while waiting on the indexer
            await _db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Duplicate check failed for {normalized_hash}: {e}")
            raise InternalError("Internal error") from e

        tx_info = await oracle.fetch_transaction(normalized_hash)
        try:
            verify_burn(tx_info, wallet, settings.INCINERATOR_ADDRESS.lower())
        except InvalidBurn as e:
            logger.warning(f"Rejected burn {normalized_hash} for {wallet}: {e.details}")
            raise

        return await _apply_with_retry(_db, wallet, normalized_hash, claimed_referrer)
