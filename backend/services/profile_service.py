from db.session import get_or_use_session
from db.models.magma_user import MagmaUser
from core.errors import InvalidInput
from schemas.magma_schema import Profile, Leaderboard, LeaderboardEntry
from utils.normalize import normalize_address
from utils.timing import timeit
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import logging

logger = logging.getLogger(__name__)

MAX_LEADERBOARD_SIZE = 100


async def count_users(db: AsyncSession = None) -> int:
    async with get_or_use_session(db) as _db:
        result = await _db.execute(select(func.count()).select_from(MagmaUser))
        return int(result.scalar() or 0)


async def _count_ahead_of(db: AsyncSession, points: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(MagmaUser).where(MagmaUser.magma_points_total > points)
    )
    return int(result.scalar() or 0)


@timeit("get_profile")
async def get_profile(wallet_address: str, db: AsyncSession = None) -> Profile:
    """Points, referral stats and rank for a wallet.

    Rank is 1 + the number of users with strictly more points, so tied users
    share a rank. A wallet with no recorded burns gets zeroed stats and no rank.
    """
    wallet = normalize_address(wallet_address)
    if not wallet:
        raise InvalidInput("Invalid address")

    async with get_or_use_session(db) as _db:
        result = await _db.execute(select(MagmaUser).where(MagmaUser.wallet_address == wallet))
        user = result.scalars().first()
        total_users = await count_users(_db)

        if not user:
            return Profile(wallet_address=wallet, total_users=total_users)

        rank = await _count_ahead_of(_db, user.magma_points_total) + 1
        return Profile(
            wallet_address=wallet,
            magma_points_total=user.magma_points_total,
            referral_points_earned=user.referral_points_earned,
            referral_count=user.referral_count,
            referred_by_wallet=user.referred_by_wallet,
            rank=rank,
            total_users=total_users,
        )


@timeit("get_leaderboard")
async def get_leaderboard(limit: int = 10, db: AsyncSession = None) -> Leaderboard:
    if limit < 1 or limit > MAX_LEADERBOARD_SIZE:
        raise InvalidInput(f"limit must be between 1 and {MAX_LEADERBOARD_SIZE}")

    async with get_or_use_session(db) as _db:
        result = await _db.execute(
            select(MagmaUser)
            .order_by(MagmaUser.magma_points_total.desc(), MagmaUser.created_at.asc())
            .limit(limit)
        )
        users = result.scalars().all()
        total_users = await count_users(_db)

    entries = []
    for position, user in enumerate(users, start=1):
        # Same strictly-greater rule as get_profile: ties keep the earlier rank
        if entries and entries[-1].magma_points_total == user.magma_points_total:
            rank = entries[-1].rank
        else:
            rank = position
        entries.append(LeaderboardEntry(
            wallet_address=user.wallet_address,
            magma_points_total=user.magma_points_total,
            referral_count=user.referral_count,
            rank=rank,
        ))
    return Leaderboard(entries=entries, total_users=total_users)
