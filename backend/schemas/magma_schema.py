from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import List, Optional

class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True

class RecordBurnRequest(CamelModel):
    # Left optional so malformed bodies are reported as InvalidInput, not 422
    wallet_address: Optional[str] = None
    tx_hash: Optional[str] = None
    referrer: Optional[str] = None

class BurnResult(CamelModel):
    already_counted: bool
    wallet: str
    magma_points_total: int
    awarded_points: int
    referral_points_awarded: int
    is_new_user: bool

    def to_response(self) -> dict:
        return {"success": True, **self.model_dump(by_alias=True)}

class Profile(CamelModel):
    wallet_address: str
    magma_points_total: int = 0
    referral_points_earned: int = 0
    referral_count: int = 0
    referred_by_wallet: Optional[str] = None
    rank: Optional[int] = None
    total_users: int = 0

class LeaderboardEntry(CamelModel):
    wallet_address: str
    magma_points_total: int
    referral_count: int
    rank: int

class Leaderboard(CamelModel):
    entries: List[LeaderboardEntry]
    total_users: int
