from sqlalchemy import Column, String, Integer, DateTime, Index
from sqlalchemy.sql import func
from db.session import Base


class MagmaUser(Base):
    __tablename__ = "magma_users"

    wallet_address = Column(String(42), primary_key=True)
    magma_points_total = Column(Integer, default=0, nullable=False)
    referral_points_earned = Column(Integer, default=0, nullable=False)
    referral_count = Column(Integer, default=0, nullable=False)
    # Set at most once (first referrer wins); never the user's own address
    referred_by_wallet = Column(String(42), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    __table_args__ = (
        Index("ix_magma_users_points", "magma_points_total"),
        Index("ix_magma_users_referred_by", "referred_by_wallet"),
    )
