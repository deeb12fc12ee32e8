from sqlalchemy import Column, String, Integer, DateTime, UniqueConstraint, Index
from sqlalchemy.sql import func
from db.session import Base


class MagmaBurn(Base):
    __tablename__ = "magma_burns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(42), nullable=False)
    tx_hash = Column(String(66), nullable=False)
    points_awarded = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    # The unique tx_hash is what rejects the loser of a concurrent double-submit
    __table_args__ = (
        UniqueConstraint("tx_hash", name="uq_magma_burns_tx_hash"),
        Index("ix_magma_burns_wallet", "wallet_address"),
    )
