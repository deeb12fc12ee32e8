from db.session import Base, engine
from db.models.magma_user import MagmaUser  # noqa: F401
from db.models.magma_burn import MagmaBurn  # noqa: F401
import logging

logger = logging.getLogger(__name__)

async def initialize_database():
    """Create ledger tables if they do not exist yet."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
