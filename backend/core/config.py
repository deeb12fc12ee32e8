from pydantic_settings import BaseSettings
from typing import List, Optional
import re

class Settings(BaseSettings):
    # App settings
    APP_NAME: str = "MAGMA Burn Ledger API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database settings (MySQL)
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_POOL_TIMEOUT: int = 10
    DB_PRE_PING: bool = True
    DB_CONNECT_TIMEOUT: int = 10

    # CORS settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TTL_DAYS: int = 7

    # Chain indexer (Moralis)
    MORALIS_API_KEY: Optional[str] = None
    MORALIS_API_BASE: str = "https://deep-index.moralis.io/api/v2.2"
    MORALIS_CHAIN: str = "base sepolia"
    ORACLE_MAX_ATTEMPTS: int = 3
    ORACLE_RETRY_DELAY_SECONDS: float = 3.0
    ORACLE_TIMEOUT_SECONDS: int = 15

    # Incinerator contract that must receive every counted burn
    INCINERATOR_ADDRESS: str

    # MAGMA points
    MAGMA_PER_BURN: int = 100
    REFERRAL_POINTS: int = 10
    LEDGER_APPLY_ATTEMPTS: int = 3

    class Config:
        env_file = ".env"
        case_sensitive = True

# Create settings instance
settings = Settings()

# Validate required settings
if not settings.DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required")

if not re.fullmatch(r"0x[a-fA-F0-9]{40}", settings.INCINERATOR_ADDRESS or ""):
    raise ValueError("INCINERATOR_ADDRESS must be a 0x-prefixed 20-byte hex address")

if settings.ORACLE_MAX_ATTEMPTS < 1:
    raise ValueError("ORACLE_MAX_ATTEMPTS must be at least 1")
