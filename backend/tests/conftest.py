"""
Pytest configuration and fixtures for the backend tests.
"""
import os
import tempfile

INCINERATOR = "0x000000000000000000000000000000000000dead"

# Settings are read at import time, so the environment must be in place first
_TMP = tempfile.gettempdir()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP, f'magma_ledger_test_{os.getpid()}.db')}"
os.environ["INCINERATOR_ADDRESS"] = INCINERATOR
os.environ["MORALIS_API_KEY"] = "test-moralis-key"
os.environ["ORACLE_RETRY_DELAY_SECONDS"] = "0"
os.environ["LOG_DIR"] = os.path.join(_TMP, "magma_ledger_test_logs")
os.environ["LOG_LEVEL"] = "WARNING"

import asyncio
import json
from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from faker import Faker
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from main import app
from api.dependencies import get_chain_oracle
from core.errors import OracleUnavailable
from db.models.magma_user import MagmaUser
from db.models.magma_burn import MagmaBurn
from db.session import Base, engine, SessionLocal
from services.chain_oracle import TransactionInfo, is_success_status

# Initialize Faker for test data generation
fake = Faker()


def random_wallet() -> str:
    return "0x" + fake.hexify("^" * 40)


def random_tx_hash() -> str:
    return "0x" + fake.hexify("^" * 64)


class FakeResponse:
    """Minimal stand-in for an aiohttp response used as ``async with session.get(...)``."""

    def __init__(self, status: int, body):
        self.status = status
        self._body = body

    async def text(self):
        return self._body if isinstance(self._body, str) else json.dumps(self._body)

    async def json(self, content_type=None):
        return json.loads(self._body) if isinstance(self._body, str) else self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class StubOracle:
    """In-memory stand-in for the Moralis client."""

    def __init__(self):
        self.transactions: Dict[str, TransactionInfo] = {}
        self.calls: List[str] = []
        self.error = None

    def register(self, tx_hash: str, from_address: str, to_address: str = INCINERATOR, status=1) -> str:
        self.transactions[tx_hash.lower()] = TransactionInfo(
            tx_hash=tx_hash.lower(),
            from_address=from_address.lower() if from_address else None,
            to_address=to_address.lower() if to_address else None,
            status=status,
            status_ok=is_success_status(status),
        )
        return tx_hash

    async def fetch_transaction(self, tx_hash: str, session=None) -> TransactionInfo:
        self.calls.append(tx_hash)
        if self.error is not None:
            raise self.error
        if tx_hash not in self.transactions:
            raise OracleUnavailable("Failed to fetch transaction from Moralis")
        return self.transactions[tx_hash]


class GatedOracle(StubOracle):
    """Holds every lookup until ``parties`` callers are waiting, so they all pass the duplicate check first."""

    def __init__(self, parties: int = 2):
        super().__init__()
        self.parties = parties
        self.arrived = 0
        self.released = asyncio.Event()

    async def fetch_transaction(self, tx_hash: str, session=None) -> TransactionInfo:
        self.arrived += 1
        if self.arrived >= self.parties:
            self.released.set()
        await asyncio.wait_for(self.released.wait(), timeout=5)
        return await super().fetch_transaction(tx_hash, session)


@pytest_asyncio.fixture
async def setup_test_db():
    """Fresh ledger tables for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    # Pooled aiosqlite connections are bound to this test's event loop
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(setup_test_db) -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session


@pytest.fixture
def oracle() -> StubOracle:
    return StubOracle()


@pytest_asyncio.fixture
async def async_client(setup_test_db, oracle: StubOracle) -> AsyncGenerator[AsyncClient, None]:
    """Async test client wired to the stub oracle."""
    app.dependency_overrides[get_chain_oracle] = lambda: oracle

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def seed_user(wallet: str, points: int = 0, referral_points: int = 0, referral_count: int = 0, referred_by: str = None) -> None:
    async with SessionLocal() as session:
        session.add(MagmaUser(
            wallet_address=wallet,
            magma_points_total=points,
            referral_points_earned=referral_points,
            referral_count=referral_count,
            referred_by_wallet=referred_by,
        ))
        await session.commit()


async def load_user(wallet: str):
    async with SessionLocal() as session:
        result = await session.execute(select(MagmaUser).where(MagmaUser.wallet_address == wallet))
        return result.scalars().first()


async def count_rows(model) -> int:
    async with SessionLocal() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return int(result.scalar() or 0)


async def count_burns() -> int:
    return await count_rows(MagmaBurn)
