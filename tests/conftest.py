"""Pytest configuration and fixtures."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["VAULT_SECRET"] = "test-passphrase"
os.environ["DEBUG"] = "false"

from swapvault.config import Settings
from swapvault.crypto import KeyVault
from swapvault.ledger.models import Base
from swapvault.ledger.repository import LedgerRepository
from swapvault.utils.locks import clear_wallet_locks


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def ledger_repo(db_session: AsyncSession) -> LedgerRepository:
    """Create ledger repository for testing."""
    return LedgerRepository(db_session)


@pytest.fixture
def db_factory(db_session):
    """Unit-of-work factory that reuses the test session."""

    @asynccontextmanager
    async def factory():
        yield db_session
        await db_session.flush()

    return factory


@pytest.fixture
def vault() -> KeyVault:
    return KeyVault.from_passphrase("test-passphrase")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        aptos_node_url="https://node.test/v1",
        aptos_indexer_url="https://indexer.test/v1/graphql",
        aptos_chain_id=None,
        gas_unit_price=None,
        finality_timeout_seconds=2.0,
        finality_poll_interval=0.01,
        wallet_lock_timeout=5.0,
        default_slippage_bps=50,
        native_coin="0x1::aptos_coin::AptosCoin",
        native_decimals=8,
    )


@pytest.fixture(autouse=True)
def reset_locks():
    """Wallet locks are process-global."""
    clear_wallet_locks()
    yield
    clear_wallet_locks()
