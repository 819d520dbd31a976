"""Persistence for users, custodial wallets and cached coins."""

from swapvault.ledger.database import close_db, get_db, init_db
from swapvault.ledger.models import Base, Coin, User, Wallet
from swapvault.ledger.repository import LedgerRepository

__all__ = [
    # Models
    "Base",
    "User",
    "Wallet",
    "Coin",
    # Database
    "get_db",
    "init_db",
    "close_db",
    "LedgerRepository",
]
