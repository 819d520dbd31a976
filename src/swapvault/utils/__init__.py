"""Utility modules for swapvault."""

from swapvault.utils.locks import LockTimeoutError, WalletLock, get_wallet_lock, is_wallet_busy

__all__ = ["LockTimeoutError", "WalletLock", "get_wallet_lock", "is_wallet_busy"]
