"""Per-wallet serialization of signed transactions.

An Aptos account's transactions are ordered by its sequence number, so only
one transaction per wallet may be between "read sequence number" and
"settled" at a time. ``TransactionPipeline.sign_and_broadcast`` takes the
wallet's lock itself; callers must not hold it around that call (the lock
is not reentrant).
"""

import asyncio
import logging
from typing import Optional

from swapvault.errors import SwapVaultError

logger = logging.getLogger(__name__)

# wallet_id -> asyncio.Lock
_wallet_locks: dict[int, asyncio.Lock] = {}
_registry_lock = asyncio.Lock()


async def get_wallet_lock(wallet_id: int) -> asyncio.Lock:
    """Return the wallet's lock, creating it on first use."""
    async with _registry_lock:
        lock = _wallet_locks.get(wallet_id)
        if lock is None:
            lock = _wallet_locks[wallet_id] = asyncio.Lock()
        return lock


def is_wallet_busy(wallet_id: int) -> bool:
    """Whether a transaction for the wallet is currently in flight."""
    lock = _wallet_locks.get(wallet_id)
    return lock is not None and lock.locked()


class LockTimeoutError(SwapVaultError):
    """The wallet stayed busy longer than the allowed wait."""


class WalletLock:
    """Hold a wallet's signing slot for one build/submit/wait cycle.

    Waiters queue in arrival order. With a ``timeout`` the wait gives up with
    ``LockTimeoutError`` and nothing is submitted.

    Example (inside the pipeline, around a single transaction):
        async with WalletLock(wallet.id, timeout=120, operation=payload.function):
            raw = await build(...)
            tx_hash = await submit(sign(raw))
            await wait_for_finality(tx_hash)
    """

    def __init__(
        self,
        wallet_id: int,
        timeout: Optional[float] = 30.0,
        operation: str = "transaction",
    ):
        """
        Args:
            wallet_id: Wallet primary key
            timeout: Seconds to wait for the wallet (None waits forever)
            operation: Label used in log lines
        """
        self.wallet_id = wallet_id
        self.timeout = timeout
        self.operation = operation
        self._lock: Optional[asyncio.Lock] = None
        self._acquired = False

    async def __aenter__(self) -> "WalletLock":
        self._lock = await get_wallet_lock(self.wallet_id)

        try:
            if self.timeout:
                await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
            else:
                await self._lock.acquire()
        except asyncio.TimeoutError:
            logger.warning(
                f"Wallet {self.wallet_id} still busy after {self.timeout}s, "
                f"giving up on {self.operation}"
            )
            raise LockTimeoutError(
                f"Wallet {self.wallet_id} busy, could not acquire lock within {self.timeout}s"
            )

        self._acquired = True
        logger.debug(f"Wallet {self.wallet_id} locked for {self.operation}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._acquired and self._lock:
            self._lock.release()
            self._acquired = False
            logger.debug(f"Wallet {self.wallet_id} released after {self.operation}")
        return False


def clear_wallet_locks() -> None:
    """Forget every wallet lock (test isolation)."""
    _wallet_locks.clear()
