"""Exception hierarchy for wallet and swap operations."""

from typing import Optional


class SwapVaultError(Exception):
    """Base class for all swapvault errors."""

    pass


class ValidationError(SwapVaultError):
    """Bad input detected before any network call."""

    pass


class NotFoundError(SwapVaultError):
    """A wallet, coin or user does not exist (or is not visible to the caller)."""

    pass


class DecryptionError(SwapVaultError):
    """Ciphertext is corrupt or was encrypted under a different key."""

    pass


class StorageError(SwapVaultError):
    """Unexpected persistence failure."""

    pass


class ChainQueryError(SwapVaultError):
    """Read-only request to the node or indexer failed."""

    pass


class QuoteUnavailable(SwapVaultError):
    """No liquidity route exists for the pair (retry later)."""

    pass


class SubmissionError(SwapVaultError):
    """Transport failure while building, submitting or awaiting a transaction.

    The on-chain outcome is unknown: it must not be treated as success or failure.
    """

    def __init__(self, message: str, stage: str, tx_hash: Optional[str] = None):
        self.stage = stage
        self.tx_hash = tx_hash
        super().__init__(message)


class OnChainFailure(SwapVaultError):
    """Transaction was included but its execution was rejected by the VM."""

    def __init__(
        self,
        reason: str,
        tx_hash: Optional[str] = None,
        stage: str = "swap",
    ):
        self.reason = reason
        self.tx_hash = tx_hash
        self.stage = stage
        super().__init__(f"{stage} transaction {tx_hash or '?'} failed on-chain: {reason}")
