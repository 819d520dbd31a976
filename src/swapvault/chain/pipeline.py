"""Transaction pipeline: build, sign, submit and await finality.

Submission flow:
1. Decrypt the wallet key (only for the duration of the call)
2. Build a raw transaction against the signer's sequence number
3. Sign it
4. Submit the BCS bytes to the node
5. Poll until the transaction is committed

States: BUILT -> SIGNED -> SUBMITTED -> CONFIRMED | FAILED
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx
from aptos_sdk.account import Account
from aptos_sdk.authenticator import Authenticator, Ed25519Authenticator
from aptos_sdk.transactions import RawTransaction, SignedTransaction

from swapvault.chain.client import AptosApiError, AptosClient, TransactionWaitTimeout
from swapvault.chain.events import ChainEvent, SwapEvent, parse_events
from swapvault.chain.payloads import TransactionPayload
from swapvault.config import Settings, get_settings
from swapvault.crypto import KeyVault
from swapvault.errors import DecryptionError, OnChainFailure, SubmissionError
from swapvault.ledger.models import Wallet
from swapvault.utils.locks import WalletLock, is_wallet_busy

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (httpx.HTTPError, AptosApiError, TransactionWaitTimeout, KeyError, ValueError)


class TransactionState(str, Enum):
    """Lifecycle of one submission."""

    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class TransactionResult:
    """Settled outcome of a committed transaction.

    ``success=False`` means the transaction was included but the VM rejected
    its effects; ``failure_reason`` holds the VM status.
    """

    success: bool
    hash: str
    events: tuple[ChainEvent, ...] = ()
    failure_reason: Optional[str] = None
    version: Optional[int] = None
    gas_used: Optional[int] = None

    @classmethod
    def from_response(cls, data: dict) -> "TransactionResult":
        """Build from a node ``/transactions/by_hash`` response."""
        success = bool(data.get("success"))
        return cls(
            success=success,
            hash=data["hash"],
            events=parse_events(data.get("events")),
            failure_reason=None if success else data.get("vm_status", "unknown"),
            version=int(data["version"]) if data.get("version") is not None else None,
            gas_used=int(data["gas_used"]) if data.get("gas_used") is not None else None,
        )

    @property
    def state(self) -> TransactionState:
        return TransactionState.CONFIRMED if self.success else TransactionState.FAILED

    @property
    def swap_events(self) -> list[SwapEvent]:
        return [e for e in self.events if isinstance(e, SwapEvent)]

    def raise_for_failure(self, stage: str = "swap") -> None:
        """Raise OnChainFailure if the VM rejected the transaction."""
        if not self.success:
            raise OnChainFailure(self.failure_reason or "unknown", tx_hash=self.hash, stage=stage)


def normalize_address(address: str) -> str:
    """Lowercase hex without 0x prefix or leading zeros."""
    return address.lower().removeprefix("0x").lstrip("0") or "0"


class TransactionPipeline:
    """Signs and submits transactions for custodial wallets."""

    def __init__(
        self,
        client: AptosClient,
        vault: KeyVault,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.vault = vault
        self.settings = settings or get_settings()

    def _load_signer(self, wallet: Wallet) -> Account:
        """Decrypt the wallet key into a signing account."""
        private_key = self.vault.decrypt(wallet.encrypted_private_key)
        try:
            account = Account.load_key(private_key)
        except Exception as e:
            raise DecryptionError(f"Stored key for wallet {wallet.id} is not a valid key") from e

        if normalize_address(str(account.address())) != normalize_address(wallet.address):
            raise DecryptionError(f"Stored key for wallet {wallet.id} does not match its address")
        return account

    async def _build(self, account: Account, payload: TransactionPayload) -> RawTransaction:
        sender = str(account.address())
        sequence_number = await self.client.account_sequence_number(sender)
        gas_unit_price = self.settings.gas_unit_price or await self.client.estimate_gas_price()
        chain_id = await self.client.chain_id()

        return RawTransaction(
            account.address(),
            sequence_number,
            payload.to_bcs(),
            self.settings.max_gas_amount,
            gas_unit_price,
            int(time.time()) + self.settings.transaction_ttl_seconds,
            chain_id,
        )

    @staticmethod
    def _sign(account: Account, raw: RawTransaction) -> SignedTransaction:
        signature = account.sign(raw.keyed())
        authenticator = Authenticator(Ed25519Authenticator(account.public_key(), signature))
        return SignedTransaction(raw, authenticator)

    async def sign_and_broadcast(
        self, wallet: Wallet, payload: TransactionPayload
    ) -> TransactionResult:
        """Sign ``payload`` with the wallet's key, submit it and wait for finality.

        The wallet lock is held from build until the finality wait ends.

        Returns:
            TransactionResult (check ``success``)

        Raises:
            DecryptionError: Stored key cannot be decrypted
            SubmissionError: Transport failure; the outcome is unknown
        """
        if is_wallet_busy(wallet.id):
            logger.info(f"Wallet {wallet.id} busy, queueing {payload.function}")
        async with WalletLock(
            wallet.id, timeout=self.settings.wallet_lock_timeout, operation=payload.function
        ):
            account = self._load_signer(wallet)
            log_ctx = f"wallet={wallet.id} fn={payload.function}"

            try:
                raw = await self._build(account, payload)
            except TRANSPORT_ERRORS as e:
                raise SubmissionError(f"Failed to build transaction: {e}", stage="build") from e
            logger.debug(f"Transaction {TransactionState.BUILT.value}: {log_ctx}")

            try:
                signed = self._sign(account, raw)
            except Exception as e:
                raise SubmissionError(f"Failed to sign transaction: {e}", stage="sign") from e
            finally:
                del account
            logger.debug(f"Transaction {TransactionState.SIGNED.value}: {log_ctx}")

            try:
                tx_hash = await self.client.submit_bcs_transaction(signed.bytes())
            except TRANSPORT_ERRORS as e:
                raise SubmissionError(f"Failed to submit transaction: {e}", stage="submit") from e
            logger.info(f"Transaction {TransactionState.SUBMITTED.value}: {log_ctx} hash={tx_hash}")

            try:
                data = await self.client.wait_for_transaction(
                    tx_hash,
                    timeout=self.settings.finality_timeout_seconds,
                    poll_interval=self.settings.finality_poll_interval,
                )
            except TRANSPORT_ERRORS as e:
                raise SubmissionError(
                    f"Lost track of transaction {tx_hash}: {e}", stage="wait", tx_hash=tx_hash
                ) from e

        result = TransactionResult.from_response(data)
        if result.success:
            logger.info(f"Transaction {result.state.value}: {log_ctx} hash={tx_hash}")
        else:
            logger.warning(
                f"Transaction {result.state.value}: {log_ctx} hash={tx_hash} "
                f"reason={result.failure_reason}"
            )
        return result
