"""Swap orchestration: registration, quoting, payload building and settlement.

Flow (each step depends on the previous one, nothing is retried):
1. Check the destination coin is registered on the wallet (not for the native coin)
2. If not, submit a registration transaction and wait for it
3. Quote the swap against the pool
4. Build the payload with a slippage floor
5. Sign, submit and wait
6. Read the realized output from the swap event
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncContextManager, Callable, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from swapvault.chain.gateway import ChainGateway
from swapvault.chain.payloads import TransactionPayload, register_coin_payload
from swapvault.chain.pipeline import TransactionPipeline, TransactionResult
from swapvault.config import Settings, get_settings
from swapvault.errors import NotFoundError, QuoteUnavailable, ValidationError
from swapvault.ledger.database import get_db
from swapvault.ledger.models import Coin, Wallet
from swapvault.ledger.repository import LedgerRepository
from swapvault.routing.base import PoolQuoter
from swapvault.swap.amounts import (
    compute_sell_amount,
    min_amount_out,
    to_base_units,
    validate_percentage,
    validate_slippage_bps,
)

logger = logging.getLogger(__name__)

DbFactory = Callable[[], AsyncContextManager[AsyncSession]]


@dataclass(frozen=True)
class SwapIntent:
    """What to trade. ``amount`` is in base units of ``from_token``."""

    from_address: str
    from_token: str
    to_token: str
    amount: int
    slippage_bps: int


@dataclass
class SwapOutcome:
    """Result of a settled swap.

    ``success`` is False when the swap was included but rejected on-chain;
    ``amount_out`` is then 0.
    """

    success: bool
    tx_hash: str
    from_token: str
    to_token: str
    amount_in: int
    quoted_amount_out: int
    min_amount_out: int
    amount_out: int = 0
    registration_hash: Optional[str] = None
    failure_reason: Optional[str] = None
    warning: Optional[str] = None


class SwapOrchestrator:
    """Drives buy and sell trades for custodial wallets."""

    def __init__(
        self,
        gateway: ChainGateway,
        pipeline: TransactionPipeline,
        quoter: PoolQuoter,
        db: DbFactory = get_db,
        settings: Optional[Settings] = None,
    ):
        self.gateway = gateway
        self.pipeline = pipeline
        self.quoter = quoter
        self.db = db
        self.settings = settings or get_settings()

    # Pricing
    async def quote(self, from_token: str, to_token: str, amount: int) -> int:
        """Expected output in base units of ``to_token``.

        Raises:
            QuoteUnavailable: No pool for the pair
        """
        if amount <= 0:
            raise ValidationError("Amount must be positive")

        pool_quote = await self.quoter.get_quote(from_token, to_token, amount)
        if pool_quote is None:
            raise QuoteUnavailable(f"No liquidity for {from_token} -> {to_token}")
        return pool_quote.amount_out

    async def _prepare_swap(self, intent: SwapIntent) -> tuple[TransactionPayload, int, int]:
        validate_slippage_bps(intent.slippage_bps)
        quoted = await self.quote(intent.from_token, intent.to_token, intent.amount)
        floor = min_amount_out(quoted, intent.slippage_bps)
        payload = self.quoter.build_swap_payload(
            intent.from_token, intent.to_token, intent.amount, floor
        )
        return payload, quoted, floor

    async def build_swap(self, intent: SwapIntent) -> TransactionPayload:
        """Re-quote and build the swap payload with its minimum output."""
        payload, _, _ = await self._prepare_swap(intent)
        return payload

    # Execution
    async def ensure_registered(
        self, wallet: Wallet, coin_address: str
    ) -> Optional[TransactionResult]:
        """Register ``coin_address`` on the wallet if needed.

        Returns:
            The registration result, or None if already registered

        Raises:
            OnChainFailure: Registration was rejected (stage "register")
        """
        if await self.gateway.is_coin_registered(wallet.address, coin_address):
            return None

        logger.info(f"Registering {coin_address} for wallet {wallet.id}")
        result = await self.pipeline.sign_and_broadcast(wallet, register_coin_payload(coin_address))
        result.raise_for_failure(stage="register")
        return result

    async def execute_swap(self, wallet: Wallet, intent: SwapIntent) -> SwapOutcome:
        """Run the full registration -> quote -> build -> submit -> parse sequence."""
        if intent.from_address != wallet.address:
            raise ValidationError("Swap intent does not belong to this wallet")

        registration = None
        if intent.to_token != self.settings.native_coin:
            registration = await self.ensure_registered(wallet, intent.to_token)
        registration_hash = registration.hash if registration else None

        payload, quoted, floor = await self._prepare_swap(intent)
        logger.info(
            f"Swapping {intent.amount} {intent.from_token} -> {intent.to_token} "
            f"for wallet {wallet.id} (quoted {quoted}, min {floor})"
        )
        result = await self.pipeline.sign_and_broadcast(wallet, payload)

        amount_out, warning = self.extract_output(result, intent.from_token, intent.to_token)
        return SwapOutcome(
            success=result.success,
            tx_hash=result.hash,
            from_token=intent.from_token,
            to_token=intent.to_token,
            amount_in=intent.amount,
            quoted_amount_out=quoted,
            min_amount_out=floor,
            amount_out=amount_out,
            registration_hash=registration_hash,
            failure_reason=result.failure_reason,
            warning=warning,
        )

    @staticmethod
    def extract_output(
        result: TransactionResult, from_token: str, to_token: str
    ) -> tuple[int, Optional[str]]:
        """Realized output from the swap event.

        Events for the traded pair are preferred; otherwise the first swap
        event is used (ambiguous for multi-hop routes).

        Returns:
            (amount_out, warning)
        """
        if not result.success:
            return 0, None

        events = result.swap_events
        if not events:
            warning = f"Swap {result.hash} settled but emitted no swap event"
            logger.warning(warning)
            return 0, warning

        matching = [e for e in events if e.involves(from_token, to_token)]
        event = matching[0] if matching else events[0]
        return event.output, None

    # User-facing flows
    async def _resolve(
        self, user_id: int, wallet_id: Optional[int], coin_id: int
    ) -> tuple[Wallet, Coin]:
        async with self.db() as session:
            repo = LedgerRepository(session)
            if wallet_id is None:
                wallet = await repo.get_default_wallet(user_id)
            else:
                wallet = await repo.get_wallet_by_id(wallet_id, user_id)
            if wallet is None:
                raise NotFoundError(f"Wallet {wallet_id or '(default)'} not found")

            coin = await repo.get_coin_by_id(coin_id)
            if coin is None:
                raise NotFoundError(f"Coin {coin_id} not found")
        return wallet, coin

    async def buy(
        self,
        user_id: int,
        wallet_id: Optional[int],
        coin_id: int,
        amount: Union[Decimal, str],
        slippage_bps: Optional[int] = None,
    ) -> SwapOutcome:
        """Spend ``amount`` of the native coin on ``coin_id``."""
        native = self.settings.native_coin
        amount_in = to_base_units(amount, self.settings.native_decimals)
        slippage_bps = validate_slippage_bps(
            self.settings.default_slippage_bps if slippage_bps is None else slippage_bps
        )

        wallet, coin = await self._resolve(user_id, wallet_id, coin_id)
        if coin.address == native:
            raise ValidationError("Cannot buy the native coin with itself")

        balance = await self.gateway.get_balance(wallet.address, native)
        if balance < amount_in:
            raise ValidationError(f"Insufficient balance: have {balance}, need {amount_in}")

        intent = SwapIntent(
            from_address=wallet.address,
            from_token=native,
            to_token=coin.address,
            amount=amount_in,
            slippage_bps=slippage_bps,
        )
        return await self.execute_swap(wallet, intent)

    async def sell(
        self,
        user_id: int,
        wallet_id: Optional[int],
        coin_id: int,
        percentage: int,
        slippage_bps: Optional[int] = None,
    ) -> SwapOutcome:
        """Sell ``percentage`` percent of the wallet's ``coin_id`` balance for the native coin."""
        validate_percentage(percentage)
        slippage_bps = validate_slippage_bps(
            self.settings.default_slippage_bps if slippage_bps is None else slippage_bps
        )

        wallet, coin = await self._resolve(user_id, wallet_id, coin_id)
        native = self.settings.native_coin
        if coin.address == native:
            raise ValidationError("Cannot sell the native coin for itself")

        balance = await self.gateway.get_balance(wallet.address, coin.address)
        amount_in = compute_sell_amount(balance, percentage)
        if amount_in == 0:
            raise ValidationError(f"No {coin.symbol} to sell")

        intent = SwapIntent(
            from_address=wallet.address,
            from_token=coin.address,
            to_token=native,
            amount=amount_in,
            slippage_bps=slippage_bps,
        )
        return await self.execute_swap(wallet, intent)
