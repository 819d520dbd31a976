"""Abstract pricing interface for pool-based swap providers."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from swapvault.chain.payloads import TransactionPayload

BPS_SCALE = 10_000


@dataclass
class PoolQuote:
    """A quote read from a liquidity pool. All amounts are base units."""

    provider: str  # e.g., "Liquidswap"
    from_token: str
    to_token: str
    amount_in: int
    amount_out: int
    fee_bps: int
    reserve_in: int
    reserve_out: int
    timestamp: float = field(default_factory=time.time)

    @property
    def price_impact(self) -> Decimal:
        """Fraction of the output reserve taken by this trade (display only)."""
        if self.reserve_out == 0:
            return Decimal("0")
        return Decimal(self.amount_out) / Decimal(self.reserve_out)


class PoolQuoter(ABC):
    """Abstract base class for pool pricing providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        pass

    @abstractmethod
    async def get_quote(
        self,
        from_token: str,
        to_token: str,
        amount_in: int,
    ) -> Optional[PoolQuote]:
        """
        Price a swap of ``amount_in`` base units.

        Args:
            from_token: Coin type being sold
            to_token: Coin type being bought
            amount_in: Amount of from_token in base units

        Returns:
            PoolQuote if a pool exists for the pair, None otherwise
        """
        pass

    @abstractmethod
    def build_swap_payload(
        self,
        from_token: str,
        to_token: str,
        amount_in: int,
        min_amount_out: int,
    ) -> TransactionPayload:
        """Entry-function payload executing the swap with an output floor."""
        pass
