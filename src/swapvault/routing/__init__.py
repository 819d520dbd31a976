"""Swap pricing providers."""

from swapvault.routing.base import PoolQuote, PoolQuoter
from swapvault.routing.liquidswap import LiquidswapQuoter, create_liquidswap_quoter

__all__ = ["PoolQuote", "PoolQuoter", "LiquidswapQuoter", "create_liquidswap_quoter"]
