"""Swap execution for custodial wallets."""

from swapvault.swap.amounts import compute_sell_amount, min_amount_out, to_base_units
from swapvault.swap.orchestrator import SwapIntent, SwapOrchestrator, SwapOutcome

__all__ = [
    "SwapIntent",
    "SwapOrchestrator",
    "SwapOutcome",
    "compute_sell_amount",
    "min_amount_out",
    "to_base_units",
]
