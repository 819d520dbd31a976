"""Wallet and coin services."""

from swapvault.services.coin_service import CoinService
from swapvault.services.wallet_service import WalletService

__all__ = ["CoinService", "WalletService"]
