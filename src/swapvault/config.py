"""Application configuration using pydantic-settings.

All values come from environment variables (or `.env`). The vault passphrase
is hashed once per process into the 32-byte secret used for key encryption.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Telegram
    # ======================
    telegram_bot_token: str = Field(default="", description="Telegram bot token from BotFather")

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/swapvault.db",
        description="Database connection URL",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug mode")

    # ======================
    # Encryption
    # ======================
    vault_secret: str = Field(
        default="secret", description="Passphrase hashed into the wallet encryption key"
    )

    # ======================
    # Aptos
    # ======================
    aptos_node_url: str = Field(
        default="https://fullnode.mainnet.aptoslabs.com/v1", description="Aptos fullnode REST URL"
    )
    aptos_indexer_url: str = Field(
        default="https://api.mainnet.aptoslabs.com/v1/graphql",
        description="Aptos indexer GraphQL URL",
    )
    aptos_chain_id: Optional[int] = Field(
        default=None, description="Chain id (fetched from the node when unset)"
    )
    http_timeout: float = Field(default=30.0, description="HTTP timeout for node requests")

    # ======================
    # Transactions
    # ======================
    max_gas_amount: int = Field(default=100_000, description="Max gas units per transaction")
    gas_unit_price: Optional[int] = Field(
        default=None, description="Gas unit price in octas (estimated when unset)"
    )
    transaction_ttl_seconds: int = Field(
        default=600, description="Seconds until a signed transaction expires"
    )
    finality_timeout_seconds: float = Field(
        default=60.0, description="Maximum time to wait for a transaction to settle"
    )
    finality_poll_interval: float = Field(
        default=1.0, description="Delay between finality polls"
    )
    wallet_lock_timeout: float = Field(
        default=120.0, description="Maximum time to wait for a busy wallet"
    )

    # ======================
    # DEX Configuration
    # ======================
    default_slippage_bps: int = Field(
        default=50, description="Default slippage tolerance in basis points (0.5%)"
    )
    liquidswap_version: str = Field(
        default="0.5", description="Liquidswap deployment (0 or 0.5)"
    )
    liquidswap_module_address: Optional[str] = Field(
        default=None, description="Override the deployment's module account"
    )
    liquidswap_resource_address: Optional[str] = Field(
        default=None, description="Override the deployment's resource account holding the pools"
    )
    liquidswap_curve: str = Field(default="Uncorrelated", description="Pool curve type")

    # ======================
    # Native coin
    # ======================
    native_coin: str = Field(default="0x1::aptos_coin::AptosCoin", description="Native coin type")
    native_decimals: int = Field(default=8, description="Native coin decimals")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "database_url": self._redact_url(self.database_url),
            "telegram_bot_token": "***" if self.telegram_bot_token else "(not set)",
            "vault_secret": "***" if self.vault_secret else "(not set)",
            "aptos": {
                "node": self.aptos_node_url,
                "indexer": self.aptos_indexer_url,
                "chain_id": self.aptos_chain_id,
            },
            "transactions": {
                "max_gas_amount": self.max_gas_amount,
                "gas_unit_price": self.gas_unit_price,
                "finality_timeout_seconds": self.finality_timeout_seconds,
            },
            "dex": {
                "liquidswap_version": self.liquidswap_version,
                "liquidswap_module": self.liquidswap_module_address or "(version default)",
                "curve": self.liquidswap_curve,
                "slippage_bps": self.default_slippage_bps,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
