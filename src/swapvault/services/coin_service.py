"""Coin metadata cache backed by the database and the indexer."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from swapvault.chain.gateway import ChainGateway
from swapvault.errors import NotFoundError, StorageError, ValidationError
from swapvault.ledger.models import Coin
from swapvault.ledger.repository import LedgerRepository

logger = logging.getLogger(__name__)


class CoinService:
    """Resolves coin types to cached ``Coin`` rows."""

    def __init__(self, repo: LedgerRepository, gateway: ChainGateway):
        self.repo = repo
        self.gateway = gateway

    async def get_or_create_cached_coin(self, address: str) -> Coin:
        """Return the cached coin, fetching and storing its metadata on first use.

        A cached coin is returned without any write.

        Raises:
            ValidationError: Address is not a Move type
            NotFoundError: The indexer has no metadata for the coin
        """
        address = address.strip()
        if address.count("::") < 2:
            raise ValidationError(f"Not a coin type address: {address}")

        try:
            coin = await self.repo.get_coin_by_address(address)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load coin: {e}") from e
        if coin is not None:
            return coin

        metadata = await self.gateway.get_coin_metadata([address])
        match = next((m for m in metadata if m.asset_type == address), None)
        if match is None:
            raise NotFoundError(f"No on-chain metadata for {address}")

        try:
            coin = await self.repo.create_coin(
                address=address,
                symbol=match.symbol,
                decimals=match.decimals,
                name=match.name,
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to cache coin: {e}") from e

        logger.info(f"Cached coin {match.symbol} ({address}) as id {coin.id}")
        return coin

    async def get_cached_coin_by_id(self, coin_id: int) -> Optional[Coin]:
        """Get a cached coin by ID, or None."""
        try:
            return await self.repo.get_coin_by_id(coin_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load coin: {e}") from e
