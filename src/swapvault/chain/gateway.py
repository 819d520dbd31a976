"""Stateless read operations against the chain.

Balances come from view functions, registration from account resources and
positions from the indexer.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import httpx

from swapvault.chain.client import AptosApiError, AptosClient
from swapvault.errors import ChainQueryError

logger = logging.getLogger(__name__)

POSITIONS_QUERY = """
query GetFungibleAssetBalances($address: String, $offset: Int) {
  current_fungible_asset_balances(
    where: {owner_address: {_eq: $address}},
    offset: $offset,
    limit: 100,
    order_by: {amount: desc}
  ) {
    asset_type
    amount
  }
}
"""

METADATA_QUERY = """
query GetFungibleAssetInfo($in: [String!], $offset: Int) {
  fungible_asset_metadata(
    where: {asset_type: {_in: $in}},
    offset: $offset
  ) {
    symbol
    name
    decimals
    asset_type
  }
}
"""


@dataclass(frozen=True)
class CoinMetadata:
    """On-chain description of a fungible asset."""

    asset_type: str
    symbol: str
    decimals: int
    name: Optional[str] = None


@dataclass(frozen=True)
class Position:
    """Nonzero holding of one asset."""

    asset_type: str
    amount: int  # base units
    name: Optional[str]
    symbol: str
    decimals: int

    @property
    def display_amount(self) -> Decimal:
        """Human-readable amount (display only)."""
        return Decimal(self.amount).scaleb(-self.decimals)


class ChainGateway:
    """Read-only chain queries."""

    def __init__(self, client: AptosClient, native_coin: str = "0x1::aptos_coin::AptosCoin"):
        self.client = client
        self.native_coin = native_coin

    async def get_balance(self, address: str, coin_address: str) -> int:
        """Balance of ``coin_address`` held by ``address`` in base units.

        An account without a store for the coin has balance 0; any other
        rejection (malformed address or coin type) is an error.

        Raises:
            ChainQueryError: Node unreachable or unexpected response
        """
        try:
            values = await self.client.view(
                "0x1::coin::balance", [coin_address], [address]
            )
            return int(values[0])
        except AptosApiError as e:
            if e.status_code == 400 and e.is_move_abort:
                # View aborted: no CoinStore for this coin
                logger.debug(f"No {coin_address} store for {address[:10]}...: {e}")
                return 0
            raise ChainQueryError(f"Balance query failed: {e}") from e
        except (httpx.HTTPError, LookupError, TypeError, ValueError) as e:
            raise ChainQueryError(f"Balance query failed: {e}") from e

    async def get_native_balance(self, address: str) -> int:
        """Balance of the native coin in base units."""
        return await self.get_balance(address, self.native_coin)

    async def get_balances(self, address: str, coin_addresses: list[str]) -> dict[str, int]:
        """Fetch several balances concurrently."""
        balances = await asyncio.gather(
            *(self.get_balance(address, coin) for coin in coin_addresses)
        )
        return dict(zip(coin_addresses, balances))

    async def is_coin_registered(self, address: str, coin_address: str) -> bool:
        """Whether the account has a CoinStore for the coin.

        Advisory only: any failure is reported as not registered.
        """
        try:
            resource = await self.client.account_resource(
                address, f"0x1::coin::CoinStore<{coin_address}>"
            )
            return resource is not None
        except Exception as e:
            logger.warning(f"Registration check failed for {coin_address}: {e}")
            return False

    async def get_coin_metadata(self, asset_types: list[str]) -> list[CoinMetadata]:
        """Resolve metadata for asset types via the indexer.

        Unknown asset types are simply absent from the result.
        """
        if not asset_types:
            return []

        try:
            data = await self.client.query_indexer(
                METADATA_QUERY, {"in": list(asset_types), "offset": 0}
            )
        except (AptosApiError, httpx.HTTPError) as e:
            raise ChainQueryError(f"Metadata query failed: {e}") from e

        metadata = []
        for row in data.get("fungible_asset_metadata") or []:
            try:
                metadata.append(
                    CoinMetadata(
                        asset_type=row["asset_type"],
                        symbol=row["symbol"],
                        decimals=int(row["decimals"]),
                        name=row.get("name"),
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed metadata row: {row}")
        return metadata

    async def list_positions(self, address: str) -> list[Position]:
        """All nonzero holdings of an address, largest first."""
        try:
            data = await self.client.query_indexer(
                POSITIONS_QUERY, {"address": address, "offset": 0}
            )
        except (AptosApiError, httpx.HTTPError) as e:
            raise ChainQueryError(f"Positions query failed: {e}") from e

        balances: list[tuple[str, int]] = []
        for row in data.get("current_fungible_asset_balances") or []:
            try:
                amount = int(row["amount"])
            except (KeyError, TypeError, ValueError):
                continue
            if amount > 0:
                balances.append((row["asset_type"], amount))

        if not balances:
            return []

        metadata = {
            m.asset_type: m
            for m in await self.get_coin_metadata([asset for asset, _ in balances])
        }

        positions = []
        for asset_type, amount in balances:
            meta = metadata.get(asset_type)
            if meta is None:
                logger.debug(f"No metadata for {asset_type}, skipping position")
                continue
            positions.append(
                Position(
                    asset_type=asset_type,
                    amount=amount,
                    name=meta.name,
                    symbol=meta.symbol,
                    decimals=meta.decimals,
                )
            )
        return positions
