"""Liquidswap (Pontem) pool pricing for Aptos.

Pools live as ``LiquidityPool<X, Y, Curve>`` resources under the Liquidswap
resource account. X/Y ordering is fixed per pool, so both orderings of a
pair are tried.

Two deployments exist: v0 (``scripts_v2``) and v0.5 (``scripts``), each
with its own module and resource accounts.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from swapvault.chain.client import AptosApiError, AptosClient
from swapvault.chain.payloads import TransactionPayload
from swapvault.errors import ChainQueryError
from swapvault.routing.base import BPS_SCALE, PoolQuote, PoolQuoter

logger = logging.getLogger(__name__)

SUPPORTED_CURVES = ("Uncorrelated",)


@dataclass(frozen=True)
class LiquidswapDeployment:
    """Accounts and script module of one Liquidswap release."""

    version: str
    module_address: str
    resource_address: str
    scripts_module: str


DEPLOYMENTS = {
    "0": LiquidswapDeployment(
        version="0",
        module_address="0x190d44266241744264b964a37b8f09863167a12d3e70cda39376cfb4e3561e12",
        resource_address="0x05a97986a9d031c4567e15b797be516910cfcb4156312482efc6a19c0a30c948",
        scripts_module="scripts_v2",
    ),
    "0.5": LiquidswapDeployment(
        version="0.5",
        module_address="0x163df34fccbf003ce219d3f1d9e70d140b60622cb9dd47599c25fb2f797ba6e",
        resource_address="0x61d2c22a6cb7831bee0f48363b0eec92369357aece0d1142062f7d5d85c7bef8",
        scripts_module="scripts",
    ),
}


def get_deployment(
    version: str,
    module_address: Optional[str] = None,
    resource_address: Optional[str] = None,
) -> LiquidswapDeployment:
    """Look up a deployment, optionally overriding its accounts.

    Raises:
        ValueError: Unknown version
    """
    deployment = DEPLOYMENTS.get(version)
    if deployment is None:
        raise ValueError(
            f"Unknown Liquidswap version {version!r} (expected one of {', '.join(DEPLOYMENTS)})"
        )
    return LiquidswapDeployment(
        version=deployment.version,
        module_address=module_address or deployment.module_address,
        resource_address=resource_address or deployment.resource_address,
        scripts_module=deployment.scripts_module,
    )


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int) -> int:
    """Constant-product output with the pool fee taken from the input."""
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    amount_in_after_fee = amount_in * (BPS_SCALE - fee_bps)
    new_reserve_in = reserve_in * BPS_SCALE + amount_in_after_fee
    return amount_in_after_fee * reserve_out // new_reserve_in


class LiquidswapQuoter(PoolQuoter):
    """Quotes and builds swaps against Liquidswap pools."""

    def __init__(
        self,
        client: AptosClient,
        deployment: LiquidswapDeployment = DEPLOYMENTS["0.5"],
        curve: str = "Uncorrelated",
    ):
        if curve not in SUPPORTED_CURVES:
            raise ValueError(f"Unsupported curve: {curve}")
        self.client = client
        self.deployment = deployment
        self.module_address = deployment.module_address
        self.resource_address = deployment.resource_address
        self.curve = curve

    @property
    def name(self) -> str:
        return "Liquidswap"

    @property
    def curve_type(self) -> str:
        return f"{self.module_address}::curves::{self.curve}"

    def _pool_type(self, coin_x: str, coin_y: str) -> str:
        return (
            f"{self.module_address}::liquidity_pool::LiquidityPool"
            f"<{coin_x},{coin_y},{self.curve_type}>"
        )

    async def _get_pool(self, coin_x: str, coin_y: str) -> Optional[dict]:
        try:
            resource = await self.client.account_resource(
                self.resource_address, self._pool_type(coin_x, coin_y)
            )
        except (AptosApiError, httpx.HTTPError) as e:
            raise ChainQueryError(f"Pool lookup failed: {e}") from e
        return resource.get("data") if resource else None

    async def get_quote(
        self,
        from_token: str,
        to_token: str,
        amount_in: int,
    ) -> Optional[PoolQuote]:
        """Price a swap from the pool's current reserves."""
        if amount_in <= 0 or from_token == to_token:
            return None

        pool = await self._get_pool(from_token, to_token)
        from_is_x = True
        if pool is None:
            pool = await self._get_pool(to_token, from_token)
            from_is_x = False
        if pool is None:
            logger.debug(f"No Liquidswap pool for {from_token} / {to_token}")
            return None

        try:
            reserve_x = int(pool["coin_x_reserve"]["value"])
            reserve_y = int(pool["coin_y_reserve"]["value"])
            fee_bps = int(pool["fee"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Unexpected pool layout for {from_token} / {to_token}: {pool}")
            return None

        reserve_in, reserve_out = (reserve_x, reserve_y) if from_is_x else (reserve_y, reserve_x)
        amount_out = get_amount_out(amount_in, reserve_in, reserve_out, fee_bps)
        if amount_out <= 0:
            return None

        logger.info(
            f"Liquidswap quote: {amount_in} {from_token} -> {amount_out} {to_token} "
            f"(fee {fee_bps}bps)"
        )
        return PoolQuote(
            provider=self.name,
            from_token=from_token,
            to_token=to_token,
            amount_in=amount_in,
            amount_out=amount_out,
            fee_bps=fee_bps,
            reserve_in=reserve_in,
            reserve_out=reserve_out,
        )

    def build_swap_payload(
        self,
        from_token: str,
        to_token: str,
        amount_in: int,
        min_amount_out: int,
    ) -> TransactionPayload:
        """``<scripts module>::swap<From, To, Curve>(amount_in, min_amount_out)``."""
        return TransactionPayload(
            function=f"{self.module_address}::{self.deployment.scripts_module}::swap",
            type_arguments=(from_token, to_token, self.curve_type),
            arguments=(amount_in, min_amount_out),
        )


def create_liquidswap_quoter(client: AptosClient) -> LiquidswapQuoter:
    """Create a quoter for the configured deployment."""
    from swapvault.config import get_settings

    settings = get_settings()
    deployment = get_deployment(
        settings.liquidswap_version,
        module_address=settings.liquidswap_module_address,
        resource_address=settings.liquidswap_resource_address,
    )
    logger.info(f"Using Liquidswap v{deployment.version} at {deployment.module_address[:10]}...")
    return LiquidswapQuoter(client=client, deployment=deployment, curve=settings.liquidswap_curve)
