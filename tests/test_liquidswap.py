"""Tests for Liquidswap pool pricing."""

from unittest.mock import patch

import httpx
import pytest

from swapvault.chain.client import AptosClient
from swapvault.config import Settings
from swapvault.errors import ChainQueryError
from swapvault.routing.liquidswap import (
    DEPLOYMENTS,
    LiquidswapQuoter,
    create_liquidswap_quoter,
    get_amount_out,
    get_deployment,
)

V0 = DEPLOYMENTS["0"]
V05 = DEPLOYMENTS["0.5"]
APT = "0x1::aptos_coin::AptosCoin"
TKN = "0xcafe::token::TKN"


def pool_path(coin_x: str, coin_y: str, deployment=V05) -> str:
    module = deployment.module_address
    return (
        f"/v1/accounts/{deployment.resource_address}/resource/{module}::liquidity_pool::LiquidityPool"
        f"<{coin_x},{coin_y},{module}::curves::Uncorrelated>"
    )


def pool_resource(reserve_x: int, reserve_y: int, fee: int = 30) -> dict:
    return {
        "type": "pool",
        "data": {
            "coin_x_reserve": {"value": str(reserve_x)},
            "coin_y_reserve": {"value": str(reserve_y)},
            "fee": str(fee),
            "dao_fee": "33",
        },
    }


def make_quoter(pools: dict, deployment=V05) -> LiquidswapQuoter:
    def handler(request: httpx.Request) -> httpx.Response:
        resource = pools.get(request.url.path)
        if resource is None:
            return httpx.Response(404, json={"message": "Resource not found"})
        return httpx.Response(200, json=resource)

    client = AptosClient(
        "https://node.test/v1", "https://indexer.test/v1/graphql",
        transport=httpx.MockTransport(handler),
    )
    return LiquidswapQuoter(client, deployment)


class TestAmountOut:
    """Tests for the constant-product formula."""

    def test_known_value(self):
        # 1000 in against 1M/2M reserves with a 0.3% fee
        assert get_amount_out(1000, 1_000_000, 2_000_000, 30) == 1992

    def test_zero_fee(self):
        assert get_amount_out(100, 1000, 1000, 0) == 90

    @pytest.mark.parametrize("args", [(0, 10, 10, 30), (10, 0, 10, 30), (10, 10, 0, 30)])
    def test_degenerate_inputs(self, args):
        assert get_amount_out(*args) == 0

    def test_output_never_exceeds_reserve(self):
        assert get_amount_out(10**18, 1000, 5000, 30) < 5000


class TestLiquidswapQuoter:
    """Tests for LiquidswapQuoter."""

    @pytest.mark.asyncio
    async def test_quote_from_x_side(self):
        quoter = make_quoter({pool_path(APT, TKN): pool_resource(1_000_000, 2_000_000)})

        quote = await quoter.get_quote(APT, TKN, 1000)

        assert quote.provider == "Liquidswap"
        assert quote.amount_out == 1992
        assert quote.reserve_in == 1_000_000
        assert quote.reserve_out == 2_000_000
        assert quote.fee_bps == 30

    @pytest.mark.asyncio
    async def test_quote_from_y_side_uses_reversed_reserves(self):
        quoter = make_quoter({pool_path(APT, TKN): pool_resource(1_000_000, 2_000_000)})

        quote = await quoter.get_quote(TKN, APT, 1000)

        assert quote.reserve_in == 2_000_000
        assert quote.reserve_out == 1_000_000
        assert quote.amount_out == get_amount_out(1000, 2_000_000, 1_000_000, 30)

    @pytest.mark.asyncio
    async def test_no_pool(self):
        assert await make_quoter({}).get_quote(APT, TKN, 1000) is None

    @pytest.mark.asyncio
    async def test_empty_pool(self):
        quoter = make_quoter({pool_path(APT, TKN): pool_resource(0, 0)})
        assert await quoter.get_quote(APT, TKN, 1000) is None

    @pytest.mark.asyncio
    async def test_malformed_pool(self):
        quoter = make_quoter({pool_path(APT, TKN): {"type": "pool", "data": {"fee": "30"}}})
        assert await quoter.get_quote(APT, TKN, 1000) is None

    @pytest.mark.asyncio
    async def test_same_token_or_zero_amount(self):
        quoter = make_quoter({pool_path(APT, TKN): pool_resource(1000, 1000)})
        assert await quoter.get_quote(APT, APT, 1000) is None
        assert await quoter.get_quote(APT, TKN, 0) is None

    @pytest.mark.asyncio
    async def test_node_failure_raises(self):
        def handler(request):
            return httpx.Response(500, json={"message": "internal"})

        client = AptosClient(
            "https://node.test/v1", "https://indexer.test/v1/graphql",
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(ChainQueryError):
            await LiquidswapQuoter(client).get_quote(APT, TKN, 1000)

    @pytest.mark.parametrize(
        "deployment, scripts_module",
        [(V05, "scripts"), (V0, "scripts_v2")],
    )
    def test_swap_payload(self, deployment, scripts_module):
        payload = make_quoter({}, deployment).build_swap_payload(APT, TKN, 1000, 985)

        module = deployment.module_address
        assert payload.function == f"{module}::{scripts_module}::swap"
        assert payload.type_arguments == (APT, TKN, f"{module}::curves::Uncorrelated")
        assert payload.arguments == (1000, 985)
        assert payload.argument_types == ("u64", "u64")

    @pytest.mark.asyncio
    async def test_v0_reads_v0_pools(self):
        pools = {pool_path(APT, TKN, V0): pool_resource(1_000_000, 2_000_000)}

        assert await make_quoter(pools, V05).get_quote(APT, TKN, 1000) is None
        assert (await make_quoter(pools, V0).get_quote(APT, TKN, 1000)).amount_out == 1992

    def test_unsupported_curve(self):
        with pytest.raises(ValueError):
            LiquidswapQuoter(None, V05, curve="Stable")

    def test_price_impact(self):
        from swapvault.routing.base import PoolQuote

        quote = PoolQuote("Liquidswap", APT, TKN, 10, 50, 30, 1000, 1000)
        assert str(quote.price_impact) == "0.05"


class TestDeployments:
    """Tests for selecting a Liquidswap deployment."""

    def test_known_versions(self):
        assert get_deployment("0.5") == V05
        assert get_deployment("0").scripts_module == "scripts_v2"

    def test_account_overrides(self):
        deployment = get_deployment("0.5", module_address="0x42", resource_address="0x43")

        assert deployment.module_address == "0x42"
        assert deployment.resource_address == "0x43"
        assert deployment.scripts_module == "scripts"

    def test_unknown_version(self):
        with pytest.raises(ValueError, match="Unknown Liquidswap version"):
            get_deployment("1")

    def test_factory_uses_configured_version(self):
        settings = Settings(liquidswap_version="0")

        with patch("swapvault.config.get_settings", return_value=settings):
            quoter = create_liquidswap_quoter(client=None)

        assert quoter.deployment == V0
        assert quoter.build_swap_payload(APT, TKN, 1, 1).function.endswith("::scripts_v2::swap")
