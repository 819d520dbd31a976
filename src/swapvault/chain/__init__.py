"""Aptos chain access: reads, payloads and the transaction pipeline."""

from swapvault.chain.client import AptosApiError, AptosClient, create_aptos_client
from swapvault.chain.events import ChainEvent, OtherEvent, SwapEvent, parse_events
from swapvault.chain.gateway import ChainGateway, CoinMetadata, Position
from swapvault.chain.payloads import TransactionPayload, register_coin_payload
from swapvault.chain.pipeline import TransactionPipeline, TransactionResult, TransactionState

__all__ = [
    "AptosApiError",
    "AptosClient",
    "create_aptos_client",
    "ChainEvent",
    "OtherEvent",
    "SwapEvent",
    "parse_events",
    "ChainGateway",
    "CoinMetadata",
    "Position",
    "TransactionPayload",
    "register_coin_payload",
    "TransactionPipeline",
    "TransactionResult",
    "TransactionState",
]
