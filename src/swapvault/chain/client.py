"""Aptos fullnode REST and indexer GraphQL client.

Uses httpx directly against the node's /v1 API:
- view functions and account resources (reads)
- BCS transaction submission and finality polling (writes)
"""

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

BCS_SIGNED_TRANSACTION = "application/x.aptos.signed_transaction+bcs"


class AptosApiError(Exception):
    """Node or indexer answered with an error status."""

    def __init__(self, status_code: int, message: str, error_code: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.error_code = error_code
        super().__init__(f"Aptos API error {status_code}: {message}")

    @property
    def is_move_abort(self) -> bool:
        """Whether the VM aborted the call (as opposed to rejecting the request)."""
        return self.error_code == "vm_error" or "abort" in str(self.message).lower()


class TransactionWaitTimeout(Exception):
    """Transaction did not settle within the allowed time."""

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"Transaction {tx_hash} not settled after {timeout}s")


class AptosClient:
    """Thin async client for an Aptos fullnode and its indexer.

    Args:
        node_url: Fullnode REST URL including the /v1 prefix
        indexer_url: Indexer GraphQL endpoint
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
        chain_id: Known chain id; looked up from the node when None
    """

    def __init__(
        self,
        node_url: str,
        indexer_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        chain_id: Optional[int] = None,
    ):
        self.node_url = node_url.rstrip("/")
        self.indexer_url = indexer_url
        self.timeout = timeout
        self.transport = transport
        self._chain_id = chain_id

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        message = response.text
        error_code = None
        try:
            body = response.json()
            message = body.get("message", message)
            error_code = body.get("error_code")
        except ValueError:
            pass
        raise AptosApiError(response.status_code, message, error_code)

    async def _get(self, path: str, params: Optional[dict] = None) -> Any:
        async with self._client() as client:
            response = await client.get(f"{self.node_url}{path}", params=params)
        self._raise_for_status(response)
        return response.json()

    async def _post(self, path: str, json: Any) -> Any:
        async with self._client() as client:
            response = await client.post(f"{self.node_url}{path}", json=json)
        self._raise_for_status(response)
        return response.json()

    # Reads
    async def ledger_info(self) -> dict:
        """Get ledger info (chain id, versions)."""
        return await self._get("/")

    async def chain_id(self) -> int:
        """Chain id, cached after the first lookup."""
        if self._chain_id is None:
            info = await self.ledger_info()
            self._chain_id = int(info["chain_id"])
        return self._chain_id

    async def account_sequence_number(self, address: str) -> int:
        """Next sequence number for an account."""
        data = await self._get(f"/accounts/{address}")
        return int(data["sequence_number"])

    async def estimate_gas_price(self) -> int:
        """Current gas unit price estimate in octas."""
        data = await self._get("/estimate_gas_price")
        return int(data["gas_estimate"])

    async def account_resource(self, address: str, resource_type: str) -> Optional[dict]:
        """Get an account resource, or None if it does not exist."""
        try:
            return await self._get(f"/accounts/{address}/resource/{resource_type}")
        except AptosApiError as e:
            if e.status_code == 404:
                return None
            raise

    async def view(
        self,
        function: str,
        type_arguments: list[str],
        arguments: list[Any],
    ) -> list[Any]:
        """Execute a view function and return its values."""
        return await self._post(
            "/view",
            {
                "function": function,
                "type_arguments": type_arguments,
                "arguments": arguments,
            },
        )

    async def query_indexer(self, query: str, variables: Optional[dict] = None) -> dict:
        """Run a GraphQL query against the indexer and return its data."""
        async with self._client() as client:
            response = await client.post(
                self.indexer_url,
                json={"query": query, "variables": variables or {}},
            )
        self._raise_for_status(response)

        body = response.json()
        if body.get("errors"):
            raise AptosApiError(response.status_code, str(body["errors"]))
        return body.get("data") or {}

    # Writes
    async def submit_bcs_transaction(self, signed_transaction: bytes) -> str:
        """Submit a BCS-encoded signed transaction and return its hash."""
        async with self._client() as client:
            response = await client.post(
                f"{self.node_url}/transactions",
                content=signed_transaction,
                headers={"Content-Type": BCS_SIGNED_TRANSACTION},
            )
        self._raise_for_status(response)
        return response.json()["hash"]

    async def transaction_by_hash(self, tx_hash: str) -> Optional[dict]:
        """Get a transaction by hash, or None if the node does not know it yet."""
        try:
            return await self._get(f"/transactions/by_hash/{tx_hash}")
        except AptosApiError as e:
            if e.status_code == 404:
                return None
            raise

    async def wait_for_transaction(
        self,
        tx_hash: str,
        timeout: float = 60.0,
        poll_interval: float = 1.0,
    ) -> dict:
        """Poll until the transaction is committed (successfully or not).

        Raises:
            TransactionWaitTimeout: If still pending after ``timeout`` seconds
        """
        deadline = time.monotonic() + timeout

        while True:
            data = await self.transaction_by_hash(tx_hash)
            if data is not None and data.get("type") != "pending_transaction":
                return data

            if time.monotonic() >= deadline:
                raise TransactionWaitTimeout(tx_hash, timeout)

            logger.debug(f"Transaction {tx_hash} pending, polling again")
            await asyncio.sleep(poll_interval)


def create_aptos_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> AptosClient:
    """Create a client from settings."""
    from swapvault.config import get_settings

    settings = get_settings()
    client = AptosClient(
        node_url=settings.aptos_node_url,
        indexer_url=settings.aptos_indexer_url,
        timeout=settings.http_timeout,
        transport=transport,
        chain_id=settings.aptos_chain_id,
    )
    return client
