"""Tests for per-wallet transaction serialization."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from aptos_sdk.account import Account

from swapvault.chain.payloads import register_coin_payload
from swapvault.chain.pipeline import TransactionPipeline
from swapvault.ledger.models import Wallet
from swapvault.utils.locks import (
    LockTimeoutError,
    WalletLock,
    clear_wallet_locks,
    get_wallet_lock,
    is_wallet_busy,
)


class TestWalletLocks:
    """Tests for the concurrency locks module."""

    @pytest.mark.asyncio
    async def test_get_wallet_lock_reuses_lock(self):
        """Test that get_wallet_lock returns one lock per wallet."""
        lock1 = await get_wallet_lock(1)
        lock2 = await get_wallet_lock(1)

        assert lock1 is lock2

    @pytest.mark.asyncio
    async def test_different_wallets_get_different_locks(self):
        lock1 = await get_wallet_lock(1)
        lock2 = await get_wallet_lock(2)

        assert lock1 is not lock2

    @pytest.mark.asyncio
    async def test_wallet_lock_context_manager(self):
        """Test WalletLock as context manager."""
        async with WalletLock(100, operation="test"):
            lock = await get_wallet_lock(100)
            assert lock.locked()

        # Lock should be released after context
        assert not lock.locked()

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        with pytest.raises(RuntimeError):
            async with WalletLock(101):
                raise RuntimeError("boom")

        assert not (await get_wallet_lock(101)).locked()

    @pytest.mark.asyncio
    async def test_wallet_lock_prevents_concurrent_access(self):
        """Test that lock prevents concurrent access."""
        results = []

        async def task(name, delay):
            async with WalletLock(200, timeout=10.0, operation=f"task_{name}"):
                results.append(f"{name}_start")
                await asyncio.sleep(delay)
                results.append(f"{name}_end")

        await asyncio.gather(task("A", 0.05), task("B", 0.05))

        assert results in [
            ["A_start", "A_end", "B_start", "B_end"],
            ["B_start", "B_end", "A_start", "A_end"],
        ]

    @pytest.mark.asyncio
    async def test_different_wallets_run_concurrently(self):
        results = []

        async def task(wallet_id):
            async with WalletLock(wallet_id, timeout=10.0):
                results.append(f"{wallet_id}_start")
                await asyncio.sleep(0.05)
                results.append(f"{wallet_id}_end")

        await asyncio.gather(task(1), task(2))

        assert results[:2] == ["1_start", "2_start"]

    @pytest.mark.asyncio
    async def test_lock_timeout_raises_error(self):
        """Test that lock timeout raises LockTimeoutError."""

        async def hold_lock():
            async with WalletLock(300, timeout=5.0):
                await asyncio.sleep(0.5)

        hold_task = asyncio.create_task(hold_lock())
        await asyncio.sleep(0.05)  # Let hold_lock acquire

        with pytest.raises(LockTimeoutError):
            async with WalletLock(300, timeout=0.1):
                pass

        await hold_task

    @pytest.mark.asyncio
    async def test_is_wallet_busy(self):
        assert is_wallet_busy(400) is False

        async with WalletLock(400):
            assert is_wallet_busy(400) is True
            assert is_wallet_busy(401) is False

        assert is_wallet_busy(400) is False

    @pytest.mark.asyncio
    async def test_clear_wallet_locks(self):
        old = await get_wallet_lock(1)

        clear_wallet_locks()

        assert await get_wallet_lock(1) is not old


class TestPipelineSerialization:
    """Submissions from one wallet never overlap."""

    @pytest.mark.asyncio
    async def test_same_wallet_submissions_are_sequential(self, vault, settings):
        account = Account.generate()
        wallet = Wallet(
            id=7,
            user_id=1,
            address=str(account.address()),
            encrypted_private_key=vault.encrypt(account.private_key.hex()),
        )
        timeline = []
        sequence = iter(range(100))

        client = AsyncMock()
        client.chain_id.return_value = 2
        client.estimate_gas_price.return_value = 100

        async def next_sequence(address):
            timeline.append("build")
            return next(sequence)

        async def submit(signed):
            timeline.append("submit")
            return "0x" + "00" * 32

        async def wait(tx_hash, timeout, poll_interval):
            await asyncio.sleep(0.05)
            timeline.append("final")
            return {"hash": tx_hash, "success": True, "type": "user_transaction", "events": []}

        client.account_sequence_number.side_effect = next_sequence
        client.submit_bcs_transaction.side_effect = submit
        client.wait_for_transaction.side_effect = wait

        pipeline = TransactionPipeline(client, vault, settings)
        payload = register_coin_payload("0xcafe::token::TKN")

        await asyncio.gather(
            pipeline.sign_and_broadcast(wallet, payload),
            pipeline.sign_and_broadcast(wallet, payload),
        )

        assert timeline == ["build", "submit", "final", "build", "submit", "final"]

    @pytest.mark.asyncio
    async def test_caller_holding_the_lock_times_out(self, vault, settings):
        account = Account.generate()
        wallet = Wallet(
            id=8,
            user_id=1,
            address=str(account.address()),
            encrypted_private_key=vault.encrypt(account.private_key.hex()),
        )
        client = AsyncMock()
        pipeline = TransactionPipeline(
            client, vault, settings.model_copy(update={"wallet_lock_timeout": 0.05})
        )

        async with WalletLock(wallet.id):
            with pytest.raises(LockTimeoutError):
                await pipeline.sign_and_broadcast(wallet, register_coin_payload("0xcafe::token::TKN"))

        client.submit_bcs_transaction.assert_not_awaited()
