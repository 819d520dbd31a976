"""Operator command line.

Usage:
    swapvault init-db
    swapvault create-wallet <telegram_id> [--label NAME]
    swapvault list-wallets <telegram_id>
    swapvault set-default <telegram_id> <wallet_id>
    swapvault rename <telegram_id> <wallet_id> <label>
    swapvault delete <telegram_id> <wallet_id>
    swapvault positions <address>
    swapvault balance <address> [<coin_type>]
    swapvault cache-coin <coin_type>
    swapvault buy <telegram_id> <coin_id> <amount> [--wallet ID]
    swapvault sell <telegram_id> <coin_id> <percentage> [--wallet ID]
"""

import argparse
import asyncio
import logging
import sys

from swapvault.chain.client import create_aptos_client
from swapvault.chain.gateway import ChainGateway
from swapvault.chain.pipeline import TransactionPipeline
from swapvault.config import get_settings
from swapvault.crypto import get_vault
from swapvault.errors import SwapVaultError
from swapvault.ledger.database import close_db, get_db, init_db
from swapvault.ledger.repository import LedgerRepository
from swapvault.routing.liquidswap import create_liquidswap_quoter
from swapvault.services.coin_service import CoinService
from swapvault.services.wallet_service import WalletService
from swapvault.swap.amounts import from_base_units, to_base_units
from swapvault.swap.orchestrator import SwapOrchestrator

logger = logging.getLogger(__name__)


async def cmd_init_db(args) -> int:
    await init_db()
    print("Database initialized")
    return 0


async def _user_id(repo: LedgerRepository, telegram_id: int, create: bool = False) -> int:
    if create:
        return (await repo.get_or_create_user(telegram_id)).id
    user = await repo.get_user_by_telegram_id(telegram_id)
    if user is None:
        raise SwapVaultError(f"User with telegram_id {telegram_id} not found")
    return user.id


async def cmd_create_wallet(args) -> int:
    async with get_db() as session:
        repo = LedgerRepository(session)
        user_id = await _user_id(repo, args.telegram_id, create=True)
        wallet, private_key = await WalletService(repo).create_wallet(user_id, label=args.label)

    print(f"Wallet {wallet.id}: {wallet.address}{' (default)' if wallet.is_default else ''}")
    print(f"Private key (shown once, store it safely): {private_key}")
    return 0


async def cmd_list_wallets(args) -> int:
    async with get_db() as session:
        repo = LedgerRepository(session)
        user_id = await _user_id(repo, args.telegram_id)
        wallets = await WalletService(repo).list_wallets(user_id)

    if not wallets:
        print("No wallets")
    for wallet in wallets:
        marker = "*" if wallet.is_default else " "
        print(f"{marker} {wallet.id:>5}  {wallet.address}  {wallet.label or ''}")
    return 0


async def cmd_set_default(args) -> int:
    async with get_db() as session:
        repo = LedgerRepository(session)
        user_id = await _user_id(repo, args.telegram_id)
        wallet = await WalletService(repo).set_default_wallet(args.wallet_id, user_id)

    if wallet is None:
        print(f"Wallet {args.wallet_id} not found")
        return 1
    print(f"Wallet {wallet.id} is now the default")
    return 0


async def cmd_rename(args) -> int:
    async with get_db() as session:
        repo = LedgerRepository(session)
        user_id = await _user_id(repo, args.telegram_id)
        wallet = await WalletService(repo).rename_wallet(args.wallet_id, user_id, args.label)

    if wallet is None:
        print(f"Wallet {args.wallet_id} not found")
        return 1
    print(f"Wallet {wallet.id} renamed to {wallet.label}")
    return 0


async def cmd_delete(args) -> int:
    async with get_db() as session:
        repo = LedgerRepository(session)
        user_id = await _user_id(repo, args.telegram_id)
        deleted = await WalletService(repo).delete_wallet_by_id(args.wallet_id, user_id)

    print(f"Wallet {args.wallet_id} deleted" if deleted else f"Wallet {args.wallet_id} not found")
    return 0 if deleted else 1


def _gateway(client=None) -> ChainGateway:
    return ChainGateway(client or create_aptos_client(), get_settings().native_coin)


async def cmd_positions(args) -> int:
    gateway = _gateway()
    positions = await gateway.list_positions(args.address)
    if not positions:
        print("No positions")
    for p in positions:
        print(f"{p.symbol:<10} {p.display_amount:>24}  {p.asset_type}")
    return 0


async def cmd_balance(args) -> int:
    gateway = _gateway()
    if args.coin_type is None:
        balance = await gateway.get_native_balance(args.address)
    else:
        balance = await gateway.get_balance(args.address, args.coin_type)
    print(balance)
    return 0


async def cmd_cache_coin(args) -> int:
    gateway = _gateway()
    async with get_db() as session:
        coin = await CoinService(LedgerRepository(session), gateway).get_or_create_cached_coin(
            args.coin_type
        )
    print(f"Coin {coin.id}: {coin.symbol} ({coin.decimals} decimals)")
    return 0


def _orchestrator() -> SwapOrchestrator:
    client = create_aptos_client()
    return SwapOrchestrator(
        gateway=_gateway(client),
        pipeline=TransactionPipeline(client, get_vault()),
        quoter=create_liquidswap_quoter(client),
    )


def _print_outcome(outcome, decimals: int) -> int:
    if outcome.registration_hash:
        print(f"Registered coin: {outcome.registration_hash}")
    if not outcome.success:
        print(f"Swap failed on-chain: {outcome.failure_reason} ({outcome.tx_hash})")
        return 1
    print(f"Swap settled: {outcome.tx_hash}")
    print(f"Received: {from_base_units(outcome.amount_out, decimals)}")
    if outcome.warning:
        print(f"Warning: {outcome.warning}")
    return 0


async def cmd_buy(args) -> int:
    # Reject malformed amounts before touching the database
    to_base_units(args.amount, get_settings().native_decimals)
    async with get_db() as session:
        repo = LedgerRepository(session)
        user_id = await _user_id(repo, args.telegram_id)
        coin = await repo.get_coin_by_id(args.coin_id)
    outcome = await _orchestrator().buy(user_id, args.wallet, args.coin_id, args.amount)
    return _print_outcome(outcome, coin.decimals if coin else 0)


async def cmd_sell(args) -> int:
    async with get_db() as session:
        user_id = await _user_id(LedgerRepository(session), args.telegram_id)
    outcome = await _orchestrator().sell(user_id, args.wallet, args.coin_id, args.percentage)
    return _print_outcome(outcome, get_settings().native_decimals)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swapvault", description="Custodial wallet operations")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables").set_defaults(func=cmd_init_db)

    p = sub.add_parser("create-wallet", help="Generate a wallet for a user")
    p.add_argument("telegram_id", type=int)
    p.add_argument("--label")
    p.set_defaults(func=cmd_create_wallet)

    p = sub.add_parser("list-wallets", help="List a user's wallets")
    p.add_argument("telegram_id", type=int)
    p.set_defaults(func=cmd_list_wallets)

    p = sub.add_parser("set-default", help="Change a user's default wallet")
    p.add_argument("telegram_id", type=int)
    p.add_argument("wallet_id", type=int)
    p.set_defaults(func=cmd_set_default)

    p = sub.add_parser("rename", help="Label a wallet")
    p.add_argument("telegram_id", type=int)
    p.add_argument("wallet_id", type=int)
    p.add_argument("label")
    p.set_defaults(func=cmd_rename)

    p = sub.add_parser("delete", help="Permanently delete a wallet")
    p.add_argument("telegram_id", type=int)
    p.add_argument("wallet_id", type=int)
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("positions", help="List nonzero holdings of an address")
    p.add_argument("address")
    p.set_defaults(func=cmd_positions)

    p = sub.add_parser("balance", help="Balance of one coin in base units")
    p.add_argument("address")
    p.add_argument("coin_type", nargs="?", help="Defaults to the native coin")
    p.set_defaults(func=cmd_balance)

    p = sub.add_parser("cache-coin", help="Fetch and cache coin metadata")
    p.add_argument("coin_type")
    p.set_defaults(func=cmd_cache_coin)

    p = sub.add_parser("buy", help="Buy a coin with the native coin")
    p.add_argument("telegram_id", type=int)
    p.add_argument("coin_id", type=int)
    p.add_argument("amount")
    p.add_argument("--wallet", type=int, default=None)
    p.set_defaults(func=cmd_buy)

    p = sub.add_parser("sell", help="Sell a percentage of a coin position")
    p.add_argument("telegram_id", type=int)
    p.add_argument("coin_id", type=int)
    p.add_argument("percentage", type=int)
    p.add_argument("--wallet", type=int, default=None)
    p.set_defaults(func=cmd_sell)

    return parser


async def _run(args) -> int:
    try:
        return await args.func(args)
    finally:
        await close_db()


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return asyncio.run(_run(args))
    except SwapVaultError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
