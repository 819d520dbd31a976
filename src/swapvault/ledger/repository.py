"""Repository for user, wallet and coin persistence."""

import logging
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from swapvault.ledger.models import Coin, User, Wallet

logger = logging.getLogger(__name__)


class LedgerRepository:
    """Repository for all database operations.

    Methods flush but never commit; the unit of work (see ``get_db``)
    commits once, so multi-statement changes land atomically.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # User operations
    async def get_or_create_user(self, telegram_id: int, username: Optional[str] = None) -> User:
        """Get existing user or create a new one."""
        user = await self.get_user_by_telegram_id(telegram_id)

        if user is None:
            user = User(telegram_id=telegram_id, username=username or "unknown")
            self.session.add(user)
            await self.session.flush()

        return user

    async def get_user_by_telegram_id(self, telegram_id: int) -> Optional[User]:
        """Get user by Telegram ID."""
        stmt = select(User).where(User.telegram_id == telegram_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        """Get user by internal ID."""
        stmt = select(User).where(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # Wallet operations
    async def create_wallet(
        self,
        user_id: int,
        address: str,
        encrypted_private_key: str,
        is_default: bool,
        label: Optional[str] = None,
    ) -> Wallet:
        """Insert a wallet row."""
        wallet = Wallet(
            user_id=user_id,
            address=address,
            encrypted_private_key=encrypted_private_key,
            label=label,
            is_default=is_default,
        )
        self.session.add(wallet)
        await self.session.flush()
        return wallet

    async def count_wallets(self, user_id: int) -> int:
        """Number of wallets owned by a user."""
        stmt = select(func.count()).select_from(Wallet).where(Wallet.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def get_wallet_by_id(self, wallet_id: int, user_id: int) -> Optional[Wallet]:
        """Get a wallet, only if it belongs to the user."""
        stmt = select(Wallet).where(Wallet.id == wallet_id, Wallet.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_default_wallet(self, user_id: int) -> Optional[Wallet]:
        """Get the user's default wallet."""
        stmt = select(Wallet).where(Wallet.user_id == user_id, Wallet.is_default.is_(True))
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_wallets(self, user_id: int) -> list[Wallet]:
        """Get all wallets for a user, oldest first."""
        stmt = (
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .order_by(Wallet.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def set_default_wallet(self, wallet_id: int, user_id: int) -> Optional[Wallet]:
        """Make one wallet the user's only default.

        Clearing the other wallets and setting the target is a single UPDATE,
        so no reader ever sees zero or two defaults.

        Returns:
            The updated wallet, or None if it does not belong to the user
        """
        wallet = await self.get_wallet_by_id(wallet_id, user_id)
        if wallet is None:
            return None

        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(is_default=case((Wallet.id == wallet_id, True), else_=False))
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.flush()

        # Reload rows already in the identity map
        await self.list_wallets(user_id)
        return wallet

    async def rename_wallet(self, wallet_id: int, user_id: int, label: str) -> Optional[Wallet]:
        """Set a wallet label."""
        wallet = await self.get_wallet_by_id(wallet_id, user_id)
        if wallet is None:
            return None

        wallet.label = label
        await self.session.flush()
        return wallet

    async def delete_wallet(self, wallet_id: int, user_id: int) -> bool:
        """Hard-delete a wallet.

        If the default wallet is deleted, the oldest remaining wallet becomes
        the default in the same transaction.

        Returns:
            True if a wallet was deleted
        """
        wallet = await self.get_wallet_by_id(wallet_id, user_id)
        if wallet is None:
            return False

        was_default = wallet.is_default
        await self.session.delete(wallet)
        await self.session.flush()

        if was_default:
            remaining = await self.list_wallets(user_id)
            if remaining:
                remaining[0].is_default = True
                await self.session.flush()
                logger.info(
                    f"Promoted wallet {remaining[0].id} to default for user {user_id}"
                )

        return True

    # Coin operations
    async def get_coin_by_address(self, address: str) -> Optional[Coin]:
        """Get a cached coin by its type address."""
        stmt = select(Coin).where(Coin.address == address)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_coin_by_id(self, coin_id: int) -> Optional[Coin]:
        """Get a cached coin by ID."""
        stmt = select(Coin).where(Coin.id == coin_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_coin(
        self,
        address: str,
        symbol: str,
        decimals: int,
        name: Optional[str] = None,
    ) -> Coin:
        """Insert a coin, or return the row a concurrent writer inserted first."""
        coin = Coin(address=address, symbol=symbol, decimals=decimals, name=name)
        try:
            async with self.session.begin_nested():
                self.session.add(coin)
                await self.session.flush()
        except IntegrityError:
            logger.info(f"Coin {address} inserted concurrently, using existing row")
            existing = await self.get_coin_by_address(address)
            if existing is None:
                raise
            return existing

        return coin
