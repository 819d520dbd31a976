"""Custodial wallet management.

SECURITY PRINCIPLES:
1. Private keys are encrypted before they reach the database
2. The plaintext key is returned exactly once, at creation
3. Every lookup is scoped to the owning user
4. Keys and ciphertexts are never logged
"""

import logging
from typing import Optional

from aptos_sdk.account import Account
from sqlalchemy.exc import SQLAlchemyError

from swapvault.crypto import KeyVault, get_vault
from swapvault.errors import StorageError, ValidationError
from swapvault.ledger.models import Wallet
from swapvault.ledger.repository import LedgerRepository

logger = logging.getLogger(__name__)

MAX_LABEL_LENGTH = 100


def _short(address: str) -> str:
    return address[:10] + "..." if len(address) > 10 else address


class WalletService:
    """Creates and manages users' custodial wallets."""

    def __init__(self, repo: LedgerRepository, vault: Optional[KeyVault] = None):
        self.repo = repo
        self.vault = vault or get_vault()

    async def create_wallet(self, user_id: int, label: Optional[str] = None) -> tuple[Wallet, str]:
        """Generate a key pair and store the wallet.

        The user's first wallet becomes the default.

        Returns:
            (wallet, plaintext private key hex). The key is not retrievable later.
        """
        if label is not None:
            label = self._validate_label(label)

        account = Account.generate()
        private_key = account.private_key.hex()
        address = str(account.address())

        try:
            is_default = await self.repo.get_default_wallet(user_id) is None
            wallet = await self.repo.create_wallet(
                user_id=user_id,
                address=address,
                encrypted_private_key=self.vault.encrypt(private_key),
                is_default=is_default,
                label=label,
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to store wallet: {e}") from e

        logger.info(
            "WALLET_CREATED: user=%s wallet=%s address=%s default=%s",
            user_id,
            wallet.id,
            _short(address),
            is_default,
        )
        return wallet, private_key

    async def get_wallet_by_id(self, wallet_id: int, user_id: int) -> Optional[Wallet]:
        """Get a wallet owned by the user, or None."""
        try:
            return await self.repo.get_wallet_by_id(wallet_id, user_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load wallet: {e}") from e

    async def get_default_wallet(self, user_id: int) -> Optional[Wallet]:
        """Get the user's default wallet, or None if they have none."""
        try:
            return await self.repo.get_default_wallet(user_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load default wallet: {e}") from e

    async def list_wallets(self, user_id: int) -> list[Wallet]:
        """All wallets owned by the user, oldest first."""
        try:
            return await self.repo.list_wallets(user_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list wallets: {e}") from e

    async def set_default_wallet(self, wallet_id: int, user_id: int) -> Optional[Wallet]:
        """Make the wallet the user's only default. Idempotent.

        Returns:
            The wallet, or None if the user does not own it
        """
        try:
            wallet = await self.repo.set_default_wallet(wallet_id, user_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to set default wallet: {e}") from e

        if wallet is not None:
            logger.info(f"Default wallet for user {user_id} is now {wallet_id}")
        return wallet

    async def rename_wallet(self, wallet_id: int, user_id: int, label: str) -> Optional[Wallet]:
        """Set a wallet's label.

        Raises:
            ValidationError: Empty or overlong label
        """
        label = self._validate_label(label)
        try:
            return await self.repo.rename_wallet(wallet_id, user_id, label)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to rename wallet: {e}") from e

    async def delete_wallet_by_id(self, wallet_id: int, user_id: int) -> bool:
        """Permanently delete a wallet and its encrypted key.

        Returns:
            True if deleted, False if the user does not own such a wallet
        """
        try:
            deleted = await self.repo.delete_wallet(wallet_id, user_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete wallet: {e}") from e

        if deleted:
            logger.info(f"WALLET_DELETED: user={user_id} wallet={wallet_id}")
        return deleted

    @staticmethod
    def _validate_label(label: str) -> str:
        label = label.strip()
        if not label:
            raise ValidationError("Wallet label cannot be empty")
        if len(label) > MAX_LABEL_LENGTH:
            raise ValidationError(f"Wallet label must be at most {MAX_LABEL_LENGTH} characters")
        return label
