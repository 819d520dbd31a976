"""SQLAlchemy models for users, custodial wallets and cached coins."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class User(Base):
    """User account linked to Telegram."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    telegram_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, default="unknown")
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    wallets: Mapped[list["Wallet"]] = relationship(
        back_populates="user", lazy="selectin", order_by="Wallet.id"
    )


class Wallet(Base):
    """Custodial Aptos wallet owned by a user.

    The private key is stored encrypted (AES-256-CBC, see swapvault.crypto).
    At most one wallet per user has is_default set.
    """

    __tablename__ = "wallets"
    __table_args__ = (Index("ix_wallets_user_default", "user_id", "is_default"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    address: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    encrypted_private_key: Mapped[str] = mapped_column(Text, nullable=False)
    label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_default: Mapped[bool] = mapped_column(default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="wallets")

    @property
    def display_name(self) -> str:
        """Label if set, otherwise a shortened address."""
        if self.label:
            return self.label
        return f"{self.address[:6]}...{self.address[-4:]}"

    def __repr__(self) -> str:
        # Never include the encrypted key
        return (
            f"Wallet(id={self.id}, user_id={self.user_id}, address={self.address!r}, "
            f"is_default={self.is_default})"
        )


class Coin(Base):
    """Cached fungible asset description, keyed by its on-chain type address."""

    __tablename__ = "coins"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    symbol: Mapped[str] = mapped_column(String(255), nullable=False)
    decimals: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
