"""Cryptographic utilities for private key storage.

Keys are encrypted with AES-256-CBC (PKCS7 padding) under a single
process-wide secret. Ciphertexts are stored as ``"<iv hex>:<data hex>"``
with a fresh random IV for every call.
"""

import binascii
import hashlib
import logging
import os
from functools import lru_cache

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from swapvault.errors import DecryptionError

logger = logging.getLogger(__name__)

IV_SIZE = 16
KEY_SIZE = 32
DELIMITER = ":"


def derive_vault_secret(passphrase: str) -> bytes:
    """Hash an operator passphrase into a 32-byte AES key."""
    return hashlib.sha256(passphrase.encode()).digest()


def encrypt_data(plaintext: str, encryption_key: bytes) -> str:
    """Encrypt a string.

    Args:
        plaintext: Text to encrypt (a hex private key in practice)
        encryption_key: 32-byte AES key

    Returns:
        IV and ciphertext as two hex segments joined by ``:``
    """
    if len(encryption_key) != KEY_SIZE:
        raise ValueError(f"Encryption key must be {KEY_SIZE} bytes")

    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(encryption_key), modes.CBC(iv)).encryptor()
    encrypted = encryptor.update(padded) + encryptor.finalize()

    return f"{iv.hex()}{DELIMITER}{encrypted.hex()}"


def decrypt_data(ciphertext: str, encryption_key: bytes) -> str:
    """Decrypt a value produced by :func:`encrypt_data`.

    Raises:
        DecryptionError: Malformed ciphertext, wrong key or corrupted data
    """
    if len(encryption_key) != KEY_SIZE:
        raise DecryptionError(f"Encryption key must be {KEY_SIZE} bytes")
    if not ciphertext or DELIMITER not in ciphertext:
        raise DecryptionError("Ciphertext is missing the IV delimiter")

    iv_hex, encrypted_hex = ciphertext.split(DELIMITER, 1)
    try:
        iv = bytes.fromhex(iv_hex)
        encrypted = bytes.fromhex(encrypted_hex)
    except (ValueError, binascii.Error) as e:
        raise DecryptionError(f"Ciphertext is not valid hex: {e}") from e

    if len(iv) != IV_SIZE:
        raise DecryptionError(f"IV must be {IV_SIZE} bytes, got {len(iv)}")
    if not encrypted or len(encrypted) % IV_SIZE:
        raise DecryptionError("Ciphertext length is not a multiple of the block size")

    decryptor = Cipher(algorithms.AES(encryption_key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(encrypted) + decryptor.finalize()

    try:
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        data = unpadder.update(padded) + unpadder.finalize()
        return data.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        # Wrong key almost always ends up here
        raise DecryptionError("Invalid padding or key") from e


class KeyVault:
    """Encrypts and decrypts wallet private keys under one secret.

    Usage:
        vault = KeyVault(derive_vault_secret("passphrase"))
        encrypted = vault.encrypt(private_key_hex)
        private_key_hex = vault.decrypt(encrypted)
    """

    def __init__(self, secret: bytes):
        if len(secret) != KEY_SIZE:
            raise ValueError(f"Vault secret must be {KEY_SIZE} bytes")
        self._secret = secret

    @classmethod
    def from_passphrase(cls, passphrase: str) -> "KeyVault":
        return cls(derive_vault_secret(passphrase))

    def encrypt(self, plaintext: str) -> str:
        return encrypt_data(plaintext, self._secret)

    def decrypt(self, ciphertext: str) -> str:
        return decrypt_data(ciphertext, self._secret)

    def __repr__(self) -> str:
        return "KeyVault(secret=***)"


@lru_cache
def get_vault() -> KeyVault:
    """Get the process-wide vault built from VAULT_SECRET."""
    from swapvault.config import get_settings

    settings = get_settings()
    if settings.is_production and settings.vault_secret == "secret":
        logger.warning("VAULT_SECRET is the default value - set a real passphrase")
    return KeyVault.from_passphrase(settings.vault_secret)
