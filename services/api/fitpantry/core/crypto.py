"""Credential vault for the per-user provider API key.

AES-256-CBC with a fresh 16-byte IV per call. Stored form is
``hex(iv) + ":" + hex(ciphertext)`` so each value decrypts on its own with
only the process-wide key. Plaintext is never logged here.
"""

import logging
import os
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..errors import ConfigurationError, DecryptionError, EncryptionError
from ..settings import settings

logger = logging.getLogger("fitpantry.crypto")

KEY_LENGTH = 32
IV_LENGTH = 16
SEPARATOR = ":"

# Google AI Studio keys look like "AIza" + 35 url-safe chars.
API_KEY_PREFIX = "AIza"
API_KEY_MIN_LENGTH = 20


class CredentialVault:
    def __init__(self, key: str):
        raw = (key or "").encode("utf-8")
        if len(raw) != KEY_LENGTH:
            raise ConfigurationError(
                f"ENCRYPTION_KEY must be exactly {KEY_LENGTH} bytes long (got {len(raw)})"
            )
        self._key = raw

    def _cipher(self, iv: bytes) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(iv))

    def encrypt(self, secret: str) -> str:
        try:
            iv = os.urandom(IV_LENGTH)
            padder = padding.PKCS7(algorithms.AES.block_size).padder()
            padded = padder.update(secret.encode("utf-8")) + padder.finalize()
            encryptor = self._cipher(iv).encryptor()
            ciphertext = encryptor.update(padded) + encryptor.finalize()
        except (TypeError, ValueError, AttributeError) as e:
            logger.error("Encrypting API key failed: %s", e.__class__.__name__)
            raise EncryptionError() from e
        return iv.hex() + SEPARATOR + ciphertext.hex()

    def decrypt(self, ciphertext: str) -> str:
        if not isinstance(ciphertext, str):
            raise DecryptionError("Invalid encrypted data format")
        parts = ciphertext.split(SEPARATOR)
        if len(parts) != 2:
            raise DecryptionError("Invalid encrypted data format")

        try:
            iv = bytes.fromhex(parts[0])
            data = bytes.fromhex(parts[1])
            decryptor = self._cipher(iv).decryptor()
            padded = decryptor.update(data) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plain = unpadder.update(padded) + unpadder.finalize()
            return plain.decode("utf-8")
        except ValueError as e:
            # Bad hex, wrong IV size, partial block, bad padding (wrong key) or non-UTF-8.
            logger.warning("Decrypting API key failed: %s", e.__class__.__name__)
            raise DecryptionError() from e

    @staticmethod
    def looks_valid(secret: str) -> bool:
        """Shape check only; never contacts the provider."""
        return (
            isinstance(secret, str)
            and secret.startswith(API_KEY_PREFIX)
            and len(secret) >= API_KEY_MIN_LENGTH
        )


_vault: Optional[CredentialVault] = None


def get_vault() -> CredentialVault:
    """Process-wide vault, built once from settings."""
    global _vault
    if _vault is None:
        _vault = CredentialVault(settings.encryption_key)
    return _vault


def reset_vault() -> None:
    global _vault
    _vault = None
