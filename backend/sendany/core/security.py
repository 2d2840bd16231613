"""Encryption of OAuth tokens at rest."""

from __future__ import annotations

from cryptography.fernet import Fernet, InvalidToken

from sendany.core.config import settings
from sendany.core.logging import get_logger

logger = get_logger(__name__)


class TokenDecryptionError(Exception):
    """Raised when a stored token cannot be decrypted with the current key."""

    pass


class TokenCipher:
    """Fernet wrapper used by the token store."""

    def __init__(self, key: bytes):
        self._fernet = Fernet(key)

    def encrypt(self, data: str) -> str:
        """Encrypt a string using Fernet."""
        return self._fernet.encrypt(data.encode()).decode()

    def decrypt(self, encrypted_data: str) -> str:
        """Decrypt a Fernet-encrypted string."""
        try:
            return self._fernet.decrypt(encrypted_data.encode()).decode()
        except InvalidToken as e:
            raise TokenDecryptionError(
                "Stored token could not be decrypted. Was SENDANY_ENCRYPTION_KEY changed?"
            ) from e


# Process-wide cipher, so a generated key is shared by every request
_cipher: TokenCipher | None = None


def get_token_cipher() -> TokenCipher:
    """Get or create the global token cipher."""
    global _cipher
    if _cipher is None:
        if settings.encryption_key:
            # Fernet expects the key as base64-encoded bytes (not decoded)
            key = settings.encryption_key.encode()
        else:
            key = Fernet.generate_key()
            logger.warning(
                "encryption_key_generated",
                message="Using auto-generated encryption key. Set SENDANY_ENCRYPTION_KEY for persistence.",
            )
        _cipher = TokenCipher(key)
    return _cipher
