"""
Encryption service for calendar OAuth secrets.
Uses Fernet symmetric encryption; ciphertexts are stored as text inside the
integration's JSON configuration.
"""

from cryptography.fernet import Fernet, InvalidToken

from bookingdesk.config import settings
from bookingdesk.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Every Fernet token starts with the version byte 0x80, base64-encoded as "gAAAAA"
FERNET_TOKEN_PREFIX = "gAAAAA"


class EncryptionError(Exception):
    """Custom exception for encryption/decryption errors."""

    pass


def _get_fernet() -> Fernet:
    """
    Get Fernet instance with encryption key from environment.

    Raises:
        EncryptionError: If encryption key is not configured
    """
    if not settings.ENCRYPTION_KEY:
        raise EncryptionError("ENCRYPTION_KEY not configured in environment")

    try:
        return Fernet(settings.ENCRYPTION_KEY.encode("utf-8"))
    except Exception as e:
        logger.error("Failed to initialize Fernet cipher", error=str(e))
        raise EncryptionError(f"Invalid encryption key: {e}") from e


def encrypt_token(token: str) -> str:
    """
    Encrypt a secret for storage.

    Args:
        token: Plain text secret

    Returns:
        str: Fernet token as text

    Raises:
        EncryptionError: If encryption fails
    """
    if not token or not isinstance(token, str):
        raise EncryptionError("Token must be a non-empty string")

    try:
        return _get_fernet().encrypt(token.encode("utf-8")).decode("utf-8")
    except EncryptionError:
        raise
    except Exception as e:
        logger.error("Failed to encrypt token", error=str(e))
        raise EncryptionError(f"Encryption failed: {e}") from e


def decrypt_token(encrypted_token: str) -> str:
    """
    Decrypt a stored secret.

    Raises:
        EncryptionError: If decryption fails or token is invalid
    """
    if not encrypted_token or not isinstance(encrypted_token, str):
        raise EncryptionError("Encrypted token must be a non-empty string")

    try:
        return _get_fernet().decrypt(encrypted_token.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        logger.error("Token decryption failed - invalid token")
        raise EncryptionError("Invalid or corrupted token") from e
    except EncryptionError:
        raise
    except Exception as e:
        logger.error("Failed to decrypt token", error=str(e))
        raise EncryptionError(f"Decryption failed: {e}") from e


def is_encrypted(value: str | None) -> bool:
    return bool(value) and value.startswith(FERNET_TOKEN_PREFIX)


def decrypt_if_encrypted(value: str | None) -> str | None:
    """Decrypt Fernet ciphertexts; values stored before encryption pass through."""
    if not is_encrypted(value):
        return value
    return decrypt_token(value)
