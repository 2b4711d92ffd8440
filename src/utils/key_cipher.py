"""Encryption, hashing and masking of provider API keys."""

import hashlib
import logging
from datetime import datetime
from typing import Optional

import pytz
from cryptography.fernet import Fernet

from config import API_KEY_ENCRYPTION_KEY

logger = logging.getLogger(__name__)

_CIPHER = Fernet(API_KEY_ENCRYPTION_KEY.encode()) if API_KEY_ENCRYPTION_KEY else None
if not _CIPHER:
    logger.warning(
        "API_KEY_ENCRYPTION_KEY not set; API keys will be stored in plain text."
    )


def encrypt_key(api_key: str) -> str:
    if _CIPHER:
        return _CIPHER.encrypt(api_key.encode()).decode()
    return api_key


def decrypt_key(stored_key: str) -> str:
    if _CIPHER:
        return _CIPHER.decrypt(stored_key.encode()).decode()
    return stored_key


def hash_key(api_key: str) -> str:
    """Return the SHA-256 hex digest used for duplicate detection."""
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def mask_key(api_key: str) -> str:
    """Return a display preview that never exposes the full secret.

    Args:
        api_key: Raw key value.

    Returns:
        The first and last four characters around a fixed mask, or only
        the mask for keys too short to preview safely.
    """
    if len(api_key) <= 12:
        return "****"
    return f"{api_key[:4]}...{api_key[-4:]}"


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=pytz.utc)
