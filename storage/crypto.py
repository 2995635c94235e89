"""
storage/crypto.py

Fernet encryption for case records at rest.

The key comes from the APP_DATA_KEY environment variable (a URL-safe
base64 32-byte key as produced by ``Fernet.generate_key()``).  Without it a
throwaway in-memory key is generated and a warning is logged: cases written
in that process cannot be read back after a restart.

Public API
----------
seal_record(data: dict) -> str
open_record(token: str) -> dict
reset_key_cache() -> None
"""

import json
import logging
import os
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

_ENV_KEY_NAME = "APP_DATA_KEY"


@lru_cache(maxsize=1)
def _get_fernet() -> Fernet:
    raw_key = os.environ.get(_ENV_KEY_NAME)

    if raw_key:
        logger.debug("Fernet key loaded from '%s'.", _ENV_KEY_NAME)
        return Fernet(raw_key.encode("utf-8"))

    logger.warning(
        "%s is not set. Using a temporary in-memory key; saved cases will "
        "NOT be readable after the app restarts.",
        _ENV_KEY_NAME,
    )
    return Fernet(Fernet.generate_key())


def reset_key_cache() -> None:
    """Forget the cached key so the next call re-reads APP_DATA_KEY."""
    _get_fernet.cache_clear()


def seal_record(data: dict) -> str:
    """
    Serialise *data* to JSON and encrypt it.

    Returns:
        Fernet token as a UTF-8 string, suitable for a TEXT column.
    """
    plaintext = json.dumps(data, ensure_ascii=False).encode("utf-8")
    return _get_fernet().encrypt(plaintext).decode("utf-8")


def open_record(token: str) -> dict:
    """
    Decrypt a token produced by :func:`seal_record`.

    Raises:
        cryptography.fernet.InvalidToken: wrong key or corrupted token.
        ValueError: the plaintext is not a JSON object.
    """
    try:
        plaintext = _get_fernet().decrypt(token.encode("utf-8"))
    except InvalidToken:
        logger.error("Case record decryption failed (wrong key or corrupted token).")
        raise
    record = json.loads(plaintext.decode("utf-8"))
    if not isinstance(record, dict):
        raise ValueError(f"Case record must be a JSON object, got {type(record).__name__}.")
    return record
