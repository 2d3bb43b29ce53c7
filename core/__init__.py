"""Core module for SEOMaster."""

from core.database import get_session, init_db, close_db
from core.cache import get_cache, cache
from core.security import (
    verify_password,
    hash_password,
    create_access_token,
    create_verification_token,
    create_reset_token,
    decode_token,
)

__all__ = [
    "get_session",
    "init_db",
    "close_db",
    "get_cache",
    "cache",
    "verify_password",
    "hash_password",
    "create_access_token",
    "create_verification_token",
    "create_reset_token",
    "decode_token",
]
