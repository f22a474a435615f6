"""Utility modules for common operations."""

from covstatus.utils.concurrency import StripedDict
from covstatus.utils.crypto import (
    build_multi_fernet,
    load_fernet_keys,
    load_or_create_fernet_key,
    looks_like_fernet_token,
)

__all__ = [
    "StripedDict",
    "build_multi_fernet",
    "load_fernet_keys",
    "load_or_create_fernet_key",
    "looks_like_fernet_token",
]
