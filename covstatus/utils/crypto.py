"""Utilities for key management and symmetric encryption."""

from __future__ import annotations

import base64
import binascii
import os
import re
from collections.abc import Iterable
from pathlib import Path

from cryptography.fernet import Fernet, MultiFernet

_TOKEN_ALPHABET = re.compile(r"[A-Za-z0-9_-]+={0,2}")

# version byte, timestamp, IV, at least one AES block, HMAC
_MIN_TOKEN_BYTES = 1 + 8 + 16 + 16 + 32


def _write_secure_file(path: Path, data: bytes, *, mode: int = 0o600) -> None:
    """Write ``data`` to ``path`` and restrict permissions.

    Args:
        path: Target file path
        data: Bytes to persist
        mode: File mode to apply (POSIX style)
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        os.write(fd, data)
    finally:
        os.close(fd)

    try:
        os.chmod(path, mode)
    except PermissionError:
        # Windows may not support POSIX-style chmod; best effort only.
        pass


def load_or_create_fernet_key(path: Path) -> bytes:
    """Load an existing Fernet key from ``path`` or create a new one.

    Returns:
        Base64-encoded Fernet key bytes.
    """
    try:
        return path.read_bytes().strip()
    except FileNotFoundError:
        key = Fernet.generate_key()
        _write_secure_file(path, key)
        return key


def load_fernet_keys(paths: Iterable[Path]) -> list[bytes]:
    """Load existing Fernet keys, skipping paths that do not exist."""
    keys: list[bytes] = []
    for path in paths:
        try:
            keys.append(path.read_bytes().strip())
        except FileNotFoundError:
            continue
    return keys


def build_multi_fernet(primary: bytes, retired: Iterable[bytes] = ()) -> MultiFernet:
    """Combine ``primary`` and ``retired`` keys; encryption always uses ``primary``."""
    return MultiFernet([Fernet(primary), *(Fernet(key) for key in retired)])


def looks_like_fernet_token(value: str) -> bool:
    """Return True when ``value`` has the shape of a Fernet token.

    Only the framing is checked (url-safe base64, version byte ``0x80``,
    block-aligned body); the HMAC is not verified.
    """
    if not value.startswith("gAAAAA") or not _TOKEN_ALPHABET.fullmatch(value):
        return False
    try:
        data = base64.urlsafe_b64decode(value.encode("ascii"))
    except (binascii.Error, ValueError):
        return False
    return (
        len(data) >= _MIN_TOKEN_BYTES
        and data[0] == 0x80
        and (len(data) - _MIN_TOKEN_BYTES) % 16 == 0
    )
