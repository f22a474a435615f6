"""Opaque wrapper for credential values.

A :class:`SecretBox` only ever holds a Fernet token. The plaintext is recomputed
on demand by :meth:`SecretBox.reveal` using the process-wide :class:`Keyring`.
Every serialization path other than the explicit ``ciphertext`` accessor is
either masked (``repr``/``str``) or refused (pickling).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from cryptography.fernet import Fernet, InvalidToken
from pydantic_core import core_schema

from covstatus.errors import SecretDecryptionError
from covstatus.utils.crypto import build_multi_fernet, looks_like_fernet_token

if TYPE_CHECKING:
    from pydantic import GetCoreSchemaHandler

    from covstatus.config import Settings

logger = logging.getLogger(__name__)

MASK = "********"


class Keyring:
    """Symmetric keys used to seal secrets.

    New tokens are always produced with the primary key. Retired keys are only
    used for decryption so values sealed before a key rotation stay readable
    until they are rotated forward.
    """

    def __init__(self, primary: bytes, retired: Iterable[bytes] = ()) -> None:
        self._primary = Fernet(primary)
        self._multi = build_multi_fernet(primary, retired)

    @classmethod
    def generate(cls) -> Keyring:
        """Return a keyring with a fresh random primary key."""
        return cls(Fernet.generate_key())

    @classmethod
    def from_settings(cls, settings: Settings) -> Keyring:
        """Build the keyring from the key files configured in ``settings``."""
        return cls(settings.get_secret_key(), settings.get_retired_secret_keys())

    def encrypt(self, plaintext: str) -> str:
        return self._primary.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            return self._multi.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise SecretDecryptionError("Secret cannot be decrypted with any known key.") from exc

    def can_decrypt(self, token: str) -> bool:
        try:
            self._multi.decrypt(token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError):
            return False
        return True

    def is_current(self, token: str) -> bool:
        """Return True when ``token`` was sealed with the primary key."""
        try:
            self._primary.decrypt(token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError):
            return False
        return True

    def rotate(self, token: str) -> str:
        """Re-seal ``token`` under the primary key."""
        try:
            return self._multi.rotate(token.encode("ascii")).decode("ascii")
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise SecretDecryptionError("Secret cannot be rotated; no known key matches.") from exc


_keyring: Keyring | None = None
_keyring_lock = threading.Lock()


def install_keyring(keyring: Keyring | None) -> None:
    """Set the process-wide keyring (``None`` resets to lazy initialisation)."""
    global _keyring
    with _keyring_lock:
        _keyring = keyring


def get_keyring() -> Keyring:
    """Return the process-wide keyring, building it from settings on first use."""
    global _keyring
    with _keyring_lock:
        if _keyring is None:
            from covstatus.config import get_settings

            _keyring = Keyring.from_settings(get_settings())
        return _keyring


class SecretBox:
    """Immutable holder of an encrypted credential."""

    __slots__ = ("_ciphertext",)

    def __init__(self, ciphertext: str) -> None:
        if not isinstance(ciphertext, str) or not ciphertext:
            raise TypeError("SecretBox requires a non-empty ciphertext string")
        object.__setattr__(self, "_ciphertext", ciphertext)

    @classmethod
    def from_plaintext(cls, plaintext: str, *, keyring: Keyring | None = None) -> SecretBox:
        return cls((keyring or get_keyring()).encrypt(plaintext))

    @classmethod
    def from_persisted(cls, value: str, *, keyring: Keyring | None = None) -> SecretBox:
        """Restore a box from a stored value.

        Values that decrypt under a known key are kept as ciphertext. Values
        shaped like a Fernet token that no configured key opens are refused.
        Anything else is treated as clear text written by an older release and
        sealed immediately.

        Raises:
            SecretDecryptionError: If ``value`` is a token sealed with a key
                that is not configured
        """
        ring = keyring or get_keyring()
        if ring.can_decrypt(value):
            return cls(value)
        if looks_like_fernet_token(value):
            raise SecretDecryptionError(
                "Stored credential is undecryptable with current keys; "
                "configure the key it was sealed with as a retired key."
            )
        logger.warning("Stored credential was not encrypted; sealing it with the current key.")
        return cls(ring.encrypt(value))

    @property
    def ciphertext(self) -> str:
        return self._ciphertext

    def reveal(self, *, keyring: Keyring | None = None) -> str:
        return (keyring or get_keyring()).decrypt(self._ciphertext)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("SecretBox is immutable")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SecretBox):
            return NotImplemented
        return self._ciphertext == other._ciphertext

    def __hash__(self) -> int:
        return hash(self._ciphertext)

    def __repr__(self) -> str:
        return f"SecretBox('{MASK}')"

    def __str__(self) -> str:
        return MASK

    def __copy__(self) -> SecretBox:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> SecretBox:
        return self

    def __reduce_ex__(self, protocol: Any) -> Any:
        raise TypeError("SecretBox cannot be pickled; persist its ciphertext instead")

    @classmethod
    def _validate(cls, value: Any) -> SecretBox:
        if isinstance(value, SecretBox):
            return value
        if isinstance(value, str) and value:
            try:
                return cls.from_persisted(value)
            except SecretDecryptionError as exc:
                raise ValueError(str(exc)) from exc
        raise ValueError("expected a SecretBox or a stored secret string")

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        # Model dumps only ever see the ciphertext.
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda box: box.ciphertext,
                return_schema=core_schema.str_schema(),
            ),
        )


def wrap(plaintext: str | None) -> SecretBox | None:
    """Seal ``plaintext``; empty or missing values stay missing."""
    if not plaintext:
        return None
    return SecretBox.from_plaintext(plaintext)


def reveal(box: SecretBox | None) -> str | None:
    """Return the plaintext inside ``box`` (inverse of :func:`wrap`)."""
    if box is None:
        return None
    return box.reveal()


def rewrap(box: SecretBox | None) -> SecretBox | None:
    """Normalise ``box`` to the current primary key.

    Equivalent to ``wrap(reveal(box))`` but returns ``box`` unchanged when it is
    already sealed with the primary key.
    """
    if box is None:
        return None
    keyring = get_keyring()
    if keyring.is_current(box.ciphertext):
        return box
    return SecretBox(keyring.rotate(box.ciphertext))
