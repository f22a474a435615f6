"""In-memory persistence adapter for embedding hosts and tests."""

from __future__ import annotations

import json
import threading
from typing import Any

from covstatus.app.ports import SettingsPersistencePort


class InMemorySettingsAdapter(SettingsPersistencePort):
    """Keep the record as a JSON string, the way a host key/value store would.

    Encoding on save means only serializable data (ciphertext, never a
    ``SecretBox``) can reach the store.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._lock = threading.Lock()
        self._payload: str | None = json.dumps(initial) if initial is not None else None
        self.save_count = 0

    @property
    def raw(self) -> str | None:
        """Return the stored JSON text, or None when nothing was saved."""
        return self._payload

    def load(self) -> dict[str, Any] | None:
        with self._lock:
            payload = self._payload
        if payload is None:
            return None
        return json.loads(payload)

    def save(self, record: dict[str, Any]) -> None:
        payload = json.dumps(record, sort_keys=True)
        with self._lock:
            self._payload = payload
            self.save_count += 1
