"""File-backed persistence adapter for the settings record."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from covstatus.app.ports import SettingsPersistencePort
from covstatus.errors import PersistenceError

logger = logging.getLogger(__name__)


class JsonFileSettingsAdapter(SettingsPersistencePort):
    """Store the settings record as a single JSON document.

    Writes go through a temporary file that is fsynced and then moved over the
    target with ``os.replace``, so readers never observe a partial record.
    """

    def __init__(self, path: Path, *, mode: int = 0o600) -> None:
        self._path = Path(path)
        self._mode = mode
        self._write_lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Return the underlying storage path."""
        return self._path

    def load(self) -> dict[str, Any] | None:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(f"Failed to read settings from {self._path}: {exc}") from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            self._quarantine(f"invalid JSON ({exc.msg} at line {exc.lineno})")
            return None

        if not isinstance(data, dict):
            self._quarantine("record root is not an object")
            return None
        return data

    def save(self, record: dict[str, Any]) -> None:
        payload = json.dumps(record, ensure_ascii=False, indent=2, sort_keys=True)

        with self._write_lock:
            tmp_path: str | None = None
            fd: int | None = None
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(
                    dir=str(self._path.parent),
                    prefix=f".{self._path.name}",
                    suffix=".tmp",
                    text=True,
                )
                try:
                    os.chmod(tmp_path, self._mode)
                except PermissionError:
                    # Windows may not support POSIX chmod semantics.
                    pass

                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    fd = None  # Ownership transferred to file object
                    handle.write(payload)
                    handle.write("\n")
                    handle.flush()
                    os.fsync(handle.fileno())

                os.replace(tmp_path, self._path)
                tmp_path = None
            except OSError as exc:
                raise PersistenceError(f"Failed to write settings to {self._path}: {exc}") from exc
            finally:
                if fd is not None:
                    os.close(fd)
                if tmp_path is not None:
                    try:
                        os.unlink(tmp_path)
                    except FileNotFoundError:
                        pass

    def _quarantine(self, reason: str) -> None:
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
        target = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        try:
            os.replace(self._path, target)
        except OSError as exc:
            raise PersistenceError(
                f"Settings at {self._path} are unreadable ({reason}) and could not be moved aside: {exc}"
            ) from exc
        logger.warning(
            "Settings at %s are unreadable (%s); moved to %s and starting from defaults.",
            self._path,
            reason,
            target,
        )
