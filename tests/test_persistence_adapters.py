"""Tests for settings persistence adapters."""

from __future__ import annotations

import json
import os
import stat
import sys
from pathlib import Path

import pytest

from covstatus.app.adapters import InMemorySettingsAdapter, JsonFileSettingsAdapter
from covstatus.errors import PersistenceError


def test_json_adapter_missing_file_returns_none(temp_dir: Path) -> None:
    adapter = JsonFileSettingsAdapter(temp_dir / "absent.json")

    assert adapter.load() is None


def test_json_adapter_round_trip(temp_dir: Path) -> None:
    adapter = JsonFileSettingsAdapter(temp_dir / "nested" / "settings.json")
    record = {"schema_version": 1, "coverage_by_project": {"org/repo": 12.5}}

    adapter.save(record)

    assert adapter.load() == record
    assert not [p for p in adapter.path.parent.iterdir() if p.name.endswith(".tmp")]


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permissions")
def test_json_adapter_restricts_permissions(temp_dir: Path) -> None:
    adapter = JsonFileSettingsAdapter(temp_dir / "settings.json")
    adapter.save({"schema_version": 1})

    mode = stat.S_IMODE(os.stat(adapter.path).st_mode)
    assert mode == 0o600


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_json_adapter_quarantines_corrupt_file(temp_dir: Path, content: str, caplog) -> None:
    path = temp_dir / "settings.json"
    path.write_text(content, encoding="utf-8")
    adapter = JsonFileSettingsAdapter(path)

    assert adapter.load() is None

    assert not path.exists()
    moved = list(temp_dir.glob("settings.json.corrupt-*"))
    assert len(moved) == 1
    assert moved[0].read_text(encoding="utf-8") == content
    assert "unreadable" in caplog.text


def test_json_adapter_wraps_write_failures(temp_dir: Path) -> None:
    blocker = temp_dir / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    adapter = JsonFileSettingsAdapter(blocker / "settings.json")

    with pytest.raises(PersistenceError) as excinfo:
        adapter.save({"schema_version": 1})

    assert isinstance(excinfo.value.__cause__, OSError)


def test_json_adapter_wraps_read_failures(temp_dir: Path) -> None:
    directory = temp_dir / "settings.json"
    directory.mkdir()
    adapter = JsonFileSettingsAdapter(directory)

    with pytest.raises(PersistenceError):
        adapter.load()


def test_memory_adapter_stores_json_copy() -> None:
    adapter = InMemorySettingsAdapter()
    record = {"coverage_by_project": {"a": 1.0}}

    assert adapter.load() is None
    adapter.save(record)
    record["coverage_by_project"]["a"] = 2.0

    assert adapter.load() == {"coverage_by_project": {"a": 1.0}}
    assert json.loads(adapter.raw) == {"coverage_by_project": {"a": 1.0}}
    assert adapter.save_count == 1


def test_memory_adapter_rejects_unserializable_values() -> None:
    adapter = InMemorySettingsAdapter()

    with pytest.raises(TypeError):
        adapter.save({"token": object()})
