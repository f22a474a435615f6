"""Pytest configuration and fixtures."""

import gc
import shutil
import tempfile
import time
from collections.abc import Generator
from pathlib import Path

import pytest

from covstatus.app.adapters import InMemorySettingsAdapter
from covstatus.app.settings_store import SettingsStore
from covstatus.config import Settings
from covstatus.secret import Keyring, install_keyring


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    try:
        yield Path(tmpdir)
    finally:
        # Force garbage collection to release any file handles
        gc.collect()
        # Small delay to allow OS to release file locks
        time.sleep(0.1)
        # Retry cleanup with ignore_errors for better cross-platform support
        shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def override_settings(temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide isolated covstatus settings scoped to tests."""

    import covstatus.config as config_module

    original_settings = getattr(config_module, "_settings", None)

    data_dir = temp_dir / "appdata"
    config_dir = temp_dir / "appconfig"
    data_dir.mkdir(parents=True, exist_ok=True)
    config_dir.mkdir(parents=True, exist_ok=True)

    settings = config_module.Settings(
        data_dir=data_dir,
        config_dir=config_dir,
    )

    config_module._settings = settings

    try:
        yield settings
    finally:
        config_module._settings = original_settings
        install_keyring(None)


@pytest.fixture
def keyring() -> Generator[Keyring, None, None]:
    """Install a fresh process-wide keyring for the duration of a test."""
    ring = Keyring.generate()
    install_keyring(ring)
    try:
        yield ring
    finally:
        install_keyring(None)


@pytest.fixture
def memory_port() -> InMemorySettingsAdapter:
    return InMemorySettingsAdapter()


@pytest.fixture
def store(keyring: Keyring, memory_port: InMemorySettingsAdapter) -> SettingsStore:
    """A loaded store backed by in-memory persistence."""
    settings_store = SettingsStore(memory_port)
    settings_store.load()
    return settings_store
