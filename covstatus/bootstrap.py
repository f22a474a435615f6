"""Application bootstrap wiring the keyring, persistence adapter, and store."""

from __future__ import annotations

from dataclasses import dataclass

from covstatus.app.adapters import JsonFileSettingsAdapter
from covstatus.app.ports import SettingsPersistencePort
from covstatus.app.settings_store import SettingsStore
from covstatus.config import Settings, get_settings
from covstatus.secret import Keyring, install_keyring


@dataclass(slots=True)
class StoreContainer:
    """Aggregates the wired settings store for hosts and the CLI layer."""

    settings: Settings
    keyring: Keyring
    store: SettingsStore


def bootstrap_store(
    settings: Settings | None = None,
    *,
    persistence: SettingsPersistencePort | None = None,
    keyring: Keyring | None = None,
) -> StoreContainer:
    """Create and load the process-wide settings store.

    The keyring is installed process-wide before loading so stored credentials
    can be unsealed and re-sealed with the current key.
    """

    active_settings = settings or get_settings()
    active_keyring = keyring or Keyring.from_settings(active_settings)
    install_keyring(active_keyring)

    port = persistence or JsonFileSettingsAdapter(active_settings.get_store_path())
    store = SettingsStore(port, coverage_stripes=active_settings.coverage_stripes)
    store.load()

    return StoreContainer(settings=active_settings, keyring=active_keyring, store=store)
