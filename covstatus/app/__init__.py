"""Application layer for covstatus.

This layer holds the settings store and its configuration model without direct
filesystem I/O. Durable storage is delegated to adapters via port interfaces.
"""

__all__ = [
    "FORM_FIELDS",
    "SettingsSnapshot",
    "SettingsStore",
    "StoreConfiguration",
    "StoreRecord",
    "StoreState",
    "parse_configuration",
]

from covstatus.app.configuration import (
    FORM_FIELDS,
    StoreConfiguration,
    StoreRecord,
    parse_configuration,
)
from covstatus.app.settings_store import SettingsSnapshot, SettingsStore, StoreState
