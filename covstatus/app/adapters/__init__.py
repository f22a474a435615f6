"""Adapter implementations for covstatus ports."""

from covstatus.app.adapters.json_file import JsonFileSettingsAdapter
from covstatus.app.adapters.memory import InMemorySettingsAdapter

__all__ = [
    "InMemorySettingsAdapter",
    "JsonFileSettingsAdapter",
]
