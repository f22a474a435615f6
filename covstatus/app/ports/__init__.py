"""Port interfaces for the covstatus application layer.

These protocol interfaces define contracts for adapters.
The settings store depends on these ports, never on concrete implementations.
"""

__all__ = [
    "SettingsPersistencePort",
]

from covstatus.app.ports.persistence import SettingsPersistencePort
