"""Persistence port for the settings record."""

from typing import Any, Protocol


class SettingsPersistencePort(Protocol):
    """Port interface for durable storage of the settings record.

    The record is a JSON-compatible mapping. Credentials inside it are already
    sealed, so adapters never handle clear-text secrets.

    Side effects: Reads/writes durable storage supplied by the host.
    """

    def load(self) -> dict[str, Any] | None:
        """Read the persisted record.

        Returns:
            The stored record, or None when nothing has been persisted yet

        Raises:
            PersistenceError: If storage cannot be read
        """
        ...

    def save(self, record: dict[str, Any]) -> None:
        """Persist ``record``, replacing any previous one.

        Args:
            record: JSON-compatible settings record

        Raises:
            PersistenceError: If storage cannot be written
        """
        ...
