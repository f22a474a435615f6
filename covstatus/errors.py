"""Exception hierarchy shared by the settings store and its collaborators."""


class CovstatusError(Exception):
    """Base class for covstatus failures."""


class ConfigurationValidationError(CovstatusError, ValueError):
    """Administrative input is structurally invalid (e.g. not a mapping)."""


class PersistenceError(CovstatusError):
    """Durable storage could not be read or written."""


class StoreNotLoadedError(CovstatusError, RuntimeError):
    """An operation was attempted before :meth:`SettingsStore.load`."""


class SecretDecryptionError(CovstatusError):
    """No known key can decrypt a stored secret."""
