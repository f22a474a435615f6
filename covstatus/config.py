"""Configuration management with Pydantic and XDG base directory support."""

import os
import sys
from pathlib import Path

from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

from covstatus.utils.crypto import load_fernet_keys, load_or_create_fernet_key


def get_xdg_data_home() -> Path:
    """Get XDG_DATA_HOME directory, defaulting to ~/.local/share."""
    xdg_data = os.getenv("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def get_xdg_config_home() -> Path:
    """Get XDG_CONFIG_HOME directory, defaulting to ~/.config."""
    xdg_config = os.getenv("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


class Settings(BaseSettings):
    """Runtime configuration for the settings store process.

    Precedence: CLI flag > environment variable > .env file > defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="COVSTATUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Data directories
    data_dir: Path | None = Field(
        default=None,
        description="Override data directory (defaults to XDG_DATA_HOME/covstatus)",
    )

    config_dir: Path | None = Field(
        default=None,
        description="Override config directory (defaults to XDG_CONFIG_HOME/covstatus)",
    )

    # Secret sealing
    secret_key_path: Path | None = Field(
        default=None,
        description="Location of the Fernet key used to seal stored credentials",
    )

    retired_secret_key_paths: list[Path] = Field(
        default_factory=list,
        description="Previous Fernet keys still accepted for decryption during rotation",
    )

    # Store settings
    store_path: Path | None = Field(
        default=None,
        description="Location of the persisted settings record (defaults to data_dir/settings.json)",
    )

    coverage_stripes: int = Field(
        default=16,
        ge=1,
        description="Number of lock stripes guarding the coverage-by-project map",
    )

    _resolved_data_dir: Path | None = PrivateAttr(default=None)
    _data_dir_warning_emitted: bool = PrivateAttr(default=False)

    def get_data_dir(self) -> Path:
        """Get the data directory, creating if necessary."""
        if self._resolved_data_dir is not None:
            return self._resolved_data_dir

        if self.data_dir:
            data_dir = self.data_dir
            data_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = data_dir
            return data_dir

        primary_dir = get_xdg_data_home() / "covstatus"
        try:
            primary_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = primary_dir
            return primary_dir
        except PermissionError as exc:
            fallback = Path.cwd() / ".covstatus-data"
            fallback.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = fallback
            if not self._data_dir_warning_emitted:
                print(
                    f"Warning: cannot create data directory at {primary_dir} ({exc}). "
                    f"Using local '{fallback}' instead. Pass --data-dir to override.",
                    file=sys.stderr,
                )
                self._data_dir_warning_emitted = True
            return fallback

    def get_config_dir(self) -> Path:
        """Get the config directory, creating if necessary."""
        if self.config_dir:
            config_dir = self.config_dir
        else:
            config_dir = get_xdg_config_home() / "covstatus"

        config_dir.mkdir(parents=True, exist_ok=True)
        return config_dir

    def get_secret_key(self) -> bytes:
        """Return the primary Fernet key used to seal credentials."""
        key_path = (
            self.secret_key_path
            if self.secret_key_path is not None
            else self.get_config_dir() / "secrets.key"
        )
        return load_or_create_fernet_key(key_path)

    def get_retired_secret_keys(self) -> list[bytes]:
        """Return retired keys that may still decrypt older credentials."""
        return load_fernet_keys(self.retired_secret_key_paths)

    def get_store_path(self) -> Path:
        """Return the path of the persisted settings record."""
        if self.store_path is not None:
            return self.store_path
        return self.get_data_dir() / "settings.json"


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (useful for testing)."""
    global _settings
    _settings = settings
