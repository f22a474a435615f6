from pathlib import Path

from cryptography.fernet import Fernet

from covstatus.bootstrap import bootstrap_store
from covstatus.config import Settings
from covstatus.secret import get_keyring, install_keyring


def test_settings_paths_follow_overrides(tmp_path):
    settings = Settings(data_dir=tmp_path / "data", config_dir=tmp_path / "config")

    assert settings.get_store_path() == tmp_path / "data" / "settings.json"
    assert settings.get_config_dir() == tmp_path / "config"
    assert (tmp_path / "data").is_dir()


def test_settings_read_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("COVSTATUS_STORE_PATH", str(tmp_path / "custom.json"))
    monkeypatch.setenv("COVSTATUS_COVERAGE_STRIPES", "4")

    settings = Settings(config_dir=tmp_path / "config")

    assert settings.get_store_path() == tmp_path / "custom.json"
    assert settings.coverage_stripes == 4


def test_secret_key_is_stable_across_instances(tmp_path):
    config_dir = tmp_path / "config"
    first = Settings(config_dir=config_dir).get_secret_key()
    second = Settings(config_dir=config_dir).get_secret_key()

    assert first == second
    assert b"\n" not in first


def test_retired_keys_skip_missing_files(tmp_path):
    retired_path = tmp_path / "old.key"
    retired_path.write_bytes(Fernet.generate_key())
    settings = Settings(
        config_dir=tmp_path / "config",
        retired_secret_key_paths=[retired_path, tmp_path / "missing.key"],
    )

    assert settings.get_retired_secret_keys() == [retired_path.read_bytes()]


def test_get_keyring_builds_from_global_settings(override_settings):
    install_keyring(None)

    ring = get_keyring()

    assert (override_settings.get_config_dir() / "secrets.key").exists()
    assert get_keyring() is ring


def test_bootstrap_store_loads_from_settings(override_settings):
    container = bootstrap_store(override_settings)
    container.store.apply_configuration({"accessToken": "ghp_boot"})
    container.store.set_coverage("org/repo", 77.0)

    fresh = bootstrap_store(override_settings)

    assert fresh.store.access_token == "ghp_boot"
    assert fresh.store.get_coverage("org/repo") == 77.0
    stored = Path(override_settings.get_store_path()).read_text(encoding="utf-8")
    assert "ghp_boot" not in stored


def test_bootstrap_rotates_after_key_change(tmp_path):
    old_key_path = tmp_path / "old.key"
    settings = Settings(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
        secret_key_path=old_key_path,
    )
    try:
        bootstrap_store(settings).store.apply_configuration({"secondaryServicePassword": "pw"})

        rotated = Settings(
            data_dir=tmp_path / "data",
            config_dir=tmp_path / "config",
            secret_key_path=tmp_path / "new.key",
            retired_secret_key_paths=[old_key_path],
        )
        container = bootstrap_store(rotated)

        box = container.store.configuration.secondary_service_password
        assert container.keyring.is_current(box.ciphertext)
        assert container.store.secondary_service_password == "pw"
    finally:
        install_keyring(None)
