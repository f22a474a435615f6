"""Tests for administrative form parsing."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from covstatus.app.configuration import (
    FORM_FIELDS,
    StoreConfiguration,
    StoreRecord,
    parse_configuration,
    to_bool,
    to_int,
    trim_to_none,
)
from covstatus.errors import ConfigurationValidationError
from covstatus.secret import Keyring, SecretBox, reveal


def _full_form() -> dict[str, object]:
    return {
        "apiBaseUrl": "  https://api.github.example/  ",
        "accessToken": " ghp_token ",
        "yellowThreshold": "70",
        "greenThreshold": "85",
        "jenkinsUrl": "https://ci.example",
        "proxiedJenkins": "true",
        "useSecondaryAnalysisForBaseline": "on",
        "disableSimpleCov": "yes",
        "secondaryServiceUrl": "https://sonar.example",
        "secondaryServiceToken": "sonar-token",
        "secondaryServiceUser": " admin ",
        "secondaryServicePassword": "s3cret",
    }


def test_parse_full_form(keyring) -> None:
    config = parse_configuration(_full_form())

    assert config.api_base_url == "https://api.github.example/"
    assert reveal(config.access_token) == "ghp_token"
    assert config.yellow_threshold == 70
    assert config.green_threshold == 85
    assert config.jenkins_url == "https://ci.example"
    assert config.proxied_jenkins is True
    assert config.use_secondary_analysis_for_baseline is True
    assert config.disable_simple_cov is True
    assert config.secondary_service_url == "https://sonar.example"
    assert reveal(config.secondary_service_token) == "sonar-token"
    assert config.secondary_service_user == "admin"
    assert reveal(config.secondary_service_password) == "s3cret"


def test_credentials_are_sealed_immediately(keyring) -> None:
    config = parse_configuration(_full_form())

    for name in ("access_token", "secondary_service_token", "secondary_service_password"):
        assert isinstance(getattr(config, name), SecretBox)
    assert "ghp_token" not in repr(config)
    assert "s3cret" not in repr(config)


def test_empty_form_yields_defaults(keyring) -> None:
    config = parse_configuration({})

    assert config.model_dump() == StoreConfiguration().model_dump()
    assert config.yellow_threshold == 80
    assert config.green_threshold == 90
    assert config.access_token is None
    assert config.proxied_jenkins is False


@pytest.mark.parametrize(
    "raw", [None, "", "abc", "12.5", "8O", "1_00", "٨٠", " 7 0", [], {}, True]
)
def test_non_numeric_thresholds_default(keyring, raw) -> None:
    config = parse_configuration({"yellowThreshold": raw, "greenThreshold": raw})

    assert config.yellow_threshold == 80
    assert config.green_threshold == 90


def test_thresholds_are_not_clamped(keyring) -> None:
    config = parse_configuration({"yellowThreshold": "-5", "greenThreshold": 150})

    assert config.yellow_threshold == -5
    assert config.green_threshold == 150


def test_blank_strings_become_absent(keyring) -> None:
    config = parse_configuration(
        {
            "apiBaseUrl": "   ",
            "accessToken": "  ",
            "jenkinsUrl": "",
            "secondaryServicePassword": "\t",
        }
    )

    assert config.api_base_url is None
    assert config.access_token is None
    assert config.jenkins_url is None
    assert config.secondary_service_password is None


def test_non_mapping_form_is_rejected(keyring) -> None:
    with pytest.raises(ConfigurationValidationError):
        parse_configuration(["apiBaseUrl", "x"])  # type: ignore[arg-type]


def test_unknown_keys_are_ignored(keyring) -> None:
    config = parse_configuration({"somethingElse": "1", "apiBaseUrl": "https://x"})

    assert config.api_base_url == "https://x"


def test_form_table_covers_every_field() -> None:
    assert {row.field for row in FORM_FIELDS} == set(StoreConfiguration.model_fields)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, False),
        (True, True),
        (False, False),
        ("true", True),
        ("TRUE", True),
        ("on", True),
        ("yes", True),
        ("false", False),
        ("maybe", False),
        (1, False),
    ],
)
def test_to_bool(raw, expected) -> None:
    assert to_bool(raw) is expected


def test_to_int_and_trim() -> None:
    assert to_int(" 42 ", 0) == 42
    assert to_int("x", 7) == 7
    assert to_int("+7", 0) == 7
    assert to_int("-12", 0) == -12
    assert trim_to_none("  a ") == "a"
    assert trim_to_none("   ") is None


def test_record_dump_contains_only_ciphertext(keyring) -> None:
    config = parse_configuration(_full_form())
    record = StoreRecord(configuration=config, coverage_by_project={"org/repo": 81.5})

    dumped = record.model_dump(mode="json")

    assert dumped["configuration"]["access_token"] == config.access_token.ciphertext
    assert "ghp_token" not in record.model_dump_json()
    assert "s3cret" not in record.model_dump_json()
    assert dumped["coverage_by_project"] == {"org/repo": 81.5}


def test_record_validation_restores_boxes(keyring) -> None:
    config = parse_configuration(_full_form())
    dumped = StoreRecord(configuration=config).model_dump(mode="json")

    restored = StoreRecord.model_validate(dumped)

    assert restored.configuration.access_token == config.access_token
    assert reveal(restored.configuration.secondary_service_password) == "s3cret"


def test_record_tolerates_bad_thresholds_on_disk(keyring) -> None:
    restored = StoreRecord.model_validate(
        {"configuration": {"yellow_threshold": "n/a", "green_threshold": None}}
    )

    assert restored.configuration.yellow_threshold == 80
    assert restored.configuration.green_threshold == 90


def test_record_rejects_token_from_unknown_key(keyring) -> None:
    foreign = Keyring.generate().encrypt("ghp_elsewhere")

    with pytest.raises(ValidationError, match="undecryptable with current keys"):
        StoreRecord.model_validate({"configuration": {"access_token": foreign}})
