"""Typed administrative configuration and the form parser that produces it.

Raw form input is untyped key/value data. :func:`parse_configuration` turns it
into an immutable :class:`StoreConfiguration` following :data:`FORM_FIELDS`;
every field has a parser and a default used when the input is missing or does
not parse. Credential fields are sealed as soon as they are parsed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from covstatus.errors import ConfigurationValidationError
from covstatus.secret import SecretBox, wrap

logger = logging.getLogger(__name__)

DEFAULT_YELLOW_THRESHOLD = 80
DEFAULT_GREEN_THRESHOLD = 90

_TRUE_TOKENS = frozenset({"true", "on", "yes", "y", "t", "1"})
_INTEGER = re.compile(r"[+-]?[0-9]+")


def trim_to_none(value: Any, default: str | None = None) -> str | None:
    """Strip ``value``; empty or missing input yields ``default``."""
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def to_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_TOKENS
    return default


def to_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if _INTEGER.fullmatch(text):
            return int(text, 10)
        return default
    return default


def to_secret(value: Any, default: SecretBox | None = None) -> SecretBox | None:
    if isinstance(value, SecretBox):
        return value
    return wrap(trim_to_none(value)) or default


class StoreConfiguration(BaseModel):
    """Administrative configuration held by the settings store."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    api_base_url: str | None = Field(default=None, description="Base URL of the code-hosting API")
    access_token: SecretBox | None = Field(default=None, description="API access token (sealed)")
    jenkins_url: str | None = Field(default=None, description="Public base URL of the CI server")
    proxied_jenkins: bool = Field(
        default=False,
        description="CI server sits behind a public proxy with a different address",
    )
    yellow_threshold: int = Field(
        default=DEFAULT_YELLOW_THRESHOLD, description="Coverage percentage for yellow status"
    )
    green_threshold: int = Field(
        default=DEFAULT_GREEN_THRESHOLD, description="Coverage percentage for green status"
    )
    use_secondary_analysis_for_baseline: bool = Field(
        default=False,
        description="Take baseline coverage from the secondary analysis service",
    )
    disable_simple_cov: bool = Field(
        default=False, description="Ignore SimpleCov reports when computing coverage"
    )
    secondary_service_url: str | None = Field(default=None)
    secondary_service_token: SecretBox | None = Field(default=None)
    secondary_service_user: str | None = Field(default=None)
    secondary_service_password: SecretBox | None = Field(default=None)

    @field_validator(
        "api_base_url",
        "jenkins_url",
        "secondary_service_url",
        "secondary_service_user",
        mode="before",
    )
    @staticmethod
    def _normalize_text(value: Any) -> str | None:
        return trim_to_none(value)

    @field_validator(
        "proxied_jenkins",
        "use_secondary_analysis_for_baseline",
        "disable_simple_cov",
        mode="before",
    )
    @staticmethod
    def _normalize_flag(value: Any) -> bool:
        return to_bool(value)

    @field_validator("yellow_threshold", mode="before")
    @staticmethod
    def _normalize_yellow(value: Any) -> int:
        return to_int(value, DEFAULT_YELLOW_THRESHOLD)

    @field_validator("green_threshold", mode="before")
    @staticmethod
    def _normalize_green(value: Any) -> int:
        return to_int(value, DEFAULT_GREEN_THRESHOLD)

    @field_validator(
        "access_token",
        "secondary_service_token",
        "secondary_service_password",
        mode="before",
    )
    @staticmethod
    def _drop_empty_secret(value: Any) -> Any:
        return None if value == "" else value

    def secret_fields(self) -> dict[str, SecretBox | None]:
        return {name: getattr(self, name) for name in SECRET_FIELDS}


SECRET_FIELDS: tuple[str, ...] = (
    "access_token",
    "secondary_service_token",
    "secondary_service_password",
)


@dataclass(frozen=True, slots=True)
class FormField:
    """One row of the form defaulting table."""

    key: str
    field: str
    parser: Callable[[Any, Any], Any]
    default: Any = None

    def parse(self, form_values: Mapping[str, Any]) -> Any:
        return self.parser(form_values.get(self.key), self.default)


FORM_FIELDS: tuple[FormField, ...] = (
    FormField("apiBaseUrl", "api_base_url", trim_to_none),
    FormField("accessToken", "access_token", to_secret),
    FormField("yellowThreshold", "yellow_threshold", to_int, DEFAULT_YELLOW_THRESHOLD),
    FormField("greenThreshold", "green_threshold", to_int, DEFAULT_GREEN_THRESHOLD),
    FormField("jenkinsUrl", "jenkins_url", trim_to_none),
    FormField("proxiedJenkins", "proxied_jenkins", to_bool, False),
    FormField(
        "useSecondaryAnalysisForBaseline", "use_secondary_analysis_for_baseline", to_bool, False
    ),
    FormField("disableSimpleCov", "disable_simple_cov", to_bool, False),
    FormField("secondaryServiceUrl", "secondary_service_url", trim_to_none),
    FormField("secondaryServiceToken", "secondary_service_token", to_secret),
    FormField("secondaryServiceUser", "secondary_service_user", trim_to_none),
    FormField("secondaryServicePassword", "secondary_service_password", to_secret),
)

FORM_KEYS = frozenset(row.key for row in FORM_FIELDS)


def parse_configuration(form_values: Mapping[str, Any]) -> StoreConfiguration:
    """Build a :class:`StoreConfiguration` from raw administrative form input.

    Missing or unparseable fields take their table default; only input that is
    not a mapping at all is rejected.

    Raises:
        ConfigurationValidationError: If ``form_values`` is not a mapping
    """
    if not isinstance(form_values, Mapping):
        raise ConfigurationValidationError(
            f"Configuration form must be a mapping, got {type(form_values).__name__}"
        )

    unknown = sorted(str(key) for key in form_values if key not in FORM_KEYS)
    if unknown:
        logger.debug("Ignoring unrecognized configuration keys: %s", ", ".join(unknown))

    return StoreConfiguration(**{row.field: row.parse(form_values) for row in FORM_FIELDS})


class StoreRecord(BaseModel):
    """Logical record written to durable storage."""

    schema_version: int = Field(default=1, description="Record layout version")
    configuration: StoreConfiguration = Field(default_factory=StoreConfiguration)
    coverage_by_project: dict[str, float] = Field(default_factory=dict)
    rejected: dict[str, Any] = Field(
        default_factory=dict,
        description="Stored entries that failed to decode, kept verbatim by section",
    )
