"""Settings store shared by the coverage-status collaborators.

One :class:`SettingsStore` exists per process. It is built by
:func:`covstatus.bootstrap.bootstrap_store`, loaded once at start-up and then
handed by reference to the collaborators that need it:

- the coverage retriever and status renderer read configuration through
  :meth:`SettingsStore.get` or the read-only properties;
- the coverage computation records results through
  :meth:`SettingsStore.set_coverage`;
- the administrative surface replaces configuration through
  :meth:`SettingsStore.apply_configuration`.

Credentials are held as :class:`~covstatus.secret.SecretBox` values both in
memory and at rest; only the accessors above resolve them to plaintext.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import TypeAdapter, ValidationError

from covstatus.app.configuration import (
    DEFAULT_GREEN_THRESHOLD,
    DEFAULT_YELLOW_THRESHOLD,
    SECRET_FIELDS,
    StoreConfiguration,
    StoreRecord,
    parse_configuration,
)
from covstatus.app.ports import SettingsPersistencePort
from covstatus.errors import StoreNotLoadedError
from covstatus.secret import reveal, rewrap
from covstatus.utils.concurrency import StripedDict
from covstatus.utils.crypto import looks_like_fernet_token

logger = logging.getLogger(__name__)

_COVERAGE_VALUE = TypeAdapter(float)


class StoreState(str, Enum):
    UNLOADED = "unloaded"
    READY = "ready"


@dataclass(frozen=True, slots=True)
class SettingsSnapshot:
    """Read-only view of the configuration with credentials resolved."""

    api_base_url: str | None = None
    access_token: str | None = field(default=None, repr=False)
    jenkins_url: str | None = None
    proxied_jenkins: bool = False
    yellow_threshold: int = DEFAULT_YELLOW_THRESHOLD
    green_threshold: int = DEFAULT_GREEN_THRESHOLD
    use_secondary_analysis_for_baseline: bool = False
    disable_simple_cov: bool = False
    secondary_service_url: str | None = None
    secondary_service_token: str | None = field(default=None, repr=False)
    secondary_service_user: str | None = None
    secondary_service_password: str | None = field(default=None, repr=False)

    @classmethod
    def from_configuration(cls, configuration: StoreConfiguration) -> SettingsSnapshot:
        return cls(
            api_base_url=configuration.api_base_url,
            access_token=reveal(configuration.access_token),
            jenkins_url=configuration.jenkins_url,
            proxied_jenkins=configuration.proxied_jenkins,
            yellow_threshold=configuration.yellow_threshold,
            green_threshold=configuration.green_threshold,
            use_secondary_analysis_for_baseline=configuration.use_secondary_analysis_for_baseline,
            disable_simple_cov=configuration.disable_simple_cov,
            secondary_service_url=configuration.secondary_service_url,
            secondary_service_token=reveal(configuration.secondary_service_token),
            secondary_service_user=configuration.secondary_service_user,
            secondary_service_password=reveal(configuration.secondary_service_password),
        )

    def to_form_values(self) -> dict[str, Any]:
        """Return the snapshot keyed by administrative form names."""
        return {
            "apiBaseUrl": self.api_base_url,
            "accessToken": self.access_token,
            "yellowThreshold": self.yellow_threshold,
            "greenThreshold": self.green_threshold,
            "jenkinsUrl": self.jenkins_url,
            "proxiedJenkins": self.proxied_jenkins,
            "useSecondaryAnalysisForBaseline": self.use_secondary_analysis_for_baseline,
            "disableSimpleCov": self.disable_simple_cov,
            "secondaryServiceUrl": self.secondary_service_url,
            "secondaryServiceToken": self.secondary_service_token,
            "secondaryServiceUser": self.secondary_service_user,
            "secondaryServicePassword": self.secondary_service_password,
        }


class SettingsStore:
    """Persistent settings aggregate with a per-project coverage cache."""

    def __init__(self, persistence: SettingsPersistencePort, *, coverage_stripes: int = 16) -> None:
        """Create an unloaded store.

        Args:
            persistence: Durable storage for the settings record
            coverage_stripes: Lock stripes for the coverage map
        """
        self._persistence = persistence
        self._configuration = StoreConfiguration()
        self._coverage: StripedDict[str, float] = StripedDict(coverage_stripes)
        self._rejected: dict[str, Any] = {}
        self._save_lock = threading.Lock()
        self._state = StoreState.UNLOADED

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def configuration(self) -> StoreConfiguration:
        """Current configuration with credentials still sealed."""
        self._require_ready()
        return self._configuration

    # Lifecycle ---------------------------------------------------------

    def load(self) -> None:
        """Restore state from durable storage and normalise sealed credentials.

        Missing or unreadable records leave every field at its default. Stored
        entries that fail to decode fall back individually and are kept aside
        so the next save writes them back unchanged.

        Raises:
            PersistenceError: If the persistence port cannot read storage
        """
        data = self._persistence.load()
        record = self._decode(data)

        configuration = record.configuration
        rewrapped = {name: rewrap(box) for name, box in configuration.secret_fields().items()}
        if any(rewrapped[name] is not box for name, box in configuration.secret_fields().items()):
            logger.info("Re-sealed stored credentials with the current key.")
            configuration = configuration.model_copy(update=rewrapped)

        self._configuration = configuration
        self._coverage.replace_all(record.coverage_by_project)
        self._rejected = record.rejected
        if self._state is StoreState.READY:
            logger.debug("Settings store reloaded from storage.")
        self._state = StoreState.READY
        logger.debug(
            "Settings store ready with %d cached project(s).", len(record.coverage_by_project)
        )

    def save(self) -> None:
        """Write the full record through the persistence port.

        Raises:
            PersistenceError: If the persistence port cannot write storage
        """
        self._require_ready()
        with self._save_lock:
            record = StoreRecord(
                configuration=self._configuration,
                coverage_by_project=self._coverage.snapshot(),
                rejected=self._rejected,
            )
            self._persistence.save(record.model_dump(mode="json"))

    # Read contract ---------------------------------------------------

    def get(self) -> SettingsSnapshot:
        """Return every configuration value, credentials in plaintext."""
        self._require_ready()
        return SettingsSnapshot.from_configuration(self._configuration)

    @property
    def api_base_url(self) -> str | None:
        return self.configuration.api_base_url

    @property
    def access_token(self) -> str | None:
        return reveal(self.configuration.access_token)

    @property
    def jenkins_url(self) -> str | None:
        return self.configuration.jenkins_url

    @property
    def proxied_jenkins(self) -> bool:
        return self.configuration.proxied_jenkins

    @property
    def yellow_threshold(self) -> int:
        return self.configuration.yellow_threshold

    @property
    def green_threshold(self) -> int:
        return self.configuration.green_threshold

    @property
    def use_secondary_analysis_for_baseline(self) -> bool:
        return self.configuration.use_secondary_analysis_for_baseline

    @property
    def disable_simple_cov(self) -> bool:
        return self.configuration.disable_simple_cov

    @property
    def secondary_service_url(self) -> str | None:
        return self.configuration.secondary_service_url

    @property
    def secondary_service_token(self) -> str | None:
        return reveal(self.configuration.secondary_service_token)

    @property
    def secondary_service_user(self) -> str | None:
        return self.configuration.secondary_service_user

    @property
    def secondary_service_password(self) -> str | None:
        return reveal(self.configuration.secondary_service_password)

    def get_coverage(self, project: str) -> float | None:
        """Return the last recorded coverage for ``project``, if any."""
        self._require_ready()
        return self._coverage.get(project)

    def coverage_by_project(self) -> dict[str, float]:
        """Return a copy of the coverage cache."""
        self._require_ready()
        return self._coverage.snapshot()

    def rejected_entries(self) -> dict[str, Any]:
        """Return stored entries that could not be decoded on the last load."""
        self._require_ready()
        return copy.deepcopy(self._rejected)

    # Write contract --------------------------------------------------

    def set_coverage(self, project: str, coverage: float) -> None:
        """Record ``coverage`` for ``project`` and persist the store.

        Raises:
            PersistenceError: If the record cannot be written
        """
        self._require_ready()
        self._coverage.put(project, float(coverage))
        self.save()

    def apply_configuration(self, form_values: Mapping[str, Any]) -> StoreConfiguration:
        """Replace the configuration from administrative form input and persist it.

        The coverage cache is left untouched.

        Raises:
            ConfigurationValidationError: If ``form_values`` is not a mapping
            PersistenceError: If the record cannot be written
        """
        self._require_ready()
        configuration = parse_configuration(form_values)
        self._configuration = configuration
        logger.info("Configuration updated.")
        self.save()
        return configuration

    # Internals -------------------------------------------------------

    def _require_ready(self) -> None:
        if self._state is not StoreState.READY:
            raise StoreNotLoadedError("Settings store has not been loaded; call load() first.")

    @staticmethod
    def _decode(data: dict[str, Any] | None) -> StoreRecord:
        if data is None:
            return StoreRecord()
        rejected = data.get("rejected")
        if rejected is None:
            rejected = {}
        elif isinstance(rejected, dict):
            rejected = copy.deepcopy(rejected)
        else:
            rejected = {"rejected": rejected}
        return StoreRecord(
            configuration=_decode_configuration(data.get("configuration"), rejected),
            coverage_by_project=_decode_coverage(data.get("coverage_by_project"), rejected),
            rejected=rejected,
        )


def _set_aside(rejected: dict[str, Any], section: str, key: str, value: Any) -> None:
    bucket = rejected.get(section)
    if not isinstance(bucket, dict):
        bucket = {} if bucket is None else {"": bucket}
        rejected[section] = bucket
    bucket[key] = value


def _decode_configuration(raw: Any, rejected: dict[str, Any]) -> StoreConfiguration:
    """Decode the stored configuration field by field.

    Fields that fail to decode take their default and are set aside in
    ``rejected``. Credentials are only set aside while they still look like
    sealed tokens so nothing readable is carried forward.
    """
    if raw is None:
        return StoreConfiguration()
    if not isinstance(raw, dict):
        logger.warning("Stored configuration is not a mapping; using defaults.")
        _set_aside(rejected, "configuration", "", raw)
        return StoreConfiguration()
    try:
        return StoreConfiguration.model_validate(raw)
    except ValidationError as exc:
        problems = {str(error["loc"][0]): error["msg"] for error in exc.errors() if error["loc"]}

    for name, message in sorted(problems.items()):
        value = raw.get(name)
        logger.warning("Stored configuration field %s set aside: %s", name, message)
        if name in SECRET_FIELDS and not (
            isinstance(value, str) and looks_like_fernet_token(value)
        ):
            continue
        _set_aside(rejected, "configuration", name, value)
    return StoreConfiguration.model_validate(
        {name: value for name, value in raw.items() if name not in problems}
    )


def _decode_coverage(raw: Any, rejected: dict[str, Any]) -> dict[str, float]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        logger.warning("Stored coverage cache is not a mapping; starting empty.")
        _set_aside(rejected, "coverage_by_project", "", raw)
        return {}
    coverage: dict[str, float] = {}
    for project, value in raw.items():
        try:
            coverage[str(project)] = _COVERAGE_VALUE.validate_python(value)
        except ValidationError:
            _set_aside(rejected, "coverage_by_project", str(project), value)
    if len(coverage) < len(raw):
        logger.warning(
            "Set aside %d stored coverage value(s) that are not numbers.",
            len(raw) - len(coverage),
        )
    return coverage
