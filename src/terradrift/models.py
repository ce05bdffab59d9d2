"""Shared domain models for TerraDrift Watcher."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, List, Mapping, Optional, Tuple, Union

from .errors import ConfigError, WatcherError


class ProviderKind(str, Enum):
    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> "ProviderKind":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class Classification(IntEnum):
    """Meaning of a ``terraform plan -detailed-exitcode`` result."""

    CLEAN = 0
    ERROR = 1
    DRIFTED = 2


def classify_exit_code(exit_code: int) -> Classification:
    if exit_code == 0:
        return Classification.CLEAN
    if exit_code == 2:
        return Classification.DRIFTED
    return Classification.ERROR


@dataclass(frozen=True)
class Project:
    """A Terraform root module to check for drift."""

    name: str
    path: str
    auth_profile: Optional[str] = None
    notifiers: Tuple[str, ...] = ()
    enabled: bool = True


@dataclass(frozen=True)
class CredentialProfile:
    name: str
    provider: ProviderKind
    config: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AlertChannel:
    name: str
    kind: str
    config: Mapping[str, str] = field(default_factory=dict)
    enabled: bool = True


@dataclass(frozen=True)
class WatcherConfig:
    """Projects, auth profiles and notifiers loaded from one config file."""

    projects: Tuple[Project, ...]
    auth_profiles: Tuple[CredentialProfile, ...] = ()
    notifiers: Tuple[AlertChannel, ...] = ()
    settings: Mapping[str, Any] = field(default_factory=dict)

    def get_auth_profile(self, name: str) -> CredentialProfile:
        for profile in self.auth_profiles:
            if profile.name == name:
                return profile
        raise ConfigError(f"Auth profile not found: {name}")

    def get_notifier(self, name: str) -> AlertChannel:
        for notifier in self.notifiers:
            if notifier.name == name:
                return notifier
        raise ConfigError(f"Notifier not found: {name}")


@dataclass(frozen=True)
class NoDrift:
    output: str = ""


@dataclass(frozen=True)
class DriftDetected:
    summary: str
    raw_output: str


@dataclass(frozen=True)
class ComparisonFailed:
    error: WatcherError
    output: str = ""


ComparisonOutcome = Union[NoDrift, DriftDetected, ComparisonFailed]


@dataclass(frozen=True)
class RunLockHandle:
    """Ownership of the run slot; the marker file is the source of truth."""

    path: str
    pid: int
    acquired_at: datetime


@dataclass
class ProjectReport:
    name: str
    status: str
    error: Optional[str] = None
    notified: int = 0


@dataclass
class RunResult:
    """Aggregate outcome of one invocation across all projects."""

    drift_detected: bool = False
    errors: List[str] = field(default_factory=list)
    projects: List[ProjectReport] = field(default_factory=list)

    @property
    def any_error_occurred(self) -> bool:
        return bool(self.errors)

    @property
    def error(self) -> Optional[WatcherError]:
        if not self.errors:
            return None
        return WatcherError("Drift detection completed with errors")

    def record_error(self, message: str):
        self.errors.append(message)

