from __future__ import annotations

from .errors import (
    AbnormalExitError,
    AlreadyStartedError,
    ImposterError,
    InitializationError,
    MissingPortError,
    NotInitializedError,
    ReadinessTimeoutError,
    SpawnError,
    UnsupportedCliError,
    VersionParseError,
    VersionQueryError,
)
from .manager import MockManager
from .mock import ConfiguredMock, MockConfig, MockState
from .observability import setup_observability
from .version import CliVersion, VersionReader, get_version_reader, version_at_least

__all__ = [
    "AbnormalExitError",
    "AlreadyStartedError",
    "CliVersion",
    "ConfiguredMock",
    "ImposterError",
    "InitializationError",
    "MissingPortError",
    "MockConfig",
    "MockManager",
    "MockState",
    "NotInitializedError",
    "ReadinessTimeoutError",
    "SpawnError",
    "UnsupportedCliError",
    "VersionParseError",
    "VersionQueryError",
    "VersionReader",
    "get_version_reader",
    "setup_observability",
    "version_at_least",
]
