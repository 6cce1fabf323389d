from __future__ import annotations

import os
from functools import lru_cache


def parse_timeout_seconds(raw_value: str) -> float | None:
    """
    Parse a duration value with optional unit suffix.

    Supports:
        - Plain numbers (interpreted as seconds): "30", "0.5"
        - Time unit suffixes: "200ms", "30s", "5m", "1h"

    Returns None if the value is empty, invalid, or non-positive.
    """
    if not raw_value:
        return None
    try:
        value = float(raw_value)
        return value if value > 0 else None
    except ValueError:
        pass

    # "ms" must be tried before "s" and "m".
    units = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
    for suffix, multiplier in units.items():
        if raw_value.endswith(suffix):
            number = raw_value[: -len(suffix)].strip()
            try:
                value = float(number) * multiplier
                return value if value > 0 else None
            except ValueError:
                return None

    return None


def parse_bool(raw_value: str, default: bool) -> bool:
    raw = raw_value.strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    return default


class Settings:
    """
    Centralized configuration for imposter-mock.

    All settings are read from environment variables at access time,
    making them testable via monkeypatch. Per-mock values passed to
    `MockConfig` take precedence; these only supply the defaults.
    """

    @property
    def cli_binary(self) -> str:
        """Executable used to run the engine (IMPOSTER_CLI_BINARY). Default: imposter"""
        return (os.getenv("IMPOSTER_CLI_BINARY") or "imposter").strip()

    @property
    def ready_timeout_seconds(self) -> float | None:
        """
        Overall deadline for the readiness wait (IMPOSTER_READY_TIMEOUT).

        Supports unit suffixes (ms, s, m, h). Default: None, meaning poll
        until the engine answers or exits.
        """
        return parse_timeout_seconds((os.getenv("IMPOSTER_READY_TIMEOUT") or "").strip())

    @property
    def poll_interval_seconds(self) -> float:
        """Delay between readiness probes (IMPOSTER_POLL_INTERVAL). Default: 200ms"""
        parsed = parse_timeout_seconds((os.getenv("IMPOSTER_POLL_INTERVAL") or "").strip())
        return parsed if parsed is not None else 0.2

    @property
    def log_to_file(self) -> bool:
        """Persist engine output to a temp file (IMPOSTER_LOG_TO_FILE). Default: true"""
        return parse_bool(os.getenv("IMPOSTER_LOG_TO_FILE") or "", True)

    @property
    def log_verbose(self) -> bool:
        """Echo engine output to the logger (IMPOSTER_VERBOSE). Default: false"""
        return parse_bool(os.getenv("IMPOSTER_VERBOSE") or "", False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the singleton Settings instance.

    Note: lru_cache ensures we always return the same instance,
    but environment variables are still read at access time (via @property).
    """
    return Settings()
