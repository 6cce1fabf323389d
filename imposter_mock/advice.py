from __future__ import annotations

from .errors import ImposterError
from .version import VersionReader

DOCTOR_MIN_VERSION = (0, 6, 2)


def build_debug_advice(
    log_to_file: bool,
    log_verbose: bool,
    log_file_path: str | None,
    version_reader: VersionReader,
) -> str:
    """
    Troubleshooting hints appended to engine failure messages.

    Each hint starts on a new line; hints whose condition is false are left out.
    """
    advice = ""
    if log_to_file:
        advice += f"\nSee log file: {log_file_path}"
    if not log_verbose:
        advice += "\nConsider setting .verbose() on your mock for more details."
    try:
        doctor_available = version_reader.run_if_version_at_least(
            *DOCTOR_MIN_VERSION, lambda: True, lambda: False
        )
    except ImposterError:
        # Unknown CLI version; the hint is optional.
        doctor_available = False
    if doctor_available:
        advice += "\nRun 'imposter doctor' to diagnose engine issues."
    return advice
