from __future__ import annotations


class ImposterError(Exception):
    """Base class for every error raised by imposter-mock."""


class AlreadyStartedError(ImposterError):
    pass


class InitializationError(ImposterError):
    """Prerequisite setup (version query, local config discovery) failed before spawn."""


class SpawnError(ImposterError):
    """The engine executable could not be launched at all."""


class AbnormalExitError(ImposterError):
    """
    The engine exited before becoming ready, or with a non-zero code.

    `advice` holds the debug advice text already appended to the message.
    """

    def __init__(self, message: str, *, exit_code: int | None, advice: str = "") -> None:
        super().__init__(f"{message}{advice}")
        self.exit_code = exit_code
        self.advice = advice


class ReadinessTimeoutError(ImposterError):
    def __init__(self, message: str, *, advice: str = "") -> None:
        super().__init__(f"{message}{advice}")
        self.advice = advice


class VersionQueryError(ImposterError):
    """The version command ran but exited non-zero."""

    def __init__(self, message: str, *, exit_code: int | None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class VersionParseError(ImposterError):
    def __init__(self, message: str, *, output: str) -> None:
        super().__init__(message)
        self.output = output


class NotInitializedError(ImposterError):
    pass


class MissingPortError(ImposterError):
    pass


class UnsupportedCliError(ImposterError):
    pass
