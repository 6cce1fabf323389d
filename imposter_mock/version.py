from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Literal, TypeVar

from .errors import NotInitializedError, SpawnError, VersionParseError, VersionQueryError
from .observability import LogEvent, get_logger
from .settings import get_settings

CliKind = Literal["imposter-cli", "imposter"]

T = TypeVar("T")

_VERSION_PREFIX = "Version: "
_SEMVER = r"(\d+)\.(\d+)\.(\d+)"


@dataclass(frozen=True)
class CliVersion:
    major: int
    minor: int
    revision: int
    cli: CliKind = "imposter-cli"

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.revision}"


def version_at_least(required: CliVersion, test: CliVersion) -> bool:
    """True if `test` is equal to or newer than `required` (major, then minor, then revision)."""
    return (test.major, test.minor, test.revision) >= (
        required.major,
        required.minor,
        required.revision,
    )


class VersionReader:
    """
    Queries the installed CLI for its version, once.

    The raw output and the parsed version are cached for the lifetime of the
    reader; the installed tool is assumed not to change during a test run.
    The init lock is created per event loop, so a shared reader can be used
    from successive loops (e.g. one `asyncio.run` per test).
    """

    def __init__(self, *, binary: str | None = None) -> None:
        self._binary = binary
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None
        self._version_output: str | None = None
        self._cli_version: CliVersion | None = None

    def _init_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    @property
    def binary(self) -> str:
        return self._binary or get_settings().cli_binary

    @property
    def initialized(self) -> bool:
        return self._version_output is not None

    async def init_if_required(self) -> None:
        if self._version_output is not None:
            return
        async with self._init_lock():
            # Another caller may have finished while we waited.
            if self._version_output is not None:
                return
            try:
                output = await self.invoke_version_command("version")
            except VersionQueryError as exc:
                get_logger().debug(
                    "Version subcommand failed; retrying with --version",
                    extra={"event": LogEvent.VERSION_QUERY_FALLBACK, "exit_code": exc.exit_code},
                )
                output = await self.invoke_version_command("--version")
            self._version_output = output

    async def invoke_version_command(self, arg: str = "version") -> str:
        """Run `<binary> <arg>` and return stdout and stderr combined."""
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                arg,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise SpawnError(
                f"Error determining version from '{self.binary}' command. "
                f"Is Imposter CLI installed?\n{exc}"
            ) from exc

        stdout, _ = await proc.communicate()
        if proc.returncode != 0:
            raise VersionQueryError(
                f"Error determining version. Imposter process terminated with code: {proc.returncode}",
                exit_code=proc.returncode,
            )
        return stdout.decode("utf-8", errors="replace")

    def _require_output(self) -> str:
        if self._version_output is None:
            raise NotInitializedError("init_if_required() not called")
        return self._version_output

    def determine_version(self, component_name: str) -> CliVersion:
        """
        Parse the version of one CLI component.

        Expects output of the form:

            imposter-cli 0.1.0
            imposter-engine 0.1.0
        """
        output = self._require_output()
        pattern = re.compile(rf"^\s*{re.escape(component_name)}\s+{_SEMVER}")
        for line in output.splitlines():
            match = pattern.match(line)
            if match:
                major, minor, revision = (int(part) for part in match.groups())
                return CliVersion(major, minor, revision, cli="imposter-cli")
        raise VersionParseError(f"Error parsing version '{output}'", output=output)

    def determine_cli_version(self) -> CliVersion:
        if self._cli_version is not None:
            return self._cli_version

        try:
            version = self.determine_version("imposter-cli")
        except VersionParseError as exc:
            # Older engine launchers print a single "Version: X.Y.Z" line.
            output = exc.output
            match = re.match(rf"{_VERSION_PREFIX}{_SEMVER}", output.strip())
            if not output.startswith(_VERSION_PREFIX) or not match:
                raise
            major, minor, revision = (int(part) for part in match.groups())
            version = CliVersion(major, minor, revision, cli="imposter")

        self._cli_version = version
        get_logger().debug(
            f"Detected {version.cli} {version}",
            extra={"event": LogEvent.VERSION_DETECTED, "meta": {"cli": version.cli, "version": str(version)}},
        )
        return version

    def run_if_version_at_least(
        self,
        major: int,
        minor: int,
        revision: int,
        block: Callable[[], T],
        or_else: Callable[[], T] | None = None,
    ) -> T | None:
        """Run `block` if the CLI is at least major.minor.revision, else `or_else` if given."""
        cli_version = self.determine_cli_version()
        if version_at_least(CliVersion(major, minor, revision), cli_version):
            return block()
        if or_else is not None:
            return or_else()
        return None


@lru_cache(maxsize=1)
def get_version_reader() -> VersionReader:
    """Process-wide reader shared by mocks that are not given their own."""
    return VersionReader()
