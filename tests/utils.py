from __future__ import annotations

import asyncio
import json
import shlex
import socket
import stat
import sys
from pathlib import Path

from imposter_mock.errors import VersionQueryError
from imposter_mock.version import VersionReader

FAKE_ENGINE = Path(__file__).resolve().parent / "fake_engine.py"

DEFAULT_VERSION_OUTPUT = "imposter-cli 0.7.0\nimposter-engine 4.2.1\n"


class FakeVersionReader(VersionReader):
    """
    VersionReader with canned `version` output; records each invocation.

    Arguments listed in `fail_args` behave like a CLI that exits non-zero.
    """

    def __init__(
        self,
        output: str = DEFAULT_VERSION_OUTPUT,
        *,
        fail_args: tuple[str, ...] = (),
        binary: str | None = None,
    ) -> None:
        super().__init__(binary=binary)
        self.output = output
        self.fail_args = set(fail_args)
        self.calls: list[str] = []

    async def invoke_version_command(self, arg: str = "version") -> str:
        self.calls.append(arg)
        # Yield so concurrent callers genuinely overlap.
        await asyncio.sleep(0)
        if arg in self.fail_args:
            raise VersionQueryError(f"Error determining version ({arg})", exit_code=1)
        return self.output


async def initialized_reader(output: str = DEFAULT_VERSION_OUTPUT) -> FakeVersionReader:
    reader = FakeVersionReader(output)
    await reader.init_if_required()
    return reader


def write_launcher(directory: Path) -> Path:
    """Executable `imposter` shim that runs the fake engine with this interpreter."""
    launcher = directory / "imposter"
    launcher.write_text(
        "#!/bin/sh\n"
        f'exec {shlex.quote(sys.executable)} {shlex.quote(str(FAKE_ENGINE))} "$@"\n'
    )
    launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return launcher


def read_probe_count(path: Path) -> int:
    if not path.exists():
        return 0
    raw = path.read_text().strip()
    return int(raw) if raw.isdigit() else 0


def read_launch_args(path: Path) -> list[str]:
    return json.loads(path.read_text())


def can_bind(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind(("localhost", port))
        except OSError:
            return False
    return True
