from __future__ import annotations

import sys
from pathlib import Path

import pytest

from .utils import FakeVersionReader, write_launcher

_ENV_KEYS = (
    "IMPOSTER_CLI_BINARY",
    "IMPOSTER_READY_TIMEOUT",
    "IMPOSTER_POLL_INTERVAL",
    "IMPOSTER_LOG_TO_FILE",
    "IMPOSTER_VERBOSE",
    "FAKE_ENGINE_VERSION_OUTPUT",
    "FAKE_ENGINE_FAIL_VERSION_SUBCOMMAND",
    "FAKE_ENGINE_EXIT_CODE",
    "FAKE_ENGINE_READY_AFTER",
    "FAKE_ENGINE_PROBE_FILE",
    "FAKE_ENGINE_ARGS_FILE",
)


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path, monkeypatch) -> None:
    """
    Each test runs from an empty working directory (no `.imposterrc*` to
    discover) with no IMPOSTER_* / FAKE_ENGINE_* variables leaking in.
    """
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture
def launcher(tmp_path) -> Path:
    """
    Path of an `imposter` executable backed by tests/fake_engine.py.

    Usage:
        def test_something(launcher, monkeypatch):
            monkeypatch.setenv("FAKE_ENGINE_READY_AFTER", "3")
            mock = ConfiguredMock(config, version_reader=VersionReader(binary=str(launcher)))
    """
    if sys.platform == "win32":
        pytest.skip("launcher shim is a POSIX shell script")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    return write_launcher(bin_dir)


@pytest.fixture
def engine_files(tmp_path, monkeypatch) -> dict[str, Path]:
    """Files the fake engine reports into: launch args and status probe count."""
    files = {
        "args": tmp_path / "engine-args.json",
        "probes": tmp_path / "engine-probes.txt",
    }
    monkeypatch.setenv("FAKE_ENGINE_ARGS_FILE", str(files["args"]))
    monkeypatch.setenv("FAKE_ENGINE_PROBE_FILE", str(files["probes"]))
    return files


@pytest.fixture
def mock_dir(tmp_path) -> Path:
    config_dir = tmp_path / "mocks" / "stock-service"
    config_dir.mkdir(parents=True)
    (config_dir / "stock-config.yaml").write_text("plugin: rest\nresources: []\n")
    return config_dir


@pytest.fixture
def fake_reader(launcher) -> FakeVersionReader:
    """Canned `imposter-cli 0.7.0` version output; spawns the fake engine for real."""
    return FakeVersionReader(binary=str(launcher))


@pytest.fixture
def anyio_backend() -> str:
    """The library is built on asyncio (subprocesses, locks, gather)."""
    return "asyncio"
