from __future__ import annotations

import tempfile
from pathlib import Path
from typing import BinaryIO, Callable, Protocol

from .observability import LogEvent, get_logger

LOG_FILE_NAME = "imposter.log"


class ChunkSink(Protocol):
    def write(self, chunk: bytes) -> object: ...


def write_chunk(
    chunk: bytes | str | None,
    log_verbose: bool,
    log_to_file: bool,
    console_fn: Callable[[str], object] | None,
    log_file: ChunkSink | None,
) -> None:
    """
    Route one chunk of engine output.

    Verbose output goes to `console_fn` trimmed; file output is written raw.
    File write failures are ignored so logging never breaks a running mock.
    """
    if not chunk:
        return
    if log_verbose and console_fn is not None:
        text = chunk.decode("utf-8", errors="replace") if isinstance(chunk, bytes) else chunk
        console_fn(text.strip())
    if log_to_file:
        try:
            log_file.write(chunk)  # type: ignore[union-attr]
        except Exception:  # noqa: BLE001 - logging must not crash the session
            pass


class LogFile:
    """Binary log file owned by a single mock; closed at most once."""

    def __init__(self, path: Path, stream: BinaryIO) -> None:
        self.path = path
        self._stream = stream
        self._closed = False

    def write(self, chunk: bytes | str) -> None:
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._stream.write(chunk)
        self._stream.flush()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.close()
        except Exception:  # noqa: BLE001 - the engine is being torn down anyway
            pass


def create_log_file() -> LogFile:
    """
    Open `imposter.log` in a fresh `imposter*` temp directory.

    The directory is left in place after the mock stops.
    """
    directory = Path(tempfile.mkdtemp(prefix="imposter"))
    path = directory / LOG_FILE_NAME
    log_file = LogFile(path, path.open("wb"))
    get_logger().info(
        f"Logging to {path}",
        extra={"event": LogEvent.ENGINE_LOG_FILE, "log_file": str(path)},
    )
    return log_file
