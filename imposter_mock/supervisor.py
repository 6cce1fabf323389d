from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

from .errors import AbnormalExitError, AlreadyStartedError, SpawnError, UnsupportedCliError
from .log_router import LogFile, create_log_file, write_chunk
from .observability import LogEvent, emit_span_event, get_logger

_CHUNK_SIZE = 4096
_KILL_WAIT_SECONDS = 5.0
_DRAIN_WAIT_SECONDS = 1.0


def build_cli_args(
    cli: str,
    config_dir: str | Path,
    port: int,
    local_config: Path | None = None,
) -> list[str]:
    """Arguments for the engine launcher; the two CLI variants differ in shape."""
    if cli == "imposter-cli":
        args = ["up", str(config_dir), f"--port={port}", "--auto-restart=false"]
    elif cli == "imposter":
        args = [f"--configDir={config_dir}", f"--listenPort={port}"]
    else:
        raise UnsupportedCliError("Failed to find an appropriate imposter cli to run")

    if local_config is not None:
        args.append(f"--config={local_config}")
    return args


class ProcessSupervisor:
    """
    Owns one engine process: spawn, output routing, exit tracking and kill.

    A failed readiness wait does not kill the process here; the owning mock
    calls stop(). `on_exit` is called with the exit code once the process
    has exited, whether killed by stop() or not.
    """

    def __init__(
        self,
        *,
        binary: str,
        port: int,
        log_verbose: bool,
        log_to_file: bool,
        debug_advice: Callable[[str | None], str],
        on_exit: Callable[[int], None] | None = None,
    ) -> None:
        self.binary = binary
        self.port = port
        self.log_verbose = log_verbose
        self.log_to_file = log_to_file
        self._debug_advice = debug_advice
        self._on_exit = on_exit
        self.process: asyncio.subprocess.Process | None = None
        self.log_file: LogFile | None = None
        self.exit_error: AbnormalExitError | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._stopping = False

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None

    @property
    def returncode(self) -> int | None:
        return self.process.returncode if self.process is not None else None

    @property
    def log_file_path(self) -> str | None:
        return str(self.log_file.path) if self.log_file is not None else None

    def debug_advice(self) -> str:
        return self._debug_advice(self.log_file_path)

    async def start(self, args: list[str]) -> asyncio.subprocess.Process:
        if self.process is not None:
            raise AlreadyStartedError(f"Mock on port {self.port} already started")

        logger = get_logger()
        if self.log_to_file and self.log_file is None:
            self.log_file = create_log_file()

        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise SpawnError(
                f"Error running '{self.binary}' command. Is Imposter CLI installed?\n{exc}"
            ) from exc

        self.process = proc
        logger.debug(
            f"Spawned {self.binary} {' '.join(args)}",
            extra={"event": LogEvent.ENGINE_SPAWNED, "port": self.port, "pid": proc.pid},
        )
        emit_span_event(LogEvent.ENGINE_SPAWNED, port=self.port, pid=proc.pid)

        def to_console(level: int, event: str) -> Callable[[str], None]:
            def _log(text: str) -> None:
                logger.log(level, text, extra={"event": event, "port": self.port})

            return _log

        self._tasks = [
            asyncio.create_task(self._pump(proc.stdout, to_console(logging.INFO, LogEvent.ENGINE_STDOUT))),
            asyncio.create_task(self._pump(proc.stderr, to_console(logging.WARNING, LogEvent.ENGINE_STDERR))),
            asyncio.create_task(self._watch_exit(proc)),
        ]
        return proc

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        console_fn: Callable[[str], None],
    ) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                return
            write_chunk(chunk, self.log_verbose, self.log_to_file, console_fn, self.log_file)

    async def _watch_exit(self, proc: asyncio.subprocess.Process) -> None:
        logger = get_logger()
        code = await proc.wait()
        emit_span_event(LogEvent.ENGINE_EXIT, port=self.port, exit_code=code)
        if code == 0 or self._stopping:
            if self.log_verbose:
                logger.debug(
                    "Imposter process terminated",
                    extra={"event": LogEvent.ENGINE_EXIT, "port": self.port, "exit_code": code},
                )
        else:
            self.exit_error = AbnormalExitError(
                f"Imposter process terminated with code: {code}.",
                exit_code=code,
                advice=self.debug_advice(),
            )
            logger.warning(
                str(self.exit_error),
                extra={"event": LogEvent.ENGINE_EXIT, "port": self.port, "exit_code": code},
            )
        if self._on_exit is not None:
            self._on_exit(code)

    async def stop(self) -> None:
        """
        Kill the engine and reap it, then close the log file.

        Kill failures are logged, not raised. The log file is closed even
        when the caller is cancelled mid-stop.
        """
        try:
            await self._kill()
        finally:
            try:
                await self._drain_tasks()
            finally:
                if self.log_file is not None:
                    self.log_file.close()

    async def _kill(self) -> None:
        logger = get_logger()
        proc = self.process
        if proc is None or proc.pid is None:
            logger.debug(
                f"Mock server on port {self.port} was not running",
                extra={"event": LogEvent.MOCK_NOT_RUNNING, "port": self.port},
            )
        elif proc.returncode is not None:
            logger.debug(
                f"Mock server on port {self.port} already exited with code {proc.returncode}",
                extra={"event": LogEvent.MOCK_NOT_RUNNING, "port": self.port, "exit_code": proc.returncode},
            )
        else:
            self._stopping = True
            try:
                logger.debug(
                    f"Stopping mock server with pid {proc.pid}",
                    extra={"event": LogEvent.MOCK_STOP, "port": self.port, "pid": proc.pid},
                )
                proc.kill()
                await asyncio.wait_for(proc.wait(), timeout=_KILL_WAIT_SECONDS)
            except Exception as exc:  # noqa: BLE001 - teardown must not raise
                logger.warning(
                    f"Error stopping mock server with pid {proc.pid}: {exc}",
                    extra={"event": LogEvent.MOCK_STOP_FAILED, "port": self.port, "pid": proc.pid},
                )

    async def _drain_tasks(self) -> None:
        tasks, self._tasks = self._tasks, []
        if not tasks:
            return
        try:
            await asyncio.wait(tasks, timeout=_DRAIN_WAIT_SECONDS)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
