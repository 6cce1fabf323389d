from __future__ import annotations

import enum
from pathlib import Path
from typing import Annotated, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .advice import build_debug_advice
from .errors import (
    AbnormalExitError,
    AlreadyStartedError,
    ImposterError,
    InitializationError,
    MissingPortError,
)
from .instance_context import set_mock_port
from .local_config import discover_local_config
from .observability import LogEvent, emit_span_event, get_logger
from .ports import assign_free_port
from .readiness import wait_until_ready
from .settings import get_settings
from .supervisor import ProcessSupervisor, build_cli_args
from .version import VersionReader, get_version_reader


class MockConfig(BaseModel):
    """
    Immutable per-mock configuration.

    Defaults for logging and readiness come from `Settings` (IMPOSTER_* env vars).
    """

    model_config = ConfigDict(frozen=True)

    config_dir: Path
    port: Annotated[int, Field(ge=1, le=65535)] | None = None
    log_verbose: bool = Field(default_factory=lambda: get_settings().log_verbose)
    log_to_file: bool = Field(default_factory=lambda: get_settings().log_to_file)
    ready_timeout: Annotated[float, Field(gt=0)] | None = Field(
        default_factory=lambda: get_settings().ready_timeout_seconds
    )
    poll_interval: float = Field(default_factory=lambda: get_settings().poll_interval_seconds, gt=0)

    def verbose(self) -> MockConfig:
        """Copy of this config with engine output echoed to the logger."""
        return self.model_copy(update={"log_verbose": True})


class MockState(str, enum.Enum):
    CREATED = "created"
    STARTING = "starting"
    READY = "ready"
    STOPPED = "stopped"


class ConfiguredMock:
    """
    One mock engine instance for a test suite.

    Usage:
        async with ConfiguredMock("tests/mocks/orders", 8080) as mock:
            httpx.get(f"{mock.base_url()}/orders")

    A stopped mock cannot be started again; construct a new one.
    """

    def __init__(
        self,
        config: MockConfig | str | Path,
        port: int | None = None,
        *,
        version_reader: VersionReader | None = None,
        binary: str | None = None,
        status_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not isinstance(config, MockConfig):
            config = MockConfig(config_dir=Path(config), port=port)
        elif port is not None:
            config = config.model_copy(update={"port": port})
        self.config = config
        self.version_reader = version_reader or get_version_reader()
        self._binary = binary
        self._status_transport = status_transport
        self._port = config.port
        self._supervisor: ProcessSupervisor | None = None
        self.state = MockState.CREATED

    @property
    def port(self) -> int | None:
        return self._port

    @property
    def log_file_path(self) -> str | None:
        return self._supervisor.log_file_path if self._supervisor is not None else None

    @property
    def pid(self) -> int | None:
        return self._supervisor.pid if self._supervisor is not None else None

    @property
    def binary(self) -> str:
        return self._binary or self.version_reader.binary

    @property
    def exit_error(self) -> AbnormalExitError | None:
        """Set when the engine exited on its own with a non-zero code."""
        return self._supervisor.exit_error if self._supervisor is not None else None

    def _on_engine_exit(self, code: int) -> None:
        if self.state in (MockState.STARTING, MockState.READY):
            self.state = MockState.STOPPED

    def verbose(self) -> ConfiguredMock:
        if self.state is not MockState.CREATED:
            raise AlreadyStartedError("verbose() must be set before start()")
        self.config = self.config.verbose()
        return self

    def base_url(self) -> str:
        if self._port is None:
            raise MissingPortError("Cannot get base URL before starting mock unless port explicitly set")
        return f"http://localhost:{self._port}"

    def debug_advice(self) -> str:
        return build_debug_advice(
            self.config.log_to_file,
            self.config.log_verbose,
            self.log_file_path,
            self.version_reader,
        )

    async def _prepare(self) -> Path | None:
        try:
            await self.version_reader.init_if_required()
            return discover_local_config()
        except ImposterError as exc:
            raise InitializationError(f"Error during initialisation: {exc}") from exc

    async def start(self) -> ConfiguredMock:
        if self.state is not MockState.CREATED:
            raise AlreadyStartedError(f"Mock on port {self._port} already started")
        self.state = MockState.STARTING
        logger = get_logger()

        try:
            local_config = await self._prepare()
            cli = self.version_reader.determine_cli_version().cli

            if self._port is None:
                self._port = assign_free_port()
                logger.debug(
                    f"Assigned free port {self._port}",
                    extra={"event": LogEvent.MOCK_PORT_ASSIGNED, "port": self._port},
                )
            set_mock_port(self._port)

            args = build_cli_args(cli, self.config.config_dir, self._port, local_config)
            if local_config is not None and self.config.log_verbose:
                logger.debug(
                    f"Using project configuration: {local_config}",
                    extra={"event": LogEvent.ENGINE_LOCAL_CONFIG, "port": self._port},
                )

            logger.info(
                f"Starting mock engine for {self.config.config_dir} on port {self._port}",
                extra={"event": LogEvent.MOCK_START, "port": self._port, "config_dir": str(self.config.config_dir)},
            )
            emit_span_event(LogEvent.MOCK_START, port=self._port, config_dir=str(self.config.config_dir))

            self._supervisor = ProcessSupervisor(
                binary=self.binary,
                port=self._port,
                log_verbose=self.config.log_verbose,
                log_to_file=self.config.log_to_file,
                debug_advice=lambda path: build_debug_advice(
                    self.config.log_to_file, self.config.log_verbose, path, self.version_reader
                ),
                on_exit=self._on_engine_exit,
            )
            proc = await self._supervisor.start(args)
            await wait_until_ready(
                proc,
                self._port,
                poll_interval=self.config.poll_interval,
                timeout=self.config.ready_timeout,
                transport=self._status_transport,
                advice=self.debug_advice,
            )
        except BaseException as exc:
            logger.warning(
                f"Mock engine on port {self._port} failed to start: {exc}",
                extra={"event": LogEvent.MOCK_START_FAILED, "port": self._port},
            )
            await self.stop()
            raise

        # The engine may have exited right after answering the status check.
        if self.state is MockState.STARTING:
            self.state = MockState.READY
        return self

    async def stop(self) -> None:
        """Kill the engine and close the log file. Safe to call in any state."""
        if self.state is not MockState.CREATED:
            self.state = MockState.STOPPED
        if self._supervisor is None:
            get_logger().debug(
                f"Mock server on port {self._port} was not running",
                extra={"event": LogEvent.MOCK_NOT_RUNNING, "port": self._port},
            )
            return
        await self._supervisor.stop()
        emit_span_event(LogEvent.MOCK_STOP, port=self._port)

    async def __aenter__(self) -> ConfiguredMock:
        return await self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()
