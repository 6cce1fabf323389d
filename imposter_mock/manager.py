from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from .mock import ConfiguredMock, MockConfig
from .observability import LogEvent, get_logger
from .version import VersionReader, get_version_reader


class MockManager:
    """
    Tracks the mocks a test suite starts so they can be stopped together.

    Usage:
        mocks = MockManager()
        await asyncio.gather(
            mocks.start("third-party/stock-service", 9080),
            mocks.start("third-party/order-service", 9081),
        )
        ...
        await mocks.stop_all()
    """

    def __init__(
        self,
        *,
        version_reader: VersionReader | None = None,
        binary: str | None = None,
    ) -> None:
        self.version_reader = version_reader or get_version_reader()
        self._binary = binary
        self._mocks: list[ConfiguredMock] = []

    @property
    def mocks(self) -> list[ConfiguredMock]:
        return list(self._mocks)

    def prepare(self, config: MockConfig | str | Path, port: int | None = None) -> ConfiguredMock:
        """Build and track a mock without starting it."""
        mock = ConfiguredMock(
            config,
            port,
            version_reader=self.version_reader,
            binary=self._binary,
        )
        self._mocks.append(mock)
        return mock

    async def start(
        self,
        config: MockConfig | str | Path,
        port: int | None = None,
        *,
        verbose: bool = False,
    ) -> ConfiguredMock:
        mock = self.prepare(config, port)
        if verbose:
            mock.verbose()
        return await mock.start()

    async def stop_all(self) -> None:
        mocks, self._mocks = self._mocks, []
        results = await asyncio.gather(*(mock.stop() for mock in mocks), return_exceptions=True)
        for mock, result in zip(mocks, results):
            if isinstance(result, Exception):
                get_logger().warning(
                    f"Error stopping mock on port {mock.port}: {result}",
                    extra={"event": LogEvent.MOCK_STOP_FAILED, "port": mock.port},
                )

    async def __aenter__(self) -> MockManager:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop_all()
