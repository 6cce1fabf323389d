from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol

import httpx

from .errors import AbnormalExitError, ReadinessTimeoutError
from .observability import LogEvent, emit_span_event, get_logger

STATUS_PATH = "/system/status"


class HasReturnCode(Protocol):
    @property
    def returncode(self) -> int | None: ...


class StatusProbe:
    """
    Probes the engine's status endpoint.

    One probe owns one `httpx.AsyncClient` for the whole wait; call close()
    when done.
    """

    def __init__(
        self,
        *,
        port: int,
        timeout_seconds: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = f"http://localhost:{port}{STATUS_PATH}"
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
                # Probes only ever target localhost.
                trust_env=False,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def is_ready(self) -> bool:
        """True only for an HTTP 200; connection errors count as not ready."""
        try:
            client = await self._get_client()
            response = await client.get(self.url)
        except httpx.RequestError:
            return False
        return response.status_code == 200


async def wait_until_ready(
    process: HasReturnCode,
    port: int,
    *,
    poll_interval: float = 0.2,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    advice: Callable[[], str] = lambda: "",
) -> None:
    """
    Poll the status endpoint until it answers 200.

    Fails fast if the engine process has exited. With `timeout` None the
    loop has no deadline and relies on the engine either binding the port
    or exiting.
    """
    logger = get_logger()
    logger.info(
        f"Waiting for mock server to come up on port {port}",
        extra={"event": LogEvent.READINESS_WAIT, "port": port},
    )
    emit_span_event(LogEvent.READINESS_WAIT, port=port)

    deadline = None if timeout is None else time.monotonic() + timeout
    probe = StatusProbe(port=port, transport=transport)
    try:
        while True:
            if process.returncode is not None:
                raise AbnormalExitError(
                    f"Failed to start mock engine on port {port}. Exit code: {process.returncode}",
                    exit_code=process.returncode,
                    advice=advice(),
                )
            if await probe.is_ready():
                break
            if deadline is not None and time.monotonic() >= deadline:
                raise ReadinessTimeoutError(
                    f"Mock engine on port {port} was not ready after {timeout}s",
                    advice=advice(),
                )
            await asyncio.sleep(poll_interval)
    finally:
        await probe.close()

    logger.info("Mock server is up!", extra={"event": LogEvent.MOCK_READY, "port": port})
    emit_span_event(LogEvent.MOCK_READY, port=port)
