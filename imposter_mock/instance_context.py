from __future__ import annotations

from contextvars import ContextVar

_mock_port_var: ContextVar[int | None] = ContextVar("imposter_mock_port", default=None)


def set_mock_port(port: int | None) -> None:
    _mock_port_var.set(port)


def get_mock_port() -> int | None:
    return _mock_port_var.get()
