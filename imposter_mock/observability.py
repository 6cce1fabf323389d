from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .apps_env import load_apps_env
from .instance_context import get_mock_port

LOGGER_NAME = "imposter-mock"

_configured = False


class LogEvent:
    """Constants for log event names used throughout imposter-mock."""

    # Mock lifecycle
    MOCK_START = "mock.start"
    MOCK_PORT_ASSIGNED = "mock.port.assigned"
    MOCK_READY = "mock.ready"
    MOCK_START_FAILED = "mock.start.failed"
    MOCK_STOP = "mock.stop"
    MOCK_NOT_RUNNING = "mock.not_running"
    MOCK_STOP_FAILED = "mock.stop.failed"

    # Engine process
    ENGINE_SPAWNED = "engine.spawned"
    ENGINE_EXIT = "engine.exit"
    ENGINE_STDOUT = "engine.stdout"
    ENGINE_STDERR = "engine.stderr"
    ENGINE_LOG_FILE = "engine.log_file"
    ENGINE_LOCAL_CONFIG = "engine.local_config"

    # Readiness
    READINESS_WAIT = "readiness.wait"

    # Version detection
    VERSION_QUERY_FALLBACK = "version.query.fallback"
    VERSION_DETECTED = "version.detected"


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def emit_span_event(event_name: str, **attributes: Any) -> None:
    """
    Add an event to the current OpenTelemetry span if it's valid.

    Lets a test that wraps mock startup in its own span see the lifecycle
    steps without any extra wiring.

    Args:
        event_name: The event name (e.g., "mock.start", "mock.ready")
        **attributes: Key-value pairs to attach to the event
    """
    span = trace.get_current_span()
    ctx = span.get_span_context()
    if ctx and ctx.is_valid:
        # Filter out None values from attributes
        filtered = {k: v for k, v in attributes.items() if v is not None}
        span.add_event(event_name, attributes=filtered)


class TraceContextFilter(logging.Filter):
    """
    Inject OpenTelemetry trace context and the current mock port into log records.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 - logging API name
        span = trace.get_current_span()
        ctx = span.get_span_context()
        if ctx and ctx.is_valid:
            record.trace_id = f"{ctx.trace_id:032x}"
            record.span_id = f"{ctx.span_id:016x}"
        else:
            record.trace_id = None
            record.span_id = None

        if not hasattr(record, "port"):
            port = get_mock_port()
            if port is not None:
                record.port = port
        return True


class JsonLogFormatter(logging.Formatter):
    """
    One JSON object per line. Stable base fields + event-specific extras.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 - logging API name
        message = record.getMessage()
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "service": "imposter-mock",
            "event": getattr(record, "event", message),
            "trace_id": getattr(record, "trace_id", None),
            "span_id": getattr(record, "span_id", None),
        }
        if message and message != payload["event"]:
            payload["message"] = message

        for key in ("port", "pid", "exit_code", "config_dir", "log_file"):
            if hasattr(record, key):
                payload[key] = getattr(record, key)

        if record.exc_info:
            payload["error"] = {"type": record.exc_info[0].__name__, "message": str(record.exc_info[1])}

        # Include any structured extras passed via `extra={"meta": {...}}`
        meta = getattr(record, "meta", None)
        if isinstance(meta, dict):
            payload["meta"] = meta

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def setup_observability(*, project_root=None, level: int = logging.INFO) -> None:
    """
    Configure JSON logging with trace correlation, and load `.env` early.

    Opt-in: a test suite calls this once (e.g. from conftest.py) when it
    wants structured engine logs on stdout.
    """

    global _configured
    if _configured:
        return

    load_apps_env(project_root=project_root)

    # If the process already configured a tracer provider (e.g. tests), do not override it.
    if not isinstance(trace.get_tracer_provider(), TracerProvider):
        endpoint = (os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or "").strip()
        if endpoint:
            # OTLP gRPC exporter (Collector listens on :4317).
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

            exporter = OTLPSpanExporter(endpoint=endpoint, insecure=endpoint.startswith("http://"))
            provider = TracerProvider()
            provider.add_span_processor(BatchSpanProcessor(exporter))
            trace.set_tracer_provider(provider)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(TraceContextFilter())

    logger = get_logger()
    logger.setLevel(level)
    logger.addHandler(handler)

    _configured = True
