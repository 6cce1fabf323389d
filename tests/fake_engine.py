"""
Stand-in for the `imposter` launcher used by the lifecycle tests.

Behaviour is driven by FAKE_ENGINE_* environment variables so each test can
shape it through monkeypatch:

- FAKE_ENGINE_VERSION_OUTPUT: text printed for `version` / `--version`
- FAKE_ENGINE_FAIL_VERSION_SUBCOMMAND: if set, `version` exits 1 (only `--version` works)
- FAKE_ENGINE_EXIT_CODE: if set, print to stderr and exit with this code instead of serving
- FAKE_ENGINE_READY_AFTER: number of status probes needed before answering 200 (default 1)
- FAKE_ENGINE_PROBE_FILE: file updated with the number of status probes received
- FAKE_ENGINE_ARGS_FILE: file receiving the launcher arguments as JSON
"""

from __future__ import annotations

import json
import os
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

DEFAULT_VERSION_OUTPUT = "imposter-cli 0.7.0\nimposter-engine 4.2.1\n"


def _parse_port(args: list[str]) -> int:
    for arg in args:
        for prefix in ("--port=", "--listenPort="):
            if arg.startswith(prefix):
                return int(arg[len(prefix):])
    raise SystemExit("no port argument")


def _serve(port: int) -> None:
    ready_after = int(os.environ.get("FAKE_ENGINE_READY_AFTER") or "1")
    probe_file = os.environ.get("FAKE_ENGINE_PROBE_FILE")
    lock = threading.Lock()
    probes = {"count": 0}

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802 - http.server API name
            if self.path != "/system/status":
                self.send_response(404)
                self.end_headers()
                return
            with lock:
                probes["count"] += 1
                count = probes["count"]
                if probe_file:
                    Path(probe_file).write_text(str(count))
            status = 200 if count >= ready_after else 503
            body = b'{"status":"ok"}' if status == 200 else b"{}"
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args) -> None:  # noqa: A002 - http.server API name
            return

    server = ThreadingHTTPServer(("localhost", port), Handler)
    print(f"engine listening on port {port}", flush=True)
    server.serve_forever()


def main(argv: list[str]) -> int:
    if argv and argv[0] in ("version", "--version"):
        if argv[0] == "version" and os.environ.get("FAKE_ENGINE_FAIL_VERSION_SUBCOMMAND"):
            print("unknown command: version", file=sys.stderr)
            return 1
        sys.stdout.write(os.environ.get("FAKE_ENGINE_VERSION_OUTPUT") or DEFAULT_VERSION_OUTPUT)
        return 0

    args_file = os.environ.get("FAKE_ENGINE_ARGS_FILE")
    if args_file:
        Path(args_file).write_text(json.dumps(argv))

    print("engine starting", flush=True)
    exit_code = os.environ.get("FAKE_ENGINE_EXIT_CODE")
    if exit_code:
        print("boom: engine failed to start", file=sys.stderr, flush=True)
        return int(exit_code)

    _serve(_parse_port(argv))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
