from __future__ import annotations

import socket


def assign_free_port(host: str = "localhost") -> int:
    """
    Ask the OS for a free ephemeral port.

    The port is not reserved: another process may take it between this
    call returning and the engine binding it.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]
