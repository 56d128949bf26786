"""Local port helpers."""
from __future__ import annotations

import socket


def find_free_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for a currently unused TCP port on *host*."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, 0))
        return int(sock.getsockname()[1])
