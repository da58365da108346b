"""Address helpers for joining and advertising a LAN session."""
from __future__ import annotations

import re
import socket
from typing import Tuple

LOCALHOST = "127.0.0.1"

_HOST_PORT_RE = re.compile(r"^(?P<host>[^:\[\]]+|\[[^\]]+\]):(?P<port>\d+)$")


def parse_address(address: str, default_port: int) -> Tuple[str, int]:
    """Split ``host`` or ``host:port`` into a host and port.

    Bare IPv6 literals keep the default port; ``[v6]:port`` is accepted.
    """

    address = address.strip()
    if not address:
        raise ValueError("Address must not be empty")
    match = _HOST_PORT_RE.match(address)
    if match:
        port = int(match.group("port"))
        if not 0 < port < 65536:
            raise ValueError(f"Port {port} out of range")
        return match.group("host").strip("[]"), port
    return address.strip("[]"), default_port


def get_host_address() -> str:
    """Best-effort LAN address of this machine for display to joining players."""

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # No packet is sent; connecting a UDP socket only selects a route.
        sock.connect(("8.8.8.8", 80))
        return sock.getsockname()[0]
    except OSError:
        return LOCALHOST
    finally:
        sock.close()


__all__ = ["LOCALHOST", "get_host_address", "parse_address"]
