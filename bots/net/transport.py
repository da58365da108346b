"""Endpoint contract the session layer expects from a transport backend.

The networking core never touches sockets. A backend supplies a factory
that creates server or client endpoints; endpoints are polled without
blocking and hand back :class:`TransportEvent` records. Peer handles are
opaque: the session keeps its own side table for player ids.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from .errors import TransportError


class EventType(str, enum.Enum):
    CONNECT = "connect"
    RECEIVE = "receive"
    DISCONNECT = "disconnect"


class PeerState(str, enum.Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    DISCONNECTED = "disconnected"


@runtime_checkable
class PeerHandle(Protocol):
    """A remote endpoint as seen from the local endpoint."""

    def send(self, data: bytes, channel: int, reliable: bool) -> None: ...

    def disconnect_now(self) -> None: ...

    def disconnect_later(self) -> None: ...

    def state(self) -> PeerState: ...


@dataclass(frozen=True)
class TransportEvent:
    """One polled transport event; ``data`` is only set for receives."""

    type: EventType
    peer: PeerHandle
    data: Optional[bytes] = None


@runtime_checkable
class Endpoint(Protocol):
    def connect(self, host: str, port: int, channels: int) -> PeerHandle: ...

    def poll(self, timeout: int = 0) -> Optional[TransportEvent]: ...

    def flush(self) -> None: ...

    def destroy(self) -> None: ...


@runtime_checkable
class TransportFactory(Protocol):
    """Creates endpoints; both methods raise :class:`TransportError` on failure."""

    def create_server_endpoint(self, bind_port: int, max_peers: int, channels: int) -> Endpoint: ...

    def create_client_endpoint(self, channels: int) -> Endpoint: ...


__all__ = [
    "Endpoint",
    "EventType",
    "PeerHandle",
    "PeerState",
    "TransportError",
    "TransportEvent",
    "TransportFactory",
]
