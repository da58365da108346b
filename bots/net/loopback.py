"""In-process transport used for tests and single-machine sessions.

Endpoints created from one :class:`LoopbackTransport` can reach each other
by port. Delivery is immediate and ordered; events surface on the receiving
endpoint's next :meth:`LoopbackEndpoint.poll`. Semantics follow the ENet
behaviour the session layer relies on:

* ``disconnect_now`` notifies only the remote side.
* ``disconnect_later`` lets queued packets arrive first, then notifies both
  sides.
* Connecting to an unbound port, or to a server with no free peer slot,
  yields a disconnect event instead of a connect event.
* A peer refuses packets unless it is connected; the refusal surfaces as
  :class:`TransportError`, the way a negative ENet send result does.
"""
from __future__ import annotations

import random
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from .errors import TransportError
from .transport import EventType, PeerState, TransportEvent


class LoopbackPeer:
    """Peer handle owned by one endpoint and linked to its remote twin."""

    def __init__(self, endpoint: "LoopbackEndpoint", channels: int) -> None:
        self._endpoint = endpoint
        self._channels = channels
        self._remote: Optional[LoopbackPeer] = None
        self._state = PeerState.CONNECTING
        self.sent: List[Tuple[bytes, int, bool]] = []

    def __repr__(self) -> str:
        return f"LoopbackPeer(port={self._endpoint.port}, state={self._state.value})"

    @property
    def endpoint(self) -> "LoopbackEndpoint":
        return self._endpoint

    def state(self) -> PeerState:
        return self._state

    def send(self, data: bytes, channel: int, reliable: bool) -> None:
        if not 0 <= channel < self._channels:
            raise TransportError(f"Channel {channel} out of range (0..{self._channels - 1})")
        remote = self._remote
        if self._state != PeerState.CONNECTED or remote is None:
            raise TransportError(f"Peer is {self._state.value}, packet refused")
        self.sent.append((bytes(data), channel, reliable))
        if not reliable and self._endpoint.transport.should_drop():
            return
        remote._endpoint._queue(TransportEvent(EventType.RECEIVE, remote, bytes(data)))

    def disconnect_now(self) -> None:
        if self._state == PeerState.DISCONNECTED:
            return
        self._state = PeerState.DISCONNECTED
        remote = self._remote
        if remote is not None and remote._state != PeerState.DISCONNECTED:
            remote._state = PeerState.DISCONNECTED
            remote._endpoint._queue(TransportEvent(EventType.DISCONNECT, remote))

    def disconnect_later(self) -> None:
        if self._state == PeerState.DISCONNECTED:
            return
        self._state = PeerState.DISCONNECTING
        remote = self._remote
        if remote is not None and remote._state != PeerState.DISCONNECTED:
            remote._state = PeerState.DISCONNECTED
            remote._endpoint._queue(TransportEvent(EventType.DISCONNECT, remote))
        self._endpoint._queue(TransportEvent(EventType.DISCONNECT, self))

    def _mark_disconnected(self) -> None:
        self._state = PeerState.DISCONNECTED


class LoopbackEndpoint:
    """One local endpoint; a server endpoint owns a port."""

    def __init__(
        self,
        transport: "LoopbackTransport",
        port: Optional[int],
        max_peers: int,
        channels: int,
    ) -> None:
        self.transport = transport
        self.port = port
        self.max_peers = max_peers
        self.channels = channels
        self.peers: List[LoopbackPeer] = []
        self._events: Deque[TransportEvent] = deque()
        self._destroyed = False
        self.flushes = 0

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def _queue(self, event: TransportEvent) -> None:
        if not self._destroyed:
            self._events.append(event)

    def _active_peers(self) -> List[LoopbackPeer]:
        return [peer for peer in self.peers if peer.state() != PeerState.DISCONNECTED]

    def _prune(self) -> None:
        self.peers = self._active_peers()

    def connect(self, host: str, port: int, channels: int) -> LoopbackPeer:
        self._ensure_alive()
        self._prune()
        local = LoopbackPeer(self, channels)
        self.peers.append(local)
        server = self.transport.server_at(port)
        if server is None or len(server._active_peers()) >= server.max_peers:
            local._mark_disconnected()
            self._queue(TransportEvent(EventType.DISCONNECT, local))
            return local
        remote = LoopbackPeer(server, min(channels, server.channels))
        server._prune()
        server.peers.append(remote)
        local._remote = remote
        remote._remote = local
        self._queue(TransportEvent(EventType.CONNECT, local))
        server._queue(TransportEvent(EventType.CONNECT, remote))
        return local

    def poll(self, timeout: int = 0) -> Optional[TransportEvent]:
        self._ensure_alive()
        if not self._events:
            return None
        event = self._events.popleft()
        if event.type == EventType.CONNECT and event.peer.state() == PeerState.CONNECTING:
            event.peer._state = PeerState.CONNECTED
        elif event.type == EventType.DISCONNECT:
            event.peer._mark_disconnected()
            self._prune()
        return event

    def flush(self) -> None:
        self._ensure_alive()
        self.flushes += 1

    def destroy(self) -> None:
        if self._destroyed:
            return
        # Remote sides notice the vanished endpoint as a disconnect.
        for peer in self._active_peers():
            peer.disconnect_now()
        self._destroyed = True
        self._events.clear()
        self.transport.release(self)

    def _ensure_alive(self) -> None:
        if self._destroyed:
            raise TransportError("Endpoint has been destroyed")


class LoopbackTransport:
    """Factory for endpoints that talk to each other inside one process."""

    def __init__(self, *, unreliable_loss: float = 0.0, seed: Optional[int] = None) -> None:
        if not 0.0 <= unreliable_loss <= 1.0:
            raise ValueError("unreliable_loss must be within [0, 1]")
        self.unreliable_loss = unreliable_loss
        self._random = random.Random(seed)
        self._servers: Dict[int, LoopbackEndpoint] = {}
        self.endpoints: List[LoopbackEndpoint] = []

    def should_drop(self) -> bool:
        return self.unreliable_loss > 0.0 and self._random.random() < self.unreliable_loss

    def server_at(self, port: int) -> Optional[LoopbackEndpoint]:
        return self._servers.get(port)

    def create_server_endpoint(self, bind_port: int, max_peers: int, channels: int) -> LoopbackEndpoint:
        if bind_port in self._servers:
            raise TransportError(f"Address already in use (port {bind_port})")
        endpoint = LoopbackEndpoint(self, bind_port, max_peers, channels)
        self._servers[bind_port] = endpoint
        self.endpoints.append(endpoint)
        return endpoint

    def create_client_endpoint(self, channels: int) -> LoopbackEndpoint:
        endpoint = LoopbackEndpoint(self, None, 1, channels)
        self.endpoints.append(endpoint)
        return endpoint

    def release(self, endpoint: LoopbackEndpoint) -> None:
        if endpoint.port is not None and self._servers.get(endpoint.port) is endpoint:
            del self._servers[endpoint.port]


__all__ = ["LoopbackEndpoint", "LoopbackPeer", "LoopbackTransport"]
