"""ENet-backed transport using the ``pyenet`` binding.

ENet hands out a fresh Python ``Peer`` wrapper for every event, so handles
are cached per ``incomingPeerID`` to keep them stable for the session's
peer table.
"""
from __future__ import annotations

from typing import Dict, Optional

import enet

from .errors import TransportError
from .transport import EventType, PeerState, TransportEvent

_EVENT_TYPES = {
    enet.EVENT_TYPE_CONNECT: EventType.CONNECT,
    enet.EVENT_TYPE_RECEIVE: EventType.RECEIVE,
    enet.EVENT_TYPE_DISCONNECT: EventType.DISCONNECT,
}

_PEER_STATES = {
    enet.PEER_STATE_CONNECTING: PeerState.CONNECTING,
    enet.PEER_STATE_ACKNOWLEDGING_CONNECT: PeerState.CONNECTING,
    enet.PEER_STATE_CONNECTION_PENDING: PeerState.CONNECTING,
    enet.PEER_STATE_CONNECTION_SUCCEEDED: PeerState.CONNECTING,
    enet.PEER_STATE_CONNECTED: PeerState.CONNECTED,
    enet.PEER_STATE_DISCONNECT_LATER: PeerState.DISCONNECTING,
    enet.PEER_STATE_DISCONNECTING: PeerState.DISCONNECTING,
    enet.PEER_STATE_ACKNOWLEDGING_DISCONNECT: PeerState.DISCONNECTING,
    enet.PEER_STATE_DISCONNECTED: PeerState.DISCONNECTED,
    enet.PEER_STATE_ZOMBIE: PeerState.DISCONNECTED,
}


class EnetPeer:
    """Stable wrapper around an ``enet.Peer``."""

    def __init__(self, peer: "enet.Peer") -> None:
        self._peer = peer

    def __repr__(self) -> str:
        return f"EnetPeer({self._peer.address})"

    def state(self) -> PeerState:
        return _PEER_STATES.get(self._peer.state, PeerState.DISCONNECTED)

    def send(self, data: bytes, channel: int, reliable: bool) -> None:
        flags = enet.PACKET_FLAG_RELIABLE if reliable else 0
        result = self._peer.send(channel, enet.Packet(data, flags))
        if result < 0:
            raise TransportError(f"ENet refused packet on channel {channel}")

    def disconnect_now(self) -> None:
        self._peer.disconnect_now()

    def disconnect_later(self) -> None:
        self._peer.disconnect_later()


class EnetEndpoint:
    def __init__(self, host: "enet.Host") -> None:
        self._host: Optional[enet.Host] = host
        self._handles: Dict[int, EnetPeer] = {}

    def _handle(self, peer: "enet.Peer") -> EnetPeer:
        key = peer.incomingPeerID
        handle = self._handles.get(key)
        if handle is None:
            handle = EnetPeer(peer)
            self._handles[key] = handle
        else:
            handle._peer = peer
        return handle

    def _require_host(self) -> "enet.Host":
        if self._host is None:
            raise TransportError("Endpoint has been destroyed")
        return self._host

    def connect(self, host: str, port: int, channels: int) -> EnetPeer:
        try:
            peer = self._require_host().connect(enet.Address(host.encode("ascii"), port), channels)
        except (OSError, MemoryError) as exc:
            raise TransportError(f"Failed to connect to {host}:{port}: {exc}") from exc
        return self._handle(peer)

    def poll(self, timeout: int = 0) -> Optional[TransportEvent]:
        try:
            event = self._require_host().service(timeout)
        except OSError as exc:
            raise TransportError(str(exc)) from exc
        event_type = _EVENT_TYPES.get(event.type)
        if event_type is None:
            return None
        handle = self._handle(event.peer)
        if event_type == EventType.DISCONNECT:
            # ENet recycles the slot for the next incoming peer.
            self._handles.pop(event.peer.incomingPeerID, None)
        data = bytes(event.packet.data) if event_type == EventType.RECEIVE else None
        return TransportEvent(event_type, handle, data)

    def flush(self) -> None:
        self._require_host().flush()

    def destroy(self) -> None:
        # pyenet releases the ENet host when the wrapper is collected.
        self._host = None
        self._handles.clear()


class EnetTransport:
    """Creates UDP endpoints through ENet."""

    def create_server_endpoint(self, bind_port: int, max_peers: int, channels: int) -> EnetEndpoint:
        try:
            host = enet.Host(enet.Address(None, bind_port), max_peers, channels, 0, 0)
        except (OSError, MemoryError) as exc:
            raise TransportError(str(exc)) from exc
        return EnetEndpoint(host)

    def create_client_endpoint(self, channels: int) -> EnetEndpoint:
        try:
            host = enet.Host(None, 1, channels, 0, 0)
        except (OSError, MemoryError) as exc:
            raise TransportError(str(exc)) from exc
        return EnetEndpoint(host)


__all__ = ["EnetEndpoint", "EnetPeer", "EnetTransport"]
