"""Host/client session networking over an unreliable transport.

Player 1 hosts; players 2 and 3 join as clients. The host arbitrates ids,
relays client traffic and is the only side that sees the whole roster.
Everything runs on the simulation thread: call :meth:`Network.update` once
per tick, then drain :meth:`Network.get_messages`, then send.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

from bots.engine.logger import ChannelLogger

from .address import parse_address
from .config import HOST_PLAYER_ID, NetworkSettings
from .errors import NetworkSetupError, TransportError
from .events import (
    Connected,
    Disconnected,
    IdAssigned,
    Message,
    NetworkError,
    NetworkEvent,
    PlayerConnected,
    PlayerDisconnected,
    ServerFull,
)
from .session import Role, SessionState
from .transport import EventType, PeerHandle, PeerState, TransportEvent, TransportFactory
from .wire import FieldValue, decode, encode

ASSIGN_ID = "assign_id"
SERVER_FULL = "server_full"

MESSAGE_CHANNEL = 0


def default_transport() -> TransportFactory:
    """The UDP transport used outside of tests."""

    from .enet_transport import EnetTransport

    return EnetTransport()


class Network:
    """Owns one transport endpoint and the session state built on top of it."""

    def __init__(
        self,
        transport: Optional[TransportFactory] = None,
        settings: Optional[NetworkSettings] = None,
        logger: Optional[ChannelLogger] = None,
    ) -> None:
        self._transport = transport
        self.settings = settings or NetworkSettings()
        self.logger = logger or ChannelLogger("net")
        self.state = SessionState()

    @property
    def transport(self) -> TransportFactory:
        if self._transport is None:
            self._transport = default_transport()
        return self._transport

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def role(self) -> Role:
        return self.state.role

    @property
    def local_player_id(self) -> int:
        return self.state.local_player_id

    def is_connected(self) -> bool:
        state = self.state
        if state.role == Role.HOST:
            return state.endpoint is not None
        if state.role == Role.CLIENT:
            peer = state.server_peer
            return peer is not None and peer.state() == PeerState.CONNECTED
        return False

    def get_connected_count(self) -> int:
        if self.state.role != Role.HOST:
            return 0
        return 1 + len(self.state.peers)

    def get_connected_peers(self) -> Dict[int, PeerHandle]:
        if self.state.role != Role.HOST:
            return {}
        return dict(self.state.peers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start_host(self) -> None:
        """Listen on the configured port as player 1.

        Raises :class:`NetworkSetupError` if the endpoint cannot be created;
        the session is left unconfigured in that case.
        """

        self.stop()
        port = self.settings.port
        try:
            endpoint = self.transport.create_server_endpoint(
                port, self.settings.max_players, self.settings.channels
            )
        except TransportError as exc:
            if self.logger.enabled:
                self.logger.warning("Host setup failed on port %d: %s", port, exc)
            raise NetworkSetupError(f"Failed to create server on port {port}: {exc}") from exc
        state = self.state
        state.endpoint = endpoint
        state.role = Role.HOST
        state.local_player_id = HOST_PLAYER_ID
        if self.logger.enabled:
            self.logger.info("Hosting session on port %d", port)

    def start_client(self, address: str) -> None:
        """Begin joining the host at ``address`` (``host`` or ``host:port``).

        The connect is asynchronous; watch for ``connected``/``id_assigned``
        or ``disconnected`` events from :meth:`update`.
        """

        self.stop()
        try:
            host, port = parse_address(address, self.settings.port)
        except ValueError as exc:
            raise NetworkSetupError(f"Invalid host address {address!r}: {exc}") from exc
        try:
            endpoint = self.transport.create_client_endpoint(self.settings.channels)
        except TransportError as exc:
            if self.logger.enabled:
                self.logger.warning("Client setup failed: %s", exc)
            raise NetworkSetupError(f"Failed to create client: {exc}") from exc
        try:
            server_peer = endpoint.connect(host, port, self.settings.channels)
        except TransportError as exc:
            endpoint.destroy()
            raise NetworkSetupError(f"Failed to connect to {host}:{port}: {exc}") from exc
        state = self.state
        state.endpoint = endpoint
        state.server_peer = server_peer
        state.role = Role.CLIENT
        if self.logger.enabled:
            self.logger.info("Connecting to %s:%d", host, port)

    def stop(self) -> None:
        """Drop every connection immediately and forget the session."""

        state = self.state
        endpoint = state.endpoint
        if endpoint is not None:
            if state.role == Role.HOST:
                peers: Iterable[PeerHandle] = list(state.peers.values())
            elif state.server_peer is not None:
                peers = [state.server_peer]
            else:
                peers = []
            for peer in peers:
                self._guarded(peer.disconnect_now, "disconnect")
            self._guarded(endpoint.flush, "flush")
            self._guarded(endpoint.destroy, "destroy")
            if self.logger.enabled:
                self.logger.info("Session stopped (%s)", state.role.value)
        state.reset()

    def _guarded(self, operation, label: str) -> None:
        try:
            operation()
        except TransportError as exc:
            if self.logger.enabled:
                self.logger.warning("Ignoring transport %s failure during stop: %s", label, exc)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------
    def update(self, dt: float) -> None:
        """Drain all pending transport events without blocking."""

        while self.state.endpoint is not None:
            event = self._service()
            if event is None:
                break
            if event.type == EventType.CONNECT:
                self._on_connect(event.peer)
            elif event.type == EventType.RECEIVE:
                self._on_receive(event.peer, event.data or b"")
            elif event.type == EventType.DISCONNECT:
                self._on_disconnect(event.peer)

    def _service(self) -> Optional[TransportEvent]:
        endpoint = self.state.endpoint
        try:
            return endpoint.poll(0)
        except TransportError as exc:
            previous_role = self.state.role
            if self.logger.enabled:
                self.logger.error("Transport failed while polling (%s): %s", previous_role.value, exc)
            # A broken socket keeps failing; tear down so later ticks are quiet.
            self.stop()
            self.state.push(NetworkError(source="service", previous_role=previous_role.value, error=str(exc)))
            if previous_role == Role.CLIENT:
                self.state.push(Disconnected(reason="service_error", error=str(exc)))
            return None

    def _on_connect(self, peer: PeerHandle) -> None:
        state = self.state
        if state.role == Role.HOST:
            player_id = state.free_slot(self.settings.client_ids)
            if player_id is None:
                self._transmit(peer, encode(SERVER_FULL), reliable=True)
                peer.disconnect_later()
                if self.logger.enabled:
                    self.logger.info("Rejected connection: session full")
                return
            state.register_peer(player_id, peer)
            self._transmit(peer, encode(ASSIGN_ID, {"id": player_id}), reliable=True)
            state.push(PlayerConnected(player_id))
            if self.logger.enabled:
                self.logger.info("Player %d connected", player_id)
        elif state.role == Role.CLIENT:
            state.push(Connected())
            if self.logger.enabled:
                self.logger.info("Connected to host, waiting for player id")

    def _on_receive(self, peer: PeerHandle, payload: bytes) -> None:
        decoded = decode(payload)
        if decoded is None:
            if self.logger.enabled:
                self.logger.debug("Dropped undecodable payload (%d bytes)", len(payload))
            return
        state = self.state
        message_type, data = decoded
        if state.role == Role.CLIENT and message_type == ASSIGN_ID:
            player_id = data.get("id")
            if not isinstance(player_id, int) or isinstance(player_id, bool):
                if self.logger.enabled:
                    self.logger.debug("Dropped assign_id without a usable id: %r", data)
                return
            state.local_player_id = player_id
            state.push(IdAssigned(player_id))
            if self.logger.enabled:
                self.logger.info("Assigned player id %d", player_id)
        elif state.role == Role.CLIENT and message_type == SERVER_FULL:
            state.push(ServerFull())
            if self.logger.enabled:
                self.logger.info("Host rejected us: session full")
        else:
            from_player_id = state.player_id_for(peer) if state.role == Role.HOST else None
            state.push(Message(message_type, data, from_player_id))

    def _on_disconnect(self, peer: PeerHandle) -> None:
        state = self.state
        if state.role == Role.HOST:
            player_id = state.unregister_peer(peer)
            if player_id is not None:
                state.push(PlayerDisconnected(player_id))
                if self.logger.enabled:
                    self.logger.info("Player %d disconnected", player_id)
        elif state.role == Role.CLIENT:
            state.server_peer = None
            state.push(Disconnected())
            if self.logger.enabled:
                self.logger.info("Disconnected from host")

    def get_messages(self) -> List[NetworkEvent]:
        """Hand over everything queued since the last call."""

        return self.state.drain()

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------
    def _transmit(self, peer: PeerHandle, encoded: str, reliable: bool) -> None:
        # Peers that are still connecting or already leaving refuse packets.
        try:
            peer.send(encoded.encode("utf-8"), MESSAGE_CHANNEL, reliable)
        except TransportError as exc:
            if self.logger.enabled:
                self.logger.debug("Dropped outgoing packet to %r: %s", peer, exc)

    def send(
        self,
        message_type: str,
        data: Optional[Mapping[str, FieldValue]] = None,
        reliable: bool = False,
    ) -> None:
        """Host: broadcast to all clients. Client: send to the host."""

        state = self.state
        if state.role == Role.HOST:
            if not state.peers:
                return
            encoded = encode(message_type, data)
            for peer in list(state.peers.values()):
                self._transmit(peer, encoded, reliable)
        elif state.role == Role.CLIENT and state.server_peer is not None:
            self._transmit(state.server_peer, encode(message_type, data), reliable)

    def send_to(
        self,
        player_id: int,
        message_type: str,
        data: Optional[Mapping[str, FieldValue]] = None,
        reliable: bool = False,
    ) -> None:
        if self.state.role != Role.HOST:
            return
        peer = self.state.peers.get(player_id)
        if peer is not None:
            self._transmit(peer, encode(message_type, data), reliable)

    def relay(
        self,
        from_player_id: int,
        message_type: str,
        data: Optional[Mapping[str, FieldValue]] = None,
        reliable: bool = False,
    ) -> None:
        """Rebroadcast a client's message to every other client."""

        state = self.state
        if state.role != Role.HOST:
            return
        targets = [peer for player_id, peer in state.peers.items() if player_id != from_player_id]
        if not targets:
            return
        encoded = encode(message_type, data)
        for peer in targets:
            self._transmit(peer, encoded, reliable)


__all__ = ["ASSIGN_ID", "SERVER_FULL", "Network", "default_transport"]
