"""Host/client session flow over the loopback transport."""
from __future__ import annotations

import logging
from typing import List, Tuple

import pytest

from bots.net import (
    Connected,
    Disconnected,
    IdAssigned,
    LoopbackTransport,
    Message,
    Network,
    NetworkError,
    NetworkSettings,
    NetworkSetupError,
    PlayerConnected,
    PlayerDisconnected,
    Role,
    ServerFull,
    TransportError,
)
from bots.net.transport import PeerState


def _join(transport: LoopbackTransport, host: Network) -> Network:
    client = Network(transport)
    client.start_client("127.0.0.1")
    host.update(0.0)
    client.update(0.0)
    return client


def _session(clients: int) -> Tuple[LoopbackTransport, Network, List[Network]]:
    transport = LoopbackTransport()
    host = Network(transport)
    host.start_host()
    joined = [_join(transport, host) for _ in range(clients)]
    host.get_messages()
    for client in joined:
        client.get_messages()
    return transport, host, joined


def test_host_starts_as_player_one() -> None:
    host = Network(LoopbackTransport())
    host.start_host()
    assert host.role == Role.HOST
    assert host.local_player_id == 1
    assert host.is_connected()
    assert host.get_connected_count() == 1
    assert host.get_messages() == []


def test_clients_receive_ids_in_connection_order() -> None:
    transport = LoopbackTransport()
    host = Network(transport)
    host.start_host()
    first = _join(transport, host)
    second = _join(transport, host)

    assert host.get_messages() == [PlayerConnected(2), PlayerConnected(3)]
    assert first.get_messages() == [Connected(), IdAssigned(2)]
    assert second.get_messages() == [Connected(), IdAssigned(3)]
    assert first.local_player_id == 2
    assert second.local_player_id == 3
    assert host.get_connected_count() == 3
    assert sorted(host.get_connected_peers()) == [2, 3]


def test_client_is_connected_only_after_handshake() -> None:
    transport = LoopbackTransport()
    host = Network(transport)
    host.start_host()
    client = Network(transport)
    client.start_client("127.0.0.1")
    assert client.role == Role.CLIENT
    assert client.local_player_id == 1
    assert not client.is_connected()
    host.update(0.0)
    client.update(0.0)
    assert client.is_connected()
    assert client.get_connected_count() == 0
    assert client.get_connected_peers() == {}


def test_third_client_is_rejected_with_server_full() -> None:
    transport, host, _ = _session(2)
    extra = _join(transport, host)

    assert extra.get_messages() == [Connected(), ServerFull(), Disconnected()]
    assert extra.local_player_id == 1
    assert not extra.is_connected()
    assert host.get_messages() == []
    assert host.get_connected_count() == 3


def test_freed_slot_is_reused_lowest_first() -> None:
    transport, host, (first, second) = _session(2)
    first.stop()
    host.update(0.0)
    assert host.get_messages() == [PlayerDisconnected(2)]
    assert host.get_connected_count() == 2

    newcomer = _join(transport, host)
    assert newcomer.local_player_id == 2
    assert host.get_messages() == [PlayerConnected(2)]
    assert second.local_player_id == 3


def test_client_messages_carry_sender_id_on_host() -> None:
    _, host, (first, second) = _session(2)
    first.send("player_jump", {"pid": 2}, reliable=True)
    second.send("player_cast", {"pid": 3})
    host.update(0.0)
    assert host.get_messages() == [
        Message("player_jump", {"pid": 2}, 2),
        Message("player_cast", {"pid": 3}, 3),
    ]


def test_host_broadcast_reaches_every_client_without_sender_id() -> None:
    _, host, clients = _session(2)
    host.send("game_state", {"pid": 1, "x": 250.0, "player": {"alive": True}})
    for client in clients:
        client.update(0.0)
        assert client.get_messages() == [
            Message("game_state", {"pid": 1, "x": 250.0, "player": {"alive": True}}, None)
        ]


def test_relay_skips_the_originating_client() -> None:
    _, host, (first, second) = _session(2)
    host.relay(2, "x", {}, True)
    first.update(0.0)
    second.update(0.0)
    assert first.get_messages() == []
    assert second.get_messages() == [Message("x", {}, None)]


def test_send_to_targets_one_client() -> None:
    _, host, (first, second) = _session(2)
    host.send_to(3, "whisper", {"n": 1}, reliable=True)
    host.send_to(9, "whisper", {"n": 2})
    first.update(0.0)
    second.update(0.0)
    assert first.get_messages() == []
    assert second.get_messages() == [Message("whisper", {"n": 1}, None)]


def test_host_only_operations_are_ignored_on_clients() -> None:
    _, host, (first, second) = _session(2)
    first.send_to(3, "whisper")
    first.relay(3, "echo")
    host.update(0.0)
    second.update(0.0)
    assert host.get_messages() == []
    assert second.get_messages() == []


def test_reliability_flag_reaches_the_transport() -> None:
    transport = LoopbackTransport(unreliable_loss=1.0, seed=1)
    host = Network(transport)
    host.start_host()
    client = _join(transport, host)
    client.get_messages()
    host.send("state", {"tick": 1}, reliable=False)
    host.send("game_over", {"winner": 2}, reliable=True)
    client.update(0.0)
    assert client.get_messages() == [Message("game_over", {"winner": 2}, None)]


def test_get_messages_drains_once() -> None:
    _, host, (client,) = _session(1)
    client.send("ping", reliable=True)
    host.update(0.0)
    assert host.get_messages() == [Message("ping", {}, 2)]
    assert host.get_messages() == []


def test_send_without_peers_is_a_no_op() -> None:
    host = Network(LoopbackTransport())
    host.start_host()
    host.send("state", {"x": 1})
    host.relay(2, "state")
    host.send_to(2, "state")
    idle = Network(LoopbackTransport())
    idle.send("state", {"x": 1})
    idle.update(0.0)
    assert idle.get_messages() == []


def test_stop_then_send_is_silent() -> None:
    _, host, (client,) = _session(1)
    host.stop()
    host.send("state", {"x": 1}, reliable=True)
    assert host.role == Role.NONE
    assert not host.is_connected()
    assert host.get_connected_count() == 0
    client.update(0.0)
    assert client.get_messages() == [Disconnected()]
    assert not client.is_connected()


def test_stop_is_idempotent_and_frees_the_port() -> None:
    transport = LoopbackTransport()
    host = Network(transport)
    host.stop()
    host.start_host()
    host.stop()
    host.stop()
    assert transport.server_at(NetworkSettings().port) is None
    host.start_host()
    assert host.role == Role.HOST


def test_client_stop_notifies_host() -> None:
    _, host, (client,) = _session(1)
    client.stop()
    assert client.role == Role.NONE
    assert client.local_player_id == 1
    host.update(0.0)
    assert host.get_messages() == [PlayerDisconnected(2)]


def test_port_in_use_is_a_setup_error() -> None:
    transport = LoopbackTransport()
    Network(transport).start_host()
    second = Network(transport)
    with pytest.raises(NetworkSetupError, match="port 27015"):
        second.start_host()
    assert second.role == Role.NONE
    assert not second.is_connected()


def test_alternate_port_from_settings() -> None:
    transport = LoopbackTransport()
    Network(transport).start_host()
    other = Network(transport, NetworkSettings(port=28000))
    other.start_host()
    client = Network(transport)
    client.start_client("127.0.0.1:28000")
    other.update(0.0)
    client.update(0.0)
    assert client.get_messages() == [Connected(), IdAssigned(2)]


def test_connect_to_missing_host_reports_disconnect() -> None:
    client = Network(LoopbackTransport())
    client.start_client("10.0.0.9")
    client.update(0.0)
    assert client.get_messages() == [Disconnected()]
    assert client.state.server_peer is None
    assert client.role == Role.CLIENT


def test_invalid_address_is_a_setup_error() -> None:
    client = Network(LoopbackTransport())
    with pytest.raises(NetworkSetupError):
        client.start_client("   ")
    assert client.role == Role.NONE


def test_send_before_connect_is_dropped(caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="bots.net")
    transport = LoopbackTransport()
    host = Network(transport)
    host.start_host()
    client = Network(transport)
    client.start_client("127.0.0.1")
    client.send("ping", {"n": 1}, reliable=True)
    host.update(0.0)
    client.update(0.0)
    assert host.get_messages() == [PlayerConnected(2)]
    assert "Dropped outgoing packet" in caplog.text


def test_refusing_peer_does_not_stop_a_broadcast(monkeypatch) -> None:
    _, host, (first, second) = _session(2)

    def refuse(data: bytes, channel: int, reliable: bool) -> None:
        raise TransportError("ENet refused packet on channel 0")

    monkeypatch.setattr(host.state.peers[2], "send", refuse)
    host.send("game_state", {"tick": 7}, reliable=True)
    host.relay(9, "echo", {"n": 1}, reliable=True)
    host.send_to(2, "whisper")
    first.update(0.0)
    second.update(0.0)
    assert first.get_messages() == []
    assert second.get_messages() == [
        Message("game_state", {"tick": 7}, None),
        Message("echo", {"n": 1}, None),
    ]


def test_undecodable_payloads_are_dropped() -> None:
    _, host, (client,) = _session(1)
    peer = client.state.server_peer
    peer.send(b"|||", 0, True)
    peer.send(b"\xff\xfe", 0, True)
    peer.send(b"ok|n=1", 0, True)
    host.update(0.0)
    assert host.get_messages() == [Message("ok", {"n": 1}, 2)]


def test_assign_id_without_number_is_ignored() -> None:
    _, host, (client,) = _session(1)
    host.send_to(2, "assign_id", {"id": "soon"}, reliable=True)
    client.update(0.0)
    assert client.get_messages() == []
    assert client.local_player_id == 2


def test_host_treats_handshake_types_as_ordinary_messages() -> None:
    _, host, (client,) = _session(1)
    client.send("server_full", reliable=True)
    host.update(0.0)
    assert host.get_messages() == [Message("server_full", {}, 2)]


class _IdlePeer:
    def __init__(self) -> None:
        self.dropped = False

    def send(self, data: bytes, channel: int, reliable: bool) -> None:
        pass

    def disconnect_now(self) -> None:
        self.dropped = True

    def disconnect_later(self) -> None:
        self.dropped = True

    def state(self) -> PeerState:
        return PeerState.CONNECTING


class _BrokenEndpoint:
    def __init__(self) -> None:
        self.destroyed = False

    def connect(self, host: str, port: int, channels: int) -> _IdlePeer:
        return _IdlePeer()

    def poll(self, timeout: int = 0):
        raise TransportError("socket closed")

    def flush(self) -> None:
        raise TransportError("flush on dead socket")

    def destroy(self) -> None:
        self.destroyed = True


class _BrokenTransport:
    def __init__(self) -> None:
        self.endpoint = _BrokenEndpoint()

    def create_server_endpoint(self, bind_port: int, max_peers: int, channels: int) -> _BrokenEndpoint:
        return self.endpoint

    def create_client_endpoint(self, channels: int) -> _BrokenEndpoint:
        return self.endpoint


def test_poll_failure_tears_down_client_session() -> None:
    transport = _BrokenTransport()
    client = Network(transport)
    client.start_client("127.0.0.1")
    client.update(0.0)
    assert client.get_messages() == [
        NetworkError(source="service", previous_role="client", error="socket closed"),
        Disconnected(reason="service_error", error="socket closed"),
    ]
    assert client.role == Role.NONE
    assert transport.endpoint.destroyed
    client.update(0.0)
    assert client.get_messages() == []


def test_poll_failure_on_host_reports_network_error_only() -> None:
    host = Network(_BrokenTransport())
    host.start_host()
    host.update(0.0)
    assert host.get_messages() == [
        NetworkError(source="service", previous_role="host", error="socket closed")
    ]
    assert host.role == Role.NONE


def test_membership_changes_are_logged(caplog) -> None:
    caplog.set_level(logging.INFO, logger="bots.net")
    _session(1)
    assert "Player 2 connected" in caplog.text
    assert "Assigned player id 2" in caplog.text
