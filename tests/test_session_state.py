from __future__ import annotations

import pytest

from bots.net.events import PlayerConnected
from bots.net.session import Role, SessionState


class _Peer:
    pass


def test_free_slot_prefers_lowest_id() -> None:
    state = SessionState()
    assert state.free_slot([2, 3]) == 2
    state.register_peer(2, _Peer())
    assert state.free_slot([2, 3]) == 3
    state.register_peer(3, _Peer())
    assert state.free_slot([2, 3]) is None


def test_slot_cannot_be_taken_twice() -> None:
    state = SessionState()
    state.register_peer(2, _Peer())
    with pytest.raises(ValueError):
        state.register_peer(2, _Peer())


def test_side_table_resolves_and_releases_peers() -> None:
    state = SessionState()
    first, second, stranger = _Peer(), _Peer(), _Peer()
    state.register_peer(2, first)
    state.register_peer(3, second)
    assert state.player_id_for(second) == 3
    assert state.player_id_for(stranger) is None
    assert state.unregister_peer(stranger) is None
    assert state.unregister_peer(first) == 2
    assert state.player_id_for(first) is None
    assert state.peers == {3: second}


def test_drain_swaps_queue() -> None:
    state = SessionState()
    state.push(PlayerConnected(2))
    drained = state.drain()
    state.push(PlayerConnected(3))
    assert drained == [PlayerConnected(2)]
    assert state.drain() == [PlayerConnected(3)]
    assert state.drain() == []


def test_reset_restores_defaults() -> None:
    state = SessionState(role=Role.CLIENT, local_player_id=3)
    state.register_peer(2, _Peer())
    state.push(PlayerConnected(2))
    state.reset()
    assert state.role == Role.NONE
    assert state.local_player_id == 1
    assert state.peers == {}
    assert state.peer_ids == {}
    assert state.inbound == []
