"""Session state owned by a single :class:`~bots.net.network.Network`."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .config import HOST_PLAYER_ID
from .events import NetworkEvent
from .transport import Endpoint, PeerHandle


class Role(str, enum.Enum):
    NONE = "none"
    HOST = "host"
    CLIENT = "client"


@dataclass
class SessionState:
    """Role, identity, peers and the inbound queue for one session.

    ``peers`` maps player id to handle and ``peer_ids`` is the reverse side
    table keyed by handle identity; both change together.
    """

    role: Role = Role.NONE
    local_player_id: int = HOST_PLAYER_ID
    endpoint: Optional[Endpoint] = None
    server_peer: Optional[PeerHandle] = None
    peers: Dict[int, PeerHandle] = field(default_factory=dict)
    peer_ids: Dict[int, int] = field(default_factory=dict)
    inbound: List[NetworkEvent] = field(default_factory=list)

    def reset(self) -> None:
        self.role = Role.NONE
        self.local_player_id = HOST_PLAYER_ID
        self.endpoint = None
        self.server_peer = None
        self.peers = {}
        self.peer_ids = {}
        self.inbound = []

    def free_slot(self, client_ids: Sequence[int]) -> Optional[int]:
        """Lowest id in ``client_ids`` with no registered peer."""

        for player_id in client_ids:
            if player_id not in self.peers:
                return player_id
        return None

    def register_peer(self, player_id: int, peer: PeerHandle) -> None:
        if player_id in self.peers:
            raise ValueError(f"Player slot {player_id} is already taken")
        self.peers[player_id] = peer
        self.peer_ids[id(peer)] = player_id

    def player_id_for(self, peer: PeerHandle) -> Optional[int]:
        player_id = self.peer_ids.get(id(peer))
        if player_id is None or self.peers.get(player_id) is not peer:
            return None
        return player_id

    def unregister_peer(self, peer: PeerHandle) -> Optional[int]:
        player_id = self.player_id_for(peer)
        if player_id is None:
            return None
        del self.peers[player_id]
        del self.peer_ids[id(peer)]
        return player_id

    def push(self, event: NetworkEvent) -> None:
        self.inbound.append(event)

    def drain(self) -> List[NetworkEvent]:
        events = self.inbound
        self.inbound = []
        return events


__all__ = ["Role", "SessionState"]
