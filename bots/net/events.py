"""Inbound events produced by :class:`bots.net.network.Network`.

Membership and handshake notifications are typed records; application
traffic arrives as a payload-agnostic :class:`Message`. Every event exposes
a ``type`` string so callers can dispatch on it the same way for both.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Optional, Union

from .wire import Fields


@dataclass(frozen=True)
class PlayerConnected:
    """Host side: a peer connected and was given ``player_id``."""

    type: ClassVar[str] = "player_connected"
    player_id: int


@dataclass(frozen=True)
class PlayerDisconnected:
    """Host side: the peer holding ``player_id`` left; its slot is free."""

    type: ClassVar[str] = "player_disconnected"
    player_id: int


@dataclass(frozen=True)
class Connected:
    """Client side: transport connection to the host is up, id not yet known."""

    type: ClassVar[str] = "connected"


@dataclass(frozen=True)
class IdAssigned:
    """Client side: the host assigned ``player_id`` to this process."""

    type: ClassVar[str] = "id_assigned"
    player_id: int


@dataclass(frozen=True)
class ServerFull:
    """Client side: the host rejected the connection for lack of a slot."""

    type: ClassVar[str] = "server_full"


@dataclass(frozen=True)
class Disconnected:
    """Client side: the connection to the host is gone."""

    type: ClassVar[str] = "disconnected"
    reason: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class NetworkError:
    """The transport failed while polling and the session was torn down."""

    type: ClassVar[str] = "network_error"
    source: str
    previous_role: str
    error: str


@dataclass(frozen=True)
class Message:
    """Application message passed through verbatim.

    ``from_player_id`` is the sender's registry id on the host and ``None``
    on a client, where everything comes from the host.
    """

    type: str
    data: Fields = field(default_factory=dict)
    from_player_id: Optional[int] = None


NetworkEvent = Union[
    PlayerConnected,
    PlayerDisconnected,
    Connected,
    IdAssigned,
    ServerFull,
    Disconnected,
    NetworkError,
    Message,
]


__all__ = [
    "Connected",
    "Disconnected",
    "IdAssigned",
    "Message",
    "NetworkError",
    "NetworkEvent",
    "PlayerConnected",
    "PlayerDisconnected",
    "ServerFull",
]
