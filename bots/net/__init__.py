"""LAN session networking: roles, player ids and message transport."""

from .config import DEFAULT_PORT, NetworkSettings
from .errors import BotsNetError, NetworkSetupError, TransportError, WireFormatError
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
from .loopback import LoopbackTransport
from .network import Network
from .session import Role, SessionState
from .wire import decode, encode

__all__ = [
    "BotsNetError",
    "Connected",
    "DEFAULT_PORT",
    "Disconnected",
    "IdAssigned",
    "LoopbackTransport",
    "Message",
    "Network",
    "NetworkError",
    "NetworkEvent",
    "NetworkSettings",
    "NetworkSetupError",
    "PlayerConnected",
    "PlayerDisconnected",
    "Role",
    "ServerFull",
    "SessionState",
    "TransportError",
    "WireFormatError",
    "decode",
    "encode",
]
