"""Session network settings."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from bots.engine.settings import read_settings

DEFAULT_PORT = 27015
DEFAULT_TICK_RATE = 1.0 / 30.0
MAX_PLAYERS = 3
CHANNEL_COUNT = 2
HOST_PLAYER_ID = 1


@dataclass(frozen=True)
class NetworkSettings:
    """Fixed session parameters; the port is not negotiated at runtime."""

    port: int = DEFAULT_PORT
    tick_rate: float = DEFAULT_TICK_RATE
    max_players: int = MAX_PLAYERS
    channels: int = CHANNEL_COUNT

    @property
    def client_ids(self) -> range:
        """Player ids handed to clients, lowest first."""

        return range(HOST_PLAYER_ID + 1, self.max_players + 1)

    @classmethod
    def from_settings(cls, settings_path: Path) -> "NetworkSettings":
        data = read_settings(settings_path)
        port = data.get("netPort", DEFAULT_PORT)
        if not isinstance(port, int) or not 0 < port < 65536:
            port = DEFAULT_PORT
        tick_rate = data.get("netTickRate", DEFAULT_TICK_RATE)
        if not isinstance(tick_rate, (int, float)) or tick_rate <= 0:
            tick_rate = DEFAULT_TICK_RATE
        return cls(port=port, tick_rate=float(tick_rate))


__all__ = [
    "CHANNEL_COUNT",
    "DEFAULT_PORT",
    "DEFAULT_TICK_RATE",
    "HOST_PLAYER_ID",
    "MAX_PLAYERS",
    "NetworkSettings",
]
