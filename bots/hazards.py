"""Host-to-client replication of hazard (lightning) state.

The hazard simulation itself lives elsewhere; this module only defines the
snapshot it exposes and how that snapshot is flattened into wire fields.
Each strike or warning becomes one field group (``s0.x``, ``s0.age``, ...)
next to the counts ``sc``/``wc`` and the countdown ``nt``.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from bots.engine.logger import ChannelLogger
from bots.net.events import Message, NetworkEvent
from bots.net.network import Network
from bots.net.session import Role
from bots.net.wire import FieldValue

HAZARD_STATE = "hazard_state"
DEFAULT_NEXT_STRIKE = 5.0


@dataclass
class StrikeEffect:
    """An active bolt; ``age`` counts up from the moment it landed."""

    x: float
    age: float = 0.0


@dataclass
class StrikeWarning:
    """A pending strike marker shown before the bolt lands."""

    x: float
    age: float = 0.0


@dataclass
class HazardSnapshot:
    strikes: List[StrikeEffect] = field(default_factory=list)
    warnings: List[StrikeWarning] = field(default_factory=list)
    next_strike_timer: float = DEFAULT_NEXT_STRIKE


class HazardSource(Protocol):
    def get_state(self) -> HazardSnapshot: ...

    def set_state(self, snapshot: HazardSnapshot) -> None: ...


class HazardMirror:
    """Holds the latest snapshot for processes that do not simulate hazards."""

    def __init__(self, snapshot: Optional[HazardSnapshot] = None) -> None:
        self.snapshot = snapshot or HazardSnapshot()

    def get_state(self) -> HazardSnapshot:
        return self.snapshot

    def set_state(self, snapshot: HazardSnapshot) -> None:
        self.snapshot = snapshot


def snapshot_to_fields(snapshot: HazardSnapshot) -> Dict[str, FieldValue]:
    fields: Dict[str, FieldValue] = {
        "sc": len(snapshot.strikes),
        "wc": len(snapshot.warnings),
        "nt": float(snapshot.next_strike_timer),
    }
    for index, strike in enumerate(snapshot.strikes):
        fields[f"s{index}"] = {"x": float(strike.x), "age": float(strike.age)}
    for index, warning in enumerate(snapshot.warnings):
        fields[f"w{index}"] = {"x": float(warning.x), "age": float(warning.age)}
    return fields


def _number(value: object, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def _count(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(0, value)


def snapshot_from_fields(fields: Mapping[str, FieldValue]) -> HazardSnapshot:
    """Rebuild a snapshot; incomplete groups are skipped, not guessed."""

    snapshot = HazardSnapshot(next_strike_timer=_number(fields.get("nt"), DEFAULT_NEXT_STRIKE))
    for index in range(_count(fields.get("sc"))):
        group = fields.get(f"s{index}")
        if isinstance(group, Mapping) and "x" in group:
            snapshot.strikes.append(StrikeEffect(_number(group["x"], 0.0), _number(group.get("age"), 0.0)))
    for index in range(_count(fields.get("wc"))):
        group = fields.get(f"w{index}")
        if isinstance(group, Mapping) and "x" in group:
            snapshot.warnings.append(StrikeWarning(_number(group["x"], 0.0), _number(group.get("age"), 0.0)))
    return snapshot


class HazardSync:
    """Broadcasts the host's hazard snapshot and applies it on clients."""

    def __init__(
        self,
        network: Network,
        source: HazardSource,
        tick_rate: Optional[float] = None,
        logger: Optional[ChannelLogger] = None,
    ) -> None:
        self.network = network
        self.source = source
        self.tick_rate = tick_rate if tick_rate is not None else network.settings.tick_rate
        self.logger = logger
        self._timer = 0.0

    def update(self, dt: float) -> bool:
        """Advance the broadcast timer; returns True when a snapshot went out."""

        if self.network.role != Role.HOST:
            self._timer = 0.0
            return False
        self._timer += dt
        if self._timer < self.tick_rate:
            return False
        self._timer = 0.0
        self.network.send(HAZARD_STATE, snapshot_to_fields(self.source.get_state()), reliable=False)
        return True

    def apply(self, event: NetworkEvent) -> bool:
        """Apply a received ``hazard_state`` message; False for anything else."""

        if self.network.role != Role.CLIENT:
            return False
        if not isinstance(event, Message) or event.type != HAZARD_STATE:
            return False
        snapshot = snapshot_from_fields(event.data)
        self.source.set_state(snapshot)
        if self.logger and self.logger.enabled:
            self.logger.debug(
                "Hazard state: strikes=%d warnings=%d next=%.2f",
                len(snapshot.strikes),
                len(snapshot.warnings),
                snapshot.next_strike_timer,
            )
        return True


__all__ = [
    "HAZARD_STATE",
    "HazardMirror",
    "HazardSnapshot",
    "HazardSource",
    "HazardSync",
    "StrikeEffect",
    "StrikeWarning",
    "snapshot_from_fields",
    "snapshot_to_fields",
]
