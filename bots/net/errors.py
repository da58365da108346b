"""Exception hierarchy for the session networking layer."""
from __future__ import annotations


class BotsNetError(Exception):
    """Base class for networking failures surfaced to callers."""


class NetworkSetupError(BotsNetError):
    """Raised when a host or client endpoint cannot be created."""


class TransportError(BotsNetError):
    """Raised by transport backends when an endpoint operation fails."""


class WireFormatError(BotsNetError, ValueError):
    """Raised when a message field cannot be represented on the wire."""


__all__ = ["BotsNetError", "NetworkSetupError", "TransportError", "WireFormatError"]
