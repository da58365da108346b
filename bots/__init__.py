"""Networking and replication core for B.O.T.S LAN sessions."""

__version__ = "0.3.0"
