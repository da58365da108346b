"""Channel-toggled logging for the session layer.

Each channel (``net``, ``session``, ``hazards``) is a child of the ``bots``
logger and can be muted on its own from ``settings.json``. A channel may
carry a session tag such as ``host#1`` or ``client#3`` that prefixes its
records, so output from several processes on one console stays readable.
"""
from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from .settings import read_settings

ROOT_LOGGER = "bots"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

DEFAULT_CHANNELS = {
    "net": True,
    "session": True,
    "hazards": False,
}


def _level_from(name: object) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def _channels_from(overrides: object) -> Dict[str, bool]:
    channels = dict(DEFAULT_CHANNELS)
    if isinstance(overrides, Mapping):
        channels.update({str(name): bool(flag) for name, flag in overrides.items()})
    return channels


@dataclass
class LoggerConfig:
    level: int = logging.INFO
    channels: Dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_CHANNELS))

    @classmethod
    def from_settings(cls, settings_path: Path) -> "LoggerConfig":
        """Read ``logLevel`` and ``logChannels``; unknown levels fall back to INFO."""

        data = read_settings(settings_path)
        return cls(level=_level_from(data.get("logLevel", "INFO")), channels=_channels_from(data.get("logChannels")))


class ChannelLogger:
    """One switchable channel; records are dropped while it is disabled."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None, enabled: bool = True) -> None:
        self.name = name
        self.enabled = enabled
        self.tag = ""
        self._logger = logger or logging.getLogger(f"{ROOT_LOGGER}.{name}")

    def __repr__(self) -> str:
        state = "on" if self.enabled else "off"
        return f"ChannelLogger({self.name!r}, {state}, tag={self.tag!r})"

    def log(self, level: int, msg: str, *args, **kwargs) -> None:
        if not self.enabled:
            return
        if self.tag:
            msg = f"[{self.tag}] {msg}"
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)


class SessionLogger:
    """Registry of channels for one process."""

    def __init__(self, config: LoggerConfig) -> None:
        logging.basicConfig(level=config.level, format=LOG_FORMAT, stream=sys.stdout)
        self._channels: Dict[str, ChannelLogger] = {
            name: ChannelLogger(name, enabled=enabled) for name, enabled in config.channels.items()
        }

    def channel(self, name: str) -> ChannelLogger:
        # Channels nobody configured stay quiet until switched on.
        return self._channels.setdefault(name, ChannelLogger(name, enabled=False))

    def set_enabled(self, name: str, enabled: bool) -> None:
        self.channel(name).enabled = enabled

    def set_tag(self, tag: str) -> None:
        for channel in self._channels.values():
            channel.tag = tag

    def channels(self) -> Iterable[str]:
        return self._channels.keys()


def init_logger(settings_path: Optional[Path] = None) -> SessionLogger:
    return SessionLogger(LoggerConfig.from_settings(settings_path or Path("settings.json")))


__all__ = [
    "ChannelLogger",
    "DEFAULT_CHANNELS",
    "LoggerConfig",
    "SessionLogger",
    "init_logger",
]
