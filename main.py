"""Headless entry point for hosting or joining a B.O.T.S LAN session."""
from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import pygame

from bots.engine.logger import SessionLogger, init_logger
from bots.engine.loop import FixedTimestepLoop
from bots.hazards import HazardMirror, HazardSync
from bots.net import (
    Disconnected,
    IdAssigned,
    Message,
    Network,
    NetworkError,
    NetworkSettings,
    NetworkSetupError,
    PlayerConnected,
    PlayerDisconnected,
    ServerFull,
)
from bots.net.address import get_host_address

SETTINGS_PATH = Path("settings.json")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a headless B.O.T.S session")
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--host", action="store_true", help="host the session as player 1")
    mode.add_argument("--join", metavar="ADDRESS", help="join the host at ADDRESS[:PORT]")
    parser.add_argument("--port", type=int, default=None, help="session port (default from settings)")
    parser.add_argument("--hz", type=float, default=60.0, help="simulation ticks per second")
    parser.add_argument("--settings", type=Path, default=SETTINGS_PATH)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = NetworkSettings.from_settings(args.settings)
    if args.port is not None:
        settings = replace(settings, port=args.port)

    logger: SessionLogger = init_logger(args.settings)
    session_log = logger.channel("session")
    network = Network(settings=settings, logger=logger.channel("net"))
    hazards = HazardSync(network, HazardMirror(), logger=logger.channel("hazards"))

    try:
        if args.host:
            network.start_host()
            logger.set_tag("host#1")
            session_log.info("Hosting on %s:%d", get_host_address(), settings.port)
        else:
            network.start_client(args.join)
    except NetworkSetupError as exc:
        session_log.error("Error: %s", exc)
        return 1

    pygame.init()
    clock = pygame.time.Clock()

    def process_messages() -> None:
        for event in network.get_messages():
            if hazards.apply(event):
                continue
            if isinstance(event, PlayerConnected):
                session_log.info("Player %d connected (%d/3)", event.player_id, network.get_connected_count())
            elif isinstance(event, PlayerDisconnected):
                session_log.info("Player %d left", event.player_id)
            elif isinstance(event, IdAssigned):
                logger.set_tag(f"client#{event.player_id}")
                session_log.info("Joined as player %d", event.player_id)
            elif isinstance(event, ServerFull):
                session_log.warning("Server is full!")
            elif isinstance(event, (Disconnected, NetworkError)):
                session_log.warning("Disconnected from server")
                loop.stop()
            elif isinstance(event, Message) and event.from_player_id is not None:
                # Only the host sees sender ids; pass client traffic on.
                network.relay(event.from_player_id, event.type, event.data, reliable=True)

    def update(dt: float) -> None:
        network.update(dt)
        process_messages()
        hazards.update(dt)

    def idle(alpha: float) -> None:
        clock.tick(args.hz)

    loop = FixedTimestepLoop(update, idle, fixed_hz=args.hz)
    try:
        loop.run()
    except KeyboardInterrupt:
        session_log.info("Interrupted, closing session")
    finally:
        network.stop()
        pygame.quit()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
