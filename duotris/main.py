"""Duotris entry point.

Usage:
    Host a game:    python -m duotris.main --host 5555
    Join a game:    python -m duotris.main --join 127.0.0.1:5555
    Debug logging:  python -m duotris.main --host 5555 -v
"""

from __future__ import annotations

import argparse
import logging
import sys
import time

import pygame

from duotris.config import DEFAULT_PORT, HEARTBEAT_INTERVAL_MS, MAX_PEERS
from duotris.game import ClientGame, HostGame
from duotris.networking.client import ClientSession
from duotris.networking.errors import ConnectFailed, InitializationError
from duotris.networking.host import HostSession
from duotris.rendering.renderer import Renderer, screen_size


def parse_address(addr: str) -> tuple[str, int]:
    """Split HOST:PORT. A missing port means DEFAULT_PORT."""
    host, sep, port = addr.rpartition(":")
    if not sep:
        return addr, DEFAULT_PORT
    if not host or not port.isdigit():
        raise ValueError(f"Invalid address: {addr}. Expected HOST:PORT")
    return host, int(port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Duotris: networked falling blocks")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--host", type=int, metavar="PORT", nargs="?", const=DEFAULT_PORT,
        help=f"Host a game on the given port (default {DEFAULT_PORT})",
    )
    group.add_argument(
        "--join", type=str, metavar="HOST:PORT",
        help="Join a game at HOST:PORT",
    )
    parser.add_argument(
        "--max-peers", type=int, default=MAX_PEERS,
        help="Maximum simultaneous clients when hosting",
    )
    parser.add_argument(
        "--heartbeat-ms", type=int, default=HEARTBEAT_INTERVAL_MS,
        help="Heartbeat interval in milliseconds",
    )
    parser.add_argument(
        "--name", type=str, default="player",
        help="Player name sent to the host when joining",
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Piece sequence seed when hosting (default: time based)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    return parser


def main() -> None:
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    pygame.init()
    screen = pygame.display.set_mode(screen_size())
    pygame.display.set_caption("Duotris")

    try:
        if args.host is not None:
            _run_host(screen, args)
        else:
            _run_join(screen, args)
    finally:
        pygame.quit()


def _run_host(screen: pygame.Surface, args: argparse.Namespace) -> None:
    """Host a game and serve it until the window closes."""
    host = HostSession(
        port=args.host,
        max_peers=args.max_peers,
        heartbeat_interval_ms=args.heartbeat_ms,
    )
    try:
        host.start()
    except InitializationError as e:
        print(f"Could not start host: {e}", file=sys.stderr)
        sys.exit(1)

    seed = args.seed if args.seed is not None else int(time.time() * 1000) & 0xFFFFFFFF
    pygame.display.set_caption(f"Duotris: hosting on port {host.address[1]}")
    HostGame(host, seed=seed, renderer=Renderer(screen)).run()


def _run_join(screen: pygame.Surface, args: argparse.Namespace) -> None:
    """Join an existing game."""
    try:
        address, port = parse_address(args.join)
    except ValueError as e:
        print(e, file=sys.stderr)
        sys.exit(1)

    client = ClientSession(heartbeat_interval_ms=args.heartbeat_ms)
    try:
        client.connect(address, port)
    except ConnectFailed as e:
        print(f"Could not connect: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Connecting to {address}:{port}...")
    pygame.display.set_caption(f"Duotris: {address}:{port}")
    ClientGame(client, player_name=args.name, renderer=Renderer(screen)).run()


if __name__ == "__main__":
    main()
