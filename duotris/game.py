"""Per-role game loops.

HostGame owns the authoritative GameState: every frame it polls the host
session, applies client input, advances gravity and broadcasts snapshots.
ClientGame owns nothing but the last snapshot it received: every frame it
sends changed input, drains incoming messages and keeps the session alive.

Both split a frame into step() (network + simulation, testable without a
display) and rendering.
"""

from __future__ import annotations

import logging
import time
from enum import Enum, auto

import pygame

from duotris.config import FPS, SNAPSHOT_RATE
from duotris.input.handler import InputHandler
from duotris.networking.client import ClientSession
from duotris.networking.errors import (
    AllSendsFailed,
    DisconnectedError,
    HeartbeatTimeout,
    SendFailed,
)
from duotris.networking.host import HostSession
from duotris.networking.protocol import (
    GameEvent,
    GameEventKind,
    GameStateSnapshot,
    InputKey,
    MessageType,
    NetworkMessage,
    PlayerInputBatch,
)
from duotris.networking.serialization import message_for
from duotris.rendering.renderer import Renderer
from duotris.simulation.state import GameState
from duotris.simulation.tick import advance, apply_input

logger = logging.getLogger(__name__)

SNAPSHOT_INTERVAL_MS = 1000 // SNAPSHOT_RATE
MAX_MESSAGES_PER_FRAME = 32


class GamePhase(Enum):
    CONNECTING = auto()
    PLAYING = auto()
    DISCONNECTED = auto()


def _quit_requested(events: list[pygame.event.Event]) -> bool:
    for event in events:
        if event.type == pygame.QUIT:
            return True
        if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
            return True
    return False


class HostGame:
    """Runs the simulation and serves it to connected clients."""

    def __init__(
        self,
        host: HostSession,
        seed: int,
        renderer: Renderer | None = None,
    ) -> None:
        self._host = host
        self._state = GameState(seed=seed)
        self._renderer = renderer
        self._previous_inputs: dict[int, PlayerInputBatch] = {}
        self._known_slots: set[int] = set()
        self._snapshot_timer_ms = 0

    @property
    def state(self) -> GameState:
        return self._state

    def run(self) -> None:
        """Main loop. Returns when the window is closed."""
        clock = pygame.time.Clock()
        last_ms = pygame.time.get_ticks()
        try:
            while not _quit_requested(pygame.event.get()):
                now_ms = pygame.time.get_ticks()
                self.step(now_ms - last_ms)
                last_ms = now_ms
                self._render(clock)
                clock.tick(FPS)
        finally:
            self._host.shutdown()

    def step(self, dt_ms: int) -> None:
        """One frame of networking and simulation."""
        self._host.poll_and_dispatch()
        self._track_peers()

        events: list[GameEvent] = []
        for slot_id, message in self._host.receive_inputs():
            batch = message.payload
            events.extend(apply_input(self._state, batch, self._previous_inputs.get(slot_id)))
            self._previous_inputs[slot_id] = batch
        events.extend(advance(self._state, dt_ms))

        for event in events:
            self._broadcast(message_for(event))

        self._snapshot_timer_ms += dt_ms
        if self._snapshot_timer_ms >= SNAPSHOT_INTERVAL_MS or events:
            self._snapshot_timer_ms = 0
            self._broadcast(message_for(self._state.snapshot()))

        if self._host.check_liveness():
            self._track_peers()

    def _track_peers(self) -> None:
        """Announce joins and departures, and forget departed peers' input."""
        current = set(self._host.connected_slots())
        for slot_id in sorted(current - self._known_slots):
            self._broadcast(message_for(GameEvent(GameEventKind.PEER_JOINED, slot_id)))
        for slot_id in sorted(self._known_slots - current):
            self._previous_inputs.pop(slot_id, None)
            self._broadcast(message_for(GameEvent(GameEventKind.PEER_LEFT, slot_id)))
        self._known_slots = current

    def _broadcast(self, message: NetworkMessage) -> None:
        try:
            self._host.broadcast(message)
        except AllSendsFailed as e:
            logger.warning("%s", e)

    def _render(self, clock: pygame.time.Clock) -> None:
        if self._renderer is None:
            return
        status = {
            "Role": "host",
            "Port": str(self._host.address[1]),
            "Peers": f"{self._host.peer_count}/{self._host.max_peers}",
            "Level": str(self._state.level),
            "Lines": str(self._state.lines_cleared),
            "FPS": str(int(clock.get_fps())),
        }
        banner = None
        if self._state.game_over:
            banner = "GAME OVER"
        elif self._state.paused:
            banner = "PAUSED"
        elif self._host.peer_count == 0:
            banner = "Waiting for players..."
        self._renderer.draw(self._state.snapshot(), status, banner)


class ClientGame:
    """Sends input to the host and shows whatever it last sent back."""

    def __init__(
        self,
        client: ClientSession,
        player_name: str | None = None,
        renderer: Renderer | None = None,
        input_handler: InputHandler | None = None,
    ) -> None:
        self._client = client
        # sent from step() because the connection may still be in progress
        self._pending_join = player_name
        self._renderer = renderer
        self._input = input_handler if input_handler is not None else InputHandler()
        self._phase = GamePhase.CONNECTING
        self._snapshot: GameStateSnapshot | None = None
        self._last_event: GameEvent | None = None
        self._disconnect_reason = ""

    @property
    def phase(self) -> GamePhase:
        return self._phase

    @property
    def snapshot(self) -> GameStateSnapshot | None:
        return self._snapshot

    @property
    def disconnect_reason(self) -> str:
        return self._disconnect_reason

    def run(self) -> None:
        """Main loop. Returns when the window is closed or QUIT is pressed."""
        clock = pygame.time.Clock()
        try:
            while not _quit_requested(pygame.event.get()):
                batch = self._input.poll(time.monotonic())
                if batch.is_pressed(InputKey.QUIT):
                    break
                self.step(batch)
                self._render(clock)
                clock.tick(FPS)
        finally:
            self._client.disconnect()

    def step(self, batch: PlayerInputBatch | None = None) -> None:
        """One frame: send changed input, drain messages, keep alive."""
        if self._phase == GamePhase.DISCONNECTED:
            return
        try:
            if self._pending_join is not None and self._client.request_join(self._pending_join):
                self._pending_join = None
            if batch is not None and self._input.changed(batch):
                self._client.send(message_for(batch))
            for _ in range(MAX_MESSAGES_PER_FRAME):
                message = self._client.receive()
                if message is None:
                    break
                self._handle(message)
                if self._phase == GamePhase.DISCONNECTED:
                    return
            self._client.check_liveness()
        except (DisconnectedError, HeartbeatTimeout, SendFailed) as e:
            self._lose_session(str(e))

    def _handle(self, message: NetworkMessage) -> None:
        msg_type = message.msg_type
        if msg_type == MessageType.GAME_STATE:
            self._snapshot = message.payload
            self._phase = GamePhase.PLAYING
        elif msg_type == MessageType.GAME_EVENT:
            self._last_event = message.payload
            logger.info("Game event: %s", message.payload)
        elif msg_type == MessageType.CONNECT_REJECT:
            self._lose_session("rejected by host")
        elif msg_type == MessageType.DISCONNECT:
            self._lose_session("host closed the session")

    def _lose_session(self, reason: str) -> None:
        logger.warning("Session lost: %s", reason)
        self._client.disconnect()
        self._disconnect_reason = reason
        self._phase = GamePhase.DISCONNECTED

    def _render(self, clock: pygame.time.Clock) -> None:
        if self._renderer is None:
            return
        status = {
            "Role": "client",
            "Player": str(self._client.player_id),
            "FPS": str(int(clock.get_fps())),
        }
        if self._last_event is not None:
            status["Event"] = f"{self._last_event.kind.name} {self._last_event.value}"
        banner = None
        if self._phase == GamePhase.CONNECTING:
            banner = "Connecting..."
        elif self._phase == GamePhase.DISCONNECTED:
            banner = "Disconnected"
        self._renderer.draw(self._snapshot, status, banner)
