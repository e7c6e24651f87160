"""Simulation rules: input handling and gravity.

The host feeds each client's PlayerInputBatch into apply_input() and calls
advance() once per frame with the frame's duration. Both return the
GameEvents worth telling clients about.

Inputs are edge triggered: a key acts on the batch where it becomes
pressed, compared with the previous batch from the same client.
"""

from __future__ import annotations

from duotris.config import (
    INITIAL_LEVEL,
    LINE_CLEAR_SCORES,
    LINES_PER_LEVEL,
    SCORE_HARD_DROP,
    SCORE_SOFT_DROP,
)
from duotris.networking.protocol import GameEvent, GameEventKind, InputKey, PlayerInputBatch
from duotris.simulation.pieces import WALL_KICKS
from duotris.simulation.state import GameState


def newly_pressed(
    batch: PlayerInputBatch, previous: PlayerInputBatch | None,
) -> list[InputKey]:
    """Keys pressed in batch that were not pressed in previous."""
    return [
        key for key in InputKey
        if batch.is_pressed(key) and not (previous is not None and previous.is_pressed(key))
    ]


def apply_input(
    state: GameState,
    batch: PlayerInputBatch,
    previous: PlayerInputBatch | None = None,
) -> list[GameEvent]:
    """Apply one client's input batch to the state."""
    if state.game_over:
        return []
    events: list[GameEvent] = []
    for key in newly_pressed(batch, previous):
        if key == InputKey.PAUSE:
            state.paused = not state.paused
            continue
        if state.paused or state.current is None:
            continue
        if key == InputKey.MOVE_LEFT:
            state.try_move(-1, 0)
        elif key == InputKey.MOVE_RIGHT:
            state.try_move(1, 0)
        elif key == InputKey.ROTATE_CW:
            rotate(state, clockwise=True)
        elif key == InputKey.ROTATE_CCW:
            rotate(state, clockwise=False)
        elif key == InputKey.SOFT_DROP:
            if state.try_move(0, 1):
                state.score += SCORE_SOFT_DROP
                state.fall_timer_ms = 0
        elif key == InputKey.HARD_DROP:
            distance = 0
            while state.try_move(0, 1):
                distance += 1
            state.score += SCORE_HARD_DROP * distance
            events.extend(lock_piece(state))
        elif key == InputKey.HOLD:
            hold(state)
    return events


def rotate(state: GameState, clockwise: bool) -> bool:
    """Rotate the falling piece, trying each wall kick in turn."""
    if state.current is None:
        return False
    turned = state.current.rotated(clockwise)
    for dx, dy in WALL_KICKS:
        candidate = turned.moved(dx, dy)
        if not state.board.collides(candidate):
            state.current = candidate
            return True
    return False


def hold(state: GameState) -> bool:
    """Swap the falling piece with the held one. Once per locked piece."""
    if state.current is None or not state.can_hold:
        return False
    held = state.held_piece
    state.held_piece = state.current.kind
    state.can_hold = False
    if held is None:
        state.spawn_next()
    else:
        state.spawn(held)
    return True


def lock_piece(state: GameState) -> list[GameEvent]:
    """Lock the falling piece, clear lines, score, and spawn the next piece."""
    events: list[GameEvent] = []
    piece = state.current
    if piece is None:
        return events
    state.current = None
    fits = state.board.place(piece)

    cleared = state.board.clear_lines()
    if cleared:
        state.score += LINE_CLEAR_SCORES[min(cleared, len(LINE_CLEAR_SCORES) - 1)] * state.level
        state.lines_cleared += cleared
        state.level = INITIAL_LEVEL + state.lines_cleared // LINES_PER_LEVEL
        events.append(GameEvent(GameEventKind.LINES_CLEARED, cleared))

    state.can_hold = True
    if not fits or not state.spawn_next():
        state.game_over = True
        state.current = None
        events.append(GameEvent(GameEventKind.GAME_OVER, state.score))
    return events


def advance(state: GameState, dt_ms: int) -> list[GameEvent]:
    """Advance game time by dt_ms, applying gravity as often as it is due."""
    if state.game_over or state.paused:
        return []
    state.elapsed_ms += dt_ms
    state.fall_timer_ms += dt_ms
    events: list[GameEvent] = []
    while not state.game_over and state.fall_timer_ms >= state.fall_delay_ms:
        state.fall_timer_ms -= state.fall_delay_ms
        if not state.try_move(0, 1):
            events.extend(lock_piece(state))
    return events
