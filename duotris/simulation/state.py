"""Authoritative game state, owned by the host.

GameState holds everything needed to describe one falling-block game. The
host mutates it through duotris.simulation.tick and publishes it to clients
as a GameStateSnapshot; clients never hold a GameState of their own.

Piece order comes from a deterministic LCG seeded at construction, so a
given seed always deals the same sequence.
"""

from __future__ import annotations

from duotris.config import (
    INITIAL_FALL_DELAY_MS,
    INITIAL_LEVEL,
    LEVEL_SPEED_REDUCTION_MS,
    MIN_FALL_DELAY_MS,
)
from duotris.networking.protocol import GameStateSnapshot
from duotris.simulation.board import Board
from duotris.simulation.pieces import TETROMINO_COUNT, Piece, Tetromino


class GameState:
    """Complete simulation state for a game.

    Attributes:
        board: Locked cells.
        current: The falling piece, or None once the game is over.
        next_piece: The kind that spawns after the current piece locks.
        held_piece: The kind set aside with HOLD, or None.
        score, level, lines_cleared: Scoring progress.
        elapsed_ms: Simulated time since the game started.
        fall_timer_ms: Time accumulated towards the next gravity step.
        paused: Gravity is suspended while True.
        game_over: The stack reached the top.
    """

    def __init__(self, seed: int = 0) -> None:
        self.board = Board()
        self.rng_state: int = seed & 0xFFFFFFFF
        self.score: int = 0
        self.level: int = INITIAL_LEVEL
        self.lines_cleared: int = 0
        self.elapsed_ms: int = 0
        self.fall_timer_ms: int = 0
        self.paused: bool = False
        self.game_over: bool = False
        self.held_piece: Tetromino | None = None
        self.can_hold: bool = True
        self.current: Piece | None = None
        self.next_piece: Tetromino = self._random_kind()
        self.spawn_next()

    def next_random(self, bound: int) -> int:
        """Deterministic PRNG (LCG). Returns a value in [0, bound)."""
        # LCG parameters (Numerical Recipes)
        self.rng_state = (self.rng_state * 1664525 + 1013904223) & 0xFFFFFFFF
        return (self.rng_state >> 16) % bound

    def _random_kind(self) -> Tetromino:
        return Tetromino(self.next_random(TETROMINO_COUNT))

    def spawn_next(self) -> bool:
        """Bring the next piece into play. Returns False (game over) if blocked."""
        return self.spawn(self.next_piece, advance_queue=True)

    def spawn(self, kind: Tetromino, advance_queue: bool = False) -> bool:
        piece = Piece.spawn(kind)
        if advance_queue:
            self.next_piece = self._random_kind()
        self.fall_timer_ms = 0
        if self.board.collides(piece):
            self.current = None
            self.game_over = True
            return False
        self.current = piece
        return True

    @property
    def fall_delay_ms(self) -> int:
        delay = INITIAL_FALL_DELAY_MS - (self.level - 1) * LEVEL_SPEED_REDUCTION_MS
        return max(MIN_FALL_DELAY_MS, delay)

    def try_move(self, dx: int, dy: int) -> bool:
        """Move the falling piece if the target is free."""
        if self.current is None:
            return False
        moved = self.current.moved(dx, dy)
        if self.board.collides(moved):
            return False
        self.current = moved
        return True

    def snapshot(self) -> GameStateSnapshot:
        """The view published to clients: grid with the falling piece drawn in."""
        return GameStateSnapshot(
            elapsed_time=self.elapsed_ms / 1000,
            score=self.score,
            board=self.board.with_piece(self.current),
            next_piece=int(self.next_piece),
        )
