"""Tetromino shapes and the falling piece.

Shapes are stored as sets of (x, y) cell offsets inside a square bounding
box, one set per rotation state. Rotation states 1-3 are derived from the
spawn state by rotating clockwise inside the box.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class Tetromino(IntEnum):
    I = 0
    O = 1
    S = 2
    Z = 3
    J = 4
    L = 5
    T = 6


TETROMINO_COUNT = len(Tetromino)

# Spawn-state layouts. The box size is the length of each row.
_SPAWN_LAYOUTS: dict[Tetromino, tuple[str, ...]] = {
    Tetromino.I: ("....", "####", "....", "...."),
    Tetromino.O: (".##.", ".##.", "....", "...."),
    Tetromino.S: (".##", "##.", "..."),
    Tetromino.Z: ("##.", ".##", "..."),
    Tetromino.J: ("#..", "###", "..."),
    Tetromino.L: ("..#", "###", "..."),
    Tetromino.T: (".#.", "###", "..."),
}

# (x, y) board position of the box's top-left corner at spawn
SPAWN_POSITIONS: dict[Tetromino, tuple[int, int]] = {
    Tetromino.I: (3, -1),
    Tetromino.O: (3, 0),
    Tetromino.S: (3, 0),
    Tetromino.Z: (3, 0),
    Tetromino.J: (3, 0),
    Tetromino.L: (3, 0),
    Tetromino.T: (3, 0),
}

# Offsets tried in order when a rotation collides in place.
WALL_KICKS: tuple[tuple[int, int], ...] = ((0, 0), (-1, 0), (1, 0), (0, -1), (-2, 0), (2, 0))

Cells = frozenset[tuple[int, int]]


def _parse(layout: tuple[str, ...]) -> Cells:
    return frozenset(
        (x, y)
        for y, row in enumerate(layout)
        for x, ch in enumerate(row)
        if ch == "#"
    )


def _rotate_cw(cells: Cells, box: int) -> Cells:
    return frozenset((box - 1 - y, x) for x, y in cells)


def _build_rotations() -> dict[Tetromino, tuple[Cells, ...]]:
    rotations: dict[Tetromino, tuple[Cells, ...]] = {}
    for kind, layout in _SPAWN_LAYOUTS.items():
        cells = _parse(layout)
        if kind == Tetromino.O:
            rotations[kind] = (cells,) * 4
            continue
        states = [cells]
        for _ in range(3):
            states.append(_rotate_cw(states[-1], len(layout)))
        rotations[kind] = tuple(states)
    return rotations


ROTATIONS = _build_rotations()


@dataclass(frozen=True, slots=True)
class Piece:
    """A tetromino at a board position. Immutable; moves return new pieces."""
    kind: Tetromino
    x: int
    y: int
    rotation: int = 0

    @classmethod
    def spawn(cls, kind: Tetromino) -> Piece:
        x, y = SPAWN_POSITIONS[kind]
        return cls(kind, x, y, 0)

    def cells(self) -> list[tuple[int, int]]:
        """Absolute board coordinates of the piece's four cells."""
        return sorted(
            (self.x + dx, self.y + dy) for dx, dy in ROTATIONS[self.kind][self.rotation]
        )

    def moved(self, dx: int, dy: int) -> Piece:
        return Piece(self.kind, self.x + dx, self.y + dy, self.rotation)

    def rotated(self, clockwise: bool = True) -> Piece:
        step = 1 if clockwise else 3
        return Piece(self.kind, self.x, self.y, (self.rotation + step) % 4)
