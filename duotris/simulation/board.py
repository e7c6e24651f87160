"""The playfield grid.

Cells are stored row-major, one byte each: 0 is empty, otherwise the
tetromino type + 1 that locked there. This is exactly the layout carried
in a GAME_STATE snapshot.
"""

from __future__ import annotations

from duotris.config import BOARD_HEIGHT, BOARD_WIDTH
from duotris.simulation.pieces import Piece


class Board:
    def __init__(self, width: int = BOARD_WIDTH, height: int = BOARD_HEIGHT) -> None:
        self.width = width
        self.height = height
        self.cells = bytearray(width * height)

    def get(self, x: int, y: int) -> int:
        return self.cells[y * self.width + x]

    def set(self, x: int, y: int, value: int) -> None:
        self.cells[y * self.width + x] = value

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def collides(self, piece: Piece) -> bool:
        """Whether the piece overlaps a wall, the floor or a locked cell.

        Cells above the top edge are allowed so pieces can spawn partly hidden.
        """
        for x, y in piece.cells():
            if x < 0 or x >= self.width or y >= self.height:
                return True
            if y >= 0 and self.get(x, y) != 0:
                return True
        return False

    def place(self, piece: Piece) -> bool:
        """Lock a piece into the grid.

        Returns False if any of its cells lie above the top edge (the stack
        has overflowed), True otherwise.
        """
        fits = True
        for x, y in piece.cells():
            if self.in_bounds(x, y):
                self.set(x, y, piece.kind + 1)
            else:
                fits = False
        return fits

    def clear_lines(self) -> int:
        """Remove full rows, shift the rest down. Returns rows removed."""
        w = self.width
        kept = [
            self.cells[y * w:(y + 1) * w]
            for y in range(self.height)
            if 0 in self.cells[y * w:(y + 1) * w]
        ]
        cleared = self.height - len(kept)
        if cleared:
            self.cells = bytearray(w * cleared) + b"".join(kept)
        return cleared

    def with_piece(self, piece: Piece | None) -> bytes:
        """Grid bytes with a falling piece drawn in (visible cells only)."""
        cells = bytearray(self.cells)
        if piece is not None:
            for x, y in piece.cells():
                if self.in_bounds(x, y):
                    cells[y * self.width + x] = piece.kind + 1
        return bytes(cells)
