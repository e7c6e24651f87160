"""Game renderer: draws a GameStateSnapshot and a status sidebar.

Both roles render through this class: the host draws its own snapshot,
clients draw the last snapshot they received. The renderer never looks at
a GameState directly.
"""

from __future__ import annotations

import pygame

from duotris.config import (
    BOARD_HEIGHT,
    BOARD_WIDTH,
    CELL_RENDER_SIZE,
    COLOR_BG,
    COLOR_GRID,
    COLOR_TEXT,
    COLOR_WARNING,
    PIECE_COLORS,
    SCREEN_MARGIN,
    SIDEBAR_WIDTH,
)
from duotris.networking.protocol import GameStateSnapshot
from duotris.simulation.pieces import ROTATIONS, Tetromino

PREVIEW_CELL_SIZE = CELL_RENDER_SIZE // 2


def screen_size() -> tuple[int, int]:
    """Window size that fits the board and the sidebar."""
    width = SCREEN_MARGIN * 3 + BOARD_WIDTH * CELL_RENDER_SIZE + SIDEBAR_WIDTH
    height = SCREEN_MARGIN * 2 + BOARD_HEIGHT * CELL_RENDER_SIZE
    return width, height


def cell_color(value: int) -> tuple[int, int, int] | None:
    """Color for a board cell value, None for empty or unknown cells."""
    if 1 <= value <= len(PIECE_COLORS):
        return PIECE_COLORS[value - 1]
    return None


class Renderer:
    """Draws snapshots to the screen."""

    def __init__(self, screen: pygame.Surface) -> None:
        self._screen = screen
        self._font = pygame.font.SysFont("monospace", 16)
        self._large_font = pygame.font.SysFont("monospace", 22, bold=True)
        self._board_rect = pygame.Rect(
            SCREEN_MARGIN, SCREEN_MARGIN,
            BOARD_WIDTH * CELL_RENDER_SIZE, BOARD_HEIGHT * CELL_RENDER_SIZE,
        )

    def draw(
        self,
        snapshot: GameStateSnapshot | None,
        status: dict[str, str],
        banner: str | None = None,
    ) -> None:
        """Draw one frame and flip the display."""
        self._screen.fill(COLOR_BG)
        self._draw_board(snapshot)
        self._draw_sidebar(snapshot, status)
        if banner:
            self._draw_banner(banner)
        pygame.display.flip()

    def _draw_board(self, snapshot: GameStateSnapshot | None) -> None:
        pygame.draw.rect(self._screen, COLOR_GRID, self._board_rect, 1)
        if snapshot is None:
            return
        cs = CELL_RENDER_SIZE
        for i, value in enumerate(snapshot.board[:BOARD_WIDTH * BOARD_HEIGHT]):
            color = cell_color(value)
            if color is None:
                continue
            x, y = i % BOARD_WIDTH, i // BOARD_WIDTH
            rect = pygame.Rect(
                self._board_rect.x + x * cs, self._board_rect.y + y * cs, cs - 1, cs - 1,
            )
            pygame.draw.rect(self._screen, color, rect)

    def _draw_sidebar(self, snapshot: GameStateSnapshot | None, status: dict[str, str]) -> None:
        x = self._board_rect.right + SCREEN_MARGIN
        y = self._board_rect.y
        lines: list[str] = []
        if snapshot is not None:
            lines.append(f"Score: {snapshot.score}")
            lines.append(f"Time:  {snapshot.elapsed_time:.1f}s")
        lines.extend(f"{key}: {value}" for key, value in status.items())
        for line in lines:
            text = self._font.render(line, True, COLOR_TEXT)
            self._screen.blit(text, (x, y))
            y += 22

        if snapshot is not None and 0 <= snapshot.next_piece < len(Tetromino):
            y += 10
            self._screen.blit(self._font.render("Next:", True, COLOR_TEXT), (x, y))
            y += 22
            kind = Tetromino(snapshot.next_piece)
            color = PIECE_COLORS[kind]
            ps = PREVIEW_CELL_SIZE
            for dx, dy in ROTATIONS[kind][0]:
                rect = pygame.Rect(x + dx * ps, y + dy * ps, ps - 1, ps - 1)
                pygame.draw.rect(self._screen, color, rect)

    def _draw_banner(self, banner: str) -> None:
        text = self._large_font.render(banner, True, COLOR_WARNING)
        rect = text.get_rect(center=self._board_rect.center)
        self._screen.blit(text, rect)
