"""Tests for the playfield grid."""

from duotris.simulation.board import Board
from duotris.simulation.pieces import Piece, Tetromino


def _fill_row(board: Board, y: int, skip: tuple[int, ...] = ()) -> None:
    for x in range(board.width):
        if x not in skip:
            board.set(x, y, 1)


class TestCollision:
    def test_spawn_is_free(self):
        assert not Board().collides(Piece.spawn(Tetromino.T))

    def test_walls_and_floor(self):
        board = Board()
        assert board.collides(Piece(Tetromino.O, -2, 0))
        assert board.collides(Piece(Tetromino.O, 8, 0))
        assert board.collides(Piece(Tetromino.O, 3, 19))

    def test_above_top_allowed(self):
        assert not Board().collides(Piece(Tetromino.O, 3, -1))

    def test_locked_cells(self):
        board = Board()
        board.set(4, 1, 3)
        assert board.collides(Piece(Tetromino.O, 3, 0))


class TestPlace:
    def test_writes_kind_plus_one(self):
        board = Board()
        assert board.place(Piece(Tetromino.O, 3, 18))
        assert board.get(4, 18) == Tetromino.O + 1
        assert board.get(5, 19) == Tetromino.O + 1
        assert sum(1 for c in board.cells if c) == 4

    def test_above_top_reports_overflow(self):
        board = Board()
        assert not board.place(Piece(Tetromino.O, 3, -1))
        assert board.get(4, 0) == Tetromino.O + 1


class TestClearLines:
    def test_nothing_to_clear(self):
        board = Board()
        _fill_row(board, 19, skip=(0,))
        assert board.clear_lines() == 0

    def test_rows_shift_down(self):
        board = Board()
        _fill_row(board, 19)
        _fill_row(board, 18)
        board.set(2, 17, 5)
        assert board.clear_lines() == 2
        assert board.get(2, 19) == 5
        assert len(board.cells) == board.width * board.height
        assert sum(1 for c in board.cells if c) == 1

    def test_with_piece_leaves_grid_alone(self):
        board = Board()
        cells = board.with_piece(Piece.spawn(Tetromino.I))
        assert cells[3:7] == bytes([Tetromino.I + 1] * 4)
        assert not any(board.cells)
