"""Tests for tetromino shapes and rotation."""

import pytest

from duotris.simulation.pieces import ROTATIONS, Piece, Tetromino


class TestShapes:
    @pytest.mark.parametrize("kind", list(Tetromino))
    def test_four_cells_every_rotation(self, kind):
        for cells in ROTATIONS[kind]:
            assert len(cells) == 4

    def test_o_never_changes(self):
        assert len(set(ROTATIONS[Tetromino.O])) == 1

    def test_i_rotates_to_vertical(self):
        assert sorted(ROTATIONS[Tetromino.I][1]) == [(2, 0), (2, 1), (2, 2), (2, 3)]


class TestPiece:
    def test_spawn_i(self):
        assert Piece.spawn(Tetromino.I).cells() == [(3, 0), (4, 0), (5, 0), (6, 0)]

    def test_spawn_t(self):
        assert Piece.spawn(Tetromino.T).cells() == [(3, 1), (4, 0), (4, 1), (5, 1)]

    def test_moved(self):
        piece = Piece.spawn(Tetromino.O).moved(1, 2)
        assert (piece.x, piece.y) == (4, 2)

    @pytest.mark.parametrize("kind", list(Tetromino))
    def test_four_turns_return_home(self, kind):
        piece = Piece.spawn(kind)
        turned = piece
        for _ in range(4):
            turned = turned.rotated()
        assert turned == piece

    def test_counter_clockwise_undoes_clockwise(self):
        piece = Piece.spawn(Tetromino.L)
        assert piece.rotated(clockwise=True).rotated(clockwise=False) == piece
        assert piece.rotated(clockwise=False).rotation == 3
