"""
Tests for the board grid and bonus layout.
"""

import pytest

from app.board import BOARD_SIZE, BONUS_SQUARES, Board, Bonus, Placement
from app.tiles import Tile


def test_center_bonus(board):
    assert board.bonus_at(7, 7) == Bonus.CENTER
    assert Bonus.CENTER.word_multiplier == 2


def test_triple_word_positions():
    tw = {cell for cell, bonus in BONUS_SQUARES.items() if bonus == Bonus.TW}
    expected = {(r, c) for r in (0, 7, 14) for c in (0, 7, 14)} - {(7, 7)}
    assert tw == expected
    assert len(tw) == 8


def test_bonus_layout_is_symmetric(board):
    last = BOARD_SIZE - 1
    for r in range(BOARD_SIZE):
        for c in range(BOARD_SIZE):
            bonus = board.bonus_at(r, c)
            assert board.bonus_at(c, r) == bonus
            assert board.bonus_at(last - r, c) == bonus
            assert board.bonus_at(r, last - c) == bonus


def test_bonus_counts():
    counts = {}
    for bonus in BONUS_SQUARES.values():
        counts[bonus] = counts.get(bonus, 0) + 1
    assert counts == {Bonus.CENTER: 1, Bonus.TW: 8, Bonus.DW: 16, Bonus.TL: 12, Bonus.DL: 24}


def test_plain_square(board):
    assert board.bonus_at(7, 6) == Bonus.NONE
    assert Bonus.NONE.letter_multiplier == 1
    assert Bonus.NONE.word_multiplier == 1


def test_empty_until_first_apply(board):
    assert board.is_empty()
    board.apply([Placement(Tile('t1', 'A', 1), 7, 7)])
    assert not board.is_empty()
    assert board.tile_at(7, 7).letter == 'A'
    assert board.tile_at(15, 0) is None


def test_apply_is_all_or_nothing(board):
    board.apply([Placement(Tile('t1', 'A', 1), 7, 7)])
    with pytest.raises(ValueError):
        board.apply([
            Placement(Tile('t2', 'B', 3), 7, 8),
            Placement(Tile('t3', 'C', 3), 7, 7),
        ])
    assert board.tile_at(7, 8) is None
    assert len(board.tiles()) == 1


def test_snapshot_shape(board):
    board.apply([Placement(Tile('t1', 'Q', 10), 0, 0)])
    snap = board.snapshot()
    assert len(snap) == 15 and all(len(row) == 15 for row in snap)
    assert snap[0][0] == {'letter': 'Q', 'points': 10, 'isBlank': False}
    assert snap[1][1] is None
