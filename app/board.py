from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .tiles import Tile

BOARD_SIZE = 15
CENTER = (7, 7)


class Bonus(str, Enum):
    NONE = 'none'
    DL = 'DL'
    TL = 'TL'
    DW = 'DW'
    TW = 'TW'
    CENTER = 'center'

    @property
    def letter_multiplier(self) -> int:
        return {Bonus.DL: 2, Bonus.TL: 3}.get(self, 1)

    @property
    def word_multiplier(self) -> int:
        # the center star is a double word on first use
        return {Bonus.DW: 2, Bonus.CENTER: 2, Bonus.TW: 3}.get(self, 1)


_TW = [(0, 0), (0, 7), (0, 14), (7, 0), (7, 14), (14, 0), (14, 7), (14, 14)]
_DW = [
    (1, 1), (2, 2), (3, 3), (4, 4), (10, 10), (11, 11), (12, 12), (13, 13),
    (1, 13), (2, 12), (3, 11), (4, 10), (10, 4), (11, 3), (12, 2), (13, 1),
]
_TL = [
    (1, 5), (1, 9), (5, 1), (5, 5), (5, 9), (5, 13),
    (9, 1), (9, 5), (9, 9), (9, 13), (13, 5), (13, 9),
]
_DL = [
    (0, 3), (0, 11), (2, 6), (2, 8), (3, 0), (3, 7), (3, 14),
    (6, 2), (6, 6), (6, 8), (6, 12), (7, 3), (7, 11),
    (8, 2), (8, 6), (8, 8), (8, 12), (11, 0), (11, 7), (11, 14),
    (12, 6), (12, 8), (14, 3), (14, 11),
]

BONUS_SQUARES: Dict[Tuple[int, int], Bonus] = {CENTER: Bonus.CENTER}
for _bonus, _cells in ((Bonus.TW, _TW), (Bonus.DW, _DW), (Bonus.TL, _TL), (Bonus.DL, _DL)):
    for _cell in _cells:
        BONUS_SQUARES[_cell] = _bonus


def in_bounds(row: int, col: int) -> bool:
    return 0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE


@dataclass(frozen=True)
class Placement:
    tile: Tile
    row: int
    col: int

    @property
    def cell(self) -> Tuple[int, int]:
        return (self.row, self.col)


class Board:
    def __init__(self):
        self._grid: List[List[Optional[Tile]]] = [[None for _ in range(BOARD_SIZE)] for _ in range(BOARD_SIZE)]
        self._count = 0

    def tile_at(self, row: int, col: int) -> Optional[Tile]:
        if not in_bounds(row, col):
            return None
        return self._grid[row][col]

    def is_occupied(self, row: int, col: int) -> bool:
        return self.tile_at(row, col) is not None

    def is_empty(self) -> bool:
        return self._count == 0

    @staticmethod
    def bonus_at(row: int, col: int) -> Bonus:
        return BONUS_SQUARES.get((row, col), Bonus.NONE)

    def tiles(self) -> List[Tile]:
        return [t for row in self._grid for t in row if t is not None]

    def apply(self, placements: Iterable[Placement]) -> None:
        """Write every placement or none of them."""
        placements = list(placements)
        cells = set()
        for p in placements:
            if not in_bounds(p.row, p.col) or self._grid[p.row][p.col] is not None or p.cell in cells:
                raise ValueError(f'cannot place tile at {p.cell}')
            cells.add(p.cell)
        for p in placements:
            self._grid[p.row][p.col] = p.tile
        self._count += len(placements)

    def snapshot(self) -> List[List[Optional[dict]]]:
        return [
            [None if t is None else {'letter': t.letter, 'points': t.points, 'isBlank': t.is_blank} for t in row]
            for row in self._grid
        ]
