from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .board import Board, Bonus, CENTER, Placement, in_bounds
from .errors import InvalidPlacement
from .schemas import Direction
from .tiles import RACK_SIZE, Tile

_STEP = {'H': (0, 1), 'V': (1, 0)}
_CROSS = {'H': 'V', 'V': 'H'}


@dataclass(frozen=True)
class WordTile:
    letter: str
    points: int
    row: int
    col: int
    is_new: bool

    @property
    def bonus(self) -> Bonus:
        return Board.bonus_at(self.row, self.col)


@dataclass(frozen=True)
class Word:
    tiles: Tuple[WordTile, ...]
    direction: Direction

    @property
    def text(self) -> str:
        return ''.join(t.letter for t in self.tiles)

    @property
    def cells(self) -> Tuple[Tuple[int, int], ...]:
        return tuple((t.row, t.col) for t in self.tiles)

    def __len__(self) -> int:
        return len(self.tiles)


class MoveValidator:
    """Placement legality and word extraction for one submitted move.

    validate() runs before any scoring or dictionary work and stops at the
    first failing check, so every rejection carries exactly one reason.
    """

    def validate(self, placements: Sequence[Placement], board: Board, first_move: Optional[bool] = None) -> Direction:
        if first_move is None:
            first_move = board.is_empty()
        if not placements:
            raise InvalidPlacement('no_tiles', 'No tiles placed')
        if len(placements) > RACK_SIZE:
            raise InvalidPlacement('too_many_tiles', f'Cannot place more than {RACK_SIZE} tiles')

        cells = [p.cell for p in placements]
        if len(set(cells)) != len(cells):
            raise InvalidPlacement('duplicate_cell', 'Two tiles target the same square')
        if not all(in_bounds(r, c) for r, c in cells):
            raise InvalidPlacement('out_of_bounds', 'Tile out of bounds')
        if any(board.is_occupied(r, c) for r, c in cells):
            raise InvalidPlacement('cell_occupied', 'Square is already taken')

        direction = self.axis(placements)
        self._check_gaps(placements, board, direction)

        if first_move:
            if CENTER not in cells:
                raise InvalidPlacement('first_move_center', 'First move must cover the center star')
        elif not any(self._touches_existing(r, c, board) for r, c in cells):
            raise InvalidPlacement('not_connected', 'Tiles must connect to existing words')
        return direction

    @staticmethod
    def axis(placements: Sequence[Placement]) -> Direction:
        rows = {p.row for p in placements}
        cols = {p.col for p in placements}
        if len(rows) == 1:
            return 'H'
        if len(cols) == 1:
            return 'V'
        raise InvalidPlacement('not_collinear', 'Tiles must be in a straight line')

    @staticmethod
    def _check_gaps(placements: Sequence[Placement], board: Board, direction: Direction) -> None:
        new_cells = {p.cell for p in placements}
        if direction == 'H':
            row = placements[0].row
            idx = [p.col for p in placements]
            span = [(row, c) for c in range(min(idx), max(idx) + 1)]
        else:
            col = placements[0].col
            idx = [p.row for p in placements]
            span = [(r, col) for r in range(min(idx), max(idx) + 1)]
        for r, c in span:
            if (r, c) not in new_cells and not board.is_occupied(r, c):
                raise InvalidPlacement('gap', 'Tiles must be placed without gaps')

    @staticmethod
    def _touches_existing(row: int, col: int, board: Board) -> bool:
        return any(
            board.is_occupied(row + dr, col + dc)
            for dr, dc in ((-1, 0), (1, 0), (0, -1), (0, 1))
        )

    def extract_words(self, placements: Sequence[Placement], board: Board, direction: Optional[Direction] = None) -> List[Word]:
        """Main word along the placement axis plus one cross word per new tile."""
        new_tiles: Dict[Tuple[int, int], Tile] = {p.cell: p.tile for p in placements}
        direction = direction or self.axis(placements)

        def tile_at(row: int, col: int) -> Optional[Tile]:
            return new_tiles.get((row, col)) or board.tile_at(row, col)

        def walk(row: int, col: int, d: Direction) -> Optional[Word]:
            dr, dc = _STEP[d]
            while in_bounds(row - dr, col - dc) and tile_at(row - dr, col - dc):
                row, col = row - dr, col - dc
            tiles = []
            while in_bounds(row, col):
                tile = tile_at(row, col)
                if tile is None:
                    break
                tiles.append(WordTile(tile.letter, tile.points, row, col, (row, col) in new_tiles))
                row, col = row + dr, col + dc
            if len(tiles) < 2:
                return None
            return Word(tuple(tiles), d)

        words: List[Word] = []
        seen = set()

        def add(word: Optional[Word]) -> None:
            if word is None:
                return
            key = (word.text, word.cells)
            if key not in seen:
                seen.add(key)
                words.append(word)

        first = placements[0]
        add(walk(first.row, first.col, direction))
        cross = _CROSS[direction]
        for p in placements:
            add(walk(p.row, p.col, cross))

        if not words and len(placements) == 1:
            # lone tile on an empty board; the dictionary decides on single letters
            tile = first.tile
            words.append(Word((WordTile(tile.letter, tile.points, first.row, first.col, True),), direction))
        return words
