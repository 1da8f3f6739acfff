from __future__ import annotations
import random
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Tuple

RACK_SIZE = 7
BLANK = ' '

# letter -> (count, points); '_' is the blank
LETTER_DISTRIBUTION: Dict[str, Tuple[int, int]] = {
    'A': (9, 1), 'B': (2, 3), 'C': (2, 3), 'D': (4, 2), 'E': (12, 1),
    'F': (2, 4), 'G': (3, 2), 'H': (2, 4), 'I': (9, 1), 'J': (1, 8),
    'K': (1, 5), 'L': (4, 1), 'M': (2, 3), 'N': (6, 1), 'O': (8, 1),
    'P': (2, 3), 'Q': (1, 10), 'R': (6, 1), 'S': (4, 1), 'T': (6, 1),
    'U': (4, 1), 'V': (2, 4), 'W': (2, 4), 'X': (1, 8), 'Y': (2, 4),
    'Z': (1, 10), '_': (2, 0),
}

TOTAL_TILES = sum(count for count, _ in LETTER_DISTRIBUTION.values())


@dataclass(frozen=True)
class Tile:
    id: str
    letter: str
    points: int
    is_blank: bool = False

    def designate(self, letter: str) -> 'Tile':
        """Return the played face of a blank; blanks stay worth 0."""
        if not self.is_blank:
            return self
        return replace(self, letter=letter.upper(), points=0)

    @property
    def kind(self) -> str:
        # what the tile counts as in the distribution
        return '_' if self.is_blank else self.letter


def fisher_yates(items: list, rng: random.Random) -> None:
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]


class TileBag:
    def __init__(self, tiles: Optional[List[Tile]] = None, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self._tiles: List[Tile] = list(tiles) if tiles is not None else []

    @classmethod
    def standard(cls, rng: Optional[random.Random] = None, shuffle: bool = True) -> 'TileBag':
        bag = cls(initialize_tile_bag(), rng)
        if shuffle:
            bag.shuffle()
        return bag

    def __len__(self) -> int:
        return len(self._tiles)

    def __iter__(self):
        return iter(self._tiles)

    @property
    def tiles(self) -> Tuple[Tile, ...]:
        return tuple(self._tiles)

    def shuffle(self) -> None:
        fisher_yates(self._tiles, self.rng)

    def draw(self, n: int) -> List[Tile]:
        """Remove up to n tiles from the front. Fewer come back once the bag runs dry."""
        n = max(0, min(n, len(self._tiles)))
        drawn, self._tiles = self._tiles[:n], self._tiles[n:]
        return drawn

    def refill(self, rack: List[Tile]) -> List[Tile]:
        drawn = self.draw(RACK_SIZE - len(rack))
        rack.extend(drawn)
        return drawn

    def deal_initial_racks(self, player_count: int) -> List[List[Tile]]:
        # player 0 draws first; tests rely on this order
        return [self.draw(RACK_SIZE) for _ in range(player_count)]

    def exchange(self, tiles: Iterable[Tile]) -> List[Tile]:
        """Swap: draw replacements first, then return the tiles and reshuffle."""
        returned = list(tiles)
        drawn = self.draw(len(returned))
        self.put_back(returned)
        return drawn

    def put_back(self, tiles: Iterable[Tile]) -> None:
        self._tiles.extend(tiles)
        self.shuffle()


def initialize_tile_bag() -> List[Tile]:
    tiles: List[Tile] = []
    for letter, (count, points) in LETTER_DISTRIBUTION.items():
        for _ in range(count):
            is_blank = letter == '_'
            tiles.append(Tile(
                id=f'tile-{len(tiles)}',
                letter=BLANK if is_blank else letter,
                points=points,
                is_blank=is_blank,
            ))
    return tiles
