"""
Pytest fixtures for the game engine tests.
"""

import random
from collections import Counter
from typing import List

import pytest

from app.board import Board, Placement
from app.dictionary import DictionaryService
from app.managers.game import RoomCoordinator
from app.schemas import RoomSettings, TilePayload
from app.tiles import LETTER_DISTRIBUTION, RACK_SIZE, Tile


class FakeSio:
    """Stands in for socketio.AsyncServer and records every emit."""

    def __init__(self):
        self.emitted = []

    async def emit(self, event, data=None, room=None, to=None, **kwargs):
        self.emitted.append((event, data, room or to))

    def events(self, name: str) -> list:
        return [data for event, data, _ in self.emitted if event == name]

    def targets(self, name: str) -> list:
        return [target for event, _, target in self.emitted if event == name]


@pytest.fixture
def sio():
    return FakeSio()


@pytest.fixture
def offline_dictionary():
    """Dictionary with the remote fallback switched off."""
    return DictionaryService(wordlist_dir='', remote_enabled=False)


@pytest.fixture
def board():
    return Board()


def make_room(sio, dictionary, turn_seconds: float = 60, max_players: int = 2, mode: str = 'classic', **kwargs) -> RoomCoordinator:
    return RoomCoordinator(
        'ROOM01',
        sio,
        mode=mode,
        max_players=max_players,
        settings=RoomSettings(dictionary='TWL', challengeMode=True, turnSeconds=turn_seconds),
        dictionary=dictionary,
        rng=random.Random(7),
        sync_interval=0,
        **kwargs,
    )


def tile(letter: str, points: int = 1, tid: str = None) -> Tile:
    return Tile(id=tid or f'test-{letter}-{random.random()}', letter=letter, points=points)


def place(word: str, row: int, col: int, direction: str = 'H', points: int = 1) -> List[Placement]:
    dr, dc = (0, 1) if direction == 'H' else (1, 0)
    return [Placement(tile(ch, points), row + i * dr, col + i * dc) for i, ch in enumerate(word)]


def payload(word: str, row: int, col: int, direction: str = 'H') -> List[TilePayload]:
    dr, dc = (0, 1) if direction == 'H' else (1, 0)
    return [TilePayload(letter=ch, row=row + i * dr, col=col + i * dc) for i, ch in enumerate(word)]


def rig_rack(room: RoomCoordinator, player, letters: str) -> None:
    """Give a player specific letters ('_' for a blank) without changing the 100-tile count.

    Tiles come from the bag, or from another rack which is then topped up from the bag.
    """
    def wanted(t, letter):
        return t.is_blank if letter == '_' else (t.letter == letter and not t.is_blank)

    room.bag._tiles.extend(player.rack)
    player.rack = []
    for letter in letters:
        match = next((t for t in room.bag._tiles if wanted(t, letter)), None)
        if match is not None:
            room.bag._tiles.remove(match)
        else:
            owner = next(p for p in room.players if p is not player and any(wanted(t, letter) for t in p.rack))
            match = next(t for t in owner.rack if wanted(t, letter))
            owner.rack.remove(match)
            owner.rack.extend(room.bag.draw(1))
        player.rack.append(match)
    player.rack.extend(room.bag.draw(RACK_SIZE - len(player.rack)))


def count_kinds(tiles) -> Counter:
    return Counter(t.kind for t in tiles)


def tile_census(room: RoomCoordinator) -> Counter:
    tiles = list(room.bag) + room.board.tiles()
    for p in room.players:
        tiles.extend(p.rack)
    return count_kinds(tiles)


def full_census() -> Counter:
    return Counter({letter: count for letter, (count, _) in LETTER_DISTRIBUTION.items()})
