from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Sequence

from .config import Config
from .tiles import RACK_SIZE
from .validator import Word


@dataclass
class WordScore:
    word: Word
    score: int
    is_valid: bool = False

    @property
    def text(self) -> str:
        return self.word.text

    def to_dict(self) -> dict:
        return {
            'word': self.text,
            'score': self.score,
            'isValid': self.is_valid,
            'direction': self.word.direction,
            'tiles': [
                {'letter': t.letter, 'row': t.row, 'col': t.col, 'points': t.points, 'isNew': t.is_new}
                for t in self.word.tiles
            ],
        }


@dataclass
class MoveScore:
    words: List[WordScore] = field(default_factory=list)
    bingo: bool = False
    total: int = 0


class ScoringEngine:
    def __init__(self, bingo_bonus: int = None):
        self.bingo_bonus = Config.BINGO_BONUS if bingo_bonus is None else bingo_bonus

    @staticmethod
    def score_word(word: Word) -> int:
        total = 0
        word_multiplier = 1
        for tile in word.tiles:
            value = tile.points
            if tile.is_new:
                value *= tile.bonus.letter_multiplier
                word_multiplier *= tile.bonus.word_multiplier
            total += value
        return total * word_multiplier

    def score_move(self, words: Sequence[Word], tiles_placed: int) -> MoveScore:
        scored = [WordScore(word=w, score=self.score_word(w)) for w in words]
        bingo = tiles_placed == RACK_SIZE
        total = sum(ws.score for ws in scored) + (self.bingo_bonus if bingo else 0)
        return MoveScore(words=scored, bingo=bingo, total=total)
