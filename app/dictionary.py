from __future__ import annotations
import asyncio
import logging
from collections import OrderedDict
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional, Set

import requests

from .config import Config
from .errors import DictionaryUnavailable

logger = logging.getLogger(__name__)

SINGLE_LETTER_WORDS = frozenset({'A', 'I'})

# Checked before any variant list; every variant accepts these.
COMMON_WORDS = {
    'IN', 'ON', 'AT', 'TO', 'BE', 'IS', 'IT', 'OF', 'AND', 'OR', 'THE', 'FOR', 'YOU', 'THEY',
    'WE', 'HE', 'SHE', 'ME', 'MY', 'BY', 'UP', 'GO', 'DO', 'NO', 'SO', 'IF', 'AS', 'AN', 'ALL',
    'BUT', 'CAT', 'DOG', 'SUN', 'RUN', 'FUN', 'HAT', 'BAT', 'RAT', 'SAT', 'MAT', 'FAT', 'VAN',
    'MAN', 'CAN', 'FAN', 'PAN', 'TAN', 'WAS', 'HAD', 'HAS', 'HIS', 'HER', 'HIM', 'HOW', 'NOW',
    'NEW', 'WHO', 'WHY', 'WAY', 'DAY', 'SAY', 'MAY', 'PAY', 'LAY', 'RAY', 'BAY', 'HAY', 'NAY',
    'PLAY', 'STAY', 'GRAY', 'PRAY', 'TRAY', 'CLAY', 'SLAY', 'SPRAY', 'STRAY', 'TIME', 'GAME',
    'WORD', 'WORDS', 'SCORE', 'BOARD', 'TILE', 'TILES', 'RACK', 'TURN',
}

_TWL_WORDS = {
    # Two-letter words
    'AA', 'AB', 'AD', 'AE', 'AG', 'AH', 'AI', 'AL', 'AM', 'AN', 'AR', 'AS', 'AT', 'AW', 'AX', 'AY',
    'BA', 'BE', 'BI', 'BO', 'BY',
    'DO', 'ED', 'EF', 'EH', 'EL', 'EM', 'EN', 'ER', 'ES', 'ET', 'EX',
    'FA', 'GO', 'HA', 'HE', 'HI', 'HM', 'HO', 'ID', 'IF', 'IN', 'IS', 'IT', 'JO', 'KA', 'KI', 'LA', 'LI', 'LO',
    'MA', 'ME', 'MI', 'MM', 'MO', 'MU', 'MY', 'NA', 'NE', 'NO', 'NU', 'OD', 'OE', 'OF', 'OH', 'OI', 'OM', 'ON', 'OP', 'OR', 'OS', 'OW', 'OX', 'OY',
    'PA', 'PE', 'PI', 'QI', 'RE', 'SH', 'SI', 'SO', 'TA', 'TI', 'TO', 'UH', 'UM', 'UN', 'UP', 'US', 'UT', 'WE', 'WO', 'XI', 'XU', 'YA', 'YE', 'YO', 'ZA',
    # Longer words
    'HELLO', 'WORLD', 'SCRABBLE', 'TILE', 'BOARD', 'WORD', 'PLAY', 'GAME', 'POINT', 'QUIZ', 'JAZZ', 'FUZZ', 'PUZZLE', 'BLANK',
    'CAT', 'DOG', 'FISH', 'BIRD', 'HOUSE', 'MOUSE', 'TABLE', 'CHAIR', 'ZOO', 'ECHO', 'RHYTHM', 'COLOR', 'FAVOR', 'HONOR',
}

# Collins adds British spellings and extra two-letter words on top of TWL.
_SOWPODS_EXTRA = {
    'CH', 'DA', 'EE', 'FY', 'GI', 'GU', 'IO', 'KO', 'KY', 'NY', 'OB', 'OO', 'OU', 'ST', 'UG', 'UR', 'YU', 'ZE', 'ZO',
    'COLOUR', 'FAVOUR', 'HONOUR', 'QAT', 'QADI',
}

# ENABLE predates several newer two-letter additions.
_ENABLE_MISSING = {'KI', 'OI', 'QI', 'ZA'}


class DictionaryVariant(str, Enum):
    TWL = 'TWL'
    SOWPODS = 'SOWPODS'
    ENABLE = 'ENABLE'

    @classmethod
    def parse(cls, value) -> 'DictionaryVariant':
        if isinstance(value, cls):
            return value
        key = str(value or '').strip().upper()
        aliases = {'A': cls.TWL, 'B': cls.SOWPODS, 'C': cls.ENABLE}
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f'Unknown dictionary variant: {value!r}') from None


def _upper(words: Iterable[str]) -> Set[str]:
    return {w.strip().upper() for w in words if w.strip()}


def builtin_words(variant: DictionaryVariant) -> Set[str]:
    if variant is DictionaryVariant.SOWPODS:
        return _upper(_TWL_WORDS | _SOWPODS_EXTRA)
    if variant is DictionaryVariant.ENABLE:
        return _upper(_TWL_WORDS - _ENABLE_MISSING)
    return _upper(_TWL_WORDS)


def load_wordlist(path: Path) -> Set[str]:
    with open(path, 'r', encoding='utf-8') as f:
        return _upper(line for line in f if not line.startswith('#'))


class DictionaryService:
    """Word legality oracle: common words, then the variant list, then the remote service.

    The remote service is unreliable by assumption. Any failure to get an
    answer counts as "not a word"; nothing here raises to the caller.
    """

    def __init__(
        self,
        wordlist_dir: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        remote_enabled: Optional[bool] = None,
        default_variant=None,
        cache_size: Optional[int] = None,
    ):
        self.api_url = api_url or Config.DICTIONARY_API_URL
        self.timeout = Config.DICTIONARY_TIMEOUT_SEC if timeout is None else timeout
        self.remote_enabled = Config.DICTIONARY_REMOTE_ENABLED if remote_enabled is None else remote_enabled
        self.default_variant = DictionaryVariant.parse(default_variant or Config.DEFAULT_DICTIONARY)
        self._common: Set[str] = _upper(COMMON_WORDS)
        self._words: Dict[DictionaryVariant, Set[str]] = {}
        self.cache_size = Config.DICTIONARY_CACHE_SIZE if cache_size is None else cache_size
        # least recently used first
        self._remote_cache: "OrderedDict[str, bool]" = OrderedDict()
        wordlist_dir = wordlist_dir if wordlist_dir is not None else Config.WORDLIST_DIR
        for variant in DictionaryVariant:
            words = builtin_words(variant)
            if wordlist_dir:
                path = Path(wordlist_dir) / f'{variant.value.lower()}.txt'
                if path.exists():
                    words |= load_wordlist(path)
                    logger.info('Loaded %s wordlist from %s (%d words)', variant.value, path, len(words))
            self._words[variant] = words

    @staticmethod
    def normalize(word: str) -> str:
        return (word or '').strip().upper()

    def is_known(self, word: str, variant=None) -> Optional[bool]:
        """Local verdict: True/False when the local sets decide, None when only the remote could."""
        w = self.normalize(word)
        if not w or not w.isalpha():
            return False
        if len(w) == 1:
            return w in SINGLE_LETTER_WORDS
        if w in self._common:
            return True
        variant = DictionaryVariant.parse(variant) if variant else self.default_variant
        if w in self._words[variant]:
            return True
        return None

    async def is_valid(self, word: str, variant=None) -> bool:
        local = self.is_known(word, variant)
        if local is not None:
            return local
        if not self.remote_enabled:
            return False
        w = self.normalize(word)
        try:
            return await self.remote_lookup(w)
        except DictionaryUnavailable as exc:
            logger.warning('Remote dictionary unavailable for %s: %s', w, exc.message)
            return False

    async def remote_lookup(self, word: str) -> bool:
        if word in self._remote_cache:
            self._remote_cache.move_to_end(word)
            return self._remote_cache[word]
        try:
            found = await asyncio.wait_for(asyncio.to_thread(self._fetch, word), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise DictionaryUnavailable(f'timed out after {self.timeout}s') from None
        self._remember(word, found)
        return found

    def _remember(self, word: str, found: bool) -> None:
        if self.cache_size <= 0:
            return
        self._remote_cache[word] = found
        while len(self._remote_cache) > self.cache_size:
            self._remote_cache.popitem(last=False)

    def _fetch(self, word: str) -> bool:
        try:
            response = requests.get(
                self.api_url,
                params={'sp': word.lower(), 'max': 1},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise DictionaryUnavailable(str(exc)) from exc
        if not isinstance(data, list) or not data:
            return False
        first = data[0]
        return isinstance(first, dict) and str(first.get('word', '')).lower() == word.lower()


# Singleton instance
service = DictionaryService()
