from __future__ import annotations
from typing import Any, Dict, List, Optional


class GameError(Exception):
    """Base for every rejection the engine reports back to a caller.

    A GameError never means the room is broken: the command is dropped and
    the room state is exactly what it was before the call.
    """
    code = 'game_error'

    def __init__(self, message: str = '', detail: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.detail = detail or {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'ok': False, 'error': self.code, 'reason': self.message}
        if self.detail:
            payload['detail'] = self.detail
        return payload


class InvalidPlacement(GameError):
    code = 'invalid_placement'

    def __init__(self, reason: str, message: str = ''):
        super().__init__(message or reason, {'reason': reason})
        self.reason = reason


class InvalidWord(GameError):
    code = 'invalid_word'

    def __init__(self, invalid_words: List[str], words: Optional[list] = None, provisional_score: int = 0):
        super().__init__(
            'Not in dictionary: ' + ', '.join(invalid_words),
            {'invalidWords': invalid_words, 'provisionalScore': provisional_score},
        )
        self.invalid_words = invalid_words
        self.words = words or []
        self.provisional_score = provisional_score


class OutOfTurn(GameError):
    code = 'out_of_turn'


class CommandConflict(GameError):
    code = 'command_conflict'


class DictionaryUnavailable(GameError):
    # Raised inside the dictionary gate only; callers see "word not found".
    code = 'dictionary_unavailable'


class RoomNotFound(GameError):
    code = 'room_not_found'


class PlayerNotFound(GameError):
    code = 'player_not_found'
