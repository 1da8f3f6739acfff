from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from ..config import Config
from ..errors import CommandConflict, OutOfTurn
from ..schemas import ChallengeOpened, ChallengeResolved, MoveRecord, Penalty
from .timer import Countdown

logger = logging.getLogger(__name__)


@dataclass
class Challenge:
    challenger_id: str
    target_id: str
    word: str
    issued_at: float
    window: float
    move_score: int = 0

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.window

    def opened(self) -> ChallengeOpened:
        return ChallengeOpened(
            challengerId=self.challenger_id,
            targetId=self.target_id,
            word=self.word,
            issuedAt=self.issued_at,
            expiresAt=self.expires_at,
        )


class ChallengeArbiter:
    """At most one open challenge per room; first come wins, later ones are rejected.

    The arbiter decides the verdict and the penalty. It applies only the
    clamped challenger penalty; undoing an invalid move is reported as a
    ``reversal`` and left to whoever applies moves.
    """

    def __init__(
        self,
        name: str,
        window: Optional[float] = None,
        penalty_points: Optional[int] = None,
        on_expire: Optional[Callable[[int], Awaitable[None]]] = None,
    ):
        self.name = name
        self.window = Config.CHALLENGE_WINDOW_SEC if window is None else window
        self.penalty_points = Config.CHALLENGE_PENALTY_POINTS if penalty_points is None else penalty_points
        self.on_expire = on_expire
        self.active: Optional[Challenge] = None
        self.generation = 0
        self._countdown: Optional[Countdown] = None

    def issue(self, challenger_id: str, target_id: str, word: str, last_move: Optional[MoveRecord]) -> Challenge:
        if self.active is not None:
            raise CommandConflict('A challenge is already in progress')
        if last_move is None:
            raise CommandConflict('There is no move to challenge')
        if challenger_id == last_move.playerId:
            raise CommandConflict('You cannot challenge your own move')
        if target_id != last_move.playerId:
            raise CommandConflict('Only the most recent move can be challenged')
        word = word.strip().upper()
        if word not in {w.word for w in last_move.words}:
            raise CommandConflict(f'{word} was not formed by the last move')

        self.generation += 1
        self.active = Challenge(
            challenger_id=challenger_id,
            target_id=target_id,
            word=word,
            issued_at=time.time(),
            window=self.window,
            move_score=last_move.score,
        )
        self._arm(self.generation)
        logger.info('[%s] challenge opened by %s against %s on %s', self.name, challenger_id, target_id, word)
        return self.active

    def respond(self, player_id: str, valid: bool, players: Dict[str, object]) -> ChallengeResolved:
        if self.active is None:
            raise CommandConflict('No challenge is in progress')
        if player_id != self.active.target_id:
            raise OutOfTurn('Only the challenged player can respond')
        return self._resolve(valid, 'response', players)

    def expire(self, generation: int, players: Dict[str, object]) -> Optional[ChallengeResolved]:
        """Window ran out with no response: the word stands."""
        if self.active is None or generation != self.generation:
            logger.info('[timer-abort] %s challenge gen=%s is stale', self.name, generation)
            return None
        return self._resolve(True, 'timeout', players)

    def cancel(self) -> None:
        self.active = None
        self.generation += 1
        if self._countdown:
            self._countdown.cancel()
            self._countdown = None

    def _resolve(self, valid: bool, resolved_by: str, players: Dict[str, object]) -> ChallengeResolved:
        challenge = self.active
        self.cancel()
        penalty = None
        reversal = None
        if valid:
            challenger = players.get(challenge.challenger_id)
            if challenger is not None:
                challenger.score = max(0, challenger.score - self.penalty_points)
            penalty = Penalty(playerId=challenge.challenger_id, points=self.penalty_points)
        else:
            reversal = Penalty(playerId=challenge.target_id, points=challenge.move_score)
        logger.info('[%s] challenge on %s resolved valid=%s by %s', self.name, challenge.word, valid, resolved_by)
        return ChallengeResolved(
            challengerId=challenge.challenger_id,
            targetId=challenge.target_id,
            word=challenge.word,
            valid=valid,
            penalty=penalty,
            reversal=reversal,
            resolvedBy=resolved_by,
        )

    def _arm(self, generation: int) -> None:
        if self.on_expire is None:
            return

        async def expire():
            await self.on_expire(generation)

        self._countdown = Countdown(f'{self.name} challenge gen={generation}', self.window, expire)
        self._countdown.start()
