from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from ..config import Config
from ..errors import CommandConflict
from ..schemas import ClockState, GameStatus

logger = logging.getLogger(__name__)

MIN_PLAYERS = 2


@dataclass
class TurnClock:
    player_index: int
    started_at: float  # epoch seconds
    duration: float

    @property
    def expires_at(self) -> float:
        return self.started_at + self.duration

    def remaining(self, now: Optional[float] = None) -> float:
        now = time.time() if now is None else now
        return max(0.0, self.expires_at - now)

    def snapshot(self, player_id: Optional[str] = None) -> ClockState:
        return ClockState(
            playerIndex=self.player_index,
            playerId=player_id,
            startedAt=self.started_at,
            duration=self.duration,
            remaining=round(self.remaining(), 3),
            expiresAt=self.expires_at,
        )


class Countdown:
    """One-shot background timer with optional periodic sync and a single warning."""

    def __init__(
        self,
        name: str,
        duration: float,
        on_expire: Callable[[], Awaitable[None]],
        on_sync: Optional[Callable[[float], Awaitable[None]]] = None,
        sync_interval: Optional[float] = None,
        on_warning: Optional[Callable[[float], Awaitable[None]]] = None,
        warn_at: Optional[float] = None,
    ):
        self.name = name
        self.duration = duration
        self.on_expire = on_expire
        self.on_sync = on_sync
        self.sync_interval = sync_interval if on_sync else None
        self.on_warning = on_warning
        self.warn_at = warn_at if on_warning else None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info('[timer-set] %s duration=%ss', self.name, self.duration)
        self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        task, self._task = self._task, None
        # the expiry callback may cancel its own countdown while it runs
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self):
        try:
            deadline = time.monotonic() + self.duration
            next_sync = time.monotonic() + self.sync_interval if self.sync_interval else None
            warned = self.warn_at is None or self.warn_at >= self.duration
            while True:
                now = time.monotonic()
                remaining = deadline - now
                if remaining <= 0:
                    break
                if not warned and remaining <= self.warn_at:
                    warned = True
                    await self._notify(self.on_warning, remaining)
                if next_sync is not None and now >= next_sync:
                    next_sync = now + self.sync_interval
                    await self._notify(self.on_sync, remaining)
                wake = [remaining]
                if next_sync is not None:
                    wake.append(next_sync - now)
                if not warned:
                    wake.append(remaining - self.warn_at)
                await asyncio.sleep(max(0.0, min(wake)))
            logger.info('[timer-fire] %s', self.name)
            await self.on_expire()
        except asyncio.CancelledError:
            return
        except Exception:
            logger.exception('[timer-error] %s', self.name)

    async def _notify(self, callback, remaining: float) -> None:
        try:
            await callback(remaining)
        except Exception:
            logger.exception('[timer-error] %s notify failed', self.name)


class TurnController:
    """Whose turn it is, and the countdown that ends a turn nobody plays.

    WAITING -> IN_PROGRESS(turn_index) -> FINISHED. Every advance replaces the
    clock and bumps ``generation``; the expiry hook receives the generation
    it was armed with so a late expiry for an old turn is ignored.
    """

    def __init__(
        self,
        name: str,
        turn_duration: Optional[float] = None,
        on_expire: Optional[Callable[[int], Awaitable[None]]] = None,
        on_sync: Optional[Callable[[TurnClock], Awaitable[None]]] = None,
        on_warning: Optional[Callable[[TurnClock], Awaitable[None]]] = None,
        sync_interval: Optional[float] = None,
        warn_at: Optional[float] = None,
    ):
        self.name = name
        self.turn_duration = Config.TURN_DURATION_SEC if turn_duration is None else turn_duration
        self.on_expire = on_expire
        self.on_sync = on_sync
        self.on_warning = on_warning
        self.sync_interval = Config.TIMER_SYNC_SEC if sync_interval is None else sync_interval
        self.warn_at = Config.TIMER_WARNING_SEC if warn_at is None else warn_at
        self.status = GameStatus.WAITING
        self.turn_index = 0
        self.clock: Optional[TurnClock] = None
        self.generation = 0
        self._countdown: Optional[Countdown] = None

    @property
    def in_progress(self) -> bool:
        return self.status is GameStatus.IN_PROGRESS

    def start(self, players: List) -> TurnClock:
        if self.status is not GameStatus.WAITING:
            raise CommandConflict('Game already started')
        if len(players) < MIN_PLAYERS:
            raise CommandConflict(f'Need at least {MIN_PLAYERS} players to start')
        not_ready = [p.name for p in players if not p.is_host and not p.is_ready]
        if not_ready:
            raise CommandConflict('Players not ready: ' + ', '.join(not_ready))
        self.status = GameStatus.IN_PROGRESS
        self.turn_index = 0
        return self._new_clock()

    def advance(self, player_count: int) -> TurnClock:
        if not self.in_progress:
            raise CommandConflict('Game is not in progress')
        self.turn_index = (self.turn_index + 1) % player_count
        return self._new_clock()

    def player_removed(self, index: int, player_count: int) -> Optional[TurnClock]:
        """Re-point the turn after the player at ``index`` left; player_count is the new size.

        Returns a fresh clock when the departing player held the turn.
        """
        if not self.in_progress or player_count == 0:
            return None
        if index < self.turn_index:
            self.turn_index -= 1
            if self.clock:
                self.clock.player_index = self.turn_index
            return None
        if index == self.turn_index:
            self.turn_index %= player_count
            return self._new_clock()
        return None

    def finish(self) -> None:
        self.status = GameStatus.FINISHED
        self.generation += 1
        if self._countdown:
            self._countdown.cancel()
            self._countdown = None

    def remaining(self) -> float:
        return self.clock.remaining() if self.clock else 0.0

    def _new_clock(self) -> TurnClock:
        self.generation += 1
        self.clock = TurnClock(player_index=self.turn_index, started_at=time.time(), duration=self.turn_duration)
        self._arm(self.generation, self.clock)
        return self.clock

    def _arm(self, generation: int, clock: TurnClock) -> None:
        if self._countdown:
            self._countdown.cancel()
        if self.on_expire is None:
            self._countdown = None
            return

        async def expire():
            await self.on_expire(generation)

        async def sync(_remaining):
            if self.on_sync:
                await self.on_sync(clock)

        async def warn(_remaining):
            if self.on_warning:
                await self.on_warning(clock)

        self._countdown = Countdown(
            f'{self.name} turn={clock.player_index} gen={generation}',
            clock.duration,
            expire,
            on_sync=sync if self.on_sync else None,
            sync_interval=self.sync_interval,
            on_warning=warn if self.on_warning else None,
            warn_at=self.warn_at,
        )
        self._countdown.start()
