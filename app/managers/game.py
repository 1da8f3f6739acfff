from __future__ import annotations
import asyncio
import logging
import random
import string
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from ..board import Board, Placement
from ..config import Config
from ..dictionary import DictionaryService, DictionaryVariant, service as dict_service
from ..errors import CommandConflict, InvalidPlacement, InvalidWord, OutOfTurn, PlayerNotFound, RoomNotFound
from ..schemas import (
    ChallengeCancelled, GameFinished, GameStarted, GameStatus, MoveRecord, MoveRejected, PlayerState, RackState,
    RoomSettings, RoomState, TilePayload, TileState, TimerState, TurnChanged, WordResult,
)
from ..scoring import MoveScore, ScoringEngine
from ..tiles import RACK_SIZE, Tile, TileBag
from ..validator import MoveValidator
from .challenge import ChallengeArbiter
from .timer import TurnClock, TurnController

logger = logging.getLogger(__name__)

ROOM_CODE_CHARS = string.ascii_uppercase + string.digits
ROOM_CODE_LENGTH = 6


def generate_room_code(rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    return ''.join(rng.choice(ROOM_CODE_CHARS) for _ in range(ROOM_CODE_LENGTH))


@dataclass
class Player:
    name: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    score: int = 0
    is_host: bool = False
    is_ready: bool = False
    is_bot: bool = False
    connected: bool = True
    rack: List[Tile] = field(default_factory=list)
    bot_difficulty: Optional[str] = None

    def to_state(self) -> PlayerState:
        return PlayerState(
            id=self.id,
            name=self.name,
            score=self.score,
            isHost=self.is_host,
            isReady=self.is_ready,
            isBot=self.is_bot,
            isConnected=self.connected,
            rackCount=len(self.rack),
        )

    def rack_state(self, bag_count: int) -> RackState:
        return RackState(
            playerId=self.id,
            tiles=[TileState(id=t.id, letter=t.letter, points=t.points, isBlank=t.is_blank) for t in self.rack],
            bagCount=bag_count,
        )


def word_results(move_score: MoveScore) -> List[WordResult]:
    return [WordResult.model_validate(ws.to_dict()) for ws in move_score.words]


class RoomCoordinator:
    """Single authority for one room.

    Every command and every timer expiry runs under the room lock, so board,
    bag, racks and clocks are never touched by two coroutines at once. Rooms
    share nothing, so different rooms proceed in parallel.
    """

    def __init__(
        self,
        code: str,
        sio,
        mode: str = 'classic',
        max_players: int = 2,
        settings: Optional[RoomSettings] = None,
        dictionary: Optional[DictionaryService] = None,
        rng: Optional[random.Random] = None,
        challenge_window: Optional[float] = None,
        challenge_penalty: Optional[int] = None,
        sync_interval: Optional[float] = None,
        warn_at: Optional[float] = None,
        bot_delay: Optional[float] = None,
    ):
        if not 2 <= max_players <= 4:
            raise CommandConflict('A room holds 2 to 4 players')
        self.code = code
        self.sio = sio
        self.mode = mode
        self.max_players = max_players
        self.settings = settings or RoomSettings()
        self.variant = DictionaryVariant.parse(self.settings.dictionary)
        self.dictionary = dictionary or dict_service
        self.rng = rng or random.Random()
        self.bot_delay = bot_delay

        self.players: List[Player] = []
        self.board = Board()
        self.bag = TileBag(rng=self.rng)
        self.validator = MoveValidator()
        self.scoring = ScoringEngine()
        self.turns = TurnController(
            code,
            turn_duration=self.settings.turnSeconds,
            on_expire=self.on_turn_timeout,
            on_sync=self._emit_timer_sync,
            on_warning=self._emit_timer_warning,
            sync_interval=sync_interval,
            warn_at=warn_at,
        )
        self.challenges = ChallengeArbiter(
            code,
            window=challenge_window,
            penalty_points=challenge_penalty,
            on_expire=self.on_challenge_timeout,
        )
        self.last_move: Optional[MoveRecord] = None
        self.history: List[MoveRecord] = []
        self._lock = asyncio.Lock()
        self._bot_task: Optional[asyncio.Task] = None
        self.created_at = time.monotonic()

    # Queries

    @property
    def status(self) -> GameStatus:
        return self.turns.status

    @property
    def has_humans(self) -> bool:
        return any(not p.is_bot for p in self.players)

    @property
    def current_player(self) -> Optional[Player]:
        if not self.players or not self.turns.in_progress:
            return None
        return self.players[self.turns.turn_index % len(self.players)]

    def get_player(self, player_id: str) -> Player:
        for p in self.players:
            if p.id == player_id:
                return p
        raise PlayerNotFound(f'Player {player_id} is not in room {self.code}')

    def to_state(self) -> RoomState:
        clock = None
        if self.turns.in_progress and self.turns.clock:
            clock = self._clock_state(self.turns.clock)
        active = self.challenges.active
        return RoomState(
            id=self.code,
            mode=self.mode,
            maxPlayers=self.max_players,
            status=self.status,
            settings=self.settings,
            players=[p.to_state() for p in self.players],
            board=self.board.snapshot(),
            bagCount=len(self.bag),
            turnIndex=self.turns.turn_index if self.turns.in_progress else None,
            clock=clock,
            lastMove=self.last_move,
            activeChallenge=active.opened() if active else None,
        )

    # Membership

    async def join(self, name: str, is_bot: bool = False, bot_difficulty: Optional[str] = None) -> Player:
        async with self._lock:
            if self.status is not GameStatus.WAITING:
                raise CommandConflict('Game already started')
            if len(self.players) >= self.max_players:
                raise CommandConflict('Room is full')
            is_host = not any(p.is_host for p in self.players) and not is_bot
            player = Player(
                name=name,
                is_host=is_host,
                is_ready=is_host or is_bot,
                is_bot=is_bot,
                bot_difficulty=bot_difficulty,
            )
            self.players.append(player)
            logger.info('[%s] %s joined as %s (host=%s)', self.code, name, player.id, is_host)
            await self._emit_room_state()
            return player

    async def add_bot(self, name: str, difficulty: str = 'beginner') -> Player:
        return await self.join(name, is_bot=True, bot_difficulty=difficulty)

    async def leave(self, player_id: str) -> bool:
        """Remove a player. Returns True when the room is now empty."""
        async with self._lock:
            player = self.get_player(player_id)
            index = self.players.index(player)
            self.players.remove(player)
            logger.info('[%s] %s left', self.code, player.name)

            if player.rack:
                # keep the 100-tile count intact
                self.bag.put_back(player.rack)
                player.rack = []

            active = self.challenges.active
            if active and player_id in (active.challenger_id, active.target_id):
                await self._cancel_challenge('leave')

            if player.is_host:
                successor = next((p for p in self.players if not p.is_bot), None)
                if successor:
                    successor.is_host = True
                    successor.is_ready = True

            if not self.has_humans:
                self._shutdown()
                return True

            if self.turns.in_progress:
                if len(self.players) < 2:
                    await self._finish()
                else:
                    clock = self.turns.player_removed(index, len(self.players))
                    if clock:
                        await self._emit_turn_changed(clock, 'leave')
                        self._maybe_schedule_bot_move()
            await self._emit_room_state()
            return False

    async def set_ready(self, player_id: str, ready: bool = True) -> Player:
        async with self._lock:
            player = self.get_player(player_id)
            if self.status is not GameStatus.WAITING:
                raise CommandConflict('Game already started')
            player.is_ready = True if player.is_host else ready
            await self._emit_room_state()
            return player

    # Game lifecycle

    async def start(self, player_id: str) -> TurnClock:
        async with self._lock:
            player = self.get_player(player_id)
            if not player.is_host:
                raise CommandConflict('Only the host can start the game')
            clock = self.turns.start(self.players)
            self.board = Board()
            self.bag = TileBag.standard(self.rng)
            for p, rack in zip(self.players, self.bag.deal_initial_racks(len(self.players))):
                p.rack = rack
                p.score = 0
            self.last_move = None
            self.history = []
            logger.info('[%s] game started with %d players', self.code, len(self.players))

            started = GameStarted(
                players=[p.to_state() for p in self.players],
                turnIndex=self.turns.turn_index,
                clock=self._clock_state(clock),
            )
            await self._emit('game.started', started)
            for p in self.players:
                await self._emit_rack(p)
            await self._emit_room_state()
            self._maybe_schedule_bot_move()
            return clock

    async def finish(self, player_id: str) -> GameFinished:
        async with self._lock:
            player = self.get_player(player_id)
            if not player.is_host:
                raise CommandConflict('Only the host can end the game')
            if not self.turns.in_progress:
                raise CommandConflict('Game is not in progress')
            return await self._finish()

    # Turn commands

    async def submit_move(self, player_id: str, tiles: Sequence[TilePayload]) -> MoveRecord:
        async with self._lock:
            player = self._require_current(player_id)
            try:
                placements = self._resolve_tiles(player, tiles)
                direction = self.validator.validate(placements, self.board)
                words = self.validator.extract_words(placements, self.board, direction)
                move_score = self.scoring.score_move(words, len(placements))
                invalid = []
                for ws in move_score.words:
                    ws.is_valid = await self.dictionary.is_valid(ws.text, self.variant)
                    if not ws.is_valid:
                        invalid.append(ws.text)
                if invalid:
                    raise InvalidWord(invalid, word_results(move_score), move_score.total)
            except InvalidWord as exc:
                await self._emit_rejection(player, exc, exc.words, exc.provisional_score)
                raise
            except InvalidPlacement as exc:
                await self._emit_rejection(player, exc)
                raise

            self.board.apply(placements)
            used = {p.tile.id for p in placements}
            player.rack = [t for t in player.rack if t.id not in used]
            player.score += move_score.total
            self.bag.refill(player.rack)

            record = MoveRecord(
                playerId=player.id,
                words=word_results(move_score),
                score=move_score.total,
                bingo=move_score.bingo,
                timestamp=time.time(),
            )
            self.last_move = record
            self.history.append(record)
            logger.info(
                '[%s] %s played %s for %d%s', self.code, player.name,
                ','.join(w.word for w in record.words), record.score, ' (bingo)' if record.bingo else '',
            )

            await self._emit('move.accepted', record)
            await self._emit_rack(player)
            await self._advance('move')
            return record

    async def pass_turn(self, player_id: str) -> TurnClock:
        async with self._lock:
            self._require_current(player_id)
            return await self._advance('pass')

    async def swap(self, player_id: str, tile_ids: Sequence[str]) -> List[Tile]:
        async with self._lock:
            player = self._require_current(player_id)
            if len(self.bag) < RACK_SIZE:
                raise CommandConflict(f'Swapping needs at least {RACK_SIZE} tiles in the bag')
            by_id = {t.id: t for t in player.rack}
            if len(set(tile_ids)) != len(tile_ids) or not all(tid in by_id for tid in tile_ids):
                raise InvalidPlacement('tile_not_in_rack', 'Swapped tiles must come from your rack')
            returned = [by_id[tid] for tid in tile_ids]
            drawn = self.bag.exchange(returned)
            player.rack = [t for t in player.rack if t.id not in set(tile_ids)] + drawn
            logger.info('[%s] %s swapped %d tiles', self.code, player.name, len(drawn))
            await self._emit_rack(player)
            await self._advance('swap')
            return drawn

    # Challenges

    async def issue_challenge(self, player_id: str, target_id: str, word: str):
        async with self._lock:
            self.get_player(player_id)
            self.get_player(target_id)
            if not self.turns.in_progress:
                raise CommandConflict('Game is not in progress')
            if not self.settings.challengeMode:
                raise CommandConflict('Challenges are disabled in this room')
            challenge = self.challenges.issue(player_id, target_id, word, self.last_move)
            await self._emit('challenge.opened', challenge.opened())
            return challenge

    async def respond_challenge(self, player_id: str, valid: bool):
        async with self._lock:
            self.get_player(player_id)
            resolved = self.challenges.respond(player_id, valid, self._player_map())
            await self._emit('challenge.resolved', resolved)
            await self._emit_room_state()
            return resolved

    # Timer hooks

    async def on_turn_timeout(self, generation: int) -> None:
        async with self._lock:
            if not self.turns.in_progress or generation != self.turns.generation:
                logger.info('[timer-abort] %s turn gen=%s is stale', self.code, generation)
                return
            player = self.current_player
            logger.info('[%s] %s ran out of time', self.code, player.name if player else '?')
            await self._advance('timeout')

    async def on_challenge_timeout(self, generation: int) -> None:
        async with self._lock:
            resolved = self.challenges.expire(generation, self._player_map())
            if resolved is None:
                return
            await self._emit('challenge.resolved', resolved)
            await self._emit_room_state()

    # Bot

    def _maybe_schedule_bot_move(self) -> None:
        player = self.current_player
        if player is None or not player.is_bot:
            return
        if self._bot_task and not self._bot_task.done():
            self._bot_task.cancel()
        delay = self.bot_delay if self.bot_delay is not None else self._bot_delay(player.bot_difficulty or 'beginner')
        self._bot_task = asyncio.create_task(self._bot_move_after(delay, player.id, self.turns.generation))

    def _bot_delay(self, difficulty: str) -> float:
        low, high = Config.BOT_MIN_DELAY_SEC, Config.BOT_MAX_DELAY_SEC
        if difficulty == 'beginner':
            return self.rng.uniform(low, (low + high) / 2)
        if difficulty == 'easy':
            return self.rng.uniform(low, high)
        return self.rng.uniform((low + high) / 2, high)

    async def _bot_move_after(self, delay: float, bot_id: str, generation: int):
        await asyncio.sleep(delay)
        async with self._lock:
            current = self.current_player
            if generation != self.turns.generation or current is None or current.id != bot_id:
                return
            # the bot only ever passes
            await self._advance('pass')

    # Internals

    def _require_current(self, player_id: str) -> Player:
        player = self.get_player(player_id)
        if not self.turns.in_progress:
            raise CommandConflict('Game is not in progress')
        if self.current_player is not player:
            raise OutOfTurn(f"It is not {player.name}'s turn")
        return player

    def _resolve_tiles(self, player: Player, tiles: Sequence[TilePayload]) -> List[Placement]:
        available = list(player.rack)
        placements: List[Placement] = []
        for t in tiles:
            letter = t.letter.strip().upper()
            if not (len(letter) == 1 and letter.isalpha()):
                raise InvalidPlacement('bad_letter', f'{t.letter!r} is not a letter')
            if t.tileId:
                tile = next((x for x in available if x.id == t.tileId), None)
            elif t.isBlank:
                tile = next((x for x in available if x.is_blank), None)
            else:
                tile = next((x for x in available if not x.is_blank and x.letter == letter), None)
            if tile is None:
                raise InvalidPlacement('tile_not_in_rack', f'No {letter} tile in your rack')
            if not tile.is_blank and tile.letter != letter:
                raise InvalidPlacement('tile_mismatch', f'Tile {tile.id} is not {letter}')
            available.remove(tile)
            placements.append(Placement(tile.designate(letter), t.row, t.col))
        return placements

    def _player_map(self) -> Dict[str, Player]:
        return {p.id: p for p in self.players}

    async def _advance(self, reason: str) -> TurnClock:
        clock = self.turns.advance(len(self.players))
        await self._emit_turn_changed(clock, reason)
        self._maybe_schedule_bot_move()
        return clock

    async def _finish(self) -> GameFinished:
        self.turns.finish()
        await self._cancel_challenge('finished')
        if self._bot_task and not self._bot_task.done():
            self._bot_task.cancel()
        best = max((p.score for p in self.players), default=0)
        finished = GameFinished(
            players=[p.to_state() for p in self.players],
            winnerIds=[p.id for p in self.players if p.score == best],
        )
        logger.info('[%s] game finished', self.code)
        await self._emit('game.finished', finished)
        await self._emit_room_state()
        return finished

    async def _cancel_challenge(self, reason: str) -> None:
        active = self.challenges.active
        self.challenges.cancel()
        if active is None:
            return
        logger.info('[%s] challenge on %s cancelled (%s)', self.code, active.word, reason)
        await self._emit('challenge.cancelled', ChallengeCancelled(
            challengerId=active.challenger_id, targetId=active.target_id, word=active.word, reason=reason,
        ))

    def _shutdown(self) -> None:
        self.turns.finish()
        self.challenges.cancel()
        if self._bot_task and not self._bot_task.done():
            self._bot_task.cancel()

    def _clock_state(self, clock: TurnClock):
        player = self.players[clock.player_index] if clock.player_index < len(self.players) else None
        return clock.snapshot(player.id if player else None)

    async def _emit(self, event: str, payload, to: Optional[str] = None) -> None:
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(by_alias=True, mode='json')
        await self.sio.emit(event, payload, room=to or self.code)

    async def _emit_room_state(self) -> None:
        await self._emit('room.state', self.to_state())

    async def _emit_rack(self, player: Player) -> None:
        # each connection also sits in a Socket.IO room named after its player id
        await self._emit('rack.updated', player.rack_state(len(self.bag)), to=player.id)

    async def _emit_turn_changed(self, clock: TurnClock, reason: str) -> None:
        state = self._clock_state(clock)
        await self._emit('turn.changed', TurnChanged(
            turnIndex=clock.player_index, playerId=state.playerId, clock=state, reason=reason,
        ))

    async def _emit_rejection(self, player: Player, exc, words: Optional[List[WordResult]] = None, score: Optional[int] = None) -> None:
        await self._emit('move.rejected', MoveRejected(
            playerId=player.id,
            error=exc.code,
            reason=exc.message,
            detail=exc.detail,
            words=words or [],
            score=score,
        ), to=player.id)

    async def _emit_timer_sync(self, clock: TurnClock) -> None:
        state = self._clock_state(clock)
        await self._emit('timer.sync', TimerState(
            turnIndex=clock.player_index, playerId=state.playerId,
            remaining=state.remaining, expiresAt=state.expiresAt,
        ))

    async def _emit_timer_warning(self, clock: TurnClock) -> None:
        state = self._clock_state(clock)
        await self._emit('timer.warning', TimerState(
            turnIndex=clock.player_index, playerId=state.playerId,
            remaining=state.remaining, expiresAt=state.expiresAt,
        ))


class RoomRegistry:
    """Rooms addressed by code.

    A room is dropped as soon as its last member leaves. Rooms that never get a
    human member (created over REST and abandoned) are swept once they are older
    than ``empty_ttl`` seconds.
    """

    def __init__(
        self,
        sio,
        dictionary: Optional[DictionaryService] = None,
        rng: Optional[random.Random] = None,
        empty_ttl: Optional[float] = None,
        **room_options,
    ):
        self.sio = sio
        self.dictionary = dictionary
        self.rng = rng or random.Random()
        self.empty_ttl = Config.EMPTY_ROOM_TTL_SEC if empty_ttl is None else empty_ttl
        self.room_options = room_options
        self.rooms: Dict[str, RoomCoordinator] = {}

    def create_room(self, mode: str = 'classic', max_players: int = 2, settings: Optional[RoomSettings] = None) -> RoomCoordinator:
        self.sweep()
        code = generate_room_code(self.rng)
        while code in self.rooms:
            code = generate_room_code(self.rng)
        room = RoomCoordinator(
            code,
            self.sio,
            mode=mode,
            max_players=max_players,
            settings=settings,
            dictionary=self.dictionary,
            rng=random.Random(self.rng.random()),
            **self.room_options,
        )
        self.rooms[code] = room
        logger.info('Room %s created (mode=%s, max=%d)', code, mode, max_players)
        return room

    def get(self, code: str) -> RoomCoordinator:
        room = self.rooms.get((code or '').upper())
        if room is None:
            raise RoomNotFound(f'Room {code} not found')
        return room

    async def leave(self, code: str, player_id: str) -> None:
        room = self.get(code)
        if await room.leave(player_id):
            self.destroy(room.code)

    def sweep(self, now: Optional[float] = None) -> List[str]:
        """Destroy rooms with no human member older than the TTL. Returns the dropped codes."""
        now = time.monotonic() if now is None else now
        stale = [
            code for code, room in self.rooms.items()
            if not room.has_humans and now - room.created_at >= self.empty_ttl
        ]
        for code in stale:
            self.destroy(code)
        return stale

    def destroy(self, code: str) -> None:
        room = self.rooms.pop(code, None)
        if room:
            room._shutdown()
            logger.info('Room %s destroyed', code)
