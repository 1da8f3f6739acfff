from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Literal, Optional

from .config import Config

Direction = Literal['H', 'V']
RoomMode = Literal['classic', 'private', 'guest', 'practice']


class GameStatus(str, Enum):
    WAITING = 'waiting'
    IN_PROGRESS = 'in-progress'
    FINISHED = 'finished'


# Inbound payloads

class TilePayload(BaseModel):
    letter: str = Field(..., min_length=1, max_length=1)
    row: int
    col: int
    tileId: Optional[str] = None
    isBlank: bool = False


class MoveSubmit(BaseModel):
    roomId: Optional[str] = None
    tiles: List[TilePayload] = []


class RoomSettings(BaseModel):
    dictionary: str = Field(default_factory=lambda: Config.DEFAULT_DICTIONARY)
    challengeMode: bool = Field(default_factory=lambda: Config.CHALLENGE_MODE)
    turnSeconds: float = Field(default_factory=lambda: Config.TURN_DURATION_SEC, gt=0)


class CreateRoom(BaseModel):
    name: str = Field(..., min_length=1, max_length=32)
    mode: RoomMode = 'classic'
    maxPlayers: int = Field(2, ge=2, le=4)
    settings: RoomSettings = Field(default_factory=RoomSettings)


class JoinRoom(BaseModel):
    roomId: str
    name: str = Field(..., min_length=1, max_length=32)


class ReadyPayload(BaseModel):
    ready: bool = True


class SwapPayload(BaseModel):
    tileIds: List[str] = Field(..., min_length=1, max_length=7)


class ChallengeIssue(BaseModel):
    targetPlayerId: str
    word: str = Field(..., min_length=1)


class ChallengeRespond(BaseModel):
    valid: bool


# Outbound payloads

class TileState(BaseModel):
    id: str
    letter: str
    points: int = 0
    isBlank: bool = False


class PlayerState(BaseModel):
    id: str
    name: str
    score: int = 0
    isHost: bool = False
    isReady: bool = False
    isBot: bool = False
    isConnected: bool = True
    rackCount: int = 0


class ClockState(BaseModel):
    playerIndex: int
    playerId: Optional[str] = None
    startedAt: float
    duration: float
    remaining: float
    expiresAt: float


class WordTileState(BaseModel):
    letter: str
    row: int
    col: int
    points: int
    isNew: bool


class WordResult(BaseModel):
    word: str
    score: int
    isValid: bool = False
    direction: Direction
    tiles: List[WordTileState] = []


class MoveRecord(BaseModel):
    playerId: str
    words: List[WordResult] = []
    score: int = 0
    bingo: bool = False
    timestamp: float


class RoomState(BaseModel):
    id: str
    mode: RoomMode
    maxPlayers: int
    status: GameStatus
    settings: RoomSettings
    players: List[PlayerState]
    board: list
    bagCount: int = 100
    turnIndex: Optional[int] = None
    clock: Optional[ClockState] = None
    lastMove: Optional[MoveRecord] = None
    activeChallenge: Optional['ChallengeOpened'] = None


class GameStarted(BaseModel):
    players: List[PlayerState]
    turnIndex: int = 0
    clock: ClockState


class MoveRejected(BaseModel):
    playerId: Optional[str] = None
    error: str
    reason: str
    detail: dict = {}
    words: List[WordResult] = []
    score: Optional[int] = None


class TurnChanged(BaseModel):
    turnIndex: int
    playerId: Optional[str] = None
    clock: ClockState
    reason: Literal['move', 'pass', 'swap', 'timeout', 'leave']


class TimerState(BaseModel):
    turnIndex: int
    playerId: Optional[str] = None
    remaining: float
    expiresAt: float


class RackState(BaseModel):
    playerId: str
    tiles: List[TileState]
    bagCount: int


class ChallengeOpened(BaseModel):
    challengerId: str
    targetId: str
    word: str
    issuedAt: float
    expiresAt: float


class Penalty(BaseModel):
    playerId: str
    points: int


class ChallengeResolved(BaseModel):
    challengerId: str
    targetId: str
    word: str
    valid: bool
    penalty: Optional[Penalty] = None
    reversal: Optional[Penalty] = None
    resolvedBy: Literal['response', 'timeout']


class ChallengeCancelled(BaseModel):
    challengerId: str
    targetId: str
    word: str
    reason: Literal['leave', 'finished']


class GameFinished(BaseModel):
    players: List[PlayerState]
    winnerIds: List[str] = []


class Bot(BaseModel):
    id: str
    name: str
    difficulty: Literal['beginner', 'easy', 'medium']
    avatar: str
    description: str


RoomState.model_rebuild()
