from __future__ import annotations
import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .config import Config
from .dictionary import DictionaryVariant, service as dict_service
from .errors import CommandConflict, GameError, PlayerNotFound, RoomNotFound
from .logging_config import setup_logging
from .managers.game import RoomCoordinator, RoomRegistry
from .schemas import (
    Bot, ChallengeIssue, ChallengeRespond, CreateRoom, JoinRoom, MoveSubmit, ReadyPayload, SwapPayload,
)

setup_logging()
logger = logging.getLogger(__name__)

cors_origins = '*' if Config.CORS_ORIGINS == '*' else [o.strip() for o in Config.CORS_ORIGINS.split(',')]

# Socket.IO server (ASGI)
sio = socketio.AsyncServer(async_mode='asgi', cors_allowed_origins=cors_origins)
app = FastAPI(title="Word Arena Server", version="0.2.0")

# Mount Socket.IO ASGI application
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)

# CORS for REST
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins if isinstance(cors_origins, list) else ['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

rooms = RoomRegistry(sio)

# Bots only ever pass their turn.
AVAILABLE_BOTS = [
    Bot(id='bot-beginner', name='Robo Rookie', difficulty='beginner', avatar='🤖',
        description='Thinks it over, then passes.'),
    Bot(id='bot-easy', name='Clevertron', difficulty='easy', avatar='🛠️',
        description='Passes at a steady pace.'),
    Bot(id='bot-medium', name='LexiBot', difficulty='medium', avatar='📚',
        description='Takes its time before passing.'),
]


# REST Endpoints
@app.get('/health')
async def health():
    return {'ok': True, 'rooms': len(rooms.rooms)}


@app.get('/bots')
async def list_bots() -> Dict[str, list]:
    return {'bots': [b.model_dump() for b in AVAILABLE_BOTS]}


@app.get('/rooms')
async def list_rooms():
    return {'rooms': _serialize_rooms()}


@app.post('/rooms')
async def create_room(payload: CreateRoom):
    room = rooms.create_room(payload.mode, payload.maxPlayers, payload.settings)
    await _broadcast_lobby_list()
    return {'ok': True, 'roomId': room.code}


@app.get('/rooms/{room_id}')
async def get_room(room_id: str):
    try:
        room = rooms.get(room_id)
    except RoomNotFound as exc:
        return exc.to_payload()
    return {'ok': True, 'room': room.to_state().model_dump(mode='json')}


@app.post('/rooms/{room_id}/bot/{bot_id}')
async def add_bot(room_id: str, bot_id: str):
    bot = next((b for b in AVAILABLE_BOTS if b.id == bot_id), None)
    if not bot:
        return {'ok': False, 'error': 'Bot not found'}
    try:
        room = rooms.get(room_id)
        player = await room.add_bot(bot.name, bot.difficulty)
    except GameError as exc:
        return exc.to_payload()
    await _broadcast_lobby_list()
    return {'ok': True, 'playerId': player.id}


# Dictionary validation REST endpoint
@app.get('/dict/validate')
async def validate_word(word: str, dictionary: Optional[str] = None):
    try:
        variant = DictionaryVariant.parse(dictionary) if dictionary else dict_service.default_variant
    except ValueError as exc:
        return {'ok': False, 'error': 'bad_request', 'reason': str(exc)}
    valid = await dict_service.is_valid(word, variant)
    return {'word': word.upper(), 'valid': valid, 'dictionary': variant.value}


def _serialize_rooms():
    def to_room(room: RoomCoordinator):
        status = room.status.value
        if status == 'waiting' and len(room.players) >= room.max_players:
            status = 'full'
        return {
            'id': room.code,
            'mode': room.mode,
            'players': len(room.players),
            'maxPlayers': room.max_players,
            'status': status,
        }
    return [to_room(r) for r in rooms.rooms.values() if r.mode != 'private']


async def _broadcast_lobby_list():
    await sio.emit('lobby.list', _serialize_rooms())


async def _session_room(sid) -> Tuple[RoomCoordinator, str]:
    sess = await sio.get_session(sid) or {}
    room_id = sess.get('room_id')
    player_id = sess.get('player_id')
    if not room_id:
        raise RoomNotFound('You are not in a room')
    if not player_id:
        raise PlayerNotFound('You are not seated in this room')
    return rooms.get(room_id), player_id


async def _dispatch(sid, command: str, handler: Callable[[], Awaitable[Optional[dict]]]) -> dict:
    """Run a command; every rejection is acked and echoed back to the sender only."""
    try:
        result = await handler()
        return {'ok': True, **(result or {})}
    except ValidationError as exc:
        payload = {'ok': False, 'error': 'bad_request', 'reason': str(exc)}
    except GameError as exc:
        payload = exc.to_payload()
    except Exception:
        logger.exception('Unhandled error in %s', command)
        payload = {'ok': False, 'error': 'internal_error', 'reason': 'Internal server error'}
    payload['command'] = command
    await sio.emit('command.rejected', payload, to=sid)
    return payload


async def _ensure_unseated(sid) -> None:
    """One seat per connection; a second room.create/player.join must leave first."""
    sess = await sio.get_session(sid) or {}
    room_id, player_id = sess.get('room_id'), sess.get('player_id')
    if not room_id or not player_id:
        return
    room = rooms.rooms.get(room_id)
    if room and any(p.id == player_id for p in room.players):
        raise CommandConflict(f'Already seated in room {room_id}; leave it first')


async def _seat(sid, room: RoomCoordinator, name: str) -> dict:
    await _ensure_unseated(sid)
    await sio.enter_room(sid, room.code)
    try:
        player = await room.join(name)
    except GameError:
        await sio.leave_room(sid, room.code)
        raise
    # private events (rack, rejections) are addressed to the player id
    await sio.enter_room(sid, player.id)
    sess = await sio.get_session(sid) or {}
    await sio.save_session(sid, {**sess, 'room_id': room.code, 'player_id': player.id})
    await _broadcast_lobby_list()
    await sio.emit('rack.updated', player.rack_state(len(room.bag)).model_dump(), to=sid)
    return {'roomId': room.code, 'playerId': player.id}


# Socket.IO Events
@sio.event
async def connect(sid, environ, auth=None):
    # Client sends its display name as the auth token
    username = None
    if isinstance(auth, dict):
        token = auth.get('token')
        if isinstance(token, str) and token.strip():
            username = token.strip()
    await sio.save_session(sid, {'name': username})
    await sio.emit('pong', to=sid)


@sio.event
async def disconnect(sid):
    sess = await sio.get_session(sid) or {}
    room_id, player_id = sess.get('room_id'), sess.get('player_id')
    if not room_id or not player_id:
        return
    try:
        await rooms.leave(room_id, player_id)
    except GameError as exc:
        logger.info('Disconnect cleanup for %s skipped: %s', sid, exc.message)
        return
    await _broadcast_lobby_list()


@sio.on('ping')
async def on_ping(sid):
    await sio.emit('pong', to=sid)


@sio.on('lobby.list')
async def lobby_list(sid):
    await sio.emit('lobby.list', _serialize_rooms(), to=sid)


@sio.on('room.create')
async def room_create(sid, payload=None):
    async def handler():
        data = CreateRoom.model_validate(payload or {})
        await _ensure_unseated(sid)
        room = rooms.create_room(data.mode, data.maxPlayers, data.settings)
        return await _seat(sid, room, data.name)
    return await _dispatch(sid, 'room.create', handler)


@sio.on('player.join')
async def player_join(sid, payload=None):
    async def handler():
        data = JoinRoom.model_validate(payload or {})
        return await _seat(sid, rooms.get(data.roomId), data.name)
    return await _dispatch(sid, 'player.join', handler)


@sio.on('player.ready')
async def player_ready(sid, payload=None):
    async def handler():
        data = ReadyPayload.model_validate(payload or {})
        room, player_id = await _session_room(sid)
        await room.set_ready(player_id, data.ready)
    return await _dispatch(sid, 'player.ready', handler)


@sio.on('player.leave')
async def player_leave(sid, payload=None):
    async def handler():
        room, player_id = await _session_room(sid)
        await rooms.leave(room.code, player_id)
        await sio.leave_room(sid, room.code)
        await sio.leave_room(sid, player_id)
        sess = await sio.get_session(sid) or {}
        await sio.save_session(sid, {'name': sess.get('name')})
        await _broadcast_lobby_list()
    return await _dispatch(sid, 'player.leave', handler)


@sio.on('room.state')
async def room_state(sid, payload=None):
    async def handler():
        room, _ = await _session_room(sid)
        await sio.emit('room.state', room.to_state().model_dump(mode='json'), to=sid)
    return await _dispatch(sid, 'room.state', handler)


@sio.on('game.start')
async def game_start(sid, payload=None):
    async def handler():
        room, player_id = await _session_room(sid)
        await room.start(player_id)
        await _broadcast_lobby_list()
    return await _dispatch(sid, 'game.start', handler)


@sio.on('move.submit')
async def move_submit(sid, payload=None):
    async def handler():
        move = MoveSubmit.model_validate(payload or {})
        room, player_id = await _session_room(sid)
        record = await room.submit_move(player_id, move.tiles)
        return {'score': record.score, 'words': [w.word for w in record.words]}
    return await _dispatch(sid, 'move.submit', handler)


@sio.on('turn.pass')
async def turn_pass(sid, payload=None):
    async def handler():
        room, player_id = await _session_room(sid)
        await room.pass_turn(player_id)
    return await _dispatch(sid, 'turn.pass', handler)


@sio.on('tiles.swap')
async def tiles_swap(sid, payload=None):
    async def handler():
        data = SwapPayload.model_validate(payload or {})
        room, player_id = await _session_room(sid)
        await room.swap(player_id, data.tileIds)
    return await _dispatch(sid, 'tiles.swap', handler)


@sio.on('challenge.issue')
async def challenge_issue(sid, payload=None):
    async def handler():
        data = ChallengeIssue.model_validate(payload or {})
        room, player_id = await _session_room(sid)
        challenge = await room.issue_challenge(player_id, data.targetPlayerId, data.word)
        return {'expiresAt': challenge.expires_at}
    return await _dispatch(sid, 'challenge.issue', handler)


@sio.on('challenge.respond')
async def challenge_respond(sid, payload=None):
    async def handler():
        data = ChallengeRespond.model_validate(payload or {})
        room, player_id = await _session_room(sid)
        resolved = await room.respond_challenge(player_id, data.valid)
        return {'valid': resolved.valid}
    return await _dispatch(sid, 'challenge.respond', handler)


@sio.on('game.finish')
async def game_finish(sid, payload=None):
    async def handler():
        room, player_id = await _session_room(sid)
        await room.finish(player_id)
        await _broadcast_lobby_list()
    return await _dispatch(sid, 'game.finish', handler)


# Export ASGI app for uvicorn
application = asgi_app

# For local running: uvicorn app.main:application --reload --host 0.0.0.0 --port 8000
