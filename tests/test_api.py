"""
Tests for the REST endpoints and the Socket.IO command handlers.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from app import main


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main.dict_service, 'remote_enabled', False)
    monkeypatch.setattr(main.rooms, 'rooms', {})
    return TestClient(main.app)


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    assert res.json() == {'ok': True, 'rooms': 0}


def test_bots_listed(client):
    bots = client.get('/bots').json()['bots']
    assert {b['difficulty'] for b in bots} == {'beginner', 'easy', 'medium'}


def test_create_and_fetch_room(client):
    res = client.post('/rooms', json={'name': 'alice', 'maxPlayers': 3, 'settings': {'dictionary': 'SOWPODS'}})
    body = res.json()
    assert body['ok']
    code = body['roomId']
    assert len(code) == 6

    room = client.get(f'/rooms/{code.lower()}').json()['room']
    assert room['id'] == code
    assert room['maxPlayers'] == 3
    assert room['status'] == 'waiting'
    assert room['settings']['dictionary'] == 'SOWPODS'
    assert room['bagCount'] == 0

    listed = client.get('/rooms').json()['rooms']
    assert [r['id'] for r in listed] == [code]


def test_private_rooms_not_listed(client):
    client.post('/rooms', json={'name': 'bob', 'mode': 'private'})
    assert client.get('/rooms').json()['rooms'] == []


def test_create_room_rejects_bad_size(client):
    res = client.post('/rooms', json={'name': 'carol', 'maxPlayers': 6})
    assert res.status_code == 422


def test_unknown_room(client):
    body = client.get('/rooms/NOPE00').json()
    assert body['ok'] is False
    assert body['error'] == 'room_not_found'


def test_add_bot(client):
    code = client.post('/rooms', json={'name': 'dave', 'mode': 'practice'}).json()['roomId']
    body = client.post(f'/rooms/{code}/bot/bot-easy').json()
    assert body['ok']
    players = main.rooms.get(code).players
    assert players[0].is_bot and players[0].is_ready
    assert client.post(f'/rooms/{code}/bot/bot-unknown').json()['ok'] is False


def test_add_bot_to_full_room(client):
    code = client.post('/rooms', json={'name': 'erin'}).json()['roomId']
    client.post(f'/rooms/{code}/bot/bot-easy')
    client.post(f'/rooms/{code}/bot/bot-medium')
    body = client.post(f'/rooms/{code}/bot/bot-beginner').json()
    assert body['ok'] is False
    assert body['error'] == 'command_conflict'


def test_validate_word(client):
    body = client.get('/dict/validate', params={'word': 'qi'}).json()
    assert body == {'word': 'QI', 'valid': True, 'dictionary': 'TWL'}
    assert client.get('/dict/validate', params={'word': 'qi', 'dictionary': 'C'}).json()['valid'] is False
    assert client.get('/dict/validate', params={'word': 'colour', 'dictionary': 'B'}).json()['valid'] is True


def test_validate_word_bad_dictionary(client):
    body = client.get('/dict/validate', params={'word': 'cat', 'dictionary': 'klingon'}).json()
    assert body['ok'] is False
    assert body['error'] == 'bad_request'


def test_abandoned_rest_rooms_are_swept(client, monkeypatch):
    monkeypatch.setattr(main.rooms, 'empty_ttl', 0)
    for i in range(50):
        client.post('/rooms', json={'name': f'user{i}'})
    assert client.get('/health').json()['rooms'] == 1


class FakeSessions:
    """Replaces the socket server's session and room bookkeeping on main.sio."""

    def __init__(self):
        self.sessions = {}
        self.emitted = []

    async def get_session(self, sid, namespace=None):
        return self.sessions.get(sid)

    async def save_session(self, sid, session, namespace=None):
        self.sessions[sid] = session

    async def enter_room(self, sid, room, namespace=None):
        pass

    async def leave_room(self, sid, room, namespace=None):
        pass

    async def emit(self, event, data=None, to=None, room=None, **kwargs):
        self.emitted.append((event, data, to or room))


@pytest.fixture
def sockets(monkeypatch):
    fake = FakeSessions()
    for name in ('get_session', 'save_session', 'enter_room', 'leave_room', 'emit'):
        monkeypatch.setattr(main.sio, name, getattr(fake, name))
    monkeypatch.setattr(main.rooms, 'rooms', {})
    return fake


def test_socket_cannot_hold_two_seats(sockets):
    async def scenario():
        first = await main.room_create('sid1', {'name': 'alice'})
        assert first['ok']
        second = await main.room_create('sid1', {'name': 'alice'})
        assert second['ok'] is False
        assert second['error'] == 'command_conflict'
        assert list(main.rooms.rooms) == [first['roomId']]

        other = await main.room_create('sid2', {'name': 'bob', 'maxPlayers': 3})
        joined = await main.player_join('sid1', {'roomId': other['roomId'], 'name': 'alice'})
        assert joined['error'] == 'command_conflict'
        assert [p.name for p in main.rooms.get(other['roomId']).players] == ['bob']

        await main.disconnect('sid1')
        assert first['roomId'] not in main.rooms.rooms

    asyncio.run(scenario())
    rejected = [data for event, data, _ in sockets.emitted if event == 'command.rejected']
    assert [r['command'] for r in rejected] == ['room.create', 'player.join']


def test_socket_can_reseat_after_leaving(sockets):
    async def scenario():
        first = await main.room_create('sid1', {'name': 'alice'})
        other = await main.room_create('sid2', {'name': 'bob'})
        assert (await main.player_leave('sid1'))['ok']
        assert first['roomId'] not in main.rooms.rooms
        joined = await main.player_join('sid1', {'roomId': other['roomId'], 'name': 'alice'})
        assert joined['ok']
        assert sockets.sessions['sid1']['room_id'] == other['roomId']

    asyncio.run(scenario())
