import asyncio

import pytest
from aiohttp import test_utils

from nebula_poker.server import GATEWAY_KEY, MANAGER_KEY, create_app
from nebula_poker.server_info import Settings


def make_client(**settings):
    return test_utils.TestClient(test_utils.TestServer(create_app(Settings(**settings))))


async def receive_until(ws, event, timeout=5.0):
    """Read frames until `event` arrives; returns (data, frames seen before it)."""
    seen = []

    async def _read():
        while True:
            frame = await ws.receive_json()
            if frame['event'] == event:
                return frame['data']
            seen.append(frame)

    data = await asyncio.wait_for(_read(), timeout)
    return data, seen


async def send(ws, event, data=None):
    await ws.send_json({'event': event, 'data': data or {}})


@pytest.mark.asyncio
async def test_health_endpoints():
    async with make_client() as client:
        resp = await client.get("/healthz")
        assert resp.status == 200
        assert await resp.text() == "ok"

        resp = await client.get("/readyz")
        assert await resp.json() == {'ok': True, 'rooms': 0}

        resp = await client.get("/version")
        assert "version" in await resp.json()


@pytest.mark.asyncio
async def test_connect_join_and_seat():
    async with make_client() as client:
        ws = await client.ws_connect("/ws")
        hello, _ = await receive_until(ws, "connected")
        socket_id = hello['socketId']

        await send(ws, "join_room", {'roomId': "r1", 'name': "Ann"})
        state, _ = await receive_until(ws, "room_state")
        assert state['roomId'] == "r1"
        assert state['hostSocketId'] == socket_id
        assert state['isHost'] is True

        await send(ws, "take_seat", {'seatIdx': 4})
        taken, _ = await receive_until(ws, "seat_taken")
        assert taken == {'seatIdx': 4}
        game, _ = await receive_until(ws, "game_state")
        assert game['players'][0]['seatIdx'] == 4

        assert client.server.app[GATEWAY_KEY].channels["r1"] == {socket_id}
        await ws.close()


@pytest.mark.asyncio
async def test_bad_frames_do_not_close_the_socket():
    async with make_client() as client:
        ws = await client.ws_connect("/ws")
        await receive_until(ws, "connected")

        await ws.send_str("{not json")
        await ws.send_json(["a", "list"])
        await send(ws, "no_such_event")
        await ws.send_json({'event': "take_seat", 'data': "seat please"})

        await send(ws, "join_room", {'roomId': "r2", 'name': "Ann"})
        state, _ = await receive_until(ws, "room_state")
        assert state['roomId'] == "r2"
        await ws.close()


@pytest.mark.asyncio
async def test_disconnect_removes_empty_room():
    async with make_client() as client:
        ws = await client.ws_connect("/ws")
        await receive_until(ws, "connected")
        await send(ws, "join_room", {'roomId': "r3", 'name': "Ann"})
        await send(ws, "take_seat", {'seatIdx': 0})
        await receive_until(ws, "seat_taken")
        assert "r3" in client.server.app[MANAGER_KEY].rooms

        await ws.close()
        for _ in range(100):
            if not client.server.app[MANAGER_KEY].rooms:
                break
            await asyncio.sleep(0.01)
        assert client.server.app[MANAGER_KEY].rooms == {}


@pytest.mark.asyncio
async def test_match_against_ai_over_websocket():
    async with make_client(ai_turn_delay=0.01) as client:
        ws = await client.ws_connect("/ws")
        await receive_until(ws, "connected")
        await send(ws, "join_room", {'roomId': "r4", 'name': "Ann"})
        await send(ws, "take_seat", {'seatIdx': 0})
        await send(ws, "toggle_ai", {'seatIdx': 1})
        await send(ws, "toggle_ai", {'seatIdx': 2})
        await send(ws, "start_game", {'totalHands': 1, 'initialChips': 1000})

        private, _ = await receive_until(ws, "private_hand")
        assert private['seatIdx'] == 0
        assert len(private['hand']) == 2

        turn, _ = await receive_until(ws, "turn")
        assert turn['activeSeatIdx'] == 0
        await send(ws, "action", {'type': "fold"})

        result, _ = await receive_until(ws, "hand_over")
        assert result['handNum'] == 1
        assert result['winners']

        await send(ws, "next_hand")
        summary, _ = await receive_until(ws, "match_over")
        assert summary['playedHands'] == 1
        assert sum(s['chips'] for s in summary['standings']) == 3000

        await send(ws, "ack_match_over")
        closed, _ = await receive_until(ws, "room_closed")
        assert closed == {'roomId': "r4", 'reason': "match_over"}
        assert client.server.app[MANAGER_KEY].rooms == {}
        await ws.close()
