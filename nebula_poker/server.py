"""
WebSocket server for Nebula Poker.

Every connection gets an opaque participant id and exchanges JSON text
frames of the form {"event": ..., "data": ...}. Inbound frames are decoded
and handed to the RoomManager, one intent at a time; outbound events are
queued per connection and written by a dedicated task so that emitting
never blocks the room core.
"""

import asyncio
import json
import logging
import random
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from aiohttp import WSMsgType, web

from nebula_poker.gateway import Gateway
from nebula_poker.rooms import RoomManager
from nebula_poker.server_info import Settings
from nebula_poker.version import get_version_info


class WebSocketGateway(Gateway):
    """Connection registry plus per-room channels."""

    def __init__(self):
        self.connections: Dict[str, web.WebSocketResponse] = {}
        self.channels: Dict[str, Set[str]] = {}
        self._queues: Dict[str, asyncio.Queue] = {}
        self._writers: Dict[str, asyncio.Task] = {}

    def register(self, participant_id: str, ws: web.WebSocketResponse) -> None:
        queue: asyncio.Queue = asyncio.Queue()
        self.connections[participant_id] = ws
        self._queues[participant_id] = queue
        self._writers[participant_id] = asyncio.create_task(self._writer(participant_id, ws, queue))
        logging.debug(f"Gateway: registered connection {participant_id}")

    async def unregister(self, participant_id: str) -> None:
        self.connections.pop(participant_id, None)
        self._queues.pop(participant_id, None)
        for members in self.channels.values():
            members.discard(participant_id)
        self.channels = {rid: members for rid, members in self.channels.items() if members}

        task = self._writers.pop(participant_id, None)
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logging.debug(f"Gateway: unregistered connection {participant_id}")

    async def _writer(self, participant_id: str, ws: web.WebSocketResponse, queue: asyncio.Queue) -> None:
        while True:
            frame = await queue.get()
            try:
                await ws.send_str(frame)
            except (ConnectionResetError, RuntimeError) as e:
                logging.warning(f"Gateway: send to {participant_id} failed: {e}")
                return

    def _send(self, participant_id: str, event: str, payload: Any) -> None:
        queue = self._queues.get(participant_id)
        if queue is None:
            return
        queue.put_nowait(json.dumps({'event': event, 'data': payload}))

    # --- Gateway -------------------------------------------------------------

    def emit_to_room(self, room_id: str, event: str, payload: Any = None, skip: Optional[str] = None) -> None:
        for pid in list(self.channels.get(room_id, ())):
            if pid != skip:
                self._send(pid, event, payload)

    def emit_to_participant(self, participant_id: str, event: str, payload: Any = None) -> None:
        self._send(participant_id, event, payload)

    async def enumerate_participants(self, room_id: str) -> List[str]:
        return [pid for pid in self.channels.get(room_id, ()) if pid in self.connections]

    def is_connected(self, participant_id: Optional[str]) -> bool:
        return participant_id is not None and participant_id in self.connections

    def join_room(self, participant_id: str, room_id: str) -> None:
        self.channels.setdefault(room_id, set()).add(participant_id)

    def leave_room(self, participant_id: str, room_id: str) -> None:
        members = self.channels.get(room_id)
        if members is None:
            return
        members.discard(participant_id)
        if not members:
            del self.channels[room_id]


Handler = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class IntentDispatcher:
    """Routes decoded client frames to RoomManager intents."""

    def __init__(self, manager: RoomManager):
        self.manager = manager
        m = manager
        self.handlers: Dict[str, Handler] = {
            'join_room': lambda pid, d: m.join_room(pid, d.get('roomId'), d.get('name')),
            'take_seat': lambda pid, d: m.take_seat(pid, d.get('seatIdx')),
            'toggle_ai': lambda pid, d: m.toggle_ai(pid, d.get('seatIdx')),
            'kick_seat': lambda pid, d: m.kick_seat(pid, d.get('seatIdx')),
            'start_game': lambda pid, d: m.start_game(pid, d.get('totalHands'), d.get('initialChips')),
            'action': lambda pid, d: m.action(pid, d),
            'rebuy': lambda pid, d: m.rebuy(pid, d.get('amount')),
            'rebuy_request': lambda pid, d: m.rebuy_request(pid, d.get('amount')),
            'rebuy_approve': lambda pid, d: m.rebuy_approve(pid, d.get('seatIdx'), d.get('amount')),
            'rebuy_deny': lambda pid, d: m.rebuy_deny(pid, d.get('seatIdx')),
            'next_hand': lambda pid, d: m.next_hand(pid),
            'end_game': lambda pid, d: m.end_game(pid),
            'ack_match_over': lambda pid, d: m.ack_match_over(pid),
            'voice_join': lambda pid, d: m.voice_join(pid),
            'voice_leave': lambda pid, d: m.voice_leave(pid),
            'voice_signal': lambda pid, d: m.voice_signal(pid, d.get('to'), d.get('data')),
        }

    async def dispatch_frame(self, participant_id: str, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError as e:
            logging.warning(f"Dropping malformed frame from {participant_id}: {e}")
            return
        if not isinstance(frame, dict):
            logging.warning(f"Dropping non-object frame from {participant_id}")
            return

        data = frame.get('data')
        if data is None:
            data = {}
        if not isinstance(data, dict):
            logging.warning(f"Dropping frame with non-object data from {participant_id}")
            return
        await self.dispatch(participant_id, frame.get('event'), data)

    async def dispatch(self, participant_id: str, event: Any, data: Dict[str, Any]) -> None:
        handler = self.handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logging.warning(f"Unknown event {event!r} from {participant_id}")
            return

        logging.debug(f"Participant {participant_id} sent {event}")
        try:
            await handler(participant_id, data)
        except Exception:
            logging.exception(f"Handler for {event} failed (participant {participant_id})")


GATEWAY_KEY = web.AppKey("gateway", WebSocketGateway)
MANAGER_KEY = web.AppKey("manager", RoomManager)
DISPATCHER_KEY = web.AppKey("dispatcher", IntentDispatcher)
SETTINGS_KEY = web.AppKey("settings", Settings)


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    ws = web.WebSocketResponse(heartbeat=30)
    await ws.prepare(request)

    app = request.app
    gateway, manager, dispatcher = app[GATEWAY_KEY], app[MANAGER_KEY], app[DISPATCHER_KEY]
    participant_id = uuid.uuid4().hex
    gateway.register(participant_id, ws)
    gateway.emit_to_participant(participant_id, "connected", {'socketId': participant_id})
    logging.info(f"Connection {participant_id} opened from {request.remote}")

    try:
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                await dispatcher.dispatch_frame(participant_id, msg.data)
            elif msg.type == WSMsgType.ERROR:
                logging.warning(f"Connection {participant_id} closed with exception {ws.exception()}")
    finally:
        await gateway.unregister(participant_id)
        await manager.disconnect(participant_id)
        logging.info(f"Connection {participant_id} closed")

    return ws


async def healthz_handler(request: web.Request) -> web.Response:
    return web.Response(text="ok")


async def readyz_handler(request: web.Request) -> web.Response:
    manager = request.app[MANAGER_KEY]
    return web.json_response({'ok': True, 'rooms': len(manager.rooms)})


async def version_handler(request: web.Request) -> web.Response:
    return web.json_response(get_version_info())


def create_app(settings: Optional[Settings] = None,
               call_later: Optional[Callable[..., Any]] = None,
               deck_factory: Optional[Callable[[], list]] = None,
               rng: Optional[random.Random] = None) -> web.Application:
    settings = settings or Settings()
    gateway = WebSocketGateway()
    manager = RoomManager(gateway, settings, deck_factory=deck_factory, rng=rng, call_later=call_later)

    app = web.Application()
    app[SETTINGS_KEY] = settings
    app[GATEWAY_KEY] = gateway
    app[MANAGER_KEY] = manager
    app[DISPATCHER_KEY] = IntentDispatcher(manager)

    app.router.add_get('/ws', websocket_handler)
    app.router.add_get('/healthz', healthz_handler)
    app.router.add_get('/readyz', readyz_handler)
    app.router.add_get('/version', version_handler)
    return app
