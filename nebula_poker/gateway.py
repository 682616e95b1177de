"""
Outbound boundary between the room core and the transport.

Rooms never touch sockets; they are handed a Gateway and only emit
through it. The aiohttp WebSocket implementation lives in server.py.
"""

from typing import Any, List, Optional


class Gateway:
    def emit_to_room(self, room_id: str, event: str, payload: Any = None, skip: Optional[str] = None) -> None:
        """Send an event to every participant in a room (optionally skipping one)."""
        raise NotImplementedError

    def emit_to_participant(self, participant_id: str, event: str, payload: Any = None) -> None:
        raise NotImplementedError

    async def enumerate_participants(self, room_id: str) -> List[str]:
        """List currently connected participants of a room. Best effort; may raise."""
        raise NotImplementedError

    def is_connected(self, participant_id: Optional[str]) -> bool:
        raise NotImplementedError

    def join_room(self, participant_id: str, room_id: str) -> None:
        raise NotImplementedError

    def leave_room(self, participant_id: str, room_id: str) -> None:
        raise NotImplementedError
