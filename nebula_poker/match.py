"""
Match lifecycle for Nebula Poker.

Ends a match, publishes the standings and keeps the room alive until
everybody who was connected at that moment has acknowledged the summary
or gone away. Only then is the room torn down.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set

from nebula_poker.game_engine import Round

if TYPE_CHECKING:
    from nebula_poker.rooms import Room


class MatchLifecycle:
    def __init__(self, room: 'Room', on_release: Optional[Callable[['Room'], None]] = None):
        self.room = room
        self.on_release = on_release
        self.expected_acks: Set[str] = set()
        self.match_acks: Set[str] = set()
        self.released = False

    def build_standings(self) -> List[Dict[str, object]]:
        room = self.room
        out = []
        for i, seat in enumerate(room.seats.seats):
            if seat is None:
                continue
            p = room.seats.get_player(i)
            chips = p.chips if p else 0
            buy_in = p.total_buy_in if p else room.initial_chips
            out.append({
                'seatIdx': i,
                'type': seat.type,
                'name': seat.name,
                'chips': chips,
                'buyIn': buy_in,
                'net': chips - buy_in,
            })
        out.sort(key=lambda s: s['chips'], reverse=True)
        return out

    async def end_match(self, reason: Optional[str] = None) -> bool:
        room = self.room
        engine = room.engine
        if room.closing:
            return False

        room.scheduler.cancel()

        if reason:
            room.broadcast_activity(reason)
        room.broadcast_activity("Match over.")

        hands = list(room.hand_history)
        room.emit_to_room("match_over", {
            'roomId': room.room_id,
            'totalHands': room.total_hands,
            'scheduledHands': room.total_hands,
            'playedHands': len(hands),
            'standings': self.build_standings(),
            'hands': hands,
        })
        logging.info(f"Room {room.room_id}: match over after {len(hands)}/{room.total_hands} hands")

        room.closing = True
        room.started = False
        engine.transition(Round.WAITING)
        engine.active_seat_idx = None
        engine.pending.clear()

        self.expected_acks = set()
        self.match_acks = set()
        try:
            self.expected_acks = set(await room.gateway.enumerate_participants(room.room_id))
        except Exception as e:
            logging.warning(f"Room {room.room_id}: could not list participants for match-over acks: {e}")
            self.expected_acks = {m for m in room.members if room.gateway.is_connected(m)}
        logging.debug(f"Room {room.room_id}: waiting for acks from {sorted(self.expected_acks)}")
        return True

    def _all_acked(self) -> bool:
        return self.expected_acks <= self.match_acks

    async def acknowledge(self, participant_id: str) -> bool:
        """Record an ack. Returns True if it released the room."""
        if not self.room.closing or self.released:
            return False
        self.match_acks.add(participant_id)
        if self._all_acked():
            await self.release()
            return True
        return False

    async def forget_participant(self, participant_id: str) -> bool:
        """A participant left while closing. Returns True if the room was released."""
        if not self.room.closing or self.released:
            return False
        self.expected_acks.discard(participant_id)
        self.match_acks.discard(participant_id)
        others = self.room.members - {participant_id}
        if self._all_acked() or not any(self.room.gateway.is_connected(m) for m in others):
            await self.release()
            return True
        return False

    async def release(self) -> None:
        room = self.room
        if self.released:
            return
        self.released = True
        room.scheduler.cancel()

        participants: List[str] = []
        try:
            participants = list(await room.gateway.enumerate_participants(room.room_id))
        except Exception as e:
            logging.warning(f"Room {room.room_id}: could not list participants on release: {e}")
            participants = sorted(m for m in room.members if room.gateway.is_connected(m))

        for pid in participants:
            try:
                room.gateway.emit_to_participant(pid, "room_closed", {'roomId': room.room_id, 'reason': "match_over"})
                room.gateway.leave_room(pid, room.room_id)
            except Exception as e:
                logging.warning(f"Room {room.room_id}: failed to evict {pid}: {e}")

        room.members.clear()
        logging.info(f"Room {room.room_id}: released")
        if self.on_release is not None:
            self.on_release(room)
