"""
Rooms for Nebula Poker.

A Room is one table: seats, the hand in progress, the turn scheduler, the
match lifecycle and the voice relay. The RoomManager is the registry of
rooms and the surface the transport calls into, one coroutine per client
intent.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from nebula_poker.ai import SimplePokerAI
from nebula_poker.betting_engine import BettingEngine
from nebula_poker.deck import Card
from nebula_poker.game_engine import GameEngine, Round
from nebula_poker.gateway import Gateway
from nebula_poker.match import MatchLifecycle
from nebula_poker.player import SEAT_PLAYER, SeatTable
from nebula_poker.server_info import Settings
from nebula_poker.showdown_engine import ShowdownEngine
from nebula_poker.turn_scheduler import TurnScheduler
from nebula_poker.voice import VoiceRelay

DEFAULT_TOTAL_HANDS = 5
MAX_TOTAL_HANDS = 50
MIN_BUY_IN = 1000
REBUY_STEP = 50


def parse_int(value: Any) -> Optional[int]:
    """Integer from a client payload value, or None if it is not a whole number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number) or not number.is_integer():
        return None
    return int(number)


def valid_rebuy(amount: Optional[int]) -> bool:
    return amount is not None and amount >= MIN_BUY_IN and amount % REBUY_STEP == 0


class Room:
    def __init__(self, room_id: str, gateway: Gateway, settings: Optional[Settings] = None,
                 deck_factory: Optional[Callable[[], List[Card]]] = None,
                 rng: Optional[random.Random] = None,
                 call_later: Optional[Callable[..., Any]] = None,
                 on_release: Optional[Callable[['Room'], None]] = None):
        settings = settings or Settings()
        self.room_id = room_id
        self.gateway = gateway
        self.created_at = time.time()
        self.host_id: Optional[str] = None
        self.members: Set[str] = set()
        self.started = False
        self.closing = False

        self.total_hands = DEFAULT_TOTAL_HANDS
        self.initial_chips = MIN_BUY_IN
        self.small_blind = settings.small_blind
        self.big_blind = settings.big_blind
        self.min_players_to_start = settings.min_players_to_start
        self.hand_history: List[Dict[str, Any]] = []

        self.seats = SeatTable()
        self.engine = GameEngine(self.seats, deck_factory=deck_factory, rng=rng)
        self.betting = BettingEngine(self)
        self.showdown = ShowdownEngine(self)
        self.scheduler = TurnScheduler(self, call_later=call_later, delay=settings.ai_turn_delay)
        self.match = MatchLifecycle(self, on_release=on_release)
        self.voice = VoiceRelay()
        self.ai = SimplePokerAI()

    # --- outbound ----------------------------------------------------------

    def emit_to_room(self, event: str, payload: Any = None, skip: Optional[str] = None) -> None:
        self.gateway.emit_to_room(self.room_id, event, payload, skip=skip)

    def emit_to(self, participant_id: str, event: str, payload: Any = None) -> None:
        self.gateway.emit_to_participant(participant_id, event, payload)

    def broadcast_activity(self, msg: str) -> None:
        self.emit_to_room("activity", msg)

    def broadcast_player_action(self, seat_idx: int, text: str) -> None:
        self.emit_to_room("player_action", {'seatIdx': seat_idx, 'text': text})

    def broadcast_room(self) -> None:
        self.emit_to_room("room_state", self.get_room_summary())

    def broadcast_game(self) -> None:
        self.emit_to_room("game_state", self.get_public_game_state())

    def send_private_hands(self) -> None:
        for i, seat in enumerate(self.seats.seats):
            if seat is None or seat.type != SEAT_PLAYER:
                continue
            p = self.seats.get_player(i)
            if p is None:
                continue
            self.emit_to(seat.participant_id, "private_hand", {'seatIdx': i, 'hand': [c.to_dict() for c in p.hand]})

    def emit_you_state(self, participant_id: str) -> None:
        seat_idx = self.seats.seat_of(participant_id)
        self.emit_to(participant_id, "you_state", {
            'roomId': self.room_id,
            'seatIdx': seat_idx if seat_idx is not None else -1,
            'isHost': participant_id == self.host_id,
        })

    def get_room_summary(self, for_participant: Optional[str] = None) -> Dict[str, Any]:
        host_seat_idx = self.seats.seat_of(self.host_id) if self.host_id else None
        return {
            'roomId': self.room_id,
            'hostSocketId': self.host_id,
            'hostSeatIdx': host_seat_idx,
            # broadcasts carry None so clients compare hostSocketId themselves
            'isHost': (for_participant == self.host_id) if for_participant else None,
            'started': self.started,
            'seats': self.seats.to_public(),
            'settings': {'totalHands': self.total_hands, 'initialChips': self.initial_chips},
        }

    def get_public_game_state(self) -> Dict[str, Any]:
        state = {
            'roomId': self.room_id,
            'started': self.started,
            'settings': {
                'totalHands': self.total_hands,
                'initialChips': self.initial_chips,
                'smallBlind': self.small_blind,
                'bigBlind': self.big_blind,
            },
        }
        state.update(self.engine.get_public_state())
        return state

    # --- helpers -----------------------------------------------------------

    def is_host(self, participant_id: str) -> bool:
        return self.host_id is not None and participant_id == self.host_id

    def _reject(self, participant_id: str, msg: str) -> None:
        self.emit_to(participant_id, "error_msg", {'msg': msg})

    def elect_host(self, participant_id: str) -> None:
        if not self.host_id or not self.gateway.is_connected(self.host_id):
            self.host_id = participant_id
            logging.info(f"Room {self.room_id}: host is now {participant_id}")

    def migrate_host(self) -> None:
        seat = self.seats.first_human()
        if seat is not None:
            self.host_id = seat.participant_id
        else:
            self.host_id = next(iter(sorted(self.members)), None)
        logging.info(f"Room {self.room_id}: host migrated to {self.host_id}")

    def _credit_rebuy(self, seat_idx: int, amount: int) -> None:
        p = self.seats.get_player(seat_idx)
        p.pending_rebuy += amount
        p.total_buy_in += amount

    # --- intents -----------------------------------------------------------

    def take_seat(self, participant_id: str, name: str, seat_idx: Any) -> bool:
        if self.started or self.closing:
            return False
        idx = parse_int(seat_idx)
        if idx is None or not self.seats.valid_index(idx):
            return False
        if not self.seats.occupy(idx, participant_id, name):
            return False

        self.seats.ensure_players(self.initial_chips)
        self.emit_to(participant_id, "seat_taken", {'seatIdx': idx})
        self.emit_you_state(participant_id)
        self.broadcast_room()
        self.broadcast_game()
        return True

    def toggle_ai(self, participant_id: str, seat_idx: Any) -> bool:
        if self.started or self.closing or not self.is_host(participant_id):
            return False
        idx = parse_int(seat_idx)
        if idx is None or not self.seats.valid_index(idx):
            return False
        if self.seats.toggle_ai(idx) is None:
            return False
        self.seats.ensure_players(self.initial_chips)
        self.broadcast_room()
        self.broadcast_game()
        return True

    def kick_seat(self, participant_id: str, seat_idx: Any) -> bool:
        if self.started or self.closing or not self.is_host(participant_id):
            return False
        idx = parse_int(seat_idx)
        seat = self.seats.get_seat(idx) if idx is not None else None
        if seat is None or seat.type != SEAT_PLAYER:
            return False

        if seat.participant_id and self.gateway.is_connected(seat.participant_id):
            self.emit_to(seat.participant_id, "kicked", {'seatIdx': idx})
        if self.voice.leave(seat.participant_id):
            self.emit_to_room("voice_peer_left", {'socketId': seat.participant_id}, skip=seat.participant_id)
        self.seats.vacate(idx)
        logging.info(f"Room {self.room_id}: host kicked {seat.name} from seat {idx}")

        self.broadcast_room()
        self.broadcast_game()
        return True

    async def start_game(self, participant_id: str, total_hands: Any = None, initial_chips: Any = None) -> bool:
        if not self.is_host(participant_id) or self.started or self.closing:
            return False

        if self.seats.occupied_count() < self.min_players_to_start:
            self._reject(participant_id, f"At least {self.min_players_to_start} players (including AI) are needed to start!")
            return False

        hands = parse_int(total_hands)
        chips = parse_int(initial_chips)
        self.total_hands = max(1, min(MAX_TOTAL_HANDS, hands if hands else DEFAULT_TOTAL_HANDS))
        self.initial_chips = max(MIN_BUY_IN, chips if chips else MIN_BUY_IN)

        self.started = True
        self.hand_history = []
        self.engine.hand_num = 0
        self.engine.dealer_seat_idx = 0
        # fresh stacks at the configured buy-in
        self.seats.players.clear()
        self.seats.ensure_players(self.initial_chips)
        logging.info(f"Room {self.room_id}: match started, {self.total_hands} hands, {self.initial_chips} chips")

        self.broadcast_room()
        await self.betting.start_hand()
        return True

    def act(self, participant_id: str, payload: Any) -> bool:
        if not self.started or self.closing:
            return False
        seat_idx = self.seats.seat_of(participant_id)
        if seat_idx is None:
            return False
        if not isinstance(payload, dict):
            payload = {}
        return self.betting.handle_action(seat_idx, payload)

    def _busted_own_seat(self, participant_id: str) -> Optional[int]:
        if not self.started or self.closing:
            return None
        seat_idx = self.seats.seat_of(participant_id)
        if seat_idx is None:
            return None
        if not self._is_bankrupt(seat_idx):
            return None
        return seat_idx

    def _is_bankrupt(self, seat_idx: int) -> bool:
        p = self.seats.get_player(seat_idx)
        if p is None or p.chips > 0 or p.pending_rebuy > 0:
            return False
        # an all-in seat still contests the pot
        return not (self.engine.in_betting_round and self.seats.is_in_hand(seat_idx))

    def rebuy(self, participant_id: str, amount: Any) -> bool:
        """Self-service rebuy; chips arrive at the start of the next hand."""
        seat_idx = self._busted_own_seat(participant_id)
        if seat_idx is None:
            return False
        amt = parse_int(amount)
        if not valid_rebuy(amt):
            self._reject(participant_id, "Rebuy amount must be >= 1000 and a multiple of 50.")
            return False

        self._credit_rebuy(seat_idx, amt)
        self.broadcast_activity(f"{self.seats.seats[seat_idx].name} rebuys ${amt} (applies next hand).")
        self.broadcast_game()
        return True

    def rebuy_request(self, participant_id: str, amount: Any) -> bool:
        seat_idx = self._busted_own_seat(participant_id)
        if seat_idx is None:
            return False
        amt = parse_int(amount)
        if not valid_rebuy(amt):
            self._reject(participant_id, "Rebuy amount must be >= 1000 and a multiple of 50.")
            return False
        if not self.host_id or not self.gateway.is_connected(self.host_id):
            self._reject(participant_id, "Host is offline. Cannot approve rebuy right now.")
            return False

        self.emit_to(self.host_id, "rebuy_requested", {
            'seatIdx': seat_idx,
            'name': self.seats.seats[seat_idx].name,
            'amount': amt,
        })
        return True

    def rebuy_approve(self, participant_id: str, seat_idx: Any, amount: Any) -> bool:
        if not self.started or self.closing or not self.is_host(participant_id):
            return False
        idx = parse_int(seat_idx)
        seat = self.seats.get_seat(idx) if idx is not None else None
        if seat is None or seat.type != SEAT_PLAYER:
            return False
        amt = parse_int(amount)
        if not self._is_bankrupt(idx) or not valid_rebuy(amt):
            return False

        self._credit_rebuy(idx, amt)
        self.broadcast_activity(f"{seat.name} rebuy approved: ${amt} (applies next hand).")
        self.broadcast_game()
        return True

    def rebuy_deny(self, participant_id: str, seat_idx: Any) -> bool:
        if not self.started or self.closing or not self.is_host(participant_id):
            return False
        idx = parse_int(seat_idx)
        seat = self.seats.get_seat(idx) if idx is not None else None
        if seat is None or seat.type != SEAT_PLAYER:
            return False
        if seat.participant_id and self.gateway.is_connected(seat.participant_id):
            self.emit_to(seat.participant_id, "rebuy_denied", {'msg': "Rebuy denied by host."})
        self.broadcast_activity(f"{seat.name} rebuy denied.")
        return True

    async def next_hand(self, participant_id: str) -> bool:
        if not self.started or self.closing or not self.is_host(participant_id):
            return False
        if self.engine.pot != 0 or self.engine.round != Round.HAND_OVER:
            return False

        if self.engine.hand_num >= self.total_hands:
            await self.match.end_match()
            return True

        self.engine.dealer_seat_idx = (self.engine.dealer_seat_idx + 1) % self.seats.capacity
        await self.betting.start_hand()
        return True

    async def end_game(self, participant_id: str) -> bool:
        """Host abort between hands."""
        if not self.started or self.closing or not self.is_host(participant_id):
            return False
        if self.engine.pot != 0 or self.engine.round not in (Round.WAITING, Round.HAND_OVER):
            return False
        return await self.match.end_match("Host ended the match.")

    async def ack_match_over(self, participant_id: str) -> bool:
        return await self.match.acknowledge(participant_id)

    def voice_join(self, participant_id: str, name: str) -> bool:
        seat_idx = self.seats.seat_of(participant_id)
        if seat_idx is None:
            return False
        peer = self.voice.join(participant_id, seat_idx, name or self.seats.seats[seat_idx].name)
        self.emit_to(participant_id, "voice_peers", {'peers': self.voice.peers_of(participant_id)})
        self.emit_to_room("voice_peer_joined", {'peer': peer.to_dict()}, skip=participant_id)
        return True

    def voice_leave(self, participant_id: str) -> bool:
        if not self.voice.leave(participant_id):
            return False
        self.emit_to_room("voice_peer_left", {'socketId': participant_id}, skip=participant_id)
        return True

    def voice_signal(self, participant_id: str, to: Any, data: Any) -> bool:
        if not self.voice.can_signal(participant_id, to):
            return False
        self.emit_to(to, "voice_signal", {'from': participant_id, 'data': data})
        return True

    async def leave(self, participant_id: str) -> None:
        """A participant disconnected."""
        if self.closing and await self.match.forget_participant(participant_id):
            return
        if self.match.released:
            return

        self.members.discard(participant_id)
        self.voice_leave(participant_id)

        seat_idx = self.seats.seat_of(participant_id)
        if seat_idx is not None:
            was_active = self.engine.in_betting_round and self.engine.active_seat_idx == seat_idx
            self.seats.vacate(seat_idx)
            logging.info(f"Room {self.room_id}: seat {seat_idx} vacated by disconnect")
            if self.started and self.engine.in_betting_round:
                self.engine.pending.remove(seat_idx)
                if was_active or len(self.seats.in_hand_seats()) <= 1:
                    self.scheduler.request_turn()

        if self.host_id == participant_id:
            self.migrate_host()

        if self.seats.is_empty():
            return

        self.broadcast_room()
        self.broadcast_game()


@dataclass
class Participant:
    participant_id: str
    name: str = "Player"
    room_id: Optional[str] = None


class RoomManager:
    """Registry of rooms plus the per-connection participant records."""

    def __init__(self, gateway: Gateway, settings: Optional[Settings] = None,
                 deck_factory: Optional[Callable[[], List[Card]]] = None,
                 rng: Optional[random.Random] = None,
                 call_later: Optional[Callable[..., Any]] = None):
        self.gateway = gateway
        self.settings = settings or Settings()
        self.rooms: Dict[str, Room] = {}
        self.participants: Dict[str, Participant] = {}
        self._deck_factory = deck_factory
        self._rng = rng
        self._call_later = call_later

    def get_room(self, room_id: Optional[str]) -> Optional[Room]:
        if not room_id:
            return None
        return self.rooms.get(room_id)

    def create_room(self, room_id: str) -> Room:
        room = Room(
            room_id,
            self.gateway,
            settings=self.settings,
            deck_factory=self._deck_factory,
            rng=self._rng,
            call_later=self._call_later,
            on_release=self._on_room_released,
        )
        self.rooms[room_id] = room
        logging.info(f"RoomManager: created room {room_id}")
        return room

    def delete_room(self, room_id: str, reason: Optional[str] = None) -> bool:
        room = self.rooms.pop(room_id, None)
        if room is None:
            return False
        room.scheduler.cancel()
        for participant in self.participants.values():
            if participant.room_id != room_id:
                continue
            participant.room_id = None
            if reason:
                self.gateway.emit_to_participant(participant.participant_id, "room_closed", {'roomId': room_id, 'reason': reason})
            self.gateway.leave_room(participant.participant_id, room_id)
        logging.info(f"RoomManager: deleted room {room_id}")
        return True

    def _on_room_released(self, room: Room) -> None:
        # eviction notices were already sent by the match lifecycle
        if self.rooms.get(room.room_id) is room:
            self.delete_room(room.room_id)

    def _room_of(self, participant_id: str) -> Optional[Room]:
        participant = self.participants.get(participant_id)
        if participant is None:
            return None
        return self.get_room(participant.room_id)

    # --- intents -----------------------------------------------------------

    async def join_room(self, participant_id: str, room_id: Any, name: Any = None) -> Optional[Room]:
        rid = str(room_id or "").strip()
        nm = str(name or "").strip() or "Player"
        if not rid:
            return None

        current = self._room_of(participant_id)
        if current is not None and current.room_id != rid:
            await self._leave_current_room(participant_id)

        room = self.get_room(rid) or self.create_room(rid)
        if room.closing:
            room._reject(participant_id, "This room has ended and is closing. Please rejoin in a moment (or use a new Room ID).")
            return None
        if room.started:
            room._reject(participant_id, "Game already started in this room. Please wait for it to finish or use a new Room ID.")
            return None

        room.elect_host(participant_id)
        self.gateway.join_room(participant_id, rid)
        room.members.add(participant_id)
        self.participants[participant_id] = Participant(participant_id, nm, rid)
        logging.info(f"RoomManager: {nm} ({participant_id}) joined room {rid}")

        self.gateway.emit_to_participant(participant_id, "room_state", room.get_room_summary(participant_id))
        room.emit_you_state(participant_id)
        room.broadcast_room()
        room.broadcast_game()
        return room

    async def take_seat(self, participant_id: str, seat_idx: Any) -> bool:
        room = self._room_of(participant_id)
        if room is None:
            return False
        return room.take_seat(participant_id, self.participants[participant_id].name, seat_idx)

    async def toggle_ai(self, participant_id: str, seat_idx: Any) -> bool:
        room = self._room_of(participant_id)
        return room.toggle_ai(participant_id, seat_idx) if room else False

    async def kick_seat(self, participant_id: str, seat_idx: Any) -> bool:
        room = self._room_of(participant_id)
        return room.kick_seat(participant_id, seat_idx) if room else False

    async def start_game(self, participant_id: str, total_hands: Any = None, initial_chips: Any = None) -> bool:
        room = self._room_of(participant_id)
        if room is None:
            return False
        return await room.start_game(participant_id, total_hands, initial_chips)

    async def action(self, participant_id: str, payload: Any) -> bool:
        room = self._room_of(participant_id)
        return room.act(participant_id, payload) if room else False

    async def rebuy(self, participant_id: str, amount: Any) -> bool:
        room = self._room_of(participant_id)
        return room.rebuy(participant_id, amount) if room else False

    async def rebuy_request(self, participant_id: str, amount: Any) -> bool:
        room = self._room_of(participant_id)
        return room.rebuy_request(participant_id, amount) if room else False

    async def rebuy_approve(self, participant_id: str, seat_idx: Any, amount: Any) -> bool:
        room = self._room_of(participant_id)
        return room.rebuy_approve(participant_id, seat_idx, amount) if room else False

    async def rebuy_deny(self, participant_id: str, seat_idx: Any) -> bool:
        room = self._room_of(participant_id)
        return room.rebuy_deny(participant_id, seat_idx) if room else False

    async def next_hand(self, participant_id: str) -> bool:
        room = self._room_of(participant_id)
        if room is None:
            return False
        return await room.next_hand(participant_id)

    async def end_game(self, participant_id: str) -> bool:
        room = self._room_of(participant_id)
        if room is None:
            return False
        return await room.end_game(participant_id)

    async def ack_match_over(self, participant_id: str) -> bool:
        room = self._room_of(participant_id)
        if room is None:
            return False
        return await room.ack_match_over(participant_id)

    async def voice_join(self, participant_id: str) -> bool:
        room = self._room_of(participant_id)
        if room is None:
            return False
        return room.voice_join(participant_id, self.participants[participant_id].name)

    async def voice_leave(self, participant_id: str) -> bool:
        room = self._room_of(participant_id)
        return room.voice_leave(participant_id) if room else False

    async def voice_signal(self, participant_id: str, to: Any, data: Any) -> bool:
        room = self._room_of(participant_id)
        return room.voice_signal(participant_id, to, data) if room else False

    async def _leave_current_room(self, participant_id: str) -> None:
        room = self._room_of(participant_id)
        if room is None:
            return
        participant = self.participants[participant_id]
        participant.room_id = None
        self.gateway.leave_room(participant_id, room.room_id)
        await room.leave(participant_id)
        if self.rooms.get(room.room_id) is room and (room.seats.is_empty() or not room.members):
            self.delete_room(room.room_id, reason="empty")

    async def disconnect(self, participant_id: str) -> None:
        await self._leave_current_room(participant_id)
        self.participants.pop(participant_id, None)
