"""
Seat and player bookkeeping for Nebula Poker.

A room has a fixed row of seats. Each occupied seat (human or AI) owns a
PlayerState with its stack, street bet and hole cards. The eligibility
predicates are computed from live state on every call because folds and
bankruptcies change them continuously during a hand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from nebula_poker.deck import Card

SEATS = 10
DEFAULT_CHIPS = 1000

SEAT_PLAYER = "player"
SEAT_AI = "ai"


@dataclass
class Seat:
    type: str
    name: str
    participant_id: Optional[str] = None

    @property
    def is_ai(self) -> bool:
        return self.type == SEAT_AI

    def to_public(self, seat_idx: int) -> dict:
        return {'type': self.type, 'seatIdx': seat_idx, 'name': self.name}


@dataclass
class PlayerState:
    seat_idx: int
    chips: int = DEFAULT_CHIPS
    current_bet: int = 0
    is_folded: bool = False
    is_bankrupt: bool = False
    hand: List[Card] = field(default_factory=list)
    total_buy_in: int = DEFAULT_CHIPS
    pending_rebuy: int = 0

    def commit(self, amount: int) -> int:
        """Move up to `amount` chips from the stack into the street bet."""
        if amount <= 0:
            return 0
        real = min(amount, self.chips)
        self.chips -= real
        self.current_bet += real
        return real

    def get_net(self) -> int:
        return self.chips - self.total_buy_in


class SeatTable:
    """Seat array plus the PlayerState of every occupied seat."""

    def __init__(self, capacity: int = SEATS):
        self.capacity = capacity
        self.seats: List[Optional[Seat]] = [None] * capacity
        self.players: Dict[int, PlayerState] = {}

    def valid_index(self, seat_idx) -> bool:
        return isinstance(seat_idx, int) and not isinstance(seat_idx, bool) and 0 <= seat_idx < self.capacity

    def get_seat(self, seat_idx: int) -> Optional[Seat]:
        if not self.valid_index(seat_idx):
            return None
        return self.seats[seat_idx]

    def get_player(self, seat_idx: int) -> Optional[PlayerState]:
        return self.players.get(seat_idx)

    def is_occupied(self, seat_idx: int) -> bool:
        return self.get_seat(seat_idx) is not None

    def occupied_count(self) -> int:
        return sum(1 for s in self.seats if s is not None)

    def is_empty(self) -> bool:
        return self.occupied_count() == 0

    def seat_of(self, participant_id: str) -> Optional[int]:
        for i, seat in enumerate(self.seats):
            if seat and seat.type == SEAT_PLAYER and seat.participant_id == participant_id:
                return i
        return None

    def first_human(self) -> Optional[Seat]:
        return next((s for s in self.seats if s and s.type == SEAT_PLAYER), None)

    def occupy(self, seat_idx: int, participant_id: str, name: str) -> bool:
        """Seat a human. Returns False if the seat belongs to someone else."""
        if not self.valid_index(seat_idx):
            return False
        seat = self.seats[seat_idx]
        if seat is not None and seat.participant_id != participant_id:
            return False

        # a participant holds at most one seat
        previous = self.seat_of(participant_id)
        if previous is not None and previous != seat_idx:
            self.vacate(previous)

        self.seats[seat_idx] = Seat(SEAT_PLAYER, name, participant_id)
        logging.debug(f"SeatTable.occupy: seat={seat_idx} participant={participant_id} name={name}")
        return True

    def vacate(self, seat_idx: int) -> Optional[Seat]:
        if not self.valid_index(seat_idx):
            return None
        seat = self.seats[seat_idx]
        self.seats[seat_idx] = None
        self.players.pop(seat_idx, None)
        return seat

    def toggle_ai(self, seat_idx: int) -> Optional[bool]:
        """Add an AI to an empty seat or remove an AI.

        Returns True when an AI was added, False when removed and None when
        the seat holds a human (no change).
        """
        if not self.valid_index(seat_idx):
            return None
        seat = self.seats[seat_idx]
        if seat is not None and seat.type == SEAT_PLAYER:
            return None
        if seat is not None and seat.is_ai:
            self.vacate(seat_idx)
            return False
        self.seats[seat_idx] = Seat(SEAT_AI, f"AI-{seat_idx}")
        return True

    def ensure_players(self, initial_chips: int = DEFAULT_CHIPS) -> None:
        """Create PlayerState for new occupants and drop orphaned state."""
        for i, seat in enumerate(self.seats):
            if seat is not None and i not in self.players:
                self.players[i] = PlayerState(seat_idx=i, chips=initial_chips, total_buy_in=initial_chips)
        for seat_idx in list(self.players):
            if self.seats[seat_idx] is None:
                del self.players[seat_idx]

    def apply_pending_rebuys(self) -> List[tuple]:
        """Credit pending rebuys into stacks. Returns (seat, amount) pairs."""
        applied = []
        for i, seat in enumerate(self.seats):
            if seat is None or seat.type != SEAT_PLAYER:
                continue
            p = self.players.get(i)
            if p is None or p.pending_rebuy <= 0:
                continue
            amount = p.pending_rebuy
            p.chips += amount
            p.pending_rebuy = 0
            p.is_bankrupt = False
            p.is_folded = False
            p.current_bet = 0
            p.hand = []
            applied.append((seat, amount))
        return applied

    # --- predicates --------------------------------------------------------

    def is_eligible(self, seat_idx: int) -> bool:
        if not self.is_occupied(seat_idx):
            return False
        p = self.players.get(seat_idx)
        if p is None:
            return False
        return not p.is_bankrupt and p.chips > 0

    def is_in_hand(self, seat_idx: int) -> bool:
        if not self.is_occupied(seat_idx):
            return False
        p = self.players.get(seat_idx)
        return p is not None and not p.is_folded and not p.is_bankrupt

    def is_actable(self, seat_idx: int) -> bool:
        return self.is_in_hand(seat_idx) and self.players[seat_idx].chips > 0

    def eligible_seats(self) -> List[int]:
        return [i for i in range(self.capacity) if self.is_eligible(i)]

    def in_hand_seats(self) -> List[int]:
        return [i for i in range(self.capacity) if self.is_in_hand(i)]

    def actable_seats(self) -> List[int]:
        return [i for i in range(self.capacity) if self.is_actable(i)]

    # --- seat walking ------------------------------------------------------

    def next_seat_clockwise(self, from_seat_idx: int, predicate: Callable[[int], bool]) -> Optional[int]:
        for step in range(1, self.capacity + 1):
            idx = (from_seat_idx + step) % self.capacity
            if predicate(idx):
                return idx
        return None

    def active_offset(self, start_seat_idx: int, offset: int) -> int:
        """Walk clockwise counting only eligible seats until `offset` is reached."""
        count = 0
        idx = start_seat_idx
        loops = 0
        max_loops = self.capacity * 3
        while count < offset and loops < max_loops:
            idx = (idx + 1) % self.capacity
            if self.is_eligible(idx):
                count += 1
            loops += 1
        return idx

    def clockwise_from(self, start_seat_idx: int) -> List[int]:
        """Seat indices starting left of `start_seat_idx`, going clockwise."""
        return [(start_seat_idx + 1 + i) % self.capacity for i in range(self.capacity)]

    def to_public(self) -> List[Optional[dict]]:
        return [s.to_public(i) if s else None for i, s in enumerate(self.seats)]
