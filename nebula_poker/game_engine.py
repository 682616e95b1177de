"""
Core game engine for Nebula Poker.

Holds the per-hand state of one table (deck, board, pot, blinds, turn
bookkeeping) and the explicit round state machine. Betting and showdown
rules live in betting_engine / showdown_engine and drive this state.
"""

from __future__ import annotations

import enum
import logging
import random
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set

from nebula_poker.deck import Card, deal_cards, fresh_deck
from nebula_poker.player import SeatTable


class Round(str, enum.Enum):
    WAITING = "WAITING"
    PRE_FLOP = "PRE-FLOP"
    FLOP = "FLOP"
    TURN = "TURN"
    RIVER = "RIVER"
    SHOWDOWN = "SHOWDOWN"
    HAND_OVER = "HAND_OVER"


BETTING_ROUNDS = (Round.PRE_FLOP, Round.FLOP, Round.TURN, Round.RIVER)

TRANSITIONS: Dict[Round, FrozenSet[Round]] = {
    Round.WAITING: frozenset({Round.PRE_FLOP, Round.WAITING}),
    Round.PRE_FLOP: frozenset({Round.FLOP, Round.SHOWDOWN, Round.HAND_OVER}),
    Round.FLOP: frozenset({Round.TURN, Round.SHOWDOWN, Round.HAND_OVER}),
    Round.TURN: frozenset({Round.RIVER, Round.SHOWDOWN, Round.HAND_OVER}),
    Round.RIVER: frozenset({Round.SHOWDOWN, Round.HAND_OVER}),
    Round.SHOWDOWN: frozenset({Round.HAND_OVER}),
    Round.HAND_OVER: frozenset({Round.PRE_FLOP, Round.WAITING}),
}

# next street and how many board cards it deals
STREETS: Dict[Round, tuple] = {
    Round.PRE_FLOP: (Round.FLOP, 3),
    Round.FLOP: (Round.TURN, 1),
    Round.TURN: (Round.RIVER, 1),
    Round.RIVER: (Round.SHOWDOWN, 0),
}


class InvalidTransition(ValueError):
    """Raised when the round state machine is asked for a move outside its table."""


class PendingActions:
    """Seats that still owe an action before the street can close."""

    def __init__(self):
        self._seats: Set[int] = set()

    def __contains__(self, seat_idx) -> bool:
        return seat_idx in self._seats

    def __len__(self) -> int:
        return len(self._seats)

    def __iter__(self):
        return iter(sorted(self._seats))

    def seed(self, seats: Iterable[int]) -> None:
        self._seats = set(seats)

    def reopen(self, seats: Iterable[int], raiser: int) -> None:
        """After a raise everybody who can still act owes a response again."""
        self._seats = set(seats)
        self._seats.discard(raiser)

    def remove(self, seat_idx: int) -> None:
        self._seats.discard(seat_idx)

    def prune(self, keep: Callable[[int], bool]) -> None:
        self._seats = {i for i in self._seats if keep(i)}

    def clear(self) -> None:
        self._seats = set()

    def snapshot(self) -> FrozenSet[int]:
        return frozenset(self._seats)


class GameEngine:
    """Deck, board, pot and turn bookkeeping for one table."""

    def __init__(self, seats: SeatTable, deck_factory: Optional[Callable[[], List[Card]]] = None,
                 rng: Optional[random.Random] = None):
        self.seats = seats
        self.rng = rng or random.Random()
        self.deck_factory = deck_factory or (lambda: fresh_deck(self.rng))

        self.round = Round.WAITING
        self.hand_num = 0
        self.deck: List[Card] = []
        self.community: List[Card] = []
        self.pot = 0
        self.current_max_bet = 0
        self.min_raise = 0
        self.dealer_seat_idx = 0
        self.sb_seat_idx: Optional[int] = None
        self.bb_seat_idx: Optional[int] = None
        self.active_seat_idx: Optional[int] = None
        self.pending = PendingActions()
        self.turn_nonce = 0
        self.last_actor_seat_idx: Optional[int] = None

    @property
    def in_betting_round(self) -> bool:
        return self.round in BETTING_ROUNDS

    def transition(self, new_round: Round) -> None:
        if new_round not in TRANSITIONS[self.round]:
            raise InvalidTransition(f"{self.round.value} -> {new_round.value}")
        logging.debug(f"GameEngine.transition: {self.round.value} -> {new_round.value}")
        self.round = new_round

    def reset_hand(self) -> None:
        """Reset the table for a new hand and enter PRE-FLOP."""
        self.transition(Round.PRE_FLOP)
        self.hand_num += 1
        self.pot = 0
        self.community = []
        self.deck = self.deck_factory()
        self.current_max_bet = 0
        self.pending.clear()
        self.active_seat_idx = None
        self.last_actor_seat_idx = None
        self.turn_nonce += 1

        for p in self.seats.players.values():
            p.hand = []
            p.current_bet = 0
            p.is_folded = p.chips <= 0
            p.is_bankrupt = p.chips <= 0

    def draw(self, n: int = 1) -> List[Card]:
        return deal_cards(self.deck, n)

    def deal_hole_cards(self) -> List[int]:
        """Deal two cards to each eligible seat, one per pass, dealer's left first."""
        order = [i for i in self.seats.clockwise_from(self.dealer_seat_idx) if self.seats.is_eligible(i)]
        for _ in range(2):
            for seat_idx in order:
                self.seats.players[seat_idx].hand.append(self.draw(1)[0])
        return order

    def deal_community(self, n: int) -> None:
        self.community.extend(self.draw(n))

    def run_out_board(self) -> None:
        while len(self.community) < 5:
            self.deal_community(1)

    def reset_street_bets(self) -> None:
        for p in self.seats.players.values():
            p.current_bet = 0
        self.current_max_bet = 0

    def add_to_pot(self, seat_idx: int, amount: int) -> int:
        """Commit chips from a seat into the pot (capped at its stack)."""
        p = self.seats.get_player(seat_idx)
        if p is None:
            return 0
        real = p.commit(amount)
        self.pot += real
        return real

    def get_public_state(self) -> Dict[str, object]:
        """Get the current public (hole-card free) table state."""
        players = []
        for i, seat in enumerate(self.seats.seats):
            if seat is None:
                continue
            p = self.seats.get_player(i)
            if p is None:
                continue
            players.append({
                'seatIdx': i,
                'name': seat.name,
                'type': seat.type,
                'chips': p.chips,
                'currentBet': p.current_bet,
                'isFolded': p.is_folded,
                'isBankrupt': p.is_bankrupt,
                'totalBuyIn': p.total_buy_in,
            })
        return {
            'handNum': self.hand_num,
            'dealerSeatIdx': self.dealer_seat_idx,
            'sbSeatIdx': self.sb_seat_idx,
            'bbSeatIdx': self.bb_seat_idx,
            'activeSeatIdx': self.active_seat_idx,
            'pot': self.pot,
            'round': self.round.value,
            'communityCards': [c.to_dict() for c in self.community],
            'currentMaxBet': self.current_max_bet,
            'minRaise': self.min_raise,
            'turnNonce': self.turn_nonce,
            'players': players,
        }
