"""
Betting logic for Nebula Poker.

Drives one hand from the blinds to the last street: posting blinds,
dealing, validating and applying fold/check/call/raise/all-in, tracking
who still owes an action and moving the board forward when a street
closes.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, Dict, Optional

from nebula_poker.game_engine import STREETS, Round

if TYPE_CHECKING:
    from nebula_poker.rooms import Room


ACTIONS = ('fold', 'check', 'call', 'raise', 'allin')


def parse_amount(value: Any) -> Optional[int]:
    """Parse a client-supplied chip amount; None for anything unusable."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        return None
    return int(amount)


class BettingEngine:
    """Handles blinds, dealing and player actions for a room."""

    def __init__(self, room: 'Room'):
        self.room = room

    @property
    def engine(self):
        return self.room.engine

    @property
    def seats(self):
        return self.room.seats

    async def start_hand(self) -> bool:
        """Start the next hand, or end the match if it cannot be dealt."""
        room, engine, seats = self.room, self.engine, self.seats

        seats.ensure_players(room.initial_chips)
        for seat, amount in seats.apply_pending_rebuys():
            room.broadcast_activity(f"{seat.name} rebuys ${amount}.")

        eligible = seats.eligible_seats()
        if len(eligible) < 2:
            logging.info(f"Room {room.room_id}: only {len(eligible)} eligible seat(s), ending match")
            await room.match.end_match("Not enough players with chips to continue.")
            return False

        engine.reset_hand()
        room.broadcast_activity(f"--- HAND {engine.hand_num} / {room.total_hands} ---")
        logging.info(f"Room {room.room_id}: starting hand {engine.hand_num}/{room.total_hands}, dealer seat {engine.dealer_seat_idx}")

        sb_seat = seats.active_offset(engine.dealer_seat_idx, 1)
        bb_seat = seats.active_offset(engine.dealer_seat_idx, 2)
        utg_seat = seats.active_offset(engine.dealer_seat_idx, 3)
        engine.sb_seat_idx = sb_seat
        engine.bb_seat_idx = bb_seat

        sb_paid = self.post_blind(sb_seat, room.small_blind)
        bb_paid = self.post_blind(bb_seat, room.big_blind)
        room.broadcast_activity(f"{seats.seats[sb_seat].name} posts SB ${sb_paid}")
        room.broadcast_activity(f"{seats.seats[bb_seat].name} posts BB ${bb_paid}")

        engine.deal_hole_cards()
        room.send_private_hands()

        engine.current_max_bet = max([room.big_blind] + [p.current_bet for p in seats.players.values()])
        engine.min_raise = room.big_blind
        engine.pending.seed(seats.actable_seats())
        engine.active_seat_idx = utg_seat

        room.scheduler.request_turn()
        return True

    def post_blind(self, seat_idx: int, amount: int) -> int:
        """Post a forced bet, capped at the poster's stack."""
        p = self.seats.get_player(seat_idx)
        if p is None or p.is_bankrupt or amount <= 0:
            return 0
        real = self.engine.add_to_pot(seat_idx, amount)
        self.engine.current_max_bet = max(self.engine.current_max_bet, p.current_bet)
        return real

    def choose_next_actor(self, from_seat_idx: int) -> Optional[int]:
        engine = self.engine
        engine.pending.prune(self.seats.is_actable)
        if not engine.pending:
            return None
        return self.seats.next_seat_clockwise(from_seat_idx, lambda idx: idx in engine.pending)

    def handle_action(self, seat_idx: int, action: Dict[str, Any]) -> bool:
        """Apply one betting action. Returns False when the action is rejected."""
        room, engine, seats = self.room, self.engine, self.seats

        if not engine.in_betting_round:
            return False
        p = seats.get_player(seat_idx)
        if p is None or p.is_folded or p.is_bankrupt or not seats.is_eligible(seat_idx):
            return False
        if engine.active_seat_idx != seat_idx:
            logging.debug(f"Room {room.room_id}: seat {seat_idx} acted out of turn (active={engine.active_seat_idx})")
            return False

        act_type = action.get('type')
        if act_type not in ACTIONS:
            logging.debug(f"Room {room.room_id}: unknown action {act_type!r} from seat {seat_idx}")
            return False

        name = seats.seats[seat_idx].name
        call_amt = max(0, engine.current_max_bet - p.current_bet)

        if act_type == 'check' and call_amt != 0:
            logging.debug(f"Room {room.room_id}: seat {seat_idx} tried to check facing ${call_amt}")
            return False

        engine.last_actor_seat_idx = seat_idx
        logging.debug(f"Room {room.room_id}: seat {seat_idx} action={act_type} owed={call_amt} stack={p.chips}")

        if act_type == 'fold':
            p.is_folded = True
            engine.pending.remove(seat_idx)
            room.broadcast_activity(f"{name} Folds.")
            room.broadcast_player_action(seat_idx, "FOLD")

        elif act_type == 'check' or (act_type == 'call' and call_amt == 0):
            engine.pending.remove(seat_idx)
            room.broadcast_activity(f"{name} Checks.")
            room.broadcast_player_action(seat_idx, "CHECK")

        elif act_type == 'call':
            paid = engine.add_to_pot(seat_idx, call_amt)
            engine.pending.remove(seat_idx)
            room.broadcast_activity(f"{name} Calls.")
            room.broadcast_player_action(seat_idx, f"CALL {paid}")

        elif act_type == 'raise':
            requested = parse_amount(action.get('raiseBy', action.get('raiseAmount')))
            raise_by = max(engine.min_raise, requested or 0)
            paid = engine.add_to_pot(seat_idx, call_amt + raise_by)
            if p.current_bet > engine.current_max_bet:
                engine.current_max_bet = p.current_bet
                engine.pending.reopen(seats.actable_seats(), seat_idx)
                room.broadcast_activity(f"{name} Raises to {p.current_bet}.")
                room.broadcast_player_action(seat_idx, f"RAISE {p.current_bet}")
            else:
                # stack too short to raise: it is a call
                engine.pending.remove(seat_idx)
                room.broadcast_activity(f"{name} Calls.")
                room.broadcast_player_action(seat_idx, f"CALL {paid}")

        elif act_type == 'allin':
            engine.add_to_pot(seat_idx, p.chips)
            if p.current_bet > engine.current_max_bet:
                engine.current_max_bet = p.current_bet
                engine.pending.reopen(seats.actable_seats(), seat_idx)
                room.broadcast_activity(f"{name} ALL-IN to {p.current_bet}.")
                room.broadcast_player_action(seat_idx, f"ALL-IN {p.current_bet}")
            else:
                engine.pending.remove(seat_idx)
                room.broadcast_activity(f"{name} is ALL-IN!")
                room.broadcast_player_action(seat_idx, "ALL-IN")

        if len(seats.in_hand_seats()) <= 1:
            room.showdown.finish_hand()
            return True

        engine.pending.prune(seats.is_actable)
        if not engine.pending:
            self.proceed_to_next_street()
            return True

        engine.active_seat_idx = self.choose_next_actor(seat_idx)
        room.scheduler.request_turn()
        return True

    def proceed_to_next_street(self) -> None:
        room, engine, seats = self.room, self.engine, self.seats

        engine.reset_street_bets()
        next_round, n_cards = STREETS[engine.round]

        if next_round == Round.SHOWDOWN:
            engine.transition(Round.SHOWDOWN)
            room.showdown.finish_hand()
            return

        engine.transition(next_round)
        engine.deal_community(n_cards)
        engine.turn_nonce += 1

        actable = seats.actable_seats()
        if len(actable) < 2:
            # nobody left to bet against: run the board out
            logging.debug(f"Room {room.room_id}: {len(actable)} actable seat(s) on {next_round.value}, going to showdown")
            engine.transition(Round.SHOWDOWN)
            room.showdown.finish_hand()
            return

        engine.pending.seed(actable)
        engine.active_seat_idx = seats.active_offset(engine.dealer_seat_idx, 1)
        room.scheduler.request_turn()
