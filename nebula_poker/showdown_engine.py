"""
Showdown and winner determination for Nebula Poker.

There is a single pot. Every in-hand seat contests all of it, including
seats that went all-in for less (no side pots). Split pots are divided by
floor division; the odd chips go one each to the tied winners starting
left of the dealer, so the whole pot is always paid out.
"""

from __future__ import annotations

import logging
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from nebula_poker.game_engine import BETTING_ROUNDS, Round
from nebula_poker.hand_evaluation import best_hand_from_seven, compare_hands, hand_description

if TYPE_CHECKING:
    from nebula_poker.rooms import Room


def split_pot(pot: int, winners_in_order: List[int]) -> Dict[int, int]:
    """Split a pot between winners; odd chips go to the earliest winners."""
    if not winners_in_order:
        return {}
    share, remainder = divmod(pot, len(winners_in_order))
    return {
        seat_idx: share + (1 if i < remainder else 0)
        for i, seat_idx in enumerate(winners_in_order)
    }


class ShowdownEngine:
    """Settles a hand: awards the pot and records the result."""

    def __init__(self, room: 'Room'):
        self.room = room

    def finish_hand(self) -> Optional[Dict[str, Any]]:
        room = self.room
        engine, seats = room.engine, room.seats

        if engine.round not in BETTING_ROUNDS and engine.round != Round.SHOWDOWN:
            return None

        room.scheduler.cancel()
        engine.pending.clear()
        engine.active_seat_idx = None

        in_hand = seats.in_hand_seats()

        if not in_hand:
            return self._settle_without_contenders()

        if len(in_hand) == 1:
            winner = in_hand[0]
            name = seats.seats[winner].name
            return self._complete(
                payouts={winner: engine.pot},
                desc="All others folded",
                activity=f"Game Over. {name} wins (all others folded)!",
                showdown_hands=[],
            )

        engine.run_out_board()
        if engine.round != Round.SHOWDOWN:
            engine.transition(Round.SHOWDOWN)

        evals = []
        for seat_idx in in_hand:
            p = seats.get_player(seat_idx)
            evals.append((seat_idx, best_hand_from_seven(p.hand + engine.community)))

        best = max((e[1] for e in evals), key=cmp_to_key(compare_hands))
        winning = {seat_idx for seat_idx, hand in evals if compare_hands(hand, best) == 0}
        ordered = [i for i in seats.clockwise_from(engine.dealer_seat_idx) if i in winning]
        payouts = split_pot(engine.pot, ordered)

        names = " & ".join(seats.seats[i].name for i in ordered)
        showdown_hands = [
            {
                'seatIdx': seat_idx,
                'name': seats.seats[seat_idx].name,
                'hand': [c.to_dict() for c in seats.get_player(seat_idx).hand[:2]],
                'desc': hand_description(hand),
            }
            for seat_idx, hand in evals
        ]
        return self._complete(
            payouts=payouts,
            desc=best.desc,
            activity=f"Game Over. {names} wins with {hand_description(best)}!",
            showdown_hands=showdown_hands,
        )

    def _settle_without_contenders(self) -> Dict[str, Any]:
        room = self.room
        engine, seats = room.engine, room.seats
        fallback = engine.last_actor_seat_idx

        if fallback is not None and seats.get_seat(fallback) and seats.get_player(fallback):
            name = seats.seats[fallback].name
            logging.warning(f"Room {room.room_id}: no in-hand seats, awarding pot to last actor seat {fallback}")
            return self._complete(
                payouts={fallback: engine.pot},
                desc="No active players (fallback)",
                activity=f"Game Over. {name} wins (fallback: no active players).",
                showdown_hands=[],
            )

        logging.warning(f"Room {room.room_id}: no in-hand seats and no last actor, pot of {engine.pot} is void")
        return self._complete(
            payouts={},
            desc="No active players",
            activity="Hand ended (no active players).",
            showdown_hands=[],
        )

    def _complete(self, payouts: Dict[int, int], desc: str, activity: str,
                  showdown_hands: List[Dict[str, Any]]) -> Dict[str, Any]:
        room = self.room
        engine, seats = room.engine, room.seats

        for seat_idx, amount in payouts.items():
            seats.get_player(seat_idx).chips += amount

        winners = [{'seatIdx': i, 'name': seats.seats[i].name} for i in payouts]
        pot = engine.pot
        room.hand_history.append({'handNum': engine.hand_num, 'winners': winners, 'desc': desc})

        room.broadcast_activity(activity)
        engine.pot = 0
        engine.transition(Round.HAND_OVER)
        logging.info(f"Room {room.room_id}: hand {engine.hand_num} won by {[w['name'] for w in winners]} ({desc}), pot {pot}")

        room.emit_to_room("hand_over", {
            'handNum': engine.hand_num,
            'totalHands': room.total_hands,
            'winners': winners,
            'desc': desc,
            'showdownHands': showdown_hands,
        })
        room.broadcast_game()
        return {'winners': [w['seatIdx'] for w in winners], 'pot': pot, 'payouts': payouts, 'desc': desc}

