"""
Turn scheduling for Nebula Poker.

Decides who acts next, prompts humans with a turn notice and arms a
delayed automatic action for AI seats. A delayed action carries the
(room, seat, nonce) it was armed for and is dropped on firing if the
table has moved on since.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, NamedTuple, Optional

from nebula_poker.game_engine import Round

if TYPE_CHECKING:
    from nebula_poker.rooms import Room

AI_TURN_DELAY = 0.7


class TurnKey(NamedTuple):
    room_id: str
    seat_idx: int
    turn_nonce: int


def _loop_call_later(delay: float, callback: Callable[..., Any], *args: Any):
    return asyncio.get_running_loop().call_later(delay, callback, *args)


class TurnScheduler:
    def __init__(self, room: 'Room', call_later: Optional[Callable[..., Any]] = None,
                 delay: float = AI_TURN_DELAY):
        self.room = room
        self.delay = delay
        self._call_later = call_later or _loop_call_later
        self._handle = None
        self.armed: Optional[TurnKey] = None

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self.armed = None

    def request_turn(self) -> None:
        room = self.room
        engine, seats = room.engine, room.seats

        self.cancel()
        if not engine.in_betting_round:
            return

        if len(seats.in_hand_seats()) <= 1:
            room.showdown.finish_hand()
            return

        if not seats.actable_seats():
            # everyone left is all-in
            engine.transition(Round.SHOWDOWN)
            room.showdown.finish_hand()
            return

        engine.pending.prune(seats.is_actable)
        if engine.active_seat_idx is None or engine.active_seat_idx not in engine.pending:
            start = engine.active_seat_idx if engine.active_seat_idx is not None else engine.dealer_seat_idx
            engine.active_seat_idx = room.betting.choose_next_actor(start)
        if engine.active_seat_idx is None:
            room.betting.proceed_to_next_street()
            return

        room.broadcast_game()

        seat = seats.get_seat(engine.active_seat_idx)
        if seat is not None and seat.is_ai:
            self._arm(TurnKey(room.room_id, engine.active_seat_idx, engine.turn_nonce))
        else:
            room.emit_to_room("turn", {'activeSeatIdx': engine.active_seat_idx, 'turnNonce': engine.turn_nonce})

    def _arm(self, key: TurnKey) -> None:
        self.armed = key
        self._handle = self._call_later(self.delay, self._fire, key)

    def is_current(self, key: TurnKey) -> bool:
        room = self.room
        engine = room.engine
        if key.room_id != room.room_id or not room.started or room.closing:
            return False
        if not engine.in_betting_round:
            return False
        if engine.active_seat_idx != key.seat_idx or engine.turn_nonce != key.turn_nonce:
            return False
        seat = room.seats.get_seat(key.seat_idx)
        return seat is not None and seat.is_ai

    def _fire(self, key: TurnKey) -> None:
        if self.armed == key:
            self._handle = None
            self.armed = None
        if not self.is_current(key):
            logging.debug(f"Dropping stale AI turn {key}")
            return
        self.ai_act(key.seat_idx)

    def ai_act(self, seat_idx: int) -> None:
        room = self.room
        engine, seats = room.engine, room.seats

        p = seats.get_player(seat_idx)
        if p is None or p.is_folded or p.is_bankrupt:
            engine.pending.remove(seat_idx)
            engine.active_seat_idx = room.betting.choose_next_actor(seat_idx)
            self.request_turn()
            return

        call_amt = max(0, engine.current_max_bet - p.current_bet)
        decision = room.ai.decide(call_amt, p.chips, engine.min_raise, engine.rng)
        if not room.betting.handle_action(seat_idx, decision):
            logging.warning(f"Room {room.room_id}: AI seat {seat_idx} action {decision} rejected, folding")
            room.betting.handle_action(seat_idx, {'type': 'fold'})
