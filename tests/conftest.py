import random
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import pytest

from nebula_poker.deck import RANKS, Card, make_deck
from nebula_poker.gateway import Gateway
from nebula_poker.rooms import Room, RoomManager
from nebula_poker.server_info import Settings

SUIT_LETTERS = {'h': "hearts", 'd': "diamonds", 'c': "clubs", 's': "spades"}


def card(label: str) -> Card:
    """Parse short labels like 'Ah', 'Td' or '10d'."""
    rank, suit = label[:-1], SUIT_LETTERS[label[-1]]
    if rank == "T":
        rank = "10"
    return Card(suit, rank, RANKS.index(rank))


def cards(*labels: str) -> List[Card]:
    return [card(label) for label in labels]


def stacked_deck(*labels: str) -> List[Card]:
    """A full deck whose first draws are `labels`, in that order.

    Dealing pops from the end of the list, so the listed cards go last.
    """
    top = cards(*labels)
    rest = [c for c in make_deck() if c not in top]
    return rest + list(reversed(top))


class DeckSequence:
    """deck_factory stand-in that hands out prepared decks, then unstacked ones."""

    def __init__(self, decks: Iterable[List[Card]] = ()):
        self._decks = list(decks)

    def __call__(self) -> List[Card]:
        if self._decks:
            return list(self._decks.pop(0))
        return make_deck()


class RecordingGateway(Gateway):
    """In-memory gateway which records every emitted event."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.channels: Dict[str, set] = {}
        self.connected: set = set()
        self.fail_enumerate = False

    def connect(self, participant_id: str) -> None:
        self.connected.add(participant_id)

    def disconnect(self, participant_id: str) -> None:
        self.connected.discard(participant_id)
        for members in self.channels.values():
            members.discard(participant_id)

    def emit_to_room(self, room_id, event, payload=None, skip=None):
        self.sent.append(('room', room_id, event, payload, skip))

    def emit_to_participant(self, participant_id, event, payload=None):
        self.sent.append(('participant', participant_id, event, payload, None))

    async def enumerate_participants(self, room_id):
        if self.fail_enumerate:
            raise ConnectionError("adapter unavailable")
        return [pid for pid in sorted(self.channels.get(room_id, ())) if pid in self.connected]

    def is_connected(self, participant_id):
        return participant_id in self.connected

    def join_room(self, participant_id, room_id):
        self.channels.setdefault(room_id, set()).add(participant_id)

    def leave_room(self, participant_id, room_id):
        self.channels.get(room_id, set()).discard(participant_id)

    # --- assertions helpers ---

    def events(self, name: str) -> list:
        return [entry[3] for entry in self.sent if entry[2] == name]

    def events_for(self, participant_id: str, name: str) -> list:
        return [entry[3] for entry in self.sent
                if entry[0] == 'participant' and entry[1] == participant_id and entry[2] == name]

    def last(self, name: str):
        found = self.events(name)
        return found[-1] if found else None


class ManualHandle:
    def __init__(self, delay: float, callback: Callable, args: Sequence):
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self, force: bool = False) -> None:
        """Run the callback. force=True simulates a callback racing its cancel."""
        if self.cancelled and not force:
            return
        self.fired = True
        self.callback(*self.args)


class ManualTimers:
    """call_later stand-in: nothing runs until the test fires it."""

    def __init__(self):
        self.handles: List[ManualHandle] = []

    def __call__(self, delay, callback, *args):
        handle = ManualHandle(delay, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def fire_next(self) -> Optional[ManualHandle]:
        pending = self.pending
        if not pending:
            return None
        pending[0].fire()
        return pending[0]


def total_chips(room: Room) -> int:
    return sum(p.chips for p in room.seats.players.values()) + room.engine.pot


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def settings() -> Settings:
    return Settings(min_players_to_start=2)


@pytest.fixture
def make_room(gateway, timers, settings):
    """Factory for rooms wired to the recording gateway and manual timers.

    Humans are connected, joined and seated in order; the first human is
    the host. AI seats are added by the host afterwards.
    """

    def _factory(humans: Sequence[str] = ("alice", "bob"), ai_seats: Sequence[int] = (),
                 decks: Iterable[List[Card]] = (), room_id: str = "table-1",
                 seat_indices: Optional[Sequence[int]] = None, rng_seed: int = 7) -> Room:
        room = Room(
            room_id,
            gateway,
            settings=settings,
            deck_factory=DeckSequence(decks),
            rng=random.Random(rng_seed),
            call_later=timers,
        )
        indices = list(seat_indices) if seat_indices is not None else list(range(len(humans)))
        for pid, idx in zip(humans, indices):
            gateway.connect(pid)
            gateway.join_room(pid, room_id)
            room.members.add(pid)
            room.elect_host(pid)
            assert room.take_seat(pid, pid.title(), idx)
        for idx in ai_seats:
            assert room.toggle_ai(room.host_id, idx)
        return room

    return _factory


@pytest.fixture
def manager(gateway, timers, settings) -> RoomManager:
    return RoomManager(gateway, settings, deck_factory=DeckSequence(), rng=random.Random(3), call_later=timers)
