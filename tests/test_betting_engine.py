import pytest

from conftest import cards, stacked_deck, total_chips
from nebula_poker.betting_engine import parse_amount
from nebula_poker.game_engine import Round


@pytest.mark.parametrize(
    "value, expected",
    [
        (200, 200),
        ("150", 150),
        (99.9, 99),
        (None, None),
        (True, None),
        ("abc", None),
        (float("nan"), None),
        (float("inf"), None),
        (-50, None),
    ],
)
def test_parse_amount(value, expected):
    assert parse_amount(value) == expected


@pytest.mark.asyncio
async def test_blinds_and_hole_cards_three_handed(make_room, gateway):
    room = make_room(humans=("alice", "bob", "carol"))
    assert await room.start_game("alice", 5, 1000)
    engine = room.engine

    assert engine.round == Round.PRE_FLOP
    assert engine.hand_num == 1
    assert engine.pot == 150
    assert engine.current_max_bet == 100
    assert engine.min_raise == 100
    assert (engine.dealer_seat_idx, engine.sb_seat_idx, engine.bb_seat_idx) == (0, 1, 2)
    assert engine.active_seat_idx == 0
    assert engine.pending.snapshot() == frozenset({0, 1, 2})
    for idx in (0, 1, 2):
        assert len(room.seats.players[idx].hand) == 2
    assert total_chips(room) == 3000

    # each human sees only their own cards
    for pid, idx in (("alice", 0), ("bob", 1), ("carol", 2)):
        private = gateway.events_for(pid, "private_hand")
        assert len(private) == 1
        assert private[0]['seatIdx'] == idx

    assert gateway.last("turn") == {'activeSeatIdx': 0, 'turnNonce': engine.turn_nonce}
    assert "--- HAND 1 / 5 ---" in gateway.events("activity")


@pytest.mark.asyncio
async def test_heads_up_raise_and_call_moves_to_flop(make_room, gateway):
    room = make_room(humans=("alice", "bob"))
    await room.start_game("alice", 5, 1000)
    engine = room.engine

    # heads-up: the dealer's left posts the small blind and acts first
    assert engine.sb_seat_idx == 1
    assert engine.bb_seat_idx == 0
    assert engine.active_seat_idx == 1
    nonce = engine.turn_nonce

    assert room.act("bob", {'type': "raise", 'raiseBy': 200})
    assert room.seats.players[1].current_bet == 300
    assert engine.current_max_bet == 300
    assert engine.pending.snapshot() == frozenset({0})
    assert "RAISE 300" in [a['text'] for a in gateway.events("player_action")]

    assert room.act("alice", {'type': "call"})
    assert engine.round == Round.FLOP
    assert len(engine.community) == 3
    assert engine.pot == 600
    assert engine.current_max_bet == 0
    assert all(p.current_bet == 0 for p in room.seats.players.values())
    assert engine.turn_nonce == nonce + 1
    assert engine.active_seat_idx == 1
    assert engine.pending.snapshot() == frozenset({0, 1})
    assert total_chips(room) == 2000


@pytest.mark.asyncio
async def test_fold_to_one_player_ends_hand_immediately(make_room, gateway):
    room = make_room(humans=("alice", "bob", "carol"))
    await room.start_game("alice", 5, 1000)
    engine = room.engine

    assert room.act("alice", {'type': "fold"})
    assert room.act("bob", {'type': "fold"})

    assert engine.round == Round.HAND_OVER
    assert engine.community == []
    assert engine.pot == 0
    assert room.seats.players[2].chips == 1050
    assert total_chips(room) == 3000

    result = gateway.last("hand_over")
    assert result['winners'] == [{'seatIdx': 2, 'name': "Carol"}]
    assert result['desc'] == "All others folded"
    assert result['showdownHands'] == []
    assert room.hand_history == [{'handNum': 1, 'winners': [{'seatIdx': 2, 'name': "Carol"}], 'desc': "All others folded"}]


@pytest.mark.asyncio
async def test_illegal_check_and_out_of_turn_are_rejected(make_room):
    room = make_room(humans=("alice", "bob", "carol"))
    await room.start_game("alice", 5, 1000)
    engine = room.engine
    before = (engine.pot, engine.active_seat_idx, engine.pending.snapshot())

    assert not room.act("alice", {'type': "check"})
    assert not room.act("bob", {'type': "call"})
    assert not room.act("alice", {'type': "shove"})
    assert not room.act("mallory", {'type': "fold"})
    assert (engine.pot, engine.active_seat_idx, engine.pending.snapshot()) == before


@pytest.mark.asyncio
async def test_call_with_nothing_owed_is_a_check(make_room, gateway):
    room = make_room(humans=("alice", "bob", "carol"))
    await room.start_game("alice", 5, 1000)

    room.act("alice", {'type': "call"})
    room.act("bob", {'type': "call"})
    pot = room.engine.pot
    assert room.act("carol", {'type': "call"})
    assert room.engine.pot == pot
    assert room.engine.round == Round.FLOP
    assert gateway.events("player_action")[-1] == {'seatIdx': 2, 'text': "CHECK"}


@pytest.mark.asyncio
async def test_raise_below_minimum_is_lifted(make_room):
    room = make_room(humans=("alice", "bob", "carol"))
    await room.start_game("alice", 5, 1000)

    assert room.act("alice", {'type': "raise", 'raiseAmount': 10})
    assert room.seats.players[0].current_bet == 200
    assert room.engine.current_max_bet == 200
    # everyone who can still act owes a response
    assert room.engine.pending.snapshot() == frozenset({1, 2})


@pytest.mark.asyncio
async def test_short_stacked_raise_counts_as_call(make_room, gateway):
    room = make_room(humans=("alice", "bob", "carol"))
    await room.start_game("alice", 5, 1000)
    engine = room.engine
    p = room.seats.players[0]
    # simulate a short stack without breaking conservation
    engine.pot += p.chips - 80
    p.chips = 80
    total = total_chips(room)

    assert room.act("alice", {'type': "raise", 'raiseBy': 100})
    assert p.chips == 0
    assert p.current_bet == 80
    assert engine.current_max_bet == 100
    assert 0 not in engine.pending
    assert engine.pending.snapshot() == frozenset({1, 2})
    assert total_chips(room) == total


@pytest.mark.asyncio
async def test_allin_over_max_reopens_action(make_room):
    room = make_room(humans=("alice", "bob", "carol"))
    await room.start_game("alice", 5, 1000)
    engine = room.engine

    room.act("alice", {'type': "call"})
    room.act("bob", {'type': "call"})
    assert engine.pending.snapshot() == frozenset({2})

    assert room.act("carol", {'type': "allin"})
    assert engine.current_max_bet == 1000
    assert engine.pending.snapshot() == frozenset({0, 1})
    assert 2 not in engine.pending
    assert engine.active_seat_idx == 0


@pytest.mark.asyncio
async def test_allin_under_max_does_not_reopen(make_room):
    room = make_room(humans=("alice", "bob", "carol"))
    await room.start_game("alice", 5, 1000)
    engine = room.engine
    room.act("alice", {'type': "raise", 'raiseBy': 400})
    assert engine.current_max_bet == 500

    p = room.seats.players[1]
    engine.pot += p.chips - 200
    p.chips = 200
    assert room.act("bob", {'type': "allin"})
    assert p.current_bet == 250
    assert engine.current_max_bet == 500
    assert engine.pending.snapshot() == frozenset({2})


@pytest.mark.asyncio
async def test_all_in_heads_up_runs_board_to_showdown(make_room, gateway):
    # deal order: seat 1, seat 0, seat 1, seat 0, then flop/turn/river
    deck = stacked_deck("Ah", "7c", "Ad", "2d", "Kh", "9s", "4c", "3d", "Jc")
    room = make_room(humans=("alice", "bob"), decks=[deck])
    await room.start_game("alice", 5, 1000)
    engine = room.engine

    assert room.seats.players[1].hand == cards("Ah", "Ad")
    assert room.act("bob", {'type': "allin"})
    assert engine.pending.snapshot() == frozenset({0})
    assert room.act("alice", {'type': "call"})

    assert engine.round == Round.HAND_OVER
    assert engine.community == cards("Kh", "9s", "4c", "3d", "Jc")
    assert room.seats.players[1].chips == 2000
    assert room.seats.players[0].chips == 0
    assert total_chips(room) == 2000

    result = gateway.last("hand_over")
    assert result['winners'] == [{'seatIdx': 1, 'name': "Bob"}]
    assert result['desc'] == "One Pair"
    assert {h['seatIdx'] for h in result['showdownHands']} == {0, 1}


@pytest.mark.asyncio
async def test_chips_are_conserved_through_a_full_hand(make_room):
    room = make_room(humans=("alice", "bob", "carol"))
    await room.start_game("alice", 5, 1000)
    engine = room.engine
    script = [
        ("alice", {'type': "raise", 'raiseBy': 100}),
        ("bob", {'type': "call"}),
        ("carol", {'type': "call"}),
    ]
    for pid, action in script:
        assert room.act(pid, action)
        assert total_chips(room) == 3000
        assert all(room.seats.is_actable(i) for i in engine.pending)

    # check it down street by street
    while engine.in_betting_round:
        seat_idx = engine.active_seat_idx
        pid = room.seats.seats[seat_idx].participant_id
        assert room.act(pid, {'type': "check"})
        assert total_chips(room) == 3000
        assert all(room.seats.is_actable(i) for i in engine.pending)

    assert engine.round == Round.HAND_OVER
    assert len(engine.community) == 5
    assert total_chips(room) == 3000
    assert engine.pot == 0


@pytest.mark.asyncio
async def test_pending_never_regains_a_folded_seat(make_room):
    room = make_room(humans=("alice", "bob", "carol", "dave"))
    await room.start_game("alice", 5, 1000)
    engine = room.engine
    # dealer 0, SB 1, BB 2, UTG 3
    assert engine.active_seat_idx == 3

    room.act("dave", {'type': "fold"})
    room.act("alice", {'type': "raise", 'raiseBy': 100})
    assert 3 not in engine.pending
    assert engine.pending.snapshot() == frozenset({1, 2})
