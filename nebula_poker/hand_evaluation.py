"""
Hand evaluation for Nebula Poker.

Pure functions: rank five cards, pick the best five out of seven and
compare two evaluated hands. Tie-break vectors use the 2..14 scale
(card value + 2) so an Ace reads as 14 and the wheel as a 5-high straight.
"""

import itertools
from typing import Dict, Iterable, List, NamedTuple, Optional

from nebula_poker.deck import Card


HAND_RANKS = {
    'highcard': 1,
    'pair': 2,
    'two_pair': 3,
    'trips': 4,
    'straight': 5,
    'flush': 6,
    'fullhouse': 7,
    'quads': 8,
    'straight_flush': 9,
    'royal_flush': 10,
}

CATEGORY_NAMES: Dict[int, str] = {
    1: "High Card",
    2: "One Pair",
    3: "Two Pair",
    4: "Three of a Kind",
    5: "Straight",
    6: "Flush",
    7: "Full House",
    8: "Four of a Kind",
    9: "Straight Flush",
    10: "Royal Flush",
}


class HandValue(NamedTuple):
    rank: int
    values: List[int]
    desc: str


def _make(category: str, values: List[int]) -> HandValue:
    rank = HAND_RANKS[category]
    return HandValue(rank, values, CATEGORY_NAMES[rank])


def _straight_high(ranks: List[int]) -> Optional[int]:
    # ranks sorted desc
    if len(set(ranks)) != 5:
        return None
    if ranks[0] - ranks[4] == 4:
        return ranks[0]
    # wheel (A-2-3-4-5)
    if ranks == [14, 5, 4, 3, 2]:
        return 5
    return None


def evaluate_5cards(cards: Iterable[Card]) -> HandValue:
    """Evaluate exactly 5 cards and return a HandValue."""
    cards = list(cards)
    if len(cards) != 5:
        raise ValueError(f"evaluate_5cards needs 5 cards, got {len(cards)}")

    ranks = sorted((c.v + 2 for c in cards), reverse=True)
    suits = [c.s for c in cards]

    counts: Dict[int, int] = {}
    for r in ranks:
        counts[r] = counts.get(r, 0) + 1
    # most frequent first, higher rank first among equal counts
    by_freq = sorted(counts, key=lambda r: (counts[r], r), reverse=True)
    freq = [counts[r] for r in by_freq]

    is_flush = len(set(suits)) == 1
    straight_high = _straight_high(ranks)

    if is_flush and straight_high is not None:
        if straight_high == 14:
            return _make('royal_flush', [14])
        return _make('straight_flush', [straight_high])

    if freq[0] == 4:
        return _make('quads', [by_freq[0], by_freq[1]])

    if freq[0] == 3 and freq[1] == 2:
        return _make('fullhouse', [by_freq[0], by_freq[1]])

    if is_flush:
        return _make('flush', ranks)

    if straight_high is not None:
        return _make('straight', [straight_high])

    if freq[0] == 3:
        return _make('trips', by_freq[:3])

    if freq[0] == 2 and freq[1] == 2:
        return _make('two_pair', by_freq[:3])

    if freq[0] == 2:
        return _make('pair', by_freq[:4])

    return _make('highcard', ranks)


def compare_hands(a: HandValue, b: HandValue) -> int:
    """Return 1 if a beats b, -1 if b beats a and 0 for a true tie."""
    if a.rank != b.rank:
        return 1 if a.rank > b.rank else -1
    for x, y in zip(a.values, b.values):
        if x != y:
            return 1 if x > y else -1
    return 0


def best_hand_from_seven(cards7: Iterable[Card]) -> HandValue:
    """Compute the best 5-card hand from up to 7 cards."""
    cards7 = list(cards7)
    if len(cards7) < 5:
        raise ValueError(f"Need at least 5 cards, got {len(cards7)}")
    best: Optional[HandValue] = None
    for combo in itertools.combinations(cards7, 5):
        val = evaluate_5cards(combo)
        if best is None or compare_hands(val, best) > 0:
            best = val
    return best


def hand_description(hand: HandValue) -> str:
    """Convert a hand evaluation result to a human-readable description."""

    def rank_name(r: int) -> str:
        names = {11: 'Jack', 12: 'Queen', 13: 'King', 14: 'Ace'}
        return names.get(r, str(r))

    def rank_name_plural(r: int) -> str:
        names = {11: 'Jacks', 12: 'Queens', 13: 'Kings', 14: 'Aces'}
        return names.get(r, f"{r}s")

    rank, values = hand.rank, hand.values

    if rank == HAND_RANKS['royal_flush']:
        return "Royal Flush"
    elif rank == HAND_RANKS['straight_flush']:
        return f"Straight Flush, {rank_name(values[0])} high"
    elif rank == HAND_RANKS['quads']:
        return f"Four of a Kind, {rank_name_plural(values[0])}"
    elif rank == HAND_RANKS['fullhouse']:
        return f"Full House, {rank_name_plural(values[0])} over {rank_name_plural(values[1])}"
    elif rank == HAND_RANKS['flush']:
        return f"Flush, {rank_name(values[0])} high"
    elif rank == HAND_RANKS['straight']:
        if values[0] == 5:
            return "Straight, 5 high (Wheel)"
        return f"Straight, {rank_name(values[0])} high"
    elif rank == HAND_RANKS['trips']:
        return f"Three of a Kind, {rank_name_plural(values[0])}"
    elif rank == HAND_RANKS['two_pair']:
        return f"Two Pair, {rank_name_plural(values[0])} and {rank_name_plural(values[1])}"
    elif rank == HAND_RANKS['pair']:
        return f"Pair of {rank_name_plural(values[0])}"
    else:
        return f"High Card, {rank_name(values[0])}"
