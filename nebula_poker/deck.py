"""
Deck and card operations for Nebula Poker.

Cards carry the same three fields the browser client renders:
suit name, rank label and a numeric rank value (0..12, Ace = 12).
"""

import random
from typing import Dict, List, NamedTuple, Optional

RANKS = ["2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A"]
SUITS = ["hearts", "diamonds", "clubs", "spades"]


class Card(NamedTuple):
    s: str  # suit
    r: str  # rank label
    v: int  # rank value, 0..12

    def to_dict(self) -> Dict[str, object]:
        return {'s': self.s, 'r': self.r, 'v': self.v}


def make_card(rank: str, suit: str) -> Card:
    """Build a card from its label, e.g. make_card('A', 'spades')."""
    return Card(suit, rank, RANKS.index(rank))


def make_deck() -> List[Card]:
    """Create a standard 52-card deck in suit/rank order."""
    return [Card(s, r, v) for s in SUITS for v, r in enumerate(RANKS)]


def card_str(card: Card) -> str:
    """Convert a card to its short string representation."""
    return f"{card.r}{card.s[0]}"


def shuffle_deck(deck: List[Card], rng: Optional[random.Random] = None) -> None:
    """Shuffle a deck in place (uniform Fisher-Yates permutation)."""
    (rng or random).shuffle(deck)


def fresh_deck(rng: Optional[random.Random] = None) -> List[Card]:
    """Create and return a shuffled deck."""
    deck = make_deck()
    shuffle_deck(deck, rng)
    return deck


def deal_cards(deck: List[Card], num_cards: int) -> List[Card]:
    """Deal a number of cards from the top of the deck."""
    if len(deck) < num_cards:
        raise ValueError(f"Cannot deal {num_cards} cards from deck of {len(deck)}")

    dealt = []
    for _ in range(num_cards):
        dealt.append(deck.pop())
    return dealt
