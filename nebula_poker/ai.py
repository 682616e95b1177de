"""
Table AI for Nebula Poker.

A fixed, non-adaptive policy: it does not look at its cards or at the
betting history, only at what it owes and what it can afford.
"""

import random
from typing import Any, Dict, Optional

FOLD_PROBABILITY = 0.15
RAISE_PROBABILITY = 0.30


class SimplePokerAI:
    def __init__(self, fold_probability: float = FOLD_PROBABILITY,
                 raise_probability: float = RAISE_PROBABILITY):
        self.fold_probability = fold_probability
        self.raise_probability = raise_probability

    def decide(self, call_amount: int, chips: int, min_raise: int,
               rng: Optional[random.Random] = None) -> Dict[str, Any]:
        """Return an action payload in the same shape a client sends."""
        r = (rng or random).random()

        if r < self.fold_probability:
            if call_amount > 0:
                return {'type': 'fold'}
        elif r < self.fold_probability + self.raise_probability and chips > call_amount + min_raise:
            return {'type': 'raise', 'raiseBy': min_raise}

        if call_amount > 0:
            return {'type': 'call'}
        return {'type': 'check'}
