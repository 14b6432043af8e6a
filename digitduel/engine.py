"""
Pure game logic (no HTTP, no storage).
We compute two feedback numbers for each guess against one secret:
- exact: how many indices are exactly correct (right digit, right place)
- misplaced: digits present in the secret but at another, not-yet-matched place

Digits may repeat in both the secret and the guess. A secret digit is
consumed by the first guess position that matches it, so it is never
counted twice.
"""

from typing import Tuple
from .types import Code

_CONSUMED = "*"  # never a digit


def score_guess(secret: Code, guess: Code) -> Tuple[int, int]:
    """
    Example:
      secret = ["1", "2", "3", "4"]
      guess  = ["1", "2", "4", "3"]
      exact     = 2  (the 1 and the 2)
      misplaced = 2  (the 3 and the 4 are swapped)
      Returns a tuple: (exact, misplaced)
    """

    # 0. Validate lengths match
    n = len(secret)
    if n == 0 or len(guess) != n:
        raise ValueError("Secret and guess must be the same non-zero length.")

    remaining_secret = list(secret)
    remaining_guess = list(guess)

    # 1. Exact position matches; consume both sides
    exact = 0
    for i in range(n):
        if remaining_secret[i] == remaining_guess[i]:
            exact += 1
            remaining_secret[i] = _CONSUMED
            remaining_guess[i] = _CONSUMED

    # 2. Misplaced: first unconsumed secret position wins
    misplaced = 0
    for i in range(n):
        digit = remaining_guess[i]
        if digit == _CONSUMED:
            continue
        for j in range(n):
            if remaining_secret[j] == digit:
                misplaced += 1
                remaining_secret[j] = _CONSUMED
                break

    return (exact, misplaced)


def is_found(secret: Code, guess: Code) -> bool:
    """
    Found = all digits match in order, for all positions.
    Works for any length, as long as lengths match.
    """
    n = len(secret)
    if n == 0 or len(guess) != n:
        return False
    return all(s == g for s, g in zip(secret, guess))
