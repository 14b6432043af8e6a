"""
End-of-game titles.

The winner gets one title picked at random from WINNING_TITLES. Losers draw
from a shuffled copy of LOSING_TITLES without replacement; once that pool
runs dry everyone left gets FALLBACK_TITLE.
"""

import random
from dataclasses import replace
from typing import List, Optional, Sequence

from .store import Player
from .types import PlayerId

WINNING_TITLES = (
    "Grand Codebreaker",
    "Keeper of the Last Secret",
    "Unbreakable Vault",
    "Master of Digits",
    "The Sphinx",
)

LOSING_TITLES = (
    "Open Book",
    "Cracked Safe",
    "Loose Lips",
    "Lucky Guess Victim",
    "Digit Donor",
    "Well-Meaning Amateur",
)

FALLBACK_TITLE = "Fellow Sufferer"


def assign_outcomes(
    players: Sequence[Player],
    winner_id: Optional[PlayerId],
    rng: random.Random,
) -> List[Player]:
    """
    Returns new Player objects with outcome_title set; the input is untouched.
    With winner_id=None every player is treated as a loser.
    """
    losing_pool = list(LOSING_TITLES)
    rng.shuffle(losing_pool)

    titled: List[Player] = []
    for player in players:
        if winner_id is not None and player.id == winner_id:
            title = rng.choice(WINNING_TITLES)
        elif losing_pool:
            title = losing_pool.pop()
        else:
            title = FALLBACK_TITLE
        titled.append(replace(player, outcome_title=title))
    return titled
