"""
- HTTP call with clear fallback
Randomness for the game goes through RandomSource so tests can seed it.

fetch_code() asks random.org for secret digits (0..9). If anything goes wrong
(no internet, timeout, bad response) we fall back to the local generator so
the game still works.
"""

import logging
import random
import string
from typing import List, Optional, Sequence, TypeVar

import requests

from . import config
from .types import Code, DIGITS

logger = logging.getLogger(__name__)

RANDOM_URL = "https://www.random.org/integers/"

T = TypeVar("T")


class RandomSource:
    """Every random decision the game makes, behind one injectable generator."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng if rng is not None else random.Random()

    def code(self, length: int) -> Code:
        return [self.rng.choice(DIGITS) for _ in range(length)]

    def think_delay(self) -> float:
        return self.rng.uniform(config.BOT_THINK_MIN_SEC, config.BOT_THINK_MAX_SEC)

    def shuffled(self, items: Sequence[T]) -> List[T]:
        result = list(items)
        self.rng.shuffle(result)
        return result

    def room_code(self, length: int = 4) -> str:
        alphabet = string.ascii_uppercase + string.digits
        return "".join(self.rng.choice(alphabet) for _ in range(length))


def fetch_code(length: int, fallback: RandomSource) -> Code:
    # Parameters to send to random.org
    params = {
        "num": length,     # how many numbers we want
        "min": 0,          # smallest allowed number
        "max": 9,          # largest allowed number
        "col": 1,          # one number per line
        "base": 10,        # normal decimal numbers
        "format": "plain", # plain text response
        "rnd": "new",      # always generate new numbers
    }

    try:
        response = requests.get(RANDOM_URL, params=params, timeout=config.RANDOM_ORG_TIMEOUT_SEC)
        response.raise_for_status()

        # The body looks like:
        #   0\n3\n1\n9\n
        digits = [line.strip() for line in response.text.splitlines() if line.strip()]

        if len(digits) != length:
            raise ValueError(f"random.org returned {len(digits)} values, expected {length}.")
        if any(len(d) != 1 or d not in DIGITS for d in digits):
            raise ValueError("random.org number out of range 0..9.")

        return digits

    except (requests.RequestException, ValueError) as exc:
        logger.warning(f"[random-org-fallback] reason={exc}")
        return fallback.code(length)


def secret_code(length: int, source: RandomSource) -> Code:
    """Secret for a bot: random.org when enabled, else the local generator."""
    if config.USE_RANDOM_ORG:
        return fetch_code(length, fallback=source)
    return source.code(length)
