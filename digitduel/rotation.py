"""
Turn rotation (no HTTP, no storage).

Seating is fixed once at round start (``turn_order``). For the current
target, every active player except the target guesses once, in seating
order. The target rotates when that cycle completes or when the target is
found, whichever happens first. Eliminated players simply disappear from
every computation.

Everything here is a pure function of its arguments.
"""

from dataclasses import dataclass
from typing import Collection, List, Optional, Sequence

from .types import PlayerId


@dataclass(frozen=True)
class NextTurn:
    guesser_id: PlayerId
    target_id: PlayerId


def active_players(turn_order: Sequence[PlayerId], eliminated: Collection[PlayerId]) -> List[PlayerId]:
    return [pid for pid in turn_order if pid not in eliminated]


def guessers_for(
    turn_order: Sequence[PlayerId],
    eliminated: Collection[PlayerId],
    target_id: PlayerId,
) -> List[PlayerId]:
    """The guessing cycle for ``target_id``: active players in seating order, minus the target."""
    return [pid for pid in active_players(turn_order, eliminated) if pid != target_id]


def _next_target(
    turn_order: Sequence[PlayerId],
    eliminated: Collection[PlayerId],
    last_target_id: PlayerId,
) -> Optional[PlayerId]:
    n = len(turn_order)
    if n <= 1:
        return None
    try:
        start = turn_order.index(last_target_id)
    except ValueError:
        start = -1

    # At most n - 1 steps so the scan never comes back to the old target
    for step in range(1, n):
        candidate = turn_order[(start + step) % n]
        if candidate != last_target_id and candidate not in eliminated:
            return candidate
    return None


def first_turn(turn_order: Sequence[PlayerId]) -> Optional[NextTurn]:
    """
    Opening pair once seating is fixed: the second seat is the first
    target and the first seat guesses against it.
    """
    if len(turn_order) < 2:
        return None
    return NextTurn(guesser_id=turn_order[0], target_id=turn_order[1])


def next_turn(
    turn_order: Sequence[PlayerId],
    eliminated: Collection[PlayerId],
    last_guesser_id: PlayerId,
    last_target_id: PlayerId,
    target_was_just_eliminated: bool,
) -> Optional[NextTurn]:
    """
    Returns the next (guesser, target) pair, or None when the game is over.

    Example, seats [A, B, C, D], nobody eliminated:
      target=B, guesser=A -> guesser=C, target=B   (cycle [A, C, D] continues)
      target=B, guesser=D -> guesser=A, target=C   (cycle done, new cycle [A, B, D])
    """
    active = active_players(turn_order, eliminated)
    if len(active) <= 1:
        return None

    cycle = [pid for pid in active if pid != last_target_id]
    try:
        last_index = cycle.index(last_guesser_id)
    except ValueError:
        # Guesser no longer in the cycle; treat the round as finished
        last_index = len(cycle) - 1

    round_over = target_was_just_eliminated or last_index >= len(cycle) - 1
    if not round_over:
        return NextTurn(guesser_id=cycle[last_index + 1], target_id=last_target_id)

    target_id = _next_target(turn_order, eliminated, last_target_id)
    if target_id is None:
        return None

    new_cycle = [pid for pid in active if pid != target_id]
    if not new_cycle:
        return None
    return NextTurn(guesser_id=new_cycle[0], target_id=target_id)
