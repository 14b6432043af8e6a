import random

from digitduel.store import Player
from digitduel.titles import FALLBACK_TITLE, LOSING_TITLES, WINNING_TITLES, assign_outcomes


def roster(n):
    return [Player(id=f"p{i}", name=f"P{i}") for i in range(n)]


def test_winner_and_distinct_losers():
    players = roster(4)
    titled = assign_outcomes(players, "p2", random.Random(3))

    by_id = {p.id: p.outcome_title for p in titled}
    assert by_id["p2"] in WINNING_TITLES
    losers = [by_id[pid] for pid in ("p0", "p1", "p3")]
    assert all(t in LOSING_TITLES for t in losers)
    assert len(set(losers)) == 3


def test_fallback_when_losing_pool_runs_out():
    players = roster(len(LOSING_TITLES) + 3)
    titled = assign_outcomes(players, "p0", random.Random(3))

    losers = [p.outcome_title for p in titled if p.id != "p0"]
    assert sorted(t for t in losers if t != FALLBACK_TITLE) == sorted(LOSING_TITLES)
    assert losers.count(FALLBACK_TITLE) == 2


def test_same_seed_same_titles():
    first = assign_outcomes(roster(5), "p1", random.Random(99))
    second = assign_outcomes(roster(5), "p1", random.Random(99))
    assert [p.outcome_title for p in first] == [p.outcome_title for p in second]


def test_no_winner_means_everyone_loses():
    titled = assign_outcomes(roster(3), None, random.Random(1))
    assert all(p.outcome_title in LOSING_TITLES for p in titled)


def test_input_players_untouched():
    players = roster(2)
    assign_outcomes(players, "p0", random.Random(1))
    assert all(p.outcome_title is None for p in players)
