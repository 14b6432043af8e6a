"""
Testing turn rotation (pure functions).
"""

from digitduel.rotation import NextTurn, active_players, first_turn, guessers_for, next_turn

SEATS = ["A", "B", "C", "D"]


def pair(turn):
    return (turn.guesser_id, turn.target_id)


def test_round_continues_with_next_seat():
    turn = next_turn(SEATS, set(), "A", "B", False)
    assert pair(turn) == ("C", "B")


def test_last_guesser_in_cycle_rotates_target():
    # cycle for target B is [A, C, D]
    assert pair(next_turn(SEATS, set(), "C", "B", False)) == ("D", "B")

    turn = next_turn(SEATS, set(), "D", "B", False)
    assert pair(turn) == ("A", "C")
    assert guessers_for(SEATS, set(), "C") == ["A", "B", "D"]


def test_elimination_ends_round_immediately():
    # A finds B on the first guess of the round
    turn = next_turn(SEATS, {"B"}, "A", "B", True)
    assert pair(turn) == ("A", "C")


def test_target_wraps_around_seating():
    # cycle for target D is [A, B, C]; C closes it
    assert pair(next_turn(SEATS, set(), "C", "D", False)) == ("B", "A")


def test_eliminated_players_are_skipped():
    eliminated = {"C"}
    assert pair(next_turn(SEATS, eliminated, "A", "B", False)) == ("D", "B")
    # D closes the round for B, next active seat after B is D (C is out)
    assert pair(next_turn(SEATS, eliminated, "D", "B", False)) == ("A", "D")


def test_two_players_alternate():
    assert pair(next_turn(["A", "B"], set(), "A", "B", False)) == ("B", "A")
    assert pair(next_turn(["A", "B"], set(), "B", "A", False)) == ("A", "B")


def test_game_over_when_one_player_left():
    assert next_turn(SEATS, {"B", "C", "D"}, "A", "D", True) is None
    assert next_turn(["A", "B"], {"B"}, "A", "B", True) is None


def test_degenerate_seating_is_game_over():
    assert next_turn([], set(), "A", "B", False) is None
    assert next_turn(["A"], set(), "A", "A", False) is None


def test_same_inputs_same_answer():
    args = (SEATS, frozenset({"C"}), "D", "B", False)
    results = {next_turn(*args) for _ in range(5)}
    assert results == {NextTurn(guesser_id="A", target_id="D")}


def test_active_players_keep_seating_order():
    assert active_players(["D", "A", "C", "B"], {"A"}) == ["D", "C", "B"]


def test_first_turn():
    assert pair(first_turn(SEATS)) == ("A", "B")
    assert first_turn(["A"]) is None


def test_elimination_mid_cycle_ends_round():
    # C sits in the middle of B's cycle [A, C, D]; D never gets its guess
    assert pair(next_turn(SEATS, {"B"}, "C", "B", True)) == ("A", "C")
