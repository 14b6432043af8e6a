"""
Testing pure scoring logic.
"""

import random

import pytest

from digitduel.engine import score_guess, is_found


def code(text):
    return list(text)


def test_score_guess_no_matches():
    assert score_guess(code("0123"), code("4567")) == (0, 0)


def test_score_guess_swapped_pair():
    # 1 and 2 in place, 3 and 4 swapped
    assert score_guess(code("1234"), code("1243")) == (2, 2)


def test_score_guess_all_misplaced_with_duplicates():
    assert score_guess(code("1122"), code("2211")) == (0, 4)


def test_score_guess_secret_digit_not_reused():
    # only two 1's in the secret and no 2's: the 2's match nothing
    assert score_guess(code("1111"), code("1122")) == (2, 0)


def test_score_guess_exact_not_counted_again_as_misplaced():
    # the first 5 is exact; the second guess-5 has no 5 left to pair with
    assert score_guess(code("5123"), code("5504")) == (1, 0)


def test_score_guess_first_secret_position_wins():
    # guess 7 at index 0 pairs with the first unconsumed 7 in the secret
    assert score_guess(code("0770"), code("7007")) == (0, 4)


def test_score_guess_length_mismatch_is_programming_error():
    with pytest.raises(ValueError):
        score_guess(code("123"), code("1234"))
    with pytest.raises(ValueError):
        score_guess([], [])


def test_score_bounds_and_found_property():
    rng = random.Random(7)
    for _ in range(300):
        n = rng.randint(1, 6)
        secret = [rng.choice("0123456789") for _ in range(n)]
        guess = [rng.choice("0123") for _ in range(n)]
        exact, misplaced = score_guess(secret, guess)
        assert exact + misplaced <= n
        assert (exact == n) == (secret == guess)


def test_is_found_true_and_false():
    assert is_found(code("1234"), code("1234")) is True
    assert is_found(code("1234"), code("1235")) is False
    assert is_found(code("1234"), code("123")) is False
