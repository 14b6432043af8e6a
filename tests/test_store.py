"""
Testing the store contract (read / subscribe / guarded commit).
Every test runs against both the in-memory store and the DB repository.
"""

import pytest

from digitduel.store import GuessResult, Precondition, TurnState


@pytest.fixture(params=["memory_store", "db_store"])
def store(request):
    return request.getfixturevalue(request.param)


def test_create_and_read_returns_copy(store, make_game):
    store.create(make_game({"A": "1234", "B": "5678"}))

    game = store.read("ROOM")
    assert game.phase == "playing"
    assert [p.secret_code for p in game.players] == [list("1234"), list("5678")]

    game.players[0].name = "changed locally"
    assert store.read("ROOM").players[0].name == "Player A"
    assert store.exists("ROOM")
    assert store.read("NOPE") is None


def test_create_twice_rejected(store, make_game):
    store.create(make_game({"A": "1234", "B": "5678"}))
    with pytest.raises(ValueError):
        store.create(make_game({"A": "1234", "B": "5678"}))


def test_commit_applies_patch_and_bumps_version(store, make_game):
    store.create(make_game({"A": "1234", "B": "5678", "C": "0000"}))
    game = store.read("ROOM")

    players = game.players
    players[1].guess_history.append(
        GuessResult(raw_value=list("5600"), exact_matches=2, misplaced_matches=0,
                    guesser_id="A", guesser_display_name="Player A")
    )
    new_turn = TurnState(turn_order=["A", "B", "C"], current_guesser_id="C",
                         current_target_id="B", turn_number=2)

    ok = store.commit("ROOM", Precondition.for_turn(game), {"players": players, "turn": new_turn})
    assert ok is True

    after = store.read("ROOM")
    assert after.version == game.version + 1
    assert after.turn.current_guesser_id == "C"
    assert after.players[1].guess_history[0].exact_matches == 2


def test_commit_with_stale_guesser_is_rejected(store, make_game):
    store.create(make_game({"A": "1234", "B": "5678", "C": "0000"}))
    snapshot = store.read("ROOM")

    first = TurnState(turn_order=["A", "B", "C"], current_guesser_id="C",
                      current_target_id="B", turn_number=2)
    assert store.commit("ROOM", Precondition.for_turn(snapshot), {"turn": first})

    # A second transition computed from the same snapshot must not land
    second = TurnState(turn_order=["A", "B", "C"], current_guesser_id="B",
                       current_target_id="C", turn_number=2)
    assert store.commit("ROOM", Precondition.for_turn(snapshot), {"turn": second}) is False

    live = store.read("ROOM")
    assert live.turn.current_guesser_id == "C"
    assert live.version == snapshot.version + 1


def test_commit_with_stale_version_is_rejected(store, make_game):
    store.create(make_game({"A": "1234", "B": "5678"}))
    snapshot = store.read("ROOM")

    assert store.commit("ROOM", Precondition.for_edit(snapshot), {"winner_id": None})
    assert store.commit("ROOM", Precondition.for_edit(snapshot), {"phase": "game_over"}) is False
    assert store.read("ROOM").phase == "playing"


def test_commit_unknown_game(store):
    assert store.commit("NOPE", Precondition(), {"phase": "setup"}) is False


def test_unknown_patch_field_raises(store, make_game):
    store.create(make_game({"A": "1234", "B": "5678"}))
    with pytest.raises(ValueError):
        store.commit("ROOM", Precondition(), {"secret_sauce": 1})


def test_subscribers_see_each_commit_until_unsubscribed(store, make_game):
    store.create(make_game({"A": "1234", "B": "5678"}))
    seen = []
    unsubscribe = store.subscribe("ROOM", lambda g: seen.append(g.version))

    game = store.read("ROOM")
    store.commit("ROOM", Precondition.for_edit(game), {"phase": "game_over"})
    unsubscribe()
    store.commit("ROOM", Precondition(), {"winner_id": "A"})

    assert seen == [game.version + 1]


def test_failed_commit_notifies_nobody(store, make_game):
    store.create(make_game({"A": "1234", "B": "5678"}))
    seen = []
    unsubscribe = store.subscribe("ROOM", seen.append)
    store.commit("ROOM", Precondition(guesser_id="B"), {"phase": "game_over"})
    unsubscribe()
    assert seen == []
