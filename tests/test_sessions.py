import copy

import pytest

from plump_backend.game_logic import Phase
from plump_backend.registry import GameRegistry
from plump_backend.sessions import Seat, SessionManager

NAMES = ["Anna", "Bram", "Cor", "Dirk"]


@pytest.fixture
def registry():
    return GameRegistry()


@pytest.fixture
def sessions():
    return SessionManager()


@pytest.fixture
def seated(registry, sessions):
    """A started game with every player bound to sid-<name>."""
    created = registry.create_game(NAMES[0])
    game = created["game"]
    sessions.bind("sid-Anna", game.game_id, created["player"].player_id)
    for name in NAMES[1:]:
        joined = registry.join_game(game.game_id, name)
        sessions.bind(f"sid-{name}", game.game_id, joined["player"].player_id)
    assert game.start_game(game.players[0].player_id)["success"]
    return game


def test_bind_and_resolve(sessions):
    assert sessions.bind("s1", "G1", "p1") is None
    assert sessions.resolve("s1") == Seat("G1", "p1")
    assert sessions.sid_for("p1") == "s1"
    assert sessions.resolve("unknown") is None


def test_rebinding_a_seat_invalidates_the_old_sid(sessions):
    sessions.bind("old", "G1", "p1")
    assert sessions.bind("new", "G1", "p1") == "old"
    assert sessions.resolve("old") is None
    assert sessions.resolve("new") == Seat("G1", "p1")
    assert sessions.sid_for("p1") == "new"
    assert sessions.unbind("old") is None


def test_unbind_keeps_newer_binding(sessions):
    sessions.bind("old", "G1", "p1")
    sessions.bind("new", "G1", "p1")
    sessions.unbind("new")
    assert sessions.sid_for("p1") is None


def test_reconnection_preserves_every_map(registry, sessions, seated):
    game = seated
    bram = game.players[1]
    game.submit_prediction(bram.player_id, 2)
    before = copy.deepcopy((game.hands, game.predictions, game.tricks_won, game.scores, game.plump_count))

    game_after_drop, result = sessions.disconnect("sid-Bram", registry)
    assert game_after_drop is game
    assert not bram.connected
    assert sessions.resolve("sid-Bram") is None

    rejoined = sessions.rejoin("sid-Bram-2", registry, game.game_id.lower(), "Bram")
    assert rejoined["success"]
    assert rejoined["player"] is bram
    assert bram.connected

    after = (game.hands, game.predictions, game.tricks_won, game.scores, game.plump_count)
    assert after == before
    assert game.predictions == {bram.player_id: 2}
    for mapping in (game.hands, game.tricks_won, game.scores, game.plump_count):
        assert sorted(mapping) == sorted(game.player_ids)
    assert sessions.sid_for(bram.player_id) == "sid-Bram-2"
    assert sessions.resolve("sid-Bram-2") == Seat(game.game_id, bram.player_id)


def test_disconnect_of_actor_pauses_and_rejoin_resumes(registry, sessions, seated):
    game = seated
    actor = game.player(game.current_actor)
    _, result = sessions.disconnect(f"sid-{actor.name}", registry)
    assert result["paused"]
    assert game.phase is Phase.PAUSED

    rejoined = sessions.rejoin("fresh", registry, game.game_id, actor.name)
    assert rejoined["resumed"]
    assert game.phase is Phase.BIDDING
    assert game.current_actor == actor.player_id


def test_rejoin_takes_over_a_live_seat(registry, sessions, seated):
    game = seated
    rejoined = sessions.rejoin("sid-Cor-tab2", registry, game.game_id, "Cor")
    assert rejoined["replaced_sid"] == "sid-Cor"
    assert sessions.resolve("sid-Cor") is None

    # the stale socket dropping later must not touch the seat
    assert sessions.disconnect("sid-Cor", registry) is None
    assert game.player_by_name("Cor").connected


def test_rejoin_errors(registry, sessions, seated):
    assert sessions.rejoin("x", registry, "NOPE00", "Bram")["error"] == "game_not_found"
    assert sessions.rejoin("x", registry, seated.game_id, "Zed")["error"] == "player_not_found"
    assert sessions.resolve("x") is None


def test_disconnect_of_unbound_sid(registry, sessions):
    assert sessions.disconnect("ghost", registry) is None


def test_seated_socket_cannot_rejoin_as_another_player(registry, sessions, seated):
    game = seated
    bram, cor, dirk = game.players[1], game.players[2], game.players[3]
    game.submit_prediction(bram.player_id, 2)
    game.submit_prediction(cor.player_id, 0)
    assert game.current_actor == dirk.player_id

    rejected = sessions.rejoin("sid-Dirk", registry, game.game_id, "Bram")
    assert rejected["error"] == "invalid_request"
    assert sessions.resolve("sid-Dirk") == Seat(game.game_id, dirk.player_id)
    assert sessions.sid_for(dirk.player_id) == "sid-Dirk"
    assert sessions.sid_for(bram.player_id) == "sid-Bram"
    assert game.phase is Phase.BIDDING

    # rejoining its own seat is still allowed
    assert sessions.rejoin("sid-Dirk", registry, game.game_id, "Dirk")["replaced_sid"] is None
