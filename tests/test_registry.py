import pytest

from plump_backend.game_logic import Phase
from plump_backend.registry import GameRegistry, generate_game_id


def test_game_ids_are_short_codes():
    game_id = generate_game_id()
    assert len(game_id) == 6
    assert game_id == game_id.upper()


def test_create_game_seats_the_host():
    registry = GameRegistry()
    result = registry.create_game("Anna")
    game = result["game"]
    assert game.phase is Phase.WAITING_FOR_PLAYERS
    assert [p.name for p in game.players] == ["Anna"]
    assert game.host is result["player"]
    assert registry.get(game.game_id) is game
    assert registry.get(game.game_id.lower()) is game


def test_create_game_needs_a_name():
    registry = GameRegistry()
    assert registry.create_game("  ")["error"] == "invalid_request"
    assert len(registry) == 0


def test_colliding_ids_are_regenerated():
    ids = iter(["AAAAAA", "AAAAAA", "BBBBBB"])
    registry = GameRegistry(id_factory=lambda: next(ids))
    first = registry.create_game("Anna")["game"]
    second = registry.create_game("Bram")["game"]
    assert (first.game_id, second.game_id) == ("AAAAAA", "BBBBBB")
    assert first is not second
    assert first.scores is not second.scores


def test_join_rules():
    registry = GameRegistry()
    game = registry.create_game("Anna")["game"]
    assert registry.join_game("NOPE00", "Bram")["error"] == "game_not_found"
    assert registry.join_game(game.game_id, "Anna")["error"] == "duplicate_name"
    for name in ("Bram", "Cor", "Dirk"):
        assert registry.join_game(game.game_id, name)["success"]
    assert registry.join_game(game.game_id, "Eva")["error"] == "game_full"


def test_join_after_start_rejected():
    registry = GameRegistry()
    game = registry.create_game("Anna")["game"]
    for name in ("Bram", "Cor", "Dirk"):
        registry.join_game(game.game_id, name)
    game.start_game(game.players[0].player_id)
    assert registry.join_game(game.game_id, "Eva")["error"] == "game_already_started"


@pytest.mark.parametrize("age,purged", [(10, False), (60, True)])
def test_finished_games_are_purged_after_retention(age, purged):
    registry = GameRegistry(retention_seconds=60)
    game = registry.create_game("Anna")["game"]
    running = registry.create_game("Bram")["game"]
    game.finished_at = 1000.0
    removed = registry.purge_finished(now=1000.0 + age)
    assert (game.game_id in removed) is purged
    assert (registry.get(game.game_id) is None) is purged
    assert registry.get(running.game_id) is running


def test_remove():
    registry = GameRegistry()
    game = registry.create_game("Anna")["game"]
    assert registry.remove(game.game_id) is game
    assert registry.get(game.game_id) is None
    assert registry.remove(game.game_id) is None
