import random

import pytest

from plump_backend.cards import Card
from plump_backend.game_logic import Phase, PlumpGame
from plump_backend.simulation import legal_cards, legal_predictions

NAMES = ["Anna", "Bram", "Cor", "Dirk"]


def C(suit, rank):
    return Card(suit, rank)


def new_game(seed=1, names=NAMES):
    game = PlumpGame("TEST01", rng=random.Random(seed))
    for index, name in enumerate(names):
        game.add_player(name, is_host=index == 0)
    return game


def step(game, rng):
    """Makes one legal move for whoever is to act; completed tricks are finished at once."""
    actor = game.current_actor
    if game.phase is Phase.BIDDING:
        return game.submit_prediction(actor, rng.choice(legal_predictions(game)))
    if game.phase is Phase.SELECTING_TRUMP:
        return game.select_trump(actor, rng.choice(["hearts", "diamonds", "clubs", "spades"]))
    if game.phase is Phase.PLAYING:
        result = game.submit_card_play(actor, rng.choice(legal_cards(game, actor)))
        if result["success"] and result["trick_completed"]:
            return game.finish_trick(result["trick_seq"])
        return result
    raise AssertionError(f"No move possible in phase {game.phase}")


def advance(game, until, seed=0):
    rng = random.Random(seed)
    while not until(game):
        result = step(game, rng)
        assert result["success"], result
    return game


@pytest.fixture
def game():
    """A started game in round 1, waiting for the first bid."""
    g = new_game()
    assert g.start_game(g.players[0].player_id)["success"]
    return g


@pytest.fixture
def ids(game):
    return game.player_ids
