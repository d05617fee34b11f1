"""Plays a whole game locally with random legal moves, for checking the engine end to end."""
import random

from plump_backend.cards import SUITS
from plump_backend.game_logic import Phase, PlumpGame
from plump_backend.results import build_results

DEFAULT_NAMES = ("Anna", "Bram", "Cor", "Dirk")


def legal_predictions(game):
    cards = game.cards_per_player
    options = list(range(cards + 1))
    if len(game.predictions) == len(game.players) - 1:
        total = sum(game.predictions.values())
        options = [p for p in options if total + p != cards]
    return options


def legal_cards(game, player_id):
    hand = game.hands[player_id]
    if game.current_trick:
        following = [c for c in hand if c.suit == game.lead_suit]
        if following:
            return following
    return list(hand)


def simulate_game(seed=None, names=DEFAULT_NAMES):
    rng = random.Random(seed)
    game = PlumpGame("SIM001", rng=random.Random(rng.random()))
    for index, name in enumerate(names):
        game.add_player(name, is_host=index == 0)
    result = game.start_game(game.players[0].player_id)

    while result["success"] and not game.is_over():
        actor = game.current_actor
        if game.phase is Phase.BIDDING:
            result = game.submit_prediction(actor, rng.choice(legal_predictions(game)))
        elif game.phase is Phase.SELECTING_TRUMP:
            result = game.select_trump(actor, rng.choice(SUITS))
        elif game.phase is Phase.PLAYING:
            result = game.submit_card_play(actor, rng.choice(legal_cards(game, actor)))
            if result["success"] and result["trick_completed"]:
                result = game.finish_trick(result["trick_seq"])
        else:
            raise RuntimeError(f"Simulation stuck in phase {game.phase.value}")

    if not result["success"]:
        raise RuntimeError(f"Simulation rejected a move: {result['msg']}")
    return game


def print_simulation(seed=None):
    game = simulate_game(seed)
    for entry in game.round_history:
        plumps = [game.name_of(pid) for pid, outcome in entry["players"].items() if outcome["plump"]]
        print(f"🎲 Round {entry['round_number']:2d} ({entry['cards_per_player']:2d} cards, trump {entry['trump_suit'] or '-'}): "
              f"plumps {', '.join(plumps) or 'none'}")
    print("\n📊 Final standings:")
    for row in build_results(game)["results"]:
        print(f"{row['rank']}. {row['name']}: {row['score']} points, {row['plump_count']} plumps")
    return game
