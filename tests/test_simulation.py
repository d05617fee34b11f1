"""Whole games played with random legal moves."""
from collections import Counter

import pytest

from plump_backend.game_logic import Phase
from plump_backend.rounds import cards_for_round
from plump_backend.simulation import print_simulation, simulate_game


@pytest.mark.parametrize("seed", [1, 7])
def test_full_game_follows_schedule(seed):
    game = simulate_game(seed)
    assert game.phase is Phase.GAME_OVER
    assert game.current_actor is None
    assert game.finished_at is not None

    history = game.round_history
    assert [h["round_number"] for h in history] == list(range(1, 29))
    assert [h["cards_per_player"] for h in history] == [cards_for_round(n) for n in range(1, 29)]
    assert all(h["trump_suit"] is None for h in history[12:16])
    assert all(h["trump_suit"] is not None for h in history[:12] + history[16:])

    dealers = Counter(h["dealer_seat"] for h in history)
    assert dealers == {0: 7, 1: 7, 2: 7, 3: 7}


def test_totals_match_round_history():
    game = simulate_game(3)
    for pid in game.player_ids:
        outcomes = [h["players"][pid] for h in game.round_history]
        assert game.scores[pid] == sum(o["points"] for o in outcomes)
        assert game.plump_count[pid] == sum(o["plump"] for o in outcomes)
    for h in game.round_history:
        assert sum(o["tricks_won"] for o in h["players"].values()) == h["cards_per_player"]
        assert sum(o["prediction"] for o in h["players"].values()) != h["cards_per_player"]


def test_finished_game_is_read_only():
    game = simulate_game(5)
    pid = game.player_ids[0]
    assert game.submit_prediction(pid, 0)["error"] == "wrong_phase"
    assert game.add_player("Eva")["error"] == "game_already_started"
    assert game.finish_trick(game.trick_seq) is None


def test_print_simulation(capsys):
    print_simulation(2)
    out = capsys.readouterr().out
    assert "Round 28" in out
    assert "Final standings" in out
