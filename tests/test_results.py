import json
import logging

from conftest import new_game
from plump_backend.results import (
    JsonLinesResultsSink,
    LoggingResultsSink,
    build_results,
    build_sinks,
    publish_results,
)


def finished_game():
    game = new_game()
    ids = game.player_ids
    game.scores = {ids[0]: 120, ids[1]: 200, ids[2]: 120, ids[3]: 120}
    game.plump_count = {ids[0]: 4, ids[1]: 1, ids[2]: 4, ids[3]: 2}
    game.created_at = 0.0
    game.finished_at = 3600.0
    return game


def test_standings_rank_by_score_then_plumps():
    record = build_results(finished_game())
    assert record["game_id"] == "TEST01"
    assert record["created_at"].startswith("1970-01-01T00:00:00")
    assert record["finished_at"].startswith("1970-01-01T01:00:00")
    rows = [(r["name"], r["score"], r["plump_count"], r["rank"]) for r in record["results"]]
    assert rows == [
        ("Bram", 200, 1, 1),
        ("Dirk", 120, 2, 2),
        ("Anna", 120, 4, 3),
        ("Cor", 120, 4, 3),
    ]


def test_json_lines_sink_appends(tmp_path):
    path = tmp_path / "out" / "results.jsonl"
    sink = JsonLinesResultsSink(path)
    record = build_results(finished_game())
    sink(record)
    sink(record)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0]) == record


def test_failing_sink_is_logged_and_skipped(caplog):
    received = []

    def broken(record):
        raise ConnectionError("database down")

    with caplog.at_level(logging.INFO):
        delivered = publish_results(build_results(finished_game()), [broken, received.append, LoggingResultsSink()])
    assert delivered == 2
    assert len(received) == 1
    assert "failed for game TEST01" in caplog.text
    assert "1. Bram 200" in caplog.text


def test_build_sinks_from_config(tmp_path):
    assert len(build_sinks({})) == 1
    sinks = build_sinks({"RESULTS_FILE": str(tmp_path / "r.jsonl")})
    assert isinstance(sinks[-1], JsonLinesResultsSink)
