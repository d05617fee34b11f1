import json
import logging
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


def build_results(game):
    """
    Final standings record for a finished game.
    Ranked by score, then fewest plumps; identical totals share a rank.
    """
    standings = sorted(
        game.players,
        key=lambda p: (-game.scores.get(p.player_id, 0), game.plump_count.get(p.player_id, 0)),
    )
    results, rank, previous = [], 0, None
    for position, player in enumerate(standings, start=1):
        score = game.scores.get(player.player_id, 0)
        plumps = game.plump_count.get(player.player_id, 0)
        if (score, plumps) != previous:
            rank, previous = position, (score, plumps)
        results.append({
            "player_id": player.player_id,
            "name": player.name,
            "score": score,
            "plump_count": plumps,
            "rank": rank,
        })

    finished_at = None
    if game.finished_at is not None:
        finished_at = datetime.fromtimestamp(game.finished_at, timezone.utc).isoformat()
    return {
        "game_id": game.game_id,
        "created_at": datetime.fromtimestamp(game.created_at, timezone.utc).isoformat(),
        "finished_at": finished_at,
        "rounds_played": len(game.round_history),
        "results": results,
    }


class LoggingResultsSink:
    def __call__(self, record):
        standings = ", ".join(f"{r['rank']}. {r['name']} {r['score']} ({r['plump_count']} plumps)" for r in record["results"])
        logger.info("Final standings for game %s: %s", record["game_id"], standings)


class JsonLinesResultsSink:
    """Appends one JSON document per finished game to a file."""

    def __init__(self, path):
        self.path = Path(path)

    def __call__(self, record):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record) + "\n")

    def __repr__(self):
        return f"JsonLinesResultsSink({str(self.path)!r})"


def build_sinks(config):
    sinks = [LoggingResultsSink()]
    if config.get("RESULTS_FILE"):
        sinks.append(JsonLinesResultsSink(config["RESULTS_FILE"]))
    return sinks


def publish_results(record, sinks):
    """Hands the record to every sink; a failing sink is logged and skipped."""
    delivered = 0
    for sink in sinks:
        try:
            sink(record)
            delivered += 1
        except Exception:
            logger.exception("Results sink %r failed for game %s", sink, record["game_id"])
    return delivered
