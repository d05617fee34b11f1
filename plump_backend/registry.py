import logging
import threading
import time
import uuid

from plump_backend.game_logic import GAME_NOT_FOUND, PlumpGame, failure

logger = logging.getLogger(__name__)


def generate_game_id():
    """Generates a short game code players can share."""
    return uuid.uuid4().hex[:6].upper()


class GameRegistry:
    """Owns every live game, keyed by game id."""

    def __init__(self, retention_seconds=3600, id_factory=generate_game_id, rng_factory=None):
        self.retention_seconds = retention_seconds
        self._id_factory = id_factory
        self._rng_factory = rng_factory
        self._games = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._games)

    def get(self, game_id):
        if not isinstance(game_id, str):
            return None
        return self._games.get(game_id.strip().upper())

    def create_game(self, host_name):
        self.purge_finished()
        with self._lock:
            game_id = self._id_factory()
            while game_id in self._games:
                game_id = self._id_factory()
            rng = self._rng_factory() if self._rng_factory else None
            game = PlumpGame(game_id, rng=rng)
            result = game.add_player(host_name, is_host=True)
            if not result["success"]:
                return result
            self._games[game_id] = game
        logger.info("Game %s created by %s. Live games: %d", game_id, host_name, len(self._games))
        result["game"] = game
        return result

    def join_game(self, game_id, player_name):
        game = self.get(game_id)
        if game is None:
            return failure(GAME_NOT_FOUND, f"Game {game_id} not found.")
        with game.lock:
            result = game.add_player(player_name)
        if result["success"]:
            result["game"] = game
        return result

    def remove(self, game_id):
        with self._lock:
            game = self._games.pop(game_id, None)
        if game is not None:
            logger.info("Game %s removed", game_id)
        return game

    def purge_finished(self, now=None):
        """Drops finished games older than the retention period; returns their ids."""
        now = time.time() if now is None else now
        with self._lock:
            expired = [
                game_id for game_id, game in self._games.items()
                if game.finished_at is not None and now - game.finished_at >= self.retention_seconds
            ]
            for game_id in expired:
                del self._games[game_id]
        if expired:
            logger.info("Purged finished games: %s", expired)
        return expired
