"""
Maps volatile socket ids to stable seats.

Game state is keyed by player_id, which never changes for a seat, so a
reconnection only has to move the seat onto its new socket id. The old
socket id stops resolving the moment the new one is bound.
"""
import logging
import threading
from dataclasses import dataclass

from plump_backend.game_logic import GAME_NOT_FOUND, INVALID_REQUEST, PLAYER_NOT_FOUND, failure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Seat:
    game_id: str
    player_id: str


class SessionManager:
    def __init__(self):
        self._seat_by_sid = {}
        self._sid_by_player = {}
        self._lock = threading.Lock()

    def bind(self, sid, game_id, player_id):
        """Binds sid to a seat; returns the sid it replaced for that seat, if any."""
        with self._lock:
            previous = self._seat_by_sid.get(sid)
            if previous is not None and previous.player_id != player_id:
                self._sid_by_player.pop(previous.player_id, None)
            old_sid = self._sid_by_player.get(player_id)
            if old_sid is not None and old_sid != sid:
                del self._seat_by_sid[old_sid]
            else:
                old_sid = None
            self._seat_by_sid[sid] = Seat(game_id, player_id)
            self._sid_by_player[player_id] = sid
        return old_sid

    def unbind(self, sid):
        with self._lock:
            seat = self._seat_by_sid.pop(sid, None)
            if seat is not None and self._sid_by_player.get(seat.player_id) == sid:
                del self._sid_by_player[seat.player_id]
        return seat

    def resolve(self, sid):
        return self._seat_by_sid.get(sid)

    def sid_for(self, player_id):
        return self._sid_by_player.get(player_id)

    def disconnect(self, sid, registry):
        """
        Handles a dropped socket. Returns (game, result) for the game the
        socket was seated in, or None if it was not bound to any seat
        (never joined, or already replaced by a rejoin).
        """
        seat = self.unbind(sid)
        if seat is None:
            return None
        game = registry.get(seat.game_id)
        if game is None:
            return None
        with game.lock:
            result = game.mark_disconnected(seat.player_id)
        result["player_id"] = seat.player_id
        logger.info(
            "Player %s of game %s disconnected (sid %s), paused=%s",
            game.name_of(seat.player_id), game.game_id, sid, result.get("paused"),
        )
        return game, result

    def rejoin(self, sid, registry, game_id, player_name):
        """
        Reattaches player_name in game_id to the socket sid.
        data flow: old sid unbound -> new sid bound -> player marked connected
        """
        game = registry.get(game_id)
        if game is None:
            return failure(GAME_NOT_FOUND, f"Game {game_id} not found.")
        with game.lock:
            player = game.player_by_name(player_name)
            if player is None:
                return failure(PLAYER_NOT_FOUND, f"No player named {player_name} in game {game.game_id}.")
            current = self.resolve(sid)
            if current is not None and current != Seat(game.game_id, player.player_id):
                return failure(INVALID_REQUEST, "This connection already holds another seat.")
            replaced_sid = self.bind(sid, game.game_id, player.player_id)
            result = game.mark_reconnected(player.player_id)
        if replaced_sid is not None:
            logger.info("Player %s took over game %s from stale sid %s", player.name, game.game_id, replaced_sid)
        logger.info("Player %s rejoined game %s (sid %s), resumed=%s", player.name, game.game_id, sid, result["resumed"])
        result.update(game=game, player=player, replaced_sid=replaced_sid)
        return result
