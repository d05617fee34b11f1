# plump_backend/app.py
import logging

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_socketio import SocketIO, emit, join_room, leave_room

from plump_backend.config import Config, configure_logging
from plump_backend.game_logic import GAME_NOT_FOUND, INVALID_REQUEST, NOT_IN_GAME, Phase, failure
from plump_backend.registry import GameRegistry
from plump_backend.results import build_results, build_sinks, publish_results
from plump_backend.sessions import SessionManager

logger = logging.getLogger(__name__)

socketio = SocketIO()
bp = Blueprint("plump", __name__)

PROMPTS = {
    Phase.BIDDING: "prompt_prediction",
    Phase.SELECTING_TRUMP: "prompt_trump",
    Phase.PLAYING: "prompt_card_play",
}


def schedule_background(delay, callback, *args):
    """Runs callback(*args) after delay seconds without blocking the caller."""
    def run_later():
        socketio.sleep(delay)
        callback(*args)
    return socketio.start_background_task(run_later)


class Backend:
    """Everything the handlers of one app share: games, seats, result sinks."""

    def __init__(self, config):
        self.registry = GameRegistry(retention_seconds=config["FINISHED_GAME_RETENTION_SECONDS"])
        self.sessions = SessionManager()
        self.results_sinks = build_sinks(config)
        self.reveal_seconds = config["TRICK_REVEAL_SECONDS"]
        self.schedule = schedule_background


def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)
    app.extensions["plump"] = Backend(app.config)
    app.register_blueprint(bp)
    socketio.init_app(
        app,
        cors_allowed_origins=app.config["CORS_ALLOWED_ORIGINS"],
        async_mode=app.config["SOCKETIO_ASYNC_MODE"],
    )
    return app


def backend():
    return current_app.extensions["plump"]


# ── Outbound helpers ───────────────────────────────────────────────────────────
def _error(result, game_id=None):
    logger.debug("Rejected action from %s: %s", request.sid, result["error"])
    emit("action_error", {"reason": result["error"], "msg": result["msg"], "game_id": game_id}, room=request.sid)


def _broadcast_state(be, game, event_type, **extra):
    """Sends every connected seat its own view of the game."""
    for player in game.players:
        sid = be.sessions.sid_for(player.player_id)
        if sid is None:
            continue
        player_game_state = game.get_player_game_state(player.player_id)
        player_game_state["event_type"] = event_type
        player_game_state.update(extra)
        socketio.emit("game_update", player_game_state, room=sid)


def _deliver_hand(be, game, player_id):
    sid = be.sessions.sid_for(player_id)
    if sid is None:
        return
    if game.own_card_hidden():
        socketio.emit("deal_visible_cards", game.visible_cards_for(player_id), room=sid)
    else:
        socketio.emit("deal_cards", game.hand_for(player_id), room=sid)


def _deliver_hands(be, game):
    for player in game.players:
        _deliver_hand(be, game, player.player_id)


def _prompt_actor(be, game):
    event = PROMPTS.get(game.phase)
    sid = be.sessions.sid_for(game.current_actor) if game.current_actor else None
    if event and sid:
        socketio.emit(event, game.get_player_game_state(game.current_actor), room=sid)


def _payload(data):
    return data if isinstance(data, dict) else {}


def _seated(be, data):
    """
    Resolves the acting socket to its seat in the game named by data["game_id"].
    Emits an error and returns (None, None) when it cannot.
    """
    game_id = _payload(data).get("game_id")
    seat = be.sessions.resolve(request.sid)
    if seat is None or not isinstance(game_id, str) or seat.game_id != game_id.strip().upper():
        _error(failure(NOT_IN_GAME, "You are not part of this game."), game_id)
        return None, None
    game = be.registry.get(seat.game_id)
    if game is None:
        _error(failure(GAME_NOT_FOUND, f"Game {game_id} not found."), game_id)
        return None, None
    return game, seat


def _still_seated(be, seat):
    # a rejoin from another socket may have taken the seat while we waited for the lock
    if be.sessions.resolve(request.sid) != seat:
        _error(failure(NOT_IN_GAME, "This connection no longer holds your seat."), seat.game_id)
        return False
    return True


# ── HTTP routes ────────────────────────────────────────────────────────────────
@bp.route("/")
def status():
    return {"status": "Plump backend alive", "games": len(backend().registry)}


@bp.route("/games/<game_id>")
def game_state(game_id):
    game = backend().registry.get(game_id)
    if game is None:
        return jsonify({"error": GAME_NOT_FOUND}), 404
    with game.lock:
        return jsonify(game.get_game_state())


@bp.route("/games/<game_id>/results")
def game_results(game_id):
    game = backend().registry.get(game_id)
    if game is None:
        return jsonify({"error": GAME_NOT_FOUND}), 404
    with game.lock:
        if not game.is_over():
            return jsonify({"error": "game_not_over", "phase": game.phase.value}), 409
        return jsonify(build_results(game))


# ── Socket handlers ────────────────────────────────────────────────────────────
@socketio.on("connect")
def on_connect():
    emit("connected", {"msg": "Connected to the Plump backend. Create or join a game!", "sid": request.sid})


@socketio.on("create_game")
def on_create_game(data=None):
    """
    Host creates a new game.
    data = {"player_name": "Anna"}
    """
    be = backend()
    seat = be.sessions.resolve(request.sid)
    if seat is not None:
        _error(failure(INVALID_REQUEST, f"You are already seated in game {seat.game_id}."), seat.game_id)
        return

    result = be.registry.create_game(_payload(data).get("player_name"))
    if not result["success"]:
        _error(result)
        return

    game, player = result["game"], result["player"]
    be.sessions.bind(request.sid, game.game_id, player.player_id)
    join_room(game.game_id)
    with game.lock:
        emit("game_created", {
            "game_id": game.game_id,
            "your_player_id": player.player_id,
            "game_state": game.get_player_game_state(player.player_id),
        }, room=request.sid)


@socketio.on("join_game")
def on_join_game(data=None):
    """
    Player joins a game that has not started yet.
    data = {"game_id": "A1B2C3", "player_name": "Bram"}
    """
    be = backend()
    data = _payload(data)
    seat = be.sessions.resolve(request.sid)
    if seat is not None:
        _error(failure(INVALID_REQUEST, f"You are already seated in game {seat.game_id}."), seat.game_id)
        return

    result = be.registry.join_game(data.get("game_id"), data.get("player_name"))
    if not result["success"]:
        _error(result, data.get("game_id"))
        return

    game, player = result["game"], result["player"]
    be.sessions.bind(request.sid, game.game_id, player.player_id)
    join_room(game.game_id)
    with game.lock:
        emit("game_joined", {
            "game_id": game.game_id,
            "your_player_id": player.player_id,
            "game_state": game.get_player_game_state(player.player_id),
        }, room=request.sid)
        _broadcast_state(be, game, "player_joined", player_who_joined=player.name)


@socketio.on("start_game")
def on_start_game(data=None):
    """
    Host starts the game once four players are seated.
    data = {"game_id": "A1B2C3"}
    """
    be = backend()
    game, seat = _seated(be, data)
    if game is None:
        return
    with game.lock:
        if not _still_seated(be, seat):
            return
        result = game.start_game(seat.player_id)
        if not result["success"]:
            _error(result, game.game_id)
            return
        _deliver_hands(be, game)
        _broadcast_state(be, game, "game_started")
        _prompt_actor(be, game)


@socketio.on("make_prediction")
def on_make_prediction(data=None):
    """
    Player predicts how many tricks they will win this round.
    data = {"game_id": "A1B2C3", "prediction": 2}
    """
    be = backend()
    game, seat = _seated(be, data)
    if game is None:
        return
    prediction = _payload(data).get("prediction")
    with game.lock:
        if not _still_seated(be, seat):
            return
        result = game.submit_prediction(seat.player_id, prediction)
        if not result["success"]:
            _error(result, game.game_id)
            return
        if result.get("hands_revealed"):
            _deliver_hands(be, game)
        event_type = "all_predictions_completed" if result["all_predictions_done"] else "prediction_made"
        _broadcast_state(
            be, game, event_type,
            player_who_predicted=seat.player_id,
            prediction_value=game.predictions[seat.player_id],
        )
        _prompt_actor(be, game)


@socketio.on("select_trump")
def on_select_trump(data=None):
    """
    Highest bidder chooses trump.
    data = {"game_id": "A1B2C3", "suit": "hearts"}
    """
    be = backend()
    game, seat = _seated(be, data)
    if game is None:
        return
    with game.lock:
        if not _still_seated(be, seat):
            return
        result = game.select_trump(seat.player_id, _payload(data).get("suit"))
        if not result["success"]:
            _error(result, game.game_id)
            return
        _broadcast_state(be, game, "trump_selected")
        _prompt_actor(be, game)


@socketio.on("play_card")
def on_play_card(data=None):
    """
    Player plays a card.
    data = {"game_id": "A1B2C3", "card": {"suit": "spades", "value": "10"}}
    """
    be = backend()
    game, seat = _seated(be, data)
    if game is None:
        return
    with game.lock:
        if not _still_seated(be, seat):
            return
        result = game.submit_card_play(seat.player_id, _payload(data).get("card"))
        if not result["success"]:
            _error(result, game.game_id)
            return
        _broadcast_state(be, game, "card_played", player_who_played=seat.player_id)
        if not result["trick_completed"]:
            _prompt_actor(be, game)
            return
        announcement = dict(game.trick_winner, trick_seq=result["trick_seq"])
        socketio.emit("trick_won", announcement, room=game.game_id)
        be.schedule(be.reveal_seconds, reveal_elapsed, be, game.game_id, result["trick_seq"])


def reveal_elapsed(be, game_id, trick_seq):
    """Continuation fired once a completed trick has been on show long enough."""
    game = be.registry.get(game_id)
    if game is None:
        return
    record = None
    with game.lock:
        result = game.finish_trick(trick_seq)
        if result is None:
            return
        if result["round_over"]:
            for player in game.players:
                sid = be.sessions.sid_for(player.player_id)
                if sid is None:
                    continue
                player_game_state = game.get_player_game_state(player.player_id)
                player_game_state["event_type"] = "round_over"
                player_game_state["round_summary"] = result["round_summary"]
                socketio.emit("round_results", player_game_state, room=sid)
        if result["game_over"]:
            record = build_results(game)
            socketio.emit("game_over", record, room=game_id)
        elif result["round_over"] and result["next_round_started"]:
            _deliver_hands(be, game)
        _broadcast_state(be, game, "game_over" if result["game_over"] else "trick_cleared")
        _prompt_actor(be, game)
    if record is not None:
        publish_results(record, be.results_sinks)


@socketio.on("rejoin_game")
def on_rejoin_game(data=None):
    """
    A player returns to their seat from a new connection.
    data = {"game_id": "A1B2C3", "player_name": "Bram"}
    """
    be = backend()
    data = _payload(data)
    result = be.sessions.rejoin(request.sid, be.registry, data.get("game_id"), data.get("player_name"))
    if not result["success"]:
        _error(result, data.get("game_id"))
        return

    game, player, replaced_sid = result["game"], result["player"], result["replaced_sid"]
    join_room(game.game_id)
    if replaced_sid is not None:
        leave_room(game.game_id, sid=replaced_sid)
        socketio.emit("session_replaced", {"game_id": game.game_id}, room=replaced_sid)
    with game.lock:
        emit("game_rejoined", {
            "game_id": game.game_id,
            "your_player_id": player.player_id,
            "game_state": game.get_player_game_state(player.player_id),
        }, room=request.sid)
        if game.round_number and not game.is_over():
            _deliver_hand(be, game, player.player_id)
        _broadcast_state(be, game, "player_rejoined", player_who_rejoined=player.name)
        _prompt_actor(be, game)


@socketio.on("disconnect")
def on_disconnect(reason=None):
    be = backend()
    outcome = be.sessions.disconnect(request.sid, be.registry)
    if outcome is None:
        return
    game, result = outcome
    with game.lock:
        _broadcast_state(be, game, "player_disconnected", player_who_left=game.name_of(result["player_id"]))


def run():
    configure_logging(Config.LOG_LEVEL)
    app = create_app()
    logger.info("Starting Plump backend on %s:%s", app.config["HOST"], app.config["PORT"])
    socketio.run(app, host=app.config["HOST"], port=app.config["PORT"], use_reloader=False, allow_unsafe_werkzeug=True)


# ── Launch locally ────────────────────────────────────────────────────────
if __name__ == "__main__":
    run()
