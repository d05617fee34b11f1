"""
Smoke-test client for a running Plump backend.

    plump-client Anna                      create a game and print its id
    plump-client Bram A1B2C3               join game A1B2C3
    plump-client Anna A1B2C3 --rejoin      take a seat back after a reconnect

With --autoplay the client answers every prompt with the first legal move,
which is enough to push four terminals through a whole game.
"""
import argparse

import socketio

sio = socketio.Client()
options = argparse.Namespace(name=None, game_id=None, rejoin=False, autoplay=False)
state = {"game_id": None, "attempt": 0}


def choose_prediction(game_state, attempt=0):
    """The attempt-th prediction in 0..cards, wrapping around."""
    cards = game_state["cards_per_player"]
    return attempt % (cards + 1)


def choose_card(game_state):
    """First card of the player's hand that follows the lead suit, if any does."""
    hand = [c for c in game_state["hands"].get(game_state["your_player_id"], []) if c != "HIDDEN"]
    lead = game_state.get("lead_suit")
    following = [c for c in hand if c["suit"] == lead]
    return (following or hand or [None])[0]


@sio.event
def connect():
    print(f"[{options.name}] Connected")
    if options.rejoin:
        sio.emit("rejoin_game", {"game_id": options.game_id, "player_name": options.name})
    elif options.game_id:
        sio.emit("join_game", {"game_id": options.game_id, "player_name": options.name})
    else:
        sio.emit("create_game", {"player_name": options.name})


@sio.on("game_created")
def on_created(data):
    state["game_id"] = data["game_id"]
    print(f"[{options.name}] Created game {data['game_id']}. Press enter once four players are seated.")


@sio.on("game_joined")
@sio.on("game_rejoined")
def on_joined(data):
    state["game_id"] = data["game_id"]
    print(f"[{options.name}] Seated in game {data['game_id']}")


@sio.on("game_update")
def on_update(game_state):
    print(f"[{options.name}] {game_state['event_type']}: phase={game_state['phase']} "
          f"round={game_state['round_number']} actor={game_state['current_actor_name']}")


@sio.on("deal_cards")
def on_deal(cards):
    print(f"[{options.name}] Hand ->", ", ".join(f"{c['value']} {c['suit']}" for c in cards))


@sio.on("deal_visible_cards")
def on_visible(cards):
    print(f"[{options.name}] Opponents ->", ", ".join(f"{c['player_name']}: {c['card']['value']} {c['card']['suit']}" for c in cards))


@sio.on("trick_won")
def on_trick(data):
    print(f"[{options.name}] Trick won by {data['player_name']}")


@sio.on("action_error")
def on_error(data):
    print(f"[{options.name}] ERROR {data['reason']}: {data['msg']}")
    if options.autoplay and data["reason"] == "forbidden_total":
        state["attempt"] += 1
        sio.emit("make_prediction", {"game_id": state["game_id"], "prediction": state["attempt"]})


@sio.on("prompt_prediction")
def on_prompt_prediction(game_state):
    if options.autoplay:
        state["attempt"] = 0
        sio.emit("make_prediction", {"game_id": state["game_id"], "prediction": choose_prediction(game_state)})


@sio.on("prompt_trump")
def on_prompt_trump(game_state):
    if options.autoplay:
        sio.emit("select_trump", {"game_id": state["game_id"], "suit": "hearts"})


@sio.on("prompt_card_play")
def on_prompt_card(game_state):
    if options.autoplay:
        sio.emit("play_card", {"game_id": state["game_id"], "card": choose_card(game_state)})


@sio.on("game_over")
def on_gameover(record):
    print(f"[{options.name}] GAME OVER ->", record["results"])
    sio.disconnect()


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("name")
    parser.add_argument("game_id", nargs="?")
    parser.add_argument("--rejoin", action="store_true")
    parser.add_argument("--autoplay", action="store_true")
    parser.add_argument("--url", default="http://localhost:5050")
    args = parser.parse_args(argv)
    options.name, options.game_id = args.name, args.game_id
    options.rejoin, options.autoplay = args.rejoin, args.autoplay

    sio.connect(args.url)
    if not args.game_id:
        # only the host drives the start
        input()
        sio.emit("start_game", {"game_id": state["game_id"]})
    sio.wait()


if __name__ == "__main__":
    main()
