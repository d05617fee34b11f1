import logging
import threading
import time
import uuid
from dataclasses import dataclass
from enum import Enum

from plump_backend.cards import SUITS, Card, create_deck, deal_cards, shuffle_deck
from plump_backend.rounds import TOTAL_ROUNDS, cards_for_round, is_single_card_round, next_seat, seats_from

logger = logging.getLogger(__name__)

MAX_PLAYERS = 4
HIDDEN = "HIDDEN"

# Reasons carried by rejected actions, sent to the acting client only
NOT_YOUR_TURN = "not_your_turn"
CARD_NOT_IN_HAND = "card_not_in_hand"
MUST_FOLLOW_SUIT = "must_follow_suit"
GAME_FULL = "game_full"
GAME_NOT_FOUND = "game_not_found"
ALREADY_PLAYED = "already_played_this_trick"
TRICK_LOCKED = "trick_locked"
DUPLICATE_NAME = "duplicate_name"
GAME_ALREADY_STARTED = "game_already_started"
GAME_PAUSED = "game_paused"
WRONG_PHASE = "wrong_phase"
INVALID_PREDICTION = "invalid_prediction"
FORBIDDEN_TOTAL = "forbidden_total"
INVALID_SUIT = "invalid_suit"
INVALID_CARD = "invalid_card"
NOT_HOST = "not_host"
NEED_FOUR_PLAYERS = "need_four_players"
PLAYER_NOT_FOUND = "player_not_found"
NOT_IN_GAME = "not_in_game"
INVALID_REQUEST = "invalid_request"
DEAL_FAILED = "deal_failed"


class Phase(str, Enum):
    WAITING_FOR_PLAYERS = "WAITING_FOR_PLAYERS"
    DEALING = "DEALING"
    BIDDING = "BIDDING"
    SELECTING_TRUMP = "SELECTING_TRUMP"
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"
    GAME_OVER = "GAME_OVER"


class PlayerStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DISCONNECTED = "DISCONNECTED"


class DealError(RuntimeError):
    """Raised when dealing keeps producing hands of the wrong size."""


@dataclass
class Player:
    player_id: str
    name: str
    is_host: bool = False
    status: PlayerStatus = PlayerStatus.ACTIVE

    @property
    def connected(self):
        return self.status is PlayerStatus.ACTIVE

    def to_dict(self):
        return {"id": self.player_id, "name": self.name, "is_host": self.is_host, "connected": self.connected}


def new_player_id():
    return uuid.uuid4().hex


def failure(reason, msg):
    return {"success": False, "error": reason, "msg": msg}


def validate_play(hand, card, trick, lead_suit):
    """Returns a failure result if card may not be played from hand, else None."""
    if card not in hand:
        return failure(CARD_NOT_IN_HAND, f"{card} is not in your hand.")
    if trick and card.suit != lead_suit and any(c.suit == lead_suit for c in hand):
        return failure(MUST_FOLLOW_SUIT, f"You must follow {lead_suit}.")
    return None


def evaluate_trick(trick, trump_suit, lead_suit):
    """
    Picks the winning (player_id, card) of a complete trick.

    Trumps beat everything else and a higher trump beats a lower one. Without
    a trump on the table the highest card of the lead suit wins; cards of any
    other suit never win. Plays are compared in the order they were made, so an
    earlier play keeps the trick against an equal later one.
    """
    winner = trick[0]
    for play in trick[1:]:
        best, card = winner[1], play[1]
        if card.suit == trump_suit:
            if best.suit != trump_suit or card.rank > best.rank:
                winner = play
        elif card.suit == lead_suit and best.suit != trump_suit:
            if best.suit != lead_suit or card.rank > best.rank:
                winner = play
    return winner


def round_points(prediction, tricks):
    """Points for a round, or None when the player plumped."""
    if prediction != tricks:
        return None
    if prediction >= 10:
        return prediction * 10
    return prediction + 10


def pick_highest_bidder(predictions, order):
    """Strictly greatest prediction; ties go to whoever comes first in order."""
    best_id, best = None, -1
    for player_id in order:
        if player_id in predictions and predictions[player_id] > best:
            best_id, best = player_id, predictions[player_id]
    return best_id


class PlumpGame:
    def __init__(self, game_id, rng=None):
        self.game_id = game_id
        self.rng = rng
        self.lock = threading.RLock()
        self.created_at = time.time()
        self.finished_at = None

        self.phase = Phase.WAITING_FOR_PLAYERS
        self.paused_phase = None
        self.players = []
        self.dealer_seat = None
        self.round_number = 0

        # --- Round state, keyed by player_id ---
        self.hands = {}
        self.predictions = {}
        self.tricks_won = {}
        self.trump_suit = None
        self.lead_suit = None
        self.current_trick = []  # (player_id, Card) in play order
        self.current_actor = None
        self.highest_bidder = None
        self.tricks_played = 0
        self.last_trick_winner = None

        # --- Reveal window ---
        self.trick_lock = False
        self.trick_seq = 0
        self.trick_winner = None

        # --- Whole game ---
        self.scores = {}
        self.plump_count = {}
        self.last_scored_round = 0
        self.round_history = []

    # ── Lookups ────────────────────────────────────────────────────────────
    @property
    def cards_per_player(self):
        return cards_for_round(self.round_number) if self.round_number else 0

    @property
    def single_card_round(self):
        return bool(self.round_number) and is_single_card_round(self.round_number)

    @property
    def player_ids(self):
        return [p.player_id for p in self.players]

    @property
    def host(self):
        return next((p for p in self.players if p.is_host), None)

    def player(self, player_id):
        return next((p for p in self.players if p.player_id == player_id), None)

    def player_by_name(self, name):
        return next((p for p in self.players if p.name == name), None)

    def seat_of(self, player_id):
        return self.player_ids.index(player_id)

    def name_of(self, player_id):
        player = self.player(player_id)
        return player.name if player else None

    def disconnected_players(self):
        return [p for p in self.players if not p.connected]

    def effective_phase(self):
        """The phase play will continue in, looking through a pause."""
        return self.paused_phase if self.phase is Phase.PAUSED else self.phase

    def is_over(self):
        return self.phase is Phase.GAME_OVER

    # ── Lobby ──────────────────────────────────────────────────────────────
    def add_player(self, name, is_host=False, player_id=None):
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            return failure(INVALID_REQUEST, "Player name is required.")
        if self.phase is not Phase.WAITING_FOR_PLAYERS:
            return failure(GAME_ALREADY_STARTED, f"Game {self.game_id} has already started.")
        if len(self.players) >= MAX_PLAYERS:
            return failure(GAME_FULL, f"Game {self.game_id} is full.")
        if self.player_by_name(name):
            return failure(DUPLICATE_NAME, f"The name {name} is already taken in this game.")

        player = Player(player_id or new_player_id(), name, is_host=is_host)
        self.players.append(player)
        self.scores[player.player_id] = 0
        self.plump_count[player.player_id] = 0
        logger.info("Player %s joined game %s (%d/%d)", name, self.game_id, len(self.players), MAX_PLAYERS)
        return {"success": True, "player": player}

    def start_game(self, player_id):
        player = self.player(player_id)
        if player is None:
            return failure(NOT_IN_GAME, "You are not part of this game.")
        if player is not self.host:
            return failure(NOT_HOST, "Only the host can start the game.")
        if self.phase is Phase.DEALING:
            # the last deal failed and the round never started; the host may retry
            return self._start_round()
        if self.phase is not Phase.WAITING_FOR_PLAYERS:
            return failure(GAME_ALREADY_STARTED, "Game already running.")
        if len(self.players) != MAX_PLAYERS:
            return failure(NEED_FOUR_PLAYERS, f"Need exactly {MAX_PLAYERS} players to start.")

        self.phase = Phase.DEALING
        # round 1 is dealt by seat 0 after the first rotation
        self.dealer_seat = len(self.players) - 1
        logger.info("Game %s started with players %s", self.game_id, [p.name for p in self.players])
        return self._start_round()

    # ── Round scheduling ───────────────────────────────────────────────────
    def _deal(self, cards_per_player):
        for attempt in (1, 2):
            deck = shuffle_deck(create_deck(), self.rng)
            try:
                hands = deal_cards(deck, len(self.players), cards_per_player)
            except ValueError:
                logger.exception("Deal of %d cards failed in game %s", cards_per_player, self.game_id)
                continue
            dealt = [card for hand in hands for card in hand]
            if (len(hands) == len(self.players)
                    and all(len(hand) == cards_per_player for hand in hands)
                    and len(set(dealt)) == cards_per_player * len(self.players)):
                return hands
            logger.error(
                "Uneven deal in game %s (attempt %d): expected %d cards each, got %s",
                self.game_id, attempt, cards_per_player, [len(hand) for hand in hands],
            )
        raise DealError(f"Could not deal {cards_per_player} cards per player in game {self.game_id}")

    def _start_round(self):
        round_number = self.round_number + 1
        cards = cards_for_round(round_number)
        try:
            dealt = self._deal(cards)
        except DealError:
            logger.critical("Round %d of game %s not started: deal failed twice", round_number, self.game_id)
            self.phase = Phase.DEALING
            self.paused_phase = None
            self.current_actor = None
            return failure(DEAL_FAILED, "The cards could not be dealt. Please try again.")

        self.round_number = round_number
        self.dealer_seat = next_seat(self.dealer_seat, len(self.players))
        self.hands = {p.player_id: hand for p, hand in zip(self.players, dealt)}
        self.predictions = {}
        self.tricks_won = {p.player_id: 0 for p in self.players}
        self.trump_suit = None
        self.lead_suit = None
        self.current_trick = []
        self.highest_bidder = None
        self.tricks_played = 0
        self.last_trick_winner = None
        self.trick_winner = None

        first_bidder = self._bidding_order()[0]
        self._hand_over(first_bidder, Phase.BIDDING)
        logger.info(
            "Round %d of game %s: %d card(s) each, dealer %s, first bidder %s",
            self.round_number, self.game_id, cards,
            self.players[self.dealer_seat].name, self.name_of(first_bidder),
        )
        return {"success": True, "round_number": self.round_number}

    def _bidding_order(self):
        first = next_seat(self.dealer_seat, len(self.players))
        return [self.players[seat].player_id for seat in seats_from(first, len(self.players))]

    def _next_player_after(self, player_id):
        return self.players[next_seat(self.seat_of(player_id), len(self.players))].player_id

    def _hand_over(self, actor_id, phase):
        """Makes actor_id the one to move in phase, pausing if they are away."""
        self.current_actor = actor_id
        actor = self.player(actor_id)
        was_paused = self.phase is Phase.PAUSED
        if (actor is not None and not actor.connected) or (was_paused and self.disconnected_players()):
            self.phase = Phase.PAUSED
            self.paused_phase = phase
            logger.info("Game %s paused in %s waiting for %s", self.game_id, phase.value, self.name_of(actor_id))
        else:
            self.phase = phase
            self.paused_phase = None

    def _check_phase(self, expected):
        if self.phase is Phase.PAUSED:
            return failure(GAME_PAUSED, "Game is paused until everyone reconnects.")
        if self.phase is not expected:
            return failure(WRONG_PHASE, f"Not in {expected.value} phase.")
        return None

    # ── Bidding ────────────────────────────────────────────────────────────
    def submit_prediction(self, player_id, prediction):
        error = self._check_phase(Phase.BIDDING)
        if error:
            return error
        if player_id != self.current_actor:
            return failure(NOT_YOUR_TURN, "Not your turn to make a prediction.")

        if isinstance(prediction, str):
            try:
                prediction = int(prediction.strip())
            except ValueError:
                return failure(INVALID_PREDICTION, "Prediction must be a whole number.")
        if isinstance(prediction, bool) or not isinstance(prediction, int):
            return failure(INVALID_PREDICTION, "Prediction must be a whole number.")
        cards = self.cards_per_player
        if not 0 <= prediction <= cards:
            return failure(INVALID_PREDICTION, f"Prediction must be between 0 and {cards}.")

        is_last = len(self.predictions) == len(self.players) - 1
        if is_last and sum(self.predictions.values()) + prediction == cards:
            return failure(FORBIDDEN_TOTAL, f"Your prediction cannot make the total equal {cards}.")

        self.predictions[player_id] = prediction
        logger.info("Game %s round %d: %s predicts %d", self.game_id, self.round_number, self.name_of(player_id), prediction)

        if not is_last:
            next_bidder = self._next_player_after(player_id)
            self._hand_over(next_bidder, Phase.BIDDING)
            return {"success": True, "all_predictions_done": False, "next_actor": next_bidder}

        self.highest_bidder = pick_highest_bidder(self.predictions, self._bidding_order())
        next_phase = Phase.PLAYING if self.single_card_round else Phase.SELECTING_TRUMP
        self._hand_over(self.highest_bidder, next_phase)
        logger.info(
            "Bidding closed in game %s round %d: highest bidder %s",
            self.game_id, self.round_number, self.name_of(self.highest_bidder),
        )
        return {
            "success": True,
            "all_predictions_done": True,
            "highest_bidder": self.highest_bidder,
            "hands_revealed": self.single_card_round,
        }

    # ── Trump selection ────────────────────────────────────────────────────
    def select_trump(self, player_id, suit):
        error = self._check_phase(Phase.SELECTING_TRUMP)
        if error:
            return error
        if player_id != self.highest_bidder:
            return failure(NOT_YOUR_TURN, "Only the highest bidder selects trump.")
        suit = suit.lower() if isinstance(suit, str) else suit
        if suit not in SUITS:
            return failure(INVALID_SUIT, f"Trump must be one of {', '.join(SUITS)}.")

        self.trump_suit = suit
        self._hand_over(self.highest_bidder, Phase.PLAYING)
        logger.info("Game %s round %d: trump is %s", self.game_id, self.round_number, suit)
        return {"success": True, "trump_suit": suit}

    # ── Tricks ─────────────────────────────────────────────────────────────
    def submit_card_play(self, player_id, card_data):
        if any(pid == player_id for pid, _ in self.current_trick):
            return failure(ALREADY_PLAYED, "You already played a card in this trick.")
        error = self._check_phase(Phase.PLAYING)
        if error:
            return error
        if self.trick_lock:
            return failure(TRICK_LOCKED, "Please wait for the current trick to complete.")
        if player_id != self.current_actor:
            return failure(NOT_YOUR_TURN, "Not your turn to play a card.")
        try:
            card = card_data if isinstance(card_data, Card) else Card.from_dict(card_data)
        except (TypeError, ValueError) as exc:
            return failure(INVALID_CARD, str(exc))

        hand = self.hands.get(player_id, [])
        error = validate_play(hand, card, self.current_trick, self.lead_suit)
        if error:
            return error

        hand.remove(card)
        self.current_trick.append((player_id, card))
        if len(self.current_trick) == 1:
            self.lead_suit = card.suit
        logger.debug("Game %s: %s played %s", self.game_id, self.name_of(player_id), card)

        if len(self.current_trick) < len(self.players):
            next_player = self._next_player_after(player_id)
            self._hand_over(next_player, Phase.PLAYING)
            return {"success": True, "trick_completed": False, "next_actor": next_player}

        winner_id, winning_card = evaluate_trick(self.current_trick, self.trump_suit, self.lead_suit)
        self.trick_lock = True
        self.trick_seq += 1
        self.current_actor = None
        self.tricks_won[winner_id] += 1
        self.tricks_played += 1
        self.last_trick_winner = winner_id
        self.trick_winner = {
            "player_id": winner_id,
            "player_name": self.name_of(winner_id),
            "card": winning_card.to_dict(),
        }
        logger.info(
            "Game %s round %d trick %d won by %s with %s",
            self.game_id, self.round_number, self.tricks_played, self.name_of(winner_id), winning_card,
        )
        return {"success": True, "trick_completed": True, "trick_winner": winner_id, "trick_seq": self.trick_seq}

    def finish_trick(self, trick_seq):
        """
        Ends the reveal window of trick number trick_seq.
        Returns None when that trick is no longer pending, so a stale or
        repeated continuation changes nothing.
        """
        if not self.trick_lock or trick_seq != self.trick_seq:
            logger.debug("Ignoring stale trick continuation %s in game %s", trick_seq, self.game_id)
            return None

        self.current_trick = []
        self.lead_suit = None
        self.trick_winner = None
        self.trick_lock = False
        winner = self.last_trick_winner

        if self.tricks_played < self.cards_per_player:
            self._hand_over(winner, Phase.PLAYING)
            return {"success": True, "round_over": False, "game_over": False, "next_actor": winner}

        summary = self.score_round()
        if self.round_number >= TOTAL_ROUNDS:
            self._finish_game()
            return {"success": True, "round_over": True, "game_over": True, "round_summary": summary}

        started = self._start_round()
        return {
            "success": True,
            "round_over": True,
            "game_over": False,
            "round_summary": summary,
            "next_round_started": started["success"],
        }

    # ── Scoring ────────────────────────────────────────────────────────────
    def score_round(self):
        if self.last_scored_round == self.round_number:
            logger.debug("Round %d of game %s already scored", self.round_number, self.game_id)
            return None

        summary = {}
        for player in self.players:
            pid = player.player_id
            prediction = self.predictions.get(pid)
            tricks = self.tricks_won.get(pid, 0)
            points = round_points(prediction, tricks) if prediction is not None else None
            if points is None:
                self.plump_count[pid] = self.plump_count.get(pid, 0) + 1
                logger.info("Plump for %s: predicted %s, won %d", player.name, prediction, tricks)
            else:
                self.scores[pid] = self.scores.get(pid, 0) + points
            summary[pid] = {
                "prediction": prediction,
                "tricks_won": tricks,
                "points": points or 0,
                "plump": points is None,
            }

        self.last_scored_round = self.round_number
        self.round_history.append({
            "round_number": self.round_number,
            "cards_per_player": self.cards_per_player,
            "dealer_seat": self.dealer_seat,
            "trump_suit": self.trump_suit,
            "players": summary,
        })
        return summary

    def _finish_game(self):
        self.phase = Phase.GAME_OVER
        self.paused_phase = None
        self.current_actor = None
        self.finished_at = time.time()
        logger.info("Game %s over. Scores: %s", self.game_id, {p.name: self.scores[p.player_id] for p in self.players})

    # ── Connection status ──────────────────────────────────────────────────
    def mark_disconnected(self, player_id):
        player = self.player(player_id)
        if player is None:
            return failure(PLAYER_NOT_FOUND, "No such player in this game.")
        player.status = PlayerStatus.DISCONNECTED
        in_play = self.phase in (Phase.BIDDING, Phase.SELECTING_TRUMP, Phase.PLAYING)
        if player_id == self.current_actor and in_play:
            self.paused_phase = self.phase
            self.phase = Phase.PAUSED
            logger.info("Game %s paused: %s disconnected on their turn", self.game_id, player.name)
        return {"success": True, "paused": self.phase is Phase.PAUSED}

    def mark_reconnected(self, player_id):
        player = self.player(player_id)
        if player is None:
            return failure(PLAYER_NOT_FOUND, "No such player in this game.")
        player.status = PlayerStatus.ACTIVE
        self.repair_references()
        resumed = False
        if self.phase is Phase.PAUSED and not self.disconnected_players():
            self.phase, self.paused_phase = self.paused_phase, None
            resumed = True
            logger.info("Game %s resumed in %s", self.game_id, self.phase.value)
        return {"success": True, "resumed": resumed}

    def repair_references(self):
        """Re-derives highest_bidder and current_actor if they point at no seated player."""
        ids = set(self.player_ids)
        if self.highest_bidder is not None and self.highest_bidder not in ids:
            logger.warning("Game %s: highest bidder %s is not seated, recomputing", self.game_id, self.highest_bidder)
            complete = len(self.predictions) == len(self.players)
            self.highest_bidder = pick_highest_bidder(self.predictions, self._bidding_order()) if complete else None

        phase = self.effective_phase()
        needs_actor = phase in (Phase.BIDDING, Phase.SELECTING_TRUMP, Phase.PLAYING) and not self.trick_lock
        if needs_actor and self.current_actor not in ids:
            expected = self._expected_actor(phase)
            logger.warning(
                "Game %s: current actor %s is not seated, recomputed as %s",
                self.game_id, self.current_actor, self.name_of(expected),
            )
            self.current_actor = expected

    def _expected_actor(self, phase):
        if phase is Phase.BIDDING:
            return next((pid for pid in self._bidding_order() if pid not in self.predictions), None)
        if phase is Phase.SELECTING_TRUMP:
            return self.highest_bidder
        if self.current_trick:
            return self._next_player_after(self.current_trick[-1][0])
        if self.tricks_played == 0:
            return self.highest_bidder
        return self.last_trick_winner

    # ── Views ──────────────────────────────────────────────────────────────
    def own_card_hidden(self):
        return self.single_card_round and self.effective_phase() is Phase.BIDDING

    def hand_for(self, player_id):
        if self.own_card_hidden():
            return []
        return [c.to_dict() for c in self.hands.get(player_id, [])]

    def visible_cards_for(self, player_id):
        """Opponents' cards a player may see: only in single-card rounds."""
        if not self.single_card_round:
            return []
        return [
            {"player_id": pid, "player_name": self.name_of(pid), "card": hand[0].to_dict()}
            for pid, hand in self.hands.items()
            if pid != player_id and hand
        ]

    def get_game_state(self):
        dealer = self.players[self.dealer_seat] if self.dealer_seat is not None else None
        return {
            "game_id": self.game_id,
            "phase": self.phase.value,
            "paused_phase": self.paused_phase.value if self.paused_phase else None,
            "players": [p.to_dict() for p in self.players],
            "round_number": self.round_number,
            "total_rounds": TOTAL_ROUNDS,
            "cards_per_player": self.cards_per_player,
            "is_single_card_round": self.single_card_round,
            "dealer": dealer.player_id if dealer else None,
            "dealer_name": dealer.name if dealer else None,
            "current_actor": self.current_actor,
            "current_actor_name": self.name_of(self.current_actor),
            "highest_bidder": self.highest_bidder,
            "predictions": dict(self.predictions),
            "tricks_won": dict(self.tricks_won),
            "scores": dict(self.scores),
            "plump_count": dict(self.plump_count),
            "trump_suit": self.trump_suit,
            "lead_suit": self.lead_suit,
            "current_trick": [{"player_id": pid, "card": card.to_dict()} for pid, card in self.current_trick],
            "trick_winner": self.trick_winner,
            "trick_lock": self.trick_lock,
            "hand_sizes": {pid: len(hand) for pid, hand in self.hands.items()},
        }

    def get_player_game_state(self, player_id):
        """
        Game state filtered to what one player may see:
        - single-card rounds while bidding: every card but their own
        - single-card rounds after bidding: every card
        - other rounds: only their own hand
        """
        game_state = self.get_game_state()
        hidden_own = self.own_card_hidden()
        hands = {}
        for pid, hand in self.hands.items():
            if pid == player_id:
                hands[pid] = [HIDDEN] * len(hand) if hidden_own else [c.to_dict() for c in hand]
            elif self.single_card_round:
                hands[pid] = [c.to_dict() for c in hand]
            else:
                hands[pid] = [HIDDEN] * len(hand)
        game_state["hands"] = hands
        game_state["your_player_id"] = player_id
        game_state["can_see_own_cards"] = not hidden_own
        game_state["can_see_others_cards"] = self.single_card_round
        return game_state
