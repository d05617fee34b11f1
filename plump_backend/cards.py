import random
from dataclasses import dataclass

SUITS = ['hearts', 'diamonds', 'clubs', 'spades']
RANKS = list(range(2, 15))
RANK_LABELS = {11: 'J', 12: 'Q', 13: 'K', 14: 'A'}
LABEL_RANKS = {label: rank for rank, label in RANK_LABELS.items()}
SUIT_SYMBOLS = {'hearts': '♥', 'diamonds': '♦', 'clubs': '♣', 'spades': '♠'}


@dataclass(frozen=True)
class Card:
    suit: str
    rank: int

    def __post_init__(self):
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")

    @property
    def label(self):
        return RANK_LABELS.get(self.rank, str(self.rank))

    def __str__(self):
        return f'{self.label}{SUIT_SYMBOLS[self.suit]}'

    def to_dict(self):
        return {"suit": self.suit, "value": self.label}

    @classmethod
    def from_dict(cls, data):
        """
        Builds a card from its wire form.
        data = {"suit": "hearts", "value": "K"}   ("value" may also be the rank, 13)
        """
        if not isinstance(data, dict):
            raise ValueError("Card must be an object with suit and value.")
        value = data.get("value", data.get("rank"))
        if isinstance(value, str):
            value = LABEL_RANKS.get(value.upper()) or (int(value) if value.isdigit() else None)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Invalid card value: {data.get('value')!r}")
        return cls(data.get("suit"), value)


def create_deck():
    return [Card(suit, rank) for suit in SUITS for rank in RANKS]


def shuffle_deck(deck, rng=None):
    """Shuffles a copy of the deck; random.shuffle is an in-place Fisher-Yates."""
    shuffled = list(deck)
    (rng or random).shuffle(shuffled)
    return shuffled


def deal_cards(deck, num_players, cards_per_player):
    """Round-robin deal: card i of the deck goes to hand i % num_players."""
    total = cards_per_player * num_players
    if total > len(deck):
        raise ValueError(
            f"Cannot deal {cards_per_player} cards to {num_players} players from {len(deck)} cards."
        )
    hands = [[] for _ in range(num_players)]
    for i in range(total):
        hands[i % num_players].append(deck[i])
    return hands
