NUM_PLAYERS = 4
TOTAL_ROUNDS = 28
SINGLE_CARD_ROUNDS = range(13, 17)


def cards_for_round(round_number):
    """
    Cards dealt to each player in a given round:
    13 down to 1 over rounds 1-13, single cards through round 16,
    then 2 back up to 13 over rounds 17-28.
    """
    if not 1 <= round_number <= TOTAL_ROUNDS:
        raise ValueError(f"Round must be between 1 and {TOTAL_ROUNDS}, got {round_number}")
    if round_number <= 13:
        return 14 - round_number
    if round_number <= 16:
        return 1
    return round_number - 15


def is_single_card_round(round_number):
    return round_number in SINGLE_CARD_ROUNDS


def next_seat(seat, num_players=NUM_PLAYERS):
    return (seat + 1) % num_players


def seats_from(start, num_players=NUM_PLAYERS):
    """Seat indexes in turn order, beginning at start."""
    return [(start + offset) % num_players for offset in range(num_players)]
