from typing import Iterable, Dict

from .models import Participant, TournamentGame, normalize_amount

# Paystack charges in kobo
KOBO_PER_NAIRA = 100


def fee_index(games: Iterable[TournamentGame]) -> Dict[str, float]:
    return {game.game_id: normalize_amount(game.fee) for game in games}


def compute_total(participants: Iterable[Participant], games: Iterable[TournamentGame]) -> int:
    """
    Total payable for a roster, in kobo.

    Every (participant, selected game) pair is charged that game's fee, so two
    participants picking the same game pay for it twice. Selections that do
    not match a known game contribute nothing.
    """
    fees = fee_index(games)
    total = 0.0
    for participant in participants:
        for game_id in participant.selected_games:
            total += fees.get(str(game_id), 0.0)
    return int(round(total * KOBO_PER_NAIRA))


def format_naira(amount_kobo: int) -> str:
    return f"₦{amount_kobo / KOBO_PER_NAIRA:,.2f}"
