"""
Unit tests for the registration price calculator.
"""
import pytest
from lounge.models import Participant, TournamentGame, normalize_amount
from lounge.pricing import compute_total, format_naira, KOBO_PER_NAIRA


@pytest.fixture
def games():
    return [
        TournamentGame.from_api({'gameId': 'g-fifa', 'gameTitle': 'FIFA 24', 'prize': '50000.00'}),
        TournamentGame.from_api({'tournamentGameId': 'tg-mk', 'gameTitle': 'MK1', 'prize': 2500}),
        TournamentGame.from_api({'id': 3, 'gameTitle': 'Tekken 8', 'prize': '1500.50'}),
    ]


class TestComputeTotal:
    """Tests for compute_total."""

    def test_same_game_charged_per_participant(self, games):
        """Two participants on a 50,000 game pay 10,000,000 kobo."""
        roster = [
            Participant(selected_games=['g-fifa']),
            Participant(selected_games=['g-fifa']),
        ]
        assert compute_total(roster, games) == 50000 * 2 * 100

    def test_mixed_string_and_number_fees(self, games):
        roster = [
            Participant(selected_games=['g-fifa', 'tg-mk']),
            Participant(selected_games=['3']),
        ]
        assert compute_total(roster, games) == (50000 + 2500 + 1500.50) * KOBO_PER_NAIRA

    def test_decimal_fee_rounds_to_kobo(self, games):
        roster = [Participant(selected_games=['3'])]
        assert compute_total(roster, games) == 150050

    def test_unknown_game_contributes_nothing(self, games):
        roster = [Participant(selected_games=['g-fifa', 'no-such-game'])]
        assert compute_total(roster, games) == 5000000

    def test_empty_roster(self, games):
        assert compute_total([], games) == 0

    def test_no_games_selected(self, games):
        assert compute_total([Participant(), Participant()], games) == 0

    def test_no_games_offered(self):
        assert compute_total([Participant(selected_games=['g-fifa'])], []) == 0

    def test_returns_int(self, games):
        assert isinstance(compute_total([Participant(selected_games=['3'])], games), int)


class TestNormalizeAmount:
    """Tests for normalize_amount."""

    @pytest.mark.parametrize("raw,expected", [
        ("5000.00", 5000.0),
        (5000, 5000.0),
        (2500.5, 2500.5),
        ("1,500.25", 1500.25),
        ("", 0.0),
        (None, 0.0),
        ("free", 0.0),
    ])
    def test_normalizes(self, raw, expected):
        assert normalize_amount(raw) == expected

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            normalize_amount("-10")


class TestFormatNaira:
    def test_format(self):
        assert format_naira(10000000) == "₦100,000.00"

    def test_format_zero(self):
        assert format_naira(0) == "₦0.00"
