"""
Unit tests for domain models parsed from backend payloads.
"""
import pytest
from lounge.models import (
    Participant, TournamentGame, Tournament, Profile, SubmissionProgress,
    TournamentRegistration, canonical_game_id, generate_participant_id
)


class TestCanonicalGameId:
    """A game is known by one id, whatever the backend sent."""

    def test_prefers_game_uuid(self):
        assert canonical_game_id({'id': 1, 'gameId': 'g-1', 'tournamentGameId': 'tg-1'}) == 'g-1'

    def test_falls_back_to_relationship_uuid(self):
        assert canonical_game_id({'id': 1, 'tournamentGameId': 'tg-1'}) == 'tg-1'

    def test_falls_back_to_legacy_numeric_id(self):
        assert canonical_game_id({'id': 7}) == '7'

    def test_blank_uuid_ignored(self):
        assert canonical_game_id({'id': 7, 'gameId': ' '}) == '7'

    def test_missing_identifier(self):
        with pytest.raises(ValueError):
            canonical_game_id({'gameTitle': 'Nameless'})


class TestTournamentGame:
    def test_from_api(self):
        game = TournamentGame.from_api({
            'id': 4,
            'gameId': 'g-fifa',
            'gameTitle': 'FIFA 24',
            'description': '1v1',
            'requirements': ['Own controller'],
            'prize': '5000.00',
            'winnerPrize': 100000,
        })
        assert game.game_id == 'g-fifa'
        assert game.title == 'FIFA 24'
        assert game.fee == 5000.0
        assert game.winner_prize == 100000.0
        assert game.requirements == ['Own controller']


class TestTournament:
    def test_from_api_unwraps_envelope(self):
        tournament = Tournament.from_api({'data': {'id': 12, 'title': 'Cup', 'games': [{'id': 1}]}})
        assert tournament.id == '12'
        assert tournament.title == 'Cup'
        assert [g.game_id for g in tournament.games] == ['1']

    def test_missing_games(self):
        assert Tournament.from_api({'id': 'x'}).games == []


class TestProfile:
    def test_from_api(self):
        profile = Profile.from_api({
            'username': 'ada',
            'phoneNumber': '0803',
            'avatarUrl': 'https://cdn/ada.png',
            'user': {'email': 'ada@lounge.ng', 'fullName': 'Ada Obi'},
        })
        assert profile.email == 'ada@lounge.ng'
        assert profile.full_name == 'Ada Obi'
        assert profile.phone_number == '0803'
        assert profile.avatar_url == 'https://cdn/ada.png'

    def test_cached_user_builds_name_from_parts(self):
        profile = Profile.from_cached_user({'firstName': 'Ada', 'lastName': 'Obi', 'email': 'a@b.co'})
        assert profile.full_name == 'Ada Obi'

    def test_cached_user_prefers_full_name(self):
        profile = Profile.from_cached_user({'fullName': 'Ada N. Obi', 'firstName': 'Ada', 'lastName': 'Obi'})
        assert profile.full_name == 'Ada N. Obi'

    def test_cached_user_first_name_only(self):
        assert Profile.from_cached_user({'firstName': 'Ada'}).full_name == 'Ada'


class TestParticipant:
    def test_ids_are_unique(self):
        assert len({generate_participant_id() for _ in range(50)}) == 50

    def test_payload_trims_fields(self):
        participant = Participant(
            full_name='  Ada Obi ', email=' ada@lounge.ng', phone_number='0803 ',
            selected_games=['g-fifa']
        )
        assert participant.to_payload(42) == {
            'fullName': 'Ada Obi',
            'email': 'ada@lounge.ng',
            'phoneNumber': '0803',
            'tournamentId': '42',
            'selectedGames': ['g-fifa'],
        }


class TestSubmissionProgress:
    def test_percent(self):
        assert SubmissionProgress(current=2, total=4, completed=1).percent == 25

    def test_percent_empty(self):
        assert SubmissionProgress(current=0, total=0).percent == 0


class TestTournamentRegistration:
    def test_from_api(self, sample_registration):
        assert sample_registration.tournament_id == 't-100'
        assert sample_registration.tournament_title == 'Lagos Cup'
        assert sample_registration.games[0]['fee'] == 50000.0
        assert sample_registration.to_dict()['paid_at'] == '2026-10-01T10:00:00Z'

    def test_unpaid_registration(self):
        registration = TournamentRegistration.from_api({'id': 5, 'tournamentId': 't-1', 'paidAt': None})
        assert registration.paid_at is None
        assert registration.tournament_id == 't-1'
