from typing import List, Any

from .api_client import ApiClient
from .models import Profile, Tournament, TournamentRegistration, Participant


def _unwrap_list(result: Any) -> list:
    """Accept either a bare list or a {data: [...]} envelope."""
    if isinstance(result, list):
        return result
    if isinstance(result, dict) and isinstance(result.get('data'), list):
        return result['data']
    return []


class LoungeBackend:
    """Typed wrappers around the lounge REST endpoints used by registration."""

    def __init__(self, api: ApiClient):
        self.api = api

    def get_user_profile(self) -> Profile:
        return Profile.from_api(self.api.get('/profile/user/me') or {})

    def get_tournaments(self) -> List[Tournament]:
        return [Tournament.from_api(t) for t in _unwrap_list(self.api.get('/tournaments'))]

    def get_tournament(self, tournament_id: str) -> Tournament:
        return Tournament.from_api(self.api.get(f'/tournaments/{tournament_id}') or {})

    def enroll_tournament(self, participant: Participant, tournament_id: str) -> dict:
        return self.api.post(
            '/tournament-registrations/enroll',
            participant.to_payload(tournament_id)
        )

    def enroll_event(self, event_id: str, full_name: str, email: str, phone_number: str) -> dict:
        return self.api.post('/event-registrations/enroll', {
            'fullName': full_name,
            'email': email,
            'phoneNumber': phone_number,
            'eventId': str(event_id),
        })

    def get_tournament_registrations(self, tournament_id: str) -> List[TournamentRegistration]:
        result = self.api.get(f'/tournament-registrations/tournament/{tournament_id}')
        return [TournamentRegistration.from_api(r) for r in _unwrap_list(result)]
