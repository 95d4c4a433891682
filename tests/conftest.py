"""
Pytest configuration and fixtures for registration service tests.
"""
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'

from lounge.api_client import ApiError
from lounge.app import create_app
from lounge.models import Profile, Tournament, TournamentRegistration
from lounge.payment import PaymentGate, PaystackInline
from lounge.session_store import MemorySessionStore
from lounge.submitter import RegistrationSubmitter
from lounge.workflow import RegistrationWorkflow, ManualRegistrationWorkflow


TOURNAMENT_PAYLOAD = {
    'id': 't-100',
    'title': 'Lagos Cup',
    'description': 'Weekend showdown at the lounge',
    'games': [
        {'id': 1, 'gameId': 'g-fifa', 'gameTitle': 'FIFA 24', 'prize': '50000.00', 'winnerPrize': '100000.00'},
        {'id': 2, 'tournamentGameId': 'tg-mk', 'gameTitle': 'Mortal Kombat 1', 'prize': 2500, 'winnerPrize': 50000},
        {'id': 3, 'gameTitle': 'Tekken 8', 'prize': '1500.50', 'winnerPrize': '20000'},
    ],
}

OTHER_TOURNAMENT_PAYLOAD = {
    'id': 't-200',
    'title': 'Friday Night Fights',
    'games': [
        {'id': 9, 'gameId': 'g-sf6', 'gameTitle': 'Street Fighter 6', 'prize': '3000'},
    ],
}


class FakeBackend:
    """In-memory stand-in for LoungeBackend."""

    def __init__(self):
        self.profile = Profile(email='ada@lounge.ng', full_name='Ada Obi', phone_number='08030000000')
        self.profile_error = None
        self.tournaments = {
            't-100': Tournament.from_api(TOURNAMENT_PAYLOAD),
            't-200': Tournament.from_api(OTHER_TOURNAMENT_PAYLOAD),
        }
        self.tournament_error = None
        # email -> failures left before success (-1 fails forever)
        self.failures = {}
        self.failure_message = 'Registration closed for this game'
        self.enroll_calls = []
        self.enroll_payloads = []
        self.event_calls = []
        self.registrations = []
        self.registration_fetches = 0
        # session stores handed to the backend factory, in order
        self.stores = []

    def get_user_profile(self):
        if self.profile_error:
            raise self.profile_error
        return self.profile

    def get_tournaments(self):
        return list(self.tournaments.values())

    def get_tournament(self, tournament_id):
        if self.tournament_error:
            raise self.tournament_error
        if tournament_id not in self.tournaments:
            raise ApiError("The requested resource was not found.", status=404)
        return self.tournaments[tournament_id]

    def enroll_tournament(self, participant, tournament_id):
        self.enroll_calls.append(participant.email)
        self.enroll_payloads.append(participant.to_payload(tournament_id))
        remaining = self.failures.get(participant.email, 0)
        if remaining:
            if remaining > 0:
                self.failures[participant.email] = remaining - 1
            raise ApiError(self.failure_message, status=400)
        return {'message': 'Enrolled', 'data': {'id': f'reg-{len(self.enroll_calls)}'}}

    def enroll_event(self, event_id, full_name, email, phone_number):
        self.event_calls.append((event_id, full_name, email, phone_number))
        return {'id': 'er-1', 'eventId': event_id, 'email': email}

    def get_tournament_registrations(self, tournament_id):
        self.registration_fetches += 1
        return list(self.registrations)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def sleeps():
    """Delays requested by the submitter, recorded instead of slept."""
    return []


@pytest.fixture
def provider():
    return PaystackInline()


@pytest.fixture
def gate(provider):
    return PaymentGate('pk_test_lounge', lambda: provider)


@pytest.fixture
def make_workflow(fake_backend, gate, sleeps):
    """Build and prefetch a workflow wired to the fakes."""
    def _make(manual=False, tournament_id='t-100', cached_user=None, **kwargs):
        store = MemorySessionStore(token='token-abc', user=cached_user)
        submitter = RegistrationSubmitter(fake_backend, max_attempts=3, retry_delay=1.0, sleep=sleeps.append)
        workflow_cls = ManualRegistrationWorkflow if manual else RegistrationWorkflow
        workflow = workflow_cls(
            backend=fake_backend,
            submitter=submitter,
            session_store=store,
            tournament_id=tournament_id,
            event_title='Lagos Cup',
            gate=None if manual else gate,
            **kwargs
        )
        workflow.prefetch()
        return workflow
    return _make


@pytest.fixture
def fill_roster():
    """Give the seeded participant games and append ``count - 1`` more."""
    def _fill(workflow, count, games=('g-fifa',)):
        first = workflow.roster.first
        workflow.update_participant(first.id, selected_games=list(games))
        for i in range(2, count + 1):
            workflow.add_participant(
                full_name=f'Player {i}',
                email=f'p{i}@lounge.ng',
                phone_number=f'0803000000{i}',
                selected_games=list(games)
            )
        return workflow.participants
    return _fill


@pytest.fixture
def app(fake_backend, provider, sleeps):
    """Create application for testing."""
    def backend_factory(store):
        fake_backend.stores.append(store)
        return fake_backend

    app = create_app(
        'testing',
        backend_factory=backend_factory,
        payment_loader=lambda: provider,
        sleep=sleeps.append
    )
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def sample_registration():
    return TournamentRegistration.from_api({
        'id': 'reg-1',
        'tournament': {'id': 't-100', 'title': 'Lagos Cup'},
        'fullName': 'Ada Obi',
        'email': 'ada@lounge.ng',
        'phoneNumber': '08030000000',
        'paidAt': '2026-10-01T10:00:00Z',
        'createdAt': '2026-10-01T09:59:00Z',
        'games': [{'tournamentGameId': 'g-fifa', 'gameTitle': 'FIFA 24', 'prize': '50000.00', 'winnerPrize': '100000.00'}],
    })
