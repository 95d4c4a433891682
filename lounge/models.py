import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional, List, Any


def normalize_amount(value: Any) -> float:
    """Backend amounts arrive as numbers or decimal strings ("5000.00")."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        text = str(value).strip().replace(',', '')
        if not text:
            return 0.0
        try:
            amount = float(Decimal(text))
        except InvalidOperation:
            return 0.0
    if amount < 0:
        raise ValueError(f"Amount must not be negative: {value!r}")
    return amount


def canonical_game_id(payload: dict) -> str:
    """Pick the one identifier a tournament game is known by from here on."""
    for key in ('gameId', 'tournamentGameId', 'id'):
        value = payload.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    raise ValueError("Tournament game has no identifier")


def generate_participant_id() -> str:
    return f"participant-{uuid.uuid4().hex[:12]}"


@dataclass
class Participant:
    id: str = field(default_factory=generate_participant_id)
    full_name: str = ''
    email: str = ''
    phone_number: str = ''
    selected_games: List[str] = field(default_factory=list)

    def to_payload(self, tournament_id: str) -> dict:
        return {
            'fullName': self.full_name.strip(),
            'email': self.email.strip(),
            'phoneNumber': self.phone_number.strip(),
            'tournamentId': str(tournament_id),
            'selectedGames': list(self.selected_games),
        }

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'full_name': self.full_name,
            'email': self.email,
            'phone_number': self.phone_number,
            'selected_games': list(self.selected_games),
        }


@dataclass
class TournamentGame:
    game_id: str
    title: str = ''
    description: str = ''
    requirements: List[str] = field(default_factory=list)
    fee: float = 0.0
    winner_prize: float = 0.0

    @classmethod
    def from_api(cls, data: dict) -> "TournamentGame":
        return cls(
            game_id=canonical_game_id(data),
            title=data.get('gameTitle') or data.get('title') or '',
            description=data.get('description') or '',
            requirements=list(data.get('requirements') or []),
            fee=normalize_amount(data.get('prize', data.get('fee'))),
            winner_prize=normalize_amount(data.get('winnerPrize')),
        )

    def to_dict(self) -> dict:
        return {
            'game_id': self.game_id,
            'title': self.title,
            'description': self.description,
            'requirements': self.requirements,
            'fee': self.fee,
            'winner_prize': self.winner_prize,
        }


@dataclass
class Tournament:
    id: str
    title: str = ''
    description: str = ''
    games: List[TournamentGame] = field(default_factory=list)
    event: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict) -> "Tournament":
        if isinstance(data.get('data'), dict):
            data = data['data']
        return cls(
            id=str(data.get('id', '')),
            title=data.get('title') or '',
            description=data.get('description') or '',
            games=[TournamentGame.from_api(g) for g in data.get('games') or []],
            event=data.get('event') or {},
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'games': [g.to_dict() for g in self.games],
        }


@dataclass
class Profile:
    email: str = ''
    full_name: str = ''
    phone_number: str = ''
    username: str = ''
    avatar_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "Profile":
        user = data.get('user') or {}
        return cls(
            email=user.get('email') or '',
            full_name=user.get('fullName') or '',
            phone_number=data.get('phoneNumber') or '',
            username=data.get('username') or '',
            avatar_url=data.get('avatarUrl') or user.get('avatarUrl'),
        )

    @classmethod
    def from_cached_user(cls, user: dict) -> "Profile":
        first_name = user.get('firstName') or ''
        last_name = user.get('lastName') or ''
        from_parts = f"{first_name} {last_name}" if first_name and last_name else first_name
        return cls(
            email=user.get('email') or '',
            full_name=user.get('fullName') or from_parts or '',
            phone_number=user.get('phoneNumber') or '',
            username=user.get('username') or '',
        )


@dataclass
class SubmissionResult:
    participant_id: str
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'participant_id': self.participant_id,
            'success': self.success,
            'error': self.error,
        }


@dataclass
class SubmissionProgress:
    """``current`` is the participant being attempted; ``completed`` counts resolved attempts."""

    current: int
    total: int
    completed: int = 0
    is_submitting: bool = True

    @property
    def percent(self) -> int:
        if not self.total:
            return 0
        return round(self.completed / self.total * 100)

    def to_dict(self) -> dict:
        return {
            'current': self.current,
            'total': self.total,
            'completed': self.completed,
            'is_submitting': self.is_submitting,
            'percent': self.percent,
        }


@dataclass
class TournamentRegistration:
    id: str
    full_name: str
    email: str
    phone_number: str
    tournament_id: str = ''
    tournament_title: str = ''
    paid_at: Optional[str] = None
    created_at: Optional[str] = None
    games: List[dict] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "TournamentRegistration":
        tournament = data.get('tournament') or {}
        return cls(
            id=str(data.get('id', '')),
            full_name=data.get('fullName') or '',
            email=data.get('email') or '',
            phone_number=data.get('phoneNumber') or '',
            tournament_id=str(tournament.get('id', data.get('tournamentId', ''))),
            tournament_title=tournament.get('title') or '',
            paid_at=data.get('paidAt'),
            created_at=data.get('createdAt'),
            games=[
                {
                    'game_id': str(g.get('tournamentGameId', '')),
                    'title': g.get('gameTitle') or '',
                    'fee': normalize_amount(g.get('prize')),
                    'winner_prize': normalize_amount(g.get('winnerPrize')),
                }
                for g in data.get('games') or []
            ],
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'full_name': self.full_name,
            'email': self.email,
            'phone_number': self.phone_number,
            'tournament_id': self.tournament_id,
            'tournament_title': self.tournament_title,
            'paid_at': self.paid_at,
            'created_at': self.created_at,
            'games': self.games,
        }
