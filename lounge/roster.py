import re
from typing import List, Optional, Iterable

from .models import Participant

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

EDITABLE_FIELDS = ('full_name', 'email', 'phone_number')


class ValidationError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ''))


def validate_contact(full_name: str, email: str, phone_number: str, prefix: str = '') -> Optional[str]:
    if not (full_name or '').strip():
        return f"{prefix}Full name is required"
    if not (email or '').strip():
        return f"{prefix}Email is required"
    if not is_valid_email(email.strip()):
        return f"{prefix}Please enter a valid email address"
    if not (phone_number or '').strip():
        return f"{prefix}Phone number is required"
    return None


def check_fields(fields: dict):
    for name in fields:
        if name != 'selected_games' and name not in EDITABLE_FIELDS:
            raise ValidationError(f"Unknown participant field: {name}")


class Roster:
    """Ordered participants of one registration; never empty."""

    def __init__(self, seed: Participant = None):
        self._participants: List[Participant] = [seed or Participant()]

    def __iter__(self):
        return iter(self._participants)

    def __len__(self):
        return len(self._participants)

    @property
    def participants(self) -> List[Participant]:
        return list(self._participants)

    @property
    def first(self) -> Participant:
        return self._participants[0]

    def get(self, participant_id: str) -> Participant:
        for p in self._participants:
            if p.id == participant_id:
                return p
        raise KeyError(participant_id)

    def reset(self, seed: Participant = None):
        self._participants = [seed or Participant()]

    def add(self, **fields) -> Participant:
        participant = Participant(**fields)
        self._participants.append(participant)
        return participant

    def remove(self, participant_id: str) -> bool:
        if len(self._participants) <= 1:
            return False
        before = len(self._participants)
        self._participants = [p for p in self._participants if p.id != participant_id]
        return len(self._participants) < before

    def update(self, participant_id: str, **fields) -> Participant:
        participant = self.get(participant_id)
        check_fields(fields)
        for name, value in fields.items():
            if name == 'selected_games':
                self.set_games(participant_id, value)
            else:
                setattr(participant, name, '' if value is None else str(value))
        return participant

    def set_games(self, participant_id: str, game_ids: Iterable[str]) -> Participant:
        participant = self.get(participant_id)
        games = []
        for game_id in game_ids or []:
            game_id = str(game_id)
            if game_id not in games:
                games.append(game_id)
        participant.selected_games = games
        return participant

    def toggle_game(self, participant_id: str, game_id: str) -> Participant:
        participant = self.get(participant_id)
        game_id = str(game_id)
        if game_id in participant.selected_games:
            participant.selected_games = [g for g in participant.selected_games if g != game_id]
        else:
            participant.selected_games = participant.selected_games + [game_id]
        return participant

    def validate(self) -> Optional[str]:
        """First problem found, numbered from 1, or None when the roster is complete."""
        if not self._participants:
            return "At least one participant is required"

        for i, p in enumerate(self._participants, start=1):
            error = validate_contact(p.full_name, p.email, p.phone_number, prefix=f"Participant {i}: ")
            if error:
                return error
            if not p.selected_games:
                return f"Participant {i}: Please select at least one game"
        return None

    def to_list(self) -> List[dict]:
        return [p.to_dict() for p in self._participants]
