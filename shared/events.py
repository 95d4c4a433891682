from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import json


class EventType(str, Enum):
    # Registration outcomes
    REGISTRATION_COMPLETED = "registration.completed"
    REGISTRATION_PARTIAL_FAILURE = "registration.partial_failure"
    PARTICIPANT_REGISTERED = "registration.participant_registered"

    # Payment outcomes
    PAYMENT_SUCCEEDED = "payment.succeeded"
    PAYMENT_CANCELLED = "payment.cancelled"
    PAYMENT_FAILED = "payment.failed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class Event:
    """Something a registration workflow did, published on the tournament's channel."""

    type: EventType
    tournament_id: str
    workflow_id: Optional[str] = None
    timestamp: str = field(default_factory=_now)
    data: dict = field(default_factory=dict)

    @property
    def channel(self) -> str:
        return f"tournament:{self.tournament_id}:events"

    @property
    def type_name(self) -> str:
        return self.type.value

    def to_dict(self) -> dict:
        return {
            "type": self.type_name,
            "tournament_id": self.tournament_id,
            "workflow_id": self.workflow_id,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def registration_completed_event(tournament_id: str, workflow_id: str, registered: int) -> Event:
    return Event(EventType.REGISTRATION_COMPLETED, tournament_id, workflow_id, data={"registered": registered})


def partial_failure_event(tournament_id: str, workflow_id: str, failed: int, total: int) -> Event:
    return Event(
        EventType.REGISTRATION_PARTIAL_FAILURE,
        tournament_id,
        workflow_id,
        data={"failed": failed, "total": total},
    )


def participant_registered_event(tournament_id: str, workflow_id: str, participant_id: str) -> Event:
    return Event(
        EventType.PARTICIPANT_REGISTERED,
        tournament_id,
        workflow_id,
        data={"participant_id": participant_id},
    )


def payment_event(event_type: EventType, tournament_id: str, workflow_id: str,
                  reference: str, message: str = None) -> Event:
    data = {"reference": reference}
    if message:
        data["message"] = message
    return Event(event_type, tournament_id, workflow_id, data=data)
