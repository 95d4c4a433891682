from enum import Enum
from typing import Optional, Callable, Dict, List, Tuple
from dataclasses import dataclass


class RegistrationPhase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    INVALID = "invalid"
    PAYMENT_PENDING = "payment_pending"
    SUBMITTING = "submitting"
    PARTIAL_FAILURE = "partial_failure"
    RETRYING = "retrying"
    ALL_SUCCESS = "all_success"
    CLOSED = "closed"


class TransitionError(Exception):
    def __init__(self, from_state: str, to_state: str, reason: str = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason or f"Cannot transition from {from_state} to {to_state}"
        super().__init__(self.reason)


@dataclass
class Transition:
    from_state: RegistrationPhase
    to_state: RegistrationPhase
    action: str
    guard: Optional[Callable] = None


TERMINAL_PHASES = (RegistrationPhase.CLOSED,)


def no_failures_guard(context: dict) -> bool:
    return not context.get("failed")


class RegistrationStateMachine:
    TRANSITIONS = [
        Transition(RegistrationPhase.IDLE, RegistrationPhase.VALIDATING, "validate"),
        Transition(RegistrationPhase.INVALID, RegistrationPhase.VALIDATING, "validate"),
        Transition(RegistrationPhase.VALIDATING, RegistrationPhase.INVALID, "reject"),
        Transition(RegistrationPhase.VALIDATING, RegistrationPhase.PAYMENT_PENDING, "pay"),
        Transition(RegistrationPhase.VALIDATING, RegistrationPhase.SUBMITTING, "submit"),
        Transition(RegistrationPhase.PAYMENT_PENDING, RegistrationPhase.SUBMITTING, "paid"),
        Transition(RegistrationPhase.PAYMENT_PENDING, RegistrationPhase.IDLE, "payment_failed"),
        Transition(RegistrationPhase.SUBMITTING, RegistrationPhase.ALL_SUCCESS, "complete", no_failures_guard),
        Transition(RegistrationPhase.SUBMITTING, RegistrationPhase.PARTIAL_FAILURE, "partial"),
        Transition(RegistrationPhase.PARTIAL_FAILURE, RegistrationPhase.RETRYING, "retry"),
        Transition(RegistrationPhase.RETRYING, RegistrationPhase.ALL_SUCCESS, "complete", no_failures_guard),
        Transition(RegistrationPhase.RETRYING, RegistrationPhase.PARTIAL_FAILURE, "partial"),
    ] + [
        Transition(phase, RegistrationPhase.CLOSED, "close")
        for phase in RegistrationPhase if phase not in TERMINAL_PHASES
    ]

    ALLOWED_ACTIONS = {
        RegistrationPhase.IDLE: ["edit_roster", "validate", "close"],
        RegistrationPhase.VALIDATING: ["reject", "pay", "submit", "close"],
        RegistrationPhase.INVALID: ["edit_roster", "validate", "close"],
        RegistrationPhase.PAYMENT_PENDING: ["paid", "payment_failed", "close"],
        RegistrationPhase.SUBMITTING: ["complete", "partial"],
        RegistrationPhase.PARTIAL_FAILURE: ["retry", "close"],
        RegistrationPhase.RETRYING: ["complete", "partial"],
        RegistrationPhase.ALL_SUCCESS: ["view", "close"],
        RegistrationPhase.CLOSED: [],
    }

    def __init__(self, initial_state: RegistrationPhase = RegistrationPhase.IDLE):
        self._state = initial_state
        self._history: List[Tuple[RegistrationPhase, str, RegistrationPhase]] = []
        self._index: Dict[Tuple[RegistrationPhase, str], Transition] = {
            (t.from_state, t.action): t for t in self.TRANSITIONS
        }

    @property
    def state(self) -> RegistrationPhase:
        return self._state

    @property
    def allowed_actions(self) -> List[str]:
        return list(self.ALLOWED_ACTIONS.get(self._state, ()))

    @property
    def is_closed(self) -> bool:
        return self._state in TERMINAL_PHASES

    def can_perform(self, action: str) -> bool:
        """UI-level permission; close is withheld while a batch or retry runs."""
        return action in self.ALLOWED_ACTIONS.get(self._state, ())

    def transition(self, action: str, guard_context: dict = None) -> RegistrationPhase:
        move = self._index.get((self._state, action))
        if move is None:
            raise TransitionError(
                self._state.value,
                "unknown",
                f"No valid transition for action '{action}' from state '{self._state.value}'"
            )
        if move.guard is not None and not move.guard(guard_context or {}):
            raise TransitionError(
                self._state.value,
                move.to_state.value,
                f"Guard condition failed for action '{action}'"
            )

        self._history.append((self._state, action, move.to_state))
        self._state = move.to_state
        return self._state

    def get_history(self) -> List[Tuple[RegistrationPhase, str, RegistrationPhase]]:
        return list(self._history)
