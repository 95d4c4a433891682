"""
Tournament registration workflow.

One ``RegistrationWorkflow`` backs one open registration dialog: it prefills
the roster from the user's profile, validates it, takes payment for the
selected games, then enrolls every participant in turn. Participants whose
enrollment still fails after retries stay in ``failed`` and can be retried
one by one without paying again.

Phases and the moves between them live in ``RegistrationStateMachine``;
this module only decides which move to make.
"""
import logging
import threading
import uuid
from concurrent.futures import Future
from typing import Optional, Callable, List, Dict
import redis

from shared.state_machine import RegistrationStateMachine, RegistrationPhase, TransitionError
from shared.events import (
    Event, EventType, registration_completed_event, partial_failure_event, payment_event,
    participant_registered_event
)
from .api_client import ApiError, SessionExpiredError
from .backend import LoungeBackend
from .models import (
    Participant, Profile, Tournament, TournamentGame, SubmissionResult, SubmissionProgress
)
from .payment import (
    PaymentGate, PaymentError, PaymentCancelledError, PaymentFailedError, PaymentResult,
    generate_reference, custom_field, build_metadata
)
from .pricing import compute_total, format_naira
from .roster import Roster, ValidationError, check_fields, validate_contact
from .session_store import SessionStore
from .submitter import RegistrationSubmitter

logger = logging.getLogger(__name__)

PAYMENT_CANCELLED_MESSAGE = "Payment was cancelled. Please try again."
PAYMENT_FAILED_MESSAGE = "Payment failed. Please try again."
GAMES_LOAD_FAILED_MESSAGE = "Failed to load tournament games. Please try again."
TOURNAMENTS_LOAD_FAILED_MESSAGE = "Failed to load tournaments. Please try again."
NO_TOURNAMENT_MESSAGE = "Please select a tournament"
ZERO_TOTAL_MESSAGE = "Total amount must be greater than zero. Please select at least one game."


class RegistrationWorkflow:
    requires_payment = True

    def __init__(
        self,
        backend: LoungeBackend,
        submitter: RegistrationSubmitter,
        session_store: SessionStore,
        tournament_id: str = None,
        event_title: str = '',
        gate: PaymentGate = None,
        on_registration_success: Callable[[], None] = None,
        on_close: Callable[[], None] = None,
        redis_client: redis.Redis = None,
        workflow_id: str = None
    ):
        if self.requires_payment and gate is None:
            raise ValueError("A payment gate is required for paid registration")

        self.id = workflow_id or f"w_{uuid.uuid4().hex[:12]}"
        self.backend = backend
        self.submitter = submitter
        self.session_store = session_store
        self.gate = gate
        self.tournament_id = str(tournament_id) if tournament_id else None
        self.event_title = event_title
        self.on_registration_success = on_registration_success
        self.on_close = on_close
        self.redis = redis_client

        self.sm = RegistrationStateMachine()
        self.roster = Roster()
        self.tournament: Optional[Tournament] = None
        self.profile: Optional[Profile] = None
        self.progress: Optional[SubmissionProgress] = None
        self.results: Dict[str, SubmissionResult] = {}
        self.failed: List[str] = []
        self.error: Optional[str] = None
        self.registration_error: Optional[str] = None
        self.payment_request: Optional[dict] = None
        self.payment: Optional[PaymentResult] = None
        self.confirmation_url: Optional[str] = None

        self._success_notified = False
        self._lock = threading.RLock()

    # ==================== Properties ====================

    @property
    def phase(self) -> RegistrationPhase:
        return self.sm.state

    @property
    def games(self) -> List[TournamentGame]:
        return self.tournament.games if self.tournament else []

    @property
    def participants(self) -> List[Participant]:
        return self.roster.participants

    @property
    def total(self) -> int:
        return compute_total(self.roster, self.games)

    # ==================== Prefetch ====================

    def load_profile(self) -> Optional[Profile]:
        """Signed-in profile, or the cached user record when the API call fails."""
        try:
            return self.backend.get_user_profile()
        except ApiError as e:
            logger.info(f"Could not fetch profile from API ({e.message}), using cached user")

        cached = self.session_store.get_cached_user()
        if cached:
            return Profile.from_cached_user(cached)
        return None

    def load_tournament(self, tournament_id: str):
        try:
            self.tournament = self.backend.get_tournament(tournament_id)
        except SessionExpiredError:
            raise
        except ApiError as e:
            logger.error(f"Failed to fetch games for tournament {tournament_id}: {e.message}")
            self.tournament = None
            self.error = GAMES_LOAD_FAILED_MESSAGE
        except ValueError as e:
            logger.error(f"Malformed games for tournament {tournament_id}: {e}")
            self.tournament = None
            self.error = GAMES_LOAD_FAILED_MESSAGE

    def prefetch(self):
        with self._lock:
            self.profile = self.load_profile()
            if self.profile:
                self.roster.reset(Participant(
                    full_name=self.profile.full_name,
                    email=self.profile.email,
                    phone_number=self.profile.phone_number,
                ))
            if self.tournament_id:
                self.load_tournament(self.tournament_id)

    # ==================== Roster editing ====================

    def _ensure_editable(self):
        if not self.sm.can_perform('edit_roster'):
            raise TransitionError(
                self.phase.value,
                self.phase.value,
                f"Cannot edit participants while {self.phase.value}"
            )

    def _check_game(self, game_id: str):
        if self.tournament and game_id not in {g.game_id for g in self.games}:
            raise ValidationError(f"Unknown game: {game_id}")

    def add_participant(self, **fields) -> Participant:
        with self._lock:
            self._ensure_editable()
            check_fields(fields)
            for game_id in fields.get('selected_games') or []:
                self._check_game(str(game_id))
            participant = self.roster.add()
            if fields:
                self.update_participant(participant.id, **fields)
            return participant

    def remove_participant(self, participant_id: str) -> bool:
        with self._lock:
            self._ensure_editable()
            return self.roster.remove(participant_id)

    def update_participant(self, participant_id: str, **fields) -> Participant:
        with self._lock:
            self._ensure_editable()
            for game_id in fields.get('selected_games') or []:
                self._check_game(str(game_id))
            return self.roster.update(participant_id, **fields)

    def toggle_game(self, participant_id: str, game_id: str) -> Participant:
        with self._lock:
            self._ensure_editable()
            self._check_game(str(game_id))
            return self.roster.toggle_game(participant_id, game_id)

    # ==================== Submission ====================

    def payer_email(self) -> str:
        if self.profile and self.profile.email:
            return self.profile.email
        cached = self.session_store.get_cached_user() or {}
        if cached.get('email'):
            return cached['email']
        return self.roster.first.email.strip()

    def validate(self) -> Optional[str]:
        error = self.roster.validate()
        if error:
            return error
        if not self.tournament_id:
            return NO_TOURNAMENT_MESSAGE
        if self.requires_payment and self.total <= 0:
            return ZERO_TOTAL_MESSAGE
        return None

    def _payment_metadata(self) -> dict:
        first = self.roster.first
        names = [p.full_name.strip() for p in self.roster]
        return build_metadata(
            [
                custom_field("Full Name", "full_name", first.full_name.strip()),
                custom_field("Phone Number", "phone_number", first.phone_number.strip()),
                custom_field("Tournament", "tournament", self.event_title or self.tournament_id),
                custom_field("Participants", "participants", ", ".join(names)),
            ],
            tournament_id=self.tournament_id,
            participant_count=len(names),
        )

    def submit(self) -> Optional[dict]:
        """
        Validate the roster and start payment.

        Returns the popup options the browser needs, or None when the flow
        does not take payment (the batch has then already been submitted).
        """
        with self._lock:
            self.sm.transition('validate')
            self.error = None
            self.registration_error = None

            message = self.validate()
            if message:
                self.error = message
                self.sm.transition('reject')
                raise ValidationError(message)

            if not self.requires_payment:
                self.sm.transition('submit')
                self._run_batch()
                return None

            amount = self.total
            reference = generate_reference()
            request = {
                'key': self.gate.public_key,
                'email': self.payer_email(),
                'amount': amount,
                'ref': reference,
                'metadata': self._payment_metadata(),
            }
            self.payment = None
            self.payment_request = request
            self.sm.transition('pay')
            logger.info(f"Workflow {self.id}: charging {format_naira(amount)} ({reference})")

            try:
                future = self.gate.charge(amount, request['email'], reference, request['metadata'])
            except PaymentError as e:
                self.error = e.message
                self.payment_request = None
                self.sm.transition('payment_failed')
                raise
            except Exception as e:
                logger.exception(f"Workflow {self.id}: could not start payment {reference}")
                self.error = PAYMENT_FAILED_MESSAGE
                self.payment_request = None
                self.sm.transition('payment_failed')
                raise PaymentFailedError(PAYMENT_FAILED_MESSAGE, reference) from e

            future.add_done_callback(self._on_payment_settled)
            return request

    def _on_payment_settled(self, future: Future):
        with self._lock:
            reference = self.payment_request['ref'] if self.payment_request else None
            if self.sm.is_closed:
                logger.warning(f"Workflow {self.id} closed before payment {reference} settled")
                return

            try:
                self.payment = future.result()
            except PaymentCancelledError:
                self._payment_rejected(EventType.PAYMENT_CANCELLED, PAYMENT_CANCELLED_MESSAGE)
                return
            except PaymentError as e:
                logger.error(f"Payment {reference} failed: {e.message}")
                self._payment_rejected(EventType.PAYMENT_FAILED, e.message or PAYMENT_FAILED_MESSAGE)
                return

            self.sm.transition('paid')
            self.payment_request = None
            self._publish(payment_event(EventType.PAYMENT_SUCCEEDED, self.tournament_id, self.id, self.payment.reference))

            try:
                self._run_batch()
            except Exception:
                logger.exception(f"Workflow {self.id}: registration batch crashed after payment {reference}")
                self._fail_unresolved(
                    "Payment was successful, but registration failed. Please contact admin "
                    f"with your payment reference: {self.payment.reference}."
                )

    def _payment_rejected(self, event_type: EventType, message: str):
        reference = self.payment_request['ref'] if self.payment_request else None
        self.error = message
        self.payment_request = None
        self.sm.transition('payment_failed')
        self._publish(payment_event(event_type, self.tournament_id, self.id, reference, message))

    def _set_progress(self, progress: SubmissionProgress):
        self.progress = progress

    def _run_batch(self):
        participants = self.roster.participants
        self.results = {}
        self.failed = []
        try:
            results = self.submitter.submit_all(
                participants, self.tournament_id, on_progress=self._set_progress
            )
        finally:
            self.progress = None

        for result in results:
            self.results[result.participant_id] = result
        self.failed = [r.participant_id for r in results if not r.success]
        self._settle_batch()

    def _fail_unresolved(self, message: str):
        self.progress = None
        for participant in self.roster:
            if participant.id not in self.results:
                self.results[participant.id] = SubmissionResult(participant.id, False, message)
        self.failed = [pid for pid, r in self.results.items() if not r.success]
        self._settle_batch()
        if self.failed:
            self.registration_error = message

    def _settle_batch(self):
        if not self.failed:
            self.sm.transition('complete', guard_context={'failed': self.failed})
            self._complete()
            return

        total = len(self.roster)
        self.sm.transition('partial')
        self.registration_error = (
            f"{len(self.failed)} of {total} registration(s) failed. Please retry the failed ones."
        )
        self._publish(partial_failure_event(self.tournament_id, self.id, len(self.failed), total))

    def _complete(self):
        self.registration_error = None
        self.confirmation_url = f"/events/{self.tournament_id}"
        if self._success_notified:
            return
        self._success_notified = True
        logger.info(f"Workflow {self.id}: all {len(self.roster)} participant(s) registered")
        self._publish(registration_completed_event(self.tournament_id, self.id, len(self.roster)))
        if self.on_registration_success:
            try:
                self.on_registration_success()
            except Exception:
                logger.exception(f"Workflow {self.id}: registration success hook failed")

    # ==================== Recovery ====================

    def retry_participant(self, participant_id: str) -> SubmissionResult:
        with self._lock:
            if participant_id not in self.failed:
                raise ValidationError("This participant has no failed registration to retry")
            self.sm.transition('retry')

            participant = self.roster.get(participant_id)
            self.progress = SubmissionProgress(current=1, total=1)
            try:
                result = self.submitter.submit_one(participant, self.tournament_id)
            finally:
                self.progress = None

            self.results[participant_id] = result
            if result.success:
                self.failed.remove(participant_id)
                self._publish(participant_registered_event(self.tournament_id, self.id, participant_id))
            self._settle_batch()
            return result

    def close(self):
        with self._lock:
            if self.sm.is_closed:
                return
            pending = self.payment_request['ref'] if self.payment_request else None
            self.sm.transition('close')
            if pending and self.gate:
                self.gate.provider.dismiss(pending)
            if self.on_close:
                self.on_close()

    # ==================== Events & snapshots ====================

    def _publish(self, event: Event):
        if not self.redis or not event.tournament_id:
            return
        try:
            self.redis.publish(event.channel, event.to_json())
        except redis.exceptions.RedisError as e:
            logger.error(f"Failed to publish {event.type_name} for {event.tournament_id}: {e}")

    def failed_participants(self) -> List[dict]:
        entries = []
        for pid in self.failed:
            entry = self.roster.get(pid).to_dict()
            entry['error'] = self.results[pid].error if pid in self.results else None
            entries.append(entry)
        return entries

    def to_dict(self) -> dict:
        with self._lock:
            total = self.total
            return {
                'workflow_id': self.id,
                'tournament_id': self.tournament_id,
                'event_title': self.event_title,
                'requires_payment': self.requires_payment,
                'phase': self.phase.value,
                'allowed_actions': self.sm.allowed_actions,
                'participants': self.roster.to_list(),
                'games': [g.to_dict() for g in self.games],
                'total': total,
                'total_display': format_naira(total),
                'progress': self.progress.to_dict() if self.progress else None,
                'results': [self.results[p.id].to_dict() for p in self.roster if p.id in self.results],
                'failed': self.failed_participants(),
                'error': self.error,
                'registration_error': self.registration_error,
                'payment': self.payment_request,
                'payment_result': self.payment.to_dict() if self.payment else None,
                'confirmation_url': self.confirmation_url,
            }


class ManualRegistrationWorkflow(RegistrationWorkflow):
    """Admin registration: pick any tournament, no payment taken."""

    requires_payment = False

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tournaments: List[Tournament] = []

    def prefetch(self):
        with self._lock:
            try:
                self.tournaments = self.backend.get_tournaments()
            except SessionExpiredError:
                raise
            except ApiError as e:
                logger.error(f"Failed to fetch tournaments: {e.message}")
                self.error = TOURNAMENTS_LOAD_FAILED_MESSAGE
            except ValueError as e:
                logger.error(f"Malformed tournament list: {e}")
                self.tournaments = []
                self.error = TOURNAMENTS_LOAD_FAILED_MESSAGE
            if self.tournament_id:
                self.load_tournament(self.tournament_id)

    def select_tournament(self, tournament_id: str):
        with self._lock:
            self._ensure_editable()
            self.error = None
            self.tournament_id = str(tournament_id) if tournament_id else None
            self.roster.reset()
            if self.tournament_id:
                self.load_tournament(self.tournament_id)
            else:
                self.tournament = None

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['tournaments'] = [{'id': t.id, 'title': t.title} for t in self.tournaments]
        return data


def register_for_event(backend: LoungeBackend, event_id: str, full_name: str,
                       email: str, phone_number: str) -> dict:
    """Single-attendee event registration; events are free so no payment is taken."""
    message = validate_contact(full_name, email, phone_number)
    if message:
        raise ValidationError(message)
    if not event_id:
        raise ValidationError("Please select an event")
    return backend.enroll_event(event_id, full_name.strip(), email.strip(), phone_number.strip())
