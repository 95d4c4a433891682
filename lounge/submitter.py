import logging
import time
from typing import Callable, List, Optional, Iterable

from .api_client import ApiError
from .backend import LoungeBackend
from .models import Participant, SubmissionResult, SubmissionProgress

logger = logging.getLogger(__name__)

FALLBACK_ERROR = "Registration failed"


class RegistrationSubmitter:
    """
    Sends tournament enrollments to the backend one participant at a time.

    Each participant gets up to ``max_attempts`` tries with a linear backoff
    of ``retry_delay * attempt`` seconds between them. A participant's retry
    cycle always finishes before the next participant's first attempt.
    """

    def __init__(
        self,
        backend: LoungeBackend,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.backend = backend
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.sleep = sleep

    def submit_one(self, participant: Participant, tournament_id: str) -> SubmissionResult:
        error = FALLBACK_ERROR

        for attempt in range(1, self.max_attempts + 1):
            try:
                self.backend.enroll_tournament(participant, tournament_id)
                if attempt > 1:
                    logger.info(f"Registered {participant.id} on attempt {attempt}")
                return SubmissionResult(participant_id=participant.id, success=True)
            except ApiError as e:
                error = e.message or FALLBACK_ERROR
            except Exception:
                logger.exception(f"Unexpected error registering {participant.id}")
                error = FALLBACK_ERROR

            if attempt < self.max_attempts:
                delay = self.retry_delay * attempt
                logger.debug(
                    f"Attempt {attempt}/{self.max_attempts} for {participant.id} failed "
                    f"({error}), retrying in {delay}s"
                )
                self.sleep(delay)

        logger.error(f"Giving up on {participant.id} after {self.max_attempts} attempts: {error}")
        return SubmissionResult(participant_id=participant.id, success=False, error=error)

    def submit_all(
        self,
        participants: Iterable[Participant],
        tournament_id: str,
        on_progress: Optional[Callable[[SubmissionProgress], None]] = None
    ) -> List[SubmissionResult]:
        participants = list(participants)
        total = len(participants)
        results = []

        for index, participant in enumerate(participants, start=1):
            if on_progress:
                on_progress(SubmissionProgress(current=index, total=total, completed=index - 1))
            results.append(self.submit_one(participant, tournament_id))
            if on_progress:
                on_progress(SubmissionProgress(current=index, total=total, completed=index))

        failed = sum(1 for r in results if not r.success)
        logger.info(f"Submitted {total} registration(s) for {tournament_id}, {failed} failed")
        return results
