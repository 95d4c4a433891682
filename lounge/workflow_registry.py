import logging
import threading
import time
from typing import Optional, Callable, Dict, List
import redis

from .backend import LoungeBackend
from .payment import PaymentGate
from .session_store import SessionStore, MemorySessionStore, RedisSessionStore
from .submitter import RegistrationSubmitter
from .workflow import RegistrationWorkflow, ManualRegistrationWorkflow

logger = logging.getLogger(__name__)


class WorkflowRegistry:
    """
    Tracks the registration workflows that are currently open:
    - Create a workflow per dialog and prefetch its data
    - Look workflows up by id or payment reference
    - Drop them when the user closes the dialog
    - Close workflows nobody has touched for ``idle_timeout`` seconds
    """

    def __init__(
        self,
        backend_factory: Callable[[SessionStore], LoungeBackend],
        gate: PaymentGate,
        redis_client: redis.Redis = None,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        idle_timeout: float = 1800,
        clock: Callable[[], float] = time.monotonic
    ):
        self.backend_factory = backend_factory
        self.gate = gate
        self.redis = redis_client
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.sleep = sleep
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._workflows: Dict[str, RegistrationWorkflow] = {}
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def session_store(self, token: str = None, session_id: str = None) -> SessionStore:
        if self.redis is not None and session_id:
            store = RedisSessionStore(self.redis, session_id)
            if token:
                store.set_token(token)
            return store
        return MemorySessionStore(token=token)

    def create_workflow(
        self,
        tournament_id: str = None,
        event_title: str = '',
        token: str = None,
        session_id: str = None,
        manual: bool = False
    ) -> RegistrationWorkflow:
        self.sweep_idle()

        store = self.session_store(token=token, session_id=session_id)
        backend = self.backend_factory(store)
        submitter = RegistrationSubmitter(
            backend,
            max_attempts=self.max_attempts,
            retry_delay=self.retry_delay,
            sleep=self.sleep
        )

        workflow_cls = ManualRegistrationWorkflow if manual else RegistrationWorkflow
        workflow = workflow_cls(
            backend=backend,
            submitter=submitter,
            session_store=store,
            tournament_id=tournament_id,
            event_title=event_title,
            gate=None if manual else self.gate,
            redis_client=self.redis
        )
        workflow.on_close = lambda: self._drop(workflow.id)

        workflow.prefetch()

        with self._lock:
            self._workflows[workflow.id] = workflow
            self._last_seen[workflow.id] = self.clock()
        logger.info(f"Opened {'manual' if manual else 'paid'} registration {workflow.id} for {tournament_id}")
        return workflow

    def get_workflow(self, workflow_id: str) -> Optional[RegistrationWorkflow]:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow:
                self._last_seen[workflow_id] = self.clock()
            return workflow

    def find_by_reference(self, reference: str) -> Optional[RegistrationWorkflow]:
        with self._lock:
            workflows = list(self._workflows.values())
        for workflow in workflows:
            request = workflow.payment_request
            if request and request['ref'] == reference:
                with self._lock:
                    if workflow.id in self._workflows:
                        self._last_seen[workflow.id] = self.clock()
                return workflow
        return None

    def close_workflow(self, workflow_id: str) -> bool:
        workflow = self.get_workflow(workflow_id)
        if not workflow:
            return False
        workflow.close()
        self._drop(workflow_id)
        return True

    def sweep_idle(self) -> List[str]:
        """
        Close workflows idle for longer than ``idle_timeout``.

        A workflow whose batch or retry is still running cannot be closed and
        is left for a later sweep. Returns the ids that were closed.
        """
        if not self.idle_timeout:
            return []

        cutoff = self.clock() - self.idle_timeout
        with self._lock:
            expired = [
                self._workflows[wid] for wid, seen in self._last_seen.items()
                if seen <= cutoff and wid in self._workflows
            ]

        closed = []
        for workflow in expired:
            if not workflow.sm.can_perform('close'):
                continue
            logger.info(f"Closing idle registration {workflow.id} ({workflow.phase.value})")
            workflow.close()
            self._drop(workflow.id)
            closed.append(workflow.id)
        return closed

    def _drop(self, workflow_id: str):
        with self._lock:
            self._workflows.pop(workflow_id, None)
            self._last_seen.pop(workflow_id, None)

    def list_workflows(self) -> List[RegistrationWorkflow]:
        with self._lock:
            return list(self._workflows.values())
