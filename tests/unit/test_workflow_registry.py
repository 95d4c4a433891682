"""
Unit tests for WorkflowRegistry.
"""
import pytest
from shared.state_machine import RegistrationPhase, RegistrationStateMachine
from lounge.session_store import MemorySessionStore, RedisSessionStore
from lounge.workflow import RegistrationWorkflow, ManualRegistrationWorkflow
from lounge.workflow_registry import WorkflowRegistry


@pytest.fixture
def stores():
    return []


@pytest.fixture
def registry(fake_backend, gate, sleeps, stores):
    def backend_factory(store):
        stores.append(store)
        return fake_backend
    return WorkflowRegistry(backend_factory, gate, sleep=sleeps.append)


class TestWorkflowRegistry:
    def test_create_paid_workflow(self, registry, stores):
        workflow = registry.create_workflow(tournament_id='t-100', token='token-abc')

        assert isinstance(workflow, RegistrationWorkflow)
        assert workflow.gate is registry.gate
        assert workflow.roster.first.full_name == 'Ada Obi'
        assert registry.get_workflow(workflow.id) is workflow
        assert isinstance(stores[0], MemorySessionStore)
        assert stores[0].get_token() == 'token-abc'

    def test_create_manual_workflow(self, registry):
        workflow = registry.create_workflow(manual=True)

        assert isinstance(workflow, ManualRegistrationWorkflow)
        assert workflow.gate is None

    def test_redis_store_with_session_id(self, fake_backend, gate, stores, mocker):
        client = mocker.MagicMock()
        registry = WorkflowRegistry(lambda store: stores.append(store) or fake_backend, gate, redis_client=client)

        registry.create_workflow(tournament_id='t-100', token='token-abc', session_id='sess-1')

        assert isinstance(stores[0], RedisSessionStore)
        client.set.assert_any_call('session:sess-1:token', 'token-abc', ex=RedisSessionStore.TTL_SECONDS)

    def test_find_by_reference(self, registry, fill_roster):
        workflow = registry.create_workflow(tournament_id='t-100')
        fill_roster(workflow, 1)
        request = workflow.submit()

        assert registry.find_by_reference(request['ref']) is workflow
        assert registry.find_by_reference('TXN_missing') is None

    def test_close_drops_workflow(self, registry):
        workflow = registry.create_workflow(tournament_id='t-100')

        assert registry.close_workflow(workflow.id) is True
        assert registry.get_workflow(workflow.id) is None
        assert registry.close_workflow(workflow.id) is False

    def test_workflow_close_drops_itself(self, registry):
        workflow = registry.create_workflow(tournament_id='t-100')
        workflow.close()
        assert registry.list_workflows() == []

    def test_completion_does_not_touch_registry(self, registry, provider, fill_roster):
        workflow = registry.create_workflow(tournament_id='t-100')
        fill_roster(workflow, 1)
        provider.complete(workflow.submit()['ref'], {'status': 'success'})

        assert workflow.phase == RegistrationPhase.ALL_SUCCESS
        assert workflow.on_registration_success is None
        assert registry.get_workflow(workflow.id) is workflow


class TestIdleEviction:
    @pytest.fixture
    def now(self):
        return [0.0]

    @pytest.fixture
    def registry(self, fake_backend, gate, sleeps, now):
        return WorkflowRegistry(
            lambda store: fake_backend, gate, sleep=sleeps.append,
            idle_timeout=60, clock=lambda: now[0]
        )

    def test_idle_workflow_closed_when_another_opens(self, registry, now):
        stale = registry.create_workflow(tournament_id='t-100')
        now[0] = 61

        fresh = registry.create_workflow(tournament_id='t-100')

        assert stale.phase == RegistrationPhase.CLOSED
        assert registry.get_workflow(stale.id) is None
        assert registry.list_workflows() == [fresh]

    def test_abandoned_payment_popup_dismissed(self, registry, provider, fill_roster, now):
        workflow = registry.create_workflow(tournament_id='t-100')
        fill_roster(workflow, 1)
        ref = workflow.submit()['ref']
        now[0] = 120

        assert registry.sweep_idle() == [workflow.id]
        assert provider.get_pending(ref) is None
        assert registry.find_by_reference(ref) is None

    def test_lookup_keeps_workflow_alive(self, registry, now):
        workflow = registry.create_workflow(tournament_id='t-100')
        now[0] = 50
        registry.get_workflow(workflow.id)
        now[0] = 100

        assert registry.sweep_idle() == []
        assert registry.get_workflow(workflow.id) is workflow

    def test_running_batch_left_open(self, registry, now):
        workflow = registry.create_workflow(tournament_id='t-100')
        workflow.sm = RegistrationStateMachine(RegistrationPhase.SUBMITTING)
        now[0] = 120

        assert registry.sweep_idle() == []
        assert registry.list_workflows() == [workflow]

    def test_zero_timeout_disables_sweep(self, fake_backend, gate):
        registry = WorkflowRegistry(lambda store: fake_backend, gate, idle_timeout=0, clock=lambda: 1e9)
        registry.create_workflow(tournament_id='t-100')

        assert registry.sweep_idle() == []
        assert len(registry.list_workflows()) == 1
