"""
Tests for the workflow engine.

Tests sequential execution, failure handling with step history, per-step
retry and deadlines, the concurrency ceiling, and pause/resume/cancel.
"""
import asyncio

import pytest

from pantry_core.agents import AgentRegistry, Task
from pantry_core.config import CoreConfig
from pantry_core.errors import InvalidWorkflowDefinition
from pantry_core.state import InMemoryStateStore
from pantry_core.state.models import StepStatus, WorkflowStatus
from pantry_core.workflows import (
    RetryPolicy,
    StepType,
    WorkflowDefinition,
    WorkflowEngine,
    WorkflowStep,
)


class RecordingAgent:
    """Agent that appends its id to the input and records every task."""

    agent_type = "inventory"

    def __init__(self, agent_id, fail_times=0, delay=0.0):
        self.agent_id = agent_id
        self.fail_times = fail_times
        self.delay = delay
        self.tasks = []

    async def process_task(self, task: Task):
        self.tasks.append(task)
        if self.delay:
            await asyncio.sleep(self.delay)
        if len(self.tasks) <= self.fail_times:
            raise RuntimeError(f"{self.agent_id} failed")
        seen = list((task.payload.get("input") or {}).get("seen", []))
        return {"seen": seen + [self.agent_id]}

    async def handle_message(self, message):
        return None

    def get_capabilities(self):
        return ["record"]

    def get_metrics(self):
        return {"tasks": len(self.tasks)}


class BlockingAgent(RecordingAgent):
    """Agent that waits until released."""

    def __init__(self, agent_id):
        super().__init__(agent_id)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def process_task(self, task: Task):
        self.started.set()
        await self.release.wait()
        return await super().process_task(task)


def make_config(**overrides):
    settings = dict(DEFAULT_MAX_RETRIES=0, DEFAULT_BACKOFF_MS=0, MAX_CONCURRENT_WORKFLOWS=10,
                    DEFAULT_STEP_TIMEOUT_MS=5000)
    settings.update(overrides)
    return CoreConfig(**settings)


def three_step_workflow(workflow_id="restock"):
    return WorkflowDefinition(
        workflow_id=workflow_id,
        name="Restock",
        steps=[
            WorkflowStep("A", agent_id="agent-a"),
            WorkflowStep("B", agent_id="agent-b"),
            WorkflowStep("C", agent_id="agent-c"),
        ],
    )


@pytest.fixture
def registry():
    return AgentRegistry()


@pytest.fixture
def store():
    return InMemoryStateStore()


class TestDefinitions:

    def test_create_workflow_validates(self, registry):
        engine = WorkflowEngine(registry, config=make_config())

        with pytest.raises(InvalidWorkflowDefinition):
            engine.create_workflow(WorkflowDefinition(workflow_id="empty", name="Empty", steps=[]))

        with pytest.raises(InvalidWorkflowDefinition):
            engine.create_workflow(WorkflowDefinition(
                workflow_id="dup", name="Dup",
                steps=[WorkflowStep("A", agent_id="x"), WorkflowStep("A", agent_id="y")],
            ))

        with pytest.raises(InvalidWorkflowDefinition, match="agent_id"):
            engine.create_workflow(WorkflowDefinition(
                workflow_id="no-agent", name="No agent", steps=[WorkflowStep("A")],
            ))

    def test_definition_round_trip(self):
        definition = three_step_workflow()
        definition.steps[0].retry_policy = RetryPolicy(max_retries=2, backoff_ms=10)

        assert WorkflowDefinition.from_dict(definition.to_dict()) == definition


class TestExecution:

    @pytest.mark.asyncio
    async def test_steps_run_in_order_and_pipe_output(self, registry, store):
        for agent_id in ("agent-a", "agent-b", "agent-c"):
            registry.register(RecordingAgent(agent_id))
        engine = WorkflowEngine(registry, store, make_config())
        engine.create_workflow(three_step_workflow())

        result = await engine.execute_workflow("restock", {"seen": []})

        assert result.success is True
        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == {"seen": ["agent-a", "agent-b", "agent-c"]}
        assert [s.step_id for s in result.state.step_history] == ["A", "B", "C"]
        assert all(s.status == StepStatus.COMPLETED for s in result.state.step_history)
        assert result.state.step_history[1].input == {"seen": ["agent-a"]}

    @pytest.mark.asyncio
    async def test_unregistered_agent_fails_without_later_steps(self, registry, store):
        registry.register(RecordingAgent("agent-a"))
        registry.register(RecordingAgent("agent-c"))
        engine = WorkflowEngine(registry, store, make_config())
        engine.create_workflow(three_step_workflow())

        result = await engine.execute_workflow("restock", {"seen": []})

        assert result.success is False
        assert result.status == WorkflowStatus.FAILED
        history = result.state.step_history
        assert [(s.step_id, s.status) for s in history] == [
            ("A", StepStatus.COMPLETED),
            ("B", StepStatus.FAILED),
        ]
        assert history[1].error.code == "AGENT_NOT_FOUND"
        assert result.error.details["step_id"] == "B"
        assert registry.get("agent-c").tasks == []

    @pytest.mark.asyncio
    async def test_failed_state_is_persisted(self, registry, store):
        registry.register(RecordingAgent("agent-a"))
        engine = WorkflowEngine(registry, store, make_config())
        engine.create_workflow(three_step_workflow())

        result = await engine.execute_workflow("restock", {"seen": []})
        persisted = await engine.get_workflow_status("restock", result.execution_id)

        assert persisted.status == WorkflowStatus.FAILED
        assert len(persisted.step_history) == 2

    @pytest.mark.asyncio
    async def test_unknown_workflow_returns_failure(self, registry):
        engine = WorkflowEngine(registry, config=make_config())

        result = await engine.execute_workflow("missing")

        assert result.success is False
        assert result.error.code == "WORKFLOW_NOT_FOUND"
        assert result.execution_id is None

    @pytest.mark.asyncio
    async def test_pass_through_steps(self, registry):
        engine = WorkflowEngine(registry, config=make_config())
        engine.create_workflow(WorkflowDefinition(
            workflow_id="flow", name="Flow",
            steps=[WorkflowStep("decide", step_type=StepType.DECISION),
                   WorkflowStep("fan", step_type=StepType.PARALLEL)],
        ))

        result = await engine.execute_workflow("flow", "x")

        assert result.success is True
        assert result.state.step_history[0].output == {"decision": "continue", "input": "x"}
        assert result.output == {"parallel": "completed", "input": {"decision": "continue", "input": "x"}}

    @pytest.mark.asyncio
    async def test_agent_receives_task_metadata(self, registry):
        agent = RecordingAgent("agent-a")
        registry.register(agent)
        engine = WorkflowEngine(registry, config=make_config())
        engine.create_workflow(WorkflowDefinition(
            workflow_id="one", name="One",
            steps=[WorkflowStep("A", agent_id="agent-a", task_type="check_stock")],
        ))

        result = await engine.execute_workflow("one", {"seen": []}, global_context={"user_id": "u1"})

        task = agent.tasks[0]
        assert task.type == "check_stock"
        assert task.workflow_id == "one"
        assert task.execution_id == result.execution_id
        assert task.step_id == "A"
        assert task.payload["workflow_context"]["user_id"] == "u1"


class TestRetryAndTimeout:

    @pytest.mark.asyncio
    async def test_step_retries_until_success(self, registry):
        agent = RecordingAgent("agent-a", fail_times=2)
        registry.register(agent)
        engine = WorkflowEngine(registry, config=make_config())
        engine.create_workflow(WorkflowDefinition(
            workflow_id="retry", name="Retry",
            steps=[WorkflowStep("A", agent_id="agent-a", retry_policy=RetryPolicy(max_retries=2, backoff_ms=1))],
        ))

        result = await engine.execute_workflow("retry", {"seen": []})

        assert result.success is True
        assert len(agent.tasks) == 3
        assert result.state.step_history[0].retry_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted_fails_step(self, registry):
        agent = RecordingAgent("agent-a", fail_times=5)
        registry.register(agent)
        engine = WorkflowEngine(registry, config=make_config())
        engine.create_workflow(WorkflowDefinition(
            workflow_id="retry", name="Retry",
            steps=[WorkflowStep("A", agent_id="agent-a", retry_policy=RetryPolicy(max_retries=1, backoff_ms=0))],
        ))

        result = await engine.execute_workflow("retry", {"seen": []})

        assert result.success is False
        assert len(agent.tasks) == 2
        assert result.error.code == "STEP_EXECUTION_FAILED"
        assert result.error.details["attempts"] == 2

    @pytest.mark.asyncio
    async def test_step_timeout(self, registry):
        registry.register(RecordingAgent("agent-a", delay=1.0))
        engine = WorkflowEngine(registry, config=make_config())
        engine.create_workflow(WorkflowDefinition(
            workflow_id="slow", name="Slow",
            steps=[WorkflowStep("A", agent_id="agent-a", timeout_ms=20)],
        ))

        result = await engine.execute_workflow("slow", {"seen": []})

        assert result.success is False
        assert result.error.code == "STEP_TIMEOUT"
        assert result.state.step_history[0].status == StepStatus.FAILED


class TestCapacity:

    @pytest.mark.asyncio
    async def test_executions_beyond_ceiling_fail_fast(self, registry):
        agent = BlockingAgent("agent-a")
        registry.register(agent)
        engine = WorkflowEngine(registry, config=make_config(MAX_CONCURRENT_WORKFLOWS=1))
        engine.create_workflow(WorkflowDefinition(
            workflow_id="block", name="Block", steps=[WorkflowStep("A", agent_id="agent-a")],
        ))

        first = asyncio.create_task(engine.execute_workflow("block", {"seen": []}))
        await agent.started.wait()

        rejected = await engine.execute_workflow("block", {"seen": []})

        assert rejected.success is False
        assert rejected.error.code == "CAPACITY_EXCEEDED"

        agent.release.set()
        assert (await first).success is True
        assert engine.active_executions() == []


class TestControl:

    def two_step_engine(self, registry, store):
        agent = BlockingAgent("agent-a")
        registry.register(agent)
        registry.register(RecordingAgent("agent-b"))
        engine = WorkflowEngine(registry, store, make_config())
        engine.create_workflow(WorkflowDefinition(
            workflow_id="two", name="Two",
            steps=[WorkflowStep("A", agent_id="agent-a"), WorkflowStep("B", agent_id="agent-b")],
        ))
        return engine, agent

    @pytest.mark.asyncio
    async def test_pause_then_resume(self, registry, store):
        engine, agent = self.two_step_engine(registry, store)

        running = asyncio.create_task(engine.execute_workflow("two", {"seen": []}))
        await agent.started.wait()
        execution_id = engine.active_executions()[0]
        assert await engine.pause_workflow("two", execution_id) is True
        agent.release.set()

        paused = await running
        assert paused.status == WorkflowStatus.PAUSED
        assert [s.step_id for s in paused.state.step_history] == ["A"]

        resumed = await engine.resume_workflow("two", execution_id)

        assert resumed.success is True
        assert resumed.output == {"seen": ["agent-a", "agent-b"]}
        assert [s.step_id for s in resumed.state.step_history] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_resume_requires_paused_execution(self, registry, store):
        engine, agent = self.two_step_engine(registry, store)
        agent.release.set()
        result = await engine.execute_workflow("two", {"seen": []})

        resumed = await engine.resume_workflow("two", result.execution_id)

        assert resumed.success is False
        assert resumed.error.code == "INVALID_WORKFLOW_STATE"

    @pytest.mark.asyncio
    async def test_cancel_running_execution(self, registry, store):
        engine, agent = self.two_step_engine(registry, store)

        running = asyncio.create_task(engine.execute_workflow("two", {"seen": []}))
        await agent.started.wait()
        execution_id = engine.active_executions()[0]
        assert await engine.cancel_workflow("two", execution_id) is True
        agent.release.set()

        result = await running
        assert result.status == WorkflowStatus.CANCELLED
        assert result.success is False
        assert [s.step_id for s in result.state.step_history] == ["A"]

    @pytest.mark.asyncio
    async def test_cancel_during_last_step(self, registry, store):
        agent = BlockingAgent("agent-a")
        registry.register(agent)
        engine = WorkflowEngine(registry, store, make_config())
        engine.create_workflow(WorkflowDefinition(
            workflow_id="one", name="One", steps=[WorkflowStep("A", agent_id="agent-a")],
        ))

        running = asyncio.create_task(engine.execute_workflow("one", {"seen": []}))
        await agent.started.wait()
        execution_id = engine.active_executions()[0]
        assert await engine.cancel_workflow("one", execution_id) is True
        agent.release.set()

        result = await running
        assert result.status == WorkflowStatus.CANCELLED
        assert result.success is False
        assert result.error.code == "WORKFLOW_CANCELLED"
        persisted = await store.load_workflow_state("one", execution_id)
        assert persisted.status == WorkflowStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_unknown_execution(self, registry, store):
        engine, _ = self.two_step_engine(registry, store)

        assert await engine.cancel_workflow("two", "missing") is False

    @pytest.mark.asyncio
    async def test_history_lists_executions(self, registry, store):
        engine, agent = self.two_step_engine(registry, store)
        agent.release.set()

        await engine.execute_workflow("two", {"seen": []})
        await engine.execute_workflow("two", {"seen": []})

        history = await engine.get_workflow_history("two")
        assert len(history) == 2
        assert all(s.status == WorkflowStatus.COMPLETED for s in history)
