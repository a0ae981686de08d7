"""
Unit Tests for Agent Orchestrator

Tests the bounded Plan → Act → Reflect loop with a scripted planner:
ceilings, tool failures, memory writes, cancellation and concurrency.
"""

import json
import threading
import time
from unittest.mock import Mock, patch

import pytest

from ai.planner import Planner, PlannerDecision
from config import (
    CANCELLED_MESSAGE,
    CONFLICT_MESSAGE,
    DEFAULT_COMPLETION_MESSAGE,
    DONE_FALLBACK_MESSAGE,
    PLANNER_APOLOGY,
    REFLECTION_CANCELLED,
    REFLECTION_FALLBACK,
)
from core import (
    AgentGoal,
    AgentOrchestrator,
    ConstraintOverrides,
    ConstraintGovernor,
    EventBus,
    ReflectionEngine,
    RunResult,
    TOOL_EXECUTED,
)
from memory import InMemoryMemoryStore, MemoryRecord, MemoryType
from tools import ToolCall, ToolRegistry, ToolSpec


# ============================================================================
# HELPERS
# ============================================================================

class ScriptedPlanner(Planner):
    """Planner returning pre-baked decisions; records what it was shown."""

    def __init__(self, decisions=None, on_decide=None):
        self.decisions = list(decisions or [])
        self.on_decide = on_decide
        self.transcripts = []
        self.tool_specs = []

    def decide(self, transcript, tool_specs):
        self.transcripts.append(transcript)
        self.tool_specs.append(list(tool_specs))
        if self.on_decide:
            self.on_decide()
        if self.decisions:
            return self.decisions.pop(0)
        return PlannerDecision(content="Done.")


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance_ms(self, ms):
        self.now += ms / 1000


def call(name, **arguments):
    return PlannerDecision(tool_calls=[ToolCall(name, arguments)])


def final(text):
    return PlannerDecision(content=text)


STUDENTS = ["Ana", "Ben", "Chloe"]


@pytest.fixture
def registry():
    reg = ToolRegistry()
    reg.register(
        ToolSpec(
            name="list_students",
            description="List students in a class",
            parameters={
                "type": "object",
                "properties": {"class_id": {"type": "string"}},
            },
            category="students",
        ),
        lambda class_id="7B": {"class_id": class_id, "students": STUDENTS},
    )
    reg.register(
        ToolSpec(name="count_absences", description="Count absences", category="attendance"),
        lambda: {"absences": 2},
    )
    reg.register(
        ToolSpec(
            name="delete_student",
            description="Delete a student",
            allowed_roles=("principal",),
        ),
        lambda: "deleted",
    )
    return reg


@pytest.fixture
def memory_store():
    return InMemoryMemoryStore()


@pytest.fixture
def reflection_engine():
    engine = Mock(spec=ReflectionEngine)
    engine.reflect.return_value = "Listing students first worked well."
    return engine


@pytest.fixture
def make_orchestrator(registry, memory_store, reflection_engine):
    def factory(planner, **kwargs):
        return AgentOrchestrator(
            planner=planner,
            registry=registry,
            memory_store=memory_store,
            reflection_engine=kwargs.pop("reflection_engine", reflection_engine),
            **kwargs,
        )
    return factory


def records_of(store, memory_type):
    return [r for r in store.all_records() if r.type is memory_type]


# ============================================================================
# GOAL
# ============================================================================

class TestAgentGoal:
    """Test AgentGoal validation."""

    @pytest.mark.parametrize("objective", ["", "   ", None])
    def test_empty_objective_rejected(self, objective):
        with pytest.raises(ValueError):
            AgentGoal(objective=objective)

    def test_dict_constraints_converted(self):
        goal = AgentGoal(objective="List students", constraints={"max_tools": 1})

        assert goal.constraints == ConstraintOverrides(max_tools=1)

    def test_negative_constraints_rejected(self):
        with pytest.raises(ValueError):
            AgentGoal(objective="List students", constraints={"max_steps": -1})


# ============================================================================
# LOOP
# ============================================================================

class TestAgentLoop:
    """Test the plan/act loop."""

    def test_direct_answer(self, make_orchestrator, memory_store, reflection_engine):
        """A planner that answers straight away completes in one step."""
        planner = ScriptedPlanner([final("Hello! How can I help?")])

        result = make_orchestrator(planner).run(AgentGoal(objective="Say hello"))

        assert isinstance(result, RunResult)
        assert result.success is True
        assert result.message == "Hello! How can I help?"
        assert result.tools_used == []
        assert result.reflection == "Listing students first worked well."
        assert result.metadata["steps"] == 1
        assert result.termination == "completed"
        assert result.metadata["run_id"].startswith("run_")
        reflection_engine.reflect.assert_called_once()

    def test_tool_then_answer(self, make_orchestrator):
        """Tool results are fed back to the planner before it answers."""
        planner = ScriptedPlanner([
            call("list_students", class_id="7B"),
            final("7B has 3 students."),
        ])

        result = make_orchestrator(planner).run(AgentGoal(objective="How many students are in 7B?"))

        assert result.success is True
        assert result.message == "7B has 3 students."
        assert result.tools_used == ["list_students"]
        assert result.metadata["steps"] == 2
        assert result.metadata["tool_calls"] == 1
        assert result.metadata["failed_tools"] == []

        second_view = planner.transcripts[1]
        tool_entry = second_view[-1]
        assert tool_entry["role"] == "tool"
        assert tool_entry["name"] == "list_students"
        assert json.loads(tool_entry["content"]) == {
            "tool": "list_students",
            "ok": True,
            "value": {"class_id": "7B", "students": STUDENTS},
        }

    def test_transcript_starts_with_system_and_user(self, make_orchestrator):
        planner = ScriptedPlanner([final("ok")])

        make_orchestrator(planner).run(AgentGoal(objective="List students", context={"screen": "roster"}))

        first_view = planner.transcripts[0]
        assert [m["role"] for m in first_view] == ["system", "user"]
        assert "Current screen: roster" in first_view[0]["content"]
        assert first_view[1]["content"] == "List students"

    def test_unknown_tool_does_not_abort_run(self, make_orchestrator):
        """A call to an unregistered tool yields a failed result; the loop goes on."""
        planner = ScriptedPlanner([
            call("send_email_unregistered", to="parent@example.com"),
            final("I could not send the email."),
        ])

        result = make_orchestrator(planner).run(AgentGoal(objective="Email the parents"))

        assert result.success is True
        assert result.tools_used == ["send_email_unregistered"]
        assert result.metadata["failed_tools"] == ["send_email_unregistered"]
        assert result.message == "I could not send the email."

        tool_entry = json.loads(planner.transcripts[1][-1]["content"])
        assert tool_entry["ok"] is False
        assert "not found" in tool_entry["error"]

    def test_failing_tool_does_not_abort_run(self, registry, make_orchestrator):
        registry.register(
            ToolSpec(name="flaky", description="Flaky"),
            Mock(side_effect=RuntimeError("database unavailable")),
        )
        planner = ScriptedPlanner([call("flaky"), final("Sorry, the database is down.")])

        result = make_orchestrator(planner).run(AgentGoal(objective="Run the flaky tool"))

        assert result.success is True
        assert result.metadata["failed_tools"] == ["flaky"]

    def test_role_restricted_tool_denied(self, make_orchestrator):
        planner = ScriptedPlanner([call("delete_student"), final("Not allowed.")])

        result = make_orchestrator(planner).run(
            AgentGoal(objective="Delete Ana", context={"role": "teacher"})
        )

        assert result.metadata["failed_tools"] == ["delete_student"]
        assert "delete_student" not in [s.name for s in planner.tool_specs[0]]
        assert "Insufficient permissions" in json.loads(planner.transcripts[1][-1]["content"])["error"]

    def test_done_without_text_uses_fallback(self, make_orchestrator):
        planner = ScriptedPlanner([PlannerDecision(content=None, tool_calls=[])])

        result = make_orchestrator(planner).run(AgentGoal(objective="Do nothing"))

        assert result.message == DONE_FALLBACK_MESSAGE

    def test_content_next_to_tool_calls_kept(self, make_orchestrator):
        """Commentary returned with tool calls becomes an assistant entry."""
        planner = ScriptedPlanner([
            PlannerDecision(content="Let me check.", tool_calls=[ToolCall("count_absences", {})]),
            final("Two absences."),
        ])

        make_orchestrator(planner).run(AgentGoal(objective="Count absences"))

        roles = [m["role"] for m in planner.transcripts[1]]
        assert roles == ["system", "user", "assistant", "tool"]
        assert planner.transcripts[1][2]["content"] == "Let me check."

    def test_planner_apology_ends_run(self, make_orchestrator):
        """An apology from a failed inference call ends the run as a normal answer."""
        planner = ScriptedPlanner([final(PLANNER_APOLOGY)])

        result = make_orchestrator(planner).run(AgentGoal(objective="List students"))

        assert result.success is True
        assert result.message == PLANNER_APOLOGY

    def test_planner_exception_fails_run(self, make_orchestrator, memory_store):
        planner = Mock(spec=Planner)
        planner.decide.side_effect = RuntimeError("planner crashed")

        result = make_orchestrator(planner).run(AgentGoal(objective="List students"))

        assert result.success is False
        assert result.termination == "error"
        assert "planner crashed" in result.message
        assert result.metadata["steps"] == 0

    def test_events_published_per_tool(self, make_orchestrator):
        bus = EventBus(synchronous=True)
        events = []
        bus.subscribe(TOOL_EXECUTED, events.append)
        planner = ScriptedPlanner([
            PlannerDecision(tool_calls=[ToolCall("list_students", {}), ToolCall("count_absences", {})]),
            final("Done."),
        ])

        result = make_orchestrator(planner, event_bus=bus).run(AgentGoal(objective="Attendance report"))

        assert [e.tool for e in events] == ["list_students", "count_absences"]
        assert {e.run_id for e in events} == {result.metadata["run_id"]}

    def test_tool_call_without_arguments_completes(self, make_orchestrator):
        """A planner emitting null arguments does not crash the run."""
        bus = EventBus(synchronous=True)
        events = []
        bus.subscribe(TOOL_EXECUTED, events.append)
        planner = ScriptedPlanner([
            PlannerDecision(tool_calls=[ToolCall("list_students", None)]),
            final("Here are your students."),
        ])

        result = make_orchestrator(planner, event_bus=bus).run(AgentGoal(objective="List my students"))

        assert result.success is True
        assert result.termination == "completed"
        assert result.message == "Here are your students."
        assert result.tools_used == ["list_students"]
        assert len(events) == 1
        assert events[0].args == {}

    def test_not_running_after_run(self, make_orchestrator):
        orchestrator = make_orchestrator(ScriptedPlanner([final("ok")]))

        orchestrator.run(AgentGoal(objective="Say hello"))

        assert orchestrator.is_agent_running() is False


# ============================================================================
# CEILINGS
# ============================================================================

class TestCeilings:
    """Test step, tool and time ceilings."""

    def test_one_step_one_tool(self, make_orchestrator):
        """With one step and one tool, the run ends right after the first tool."""
        planner = ScriptedPlanner([call("list_students"), call("list_students")])

        result = make_orchestrator(planner).run(AgentGoal(
            objective="List students",
            constraints={"max_steps": 1, "max_tools": 1},
        ))

        assert result.success is True
        assert result.tools_used == ["list_students"]
        assert result.metadata["steps"] == 1
        assert result.message == DEFAULT_COMPLETION_MESSAGE
        assert len(planner.transcripts) == 1

    def test_list_active_students(self, make_orchestrator):
        planner = ScriptedPlanner([
            call("list_students"),
            final("Here are your students: Ana, Ben, Chloe"),
        ])

        result = make_orchestrator(planner).run(AgentGoal(
            objective="List active students",
            constraints={"max_steps": 1, "max_tools": 1, "timeout_ms": 5000},
        ))

        assert result.success is True
        assert result.tools_used == ["list_students"]
        assert result.metadata["steps"] == 1
        assert result.metadata["failed_tools"] == []

    def test_slow_planner_real_clock(self, make_orchestrator):
        """A 50ms planner against a 10ms budget ends in a timeout, not an exception."""
        planner = ScriptedPlanner(
            [call("list_students") for _ in range(5)],
            on_decide=lambda: time.sleep(0.05),
        )

        result = make_orchestrator(planner).run(AgentGoal(
            objective="List students",
            constraints={"timeout_ms": 10},
        ))

        assert result.success is True
        assert result.message == DEFAULT_COMPLETION_MESSAGE
        assert result.termination == "timeout"
        assert result.metadata["duration_ms"] >= 10

    def test_governor_consulted_before_every_step(self, make_orchestrator):
        planner = ScriptedPlanner([call("list_students"), call("count_absences"), final("Done.")])

        with patch.object(
            ConstraintGovernor, "can_continue", autospec=True, side_effect=ConstraintGovernor.can_continue
        ) as can_continue:
            result = make_orchestrator(planner).run(AgentGoal(objective="Attendance report"))

        assert result.termination == "completed"
        assert result.metadata["steps"] == 3
        assert can_continue.call_count == 3

    def test_step_ceiling(self, make_orchestrator):
        planner = ScriptedPlanner([call("count_absences") for _ in range(10)])

        result = make_orchestrator(planner).run(AgentGoal(objective="Loop forever"))

        assert result.success is True
        assert result.metadata["steps"] == 4
        assert result.termination == "max_steps"
        assert len(result.tools_used) == 4

    def test_tool_ceiling_within_one_decision(self, make_orchestrator):
        """Calls past the tool ceiling are skipped."""
        planner = ScriptedPlanner([
            PlannerDecision(tool_calls=[ToolCall("count_absences", {}) for _ in range(3)]),
        ])

        result = make_orchestrator(planner).run(AgentGoal(
            objective="Count absences three times",
            constraints=ConstraintOverrides(max_tools=2),
        ))

        assert result.tools_used == ["count_absences", "count_absences"]
        assert result.termination == "max_tools"
        assert len(planner.transcripts) == 1

    def test_tool_ceiling_counts_across_steps(self, make_orchestrator):
        planner = ScriptedPlanner([call("count_absences") for _ in range(10)])

        result = make_orchestrator(planner).run(AgentGoal(
            objective="Count absences",
            constraints={"max_steps": 10, "max_tools": 3},
        ))

        assert len(result.tools_used) == 3
        assert result.metadata["steps"] == 3
        assert result.termination == "max_tools"

    def test_zero_steps(self, make_orchestrator, memory_store):
        """max_steps=0 makes no planner call but still records the interaction."""
        planner = ScriptedPlanner([final("never")])

        result = make_orchestrator(planner).run(AgentGoal(
            objective="List students",
            constraints={"max_steps": 0},
        ))

        assert result.success is True
        assert result.metadata["steps"] == 0
        assert result.termination == "max_steps"
        assert result.message == DEFAULT_COMPLETION_MESSAGE
        assert planner.transcripts == []
        assert len(records_of(memory_store, MemoryType.INTERACTION)) == 1

    def test_timeout(self, make_orchestrator):
        """A slow planner runs out of time; the run still succeeds."""
        clock = FakeClock()
        planner = ScriptedPlanner(
            [call("list_students") for _ in range(5)],
            on_decide=lambda: clock.advance_ms(50),
        )

        result = make_orchestrator(planner, clock=clock).run(AgentGoal(
            objective="List students",
            constraints={"timeout_ms": 10},
        ))

        assert result.success is True
        assert result.termination == "timeout"
        assert result.metadata["steps"] == 1
        assert result.metadata["duration_ms"] >= 10

    def test_message_from_last_assistant_text_on_ceiling(self, make_orchestrator):
        planner = ScriptedPlanner([
            PlannerDecision(content="Checking the roster.", tool_calls=[ToolCall("list_students", {})]),
        ])

        result = make_orchestrator(planner).run(AgentGoal(
            objective="List students",
            constraints={"max_steps": 1},
        ))

        assert result.message == "Checking the roster."

    def test_default_constraints_override(self, make_orchestrator):
        from core import Constraints

        planner = ScriptedPlanner([call("count_absences") for _ in range(10)])
        orchestrator = make_orchestrator(
            planner, default_constraints=Constraints(max_steps=2, max_tools=10, timeout_ms=20000)
        )

        result = orchestrator.run(AgentGoal(objective="Count absences"))

        assert result.metadata["steps"] == 2


# ============================================================================
# MEMORY
# ============================================================================

class TestMemoryWrites:
    """Test what a run leaves behind in long-term memory."""

    def test_interaction_always_stored(self, make_orchestrator, memory_store):
        make_orchestrator(ScriptedPlanner([final("Hi")])).run(AgentGoal(objective="Say hello"))

        interactions = records_of(memory_store, MemoryType.INTERACTION)
        assert len(interactions) == 1
        content = interactions[0].content
        assert interactions[0].importance == 3
        assert content["objective"] == "Say hello"
        assert content["tools_used"] == []
        assert content["reflection"] == "Listing students first worked well."
        assert "timestamp" in content
        assert records_of(memory_store, MemoryType.PATTERN) == []

    def test_pattern_stored_after_successful_tools(self, make_orchestrator, memory_store):
        planner = ScriptedPlanner([
            PlannerDecision(tool_calls=[ToolCall("list_students", {}), ToolCall("list_students", {})]),
            call("count_absences"),
            final("Done."),
        ])

        make_orchestrator(planner).run(AgentGoal(objective="Attendance report for 7B"))

        patterns = records_of(memory_store, MemoryType.PATTERN)
        assert len(patterns) == 1
        assert patterns[0].importance == 5
        content = patterns[0].content
        assert content["tools"] == ["list_students", "count_absences"]
        assert content["pattern"] == (
            'For objectives like "Attendance report for 7B", use tools: list_students, count_absences'
        )
        assert content["success"] is True
        assert content["reflection"] == "Listing students first worked well."

    def test_pattern_from_failed_tools_is_low_importance(self, make_orchestrator, memory_store):
        planner = ScriptedPlanner([call("send_email_unregistered"), final("Could not send.")])

        make_orchestrator(planner).run(AgentGoal(objective="Email parents"))

        patterns = records_of(memory_store, MemoryType.PATTERN)
        assert patterns[0].importance == 2
        assert patterns[0].content["success"] is False

    def test_fallback_reflection_not_attached_to_pattern(self, make_orchestrator, memory_store):
        engine = Mock(spec=ReflectionEngine)
        engine.reflect.return_value = REFLECTION_FALLBACK
        planner = ScriptedPlanner([call("list_students"), final("Done.")])

        result = make_orchestrator(planner, reflection_engine=engine).run(AgentGoal(objective="List students"))

        assert result.success is True
        assert result.reflection == REFLECTION_FALLBACK
        assert "reflection" not in records_of(memory_store, MemoryType.PATTERN)[0].content

    def test_long_reflection_not_attached_to_pattern(self, make_orchestrator, memory_store):
        engine = Mock(spec=ReflectionEngine)
        engine.reflect.return_value = "x" * 501
        planner = ScriptedPlanner([call("list_students"), final("Done.")])

        make_orchestrator(planner, reflection_engine=engine).run(AgentGoal(objective="List students"))

        assert "reflection" not in records_of(memory_store, MemoryType.PATTERN)[0].content

    def test_memory_failure_does_not_fail_run(self, registry, reflection_engine):
        store = Mock()
        store.retrieve_relevant.return_value = []
        store.append.side_effect = IOError("disk full")
        orchestrator = AgentOrchestrator(
            planner=ScriptedPlanner([call("list_students"), final("Done.")]),
            registry=registry,
            memory_store=store,
            reflection_engine=reflection_engine,
        )

        result = orchestrator.run(AgentGoal(objective="List students"))

        assert result.success is True
        assert store.append.call_count == 2

    def test_previous_runs_inform_next_prompt(self, make_orchestrator):
        """Patterns stored by one run appear in the next run's system prompt."""
        orchestrator = make_orchestrator(
            ScriptedPlanner([call("list_students"), final("Done.")])
        )
        orchestrator.run(AgentGoal(objective="List students in 7B"))

        planner = ScriptedPlanner([final("Done.")])
        orchestrator.planner = planner
        orchestrator.run(AgentGoal(objective="List students in 8A"))

        system_prompt = planner.transcripts[0][0]["content"]
        assert "use tools: list_students" in system_prompt

    def test_existing_memories_reach_prompt(self, make_orchestrator, memory_store):
        memory_store.append(MemoryRecord.create(
            MemoryType.PREFERENCE,
            {"preference": "Always show students sorted by surname"},
            importance=4,
        ))
        planner = ScriptedPlanner([final("Done.")])

        make_orchestrator(planner).run(AgentGoal(objective="List students"))

        assert "sorted by surname" in planner.transcripts[0][0]["content"]


# ============================================================================
# CANCELLATION & CONCURRENCY
# ============================================================================

class BlockingPlanner(ScriptedPlanner):
    """Planner that waits for a signal before answering."""

    def __init__(self, decisions=None):
        super().__init__(decisions)
        self.entered = threading.Event()
        self.release = threading.Event()

    def decide(self, transcript, tool_specs):
        self.entered.set()
        assert self.release.wait(timeout=5)
        return super().decide(transcript, tool_specs)


class CancellingLock:
    """Run lock that issues a cancel the moment it is acquired."""

    def __init__(self, orchestrator):
        self.orchestrator = orchestrator
        self._lock = threading.Lock()

    def acquire(self, blocking=True):
        acquired = self._lock.acquire(blocking)
        if acquired:
            self.orchestrator.cancel_current_run()
        return acquired

    def release(self):
        self._lock.release()

    def locked(self):
        return self._lock.locked()


def run_in_thread(orchestrator, goal):
    results = []
    thread = threading.Thread(target=lambda: results.append(orchestrator.run(goal)))
    thread.start()
    return thread, results


class TestConcurrency:
    """Test single-run-at-a-time behaviour and cancellation."""

    def test_second_run_rejected_while_busy(self, make_orchestrator):
        planner = BlockingPlanner([final("First run done.")])
        orchestrator = make_orchestrator(planner)

        thread, results = run_in_thread(orchestrator, AgentGoal(objective="First"))
        assert planner.entered.wait(timeout=5)

        assert orchestrator.is_agent_running() is True
        rejected = orchestrator.run(AgentGoal(objective="Second"))

        planner.release.set()
        thread.join(timeout=5)

        assert rejected.success is False
        assert rejected.message == CONFLICT_MESSAGE
        assert rejected.termination == "conflict"
        assert rejected.metadata["active_run_id"] == results[0].metadata["run_id"]
        assert results[0].success is True
        assert results[0].message == "First run done."

    def test_orchestrator_usable_after_conflict(self, make_orchestrator):
        planner = BlockingPlanner([final("one"), final("two")])
        orchestrator = make_orchestrator(planner)
        thread, _ = run_in_thread(orchestrator, AgentGoal(objective="First"))
        assert planner.entered.wait(timeout=5)
        orchestrator.run(AgentGoal(objective="Second"))
        planner.release.set()
        thread.join(timeout=5)

        result = orchestrator.run(AgentGoal(objective="Third"))

        assert result.success is True
        assert result.message == "two"

    def test_cancel_stops_before_next_tool(self, make_orchestrator, memory_store, reflection_engine):
        planner = BlockingPlanner([call("list_students")])
        orchestrator = make_orchestrator(planner)

        thread, results = run_in_thread(orchestrator, AgentGoal(objective="List students"))
        assert planner.entered.wait(timeout=5)
        orchestrator.cancel_current_run()
        planner.release.set()
        thread.join(timeout=5)

        result = results[0]
        assert result.success is True
        assert result.termination == "cancelled"
        assert result.message == CANCELLED_MESSAGE
        assert result.tools_used == []
        assert result.reflection == REFLECTION_CANCELLED
        reflection_engine.reflect.assert_not_called()

        interactions = records_of(memory_store, MemoryType.INTERACTION)
        assert interactions[0].content["termination"] == "cancelled"

    def test_cancel_when_idle_is_noop(self, make_orchestrator):
        orchestrator = make_orchestrator(ScriptedPlanner([final("ok")]))
        orchestrator.cancel_current_run()

        result = orchestrator.run(AgentGoal(objective="Say hello"))

        assert result.success is True

    def test_cancel_as_run_starts_is_kept(self, make_orchestrator, reflection_engine):
        """A cancel landing right after the run lock is taken still stops the run."""
        planner = ScriptedPlanner([call("list_students"), final("Done.")])
        orchestrator = make_orchestrator(planner)
        orchestrator._run_lock = CancellingLock(orchestrator)

        result = orchestrator.run(AgentGoal(objective="List students"))

        assert result.success is True
        assert result.termination == "cancelled"
        assert result.tools_used == []
        assert planner.transcripts == []
        reflection_engine.reflect.assert_not_called()

    def test_next_run_not_cancelled_by_previous_cancel(self, make_orchestrator):
        planner = BlockingPlanner([call("list_students"), final("Second run done.")])
        orchestrator = make_orchestrator(planner)
        thread, results = run_in_thread(orchestrator, AgentGoal(objective="First"))
        assert planner.entered.wait(timeout=5)
        orchestrator.cancel_current_run()
        planner.release.set()
        thread.join(timeout=5)

        result = orchestrator.run(AgentGoal(objective="Second"))

        assert results[0].termination == "cancelled"
        assert result.termination == "completed"
        assert result.message == "Second run done."

    def test_dispose_cancels_active_run(self, make_orchestrator):
        planner = BlockingPlanner([call("list_students")])
        orchestrator = make_orchestrator(planner)

        thread, results = run_in_thread(orchestrator, AgentGoal(objective="List students"))
        assert planner.entered.wait(timeout=5)
        orchestrator.dispose()
        planner.release.set()
        thread.join(timeout=5)

        assert results[0].success is True
        assert results[0].termination == "cancelled"

    def test_separate_orchestrators_run_in_parallel(self, make_orchestrator):
        """Shared registry and memory, independent run locks."""
        blocking = BlockingPlanner([final("slow")])
        slow = make_orchestrator(blocking)
        fast = make_orchestrator(ScriptedPlanner([final("fast")]))

        thread, results = run_in_thread(slow, AgentGoal(objective="Slow"))
        assert blocking.entered.wait(timeout=5)

        fast_result = fast.run(AgentGoal(objective="Fast"))

        blocking.release.set()
        thread.join(timeout=5)

        assert fast_result.success is True
        assert results[0].success is True
