"""
Agent Orchestrator - Main Agent Loop

Implements the Plan → Act → Reflect workflow:
1. Perceive: Gather role, relevant memories, tools and screen context
2. Plan: Ask the planner which tools (if any) to call next
3. Act: Execute the requested tools and feed results back
4. Reflect: Critique the run and commit a lesson to long-term memory

The loop is bounded by step, tool and time ceilings. Reaching a ceiling is
a normal outcome; only a planner that raises or an internal fault turns a
run into a failure. Callers always get a RunResult back.
"""

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from config import (
    CANCELLED_MESSAGE,
    CONFLICT_MESSAGE,
    DEFAULT_COMPLETION_MESSAGE,
    DONE_FALLBACK_MESSAGE,
    INTERACTION_IMPORTANCE,
    PATTERN_IMPORTANCE,
    PATTERN_TEMPLATE,
    REFLECTION_CANCELLED,
    REFLECTION_EMPTY,
    REFLECTION_FALLBACK,
    UNVERIFIED_PATTERN_IMPORTANCE,
)
from ai.planner import Planner
from memory import MemoryRecord, MemoryStore, MemoryType
from tools.registry import ToolRegistry
from .events import EventBus
from .executor import ToolExecutor
from .governor import ConstraintGovernor, ConstraintOverrides, Constraints, StopReason
from .perception import ContextPerceiver, PerceptionSnapshot, build_system_prompt
from .reflection import ReflectionEngine
from .transcript import Role, Transcript

logger = logging.getLogger(__name__)

# Reflections longer than this are not attached to stored patterns
MAX_PATTERN_REFLECTION_CHARS = 500


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class AgentGoal:
    """
    Immutable input to one run.

    Attributes:
        objective: The natural-language goal
        context: Opaque caller context ("role", "screen", "user_id"...)
        constraints: Per-goal ceiling overrides (a dict is accepted too)
    """
    objective: str
    context: Optional[Dict[str, Any]] = None
    constraints: Optional[Union[ConstraintOverrides, Dict[str, int]]] = None

    def __post_init__(self):
        if not isinstance(self.objective, str) or not self.objective.strip():
            raise ValueError("objective must be a non-empty string")
        if isinstance(self.constraints, dict):
            object.__setattr__(self, "constraints", ConstraintOverrides(**self.constraints))


@dataclass
class RunResult:
    """
    Outcome of one run, returned to the caller (not persisted).

    Attributes:
        success: False only on conflict or an internal fault
        message: Final assistant text or a fixed completion message
        tools_used: Tool names in invocation order
        reflection: Post-run reflection, when one was produced
        metadata: run_id, steps, duration_ms, termination, tool_calls, failed_tools
    """
    success: bool
    message: str
    tools_used: List[str] = field(default_factory=list)
    reflection: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def termination(self) -> Optional[str]:
        return self.metadata.get("termination")


@dataclass
class AgentState:
    """Mutable bookkeeping for the run in flight."""
    run_id: str
    transcript: Transcript = field(default_factory=Transcript)
    tools_used: List[str] = field(default_factory=list)
    failed_tools: List[str] = field(default_factory=list)
    snapshot: Optional[PerceptionSnapshot] = None
    governor: Optional[ConstraintGovernor] = None

    @property
    def any_tool_succeeded(self) -> bool:
        return len(self.failed_tools) < len(self.tools_used)


# ============================================================================
# AGENT ORCHESTRATOR
# ============================================================================

class AgentOrchestrator:
    """
    Bounded Plan → Act → Reflect controller.

    One run at a time per instance: a second run() while one is active
    fails fast with success=False. Construct one instance per session;
    the registry, memory store and event bus can be shared between them.
    """

    def __init__(
        self,
        planner: Planner,
        registry: ToolRegistry,
        memory_store: MemoryStore,
        reflection_engine: Optional[ReflectionEngine] = None,
        event_bus: Optional[EventBus] = None,
        perceiver: Optional[ContextPerceiver] = None,
        default_constraints: Optional[Constraints] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the orchestrator.

        Args:
            planner: Planner adapter deciding the next action
            registry: Shared tool registry
            memory_store: Shared long-term memory
            reflection_engine: Post-run critic (Gemini-backed by default)
            event_bus: Receives an ExecutionEvent per tool call
            perceiver: Context builder (created from registry/memory if omitted)
            default_constraints: Ceilings applied when a goal sets none
            clock: Monotonic clock in seconds
        """
        self.planner = planner
        self.registry = registry
        self.memory_store = memory_store
        self.reflection_engine = reflection_engine or ReflectionEngine()
        self.tool_executor = ToolExecutor(registry, event_bus)
        self.perceiver = perceiver or ContextPerceiver(registry, memory_store)
        self.default_constraints = default_constraints or Constraints()
        self._clock = clock

        self._run_lock = threading.Lock()
        # Guards the cancel flag together with the run lock
        self._state_lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._current_run_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    def run(self, goal: AgentGoal) -> RunResult:
        """
        Execute the full agent loop for a goal.

        Args:
            goal: Objective, context and optional ceilings

        Returns:
            RunResult; never raises
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning(f"⚠️  Run rejected: {self._current_run_id} is still in progress")
            return RunResult(
                success=False,
                message=CONFLICT_MESSAGE,
                metadata={
                    "run_id": None,
                    "steps": 0,
                    "duration_ms": 0,
                    "termination": StopReason.CONFLICT.value,
                    "active_run_id": self._current_run_id,
                },
            )

        try:
            state = AgentState(run_id=f"run_{uuid.uuid4().hex}")
            self._current_run_id = state.run_id
            return self._execute(goal, state)
        finally:
            # Cancels only land while the run lock is held
            with self._state_lock:
                self._cancel_event.clear()
                self._current_run_id = None
                self._run_lock.release()

    def cancel_current_run(self) -> None:
        """Ask the active run to stop at its next checkpoint."""
        with self._state_lock:
            if self.is_agent_running():
                logger.info(f"🛑 Cancelling run {self._current_run_id}")
                self._cancel_event.set()

    def is_agent_running(self) -> bool:
        return self._run_lock.locked()

    def dispose(self) -> None:
        """Release the orchestrator; cancels any active run."""
        self.cancel_current_run()

    # ------------------------------------------------------------------
    # Run phases
    # ------------------------------------------------------------------

    def _execute(self, goal: AgentGoal, state: AgentState) -> RunResult:
        start_time = self._clock()
        logger.info(f"🎯 Starting run {state.run_id} for objective: {goal.objective[:80]}")

        try:
            constraints = Constraints.resolve(goal.constraints, self.default_constraints)
            state.governor = ConstraintGovernor(constraints, clock=self._clock)
            state.governor.start()

            # 1. Perceive
            state.snapshot = self.perceiver.perceive(goal.objective, goal.context)
            state.transcript.append(Role.SYSTEM, build_system_prompt(state.snapshot))
            state.transcript.append(Role.USER, goal.objective)

            # 2. Plan & Act
            stop_reason = self._loop(state)
            logger.info(
                f"✅ Run {state.run_id} ended ({stop_reason.value}) after "
                f"{state.governor.steps} steps, {len(state.tools_used)} tool calls"
            )

            # 3. Reflect
            if stop_reason is StopReason.CANCELLED:
                reflection = REFLECTION_CANCELLED
            else:
                reflection = self.reflection_engine.reflect(
                    goal.objective, state.transcript, state.tools_used
                )
            self._store_execution(goal, state, reflection, stop_reason)

        except Exception as e:
            logger.error(f"❌ Run {state.run_id} failed: {e}", exc_info=True)
            return RunResult(
                success=False,
                message=str(e) or "An error occurred",
                tools_used=list(state.tools_used),
                metadata=self._metadata(state, start_time, StopReason.ERROR),
            )

        if stop_reason is StopReason.CANCELLED:
            message = CANCELLED_MESSAGE
        else:
            message = state.transcript.last_assistant_text() or DEFAULT_COMPLETION_MESSAGE

        return RunResult(
            success=True,
            message=message,
            tools_used=list(state.tools_used),
            reflection=reflection,
            metadata=self._metadata(state, start_time, stop_reason),
        )

    def _loop(self, state: AgentState) -> StopReason:
        """Plan/act iterations until done, a ceiling, or cancellation."""
        governor = state.governor
        snapshot = state.snapshot

        while True:
            if self._cancel_event.is_set():
                return StopReason.CANCELLED

            if not governor.can_continue():
                reason = governor.stop_reason()
                logger.warning(f"⚠️  Run {state.run_id} stopped by ceiling: {reason.value}")
                return reason

            decision = self.planner.decide(state.transcript.to_messages(), snapshot.tool_specs)
            governor.record_step()

            if decision.is_final:
                state.transcript.append(Role.ASSISTANT, decision.content or DONE_FALLBACK_MESSAGE)
                return StopReason.COMPLETED

            if decision.content:
                state.transcript.append(Role.ASSISTANT, decision.content)

            for tool_call in decision.tool_calls:
                if self._cancel_event.is_set():
                    break
                if not governor.can_run_tool():
                    logger.warning(
                        f"⚠️  Reached max tool calls limit ({governor.constraints.max_tools}), "
                        f"skipping remaining calls"
                    )
                    break

                result = self.tool_executor.execute(
                    tool_call, run_id=state.run_id, role=snapshot.role
                )
                governor.record_tool()
                state.tools_used.append(tool_call.name)
                if not result.ok:
                    state.failed_tools.append(tool_call.name)

                state.transcript.append(
                    Role.TOOL,
                    json.dumps(result.to_dict(), default=str),
                    name=tool_call.name,
                )

                if self._cancel_event.is_set():
                    break

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    def _store_execution(
        self,
        goal: AgentGoal,
        state: AgentState,
        reflection: str,
        stop_reason: StopReason,
    ) -> None:
        """Write the interaction record, plus a pattern record when tools were used."""
        timestamp = datetime.now(timezone.utc).isoformat()

        self._append_memory(MemoryRecord.create(
            type=MemoryType.INTERACTION,
            content={
                "objective": goal.objective,
                "tools_used": list(state.tools_used),
                "reflection": reflection,
                "termination": stop_reason.value,
                "run_id": state.run_id,
                "timestamp": timestamp,
            },
            importance=INTERACTION_IMPORTANCE,
        ))

        if not state.tools_used:
            return

        # Pattern text is composed here from tool names, never taken from model output
        tools = list(dict.fromkeys(state.tools_used))
        succeeded = state.any_tool_succeeded
        content: Dict[str, Any] = {
            "pattern": PATTERN_TEMPLATE.format(objective=goal.objective, tools=", ".join(tools)),
            "objective": goal.objective,
            "tools": tools,
            "success": succeeded,
        }
        if _is_useful_reflection(reflection):
            content["reflection"] = reflection

        self._append_memory(MemoryRecord.create(
            type=MemoryType.PATTERN,
            content=content,
            importance=PATTERN_IMPORTANCE if succeeded else UNVERIFIED_PATTERN_IMPORTANCE,
        ))

    def _append_memory(self, record: MemoryRecord) -> None:
        try:
            self.memory_store.append(record)
        except Exception as e:
            logger.error(f"❌ Failed to store {record.type.value} memory: {e}", exc_info=True)

    def _metadata(self, state: AgentState, start_time: float, reason: StopReason) -> Dict[str, Any]:
        return {
            "run_id": state.run_id,
            "steps": state.governor.steps if state.governor else 0,
            "duration_ms": int((self._clock() - start_time) * 1000),
            "termination": reason.value,
            "tool_calls": len(state.tools_used),
            "failed_tools": list(state.failed_tools),
        }


def _is_useful_reflection(reflection: Optional[str]) -> bool:
    if not reflection:
        return False
    if reflection in (REFLECTION_FALLBACK, REFLECTION_EMPTY, REFLECTION_CANCELLED):
        return False
    return len(reflection) <= MAX_PATTERN_REFLECTION_CHARS
