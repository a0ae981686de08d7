"""
Agent Service - Composition Root

Wires the agent runtime together for the application:
1. Owns the shared tool registry, memory store and event bus
2. Creates one orchestrator per session
3. Turns plain objectives into AgentGoals and runs them
4. Cancels and disposes sessions

This is the main entry point for UI and API layers.
"""

import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from config import MEMORY_STORE_PATH
from ai.planner import GeminiPlanner, Planner
from core import (
    AgentGoal,
    AgentOrchestrator,
    ContextPerceiver,
    ConstraintOverrides,
    EventBus,
    ReflectionEngine,
    RunResult,
    StopReason,
)
from core.perception import ProfileProvider, ScreenContextProvider
from memory import InMemoryMemoryStore, JsonFileMemoryStore, MemoryStore
from tools import ToolRegistry, ToolSpec

logger = logging.getLogger(__name__)


def create_memory_store(path: Optional[Union[str, Path]] = MEMORY_STORE_PATH) -> MemoryStore:
    """JSON-backed store when a path is configured, in-process otherwise."""
    if path:
        logger.info(f"💾 Using JSON memory store at {path}")
        return JsonFileMemoryStore(path)
    return InMemoryMemoryStore()


class AgentService:
    """
    Main service coordinating agent runs across sessions.

    Registry, memory and event bus are shared; each session gets its own
    orchestrator, and a busy session never blocks another.
    """

    def __init__(
        self,
        registry: Optional[ToolRegistry] = None,
        memory_store: Optional[MemoryStore] = None,
        event_bus: Optional[EventBus] = None,
        planner_factory: Optional[Callable[[], Planner]] = None,
        reflection_engine: Optional[ReflectionEngine] = None,
        profile_provider: Optional[ProfileProvider] = None,
        screen_context_provider: Optional[ScreenContextProvider] = None,
    ):
        """
        Initialize the agent service.

        Args:
            registry: Shared tool registry (empty if omitted)
            memory_store: Shared memory (see create_memory_store)
            event_bus: Shared event bus for tool execution events
            planner_factory: Builds a planner per session (Gemini by default)
            reflection_engine: Shared reflection engine
            profile_provider: Returns the current user's profile
            screen_context_provider: Returns the current UI state
        """
        self.registry = registry if registry is not None else ToolRegistry()
        self.memory_store = memory_store if memory_store is not None else create_memory_store()
        self.event_bus = event_bus or EventBus()
        self.planner_factory = planner_factory or GeminiPlanner
        self._reflection_engine = reflection_engine
        self.perceiver = ContextPerceiver(
            self.registry,
            self.memory_store,
            profile_provider=profile_provider,
            screen_context_provider=screen_context_provider,
        )

        self._sessions: Dict[str, AgentOrchestrator] = {}
        self._lock = threading.Lock()

        logger.info(f"🤖 AgentService initialized with {len(self.registry)} tools")

    @property
    def reflection_engine(self) -> ReflectionEngine:
        if self._reflection_engine is None:
            self._reflection_engine = ReflectionEngine()
        return self._reflection_engine

    def register_tool(self, spec: ToolSpec, executor: Callable[..., Any]) -> None:
        """Register a tool on the shared registry (visible to all sessions)."""
        self.registry.register(spec, executor)

    @property
    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _new_orchestrator(self) -> AgentOrchestrator:
        return AgentOrchestrator(
            planner=self.planner_factory(),
            registry=self.registry,
            memory_store=self.memory_store,
            reflection_engine=self.reflection_engine,
            event_bus=self.event_bus,
            perceiver=self.perceiver,
        )

    def get_orchestrator(self, session_id: str) -> AgentOrchestrator:
        """Return the session's orchestrator, creating it on first use."""
        with self._lock:
            orchestrator = self._sessions.get(session_id)
            if orchestrator is None:
                orchestrator = self._new_orchestrator()
                self._sessions[session_id] = orchestrator
                logger.debug(f"Created orchestrator for session {session_id}")
            return orchestrator

    def run_objective(
        self,
        objective: str,
        session_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        constraints: Optional[Union[ConstraintOverrides, Dict[str, int]]] = None,
    ) -> RunResult:
        """
        Run one objective in a session.

        Args:
            objective: The natural-language goal
            session_id: Session identifier. If omitted the run gets a generated
                id and a throwaway orchestrator that is not kept as a session
            context: Goal context ("role", "screen"...)
            constraints: Optional ceiling overrides

        Returns:
            RunResult (invalid input yields success=False instead of raising)
        """
        one_shot = not session_id
        session_id = session_id or str(uuid.uuid4())
        logger.info(f"💬 Running objective in session {session_id}")

        try:
            goal = AgentGoal(objective=objective, context=context, constraints=constraints)
        except (TypeError, ValueError) as e:
            logger.error(f"❌ Invalid goal: {e}")
            return RunResult(
                success=False,
                message=str(e),
                metadata={
                    "run_id": None,
                    "steps": 0,
                    "duration_ms": 0,
                    "termination": StopReason.ERROR.value,
                    "session_id": session_id,
                },
            )

        if one_shot:
            # Generated sessions are not kept
            orchestrator = self._new_orchestrator()
            try:
                result = orchestrator.run(goal)
            finally:
                orchestrator.dispose()
        else:
            result = self.get_orchestrator(session_id).run(goal)
        result.metadata["session_id"] = session_id
        return result

    def cancel(self, session_id: str) -> bool:
        """Cancel the session's active run. Returns False if nothing was running."""
        with self._lock:
            orchestrator = self._sessions.get(session_id)
        if orchestrator is None or not orchestrator.is_agent_running():
            return False
        orchestrator.cancel_current_run()
        return True

    def is_running(self, session_id: str) -> bool:
        with self._lock:
            orchestrator = self._sessions.get(session_id)
        return orchestrator is not None and orchestrator.is_agent_running()

    def end_session(self, session_id: str) -> None:
        """Dispose of a session's orchestrator."""
        with self._lock:
            orchestrator = self._sessions.pop(session_id, None)
        if orchestrator is not None:
            orchestrator.dispose()

    def shutdown(self) -> None:
        """Dispose every session and stop event delivery."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for orchestrator in sessions:
            orchestrator.dispose()
        self.event_bus.shutdown(wait=True)
        logger.info("👋 AgentService shut down")


# ============================================================================
# CONVENIENCE FUNCTION
# ============================================================================

def run_objective(
    objective: str,
    registry: Optional[ToolRegistry] = None,
    context: Optional[Dict[str, Any]] = None,
    constraints: Optional[Union[ConstraintOverrides, Dict[str, int]]] = None,
    **kwargs
) -> RunResult:
    """
    Convenience function to run a single objective with a throwaway service.

    Args:
        objective: The natural-language goal
        registry: Tools to expose
        context: Goal context
        constraints: Optional ceiling overrides
        **kwargs: Passed to AgentService

    Returns:
        RunResult
    """
    service = AgentService(registry=registry, **kwargs)
    try:
        return service.run_objective(objective, context=context, constraints=constraints)
    finally:
        service.shutdown()
