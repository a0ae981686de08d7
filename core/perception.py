"""
Context Perceiver

Assembles what the agent knows before it starts planning: who is asking,
what it remembers about similar objectives, which tools it may use and
where in the application the user currently is.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from config import (
    AGENT_SYSTEM_PROMPT,
    DEFAULT_USER_ROLE,
    MEMORY_PROMPT_LIMIT,
    MEMORY_RETRIEVAL_LIMIT,
    NO_CAPABILITIES_TEXT,
    NO_MEMORIES_TEXT,
    format_prompt,
)
from memory import MemoryRecord, MemoryStore
from tools.registry import ToolRegistry, ToolSpec

logger = logging.getLogger(__name__)

# Returns the current user's profile, e.g. {"role": "principal", ...}
ProfileProvider = Callable[[], Optional[Dict[str, Any]]]
# Returns the ambient UI state, e.g. {"screen": "students"}
ScreenContextProvider = Callable[[], Optional[Dict[str, Any]]]


@dataclass
class PerceptionSnapshot:
    """
    Everything the agent knows at the start of a run.

    Attributes:
        role: Caller role (teacher, principal, parent...)
        memories: Memories relevant to the objective, most relevant first
        tool_specs: Tools available to this role
        screen_context: Ambient application state
        timestamp: When the snapshot was taken (UTC)
    """
    role: str
    memories: List[MemoryRecord] = field(default_factory=list)
    tool_specs: List[ToolSpec] = field(default_factory=list)
    screen_context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def screen(self) -> str:
        return str(self.screen_context.get("screen") or "unknown")


class ContextPerceiver:
    """
    Builds PerceptionSnapshots.

    Args:
        registry: Shared tool registry
        memory_store: Shared memory store
        profile_provider: Optional callable returning the current profile
        screen_context_provider: Optional callable returning UI state
        memory_limit: Number of memories retrieved per objective
    """

    def __init__(
        self,
        registry: ToolRegistry,
        memory_store: MemoryStore,
        profile_provider: Optional[ProfileProvider] = None,
        screen_context_provider: Optional[ScreenContextProvider] = None,
        memory_limit: int = MEMORY_RETRIEVAL_LIMIT,
    ):
        self.registry = registry
        self.memory_store = memory_store
        self.profile_provider = profile_provider
        self.screen_context_provider = screen_context_provider
        self.memory_limit = memory_limit

    def perceive(self, objective: str, context: Optional[Dict[str, Any]] = None) -> PerceptionSnapshot:
        """
        Gather context for an objective.

        Args:
            objective: The natural-language goal of the run
            context: Opaque goal context; "role" and "screen" keys are honoured

        Returns:
            PerceptionSnapshot
        """
        context = context or {}
        role = self._resolve_role(context)

        return PerceptionSnapshot(
            role=role,
            memories=self._recall(objective),
            tool_specs=self.registry.get_tool_specs(role=role),
            screen_context=self._resolve_screen(context),
        )

    def _resolve_role(self, context: Dict[str, Any]) -> str:
        if context.get("role"):
            return str(context["role"])

        if self.profile_provider is not None:
            try:
                profile = self.profile_provider() or {}
                if profile.get("role"):
                    return str(profile["role"])
            except Exception as e:
                logger.warning(f"⚠️  Profile lookup failed: {e}")

        return DEFAULT_USER_ROLE

    def _resolve_screen(self, context: Dict[str, Any]) -> Dict[str, Any]:
        if context.get("screen"):
            return {"screen": context["screen"]}

        if self.screen_context_provider is not None:
            try:
                return dict(self.screen_context_provider() or {})
            except Exception as e:
                logger.warning(f"⚠️  Screen context lookup failed: {e}")

        return {}

    def _recall(self, objective: str) -> List[MemoryRecord]:
        # A broken memory backend degrades to "no memories", not a failed run
        try:
            return self.memory_store.retrieve_relevant(objective, self.memory_limit)
        except Exception as e:
            logger.warning(f"⚠️  Memory retrieval failed: {e}")
            return []


def build_system_prompt(snapshot: PerceptionSnapshot, memory_limit: int = MEMORY_PROMPT_LIMIT) -> str:
    """Render the agent system prompt from a perception snapshot."""
    memory_lines = [
        f"- {json.dumps(m.content, sort_keys=True, default=str)}"
        for m in snapshot.memories[:memory_limit]
    ]
    capabilities = ", ".join(spec.name for spec in snapshot.tool_specs)

    return format_prompt(
        AGENT_SYSTEM_PROMPT,
        role=snapshot.role,
        screen=snapshot.screen,
        timestamp=snapshot.timestamp.isoformat(),
        memories="\n".join(memory_lines) or NO_MEMORIES_TEXT,
        capabilities=capabilities or NO_CAPABILITIES_TEXT,
    )
