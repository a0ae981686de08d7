"""
Constraint Governor

Keeps one run inside its ceilings: planner steps, tool invocations and
wall-clock time. Hitting a ceiling is a normal way for a run to end, so
the governor reports a stop reason instead of raising.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from config import AGENT_MAX_STEPS, AGENT_MAX_TOOLS, AGENT_TIMEOUT_MS


class StopReason(Enum):
    """Why the agent loop ended."""
    COMPLETED = "completed"
    MAX_STEPS = "max_steps"
    MAX_TOOLS = "max_tools"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    CONFLICT = "conflict"
    ERROR = "error"


def _check_ceiling(name: str, value: Optional[int]) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")


@dataclass(frozen=True)
class ConstraintOverrides:
    """Per-goal ceilings; None means "use the configured default"."""
    max_steps: Optional[int] = None
    max_tools: Optional[int] = None
    timeout_ms: Optional[int] = None

    def __post_init__(self):
        _check_ceiling("max_steps", self.max_steps)
        _check_ceiling("max_tools", self.max_tools)
        _check_ceiling("timeout_ms", self.timeout_ms)


@dataclass(frozen=True)
class Constraints:
    """Resolved ceilings for one run."""
    max_steps: int = AGENT_MAX_STEPS
    max_tools: int = AGENT_MAX_TOOLS
    timeout_ms: int = AGENT_TIMEOUT_MS

    def __post_init__(self):
        _check_ceiling("max_steps", self.max_steps)
        _check_ceiling("max_tools", self.max_tools)
        _check_ceiling("timeout_ms", self.timeout_ms)

    @classmethod
    def resolve(
        cls,
        overrides: Optional[ConstraintOverrides],
        defaults: Optional["Constraints"] = None,
    ) -> "Constraints":
        """Apply defaults to the fields a goal left unset (0 is kept as-is)."""
        defaults = defaults or cls()
        if overrides is None:
            return defaults
        return cls(
            max_steps=defaults.max_steps if overrides.max_steps is None else overrides.max_steps,
            max_tools=defaults.max_tools if overrides.max_tools is None else overrides.max_tools,
            timeout_ms=defaults.timeout_ms if overrides.timeout_ms is None else overrides.timeout_ms,
        )


class ConstraintGovernor:
    """
    Tracks steps, tool invocations and elapsed time against Constraints.

    Args:
        constraints: Resolved ceilings for the run
        clock: Monotonic clock in seconds (injectable for tests)
    """

    def __init__(self, constraints: Constraints, clock: Callable[[], float] = time.monotonic):
        self.constraints = constraints
        self._clock = clock
        self._started_at: Optional[float] = None
        self.steps = 0
        self.tool_count = 0

    def start(self) -> None:
        self._started_at = self._clock()

    def elapsed_ms(self) -> int:
        if self._started_at is None:
            return 0
        return int((self._clock() - self._started_at) * 1000)

    def record_step(self) -> None:
        self.steps += 1

    def record_tool(self) -> None:
        self.tool_count += 1

    def stop_reason(self) -> Optional[StopReason]:
        """The ceiling that forbids another iteration, or None to keep going."""
        if self.steps >= self.constraints.max_steps:
            return StopReason.MAX_STEPS
        if self.tool_count >= self.constraints.max_tools:
            return StopReason.MAX_TOOLS
        if self.elapsed_ms() >= self.constraints.timeout_ms:
            return StopReason.TIMEOUT
        return None

    def can_continue(self) -> bool:
        return self.stop_reason() is None

    def can_run_tool(self) -> bool:
        return self.tool_count < self.constraints.max_tools
