"""
Tool Registry - Registration, Discovery and Dispatch

Holds the named tools the planner may request and dispatches a named call
to its executor. The registry has no knowledge of the agent loop:
- Tool specs are registered once and never change afterwards
- Arguments are validated against each tool's JSON schema (jsonschema)
- Executors receive a deep copy of the arguments
- Every failure is folded into a ToolResult; execute() never raises

One registry is typically shared by every orchestrator in the process,
so all state is guarded by a lock.
"""

import copy
import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

logger = logging.getLogger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class RiskLevel(Enum):
    """How much damage a misfired call to the tool can do."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ToolSpec:
    """
    Schema surface of a tool, as advertised to the planner.

    Attributes:
        name: Unique tool name
        description: What the tool does (read by the model)
        parameters: JSON-schema object describing the arguments
        category: Free-form grouping (e.g. "database", "navigation")
        risk_level: Risk classification used for reporting
        allowed_roles: Roles that may use the tool; empty means everyone
    """
    name: str
    description: str
    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    category: str = "general"
    risk_level: RiskLevel = RiskLevel.LOW
    allowed_roles: Tuple[str, ...] = ()

    def is_allowed_for(self, role: Optional[str]) -> bool:
        """Check whether a caller with the given role may use this tool."""
        if not self.allowed_roles or role is None:
            return True
        return role in self.allowed_roles

    def to_schema(self) -> Dict[str, Any]:
        """Return the {name, description, parameters} surface sent to the planner."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": copy.deepcopy(self.parameters),
        }


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the planner."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """
    Uniform envelope for the outcome of one tool call.

    Attributes:
        tool_name: Name of the tool that was called
        ok: Whether the tool executed successfully
        value: Return value of the executor (when ok)
        error_message: Why the call failed (when not ok)
        execution_time_ms: Wall-clock time spent in the executor
    """
    tool_name: str
    ok: bool
    value: Any = None
    error_message: Optional[str] = None
    execution_time_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used for transcript entries and events."""
        data: Dict[str, Any] = {"tool": self.tool_name, "ok": self.ok}
        if self.ok:
            data["value"] = self.value
        else:
            data["error"] = self.error_message
        return data


class DuplicateToolError(ValueError):
    """Raised when a tool name is registered twice (configuration error)."""


ToolFunction = Callable[..., Any]


# ============================================================================
# TOOL REGISTRY
# ============================================================================

class ToolRegistry:
    """
    Name-indexed registry of tools.

    Adding a tool never requires editing the orchestrator: register a spec
    with its executor and the planner will see it on the next run.
    """

    def __init__(self):
        self._specs: Dict[str, ToolSpec] = {}
        self._executors: Dict[str, ToolFunction] = {}
        self._validators: Dict[str, Draft7Validator] = {}
        self._lock = threading.RLock()
        self._execution_count = 0
        self._success_count = 0

    def register(self, spec: ToolSpec, executor: ToolFunction) -> None:
        """
        Register a tool.

        Args:
            spec: The tool's schema surface
            executor: Callable invoked with the arguments as keyword args

        Raises:
            DuplicateToolError: If a tool with the same name already exists
            ValueError: If the parameter schema itself is invalid
        """
        if not callable(executor):
            raise ValueError(f"Executor for tool '{spec.name}' is not callable")

        try:
            Draft7Validator.check_schema(spec.parameters)
        except SchemaError as e:
            raise ValueError(f"Invalid parameter schema for tool '{spec.name}': {e.message}")

        with self._lock:
            if spec.name in self._specs:
                raise DuplicateToolError(f"Tool '{spec.name}' is already registered")
            self._specs[spec.name] = spec
            self._executors[spec.name] = executor
            self._validators[spec.name] = Draft7Validator(spec.parameters)

        logger.info(
            f"🔧 Registered tool: {spec.name} "
            f"({spec.category}, {spec.risk_level.value} risk)"
        )

    def get(self, name: str) -> Optional[ToolSpec]:
        """Get a tool spec by name, or None if it is not registered."""
        with self._lock:
            return self._specs.get(name)

    def names(self) -> List[str]:
        """Return all registered tool names in registration order."""
        with self._lock:
            return list(self._specs.keys())

    def get_tool_specs(self, role: Optional[str] = None) -> List[ToolSpec]:
        """
        Return the registered tool specs.

        Args:
            role: When given, only tools allowed for this role are returned

        Returns:
            List of ToolSpec in registration order
        """
        with self._lock:
            specs = list(self._specs.values())
        return [s for s in specs if s.is_allowed_for(role)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._specs)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._specs

    def execute(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        role: Optional[str] = None,
    ) -> ToolResult:
        """
        Dispatch a named call to its executor.

        Never raises: unknown tools, permission problems, invalid arguments
        and executor exceptions all come back as ToolResult(ok=False).

        Args:
            name: Tool name requested by the planner
            arguments: Tool arguments (copied before the executor sees them)
            role: Caller role, checked against the tool's allowed roles

        Returns:
            ToolResult describing the outcome
        """
        with self._lock:
            spec = self._specs.get(name)
            executor = self._executors.get(name)
            validator = self._validators.get(name)

        if spec is None:
            return ToolResult(
                tool_name=name,
                ok=False,
                error_message=f"Unknown tool '{name}': not found in registry",
            )

        if not spec.is_allowed_for(role):
            return ToolResult(
                tool_name=name,
                ok=False,
                error_message=(
                    f"Insufficient permissions. Tool '{name}' requires role: "
                    f"{', '.join(spec.allowed_roles)}"
                ),
            )

        args = copy.deepcopy(arguments) if arguments else {}
        if not isinstance(args, dict):
            return ToolResult(
                tool_name=name,
                ok=False,
                error_message=f"Arguments for '{name}' must be an object",
            )

        error = self._validate(validator, args)
        if error:
            return ToolResult(
                tool_name=name,
                ok=False,
                error_message=f"Invalid arguments for '{name}': {error}",
            )

        start_time = time.monotonic()
        try:
            value = executor(**args)
            result = self._normalize(name, value)
        except Exception as e:
            logger.error(f"❌ Tool {name} execution failed: {e}", exc_info=True)
            result = ToolResult(
                tool_name=name,
                ok=False,
                error_message=f"Tool execution failed: {e}",
            )
        result.execution_time_ms = int((time.monotonic() - start_time) * 1000)

        with self._lock:
            self._execution_count += 1
            if result.ok:
                self._success_count += 1

        logger.debug(
            f"Executed {name}: {'SUCCESS' if result.ok else 'FAILED'} "
            f"({result.execution_time_ms}ms)"
        )
        return result

    @staticmethod
    def _validate(validator: Draft7Validator, args: Dict[str, Any]) -> Optional[str]:
        """Return the first schema violation message, or None if args are valid."""
        errors = sorted(validator.iter_errors(args), key=lambda e: list(e.path))
        if not errors:
            return None
        first = errors[0]
        location = ".".join(str(p) for p in first.path)
        return f"{location}: {first.message}" if location else first.message

    @staticmethod
    def _normalize(name: str, value: Any) -> ToolResult:
        """Turn an executor return value into a ToolResult.

        Executors may report failure without raising by returning
        {"success": False, "error": "..."}.
        """
        if isinstance(value, dict) and value.get("success") is False:
            return ToolResult(
                tool_name=name,
                ok=False,
                value=value,
                error_message=str(value.get("error") or "Tool reported failure"),
            )
        return ToolResult(tool_name=name, ok=True, value=value)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get registry statistics.

        Returns:
            Dict with tool counts by category and risk, total executions
            and the success rate of those executions
        """
        with self._lock:
            specs = list(self._specs.values())
            executions = self._execution_count
            successes = self._success_count

        return {
            "total_tools": len(specs),
            "tools_by_category": dict(Counter(s.category for s in specs)),
            "tools_by_risk": dict(Counter(s.risk_level.value for s in specs)),
            "executions": executions,
            "success_rate": successes / executions if executions else 0.0,
        }
