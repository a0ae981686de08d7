"""
Tool Executor

Runs one planner-requested tool call through the registry, guarantees a
ToolResult comes back no matter what happened, and publishes an
ExecutionEvent for observers.
"""

import copy
import logging
from typing import Any, Dict, Optional

from tools.registry import ToolCall, ToolRegistry, ToolResult
from .events import EventBus, ExecutionEvent, TOOL_EXECUTED

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Executes ToolCalls against a shared ToolRegistry."""

    def __init__(self, registry: ToolRegistry, event_bus: Optional[EventBus] = None):
        self.registry = registry
        self.event_bus = event_bus

    def execute(
        self,
        tool_call: ToolCall,
        run_id: Optional[str] = None,
        role: Optional[str] = None,
    ) -> ToolResult:
        """
        Execute a single tool call.

        Args:
            tool_call: The call requested by the planner
            run_id: Identifier of the run issuing the call (for events)
            role: Caller role, forwarded to the registry's permission check

        Returns:
            ToolResult produced exactly once for this call
        """
        logger.info(f"🔧 Calling tool: {tool_call.name} with args: {tool_call.arguments}")

        try:
            result = self.registry.execute(tool_call.name, tool_call.arguments, role=role)
        except Exception as e:
            # Registry.execute should never raise
            logger.error(f"❌ Registry failed on {tool_call.name}: {e}", exc_info=True)
            result = ToolResult(tool_name=tool_call.name, ok=False, error_message=str(e))

        if result.ok:
            logger.info(f"✅ Tool {tool_call.name} succeeded ({result.execution_time_ms}ms)")
        else:
            logger.warning(f"❌ Tool {tool_call.name} failed: {result.error_message}")

        self._publish(tool_call, result, run_id)
        return result

    def _publish(self, tool_call: ToolCall, result: ToolResult, run_id: Optional[str]) -> None:
        if self.event_bus is None:
            return
        try:
            event = ExecutionEvent(
                tool=tool_call.name,
                args=_event_args(tool_call.arguments),
                result=result.to_dict(),
                run_id=run_id,
            )
            self.event_bus.publish(TOOL_EXECUTED, event)
        except Exception as e:
            logger.warning(f"⚠️  Failed to publish execution event: {e}")


def _event_args(arguments: Any) -> Dict[str, Any]:
    # Handlers run on pool threads; they get their own copy
    if not isinstance(arguments, dict):
        return {}
    return copy.deepcopy(arguments)
