"""
Planner - Adapter between the agent loop and the inference endpoint.

The planner is stateless: it receives the full ordered transcript and the
tool schemas, and answers with free text and/or tool-call requests. It is
the only place the runtime talks to a hosted model for planning.

Transport and inference failures never escape the adapter: they are turned
into an apology with no tool calls, so the orchestrator terminates the loop
through its normal "done" branch.
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from config import GEMINI_MODEL, PLANNER_APOLOGY, PLANNER_TEMPERATURE
from tools.registry import ToolCall, ToolSpec
from .llm_service import call_llm_with_tools, to_function_declarations

logger = logging.getLogger(__name__)


@dataclass
class PlannerDecision:
    """
    What the planner wants to do next.

    Attributes:
        content: Free text (final answer, or commentary next to tool calls)
        tool_calls: Tool invocations to execute, in order
    """
    content: Optional[str] = None
    tool_calls: List[ToolCall] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


class Planner(ABC):
    """Contract for planner adapters."""

    @abstractmethod
    def decide(
        self,
        transcript: Sequence[Dict[str, Any]],
        tool_specs: Sequence[Union[ToolSpec, Dict[str, Any]]],
    ) -> PlannerDecision:
        """
        Decide the next action.

        Args:
            transcript: Ordered role-tagged messages; must not be mutated
            tool_specs: Tools the model may request

        Returns:
            PlannerDecision with content and/or tool calls
        """


def _schema_of(spec: Union[ToolSpec, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(spec, ToolSpec):
        return spec.to_schema()
    return copy.deepcopy(dict(spec))


def transcript_to_contents(transcript: Sequence[Dict[str, Any]]) -> tuple:
    """
    Map transcript messages to Gemini's (system_instruction, contents).

    System entries become the system instruction; assistant entries become
    "model" turns; user and tool entries become "user" turns. Consecutive
    turns from the same side are merged into one content with several parts.
    """
    system_parts: List[str] = []
    contents: List[Dict[str, Any]] = []

    for message in transcript:
        role = message.get("role")
        text = message.get("content") or ""

        if role == "system":
            system_parts.append(text)
            continue

        if role == "assistant":
            gemini_role = "model"
        elif role == "tool":
            gemini_role = "user"
            text = f"Tool result ({message.get('name') or 'tool'}): {text}"
        else:
            gemini_role = "user"

        if not text:
            continue

        if contents and contents[-1]["role"] == gemini_role:
            contents[-1]["parts"].append(text)
        else:
            contents.append({"role": gemini_role, "parts": [text]})

    system_instruction = "\n\n".join(system_parts) if system_parts else None
    return system_instruction, contents


class GeminiPlanner(Planner):
    """
    Planner backed by Gemini function calling.

    Args:
        model_name: Gemini model used for planning
        temperature: Sampling temperature (low for consistent tool selection)
    """

    def __init__(
        self,
        model_name: str = GEMINI_MODEL,
        temperature: float = PLANNER_TEMPERATURE,
    ):
        self.model_name = model_name
        self.temperature = temperature

    def decide(
        self,
        transcript: Sequence[Dict[str, Any]],
        tool_specs: Sequence[Union[ToolSpec, Dict[str, Any]]],
    ) -> PlannerDecision:
        try:
            system_instruction, contents = transcript_to_contents(transcript)
            declarations = to_function_declarations([_schema_of(s) for s in tool_specs])

            response = call_llm_with_tools(
                contents=contents,
                tools=declarations,
                system_instruction=system_instruction,
                temperature=self.temperature,
                model_name=self.model_name,
                metadata={"component": "planner"},
            )
        except Exception as e:
            logger.error(f"❌ Planner call failed: {e}", exc_info=True)
            return PlannerDecision(content=PLANNER_APOLOGY, tool_calls=[])

        tool_calls = [
            ToolCall(name=tc["name"], arguments=dict(tc.get("args") or {}))
            for tc in response.get("tool_calls") or []
        ]
        return PlannerDecision(content=response.get("response_text"), tool_calls=tool_calls)
