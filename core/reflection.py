"""
Reflection Engine

Post-run critique. Asks a cheaper model what worked and what to improve
next time. Strictly best-effort: a failed reflection never fails a run.
"""

import logging
from typing import Callable, Iterable, Optional

from config import (
    REFLECTION_EMPTY,
    REFLECTION_FALLBACK,
    REFLECTION_MAX_TOKENS,
    REFLECTION_MODEL,
    REFLECTION_PROMPT,
    REFLECTION_SYSTEM_PROMPT,
    format_prompt,
)

logger = logging.getLogger(__name__)

# Signature of ai.call_llm: (prompt, system_instruction=..., max_tokens=..., model_name=...) -> str
TextGenerator = Callable[..., str]


class ReflectionEngine:
    """
    Produces a short reflection on a finished run.

    Args:
        generate: Text generation function (defaults to ai.call_llm)
        model_name: Model used for reflections
        max_tokens: Output budget for the reflection
    """

    def __init__(
        self,
        generate: Optional[TextGenerator] = None,
        model_name: str = REFLECTION_MODEL,
        max_tokens: int = REFLECTION_MAX_TOKENS,
    ):
        if generate is None:
            from ai import call_llm
            generate = call_llm
        self._generate = generate
        self.model_name = model_name
        self.max_tokens = max_tokens

    def reflect(self, objective: str, transcript: Iterable, tools_used: Iterable[str]) -> str:
        """
        Reflect on a run.

        Args:
            objective: The run's objective
            transcript: The run's transcript (only its length is reported)
            tools_used: Tool names invoked during the run

        Returns:
            Reflection text, or a fixed fallback string on any failure
        """
        try:
            prompt = format_prompt(
                REFLECTION_PROMPT,
                objective=objective,
                tools_used=", ".join(tools_used) or "none",
                message_count=len(list(transcript)),
            )
            text = self._generate(
                prompt,
                system_instruction=REFLECTION_SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
                model_name=self.model_name,
            )
        except Exception as e:
            logger.warning(f"⚠️  Reflection failed: {e}")
            return REFLECTION_FALLBACK

        text = (text or "").strip() if isinstance(text, str) else ""
        return text or REFLECTION_EMPTY
