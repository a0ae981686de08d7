"""
AI Infrastructure Module

This module provides the LLM infrastructure for the agent runtime:
- Gemini API client with error handling and retry logic
- Langfuse observability integration
- Token usage tracking
- The Planner adapter used by the agent loop

All LLM calls should go through this module to ensure consistent
observability, error handling, and configuration.
"""

from .llm_service import (
    # Main LLM functions
    call_llm,
    call_llm_with_tools,

    # Tool schema helpers
    to_gemini_schema,
    to_function_declarations,

    # Utility functions
    validate_model_available,
    health_check,

    # Observability
    get_langfuse_client,
)

from .planner import (
    Planner,
    PlannerDecision,
    GeminiPlanner,
    transcript_to_contents,
)

__all__ = [
    "call_llm",
    "call_llm_with_tools",
    "to_gemini_schema",
    "to_function_declarations",
    "validate_model_available",
    "health_check",
    "get_langfuse_client",
    "Planner",
    "PlannerDecision",
    "GeminiPlanner",
    "transcript_to_contents",
]
