"""
Configuration module for the agent runtime.

This module provides centralized configuration management including:
- Application settings (models, API keys, loop ceilings, memory)
- Prompt templates and fixed fallback texts

All configurable values should be imported from this module to ensure
consistency across the application.
"""

from .settings import (
    # API Keys
    GOOGLE_API_KEY,
    require_google_api_key,

    # LLM Settings
    GEMINI_MODEL,
    TEMPERATURE,
    MAX_TOKENS,
    TOP_P,
    TOP_K,
    PLANNER_TEMPERATURE,
    REFLECTION_MODEL,
    REFLECTION_MAX_TOKENS,
    MAX_RETRIES,
    RETRY_DELAY,
    TIMEOUT,

    # Langfuse Settings
    LANGFUSE_PUBLIC_KEY,
    LANGFUSE_SECRET_KEY,
    LANGFUSE_HOST,
    LANGFUSE_ENABLED,

    # Agent Settings
    AGENT_MAX_STEPS,
    AGENT_MAX_TOOLS,
    AGENT_TIMEOUT_MS,
    DEFAULT_USER_ROLE,

    # Memory Settings
    MEMORY_RETRIEVAL_LIMIT,
    MEMORY_PROMPT_LIMIT,
    MEMORY_STORE_PATH,
    INTERACTION_IMPORTANCE,
    PATTERN_IMPORTANCE,
    UNVERIFIED_PATTERN_IMPORTANCE,

    # Debug
    DEBUG,
    LOG_LEVEL,
)

from .prompts import (
    # System Prompts
    AGENT_SYSTEM_PROMPT,
    NO_MEMORIES_TEXT,
    NO_CAPABILITIES_TEXT,
    REFLECTION_SYSTEM_PROMPT,
    REFLECTION_PROMPT,

    # Fallback Texts
    PLANNER_APOLOGY,
    DONE_FALLBACK_MESSAGE,
    DEFAULT_COMPLETION_MESSAGE,
    CANCELLED_MESSAGE,
    CONFLICT_MESSAGE,
    REFLECTION_FALLBACK,
    REFLECTION_EMPTY,
    REFLECTION_CANCELLED,
    PATTERN_TEMPLATE,

    # Utilities
    format_prompt,
)

__all__ = [
    # Settings
    "GOOGLE_API_KEY",
    "require_google_api_key",
    "GEMINI_MODEL",
    "TEMPERATURE",
    "MAX_TOKENS",
    "TOP_P",
    "TOP_K",
    "PLANNER_TEMPERATURE",
    "REFLECTION_MODEL",
    "REFLECTION_MAX_TOKENS",
    "MAX_RETRIES",
    "RETRY_DELAY",
    "TIMEOUT",
    "LANGFUSE_PUBLIC_KEY",
    "LANGFUSE_SECRET_KEY",
    "LANGFUSE_HOST",
    "LANGFUSE_ENABLED",
    "AGENT_MAX_STEPS",
    "AGENT_MAX_TOOLS",
    "AGENT_TIMEOUT_MS",
    "DEFAULT_USER_ROLE",
    "MEMORY_RETRIEVAL_LIMIT",
    "MEMORY_PROMPT_LIMIT",
    "MEMORY_STORE_PATH",
    "INTERACTION_IMPORTANCE",
    "PATTERN_IMPORTANCE",
    "UNVERIFIED_PATTERN_IMPORTANCE",
    "DEBUG",
    "LOG_LEVEL",

    # Prompts
    "AGENT_SYSTEM_PROMPT",
    "NO_MEMORIES_TEXT",
    "NO_CAPABILITIES_TEXT",
    "REFLECTION_SYSTEM_PROMPT",
    "REFLECTION_PROMPT",
    "PLANNER_APOLOGY",
    "DONE_FALLBACK_MESSAGE",
    "DEFAULT_COMPLETION_MESSAGE",
    "CANCELLED_MESSAGE",
    "CONFLICT_MESSAGE",
    "REFLECTION_FALLBACK",
    "REFLECTION_EMPTY",
    "REFLECTION_CANCELLED",
    "PATTERN_TEMPLATE",
    "format_prompt",
]
