"""
Application settings and configuration values.

This module centralizes all configuration values including:
- API keys and credentials
- Model parameters (planner and reflection models)
- Agent loop ceilings and memory settings

Environment variables are loaded via python-dotenv.
"""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================================
# LLM CONFIGURATION
# ============================================================================

# Gemini API Settings
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")

# Model Parameters
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "8192"))
TOP_P = float(os.getenv("TOP_P", "0.95"))
TOP_K = int(os.getenv("TOP_K", "40"))

# Planner runs at low temperature for consistent tool selection
PLANNER_TEMPERATURE = float(os.getenv("PLANNER_TEMPERATURE", "0.3"))

# Reflection uses a cheaper model with a small output budget
REFLECTION_MODEL = os.getenv("REFLECTION_MODEL", "gemini-2.5-flash-lite")
REFLECTION_MAX_TOKENS = int(os.getenv("REFLECTION_MAX_TOKENS", "100"))

# Retry and Timeout Settings
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_DELAY = float(os.getenv("RETRY_DELAY", "1.0"))  # seconds
TIMEOUT = int(os.getenv("TIMEOUT", "30"))  # seconds


def require_google_api_key() -> str:
    """
    Return the Gemini API key or fail loudly.

    Called the first time a Gemini model is built, not at import.

    Raises:
        ValueError: If GOOGLE_API_KEY is not configured
    """
    if not GOOGLE_API_KEY:
        raise ValueError(
            "GOOGLE_API_KEY not found in environment variables. "
            "Please set it in your .env file."
        )
    return GOOGLE_API_KEY

# ============================================================================
# LANGFUSE OBSERVABILITY
# ============================================================================

LANGFUSE_PUBLIC_KEY = os.getenv("LANGFUSE_PUBLIC_KEY")
LANGFUSE_SECRET_KEY = os.getenv("LANGFUSE_SECRET_KEY")
LANGFUSE_HOST = os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")

# Enable/disable Langfuse tracing
LANGFUSE_ENABLED = os.getenv("LANGFUSE_ENABLED", "true").lower() == "true"

if LANGFUSE_ENABLED and (not LANGFUSE_PUBLIC_KEY or not LANGFUSE_SECRET_KEY):
    LANGFUSE_ENABLED = False

# ============================================================================
# AGENT LOOP CEILINGS
# ============================================================================

AGENT_MAX_STEPS = int(os.getenv("AGENT_MAX_STEPS", "4"))
AGENT_MAX_TOOLS = int(os.getenv("AGENT_MAX_TOOLS", "5"))
AGENT_TIMEOUT_MS = int(os.getenv("AGENT_TIMEOUT_MS", "20000"))

# Role assumed when neither the goal nor the profile provider names one
DEFAULT_USER_ROLE = os.getenv("DEFAULT_USER_ROLE", "teacher")

# ============================================================================
# MEMORY SETTINGS
# ============================================================================

# Memories fetched during perception vs. memories rendered into the prompt
MEMORY_RETRIEVAL_LIMIT = int(os.getenv("MEMORY_RETRIEVAL_LIMIT", "8"))
MEMORY_PROMPT_LIMIT = int(os.getenv("MEMORY_PROMPT_LIMIT", "3"))

# Importance assigned to records written at the end of a run
INTERACTION_IMPORTANCE = 3
PATTERN_IMPORTANCE = 5
UNVERIFIED_PATTERN_IMPORTANCE = 2

# Optional JSON file backing the memory store (in-memory when unset)
MEMORY_STORE_PATH: Optional[Path] = (
    Path(os.environ["MEMORY_STORE_PATH"]) if os.getenv("MEMORY_STORE_PATH") else None
)

# ============================================================================
# DEVELOPMENT / DEBUG SETTINGS
# ============================================================================

DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
