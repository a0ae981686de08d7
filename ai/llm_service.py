"""
LLM Service - Gemini API Wrapper with Langfuse Observability

This service provides a robust interface to Google's Gemini API with:
- Automatic retry logic with exponential backoff
- Langfuse tracing for all LLM calls (when configured)
- Token usage tracking
- Support for function calling (tools)

All LLM interactions in the agent runtime should use this service.
"""

import time
import logging
from typing import Optional, Dict, List, Any, Union
from functools import wraps

import google.generativeai as genai
from google.generativeai.types import GenerationConfig, HarmCategory, HarmBlockThreshold
from langfuse import Langfuse, observe

from config import (
    require_google_api_key,
    GEMINI_MODEL,
    TEMPERATURE,
    MAX_TOKENS,
    TOP_P,
    TOP_K,
    MAX_RETRIES,
    RETRY_DELAY,
    TIMEOUT,
    LANGFUSE_PUBLIC_KEY,
    LANGFUSE_SECRET_KEY,
    LANGFUSE_HOST,
    LANGFUSE_ENABLED,
    DEBUG,
    LOG_LEVEL,
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if DEBUG else getattr(logging, LOG_LEVEL.upper(), logging.INFO)
)
logger = logging.getLogger(__name__)

# ============================================================================
# INITIALIZATION
# ============================================================================

_configured = False

# Initialize Langfuse client (if enabled)
_langfuse_client: Optional[Langfuse] = None

if LANGFUSE_ENABLED:
    try:
        _langfuse_client = Langfuse(
            public_key=LANGFUSE_PUBLIC_KEY,
            secret_key=LANGFUSE_SECRET_KEY,
            host=LANGFUSE_HOST,
        )
        logger.info("✅ Langfuse observability initialized")
    except Exception as e:
        logger.warning(f"⚠️  Langfuse initialization failed: {e}. Continuing without tracing.")
        _langfuse_client = None
else:
    logger.info("ℹ️  Langfuse observability disabled")


def get_langfuse_client() -> Optional[Langfuse]:
    """Get the Langfuse client instance."""
    return _langfuse_client


def _ensure_configured() -> None:
    """Configure the Gemini SDK on first use."""
    global _configured
    if not _configured:
        genai.configure(api_key=require_google_api_key())
        _configured = True


def traced(name: str):
    """
    Wrap a function in a Langfuse generation observation.

    No-op when Langfuse is disabled.
    """
    def decorator(func):
        if _langfuse_client is None:
            return func
        return observe(name=name, as_type="generation")(func)
    return decorator


def _record_usage(response: Any, model_name: str, latency: float) -> None:
    """Report token usage to Langfuse and the debug log."""
    usage = getattr(response, "usage_metadata", None)
    if usage is None:
        return

    if _langfuse_client:
        _langfuse_client.update_current_generation(
            model=model_name,
            usage_details={
                "input": usage.prompt_token_count,
                "output": usage.candidates_token_count,
                "total": usage.total_token_count,
            },
        )

    logger.debug(
        f"📊 Tokens: {usage.prompt_token_count} in, "
        f"{usage.candidates_token_count} out, "
        f"⏱️  {latency:.2f}s"
    )


# ============================================================================
# SAFETY SETTINGS
# ============================================================================

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
}


# ============================================================================
# GENERATION CONFIGURATION
# ============================================================================

def get_generation_config(
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    top_p: Optional[float] = None,
    top_k: Optional[int] = None,
) -> GenerationConfig:
    """
    Create a generation configuration for Gemini API calls.

    Args:
        temperature: Sampling temperature (0.0 - 2.0). Defaults to config value.
        max_tokens: Maximum tokens to generate. Defaults to config value.
        top_p: Nucleus sampling parameter. Defaults to config value.
        top_k: Top-k sampling parameter. Defaults to config value.

    Returns:
        GenerationConfig object
    """
    return GenerationConfig(
        temperature=TEMPERATURE if temperature is None else temperature,
        max_output_tokens=max_tokens or MAX_TOKENS,
        top_p=top_p or TOP_P,
        top_k=top_k or TOP_K,
    )


# ============================================================================
# TOOL SCHEMA CONVERSION
# ============================================================================

# Subset of JSON schema understood by Gemini function declarations
_GEMINI_SCHEMA_KEYS = {"type", "format", "description", "nullable", "enum", "items", "properties", "required"}


def to_gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a JSON-schema parameter object to Gemini's schema dialect.

    Type names are upper-cased and keywords Gemini rejects (bounds,
    patterns, additionalProperties...) are dropped; the registry still
    enforces them when the call is executed.
    """
    converted: Dict[str, Any] = {}
    for key, value in schema.items():
        if key not in _GEMINI_SCHEMA_KEYS:
            continue
        if key == "type" and isinstance(value, str):
            converted["type"] = value.upper()
        elif key == "properties":
            converted["properties"] = {
                name: to_gemini_schema(prop) for name, prop in value.items()
            }
        elif key == "items" and isinstance(value, dict):
            converted["items"] = to_gemini_schema(value)
        else:
            converted[key] = value
    return converted


def to_function_declarations(tool_schemas: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Turn {name, description, parameters} tool schemas into Gemini function declarations."""
    declarations = []
    for tool in tool_schemas:
        declaration = {"name": tool["name"], "description": tool.get("description", "")}
        parameters = tool.get("parameters") or {}
        # Gemini rejects OBJECT schemas without properties
        if parameters.get("properties"):
            declaration["parameters"] = to_gemini_schema(parameters)
        declarations.append(declaration)
    return declarations


def _to_plain(value: Any) -> Any:
    """Convert proto MapComposite/RepeatedComposite values to plain Python."""
    if isinstance(value, float) and value.is_integer():
        # Struct values arrive as doubles; restore integers
        return int(value)
    if isinstance(value, (str, bytes, int, float, bool)) or value is None:
        return value
    if hasattr(value, "items"):
        return {k: _to_plain(v) for k, v in value.items()}
    try:
        return [_to_plain(v) for v in value]
    except TypeError:
        return value


# ============================================================================
# RETRY DECORATOR
# ============================================================================

def retry_on_error(max_retries: int = MAX_RETRIES, delay: float = RETRY_DELAY):
    """
    Decorator to retry function calls on specific exceptions.
    Implements exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        delay: Initial delay between retries (seconds)
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            retries = 0
            current_delay = delay

            while True:
                try:
                    return func(*args, **kwargs)

                except Exception as e:
                    error_type = type(e).__name__
                    error_msg = str(e)

                    # Determine if error is retryable
                    retryable = any([
                        "rate limit" in error_msg.lower(),
                        "quota" in error_msg.lower(),
                        "timeout" in error_msg.lower(),
                        "503" in error_msg,
                        "429" in error_msg,
                        "500" in error_msg,
                    ])

                    if not retryable or retries >= max_retries - 1:
                        logger.error(f"❌ {func.__name__} failed: {error_type}: {error_msg}")
                        raise

                    retries += 1
                    logger.warning(
                        f"⚠️  {func.__name__} failed (attempt {retries}/{max_retries}): "
                        f"{error_type}. Retrying in {current_delay}s..."
                    )

                    time.sleep(current_delay)
                    current_delay *= 2  # Exponential backoff

        return wrapper
    return decorator


# ============================================================================
# CORE LLM FUNCTIONS
# ============================================================================

@traced("call_llm")
@retry_on_error()
def call_llm(
    prompt: Union[str, List[Dict[str, Any]]],
    system_instruction: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    model_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Make a basic LLM call to Gemini API with Langfuse tracing.

    Args:
        prompt: The user prompt, or a list of Gemini content dicts
        system_instruction: System prompt to set agent behavior
        temperature: Sampling temperature (overrides default)
        max_tokens: Max output tokens (overrides default)
        model_name: Model to use (overrides default)
        metadata: Additional metadata for Langfuse tracking

    Returns:
        Generated text response

    Raises:
        Exception: If API call fails after retries
    """
    _ensure_configured()
    model_name = model_name or GEMINI_MODEL

    if _langfuse_client:
        _langfuse_client.update_current_trace(
            name="llm_call",
            metadata={"model": model_name, **(metadata or {})},
        )

    model = genai.GenerativeModel(
        model_name=model_name,
        generation_config=get_generation_config(temperature, max_tokens),
        safety_settings=SAFETY_SETTINGS,
        system_instruction=system_instruction,
    )

    start_time = time.time()
    response = model.generate_content(prompt, request_options={"timeout": TIMEOUT})
    latency = time.time() - start_time

    if not response.candidates:
        raise RuntimeError("No response candidates returned from Gemini API")

    _record_usage(response, model_name, latency)
    return response.text


@traced("call_llm_with_tools")
@retry_on_error()
def call_llm_with_tools(
    contents: Union[str, List[Dict[str, Any]]],
    tools: List[Dict[str, Any]],
    system_instruction: Optional[str] = None,
    temperature: Optional[float] = None,
    model_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Make an LLM call with function calling (tools) enabled.

    Args:
        contents: Prompt string or list of Gemini content dicts
        tools: Gemini function declarations
        system_instruction: System prompt
        temperature: Sampling temperature
        model_name: Model to use
        metadata: Additional metadata for tracking

    Returns:
        Dict with:
            - response_text: The text response (if any)
            - tool_calls: List of {"name", "args"} requested by the LLM
            - latency: Seconds spent waiting on the API
    """
    _ensure_configured()
    model_name = model_name or GEMINI_MODEL

    if _langfuse_client:
        _langfuse_client.update_current_trace(
            name="llm_call_with_tools",
            metadata={"model": model_name, "num_tools": len(tools), **(metadata or {})},
        )

    model = genai.GenerativeModel(
        model_name=model_name,
        generation_config=get_generation_config(temperature),
        safety_settings=SAFETY_SETTINGS,
        system_instruction=system_instruction,
        tools=tools or None,
    )

    start_time = time.time()
    response = model.generate_content(contents, request_options={"timeout": TIMEOUT})
    latency = time.time() - start_time

    result = {
        "response_text": None,
        "tool_calls": [],
        "latency": latency,
    }

    if response.candidates:
        candidate = response.candidates[0]
        text_parts = []

        for part in candidate.content.parts:
            if getattr(part, "text", None):
                text_parts.append(part.text)

            func_call = getattr(part, "function_call", None)
            if func_call and func_call.name:
                result["tool_calls"].append({
                    "name": func_call.name,
                    "args": _to_plain(func_call.args) or {},
                })

        if text_parts:
            result["response_text"] = "".join(text_parts)

    _record_usage(response, model_name, latency)
    logger.debug(f"🔧 Tool call: {len(result['tool_calls'])} functions, ⏱️  {latency:.2f}s")

    return result


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def validate_model_available(model_name: str) -> bool:
    """
    Check if a specific model is available via the API.

    Args:
        model_name: Name of the model to check

    Returns:
        True if model is available, False otherwise
    """
    try:
        _ensure_configured()
        available_models = [m.name for m in genai.list_models()]
        return f"models/{model_name}" in available_models
    except Exception as e:
        logger.error(f"Failed to check model availability: {e}")
        return False


def health_check() -> Dict[str, Any]:
    """
    Perform a health check on the LLM service.

    Returns:
        Dict with service status information
    """
    status = {
        "gemini_api": "unknown",
        "langfuse": "unknown",
        "model": GEMINI_MODEL,
        "model_available": False,
    }

    try:
        test_response = call_llm("Say 'OK' if you can read this.", temperature=0.0)
        status["gemini_api"] = "✅ healthy" if "ok" in test_response.lower() else "⚠️  degraded"
    except Exception as e:
        status["gemini_api"] = f"❌ error: {str(e)[:100]}"

    status["model_available"] = validate_model_available(GEMINI_MODEL)

    if _langfuse_client:
        try:
            _langfuse_client.flush()
            status["langfuse"] = "✅ connected"
        except Exception as e:
            status["langfuse"] = f"⚠️  {str(e)[:50]}"
    else:
        status["langfuse"] = "➖ disabled"

    return status
