"""
Prompt templates and fixed response strings for the agent runtime.

This module contains:
- The agent system prompt rendered from a perception snapshot
- The reflection prompt used after every run
- Fallback texts returned when the model or a ceiling ends a run

All prompts should be maintained here (not hardcoded in core/ai modules).
"""

# ============================================================================
# AGENT SYSTEM PROMPT
# ============================================================================

AGENT_SYSTEM_PROMPT = """You are Dash, an AI teaching assistant with the ability to use tools to help users.

Current context:
- User role: {role}
- Current screen: {screen}
- Time: {timestamp}

Relevant memories:
{memories}

Available capabilities: {capabilities}

You have access to various tools to complete tasks. Use them wisely and efficiently.
Always be helpful, concise, and focused on education.
If you need to perform multiple steps, use the appropriate tools in sequence.
When you've completed the task, provide a clear summary without calling more tools."""

NO_MEMORIES_TEXT = "(No relevant memories)"
NO_CAPABILITIES_TEXT = "(No tools available)"

# ============================================================================
# REFLECTION PROMPTS
# ============================================================================

REFLECTION_SYSTEM_PROMPT = "You are Dash reflecting on task execution."

REFLECTION_PROMPT = """Based on the execution:
- Objective: {objective}
- Tools used: {tools_used}
- Message count: {message_count}

Provide a brief reflection (1-2 sentences) on:
1. What worked well?
2. What could be improved next time?"""

# ============================================================================
# FALLBACK TEXTS
# ============================================================================

# Returned by the planner adapter when the inference endpoint fails
PLANNER_APOLOGY = (
    "I apologize, but I'm having trouble processing this request. "
    "Please try again."
)

# Planner stopped calling tools but produced no text
DONE_FALLBACK_MESSAGE = "I've completed the requested task."

# Loop ended by a ceiling before the planner produced any text
DEFAULT_COMPLETION_MESSAGE = "Task completed successfully."

CANCELLED_MESSAGE = "Run was cancelled."
CONFLICT_MESSAGE = "Agent is already running another task"

REFLECTION_FALLBACK = "Execution completed."
REFLECTION_EMPTY = "Execution completed as expected."
REFLECTION_CANCELLED = "Execution cancelled."

PATTERN_TEMPLATE = 'For objectives like "{objective}", use tools: {tools}'

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def format_prompt(template: str, **kwargs) -> str:
    """
    Format a prompt template with provided variables.

    Args:
        template: Prompt template string with {placeholders}
        **kwargs: Variables to substitute into the template

    Returns:
        Formatted prompt string
    """
    try:
        return template.format(**kwargs)
    except KeyError as e:
        raise ValueError(f"Missing required prompt variable: {e}")
