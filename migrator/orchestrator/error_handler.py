"""
Error Handler for the Migration Orchestrator

This module handles:
- The migration error hierarchy (configuration, context, AI, tool, step)
- Rule-based fallback detection for AI failures
- Formatting of error chains for verbose CLI output

Every error raised by the orchestrator, the tool executor, the AI service
and the agents derives from MigrationError, so callers can catch the whole
family with one clause and still tell the kinds apart.
"""

from typing import Any, Dict, List, Optional


# =============================================================================
# ERROR HIERARCHY
# =============================================================================

class MigrationError(Exception):
    """Base class for all migration errors (also the generic run-level error)."""

    code = "MIGRATION_ERROR"

    def __init__(self, message: str, origin: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.origin = origin

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "origin": self.origin,
        }


class ConfigurationError(MigrationError):
    """Bad or missing settings, invalid preset definitions."""

    code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, origin="config")
        self.errors = errors or []


class ContextError(MigrationError):
    """Workflow context misuse or persisted-state load failure."""

    code = "CONTEXT_ERROR"


class AIServiceError(MigrationError):
    """AI service disabled or retries exhausted."""

    code = "AI_SERVICE_ERROR"


class AIResponseParseError(AIServiceError):
    """No JSON payload could be extracted from an AI response."""

    code = "AI_RESPONSE_PARSE_ERROR"


class ToolExecutionError(MigrationError):
    """Unknown tool, failed validation, executor exception or missing executor."""

    code = "TOOL_EXECUTION_ERROR"

    def __init__(self, message: str, tool_name: Optional[str] = None, details: Optional[str] = None):
        super().__init__(message, origin=tool_name)
        self.tool_name = tool_name
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["tool_name"] = self.tool_name
        data["details"] = self.details
        return data


class PromptRenderError(MigrationError):
    """A prompt template references variables that were not supplied."""

    code = "PROMPT_RENDER_ERROR"

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message, origin="prompt")
        self.missing = missing or []


class StepExecutionError(MigrationError):
    """A required plan step failed and the run was aborted."""

    code = "STEP_EXECUTION_ERROR"

    def __init__(self, message: str, step_name: str):
        super().__init__(message, origin=step_name)
        self.step_name = step_name


# =============================================================================
# RULE-BASED FALLBACK DETECTION
# =============================================================================

# Substrings that mean "stop asking the AI, use the rule-based path instead".
# Matched case-insensitively against the error message.
FALLBACK_ERROR_MARKERS = (
    "ai service is disabled",
    "ai call failed",
    "token limit",
    "rate_limit_exceeded",
)


def should_fallback_to_rules(error: BaseException) -> bool:
    """
    Decide whether a caller should switch to a rule-based path after an AI error.

    Args:
        error: The exception raised by an AI call

    Returns:
        True if the message contains one of FALLBACK_ERROR_MARKERS
    """
    message = str(error).lower()
    return any(marker in message for marker in FALLBACK_ERROR_MARKERS)


# =============================================================================
# ERROR CHAIN FORMATTING
# =============================================================================

def format_error_chain(error: BaseException) -> List[str]:
    """
    Walk __cause__/__context__ links and return one line per error.

    Used by the CLI in verbose mode to print the full chain of a failed run.
    """
    lines = []
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        lines.append(f"{type(current).__name__}: {current}")
        current = current.__cause__ or current.__context__
    return lines
