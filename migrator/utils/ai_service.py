"""
AI Service

A retrying wrapper around a text-generation callable. It knows nothing
about migrations: it takes a prompt, calls the generator with exponential
backoff (1s, 2s, 4s ... capped at 10s), and keeps call statistics.

Also provides the prompt/response helpers shared by the agents:
- truncate_prompt: cut over-long prompts and append a marker
- sanitize_prompt: redact api keys, tokens and passwords before logging
- extract_json: ordered JSON extraction strategies
  (fenced block -> {...} -> [...] -> raw parse)
"""

import asyncio
import json
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, computed_field

from migrator.config import AISettings
from migrator.orchestrator import stats as derived
from migrator.orchestrator.constants import (
    DEFAULT_AI_RETRIES,
    TRUNCATION_MARKER,
    TRUNCATION_RESERVE,
)
from migrator.orchestrator.error_handler import AIResponseParseError, AIServiceError
from migrator.orchestrator.events import EventChannel, EventKind
from .logging_config import log_llm, log_summary


TextGenerator = Callable[[str, Dict[str, Any]], Awaitable[str]]


# =============================================================================
# PROMPT HELPERS
# =============================================================================

_SANITIZE_RULES = [
    (re.compile(r'api[_-]?key["\s]*[:=]["\s]*[a-zA-Z0-9\-_]+', re.IGNORECASE), 'api_key="***"'),
    (re.compile(r'token["\s]*[:=]["\s]*[a-zA-Z0-9\-_]+', re.IGNORECASE), 'token="***"'),
    (re.compile(r'password["\s]*[:=]["\s]*[^\s"]+', re.IGNORECASE), 'password="***"'),
]


def sanitize_prompt(prompt: str) -> str:
    """Redact api-key/token/password assignments from a prompt."""
    for pattern, replacement in _SANITIZE_RULES:
        prompt = pattern.sub(replacement, prompt)
    return prompt


def truncate_prompt(prompt: str, max_length: int = 8000) -> str:
    """Return prompt unchanged if short enough, else its head plus a truncation marker."""
    if len(prompt) <= max_length:
        return prompt
    return prompt[:max_length - TRUNCATION_RESERVE] + TRUNCATION_MARKER


# =============================================================================
# JSON EXTRACTION
# =============================================================================

def _fenced_block(text: str) -> Optional[str]:
    match = re.search(r"```json\s*([\s\S]*?)\s*```", text)
    return match.group(1) if match else None


def _object_braces(text: str) -> Optional[str]:
    match = re.search(r"\{[\s\S]*\}", text)
    return match.group(0) if match else None


def _array_brackets(text: str) -> Optional[str]:
    match = re.search(r"\[[\s\S]*\]", text)
    return match.group(0) if match else None


def _raw(text: str) -> Optional[str]:
    return text


JSON_EXTRACTION_STRATEGIES: List[Tuple[str, Callable[[str], Optional[str]]]] = [
    ("fenced_block", _fenced_block),
    ("object_braces", _object_braces),
    ("array_brackets", _array_brackets),
    ("raw", _raw),
]


def extract_json(text: str) -> Any:
    """
    Return the first candidate that parses as JSON.

    Raises:
        AIResponseParseError: if no strategy yields valid JSON
    """
    if not isinstance(text, str):
        raise AIResponseParseError("AI response is not text")

    last_error = None
    for name, strategy in JSON_EXTRACTION_STRATEGIES:
        candidate = strategy(text)
        if candidate is None:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = f"{name}: {e}"
    raise AIResponseParseError(f"Failed to parse JSON from AI response ({last_error or 'no candidate'})")


# =============================================================================
# AI SERVICE
# =============================================================================

class AICallStats(BaseModel):
    calls: int = 0
    success: int = 0
    failed: int = 0
    total_tokens: int = 0

    @computed_field
    @property
    def success_rate(self) -> float:
        return derived.ai_success_rate(self.success, self.calls)


class AIService:
    """
    Resilient AI call layer.

    Args:
        generator: async (prompt, options) -> text; None disables the service
        settings: AISettings (retries, timeout, prompt length)
        events: Optional channel for ai:call / ai:success / ai:error
    """

    def __init__(self, generator: Optional[TextGenerator] = None, settings: Optional[AISettings] = None,
                 events: Optional[EventChannel] = None):
        self.settings = settings or AISettings()
        self.generator = generator
        self.events = events
        self.stats = AICallStats()
        self._enabled = generator is not None and self.settings.enabled
        if self._enabled:
            log_llm(f"[AI_SERVICE] Enabled ({self.settings.provider}, {self.settings.model})")

    def is_enabled(self) -> bool:
        return self._enabled

    def _publish(self, kind: EventKind, **payload):
        if self.events is not None:
            self.events.publish(kind, **payload)

    async def _delay(self, milliseconds: int):
        await asyncio.sleep(milliseconds / 1000)

    async def call_ai(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
        """
        Call the generator with retry/backoff.

        Args:
            prompt: Prompt text (truncated to settings.max_prompt_length)
            options: max_retries, context (dict) and generator options

        Returns:
            Generated text

        Raises:
            AIServiceError: service disabled, or every attempt failed
        """
        if not self._enabled:
            raise AIServiceError("AI service is disabled or not configured", origin="ai")

        options = dict(options or {})
        max_retries = options.pop("max_retries", None) or self.settings.max_retries
        if not isinstance(max_retries, int) or max_retries < 1:
            max_retries = DEFAULT_AI_RETRIES
        context = options.get("context") or {}

        prompt = truncate_prompt(prompt, self.settings.max_prompt_length)
        safe_prompt = sanitize_prompt(prompt)

        self.stats.calls += 1
        self._publish(EventKind.AI_CALL, prompt=safe_prompt[:100], context=context)
        log_llm(f"[AI_SERVICE] Call {self.stats.calls} ({context.get('type', 'general')})")
        log_llm(safe_prompt, "DEBUG")

        call_options = {
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
            **options,
        }

        last_error: Optional[BaseException] = None
        for attempt in range(1, max_retries + 1):
            if attempt > 1:
                log_llm(f"[AI_SERVICE] Retry {attempt}/{max_retries}", "WARNING")
            try:
                result = await asyncio.wait_for(
                    self.generator(prompt, {**call_options, "attempt": attempt}),
                    timeout=self.settings.timeout,
                )
            except Exception as e:
                last_error = e
                log_llm(f"[AI_SERVICE] Attempt {attempt}/{max_retries} failed: {e}", "WARNING")
                if attempt < max_retries:
                    await self._delay(derived.backoff_delay(attempt))
                continue

            result = "" if result is None else str(result)
            tokens = derived.estimate_tokens(prompt, result)
            self.stats.success += 1
            self.stats.total_tokens += tokens
            self._publish(EventKind.AI_SUCCESS, prompt=safe_prompt[:100], result=result[:100],
                          tokens=tokens, attempt=attempt)
            log_llm(f"[AI_SERVICE] Success on attempt {attempt}/{max_retries} (~{tokens} tokens)")
            log_llm(result, "DEBUG")
            return result

        self.stats.failed += 1
        error = AIServiceError(
            f"AI call failed after {max_retries} retries: {last_error}",
            origin=context.get("agent"),
        )
        self._publish(EventKind.AI_ERROR, prompt=safe_prompt[:100], error=error.message, attempts=max_retries)
        log_summary(f"[AI_SERVICE] {error.message}", "ERROR")
        raise error from last_error

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def truncate_prompt(self, prompt: str) -> str:
        return truncate_prompt(prompt, self.settings.max_prompt_length)

    def sanitize_prompt(self, prompt: str) -> str:
        return sanitize_prompt(prompt)

    def validate_response(self, response: Any) -> bool:
        return isinstance(response, str) and len(response.strip()) > 0

    def parse_json_response(self, response: str) -> Any:
        return extract_json(response)

    @staticmethod
    def build_context(context: Optional[Dict[str, Any]] = None) -> str:
        """Render call context as a prompt preamble ('' when empty)."""
        context = context or {}
        parts = []
        if context.get("task_type"):
            parts.append(f"Task type: {context['task_type']}")
        if context.get("phase"):
            parts.append(f"Phase: {context['phase']}")
        if context.get("file_name"):
            parts.append(f"File: {context['file_name']}")
        if context.get("attempt_number"):
            parts.append(f"Attempt: {context['attempt_number']}")
        if not parts:
            return ""
        return "\nContext:\n" + "\n".join(parts) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.model_dump()

    def reset_stats(self):
        self.stats = AICallStats()

    def cleanup(self):
        self.reset_stats()
        log_llm("[AI_SERVICE] Cleaned up", "DEBUG")
