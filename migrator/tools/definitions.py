"""
Tool contract types

ToolDefinition describes a named, schema-described operation; ToolResult and
ToolExecutionRecord are what the executor hands back and keeps in history.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, Field


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(valid=False, error=error)


@dataclass(frozen=True)
class ToolExecutionContext:
    """What a tool body knows about the run it executes in."""

    project_path: str
    dry_run: bool = False
    verbose: bool = False


Validator = Callable[[Dict[str, Any]], ValidationResult]
Executor = Callable[[Dict[str, Any], ToolExecutionContext], Awaitable[Any]]


def always_valid(params: Dict[str, Any]) -> ValidationResult:
    return ValidationResult.ok()


@dataclass
class ToolDefinition:
    """
    A registered tool.

    parameters is a JSON-schema style object:
    {"type": "object", "properties": {...}, "required": [...]}.
    A missing validator means "always valid"; a missing executor means the
    executor's built-in fallback is used.
    """

    name: str
    description: str
    parameters: Dict[str, Any]
    category: str = "general"
    validator: Optional[Validator] = None
    executor: Optional[Executor] = None

    def validate(self, params: Dict[str, Any]) -> ValidationResult:
        return (self.validator or always_valid)(params)

    def schema(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


class ToolCall(BaseModel):
    """One requested tool invocation (from a plan, a chain or an AI response)."""

    name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    success: bool
    result: Any = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ToolExecutionRecord(BaseModel):
    tool_name: str
    params: Dict[str, Any]
    result: ToolResult
    timestamp: datetime = Field(default_factory=datetime.now)
    duration_ms: float = 0.0
