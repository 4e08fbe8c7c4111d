"""
Plan data model

ProjectAnalysis is what the planner learns about a project; MigrationPlan is
the ordered, risk-annotated script the orchestrator executes. Plans and
steps are frozen: once produced, the orchestrator only reads them.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


Complexity = Literal["low", "medium", "high"]


def check_unique_step_names(steps):
    """Step names key phases and results, so a plan may use each only once."""
    seen = set()
    for step in steps:
        if step.name in seen:
            raise ValueError(f"step name '{step.name}' is used more than once")
        seen.add(step.name)
    return steps


class Risk(BaseModel):
    type: str
    severity: Literal["low", "medium", "high", "critical"] = "medium"
    description: str


class FrameworkTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    framework: str = "unknown"
    version: str = "unknown"


class MigrationStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    order: int
    required: bool = True
    agent: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class MigrationPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    source: FrameworkTarget
    target: FrameworkTarget
    steps: Tuple[MigrationStep, ...]
    tools: Tuple[str, ...] = ()
    estimated_duration: int = 0  # minutes
    risks: Tuple[Risk, ...] = ()

    @field_validator("steps")
    @classmethod
    def _unique_names(cls, steps: Tuple[MigrationStep, ...]) -> Tuple[MigrationStep, ...]:
        return check_unique_step_names(steps)

    def ordered_steps(self) -> List[MigrationStep]:
        """Steps by their `order` field (list position breaks ties)."""
        return sorted(self.steps, key=lambda step: step.order)


class ProjectAnalysis(BaseModel):
    project_path: str
    framework: Optional[str] = None
    version: Optional[str] = None
    build_tool: Optional[str] = None
    complexity: Complexity = "medium"
    files: List[str] = Field(default_factory=list)
    dependencies: Dict[str, str] = Field(default_factory=dict)
    file_patterns: Dict[str, bool] = Field(default_factory=dict)
    risks: List[Risk] = Field(default_factory=list)
    confidence: float = 0.0
