"""
Workflow Context and run data model

This module provides:
- ProjectInfo, PhaseState, RunStats, Issue: pydantic models for run state
- WorkflowContext: the single mutable state holder of a migration run
- Snapshot persistence (save_snapshot / load_snapshot)

All mutation goes through WorkflowContext methods. Each mutator applies its
change first and then publishes the matching event on the context's
EventChannel, so subscribers always see the updated state.

Invariants kept by the mutators:
- phases.current is set only between set_phase and the matching
  complete_phase/fail_phase
- phases.completed, phases.failed and issues are append-only, and a phase
  name never appears in both completed and failed
- stats.success_rate is derived from completed_steps/total_steps
- a completed phase stores its result under step_result_key(name), apart
  from the payloads components record with record_result
"""

import json
import os
import time
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic_core import to_jsonable_python

from migrator.utils.logging_config import log_agent, log_summary
from . import stats as derived
from .error_handler import ContextError
from .events import EventChannel, EventKind


SNAPSHOT_FILENAME = "migration-context.json"

FILE_STATUSES = ("analyzed", "modified", "failed")

STEP_RESULT_PREFIX = "step:"


def step_result_key(name: str) -> str:
    return f"{STEP_RESULT_PREFIX}{name}"


# =============================================================================
# DATA MODEL
# =============================================================================

class ProjectInfo(BaseModel):
    """Mutable facts about the project under migration."""

    model_config = ConfigDict(extra="allow")

    path: str
    name: str
    type: Optional[str] = None
    framework: Optional[str] = None
    version: Optional[str] = None
    build_tool: Optional[str] = None
    detected_framework: Optional[str] = None
    dependencies: Dict[str, str] = Field(default_factory=dict)
    files: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class PhaseState(BaseModel):
    current: Optional[str] = None
    completed: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    results: Dict[str, Any] = Field(default_factory=dict)


class RunStats(BaseModel):
    start_time: float = Field(default_factory=time.time)
    end_time: Optional[float] = None
    duration: Optional[float] = None  # ms
    total_steps: int = 0
    completed_steps: int = 0
    progress: float = 0.0
    files_analyzed: int = 0
    files_modified: int = 0
    errors_fixed: int = 0
    ai_calls: int = 0
    performance: Dict[str, Any] = Field(default_factory=dict)

    @computed_field
    @property
    def success_rate(self) -> float:
        return derived.success_rate(self.completed_steps, self.total_steps)


class Issue(BaseModel):
    kind: Literal["error", "warning"]
    message: str
    origin: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)
    severity: Literal["low", "medium", "high", "critical"] = "medium"


# =============================================================================
# WORKFLOW CONTEXT
# =============================================================================

class WorkflowContext:
    """
    Shared state of one migration run plus the event channel all
    components publish to and subscribe from.

    Not shared across runs; the orchestrator creates one per initialize().
    """

    def __init__(self, project_path: str, config: Optional[Mapping[str, Any]] = None,
                 events: Optional[EventChannel] = None):
        self._project_path = os.path.abspath(project_path)
        self._config = MappingProxyType(dict(config or {}))
        self.created_at = datetime.now()
        self.events = events or EventChannel("context")

        self.project = ProjectInfo(path=self._project_path, name=os.path.basename(self._project_path))
        self.phases = PhaseState()
        self.stats = RunStats()
        self.issues: List[Issue] = []

    @property
    def project_path(self) -> str:
        return self._project_path

    @property
    def config(self) -> Mapping[str, Any]:
        return self._config

    # -------------------------------------------------------------------------
    # Phase bookkeeping
    # -------------------------------------------------------------------------

    def set_phase(self, name: str):
        """Mark a phase/step as started."""
        if self.phases.current and self.phases.current != name:
            log_agent(f"[CONTEXT] Phase '{self.phases.current}' superseded by '{name}' before it ended", "WARNING")
        self.phases.current = name
        log_agent(f"[CONTEXT] Phase started: {name}")
        self.events.publish(EventKind.PHASE_START, phase=name)

    def _ensure_not_ended(self, name: str):
        if name in self.phases.completed or name in self.phases.failed:
            raise ContextError(f"Phase '{name}' has already ended", origin="context")

    def complete_phase(self, name: str, result: Any = None):
        """
        Mark a phase/step as completed and store its result under
        step_result_key(name).

        Raises:
            ContextError: if the phase already completed or failed
        """
        self._ensure_not_ended(name)
        self.phases.completed.append(name)
        self.phases.results[step_result_key(name)] = result
        self.phases.current = None
        self.stats.completed_steps += 1
        log_agent(f"[CONTEXT] Phase completed: {name} ({self.stats.completed_steps}/{self.stats.total_steps})")
        self.events.publish(EventKind.PHASE_COMPLETE, phase=name, result=result)

    def fail_phase(self, name: str, error: Union[BaseException, str]):
        """
        Mark a phase/step as failed and log the error against it.

        Raises:
            ContextError: if the phase already completed or failed
        """
        self._ensure_not_ended(name)
        self.phases.failed.append(name)
        self.phases.current = None
        self.add_error(error, origin=name)
        log_agent(f"[CONTEXT] Phase failed: {name}: {error}", "WARNING")
        self.events.publish(EventKind.PHASE_FAILED, phase=name, error=str(error))

    def skip_phase(self, name: str, reason: str = ""):
        self.phases.skipped.append(name)
        if self.phases.current == name:
            self.phases.current = None
        self.add_warning(f"Phase '{name}' skipped" + (f": {reason}" if reason else ""), origin=name)
        self.events.publish(EventKind.PHASE_SKIPPED, phase=name, reason=reason)

    def set_progress(self, progress: float) -> float:
        """Set run progress, clamped to 0..100. Returns the stored value."""
        clamped = max(0.0, min(100.0, float(progress)))
        self.stats.progress = clamped
        self.events.publish(EventKind.PROGRESS_UPDATE, progress=clamped)
        return clamped

    def set_total_steps(self, total: int):
        self.stats.total_steps = max(0, int(total))
        self.events.publish(EventKind.STATS_UPDATED, total_steps=self.stats.total_steps)

    # -------------------------------------------------------------------------
    # Issues and results
    # -------------------------------------------------------------------------

    def add_error(self, error: Union[BaseException, str], origin: Optional[str] = None,
                  severity: str = "medium") -> Issue:
        issue = Issue(kind="error", message=str(error), origin=origin, severity=severity)
        self.issues.append(issue)
        self.events.publish(EventKind.ERROR_ADD, message=issue.message, origin=origin)
        return issue

    def add_warning(self, message: str, origin: Optional[str] = None) -> Issue:
        issue = Issue(kind="warning", message=message, origin=origin, severity="low")
        self.issues.append(issue)
        self.events.publish(EventKind.WARNING_ADD, message=message, origin=origin)
        return issue

    def record_result(self, key: str, value: Any):
        """Store a result payload; re-recording a key overwrites it."""
        self.phases.results[key] = value
        self.events.publish(EventKind.RESULT_RECORD, key=key, result=value)

    def set_project_info(self, **facts):
        """Merge facts into project info; unknown keys are kept as extras."""
        merged = {**self.project.model_dump(), **facts}
        self.project = ProjectInfo.model_validate(merged)
        self.events.publish(EventKind.PROJECT_UPDATED, project=self.project.model_dump())

    def update_file_status(self, path: str, status: str):
        if status not in FILE_STATUSES:
            raise ValueError(f"Unknown file status '{status}', expected one of {FILE_STATUSES}")
        if status == "analyzed":
            self.stats.files_analyzed += 1
        elif status == "modified":
            self.stats.files_modified += 1
        self.events.publish(EventKind.FILE_STATUS, path=path, status=status)

    def record_errors_fixed(self, count: int = 1):
        self.stats.errors_fixed += max(0, count)
        self.events.publish(EventKind.STATS_UPDATED, errors_fixed=self.stats.errors_fixed)

    def record_ai_call(self, success: bool, tokens: Optional[int] = None):
        self.stats.ai_calls += 1
        perf = self.stats.performance
        key = "ai_success" if success else "ai_failed"
        perf[key] = perf.get(key, 0) + 1
        if tokens:
            perf["total_tokens"] = perf.get("total_tokens", 0) + tokens
        self.events.publish(EventKind.AI_CALL_RECORDED, success=success, tokens=tokens)

    # -------------------------------------------------------------------------
    # Run lifecycle
    # -------------------------------------------------------------------------

    def start_run(self):
        self.stats.start_time = time.time()
        self.stats.end_time = None
        self.stats.duration = None
        log_summary(f"[CONTEXT] Run started for {self.project_path}")
        self.events.publish(EventKind.RUN_START, project_path=self.project_path)

    def _finish_clock(self):
        self.stats.end_time = time.time()
        self.stats.duration = round((self.stats.end_time - self.stats.start_time) * 1000, 3)

    def complete_run(self):
        self._finish_clock()
        summary = self.get_summary()
        log_summary(f"[CONTEXT] Run completed in {self.stats.duration:.0f}ms")
        self.events.publish(EventKind.RUN_COMPLETE, summary=summary)

    def fail_run(self, error: Union[BaseException, str]):
        self._finish_clock()
        self.add_error(error, origin="run", severity="high")
        log_summary(f"[CONTEXT] Run failed: {error}", "ERROR")
        self.events.publish(EventKind.RUN_FAILED, error=str(error))

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.kind == "error")

    def get_summary(self) -> Dict[str, Any]:
        return derived.summarize_context(
            self.project.model_dump(),
            self.phases.model_dump(),
            self.stats.model_dump(),
            self.issues,
        )

    def get_status_summary(self) -> Dict[str, Any]:
        return derived.status_summary(
            current=self.phases.current,
            completed_phases=len(self.phases.completed),
            total_steps=self.stats.total_steps,
            progress=self.stats.progress,
            has_errors=self.error_count > 0,
            duration=self.stats.duration,
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "projectPath": self.project_path,
            "config": to_jsonable_python(dict(self.config), fallback=str),
            "project": self.project.model_dump(mode="json"),
            "phases": to_jsonable_python(self.phases.model_dump(mode="python"), fallback=str),
            "stats": self.stats.model_dump(mode="json"),
            "issues": [issue.model_dump(mode="json") for issue in self.issues],
            "createdAt": self.created_at.isoformat(),
            "savedAt": datetime.now().isoformat(),
        }

    def save_snapshot(self, path: Optional[str] = None) -> str:
        """
        Write the full context state as JSON (2-space indent).

        Args:
            path: Output file; defaults to <project_path>/migration-context.json

        Returns:
            The path written
        """
        output = Path(path) if path else Path(self.project_path) / SNAPSHOT_FILENAME
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w", encoding="utf-8") as f:
            json.dump(self.to_snapshot(), f, indent=2)
        log_agent(f"[CONTEXT] Snapshot saved: {output}")
        return str(output)

    @classmethod
    def load_snapshot(cls, path: str, events: Optional[EventChannel] = None) -> "WorkflowContext":
        """
        Rebuild a context from a snapshot file.

        Persisted project/phases/stats/issues are assigned onto a fresh
        context; no events are replayed.

        Raises:
            ContextError: if the file is missing or not a valid snapshot
        """
        snapshot_path = Path(path)
        if not snapshot_path.is_file():
            raise ContextError(f"Context snapshot not found: {path}", origin="context")

        try:
            with open(snapshot_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            context = cls(data["projectPath"], data.get("config") or {}, events=events)
            context.project = ProjectInfo.model_validate(data.get("project") or {
                "path": context.project_path, "name": context.project.name
            })
            context.phases = PhaseState.model_validate(data.get("phases") or {})
            context.stats = RunStats.model_validate(data.get("stats") or {})
            context.issues = [Issue.model_validate(i) for i in data.get("issues") or []]
            if data.get("createdAt"):
                context.created_at = datetime.fromisoformat(data["createdAt"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ContextError(f"Invalid context snapshot {path}: {e}", origin="context") from e

        log_agent(f"[CONTEXT] Snapshot loaded: {path}")
        return context
