"""
Derived statistics

Pure functions for every figure that is computed from recorded state rather
than stored: success rates, execution statistics, run/validation summaries,
duration and token estimates, retry backoff. None of them mutate anything,
so tests can call them directly with hand-built inputs.
"""

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .constants import (
    AI_BACKOFF_BASE_MS,
    AI_BACKOFF_CAP_MS,
    CHARS_PER_TOKEN,
    COMPLEXITY_MULTIPLIERS,
    MINUTES_PER_STEP,
    VALIDATION_WEIGHTS,
)


def success_rate(completed: int, total: int) -> float:
    """completed/total, or 0.0 when total is 0."""
    if total <= 0:
        return 0.0
    return completed / total


def ai_success_rate(success: int, calls: int) -> float:
    """success/calls, or 0.0 when no calls were made."""
    if calls <= 0:
        return 0.0
    return success / calls


def backoff_delay(attempt: int) -> int:
    """Retry delay in milliseconds after a failed attempt (1-based)."""
    return min(AI_BACKOFF_BASE_MS * 2 ** (attempt - 1), AI_BACKOFF_CAP_MS)


def estimate_tokens(prompt: str, result: str) -> int:
    """Rough token estimate for one prompt/response pair."""
    return math.ceil((len(prompt) + len(result)) / CHARS_PER_TOKEN)


def estimate_duration(step_count: int, complexity: str) -> int:
    """Estimated plan duration in minutes."""
    multiplier = COMPLEXITY_MULTIPLIERS.get(complexity, COMPLEXITY_MULTIPLIERS["medium"])
    return round(step_count * MINUTES_PER_STEP * multiplier)


def execution_stats(records: Iterable[Any]) -> Dict[str, Any]:
    """
    Aggregate tool execution history.

    Args:
        records: ToolExecutionRecord objects (tool_name, result.success, duration_ms)

    Returns:
        total/successful/failed counts, success_rate, total and average
        duration in ms and per-tool usage counts
    """
    records = list(records)
    total = len(records)
    successful = sum(1 for r in records if r.result.success)
    total_duration = sum(r.duration_ms for r in records)
    usage: Dict[str, int] = {}
    for r in records:
        usage[r.tool_name] = usage.get(r.tool_name, 0) + 1
    return {
        "total": total,
        "successful": successful,
        "failed": total - successful,
        "success_rate": success_rate(successful, total),
        "total_duration_ms": total_duration,
        "avg_duration_ms": total_duration / total if total else 0.0,
        "tool_usage": usage,
    }


def count_issues(issues: Iterable[Any]) -> Dict[str, int]:
    issues = list(issues)
    errors = sum(1 for i in issues if i.kind == "error")
    warnings = sum(1 for i in issues if i.kind == "warning")
    return {"errors": errors, "warnings": warnings, "total": len(issues)}


def summarize_context(project: Mapping[str, Any], phases: Mapping[str, Any],
                      stats: Mapping[str, Any], issues: Iterable[Any]) -> Dict[str, Any]:
    """
    Read-only summary of a workflow context.

    `success` is true when no phase failed and at least one step completed.
    """
    issue_counts = count_issues(issues)
    return {
        "project": dict(project),
        "phases": {
            "current": phases["current"],
            "completed": len(phases["completed"]),
            "failed": len(phases["failed"]),
            "skipped": len(phases.get("skipped", [])),
            "total": stats["total_steps"],
        },
        "stats": dict(stats),
        "issues": issue_counts,
        "success": len(phases["failed"]) == 0 and stats["completed_steps"] > 0,
    }


def build_run_summary(results: List[Mapping[str, Any]], stats: Mapping[str, Any],
                      error_count: int) -> Dict[str, Any]:
    """
    Summary returned at the end of a completed run.

    overall_success requires every executed step to have succeeded and no
    error to have been logged during the run.
    """
    total = len(results)
    completed = sum(1 for r in results if r.get("success"))
    rate = success_rate(completed, total)
    return {
        "total_steps": total,
        "completed_steps": completed,
        "success_rate": rate,
        "duration": stats.get("duration") or 0,
        "files_modified": stats.get("files_modified", 0),
        "errors_fixed": stats.get("errors_fixed", 0),
        "ai_calls": stats.get("ai_calls", 0),
        "overall_success": rate == 1 and error_count == 0,
    }


def overall_validation_score(file_scores: List[float], build: Mapping[str, Any],
                             tests: Mapping[str, Any]) -> int:
    """
    Weighted validation score in 0..100.

    Files contribute their average score scaled to 60, a successful build 30
    (15 if skipped), successful tests 10 (5 if skipped).
    """
    score = 0.0
    if file_scores:
        score += (sum(file_scores) / len(file_scores)) * VALIDATION_WEIGHTS["files"] / 100

    for result, weight in ((build, VALIDATION_WEIGHTS["build"]), (tests, VALIDATION_WEIGHTS["tests"])):
        if result.get("skipped"):
            score += weight / 2
        elif result.get("success"):
            score += weight

    max_score = sum(VALIDATION_WEIGHTS.values())
    return round(score / max_score * 100)


def validation_summary(file_results: List[Mapping[str, Any]], build: Mapping[str, Any],
                       tests: Mapping[str, Any]) -> Dict[str, Any]:
    total_files = len(file_results)
    valid_files = sum(
        1 for r in file_results if r.get("success") and (r.get("result") or {}).get("valid")
    )
    total_errors = sum(len((r.get("result") or {}).get("errors", [])) for r in file_results)
    total_warnings = sum(len((r.get("result") or {}).get("warnings", [])) for r in file_results)
    file_scores = [(r.get("result") or {}).get("score", 0) for r in file_results]

    return {
        "file_validation": {
            "total_files": total_files,
            "valid_files": valid_files,
            "validation_rate": success_rate(valid_files, total_files),
            "total_errors": total_errors,
            "total_warnings": total_warnings,
        },
        "build_validation": {
            "success": bool(build.get("success")),
            "skipped": bool(build.get("skipped", False)),
        },
        "test_validation": {
            "success": bool(tests.get("success")),
            "skipped": bool(tests.get("skipped", False)),
        },
        "overall_success": bool(build.get("success")) and total_errors == 0,
        "score": overall_validation_score(file_scores, build, tests),
    }


def status_summary(current: Optional[str], completed_phases: int, total_steps: int,
                   progress: float, has_errors: bool, duration: Optional[float]) -> Dict[str, Any]:
    return {
        "phase": current,
        "progress": progress,
        "completed_phases": completed_phases,
        "total_phases": total_steps,
        "has_errors": has_errors,
        "duration": duration,
    }
