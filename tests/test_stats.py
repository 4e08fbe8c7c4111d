"""Tests for derived statistics."""

import pytest

from migrator.orchestrator import stats
from migrator.tools.definitions import ToolExecutionRecord, ToolResult


def test_success_rates_guard_zero_division():
    assert stats.success_rate(0, 0) == 0.0
    assert stats.success_rate(3, 4) == 0.75
    assert stats.ai_success_rate(0, 0) == 0.0
    assert stats.ai_success_rate(1, 2) == 0.5


@pytest.mark.parametrize("attempt, expected", [(1, 1000), (2, 2000), (3, 4000), (4, 8000), (5, 10000), (9, 10000)])
def test_backoff_delay_doubles_and_caps(attempt, expected):
    assert stats.backoff_delay(attempt) == expected


def test_estimate_tokens_rounds_up():
    assert stats.estimate_tokens("abcd", "") == 1
    assert stats.estimate_tokens("abcde", "") == 2
    assert stats.estimate_tokens("a" * 10, "b" * 10) == 5


@pytest.mark.parametrize("complexity, expected", [("low", 20), ("medium", 30), ("high", 50)])
def test_estimate_duration(complexity, expected):
    assert stats.estimate_duration(4, complexity) == expected


def test_execution_stats_aggregates_history():
    records = [
        ToolExecutionRecord(tool_name="read_file", params={}, result=ToolResult(success=True), duration_ms=10),
        ToolExecutionRecord(tool_name="read_file", params={}, result=ToolResult(success=False), duration_ms=30),
        ToolExecutionRecord(tool_name="list_files", params={}, result=ToolResult(success=True), duration_ms=20),
    ]
    result = stats.execution_stats(records)

    assert result["total"] == 3
    assert result["successful"] == 2
    assert result["failed"] == 1
    assert result["success_rate"] == pytest.approx(2 / 3)
    assert result["avg_duration_ms"] == pytest.approx(20)
    assert result["tool_usage"] == {"read_file": 2, "list_files": 1}


def test_execution_stats_empty():
    assert stats.execution_stats([])["avg_duration_ms"] == 0.0


def test_run_summary_requires_all_steps_and_no_errors():
    results = [{"step": "a", "success": True}, {"step": "b", "success": True}]
    run_stats = {"duration": 1200, "files_modified": 3, "errors_fixed": 2, "ai_calls": 5}

    clean = stats.build_run_summary(results, run_stats, error_count=0)
    assert clean["overall_success"] is True
    assert clean["success_rate"] == 1
    assert clean["files_modified"] == 3

    assert stats.build_run_summary(results, run_stats, error_count=1)["overall_success"] is False

    partial = stats.build_run_summary(results + [{"step": "c", "success": False}], run_stats, 0)
    assert partial["completed_steps"] == 2
    assert partial["overall_success"] is False


def test_validation_score_weights():
    ok = {"success": True}
    skipped = {"success": True, "skipped": True}

    assert stats.overall_validation_score([100], ok, ok) == 100
    assert stats.overall_validation_score([100], skipped, skipped) == 80
    assert stats.overall_validation_score([], {"success": False}, {"success": False}) == 0
    assert stats.overall_validation_score([50, 50], ok, {"success": False}) == 60


def test_validation_summary_counts_files():
    file_results = [
        {"file": "a.vue", "success": True, "result": {"valid": True, "errors": [], "warnings": ["w"], "score": 80}},
        {"file": "b.vue", "success": True, "result": {"valid": False, "errors": ["e"], "warnings": [], "score": 40}},
        {"file": "c.vue", "success": False, "error": "unreadable"},
    ]
    summary = stats.validation_summary(file_results, {"success": True}, {"success": True, "skipped": True})

    assert summary["file_validation"]["valid_files"] == 1
    assert summary["file_validation"]["total_errors"] == 1
    assert summary["file_validation"]["total_warnings"] == 1
    assert summary["overall_success"] is False
    assert summary["test_validation"]["skipped"] is True
