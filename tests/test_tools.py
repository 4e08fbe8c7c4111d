"""Tests for tool validators, the tool registry and the tool executor."""

import json
import sys

import pytest

from migrator.orchestrator.constants import MAX_CONTENT_SIZE
from migrator.orchestrator.error_handler import ToolExecutionError
from migrator.orchestrator.events import EventKind
from migrator.orchestrator.tool_executor import ToolExecutor, sanitize_params
from migrator.orchestrator.tool_registry import ToolRegistry
from migrator.tools.command_executor import build_argv, validate_command
from migrator.tools.definitions import ToolCall, ToolDefinition, ValidationResult
from migrator.tools.file_operations import (
    is_excluded,
    matches_glob,
    resolve_in_project,
    validate_content,
    validate_file_path,
)


ECHO_SCHEMA = {"type": "object", "properties": {"message": {"type": "string"}}, "required": []}


# =============================================================================
# VALIDATORS
# =============================================================================

@pytest.mark.parametrize("path", ["../x", "/etc/passwd", "src/../../etc", "C:\\Windows\\system.ini", "", None, 42])
def test_file_path_validator_rejects_escapes(path):
    assert validate_file_path(path).valid is False


@pytest.mark.parametrize("path", ["src/a.ts", "package.json", "src/components/Hello.vue", "a..b/c.js"])
def test_file_path_validator_accepts_project_paths(path):
    assert validate_file_path(path).valid is True


def test_content_validator():
    assert validate_content("export default {}").valid is True
    assert validate_content(b"bytes").valid is False
    assert validate_content("x" * (MAX_CONTENT_SIZE + 1)).valid is False


def test_command_validator_checks_first_token_only():
    assert validate_command("npm run build").valid is True
    assert validate_command("git", ["status"]).valid is True
    assert validate_command("curl http://example.com").valid is False
    assert validate_command("   ").valid is False
    assert validate_command("npm", "not-a-list").valid is False


def test_build_argv_tokenizes_without_shell():
    assert build_argv("npm run build", ["--", "--mode=production"]) == ["npm", "run", "build", "--", "--mode=production"]


def test_resolve_in_project_refuses_symlink_escape(tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    project = tmp_path / "project"
    project.mkdir()
    (project / "link").symlink_to(outside)

    with pytest.raises(ToolExecutionError):
        resolve_in_project(str(project), "link/secret.txt")


def test_glob_helpers():
    assert matches_glob("package.json", "**/*.json")
    assert matches_glob("src/App.vue", "**/*.vue")
    assert not matches_glob("src/App.vue", "*.js")
    assert is_excluded("node_modules/vue/index.js", ["node_modules/**"])
    assert is_excluded("node_modules", ["node_modules/**"])
    assert not is_excluded("src/node_modules_helper.js", ["node_modules/**"])


# =============================================================================
# REGISTRY
# =============================================================================

def test_registry_builtins_and_categories():
    registry = ToolRegistry()
    assert {t.name for t in registry.get_all_tools()} == {"read_file", "write_file", "list_files", "run_command"}
    assert registry.get_categories() == ["file", "system"]
    assert [t.name for t in registry.get_tools_by_category("system")] == ["run_command"]
    assert "read_file: Read the content" in registry.get_tools_description()
    assert registry.get_tools_schema()[0]["parameters"]["type"] == "object"


def test_registry_requires_fields_and_defaults_category():
    registry = ToolRegistry(include_builtins=False)
    with pytest.raises(ValueError):
        registry.register_tool(ToolDefinition(name="broken", description="", parameters=ECHO_SCHEMA))

    registry.register_tool(ToolDefinition(name="echo", description="Echo", parameters=ECHO_SCHEMA, category=""))
    assert registry.get_tool("echo").category == "general"


def test_registry_replacement_moves_category():
    registry = ToolRegistry(include_builtins=False)
    registry.register_tool(ToolDefinition(name="lint", description="Lint", parameters=ECHO_SCHEMA, category="quality"))
    registry.register_tool(ToolDefinition(name="lint", description="Lint v2", parameters=ECHO_SCHEMA, category="build"))

    assert len(registry) == 1
    assert registry.get_categories() == ["build"]
    assert registry.get_tool("lint").description == "Lint v2"

    assert registry.remove_tool("lint") is True
    assert registry.remove_tool("lint") is False
    assert registry.get_categories() == []


# =============================================================================
# EXECUTOR
# =============================================================================

def test_sanitize_params_redacts_only_sensitive_keys():
    params = {"password": "hunter2", "apiKey": "abc", "token": "t", "file_path": "src/a.js"}
    sanitized = sanitize_params(params)

    assert sanitized == {"password": "***", "apiKey": "***", "token": "***", "file_path": "src/a.js"}
    assert params["password"] == "hunter2"


@pytest.mark.asyncio
async def test_read_and_list_files(executor):
    read = await executor.execute_tool("read_file", {"file_path": "package.json"})
    assert read.success is True
    assert json.loads(read.result["content"])["name"] == "legacy-shop"

    listed = await executor.execute_tool("list_files", {})
    files = listed.result["files"]
    assert "src/App.vue" in files
    assert "package.json" in files
    assert not any(f.startswith(("node_modules/", ".git/")) for f in files)

    vue_only = await executor.execute_tool("list_files", {"directory": "src", "pattern": "**/*.vue"})
    assert vue_only.result["files"] == ["src/App.vue", "src/components/Hello.vue"]


@pytest.mark.asyncio
async def test_write_file_creates_timestamped_backup(executor, vue2_project):
    result = await executor.execute_tool("write_file", {"file_path": "src/main.js", "content": "// migrated\n"})

    assert (vue2_project / "src" / "main.js").read_text(encoding="utf-8") == "// migrated\n"
    backup = result.result["backup_path"]
    assert backup.startswith(str((vue2_project / "src" / "main.js").resolve()) + ".backup.")
    with open(backup, encoding="utf-8") as f:
        assert "new Vue" in f.read()


@pytest.mark.asyncio
async def test_write_file_dry_run_leaves_disk_untouched(context, vue2_project):
    dry = ToolExecutor(context, {"dry_run": True})
    result = await dry.execute_tool("write_file", {"file_path": "src/main.js", "content": "// migrated\n"})

    assert result.result["dry_run"] is True
    assert "new Vue" in (vue2_project / "src" / "main.js").read_text(encoding="utf-8")


@pytest.mark.asyncio
async def test_validation_failure_skips_tool_body(context):
    calls = []

    async def body(params, ctx):
        calls.append(params)
        return {}

    executor = ToolExecutor(context, {})
    executor.register_tool(ToolDefinition(
        name="guarded", description="Guarded tool", parameters=ECHO_SCHEMA,
        validator=lambda p: ValidationResult.fail("nope"), executor=body,
    ))

    with pytest.raises(ToolExecutionError, match="validation failed: nope"):
        await executor.execute_tool("guarded", {"message": "hi"})

    assert calls == []
    assert executor.get_execution_history()[-1].result.success is False


@pytest.mark.asyncio
async def test_path_traversal_is_rejected(executor):
    with pytest.raises(ToolExecutionError) as exc_info:
        await executor.execute_tool("read_file", {"file_path": "../secrets.txt"})
    assert exc_info.value.tool_name == "read_file"


@pytest.mark.asyncio
async def test_unknown_tool_and_missing_executor(executor):
    with pytest.raises(ToolExecutionError, match="Tool not found"):
        await executor.execute_tool("nope", {})

    executor.register_tool(ToolDefinition(name="mystery", description="No body", parameters=ECHO_SCHEMA))
    with pytest.raises(ToolExecutionError, match="No executor available"):
        await executor.execute_tool("mystery", {})


@pytest.mark.asyncio
async def test_fallback_echo_and_delay(executor):
    executor.register_tools([
        ToolDefinition(name="echo", description="Echo", parameters=ECHO_SCHEMA),
        ToolDefinition(name="delay", description="Delay", parameters=ECHO_SCHEMA),
    ])
    echoed = await executor.execute_tool("echo", {"message": "ping"})
    delayed = await executor.execute_tool("delay", {"duration": 0})

    assert echoed.result == {"message": "ping"}
    assert delayed.result == {"delayed": 0}


@pytest.mark.asyncio
async def test_body_exception_is_wrapped_and_chained(context):
    async def body(params, ctx):
        raise OSError("disk gone")

    executor = ToolExecutor(context, {})
    executor.register_tool(ToolDefinition(name="flaky", description="Flaky", parameters=ECHO_SCHEMA, executor=body))

    with pytest.raises(ToolExecutionError) as exc_info:
        await executor.execute_tool("flaky", {})

    assert isinstance(exc_info.value.__cause__, OSError)
    assert context.error_count == 1


@pytest.mark.asyncio
async def test_history_is_sanitized_and_events_published(context, executor):
    seen = []
    context.events.subscribe(EventKind.TOOL_EXECUTED, lambda e: seen.append(e.payload["params"]))
    executor.register_tool(ToolDefinition(name="echo", description="Echo", parameters=ECHO_SCHEMA))

    await executor.execute_tool("echo", {"message": "hi", "token": "s3cr3t"})

    record = executor.get_execution_history()[0]
    assert record.params == {"message": "hi", "token": "***"}
    assert seen == [{"message": "hi", "token": "***"}]

    record.params["token"] = "tampered"
    assert executor.get_execution_history()[0].params["token"] == "***"

    stats = executor.get_execution_stats()
    assert stats["total"] == 1
    assert stats["tool_usage"] == {"echo": 1}

    executor.clear_execution_history()
    assert executor.get_execution_history() == []


@pytest.mark.asyncio
async def test_tool_chain_stops_at_first_failure_by_default(context, executor):
    executor.register_tool(ToolDefinition(name="echo", description="Echo", parameters=ECHO_SCHEMA))
    progress = []
    context.events.subscribe(EventKind.COMPONENT_PROGRESS, lambda e: progress.append(e.payload["progress"]))
    context.set_progress(50)

    calls = [
        ToolCall(name="echo", parameters={"message": "1"}),
        {"name": "read_file", "parameters": {"file_path": "missing.js"}},
        {"name": "echo", "parameters": {"message": "3"}},
    ]
    stopped = await executor.execute_tool_chain(calls)
    assert [r.success for r in stopped] == [True, False]
    assert progress == pytest.approx([100 / 3, 200 / 3])
    assert context.stats.progress == 50

    continued = await executor.execute_tool_chain(calls, stop_on_error=False)
    assert [r.success for r in continued] == [True, False, True]


@pytest.mark.asyncio
async def test_parallel_failures_do_not_cancel_siblings(executor):
    executor.register_tool(ToolDefinition(name="delay", description="Delay", parameters=ECHO_SCHEMA))
    results = await executor.execute_tools_parallel([
        {"name": "delay", "parameters": {"duration": 0.01}},
        {"name": "read_file", "parameters": {"file_path": "../escape"}},
        {"name": "read_file", "parameters": {"file_path": "src/App.vue"}},
    ])

    assert [r.success for r in results] == [True, False, True]
    assert "outside the project" in results[1].error


@pytest.mark.asyncio
async def test_remove_tool_publishes_event(context, executor):
    removed = []
    context.events.subscribe(EventKind.TOOL_REMOVED, lambda e: removed.append(e.payload["tool_name"]))

    assert executor.remove_tool("run_command") is True
    assert executor.has_tool("run_command") is False
    assert removed == ["run_command"]


@pytest.mark.asyncio
@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX commands")
async def test_run_command_captures_output(executor, vue2_project):
    result = await executor.execute_tool("run_command", {"command": "ls", "args": ["src"]})
    assert result.result["exit_code"] == 0
    assert "App.vue" in result.result["output"]

    with pytest.raises(ToolExecutionError, match="exit code"):
        await executor.execute_tool("run_command", {"command": "ls", "args": ["does-not-exist"]})

    with pytest.raises(ToolExecutionError, match="not allowed"):
        await executor.execute_tool("run_command", {"command": "python3 -c 'print(1)'"})


@pytest.mark.asyncio
async def test_langchain_tools_route_through_executor(executor):
    tools = {tool.name: tool for tool in executor.as_langchain_tools()}
    assert set(tools) == {"read_file", "write_file", "list_files", "run_command"}

    content = await tools["read_file"].ainvoke({"file_path": "src/App.vue"})
    assert "template" in json.loads(content)["content"]

    error = await tools["read_file"].ainvoke({"file_path": "../escape"})
    assert error.startswith("ERROR:")
