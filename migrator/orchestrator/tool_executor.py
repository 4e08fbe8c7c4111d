"""
Tool Executor

Wraps the ToolRegistry and is the only way tools get invoked:
- execute_tool: resolve, validate, run, time, record, publish
- execute_tool_chain: sequential, progress after each call, stop on first
  failure unless stop_on_error is disabled
- execute_tools_parallel: fan-out with asyncio.gather; every call settles
  into its own ToolResult, one failure never cancels its siblings
- as_langchain_tools: StructuredTool views so a chat model can call tools

Failures are recorded in history and on the event channel and then
re-raised as ToolExecutionError; this layer never swallows them.
"""

import asyncio
import json
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from langchain_core.tools import StructuredTool

from migrator.tools.definitions import (
    ToolCall,
    ToolDefinition,
    ToolExecutionContext,
    ToolExecutionRecord,
    ToolResult,
)
from migrator.utils.logging_config import log_agent, log_summary
from . import stats as derived
from .component import ContextAwareComponent
from .constants import REDACTED_VALUE, SENSITIVE_FIELDS
from .error_handler import ToolExecutionError
from .events import EventKind
from .state import WorkflowContext
from .tool_registry import ToolRegistry


def sanitize_params(params: Any) -> Any:
    """Shallow copy of params with sensitive keys replaced by '***'."""
    if not isinstance(params, Mapping):
        return params
    sanitized = dict(params)
    for field in SENSITIVE_FIELDS:
        if field in sanitized:
            sanitized[field] = REDACTED_VALUE
    return sanitized


def _as_call(call: Union[ToolCall, Mapping[str, Any]]) -> ToolCall:
    return call if isinstance(call, ToolCall) else ToolCall.model_validate(call)


class ToolExecutor(ContextAwareComponent):
    """Validated, recorded tool execution against one WorkflowContext."""

    def __init__(self, context: WorkflowContext, options: Optional[Mapping[str, Any]] = None,
                 registry: Optional[ToolRegistry] = None, name: str = "ToolExecutor"):
        super().__init__(name, context, options)
        self.registry = registry or ToolRegistry()
        self._history: List[ToolExecutionRecord] = []

    async def on_initialize(self):
        self.log(f"Tool executor ready with {len(self.registry)} tools")
        if self.is_verbose():
            for category in self.registry.get_categories():
                names = [t.name for t in self.registry.get_tools_by_category(category)]
                self.log(f"  {category}: {', '.join(names)}")

    async def on_execute(self) -> Dict[str, Any]:
        return {
            "available_tools": len(self.registry),
            "categories": self.registry.get_categories(),
            "execution_history": len(self._history),
        }

    def on_cleanup(self):
        self.clear_execution_history()
        self.registry.clear()

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_tool(self, tool: ToolDefinition):
        try:
            self.registry.register_tool(tool)
        except ValueError as e:
            self.log_error(f"Tool registration failed: {tool.name}", e)
            raise
        self.log(f"Tool registered: {tool.name}")
        self.publish(EventKind.TOOL_REGISTERED, tool_name=tool.name, category=tool.category,
                     description=tool.description)

    def register_tools(self, tools: Iterable[ToolDefinition]):
        for tool in tools:
            self.register_tool(tool)

    def remove_tool(self, name: str) -> bool:
        removed = self.registry.remove_tool(name)
        if removed:
            self.log(f"Tool removed: {name}")
            self.publish(EventKind.TOOL_REMOVED, tool_name=name)
        return removed

    def has_tool(self, name: str) -> bool:
        return self.registry.has_tool(name)

    def get_available_tools(self) -> List[ToolDefinition]:
        return self.registry.get_all_tools()

    def get_tools_by_category(self, category: str) -> List[ToolDefinition]:
        return self.registry.get_tools_by_category(category)

    def get_tools_description(self) -> str:
        return self.registry.get_tools_description()

    def get_tools_schema(self) -> List[Dict[str, Any]]:
        return self.registry.get_tools_schema()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _execution_context(self) -> ToolExecutionContext:
        return ToolExecutionContext(
            project_path=self.context.project_path,
            dry_run=self.is_dry_run(),
            verbose=self.is_verbose(),
        )

    async def execute_tool(self, tool_name: str, params: Optional[Dict[str, Any]] = None) -> ToolResult:
        """
        Validate and run one tool.

        Returns:
            ToolResult with success=True

        Raises:
            ToolExecutionError: unknown tool, invalid params, or the body failed
        """
        params = dict(params or {})
        started = time.perf_counter()
        log_agent(f"[TOOL_EXECUTOR] Executing {tool_name} {sanitize_params(params)}", "DEBUG")

        try:
            tool = self.registry.get_tool(tool_name)
            if tool is None:
                raise ToolExecutionError(f"Tool not found: {tool_name}", tool_name)

            validation = tool.validate(params)
            if not validation.valid:
                raise ToolExecutionError(
                    f"Tool parameter validation failed: {validation.error}",
                    tool_name,
                    f"params: {json.dumps(sanitize_params(params), default=str)}",
                )

            if tool.executor is not None:
                output = await tool.executor(params, self._execution_context())
            else:
                output = await self._execute_fallback_tool(tool_name, params)

        except Exception as e:
            error = e if isinstance(e, ToolExecutionError) else ToolExecutionError(
                f"Tool execution failed: {e}", tool_name
            )
            if error.tool_name is None:
                error.tool_name = tool_name
            duration_ms = (time.perf_counter() - started) * 1000
            result = ToolResult(
                success=False,
                error=error.message,
                metadata={
                    "tool_name": tool_name,
                    "duration_ms": duration_ms,
                    "timestamp": datetime.now().isoformat(),
                    "error_code": error.code,
                },
            )
            self._record(tool_name, params, result, duration_ms)
            self.publish(EventKind.TOOL_ERROR, tool_name=tool_name, params=sanitize_params(params),
                         error=error.message)
            self.log_error(f"Tool failed: {tool_name}", error)
            if error is e:
                raise
            raise error from e

        duration_ms = (time.perf_counter() - started) * 1000
        result = ToolResult(
            success=True,
            result=output,
            metadata={
                "tool_name": tool_name,
                "duration_ms": duration_ms,
                "timestamp": datetime.now().isoformat(),
                "params": sanitize_params(params),
            },
        )
        self._record(tool_name, params, result, duration_ms)
        self.publish(EventKind.TOOL_EXECUTED, tool_name=tool_name, params=sanitize_params(params),
                     result=result)
        self.log(f"Tool succeeded: {tool_name} ({duration_ms:.0f}ms)")
        return result

    async def _execute_fallback_tool(self, tool_name: str, params: Dict[str, Any]) -> Any:
        if tool_name == "echo":
            return {"message": params.get("message", "Hello from tool executor!")}
        if tool_name == "delay":
            seconds = params.get("duration", 1)
            await asyncio.sleep(seconds)
            return {"delayed": seconds}
        raise ToolExecutionError(f"No executor available for tool: {tool_name}", tool_name)

    def _record(self, tool_name: str, params: Dict[str, Any], result: ToolResult, duration_ms: float):
        self._history.append(ToolExecutionRecord(
            tool_name=tool_name,
            params=sanitize_params(params),
            result=result,
            duration_ms=duration_ms,
        ))

    async def execute_tool_chain(self, calls: Iterable[Union[ToolCall, Mapping[str, Any]]],
                                 stop_on_error: Optional[bool] = None) -> List[ToolResult]:
        """
        Run calls one after another.

        Args:
            calls: ToolCalls (or {"name", "parameters"} dicts)
            stop_on_error: Defaults to the `stop_on_error` option (True if unset)

        Returns:
            One ToolResult per attempted call
        """
        calls = [_as_call(c) for c in calls]
        if stop_on_error is None:
            stop_on_error = self.options.get("stop_on_error", True) is not False

        results: List[ToolResult] = []
        total = len(calls)
        log_summary(f"[TOOL_EXECUTOR] Tool chain: {total} calls")

        for index, call in enumerate(calls):
            try:
                result = await self.execute_tool(call.name, call.parameters)
            except ToolExecutionError as e:
                result = ToolResult(
                    success=False,
                    error=e.message,
                    metadata={"tool_name": call.name, "chain_index": index,
                              "timestamp": datetime.now().isoformat()},
                )
            results.append(result)
            self.report_progress((index + 1) / total * 100, f"Tool {index + 1}/{total}: {call.name}")

            if not result.success and stop_on_error:
                log_summary(f"[TOOL_EXECUTOR] Tool chain stopped at call {index + 1}/{total}", "WARNING")
                break

        return results

    async def execute_tools_parallel(self, calls: Iterable[Union[ToolCall, Mapping[str, Any]]]) -> List[ToolResult]:
        """Run calls concurrently; results come back in call order."""
        calls = [_as_call(c) for c in calls]
        log_agent(f"[TOOL_EXECUTOR] Running {len(calls)} tools in parallel")

        outcomes = await asyncio.gather(
            *(self.execute_tool(call.name, call.parameters) for call in calls),
            return_exceptions=True,
        )

        results = []
        for index, (call, outcome) in enumerate(zip(calls, outcomes)):
            if isinstance(outcome, ToolResult):
                results.append(outcome)
                continue
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            error = outcome.message if isinstance(outcome, ToolExecutionError) else str(outcome)
            results.append(ToolResult(
                success=False,
                error=error,
                metadata={"tool_name": call.name, "index": index,
                          "timestamp": datetime.now().isoformat()},
            ))
        return results

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def get_execution_history(self) -> List[ToolExecutionRecord]:
        return [record.model_copy(deep=True) for record in self._history]

    def clear_execution_history(self):
        self._history = []
        self.log("Execution history cleared")

    def get_execution_stats(self) -> Dict[str, Any]:
        return derived.execution_stats(self._history)

    # -------------------------------------------------------------------------
    # LangChain bridge
    # -------------------------------------------------------------------------

    def as_langchain_tools(self) -> List[StructuredTool]:
        """Expose registered tools as StructuredTools routed through execute_tool."""
        return [self._to_structured_tool(tool) for tool in self.registry.get_all_tools()]

    def _to_structured_tool(self, tool: ToolDefinition) -> StructuredTool:
        tool_name = tool.name

        async def run_tool(**kwargs) -> str:
            try:
                result = await self.execute_tool(tool_name, kwargs)
            except ToolExecutionError as e:
                return f"ERROR: {e.message}"
            return json.dumps(result.result, default=str)

        return StructuredTool(
            name=tool.name,
            description=tool.description,
            coroutine=run_tool,
            args_schema=tool.parameters,
        )
