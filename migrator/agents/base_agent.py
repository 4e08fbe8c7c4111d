"""
Base AI Agent

Composes the AIService and the ToolExecutor behind prompt templates,
response parsing and best-effort file helpers. Specialised agents only add
prompts and post-processing.

The file helpers (read/write/list/run) never raise: a failed tool call is
logged on the context and turned into an empty or False result, so one bad
file does not abort a whole analysis pass.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

from migrator.orchestrator.component import ContextAwareComponent
from migrator.orchestrator.error_handler import (
    AIResponseParseError,
    ToolExecutionError,
    should_fallback_to_rules,
)
from migrator.orchestrator.state import WorkflowContext
from migrator.orchestrator.tool_executor import ToolExecutor
from migrator.orchestrator import stats as derived
from migrator.prompts.prompt_loader import PromptLoader, render_template
from migrator.tools.definitions import ToolCall
from migrator.utils.ai_service import AIService, extract_json, sanitize_prompt

T = TypeVar("T")

DEFAULT_TEMPLATE = "default"


class BaseAIAgent(ContextAwareComponent):
    """Common behaviour of all AI agents."""

    # YAML file (in migrator/prompts) with this agent's templates
    prompt_file: Optional[str] = None

    def __init__(self, name: str, context: WorkflowContext, ai_service: AIService,
                 tool_executor: ToolExecutor, options: Optional[Mapping[str, Any]] = None,
                 prompt_loader: Optional[PromptLoader] = None):
        super().__init__(name, context, options)
        self.ai_service = ai_service
        self.tool_executor = tool_executor
        self.prompt_loader = prompt_loader or PromptLoader()
        self.prompt_templates: Dict[str, str] = {}
        self.current_step = None

    async def on_initialize(self):
        self.load_prompt_templates()
        self.log(f"AI agent ready ({len(self.prompt_templates)} prompt templates)")

    def load_prompt_templates(self):
        self.prompt_templates.update(self.prompt_loader.load_templates("base_agent.yaml"))
        if self.prompt_file:
            self.prompt_templates.update(self.prompt_loader.load_templates(self.prompt_file))

    async def execute_step(self, step) -> Any:
        """Run this agent for one plan step (step.config is available as self.current_step)."""
        self.current_step = step
        try:
            return await self.execute()
        finally:
            self.current_step = None

    # -------------------------------------------------------------------------
    # Prompts
    # -------------------------------------------------------------------------

    def build_prompt(self, template_name: str, variables: Mapping[str, Any]) -> str:
        """
        Render a named template.

        An unknown template name falls back to the default template (with a
        warning) and the variables are passed to it as context.

        Raises:
            PromptRenderError: if the template needs a variable not supplied
        """
        template = self.prompt_templates.get(template_name)
        if template is None:
            self.log_warning(f"Prompt template '{template_name}' not found, using default template")
            template = self.prompt_templates.get(DEFAULT_TEMPLATE, "{task}\n{context}\n{requirements}")
            variables = {
                "task": template_name,
                "context": json.dumps(dict(variables), default=str, indent=2),
                "requirements": "Provide a detailed analysis and recommendations.",
                **variables,
            }
        return render_template(template, variables)

    def sanitize_prompt(self, prompt: str) -> str:
        return sanitize_prompt(prompt)

    # -------------------------------------------------------------------------
    # AI calls
    # -------------------------------------------------------------------------

    async def analyze_with_ai(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
        """Call the AI service and record the call on the context."""
        call_context = {"agent": self.name, **(options or {})}
        try:
            response = await self.ai_service.call_ai(prompt, {"context": call_context})
        except Exception as e:
            self.context.record_ai_call(success=False)
            self.log_error("AI analysis failed", e)
            raise
        self.context.record_ai_call(success=True, tokens=derived.estimate_tokens(prompt, response))
        return response

    def validate_ai_response(self, response: Any, expected_format: Optional[str] = None) -> bool:
        if not isinstance(response, str) or not response.strip():
            return False
        if expected_format == "json":
            try:
                json.loads(response)
            except json.JSONDecodeError:
                return False
        return True

    def parse_json_response(self, response: str) -> Any:
        """Extract JSON from a response; None (plus a logged error) if impossible."""
        try:
            return extract_json(response)
        except AIResponseParseError as e:
            self.log_error("Failed to parse AI response as JSON", e)
            return None

    def should_fallback_to_rules(self, error: BaseException) -> bool:
        return should_fallback_to_rules(error)

    def handle_ai_error(self, error: BaseException, origin: Optional[str] = None):
        self.context.add_error(error, origin=origin or self.name)
        if not self.ai_service.is_enabled():
            self.log_warning("AI service unavailable, consider the rule-based path")

    async def process_with_retry(self, operation: Callable[[], Awaitable[T]], max_retries: int = 3,
                                 initial_delay: float = 1.0) -> T:
        """
        Retry a composite async operation with doubling delay (seconds).

        The last error is re-raised once all attempts fail.
        """
        delay = initial_delay
        last_error: Optional[BaseException] = None
        for attempt in range(1, max(1, max_retries) + 1):
            try:
                return await operation()
            except Exception as e:
                last_error = e
                if attempt < max_retries:
                    self.log(f"Operation failed, retrying in {delay}s ({attempt}/{max_retries})", "WARNING")
                    await asyncio.sleep(delay)
                    delay *= 2
        raise last_error

    async def execute_tools_from_ai(self, tool_calls: List[Any]) -> List[Dict[str, Any]]:
        """Run tool calls proposed by the AI one by one; failures are reported, not raised."""
        results = []
        for raw_call in tool_calls:
            try:
                call = raw_call if isinstance(raw_call, ToolCall) else ToolCall.model_validate(raw_call)
                result = await self.tool_executor.execute_tool(call.name, call.parameters)
                results.append({"tool_call": call.model_dump(), "result": result, "success": True})
            except Exception as e:
                results.append({"tool_call": raw_call, "error": str(e), "success": False})
        return results

    # -------------------------------------------------------------------------
    # Best-effort file helpers
    # -------------------------------------------------------------------------

    async def read_project_file(self, file_path: str) -> str:
        try:
            result = await self.tool_executor.execute_tool("read_file", {"file_path": file_path})
        except ToolExecutionError as e:
            self.log_error(f"Failed to read {file_path}", e)
            return ""
        return (result.result or {}).get("content", "")

    async def write_project_file(self, file_path: str, content: str, backup: bool = True) -> bool:
        try:
            await self.tool_executor.execute_tool(
                "write_file", {"file_path": file_path, "content": content, "backup": backup}
            )
        except ToolExecutionError as e:
            self.log_error(f"Failed to write {file_path}", e)
            self.context.update_file_status(file_path, "failed")
            return False
        self.context.update_file_status(file_path, "modified")
        return True

    async def list_project_files(self, pattern: str = "**/*") -> List[str]:
        try:
            result = await self.tool_executor.execute_tool("list_files", {"pattern": pattern})
        except ToolExecutionError as e:
            self.log_error("Failed to list project files", e)
            return []
        return (result.result or {}).get("files", [])

    async def run_command(self, command: str, args: Optional[List[str]] = None) -> str:
        try:
            result = await self.tool_executor.execute_tool("run_command", {"command": command, "args": args or []})
        except ToolExecutionError as e:
            self.log_error(f"Command failed: {command}", e)
            return ""
        return (result.result or {}).get("output", "")

    # -------------------------------------------------------------------------
    # Context views
    # -------------------------------------------------------------------------

    def target_version(self) -> str:
        plan = self.context.phases.results.get("plan") or {}
        return (plan.get("target") or {}).get("version") or "latest"

    def get_context_info(self) -> Dict[str, Any]:
        return {
            "project_path": self.context.project_path,
            "framework": self.context.project.framework,
            "version": self.context.project.version,
            "phase": self.context.phases.current,
            "stats": self.context.stats.model_dump(),
        }

    def get_agent_stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "duration": self.get_duration(),
            "ai_calls": self.context.stats.ai_calls,
            "files_processed": self.context.stats.files_analyzed + self.context.stats.files_modified,
        }
