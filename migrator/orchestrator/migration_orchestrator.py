"""
Migration Orchestrator

Drives one run end to end:
- initialize(): validates the configuration, creates the WorkflowContext and
  the StrategyPlanner and, when an AI service is available, the
  ToolExecutor plus the Analysis/Fix/Validation agents
- execute(): analyze -> plan -> run the plan's steps in order
- pause()/resume(): cooperative flag checked between steps

Run states: idle -> initialized -> analyzing -> executing -> completed | failed,
with executing <-> paused. A failing required step aborts the run; a failing
optional step is recorded and the run continues. Step results are recorded on
the context (results["steps"]) as they happen, so an aborted run still
carries everything executed before the failure.
"""

import inspect
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from migrator.config import MigrationConfig, build_config
from migrator.utils.logging_config import log_agent, log_console, log_summary
from . import stats as derived
from .constants import (
    RUN_ANALYZING,
    RUN_COMPLETED,
    RUN_EXECUTING,
    RUN_FAILED,
    RUN_IDLE,
    RUN_INITIALIZED,
    RUN_PAUSED,
    RUN_STATE_TRANSITIONS,
)
from .error_handler import ConfigurationError, MigrationError, StepExecutionError
from .events import EventChannel, EventKind
from .plan import MigrationPlan, MigrationStep, ProjectAnalysis
from .planner import StrategyPlanner
from .presets import PresetManager
from .state import WorkflowContext


def _validate_plan(data: Mapping[str, Any]) -> MigrationPlan:
    try:
        return MigrationPlan.model_validate(dict(data))
    except ValidationError as e:
        errors = e.errors(include_url=False)
        raise ConfigurationError(f"Invalid migration plan: {errors[0]['msg']}", errors=errors) from e


class MigrationOrchestrator:
    """Runs a migration plan against one project."""

    def __init__(self, options: Optional[Mapping[str, Any]] = None, ai_service=None,
                 presets: Optional[PresetManager] = None, events: Optional[EventChannel] = None):
        self.options: Dict[str, Any] = dict(options or {})
        self.ai_service = ai_service
        self.presets = presets
        self.events = events
        self.config: Optional[MigrationConfig] = None
        self.context: Optional[WorkflowContext] = None
        self.planner: Optional[StrategyPlanner] = None
        self.tool_executor = None
        self.agents: Dict[str, Any] = {}

        self.state = RUN_IDLE
        self.is_paused = False
        self.current_step: Optional[MigrationStep] = None

        self._handlers: Dict[str, Any] = {}
        self._agent_keys: List[str] = []
        self._analysis: Optional[ProjectAnalysis] = None
        self._plan: Optional[MigrationPlan] = None
        self._results: List[Dict[str, Any]] = []
        self._cursor = 0

        log_summary("COMPONENT: MigrationOrchestrator initialized")

    # =========================================================================
    # SETUP
    # =========================================================================

    async def initialize(self, project_path: str, config: Optional[Mapping[str, Any]] = None) -> WorkflowContext:
        """
        Create a fresh context and planner for a run.

        Args:
            project_path: Project root
            config: Run settings, merged over the constructor options

        Raises:
            ConfigurationError: invalid settings or presets
            MigrationError: called while a run is executing
        """
        self._check_transition(RUN_INITIALIZED)
        merged = {**self.options, **dict(config or {})}
        self.config = build_config(merged)
        options = self.config.component_options()

        self.cleanup()
        self.context = WorkflowContext(project_path, merged, self.events or EventChannel("context"))
        self.planner = StrategyPlanner(self.context, options, self.presets)
        await self.planner.initialize()

        if self.ai_service is not None:
            self.ai_service.events = self.context.events
            await self._build_agents(options)

        self.is_paused = False
        self.current_step = None
        self._analysis = None
        self._plan = None
        self._results = []
        self._cursor = 0
        self._transition(RUN_INITIALIZED)

        log_summary(f"ORCHESTRATOR: Initialized for {self.context.project_path}")
        return self.context

    async def _build_agents(self, options: Dict[str, Any]):
        from migrator.agents import AnalysisAgent, FixAgent, ValidationAgent
        from .tool_executor import ToolExecutor

        self.tool_executor = ToolExecutor(self.context, options)
        await self.tool_executor.initialize()

        for agent_cls in (AnalysisAgent, FixAgent, ValidationAgent):
            agent = agent_cls(self.context, self.ai_service, self.tool_executor, options)
            await agent.initialize()
            self.agents[agent.name] = agent
            if agent.name not in self._handlers:
                self._handlers[agent.name] = agent
                self._agent_keys.append(agent.name)

        log_agent(f"[ORCHESTRATOR] Agents registered: {', '.join(self.agents)}")

    def register_step_handler(self, key: str, handler: Any):
        """
        Register a handler for a step name or an agent role.

        The handler is either an object with `execute_step(step)` (an agent)
        or a callable `(step, context)` returning a result or awaitable.
        """
        if not (hasattr(handler, "execute_step") or callable(handler)):
            raise TypeError(f"Step handler for '{key}' must be callable or provide execute_step()")
        self._handlers[key] = handler
        if key in self._agent_keys:
            self._agent_keys.remove(key)
        log_agent(f"[ORCHESTRATOR] Step handler registered: {key}", "DEBUG")

    # =========================================================================
    # RUN STATE
    # =========================================================================

    def _check_transition(self, new_state: str):
        if new_state == RUN_FAILED:
            return
        if new_state not in RUN_STATE_TRANSITIONS.get(self.state, set()):
            raise MigrationError(f"Invalid run state transition: {self.state} -> {new_state}", origin="orchestrator")

    def _transition(self, new_state: str):
        self._check_transition(new_state)
        previous, self.state = self.state, new_state
        log_agent(f"[ORCHESTRATOR] Run state: {previous} -> {new_state}")
        if self.context is not None:
            self.context.events.publish(EventKind.RUN_STATE_CHANGED, previous=previous, state=new_state)

    def pause(self):
        """Stop before the next step; the step in flight runs to completion."""
        self.is_paused = True
        log_console("Migration pause requested", "WARNING")
        if self.context is not None:
            self.context.events.publish(EventKind.RUN_PAUSED)

    def resume(self):
        """Clear the pause flag; call execute() again to continue a paused run."""
        self.is_paused = False
        log_console("Migration resumed")
        if self.context is not None:
            self.context.events.publish(EventKind.RUN_RESUMED)

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def execute(self, custom_plan: Optional[Union[MigrationPlan, Mapping[str, Any]]] = None) -> Dict[str, Any]:
        """
        Run the migration (or continue a paused one).

        Returns:
            Run result with analysis, plan, per-step results and summary;
            `paused` is True when the pause flag stopped the loop early.

        Raises:
            StepExecutionError: a required step failed
            MigrationError: not initialized, invalid state, or planning failed
        """
        if self.context is None or self.planner is None:
            raise MigrationError("Call initialize() before execute()", origin="orchestrator")

        context = self.context
        resuming = self.state == RUN_PAUSED
        if not resuming:
            self._check_transition(RUN_ANALYZING)

        try:
            if resuming:
                self.is_paused = False
                log_summary(f"ORCHESTRATOR: Resuming at step {self._cursor + 1}/{len(self._plan.steps)}")
            else:
                context.start_run()
                self._transition(RUN_ANALYZING)
                await self._plan_run(custom_plan)

            self._transition(RUN_EXECUTING)
            finished = await self._execute_steps()
        except Exception as e:
            self._fail_run(e)
            raise

        if not finished:
            self._transition(RUN_PAUSED)
            log_summary(f"ORCHESTRATOR: Paused after {self._cursor}/{len(self._plan.steps)} steps")
            return self._build_result(paused=True)

        context.set_progress(100)
        context.complete_run()
        self._transition(RUN_COMPLETED)
        result = self._build_result(paused=False)
        self._auto_snapshot()

        summary = result["summary"]
        log_summary(
            f"MIGRATION COMPLETED: {summary['completed_steps']}/{summary['total_steps']} steps, "
            f"overall_success={summary['overall_success']}"
        )
        return result

    async def _plan_run(self, custom_plan):
        context = self.context
        try:
            analysis = await self.planner.analyze_project(context.project_path)
            if custom_plan is None:
                plan = await self.planner.generate_migration_plan(analysis)
            elif isinstance(custom_plan, MigrationPlan):
                plan = custom_plan
            else:
                plan = _validate_plan(custom_plan)
        except MigrationError:
            raise
        except Exception as e:
            raise MigrationError(f"Planning failed: {e}", origin="planner") from e

        context.record_result("analysis", analysis.model_dump(mode="json"))
        context.record_result("plan", plan.model_dump(mode="json"))
        context.set_total_steps(len(plan.steps))
        self._analysis = analysis
        self._plan = plan
        self._results = []
        self._cursor = 0
        log_summary(f"ORCHESTRATOR: Plan '{plan.name}' with {len(plan.steps)} steps")

    async def _execute_steps(self) -> bool:
        """Run steps from the cursor on. Returns False if the pause flag stopped the loop."""
        steps = self._plan.ordered_steps()
        total = len(steps)

        while self._cursor < total:
            if self.is_paused:
                log_agent("[ORCHESTRATOR] Pause flag set, stopping before next step")
                return False

            step = steps[self._cursor]
            self.current_step = step
            log_summary(f"STEP {self._cursor + 1}/{total}: {step.name}")
            self.context.set_phase(step.name)

            try:
                result = await self._execute_step(step)
            except Exception as e:
                self.context.fail_phase(step.name, e)
                self._record_step({"step": step.name, "success": False, "error": str(e)})
                if step.required:
                    log_summary(f"STEP FAILED: required step '{step.name}' aborted the run")
                    raise StepExecutionError(f"Required step '{step.name}' failed: {e}", step.name) from e
                log_summary(f"STEP FAILED: optional step '{step.name}', continuing")
                continue

            self.context.complete_phase(step.name, result)
            self._record_step({"step": step.name, "success": True, "result": result})
            self.context.set_progress(round(self._cursor / total * 100))

        self.current_step = None
        return True

    def _record_step(self, entry: Dict[str, Any]):
        self._results.append(entry)
        self._cursor += 1
        self.context.record_result("steps", list(self._results))

    def resolve_handler(self, step: MigrationStep) -> Optional[Any]:
        """Handler for the step name, else for the step's agent role."""
        handler = self._handlers.get(step.name)
        if handler is None and step.agent:
            handler = self._handlers.get(step.agent)
        return handler

    async def _execute_step(self, step: MigrationStep) -> Any:
        handler = self.resolve_handler(step)
        if handler is None:
            self.context.add_warning(f"No handler for step '{step.name}', passed through", origin="orchestrator")
            return {"step_name": step.name, "completed": True, "handler": None}

        if hasattr(handler, "execute_step"):
            return await handler.execute_step(step)

        result = handler(step, self.context)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _fail_run(self, error: BaseException):
        self.current_step = None
        self.context.fail_run(error)
        self._transition(RUN_FAILED)
        log_summary(f"MIGRATION FAILED: {error}", "ERROR")
        self._auto_snapshot()

    def _auto_snapshot(self):
        if not (self.config and self.config.auto_snapshot):
            return
        try:
            self.context.save_snapshot(self.config.snapshot_path)
        except OSError as e:
            log_agent(f"[ORCHESTRATOR] Snapshot could not be written: {e}", "ERROR")
            self.context.add_warning(f"Snapshot could not be written: {e}", origin="orchestrator")

    def _build_result(self, paused: bool) -> Dict[str, Any]:
        context = self.context
        summary = None
        if not paused:
            summary = derived.build_run_summary(self._results, context.stats.model_dump(), context.error_count)
        return {
            "success": not paused,
            "paused": paused,
            "analysis": self._analysis.model_dump(mode="json") if self._analysis else None,
            "plan": self._plan.model_dump(mode="json") if self._plan else None,
            "results": list(self._results),
            "context": context.get_summary(),
            "summary": summary,
            "timestamp": datetime.now().isoformat(),
        }

    # =========================================================================
    # TEARDOWN
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        status = {
            "state": self.state,
            "paused": self.is_paused,
            "current_step": self.current_step.name if self.current_step else None,
        }
        if self.context is not None:
            status.update(self.context.get_status_summary())
        return status

    def cleanup(self):
        """Tear down components of the current run (agents, tools, planner)."""
        for agent in self.agents.values():
            agent.cleanup()
        for key in self._agent_keys:
            self._handlers.pop(key, None)
        self._agent_keys = []
        self.agents = {}

        if self.tool_executor is not None:
            self.tool_executor.cleanup()
            self.tool_executor = None
        if self.planner is not None:
            self.planner.cleanup()
        if self.ai_service is not None:
            self.ai_service.cleanup()
