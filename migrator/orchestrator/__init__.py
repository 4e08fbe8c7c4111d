"""
Migration Orchestrator Modules

This package contains the run-level components:

- constants.py: All configuration constants
- error_handler.py: Error hierarchy and rule-fallback heuristics
- events.py: EventKind enum and the synchronous EventChannel
- stats.py: Pure functions for every derived figure
- state.py: WorkflowContext and its data model, snapshot persistence
- component.py: ContextAwareComponent lifecycle base
- plan.py: MigrationPlan / MigrationStep / ProjectAnalysis models
- presets.py: Migration presets and the PresetManager
- tool_registry.py: Tool definitions and the built-in tool set
- tool_executor.py: Validated, recorded tool execution
- planner.py: StrategyPlanner (analysis + plan generation)
- migration_orchestrator.py: MigrationOrchestrator (run loop)

Only the leaf modules are re-exported here; import the registry, executor,
planner and orchestrator from their own modules.
"""

# Constants
from .constants import (
    RUN_IDLE,
    RUN_INITIALIZED,
    RUN_ANALYZING,
    RUN_EXECUTING,
    RUN_PAUSED,
    RUN_COMPLETED,
    RUN_FAILED,
    RUN_STATES,
    RUN_STATE_TRANSITIONS,
    ANALYSIS_AGENT,
    FIX_AGENT,
    VALIDATION_AGENT,
    DEPENDENCY_AGENT,
)

# Errors
from .error_handler import (
    MigrationError,
    ConfigurationError,
    ContextError,
    AIServiceError,
    AIResponseParseError,
    ToolExecutionError,
    PromptRenderError,
    StepExecutionError,
    should_fallback_to_rules,
    format_error_chain,
)

# Events
from .events import Event, EventChannel, EventKind

# State
from .state import WorkflowContext, ProjectInfo, PhaseState, RunStats, Issue

# Components
from .component import ContextAwareComponent

# Plans and presets
from .plan import MigrationPlan, MigrationStep, ProjectAnalysis, Risk, FrameworkTarget
from .presets import MigrationPreset, PresetManager


__all__ = [
    # Constants
    "RUN_IDLE",
    "RUN_INITIALIZED",
    "RUN_ANALYZING",
    "RUN_EXECUTING",
    "RUN_PAUSED",
    "RUN_COMPLETED",
    "RUN_FAILED",
    "RUN_STATES",
    "RUN_STATE_TRANSITIONS",
    "ANALYSIS_AGENT",
    "FIX_AGENT",
    "VALIDATION_AGENT",
    "DEPENDENCY_AGENT",
    # Errors
    "MigrationError",
    "ConfigurationError",
    "ContextError",
    "AIServiceError",
    "AIResponseParseError",
    "ToolExecutionError",
    "PromptRenderError",
    "StepExecutionError",
    "should_fallback_to_rules",
    "format_error_chain",
    # Events
    "Event",
    "EventChannel",
    "EventKind",
    # State
    "WorkflowContext",
    "ProjectInfo",
    "PhaseState",
    "RunStats",
    "Issue",
    # Components
    "ContextAwareComponent",
    # Plans and presets
    "MigrationPlan",
    "MigrationStep",
    "ProjectAnalysis",
    "Risk",
    "FrameworkTarget",
    "MigrationPreset",
    "PresetManager",
]
