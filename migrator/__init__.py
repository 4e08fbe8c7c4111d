"""
Framework Migration Orchestrator

Drives multi-step migration runs (analyze, plan, execute, validate) over a
project directory. The heavy lifting is delegated to sandboxed tools and an
AI advisory layer:

- orchestrator/: workflow context, event channel, tool registry/executor,
  strategy planner, presets and the top-level MigrationOrchestrator
- tools/: built-in file and command tool bodies
- agents/: AI agents (analysis, fix, validation)
- utils/: logging, AI service, LangChain model adapter
- prompts/: YAML prompt templates
"""

__version__ = "0.3.0"
