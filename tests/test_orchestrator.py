"""Tests for the migration orchestrator run loop."""

import pytest

from migrator.orchestrator.error_handler import ConfigurationError, MigrationError, StepExecutionError
from migrator.orchestrator.events import EventChannel, EventKind
from migrator.orchestrator.migration_orchestrator import MigrationOrchestrator
from migrator.orchestrator.state import WorkflowContext, step_result_key


VUE_STEPS = ["dependency-upgrade", "code-migration", "ai-repair", "build-validation"]


class Recorder:
    """Step handler that records the steps it ran and returns a small result."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []

    async def __call__(self, step, context):
        self.calls.append(step.name)
        if step.name in self.fail_on:
            raise RuntimeError(f"{step.name} broke")
        return {"handled": step.name}


def register_all(orchestrator, handler):
    for name in VUE_STEPS:
        orchestrator.register_step_handler(name, handler)


@pytest.fixture
def orchestrator():
    return MigrationOrchestrator()


@pytest.mark.asyncio
async def test_clean_run_succeeds(vue2_project, orchestrator):
    handler = Recorder()
    register_all(orchestrator, handler)
    await orchestrator.initialize(str(vue2_project))

    result = await orchestrator.execute()

    assert handler.calls == VUE_STEPS
    assert result["success"] is True
    assert result["paused"] is False
    assert result["plan"]["name"] == "Vue 2 to Vue 3 Migration"
    assert result["analysis"]["framework"] == "vue"
    assert result["summary"]["overall_success"] is True
    assert result["summary"]["completed_steps"] == 4
    assert orchestrator.state == "completed"
    assert orchestrator.context.stats.progress == 100
    assert orchestrator.context.phases.completed == VUE_STEPS


@pytest.mark.asyncio
async def test_required_step_failure_aborts_run(vue2_project, orchestrator):
    handler = Recorder(fail_on={"dependency-upgrade"})
    register_all(orchestrator, handler)
    context = await orchestrator.initialize(str(vue2_project))

    with pytest.raises(StepExecutionError) as exc_info:
        await orchestrator.execute()

    assert handler.calls == ["dependency-upgrade"]
    assert exc_info.value.step_name == "dependency-upgrade"
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert orchestrator.state == "failed"
    assert context.phases.failed == ["dependency-upgrade"]
    assert context.phases.results["steps"] == [
        {"step": "dependency-upgrade", "success": False, "error": "dependency-upgrade broke"},
    ]
    assert context.issues[-1].origin == "run"


@pytest.mark.asyncio
async def test_optional_step_failure_continues(vue2_project, orchestrator):
    handler = Recorder(fail_on={"ai-repair"})
    register_all(orchestrator, handler)
    await orchestrator.initialize(str(vue2_project))

    result = await orchestrator.execute()

    assert handler.calls == VUE_STEPS
    assert [r["success"] for r in result["results"]] == [True, True, False, True]
    assert result["success"] is True
    assert result["summary"]["overall_success"] is False
    assert result["summary"]["completed_steps"] == 3
    assert orchestrator.state == "completed"


@pytest.mark.asyncio
async def test_steps_without_handler_pass_through(vue2_project, orchestrator):
    await orchestrator.initialize(str(vue2_project))

    result = await orchestrator.execute()

    assert [r["result"]["handler"] for r in result["results"]] == [None] * 4
    assert result["context"]["issues"]["warnings"] == 4
    assert result["summary"]["overall_success"] is True


@pytest.mark.asyncio
async def test_handler_resolved_by_agent_role(vue2_project, orchestrator):
    by_role = Recorder()
    by_name = Recorder()
    orchestrator.register_step_handler("FixAgent", by_role)
    orchestrator.register_step_handler("ai-repair", by_name)
    await orchestrator.initialize(str(vue2_project))

    await orchestrator.execute()

    assert by_role.calls == ["code-migration"]
    assert by_name.calls == ["ai-repair"]


@pytest.mark.asyncio
async def test_pause_and_resume(vue2_project, orchestrator):
    handler = Recorder()
    register_all(orchestrator, handler)

    def pausing(step, context):
        handler.calls.append(step.name)
        orchestrator.pause()
        return {"paused_after": step.name}

    orchestrator.register_step_handler("code-migration", pausing)
    await orchestrator.initialize(str(vue2_project))

    first = await orchestrator.execute()

    assert first["paused"] is True
    assert first["success"] is False
    assert first["summary"] is None
    assert len(first["results"]) == 2
    assert orchestrator.state == "paused"
    assert orchestrator.get_status()["paused"] is True

    second = await orchestrator.execute()

    assert handler.calls == VUE_STEPS
    assert second["paused"] is False
    assert [r["step"] for r in second["results"]] == VUE_STEPS
    assert orchestrator.state == "completed"


@pytest.mark.asyncio
async def test_run_state_events(vue2_project):
    channel = EventChannel("test")
    states = []
    channel.subscribe(EventKind.RUN_STATE_CHANGED, lambda e: states.append(e.payload["state"]))
    orchestrator = MigrationOrchestrator(events=channel)
    register_all(orchestrator, Recorder())

    await orchestrator.initialize(str(vue2_project))
    await orchestrator.execute()

    assert states == ["initialized", "analyzing", "executing", "completed"]


@pytest.mark.asyncio
async def test_execute_requires_initialize(orchestrator):
    with pytest.raises(MigrationError, match="initialize"):
        await orchestrator.execute()


@pytest.mark.asyncio
async def test_execute_twice_is_rejected_until_reinitialized(vue2_project, orchestrator):
    await orchestrator.initialize(str(vue2_project))
    await orchestrator.execute()

    with pytest.raises(MigrationError, match="Invalid run state transition"):
        await orchestrator.execute()

    await orchestrator.initialize(str(vue2_project))
    assert (await orchestrator.execute())["success"] is True


@pytest.mark.asyncio
async def test_planning_failure_is_wrapped(tmp_path, orchestrator):
    (tmp_path / "package.json").write_text("{broken", encoding="utf-8")
    await orchestrator.initialize(str(tmp_path))

    with pytest.raises(MigrationError, match="Planning failed") as exc_info:
        await orchestrator.execute()

    assert isinstance(exc_info.value.__cause__, ValueError)
    assert orchestrator.state == "failed"


@pytest.mark.asyncio
async def test_custom_plan_mapping(vue2_project, orchestrator):
    handler = Recorder()
    orchestrator.register_step_handler("second", handler)
    orchestrator.register_step_handler("first", handler)
    await orchestrator.initialize(str(vue2_project))

    result = await orchestrator.execute({
        "name": "Custom",
        "source": {"framework": "vue", "version": "2.x"},
        "target": {"framework": "vue", "version": "3.x"},
        "steps": [{"name": "second", "order": 2}, {"name": "first", "order": 1}],
    })

    assert handler.calls == ["first", "second"]
    assert result["plan"]["name"] == "Custom"


@pytest.mark.asyncio
async def test_auto_snapshot_on_failure(vue2_project, tmp_path, orchestrator):
    snapshot = tmp_path / "snapshots" / "run.json"
    register_all(orchestrator, Recorder(fail_on={"code-migration"}))
    await orchestrator.initialize(str(vue2_project), {"auto_snapshot": True, "snapshot_path": str(snapshot)})

    with pytest.raises(StepExecutionError):
        await orchestrator.execute()

    restored = WorkflowContext.load_snapshot(str(snapshot))
    assert restored.phases.completed == ["dependency-upgrade"]
    assert restored.phases.failed == ["code-migration"]
    assert restored.error_count == 2


def test_register_rejects_non_callables(orchestrator):
    with pytest.raises(TypeError):
        orchestrator.register_step_handler("code-migration", 42)


@pytest.mark.asyncio
async def test_agents_registered_with_ai_service(vue2_project, disabled_ai):
    custom_fix = Recorder()
    orchestrator = MigrationOrchestrator({"dry_run": True}, ai_service=disabled_ai)
    orchestrator.register_step_handler("FixAgent", custom_fix)

    await orchestrator.initialize(str(vue2_project))
    assert set(orchestrator.agents) == {"AnalysisAgent", "FixAgent", "ValidationAgent"}
    assert disabled_ai.events is orchestrator.context.events

    result = await orchestrator.execute()

    assert custom_fix.calls == ["code-migration", "ai-repair"]
    validation = result["results"][-1]["result"]
    assert validation["build_validation"]["skipped"] is True
    assert result["summary"]["overall_success"] is True

    orchestrator.cleanup()
    assert orchestrator.agents == {}
    assert orchestrator.tool_executor is None


@pytest.mark.asyncio
async def test_generic_plan_keeps_project_analysis(tmp_path, orchestrator):
    project = tmp_path / "api"
    project.mkdir()
    (project / "package.json").write_text('{"dependencies": {"express": "^4.18.0"}}', encoding="utf-8")
    context = await orchestrator.initialize(str(project))

    result = await orchestrator.execute()

    assert result["plan"]["name"] == "Generic Migration Plan"
    assert context.phases.completed == ["analysis", "preparation", "migration", "validation"]
    assert context.phases.results["analysis"]["framework"] == "node"
    assert "complexity" in context.phases.results["analysis"]
    assert context.phases.results[step_result_key("analysis")] == {
        "step_name": "analysis", "completed": True, "handler": None,
    }


@pytest.mark.asyncio
async def test_custom_plan_with_repeated_step_name_is_rejected(vue2_project, orchestrator):
    handler = Recorder()
    orchestrator.register_step_handler("lint", handler)
    await orchestrator.initialize(str(vue2_project))

    with pytest.raises(ConfigurationError, match="lint") as exc_info:
        await orchestrator.execute({
            "name": "Twice",
            "source": {"framework": "vue", "version": "2.x"},
            "target": {"framework": "vue", "version": "3.x"},
            "steps": [
                {"name": "lint", "order": 1, "required": False},
                {"name": "lint", "order": 2, "required": False},
            ],
        })

    assert exc_info.value.errors
    assert handler.calls == []
    assert orchestrator.state == "failed"


@pytest.mark.asyncio
async def test_agent_progress_does_not_move_run_progress(vue2_project, disabled_ai):
    orchestrator = MigrationOrchestrator({"dry_run": True}, ai_service=disabled_ai)
    orchestrator.register_step_handler("FixAgent", Recorder())
    context = await orchestrator.initialize(str(vue2_project))
    run_progress = []
    component_progress = []
    context.events.subscribe(EventKind.PROGRESS_UPDATE, lambda e: run_progress.append(e.payload["progress"]))
    context.events.subscribe(EventKind.COMPONENT_PROGRESS, lambda e: component_progress.append(e.payload["component"]))

    await orchestrator.execute()

    assert run_progress == [25, 50, 75, 100, 100]
    assert component_progress.count("ValidationAgent") >= 3
    assert context.stats.progress == 100
