"""
Strategy Planner - project analysis and migration planning

Two signals describe a project:
- The manifest (package.json): framework, version and build tool from the
  declared dependencies.
- The file tree: extension/name patterns, used for the framework only when
  the manifest did not name one.

From these the planner scores complexity, lists risks, computes a
confidence value and picks a preset plan (falling back to a generic
four-step plan when no preset matches).
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from migrator.utils.logging_config import log_summary
from . import stats as derived
from .component import ContextAwareComponent
from .constants import (
    ANALYSIS_AGENT,
    DEFAULT_TARGETS,
    DEPENDENCY_AGENT,
    FIX_AGENT,
    PROBLEMATIC_DEPENDENCIES,
    SCAN_EXCLUDED_DIRS,
    VALIDATION_AGENT,
)
from .plan import FrameworkTarget, MigrationPlan, MigrationStep, ProjectAnalysis, Risk
from .presets import PresetManager
from .state import WorkflowContext


MANIFEST_FILE = "package.json"


# =============================================================================
# MANIFEST RULES
# =============================================================================

def detect_framework(dependencies: Mapping[str, str]) -> Optional[str]:
    if "vue" in dependencies:
        return "vue"
    if "react" in dependencies:
        return "react"
    if "@angular/core" in dependencies:
        return "angular"
    if "express" in dependencies:
        return "node"
    return None


def detect_version(dependencies: Mapping[str, str]) -> Optional[str]:
    if "vue" in dependencies:
        return "2.x" if str(dependencies["vue"]).startswith("^2") else "3.x"
    if "react" in dependencies:
        version = re.sub(r"[^\d.]", "", str(dependencies["react"]))
        return "16.x" if version.startswith("16") else "18.x"
    return None


def detect_build_tool(manifest: Mapping[str, Any]) -> Optional[str]:
    dev_dependencies = manifest.get("devDependencies") or {}
    for tool in ("webpack", "vite", "rollup"):
        if tool in dev_dependencies:
            return tool
    return None


# =============================================================================
# FILE TREE RULES
# =============================================================================

def scan_project_files(project_path: str) -> List[str]:
    """Project-relative posix paths, skipping hidden and dependency-cache dirs."""
    root = Path(project_path)
    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and d not in SCAN_EXCLUDED_DIRS
        )
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            files.append((Path(dirpath) / filename).relative_to(root).as_posix())
    return files


def detect_file_patterns(files: List[str]) -> Dict[str, bool]:
    return {
        "vue": any(f.endswith(".vue") for f in files),
        "react": any(f.endswith((".jsx", ".tsx")) for f in files),
        "angular": any(f.endswith("component.ts") for f in files),
        "node": any(f in ("server.js", "app.js") for f in files),
    }


# =============================================================================
# SCORING
# =============================================================================

def assess_complexity(files: List[str], dependencies: Mapping[str, str]) -> str:
    score = 0
    if len(files) > 100:
        score += 2
    elif len(files) > 50:
        score += 1

    if len(dependencies) > 50:
        score += 2
    elif len(dependencies) > 20:
        score += 1

    if any("webpack" in f for f in files):
        score += 1
    if any("babel" in f for f in files):
        score += 1

    if score >= 4:
        return "high"
    if score >= 2:
        return "medium"
    return "low"


def identify_risks(dependencies: Mapping[str, str], complexity: str) -> List[Risk]:
    risks = [
        Risk(type="dependency", severity="medium", description=f"Dependency {name} may need special handling")
        for name in PROBLEMATIC_DEPENDENCIES if name in dependencies
    ]
    if complexity == "high":
        risks.append(Risk(type="complexity", severity="high",
                          description="High project complexity, migration may take longer"))
    return risks


def calculate_confidence(framework: Optional[str], version: Optional[str],
                         dependencies: Mapping[str, str]) -> float:
    confidence = 0.5
    if framework:
        confidence += 0.2
    if version:
        confidence += 0.2
    if dependencies:
        confidence += 0.1
    return min(round(confidence, 2), 1.0)


def determine_target(framework: Optional[str]) -> FrameworkTarget:
    if framework in DEFAULT_TARGETS:
        return FrameworkTarget(framework=framework, version=DEFAULT_TARGETS[framework])
    return FrameworkTarget(framework=framework or "unknown", version="latest")


def step_config(step_name: str, analysis: ProjectAnalysis) -> Dict[str, Any]:
    """Analysis-derived settings layered over a preset step's own config."""
    configs = {
        "dependency-upgrade": {
            "preserve_versions": analysis.complexity == "high",
            "auto_install": True,
        },
        "code-migration": {
            "parallel": len(analysis.files) < 100,
            "backup_files": True,
        },
        "ai-repair": {
            "enabled": analysis.complexity != "low",
            "max_attempts": 5 if analysis.complexity == "high" else 3,
        },
    }
    return configs.get(step_name, {})


GENERIC_STEPS = (
    ("analysis", "Project analysis", ANALYSIS_AGENT),
    ("preparation", "Migration preparation", DEPENDENCY_AGENT),
    ("migration", "Run the migration", FIX_AGENT),
    ("validation", "Validate the result", VALIDATION_AGENT),
)


class StrategyPlanner(ContextAwareComponent):
    """Analyzes a project and turns the analysis into a migration plan."""

    def __init__(self, context: WorkflowContext, options: Optional[Mapping[str, Any]] = None,
                 presets: Optional[PresetManager] = None):
        super().__init__("StrategyPlanner", context, options)
        self.presets = presets or PresetManager()

    async def on_initialize(self):
        presets_file = self.options.get("presets_file")
        if presets_file:
            loaded = self.presets.load_file(presets_file)
            self.log(f"Loaded {len(loaded)} presets from {presets_file}")

    async def on_execute(self) -> Dict[str, Any]:
        return {"presets": self.presets.list_presets()}

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    def _read_manifest(self, project_path: str) -> Optional[Dict[str, Any]]:
        manifest_path = Path(project_path) / MANIFEST_FILE
        if not manifest_path.is_file():
            return None
        with open(manifest_path, "r", encoding="utf-8") as f:
            return json.load(f)

    async def analyze_project(self, project_path: Optional[str] = None) -> ProjectAnalysis:
        """
        Analyze the project on disk.

        Raises:
            OSError / json.JSONDecodeError: unreadable manifest (logged first)
        """
        project_path = project_path or self.context.project_path
        self.log("Analyzing project structure")

        try:
            manifest = self._read_manifest(project_path)
            files = scan_project_files(project_path)
        except (OSError, ValueError) as e:
            self.log_error("Project analysis failed", e)
            raise

        dependencies = dict((manifest or {}).get("dependencies") or {})
        framework = detect_framework(dependencies)
        version = detect_version(dependencies)
        build_tool = detect_build_tool(manifest) if manifest else None

        patterns = detect_file_patterns(files)
        if not framework:
            framework = next((name for name, found in patterns.items() if found), None)

        complexity = assess_complexity(files, dependencies)
        analysis = ProjectAnalysis(
            project_path=project_path,
            framework=framework,
            version=version,
            build_tool=build_tool,
            complexity=complexity,
            files=files,
            dependencies=dependencies,
            file_patterns=patterns,
            risks=identify_risks(dependencies, complexity),
            confidence=calculate_confidence(framework, version, dependencies),
        )

        self.context.set_project_info(
            path=project_path,
            name=(manifest or {}).get("name") or Path(project_path).name,
            framework=framework,
            version=version,
            build_tool=build_tool,
            detected_framework=framework,
            dependencies=dependencies,
            files=files,
            confidence=analysis.confidence,
        )
        for file_path in files:
            self.context.update_file_status(file_path, "analyzed")

        log_summary(
            f"[PLANNER] Analysis: framework={framework} version={version} "
            f"complexity={complexity} files={len(files)} confidence={analysis.confidence}"
        )
        return analysis

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    async def generate_migration_plan(self, analysis: ProjectAnalysis) -> MigrationPlan:
        self.log("Generating migration plan")
        target = determine_target(analysis.framework)
        preset = self.presets.find_preset(analysis.framework, analysis.version,
                                          target.framework, target.version)
        if preset is None:
            plan = self.generate_generic_plan(analysis, target)
        else:
            steps = [
                step.model_copy(update={"config": {**step.config, **step_config(step.name, analysis)}})
                for step in preset.steps
            ]
            plan = MigrationPlan(
                name=preset.name,
                source=FrameworkTarget(framework=analysis.framework or "unknown",
                                       version=analysis.version or "unknown"),
                target=FrameworkTarget(framework=preset.target.framework, version=preset.target.version),
                steps=tuple(steps),
                tools=tuple(preset.tools),
                estimated_duration=derived.estimate_duration(len(steps), analysis.complexity),
                risks=tuple(analysis.risks),
            )

        log_summary(
            f"[PLANNER] Plan '{plan.name}': {len(plan.steps)} steps, "
            f"~{plan.estimated_duration} min, {len(plan.risks)} risks"
        )
        return plan

    def generate_generic_plan(self, analysis: ProjectAnalysis,
                              target: Optional[FrameworkTarget] = None) -> MigrationPlan:
        target = target or determine_target(analysis.framework)
        steps = tuple(
            MigrationStep(name=name, description=description, order=order, required=True, agent=agent)
            for order, (name, description, agent) in enumerate(GENERIC_STEPS, start=1)
        )
        return MigrationPlan(
            name="Generic Migration Plan",
            source=FrameworkTarget(framework=analysis.framework or "unknown",
                                   version=analysis.version or "unknown"),
            target=target,
            steps=steps,
            estimated_duration=derived.estimate_duration(len(steps), analysis.complexity),
            risks=tuple(analysis.risks),
        )
