"""
Analysis Agent - project analysis and problem identification

Collects the manifest and file inventory, asks the AI for a project-level
assessment, a dependency compatibility review and per-file findings for a
handful of key files. When the AI is unavailable (disabled, retries
exhausted, rate limited) it falls back to the rule-based analysis the
planner already recorded.
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from migrator.orchestrator.constants import (
    ANALYSIS_AGENT,
    MAX_FILE_ANALYSIS_CHARS,
    MAX_KEY_FILES,
    PROBLEMATIC_DEPENDENCIES,
)
from .base_agent import BaseAIAgent


KEY_FILE_PATTERNS = [
    re.compile(r"^src/main\.(js|ts)$"),
    re.compile(r"^src/App\.(vue|jsx|tsx)$"),
    re.compile(r"^src/index\.(js|ts)$"),
    re.compile(r"package\.json$"),
    re.compile(r"webpack\.config\.(js|ts)$"),
    re.compile(r"vite\.config\.(js|ts)$"),
    re.compile(r"babel\.config\.(js|json)$"),
    re.compile(r"tsconfig\.json$"),
    re.compile(r"\.eslintrc\.(js|json)$"),
]

COMPONENT_EXTENSIONS = (".vue", ".jsx", ".tsx")
MAX_COMPONENT_FILES = 10
MAX_LISTED_FILES = 20


def identify_key_files(file_list: List[str]) -> List[str]:
    """Entry points and build configs first, then up to 10 component files."""
    key_files = [f for f in file_list if any(p.search(f) for p in KEY_FILE_PATTERNS)]
    components = [f for f in file_list if f.endswith(COMPONENT_EXTENSIONS) and f not in key_files]
    return key_files + components[:MAX_COMPONENT_FILES]


class AnalysisAgent(BaseAIAgent):
    prompt_file = "analysis_agent.yaml"

    def __init__(self, context, ai_service, tool_executor, options=None, prompt_loader=None):
        super().__init__(ANALYSIS_AGENT, context, ai_service, tool_executor, options, prompt_loader)

    async def on_execute(self) -> Dict[str, Any]:
        self.log("Starting project analysis")
        project_info = await self.gather_project_info()

        try:
            analysis = await self.perform_ai_analysis(project_info)
            dependency_analysis = await self.analyze_dependencies(project_info)
            file_analysis = await self.analyze_key_files(project_info)
            source = "ai"
        except Exception as e:
            if not self.should_fallback_to_rules(e):
                raise
            self.log_warning(f"AI analysis unavailable, using rule-based analysis ({e})")
            analysis, dependency_analysis, file_analysis = self.rule_based_analysis(project_info)
            source = "rules"

        result = {
            "project_info": {k: v for k, v in project_info.items() if k != "package_json"},
            "analysis": analysis,
            "dependency_analysis": dependency_analysis,
            "file_analysis": file_analysis,
            "source": source,
            "timestamp": datetime.now().isoformat(),
        }
        self.context.record_result("agent_analysis", result)
        self.log("Project analysis completed")
        return result

    async def gather_project_info(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {
            "project_path": self.context.project_path,
            "framework": self.context.project.framework,
            "current_version": self.context.project.version,
            "package_json": "{}",
            "dependencies": {},
        }
        info["file_list"] = await self.list_project_files()

        if "package.json" in info["file_list"]:
            content = await self.read_project_file("package.json")
            try:
                info["dependencies"] = json.loads(content).get("dependencies") or {}
                info["package_json"] = content
            except (json.JSONDecodeError, AttributeError):
                self.log_warning("package.json could not be parsed")
        return info

    async def perform_ai_analysis(self, project_info: Dict[str, Any]) -> Dict[str, Any]:
        prompt = self.build_prompt("project_analysis", {
            "project_path": project_info["project_path"],
            "framework": project_info["framework"] or "unknown",
            "current_version": project_info["current_version"] or "unknown",
            "target_version": self.target_version(),
            "file_list": "\n".join(project_info["file_list"][:MAX_LISTED_FILES]),
            "package_json": project_info["package_json"],
        })
        response = await self.analyze_with_ai(prompt, {"type": "project-analysis"})
        return self.parse_json_response(response) or {"raw_response": response}

    async def analyze_dependencies(self, project_info: Dict[str, Any]) -> Dict[str, Any]:
        if not project_info["dependencies"]:
            return {"message": "No dependency information found"}

        prompt = self.build_prompt("dependency_analysis", {
            "dependencies": json.dumps(project_info["dependencies"], indent=2),
            "target_version": self.target_version(),
        })
        response = await self.analyze_with_ai(prompt, {"type": "dependency-analysis"})
        return self.parse_json_response(response) or {"raw_response": response}

    async def analyze_key_files(self, project_info: Dict[str, Any]) -> Dict[str, Any]:
        key_files = identify_key_files(project_info["file_list"])
        to_analyze = key_files[:MAX_KEY_FILES]
        analyses = []

        for index, file_path in enumerate(to_analyze):
            self.report_progress(index / len(to_analyze) * 100, f"Analyzing {file_path}")
            try:
                analyses.append({"file_path": file_path, "analysis": await self.analyze_specific_file(file_path)})
                self.context.update_file_status(file_path, "analyzed")
            except Exception as e:
                if self.should_fallback_to_rules(e):
                    raise
                self.log_error(f"File analysis failed: {file_path}", e)
                analyses.append({"file_path": file_path, "error": str(e)})

        return {"total_files": len(key_files), "analyzed_files": len(analyses), "analyses": analyses}

    async def analyze_specific_file(self, file_path: str) -> Dict[str, Any]:
        content = await self.read_project_file(file_path)
        if len(content) > MAX_FILE_ANALYSIS_CHARS:
            content = content[:MAX_FILE_ANALYSIS_CHARS] + "\n// ... content truncated"

        prompt = self.build_prompt("file_analysis", {
            "file_path": file_path,
            "file_content": content,
            "framework": self.context.project.framework or "unknown",
            "current_version": self.context.project.version or "unknown",
            "target_version": self.target_version(),
        })
        response = await self.analyze_with_ai(prompt, {"type": "file-analysis", "file_name": file_path})
        return self.parse_json_response(response) or {"raw_response": response}

    def rule_based_analysis(self, project_info: Dict[str, Any]):
        planner_analysis = self.context.phases.results.get("analysis") or {}
        dependencies = project_info["dependencies"]

        analysis = {
            "complexity": planner_analysis.get("complexity", "medium"),
            "risks": planner_analysis.get("risks", []),
            "recommendations": [],
        }
        dependency_analysis = {
            "incompatible": [
                {"name": name, "currentVersion": dependencies[name], "reason": "Known to need special handling"}
                for name in PROBLEMATIC_DEPENDENCIES if name in dependencies
            ],
            "upgrades": [],
            "risks": [],
        }
        key_files = identify_key_files(project_info["file_list"])
        file_analysis = {"total_files": len(key_files), "analyzed_files": 0, "analyses": []}
        return analysis, dependency_analysis, file_analysis

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def generate_migration_report(self) -> Dict[str, Any]:
        result = self.context.phases.results.get("agent_analysis")
        return {
            "summary": self.context.get_summary(),
            "analysis": result,
            "recommendations": self.generate_recommendations(result),
            "next_steps": self.generate_next_steps(result),
            "timestamp": datetime.now().isoformat(),
        }

    @staticmethod
    def generate_recommendations(result: Optional[Dict[str, Any]]) -> List[str]:
        result = result or {}
        recommendations = []
        if (result.get("analysis") or {}).get("complexity") == "high":
            recommendations.append("Migrate in stages to reduce risk")
        if (result.get("dependency_analysis") or {}).get("incompatible"):
            recommendations.append("Resolve incompatible dependencies first")
        analyses = (result.get("file_analysis") or {}).get("analyses", [])
        if any((a.get("analysis") or {}).get("complexity") == "high" for a in analyses):
            recommendations.append("Review complex files manually")
        return recommendations

    @staticmethod
    def generate_next_steps(result: Optional[Dict[str, Any]]) -> List[str]:
        complexity = ((result or {}).get("analysis") or {}).get("complexity")
        steps = ["Create a project backup", "Upgrade dependencies"]
        if complexity != "low":
            steps.append("Fix code with AI assistance")
        steps += ["Run build validation", "Run test validation"]
        return [f"{i}. {step}" for i, step in enumerate(steps, start=1)]
