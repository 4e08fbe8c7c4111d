"""
Validation Agent - checks the migration result

Validates the files the fix step changed (or the project's key files),
runs the build when package.json defines one, optionally runs the tests,
and folds everything into a weighted score (files 60, build 30, tests 10).
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from migrator.orchestrator import stats as derived
from migrator.orchestrator.constants import MAX_VALIDATION_CHARS, VALIDATION_AGENT
from migrator.orchestrator.error_handler import ToolExecutionError
from .base_agent import BaseAIAgent


FALLBACK_FILES = ["package.json", "src/main.js", "src/App.vue"]

BUILD_TIMEOUT = 600
TEST_TIMEOUT = 600


def syntax_check(file_path: str, code: str) -> Dict[str, Any]:
    """Cheap static checks: JSON parse, dangling imports, brace balance."""
    result = {"valid": True, "errors": [], "warnings": [], "suggestions": []}

    if file_path.endswith(".json"):
        try:
            json.loads(code)
        except json.JSONDecodeError as e:
            result["valid"] = False
            result["errors"].append(f"JSON syntax error: {e}")

    if file_path.endswith((".vue", ".js", ".ts")):
        if "import " in code and "from " not in code:
            result["warnings"].append("Possibly incomplete import statement")
        if len(re.findall(r"\{", code)) != len(re.findall(r"\}", code)):
            result["warnings"].append("Braces may be unbalanced")

    return result


def merge_validation_results(syntax: Dict[str, Any], ai: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    merged = {
        "valid": syntax["valid"],
        "errors": list(syntax["errors"]),
        "warnings": list(syntax["warnings"]),
        "suggestions": list(syntax["suggestions"]),
        "score": 80 if syntax["valid"] else 40,
    }
    if isinstance(ai, dict):
        merged["valid"] = merged["valid"] and ai.get("valid") is not False
        merged["errors"] += list(ai.get("errors") or [])
        merged["warnings"] += list(ai.get("warnings") or [])
        merged["suggestions"] += list(ai.get("suggestions") or [])
        if isinstance(ai.get("score"), (int, float)) and ai["score"]:
            merged["score"] = max(merged["score"], ai["score"])
    return merged


class ValidationAgent(BaseAIAgent):
    prompt_file = "validation_agent.yaml"

    def __init__(self, context, ai_service, tool_executor, options=None, prompt_loader=None):
        super().__init__(VALIDATION_AGENT, context, ai_service, tool_executor, options, prompt_loader)

    async def on_execute(self) -> Dict[str, Any]:
        self.log("Validating migration result")
        files = self.get_files_to_validate()
        file_results = await self.validate_files(files)
        manifest = await self._read_manifest()
        build = await self.validate_build(manifest)
        tests = await self.validate_tests(manifest)

        result = {
            "file_validation": file_results,
            "build_validation": build,
            "test_validation": tests,
            "summary": derived.validation_summary(file_results, build, tests),
            "timestamp": datetime.now().isoformat(),
        }
        self.context.record_result("validation", result)
        self.log(f"Validation completed, score {result['summary']['score']}")
        return result

    def get_files_to_validate(self) -> List[str]:
        fix_results = self.context.phases.results.get("fix") or {}
        if fix_results.get("results"):
            return [
                r["file"] for r in fix_results["results"]
                if r.get("success") and (r.get("result") or {}).get("modified")
            ]
        known = set(self.context.project.files)
        return [f for f in FALLBACK_FILES if f in known]

    async def validate_files(self, files: List[str]) -> List[Dict[str, Any]]:
        results = []
        for index, file_path in enumerate(files):
            self.report_progress(index / len(files) * 50, f"Validating {file_path}")
            try:
                results.append({"file": file_path, "success": True,
                                "result": await self.validate_specific_file(file_path)})
            except Exception as e:
                self.log_error(f"File validation failed: {file_path}", e)
                results.append({"file": file_path, "success": False, "error": str(e)})
        return results

    async def validate_specific_file(self, file_path: str) -> Dict[str, Any]:
        code = await self.read_project_file(file_path)
        if not code:
            return {"valid": False, "errors": ["File is empty or could not be read"],
                    "warnings": [], "suggestions": [], "score": 0}

        syntax = syntax_check(file_path, code)
        ai_validation = None
        if self.ai_service.is_enabled():
            snippet = code if len(code) <= MAX_VALIDATION_CHARS else code[:MAX_VALIDATION_CHARS] + "\n// ... code truncated"
            prompt = self.build_prompt("code_validation", {
                "framework": self.context.project.framework or "unknown",
                "target_version": self.target_version(),
                "file_path": file_path,
                "code": snippet,
            })
            try:
                response = await self.analyze_with_ai(prompt, {"type": "validation", "file_name": file_path})
                ai_validation = self.parse_json_response(response)
            except Exception as e:
                self.log_warning(f"AI validation skipped for {file_path}: {e}")

        return merge_validation_results(syntax, ai_validation)

    async def _read_manifest(self) -> Optional[Dict[str, Any]]:
        if "package.json" not in self.context.project.files:
            return None
        content = await self.read_project_file("package.json")
        try:
            return json.loads(content) if content else None
        except json.JSONDecodeError:
            return None

    async def _run_script(self, args: List[str], timeout: int) -> Dict[str, Any]:
        try:
            result = await self.tool_executor.execute_tool(
                "run_command", {"command": "npm", "args": args, "timeout": timeout}
            )
        except ToolExecutionError as e:
            return {"success": False, "error": e.message}
        return {"success": True, "output": (result.result or {}).get("output", "")}

    async def validate_build(self, manifest: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        self.report_progress(75, "Build validation")
        if manifest is None:
            return {"success": False, "error": "Could not read package.json"}

        if not (manifest.get("scripts") or {}).get("build"):
            return {"success": True, "skipped": True, "reason": "No build script"}

        if self.is_dry_run():
            return {"success": True, "skipped": True, "dry_run": True, "reason": "Dry run, build not executed"}

        return await self._run_script(["run", "build"], BUILD_TIMEOUT)

    async def validate_tests(self, manifest: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        self.report_progress(90, "Test validation")
        if manifest is None:
            return {"success": False, "error": "Could not read package.json"}

        test_script = (manifest.get("scripts") or {}).get("test")
        if not test_script or "no test specified" in test_script:
            return {"success": True, "skipped": True, "reason": "No test script configured"}

        if self.is_dry_run() or not self.options.get("run_tests"):
            reason = "Dry run" if self.is_dry_run() else "Test validation not enabled"
            return {"success": True, "skipped": True, "reason": reason}

        return await self._run_script(["test"], TEST_TIMEOUT)
