"""
Fix Agent - AI assisted code fixes

Asks the AI for a migrated version of each candidate source file and writes
it back (with a backup) only when the answer looks like a real fix: not
empty, materially different from the original, and within 0.5x-2x of the
original length. Dry runs report what would change without writing.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from migrator.orchestrator.constants import (
    FIX_AGENT,
    FIXABLE_EXTENSIONS,
    MAX_FILES_TO_FIX,
    MAX_FIX_LENGTH_RATIO,
    MIN_FIX_LENGTH_RATIO,
)
from .base_agent import BaseAIAgent


_FENCE = re.compile(r"^\s*```[\w+-]*\n([\s\S]*?)\n```\s*$")


def strip_code_fence(text: str) -> str:
    """Unwrap a response that is a single fenced code block."""
    match = _FENCE.match(text or "")
    return match.group(1) if match else text


def _normalize_whitespace(code: str) -> str:
    return re.sub(r"\s+", " ", code).strip()


class FixAgent(BaseAIAgent):
    prompt_file = "fix_agent.yaml"

    def __init__(self, context, ai_service, tool_executor, options=None, prompt_loader=None):
        super().__init__(FIX_AGENT, context, ai_service, tool_executor, options, prompt_loader)
        self.fixed_files: List[str] = []

    async def on_execute(self) -> Dict[str, Any]:
        self.log("Starting code fixes")
        files = await self.identify_files_to_fix()
        results = await self.batch_fix_files(files)

        result = {
            "total_files": len(files),
            "fixed_files": sum(1 for r in results if (r.get("result") or {}).get("modified")),
            "results": results,
            "timestamp": datetime.now().isoformat(),
        }
        self.context.record_result("fix", result)
        self.log(f"Code fixes completed: {result['fixed_files']} of {len(files)} files changed")
        return result

    async def identify_files_to_fix(self) -> List[str]:
        files = await self.list_project_files()
        return [f for f in files if f.endswith(FIXABLE_EXTENSIONS)][:MAX_FILES_TO_FIX]

    async def batch_fix_files(self, files: List[str]) -> List[Dict[str, Any]]:
        results = []
        for index, file_path in enumerate(files):
            self.report_progress(index / len(files) * 100, f"Fixing {file_path}")
            try:
                outcome = await self.fix_single_file(file_path)
            except Exception as e:
                if self.should_fallback_to_rules(e):
                    raise
                self.log_error(f"Fix failed: {file_path}", e)
                results.append({"file": file_path, "success": False, "error": str(e)})
                continue
            results.append({"file": file_path, "success": True, "result": outcome})
        return results

    async def _ask_for_fix(self, file_path: str, current_code: str, error_message: str) -> str:
        prompt = self.build_prompt("code_fix", {
            "file_path": file_path,
            "framework": self.context.project.framework or "unknown",
            "current_version": self.context.project.version or "unknown",
            "target_version": self.target_version(),
            "current_code": current_code,
            "error_message": error_message,
        })
        response = await self.analyze_with_ai(prompt, {"type": "code-fix", "file_name": file_path})
        return strip_code_fence(response)

    async def fix_single_file(self, file_path: str, error_message: str = "Compatibility issues") -> Dict[str, Any]:
        current_code = await self.read_project_file(file_path)
        if not current_code:
            return {"modified": False, "reason": "File is empty or could not be read"}

        fixed_code = await self._ask_for_fix(file_path, current_code, error_message)
        if not self.should_apply_fix(current_code, fixed_code):
            return {"modified": False, "reason": "No change needed"}

        if self.is_dry_run():
            return {"modified": True, "dry_run": True,
                    "original_size": len(current_code), "new_size": len(fixed_code)}

        if not await self.write_project_file(file_path, fixed_code, backup=True):
            return {"modified": False, "reason": "Write failed"}

        self.fixed_files.append(file_path)
        self.context.record_errors_fixed(1)
        return {"modified": True, "original_size": len(current_code), "new_size": len(fixed_code)}

    def should_apply_fix(self, original_code: str, fixed_code: str) -> bool:
        if not fixed_code or not fixed_code.strip():
            return False

        if _normalize_whitespace(original_code) == _normalize_whitespace(fixed_code):
            return False

        ratio = len(fixed_code) / len(original_code) if original_code else float("inf")
        if ratio < MIN_FIX_LENGTH_RATIO or ratio > MAX_FIX_LENGTH_RATIO:
            self.log_warning(f"Fixed code length changed too much (ratio {ratio:.2f}), not applying")
            return False
        return True

    async def fix_specific_file(self, file_path: str, error_message: Optional[str] = None) -> Dict[str, Any]:
        """Fix one file on demand; errors propagate to the caller."""
        current_code = await self.read_project_file(file_path)
        fixed_code = await self._ask_for_fix(file_path, current_code, error_message or "Issues to fix")

        if not self.should_apply_fix(current_code, fixed_code):
            return {"success": True, "modified": False, "reason": "No change needed"}

        if self.is_dry_run():
            return {"success": True, "modified": True, "dry_run": True, "fixed_code": fixed_code}

        if not await self.write_project_file(file_path, fixed_code, backup=True):
            return {"success": False, "modified": False, "reason": "Write failed"}

        self.fixed_files.append(file_path)
        return {"success": True, "modified": True, "fixed_code": fixed_code}

    async def apply_bulk_fixes(self, fixes: List[Dict[str, str]]) -> List[Dict[str, Any]]:
        """Write pre-computed fixes ({file_path, fixed_code}); skipped in dry runs."""
        results = []
        for fix in fixes:
            file_path = fix["file_path"]
            if self.is_dry_run():
                results.append({"file_path": file_path, "success": True, "applied": False})
                continue
            written = await self.write_project_file(file_path, fix["fixed_code"], backup=True)
            if written:
                self.fixed_files.append(file_path)
            results.append({"file_path": file_path, "success": written, "applied": written})
        return results

    def get_fixed_files(self) -> List[str]:
        return list(self.fixed_files)

    def get_fix_stats(self) -> Dict[str, Any]:
        return {
            "total_fixed": len(self.fixed_files),
            "fixed_files": self.get_fixed_files(),
            "agent_stats": self.get_agent_stats(),
        }
