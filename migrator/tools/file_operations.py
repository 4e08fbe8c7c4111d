"""
File tools for migration agents

Validators and bodies of the built-in read_file, write_file and list_files
tools. Every path a caller supplies is project-relative: the validators
reject absolute paths and parent-directory segments, and the bodies resolve
against the project root and refuse anything that still lands outside it
(e.g. through a symlink).
"""

import asyncio
import os
import re
import shutil
import time
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Dict, List

from migrator.orchestrator.constants import DEFAULT_LIST_EXCLUDES, MAX_CONTENT_SIZE
from migrator.orchestrator.error_handler import ToolExecutionError
from migrator.utils.logging_config import log_agent
from .definitions import ToolExecutionContext, ValidationResult


_WINDOWS_DRIVE = re.compile(r"^[a-zA-Z]:[\\/]")


# =============================================================================
# VALIDATORS
# =============================================================================

def validate_file_path(file_path: Any) -> ValidationResult:
    """
    Accept only non-empty, project-relative paths without '..' segments.

    Examples:
        validate_file_path("src/a.ts")     -> valid
        validate_file_path("../x")         -> invalid
        validate_file_path("/etc/passwd")  -> invalid
    """
    if not file_path or not isinstance(file_path, str):
        return ValidationResult.fail("File path must be a non-empty string")

    segments = re.split(r"[\\/]+", file_path)
    if ".." in segments:
        return ValidationResult.fail("Access to files outside the project directory is not allowed")

    if os.path.isabs(file_path) or file_path.startswith(("/", "\\")) or _WINDOWS_DRIVE.match(file_path):
        return ValidationResult.fail("Access to files outside the project directory is not allowed")

    return ValidationResult.ok()


def validate_content(content: Any) -> ValidationResult:
    """Content must be a string of at most 10 MiB."""
    if not isinstance(content, str):
        return ValidationResult.fail("File content must be a string")
    if len(content) > MAX_CONTENT_SIZE:
        return ValidationResult.fail("File content too large (over 10MB)")
    return ValidationResult.ok()


def validate_read_params(params: Dict[str, Any]) -> ValidationResult:
    return validate_file_path(params.get("file_path"))


def validate_write_params(params: Dict[str, Any]) -> ValidationResult:
    path_check = validate_file_path(params.get("file_path"))
    if not path_check.valid:
        return path_check
    return validate_content(params.get("content"))


def validate_list_params(params: Dict[str, Any]) -> ValidationResult:
    directory = params.get("directory", ".")
    if directory in (None, "", "."):
        return ValidationResult.ok()
    return validate_file_path(directory)


# =============================================================================
# PATH RESOLUTION
# =============================================================================

def resolve_in_project(project_path: str, relative_path: str) -> Path:
    """
    Resolve relative_path under project_path.

    Raises:
        ToolExecutionError: if the resolved path is outside the project root
    """
    root = Path(project_path).resolve()
    target = (root / (relative_path or ".")).resolve()
    if target != root and root not in target.parents:
        raise ToolExecutionError(
            f"Path escapes the project directory: {relative_path}",
            details=f"project root: {root}",
        )
    return target


def matches_glob(relative_path: str, pattern: str) -> bool:
    """fnmatch with '**/' also matching files at the top level."""
    if fnmatch(relative_path, pattern):
        return True
    return pattern.startswith("**/") and fnmatch(relative_path, pattern[3:])


def is_excluded(relative_path: str, excludes: List[str]) -> bool:
    for pattern in excludes:
        prefix = pattern[:-3] if pattern.endswith("/**") else None
        if prefix and (relative_path == prefix or relative_path.startswith(prefix + "/")):
            return True
        if matches_glob(relative_path, pattern):
            return True
    return False


# =============================================================================
# TOOL BODIES
# =============================================================================

async def read_file(params: Dict[str, Any], ctx: ToolExecutionContext) -> Dict[str, Any]:
    target = resolve_in_project(ctx.project_path, params["file_path"])
    if not target.is_file():
        raise FileNotFoundError(f"File not found: {params['file_path']}")

    content = await asyncio.to_thread(target.read_text, encoding="utf-8")
    log_agent(f"FILE READ SUCCESS: {params['file_path']} ({len(content)} chars)", "DEBUG")
    return {"content": content, "size": len(content), "path": str(target)}


def _write_with_backup(target: Path, content: str, backup: bool) -> str:
    backup_path = None
    if backup and target.exists():
        backup_path = f"{target}.backup.{int(time.time() * 1000)}"
        shutil.copy2(target, backup_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return backup_path


async def write_file(params: Dict[str, Any], ctx: ToolExecutionContext) -> Dict[str, Any]:
    target = resolve_in_project(ctx.project_path, params["file_path"])
    content = params["content"]

    if ctx.dry_run:
        log_agent(f"FILE WRITE (dry run): {params['file_path']} ({len(content)} chars)")
        return {"success": True, "path": str(target), "size": len(content), "dry_run": True}

    backup_path = await asyncio.to_thread(
        _write_with_backup, target, content, params.get("backup", True) is not False
    )
    log_agent(f"FILE WRITE SUCCESS: {params['file_path']} ({len(content)} chars)")
    return {"success": True, "path": str(target), "size": len(content), "backup_path": backup_path}


def _scan(root: Path, start: Path, pattern: str, excludes: List[str]) -> List[str]:
    files = []
    for dirpath, dirnames, filenames in os.walk(start):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir
        dirnames[:] = sorted(
            d for d in dirnames
            if not is_excluded(f"{rel_dir}/{d}" if rel_dir else d, excludes)
        )
        for name in sorted(filenames):
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if is_excluded(rel, excludes) or not matches_glob(rel, pattern):
                continue
            files.append(rel)
    return files


async def list_files(params: Dict[str, Any], ctx: ToolExecutionContext) -> Dict[str, Any]:
    """List files under `directory`; returned paths are relative to the project root."""
    root = Path(ctx.project_path).resolve()
    start = resolve_in_project(ctx.project_path, params.get("directory") or ".")
    if not start.is_dir():
        raise NotADirectoryError(f"Not a directory: {params.get('directory')}")

    pattern = params.get("pattern") or "**/*"
    excludes = params.get("exclude")
    if excludes is None:
        excludes = list(DEFAULT_LIST_EXCLUDES)

    files = await asyncio.to_thread(_scan, root, start, pattern, excludes)
    return {"files": files, "count": len(files)}


# =============================================================================
# SCHEMAS
# =============================================================================

READ_FILE_SCHEMA = {
    "type": "object",
    "properties": {
        "file_path": {"type": "string", "description": "File path relative to the project root"},
    },
    "required": ["file_path"],
}

WRITE_FILE_SCHEMA = {
    "type": "object",
    "properties": {
        "file_path": {"type": "string", "description": "File path relative to the project root"},
        "content": {"type": "string", "description": "Full content to write"},
        "backup": {"type": "boolean", "description": "Copy an existing file aside first", "default": True},
    },
    "required": ["file_path", "content"],
}

LIST_FILES_SCHEMA = {
    "type": "object",
    "properties": {
        "directory": {"type": "string", "description": "Directory to list", "default": "."},
        "pattern": {"type": "string", "description": "Glob pattern", "default": "**/*"},
        "exclude": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Glob patterns to skip",
            "default": list(DEFAULT_LIST_EXCLUDES),
        },
    },
    "required": [],
}
