"""
Command tool for migration agents

The run_command tool executes allow-listed commands inside the project
directory. Only the first whitespace-delimited token of `command` is checked
against ALLOWED_COMMANDS; the command line is tokenized with shlex and run
without a shell, so pipes and substitutions are never interpreted.
"""

import asyncio
import shlex
from typing import Any, Dict, List

from migrator.orchestrator.constants import DEFAULT_COMMAND_TIMEOUT, MAX_COMMAND_OUTPUT
from migrator.orchestrator.error_handler import ToolExecutionError
from migrator.utils.logging_config import log_agent, log_summary
from .definitions import ToolExecutionContext, ValidationResult
from .file_operations import resolve_in_project


ALLOWED_COMMANDS = {
    'npm', 'yarn', 'pnpm', 'cnpm',              # Package managers
    'node', 'npx', 'nvm',                       # Node runtime
    'git',                                      # Version control
    'webpack', 'vite', 'rollup', 'babel',       # Bundlers/transpilers
    'gulp', 'grunt',                            # Task runners
    'jest', 'mocha', 'vitest',                  # Test runners
    'eslint', 'prettier', 'tslint',             # Linters/formatters
    'tsc', 'typescript',                        # TypeScript compiler
    'ls', 'dir', 'cat', 'type', 'head', 'tail', # File viewing
    'mkdir', 'rmdir', 'find', 'grep',           # File system / search
    'cp', 'mv', 'rm', 'chmod',                  # File management
    'echo', 'pwd', 'which', 'where',            # Shell basics
    'vue', 'ng', 'react-scripts',               # Framework CLIs
}


def validate_command(command: Any, args: Any = None) -> ValidationResult:
    """
    Check the command's first token against ALLOWED_COMMANDS.

    Returns:
        ValidationResult; arguments are only type-checked, not sandboxed
    """
    if not command or not isinstance(command, str) or not command.strip():
        return ValidationResult.fail("Command must be a non-empty string")

    if args is not None and (not isinstance(args, list) or not all(isinstance(a, (str, int, float)) for a in args)):
        return ValidationResult.fail("Command args must be a list of strings")

    name = command.split()[0]
    if name not in ALLOWED_COMMANDS:
        return ValidationResult.fail(
            f"Command not allowed: {name}. Allowed commands: {', '.join(sorted(ALLOWED_COMMANDS))}"
        )
    return ValidationResult.ok()


def validate_command_params(params: Dict[str, Any]) -> ValidationResult:
    return validate_command(params.get("command"), params.get("args"))


def build_argv(command: str, args: List[Any] = None) -> List[str]:
    return shlex.split(command) + [str(a) for a in (args or [])]


def _decode(data: bytes) -> str:
    return data[:MAX_COMMAND_OUTPUT].decode("utf-8", errors="replace")


async def run_command(params: Dict[str, Any], ctx: ToolExecutionContext) -> Dict[str, Any]:
    """
    Run an allow-listed command in the project (or a project subdirectory).

    Raises:
        ToolExecutionError: on timeout (process is killed) or non-zero exit
    """
    argv = build_argv(params["command"], params.get("args"))
    full_command = shlex.join(argv)
    cwd = resolve_in_project(ctx.project_path, params.get("working_directory") or ".")
    timeout = params.get("timeout") or DEFAULT_COMMAND_TIMEOUT

    log_summary(f"COMMAND: {full_command} (cwd={cwd}, timeout={timeout}s)")

    process = await asyncio.create_subprocess_exec(
        *argv,
        cwd=str(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        log_summary(f"COMMAND TIMEOUT: {full_command} after {timeout}s", "WARNING")
        raise ToolExecutionError(
            f"Command timed out after {timeout}s: {full_command}",
            "run_command",
            f"command: {params['command']}",
        )

    output = _decode(stdout)
    error_output = _decode(stderr)

    if process.returncode != 0:
        log_agent(f"COMMAND FAILED ({process.returncode}): {full_command}", "WARNING")
        tail = (error_output or output).strip()[-500:]
        raise ToolExecutionError(
            f"Command failed with exit code {process.returncode}: {tail}",
            "run_command",
            f"command: {params['command']}",
        )

    return {
        "success": True,
        "output": output,
        "stderr": error_output,
        "exit_code": process.returncode,
        "command": full_command,
        "working_directory": str(cwd),
    }


RUN_COMMAND_SCHEMA = {
    "type": "object",
    "properties": {
        "command": {"type": "string", "description": "Command to run (first token must be allow-listed)"},
        "args": {"type": "array", "items": {"type": "string"}, "description": "Extra arguments", "default": []},
        "working_directory": {"type": "string", "description": "Project-relative working directory", "default": "."},
        "timeout": {"type": "number", "description": "Timeout in seconds", "default": DEFAULT_COMMAND_TIMEOUT},
    },
    "required": ["command"],
}
