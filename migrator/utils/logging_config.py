import os
from datetime import datetime
from loguru import logger


# (file name prefix, minimum level, format) per file-backed log_type
LOG_FILES = {
    "llm": ("llm_interactions", "DEBUG", "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}"),
    "agent": ("multiagent_process", "DEBUG",
              "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"),
    "summary": ("summary", "INFO", "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"),
}


def _only(log_type: str):
    return lambda record: record["extra"].get("log_type") == log_type


def setup_migration_logging(project_name: str, log_dir: str = "logs", verbose: bool = False):
    """
    Setup structured logging for a migration run

    Creates three log files per project:
    - llm_interactions.log: AI prompts (sanitized), responses, errors
    - multiagent_process.log: Component/agent lifecycle and tool execution
    - summary.log: Phase transitions, step outcomes, run summary

    Args:
        project_name: Project name or path (e.g., "acme/web-app")
        log_dir: Root directory for log folders
        verbose: Echo agent-process messages to the console as well

    Returns:
        Dict with the paths of the created log files
    """
    logger.remove()

    project_safe_name = project_name.strip("/\\").replace("/", "__").replace("\\", "__") or "project"
    project_log_dir = os.path.join(log_dir, project_safe_name)
    os.makedirs(project_log_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    console_types = {"console", "summary", "agent"} if verbose else {"console", "summary"}

    logger.add(
        sink=lambda msg: print(msg, end=""),
        level="DEBUG" if verbose else "INFO",
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>\n",
        colorize=True,
        filter=lambda record: record["extra"].get("log_type", "console") in console_types,
    )

    paths = {"log_dir": project_log_dir}
    for log_type, (prefix, level, fmt) in LOG_FILES.items():
        path = os.path.join(project_log_dir, f"{prefix}_{timestamp}.log")
        logger.add(sink=path, level=level, format=fmt, filter=_only(log_type))
        paths[f"{log_type}_log"] = path

    summary = logger.bind(log_type="summary")
    summary.info("=" * 80)
    summary.info(f"MIGRATION RUN STARTED: {project_name}")
    summary.info(f"Timestamp: {timestamp}")
    summary.info(f"Log directory: {project_log_dir}")
    summary.info("=" * 80)

    return paths


# Convenience functions for different log types
def log_llm(message: str, level: str = "INFO"):
    """Log AI-related messages"""
    getattr(logger.bind(log_type="llm"), level.lower())(message)


def log_agent(message: str, level: str = "INFO"):
    """Log component and agent process messages"""
    getattr(logger.bind(log_type="agent"), level.lower())(message)


def log_summary(message: str, level: str = "INFO"):
    """Log summary messages (phases, steps, decisions)"""
    getattr(logger.bind(log_type="summary"), level.lower())(message)


def log_console(message: str, level: str = "INFO"):
    """Log to console only"""
    getattr(logger.bind(log_type="console"), level.lower())(message)
