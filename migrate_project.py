#!/usr/bin/env python3
import argparse
import asyncio
import os
import sys

from migrator.config import load_config
from migrator.orchestrator.error_handler import MigrationError, format_error_chain
from migrator.orchestrator.migration_orchestrator import MigrationOrchestrator
from migrator.utils.llm_provider import create_ai_service
from migrator.utils.logging_config import setup_migration_logging, log_summary, log_console


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Analyze a front-end project, plan its framework migration and run the plan."
    )
    parser.add_argument("project_path", help="Path to the project to migrate")
    parser.add_argument("--dry-run", action="store_true", help="Analyze and plan without writing files or running builds")
    parser.add_argument("--verbose", action="store_true", help="Verbose console output and full error chains")
    parser.add_argument("--no-ai", action="store_true", help="Run without the AI service (steps without a handler pass through)")
    parser.add_argument("--snapshot", metavar="PATH", help="Save the workflow context snapshot to PATH at the end of the run")
    parser.add_argument("--presets", metavar="FILE", help="YAML file with additional migration presets")
    return parser


def log_run_summary(result: dict):
    summary = result["summary"]
    log_summary("=" * 60)
    log_summary("MIGRATION RUN SUMMARY")
    log_summary("=" * 60)
    log_summary(f"Plan:            {result['plan']['name']}")
    log_summary(f"Steps:           {summary['completed_steps']}/{summary['total_steps']}")
    log_summary(f"Success rate:    {summary['success_rate']:.0%}")
    log_summary(f"Duration:        {summary['duration']:.0f}ms")
    log_summary(f"Files modified:  {summary['files_modified']}")
    log_summary(f"Errors fixed:    {summary['errors_fixed']}")
    log_summary(f"AI calls:        {summary['ai_calls']}")
    log_summary("=" * 60)


async def run(args) -> int:
    overrides = {
        "dry_run": args.dry_run or None,
        "verbose": args.verbose or None,
        "presets_file": args.presets,
        "auto_snapshot": True if args.snapshot else None,
        "snapshot_path": args.snapshot,
    }
    if args.no_ai:
        overrides["ai"] = {"enabled": False}
    try:
        config = load_config(overrides)
    except MigrationError as e:
        log_console(f"Invalid configuration: {e}", "ERROR")
        return 2

    ai_service = create_ai_service(config.ai) if config.ai.enabled else None
    orchestrator = MigrationOrchestrator(ai_service=ai_service)

    try:
        await orchestrator.initialize(args.project_path, config.model_dump())
        result = await orchestrator.execute()
    except MigrationError as e:
        log_console(f"Migration aborted: {e}", "ERROR")
        log_summary(f"STATUS: ABORTED ({e})", "ERROR")
        if config.verbose:
            for line in format_error_chain(e):
                log_console(f"  caused by: {line}", "ERROR")
        return 1
    finally:
        orchestrator.cleanup()

    log_run_summary(result)
    if result["summary"]["overall_success"]:
        log_console(f"Migration successful for {args.project_path}", "SUCCESS")
        log_summary("STATUS: SUCCESS")
    else:
        errors = result["context"]["issues"]["errors"]
        log_console(f"Migration completed with {errors} logged error(s) for {args.project_path}", "WARNING")
        log_summary("STATUS: COMPLETED_WITH_ERRORS")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if not os.path.isdir(args.project_path):
        print(f"ERROR: Project directory not found: {args.project_path}")
        return 1

    setup_migration_logging(os.path.basename(os.path.abspath(args.project_path)), verbose=args.verbose)
    log_summary(f"MIGRATION TARGET: {os.path.abspath(args.project_path)}")
    log_console(f"Starting migration for {args.project_path}")

    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        log_console("Migration interrupted by user", "WARNING")
        log_summary("INTERRUPTION: User cancelled migration")
        return 130

    log_summary("MIGRATION SESSION ENDED")
    log_summary("=" * 80)
    return code


if __name__ == "__main__":
    sys.exit(main())
