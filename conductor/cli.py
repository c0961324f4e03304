"""
Conductor - CLI runner

    python -m conductor "Write a short summary about AI"

Generates a plan with the configured oracle (the mock client by default),
executes it and prints the result as JSON. Ctrl+C cancels the run.
"""
import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import Settings, setup_logging, get_logger
from .executor import CancellationToken
from .factory import create_orchestrator
from .planning import PlanGenerationError

logger = get_logger("runner")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="conductor", description="Plan and execute a task")
    parser.add_argument("task", help="Task description")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")
    parser.add_argument("--max-revisions", type=int, default=None, help="Auto-revision attempts per plan")
    parser.add_argument("--no-revision", action="store_true", help="Disable auto-revision")
    parser.add_argument("--output", type=Path, default=None, help="Write the result JSON to a file")
    return parser


async def _run(task: str, settings: Settings) -> dict:
    orchestrator = create_orchestrator(settings=settings)
    token = CancellationToken()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except NotImplementedError:
        # Windows event loops: Ctrl+C raises KeyboardInterrupt instead
        pass

    try:
        result = await orchestrator.execute_task(task, token)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass
    return result.to_dict()


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    load_dotenv()
    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        return 2

    if args.log_level:
        settings.logging.level = args.log_level
    if args.json_logs:
        settings.logging.json_logs = True
    if args.max_revisions is not None:
        settings.orchestrator.max_revision_attempts = args.max_revisions
    if args.no_revision:
        settings.orchestrator.enable_auto_revision = False

    try:
        setup_logging(settings.logging.level, settings.logging.json_logs, settings.logging.log_file)
    except ValueError as e:
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        return 2
    logger.info("Starting task: %s", args.task)

    try:
        payload = asyncio.run(_run(args.task, settings))
    except PlanGenerationError as e:
        logger.error("Plan generation failed: %s", e)
        print(json.dumps({"success": False, "error": str(e)}), file=sys.stderr)
        return 1

    text = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
        logger.info("Result written to %s", args.output)
    else:
        print(text)

    return 0 if payload.get("success") else 1


if __name__ == "__main__":
    sys.exit(main())
