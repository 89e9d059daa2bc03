"""Command line front end for ``CommandRunner``.

Runs one or more jobs against an executable and mirrors the runner's events
onto the terminal: output data to stdout, error text to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import shlex
import sys
from pathlib import Path
from typing import Sequence

from .config import Config, get_config
from .errors import CommandError
from .events import CommandEvent, ErrorText, OutputData
from .runner import CommandRunner
from .types import CompletionResult, FailurePolicy, TerminationReportMode

__all__ = ["main", "build_parser", "configure_logging"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_parser(config: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vcs-command",
        description="Run version-control commands with a timeout and sanitized output.",
    )
    parser.add_argument(
        "-C", "--directory", type=Path, default=Path.cwd(),
        help="Working directory (default: current directory)",
    )
    parser.add_argument(
        "--timeout", type=int, default=config.default_timeout,
        help=f"Timeout per job in seconds (default: {config.default_timeout})",
    )
    parser.add_argument(
        "--job", action="append", default=[], metavar="ARGS",
        help="Queue a job; ARGS is split like a shell command line. Repeatable.",
    )
    parser.add_argument(
        "--report", choices=[m.value for m in TerminationReportMode],
        default=TerminationReportMode.NONE.value,
        help="Where to print a termination line",
    )
    parser.add_argument(
        "--keep-terminal", action="store_true",
        help="Let jobs keep the controlling terminal (may hang on prompts)",
    )
    parser.add_argument(
        "--continue-on-error", action="store_true",
        help="Run remaining jobs after a non-zero exit",
    )
    parser.add_argument(
        "--env", "--extend-env", dest="env", action="append", default=[],
        metavar="NAME=VALUE",
        help="Set a variable for the jobs. Repeatable.",
    )
    parser.add_argument(
        "--clean-env", action="store_true",
        help="Do not inherit the environment; jobs see only the --env variables",
    )
    parser.add_argument("binary", help="Executable to run")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments of one more job")
    return parser


def configure_logging(config: Config) -> None:
    """Set up handlers: stderr by default, a temp file in debug mode."""
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.WARNING

    # Root logger (third-party libraries) at WARNING
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("vcs_command").setLevel(log_level)


def _parse_env(items: list[str]) -> dict[str, str]:
    environment: dict[str, str] = {}
    for item in items:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise ValueError(f"invalid environment assignment: {item!r}")
        environment[name] = value
    return environment


def _print_event(event: CommandEvent) -> None:
    if isinstance(event, OutputData):
        sys.stdout.buffer.write(event.data)
        sys.stdout.buffer.flush()
    elif isinstance(event, ErrorText):
        sys.stderr.write(event.text)
        sys.stderr.flush()


def exit_status(result: CompletionResult) -> int:
    """Map a completion result onto a process exit status."""
    if result.ok:
        return 0
    if result.exit_code > 0:
        return result.exit_code
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    config = get_config()
    configure_logging(config)

    parser = build_parser(config)
    args = parser.parse_args(argv)

    jobs = [shlex.split(job) for job in args.job]
    if args.args or not jobs:
        jobs.append(list(args.args))

    try:
        environment = _parse_env(args.env)
    except ValueError as e:
        parser.error(str(e))

    try:
        runner = CommandRunner(
            args.binary,
            args.directory,
            environment if args.clean_env else (environment or None),
            cookie=args.binary,
            event_callback=_print_event,
            extend_environment=not args.clean_env,
            termination_report_mode=TerminationReportMode(args.report),
            unix_terminal_disabled=not args.keep_terminal,
            failure_policy=FailurePolicy.CONTINUE if args.continue_on_error else None,
        )
        for job in jobs:
            runner.add_job(job, args.timeout)
    except CommandError as e:
        parser.error(str(e))

    logger.debug(f"Running {runner!r} with {config!r}")
    result = asyncio.run(runner.run())
    return exit_status(result)


if __name__ == "__main__":
    sys.exit(main())
