"""Asynchronous command runner for version-control tools.

A ``CommandRunner`` is bound to one executable, working directory and
environment, plus a caller-supplied cookie. Jobs (argument list + timeout)
are queued with ``add_job()`` and run strictly in order once ``execute()``
or ``run()`` is called. Output is sanitized and surfaced while the process
runs; a single ``Finished`` event and ``CompletionResult`` close the
execution.

Example:
    runner = CommandRunner("git", "/repo", cookie="status-1")
    runner.add_job(["status", "--porcelain"], timeout=30)
    events = runner.subscribe()

    task = runner.execute()
    async with events:
        async for event in events:
            ...
    result = await task
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import math
import os
import shlex
from collections.abc import Iterable, Mapping
from contextlib import aclosing
from pathlib import Path
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from .config import get_config
from .errors import AlreadyExecuted, ProcessReapError, RunnerStateError, SpawnFailure
from .events import (
    CommandEvent,
    ErrorText,
    EventCallback,
    Finished,
    OutputData,
    Succeeded,
)
from .runtime import ProcessSession, SessionSpec, StreamKind
from .sanitizer import StreamSanitizer
from .types import (
    NO_EXIT_CODE,
    CompletionResult,
    FailureKind,
    FailurePolicy,
    Job,
    RunnerState,
    TerminationReportMode,
)

__all__ = [
    "CommandRunner",
    "msg_timeout",
    "msg_termination",
]

logger = logging.getLogger(__name__)


def _command_name(binary: str) -> str:
    return Path(binary).stem or binary


def msg_timeout(seconds: int, binary: str = "") -> str:
    """Diagnostic line for a job killed after ``seconds``."""
    name = _command_name(binary) if binary else "Command"
    return f"Error: {name} timed out after {seconds}s.\n"


def msg_termination(exit_code: int, binary: str, arguments: Iterable[str]) -> str:
    """Human-readable termination line, e.g. ``'git status' failed (exit code 1).``"""
    command = _command_name(binary)
    arguments = list(arguments)
    if arguments:
        command = f"{command} {arguments[0]}"
    status = "failed" if exit_code else "completed"
    return f"\n'{command}' {status} (exit code {exit_code}).\n"


class CommandRunner:
    """Runs a queue of jobs against one executable, one at a time.

    State machine: IDLE -> RUNNING -> COMPLETED. Jobs, configuration and
    subscriptions can only be changed while IDLE; execution is one-shot.

    Failure handling:
    - Spawn failure, timeout and reap failure abort the remaining queue
    - Non-zero exit aborts or continues according to ``failure_policy``
    - None of these raise; they surface as ``ErrorText`` events and in the
      ``CompletionResult``

    Attributes:
        binary: Executable path
        working_directory: Directory every job runs in
        cookie: Correlation value echoed in every event and the result
    """

    def __init__(
        self,
        binary: str | os.PathLike[str],
        working_directory: str | os.PathLike[str],
        environment: Mapping[str, str] | None = None,
        cookie: Any = None,
        *,
        event_callback: EventCallback | None = None,
        extend_environment: bool = False,
        termination_report_mode: TerminationReportMode = TerminationReportMode.NONE,
        unix_terminal_disabled: bool = False,
        failure_policy: FailurePolicy | None = None,
        kill_timeout: float | None = None,
        read_size: int | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            binary: Executable path (already resolved by the caller)
            working_directory: Directory the jobs run in; must exist
            environment: Process environment (None = inherit the host's)
            cookie: Opaque correlation value
            event_callback: Called synchronously for every event
            extend_environment: Overlay ``environment`` on the host's
                environment instead of replacing it
            termination_report_mode: Where to report a termination line
            unix_terminal_disabled: Run jobs without a controlling terminal
            failure_policy: Queue behaviour after a non-zero exit
                (default from configuration)
            kill_timeout: Reap grace period after kill (default from configuration)
            read_size: Bytes per pipe read (default from configuration)
        """
        config = get_config()

        self._binary = os.fspath(binary)
        self._working_directory = Path(working_directory)
        self._environment = self._build_environment(environment, extend_environment)
        self._cookie = cookie
        self._event_callback = event_callback

        self._termination_report_mode = TerminationReportMode(termination_report_mode)
        self._unix_terminal_disabled = bool(unix_terminal_disabled)
        self._failure_policy = (
            FailurePolicy(failure_policy) if failure_policy is not None else config.failure_policy
        )
        self._kill_timeout = kill_timeout if kill_timeout is not None else config.kill_timeout
        self._read_size = read_size if read_size is not None else config.read_size

        self._jobs: list[Job] = []
        self._subscribers: list[MemoryObjectSendStream[CommandEvent]] = []
        self._state = RunnerState.IDLE
        self._result: CompletionResult | None = None

    @staticmethod
    def _build_environment(
        environment: Mapping[str, str] | None,
        extend: bool,
    ) -> dict[str, str] | None:
        if environment is None:
            return None
        if extend:
            return {**os.environ, **environment}
        return dict(environment)

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def binary(self) -> str:
        return self._binary

    @property
    def working_directory(self) -> Path:
        return self._working_directory

    @property
    def environment(self) -> dict[str, str] | None:
        """Copy of the process environment, None when inherited."""
        return dict(self._environment) if self._environment is not None else None

    @property
    def cookie(self) -> Any:
        return self._cookie

    @property
    def jobs(self) -> tuple[Job, ...]:
        return tuple(self._jobs)

    @property
    def state(self) -> RunnerState:
        return self._state

    @property
    def result(self) -> CompletionResult | None:
        """Completion result, available once the execution finished."""
        return self._result

    # =========================================================================
    # Configuration (IDLE only)
    # =========================================================================

    @property
    def termination_report_mode(self) -> TerminationReportMode:
        return self._termination_report_mode

    @termination_report_mode.setter
    def termination_report_mode(self, mode: TerminationReportMode) -> None:
        self._require_idle("change termination report mode")
        self._termination_report_mode = TerminationReportMode(mode)

    @property
    def unix_terminal_disabled(self) -> bool:
        return self._unix_terminal_disabled

    @unix_terminal_disabled.setter
    def unix_terminal_disabled(self, disabled: bool) -> None:
        self._require_idle("change terminal setting")
        self._unix_terminal_disabled = bool(disabled)

    @property
    def failure_policy(self) -> FailurePolicy:
        return self._failure_policy

    @failure_policy.setter
    def failure_policy(self, policy: FailurePolicy) -> None:
        self._require_idle("change failure policy")
        self._failure_policy = FailurePolicy(policy)

    def _require_idle(self, operation: str) -> None:
        if self._state is not RunnerState.IDLE:
            raise AlreadyExecuted(operation, state=self._state.value)

    # =========================================================================
    # Queue and subscriptions
    # =========================================================================

    def add_job(self, arguments: Iterable[str], timeout: int) -> Job:
        """Append a job to the queue.

        Args:
            arguments: Arguments passed after the executable
            timeout: Positive wall-clock budget in seconds

        Returns:
            The queued job

        Raises:
            AlreadyExecuted: If the runner is no longer IDLE
            InvalidJobError: If the arguments or timeout are invalid
        """
        self._require_idle("add job")
        job = Job.create(arguments, timeout)
        self._jobs.append(job)
        return job

    def subscribe(
        self,
        max_buffer_size: float = math.inf,
    ) -> MemoryObjectReceiveStream[CommandEvent]:
        """Open a channel receiving every event of the execution.

        The stream ends after ``Finished``. The default unbounded buffer means
        a slow subscriber never stalls the runner; with a bounded buffer,
        events that do not fit are dropped with a warning.

        Raises:
            AlreadyExecuted: If the runner is no longer IDLE
        """
        self._require_idle("subscribe")
        send, receive = anyio.create_memory_object_stream[CommandEvent](max_buffer_size)
        self._subscribers.append(send)
        return receive

    # =========================================================================
    # Execution
    # =========================================================================

    def execute(self) -> asyncio.Task[CompletionResult]:
        """Start the execution in the background and return immediately.

        Must be called from within a running event loop.

        Returns:
            Task resolving to the ``CompletionResult``

        Raises:
            AlreadyExecuted: If the runner was already executed
            RunnerStateError: If no job was queued
        """
        loop = asyncio.get_running_loop()
        self._begin()
        return loop.create_task(self._run_queue(), name=f"vcs-command:{self._cookie!r}")

    async def run(self) -> CompletionResult:
        """Execute the queue and wait for the ``CompletionResult``.

        Raises:
            AlreadyExecuted: If the runner was already executed
            RunnerStateError: If no job was queued
        """
        self._begin()
        return await self._run_queue()

    def _begin(self) -> None:
        self._require_idle("execute")
        if not self._jobs:
            raise RunnerStateError("Cannot execute: no jobs queued", state=self._state.value)
        self._state = RunnerState.RUNNING

    async def _run_queue(self) -> CompletionResult:
        try:
            result = await self._run_jobs()
            self._result = result
            self._report_termination(result)
            if result.ok:
                self._emit(Succeeded(cookie=self._cookie))
            self._emit(Finished(cookie=self._cookie, ok=result.ok, exit_code=result.exit_code))
            return result
        finally:
            self._state = RunnerState.COMPLETED
            for send in self._subscribers:
                send.close()
            self._subscribers.clear()

    async def _run_jobs(self) -> CompletionResult:
        exit_code = NO_EXIT_CODE
        failure: FailureKind | None = None
        jobs_run = 0

        for index, job in enumerate(self._jobs):
            jobs_run += 1
            exit_code, failure = await self._run_job(index, job)
            if failure is None:
                continue
            if failure is FailureKind.NON_ZERO_EXIT and self._failure_policy is FailurePolicy.CONTINUE:
                continue
            skipped = len(self._jobs) - jobs_run
            if skipped:
                logger.info(
                    f"Aborting after job {index} ({failure.value}), "
                    f"skipping {skipped} queued job(s)"
                )
            break

        result = CompletionResult(
            ok=failure is None,
            exit_code=exit_code,
            cookie=self._cookie,
            failure=failure,
            jobs_run=jobs_run,
        )
        logger.info(
            f"Command finished: {self._binary} ok={result.ok} "
            f"exit_code={result.exit_code} jobs={jobs_run}/{len(self._jobs)}"
        )
        return result

    async def _run_job(self, index: int, job: Job) -> tuple[int, FailureKind | None]:
        """Run one job, surfacing its output as it arrives.

        Returns:
            (exit_code, failure) of the job; failure is None on success
        """
        session = ProcessSession(
            SessionSpec(
                binary=self._binary,
                arguments=job.arguments,
                cwd=self._working_directory,
                timeout=job.timeout,
                env=self._environment,
                allow_controlling_terminal=not self._unix_terminal_disabled,
            ),
            kill_timeout=self._kill_timeout,
            read_size=self._read_size,
        )
        stdout = StreamSanitizer()
        stderr = StreamSanitizer()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        logger.info(f"Executing: {shlex.join(session.spec.argv)} (timeout {job.timeout}s)")

        try:
            async with aclosing(session.stream()) as chunks:
                async for chunk in chunks:
                    if chunk.kind is StreamKind.STDOUT:
                        self._emit_output(index, stdout.feed(chunk.data))
                    else:
                        self._emit_error_text(index, decoder.decode(stderr.feed(chunk.data)))
        except SpawnFailure as e:
            logger.warning(f"Job {index}: {e}")
            self._emit_error_text(index, f"{e}\n")
            return NO_EXIT_CODE, FailureKind.SPAWN_FAILURE
        except ProcessReapError as e:
            logger.error(f"Job {index}: {e}")
            self._flush(index, stdout, stderr, decoder)
            self._emit_error_text(index, f"Error: {e}.\n")
            return NO_EXIT_CODE, FailureKind.REAP_FAILURE

        self._flush(index, stdout, stderr, decoder)

        outcome = session.outcome
        if outcome is None:
            raise RuntimeError(f"Job {index} ended without an outcome")
        if outcome.timed_out:
            self._emit_error_text(index, msg_timeout(job.timeout, self._binary))
            return NO_EXIT_CODE, FailureKind.TIMED_OUT

        exit_code = outcome.exit_code if outcome.exit_code is not None else NO_EXIT_CODE
        logger.debug(f"Job {index} exited with code {exit_code} after {outcome.duration:.3f}s")
        if exit_code != 0:
            return exit_code, FailureKind.NON_ZERO_EXIT
        return exit_code, None

    def _flush(
        self,
        index: int,
        stdout: StreamSanitizer,
        stderr: StreamSanitizer,
        decoder: codecs.IncrementalDecoder,
    ) -> None:
        self._emit_output(index, stdout.flush())
        self._emit_error_text(index, decoder.decode(stderr.flush(), final=True))

    def _report_termination(self, result: CompletionResult) -> None:
        if self._termination_report_mode is TerminationReportMode.NONE:
            return
        last_job = self._jobs[result.jobs_run - 1]
        message = msg_termination(result.exit_code, self._binary, last_job.arguments)
        if self._termination_report_mode is TerminationReportMode.STDOUT:
            self._emit(OutputData(cookie=self._cookie, data=message.encode("utf-8")))
        else:
            self._emit(ErrorText(cookie=self._cookie, text=message))

    # =========================================================================
    # Event delivery
    # =========================================================================

    def _emit_output(self, index: int, data: bytes) -> None:
        if data:
            self._emit(OutputData(cookie=self._cookie, job_index=index, data=data))

    def _emit_error_text(self, index: int, text: str) -> None:
        if text:
            self._emit(ErrorText(cookie=self._cookie, job_index=index, text=text))

    def _emit(self, event: CommandEvent) -> None:
        if self._event_callback:
            try:
                self._event_callback(event)
            except Exception as e:
                logger.warning(f"Error in event callback: {e}")

        for send in list(self._subscribers):
            try:
                send.send_nowait(event)
            except anyio.WouldBlock:
                logger.warning(f"Subscriber buffer full, dropping {event.kind.value} event")
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                # Subscriber closed its end
                self._subscribers.remove(send)

    def __repr__(self) -> str:
        return (
            f"CommandRunner(binary={self._binary}, "
            f"cwd={self._working_directory}, "
            f"cookie={self._cookie!r}, "
            f"jobs={len(self._jobs)}, "
            f"state={self._state.value})"
        )
