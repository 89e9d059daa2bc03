"""Value types shared by the runner and its callers.

Defines the job description, the completion result and the enums that
configure a ``CommandRunner``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from .errors import InvalidJobError

__all__ = [
    "NO_EXIT_CODE",
    "Job",
    "CompletionResult",
    "TerminationReportMode",
    "FailurePolicy",
    "FailureKind",
    "RunnerState",
]

# Exit code reported when the process never produced one (timeout, spawn failure)
NO_EXIT_CODE = -1


class TerminationReportMode(str, Enum):
    """Where to report a human-readable termination line, if anywhere.

    - NONE: no report
    - STDOUT: append the line to the output data channel (UTF-8 bytes)
    - STDERR: append the line to the error text channel
    """

    NONE = "none"
    STDOUT = "stdout"
    STDERR = "stderr"


class FailurePolicy(str, Enum):
    """What a runner does with the rest of its queue after a non-zero exit.

    Timeouts and spawn failures always abort regardless of policy.
    """

    ABORT = "abort"
    CONTINUE = "continue"

    @classmethod
    def from_string(cls, value: str) -> "FailurePolicy":
        """Parse a policy name, falling back to ABORT for unknown values."""
        value = value.lower().strip()
        for policy in cls:
            if policy.value == value:
                return policy
        return cls.ABORT


class FailureKind(str, Enum):
    """Why a job did not succeed."""

    SPAWN_FAILURE = "spawn_failure"
    TIMED_OUT = "timed_out"
    NON_ZERO_EXIT = "non_zero_exit"
    REAP_FAILURE = "reap_failure"


class RunnerState(str, Enum):
    """Lifecycle of a ``CommandRunner``."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Job:
    """One process invocation within a runner's queue.

    Attributes:
        arguments: Arguments passed after the executable
        timeout: Wall-clock budget in whole seconds, measured from process start
    """

    arguments: tuple[str, ...]
    timeout: int

    def __post_init__(self) -> None:
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, int):
            raise InvalidJobError(
                f"timeout must be an int, got {type(self.timeout).__name__}"
            )
        if self.timeout <= 0:
            raise InvalidJobError(f"timeout must be positive, got {self.timeout}")
        if isinstance(self.arguments, (str, bytes)):
            raise InvalidJobError("arguments must be a sequence of strings, not a string")
        arguments = tuple(self.arguments)
        for arg in arguments:
            if not isinstance(arg, str):
                raise InvalidJobError(f"argument {arg!r} is not a string")
        object.__setattr__(self, "arguments", arguments)

    @classmethod
    def create(cls, arguments: Iterable[str], timeout: int) -> "Job":
        """Build a job from any iterable of arguments."""
        if isinstance(arguments, (str, bytes)):
            raise InvalidJobError("arguments must be a sequence of strings, not a string")
        return cls(arguments=tuple(arguments), timeout=timeout)


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of one runner execution, describing the last attempted job.

    Attributes:
        ok: True when the last job exited with code 0 and did not time out
        exit_code: Exit code of the last job, NO_EXIT_CODE if there was none
        cookie: Caller-supplied correlation value, echoed verbatim
        failure: Classification of the failure, None on success
        jobs_run: Number of jobs that were attempted
    """

    ok: bool
    exit_code: int
    cookie: Any = None
    failure: FailureKind | None = None
    jobs_run: int = 0
