"""Exception types for vcs-command.

Two families live here:

- Process failures (``SpawnFailure``, ``ProcessReapError``) are raised by the
  process session and converted by ``CommandRunner`` into events and a
  ``CompletionResult``. They never reach the runner's caller.
- Contract violations (``InvalidJobError``, ``RunnerStateError``,
  ``AlreadyExecuted``) are raised straight to the caller.
"""

from __future__ import annotations

__all__ = [
    "CommandError",
    "SpawnFailure",
    "ProcessReapError",
    "InvalidJobError",
    "RunnerStateError",
    "AlreadyExecuted",
]


class CommandError(Exception):
    """Base exception for vcs-command."""
    pass


class SpawnFailure(CommandError):
    """The executable could not be started.

    Attributes:
        binary: Executable that was being launched
        reason: Human-readable cause (missing binary, permission, bad cwd)
    """

    def __init__(self, binary: str, reason: str) -> None:
        self.binary = binary
        self.reason = reason
        super().__init__(f"Unable to start '{binary}': {reason}")


class ProcessReapError(CommandError):
    """A killed process did not exit within the reap grace period.

    Attributes:
        pid: Process ID that could not be reaped
        grace: Seconds waited after the kill
    """

    def __init__(self, pid: int, grace: float) -> None:
        self.pid = pid
        self.grace = grace
        super().__init__(f"Process {pid} did not exit {grace:g}s after kill")


class InvalidJobError(CommandError, ValueError):
    """A job was described with invalid arguments or timeout."""
    pass


class RunnerStateError(CommandError, RuntimeError):
    """An operation was called in a state that does not allow it.

    Attributes:
        state: Runner state at the time of the call
    """

    def __init__(self, message: str, state: str = "") -> None:
        self.state = state
        super().__init__(message)


class AlreadyExecuted(RunnerStateError):
    """The runner has already been executed and cannot be changed or rerun."""

    def __init__(self, operation: str, state: str = "") -> None:
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: command has already been executed",
            state=state,
        )
