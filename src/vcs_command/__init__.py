"""vcs-command - asynchronous external-command runner for version-control tools.

Environment variables:
    VCSCMD_KILL_TIMEOUT: Reap grace period after a kill (default 2.0s)
    VCSCMD_FAILURE_POLICY: abort | continue after a non-zero exit (default abort)
    VCSCMD_READ_SIZE: Bytes per pipe read (default 4096)
    VCSCMD_DEFAULT_TIMEOUT: Job timeout of the command line tool (default 30s)
    VCSCMD_LOG_DEBUG: Debug logging to a temp file (default false)

Usage:
    vcs-command -C /repo --timeout 30 git status --short
"""

__version__ = "0.1.0"

from .errors import (
    AlreadyExecuted,
    CommandError,
    InvalidJobError,
    ProcessReapError,
    RunnerStateError,
    SpawnFailure,
)
from .events import CommandEvent, ErrorText, Finished, OutputData, Succeeded
from .runner import CommandRunner, msg_termination, msg_timeout
from .sanitizer import StreamSanitizer, strip_color_codes
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
    "__version__",
    "AlreadyExecuted",
    "CommandError",
    "CommandEvent",
    "CommandRunner",
    "CompletionResult",
    "ErrorText",
    "FailureKind",
    "FailurePolicy",
    "Finished",
    "InvalidJobError",
    "Job",
    "NO_EXIT_CODE",
    "OutputData",
    "ProcessReapError",
    "RunnerState",
    "RunnerStateError",
    "SpawnFailure",
    "StreamSanitizer",
    "Succeeded",
    "TerminationReportMode",
    "msg_termination",
    "msg_timeout",
    "strip_color_codes",
]
