"""vcs-command environment variable configuration.

Environment variables:
    VCSCMD_KILL_TIMEOUT: Seconds to wait for a killed process to be reaped
        - default 2.0, clamped to 0.1-30
        - a process still alive after this is reported as a reap failure

    VCSCMD_FAILURE_POLICY: What to do with queued jobs after a non-zero exit
        - abort = skip the remaining jobs (default)
        - continue = run the remaining jobs anyway
        - timeouts and spawn failures always abort

    VCSCMD_READ_SIZE: Bytes requested per pipe read
        - default 4096

    VCSCMD_DEFAULT_TIMEOUT: Job timeout used by the command line tool
        - default 30 seconds

    VCSCMD_LOG_DEBUG: Debug logging
        - true/1/yes = on (log to a file in the temp directory)
        - false/0/no = off (default, log to stderr)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .types import FailurePolicy

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_KILL_TIMEOUT = 2.0
DEFAULT_READ_SIZE = 4096
DEFAULT_JOB_TIMEOUT = 30


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_kill_timeout(value: str | None) -> float:
    if not value:
        return DEFAULT_KILL_TIMEOUT
    try:
        timeout = float(value)
    except ValueError:
        return DEFAULT_KILL_TIMEOUT
    return max(0.1, min(timeout, 30.0))


def _parse_positive_int(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        number = int(value)
    except ValueError:
        return default
    return number if number > 0 else default


def _parse_failure_policy(value: str | None) -> FailurePolicy:
    if not value:
        return FailurePolicy.ABORT
    return FailurePolicy.from_string(value)


@dataclass
class Config:
    """vcs-command configuration.

    Attributes:
        kill_timeout: Reap grace period after SIGKILL (seconds)
        failure_policy: Queue behaviour after a non-zero exit
        read_size: Bytes per pipe read
        default_timeout: Job timeout used by the command line tool (seconds)
        log_debug: Debug logging to a file
        log_file: Log file path (set when log_debug is on)
    """

    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    failure_policy: FailurePolicy = FailurePolicy.ABORT
    read_size: int = DEFAULT_READ_SIZE
    default_timeout: int = DEFAULT_JOB_TIMEOUT
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(kill_timeout={self.kill_timeout}, "
            f"failure_policy={self.failure_policy.value}, "
            f"read_size={self.read_size}, "
            f"default_timeout={self.default_timeout}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """Build a timestamped log file path under the temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "vcs-command"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"vcscmd_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from environment variables."""
    log_debug = _parse_bool(os.environ.get("VCSCMD_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        kill_timeout=_parse_kill_timeout(os.environ.get("VCSCMD_KILL_TIMEOUT")),
        failure_policy=_parse_failure_policy(os.environ.get("VCSCMD_FAILURE_POLICY")),
        read_size=_parse_positive_int(os.environ.get("VCSCMD_READ_SIZE"), DEFAULT_READ_SIZE),
        default_timeout=_parse_positive_int(
            os.environ.get("VCSCMD_DEFAULT_TIMEOUT"), DEFAULT_JOB_TIMEOUT
        ),
        log_debug=log_debug,
        log_file=log_file,
    )


# Global config instance (lazily loaded)
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from the environment (used by tests)."""
    global _config
    _config = load_config()
    return _config
