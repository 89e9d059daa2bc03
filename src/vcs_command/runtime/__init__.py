"""Runtime module for external process sessions.

This module provides one-process-per-session execution with incremental
output, a hard timeout and reliable reaping.
"""

from __future__ import annotations

from .process_session import (
    OutputChunk,
    ProcessSession,
    SessionOutcome,
    SessionSpec,
    StreamKind,
)

__all__ = [
    "OutputChunk",
    "ProcessSession",
    "SessionOutcome",
    "SessionSpec",
    "StreamKind",
]
