"""Events emitted by a running ``CommandRunner``.

Every event carries the runner's cookie so that callers multiplexing several
runners onto one handler can tell them apart. Per execution the sequence is:

    (OutputData | ErrorText)*  [Succeeded]  Finished

``Finished`` is always last and appears exactly once.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "EventKind",
    "CommandEventBase",
    "OutputData",
    "ErrorText",
    "Succeeded",
    "Finished",
    "CommandEvent",
    "EventCallback",
]


class EventKind(str, Enum):
    """Event type discriminator."""

    OUTPUT = "output"
    ERROR_TEXT = "error_text"
    SUCCEEDED = "succeeded"
    FINISHED = "finished"


class CommandEventBase(BaseModel):
    """Base class for runner events.

    Attributes:
        cookie: Correlation value given to the runner
        job_index: Index of the job that produced the event (None for
            execution-level events)
        timestamp: Unix timestamp (seconds)
    """

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
    )

    kind: EventKind
    cookie: Any = None
    job_index: int | None = None
    timestamp: float = Field(default_factory=time.time)


class OutputData(CommandEventBase):
    """Sanitized standard-output bytes."""

    kind: Literal[EventKind.OUTPUT] = EventKind.OUTPUT
    data: bytes


class ErrorText(CommandEventBase):
    """Sanitized standard-error text, or a diagnostic from the runner."""

    kind: Literal[EventKind.ERROR_TEXT] = EventKind.ERROR_TEXT
    text: str


class Succeeded(CommandEventBase):
    """Fired right before ``Finished`` when the execution succeeded."""

    kind: Literal[EventKind.SUCCEEDED] = EventKind.SUCCEEDED


class Finished(CommandEventBase):
    """Terminal event of an execution."""

    kind: Literal[EventKind.FINISHED] = EventKind.FINISHED
    ok: bool
    exit_code: int


CommandEvent = Union[OutputData, ErrorText, Succeeded, Finished]

EventCallback = Callable[[CommandEvent], None]
