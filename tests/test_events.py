"""Event model tests."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from vcs_command.events import EventKind, ErrorText, Finished, OutputData, Succeeded


class TestEventModels:
    """Test event construction."""

    def test_kinds(self):
        assert OutputData(data=b"x").kind is EventKind.OUTPUT
        assert ErrorText(text="x").kind is EventKind.ERROR_TEXT
        assert Succeeded().kind is EventKind.SUCCEEDED
        assert Finished(ok=True, exit_code=0).kind is EventKind.FINISHED

    def test_defaults(self):
        event = Succeeded(cookie=("repo", 1))

        assert event.cookie == ("repo", 1)
        assert event.job_index is None
        assert event.timestamp > 0

    def test_cookie_kept_as_is(self):
        cookie = object()

        assert Finished(cookie=cookie, ok=False, exit_code=-1).cookie is cookie

    def test_frozen(self):
        event = OutputData(data=b"x", job_index=0)

        with pytest.raises(ValidationError):
            event.data = b"y"  # type: ignore

    def test_missing_field_rejected(self):
        with pytest.raises(ValidationError):
            Finished(ok=True)  # type: ignore

    def test_serialization(self):
        event = ErrorText(cookie="c", job_index=2, text="fatal: bad revision\n")

        dumped = event.model_dump()

        assert dumped["kind"] == EventKind.ERROR_TEXT
        assert dumped["job_index"] == 2
        assert dumped["text"] == "fatal: bad revision\n"
