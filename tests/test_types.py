"""Job and result value type tests."""

from __future__ import annotations

import pytest

from vcs_command.errors import InvalidJobError
from vcs_command.types import (
    NO_EXIT_CODE,
    CompletionResult,
    FailureKind,
    FailurePolicy,
    Job,
)


class TestJob:
    """Test Job construction and validation."""

    def test_arguments_become_tuple(self):
        job = Job(arguments=["log", "--oneline"], timeout=30)

        assert job.arguments == ("log", "--oneline")
        assert job.timeout == 30

    def test_create_from_generator(self):
        job = Job.create((a for a in ["status"]), 5)

        assert job.arguments == ("status",)

    def test_frozen(self):
        job = Job(arguments=("status",), timeout=1)

        with pytest.raises(AttributeError):
            job.timeout = 2  # type: ignore

    @pytest.mark.parametrize("timeout", [0, -1, -30])
    def test_non_positive_timeout_rejected(self, timeout: int):
        with pytest.raises(InvalidJobError, match="positive"):
            Job(arguments=("status",), timeout=timeout)

    @pytest.mark.parametrize("timeout", [1.5, "10", None, True])
    def test_non_int_timeout_rejected(self, timeout):
        with pytest.raises(InvalidJobError):
            Job(arguments=("status",), timeout=timeout)

    def test_string_arguments_rejected(self):
        with pytest.raises(InvalidJobError):
            Job.create("status", 10)

    def test_non_string_argument_rejected(self):
        with pytest.raises(InvalidJobError):
            Job(arguments=("log", 1), timeout=10)

    def test_invalid_job_is_value_error(self):
        with pytest.raises(ValueError):
            Job(arguments=(), timeout=0)


class TestCompletionResult:
    """Test CompletionResult defaults."""

    def test_defaults(self):
        result = CompletionResult(ok=True, exit_code=0)

        assert result.cookie is None
        assert result.failure is None
        assert result.jobs_run == 0

    def test_failure_result(self):
        result = CompletionResult(
            ok=False,
            exit_code=NO_EXIT_CODE,
            cookie={"request": 1},
            failure=FailureKind.TIMED_OUT,
            jobs_run=1,
        )

        assert result.exit_code == -1
        assert result.cookie == {"request": 1}


class TestFailurePolicy:
    """Test FailurePolicy parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("abort", FailurePolicy.ABORT),
        ("CONTINUE", FailurePolicy.CONTINUE),
        (" continue ", FailurePolicy.CONTINUE),
        ("bogus", FailurePolicy.ABORT),
    ])
    def test_from_string(self, value: str, expected: FailurePolicy):
        assert FailurePolicy.from_string(value) is expected
