"""Config tests.

Covers VCSCMD_* environment variable parsing and the global config instance.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest

from vcs_command.config import Config, get_config, load_config, reload_config
from vcs_command.types import FailurePolicy


class TestDefaults:
    """Test configuration without any VCSCMD_* variable."""

    def test_defaults(self):
        config = load_config()

        assert config.kill_timeout == 2.0
        assert config.failure_policy is FailurePolicy.ABORT
        assert config.read_size == 4096
        assert config.default_timeout == 30
        assert config.log_debug is False
        assert config.log_file is None

    def test_matches_dataclass_defaults(self):
        assert load_config() == Config()


class TestKillTimeout:
    """Test VCSCMD_KILL_TIMEOUT parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("5", 5.0),
        ("0.5", 0.5),
        ("0", 0.1),
        ("-3", 0.1),
        ("120", 30.0),
        ("soon", 2.0),
        ("", 2.0),
    ])
    def test_parse(self, value: str, expected: float):
        with mock.patch.dict(os.environ, {"VCSCMD_KILL_TIMEOUT": value}, clear=False):
            assert load_config().kill_timeout == expected


class TestFailurePolicy:
    """Test VCSCMD_FAILURE_POLICY parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("abort", FailurePolicy.ABORT),
        ("continue", FailurePolicy.CONTINUE),
        ("Continue", FailurePolicy.CONTINUE),
        ("skip", FailurePolicy.ABORT),
        ("", FailurePolicy.ABORT),
    ])
    def test_parse(self, value: str, expected: FailurePolicy):
        with mock.patch.dict(os.environ, {"VCSCMD_FAILURE_POLICY": value}, clear=False):
            assert load_config().failure_policy is expected


class TestPositiveInts:
    """Test VCSCMD_READ_SIZE and VCSCMD_DEFAULT_TIMEOUT parsing."""

    def test_read_size(self):
        with mock.patch.dict(os.environ, {"VCSCMD_READ_SIZE": "1024"}, clear=False):
            assert load_config().read_size == 1024

    @pytest.mark.parametrize("value", ["0", "-1", "big", "1.5"])
    def test_invalid_read_size_uses_default(self, value: str):
        with mock.patch.dict(os.environ, {"VCSCMD_READ_SIZE": value}, clear=False):
            assert load_config().read_size == 4096

    def test_default_timeout(self):
        with mock.patch.dict(os.environ, {"VCSCMD_DEFAULT_TIMEOUT": "90"}, clear=False):
            assert load_config().default_timeout == 90

    def test_invalid_default_timeout(self):
        with mock.patch.dict(os.environ, {"VCSCMD_DEFAULT_TIMEOUT": "-5"}, clear=False):
            assert load_config().default_timeout == 30


class TestDebugLogging:
    """Test VCSCMD_LOG_DEBUG parsing."""

    @pytest.mark.parametrize("value", ["true", "1", "yes", "ON"])
    def test_enabled(self, value: str):
        with mock.patch.dict(os.environ, {"VCSCMD_LOG_DEBUG": value}, clear=False):
            config = load_config()

        assert config.log_debug is True
        assert config.log_file is not None
        log_file = Path(config.log_file)
        assert log_file.parent.name == "vcs-command"
        assert log_file.name.startswith("vcscmd_debug_")
        assert log_file.suffix == ".log"

    @pytest.mark.parametrize("value", ["false", "0", "no", "maybe"])
    def test_disabled(self, value: str):
        with mock.patch.dict(os.environ, {"VCSCMD_LOG_DEBUG": value}, clear=False):
            config = load_config()

        assert config.log_debug is False
        assert config.log_file is None


class TestGlobalConfig:
    """Test the global config instance."""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reload_picks_up_changes(self):
        first = get_config()
        with mock.patch.dict(os.environ, {"VCSCMD_READ_SIZE": "512"}, clear=False):
            reloaded = reload_config()

        assert reloaded is not first
        assert reloaded.read_size == 512
        assert get_config() is reloaded

    def test_repr(self):
        text = repr(Config())

        assert "failure_policy=abort" in text
        assert "kill_timeout=2.0" in text
