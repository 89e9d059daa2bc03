"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_VCS_PATH = FIXTURES_DIR / "fake_vcs.py"

from vcs_command.config import reload_config  # noqa: E402


@pytest.fixture(autouse=True)
def clean_config(monkeypatch: pytest.MonkeyPatch):
    """Run every test against default configuration."""
    for name in (
        "VCSCMD_KILL_TIMEOUT",
        "VCSCMD_FAILURE_POLICY",
        "VCSCMD_READ_SIZE",
        "VCSCMD_DEFAULT_TIMEOUT",
        "VCSCMD_LOG_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    reload_config()
    yield
    reload_config()


@pytest.fixture
def temp_workspace(tmp_path: Path) -> Path:
    """Create temporary workspace directory."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def fake_vcs() -> list[str]:
    """Leading arguments that run the fake VCS tool with ``sys.executable``."""
    return [str(FAKE_VCS_PATH)]
