"""Fixtures for integration tests spawning a scripted build tool."""

import sys
from pathlib import Path

import pytest

from runner_compare.invoker import ProcessInvoker
from runner_compare.testing.fake_build_tool import install_fake_build_tool

if sys.platform == "win32":  # pragma: no cover
    collect_ignore_glob = ["test_*.py"]


@pytest.fixture
def build_tool_home(tmp_path: Path) -> Path:
    """Install the fake build tool and return its home directory."""
    home = tmp_path / "maven"
    install_fake_build_tool(home)
    return home


@pytest.fixture
def repositories_dir(tmp_path: Path) -> Path:
    """Create an empty repositories directory."""
    repos = tmp_path / "repos"
    repos.mkdir()
    return repos


@pytest.fixture
def invoker(build_tool_home: Path) -> ProcessInvoker:
    """Create an invoker using the fake build tool."""
    return ProcessInvoker(build_tool_home=build_tool_home, timeout=30)
