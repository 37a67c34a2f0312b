"""Tests for batch configuration."""

from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from runner_compare.models.config import BatchConfig, default_workers
from runner_compare.models.variant import Phase


def test_defaults() -> None:
    """Uses documented defaults."""
    config = BatchConfig(repositories_dir=Path("repos"), report_file=Path("out.csv"))

    assert config.runs == 1
    assert config.max_runs == 20
    assert config.phase is Phase.ALL
    assert config.timeout == 7200
    assert config.kill_on_fail is False
    assert config.workers >= 1


@pytest.mark.parametrize(("cpus", "expected"), [(8, 7), (1, 1), (None, 1)])
def test_default_workers_leaves_one_cpu(cpus: int | None, expected: int) -> None:
    """Defaults to one worker fewer than the CPU count, at least one."""
    with patch("runner_compare.models.config.os.cpu_count", return_value=cpus):
        assert default_workers() == expected


@pytest.mark.parametrize("field", ["workers", "runs", "max_runs"])
def test_rejects_non_positive_counts(field: str) -> None:
    """Counts must be at least one."""
    with pytest.raises(ValidationError):
        BatchConfig(
            repositories_dir=Path("repos"),
            report_file=Path("out.csv"),
            **{field: 0},
        )


def test_is_frozen() -> None:
    """Configuration cannot change once built."""
    config = BatchConfig(repositories_dir=Path("repos"), report_file=Path("out.csv"))

    with pytest.raises(ValidationError):
        config.runs = 3  # type: ignore[misc]
