"""Configuration for a batch run."""

import os
from pathlib import Path

from pydantic import Field

from runner_compare.models.base import Model
from runner_compare.models.variant import Phase

DEFAULT_TIMEOUT_SECONDS = 60 * 60 * 2


def default_workers() -> int:
    """One worker per available CPU, leaving one free."""
    return max(1, (os.cpu_count() or 1) - 1)


class BatchConfig(Model):
    """Settings for one batch run."""

    repositories_dir: Path = Field(
        ..., description="Directory holding one subdirectory per project"
    )
    report_file: Path = Field(..., description="Destination of the CSV summary")
    build_tool_home: Path | None = Field(
        default=None, description="Maven home to use instead of the one on PATH"
    )
    workers: int = Field(
        default_factory=default_workers, ge=1, description="Projects run concurrently"
    )
    runs: int = Field(
        default=1, ge=1, description="Passing attempts to collect per variant"
    )
    max_runs: int = Field(
        default=20, ge=1, description="Attempt ceiling per variant"
    )
    verbose: bool = Field(default=False, description="Relay build output to the log")
    kill_on_fail: bool = Field(
        default=False, description="Abort a project on its first failing attempt"
    )
    phase: Phase = Field(default=Phase.ALL, description="Variants to execute")
    timeout: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS, gt=0, description="Per-invocation timeout (s)"
    )
    logs_dir: Path = Field(
        default=Path("batch-logs"), description="Mirror of per-attempt console logs"
    )
    log_file: Path = Field(
        default=Path("runner-compare.log"), description="File receiving the run log"
    )
