"""CSV report and per-attempt log mirror."""

import csv
import io
import logging
import shutil
from collections.abc import Iterator, Sequence
from pathlib import Path

from runner_compare.models.result import ResultGroup, TestRunResult
from runner_compare.models.variant import RunVariant

log = logging.getLogger(__name__)

REPORT_HEADER: Sequence[str] = (
    "PROJECT",
    "CONFIG",
    "TOTAL",
    "FAILS",
    "ERRORS",
    "SKIPPED",
    "TEST_TIME",
)


def iter_attempts(
    groups: Sequence[ResultGroup],
) -> Iterator[tuple[ResultGroup, RunVariant, int, TestRunResult]]:
    """Yield ``(group, variant, attempt_index, result)`` in production order."""
    for group in groups:
        for variant, results in group.results_by_variant.items():
            for index, result in enumerate(results):
                yield group, variant, index, result


def render_csv(groups: Sequence[ResultGroup]) -> str:
    """Render one CSV row per project, variant and attempt."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(REPORT_HEADER)
    for group, variant, _, result in iter_attempts(groups):
        writer.writerow(
            (
                group.project_name,
                variant.label,
                result.total,
                result.fails,
                result.errors,
                result.skipped,
                result.elapsed_millis,
            )
        )
    return buffer.getvalue()


def write_report(report_file: Path, groups: Sequence[ResultGroup]) -> None:
    """Write the CSV report, creating parent directories as needed."""
    report_file.parent.mkdir(parents=True, exist_ok=True)
    report_file.write_text(render_csv(groups), encoding="utf-8")
    log.info("Report written to %s", report_file)


def write_log_tree(logs_dir: Path, groups: Sequence[ResultGroup]) -> int:
    """Mirror every attempt's console output under ``logs_dir``.

    The directory is rebuilt from scratch; files land at
    ``<project>/<variant>/log-<attempt>.txt``.

    Returns:
        Number of log files written

    """
    if logs_dir.exists():
        shutil.rmtree(logs_dir)
    logs_dir.mkdir(parents=True)

    written = 0
    for group, variant, index, result in iter_attempts(groups):
        variant_dir = logs_dir / group.project_name / variant.log_dir_name
        variant_dir.mkdir(parents=True, exist_ok=True)
        (variant_dir / f"log-{index}.txt").write_text(result.raw_log, encoding="utf-8")
        written += 1
    return written
