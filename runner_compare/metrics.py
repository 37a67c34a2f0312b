"""Extract test metrics from build output."""

import logging
import re
from pathlib import Path

from runner_compare.errors import MissingArtifactError
from runner_compare.models.result import NOT_OBSERVED, TestCounts

log = logging.getLogger(__name__)

SUMMARY_MARKER = "Tests run:"
PHASE_LOG_NAME = "maven.build.log"
RUNNER_PLUGIN_KEY = "org.apache.maven.plugins:maven-surefire-plugin"
DURATION_FIELD = 5

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
INTEGER = re.compile(r"\d+")
RUNNER_EXECUTION_START = re.compile(r"---\s+(?:maven-)?surefire(?:-plugin)?[:\s]")


def is_summary_line(line: str) -> bool:
    """Whether a console line is a module summary rather than a per-class line."""
    return (
        SUMMARY_MARKER in line
        and " in " not in line
        and "Time elapsed" not in line
    )


def parse_summary(line: str) -> tuple[int, int, int, int] | None:
    """Read total, failures, errors and skipped from a summary line.

    Only the text from the marker onwards is considered, so prefixes such
    as log levels or timestamps never contribute numbers.
    """
    text = ANSI_ESCAPE.sub("", line)
    numbers = INTEGER.findall(text[text.index(SUMMARY_MARKER) :])
    if len(numbers) < 4:
        return None
    total, fails, errors, skipped = (int(n) for n in numbers[:4])
    return total, fails, errors, skipped


class MetricExtractor:
    """Accumulates test counters from console lines of one invocation.

    Counters are summed across every module of the build. The fork runner
    prints each module summary twice, the second time with all counters at
    zero; such an echo directly after a non-zero summary is dropped.
    """

    def __init__(self) -> None:
        self._totals: list[int] | None = None
        self._last_total: int | None = None

    def feed(self, line: str) -> None:
        """Consume one line of console output."""
        if RUNNER_EXECUTION_START.search(ANSI_ESCAPE.sub("", line)):
            self._last_total = None
            return

        if not is_summary_line(line):
            return

        summary = parse_summary(line)
        if summary is None:
            log.debug("Ignoring summary line without four counters: %s", line)
            return

        if summary[0] == 0 and self._last_total:
            log.debug("Dropping zero-total echo of previous summary: %s", line)
            return

        if self._totals is None:
            self._totals = [0, 0, 0, 0]
        for index, value in enumerate(summary):
            self._totals[index] += value
        self._last_total = summary[0]

    @property
    def observed(self) -> bool:
        """Whether any summary line has been accumulated."""
        return self._totals is not None

    @property
    def counts(self) -> TestCounts:
        """Counters accumulated so far."""
        if self._totals is None:
            return TestCounts()
        total, fails, errors, skipped = self._totals
        return TestCounts(total=total, fails=fails, errors=errors, skipped=skipped)


def phase_log_path(project_root: Path) -> Path:
    """Location of the structured phase log written by the build."""
    return project_root / PHASE_LOG_NAME


def read_elapsed_millis(phase_log: Path, *, required: bool = True) -> int:
    """Sum the test phase duration of every module in a phase log.

    Args:
        phase_log: Path to the tab-delimited phase log
        required: Whether a missing log is an error; when false, a missing
            log yields ``NOT_OBSERVED``

    Returns:
        Total test phase duration in milliseconds

    Raises:
        MissingArtifactError: If the log is missing and ``required`` is set

    """
    if not phase_log.is_file():
        if required:
            raise MissingArtifactError(f"Missing phase log {phase_log}")
        return NOT_OBSERVED

    elapsed = 0
    for line in phase_log.read_text(encoding="utf-8", errors="replace").splitlines():
        if RUNNER_PLUGIN_KEY not in line:
            continue
        fields = line.split("\t")
        try:
            elapsed += int(fields[DURATION_FIELD])
        except (IndexError, ValueError):
            log.warning("Skipping malformed phase log row in %s: %r", phase_log, line)
    return elapsed
