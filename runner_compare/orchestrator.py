"""Project orchestrator for benchmarking one project across runner variants."""

import asyncio
import logging
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass

from runner_compare.descriptor import apply_variant
from runner_compare.errors import BootstrapError, RunnerCompareError
from runner_compare.invoker import ProcessInvoker
from runner_compare.metrics import MetricExtractor, phase_log_path, read_elapsed_millis
from runner_compare.models.project import Project
from runner_compare.models.result import ResultGroup, TestRunResult
from runner_compare.models.variant import RunVariant
from runner_compare.retry import run_with_retry

log = logging.getLogger(__name__)

BOOTSTRAP_GOALS: Sequence[str] = ("clean", "compile")
TEST_GOALS: Sequence[str] = ("test",)
BUILD_OUTPUT_DIR = "target"
BOOTSTRAP_MARKER = ".runner-compare-bootstrap"
BOOTSTRAP_TAIL_LINES = 30


@dataclass(frozen=True, kw_only=True)
class ProjectOrchestrator:
    """Runs every requested variant of one project, one step at a time."""

    invoker: ProcessInvoker
    runs: int = 1
    max_runs: int = 20
    kill_on_fail: bool = False

    async def run(
        self, project: Project, variants: Sequence[RunVariant]
    ) -> ResultGroup:
        """Bootstrap a project, then collect attempts for each variant.

        Args:
            project: Project to benchmark
            variants: Variants to run, in order

        Returns:
            The sealed result group for the project

        Raises:
            RunnerCompareError: If any step fails fatally for the project

        """
        await self.bootstrap(project)

        results_by_variant: dict[RunVariant, Sequence[TestRunResult]] = {}
        for variant in variants:
            results_by_variant[variant] = await self.run_variant(project, variant)

        return ResultGroup.seal(project.display_name, results_by_variant)

    async def bootstrap(self, project: Project) -> bool:
        """Compile the project once so test attempts skip the cold build.

        Projects that already hold a build output directory, from an earlier
        bootstrap or any prior build, are left as they are. A successful
        compile leaves a marker in the output directory.

        Returns:
            True if a compile ran, False if the project was already built

        Raises:
            BootstrapError: If the compile fails

        """
        output_dir = project.root_path / BUILD_OUTPUT_DIR
        if output_dir.is_dir():
            log.info("Project %s already built, skipping bootstrap", project.display_name)
            return False
        marker = output_dir / BOOTSTRAP_MARKER

        if not project.root_descriptor.is_file():
            raise BootstrapError(f"No descriptor at {project.root_descriptor}")

        log.info("Bootstrapping %s", project.display_name)
        tail: deque[str] = deque(maxlen=BOOTSTRAP_TAIL_LINES)
        outcome = await self.invoker.invoke(
            project.root_descriptor, BOOTSTRAP_GOALS, tail.append
        )
        if outcome.failed:
            for line in tail:
                log.error("[%s] %s", project.display_name, line)
            raise BootstrapError(
                f"Compile of {project.display_name} failed "
                f"(exit code {outcome.exit_code}{_describe_error(outcome.error)})"
            )

        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.touch()
        return True

    async def run_variant(
        self, project: Project, variant: RunVariant
    ) -> Sequence[TestRunResult]:
        """Switch the project to a variant and collect its attempts."""
        log.info(
            "Selecting %s runner %s for %s",
            variant.label,
            variant.runner_version,
            project.display_name,
        )
        outcomes = await asyncio.to_thread(
            apply_variant, project.root_path, variant.runner_version
        )
        log.debug(
            "Rewrote %d descriptor(s) for %s",
            len(outcomes),
            project.display_name,
        )

        async def run_once(attempt: int) -> TestRunResult:
            return await self.run_attempt(project, variant, attempt)

        try:
            return await run_with_retry(
                max_attempts=self.max_runs,
                required_stable=self.runs,
                kill_on_fail=self.kill_on_fail,
                run_once=run_once,
            )
        except RunnerCompareError as e:
            log.error(
                "Aborting %s during %s: %s", project.display_name, variant.label, e
            )
            raise

    async def run_attempt(
        self, project: Project, variant: RunVariant, attempt: int
    ) -> TestRunResult:
        """Run the test goal once and parse its metrics.

        Raises:
            MissingArtifactError: If a passing invocation left no phase log

        """
        log.info(
            'Running tests for "%s" [%d/%d] - %s',
            project.display_name,
            attempt + 1,
            self.max_runs,
            variant.label,
        )
        phase_log = phase_log_path(project.root_path)
        phase_log.unlink(missing_ok=True)

        lines: list[str] = []
        extractor = MetricExtractor()

        def on_line(line: str) -> None:
            lines.append(line)
            extractor.feed(line)

        outcome = await self.invoker.invoke(project.root_descriptor, TEST_GOALS, on_line)
        elapsed = read_elapsed_millis(phase_log, required=not outcome.failed)

        result = TestRunResult.from_counts(
            extractor.counts,
            elapsed_millis=elapsed,
            raw_log="\n".join(lines) + "\n" if lines else "",
            failed=outcome.failed,
            timed_out=outcome.timed_out,
        )
        if result.failed:
            log.error(
                "%s %s attempt %d failed (exit code %d%s): %s",
                project.display_name,
                variant.label,
                attempt + 1,
                outcome.exit_code,
                _describe_error(outcome.error),
                result,
            )
        else:
            log.info("%s %s: %s", project.display_name, variant.label, result)
        return result


def _describe_error(error: str | None) -> str:
    return f", {error}" if error else ""
