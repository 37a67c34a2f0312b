"""CLI entry point for the runner comparison batch."""

import argparse
import asyncio
import logging
import sys
import time
from collections.abc import Sequence
from pathlib import Path

from pydantic import ValidationError

from runner_compare.batch import BatchCoordinator, discover_projects
from runner_compare.invoker import ProcessInvoker
from runner_compare.models.config import DEFAULT_TIMEOUT_SECONDS, BatchConfig
from runner_compare.models.result import ResultGroup
from runner_compare.models.variant import Phase
from runner_compare.orchestrator import ProjectOrchestrator
from runner_compare.report import write_log_tree, write_report

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def log_results_summary(log: logging.Logger, groups: Sequence[ResultGroup]) -> None:
    """Log attempts, stable collections and mean test time per variant."""
    log.info("=" * 80)
    log.info("Results Summary:")
    log.info("=" * 80)

    for group in groups:
        for variant, results in group.results_by_variant.items():
            stable = [result for result in results if not result.failed]
            timed = [r.elapsed_millis for r in stable if r.elapsed_millis >= 0]
            mean = sum(timed) / len(timed) if timed else 0.0
            log.info(
                "%s %s: %d attempt(s), %d stable, mean test time %.0fms",
                group.project_name,
                variant.label,
                len(results),
                len(stable),
                mean,
            )


async def run(config: BatchConfig) -> int:
    """Run the batch described by ``config`` and return the exit code."""
    log = logging.getLogger("runner_compare")
    start = time.monotonic()

    try:
        projects = discover_projects(config.repositories_dir)
    except OSError as e:
        log.error("Cannot read repositories directory: %s", e)
        return 1

    log.info(
        'Repositories directory: "%s" (%d projects)',
        config.repositories_dir.resolve(),
        len(projects),
    )

    invoker = ProcessInvoker(
        build_tool_home=config.build_tool_home,
        timeout=config.timeout,
        verbose=config.verbose,
    )
    coordinator = BatchCoordinator(
        orchestrator=ProjectOrchestrator(
            invoker=invoker,
            runs=config.runs,
            max_runs=config.max_runs,
            kill_on_fail=config.kill_on_fail,
        ),
        variants=config.phase.variants,
        workers=config.workers,
    )
    groups = await coordinator.run(projects)

    log_results_summary(log, groups)

    try:
        files = write_log_tree(config.logs_dir, groups)
        log.info("Wrote %d attempt log(s) to %s", files, config.logs_dir)
    except OSError as e:
        log.error("Failed to dump collected log files: %s", e)

    exit_code = 0
    try:
        write_report(config.report_file, groups)
    except OSError as e:
        log.error("Failed to write report file: %s", e)
        exit_code = 1

    log.info("Completion time: %.1fs", time.monotonic() - start)
    return exit_code


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run project test suites under several test-runner variants"
    )
    parser.add_argument(
        "repositories_dir",
        type=Path,
        help="Directory containing one subdirectory per project",
    )
    parser.add_argument(
        "report_file",
        type=Path,
        help="File to write the CSV report to",
    )
    parser.add_argument(
        "-m",
        "--build-tool-home",
        type=Path,
        help="Maven home directory to use instead of mvn on PATH",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        help="Projects to run concurrently (default: CPU count - 1)",
    )
    parser.add_argument(
        "-r",
        "--runs",
        type=int,
        default=1,
        help="Number of passing test collections to stop on (default: 1)",
    )
    parser.add_argument(
        "-x",
        "--max-runs",
        type=int,
        default=20,
        help="Maximum attempts per variant before moving on (default: 20)",
    )
    parser.add_argument(
        "-s",
        "--verbose",
        action="store_true",
        help="Emit the build tool's output to the log",
    )
    parser.add_argument(
        "-k",
        "--kill-on-fail",
        action="store_true",
        help="Abort a project on its first failing test attempt",
    )
    parser.add_argument(
        "-p",
        "--phase",
        type=Phase.parse,
        default=Phase.ALL,
        help="Only run one variant: STANDARD, CUSTOM, FORK, NONE or ALL",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help="Seconds before a build invocation is killed (default: 7200)",
    )
    parser.add_argument(
        "--logs-dir",
        type=Path,
        default=Path("batch-logs"),
        help="Directory mirroring each attempt's console output",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=Path("runner-compare.log"),
        help="File receiving a copy of the run log",
    )

    args = parser.parse_args()

    try:
        file_handler = logging.FileHandler(args.log_file, encoding="utf-8")
    except OSError as e:
        parser.error(f"cannot open log file {args.log_file}: {e}")

    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr), file_handler],
    )

    options = {
        name: value
        for name, value in vars(args).items()
        if value is not None
    }
    try:
        config = BatchConfig(**options)
    except ValidationError as e:
        logging.getLogger("runner_compare").error("Invalid configuration: %s", e)
        sys.exit(2)

    sys.exit(asyncio.run(run(config)))


if __name__ == "__main__":  # pragma: no cover
    main()
