"""End-to-end batch runs against the scripted build tool."""

import csv
from pathlib import Path

from runner_compare.cli import run
from runner_compare.models.config import BatchConfig
from runner_compare.models.variant import Phase
from runner_compare.testing.fake_build_tool import create_fake_project, recorded_calls

SUMMARY = "[INFO] Tests run: 6, Failures: 1, Errors: 0, Skipped: 1"
ECHO = "[INFO] Tests run: 0, Failures: 0, Errors: 0, Skipped: 0"


def read_rows(report: Path) -> list[dict[str, str]]:
    """Parse the CSV report into dictionaries."""
    with report.open(newline="") as handle:
        return list(csv.DictReader(handle))


async def test_batch_reports_completed_projects(
    tmp_path: Path, build_tool_home: Path, repositories_dir: Path
) -> None:
    """Runs every variant per project and drops projects that fail to compile."""
    alpha = create_fake_project(
        repositories_dir, "alpha-master", output=[SUMMARY, ECHO]
    )
    create_fake_project(repositories_dir, "broken", compile_exit=1)
    gamma = create_fake_project(
        repositories_dir,
        "gamma",
        output=[SUMMARY],
        exit_codes=[1, 0, 0, 0],
    )
    config = BatchConfig(
        repositories_dir=repositories_dir,
        report_file=tmp_path / "report.csv",
        logs_dir=tmp_path / "batch-logs",
        build_tool_home=build_tool_home,
        workers=2,
        timeout=30,
    )

    assert await run(config) == 0

    rows = read_rows(tmp_path / "report.csv")
    assert {row["PROJECT"] for row in rows} == {"alpha", "gamma"}
    alpha_rows = [row for row in rows if row["PROJECT"] == "alpha"]
    assert [row["CONFIG"] for row in alpha_rows] == ["STANDARD", "CUSTOM", "FORK"]
    assert alpha_rows[0] == {
        "PROJECT": "alpha",
        "CONFIG": "STANDARD",
        "TOTAL": "6",
        "FAILS": "1",
        "ERRORS": "0",
        "SKIPPED": "1",
        "TEST_TIME": "1500",
    }
    gamma_configs = [row["CONFIG"] for row in rows if row["PROJECT"] == "gamma"]
    assert gamma_configs == ["STANDARD", "STANDARD", "CUSTOM", "FORK"]
    assert len(rows) == 7

    assert (tmp_path / "batch-logs" / "gamma" / "standard" / "log-1.txt").exists()
    assert not (tmp_path / "batch-logs" / "broken").exists()

    descriptor = (alpha / "pom.xml").read_text()
    assert "<version>2.21.0</version>" in descriptor
    assert "<reuseForks>false</reuseForks>" in descriptor
    assert [call.split()[-1] for call in recorded_calls(gamma)] == [
        "compile",
        "test",
        "test",
        "test",
        "test",
    ]


async def test_runs_collect_several_stable_attempts(
    tmp_path: Path, build_tool_home: Path, repositories_dir: Path
) -> None:
    """Collects the requested number of passing attempts for one phase."""
    create_fake_project(repositories_dir, "alpha", output=[SUMMARY])
    config = BatchConfig(
        repositories_dir=repositories_dir,
        report_file=tmp_path / "report.csv",
        logs_dir=tmp_path / "batch-logs",
        build_tool_home=build_tool_home,
        runs=3,
        phase=Phase.CUSTOM,
        timeout=30,
    )

    assert await run(config) == 0

    rows = read_rows(tmp_path / "report.csv")
    assert [row["CONFIG"] for row in rows] == ["CUSTOM"] * 3


async def test_kill_on_fail_drops_project(
    tmp_path: Path, build_tool_home: Path, repositories_dir: Path
) -> None:
    """With kill-on-fail a failing attempt removes the project from the report."""
    create_fake_project(repositories_dir, "flaky", exit_codes=[1, 0])
    create_fake_project(repositories_dir, "steady", output=[SUMMARY])
    config = BatchConfig(
        repositories_dir=repositories_dir,
        report_file=tmp_path / "report.csv",
        logs_dir=tmp_path / "batch-logs",
        build_tool_home=build_tool_home,
        kill_on_fail=True,
        phase=Phase.STANDARD,
        workers=1,
        timeout=30,
    )

    assert await run(config) == 0

    rows = read_rows(tmp_path / "report.csv")
    assert [row["PROJECT"] for row in rows] == ["steady"]


async def test_missing_phase_log_drops_project(
    tmp_path: Path, build_tool_home: Path, repositories_dir: Path
) -> None:
    """A passing build that leaves no phase log is excluded from the report."""
    create_fake_project(repositories_dir, "silent", phase_log=False)
    create_fake_project(repositories_dir, "steady", output=[SUMMARY])
    config = BatchConfig(
        repositories_dir=repositories_dir,
        report_file=tmp_path / "report.csv",
        logs_dir=tmp_path / "batch-logs",
        build_tool_home=build_tool_home,
        phase=Phase.FORK,
        timeout=30,
    )

    assert await run(config) == 0

    rows = read_rows(tmp_path / "report.csv")
    assert [row["PROJECT"] for row in rows] == ["steady"]
