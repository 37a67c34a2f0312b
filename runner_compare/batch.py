"""Batch coordinator running the orchestrator over every project."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from runner_compare.models.project import Project
from runner_compare.models.result import ResultGroup
from runner_compare.models.variant import RunVariant
from runner_compare.orchestrator import ProjectOrchestrator

log = logging.getLogger(__name__)


def discover_projects(repositories_dir: Path) -> Sequence[Project]:
    """List the immediate subdirectories of ``repositories_dir`` as projects.

    Raises:
        NotADirectoryError: If ``repositories_dir`` is not a directory
        OSError: If the directory cannot be read

    """
    if not repositories_dir.is_dir():
        raise NotADirectoryError(f"Not a directory: {repositories_dir}")
    return [
        Project.from_directory(entry)
        for entry in sorted(repositories_dir.iterdir())
        if entry.is_dir()
    ]


@dataclass(frozen=True, kw_only=True)
class BatchCoordinator:
    """Runs projects on a bounded pool of workers and gathers their results."""

    orchestrator: ProjectOrchestrator
    variants: Sequence[RunVariant]
    workers: int = 1

    async def run(self, projects: Sequence[Project]) -> Sequence[ResultGroup]:
        """Run every project and return the groups of those that completed.

        A project whose orchestration raises is logged and left out; the
        batch itself never fails because of a single project.

        Args:
            projects: Projects to benchmark

        Returns:
            One result group per completed project, in project order

        """
        if not projects:
            log.info("No projects to run")
            return []

        log.info(
            "Running %d project(s) with %d worker(s)", len(projects), self.workers
        )
        slots = asyncio.Semaphore(self.workers)
        results = await asyncio.gather(
            *(self._run_project(project, slots) for project in projects)
        )
        log.info("Batch execution completed")

        return self._process_results(results)

    def _process_results(
        self, results: Sequence[ResultGroup | None]
    ) -> Sequence[ResultGroup]:
        """Drop failed projects and keep one group per project name."""
        groups: dict[str, ResultGroup] = {}
        for group in results:
            if group is None:
                continue
            if group.project_name in groups:
                log.warning(
                    "Duplicate project name %s, keeping the first result",
                    group.project_name,
                )
                continue
            groups[group.project_name] = group
        return list(groups.values())

    async def _run_project(
        self, project: Project, slots: asyncio.Semaphore
    ) -> ResultGroup | None:
        async with slots:
            try:
                group = await self.orchestrator.run(project, self.variants)
            except Exception as e:
                log.error(
                    'Skipping "%s" due to exception: %s',
                    project.root_path,
                    e,
                    exc_info=e,
                )
                return None

        log.info(
            "Project %s completed with %d attempt(s)",
            project.display_name,
            group.attempt_count,
        )
        return group
