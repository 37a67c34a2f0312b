"""Models for test execution results."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from runner_compare.models.variant import RunVariant

NOT_OBSERVED = -1


@dataclass(frozen=True, kw_only=True)
class TestCounts:
    """Test counters summed over every module of one invocation.

    Each counter is ``NOT_OBSERVED`` when the output carried no summary line.
    """

    __test__ = False

    total: int = NOT_OBSERVED
    fails: int = NOT_OBSERVED
    errors: int = NOT_OBSERVED
    skipped: int = NOT_OBSERVED


@dataclass(frozen=True, kw_only=True)
class TestRunResult:
    """Outcome of a single test invocation attempt."""

    __test__ = False

    total: int
    fails: int
    errors: int
    skipped: int
    elapsed_millis: int
    raw_log: str = field(repr=False)
    failed: bool
    timed_out: bool = False

    @classmethod
    def from_counts(
        cls,
        counts: TestCounts,
        *,
        elapsed_millis: int,
        raw_log: str,
        failed: bool,
        timed_out: bool = False,
    ) -> "TestRunResult":
        """Build a result from accumulated counters."""
        return cls(
            total=counts.total,
            fails=counts.fails,
            errors=counts.errors,
            skipped=counts.skipped,
            elapsed_millis=elapsed_millis,
            raw_log=raw_log,
            failed=failed,
            timed_out=timed_out,
        )


@dataclass(frozen=True, kw_only=True)
class ResultGroup:
    """All attempts collected for one project, keyed by variant.

    Groups compare and hash by project name only, so a set of groups holds
    at most one entry per project.
    """

    project_name: str
    results_by_variant: Mapping[RunVariant, Sequence[TestRunResult]] = field(
        default_factory=dict, compare=False
    )

    @classmethod
    def seal(
        cls,
        project_name: str,
        results_by_variant: Mapping[RunVariant, Sequence[TestRunResult]],
    ) -> "ResultGroup":
        """Freeze collected attempts into a read-only group."""
        frozen = {variant: tuple(results) for variant, results in results_by_variant.items()}
        return cls(project_name=project_name, results_by_variant=MappingProxyType(frozen))

    @property
    def attempt_count(self) -> int:
        """Number of attempts across all variants."""
        return sum(len(results) for results in self.results_by_variant.values())
