"""Runner variants and the phase selector that picks among them."""

from collections.abc import Sequence
from enum import Enum, StrEnum


class RunVariant(Enum):
    """A test-runner release to install before running a project's tests."""

    STANDARD = ("STANDARD", "3.0.0-M3")
    CUSTOM = ("CUSTOM", "3.0.0-SNAPSHOT")
    FORK = ("FORK", "2.21.0")

    def __init__(self, label: str, runner_version: str) -> None:
        self.label = label
        self.runner_version = runner_version

    @property
    def log_dir_name(self) -> str:
        """Directory name used for this variant in the log mirror."""
        return self.label.lower()


class Phase(StrEnum):
    """Selects which variants a batch run executes."""

    ALL = "ALL"
    STANDARD = "STANDARD"
    CUSTOM = "CUSTOM"
    FORK = "FORK"
    NONE = "NONE"

    @classmethod
    def parse(cls, value: str) -> "Phase":
        """Parse a phase name case-insensitively, accepting FORKSCRIPT for FORK."""
        normalized = value.strip().upper()
        if normalized == "FORKSCRIPT":
            return cls.FORK
        return cls(normalized)

    @property
    def variants(self) -> Sequence[RunVariant]:
        """Variants to execute, in execution order."""
        match self:
            case Phase.ALL:
                return (RunVariant.STANDARD, RunVariant.CUSTOM, RunVariant.FORK)
            case Phase.NONE:
                return ()
            case _:
                return (RunVariant[self.value],)
