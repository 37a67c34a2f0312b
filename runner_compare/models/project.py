"""Projects discovered under the repositories directory."""

from dataclasses import dataclass
from pathlib import Path

ARCHIVE_SUFFIX = "-master"
ROOT_DESCRIPTOR = "pom.xml"


def display_name_for(directory_name: str) -> str:
    """Map a project directory name to the name used in reports.

    Source archives unpack into ``<name>-master``; the suffix is dropped so
    the report shows the plain project name.
    """
    if directory_name.endswith(ARCHIVE_SUFFIX) and directory_name != ARCHIVE_SUFFIX:
        return directory_name.removesuffix(ARCHIVE_SUFFIX)
    return directory_name


@dataclass(frozen=True, kw_only=True)
class Project:
    """A build project rooted at a directory."""

    root_path: Path
    display_name: str

    @classmethod
    def from_directory(cls, directory: Path) -> "Project":
        """Create a project for a directory, deriving its display name."""
        return cls(root_path=directory, display_name=display_name_for(directory.name))

    @property
    def root_descriptor(self) -> Path:
        """The project's top-level build descriptor."""
        return self.root_path / ROOT_DESCRIPTOR
