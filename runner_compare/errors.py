"""Errors raised while benchmarking a project.

Every error here is fatal for the project it was raised for. The batch
coordinator catches them at the project boundary and drops the project
from the aggregate.
"""


class RunnerCompareError(Exception):
    """Base class for project-level failures."""


class DescriptorParseError(RunnerCompareError):
    """Raised when a build descriptor is not well-formed XML."""


class AmbiguousBuildSectionError(RunnerCompareError):
    """Raised when the root descriptor has no unique plugin list to insert into."""


class BootstrapError(RunnerCompareError):
    """Raised when the initial compile of a project fails."""


class InvocationError(RunnerCompareError):
    """Raised for a failing test invocation when kill-on-fail is enabled."""


class InvocationTimeoutError(InvocationError):
    """Raised for a test invocation that was killed after its deadline."""


class MissingArtifactError(RunnerCompareError):
    """Raised when the structured phase log is absent after a passing invocation."""
