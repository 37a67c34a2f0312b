"""Build descriptor reading and rewriting."""

from runner_compare.descriptor.mutator import (
    MutationAction,
    MutationOutcome,
    apply_variant,
    discover_descriptors,
    mutate,
    mutate_file,
)

__all__ = [
    "MutationAction",
    "MutationOutcome",
    "apply_variant",
    "discover_descriptors",
    "mutate",
    "mutate_file",
]
