"""Rewrite build descriptors to select a runner variant."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import StrEnum
from pathlib import Path

from runner_compare.descriptor.tree import (
    Document,
    NodePath,
    XmlNode,
    append_child,
    child_elements,
    child_text,
    element,
    find_child,
    indent_unit,
    iter_elements,
    node_at,
    parse_document,
    update_at,
    write_document,
)
from runner_compare.errors import AmbiguousBuildSectionError

log = logging.getLogger(__name__)

RUNNER_GROUP_ID = "org.apache.maven.plugins"
RUNNER_ARTIFACT_ID = "maven-surefire-plugin"
DESCRIPTOR_NAME = "pom.xml"
SKIPPED_DIRECTORIES = frozenset({"target", "src"})
FORK_SETTINGS: Sequence[tuple[str, str]] = (
    ("forkCount", "1"),
    ("reuseForks", "false"),
)


class MutationAction(StrEnum):
    """What a mutation did to a descriptor."""

    UPDATED = "updated"
    INSERTED = "inserted"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, kw_only=True)
class MutationOutcome:
    """Result of mutating one descriptor."""

    action: MutationAction
    document: Document
    declarations: int = 0


def is_runner_plugin(node: XmlNode) -> bool:
    """Whether ``node`` is a plugin element declaring the test runner."""
    if node.local_name != "plugin":
        return False
    group_id = child_text(node, "groupId")
    return child_text(node, "artifactId") == RUNNER_ARTIFACT_ID and group_id in (
        None,
        RUNNER_GROUP_ID,
    )


def find_runner_declarations(root: XmlNode) -> Sequence[NodePath]:
    """Paths of every runner plugin declaration inside a plugin list."""
    return [
        path
        for path, node in iter_elements(root)
        if path
        and is_runner_plugin(node)
        and node_at(root, path[:-1]).local_name == "plugins"
    ]


def find_plugin_sections(root: XmlNode) -> Sequence[NodePath]:
    """Paths of every ``build/plugins`` section, including those in profiles."""
    return [
        path
        for path, node in iter_elements(root)
        if path
        and node.local_name == "plugins"
        and node_at(root, path[:-1]).local_name == "build"
    ]


def configure_plugin(
    plugin: XmlNode, version: str, *, depth: int, unit: str
) -> XmlNode:
    """Set the plugin's version and fork isolation settings."""
    namespace = plugin.namespace
    plugin = _set_child_text(plugin, "version", version, depth=depth, unit=unit)

    found = find_child(plugin, "configuration")
    if found is None:
        plugin = append_child(
            plugin,
            element("configuration", namespace=namespace),
            depth=depth,
            unit=unit,
        )
        found = len(plugin.children) - 1, plugin.children[-1]

    index, configuration = found
    for key, value in FORK_SETTINGS:
        configuration = _set_child_text(
            configuration, key, value, depth=depth + 1, unit=unit
        )
    return update_at(plugin, (index,), lambda _: configuration)


def mutate(document: Document, version: str, *, is_root: bool) -> MutationOutcome:
    """Select runner ``version`` in a parsed descriptor.

    Existing runner declarations get the version and fork isolation
    settings. A root descriptor without one gets a new declaration in its
    build plugin list; a sub-module descriptor without one is left alone
    since it inherits the root's declaration.

    Raises:
        AmbiguousBuildSectionError: If a root descriptor needs a new
            declaration but holds more than one build plugin list

    """
    root = document.root
    unit = indent_unit(root)
    declarations = find_runner_declarations(root)

    if declarations:
        for path in declarations:
            root = update_at(
                root,
                path,
                lambda plugin, depth=len(path): configure_plugin(
                    plugin, version, depth=depth, unit=unit
                ),
            )
        return MutationOutcome(
            action=MutationAction.UPDATED,
            document=replace(document, root=root),
            declarations=len(declarations),
        )

    if not is_root:
        return MutationOutcome(action=MutationAction.UNCHANGED, document=document)

    root = _insert_runner_plugin(root, version, unit=unit)
    return MutationOutcome(
        action=MutationAction.INSERTED,
        document=replace(document, root=root),
        declarations=1,
    )


def mutate_file(path: Path, version: str, *, is_root: bool) -> MutationOutcome:
    """Mutate the descriptor at ``path`` in place."""
    outcome = mutate(parse_document(path), version, is_root=is_root)
    if outcome.action is not MutationAction.UNCHANGED:
        write_document(outcome.document, path)
    log.debug("Descriptor %s: %s (version=%s)", path, outcome.action, version)
    return outcome


def discover_descriptors(project_root: Path) -> Sequence[Path]:
    """Find every descriptor under a project, root descriptor first.

    Build output, source trees and hidden directories are skipped; descriptors
    under ``src`` are test fixtures, not modules. The rest follow in
    lexicographic order of their relative paths.
    """
    found = [
        path
        for path in project_root.rglob(DESCRIPTOR_NAME)
        if path.is_file() and not _is_skipped(path.relative_to(project_root))
    ]
    return sorted(
        found,
        key=lambda path: (path.parent != project_root, path.relative_to(project_root).parts),
    )


def apply_variant(project_root: Path, version: str) -> Sequence[MutationOutcome]:
    """Select runner ``version`` in every descriptor of a project."""
    root_descriptor = project_root / DESCRIPTOR_NAME
    return [
        mutate_file(path, version, is_root=path == root_descriptor)
        for path in discover_descriptors(project_root)
    ]


def _is_skipped(relative: Path) -> bool:
    return any(
        part in SKIPPED_DIRECTORIES or part.startswith(".")
        for part in relative.parts[:-1]
    )


def _set_child_text(
    node: XmlNode, local_name: str, value: str, *, depth: int, unit: str
) -> XmlNode:
    """Set a child element's text, appending the child when missing."""
    found = find_child(node, local_name)
    if found is None:
        return append_child(
            node,
            element(local_name, text=value, namespace=node.namespace),
            depth=depth,
            unit=unit,
        )
    index, _ = found
    return update_at(
        node, (index,), lambda child: replace(child, text=value, children=())
    )


def _insert_runner_plugin(root: XmlNode, version: str, *, unit: str) -> XmlNode:
    sections = find_plugin_sections(root)
    if len(sections) > 1:
        raise AmbiguousBuildSectionError(
            f"Found {len(sections)} build plugin sections; "
            "cannot choose where to declare the test runner"
        )

    namespace = root.namespace
    plugin = element(
        "plugin",
        namespace=namespace,
        children=[
            element("groupId", text=RUNNER_GROUP_ID, namespace=namespace),
            element("artifactId", text=RUNNER_ARTIFACT_ID, namespace=namespace),
            element("version", text=version, namespace=namespace),
        ],
    )
    plugin = configure_plugin(plugin, version, depth=0, unit=unit)

    if sections:
        (path,) = sections
        return update_at(
            root,
            path,
            lambda plugins: append_child(plugins, plugin, depth=len(path), unit=unit),
        )

    build_index = next((index for index, _ in child_elements(root, "build")), None)
    if build_index is None:
        build = element(
            "build",
            namespace=namespace,
            children=[element("plugins", namespace=namespace, children=[plugin])],
        )
        return append_child(root, build, depth=0, unit=unit)

    plugins = element("plugins", namespace=namespace, children=[plugin])
    return update_at(
        root,
        (build_index,),
        lambda build: append_child(build, plugins, depth=1, unit=unit),
    )
