"""Tests for the immutable descriptor tree."""

from dataclasses import replace
from pathlib import Path

import pytest

from runner_compare.descriptor.tree import (
    append_child,
    child_text,
    element,
    indent_unit,
    iter_elements,
    node_at,
    parse_document,
    update_at,
    write_document,
)
from runner_compare.errors import DescriptorParseError

POM_NS = "http://maven.apache.org/POM/4.0.0"


def test_parse_keeps_namespace_and_comments(tmp_path: Path) -> None:
    """Parses qualified names and keeps comments as nodes."""
    path = tmp_path / "pom.xml"
    path.write_text(
        f'<project xmlns="{POM_NS}">\n    <!-- keep me -->\n    <artifactId>a</artifactId>\n</project>\n'
    )

    document = parse_document(path)

    assert document.default_namespace == POM_NS
    assert document.root.local_name == "project"
    assert [child.kind for child in document.root.children] == ["comment", "element"]
    assert child_text(document.root, "artifactId") == "a"


def test_parse_rejects_malformed(tmp_path: Path) -> None:
    """Malformed XML raises DescriptorParseError."""
    path = tmp_path / "pom.xml"
    path.write_text("<project><build></project>")

    with pytest.raises(DescriptorParseError, match="Malformed descriptor"):
        parse_document(path)


def test_round_trip_preserves_content(tmp_path: Path) -> None:
    """Writing an unchanged document keeps it parseable and equivalent."""
    path = tmp_path / "pom.xml"
    path.write_text(
        f'<project xmlns="{POM_NS}" '
        'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
        'xsi:schemaLocation="a b">\n'
        "  <!-- comment -->\n"
        "  <artifactId>a</artifactId>\n"
        "</project>\n"
    )
    original = parse_document(path)

    write_document(original, path)
    reparsed = parse_document(path)

    assert reparsed == original
    text = path.read_text()
    assert "<!-- comment -->" in text
    assert f'xmlns="{POM_NS}"' in text
    assert "<ns0:" not in text


def test_round_trip_keeps_prolog_and_namespace_order(tmp_path: Path) -> None:
    """License header, root declarations and trailing text survive a rewrite."""
    source = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<!-- Licensed to the Apache Software Foundation (ASF) -->\n"
        f'<project xmlns="{POM_NS}" '
        'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
        'xsi:schemaLocation="a b">\n'
        "  <!-- comment -->\n"
        "  <artifactId>a</artifactId>\n"
        "</project>\n"
    )
    path = tmp_path / "pom.xml"
    path.write_text(source)

    document = parse_document(path)
    write_document(document, path)

    assert document.prolog == "<!-- Licensed to the Apache Software Foundation (ASF) -->\n"
    assert document.namespaces == (
        ("", POM_NS),
        ("xsi", "http://www.w3.org/2001/XMLSchema-instance"),
    )
    assert path.read_text() == source


def test_write_adds_declaration_and_keeps_edits(tmp_path: Path) -> None:
    """A document without a declaration gains one; edited elements are written."""
    path = tmp_path / "pom.xml"
    path.write_text(f'<project xmlns="{POM_NS}">\n  <artifactId>a</artifactId>\n</project>')
    document = parse_document(path)
    root = append_child(
        document.root, element("version", text="1", namespace=POM_NS), depth=0, unit="  "
    )

    write_document(replace(document, root=root), path)

    assert path.read_text() == (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<project xmlns="{POM_NS}">\n'
        "  <artifactId>a</artifactId>\n"
        "  <version>1</version>\n"
        "</project>"
    )


def test_update_at_rebuilds_only_the_path() -> None:
    """Updates return a new tree and leave the original untouched."""
    root = element(
        "project",
        children=[element("a", text="1"), element("b", children=[element("c", text="2")])],
    )

    updated = update_at(root, (1, 0), lambda node: element("c", text="3"))

    assert node_at(updated, (1, 0)).text == "3"
    assert node_at(root, (1, 0)).text == "2"
    assert updated.children[0] is root.children[0]


def test_iter_elements_yields_paths_in_document_order() -> None:
    """Walks elements depth-first with their paths."""
    root = element("r", children=[element("a", children=[element("b")]), element("c")])

    assert [(path, node.tag) for path, node in iter_elements(root)] == [
        ((), "r"),
        ((0,), "a"),
        ((0, 0), "b"),
        ((1,), "c"),
    ]


def test_append_child_follows_indentation() -> None:
    """Appended children are indented one level below their parent."""
    parent = element("plugins", children=[element("plugin")])
    parent = append_child(parent, element("other"), depth=0, unit="  ")
    parent = append_child(
        parent, element("x", children=[element("y", text="1")]), depth=0, unit="  "
    )

    assert parent.children[0].tail == "\n  "
    assert parent.children[1].tail == "\n  "
    assert parent.children[2].text == "\n    "
    assert parent.children[2].children[0].tail == "\n  "


def test_append_child_to_empty_parent() -> None:
    """The first child opens and closes the parent's indentation."""
    parent = append_child(element("build"), element("plugins"), depth=1, unit="\t")

    assert parent.text == "\n\t\t"
    assert parent.children[0].tail == "\n\t"


@pytest.mark.parametrize(
    ("text", "expected"),
    [("\n    ", "    "), ("\n\t", "\t"), (None, "  "), ("", "  ")],
)
def test_indent_unit(text: str | None, expected: str) -> None:
    """Infers the indentation step from the root's leading whitespace."""
    root = replace(element("project", children=[element("a")]), text=text)

    assert indent_unit(root) == expected
