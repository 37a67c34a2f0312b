"""Immutable XML tree used to read and rewrite build descriptors.

Nodes carry their own name, attributes and ordered children and never
point back at a parent. Locations inside a tree are expressed as paths:
tuples of child indices from the root. Queries yield paths and updates
rebuild the spine along a path, returning a new root.
"""

import re
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal
from xml.parsers import expat

from runner_compare.errors import DescriptorParseError

NodePath = tuple[int, ...]
NodeKind = Literal["element", "comment", "pi"]

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
XML_DECLARATION_PATTERN = re.compile(r"\A<\?xml\b.*?\?>\r?\n?", re.DOTALL)


@dataclass(frozen=True, kw_only=True)
class XmlNode:
    """A node of a descriptor document.

    ``tag`` is the qualified name in ElementTree's ``{uri}local`` form for
    elements. Comments and processing instructions keep their content in
    ``text``.
    """

    kind: NodeKind = "element"
    tag: str = ""
    attributes: Mapping[str, str] = field(default_factory=dict)
    text: str | None = None
    tail: str | None = None
    children: tuple["XmlNode", ...] = ()

    @property
    def local_name(self) -> str:
        """Element name without its namespace."""
        return self.tag.rpartition("}")[2]

    @property
    def namespace(self) -> str | None:
        """Namespace URI of the element, if any."""
        if self.tag.startswith("{"):
            return self.tag[1:].partition("}")[0]
        return None

    @property
    def is_element(self) -> bool:
        """Whether the node is an element."""
        return self.kind == "element"


@dataclass(frozen=True, kw_only=True)
class Document:
    """A parsed descriptor.

    ``prolog`` and ``epilog`` hold the text before and after the root element,
    minus the XML declaration. ``namespaces`` lists the root's ``(prefix, uri)``
    declarations in document order, with an empty prefix for the default one.
    """

    root: XmlNode
    default_namespace: str | None = None
    prolog: str = ""
    epilog: str = "\n"
    namespaces: tuple[tuple[str, str], ...] = ()


def element(
    tag: str,
    *,
    text: str | None = None,
    children: Sequence[XmlNode] = (),
    namespace: str | None = None,
) -> XmlNode:
    """Create an element node, qualifying ``tag`` with ``namespace``."""
    qualified = f"{{{namespace}}}{tag}" if namespace else tag
    return XmlNode(tag=qualified, text=text, children=tuple(children))


def node_at(root: XmlNode, path: NodePath) -> XmlNode:
    """Return the node found by following ``path`` from ``root``."""
    node = root
    for index in path:
        node = node.children[index]
    return node


def iter_elements(
    root: XmlNode, path: NodePath = ()
) -> Iterator[tuple[NodePath, XmlNode]]:
    """Yield ``(path, element)`` pairs depth-first in document order."""
    if not root.is_element:
        return
    yield path, root
    for index, child in enumerate(root.children):
        yield from iter_elements(child, (*path, index))


def child_elements(
    node: XmlNode, local_name: str
) -> Iterator[tuple[int, XmlNode]]:
    """Yield ``(index, child)`` for direct child elements with ``local_name``."""
    for index, child in enumerate(node.children):
        if child.is_element and child.local_name == local_name:
            yield index, child


def find_child(node: XmlNode, local_name: str) -> tuple[int, XmlNode] | None:
    """Return the first direct child element with ``local_name``."""
    return next(child_elements(node, local_name), None)


def child_text(node: XmlNode, local_name: str) -> str | None:
    """Return the stripped text of the first child element with ``local_name``."""
    found = find_child(node, local_name)
    if found is None:
        return None
    return (found[1].text or "").strip()


def update_at(
    root: XmlNode, path: NodePath, update: Callable[[XmlNode], XmlNode]
) -> XmlNode:
    """Return a new tree with the node at ``path`` replaced by ``update(node)``."""
    if not path:
        return update(root)
    head, rest = path[0], path[1:]
    children = list(root.children)
    children[head] = update_at(children[head], rest, update)
    return replace(root, children=tuple(children))


def indent_unit(root: XmlNode) -> str:
    """Guess the document's indentation step from the root's leading text."""
    leading = (root.text or "").rpartition("\n")[2]
    if leading and not leading.strip():
        return leading
    return "  "


def append_child(parent: XmlNode, child: XmlNode, *, depth: int, unit: str) -> XmlNode:
    """Append ``child`` to ``parent`` keeping the surrounding indentation.

    ``depth`` is the nesting level of ``parent``; the child is laid out one
    level deeper.
    """
    inner = "\n" + unit * (depth + 1)
    closing = "\n" + unit * depth
    child = _layout(child, depth=depth + 1, unit=unit)
    if not parent.children:
        return replace(
            parent,
            text=inner,
            children=(replace(child, tail=closing),),
        )
    *head, last = parent.children
    return replace(
        parent,
        children=(*head, replace(last, tail=inner), replace(child, tail=last.tail)),
    )


def _layout(node: XmlNode, *, depth: int, unit: str) -> XmlNode:
    """Indent a freshly built subtree whose root sits at ``depth``."""
    if not node.children:
        return node
    inner = "\n" + unit * (depth + 1)
    closing = "\n" + unit * depth
    children = [
        replace(_layout(child, depth=depth + 1, unit=unit), tail=inner)
        for child in node.children
    ]
    children[-1] = replace(children[-1], tail=closing)
    return replace(node, text=inner, children=tuple(children))


def parse_document(path: Path) -> Document:
    """Parse a descriptor file, keeping comments and processing instructions.

    Text outside the root element, such as a license comment or a DOCTYPE,
    is kept verbatim along with the root's namespace declarations so that a
    rewrite changes nothing but the edited elements.
    """
    data = path.read_bytes()
    parser = ET.XMLParser(
        target=ET.TreeBuilder(insert_comments=True, insert_pis=True)
    )
    try:
        parser.feed(data)
        root = parser.close()
    except ET.ParseError as e:
        raise DescriptorParseError(f"Malformed descriptor {path}: {e}") from e

    prolog, epilog, namespaces = _scan_root(data)
    converted = _from_element(root)
    return Document(
        root=converted,
        default_namespace=converted.namespace,
        prolog=prolog,
        epilog=epilog,
        namespaces=namespaces,
    )


def write_document(document: Document, path: Path) -> None:
    """Serialize a descriptor back to ``path`` as UTF-8 with a declaration.

    Names are written with the prefixes declared on the root, so elements in
    the default namespace stay unprefixed.
    """
    declarations = list(document.namespaces)
    namespace = document.default_namespace
    if namespace and all(uri != namespace for _, uri in declarations):
        declarations.insert(0, ("", namespace))
    prefixes = {uri: prefix for prefix, uri in declarations}

    root = _to_element(document.root, prefixes)
    attributes = {
        f"xmlns:{prefix}" if prefix else "xmlns": uri for prefix, uri in declarations
    }
    attributes.update(root.attrib)
    root.attrib.clear()
    root.attrib.update(attributes)

    body = ET.tostring(root, encoding="unicode")
    path.write_text(
        f"{XML_DECLARATION}\n{document.prolog}{body}{document.epilog}",
        encoding="utf-8",
    )


def _scan_root(data: bytes) -> tuple[str, str, tuple[tuple[str, str], ...]]:
    """Find the text around the root element and its namespace declarations."""
    parser = expat.ParserCreate()
    parser.ordered_attributes = True
    bounds: list[int] = []
    declarations: list[tuple[str, str]] = []
    depth = 0

    def start(name: str, attributes: list[str]) -> None:
        nonlocal depth
        if depth == 0:
            bounds.append(parser.CurrentByteIndex)
            for key, value in zip(attributes[::2], attributes[1::2]):
                if key == "xmlns" or key.startswith("xmlns:"):
                    declarations.append((key.partition(":")[2], value))
        depth += 1

    def end(name: str) -> None:
        nonlocal depth
        depth -= 1
        if depth == 0:
            bounds.append(data.index(b">", parser.CurrentByteIndex) + 1)

    parser.StartElementHandler = start
    parser.EndElementHandler = end
    parser.Parse(data, True)

    head, tail = bounds
    prolog = data[:head].decode("utf-8", errors="replace").lstrip("\ufeff")
    prolog = XML_DECLARATION_PATTERN.sub("", prolog, count=1)
    epilog = data[tail:].decode("utf-8", errors="replace")
    return prolog, epilog, tuple(declarations)


def _from_element(source: ET.Element) -> XmlNode:
    if source.tag is ET.Comment:
        return XmlNode(kind="comment", text=source.text, tail=source.tail)
    if source.tag is ET.ProcessingInstruction:
        return XmlNode(kind="pi", text=source.text, tail=source.tail)
    return XmlNode(
        tag=source.tag,
        attributes=dict(source.attrib),
        text=source.text,
        tail=source.tail,
        children=tuple(_from_element(child) for child in source),
    )


def _prefixed(name: str, prefixes: Mapping[str, str], *, attribute: bool = False) -> str:
    """Rewrite a ``{uri}local`` name with its declared prefix.

    Names whose namespace has no usable prefix are left qualified for
    ElementTree to declare. Attributes never take the default namespace.
    """
    if not name.startswith("{"):
        return name
    uri, _, local = name[1:].partition("}")
    prefix = prefixes.get(uri)
    if prefix is None or (attribute and not prefix):
        return name
    return f"{prefix}:{local}" if prefix else local


def _to_element(node: XmlNode, prefixes: Mapping[str, str]) -> ET.Element:
    match node.kind:
        case "comment":
            target = ET.Comment(node.text)
        case "pi":
            target = ET.ProcessingInstruction(node.text or "")
        case _:
            target = ET.Element(
                _prefixed(node.tag, prefixes),
                {
                    _prefixed(name, prefixes, attribute=True): value
                    for name, value in node.attributes.items()
                },
            )
            target.text = node.text
            target.extend(_to_element(child, prefixes) for child in node.children)
    target.tail = node.tail
    return target
