"""In-memory document tree used as the extractor's input.

A snapshot of the rendered page is converted once into plain ``Node`` values so
that the extraction heuristics run as pure functions over data, without a live
browser. Trees come either from serialized HTML (``parse_html``) or are built by
hand with ``element`` for fixtures.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Union

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

Child = Union["Node", str]
Predicate = Callable[["Node"], bool]

_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


@dataclass(eq=False)
class Node:
    """One element of a snapshot. Equality and hashing are by identity."""

    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    children: list[Child] = field(default_factory=list)
    parent: Node | None = field(default=None, repr=False)

    def append(self, child: Child) -> None:
        if isinstance(child, Node):
            child.parent = self
        self.children.append(child)

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.attrs.get(name, default)

    @property
    def classes(self) -> list[str]:
        return (self.attrs.get("class") or "").split()

    def has_class(self, *names: str) -> bool:
        present = set(self.classes)
        return all(n in present for n in names)

    @property
    def element_children(self) -> list[Node]:
        return [c for c in self.children if isinstance(c, Node)]

    @property
    def next_element_sibling(self) -> Node | None:
        if self.parent is None:
            return None
        siblings = self.parent.element_children
        for idx, sib in enumerate(siblings):
            if sib is self:
                return siblings[idx + 1] if idx + 1 < len(siblings) else None
        return None

    def iter_descendants(self) -> Iterator[Node]:
        """Yield descendant elements in document (pre-)order, excluding self."""

        stack = list(reversed(self.element_children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.element_children))

    def find_all(self, pred: Predicate) -> list[Node]:
        return [n for n in self.iter_descendants() if pred(n)]

    def find(self, pred: Predicate) -> Node | None:
        return next((n for n in self.iter_descendants() if pred(n)), None)

    def closest(self, pred: Predicate) -> Node | None:
        """Nearest inclusive ancestor matching ``pred``."""

        node: Node | None = self
        while node is not None:
            if pred(node):
                return node
            node = node.parent
        return None

    def iter_text(self, skip: Predicate | None = None) -> Iterator[str]:
        """Yield text chunks in order, pruning subtrees matched by ``skip``."""

        stack: list[Child] = list(reversed(self.children))
        while stack:
            item = stack.pop()
            if isinstance(item, str):
                yield item
            elif skip is None or not skip(item):
                stack.extend(reversed(item.children))

    @property
    def text_content(self) -> str:
        return "".join(self.iter_text())


@dataclass
class DocumentTree:
    """A point-in-time snapshot of a page."""

    root: Node
    url: str = ""

    def find_all(self, pred: Predicate) -> list[Node]:
        return ([self.root] if pred(self.root) else []) + self.root.find_all(pred)

    def find(self, pred: Predicate) -> Node | None:
        return self.root if pred(self.root) else self.root.find(pred)


# ----------------------------
# Predicate builders
# ----------------------------


def tag_in(*tags: str) -> Predicate:
    wanted = {t.lower() for t in tags}
    return lambda n: n.tag in wanted


def attr_equals(name: str, value: str) -> Predicate:
    return lambda n: n.attrs.get(name) == value


def has_attr(name: str) -> Predicate:
    return lambda n: name in n.attrs


def class_contains(fragment: str) -> Predicate:
    """Substring match on the raw class attribute, like ``[class*=...]``."""

    return lambda n: fragment in (n.attrs.get("class") or "")


def has_classes(*names: str) -> Predicate:
    return lambda n: n.has_class(*names)


def all_of(*preds: Predicate) -> Predicate:
    return lambda n: all(p(n) for p in preds)


def any_of(*preds: Predicate) -> Predicate:
    return lambda n: any(p(n) for p in preds)


# ----------------------------
# Construction
# ----------------------------


def _attr_name(key: str) -> str:
    return key.rstrip("_").replace("_", "-")


def element(tag: str, *children: Child, **attrs: str) -> Node:
    """Build a node by hand: ``element("svg", data_icon="comments-alt")``."""

    node = Node(tag=tag.lower(), attrs={_attr_name(k): str(v) for k, v in attrs.items()})
    for child in children:
        node.append(child)
    return node


def _convert_attrs(tag: Tag) -> dict[str, str]:
    out: dict[str, str] = {}
    for key, value in (tag.attrs or {}).items():
        if isinstance(value, (list, tuple)):
            value = " ".join(value)
        out[str(key).lower()] = "" if value is None else str(value)
    return out


def parse_html(html: str, url: str = "") -> DocumentTree:
    """Parse serialized HTML into a ``DocumentTree``."""

    soup = BeautifulSoup(html or "", "html.parser")
    root = Node(tag="#document")
    stack: list[tuple[Tag, Node]] = [(soup, root)]
    while stack:
        src, dst = stack.pop()
        for child in src.children:
            if isinstance(child, Tag):
                node = Node(tag=(child.name or "").lower(), attrs=_convert_attrs(child))
                dst.append(node)
                stack.append((child, node))
            elif isinstance(child, NavigableString) and not isinstance(child, _SKIPPED_STRINGS):
                dst.append(str(child))
    return DocumentTree(root=root, url=url)


__all__ = [
    "Child",
    "DocumentTree",
    "Node",
    "Predicate",
    "all_of",
    "any_of",
    "attr_equals",
    "class_contains",
    "element",
    "has_attr",
    "has_classes",
    "parse_html",
    "tag_in",
]
