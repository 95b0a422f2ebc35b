"""Read-only views over the nodes of a definition file.

A :class:`WorldDefinitionFile` never hands out its lxml elements: callers
get :class:`ElementView` wrappers that expose navigation and attributes but
no mutator. Every change must go through the definition file's transactional
entry points.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Iterator, List, Mapping, Optional

from lxml import etree


def local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def child_elements(element: etree._Element, tag: Optional[str] = None) -> Iterator[etree._Element]:
    """Element children only (comments and processing instructions are skipped)."""
    for child in element.iterchildren(tag=etree.Element):
        if tag is None or local_name(child) == tag:
            yield child


def has_elements(element: etree._Element) -> bool:
    return next(child_elements(element), None) is not None


class ElementView:
    """Immutable facade of one element."""

    __slots__ = ("_element",)

    def __init__(self, element: etree._Element) -> None:
        self._element = element

    @property
    def tag(self) -> str:
        return local_name(self._element)

    @property
    def attrib(self) -> Mapping[str, str]:
        return MappingProxyType(dict(self._element.attrib))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._element.get(name, default)

    @property
    def parent(self) -> Optional["ElementView"]:
        p = self._element.getparent()
        return ElementView(p) if p is not None else None

    @property
    def has_elements(self) -> bool:
        return has_elements(self._element)

    def children(self, tag: Optional[str] = None) -> List["ElementView"]:
        return [ElementView(c) for c in child_elements(self._element, tag)]

    def find(self, tag: str) -> Optional["ElementView"]:
        child = next(child_elements(self._element, tag), None)
        return ElementView(child) if child is not None else None

    def descendants(self, tag: Optional[str] = None) -> List["ElementView"]:
        return [
            ElementView(e)
            for e in self._element.iterdescendants(tag=etree.Element)
            if tag is None or local_name(e) == tag
        ]

    def to_xml(self) -> str:
        return etree.tostring(self._element, encoding="unicode", pretty_print=True, with_tail=False).rstrip("\n")

    def __iter__(self) -> Iterator["ElementView"]:
        return iter(self.children())

    def __len__(self) -> int:
        return sum(1 for _ in child_elements(self._element))

    def __bool__(self) -> bool:
        return True

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ElementView) and other._element is self._element

    def __hash__(self) -> int:
        return hash(self._element)

    def __str__(self) -> str:
        return self.to_xml()

    def __repr__(self) -> str:
        return f"<ElementView {self.tag} {dict(self._element.attrib)!r}>"


__all__ = ["ElementView", "child_elements", "has_elements", "local_name"]
