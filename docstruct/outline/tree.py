"""
Outline tree construction.

Leveled heading candidates are assembled with a stack. A numbered child
must extend its parent's numbering (``2.1`` under ``2``), and top-level
numbers that leap far past anything seen so far are treated as noise
(page numbers, list items, table cells).
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from docstruct.lexicon import Lexicon
from docstruct.models import OutlineNode

OUTLINE_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "docstruct/outline")

MAX_PREFIX_COMPONENT = 1000
MAX_ROMAN_PREFIX = 50  # larger single-letter numerals (C, D, M) read as letters

_ROMAN_VALUES = {"I": 1, "V": 5, "X": 10, "L": 50, "C": 100, "D": 500, "M": 1000}
_ROMAN = re.compile(r"^M{0,3}(CM|CD|D?C{0,3})(XC|XL|L?X{0,3})(IX|IV|V?I{0,3})$")


def node_id(title: str, page_index: int, left: float, top: float, ordinal: int) -> str:
    """Stable id: the same document always yields the same ids."""
    key = f"{ordinal}|{page_index}|{left:.1f}|{top:.1f}|{title}"
    return str(uuid.uuid5(OUTLINE_NAMESPACE, key))


def roman_to_int(text: str) -> int | None:
    upper = text.upper()
    if not upper or not _ROMAN.match(upper):
        return None
    total = 0
    for char, following in zip(upper, upper[1:] + " "):
        value = _ROMAN_VALUES[char]
        if following != " " and _ROMAN_VALUES[following] > value:
            total -= value
        else:
            total += value
    return total


def parse_prefix(prefix: str | None) -> list[int]:
    """``"2.1."`` -> ``[2, 1]``; ``"IV."`` -> ``[4]``; ``"B."`` -> ``[2]``.

    Components that are neither numbers, roman numerals nor single
    letters become 0.
    """
    if not prefix:
        return []
    cleaned = prefix.strip().rstrip(".").strip()
    components = []
    for part in cleaned.split("."):
        part = part.strip()
        if not part:
            continue
        if part.isdigit():
            components.append(int(part))
            continue
        roman = roman_to_int(part)
        if roman is not None and roman <= MAX_ROMAN_PREFIX:
            components.append(roman)
        elif len(part) == 1 and part.isalpha():
            components.append(ord(part.upper()) - 64)
        else:
            components.append(0)
    return components


def number_depth(prefix: str | None) -> int:
    """``"1"``/``"1."`` -> 1, ``"1.2"`` -> 2, ``"1.2.3."`` -> 3."""
    if not prefix:
        return 0
    if "." not in prefix:
        return 1
    return len(prefix.rstrip(".").split("."))


def is_prefix_compatible(parent: Sequence[int], child: Sequence[int]) -> bool:
    """Whether ``child`` numbering strictly extends ``parent``."""
    if len(child) <= len(parent):
        return False
    return list(child[: len(parent)]) == list(parent)


@dataclass
class LeveledHeading:
    """A heading ready for tree placement."""

    title: str
    page_index: int
    left: float
    top: float
    level: int
    number_prefix: str | None = None
    components: list[int] = field(default_factory=list)

    def __post_init__(self):
        if not self.components and self.number_prefix:
            self.components = parse_prefix(self.number_prefix)


def build_tree(
    headings: Iterable[LeveledHeading], max_top_level_jump: int = 5
) -> list[OutlineNode]:
    """Assemble headings (in document order) into a forest."""
    usable = [
        h for h in headings if not (h.components and h.components[0] >= MAX_PREFIX_COMPONENT)
    ]
    # Stable: ties keep reading order within a page
    usable.sort(key=lambda h: h.page_index)

    roots: list[OutlineNode] = []
    stack: list[tuple[OutlineNode, int, list[int]]] = []
    seen_top: list[int] = []

    for ordinal, heading in enumerate(usable):
        components = heading.components
        while stack:
            _, parent_level, parent_components = stack[-1]
            if parent_level >= heading.level:
                stack.pop()
            elif components and parent_components and not is_prefix_compatible(
                parent_components, components
            ):
                stack.pop()
            else:
                break

        if not stack and len(components) > 1:
            continue  # "3.2" with no "3" to hang from
        if not stack and len(components) == 1:
            if seen_top and components[0] > max(seen_top) + max_top_level_jump:
                continue
            seen_top.append(components[0])

        node = OutlineNode(
            id=node_id(heading.title, heading.page_index, heading.left, heading.top, ordinal),
            title=heading.title,
            page_index=heading.page_index,
            left=heading.left,
            top=heading.top,
            level=heading.level,
        )
        if stack:
            stack[-1][0].children.append(node)
        else:
            roots.append(node)
        stack.append((node, heading.level, components))

    return roots


def prune_reference_children(nodes: list[OutlineNode], lexicon: Lexicon) -> list[OutlineNode]:
    """Bibliography entries picked up as headings are dropped from under it."""
    for root in nodes:
        for node in root.walk():
            if lexicon.is_reference_heading(node.title):
                node.children = []
    return nodes


def relevel(nodes: list[OutlineNode], level: int = 1) -> list[OutlineNode]:
    """Set each node's level to its depth in the tree."""
    for node in nodes:
        node.level = level
        relevel(node.children, level + 1)
    return nodes
