"""
Validation rules for synthesized outlines.

Validators check an outline for consistency and quality.
Issues are reported but don't change the outline (graceful degradation).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass

from docstruct.models import OutlineNode


@dataclass
class ValidationIssue:
    """A validation problem found in an outline."""

    type: str  # "level_skip", "short_title", "page_order", etc.
    message: str
    severity: str  # "warning", "info"
    titles: list[str]  # Affected node titles


def iter_nodes(nodes: list[OutlineNode]) -> Iterator[OutlineNode]:
    """Depth-first, document order."""
    for node in nodes:
        yield from node.walk()


class ValidationRule(ABC):
    """Abstract base for validation rules."""

    name: str = "base"

    @abstractmethod
    def check(self, nodes: list[OutlineNode]) -> list[ValidationIssue]:
        """Check an outline forest for issues.

        Returns list of issues found (empty if all good).
        """
        pass


class HierarchyValidator(ValidationRule):
    """Check that heading levels are consistent.

    Levels shouldn't skip (e.g., 1 -> 3 without 2).
    """

    name = "hierarchy"

    def check(self, nodes: list[OutlineNode]) -> list[ValidationIssue]:
        issues = []
        prev_level = 0
        for node in iter_nodes(nodes):
            if node.level > prev_level + 1:
                issues.append(
                    ValidationIssue(
                        type="level_skip",
                        message=f"Heading '{node.title}' skips levels "
                        f"({prev_level} -> {node.level})",
                        severity="info",
                        titles=[node.title],
                    )
                )
            prev_level = node.level
        return issues


class TitleQualityValidator(ValidationRule):
    """Check heading titles for quality issues.

    Detects potential false positives like single characters or bare numbers.
    """

    name = "title_quality"

    def __init__(self, min_title_length: int = 3, max_title_length: int = 200):
        """Initialize validator.

        Args:
            min_title_length: Minimum characters for valid title.
            max_title_length: Maximum characters for valid title.
        """
        self.min_title_length = min_title_length
        self.max_title_length = max_title_length

    def check(self, nodes: list[OutlineNode]) -> list[ValidationIssue]:
        issues = []
        for node in iter_nodes(nodes):
            title = node.title.strip()
            if len(title) < self.min_title_length:
                issues.append(
                    ValidationIssue(
                        type="short_title",
                        message=f"Heading title '{title}' is too short",
                        severity="info",
                        titles=[title],
                    )
                )
            elif len(title) > self.max_title_length:
                issues.append(
                    ValidationIssue(
                        type="long_title",
                        message=f"Heading title is too long ({len(title)} chars)",
                        severity="warning",
                        titles=[title[:50] + "..."],
                    )
                )
            elif title.replace(".", "").isdigit():
                issues.append(
                    ValidationIssue(
                        type="numeric_title",
                        message=f"Heading title '{title}' is just a number",
                        severity="info",
                        titles=[title],
                    )
                )
        return issues


class PageOrderValidator(ValidationRule):
    """Headings should not point backwards in the document."""

    name = "page_order"

    def check(self, nodes: list[OutlineNode]) -> list[ValidationIssue]:
        issues = []
        previous: OutlineNode | None = None
        for node in iter_nodes(nodes):
            if previous is not None and node.page_index < previous.page_index:
                issues.append(
                    ValidationIssue(
                        type="page_order",
                        message=f"Heading '{node.title}' (page {node.page_index + 1}) comes "
                        f"after '{previous.title}' (page {previous.page_index + 1})",
                        severity="warning",
                        titles=[previous.title, node.title],
                    )
                )
            previous = node
        return issues


VALIDATORS: dict[str, type[ValidationRule]] = {
    "hierarchy": HierarchyValidator,
    "title_quality": TitleQualityValidator,
    "page_order": PageOrderValidator,
}
