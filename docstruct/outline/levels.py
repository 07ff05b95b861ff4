"""
Heading level assignment.

Heading font sizes are clustered into visual tiers (largest first). Within
a tier, deeper numbering nests below shallower numbering, and each tier
reserves enough levels for its own numbering depth before the next tier
begins.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol


class Leveled(Protocol):
    font_size: float
    number_depth: int
    is_numbered: bool


def size_key(font_size: float) -> float:
    return round(font_size, 1)


def cluster_sizes(sizes: Iterable[float], relative_threshold: float = 0.1) -> dict[float, int]:
    """Map each rounded size to a 1-based tier, largest sizes in tier 1.

    A size opens a new tier when it is more than ``relative_threshold``
    smaller than the largest size of the current tier.
    """
    ordered = sorted({size_key(s) for s in sizes}, reverse=True)
    tiers: dict[float, int] = {}
    if not ordered:
        return tiers

    tier = 1
    anchor = ordered[0]
    for size in ordered:
        diff = (anchor - size) / anchor if anchor > 0 else 1.0
        if diff > relative_threshold:
            tier += 1
            anchor = size
        tiers[size] = tier
    return tiers


def assign_levels(candidates: Sequence[Leveled], relative_threshold: float = 0.1) -> list[int]:
    """Outline level for each candidate, in the same order."""
    if not candidates:
        return []

    tiers = cluster_sizes((c.font_size for c in candidates), relative_threshold)

    def tier_of(candidate: Leveled) -> int:
        return tiers.get(size_key(candidate.font_size), 1)

    numbered = [c for c in candidates if c.is_numbered and c.number_depth]

    min_depth: dict[int, int] = {}
    for c in numbered:
        tier = tier_of(c)
        min_depth[tier] = min(min_depth.get(tier, c.number_depth), c.number_depth)

    max_offset: dict[int, int] = {}
    for c in numbered:
        tier = tier_of(c)
        offset = c.number_depth - min_depth[tier]
        max_offset[tier] = max(max_offset.get(tier, 0), offset)

    base: dict[int, int] = {}
    level = 1
    for tier in range(1, max(tiers.values(), default=0) + 1):
        base[tier] = level
        level += 1 + max_offset.get(tier, 0)

    levels = []
    for c in candidates:
        tier = tier_of(c)
        level = base.get(tier, 1)
        if c.is_numbered and c.number_depth:
            level += c.number_depth - min_depth.get(tier, 1)
        levels.append(level)
    return levels
