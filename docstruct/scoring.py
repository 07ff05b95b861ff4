"""
Confidence scoring.

Every weight that feeds a confidence score is a named constant here, and
every score is computed by a pure function, so the arithmetic can be
audited and tested without building a document. Thresholds a user may
want to tune (damping, native-link boost, minimum confidence) live in
``docstruct.config`` and are passed in.
"""

from __future__ import annotations

from collections.abc import Sequence

# ============================================================
# Reference section
# ============================================================

SECTION_BASE = 0.5
SECTION_PLAUSIBLE_LENGTH_BONUS = 0.2  # 5..500 lines
SECTION_TOO_SHORT_PENALTY = 0.2  # fewer than 5 lines
SECTION_PLAUSIBLE_SPAN_BONUS = 0.1  # 1..10 pages
SECTION_NUMBERED_BONUS = 0.15
SECTION_YEAR_DENSITY_BONUS = 0.1  # more than 30% of lines carry a year
SECTION_YEAR_DENSITY = 0.3

# ============================================================
# Anchors
# ============================================================

ANCHOR_BASE_NUMBERED = 0.7
ANCHOR_BASE_AUTHOR_YEAR = 0.65
ANCHOR_BASE_UNMARKED = 0.5  # author-year format, entry does not open with "Surname, I."
ANCHOR_BASE_STRUCTURAL = 0.55
ANCHOR_BASE_GAP_ONLY = 0.4
ANCHOR_LENGTH_BONUS = 0.1
ANCHOR_YEAR_BONUS = 0.05
ANCHOR_ENDING_BONUS = 0.05

# ============================================================
# Author-year matching
# ============================================================

AUTHOR_EXACT = 1.0
AUTHOR_PREFIX = 0.7
AUTHOR_LIST_MEMBER = 0.6
SECOND_AUTHOR_BOOST = 0.2
AUTHOR_PREFIX_LENGTH = 4

# ============================================================
# Cross-references
# ============================================================

CROSSREF_BASE = 0.6
CROSSREF_DEFINITION_BOOST = 0.2
CROSSREF_NATIVE_BOOST = 0.2


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def boost(confidence: float, amount: float) -> float:
    """Additive fusion of an independent signal, capped at 1.0."""
    return clamp(confidence + amount)


def damp(confidence: float, factor: float) -> float:
    return clamp(confidence * factor)


def section_confidence(
    line_count: int, page_span: int, has_numbered_entries: bool, year_line_share: float
) -> float:
    score = SECTION_BASE
    if 5 <= line_count <= 500:
        score += SECTION_PLAUSIBLE_LENGTH_BONUS
    elif line_count < 5:
        score -= SECTION_TOO_SHORT_PENALTY
    if 1 <= page_span <= 10:
        score += SECTION_PLAUSIBLE_SPAN_BONUS
    if has_numbered_entries:
        score += SECTION_NUMBERED_BONUS
    if year_line_share > SECTION_YEAR_DENSITY:
        score += SECTION_YEAR_DENSITY_BONUS
    return clamp(score)


def anchor_confidence(
    base: float,
    text_length: int,
    has_year: bool,
    has_ending: bool,
    min_length: int = 30,
    max_length: int = 2000,
) -> float:
    score = base
    if min_length <= text_length <= max_length:
        score += ANCHOR_LENGTH_BONUS
    if has_year:
        score += ANCHOR_YEAR_BONUS
    if has_ending:
        score += ANCHOR_ENDING_BONUS
    return clamp(score)


def numeric_confidence(valid: int, total: int) -> float:
    """Share of cited indices that exist in the bibliography."""
    if total <= 0:
        return 0.0
    return clamp(valid / total)


def split_year(year: str) -> tuple[str, str]:
    """'2020a' -> ('2020', 'a')."""
    year = year.strip()
    if len(year) > 4 and year[4:].isalpha():
        return year[:4], year[4:].lower()
    return year[:4], ""


def years_match(cited: str, reference: str | None, range_end: str | None = None) -> bool:
    """Cited year equals the reference year.

    A suffix on only one side still matches on the base year
    ("2020" vs "2020a"); differing suffixes do not. A cited range
    ("2001-2003") matches its base year.
    """
    if not reference:
        return False
    cited_base, cited_suffix = split_year(cited)
    ref_base, ref_suffix = split_year(reference)
    if cited_base != ref_base:
        return False
    if cited_suffix and ref_suffix:
        return cited_suffix == ref_suffix
    return True


def author_score(
    cited_author: str,
    first_author: str | None,
    authors: Sequence[str],
    second_author: str | None = None,
) -> float:
    """Score how well a cited surname matches a bibliography entry.

    Arguments are compared case-insensitively; ``authors`` holds the
    entry's surnames (first author included).
    """
    cited = cited_author.strip().lower()
    if not cited:
        return 0.0
    first = (first_author or "").strip().lower()
    known = [a.lower() for a in authors]

    score = 0.0
    if first and cited == first:
        score = AUTHOR_EXACT
    elif (
        first
        and len(cited) >= AUTHOR_PREFIX_LENGTH
        and len(first) >= AUTHOR_PREFIX_LENGTH
        and cited[:AUTHOR_PREFIX_LENGTH] == first[:AUTHOR_PREFIX_LENGTH]
    ):
        score = AUTHOR_PREFIX
    if score < AUTHOR_LIST_MEMBER and cited in known:
        score = AUTHOR_LIST_MEMBER

    if score > 0 and second_author:
        second = second_author.strip().lower()
        if second and second in known[1:]:
            score = boost(score, SECOND_AUTHOR_BOOST)
    return score


def crossref_confidence(has_definition: bool, native_confirmed: bool) -> float:
    score = CROSSREF_BASE
    if has_definition:
        score += CROSSREF_DEFINITION_BOOST
    if native_confirmed:
        score += CROSSREF_NATIVE_BOOST
    return clamp(score)
