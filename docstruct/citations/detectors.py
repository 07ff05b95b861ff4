"""
Inline citation detectors.

Each detector scans one page's reading-order text and emits Citations
only for references it can validate against the bibliography. Character
ranges already claimed by an earlier detector are skipped, so ``[17]-[19]``
is never also reported as ``[17]`` and ``[19]``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from docstruct.config import CitationConfig
from docstruct.lexicon import Lexicon
from docstruct.models import (
    BodyFontStats,
    Citation,
    CitationFlags,
    CitationTarget,
    CitationType,
    Line,
    Rect,
    RefKey,
    ReferenceAnchor,
)
from docstruct.references.anchors import ReferenceIndex
from docstruct.references.parsing import clean_cited_author, surname_key
from docstruct.scoring import author_score, numeric_confidence, years_match
from docstruct.text import PageText

logger = logging.getLogger(__name__)

_NUMERIC_PARTS = re.compile(r"\s*[,;]\s*")
_RANGE = re.compile(r"^(\d+)\s*[-–—]\s*(\d+)$")
_SUPERSCRIPT_STRIP = re.compile(r"[\s\[\]()]")


class ClaimedRanges:
    """Character ranges of a page already turned into citations."""

    def __init__(self):
        self._ranges: list[tuple[int, int]] = []

    def overlaps(self, start: int, end: int) -> bool:
        return any(start < e and end > s for s, e in self._ranges)

    def claim(self, start: int, end: int) -> None:
        self._ranges.append((start, end))


@dataclass
class ParsedNumbers:
    indices: list[int] = field(default_factory=list)
    ranges: list[tuple[int, int]] = field(default_factory=list)


def parse_numeric_content(
    content: str, max_span: int = 30, max_index: int = 1000
) -> ParsedNumbers:
    """Parse ``1-3, 5; 7`` into indices and ranges.

    A range is capped at ``max_span`` entries past its start; indices
    outside ``0 < n < max_index`` are dropped.
    """
    parsed = ParsedNumbers()
    for part in _NUMERIC_PARTS.split(content.strip()):
        if not part:
            continue
        match = _RANGE.match(part)
        if match:
            start, end = int(match.group(1)), int(match.group(2))
            if start < end:
                end = min(end, start + max_span)
                parsed.ranges.append((start, end))
                values: Iterable[int] = range(start, end + 1)
            else:
                values = (start, end) if start != end else (start,)
        elif part.isdigit():
            values = (int(part),)
        else:
            continue
        for value in values:
            if 0 < value < max_index and value not in parsed.indices:
                parsed.indices.append(value)
    return parsed


def _target(anchor: ReferenceAnchor, ref_key: RefKey | None = None) -> CitationTarget:
    return CitationTarget(
        anchor_id=anchor.id, ref_index=anchor.index, ref_key=ref_key, location=anchor.location
    )


def _numeric_citation(
    kind: CitationType,
    text: str,
    page_number: int,
    rects: list[Rect],
    numbers: ParsedNumbers,
    references: ReferenceIndex,
    flags: CitationFlags = CitationFlags.NONE,
) -> Citation | None:
    anchors = [references.find_reference_by_index(i) for i in numbers.indices]
    valid = [(i, a) for i, a in zip(numbers.indices, anchors) if a is not None]
    if not valid or not rects:
        return None
    if len(valid) > 1:
        flags |= CitationFlags.MULTI_REF
    targets = [_target(anchor) for _, anchor in valid]
    return Citation(
        type=kind,
        text=text,
        page_number=page_number,
        rects=rects,
        confidence=numeric_confidence(len(valid), len(numbers.indices)),
        ref_indices=[i for i, _ in valid],
        anchor_ids=[a.id for _, a in valid],
        ref_ranges=list(numbers.ranges),
        flags=flags,
        target_location=targets[0].location,
        targets=targets,
    )


# ============================================================
# Numeric
# ============================================================


class NumericCitationDetector:
    """``[1]``, ``[1,2]``, ``[1-5]``, ``[1-3, 7]`` and ``[17]-[19]``."""

    def __init__(self, lexicon: Lexicon, config: CitationConfig | None = None):
        self.lexicon = lexicon
        self.config = config or CitationConfig()

    def detect(
        self, page_text: PageText, references: ReferenceIndex, claimed: ClaimedRanges
    ) -> list[Citation]:
        text = page_text.text
        citations = []

        for match in self.lexicon.inter_bracket_range.finditer(text):
            start, end = int(match.group(1)), int(match.group(2))
            if not start < end or end - start > self.config.max_range_span:
                continue
            if claimed.overlaps(match.start(), match.end()):
                continue
            numbers = parse_numeric_content(
                f"{start}-{end}", self.config.max_range_span, self.config.max_citation_index
            )
            citation = _numeric_citation(
                CitationType.NUMERIC,
                match.group(0),
                page_text.page_number,
                page_text.rects_for_span(match.start(), match.end()),
                numbers,
                references,
                CitationFlags.RANGE_NOTATION,
            )
            if citation is not None:
                citations.append(citation)
                claimed.claim(match.start(), match.end())

        for match in self.lexicon.bracket_mixed.finditer(text):
            if claimed.overlaps(match.start(), match.end()):
                continue
            numbers = parse_numeric_content(
                match.group(1), self.config.max_range_span, self.config.max_citation_index
            )
            if not numbers.indices:
                continue
            flags = CitationFlags.RANGE_NOTATION if numbers.ranges else CitationFlags.NONE
            citation = _numeric_citation(
                CitationType.NUMERIC,
                match.group(0),
                page_text.page_number,
                page_text.rects_for_span(match.start(), match.end()),
                numbers,
                references,
                flags,
            )
            if citation is not None:
                citations.append(citation)
                claimed.claim(match.start(), match.end())

        return citations


# ============================================================
# Author-year
# ============================================================


@dataclass
class CitationChunk:
    """One ``Author [and Author], year[, year]`` unit of a parenthetical block."""

    author: str
    second_author: str | None
    years: list[tuple[str, bool]]  # (year, is_range)
    start: int  # offsets into the page text
    end: int


class AuthorYearCitationDetector:
    """Parenthetical blocks ``(Smith, 2020; Lee and Kim, 2019a)`` and
    narrative forms ``Smith et al. (2020)`` / ``Smith and Jones (2020)``."""

    def __init__(self, lexicon: Lexicon, config: CitationConfig | None = None):
        self.lexicon = lexicon
        self.config = config or CitationConfig()

    def detect(
        self, page_text: PageText, references: ReferenceIndex, claimed: ClaimedRanges
    ) -> list[Citation]:
        citations = self._detect_blocks(page_text, references, claimed)
        citations.extend(self._detect_narrative(page_text, references, claimed))
        return citations

    # --------------------------------------------------------
    # Parenthetical blocks
    # --------------------------------------------------------

    def _detect_blocks(
        self, page_text: PageText, references: ReferenceIndex, claimed: ClaimedRanges
    ) -> list[Citation]:
        citations = []
        for match in self.lexicon.parenthetical_block.finditer(page_text.text):
            if claimed.overlaps(match.start(), match.end()):
                continue
            chunks = self.split_block(match.group(1), match.start(1))
            found = []
            for chunk in chunks:
                citation = self._resolve_chunk(chunk, page_text, references, len(chunks) > 1)
                if citation is not None:
                    found.append(citation)
            if found:
                citations.extend(found)
                claimed.claim(match.start(), match.end())
        return citations

    def split_block(self, inner: str, offset: int) -> list[CitationChunk]:
        """Split the inside of ``( ... )`` into author/year chunks."""
        prefix = self.lexicon.prefix_phrases.match(inner)
        if prefix:
            offset += prefix.end()
            inner = inner[prefix.end() :]

        chunks = []
        position = 0
        for piece in inner.split(";"):
            lead = len(piece) - len(piece.lstrip())
            chunk = self.parse_chunk(piece.strip(), offset + position + lead)
            if chunk is not None:
                chunks.append(chunk)
            position += len(piece) + 1
        return chunks

    def parse_chunk(self, text: str, start: int = 0) -> CitationChunk | None:
        prefix = self.lexicon.prefix_phrases.match(text)
        if prefix:
            start += prefix.end()
            text = text[prefix.end() :]

        authors = self.lexicon.chunk_authors.match(text)
        if not authors:
            return None
        years = []
        for match in self.lexicon.chunk_years.finditer(text, authors.end()):
            years.append((match.group(1) + match.group(2), match.group(3) is not None))
        if not years:
            return None
        return CitationChunk(
            author=clean_cited_author(authors.group(1)),
            second_author=authors.group(2),
            years=years,
            start=start,
            end=start + len(text),
        )

    def _resolve_chunk(
        self,
        chunk: CitationChunk,
        page_text: PageText,
        references: ReferenceIndex,
        in_group: bool,
    ) -> Citation | None:
        scores = []
        matched: list[tuple[ReferenceAnchor, RefKey]] = []
        for year, is_range in chunk.years:
            anchor, score = self.best_anchor(chunk.author, chunk.second_author, year, references)
            scores.append(score)
            if anchor is not None:
                key = RefKey(chunk.author, year, chunk.second_author, is_range)
                if all(anchor.id != a.id for a, _ in matched):
                    matched.append((anchor, key))
        if not matched:
            return None

        rects = page_text.rects_for_span(chunk.start, chunk.end)
        if not rects:
            return None

        flags = CitationFlags.NONE
        if len(chunk.years) > 1:
            flags |= CitationFlags.MULTI_YEAR
        if in_group or len(matched) > 1:
            flags |= CitationFlags.MULTI_REF
        if any(key.is_range for _, key in matched):
            flags |= CitationFlags.RANGE_NOTATION
        return self._citation(
            page_text.text[chunk.start : chunk.end],
            page_text.page_number,
            rects,
            sum(scores) / len(scores),
            matched,
            flags,
        )

    # --------------------------------------------------------
    # Narrative
    # --------------------------------------------------------

    def _detect_narrative(
        self, page_text: PageText, references: ReferenceIndex, claimed: ClaimedRanges
    ) -> list[Citation]:
        citations = []
        text = page_text.text
        passes = (
            (self.lexicon.narrative_two_authors, True),
            (self.lexicon.narrative, False),
        )
        for pattern, two_authors in passes:
            for match in pattern.finditer(text):
                if claimed.overlaps(match.start(), match.end()):
                    continue
                if two_authors:
                    author, second, year = match.group(1), match.group(2), match.group(3)
                else:
                    author, second, year = clean_cited_author(match.group(1)), None, match.group(2)

                anchor, score = self.best_anchor(author, second, year, references)
                if anchor is None:
                    continue
                rects = page_text.rects_for_span(match.start(), match.end())
                if not rects:
                    continue
                citations.append(
                    self._citation(
                        match.group(0),
                        page_text.page_number,
                        rects,
                        score,
                        [(anchor, RefKey(author, year, second))],
                        CitationFlags.NONE,
                    )
                )
                claimed.claim(match.start(), match.end())
        return citations

    # --------------------------------------------------------
    # Matching
    # --------------------------------------------------------

    def best_anchor(
        self, author: str, second_author: str | None, year: str, references: ReferenceIndex
    ) -> tuple[ReferenceAnchor | None, float]:
        """Highest-scoring same-year anchor, or (None, 0.0) below the match floor."""
        cited = surname_key(author)
        second = surname_key(second_author) if second_author else None
        best: ReferenceAnchor | None = None
        best_score = 0.0
        for anchor in references.anchors:
            if not years_match(year, anchor.year):
                continue
            first = surname_key(anchor.first_author) if anchor.first_author else None
            score = author_score(cited, first, anchor.authors, second)
            if score > best_score:
                best, best_score = anchor, score
        if best is None or best_score < self.config.author_match_min:
            return None, 0.0
        return best, best_score

    @staticmethod
    def _citation(
        text: str,
        page_number: int,
        rects: list[Rect],
        confidence: float,
        matched: list[tuple[ReferenceAnchor, RefKey]],
        flags: CitationFlags,
    ) -> Citation:
        targets = [_target(anchor, key) for anchor, key in matched]
        return Citation(
            type=CitationType.AUTHOR_YEAR,
            text=text,
            page_number=page_number,
            rects=rects,
            confidence=confidence,
            ref_indices=[a.index for a, _ in matched if a.index is not None],
            anchor_ids=[a.id for a, _ in matched],
            ref_keys=[key for _, key in matched],
            flags=flags,
            target_location=targets[0].location,
            targets=targets,
        )


# ============================================================
# Superscript
# ============================================================


class SuperscriptCitationDetector:
    """Raised digit runs (``word¹²``) validated like numeric citations."""

    def __init__(self, lexicon: Lexicon, config: CitationConfig | None = None):
        self.lexicon = lexicon
        self.config = config or CitationConfig()

    def detect(
        self, lines: Iterable[Line], references: ReferenceIndex, body: BodyFontStats
    ) -> list[Citation]:
        limit = body.line_height * self.config.superscript_height_ratio
        citations = []
        for line in lines:
            # A raised number opening a line is a footnote label, not a citation
            for run in line.runs[1:]:
                if not (run.is_superscript or run.height < limit):
                    continue
                cleaned = _SUPERSCRIPT_STRIP.sub("", run.text)
                if not cleaned or not self.lexicon.superscript.match(cleaned):
                    continue
                numbers = parse_numeric_content(
                    cleaned, self.config.max_range_span, self.config.max_citation_index
                )
                if not numbers.indices:
                    continue
                citation = _numeric_citation(
                    CitationType.SUPERSCRIPT,
                    run.text.strip(),
                    line.page_number,
                    [run.rect],
                    numbers,
                    references,
                    CitationFlags.RANGE_NOTATION if numbers.ranges else CitationFlags.NONE,
                )
                if citation is not None:
                    citations.append(citation)
        return citations
