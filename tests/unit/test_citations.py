"""
Unit tests for inline citation detection, matching and link fusion.
"""

import dataclasses

import pytest

from docstruct import DocumentContext
from docstruct.citations import (
    AuthorYearCitationDetector,
    CitationResolver,
    ClaimedRanges,
    NumericCitationDetector,
    SuperscriptCitationDetector,
    compare_positions,
    index_links,
    parse_numeric_content,
)
from docstruct.context import LinkDestination, NativeLink
from docstruct.models import (
    BodyFontStats,
    Citation,
    CitationFlags,
    CitationType,
    Line,
    Rect,
    ReferenceSection,
)
from docstruct.references import ReferenceIndex, baseline_line_pitch, build_reference_index
from docstruct.text import PageText
from tests.conftest import body_runs, index_layouts, make_anchor, make_line, make_page, make_run


def resolve(context, lexicon, references=None, links=None):
    indexer = index_layouts(context)
    layouts = list(indexer.iter_layouts())
    if references is None:
        references = build_reference_index(
            layouts, indexer.body_stats, lexicon, None, baseline_line_pitch(indexer.iter_lines())
        )
    return CitationResolver(lexicon).resolve(layouts, references, indexer.body_stats, links)


def numbered_index(count: int = 3) -> ReferenceIndex:
    anchors = [make_anchor(i, index=i) for i in range(1, count + 1)]
    return ReferenceIndex(anchors=anchors, format="numbered-bracket")


class TestNumericParsing:
    def test_mixed_content(self):
        parsed = parse_numeric_content("1-3, 5; 7")
        assert parsed.indices == [1, 2, 3, 5, 7]
        assert parsed.ranges == [(1, 3)]

    def test_reversed_range_keeps_both_ends(self):
        parsed = parse_numeric_content("5-2")
        assert parsed.indices == [5, 2]
        assert parsed.ranges == []

    def test_range_is_capped(self):
        parsed = parse_numeric_content("1-100", max_span=30)
        assert parsed.ranges == [(1, 31)]
        assert len(parsed.indices) == 31

    def test_out_of_bounds_and_junk_dropped(self):
        assert parse_numeric_content("0, 1000, 4").indices == [4]
        assert parse_numeric_content("a, 3").indices == [3]


class TestNumericCitations:
    """Bracketed numbers validated against numbered anchors."""

    def test_numbered_document(self, numbered_context, lexicon):
        by_page = resolve(numbered_context, lexicon)
        citations = by_page[1]
        assert [c.text for c in citations] == ["[1]", "[1, 2]", "[1-3]"]
        single, multi, ranged = citations

        assert single.type == CitationType.NUMERIC
        assert single.confidence == 1.0
        assert single.anchor_ids == ["ref-1"]
        assert single.target_location.page_index == 1

        assert multi.ref_indices == [1, 2]
        assert multi.has_flag(CitationFlags.MULTI_REF)

        assert ranged.ref_indices == [1, 2, 3]
        assert ranged.ref_ranges == [(1, 3)]
        assert ranged.has_flag(CitationFlags.RANGE_NOTATION)
        assert 2 not in by_page

    def test_unknown_index_is_dropped(self, numbered_context, lexicon):
        texts = [c.text for c in resolve(numbered_context, lexicon)[1]]
        assert "[7]" not in texts

    def test_inter_bracket_range_claims_its_span(self, lexicon):
        page_text = PageText.from_lines(1, [make_line("as shown in [1]-[3] before")])
        citations = NumericCitationDetector(lexicon).detect(
            page_text, numbered_index(), ClaimedRanges()
        )
        assert len(citations) == 1
        assert citations[0].text == "[1]-[3]"
        assert citations[0].ref_indices == [1, 2, 3]
        assert citations[0].has_flag(CitationFlags.RANGE_NOTATION)

    def test_partially_valid_group(self, lexicon):
        page_text = PageText.from_lines(1, [make_line("see [2, 9] for details")])
        citations = NumericCitationDetector(lexicon).detect(
            page_text, numbered_index(), ClaimedRanges()
        )
        assert citations[0].ref_indices == [2]
        assert citations[0].confidence == pytest.approx(0.5)

    def test_no_anchors_means_no_citations(self, numbered_context, lexicon):
        assert resolve(numbered_context, lexicon, references=ReferenceIndex()) == {}


class TestAuthorYearCitations:
    """Parenthetical and narrative author-year citations."""

    def test_author_year_document(self, author_year_context, lexicon):
        citations = resolve(author_year_context, lexicon)[1]
        assert [c.text for c in citations] == ["Smith, 2020", "Jones and Lee (2019)"]
        assert all(c.type == CitationType.AUTHOR_YEAR for c in citations)
        assert all(c.confidence == 1.0 for c in citations)
        assert citations[0].anchor_ids == ["ref-1"]
        assert citations[1].anchor_ids == ["ref-2"]
        assert citations[1].ref_keys[0].second_author == "Lee"

    def test_misspelled_author_is_unmatched(self, author_year_context, lexicon):
        texts = [c.text for c in resolve(author_year_context, lexicon)[1]]
        assert not any("Smyth" in text for text in texts)

    def test_split_block(self, lexicon):
        detector = AuthorYearCitationDetector(lexicon)
        inner = "see Smith, 2020; Lee and Kim, 2019a, 2021"
        first, second = detector.split_block(inner, 0)
        assert (first.author, first.years, first.start) == ("Smith", [("2020", False)], 4)
        assert second.author == "Lee"
        assert second.second_author == "Kim"
        assert second.years == [("2019a", False), ("2021", False)]
        assert inner[second.start :].startswith("Lee")

    def test_year_range_chunk(self, lexicon):
        chunk = AuthorYearCitationDetector(lexicon).parse_chunk("Smith, 2001-2003")
        assert chunk.years == [("2001", True)]

    def test_chunk_without_year(self, lexicon):
        assert AuthorYearCitationDetector(lexicon).parse_chunk("Smith and Jones") is None


class TestSuperscripts:
    """Raised digits after a word are citations; at a line start they are labels."""

    def test_raised_digit_after_text(self, lexicon):
        line = Line.from_runs(
            [
                make_run("as shown in prior work", 72, 300),
                make_run("2", 182, 298, size=5, superscript=True),
            ],
            1,
        )
        citations = SuperscriptCitationDetector(lexicon).detect(
            [line], numbered_index(), BodyFontStats()
        )
        assert len(citations) == 1
        assert citations[0].type == CitationType.SUPERSCRIPT
        assert citations[0].ref_indices == [2]
        assert citations[0].rects[0].x == 182

    def test_footnote_label_ignored(self, lexicon):
        line = Line.from_runs(
            [make_run("1", 72, 400, size=5, superscript=True), make_run("Footnote", 80, 402)], 1
        )
        detector = SuperscriptCitationDetector(lexicon)
        assert detector.detect([line], numbered_index(), BodyFontStats()) == []

    def test_unknown_number_ignored(self, lexicon):
        line = Line.from_runs(
            [make_run("text", 72, 300), make_run("99", 95, 298, size=5, superscript=True)], 1
        )
        detector = SuperscriptCitationDetector(lexicon)
        assert detector.detect([line], numbered_index(), BodyFontStats()) == []


class TestDamping:
    def test_non_dominant_style_is_damped(self, lexicon):
        anchor = make_anchor(1, index=1, first_author="Smith", authors=("smith",), year="2020")
        references = ReferenceIndex(
            anchors=[anchor],
            format="numbered-bracket",
        )
        runs = [
            *body_runs(100, 4),
            make_run("As argued in [1] and also (Smith, 2020) here.", 72, 160),
        ]
        citations = resolve(DocumentContext([make_page(1, runs)]), lexicon, references)[1]
        by_type = {c.type: c for c in citations}
        assert by_type[CitationType.NUMERIC].confidence == 1.0
        assert by_type[CitationType.AUTHOR_YEAR].confidence == pytest.approx(0.6)


class TestNativeLinks:
    """Bibliography links confirm detected citations or stand in for missing ones."""

    @pytest.fixture
    def linked_context(self, numbered_context):
        links = (
            # over "[1]" in "Earlier systems [1] ..."
            NativeLink(Rect(150, 199, 18, 12), LinkDestination(1, 72, 100)),
            # nothing detected here
            NativeLink(Rect(400, 600, 10, 10), LinkDestination(1, 72, 128)),
            # a link within the body
            NativeLink(Rect(72, 300, 20, 10), LinkDestination(0, 72, 100)),
            # unresolved destination
            NativeLink(Rect(72, 320, 20, 10), LinkDestination(1, 0, 0)),
            NativeLink(Rect(72, 340, 20, 10), uri="https://example.org"),
        )
        page1 = dataclasses.replace(numbered_context.page(1), links=links)
        return DocumentContext([page1, numbered_context.page(2)], source="linked.pdf")

    def _references(self, context, lexicon):
        indexer = index_layouts(context)
        return build_reference_index(
            list(indexer.iter_layouts()),
            indexer.body_stats,
            lexicon,
            None,
            baseline_line_pitch(indexer.iter_lines()),
        )

    def test_index_links_splits_by_target(self, linked_context, lexicon):
        bibliography, other = index_links(linked_context, self._references(linked_context, lexicon))
        assert len(bibliography[1]) == 2
        assert len(other[1]) == 1
        assert other[1][0].destination.page_index == 0

    def test_links_outside_the_bibliography_go_to_other(self):
        # Bibliography: page 2 below y=92 through page 3 down to y=400
        section = ReferenceSection("References", 2, 1, 92.0, 3, 10, 400.0)
        references = ReferenceIndex(section=section, format="numbered-bracket")
        links = (
            NativeLink(Rect(100, 200, 20, 10), LinkDestination(2, 72, 300)),  # entry on page 3
            NativeLink(Rect(100, 220, 20, 10), LinkDestination(3, 72, 100)),  # appendix page
            NativeLink(Rect(100, 240, 20, 10), LinkDestination(2, 72, 500)),  # below the end
            NativeLink(Rect(100, 260, 20, 10), LinkDestination(1, 72, 60)),  # above the heading
        )
        pages = [make_page(1, body_runs(100, 3), links=links)]
        pages += [make_page(n, []) for n in (2, 3, 4)]

        bibliography, other = index_links(DocumentContext(pages), references)
        assert [(i.destination.page_index, i.destination.y) for i in bibliography[1]] == [(2, 300)]
        assert [(i.destination.page_index, i.destination.y) for i in other[1]] == [
            (3, 100),
            (2, 500),
            (1, 60),
        ]

    def test_links_inside_the_bibliography_are_dropped(self):
        section = ReferenceSection("References", 2, 1, 92.0, 2, 10, 400.0)
        references = ReferenceIndex(section=section, format="numbered-bracket")
        links = (NativeLink(Rect(100, 200, 20, 10), LinkDestination(1, 72, 300)),)
        pages = [make_page(1, []), make_page(2, [], links=links)]
        assert index_links(DocumentContext(pages), references) == ({}, {})

    def test_fusion(self, linked_context, lexicon):
        references = self._references(linked_context, lexicon)
        bibliography, _ = index_links(linked_context, references)
        citations = resolve(linked_context, lexicon, references, bibliography)[1]
        assert [c.text for c in citations] == ["[1]", "[1, 2]", "[1-3]", "[3]"]

        confirmed = citations[0]
        assert confirmed.confidence == 1.0
        assert confirmed.has_flag(CitationFlags.NATIVE_CONFIRMED)
        assert confirmed.has_flag(CitationFlags.DEST_CONFIRMED)
        assert confirmed.target_location.y == 100

        synthesized = citations[-1]
        assert synthesized.anchor_ids == ["ref-3"]
        assert synthesized.confidence == pytest.approx(0.85)
        assert synthesized.rects == [Rect(400, 600, 10, 10)]

        assert not citations[1].has_flag(CitationFlags.NATIVE_CONFIRMED)


def test_compare_positions():
    def at(x, y):
        return Citation(CitationType.NUMERIC, "[1]", 1, [Rect(x, y, 10, 10)], 1.0)

    assert compare_positions(at(300, 100), at(72, 120)) == -1
    assert compare_positions(at(300, 100), at(72, 103)) == 1
    assert compare_positions(at(72, 100), at(72, 101)) == 0
