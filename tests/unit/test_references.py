"""
Unit tests for bibliography location, segmentation and author/year parsing.
"""

import pytest

from docstruct import DocumentContext, FontStyle, ReferenceConfig
from docstruct.references import (
    BoundaryReason,
    ReferenceIndex,
    ReferenceSectionLocator,
    StructuralBoundaryDetector,
    baseline_line_pitch,
    build_reference_index,
    clean_cited_author,
    parse_authors,
    parse_first_author,
    strip_numbering,
    surname_key,
)
from tests.conftest import body_runs, index_layouts, make_anchor, make_line, make_page, make_run


def reference_index(context, lexicon, config=None) -> ReferenceIndex:
    indexer = index_layouts(context)
    return build_reference_index(
        list(indexer.iter_layouts()),
        indexer.body_stats,
        lexicon,
        config,
        baseline_line_pitch(indexer.iter_lines()),
    )


class TestParsing:
    """Author and year extraction from entry text."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Smith, J. (2020). Title.", "Smith"),
            ("[3] J. Smith and K. Lee. Title, 2019.", "Smith"),
            ("J.-P. Sartre. Being and Nothingness. 1943.", "Sartre"),
            ("Smith and Jones 2020. Title.", "Smith"),
            ("Müller, K. Title in German. 2010.", "Müller"),
            ("the proceedings of something", None),
        ],
    )
    def test_parse_first_author(self, lexicon, text, expected):
        assert parse_first_author(text, lexicon) == expected

    def test_parse_authors_before_year(self, lexicon):
        authors = parse_authors("Jones, A., Lee, B., & Müller, C. (2019). Title by Ames.", lexicon)
        assert authors == ("jones", "lee", "muller")

    def test_parse_authors_initials_first(self, lexicon):
        assert parse_authors("[1] A. Smith and B. Jones. Title. 2019.", lexicon) == (
            "smith",
            "jones",
        )

    def test_strip_numbering(self, lexicon):
        assert strip_numbering("[12] Smith, J.", lexicon) == "Smith, J."
        assert strip_numbering("(4) Smith", lexicon) == "Smith"
        assert strip_numbering("Smith 2020", lexicon) == "Smith 2020"

    def test_surname_key(self):
        assert surname_key("Müller") == "muller"
        assert surname_key(" García ") == "garcia"

    def test_clean_cited_author(self):
        assert clean_cited_author("Smith et al.") == "Smith"
        assert clean_cited_author("Smith et al.,") == "Smith"


class TestLocator:
    """Finding the bibliography section."""

    def test_numbered_section(self, numbered_context, lexicon):
        index = reference_index(numbered_context, lexicon)
        section = index.section
        assert section is not None
        assert section.heading == "References"
        assert section.start_page == 2
        assert section.end_page == 2
        assert len(section.lines) == 3
        assert 0.0 < section.confidence <= 1.0

    def test_plain_heading_is_ignored(self, lexicon):
        page = make_page(1, [make_run("References", 72, 80), *body_runs(100, 5)])
        index = reference_index(DocumentContext([page]), lexicon)
        assert index.section is None
        assert index.anchors == []
        assert "No bibliography section found" in index.processing_log

    def test_leading_pages_skipped(self, lexicon):
        pages = [
            make_page(1, [make_run("References", 72, 80, style=FontStyle.BOLD)]),
            make_page(2, body_runs(100, 5)),
            make_page(3, body_runs(100, 5)),
        ]
        assert reference_index(DocumentContext(pages), lexicon).section is None
        config = ReferenceConfig(skip_leading_pages=0)
        assert reference_index(DocumentContext(pages), lexicon, config).section is not None

    def test_last_heading_wins(self, lexicon):
        pages = [
            make_page(1, [make_run("Bibliography", 72, 80, style=FontStyle.BOLD)]),
            make_page(2, [make_run("[1] A. Early entry that is not cited at all, 2001.", 72, 100)]),
            make_page(3, [make_run("References", 72, 80, style=FontStyle.BOLD)]),
        ]
        config = ReferenceConfig(skip_leading_pages=0)
        assert reference_index(DocumentContext(pages), lexicon, config).section.start_page == 3

    def test_section_ends_at_appendix(self, lexicon):
        runs = [
            make_run("References", 72, 80, size=12, style=FontStyle.BOLD),
            make_run("[1] A. Smith. A long enough reference entry, 2019.", 72, 100),
            make_run("Appendix A", 72, 130, size=12, style=FontStyle.BOLD),
            make_run("Supplementary text that is not a reference.", 72, 150),
        ]
        body = make_page(1, body_runs(100, 10))
        locator = ReferenceSectionLocator(lexicon, ReferenceConfig(skip_leading_pages=0))
        indexer = index_layouts(DocumentContext([body, make_page(2, runs)]))
        section = locator.locate(list(indexer.iter_layouts()), indexer.body_stats)
        assert [line.text for line in section.lines] == [
            "[1] A. Smith. A long enough reference entry, 2019."
        ]


class TestNumberedAnchors:
    """Numbered bibliographies split at each marker."""

    def test_anchors(self, numbered_context, lexicon):
        index = reference_index(numbered_context, lexicon)
        assert index.format == "numbered-bracket"
        assert index.is_numbered
        assert [a.id for a in index.anchors] == ["ref-1", "ref-2", "ref-3"]
        assert [a.index for a in index.anchors] == [1, 2, 3]
        assert [a.first_author for a in index.anchors] == ["Smith", "Jones", "Brown"]
        assert [a.year for a in index.anchors] == ["2019", "2020", "2018"]
        assert index.anchors[1].authors == ("jones", "lee")

    def test_lookups(self, numbered_context, lexicon):
        index = reference_index(numbered_context, lexicon)
        assert index.find_reference_by_index(2).id == "ref-2"
        assert index.find_reference_by_index(9) is None
        assert index.find_by_id("ref-3").index == 3
        assert len(index.anchors_on_page(2)) == 3
        assert index.anchors_on_page(1) == []

    def test_bounding_anchors(self, numbered_context, lexicon):
        index = reference_index(numbered_context, lexicon)
        current, following = index.find_bounding_anchors(2, 100, 118)
        assert current.id == "ref-2"
        assert following.id == "ref-3"
        last, after = index.find_bounding_anchors(2, 100, 400)
        assert last.id == "ref-3"
        assert after is None
        assert index.find_bounding_anchors(1, 100, 100) == (None, None)

    def test_anchor_location(self, numbered_context, lexicon):
        anchor = reference_index(numbered_context, lexicon).anchors[0]
        assert anchor.location.page_index == 1
        assert anchor.location.y == 100

    def test_lines_before_first_marker_dropped(self, lexicon):
        runs = [
            make_run("Bibliography", 72, 80, size=12, style=FontStyle.BOLD),
            make_run("Entries are listed in order of citation below.", 72, 100),
            make_run("[1] A. Smith. First reference entry text, 2019.", 72, 114),
            make_run("[2] B. Jones. Second reference entry text, 2020.", 72, 128),
        ]
        context = DocumentContext([make_page(1, body_runs(100, 10)), make_page(2, runs)])
        index = reference_index(context, lexicon)
        assert [a.index for a in index.anchors] == [1, 2]
        assert index.anchors[0].text.startswith("[1]")


class TestAuthorYearAnchors:
    """Unnumbered bibliographies go through structural segmentation."""

    def test_anchors(self, author_year_context, lexicon):
        index = reference_index(author_year_context, lexicon)
        assert index.format == "author-year"
        assert not index.is_numbered
        assert len(index.anchors) == 2
        smith, jones = index.anchors
        assert smith.index is None
        assert smith.first_author == "Smith"
        assert smith.year == "2020"
        assert jones.authors == ("jones", "lee")
        assert smith.confidence >= 0.8

    def test_match_citation_to_reference(self, author_year_context, lexicon):
        index = reference_index(author_year_context, lexicon)
        assert index.match_citation_to_reference("Smith", "2020").id == "ref-1"
        assert index.match_citation_to_reference("Lee", "2019").id == "ref-2"
        assert index.match_citation_to_reference("Smith", "1999") is None
        assert index.match_citation_to_reference("Smith", "") is None

    def test_dominant_format(self, author_year_context, numbered_context, lexicon):
        assert reference_index(author_year_context, lexicon).dominant_format() == "author-year"
        assert reference_index(numbered_context, lexicon).dominant_format() == "numbered"


class TestMatching:
    """Year-first matching among several same-year entries."""

    @pytest.fixture
    def index(self):
        return ReferenceIndex(
            anchors=[
                make_anchor(1, first_author="Adams", authors=("adams", "jones"), year="2020a"),
                make_anchor(2, first_author="Jones", authors=("jones",), year="2020b"),
                make_anchor(3, first_author="Brown", authors=("brown",), year="2018"),
            ],
            format="author-year",
        )

    def test_first_author_beats_mention(self, index):
        assert index.match_citation_to_reference("Jones et al.", "2020").id == "ref-2"

    def test_suffix_disambiguates(self, index):
        assert index.match_citation_to_reference("Jones", "2020a").id == "ref-1"

    def test_unknown_author_falls_back_to_first_same_year(self, index):
        assert index.match_citation_to_reference("Zed", "2020").id == "ref-1"

    def test_unique_year_wins(self, index):
        assert index.match_citation_to_reference("Anyone", "2018").id == "ref-3"


class TestStructuralBoundaries:
    """Entry boundaries from geometry."""

    def test_hanging_indent(self, lexicon):
        lines = []
        for i in range(3):
            y = 100 + i * 24
            lines.append(make_line(f"Author{i}, A. A first line of an entry text", 72, y))
            lines.append(make_line("continues on an indented line, 2001.", 90, y + 12))
        drafts = StructuralBoundaryDetector(lexicon).segment(lines, baseline_pitch=12.0)
        assert len(drafts) == 3
        assert [len(d.lines) for d in drafts] == [2, 2, 2]
        assert drafts[1].reason == BoundaryReason.INDENT

    def test_vertical_gap(self, lexicon):
        lines = [
            make_line("first entry line one of the reference text", 72, 100),
            make_line("first entry line two of the reference text", 72, 112),
            make_line("second entry after a gap in the reference", 72, 140),
        ]
        drafts = StructuralBoundaryDetector(lexicon).segment(lines, baseline_pitch=12.0)
        assert len(drafts) == 2
        assert drafts[1].reason == BoundaryReason.GAP

    def test_lexical_start_after_short_line(self, lexicon):
        lines = [
            make_line("Smith, J. A long first entry line of reference text", 72, 100),
            make_line("ending short.", 72, 112),
            make_line("Jones, K. Another entry with plenty of words in it", 72, 124),
            make_line("and a continuation that starts lower case here", 72, 136),
        ]
        drafts = StructuralBoundaryDetector(lexicon).segment(lines, baseline_pitch=12.0)
        assert [len(d.lines) for d in drafts] == [2, 2]
        assert drafts[1].reason == BoundaryReason.LEXICAL

    def test_continuation_word_is_not_a_start(self, lexicon):
        detector = StructuralBoundaryDetector(lexicon)
        assert detector.looks_like_entry_start("Smith, J. Title")
        assert detector.looks_like_entry_start("[4] Something")
        assert not detector.looks_like_entry_start("In Proceedings of the ACL")
        assert not detector.looks_like_entry_start("")

    def test_baseline_line_pitch(self):
        lines = [make_line("a", y=100), make_line("b", y=112), make_line("c", y=124)]
        assert baseline_line_pitch(lines) == 12
        assert baseline_line_pitch([]) == 0.0
