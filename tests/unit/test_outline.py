"""
Unit tests for outline synthesis, heading levels and document metadata.
"""

import pytest

from docstruct import DocumentContext, FontStyle, OutlineConfig
from docstruct.context import Bookmark, LinkDestination
from docstruct.models import OutlineNode
from docstruct.outline import (
    HeadingCandidate,
    HierarchyValidator,
    LeveledHeading,
    OutlineSource,
    OutlineSynthesizer,
    PageOrderValidator,
    TitleQualityValidator,
    assign_levels,
    build_tree,
    clean_title,
    cluster_sizes,
    detect_document_metadata,
    number_depth,
    parse_prefix,
)
from docstruct.outline.tree import roman_to_int
from tests.conftest import body_runs, index_layouts, make_page, make_run


def heading(text, y, size=12.0):
    return make_run(text, 72, y, size=size, style=FontStyle.BOLD)


def paper_pages():
    page1 = [
        heading("A Study of Layout Analysis", 80, size=18),
        make_run("Abstract", 72, 200),
        *body_runs(214, 5),
        heading("1. Introduction", 300),
        *body_runs(320, 8),
        heading("2. Background", 450),
        *body_runs(470, 8),
    ]
    page2 = [
        heading("3. Method", 100),
        *body_runs(120, 8),
        heading("3.1 Data collection", 250, size=11),
        *body_runs(270, 8),
    ]
    return [make_page(1, page1), make_page(2, page2)]


def synthesize(context, lexicon, config=None, **kwargs):
    indexer = index_layouts(context)
    synthesizer = OutlineSynthesizer(lexicon, config, **kwargs)
    return synthesizer.synthesize(context, list(indexer.iter_layouts()), indexer.body_stats)


class Exploding(OutlineSource):
    name = "exploding"

    def extract(self, doc):
        raise RuntimeError("broken source")


class TestHeadingDetection:
    """Numbered bold headings below the abstract become the outline."""

    def test_numbered_headings(self, lexicon):
        result = synthesize(DocumentContext(paper_pages()), lexicon)
        assert result.source == "heuristic"
        assert [n.title for n in result.nodes] == [
            "1. Introduction",
            "2. Background",
            "3. Method",
        ]
        method = result.nodes[2]
        assert [c.title for c in method.children] == ["3.1 Data collection"]
        assert method.children[0].level == 2
        assert method.page_index == 1
        assert method.top == 100
        assert result.node_count == 4
        assert result.validation_issues == []

    def test_title_above_abstract_is_skipped(self, lexicon):
        result = synthesize(DocumentContext(paper_pages()), lexicon)
        titles = [node.title for root in result.nodes for node in root.walk()]
        assert "A Study of Layout Analysis" not in titles

    def test_ids_are_deterministic(self, lexicon):
        first = synthesize(DocumentContext(paper_pages()), lexicon)
        second = synthesize(DocumentContext(paper_pages()), lexicon)
        assert [n.id for n in first.nodes] == [n.id for n in second.nodes]
        assert len({n.id for n in first.nodes}) == 3

    def test_title_area_skipped_without_abstract(self, lexicon):
        runs = [heading("1. Overview", 150), *body_runs(170, 5), heading("2. Details", 400)]
        result = synthesize(DocumentContext([make_page(1, runs)]), lexicon)
        assert [n.title for n in result.nodes] == ["2. Details"]

    def test_running_head_band_ignored(self, lexicon):
        page2 = [heading("3. Running Head", 40), *body_runs(100, 8), heading("4. Results", 300)]
        pages = [make_page(1, body_runs(300, 10)), make_page(2, page2)]
        result = synthesize(DocumentContext(pages), lexicon)
        assert [n.title for n in result.nodes] == ["4. Results"]

    def test_nothing_found(self, lexicon):
        result = synthesize(DocumentContext([make_page(1, body_runs(300, 10))]), lexicon)
        assert result.nodes == []
        assert result.source is None
        assert "No headings detected" in result.processing_log


class TestBookmarks:
    """The document's own outline wins when it has structure."""

    def test_bookmarks_used(self, lexicon):
        bookmarks = (
            Bookmark("Intro", LinkDestination(0, 72, 300)),
            Bookmark(
                "Method",
                LinkDestination(1, 72, 100),
                (Bookmark("Data", LinkDestination(1, 72, 250)),),
            ),
        )
        result = synthesize(DocumentContext(paper_pages(), bookmarks=bookmarks), lexicon)
        assert result.source == "bookmarks"
        assert [n.title for n in result.nodes] == ["Intro", "Method"]
        data = result.nodes[1].children[0]
        assert (data.title, data.level, data.page_index, data.top) == ("Data", 2, 1, 250)

    def test_single_root_unwrapped(self, lexicon):
        bookmarks = (
            Bookmark(
                "Paper",
                LinkDestination(0, 72, 72),
                (
                    Bookmark("Intro", LinkDestination(0, 72, 300)),
                    Bookmark("Method", LinkDestination(1, 72, 100)),
                ),
            ),
        )
        result = synthesize(DocumentContext(paper_pages(), bookmarks=bookmarks), lexicon)
        assert [n.title for n in result.nodes] == ["Intro", "Method"]
        assert all(n.level == 1 for n in result.nodes)

    def test_single_root_without_structure_falls_back(self, lexicon):
        bookmarks = (Bookmark("Paper", LinkDestination(0, 72, 72)),)
        result = synthesize(DocumentContext(paper_pages(), bookmarks=bookmarks), lexicon)
        assert result.source == "heuristic"
        assert any("Single bookmark root" in entry for entry in result.processing_log)

    def test_bookmarks_disabled(self, lexicon):
        bookmarks = (Bookmark("Intro", None), Bookmark("Method", None))
        context = DocumentContext(paper_pages(), bookmarks=bookmarks)
        result = synthesize(context, lexicon, OutlineConfig(use_bookmarks=False))
        assert result.source == "heuristic"

    def test_missing_destination_points_at_first_page(self, lexicon):
        bookmarks = (Bookmark("Intro", None), Bookmark("  ", None))
        result = synthesize(DocumentContext(paper_pages(), bookmarks=bookmarks), lexicon)
        assert [(n.title, n.page_index) for n in result.nodes] == [
            ("Intro", 0),
            ("Untitled", 0),
        ]

    def test_failing_source_falls_back(self, lexicon):
        result = synthesize(
            DocumentContext(paper_pages()), lexicon, bookmark_source=Exploding()
        )
        assert result.source == "heuristic"
        assert any("exploding failed" in entry for entry in result.processing_log)


class TestLevels:
    def test_cluster_sizes(self):
        assert cluster_sizes([18, 12, 11.5, 10]) == {18: 1, 12: 2, 11.5: 2, 10: 3}
        assert cluster_sizes([]) == {}

    def test_assign_levels(self):
        def candidate(size, prefix=None):
            return HeadingCandidate(
                title="t",
                text="t",
                page_number=1,
                x=72,
                y=100,
                font_size=size,
                line_height=size,
                is_numbered=prefix is not None,
                number_prefix=prefix,
                number_depth=number_depth(prefix),
            )

        candidates = [candidate(14), candidate(12, "1"), candidate(12, "1.1"), candidate(10)]
        assert assign_levels(candidates) == [1, 2, 3, 4]
        assert assign_levels([]) == []


class TestTree:
    def test_orphan_subsection_dropped(self):
        headings = [
            LeveledHeading("1 Intro", 0, 72, 100, 1, "1"),
            LeveledHeading("3.2 Orphan", 0, 72, 200, 2, "3.2"),
        ]
        roots = build_tree(headings)
        assert [n.title for n in roots] == ["1 Intro"]
        assert roots[0].children == []

    def test_top_level_jump_rejected(self):
        headings = [
            LeveledHeading("1 One", 0, 72, 100, 1, "1"),
            LeveledHeading("2 Two", 0, 72, 200, 1, "2"),
            LeveledHeading("40 Noise", 1, 72, 100, 1, "40"),
            LeveledHeading("3 Three", 1, 72, 200, 1, "3"),
        ]
        assert [n.title for n in build_tree(headings)] == ["1 One", "2 Two", "3 Three"]

    def test_year_like_prefix_dropped(self):
        headings = [LeveledHeading("1999 Results", 0, 72, 100, 1, "1999")]
        assert build_tree(headings) == []

    def test_incompatible_numbering_closes_parent(self):
        headings = [
            LeveledHeading("1 A", 0, 72, 100, 1, "1"),
            LeveledHeading("1.1 B", 0, 72, 200, 2, "1.1"),
            LeveledHeading("2 C", 0, 72, 300, 1, "2"),
            LeveledHeading("2.1 D", 0, 72, 400, 2, "2.1"),
        ]
        roots = build_tree(headings)
        assert [[c.title for c in r.children] for r in roots] == [["1.1 B"], ["2.1 D"]]

    @pytest.mark.parametrize(
        "prefix, expected",
        [("2.1.", [2, 1]), ("IV.", [4]), ("B.", [2]), ("C.", [3]), ("", []), ("x1", [0])],
    )
    def test_parse_prefix(self, prefix, expected):
        assert parse_prefix(prefix) == expected

    @pytest.mark.parametrize(
        "prefix, expected", [("1", 1), ("1.", 1), ("1.2", 2), ("1.2.3.", 3), (None, 0)]
    )
    def test_number_depth(self, prefix, expected):
        assert number_depth(prefix) == expected

    def test_roman_to_int(self):
        assert roman_to_int("XIV") == 14
        assert roman_to_int("iv") == 4
        assert roman_to_int("IIII") is None
        assert roman_to_int("") is None


def node(title, level=1, page_index=0, children=()):
    return OutlineNode(
        id=title,
        title=title,
        page_index=page_index,
        left=0.0,
        top=0.0,
        level=level,
        children=list(children),
    )


class TestValidators:
    def test_level_skip(self):
        issues = HierarchyValidator().check([node("Root", children=[node("Deep", level=3)])])
        assert [i.type for i in issues] == ["level_skip"]
        assert issues[0].titles == ["Deep"]

    def test_title_quality(self):
        nodes = [node("A"), node("12.3"), node("x" * 250), node("Introduction")]
        issues = TitleQualityValidator().check(nodes)
        assert [i.type for i in issues] == ["short_title", "numeric_title", "long_title"]

    def test_page_order(self):
        issues = PageOrderValidator().check([node("Later", page_index=3), node("Earlier")])
        assert [i.type for i in issues] == ["page_order"]

    def test_configured_validators_run(self, lexicon):
        bookmarks = (Bookmark("A", LinkDestination(2, 72, 100)), Bookmark("B", None))
        config = OutlineConfig(validators=("page_order", "title_quality"))
        context = DocumentContext(paper_pages(), bookmarks=bookmarks)
        result = synthesize(context, lexicon, config)
        assert {i.type for i in result.validation_issues} == {"page_order", "short_title"}


class TestMetadata:
    """Title and abstract detection from the first pages."""

    def _metadata(self, pages, lexicon, **context_args):
        context = DocumentContext(pages, **context_args)
        indexer = index_layouts(context)
        return detect_document_metadata(list(indexer.iter_layouts()), lexicon, context)

    def test_title_joined_across_lines(self, lexicon):
        runs = [
            make_run("A Study of Layout", 150, 80, size=18, style=FontStyle.BOLD),
            make_run("Analysis Methods", 150, 102, size=18, style=FontStyle.BOLD),
            make_run("Jane Doe", 250, 130, size=11),
            make_run("Abstract", 72, 200, style=FontStyle.BOLD),
            *body_runs(214, 10),
        ]
        metadata = self._metadata([make_page(1, runs)], lexicon)
        assert metadata.title == "A Study of Layout Analysis Methods"
        assert metadata.abstract_location.page_index == 0
        assert metadata.abstract_location.y == 200
        assert metadata.page_count == 1

    def test_engine_title_fallback(self, lexicon):
        pages = [make_page(1, body_runs(100, 10))]
        metadata = self._metadata(pages, lexicon, metadata={"title": "Report on stuff"})
        assert metadata.title == "Report on stuff"
        assert metadata.abstract_location is None
        assert metadata.raw == {"title": "Report on stuff"}

    def test_empty_document(self, lexicon):
        metadata = detect_document_metadata([], lexicon)
        assert metadata.title is None
        assert metadata.page_count == 0

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Title: Deep Nets*", "Deep Nets"),
            ("1234", None),
            ("12345 6789", None),
            (None, None),
        ],
    )
    def test_clean_title(self, raw, expected):
        assert clean_title(raw) == expected
