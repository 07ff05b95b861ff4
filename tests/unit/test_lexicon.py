"""
Unit tests for the pattern lexicon.
"""

import pytest
import yaml

from docstruct import ConfigurationError, load_lexicon
from docstruct.lexicon import DEFAULT_LEXICON_PATH


class TestHeadings:
    """Bibliography and section heading recognition."""

    @pytest.mark.parametrize(
        "text",
        ["References", "REFERENCES", "7. References", "Bibliography", "Works Cited", "参考文献"],
    )
    def test_reference_headings(self, lexicon, text):
        assert lexicon.is_reference_heading(text)

    @pytest.mark.parametrize("text", ["Referencing styles", "Related Work", "Introduction"])
    def test_non_reference_headings(self, lexicon, text):
        assert not lexicon.is_reference_heading(text)

    def test_post_reference_heading(self, lexicon):
        assert lexicon.is_post_reference_heading("Appendix A")
        assert lexicon.is_post_reference_heading("Acknowledgments")
        assert not lexicon.is_post_reference_heading("Smith, J. (2020)")

    def test_common_section_names(self, lexicon):
        assert lexicon.is_common_section_name("2. Related Work")
        assert lexicon.is_common_section_name("Conclusions.")
        assert lexicon.is_common_section_name("结论")
        assert not lexicon.is_common_section_name("Our surprising finding")

    def test_strip_section_number(self, lexicon):
        assert lexicon.strip_section_number("3.2 Results") == "Results"
        assert lexicon.strip_section_number("IV. Discussion") == "Discussion"
        assert lexicon.strip_section_number("(a) Setup") == "Setup"


class TestReferenceHelpers:
    """Year, endings and numbering formats."""

    def test_find_year_with_suffix(self, lexicon):
        assert lexicon.find_year("Smith, J. (2019b). Title.") == "2019b"
        assert lexicon.find_year("No year here") is None

    def test_reference_endings(self, lexicon):
        assert lexicon.has_reference_ending("Journal 12(3):1-10.")
        assert lexicon.has_reference_ending("doi:10.1000/xyz123")
        assert not lexicon.has_reference_ending("and the rest of the")

    def test_numbering_formats(self, lexicon):
        formats = {fmt.name: fmt for fmt in lexicon.reference_formats}
        assert formats["numbered-bracket"].extract_index("[12] Smith") == 12
        assert formats["numbered-paren"].extract_index("(3) Jones") == 3
        assert formats["numbered-dot"].extract_index("4. Lee, K.") == 4
        assert formats["numbered-bracket"].extract_index("Smith [12]") is None

    def test_continuation_words(self, lexicon):
        assert lexicon.is_continuation_word("In")
        assert lexicon.is_continuation_word("pp.")
        assert not lexicon.is_continuation_word("Smith")


class TestCrossReferencePatterns:
    """Cross-reference extractors normalize label and id."""

    def _extract(self, lexicon, ref_type, text):
        pattern = next(p for p in lexicon.cross_references if p.type == ref_type)
        match = pattern.pattern.search(text)
        assert match is not None
        return pattern.extract(match)

    def test_theorem_label_from_text(self, lexicon):
        assert self._extract(lexicon, "theorem", "by Lemma 2.1 we") == ("lemma", "2.1")

    def test_figure_range_normalized(self, lexicon):
        assert self._extract(lexicon, "figure", "see Figs. 3 – 5") == ("figure", "3-5")

    def test_appendix_upper_cased(self, lexicon):
        assert self._extract(lexicon, "appendix", "in appendix b") == ("appendix", "B")


class TestLoading:
    """Lexicon files are loaded, cached and validated."""

    def test_bundled_lexicon_is_cached(self):
        assert load_lexicon() is load_lexicon()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_lexicon(tmp_path / "missing.yaml")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_lexicon(path)

    def test_missing_key(self, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text("version: 1\nsection_number_strip: '^x'\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="missing required key"):
            load_lexicon(path)

    def test_bad_regex(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("reference_formats:\n  broken: '(unclosed'\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="does not compile"):
            load_lexicon(path)

    def test_bundled_word_lists_are_strings(self):
        data = yaml.safe_load(DEFAULT_LEXICON_PATH.read_text(encoding="utf-8"))
        for key in ("continuation_words", "common_section_names"):
            assert all(isinstance(word, str) for word in data[key]), key

    def test_on_is_a_continuation_word(self, lexicon):
        assert lexicon.is_continuation_word("On")

    def test_unquoted_boolean_word(self, tmp_path):
        text = DEFAULT_LEXICON_PATH.read_text(encoding="utf-8").replace('- "on"', "- on")
        path = tmp_path / "unquoted.yaml"
        path.write_text(text, encoding="utf-8")
        with pytest.raises(ConfigurationError, match="must be strings"):
            load_lexicon(path)
