"""
Unit tests for the confidence scoring functions.
"""

import pytest

from docstruct import scoring


class TestClamping:
    def test_boost_caps_at_one(self):
        assert scoring.boost(0.9, 0.2) == 1.0

    def test_damp(self):
        assert scoring.damp(0.8, 0.5) == pytest.approx(0.4)


class TestSectionConfidence:
    def test_typical_numbered_bibliography(self):
        assert scoring.section_confidence(40, 2, True, 0.8) == 1.0
        assert scoring.section_confidence(40, 2, False, 0.1) == pytest.approx(0.8)

    def test_too_short(self):
        assert scoring.section_confidence(2, 1, False, 0.0) == pytest.approx(0.4)


class TestAnchorConfidence:
    def test_all_bonuses(self):
        score = scoring.anchor_confidence(
            scoring.ANCHOR_BASE_NUMBERED, 120, has_year=True, has_ending=True
        )
        assert score == pytest.approx(0.9)

    def test_too_short_text(self):
        score = scoring.anchor_confidence(
            scoring.ANCHOR_BASE_GAP_ONLY, 12, has_year=False, has_ending=False
        )
        assert score == pytest.approx(0.4)


class TestYears:
    @pytest.mark.parametrize(
        "cited, reference, expected",
        [
            ("2020", "2020", True),
            ("2020a", "2020", True),
            ("2020", "2020b", True),
            ("2020a", "2020a", True),
            ("2020a", "2020b", False),
            ("2019", "2020", False),
            ("2020", None, False),
        ],
    )
    def test_years_match(self, cited, reference, expected):
        assert scoring.years_match(cited, reference) is expected

    def test_split_year(self):
        assert scoring.split_year("2019B") == ("2019", "b")
        assert scoring.split_year("2019") == ("2019", "")


class TestAuthorScore:
    def test_exact_first_author(self):
        assert scoring.author_score("smith", "smith", ["smith", "jones"]) == 1.0

    def test_prefix_match(self):
        assert scoring.author_score("johnson", "johnston", ["johnston"]) == scoring.AUTHOR_PREFIX

    def test_list_member(self):
        assert scoring.author_score("jones", "smith", ["smith", "jones"]) == pytest.approx(0.6)

    def test_second_author_boost(self):
        score = scoring.author_score("jones", "smith", ["smith", "jones", "lee"], "lee")
        assert score == pytest.approx(0.8)

    def test_no_match(self):
        assert scoring.author_score("smyth", "smith", ["smith"]) == 0.0
        assert scoring.author_score("", "smith", ["smith"]) == 0.0


class TestCrossRefConfidence:
    def test_levels(self):
        assert scoring.crossref_confidence(False, False) == pytest.approx(0.6)
        assert scoring.crossref_confidence(True, False) == pytest.approx(0.8)
        assert scoring.crossref_confidence(True, True) == pytest.approx(1.0)


def test_numeric_confidence():
    assert scoring.numeric_confidence(2, 2) == 1.0
    assert scoring.numeric_confidence(1, 2) == 0.5
    assert scoring.numeric_confidence(0, 0) == 0.0
