"""
Unit tests for configuration validation.
"""

import pytest

from docstruct import (
    AnalysisConfig,
    CitationConfig,
    ConfigurationError,
    IndexingConfig,
    LayoutConfig,
    OutlineConfig,
    ReferenceConfig,
)


class TestDefaults:
    """Default configs are valid and carry the documented thresholds."""

    def test_default_config(self):
        config = AnalysisConfig()
        assert config.on_extraction_error == "warn"
        assert config.lexicon_path is None
        assert config.indexing.batch_size == 6
        assert config.layout.gutter_line_threshold == 0.25
        assert config.citations.min_confidence == 0.3
        assert config.outline.use_bookmarks is True

    def test_configs_are_independent(self):
        first, second = AnalysisConfig(), AnalysisConfig()
        first.citations.min_confidence = 0.9
        assert second.citations.min_confidence == 0.3

    def test_lexicon_path_becomes_path(self, tmp_path):
        config = AnalysisConfig(lexicon_path=str(tmp_path / "lexicon.yaml"))
        assert config.lexicon_path == tmp_path / "lexicon.yaml"


class TestValidation:
    """Invalid values raise ConfigurationError (a ValueError)."""

    def test_invalid_error_mode(self):
        with pytest.raises(ConfigurationError, match="on_extraction_error"):
            AnalysisConfig(on_extraction_error="ignore")

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ConfigurationError, match="batch_size"):
            IndexingConfig(batch_size=0)

    def test_ratio_out_of_range(self):
        with pytest.raises(ConfigurationError, match="gutter_line_threshold"):
            LayoutConfig(gutter_line_threshold=1.5)

    def test_column_width_bounds_ordered(self):
        with pytest.raises(ConfigurationError, match="min_column_width_ratio"):
            LayoutConfig(min_column_width_ratio=0.8, max_column_width_ratio=0.5)

    def test_negative_skip_pages(self):
        with pytest.raises(ConfigurationError):
            ReferenceConfig(skip_leading_pages=-1)

    def test_min_confidence_ratio(self):
        with pytest.raises(ConfigurationError, match="min_confidence"):
            CitationConfig(min_confidence=2.0)

    def test_unknown_validator(self):
        with pytest.raises(ConfigurationError, match="validators"):
            OutlineConfig(validators=("hierarchy", "spelling"))

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            IndexingConfig(max_workers=0)
