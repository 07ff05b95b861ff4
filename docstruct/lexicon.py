"""
Data-driven pattern lexicon.

Every regex the analysis stages use lives in ``data/lexicon.yaml``.
This module compiles that table once into an immutable ``Lexicon`` and
attaches a small extractor function to each pattern family, so adding a
heading language or a citation style is a data change.

Example:
    >>> lexicon = load_lexicon()
    >>> lexicon.is_reference_heading("2. References")
    True
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable

import yaml

from docstruct.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_LEXICON_PATH = Path(__file__).parent / "data" / "lexicon.yaml"

_DASHES = re.compile(r"\s*[-–—]\s*")


def _normalize_target_id(value: str) -> str:
    """'1 – 3' -> '1-3', 'a' -> 'A' for appendix letters."""
    return _DASHES.sub("-", value.strip())


def _single_group(match: re.Match[str], label: str) -> tuple[str, str]:
    return label, _normalize_target_id(match.group(1))


def _labelled_group(match: re.Match[str], label: str) -> tuple[str, str]:
    # Theorem family: group 1 is the label ("Lemma"), group 2 the number.
    return match.group(1).lower(), _normalize_target_id(match.group(2))


@dataclass(frozen=True)
class CrossRefPattern:
    """A compiled cross-reference pattern plus its (label, target id) extractor."""

    type: str
    pattern: re.Pattern[str]
    extractor: Callable[[re.Match[str], str], tuple[str, str]] = _single_group

    def extract(self, match: re.Match[str]) -> tuple[str, str]:
        label, target_id = self.extractor(match, self.type)
        if self.type == "appendix":
            target_id = target_id.upper()
        return label, target_id


@dataclass(frozen=True)
class ReferenceFormat:
    """A bibliography numbering format (``[1]``, ``(1)``, ``1.``, ``1``)."""

    name: str
    pattern: re.Pattern[str]

    def extract_index(self, text: str) -> int | None:
        """Printed entry number if ``text`` starts with this numbering."""
        match = self.pattern.match(text)
        if not match:
            return None
        return int(match.group(1))

    def strip(self, text: str) -> str:
        return self.pattern.sub("", text, count=1)


@dataclass(frozen=True)
class Lexicon:
    """Compiled pattern table. Build with ``load_lexicon``."""

    version: int
    section_number_strip: re.Pattern[str]

    # Reference section
    reference_heading: re.Pattern[str]
    post_reference_heading: re.Pattern[str]
    reference_formats: tuple[ReferenceFormat, ...]
    author_year_start: re.Pattern[str]
    year: re.Pattern[str]
    reference_endings: tuple[re.Pattern[str], ...]
    min_reference_length: int
    max_reference_length: int
    continuation_words: frozenset[str]
    entry_start: re.Pattern[str]

    # Author names
    name_suffixes: re.Pattern[str]
    surname_last_first: re.Pattern[str]
    surname_initials_first: re.Pattern[str]
    surname_simple: re.Pattern[str]

    # Inline citations
    inter_bracket_range: re.Pattern[str]
    bracket_mixed: re.Pattern[str]
    superscript: re.Pattern[str]
    parenthetical_block: re.Pattern[str]
    prefix_phrases: re.Pattern[str]
    narrative: re.Pattern[str]
    narrative_two_authors: re.Pattern[str]
    chunk_authors: re.Pattern[str]
    chunk_years: re.Pattern[str]

    # Cross-references
    cross_references: tuple[CrossRefPattern, ...]
    cross_reference_definitions: tuple[CrossRefPattern, ...]
    numbered_heading_definition: re.Pattern[str]
    equation_number: re.Pattern[str]

    # Outline
    outline_numbered: re.Pattern[str]
    outline_prefix: re.Pattern[str]
    outline_skip: re.Pattern[str]
    abstract_heading: re.Pattern[str]
    front_matter_skip: re.Pattern[str]
    common_section_names: frozenset[str]

    def strip_section_number(self, text: str) -> str:
        return self.section_number_strip.sub("", text.strip(), count=1).strip()

    def is_reference_heading(self, text: str) -> bool:
        return bool(self.reference_heading.match(self.strip_section_number(text).lower()))

    def is_post_reference_heading(self, text: str) -> bool:
        return bool(self.post_reference_heading.match(self.strip_section_number(text).lower()))

    def is_common_section_name(self, text: str) -> bool:
        stripped = self.strip_section_number(text).lower().rstrip(".:")
        return stripped in self.common_section_names

    def find_year(self, text: str) -> str | None:
        """First plausible publication year (with letter suffix) in ``text``."""
        match = self.year.search(text)
        return match.group(1) + match.group(2) if match else None

    def has_reference_ending(self, text: str) -> bool:
        stripped = text.strip()
        return any(p.search(stripped) for p in self.reference_endings)

    def is_continuation_word(self, word: str) -> bool:
        return word.lower().strip(".,:;") in self.continuation_words


# ============================================================
# Loading
# ============================================================


def _require(data: dict[str, Any], *keys: str) -> Any:
    node: Any = data
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            raise ConfigurationError(f"Lexicon is missing required key: {'.'.join(keys)}")
        node = node[key]
    return node


def _word_list(data: dict[str, Any], key: str) -> frozenset[str]:
    words = _require(data, key)
    if not isinstance(words, list):
        raise ConfigurationError(f"Lexicon key {key!r} must be a list of words")
    bad = [w for w in words if not isinstance(w, str)]
    if bad:
        # YAML 1.1 reads bare on/off/yes/no as booleans
        raise ConfigurationError(
            f"Lexicon key {key!r} entries must be strings, got {bad!r}; quote them in the YAML"
        )
    return frozenset(w.lower() for w in words)


def _compile(source: str, name: str, flags: int = 0) -> re.Pattern[str]:
    try:
        return re.compile(source, flags)
    except re.error as e:
        raise ConfigurationError(f"Lexicon pattern {name!r} does not compile: {e}") from e


def _build(data: dict[str, Any]) -> Lexicon:
    def pattern(*keys: str, flags: int = 0) -> re.Pattern[str]:
        return _compile(str(_require(data, *keys)), ".".join(keys), flags)

    formats = tuple(
        ReferenceFormat(name, _compile(source, f"reference_formats.{name}"))
        for name, source in _require(data, "reference_formats").items()
    )
    endings = tuple(
        _compile(source, f"reference_endings.{name}", re.IGNORECASE)
        for name, source in _require(data, "reference_endings").items()
    )

    cross_refs = []
    for ref_type, source in _require(data, "cross_references").items():
        extractor = _labelled_group if ref_type == "theorem" else _single_group
        compiled = _compile(source, f"cross_references.{ref_type}", re.IGNORECASE)
        cross_refs.append(CrossRefPattern(ref_type, compiled, extractor))

    definitions = []
    special_definitions = ("numbered_heading", "equation_number")
    for ref_type, source in _require(data, "cross_reference_definitions").items():
        if ref_type in special_definitions:
            continue
        extractor = _labelled_group if ref_type == "theorem" else _single_group
        compiled = _compile(source, f"cross_reference_definitions.{ref_type}", re.IGNORECASE)
        definitions.append(CrossRefPattern(ref_type, compiled, extractor))

    length = _require(data, "reference_length")
    continuation_words = _word_list(data, "continuation_words")
    common_section_names = _word_list(data, "common_section_names")

    return Lexicon(
        version=int(data.get("version", 1)),
        section_number_strip=pattern("section_number_strip"),
        reference_heading=pattern("reference_heading", flags=re.IGNORECASE),
        post_reference_heading=pattern("post_reference_heading", flags=re.IGNORECASE),
        reference_formats=formats,
        author_year_start=pattern("author_year_start"),
        year=pattern("year"),
        reference_endings=endings,
        min_reference_length=int(length.get("min", 30)),
        max_reference_length=int(length.get("max", 2000)),
        continuation_words=continuation_words,
        entry_start=pattern("entry_start"),
        name_suffixes=pattern("name_suffixes", flags=re.IGNORECASE),
        surname_last_first=pattern("surnames", "last_first"),
        surname_initials_first=pattern("surnames", "initials_first"),
        surname_simple=pattern("surnames", "simple"),
        inter_bracket_range=pattern("numeric_citations", "inter_bracket_range"),
        bracket_mixed=pattern("numeric_citations", "bracket_mixed"),
        superscript=pattern("numeric_citations", "superscript"),
        parenthetical_block=pattern("author_year_citations", "parenthetical_block"),
        prefix_phrases=pattern("author_year_citations", "prefix_phrases", flags=re.IGNORECASE),
        narrative=pattern("author_year_citations", "narrative"),
        narrative_two_authors=pattern("author_year_citations", "narrative_two_authors"),
        chunk_authors=pattern("author_year_citations", "chunk_authors"),
        chunk_years=pattern("author_year_citations", "chunk_years"),
        cross_references=tuple(cross_refs),
        cross_reference_definitions=tuple(definitions),
        numbered_heading_definition=pattern("cross_reference_definitions", "numbered_heading"),
        equation_number=pattern("cross_reference_definitions", "equation_number"),
        outline_numbered=pattern("outline", "numbered_heading"),
        outline_prefix=pattern("outline", "heading_prefix"),
        outline_skip=pattern("outline", "skip_prefix", flags=re.IGNORECASE),
        abstract_heading=pattern("outline", "abstract_heading", flags=re.IGNORECASE),
        front_matter_skip=pattern("outline", "front_matter_title_skip", flags=re.IGNORECASE),
        common_section_names=common_section_names,
    )


@lru_cache(maxsize=8)
def _load_cached(path_str: str) -> Lexicon:
    path = Path(path_str)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read lexicon {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Lexicon {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Lexicon {path} must be a mapping, got {type(data).__name__}")

    lexicon = _build(data)
    logger.debug("Loaded lexicon v%s from %s", lexicon.version, path)
    return lexicon


def load_lexicon(path: str | Path | None = None) -> Lexicon:
    """Load and compile a lexicon, cached per resolved path.

    Args:
        path: Alternate YAML file. None loads the bundled lexicon.

    Raises:
        ConfigurationError: If the file is unreadable, malformed, or a
            pattern fails to compile.
    """
    resolved = Path(path) if path is not None else DEFAULT_LEXICON_PATH
    return _load_cached(str(resolved.resolve()))
