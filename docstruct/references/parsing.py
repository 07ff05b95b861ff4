"""
Author and year parsing for bibliography entries.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

from docstruct.lexicon import Lexicon

_INITIAL = re.compile(r"^(?:[A-Z]\.?)(?:[-‐]?[A-Z]\.?)*$")
_SPLIT_AUTHORS = re.compile(r"\s*(?:,|;|&|\band\b|\bet\s+al\.?)\s*")
_SURNAME_TOKEN = re.compile(r"^[A-ZÀ-Ý][\w'’-]+$")
_ET_AL = re.compile(r"\s+et\s+al\.?,?", re.IGNORECASE)
_NON_NAME_WORDS = frozenset({"in", "the", "proceedings", "proc", "journal", "vol", "eds", "ed"})


@dataclass(frozen=True)
class ParsedReference:
    """Author/year fields parsed from an entry's text."""

    first_author: str | None
    authors: tuple[str, ...]
    year: str | None


def surname_key(name: str) -> str:
    """Case- and accent-insensitive comparison key ('Müller' -> 'muller')."""
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.strip().lower()


def strip_numbering(text: str, lexicon: Lexicon) -> str:
    """Remove a leading ``[1]`` / ``(1)`` / ``1.`` / ``1`` marker."""
    for fmt in lexicon.reference_formats:
        if fmt.pattern.match(text):
            return fmt.strip(text).lstrip()
    return text.lstrip()


def parse_first_author(text: str, lexicon: Lexicon) -> str | None:
    """Surname of the first author, as printed.

    Tries "Lastname, Initials", then "I. Lastname", then a plain leading
    capitalized name (first of "Smith and Jones").
    """
    text = strip_numbering(text, lexicon)

    match = lexicon.surname_last_first.match(text)
    if match:
        return match.group(1)

    match = lexicon.surname_initials_first.match(text)
    if match:
        return match.group(1)

    match = lexicon.surname_simple.match(text)
    if match:
        name = lexicon.name_suffixes.sub("", match.group(1))
        first = re.split(r"\s*,?\s*(?:\band\b|&)\s*", name)[0].strip(" ,")
        return first or None
    return None


def parse_authors(text: str, lexicon: Lexicon) -> tuple[str, ...]:
    """All author surnames (keys) printed before the first year."""
    text = strip_numbering(text, lexicon)
    year = lexicon.year.search(text)
    head = text[: year.start()] if year else text[:200]

    surnames: list[str] = []
    for piece in _SPLIT_AUTHORS.split(head):
        tokens = [t.strip(".()") for t in piece.split()]
        names = [
            t
            for t in tokens
            if t
            and not _INITIAL.match(t)
            and _SURNAME_TOKEN.match(t)
            and t.lower() not in _NON_NAME_WORDS
        ]
        if not names:
            continue
        # "J. Smith. A Title" -> Smith; "Smith J" -> Smith
        name = names[0]
        key = surname_key(name)
        if key not in surnames:
            surnames.append(key)
    return tuple(surnames)


def parse_reference(text: str, lexicon: Lexicon) -> ParsedReference:
    first = parse_first_author(text, lexicon)
    authors = parse_authors(text, lexicon)
    if first is not None:
        key = surname_key(first)
        authors = (key, *(a for a in authors if a != key))
    return ParsedReference(first_author=first, authors=authors, year=lexicon.find_year(text))


def clean_cited_author(author: str) -> str:
    """'Smith et al.' -> 'Smith'."""
    return _ET_AL.sub("", author).strip(" ,")
