"""
doc comment coverage check.

a purely textual test for whether an item's documentation already tells
the reader that it can panic. a dedicated section heading (`# Panics`) is
the preferred signal; failing that, a handful of keywords anywhere in the
text will do.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final

DEFAULT_HEADINGS: Final[tuple[str, ...]] = ("panics", "panic", "aborts")
DEFAULT_KEYWORDS: Final[tuple[str, ...]] = ("panic", "abort")

# atx heading: `# Panics`, `## Panics ##`
_ATX_HEADING: Final[re.Pattern[str]] = re.compile(r"^ {0,3}#{1,6}[ \t]+(?P<title>.*?)[ \t#]*$")
# setext underline below a heading line
_SETEXT_UNDERLINE: Final[re.Pattern[str]] = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")


def _normalise_title(title: str) -> str:
    return title.strip().rstrip(":").strip().lower()


def iter_headings(doc_text: str) -> Iterable[str]:
    """
    yield the normalised titles of all markdown headings in a doc text.

    arguments:
        `doc_text: str`
            raw documentation text with comment markers already stripped

    yields: `str`
        lowercase heading titles without trailing colons
    """
    lines = doc_text.splitlines()
    for index, line in enumerate(lines):
        if match := _ATX_HEADING.match(line):
            yield _normalise_title(match.group("title"))
        elif (
            line.strip()
            and index + 1 < len(lines)
            and _SETEXT_UNDERLINE.match(lines[index + 1])
        ):
            yield _normalise_title(line)


@dataclass(frozen=True, slots=True)
class DocCoverageChecker:
    """
    checks doc text for a panic disclosure.

    attributes:
        `headings: tuple[str, ...]`
            section titles that count as a disclosure (case-insensitive)
        `keywords: tuple[str, ...]`
            substrings that count as a disclosure when no heading matched
    """

    headings: tuple[str, ...] = DEFAULT_HEADINGS
    keywords: tuple[str, ...] = DEFAULT_KEYWORDS

    def documents_panics(self, doc_text: str | None) -> bool:
        """
        decide whether the doc text discloses that the item can panic.

        arguments:
            `doc_text: str | None`
                documentation attached to the item

        returns: `bool`
            true as soon as a heading or keyword signal is found; always
            false for empty or missing docs
        """
        if not doc_text or not doc_text.strip():
            return False

        wanted = {_normalise_title(heading) for heading in self.headings}
        if any(title in wanted for title in iter_headings(doc_text)):
            return True

        lowered = doc_text.lower()
        return any(keyword.lower() in lowered for keyword in self.keywords if keyword)


def documents_panics(doc_text: str | None) -> bool:
    """check doc text against the default heading and keyword vocabulary."""
    return DocCoverageChecker().documents_panics(doc_text)
