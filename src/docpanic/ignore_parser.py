"""parser for docpanic ignore comments.

this module parses line comments that suppress individual panic sites.

formats (case-insensitive):
    // docpanic: ignore[unwrap, index]
    // dp: ignore[assert]

rules:
    - must be on a line the panic site covers (usually after the statement)
    - must include brackets with site kinds (`panic`, `unwrap`, `assert`,
      `index`, `arithmetic`, `unreachable`)
    - plain "// docpanic: ignore" without brackets is invalid
    - unknown kind names are reported; the known ones on the line still apply
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from .predicate import PanicKind, PanicSite

_VALID_IGNORE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"//\s*(?:docpanic|dp)\s*:\s*ignore\s*\[\s*([^\]]+)\s*\]",
    re.IGNORECASE,
)

_INVALID_IGNORE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"//\s*(?:docpanic|dp)\s*:\s*ignore\s*(?!\s*\[)",
    re.IGNORECASE,
)

KNOWN_KINDS: Final[frozenset[str]] = frozenset(kind.value for kind in PanicKind)
MISSING_KINDS_MESSAGE: Final[str] = (
    "ignore comment needs site kinds in brackets, e.g. `// docpanic: ignore[unwrap]`"
)


@dataclass(frozen=True, slots=True)
class IgnoreDirective:
    """
    a parsed ignore directive.

    attributes:
        `line: int`
            line number where the directive appears (1-indexed)
        `kinds: frozenset[str]`
            site kinds to ignore on this line, lowercased
        `raw: str`
            the raw line text
    """

    line: int
    kinds: frozenset[str]
    raw: str


@dataclass(frozen=True, slots=True)
class InvalidIgnoreDirective:
    """
    an invalid ignore directive (missing brackets or unknown kinds).

    attributes:
        `line: int`
            line number where the invalid directive appears (1-indexed)
        `raw: str`
            the raw line text
        `message: str`
            what is wrong with the directive
    """

    line: int
    raw: str
    message: str = MISSING_KINDS_MESSAGE


@dataclass
class IgnoreParseResult:
    """
    result of parsing ignore comments from a file.

    attributes:
        `directives: dict[int, IgnoreDirective]`
            mapping of line numbers to ignore directives
        `invalid: list[InvalidIgnoreDirective]`
            list of invalid directives
    """

    directives: dict[int, IgnoreDirective]
    invalid: list[InvalidIgnoreDirective]

    def should_ignore(self, line: int, kind: PanicKind) -> bool:
        """
        check if a site kind is suppressed on a given line.

        arguments:
            `line: int`
                line number (1-indexed)
            `kind: PanicKind`
                the site kind to check

        returns: `bool`
            true if the site should be ignored
        """
        directive = self.directives.get(line)
        if directive is None:
            return False
        return kind.value in directive.kinds

    def suppresses(self, site: PanicSite) -> bool:
        """whether a directive on any line the site covers names its kind."""
        return any(
            self.should_ignore(line, site.kind)
            for line in range(site.span.start_line, site.span.end_line + 1)
        )


def parse_ignore_comments(source: str) -> IgnoreParseResult:
    """
    parse docpanic ignore comments from source code.

    arguments:
        `source: str`
            rust source code to parse

    returns: `IgnoreParseResult`
        parsed directives and any invalid directives
    """
    directives: dict[int, IgnoreDirective] = {}
    invalid: list[InvalidIgnoreDirective] = []

    for line_num, line in enumerate(source.split("\n"), start=1):
        match = _VALID_IGNORE_PATTERN.search(line)
        if match is None:
            if _INVALID_IGNORE_PATTERN.search(line):
                invalid.append(InvalidIgnoreDirective(line=line_num, raw=line.strip()))
            continue

        kinds = frozenset(k.strip().lower() for k in match.group(1).split(",") if k.strip())
        if unknown := sorted(kinds - KNOWN_KINDS):
            invalid.append(
                InvalidIgnoreDirective(
                    line=line_num,
                    raw=line.strip(),
                    message=f"unknown site kind(s) in ignore comment: {', '.join(unknown)}",
                )
            )
        directives[line_num] = IgnoreDirective(line=line_num, kinds=kinds, raw=line.strip())

    return IgnoreParseResult(directives=directives, invalid=invalid)
