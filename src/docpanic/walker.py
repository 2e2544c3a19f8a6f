"""
syntax tree walker for undocumented panics.

walks every item in a parsed rust file, keeps only functions and methods
that are visible outside the crate, scans their bodies for candidate panic
sites and reports those whose docs do not mention panicking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .docs import DocCoverageChecker
from .predicate import DEFAULT_OPTIONS, PanicSite, PredicateOptions, classify
from .syntax import SCOPE_KINDS, NodeKind, Span, SyntaxNode
from .visibility import ScopeContext, is_externally_visible

logger = logging.getLogger(__name__)


class WalkState(Enum):
    """where the walker currently is."""

    DESCENDING = "descending"
    SCANNING_BODY = "scanning_body"
    EMITTING = "emitting"


@dataclass(frozen=True, slots=True)
class Finding:
    """
    a public function that can panic without documenting it.

    attributes:
        `file_path: Path`
            file the function lives in
        `name: str`
            the function's own name
        `qualified_name: str`
            name including enclosing modules, types and traits
        `span: Span`
            span of the function item
        `sites: tuple[PanicSite, ...]`
            every undisclosed candidate panic site, in source order
    """

    file_path: Path
    name: str
    qualified_name: str
    span: Span
    sites: tuple[PanicSite, ...]


class AstWalker:
    """
    depth-first, pre-order walker producing `Finding`s.

    one instance handles one tree at a time; `walk` resets all state, so
    walking the same tree twice gives the same result.

    attributes:
        `file_path: Path`
            label attached to every finding
        `options: PredicateOptions`
            options handed to the panic-site predicate
        `checker: DocCoverageChecker`
            doc text disclosure check
        `state: WalkState`
            current state of the walk
        `declarations_seen: int`
            functions and methods encountered during the last walk
    """

    file_path: Path
    options: PredicateOptions
    checker: DocCoverageChecker
    state: WalkState
    declarations_seen: int
    _scope: ScopeContext
    _findings: list[Finding]

    def __init__(
        self,
        file_path: str | Path,
        options: PredicateOptions | None = None,
        checker: DocCoverageChecker | None = None,
    ) -> None:
        self.file_path = Path(file_path)
        self.options = options or DEFAULT_OPTIONS
        self.checker = checker or DocCoverageChecker()
        self.state = WalkState.DESCENDING
        self.declarations_seen = 0
        self._scope = ScopeContext()
        self._findings = []

    def walk(self, tree: SyntaxNode) -> list[Finding]:
        """
        walk a tree and collect findings.

        arguments:
            `tree: SyntaxNode`
                root of a well-formed tree, usually `SOURCE_FILE`

        returns: `list[Finding]`
            findings in the order their functions were entered
        """
        self.state = WalkState.DESCENDING
        self.declarations_seen = 0
        self._scope = ScopeContext()
        self._findings = []

        self._descend(tree)
        return list(self._findings)

    def _descend(self, node: SyntaxNode) -> None:
        if node.kind in SCOPE_KINDS:
            with self._scope.enter(node):
                for child in node.children:
                    self._descend(child)
        elif node.kind is NodeKind.FUNCTION:
            self._visit_declaration(node)

    def _visit_declaration(self, declaration: SyntaxNode) -> None:
        self.declarations_seen += 1
        qualified_name = self._scope.qualify(declaration.name)

        if not is_externally_visible(declaration, self._scope.markers):
            logger.debug("skipping non-public function: %s", qualified_name)
            return

        if declaration.body is None:
            return

        self.state = WalkState.SCANNING_BODY
        sites = self._scan(declaration.body)

        self.state = WalkState.EMITTING
        if sites and not self.checker.documents_panics(declaration.doc):
            logger.debug(
                "%s has %d undocumented panic site(s)", qualified_name, len(sites)
            )
            self._findings.append(
                Finding(
                    file_path=self.file_path,
                    name=declaration.name,
                    qualified_name=qualified_name,
                    span=declaration.span,
                    sites=tuple(sites),
                )
            )

        self.state = WalkState.DESCENDING

    def _scan(self, body: SyntaxNode) -> list[PanicSite]:
        # closures and nested items are part of the body they sit in
        sites: list[PanicSite] = []
        for node in body.walk():
            site = classify(node, self.options)
            if site is not None:
                sites.append(site)
        return sites


def walk(
    tree: SyntaxNode,
    file_path: str | Path,
    options: PredicateOptions | None = None,
    checker: DocCoverageChecker | None = None,
) -> list[Finding]:
    """
    find public functions with undocumented panic sites.

    arguments:
        `tree: SyntaxNode`
            parsed file
        `file_path: str | Path`
            path used to label findings
        `options: PredicateOptions | None`
            predicate options (default: release build, all kinds enabled)
        `checker: DocCoverageChecker | None`
            disclosure check (default vocabulary if none)

    returns: `list[Finding]`
        findings in traversal order
    """
    return AstWalker(file_path, options, checker).walk(tree)
