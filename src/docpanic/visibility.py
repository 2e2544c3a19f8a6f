"""
visibility resolution for rust items.

an item is reachable from outside its crate only when its own marker is
plain `pub` and every scope around it is reachable as well; a single
private module anywhere up the chain hides everything below it.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field

from .syntax import SyntaxNode, Visibility


def is_externally_visible(declaration: SyntaxNode, scope_stack: Sequence[Visibility]) -> bool:
    """
    decide whether a declaration can be seen from outside the crate.

    arguments:
        `declaration: SyntaxNode`
            the function or method declaration
        `scope_stack: Sequence[Visibility]`
            visibility markers of the enclosing scopes, outermost first

    returns: `bool`
        true if the declaration and all of its enclosing scopes are public
    """
    return declaration.visibility is Visibility.PUBLIC and all(
        marker is Visibility.PUBLIC for marker in scope_stack
    )


@dataclass
class ScopeContext:
    """
    stack of enclosing scopes built up while walking a tree.

    attributes:
        `markers: list[Visibility]`
            visibility of each enclosing scope, outermost first
        `names: list[str]`
            path segments contributed by named scopes
    """

    markers: list[Visibility] = field(default_factory=list)
    names: list[str] = field(default_factory=list)

    @contextmanager
    def enter(self, scope: SyntaxNode) -> Iterator[None]:
        """push a scope for the duration of the block, then pop it."""
        self.markers.append(scope.visibility)
        if scope.name:
            self.names.append(scope.name)
        try:
            yield
        finally:
            self.markers.pop()
            if scope.name:
                self.names.pop()

    def qualify(self, name: str) -> str:
        """join the current scope path and `name` with `::`."""
        return "::".join([*self.names, name])
