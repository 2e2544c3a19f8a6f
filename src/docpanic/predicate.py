"""
panic-site predicate.

decides, one node at a time, whether a piece of a function body can abort
the process with a panic. the check is deliberately an over-approximation:
it looks at syntax only and never tries to prove a site unreachable.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Final

from .syntax import NodeKind, Span, SyntaxNode


class PanicKind(Enum):
    """
    category of a candidate panic site.

    the values double as the names used in ignore comments and config.
    """

    EXPLICIT_PANIC = "panic"
    FORCED_UNWRAP = "unwrap"
    ASSERTION = "assert"
    INDEX = "index"
    ARITHMETIC = "arithmetic"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True, slots=True)
class PanicSite:
    """
    a candidate panic site found in a function body.

    attributes:
        `kind: PanicKind`
            what sort of construct this is
        `span: Span`
            the tightest span attributable to the construct
        `detail: str`
            short human-readable description, e.g. `.unwrap()`
    """

    kind: PanicKind
    span: Span
    detail: str


@dataclass(frozen=True, slots=True)
class PredicateOptions:
    """
    knobs for the predicate.

    attributes:
        `overflow_checks: bool`
            whether the analysed build traps on integer overflow
        `disabled_kinds: frozenset[PanicKind]`
            site kinds that are never reported
    """

    overflow_checks: bool = False
    disabled_kinds: frozenset[PanicKind] = frozenset()


DEFAULT_OPTIONS: Final[PredicateOptions] = PredicateOptions()

PANIC_MACROS: Final[frozenset[str]] = frozenset({"panic", "todo", "unimplemented"})
UNREACHABLE_MACROS: Final[frozenset[str]] = frozenset({"unreachable"})
# debug_assert! and friends vanish in release builds
ASSERT_MACROS: Final[frozenset[str]] = frozenset({"assert", "assert_eq", "assert_ne"})
UNWRAP_METHODS: Final[frozenset[str]] = frozenset({"unwrap", "expect", "unwrap_err", "expect_err"})
# bare `abort` covers `use std::process::abort;`
ABORT_FUNCTIONS: Final[frozenset[str]] = frozenset({"abort", "process::abort", "std::process::abort"})

_OVERFLOWING_OPERATORS: Final[frozenset[str]] = frozenset({"+", "-", "*"})
_DIVIDING_OPERATORS: Final[frozenset[str]] = frozenset({"/", "%"})
_SHIFT_OPERATORS: Final[frozenset[str]] = frozenset({"<<", ">>"})

_FLOAT_LITERAL: Final[re.Pattern[str]] = re.compile(
    r"^[0-9][0-9_]*(\.[0-9_]*)?([eE][+-]?[0-9_]+)?(f32|f64)?$"
)
_INTEGER_LITERAL: Final[re.Pattern[str]] = re.compile(
    r"^(0x[0-9a-fA-F_]+|0o[0-7_]+|0b[01_]+|[0-9][0-9_]*)([iu](8|16|32|64|128|size))?$"
)


def classify(node: SyntaxNode, options: PredicateOptions = DEFAULT_OPTIONS) -> PanicSite | None:
    """
    classify a single node as a candidate panic site.

    only the node itself is examined; callers walk the body and call this
    for every node.

    arguments:
        `node: SyntaxNode`
            the node to classify
        `options: PredicateOptions`
            build configuration and disabled kinds

    returns: `PanicSite | None`
        the site, or none if the node cannot panic by itself
    """
    site = _MATCHERS[node.kind](node, options)
    if site is None or site.kind in options.disabled_kinds:
        return None
    return site


def _macro_call(node: SyntaxNode, _options: PredicateOptions) -> PanicSite | None:
    if node.name in PANIC_MACROS:
        return PanicSite(PanicKind.EXPLICIT_PANIC, node.span, f"{node.name}!")
    if node.name in UNREACHABLE_MACROS:
        return PanicSite(PanicKind.UNREACHABLE, node.span, f"{node.name}!")
    if node.name in ASSERT_MACROS:
        return PanicSite(PanicKind.ASSERTION, node.span, f"{node.name}!")
    return None


def _method_call(node: SyntaxNode, _options: PredicateOptions) -> PanicSite | None:
    if node.name in UNWRAP_METHODS:
        return PanicSite(PanicKind.FORCED_UNWRAP, node.span, f".{node.name}()")
    return None


def _call(node: SyntaxNode, _options: PredicateOptions) -> PanicSite | None:
    if node.path.removeprefix("::") in ABORT_FUNCTIONS:
        return PanicSite(PanicKind.EXPLICIT_PANIC, node.span, f"{node.path}()")
    # Option::unwrap(x), Result::expect(x, "..")
    if node.name in UNWRAP_METHODS and "::" in node.path:
        return PanicSite(PanicKind.FORCED_UNWRAP, node.span, f"{node.path}()")
    return None


def _index(node: SyntaxNode, _options: PredicateOptions) -> PanicSite | None:
    if len(node.children) < 2:
        return None
    index = node.children[1]
    if _is_constant(index):
        return None
    return PanicSite(PanicKind.INDEX, node.span, "indexing")


def _arithmetic(node: SyntaxNode, options: PredicateOptions) -> PanicSite | None:
    if len(node.children) < 2:
        return None

    left, right = node.children[0], node.children[-1]
    operator = node.operator.removesuffix("=") if node.kind is NodeKind.COMPOUND_ASSIGN else node.operator
    if _is_float_literal(left) or _is_float_literal(right):
        return None

    # division by zero and `MIN / -1` panic whatever the profile says
    if operator in _DIVIDING_OPERATORS:
        if _is_nonzero_integer_literal(right):
            return None
        return PanicSite(PanicKind.ARITHMETIC, node.span, f"`{node.operator}`")

    if not options.overflow_checks:
        return None

    if operator in _OVERFLOWING_OPERATORS:
        if left.kind is NodeKind.LITERAL and right.kind is NodeKind.LITERAL:
            return None
    elif operator in _SHIFT_OPERATORS:
        if right.kind is NodeKind.LITERAL:
            return None
    else:
        return None

    return PanicSite(PanicKind.ARITHMETIC, node.span, f"`{node.operator}`")


def _never(_node: SyntaxNode, _options: PredicateOptions) -> PanicSite | None:
    return None


# one entry per node kind; a new NodeKind without an entry fails at import
_MATCHERS: Final[dict[NodeKind, Callable[[SyntaxNode, PredicateOptions], PanicSite | None]]] = {
    NodeKind.SOURCE_FILE: _never,
    NodeKind.MODULE: _never,
    NodeKind.IMPL: _never,
    NodeKind.TRAIT: _never,
    NodeKind.FUNCTION: _never,
    NodeKind.CLOSURE: _never,
    NodeKind.BLOCK: _never,
    NodeKind.MACRO_CALL: _macro_call,
    NodeKind.METHOD_CALL: _method_call,
    NodeKind.CALL: _call,
    NodeKind.INDEX: _index,
    NodeKind.BINARY: _arithmetic,
    NodeKind.COMPOUND_ASSIGN: _arithmetic,
    NodeKind.LITERAL: _never,
    NodeKind.RANGE: _never,
    NodeKind.OTHER: _never,
}
if set(_MATCHERS) != set(NodeKind):
    raise RuntimeError(f"panic predicate misses node kinds: {set(NodeKind) - set(_MATCHERS)}")


def _is_constant(node: SyntaxNode) -> bool:
    if node.kind is NodeKind.LITERAL:
        return True
    if node.kind is NodeKind.RANGE:
        # `a[..]`, `a[1..3]`
        return all(child.kind is NodeKind.LITERAL for child in node.children)
    return False


def _is_float_literal(node: SyntaxNode) -> bool:
    return (
        node.kind is NodeKind.LITERAL
        and not _INTEGER_LITERAL.match(node.name)
        and _FLOAT_LITERAL.match(node.name) is not None
    )


def _is_nonzero_integer_literal(node: SyntaxNode) -> bool:
    if node.kind is not NodeKind.LITERAL or not _INTEGER_LITERAL.match(node.name):
        return False
    digits = re.sub(r"[iu](8|16|32|64|128|size)$", "", node.name).replace("_", "")
    base = 0 if digits[:2].lower() in ("0x", "0o", "0b") else 10
    return int(digits, base) != 0
