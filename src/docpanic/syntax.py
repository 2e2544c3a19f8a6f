"""
rust syntax tree model for docpanic.

this module adapts the concrete tree produced by tree-sitter's rust grammar
into a small closed set of node kinds that the walker and the panic-site
predicate understand. spans, visibility markers, attached doc text and
macro/method names are resolved here once, so the rest of the package never
touches tree-sitter directly.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Final

import tree_sitter_rust
from tree_sitter import Language, Parser
from typing_extensions import override

if TYPE_CHECKING:
    from tree_sitter import Node

logger = logging.getLogger(__name__)

RUST_LANGUAGE: Final[Language] = Language(tree_sitter_rust.language())

# tree-sitter node types that never carry code
_COMMENT_TYPES: Final[frozenset[str]] = frozenset({"line_comment", "block_comment"})

# trivia allowed between an item and the doc comments/attributes above it
_ITEM_PREFIX_TYPES: Final[frozenset[str]] = frozenset(
    {"line_comment", "block_comment", "attribute_item"}
)

_LITERAL_TYPES: Final[frozenset[str]] = frozenset(
    {
        "integer_literal",
        "float_literal",
        "string_literal",
        "raw_string_literal",
        "char_literal",
        "boolean_literal",
    }
)

_DOC_ATTRIBUTE: Final[re.Pattern[str]] = re.compile(
    r'^#\[\s*doc\s*=\s*"(?P<text>(?:[^"\\]|\\.)*)"\s*\]$', re.DOTALL
)


class RustSyntaxError(SyntaxError):
    """
    raised when tree-sitter could not build a well-formed tree.

    the walker only accepts well-formed trees, so this is reported by the
    caller (per file) before any walking happens.
    """


class NodeKind(Enum):
    """
    closed set of node kinds the core distinguishes.

    every tree-sitter node type maps onto exactly one of these; anything
    the core has no special interest in becomes `OTHER`.
    """

    SOURCE_FILE = "source_file"
    MODULE = "module"
    IMPL = "impl"
    TRAIT = "trait"
    FUNCTION = "function"
    CLOSURE = "closure"
    BLOCK = "block"
    MACRO_CALL = "macro_call"
    METHOD_CALL = "method_call"
    CALL = "call"
    INDEX = "index"
    BINARY = "binary"
    COMPOUND_ASSIGN = "compound_assign"
    LITERAL = "literal"
    RANGE = "range"
    OTHER = "other"


# node kinds that open a new item scope
SCOPE_KINDS: Final[frozenset[NodeKind]] = frozenset(
    {NodeKind.SOURCE_FILE, NodeKind.MODULE, NodeKind.IMPL, NodeKind.TRAIT}
)


class Visibility(Enum):
    """
    declared visibility of an item.

    attributes:
        `PUBLIC`
            plain `pub`
        `RESTRICTED`
            `pub(crate)`, `pub(super)`, `pub(self)`, `pub(in path)` or `crate`
        `PRIVATE`
            no marker at all
    """

    PUBLIC = "pub"
    RESTRICTED = "restricted"
    PRIVATE = "private"


@dataclass(frozen=True, slots=True)
class Span:
    """
    source region of a node.

    attributes:
        `start_line: int`
            first line (1-indexed)
        `start_column: int`
            first column (0-indexed, in bytes)
        `end_line: int`
            last line (1-indexed)
        `end_column: int`
            column just past the end (0-indexed, in bytes)
    """

    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @classmethod
    def of(cls, node: Node) -> Span:
        """span covering a single tree-sitter node."""
        return cls.between(node, node)

    @classmethod
    def between(cls, first: Node, last: Node) -> Span:
        """span from the start of `first` to the end of `last`."""
        return cls(
            start_line=first.start_point[0] + 1,
            start_column=first.start_point[1],
            end_line=last.end_point[0] + 1,
            end_column=last.end_point[1],
        )

    def contains(self, other: Span) -> bool:
        """whether `other` lies entirely within this span."""
        return (self.start_line, self.start_column) <= (
            other.start_line,
            other.start_column,
        ) and (other.end_line, other.end_column) <= (self.end_line, self.end_column)

    @override
    def __str__(self) -> str:
        return f"{self.start_line}:{self.start_column}-{self.end_line}:{self.end_column}"


@dataclass(frozen=True, slots=True)
class SyntaxNode:
    """
    one node of the adapted syntax tree.

    attributes:
        `kind: NodeKind`
            which variant this node is
        `span: Span`
            where the node sits in the source
        `children: tuple[SyntaxNode, ...]`
            child nodes in source order
        `name: str`
            item, macro, method or callee name (last path segment);
            literal text for literals
        `path: str`
            full path as written, for macros and plain calls
        `visibility: Visibility`
            effective visibility marker (items and scopes only)
        `doc: str`
            doc comment text attached to the item, markers stripped
        `operator: str`
            operator token for binary and compound-assignment nodes
        `body: SyntaxNode | None`
            function body block, none for bodiless signatures
    """

    kind: NodeKind
    span: Span
    children: tuple[SyntaxNode, ...] = ()
    name: str = ""
    path: str = ""
    visibility: Visibility = Visibility.PRIVATE
    doc: str = ""
    operator: str = ""
    body: SyntaxNode | None = None

    def walk(self) -> Iterator[SyntaxNode]:
        """
        iterate over this node and all of its descendants, pre-order.

        yields: `SyntaxNode`
            nodes in depth-first source order, starting with self
        """
        stack: list[SyntaxNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class _TreeAdapter:
    """converts a tree-sitter rust tree into `SyntaxNode`s."""

    def __init__(self, source: bytes) -> None:
        self.source = source

    def text(self, node: Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def convert_file(self, root: Node) -> SyntaxNode:
        return SyntaxNode(
            kind=NodeKind.SOURCE_FILE,
            span=Span.of(root),
            children=self._items(root),
            visibility=Visibility.PUBLIC,
        )

    # items

    def _items(self, container: Node, member_visibility: Visibility | None = None) -> tuple[SyntaxNode, ...]:
        items: list[SyntaxNode] = []
        for child in container.named_children:
            item = self._item(child, member_visibility)
            if item is not None:
                items.append(item)
        return tuple(items)

    def _item(self, node: Node, member_visibility: Visibility | None) -> SyntaxNode | None:
        node_type = node.type

        if node_type in ("function_item", "function_signature_item"):
            return self._function(node, member_visibility)

        if node_type == "mod_item":
            body = node.child_by_field_name("body")
            if body is None:
                # `mod foo;` lives in another file
                return None
            return SyntaxNode(
                kind=NodeKind.MODULE,
                span=Span.of(node),
                children=self._items(body),
                name=self._field_text(node, "name"),
                visibility=self._visibility(node),
                doc=self._doc_text(node),
            )

        if node_type == "trait_item":
            body = node.child_by_field_name("body")
            return SyntaxNode(
                kind=NodeKind.TRAIT,
                span=Span.of(node),
                # trait items are exactly as visible as the trait itself
                children=self._items(body, Visibility.PUBLIC) if body is not None else (),
                name=self._field_text(node, "name"),
                visibility=self._visibility(node),
                doc=self._doc_text(node),
            )

        if node_type == "impl_item":
            body = node.child_by_field_name("body")
            is_trait_impl = node.child_by_field_name("trait") is not None
            children: tuple[SyntaxNode, ...] = ()
            if body is not None:
                children = self._items(body, Visibility.PUBLIC if is_trait_impl else None)
            return SyntaxNode(
                kind=NodeKind.IMPL,
                span=Span.of(node),
                children=children,
                name=" ".join(self._field_text(node, "type").split()),
                # impl blocks have no visibility of their own
                visibility=Visibility.PUBLIC,
            )

        return None

    def _function(self, node: Node, member_visibility: Visibility | None) -> SyntaxNode:
        body_node = node.child_by_field_name("body")
        body = self.convert(body_node) if body_node is not None else None
        return SyntaxNode(
            kind=NodeKind.FUNCTION,
            span=Span.of(node),
            children=(body,) if body is not None else (),
            name=self._field_text(node, "name"),
            visibility=member_visibility or self._visibility(node),
            doc=self._doc_text(node),
            body=body,
        )

    def _field_text(self, node: Node, field_name: str) -> str:
        child = node.child_by_field_name(field_name)
        return self.text(child) if child is not None else ""

    def _visibility(self, node: Node) -> Visibility:
        for child in node.children:
            if child.type == "visibility_modifier":
                marker = "".join(self.text(child).split())
                return Visibility.PUBLIC if marker == "pub" else Visibility.RESTRICTED
        return Visibility.PRIVATE

    def _doc_text(self, node: Node) -> str:
        """collect outer doc comments and `#[doc]` attributes above an item."""
        parts: list[str] = []
        sibling = node.prev_sibling
        while sibling is not None and sibling.type in _ITEM_PREFIX_TYPES:
            doc = _doc_from_trivia(self.text(sibling))
            if doc is not None:
                parts.append(doc)
            sibling = sibling.prev_sibling
        return "\n".join(reversed(parts))

    # expressions and statements

    def convert(self, root: Node) -> SyntaxNode:
        """
        convert an expression or statement subtree.

        runs on an explicit stack: long operator and method chains nest far
        deeper than the interpreter's recursion limit.
        """
        pending: list[tuple[Node, list[Node] | None]] = [(root, None)]
        converted: list[SyntaxNode] = []
        while pending:
            node, parts = pending.pop()
            if parts is None:
                parts = self._parts(node)
                pending.append((node, parts))
                pending.extend((part, None) for part in reversed(parts))
                continue
            split = len(converted) - len(parts)
            children = tuple(converted[split:])
            del converted[split:]
            converted.append(self._build(node, children))
        return converted[0]

    def _parts(self, node: Node) -> list[Node]:
        """the tree-sitter children that become child `SyntaxNode`s."""
        node_type = node.type
        if node_type in ("function_item", "macro_invocation") or node_type in _LITERAL_TYPES:
            return []
        if node_type == "call_expression":
            arguments = self._arguments(node)
            method = self._method_target(node)
            if method is not None:
                return [method[0], *arguments]
            function = node.child_by_field_name("function")
            return [function, *arguments] if function is not None else arguments
        return self._expression_children(node)

    def _build(self, node: Node, children: tuple[SyntaxNode, ...]) -> SyntaxNode:
        node_type = node.type

        if node_type == "function_item":
            return self._function(node, None)
        if node_type == "macro_invocation":
            return self._macro(node)
        if node_type == "call_expression":
            return self._call(node, children)
        if node_type in _LITERAL_TYPES:
            return SyntaxNode(kind=NodeKind.LITERAL, span=Span.of(node), name=self.text(node))
        if node_type in ("binary_expression", "compound_assignment_expr"):
            operator = node.child_by_field_name("operator")
            return SyntaxNode(
                kind=NodeKind.BINARY
                if node_type == "binary_expression"
                else NodeKind.COMPOUND_ASSIGN,
                span=Span.of(node),
                children=children,
                operator=operator.type if operator is not None else "",
            )

        kind = {
            "block": NodeKind.BLOCK,
            "closure_expression": NodeKind.CLOSURE,
            "index_expression": NodeKind.INDEX,
            "range_expression": NodeKind.RANGE,
        }.get(node_type, NodeKind.OTHER)
        return SyntaxNode(kind=kind, span=Span.of(node), children=children)

    def _expression_children(self, node: Node) -> list[Node]:
        return [
            child
            for child in node.named_children
            if child.type not in _COMMENT_TYPES and child.type != "attribute_item"
        ]

    def _arguments(self, node: Node) -> list[Node]:
        arguments = node.child_by_field_name("arguments")
        return self._expression_children(arguments) if arguments is not None else []

    def _call_target(self, node: Node) -> Node | None:
        target = node.child_by_field_name("function")
        if target is not None and target.type == "generic_function":
            target = target.child_by_field_name("function") or target
        return target

    def _method_target(self, node: Node) -> tuple[Node, Node] | None:
        """receiver and method name of a `receiver.method(...)` call."""
        target = self._call_target(node)
        if target is None or target.type != "field_expression":
            return None
        receiver = target.child_by_field_name("value")
        method = target.child_by_field_name("field")
        if receiver is None or method is None:
            return None
        return receiver, method

    def _call(self, node: Node, children: tuple[SyntaxNode, ...]) -> SyntaxNode:
        method = self._method_target(node)
        if method is not None:
            return SyntaxNode(
                kind=NodeKind.METHOD_CALL,
                # from the method name to the closing paren
                span=Span.between(method[1], node),
                children=children,
                name=self.text(method[1]),
            )

        function = node.child_by_field_name("function")
        target = self._call_target(node)
        path = ""
        if function is not None:
            path = "".join(self.text(target if target is not None else function).split())
        return SyntaxNode(
            kind=NodeKind.CALL,
            span=Span.of(node),
            children=children,
            name=path.rsplit("::", 1)[-1],
            path=path,
        )

    def _macro(self, node: Node) -> SyntaxNode:
        macro = node.child_by_field_name("macro")
        path = "".join(self.text(macro).split()) if macro is not None else ""
        children: list[SyntaxNode] = []
        for child in node.named_children:
            if child.type == "token_tree":
                children.extend(self._token_tree_sites(child))
        return SyntaxNode(
            kind=NodeKind.MACRO_CALL,
            span=Span.of(node),
            children=tuple(children),
            name=path.rsplit("::", 1)[-1],
            path=path,
        )

    def _token_tree_sites(self, tree: Node) -> list[SyntaxNode]:
        """
        recover nested macro calls, method calls and indexing from a macro
        token tree.

        tree-sitter leaves macro arguments as raw tokens, so this looks for
        `name!(...)`, `.name(...)` and `operand[...]` token shapes.
        punctuation is checked against the source bytes between tokens.
        """
        tokens = [child for child in tree.named_children if child.type not in _COMMENT_TYPES]
        sites: list[SyntaxNode] = []
        # a bracket tree already recovered as the index of the previous token
        indexed = -1
        index = 0
        while index < len(tokens):
            token = tokens[index]
            following = tokens[index + 1] if index + 1 < len(tokens) else None

            if following is not None and self._is_index(token, following):
                operand = SyntaxNode(
                    kind=NodeKind.OTHER,
                    span=Span.of(token),
                    children=tuple(self._token_tree_sites(token))
                    if token.type == "token_tree" and index != indexed
                    else (),
                )
                sites.append(
                    SyntaxNode(
                        kind=NodeKind.INDEX,
                        span=Span.between(token, following),
                        children=(operand, self._bracket_contents(following)),
                    )
                )
                indexed = index + 1
                index += 1
                continue

            if token.type == "token_tree":
                if index != indexed:
                    sites.extend(self._token_tree_sites(token))
                index += 1
                continue

            if token.type == "identifier" and following is not None and following.type == "token_tree":
                gap = self.source[token.end_byte : following.start_byte].strip()
                if gap == b"!":
                    sites.append(
                        SyntaxNode(
                            kind=NodeKind.MACRO_CALL,
                            span=Span.between(token, following),
                            children=tuple(self._token_tree_sites(following)),
                            name=self.text(token),
                            path=self.text(token),
                        )
                    )
                    index += 2
                    continue
                if not gap and self._preceded_by_dot(token):
                    sites.append(
                        SyntaxNode(
                            kind=NodeKind.METHOD_CALL,
                            span=Span.between(token, following),
                            children=tuple(self._token_tree_sites(following)),
                            name=self.text(token),
                        )
                    )
                    index += 2
                    continue

            index += 1
        return sites

    def _is_index(self, token: Node, following: Node) -> bool:
        """whether `following` is a `[...]` tree directly indexing `token`."""
        if following.type != "token_tree" or not self.text(following).startswith("["):
            return False
        if token.end_byte != following.start_byte:
            return False
        if token.type in ("identifier", "self"):
            return True
        return token.type == "token_tree" and self.text(token)[:1] in ("(", "[")

    def _bracket_contents(self, bracket: Node) -> SyntaxNode:
        inner = [child for child in bracket.named_children if child.type not in _COMMENT_TYPES]
        if len(inner) == 1 and inner[0].type in _LITERAL_TYPES:
            return SyntaxNode(kind=NodeKind.LITERAL, span=Span.of(inner[0]), name=self.text(inner[0]))
        return SyntaxNode(
            kind=NodeKind.OTHER,
            span=Span.of(bracket),
            children=tuple(self._token_tree_sites(bracket)),
        )

    def _preceded_by_dot(self, token: Node) -> bool:
        window = self.source[max(0, token.start_byte - 64) : token.start_byte]
        return window.rstrip().endswith(b".")


def _doc_from_trivia(text: str) -> str | None:
    """
    extract doc text from a comment or attribute preceding an item.

    returns: `str | None`
        the doc text with markers stripped, or none if this is not an outer
        doc comment or `#[doc = "..."]` attribute
    """
    text = text.strip()

    if text.startswith("///") and not text.startswith("////"):
        line = text[3:]
        return line[1:] if line.startswith(" ") else line

    if text.startswith("/**") and not text.startswith("/***") and text != "/**/":
        inner = text[3:-2] if text.endswith("*/") else text[3:]
        lines = []
        for line in inner.splitlines():
            line = line.strip()
            if line.startswith("*"):
                line = line[1:].lstrip()
            lines.append(line)
        return "\n".join(lines).strip()

    if match := _DOC_ATTRIBUTE.match(text):
        return match.group("text").replace('\\"', '"').replace("\\n", "\n")

    return None


def _first_error(root: Node) -> Node | None:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


def parse_source(source: str | bytes, filename: str = "<string>") -> SyntaxNode:
    """
    parse rust source code into the adapted syntax tree.

    arguments:
        `source: str | bytes`
            rust source code
        `filename: str`
            name used in error messages

    returns: `SyntaxNode`
        the `SOURCE_FILE` root node

    raises:
        `RustSyntaxError`
            if the source does not parse cleanly
    """
    data = source.encode("utf-8") if isinstance(source, str) else source
    tree = Parser(RUST_LANGUAGE).parse(data)

    if tree.root_node.has_error:
        error = _first_error(tree.root_node) or tree.root_node
        line, column = error.start_point[0] + 1, error.start_point[1]
        lines = data.decode("utf-8", errors="replace").splitlines()
        line_text = lines[line - 1] if 0 < line <= len(lines) else ""
        logger.debug("parse error in %s at %d:%d", filename, line, column)
        raise RustSyntaxError("invalid rust syntax", (filename, line, column + 1, line_text))

    return _TreeAdapter(data).convert_file(tree.root_node)


def parse_file(file_path: str | Path) -> SyntaxNode:
    """
    parse a rust source file into the adapted syntax tree.

    arguments:
        `file_path: str | Path`
            path to the `.rs` file

    returns: `SyntaxNode`
        the `SOURCE_FILE` root node

    raises:
        `RustSyntaxError`
            if the file does not parse cleanly
        `OSError`
            if the file cannot be read
    """
    file_path = Path(file_path)
    return parse_source(file_path.read_bytes(), filename=str(file_path))
