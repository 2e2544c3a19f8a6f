"""tests for the rust syntax tree adapter."""

from __future__ import annotations

from pathlib import Path

import pytest

from docpanic.syntax import (
    NodeKind,
    RustSyntaxError,
    Span,
    SyntaxNode,
    Visibility,
    parse_file,
    parse_source,
)


def _first(tree: SyntaxNode, kind: NodeKind, name: str | None = None) -> SyntaxNode:
    for node in tree.walk():
        if node.kind is kind and (name is None or node.name == name):
            return node
    raise AssertionError(f"no {kind} node named {name!r}")


class TestSpan:
    """tests for the Span dataclass."""

    def test_str(self) -> None:
        """test the compact line:column rendering."""
        assert str(Span(1, 4, 2, 0)) == "1:4-2:0"

    def test_contains(self) -> None:
        """test span containment."""
        outer = Span(1, 0, 10, 1)
        inner = Span(2, 4, 2, 12)

        assert outer.contains(inner)
        assert not inner.contains(outer)
        assert outer.contains(outer)


class TestItems:
    """tests for item conversion."""

    def test_root_is_public_source_file(self) -> None:
        """test that the root node is an implicitly public source file."""
        tree = parse_source("fn f() {}\n")

        assert tree.kind is NodeKind.SOURCE_FILE
        assert tree.visibility is Visibility.PUBLIC

    def test_function_visibility(self) -> None:
        """test pub, restricted and private markers."""
        tree = parse_source(
            "pub fn a() {}\npub(crate) fn b() {}\npub(super) fn c() {}\nfn d() {}\n"
        )
        markers = {child.name: child.visibility for child in tree.children}

        assert markers == {
            "a": Visibility.PUBLIC,
            "b": Visibility.RESTRICTED,
            "c": Visibility.RESTRICTED,
            "d": Visibility.PRIVATE,
        }

    def test_function_body(self) -> None:
        """test that a function's body is kept as a block."""
        tree = parse_source("pub fn f() { let x = 1; }\n")
        function = tree.children[0]

        assert function.kind is NodeKind.FUNCTION
        assert function.body is not None
        assert function.body.kind is NodeKind.BLOCK
        assert function.span.start_line == 1

    def test_module_with_body(self) -> None:
        """test that inline modules become scopes."""
        tree = parse_source("pub mod outer {\n    fn inner() {}\n}\n")
        module = tree.children[0]

        assert module.kind is NodeKind.MODULE
        assert module.name == "outer"
        assert module.visibility is Visibility.PUBLIC
        assert [child.name for child in module.children] == ["inner"]

    def test_out_of_line_module_dropped(self) -> None:
        """test that `mod x;` declarations produce no node."""
        tree = parse_source("mod other;\npub fn f() {}\n")

        assert [child.kind for child in tree.children] == [NodeKind.FUNCTION]

    def test_impl_block(self) -> None:
        """test that inherent impl blocks are transparent public scopes."""
        tree = parse_source(
            "pub struct Foo;\nimpl Foo {\n    pub fn new() -> Self { Foo }\n    fn hidden() {}\n}\n"
        )
        impl = _first(tree, NodeKind.IMPL)

        assert impl.name == "Foo"
        assert impl.visibility is Visibility.PUBLIC
        assert [(c.name, c.visibility) for c in impl.children] == [
            ("new", Visibility.PUBLIC),
            ("hidden", Visibility.PRIVATE),
        ]

    def test_trait_impl_methods_are_public(self) -> None:
        """test that methods of a trait impl take the public marker."""
        tree = parse_source(
            "struct Foo;\nimpl Default for Foo {\n    fn default() -> Self { Foo }\n}\n"
        )
        method = _first(tree, NodeKind.FUNCTION, "default")

        assert method.visibility is Visibility.PUBLIC

    def test_trait_items(self) -> None:
        """test bodiless and default trait methods."""
        tree = parse_source(
            "pub trait Shape {\n    fn area(&self) -> f64;\n    fn twice(&self) -> f64 { 2.0 }\n}\n"
        )
        trait = tree.children[0]

        assert trait.kind is NodeKind.TRAIT
        assert trait.name == "Shape"
        area, twice = trait.children
        assert area.body is None
        assert area.visibility is Visibility.PUBLIC
        assert twice.body is not None


class TestDocText:
    """tests for doc comment extraction."""

    def test_line_doc_comments(self) -> None:
        """test `///` comments."""
        tree = parse_source("/// Hello\n/// world\npub fn f() {}\n")

        assert tree.children[0].doc == "Hello\nworld"

    def test_block_doc_comment(self) -> None:
        """test `/** */` comments."""
        tree = parse_source("/** Block doc */\npub fn f() {}\n")

        assert tree.children[0].doc == "Block doc"

    def test_doc_attribute(self) -> None:
        """test `#[doc = \"...\"]` attributes."""
        tree = parse_source('#[doc = "Panics sometimes"]\npub fn f() {}\n')

        assert tree.children[0].doc == "Panics sometimes"

    def test_attributes_between_doc_and_item(self) -> None:
        """test that other attributes do not cut the doc comment off."""
        tree = parse_source("/// Doc\n#[inline]\npub fn f() {}\n")

        assert tree.children[0].doc == "Doc"

    def test_plain_comments_are_not_docs(self) -> None:
        """test that `//` and `////` comments are ignored."""
        tree = parse_source("// not a doc\n//// nor this\npub fn f() {}\n")

        assert tree.children[0].doc == ""


class TestExpressions:
    """tests for expression conversion."""

    def test_method_call(self) -> None:
        """test method calls and their tight span."""
        tree = parse_source("pub fn f(x: Option<u8>) -> u8 {\n    x.unwrap()\n}\n")
        call = _first(tree, NodeKind.METHOD_CALL)

        assert call.name == "unwrap"
        # span starts at the method name, not at the receiver
        assert call.span.start_line == 2
        assert call.span.start_column == 6

    def test_path_call(self) -> None:
        """test plain calls keep their full path."""
        tree = parse_source("pub fn f() {\n    std::process::abort();\n}\n")
        call = _first(tree, NodeKind.CALL)

        assert call.path == "std::process::abort"
        assert call.name == "abort"

    def test_generic_call(self) -> None:
        """test that turbofish arguments are dropped from the path."""
        tree = parse_source("pub fn f() {\n    make::<u8>();\n}\n")

        assert _first(tree, NodeKind.CALL).path == "make"

    def test_macro_call(self) -> None:
        """test macro invocations."""
        tree = parse_source('pub fn f() {\n    std::panic!("no");\n}\n')
        macro = _first(tree, NodeKind.MACRO_CALL)

        assert macro.name == "panic"
        assert macro.path == "std::panic"

    def test_macro_token_tree_recovery(self) -> None:
        """test that calls inside macro arguments are recovered."""
        tree = parse_source(
            "pub fn f(v: Vec<u8>) {\n    assert!(v.get(0).unwrap() > &0);\n}\n"
        )
        macro = _first(tree, NodeKind.MACRO_CALL, "assert")
        names = [(child.kind, child.name) for child in macro.walk() if child is not macro]

        assert (NodeKind.METHOD_CALL, "unwrap") in names
        assert (NodeKind.METHOD_CALL, "get") in names

    def test_nested_macro_recovery(self) -> None:
        """test that macros inside macro arguments are recovered."""
        tree = parse_source('pub fn f() {\n    println!("{}", unreachable!());\n}\n')
        names = [node.name for node in tree.walk() if node.kind is NodeKind.MACRO_CALL]

        assert names == ["println", "unreachable"]

    def test_macro_index_recovery(self) -> None:
        """test that indexing inside macro arguments is recovered."""
        tree = parse_source(
            'pub fn f(v: &[u8], i: usize) {\n    println!("{} {}", v[i], v[0]);\n}\n'
        )
        macro = _first(tree, NodeKind.MACRO_CALL, "println")
        indexes = [node for node in macro.walk() if node.kind is NodeKind.INDEX]

        assert len(indexes) == 2
        assert indexes[0].children[1].kind is NodeKind.OTHER
        assert indexes[1].children[1].kind is NodeKind.LITERAL
        assert indexes[1].children[1].name == "0"

    def test_macro_chained_index_recovery(self) -> None:
        """test `m[i][j]` and `f(x)[i]` shapes inside macro arguments."""
        tree = parse_source(
            'pub fn f(m: &[Vec<u8>], i: usize) {\n    println!("{} {}", m[i][i], g(i)[i]);\n}\n'
        )
        indexes = [node for node in tree.walk() if node.kind is NodeKind.INDEX]

        assert len(indexes) == 3

    def test_macro_brackets_that_are_not_indexing(self) -> None:
        """test that `vec![...]` and spaced brackets are not indexing."""
        tree = parse_source('pub fn f() {\n    println!("{:?}", vec![1, 2]);\n}\n')

        assert [node for node in tree.walk() if node.kind is NodeKind.INDEX] == []

    def test_deep_operator_chain(self) -> None:
        """test that long left-nested chains convert without recursion."""
        terms = " + ".join(["x"] * 1200)
        tree = parse_source(f"pub fn f(x: u32) -> u32 {{\n    {terms}\n}}\n")

        binaries = [node for node in tree.walk() if node.kind is NodeKind.BINARY]

        assert len(binaries) == 1199
        assert all(node.operator == "+" for node in binaries)

    def test_index_and_range(self) -> None:
        """test index expressions and their operands."""
        tree = parse_source("pub fn f(v: &[u8]) -> &[u8] {\n    &v[1..3]\n}\n")
        index = _first(tree, NodeKind.INDEX)

        assert index.children[1].kind is NodeKind.RANGE
        assert [c.kind for c in index.children[1].children] == [
            NodeKind.LITERAL,
            NodeKind.LITERAL,
        ]

    def test_binary_and_compound_assignment(self) -> None:
        """test that operators are recorded."""
        tree = parse_source("pub fn f(mut a: u8, b: u8) -> u8 {\n    a += b;\n    a * 2\n}\n")

        assert _first(tree, NodeKind.COMPOUND_ASSIGN).operator == "+="
        assert _first(tree, NodeKind.BINARY).operator == "*"

    def test_literal_text(self) -> None:
        """test that literals carry their source text."""
        tree = parse_source("pub fn f() -> u32 {\n    42u32\n}\n")

        assert _first(tree, NodeKind.LITERAL).name == "42u32"

    def test_closure(self) -> None:
        """test closures are kept inside function bodies."""
        tree = parse_source("pub fn f() {\n    let g = |x: u8| x;\n}\n")

        assert _first(tree, NodeKind.CLOSURE) is not None

    def test_walk_is_pre_order(self) -> None:
        """test that walk yields parents before children, in source order."""
        tree = parse_source("pub fn a() {}\npub fn b() {}\n")
        functions = [node.name for node in tree.walk() if node.kind is NodeKind.FUNCTION]

        assert next(iter(tree.walk())) is tree
        assert functions == ["a", "b"]


class TestParseErrors:
    """tests for malformed input."""

    def test_syntax_error(self) -> None:
        """test that malformed code raises RustSyntaxError."""
        with pytest.raises(RustSyntaxError) as excinfo:
            _ = parse_source("pub fn f( {\n", filename="bad.rs")

        assert excinfo.value.filename == "bad.rs"
        assert excinfo.value.lineno is not None

    def test_syntax_error_is_syntax_error(self) -> None:
        """test that callers can catch the builtin SyntaxError."""
        with pytest.raises(SyntaxError):
            _ = parse_source("impl {{{\n")

    def test_parse_file(self, tmp_path: Path) -> None:
        """test parsing from disk."""
        path = tmp_path / "lib.rs"
        _ = path.write_text("pub fn f() {}\n")

        tree = parse_file(path)

        assert tree.children[0].name == "f"
