"""
docpanic: finds public rust functions that can panic without saying so.

this package parses rust sources, walks every function and method that is
reachable from outside the crate, and reports those whose bodies contain
candidate panic sites (panicking macros, unwraps, indexing, checked
arithmetic) while their doc comments never mention panicking. it can be run
from the command line or as an lsp server for editor feedback.
"""

from __future__ import annotations

from .analyser import AnalysisResult, Diagnostic, PanicAnalyser
from .config import AnalysisConfig, Config, LspConfig
from .docs import DocCoverageChecker, documents_panics
from .predicate import PanicKind, PanicSite, PredicateOptions, classify
from .syntax import NodeKind, RustSyntaxError, Span, SyntaxNode, Visibility, parse_source
from .visibility import is_externally_visible
from .walker import AstWalker, Finding, walk

__version__ = "0.1.0"
__all__ = [
    "AnalysisConfig",
    "AnalysisResult",
    "AstWalker",
    "Config",
    "Diagnostic",
    "DocCoverageChecker",
    "Finding",
    "LspConfig",
    "NodeKind",
    "PanicAnalyser",
    "PanicKind",
    "PanicSite",
    "PredicateOptions",
    "RustSyntaxError",
    "Span",
    "SyntaxNode",
    "Visibility",
    "classify",
    "documents_panics",
    "is_externally_visible",
    "parse_source",
    "walk",
]
