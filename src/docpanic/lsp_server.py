"""
language server protocol implementation for docpanic.

publishes undocumented-panic warnings for open rust documents and shows
the panic sites of a function on hover.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import final

from lsprotocol import types
from pygls.lsp.server import LanguageServer
from pygls.uris import to_fs_path

from .analyser import AnalysisResult, Diagnostic, PanicAnalyser
from .config import Config
from .walker import Finding

logger = logging.getLogger(__name__)

DIAGNOSTIC_SOURCE = "docpanic"
DIAGNOSTIC_CODE = "undocumented-panic"


@final
class DocpanicLanguageServer(LanguageServer):
    """
    lsp server for docpanic.

    provides:
    - diagnostics for each undisclosed panic site of a public function
    - hover information listing a function's panic sites

    attributes:
        `config: Config`
            configuration settings
        `analyser: PanicAnalyser`
            analysis engine
        `_results: dict[str, AnalysisResult]`
            latest analysis per document uri
        `_debounce_tasks: dict[str, asyncio.Task[None]]`
            pending debounced analyses per document uri
    """

    config: Config
    analyser: PanicAnalyser
    _results: dict[str, AnalysisResult]
    _debounce_tasks: dict[str, asyncio.Task[None]]

    def __init__(self, config: Config | None = None) -> None:
        """
        initialise the lsp server.

        arguments:
            `config: Config | None`
                configuration settings (default: auto-load from the cwd)
        """
        super().__init__("docpanic", "0.1.0")  # pyright: ignore[reportUnknownMemberType]

        self.config = config or Config.load()
        self.analyser = PanicAnalyser(self.config)
        self._results = {}
        self._debounce_tasks = {}

        self._register_handlers()

    def _register_handlers(self) -> None:
        """Register lsp method handlers."""

        @self.feature(types.TEXT_DOCUMENT_DID_OPEN)
        def on_open(params: types.DidOpenTextDocumentParams) -> None:
            self.analyse_document(params.text_document.uri, params.text_document.text)

        _ = on_open  # registered via decorator

        @self.feature(types.TEXT_DOCUMENT_DID_CHANGE)
        def on_change(params: types.DidChangeTextDocumentParams) -> None:
            self.schedule_analysis(params.text_document.uri)

        _ = on_change  # registered via decorator

        @self.feature(types.TEXT_DOCUMENT_DID_SAVE)
        def on_save(params: types.DidSaveTextDocumentParams) -> None:
            self.analyse_document(params.text_document.uri)

        _ = on_save  # registered via decorator

        @self.feature(types.TEXT_DOCUMENT_DID_CLOSE)
        def on_close(params: types.DidCloseTextDocumentParams) -> None:
            self.forget_document(params.text_document.uri)

        _ = on_close  # registered via decorator

        @self.feature(types.TEXT_DOCUMENT_HOVER)
        def on_hover(params: types.HoverParams) -> types.Hover | None:
            return self.hover(params.text_document.uri, params.position)

        _ = on_hover  # registered via decorator

    def schedule_analysis(self, uri: str) -> None:
        """re-analyse a document once edits pause for `lsp.debounce_ms`."""
        if task := self._debounce_tasks.get(uri):
            task.cancel()
        self._debounce_tasks[uri] = asyncio.create_task(self._debounced_analysis(uri))

    def forget_document(self, uri: str) -> None:
        """drop cached results and pending analysis for a closed document."""
        self._results.pop(uri, None)
        if task := self._debounce_tasks.pop(uri, None):
            task.cancel()

    async def _debounced_analysis(self, uri: str) -> None:
        await asyncio.sleep(self.config.lsp.debounce_ms / 1000)
        self._debounce_tasks.pop(uri, None)
        self.analyse_document(uri)

    def analyse_document(self, uri: str, source: str | None = None) -> AnalysisResult | None:
        """
        analyse a document and publish its diagnostics.

        arguments:
            `uri: str`
                document uri
            `source: str | None`
                document text; read from the workspace when none

        returns: `AnalysisResult | None`
            the analysis, or none for non-file and non-rust documents
        """
        if not uri.startswith("file://"):
            return None

        file_path = to_fs_path(uri)
        if file_path is None or not file_path.endswith(".rs"):
            return None

        if source is None:
            source = self.workspace.get_text_document(uri).source

        result = self.analyser.analyse_source(source, Path(file_path))
        self._results[uri] = result

        self.text_document_publish_diagnostics(
            types.PublishDiagnosticsParams(uri=uri, diagnostics=self.to_lsp_diagnostics(result))
        )
        return result

    def to_lsp_diagnostics(self, result: AnalysisResult) -> list[types.Diagnostic]:
        """
        convert an analysis into lsp diagnostics, one per panic site.

        the list is capped at `lsp.max_diagnostics_per_file`.
        """
        diagnostics: list[types.Diagnostic] = [
            self._problem_to_lsp(d) for d in result.diagnostics
        ]
        for finding in result.findings:
            for site in finding.sites:
                diagnostics.append(
                    types.Diagnostic(
                        range=types.Range(
                            start=types.Position(
                                line=site.span.start_line - 1,
                                character=site.span.start_column,
                            ),
                            end=types.Position(
                                line=site.span.end_line - 1,
                                character=site.span.end_column,
                            ),
                        ),
                        message=(
                            f"{site.detail} can panic, but the docs of public "
                            f"function `{finding.qualified_name}` do not mention it"
                        ),
                        severity=types.DiagnosticSeverity.Warning,
                        source=DIAGNOSTIC_SOURCE,
                        code=DIAGNOSTIC_CODE,
                    )
                )
        return diagnostics[: self.config.lsp.max_diagnostics_per_file]

    def _problem_to_lsp(self, diagnostic: Diagnostic) -> types.Diagnostic:
        position = types.Position(line=diagnostic.line - 1, character=diagnostic.column)
        return types.Diagnostic(
            range=types.Range(start=position, end=position),
            message=diagnostic.message,
            severity=types.DiagnosticSeverity.Error
            if diagnostic.severity == "error"
            else types.DiagnosticSeverity.Warning,
            source=DIAGNOSTIC_SOURCE,
        )

    def hover(self, uri: str, position: types.Position) -> types.Hover | None:
        """
        describe the panic sites of the flagged function under the cursor.

        arguments:
            `uri: str`
                document uri
            `position: types.Position`
                0-indexed cursor position

        returns: `types.Hover | None`
            markdown hover, or none if no flagged function is there
        """
        result = self._results.get(uri)
        if result is None:
            return None

        line = position.line + 1
        for finding in result.findings:
            if finding.span.start_line <= line <= finding.span.end_line:
                return types.Hover(
                    contents=types.MarkupContent(
                        kind=types.MarkupKind.Markdown,
                        value=_hover_markdown(finding),
                    )
                )
        return None


def _hover_markdown(finding: Finding) -> str:
    lines = [f"**Undocumented panics** in `{finding.qualified_name}`:", ""]
    for site in finding.sites:
        lines.append(f"- line {site.span.start_line}: `{site.detail}` ({site.kind.value})")
    lines.append("")
    lines.append("consider adding a `# Panics` section to its docs")
    return "\n".join(lines)


def create_server(config: Config | None = None) -> DocpanicLanguageServer:
    """
    create and configure the lsp server.

    arguments:
        `config: Config | None`
            configuration settings

    returns: `DocpanicLanguageServer`
        configured lsp server
    """
    return DocpanicLanguageServer(config)


def run_server_stdio(config: Config | None = None) -> None:
    """run the lsp server over stdio."""
    logger.info("starting docpanic language server on stdio")
    create_server(config).start_io()
