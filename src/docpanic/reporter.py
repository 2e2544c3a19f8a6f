"""
rendering of analysis results.

findings are grouped by file (in the order files were analysed) and printed
either as text, colourised through rich when the terminal allows it, or as
json for machine consumption.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import IO, Any

from rich.console import Console
from rich.markup import escape

from .analyser import AnalysisResult, Diagnostic
from .walker import Finding


def group_by_file(findings: Iterable[Finding]) -> dict[Path, list[Finding]]:
    """
    group findings by file, keeping first-appearance order.

    arguments:
        `findings: Iterable[Finding]`
            findings in traversal order

    returns: `dict[Path, list[Finding]]`
        findings per file; order inside each file is unchanged
    """
    grouped: dict[Path, list[Finding]] = {}
    for finding in findings:
        grouped.setdefault(finding.file_path, []).append(finding)
    return grouped


def format_path(file_path: Path, use_absolute: bool) -> str:
    """
    format a path for output.

    uses cwd-relative paths by default for human readability,
    or absolute paths when explicitly requested or for machine output.
    """
    if use_absolute:
        return str(file_path.resolve())

    try:
        return str(file_path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(file_path.resolve())


def make_console(color: str = "auto", file: IO[str] | None = None) -> Console:
    """
    create a rich console honouring the `--color` choice.

    arguments:
        `color: str`
            'auto', 'always' or 'never'
        `file: IO[str] | None`
            where to write (default: stdout)

    returns: `Console`
        configured console
    """
    if color == "never":
        return Console(file=file, no_color=True, highlight=False, emoji=False, soft_wrap=True)
    if color == "always":
        return Console(file=file, force_terminal=True, highlight=False, emoji=False, soft_wrap=True)
    return Console(file=file, highlight=False, emoji=False, soft_wrap=True)


def summary_line(result: AnalysisResult) -> str:
    count = len(result.findings)
    noun = "undocumented panic" if count == 1 else "undocumented panics"
    return f"{count} {noun} found"


def render_text(
    result: AnalysisResult,
    console: Console,
    *,
    use_absolute: bool = False,
    verbose: bool = False,
) -> None:
    """
    print findings and diagnostics as text.

    each finding prints as `path:line:col: warning: ...` followed by one
    indented line per site.
    """
    for diagnostic in result.diagnostics:
        _render_diagnostic(diagnostic, console, use_absolute)

    for file_path, findings in group_by_file(result.findings).items():
        path_str = escape(format_path(file_path, use_absolute))
        for finding in findings:
            count = len(finding.sites)
            console.print(
                f"[bold]{path_str}:{finding.span.start_line}:{finding.span.start_column}[/bold]: "
                f"[yellow]warning[/yellow]: public function [cyan]{escape(finding.qualified_name)}"
                f"[/cyan] can panic but its docs do not say so "
                f"({count} site{'s' if count != 1 else ''})"
            )
            for site in finding.sites:
                console.print(
                    f"    {path_str}:{site.span.start_line}:{site.span.start_column}: "
                    f"{site.kind.value}: {escape(site.detail)}"
                )

    console.print(summary_line(result))

    if verbose:
        console.print()
        console.print("detailed summary:")
        console.print(f"  files analysed: {len(set(result.files_analysed))}")
        console.print(f"  functions found: {result.functions_found}")
        console.print(f"  panic sites: {sum(len(f.sites) for f in result.findings)}")


def _render_diagnostic(diagnostic: Diagnostic, console: Console, use_absolute: bool) -> None:
    style = "red" if diagnostic.severity == "error" else "yellow"
    path_str = escape(format_path(diagnostic.file_path, use_absolute))
    console.print(
        f"[bold]{path_str}:{diagnostic.line}:{diagnostic.column}[/bold]: "
        f"[{style}]{diagnostic.severity}[/{style}]: {escape(diagnostic.message)}"
    )


def to_json(result: AnalysisResult) -> dict[str, Any]:
    """
    convert results into a json-serialisable dictionary.

    paths are always absolute.
    """
    return {
        "files": [
            {
                "file": format_path(file_path, use_absolute=True),
                "findings": [_finding_to_json(finding) for finding in findings],
            }
            for file_path, findings in group_by_file(result.findings).items()
        ],
        "diagnostics": [
            {
                "file": format_path(d.file_path, use_absolute=True),
                "line": d.line,
                "column": d.column,
                "message": d.message,
                "severity": d.severity,
            }
            for d in result.diagnostics
        ],
        "summary": {
            "files_analysed": len(set(result.files_analysed)),
            "functions_found": result.functions_found,
            "issues_found": len(result.findings),
        },
    }


def _finding_to_json(finding: Finding) -> dict[str, Any]:
    return {
        "name": finding.name,
        "qualified_name": finding.qualified_name,
        "span": _span_to_json(finding.span),
        "sites": [
            {"kind": site.kind.value, "detail": site.detail, "span": _span_to_json(site.span)}
            for site in finding.sites
        ],
    }


def _span_to_json(span: Any) -> dict[str, int]:
    return {
        "start_line": span.start_line,
        "start_column": span.start_column,
        "end_line": span.end_line,
        "end_column": span.end_column,
    }


def render_json(result: AnalysisResult) -> str:
    return json.dumps(to_json(result), indent=2)
