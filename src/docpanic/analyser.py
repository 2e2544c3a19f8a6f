"""
analysis driver for docpanic.

ties the pieces together for whole files and crates: read, parse, walk,
apply ignore comments, and collect the results. per-file failures (bad
syntax, unreadable files) become diagnostics so one broken file never
stops the rest of the crate from being analysed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, replace
from functools import partial
from pathlib import Path

from .config import Config
from .discovery import find_rust_files
from .docs import DocCoverageChecker
from .ignore_parser import parse_ignore_comments
from .syntax import parse_source
from .walker import AstWalker, Finding

logger = logging.getLogger(__name__)


@dataclass
class Diagnostic:
    """
    a problem with the analysis itself, not with the analysed code.

    attributes:
        `file_path: Path`
            file the problem concerns
        `line: int`
            line number (1-indexed)
        `column: int`
            column number (0-indexed)
        `message: str`
            human-readable message
        `severity: str`
            'error' or 'warning'
    """

    file_path: Path
    line: int
    column: int
    message: str
    severity: str = "error"


@dataclass
class AnalysisResult:
    """
    result of analysing one or more files.

    attributes:
        `findings: list[Finding]`
            undocumented panics, grouped by file in analysis order
        `diagnostics: list[Diagnostic]`
            parse errors, unreadable files and malformed ignore comments
        `files_analysed: list[Path]`
            files that were analysed
        `functions_found: int`
            functions and methods seen (public or not)
    """

    findings: list[Finding] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    files_analysed: list[Path] = field(default_factory=list)
    functions_found: int = 0

    def extend(self, other: AnalysisResult) -> None:
        """append another result to this one."""
        self.findings.extend(other.findings)
        self.diagnostics.extend(other.diagnostics)
        self.files_analysed.extend(other.files_analysed)
        self.functions_found += other.functions_found

    @property
    def has_errors(self) -> bool:
        return any(d.severity == "error" for d in self.diagnostics)


class PanicAnalyser:
    """
    analyses rust files for undocumented panics.

    attributes:
        `config: Config`
            configuration settings
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self._options = config.predicate_options()
        self._checker = DocCoverageChecker(
            headings=tuple(config.analysis.disclosure_headings),
            keywords=tuple(config.analysis.disclosure_keywords),
        )
        logger.debug(
            "profile %s, overflow checks %s",
            config.analysis.profile,
            "on" if self._options.overflow_checks else "off",
        )

    def analyse_source(self, source: str, file_path: str | Path) -> AnalysisResult:
        """
        analyse rust source code.

        arguments:
            `source: str`
                the source text
            `file_path: str | Path`
                path the findings are labelled with

        returns: `AnalysisResult`
            findings for this source, or a diagnostic if it does not parse
        """
        file_path = Path(file_path)
        result = AnalysisResult()

        try:
            tree = parse_source(source, filename=str(file_path))
        except SyntaxError as e:
            result.diagnostics.append(
                Diagnostic(
                    file_path=file_path,
                    line=e.lineno or 1,
                    column=max((e.offset or 1) - 1, 0),
                    message=f"failed to parse file: {e.msg}",
                )
            )
            return result
        except RecursionError:
            logger.warning("%s nests too deeply to analyse", file_path)
            result.diagnostics.append(
                Diagnostic(
                    file_path=file_path,
                    line=1,
                    column=0,
                    message="failed to parse file: nesting is too deep",
                )
            )
            return result

        walker = AstWalker(file_path, self._options, self._checker)
        findings = walker.walk(tree)

        ignores = parse_ignore_comments(source)
        for finding in findings:
            sites = tuple(site for site in finding.sites if not ignores.suppresses(site))
            if not sites:
                logger.debug("all sites of %s are ignored", finding.qualified_name)
                continue
            result.findings.append(
                finding if len(sites) == len(finding.sites) else replace(finding, sites=sites)
            )

        for invalid in ignores.invalid:
            result.diagnostics.append(
                Diagnostic(
                    file_path=file_path,
                    line=invalid.line,
                    column=0,
                    message=invalid.message,
                    severity="warning",
                )
            )

        result.files_analysed.append(file_path)
        result.functions_found = walker.declarations_seen
        return result

    def analyse_file(self, file_path: str | Path) -> AnalysisResult:
        """
        analyse a single rust file.

        arguments:
            `file_path: str | Path`
                path to the `.rs` file

        returns: `AnalysisResult`
            analysis results, or a diagnostic if the file could not be read
        """
        file_path = Path(file_path)
        logger.debug("analysing %s", file_path)

        try:
            source = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return AnalysisResult(
                diagnostics=[
                    Diagnostic(
                        file_path=file_path,
                        line=1,
                        column=0,
                        message=f"failed to read file: {e}",
                    )
                ]
            )

        return self.analyse_source(source, file_path)

    def analyse_files(self, file_paths: Iterable[str | Path]) -> AnalysisResult:
        """
        analyse several files, in parallel when `config.jobs` > 1.

        every file is walked independently; results are merged in the
        order the paths were given.

        arguments:
            `file_paths: Iterable[str | Path]`
                files to analyse

        returns: `AnalysisResult`
            combined results
        """
        paths = [Path(p) for p in file_paths]
        combined = AnalysisResult()

        if self.config.jobs <= 1 or len(paths) <= 1:
            for path in paths:
                combined.extend(self.analyse_file(path))
            return combined

        workers = min(self.config.jobs, len(paths))
        logger.debug("analysing %d files with %d workers", len(paths), workers)
        with ProcessPoolExecutor(max_workers=workers) as executor:
            for file_result in executor.map(partial(_analyse_worker, self.config), paths):
                combined.extend(file_result)
        return combined

    def analyse_project(self, project_root: str | Path | None = None) -> AnalysisResult:
        """
        analyse every relevant `.rs` file of a crate.

        arguments:
            `project_root: str | Path | None`
                crate root (default: from config)

        returns: `AnalysisResult`
            combined results
        """
        root = Path(project_root) if project_root is not None else self.config.project_root
        files = find_rust_files(
            root,
            exclude=self.config.exclude,
            respect_gitignore=self.config.respect_gitignore,
            include_tests=self.config.analysis.include_tests,
            include_examples=self.config.analysis.include_examples,
        )
        logger.info("analysing %d files in %s", len(files), root)
        return self.analyse_files(files)


def _analyse_worker(config: Config, file_path: Path) -> AnalysisResult:
    return PanicAnalyser(config).analyse_file(file_path)
