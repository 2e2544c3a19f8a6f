"""
configuration loading for docpanic.

this module handles loading and validation of configuration from
Cargo.toml (`[package.metadata.docpanic]` or `[workspace.metadata.docpanic]`),
.docpanic.toml, and environment variables.
"""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from .docs import DEFAULT_HEADINGS, DEFAULT_KEYWORDS
from .predicate import PanicKind, PredicateOptions

logger = logging.getLogger(__name__)

COLOR_CHOICES: Final[tuple[str, ...]] = ("auto", "always", "never")

# profiles cargo defines without an explicit `inherits`
_BUILTIN_PROFILE_PARENTS: Final[dict[str, str]] = {"test": "dev", "bench": "release"}


@dataclass
class LspConfig:
    """
    lsp server configuration settings.

    attributes:
        `debounce_ms: int`
            debounce interval in milliseconds
        `max_diagnostics_per_file: int`
            maximum number of diagnostics per file
    """

    debounce_ms: int = 500
    max_diagnostics_per_file: int = 100


@dataclass
class AnalysisConfig:
    """
    analysis configuration settings.

    attributes:
        `profile: str`
            cargo profile whose settings describe the analysed build
        `overflow_checks: bool | None`
            force integer overflow checks on or off; none reads the profile
        `disclosure_headings: list[str]`
            doc section titles that disclose panics
        `disclosure_keywords: list[str]`
            doc keywords that disclose panics when no heading is present
        `ignore_kinds: list[str]`
            panic site kinds never reported (e.g. 'index')
        `include_tests: bool`
            also analyse the crate's `tests/` directory
        `include_examples: bool`
            also analyse the crate's `examples/` directory
    """

    profile: str = "release"
    overflow_checks: bool | None = None
    disclosure_headings: list[str] = field(default_factory=lambda: list(DEFAULT_HEADINGS))
    disclosure_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_KEYWORDS))
    ignore_kinds: list[str] = field(default_factory=list)
    include_tests: bool = False
    include_examples: bool = False


@dataclass
class Config:
    """
    main configuration class for docpanic.

    attributes:
        `project_root: Path`
            root directory of the crate (where Cargo.toml lives)
        `exclude: list[str]`
            glob patterns for files/directories to exclude
        `respect_gitignore: bool`
            skip files ignored by .gitignore
        `jobs: int`
            number of worker processes for multi-file analysis
        `color: str`
            'auto', 'always' or 'never'
        `log_level: str`
            logging level name used when no cli flag overrides it
        `cargo_profiles: dict[str, dict[str, Any]]`
            the `[profile]` table read from Cargo.toml
        `analysis: AnalysisConfig`
            analysis behaviour configuration
        `lsp: LspConfig`
            lsp server configuration
    """

    project_root: Path = field(default_factory=lambda: Path(".").resolve())
    exclude: list[str] = field(default_factory=list)
    respect_gitignore: bool = True
    jobs: int = 1
    color: str = "auto"
    log_level: str = "warning"
    cargo_profiles: dict[str, dict[str, Any]] = field(default_factory=dict)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    lsp: LspConfig = field(default_factory=LspConfig)

    def __post_init__(self) -> None:
        """Ensure project_root is a path object."""
        if isinstance(self.project_root, str):
            self.project_root = Path(self.project_root)

    @classmethod
    def from_cargo_toml(cls, project_root: str | Path) -> Config | None:
        """
        Load configuration from Cargo.toml.

        the `[profile]` table is always picked up; docpanic settings come
        from `[package.metadata.docpanic]`, falling back to
        `[workspace.metadata.docpanic]`.

        arguments:
            `project_root: str | Path`
                crate root containing Cargo.toml

        returns: `Config | None`
            configuration object if Cargo.toml was readable, none otherwise
        """
        project_path = Path(project_root)
        data = _read_toml(project_path.joinpath("Cargo.toml"))
        if data is None:
            return None

        tool_config: dict[str, Any] = data.get("package", {}).get("metadata", {}).get(
            "docpanic"
        ) or data.get("workspace", {}).get("metadata", {}).get("docpanic", {})
        config = cls._from_dict(tool_config, project_path)
        config.cargo_profiles = {
            str(name): dict(table)
            for name, table in data.get("profile", {}).items()
            if isinstance(table, dict)
        }
        return config

    @classmethod
    def from_docpanic_toml(cls, project_root: str | Path) -> Config | None:
        """
        Load configuration from .docpanic.toml.

        arguments:
            `project_root: str | Path`
                project root directory containing .docpanic.toml

        returns: `Config | None`
            configuration object if found, none otherwise
        """
        project_path = Path(project_root)
        data = _read_toml(project_path.joinpath(".docpanic.toml"))
        if data is None:
            return None
        return cls._from_dict(data, project_path)

    def apply_environment(self, environ: Mapping[str, str] | None = None) -> Config:
        """
        Override settings from environment variables, in place.

        arguments:
            `environ: Mapping[str, str] | None`
                environment to read (default: `os.environ`)

        returns: `Config`
            this configuration, for chaining
        """
        env = os.environ if environ is None else environ

        if profile := env.get("DOCPANIC_PROFILE"):
            self.analysis.profile = profile

        if overflow := env.get("DOCPANIC_OVERFLOW_CHECKS"):
            self.analysis.overflow_checks = overflow.lower() in ("true", "1", "yes")

        if jobs := env.get("DOCPANIC_JOBS"):
            with suppress(ValueError):
                self.jobs = max(1, int(jobs))

        if debounce := env.get("DOCPANIC_DEBOUNCE_MS"):
            with suppress(ValueError):
                self.lsp.debounce_ms = int(debounce)

        if log_level := env.get("DOCPANIC_LOG"):
            self.log_level = log_level.lower()

        return self

    @classmethod
    def from_environment(cls) -> Config:
        """
        Load configuration from environment variables.

        returns: `Config`
            configuration with values from environment
        """
        return cls().apply_environment()

    @classmethod
    def load(cls, project_root: str | Path = ".") -> Config:
        """
        Load configuration from all available sources.

        sources are loaded in order of priority (later overrides earlier):
        1. default values
        2. Cargo.toml
        3. .docpanic.toml
        4. environment variables

        arguments:
            `project_root: str | Path`
                crate root directory

        returns: `Config`
            merged configuration from all sources
        """
        project_path = Path(project_root).resolve()

        config = cls(project_root=project_path)
        config.exclude = ["**/target/**", "**/.git/**"]

        if cargo_config := cls.from_cargo_toml(project_path):
            config = config.merge(cargo_config)

        if docpanic_config := cls.from_docpanic_toml(project_path):
            config = config.merge(docpanic_config)

        return config.apply_environment()

    def merge(self, other: Config) -> Config:
        """
        merge another configuration into this one.

        values from 'other' take precedence over this config wherever they
        differ from the defaults.

        arguments:
            `other: Config`
                configuration to merge

        returns: `Config`
            new merged configuration
        """
        defaults = Config()
        return Config(
            project_root=other.project_root
            if other.project_root != defaults.project_root
            else self.project_root,
            exclude=other.exclude if other.exclude else self.exclude,
            respect_gitignore=other.respect_gitignore
            if other.respect_gitignore != defaults.respect_gitignore
            else self.respect_gitignore,
            jobs=other.jobs if other.jobs != defaults.jobs else self.jobs,
            color=other.color if other.color != defaults.color else self.color,
            log_level=other.log_level if other.log_level != defaults.log_level else self.log_level,
            cargo_profiles=other.cargo_profiles if other.cargo_profiles else self.cargo_profiles,
            analysis=other.analysis if other.analysis != AnalysisConfig() else self.analysis,
            lsp=other.lsp if other.lsp != LspConfig() else self.lsp,
        )

    def resolve_overflow_checks(self) -> bool:
        """
        decide whether the analysed build traps on integer overflow.

        an explicit `overflow_checks` setting wins. otherwise the profile
        chain in Cargo.toml is followed (`inherits`, then cargo's built-in
        parents) until an `overflow-checks` key turns up; with none, the
        chain's root decides: `dev` checks, everything else does not.

        returns: `bool`
            true if `+`, `-`, `*` and friends can panic in this build
        """
        if self.analysis.overflow_checks is not None:
            return self.analysis.overflow_checks

        name = self.analysis.profile
        seen: set[str] = set()
        while name not in seen:
            seen.add(name)
            table = self.cargo_profiles.get(name, {})
            if "overflow-checks" in table:
                return bool(table["overflow-checks"])
            parent = table.get("inherits") or _BUILTIN_PROFILE_PARENTS.get(name)
            if parent is None:
                break
            name = str(parent)

        return name == "dev"

    def predicate_options(self) -> PredicateOptions:
        """
        build panic-site predicate options from this configuration.

        unknown names in `ignore_kinds` are logged and skipped.

        returns: `PredicateOptions`
            options for `docpanic.predicate.classify`
        """
        disabled: set[PanicKind] = set()
        for name in self.analysis.ignore_kinds:
            try:
                disabled.add(PanicKind(name.lower()))
            except ValueError:
                logger.warning("ignoring unknown panic kind in config: %s", name)

        return PredicateOptions(
            overflow_checks=self.resolve_overflow_checks(),
            disabled_kinds=frozenset(disabled),
        )

    @classmethod
    def _from_dict(cls, data: dict[str, Any], project_root: Path) -> Config:
        """
        Create configuration from a dictionary.

        arguments:
            `data: dict[str, Any]`
                configuration dictionary
            `project_root: Path`
                project root path

        returns: `Config`
            configuration object
        """
        config = cls(project_root=project_root)

        # basic settings
        if "exclude" in data:
            config.exclude = list(data["exclude"])
        if "respect_gitignore" in data:
            config.respect_gitignore = bool(data["respect_gitignore"])
        if "jobs" in data:
            config.jobs = max(1, int(data["jobs"]))
        if data.get("color") in COLOR_CHOICES:
            config.color = data["color"]
        if "log_level" in data:
            config.log_level = str(data["log_level"]).lower()

        # lsp settings
        if lsp_data := data.get("lsp", {}):
            config.lsp = LspConfig(
                debounce_ms=lsp_data.get("debounce_ms", 500),
                max_diagnostics_per_file=lsp_data.get("max_diagnostics_per_file", 100),
            )

        # analysis settings
        if analysis_data := data.get("analysis", {}):
            config.analysis = AnalysisConfig(
                profile=analysis_data.get("profile", "release"),
                overflow_checks=analysis_data.get("overflow_checks"),
                disclosure_headings=list(
                    analysis_data.get("disclosure_headings", DEFAULT_HEADINGS)
                ),
                disclosure_keywords=list(
                    analysis_data.get("disclosure_keywords", DEFAULT_KEYWORDS)
                ),
                ignore_kinds=list(analysis_data.get("ignore_kinds", [])),
                include_tests=analysis_data.get("include_tests", False),
                include_examples=analysis_data.get("include_examples", False),
            )

        return config


def _read_toml(path: Path) -> dict[str, Any] | None:
    """read a toml file, logging and returning none if it is missing or broken."""
    if not path.is_file():
        return None

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("skipping unreadable config file %s: %s", path, e)
        return None
