"""
source file discovery for rust crates.

finds the crate root from a manifest path and collects the `.rs` files
worth analysing: build output, hidden directories, `$CARGO_HOME`, the
crate's tests and examples, excluded globs and gitignored paths are all
left out.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitignore_parser import IgnoreRule

logger = logging.getLogger(__name__)

MANIFEST_NAME = "Cargo.toml"


def find_manifest_root(manifest_path: str | Path | None = None, start: str | Path = ".") -> Path:
    """
    work out the crate root.

    arguments:
        `manifest_path: str | Path | None`
            explicit path to a Cargo.toml (or the directory holding it)
        `start: str | Path`
            where to start searching upwards when no manifest was given

    returns: `Path`
        the directory of the manifest, or the resolved start directory if
        no Cargo.toml was found
    """
    if manifest_path is not None:
        manifest = Path(manifest_path).expanduser().resolve()
        return manifest if manifest.is_dir() else manifest.parent

    current = Path(start).expanduser().resolve()
    if current.is_file():
        current = current.parent
    origin = current

    while True:
        if current.joinpath(MANIFEST_NAME).is_file():
            return current
        if current == current.parent:
            logger.debug("no %s above %s, using it as the root", MANIFEST_NAME, origin)
            return origin
        current = current.parent


class GitignoreMatcher:
    """
    matcher for .gitignore rules.

    collects the rules of every .gitignore file under the root and applies
    them to candidate paths.

    attributes:
        `root: Path`
            the root directory to match against
        `rules: list[tuple[Path, list[IgnoreRule]]]`
            list of (directory, rules) tuples
    """

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()
        self.rules: list[tuple[Path, list[IgnoreRule]]] = []
        self._collect_gitignore_rules()

    def _collect_gitignore_rules(self) -> None:
        from gitignore_parser import rule_from_pattern

        for gitignore_file in self.root.rglob(".gitignore"):
            if not gitignore_file.is_file():
                continue

            try:
                content = gitignore_file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("could not read %s: %s", gitignore_file, e)
                continue

            rules: list[IgnoreRule] = []
            for line_no, line in enumerate(content.splitlines()):
                if not line or line.startswith("#"):
                    continue
                rule = rule_from_pattern(
                    pattern=line,
                    base_path=gitignore_file.parent,
                    source=(gitignore_file, line_no),
                )
                if rule is not None:
                    rules.append(rule)

            if rules:
                self.rules.append((gitignore_file.parent, rules))

    def is_ignored(self, file_path: Path) -> bool:
        """
        check if a file, or any directory above it, is ignored.

        arguments:
            `file_path: Path`
                the file path to check

        returns: `bool`
            True if the file is ignored, False otherwise
        """
        resolved_path = file_path.resolve()

        parent = resolved_path.parent
        while parent == self.root or self.root in parent.parents:
            if self._is_path_ignored(parent):
                return True
            if parent == self.root:
                break
            parent = parent.parent

        return self._is_path_ignored(resolved_path)

    def _is_path_ignored(self, path: Path) -> bool:
        matched = False
        for ignore_dir, rules in self.rules:
            if ignore_dir != path and ignore_dir not in path.parents:
                continue
            for rule in rules:
                if rule.match(path):
                    # negation rules un-ignore
                    matched = not rule.negation
        return matched


@dataclass
class RustSourceResolver:
    """
    resolves the rust source files of a crate.

    attributes:
        `root: Path`
            crate root
        `exclude: list[str]`
            glob patterns (relative to root) for files to skip
        `respect_gitignore: bool`
            whether to honour .gitignore files
        `include_tests: bool`
            keep files under `<root>/tests`
        `include_examples: bool`
            keep files under `<root>/examples`
    """

    root: Path
    exclude: list[str] = field(default_factory=list)
    respect_gitignore: bool = True
    include_tests: bool = False
    include_examples: bool = False

    def __post_init__(self) -> None:
        self.root = Path(self.root).resolve()

    def resolve(self) -> tuple[Path, ...]:
        """
        resolve all rust files worth analysing.

        returns: `tuple[Path, ...]`
            file paths, sorted
        """
        if not self.root.is_dir():
            logger.warning("crate root %s is not a directory", self.root)
            return ()

        gitignore_matcher = GitignoreMatcher(self.root) if self.respect_gitignore else None

        files: list[Path] = []
        for file_path in self._iter_files():
            if not self.is_coverable(file_path):
                continue
            if gitignore_matcher is not None and gitignore_matcher.is_ignored(file_path):
                logger.debug("skipping gitignored file: %s", file_path)
                continue
            files.append(file_path)

        return tuple(sorted(files))

    def is_coverable(self, file_path: Path) -> bool:
        """
        apply the path-based skip rules to one file.

        arguments:
            `file_path: Path`
                absolute path of a candidate file

        returns: `bool`
            false for build output, hidden paths, `$CARGO_HOME`, tests,
            examples (unless enabled) and excluded globs
        """
        try:
            relative = file_path.relative_to(self.root)
        except ValueError:
            return False

        parts = relative.parts
        if not parts:
            return False
        if parts[0] == "target":
            return False
        if any(part.startswith(".") for part in parts):
            return False
        if self._in_cargo_home(file_path):
            return False
        if parts[0] == "tests" and not self.include_tests:
            return False
        if parts[0] == "examples" and not self.include_examples:
            return False

        return not self._is_excluded(relative.as_posix(), parts)

    def _in_cargo_home(self, file_path: Path) -> bool:
        cargo_home = os.environ.get("CARGO_HOME")
        if not cargo_home:
            return False
        home = Path(cargo_home)
        if not home.is_absolute():
            home = self.root.joinpath(home)
        return file_path == home or home.resolve() in file_path.parents

    def _is_excluded(self, rel_path: str, parts: tuple[str, ...]) -> bool:
        for pattern in self.exclude:
            if fnmatch(rel_path, pattern) or fnmatch(parts[-1], pattern):
                return True
            # `target` should exclude `target/debug/build.rs`
            for i in range(1, len(parts)):
                if fnmatch("/".join(parts[:i]), pattern):
                    return True
            if pattern.startswith("**/"):
                suffix = pattern[3:]
                if any(fnmatch("/".join(parts[i:]), suffix) for i in range(len(parts))):
                    return True
        return False

    def _iter_files(self) -> Generator[Path, None, None]:
        for path in self.root.rglob("*.rs"):
            if path.is_file():
                yield path


def find_rust_files(
    root: str | Path = ".",
    *,
    exclude: list[str] | None = None,
    respect_gitignore: bool = True,
    include_tests: bool = False,
    include_examples: bool = False,
) -> tuple[Path, ...]:
    """
    find the rust source files of a crate.

    arguments:
        `root: str | Path`
            crate root (default: current directory)
        `exclude: list[str] | None`
            glob patterns for files to exclude
        `respect_gitignore: bool`
            whether to respect .gitignore files (default: True)
        `include_tests: bool`
            also return files under `tests/`
        `include_examples: bool`
            also return files under `examples/`

    returns: `tuple[Path, ...]`
        sorted file paths
    """
    return RustSourceResolver(
        root=Path(root),
        exclude=exclude or [],
        respect_gitignore=respect_gitignore,
        include_tests=include_tests,
        include_examples=include_examples,
    ).resolve()
