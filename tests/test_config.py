"""tests for the configuration module."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from docpanic.config import AnalysisConfig, Config, LspConfig
from docpanic.predicate import PanicKind

_ENV_VARS = (
    "DOCPANIC_PROFILE",
    "DOCPANIC_OVERFLOW_CHECKS",
    "DOCPANIC_JOBS",
    "DOCPANIC_DEBOUNCE_MS",
    "DOCPANIC_LOG",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLspConfig:
    """tests for the LspConfig dataclass."""

    def test_defaults(self) -> None:
        """Test default lsp configuration values."""
        config = LspConfig()

        assert config.debounce_ms == 500
        assert config.max_diagnostics_per_file == 100


class TestAnalysisConfig:
    """tests for the AnalysisConfig dataclass."""

    def test_defaults(self) -> None:
        """Test default analysis configuration values."""
        config = AnalysisConfig()

        assert config.profile == "release"
        assert config.overflow_checks is None
        assert config.disclosure_headings == ["panics", "panic", "aborts"]
        assert config.disclosure_keywords == ["panic", "abort"]
        assert config.ignore_kinds == []
        assert config.include_tests is False
        assert config.include_examples is False


class TestConfig:
    """tests for the main Config class."""

    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = Config()

        assert config.jobs == 1
        assert config.color == "auto"
        assert config.respect_gitignore is True
        assert isinstance(config.project_root, Path)

    def test_project_root_conversion(self) -> None:
        """Test that project_root is converted to Path."""
        config = Config(project_root="/some/path")  # pyright: ignore[reportArgumentType]

        assert isinstance(config.project_root, Path)
        assert config.project_root == Path("/some/path")

    def test_from_cargo_toml(self, tmp_path: Path) -> None:
        """Test loading configuration from Cargo.toml package metadata."""
        _ = (tmp_path / "Cargo.toml").write_text("""
[package]
name = "sample"
version = "0.1.0"

[package.metadata.docpanic]
jobs = 4
color = "never"

[package.metadata.docpanic.analysis]
profile = "dev"
ignore_kinds = ["index"]

[package.metadata.docpanic.lsp]
debounce_ms = 1000

[profile.release]
overflow-checks = true
""")

        config = Config.from_cargo_toml(tmp_path)

        assert config is not None
        assert config.jobs == 4
        assert config.color == "never"
        assert config.analysis.profile == "dev"
        assert config.analysis.ignore_kinds == ["index"]
        assert config.lsp.debounce_ms == 1000
        assert config.cargo_profiles == {"release": {"overflow-checks": True}}

    def test_from_cargo_toml_workspace(self, tmp_path: Path) -> None:
        """Test loading configuration from workspace metadata."""
        _ = (tmp_path / "Cargo.toml").write_text("""
[workspace]
members = ["a"]

[workspace.metadata.docpanic]
exclude = ["**/generated/**"]
""")

        config = Config.from_cargo_toml(tmp_path)

        assert config is not None
        assert config.exclude == ["**/generated/**"]

    def test_from_cargo_toml_not_found(self, tmp_path: Path) -> None:
        """Test loading from a directory without Cargo.toml."""
        assert Config.from_cargo_toml(tmp_path) is None

    def test_from_cargo_toml_broken(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Test that an unparsable Cargo.toml is skipped with a warning."""
        _ = (tmp_path / "Cargo.toml").write_text("[package\nname = ")

        with caplog.at_level(logging.WARNING, logger="docpanic.config"):
            config = Config.from_cargo_toml(tmp_path)

        assert config is None
        assert "skipping unreadable config file" in caplog.text

    def test_from_docpanic_toml(self, tmp_path: Path) -> None:
        """Test loading configuration from .docpanic.toml."""
        _ = (tmp_path / ".docpanic.toml").write_text("""
exclude = ["**/benches/**"]
respect_gitignore = false

[analysis]
overflow_checks = true
disclosure_headings = ["Failure"]
""")

        config = Config.from_docpanic_toml(tmp_path)

        assert config is not None
        assert config.exclude == ["**/benches/**"]
        assert config.respect_gitignore is False
        assert config.analysis.overflow_checks is True
        assert config.analysis.disclosure_headings == ["Failure"]

    def test_apply_environment(self) -> None:
        """Test overriding settings from environment variables."""
        config = Config().apply_environment(
            {
                "DOCPANIC_PROFILE": "dev",
                "DOCPANIC_OVERFLOW_CHECKS": "yes",
                "DOCPANIC_JOBS": "3",
                "DOCPANIC_DEBOUNCE_MS": "750",
                "DOCPANIC_LOG": "DEBUG",
            }
        )

        assert config.analysis.profile == "dev"
        assert config.analysis.overflow_checks is True
        assert config.jobs == 3
        assert config.lsp.debounce_ms == 750
        assert config.log_level == "debug"

    def test_apply_environment_bad_numbers(self) -> None:
        """Test that malformed numbers in the environment are ignored."""
        config = Config().apply_environment({"DOCPANIC_JOBS": "many", "DOCPANIC_DEBOUNCE_MS": "x"})

        assert config.jobs == 1
        assert config.lsp.debounce_ms == 500

    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch, clean_env: None) -> None:
        """Test loading configuration from the process environment."""
        monkeypatch.setenv("DOCPANIC_OVERFLOW_CHECKS", "false")

        config = Config.from_environment()

        assert config.analysis.overflow_checks is False

    def test_load_full(self, tmp_path: Path, clean_env: None) -> None:
        """Test loading configuration from all sources."""
        _ = (tmp_path / "Cargo.toml").write_text("""
[package]
name = "sample"
version = "0.1.0"

[package.metadata.docpanic]
jobs = 2
color = "always"

[profile.dev]
overflow-checks = false
""")
        # .docpanic.toml should override Cargo.toml
        _ = (tmp_path / ".docpanic.toml").write_text('color = "never"\n')

        config = Config.load(tmp_path)

        assert config.project_root == tmp_path.resolve()
        assert config.jobs == 2
        assert config.color == "never"
        assert config.exclude == ["**/target/**", "**/.git/**"]
        assert config.cargo_profiles == {"dev": {"overflow-checks": False}}

    def test_merge_configs(self) -> None:
        """Test merging two configurations."""
        config1 = Config(jobs=4, exclude=["**/a/**"])
        config2 = Config(color="never", exclude=["**/b/**"])

        merged = config1.merge(config2)

        # config2 values should take precedence
        assert merged.color == "never"
        assert merged.jobs == 4  # not overridden
        assert merged.exclude == ["**/b/**"]


class TestOverflowChecks:
    """tests for resolving overflow checks from cargo profiles."""

    @pytest.mark.parametrize(
        ("profile", "expected"),
        [("release", False), ("dev", True), ("test", True), ("bench", False)],
    )
    def test_builtin_profiles(self, profile: str, expected: bool) -> None:
        """Test cargo's built-in profile defaults."""
        config = Config()
        config.analysis.profile = profile

        assert config.resolve_overflow_checks() is expected

    def test_profile_setting(self) -> None:
        """Test an explicit `overflow-checks` key in the profile."""
        config = Config(cargo_profiles={"release": {"overflow-checks": True}})

        assert config.resolve_overflow_checks() is True

    def test_custom_profile_inherits(self) -> None:
        """Test a custom profile inheriting from dev."""
        config = Config(cargo_profiles={"ci": {"inherits": "dev", "opt-level": 1}})
        config.analysis.profile = "ci"

        assert config.resolve_overflow_checks() is True

    def test_inherited_setting(self) -> None:
        """Test that a setting on the parent profile is inherited."""
        config = Config(
            cargo_profiles={
                "release": {"overflow-checks": True},
                "dist": {"inherits": "release", "lto": True},
            }
        )
        config.analysis.profile = "dist"

        assert config.resolve_overflow_checks() is True

    def test_explicit_override(self) -> None:
        """Test that an explicit setting wins over the profile."""
        config = Config()
        config.analysis.profile = "dev"
        config.analysis.overflow_checks = False

        assert config.resolve_overflow_checks() is False

    def test_inheritance_cycle(self) -> None:
        """Test that a profile cycle terminates."""
        config = Config(cargo_profiles={"a": {"inherits": "b"}, "b": {"inherits": "a"}})
        config.analysis.profile = "a"

        assert config.resolve_overflow_checks() is False


class TestPredicateOptions:
    """tests for building predicate options."""

    def test_ignore_kinds(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that ignored kinds are disabled and unknown ones logged."""
        config = Config()
        config.analysis.ignore_kinds = ["INDEX", "bogus"]

        with caplog.at_level(logging.WARNING, logger="docpanic.config"):
            options = config.predicate_options()

        assert options.disabled_kinds == frozenset({PanicKind.INDEX})
        assert "bogus" in caplog.text

    def test_overflow_checks_passed_through(self) -> None:
        """Test that the resolved overflow setting reaches the options."""
        config = Config()
        config.analysis.overflow_checks = True

        assert config.predicate_options().overflow_checks is True
