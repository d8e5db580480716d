"""
Tests for run configuration loading.
"""

from pathlib import Path

import pytest
import yaml

from covrelay.config import ConfigError, ConfigLoader, RunConfig, UploaderKind

# =============================================================================
# RunConfig Tests
# =============================================================================


class TestRunConfig:
    """Tests for RunConfig model."""

    def test_defaults(self) -> None:
        """Defaults follow the cargo-tarpaulin + coveralls layout."""
        config = RunConfig()

        assert config.root == Path("packages")
        assert config.manifest_name == "Cargo.toml"
        assert config.instrumentation_dir_name == "tarpaulin_temp"
        assert config.report_dir_name == "coverage"
        assert config.report_filename == "lcov.info"
        assert config.collector_command == ["cargo", "tarpaulin"]
        assert config.uploader == UploaderKind.CLI
        assert config.upload_enabled is True
        assert config.max_concurrent == 1
        assert config.fail_on_component_error is False
        assert config.exclude_component is None
        assert "target" in config.ignore_dirs

    def test_repository_accepted(self) -> None:
        """owner/name is kept as given."""
        config = RunConfig(repository="Meta-A/bbpm")

        assert config.repository == "Meta-A/bbpm"

    def test_has_token(self) -> None:
        """Blank tokens count as unset."""
        assert RunConfig(repo_token="   ").has_token is False
        assert RunConfig().has_token is False

    def test_repository_validation(self) -> None:
        """Repository must be owner/name."""
        with pytest.raises(ValueError):
            RunConfig(repository="just-a-name")
        with pytest.raises(ValueError):
            RunConfig(repository="a/b/c")

    def test_blank_exclusion_is_none(self) -> None:
        """An empty exclusion directive means no exclusion."""
        assert RunConfig(exclude_component="  ").exclude_component is None

    def test_token_hidden(self) -> None:
        """Token never appears in repr or dumps."""
        config = RunConfig(repo_token="s3cret")

        assert config.has_token is True
        assert "s3cret" not in repr(config)
        assert "repo_token" not in config.model_dump()

    def test_max_concurrent_bounds(self) -> None:
        """max_concurrent must be at least 1."""
        with pytest.raises(ValueError):
            RunConfig(max_concurrent=0)

    def test_unknown_keys_rejected(self) -> None:
        """Typos in configuration are errors."""
        with pytest.raises(ValueError):
            RunConfig(manifest="Cargo.toml")  # type: ignore[call-arg]


# =============================================================================
# ConfigLoader Tests
# =============================================================================


class TestConfigLoader:
    """Tests for ConfigLoader."""

    def test_from_env(self) -> None:
        """CI variables map onto settings; unset ones are omitted."""
        settings = ConfigLoader.from_env(
            {
                "SKIP_CRATE": "cli",
                "COVERALLS_REPO_TOKEN": "tok",
                "GITHUB_REPOSITORY": "acme/widgets",
                "UNRELATED": "x",
            }
        )

        assert settings == {
            "exclude_component": "cli",
            "repo_token": "tok",
            "repository": "acme/widgets",
        }
        assert ConfigLoader.from_env({}) == {}

    def test_from_yaml_file_not_found(self, tmp_path: Path) -> None:
        """Missing explicit config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ConfigLoader.from_yaml(tmp_path / "missing.yaml")

    def test_from_yaml_not_a_mapping(self, tmp_path: Path) -> None:
        """Top-level YAML must be a mapping."""
        config_file = tmp_path / "covrelay.yaml"
        config_file.write_text("- one\n- two\n")

        with pytest.raises(ConfigError):
            ConfigLoader.from_yaml(config_file)

    def test_from_yaml_empty(self, tmp_path: Path) -> None:
        """Empty file yields no settings."""
        config_file = tmp_path / "covrelay.yaml"
        config_file.write_text("")

        assert ConfigLoader.from_yaml(config_file) == {}

    def test_load_precedence(self, tmp_path: Path) -> None:
        """File < environment < overrides; None overrides are ignored."""
        config_file = tmp_path / "covrelay.yaml"
        config_file.write_text(
            yaml.dump(
                {
                    "root": "crates",
                    "repository": "file/repo",
                    "exclude_component": "from-file",
                    "max_concurrent": 2,
                }
            )
        )

        config = ConfigLoader.load(
            config_file,
            environ={"GITHUB_REPOSITORY": "env/repo", "SKIP_CRATE": "from-env"},
            overrides={"exclude_component": "from-cli", "max_concurrent": None},
        )

        assert config.root == Path("crates")
        assert config.repository == "env/repo"
        assert config.exclude_component == "from-cli"
        assert config.max_concurrent == 2

    def test_load_invalid_value(self) -> None:
        """Validation errors surface as ConfigError."""
        with pytest.raises(ConfigError):
            ConfigLoader.load(environ={}, overrides={"uploader": "carrier-pigeon"})

    def test_load_uses_default_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """./covrelay.yaml is picked up when no path is given."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "covrelay.yaml").write_text("manifest_name: pyproject.toml\n")

        config = ConfigLoader.load(environ={})

        assert config.manifest_name == "pyproject.toml"

    def test_sample_config_round_trip(self, tmp_path: Path) -> None:
        """The generated sample is itself a valid configuration."""
        config_file = tmp_path / "covrelay.yaml"
        config_file.write_text(ConfigLoader.generate_sample_config())

        config = ConfigLoader.load(config_file, environ={})

        assert config.repository == "my-org/my-repo"
        assert config.uploader == UploaderKind.CLI
