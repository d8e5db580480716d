"""
Run configuration for covrelay.

A single RunConfig is built at process start from an optional YAML file,
the CI environment and command-line overrides, then passed explicitly to
the run controller.
"""

from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_CONFIG_FILE = "covrelay.yaml"

# Environment variables read once at start-up
ENV_EXCLUDE_COMPONENT = "SKIP_CRATE"
ENV_REPO_TOKEN = "COVERALLS_REPO_TOKEN"
ENV_REPOSITORY = "GITHUB_REPOSITORY"


class ConfigError(ValueError):
    """Raised when the run configuration is invalid."""


class UploaderKind(str, Enum):
    """Upload backend."""

    CLI = "cli"
    """Shell out to the coveralls reporter binary."""

    HTTP = "http"
    """Post a Coveralls JSON job directly."""


class RunConfig(BaseModel):
    """Configuration for one coverage run."""

    # Discovery
    root: Path = Path("packages")
    manifest_name: str = "Cargo.toml"
    ignore_dirs: list[str] = Field(
        default_factory=lambda: ["target", "tarpaulin_temp", "coverage", ".git", "node_modules"]
    )

    # Exclusion directive (at most one component per run)
    exclude_component: str | None = None

    # Workspace layout, relative to each component root
    instrumentation_dir_name: str = "tarpaulin_temp"
    report_dir_name: str = "coverage"
    report_filename: str = "lcov.info"

    # Coverage collector
    collector_command: list[str] = Field(default_factory=lambda: ["cargo", "tarpaulin"])
    collector_timeout_seconds: float = Field(default=1800.0, gt=0)
    collector_exclude_files: list[str] = Field(
        default_factory=lambda: ["/target/**/*", "/tarpaulin_temp/**/*"]
    )

    # Upload
    upload_enabled: bool = True
    uploader: UploaderKind = UploaderKind.CLI
    uploader_command: list[str] = Field(default_factory=lambda: ["coveralls"])
    upload_endpoint: str = "https://coveralls.io/api/v1/jobs"
    upload_timeout_seconds: float = Field(default=120.0, gt=0)
    service_name: str = "covrelay"
    repo_token: str | None = Field(default=None, repr=False, exclude=True)

    # Badges
    repository: str | None = Field(
        default=None, description="Hosting repository as owner/name"
    )
    service_host: str = "coveralls.io"
    branch: str = "main"
    badge_dir: Path = Path(".")

    # Execution
    max_concurrent: int = Field(default=1, ge=1, le=32)
    fail_on_component_error: bool = False

    model_config = ConfigDict(extra="forbid")

    @field_validator("repository")
    @classmethod
    def _check_repository(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().strip("/")
        parts = value.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"repository must look like 'owner/name', got {value!r}")
        return value

    @field_validator("exclude_component", "repo_token")
    @classmethod
    def _blank_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("collector_command", "uploader_command")
    @classmethod
    def _non_empty_command(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("command must not be empty")
        return value

    @property
    def has_token(self) -> bool:
        """Whether an upload token is configured."""
        return self.repo_token is not None


class ConfigLoader:
    """Build RunConfig instances from files, the environment and overrides."""

    @classmethod
    def from_yaml(cls, path: str | Path) -> dict[str, Any]:
        """
        Read raw settings from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Mapping of setting names to values
        """
        path = Path(path)
        if not path.exists():
            msg = f"Configuration file not found: {path}"
            raise FileNotFoundError(msg)

        with path.open() as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Could not parse {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")
        return data

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> dict[str, Any]:
        """
        Read the settings CI provides through the environment.

        Args:
            environ: Environment mapping (normally os.environ)

        Returns:
            Mapping containing only the variables that are set
        """
        settings: dict[str, Any] = {}
        if environ.get(ENV_EXCLUDE_COMPONENT):
            settings["exclude_component"] = environ[ENV_EXCLUDE_COMPONENT]
        if environ.get(ENV_REPO_TOKEN):
            settings["repo_token"] = environ[ENV_REPO_TOKEN]
        if environ.get(ENV_REPOSITORY):
            settings["repository"] = environ[ENV_REPOSITORY]
        return settings

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RunConfig:
        """Validate a settings mapping into a RunConfig."""
        try:
            return RunConfig.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> RunConfig:
        """
        Build the run configuration.

        Precedence, lowest first: YAML file, environment, explicit overrides.
        Overrides whose value is None are ignored. When no path is given,
        ./covrelay.yaml is used if present.

        Args:
            path: Optional YAML configuration file
            environ: Environment mapping
            overrides: Settings from the command line

        Returns:
            Validated RunConfig
        """
        data: dict[str, Any] = {}
        if path is not None:
            data.update(cls.from_yaml(path))
        elif Path(DEFAULT_CONFIG_FILE).exists():
            data.update(cls.from_yaml(DEFAULT_CONFIG_FILE))

        if environ is not None:
            data.update(cls.from_env(environ))

        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})

        return cls.from_dict(data)

    @classmethod
    def generate_sample_config(cls) -> str:
        """
        Generate a sample YAML configuration file.

        Returns:
            YAML string for sample configuration
        """
        sample = {
            "root": "packages",
            "manifest_name": "Cargo.toml",
            "repository": "my-org/my-repo",
            "branch": "main",
            "badge_dir": ".",
            "collector_command": ["cargo", "tarpaulin"],
            "collector_timeout_seconds": 1800,
            "uploader": "cli",
            "upload_enabled": True,
            "max_concurrent": 1,
            "fail_on_component_error": False,
        }
        header = (
            "# covrelay configuration\n"
            f"# Secrets come from the environment: {ENV_REPO_TOKEN}\n"
            f"# Skip one component per run with {ENV_EXCLUDE_COMPONENT}=<name>\n"
        )
        return header + yaml.dump(sample, default_flow_style=False, sort_keys=False)
