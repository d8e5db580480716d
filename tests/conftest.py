"""Shared fixtures for covrelay tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from covrelay.config import RunConfig


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[..., Path]:
    """Build a component root with one Cargo.toml per relative directory."""

    def _make(*components: str, root_name: str = "packages") -> Path:
        root = tmp_path / root_name
        root.mkdir(parents=True, exist_ok=True)
        for rel in components:
            crate = root / rel
            crate.mkdir(parents=True, exist_ok=True)
            (crate / "Cargo.toml").write_text(f'[package]\nname = "{crate.name}"\n')
        return root

    return _make


@pytest.fixture
def run_config(tmp_path: Path) -> Callable[..., RunConfig]:
    """RunConfig factory rooted in tmp_path with badges written to tmp_path/badges."""

    def _config(root: Path, **overrides: object) -> RunConfig:
        settings: dict[str, object] = {
            "root": root,
            "repository": "acme/widgets",
            "badge_dir": tmp_path / "badges",
            "repo_token": "secret-token",
        }
        settings.update(overrides)
        return RunConfig(**settings)

    return _config
