"""
Tests for component discovery.
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from covrelay.discovery import DiscoveryError, discover_components, duplicate_identifiers


class TestDiscoverComponents:
    """Tests for discover_components."""

    def test_discovers_each_manifest(self, make_tree: Callable[..., Path]) -> None:
        """Every directory holding a manifest is a component."""
        root = make_tree("core", "cli", "js-bindings")

        components = discover_components(root)

        assert sorted(c.identifier for c in components) == ["cli", "core", "js-bindings"]
        for component in components:
            assert component.manifest_path == component.root / "Cargo.toml"

    def test_nested_manifests_are_independent(self, make_tree: Callable[..., Path]) -> None:
        """Nested manifests are separate components, not merged into the parent."""
        root = make_tree("core", "core/macros")

        components = discover_components(root)

        assert [c.identifier for c in components] == ["core", "macros"]
        assert components[1].root == root / "core" / "macros"

    def test_no_manifest_is_empty(self, tmp_path: Path) -> None:
        """A root without manifests yields no components, not an error."""
        (tmp_path / "docs").mkdir()

        assert discover_components(tmp_path) == []

    def test_root_manifest_counts(self, tmp_path: Path) -> None:
        """A manifest directly in the root makes the root a component."""
        (tmp_path / "Cargo.toml").write_text("")

        components = discover_components(tmp_path)

        assert len(components) == 1
        assert components[0].root == tmp_path

    def test_scratch_directories_ignored(self, make_tree: Callable[..., Path]) -> None:
        """Manifests inside build output or scratch space are not components."""
        root = make_tree("core", "core/tarpaulin_temp/debug/build/dep", "core/target/vendored")

        components = discover_components(root)

        assert [c.identifier for c in components] == ["core"]

    def test_custom_manifest_name(self, tmp_path: Path) -> None:
        """Manifest file name is configurable."""
        (tmp_path / "svc").mkdir()
        (tmp_path / "svc" / "pyproject.toml").write_text("")
        (tmp_path / "lib").mkdir()
        (tmp_path / "lib" / "Cargo.toml").write_text("")

        components = discover_components(tmp_path, manifest_name="pyproject.toml")

        assert [c.identifier for c in components] == ["svc"]

    def test_missing_root(self, tmp_path: Path) -> None:
        """A root that does not exist aborts discovery."""
        with pytest.raises(DiscoveryError, match="does not exist"):
            discover_components(tmp_path / "missing")

    def test_root_is_file(self, tmp_path: Path) -> None:
        """A root that is a file aborts discovery."""
        target = tmp_path / "Cargo.toml"
        target.write_text("")

        with pytest.raises(DiscoveryError, match="not a directory"):
            discover_components(target)

    def test_duplicate_identifiers_returned(self, make_tree: Callable[..., Path]) -> None:
        """Components sharing a directory name are all discovered and reported."""
        root = make_tree("A", "x/core", "y/core")

        components = discover_components(root)

        assert [c.identifier for c in components] == ["A", "core", "core"]
        assert duplicate_identifiers(components) == {
            "core": [root / "x" / "core", root / "y" / "core"]
        }

    def test_unique_identifiers_have_no_duplicates(self, make_tree: Callable[..., Path]) -> None:
        root = make_tree("core", "cli")

        assert duplicate_identifiers(discover_components(root)) == {}

    def test_order_is_deterministic(self, make_tree: Callable[..., Path]) -> None:
        """Components come back sorted by manifest path."""
        root = make_tree("zeta", "alpha", "mid")

        identifiers = [c.identifier for c in discover_components(root)]

        assert identifiers == ["alpha", "mid", "zeta"]
