"""
Component discovery.

Walks a root directory for manifest files. Every directory holding a
manifest is an independent component, nested ones included.
"""

import os
from collections.abc import Iterable
from pathlib import Path

from covrelay.logging import get_logger
from covrelay.models import Component

logger = get_logger("discovery")

DEFAULT_IGNORE_DIRS = ("target", "tarpaulin_temp", "coverage", ".git", "node_modules")


class DiscoveryError(RuntimeError):
    """Raised when the component root cannot be enumerated."""


def discover_components(
    root: str | Path,
    manifest_name: str = "Cargo.toml",
    ignore_dirs: Iterable[str] = DEFAULT_IGNORE_DIRS,
) -> list[Component]:
    """
    Find every component under a root directory.

    Args:
        root: Directory to scan
        manifest_name: File name that marks a component root
        ignore_dirs: Directory names never descended into

    Returns:
        Components sorted by manifest path; empty when no manifest exists.
        Components sharing an identifier are all returned; see
        duplicate_identifiers().

    Raises:
        DiscoveryError: If the root is missing or unreadable
    """
    root = Path(root)
    if not root.exists():
        raise DiscoveryError(f"Component root does not exist: {root}")
    if not root.is_dir():
        raise DiscoveryError(f"Component root is not a directory: {root}")
    try:
        with os.scandir(root):
            pass
    except OSError as e:
        raise DiscoveryError(f"Component root is not readable: {root}: {e}") from e

    ignored = set(ignore_dirs)
    manifests: list[Path] = []

    def _on_error(error: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", error.filename, error.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if d not in ignored)
        if manifest_name in filenames:
            manifests.append(Path(dirpath) / manifest_name)

    components = [Component.from_manifest(m) for m in sorted(manifests)]

    if components:
        logger.debug(
            "Discovered %d component(s): %s",
            len(components),
            ", ".join(c.identifier for c in components),
        )
    else:
        logger.info("No %s found under %s", manifest_name, root)

    for identifier, roots in duplicate_identifiers(components).items():
        logger.warning(
            "Component identifier '%s' is shared by %s",
            identifier,
            ", ".join(str(r) for r in roots),
        )
    return components


def duplicate_identifiers(components: Iterable[Component]) -> dict[str, list[Path]]:
    """
    Identifiers used by more than one component.

    Identifiers name badge files and the exclusion target, so components
    that share one cannot be told apart.

    Returns:
        Mapping of each shared identifier to the roots that use it
    """
    roots: dict[str, list[Path]] = {}
    for component in components:
        roots.setdefault(component.identifier, []).append(component.root)
    return {identifier: paths for identifier, paths in roots.items() if len(paths) > 1}
