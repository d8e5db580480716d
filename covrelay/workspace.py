"""
Isolation workspaces.

Each component gets its own instrumentation and report directories under
its root, so one component's scratch output never touches another's.
"""

from pathlib import Path

from covrelay.logging import get_logger
from covrelay.models import Component, Workspace

logger = get_logger("workspace")


class WorkspaceError(OSError):
    """Raised when a component's workspace cannot be created."""


class WorkspaceManager:
    """Creates and tracks per-component scratch directories."""

    def __init__(
        self,
        instrumentation_dir_name: str = "tarpaulin_temp",
        report_dir_name: str = "coverage",
    ):
        if instrumentation_dir_name == report_dir_name:
            raise ValueError("instrumentation and report directories must differ")
        self.instrumentation_dir_name = instrumentation_dir_name
        self.report_dir_name = report_dir_name
        self._owners: dict[Path, str] = {}

    def workspace_for(self, component: Component) -> Workspace:
        """Return the workspace paths for a component without touching disk."""
        return Workspace(
            instrumentation_dir=component.root / self.instrumentation_dir_name,
            report_dir=component.root / self.report_dir_name,
        )

    def ensure(self, component: Component) -> Workspace:
        """
        Create a component's workspace directories if absent.

        Idempotent: existing directories are left as they are.

        Raises:
            WorkspaceError: If a directory cannot be created or is already
                owned by a different component in this run
        """
        workspace = self.workspace_for(component)
        paths = (workspace.instrumentation_dir, workspace.report_dir)
        try:
            keys = [path.resolve() for path in paths]
        except (OSError, RuntimeError) as e:
            raise WorkspaceError(f"Could not resolve workspace for {component.identifier}: {e}") from e

        # Both paths are checked before either is claimed.
        for path, key in zip(paths, keys):
            owner = self._owners.get(key, component.identifier)
            if owner != component.identifier:
                raise WorkspaceError(f"{path} is already owned by component '{owner}'")
        for key in keys:
            self._owners[key] = component.identifier

        try:
            workspace.instrumentation_dir.mkdir(parents=True, exist_ok=True)
            workspace.report_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Could not create workspace for {component.identifier}: {e}") from e

        logger.debug(
            "[%s] workspace ready: %s, %s",
            component.identifier,
            workspace.instrumentation_dir,
            workspace.report_dir,
        )
        return workspace

    @property
    def owned_paths(self) -> dict[Path, str]:
        """Workspace directories claimed so far, mapped to their component."""
        return dict(self._owners)
