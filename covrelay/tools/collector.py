"""
Coverage collector invocation.

Runs cargo-tarpaulin against one component's manifest, writing an LCOV
report into the component's report directory and building inside its
instrumentation directory.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from covrelay.models import Component, Workspace
from covrelay.tools.base import ExternalTool, SubprocessTool, ToolResult

LCOV_FORMAT = "lcov"


@runtime_checkable
class CoverageCollector(ExternalTool, Protocol):
    """Produces a coverage report for a component, or fails softly."""

    async def collect(self, component: Component, workspace: Workspace) -> ToolResult:
        """Run coverage collection for one component."""
        ...


class TarpaulinCollector(SubprocessTool):
    """Collector backed by `cargo tarpaulin`."""

    def __init__(
        self,
        command: Sequence[str] = ("cargo", "tarpaulin"),
        timeout_seconds: float = 1800.0,
        exclude_files: Sequence[str] = ("/target/**/*", "/tarpaulin_temp/**/*"),
        output_format: str = LCOV_FORMAT,
    ):
        super().__init__(command, timeout_seconds)
        self.exclude_files = list(exclude_files)
        self.output_format = output_format

    def build_args(self, component: Component, workspace: Workspace) -> list[str]:
        """Arguments for one component, appended to the base command."""
        args = [
            "--manifest-path",
            str(component.manifest_path),
            "--out",
            self.output_format,
            "--output-dir",
            str(workspace.report_dir),
        ]
        if self.exclude_files:
            args += ["--exclude-files", *self.exclude_files]
        args += [
            "--target-dir",
            str(workspace.instrumentation_dir),
            "--skip-clean",
        ]
        return args

    async def collect(self, component: Component, workspace: Workspace) -> ToolResult:
        """Run tarpaulin for a component; non-zero exits come back as failed results."""
        return await self.execute(self.build_args(component, workspace))
