"""
In-process fakes for the external tools.

Useful for exercising the run controller without cargo or network access.
"""

from pathlib import Path

from covrelay.models import Component, CoverageReport, Workspace
from covrelay.tools.base import ToolResult

DEFAULT_LCOV = "SF:src/lib.rs\nDA:1,1\nDA:2,0\nend_of_record\n"


class MockCollector:
    """
    Collector that succeeds or fails per component identifier.

    Successful calls write a report into the workspace unless the
    component is listed in `no_report`.
    """

    def __init__(
        self,
        failures: set[str] | None = None,
        no_report: set[str] | None = None,
        report_on_failure: set[str] | None = None,
        report_filename: str = "lcov.info",
        lcov_content: str = DEFAULT_LCOV,
    ):
        self.failures = failures or set()
        self.no_report = no_report or set()
        self.report_on_failure = report_on_failure or set()
        self.report_filename = report_filename
        self.lcov_content = lcov_content
        self.calls: list[tuple[Component, Workspace]] = []

    @property
    def name(self) -> str:
        return "mock-collector"

    @property
    def is_available(self) -> bool:
        return True

    async def collect(self, component: Component, workspace: Workspace) -> ToolResult:
        self.calls.append((component, workspace))
        failed = component.identifier in self.failures

        if (not failed and component.identifier not in self.no_report) or (
            failed and component.identifier in self.report_on_failure
        ):
            (workspace.report_dir / self.report_filename).write_text(self.lcov_content)

        if failed:
            return ToolResult(success=False, exit_code=101, stderr="error: test failed")
        return ToolResult(success=True, exit_code=0, stdout="coverage written")

    @property
    def collected(self) -> list[str]:
        """Identifiers passed to collect(), in call order."""
        return [component.identifier for component, _ in self.calls]


class MockUploader:
    """Uploader that records calls and fails for selected components."""

    def __init__(self, failures: set[str] | None = None):
        self.failures = failures or set()
        self.calls: list[tuple[Path, str, str | None]] = []

    @property
    def name(self) -> str:
        return "mock-uploader"

    @property
    def is_available(self) -> bool:
        return True

    async def upload(self, report: CoverageReport, token: str | None) -> ToolResult:
        self.calls.append((report.path, report.component_identifier, token))
        if report.component_identifier in self.failures:
            return ToolResult(success=False, exit_code=1, stderr="422 Unprocessable Entity")
        return ToolResult(success=True, exit_code=0)

    @property
    def uploaded(self) -> list[str]:
        """Identifiers passed to upload(), in call order."""
        return [identifier for _, identifier, _ in self.calls]
