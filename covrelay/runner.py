"""
Run Controller - drives coverage collection across all components.

For each discovered component, in discovery order:
1. Skip it if it matches the exclusion directive
2. Ensure its isolated workspace
3. Run the coverage collector
4. Upload the report, if one was produced
5. Write its badge

Component-level failures are recorded on that component's result and
never stop the run. Only discovery errors abort it.
"""

import asyncio
import time
from pathlib import Path

from covrelay.badges import BadgeTemplate, BadgeWriter
from covrelay.config import ConfigError, RunConfig
from covrelay.discovery import discover_components, duplicate_identifiers
from covrelay.lcov import read_lcov
from covrelay.logging import get_logger
from covrelay.models import (
    Component,
    ComponentOutcome,
    ComponentResult,
    CoverageReport,
    RunResult,
    UploadStatus,
    Workspace,
)
from covrelay.tools.base import ToolResult
from covrelay.tools.collector import CoverageCollector, TarpaulinCollector
from covrelay.tools.uploader import ReportUploader, create_uploader
from covrelay.workspace import WorkspaceError, WorkspaceManager

logger = get_logger("runner")

_UPLOAD_OUTCOMES = {
    UploadStatus.UPLOADED: ComponentOutcome.COLLECTED_UPLOADED,
    UploadStatus.FAILED: ComponentOutcome.COLLECTED_UPLOAD_FAILED,
    UploadStatus.DISABLED: ComponentOutcome.COLLECTED_NOT_UPLOADED,
}


class RunController:
    """Orchestrates workspace, collection, upload and badge steps per component."""

    def __init__(
        self,
        config: RunConfig,
        collector: CoverageCollector | None = None,
        uploader: ReportUploader | None = None,
        workspaces: WorkspaceManager | None = None,
        badges: BadgeWriter | None = None,
    ):
        """
        Initialize the controller.

        Args:
            config: Run configuration, fixed for the whole run
            collector: Coverage collector (tarpaulin by default)
            uploader: Report uploader (selected by config by default)
            workspaces: Workspace manager (layout from config by default)
            badges: Badge writer (template from config by default)

        Raises:
            ConfigError: If badges cannot be built because no repository is set
        """
        self.config = config
        self.collector = collector or TarpaulinCollector(
            command=config.collector_command,
            timeout_seconds=config.collector_timeout_seconds,
            exclude_files=config.collector_exclude_files,
        )
        self.uploader = uploader or create_uploader(config)
        self.workspaces = workspaces or WorkspaceManager(
            instrumentation_dir_name=config.instrumentation_dir_name,
            report_dir_name=config.report_dir_name,
        )
        if badges is None:
            if config.repository is None:
                raise ConfigError(
                    "repository is required to build badges "
                    "(set it in covrelay.yaml, GITHUB_REPOSITORY or --repository)"
                )
            badges = BadgeWriter(
                BadgeTemplate(
                    repository=config.repository,
                    service_host=config.service_host,
                    branch=config.branch,
                ),
                output_dir=config.badge_dir,
            )
        self.badges = badges
        self._shared: dict[str, list[Path]] = {}

    def discover(self) -> list[Component]:
        """Discover components under the configured root."""
        return discover_components(
            self.config.root,
            manifest_name=self.config.manifest_name,
            ignore_dirs=self.config.ignore_dirs,
        )

    async def run(self) -> RunResult:
        """
        Process every discovered component.

        Returns:
            RunResult with one entry per component, in discovery order

        Raises:
            DiscoveryError: If the component root cannot be enumerated
        """
        components = self.discover()
        run = RunResult(root=self.config.root)
        self._shared = duplicate_identifiers(components)

        excluded = self.config.exclude_component
        if excluded is None:
            logger.info("No component to skip. Running coverage for all components.")
        else:
            logger.info("Skipping component: %s", excluded)
            if excluded not in {c.identifier for c in components}:
                logger.warning("Excluded component '%s' was not discovered", excluded)

        semaphore = asyncio.Semaphore(self.config.max_concurrent)

        async def _bounded(component: Component) -> ComponentResult:
            async with semaphore:
                return await self.process_component(component)

        run.results = list(await asyncio.gather(*(_bounded(c) for c in components)))
        run.complete()

        logger.info(
            "Run finished: %d component(s), %d uploaded, %d without report, "
            "%d collector failure(s), %d upload failure(s), %d skipped",
            len(run.results),
            run.count(ComponentOutcome.COLLECTED_UPLOADED),
            run.count(ComponentOutcome.COLLECTED_NO_REPORT),
            run.count(ComponentOutcome.COLLECTOR_FAILED),
            run.count(ComponentOutcome.COLLECTED_UPLOAD_FAILED),
            run.count(ComponentOutcome.SKIPPED),
        )
        return run

    async def process_component(self, component: Component) -> ComponentResult:
        """Run every step for one component and record the outcome."""
        name = component.identifier
        if name == self.config.exclude_component:
            logger.info("[%s] skipped by exclusion", name)
            return ComponentResult(component=component, outcome=ComponentOutcome.SKIPPED)

        result = ComponentResult(component=component, outcome=ComponentOutcome.COLLECTOR_FAILED)
        if name in self._shared:
            # Badge file and exclusion target would be ambiguous.
            others = [str(r) for r in self._shared[name] if r != component.root]
            logger.error("[%s] identifier shared with %s", name, ", ".join(others))
            result.errors.append(
                f"discover: identifier '{name}' is also used by {', '.join(others)}"
            )
            return result

        start = time.monotonic()
        step = "workspace"
        try:
            workspace = self.workspaces.ensure(component)
            result.workspace = workspace
            step = "collect"
            result.outcome = await self._collect_and_upload(component, workspace, result)
        except WorkspaceError as e:
            logger.error("[%s] workspace failed: %s", name, e)
            result.errors.append(f"workspace: {e}")
        except Exception as e:
            logger.exception("[%s] %s step raised", name, step)
            result.outcome = ComponentOutcome.COLLECTOR_FAILED
            result.errors.append(f"{step}: {type(e).__name__}: {e}")

        self._emit_badge(component, result)
        result.duration_seconds = time.monotonic() - start
        return result

    def exit_code(self, run: RunResult) -> int:
        """Process exit status for a finished run."""
        if self.config.fail_on_component_error and run.has_failures:
            return 1
        return 0

    async def _collect_and_upload(
        self, component: Component, workspace: Workspace, result: ComponentResult
    ) -> ComponentOutcome:
        name = component.identifier
        report_path = workspace.report_dir / self.config.report_filename
        # A report left over from an earlier run must not be uploaded as this run's.
        try:
            report_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("[%s] could not remove stale report: %s", name, e)
            result.errors.append(f"collect: stale report {report_path}: {e}")
            return ComponentOutcome.COLLECTOR_FAILED

        logger.info("[%s] running coverage with %s", name, self.collector.name)
        try:
            collected = await self.collector.collect(component, workspace)
        except Exception as e:
            collected = ToolResult.failed(f"{type(e).__name__}: {e}")
        result.collector_exit_code = collected.exit_code

        if not collected.success:
            logger.error("[%s] collect failed: %s", name, collected.summary())
            result.errors.append(f"collect: {collected.summary()}")

        if not report_path.is_file():
            logger.warning("[%s] no %s found", name, self.config.report_filename)
            if not collected.success:
                return ComponentOutcome.COLLECTOR_FAILED
            return ComponentOutcome.COLLECTED_NO_REPORT

        report = CoverageReport(path=report_path, component_identifier=name)
        result.report = report
        self._record_coverage(report, component.root, result)
        result.upload_status = await self._upload(report, result)

        if not collected.success:
            return ComponentOutcome.COLLECTOR_FAILED
        return _UPLOAD_OUTCOMES[result.upload_status]

    async def _upload(self, report: CoverageReport, result: ComponentResult) -> UploadStatus:
        name = report.component_identifier
        if not self.config.upload_enabled:
            logger.info("[%s] upload disabled; report kept at %s", name, report.path)
            return UploadStatus.DISABLED

        logger.info("[%s] uploading coverage", name)
        try:
            uploaded = await self.uploader.upload(report, self.config.repo_token)
        except Exception as e:
            uploaded = ToolResult.failed(f"{type(e).__name__}: {e}")

        if uploaded.success:
            return UploadStatus.UPLOADED
        logger.error("[%s] upload failed: %s", name, uploaded.summary())
        result.errors.append(f"upload: {uploaded.summary()}")
        return UploadStatus.FAILED

    def _record_coverage(
        self, report: CoverageReport, source_root: Path, result: ComponentResult
    ) -> None:
        try:
            lcov = read_lcov(report.path, source_root=source_root)
        except OSError as e:
            logger.warning("[%s] could not read report: %s", report.component_identifier, e)
            return
        logger.info(
            "[%s] line coverage %.1f%% (%d/%d)",
            report.component_identifier,
            lcov.line_coverage_percent,
            lcov.lines_hit,
            lcov.lines_found,
        )
        result.line_coverage = lcov.line_coverage_percent
        # Tarpaulin's LCOV output often carries no BRDA records.
        if lcov.branches_found:
            result.branch_coverage = lcov.branch_coverage_percent

    def _emit_badge(self, component: Component, result: ComponentResult) -> None:
        try:
            result.badge = self.badges.emit(component.identifier)
        except OSError as e:
            logger.error("[%s] badge failed: %s", component.identifier, e)
            result.errors.append(f"badge: {e}")
        except Exception as e:
            logger.exception("[%s] badge step raised", component.identifier)
            result.errors.append(f"badge: {type(e).__name__}: {e}")


async def run_coverage(
    config: RunConfig,
    collector: CoverageCollector | None = None,
    uploader: ReportUploader | None = None,
) -> RunResult:
    """Convenience wrapper: build a controller and run it."""
    controller = RunController(config, collector=collector, uploader=uploader)
    return await controller.run()
