"""
Report upload to the hosted coverage service.

Two backends share the ReportUploader interface:
- CoverallsCliUploader: shells out to the coveralls reporter
- CoverallsHttpUploader: posts a Coveralls JSON job with httpx
"""

import json
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx

from covrelay.config import RunConfig, UploaderKind
from covrelay.lcov import read_lcov
from covrelay.models import CoverageReport
from covrelay.tools.base import ExternalTool, SubprocessTool, ToolResult

MISSING_TOKEN = "no repository token configured"


@runtime_checkable
class ReportUploader(ExternalTool, Protocol):
    """Sends a coverage report to the hosting service."""

    async def upload(self, report: CoverageReport, token: str | None) -> ToolResult:
        """Upload one component's report."""
        ...


class CoverallsCliUploader(SubprocessTool):
    """Uploader backed by the `coveralls` reporter binary."""

    def __init__(
        self,
        command: Sequence[str] = ("coveralls",),
        timeout_seconds: float = 120.0,
    ):
        super().__init__(command, timeout_seconds)

    def build_args(self, report: CoverageReport, token: str) -> list[str]:
        """Arguments for one upload, appended to the base command."""
        return [
            "--lcov-file",
            str(report.path),
            "--repo-token",
            token,
            "--job-flag",
            report.component_identifier,
        ]

    async def upload(self, report: CoverageReport, token: str | None) -> ToolResult:
        """Upload a report; the token is masked in recorded output."""
        if not token:
            return ToolResult.failed(MISSING_TOKEN, self.command)
        return await self.execute(self.build_args(report, token), secrets=[token])


class CoverallsHttpUploader:
    """
    Uploader that talks to the Coveralls jobs API directly.

    Converts the LCOV report into a Coveralls job and posts it as the
    multipart `json_file` field.
    """

    def __init__(
        self,
        endpoint: str = "https://coveralls.io/api/v1/jobs",
        timeout_seconds: float = 120.0,
        service_name: str = "covrelay",
        repo_root: Path | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the uploader.

        Args:
            endpoint: Coveralls jobs endpoint
            timeout_seconds: Request timeout
            service_name: Value sent as service_name
            repo_root: Root that source file names are made relative to
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.service_name = service_name
        self.repo_root = repo_root or Path.cwd()
        self._transport = transport

    @property
    def name(self) -> str:
        return f"POST {self.endpoint}"

    @property
    def is_available(self) -> bool:
        return True

    def build_job(self, report: CoverageReport, token: str) -> dict[str, object]:
        """Build the Coveralls job payload for a report."""
        lcov = read_lcov(report.path, source_root=self.repo_root)
        return {
            "repo_token": token,
            "service_name": self.service_name,
            "flag_name": report.component_identifier,
            "source_files": lcov.to_coveralls_source_files(self.repo_root),
        }

    async def upload(self, report: CoverageReport, token: str | None) -> ToolResult:
        """Post a report; transport and HTTP errors come back as failed results."""
        command = ["POST", self.endpoint]
        if not token:
            return ToolResult.failed(MISSING_TOKEN, command)

        start = time.monotonic()
        try:
            job = self.build_job(report, token)
        except OSError as e:
            return ToolResult.failed(f"could not read report {report.path}: {e}", command)

        files = {"json_file": ("coveralls.json", json.dumps(job).encode(), "application/json")}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(self.endpoint, files=files)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            return ToolResult(
                success=False,
                error=f"timed out after {self.timeout_seconds:g}s: {e}",
                duration_seconds=time.monotonic() - start,
                command=command,
            )
        except httpx.HTTPStatusError as e:
            return ToolResult(
                success=False,
                exit_code=e.response.status_code,
                stdout=e.response.text,
                error=f"HTTP error {e.response.status_code}",
                duration_seconds=time.monotonic() - start,
                command=command,
            )
        except httpx.HTTPError as e:
            return ToolResult(
                success=False,
                error=f"request failed: {e}",
                duration_seconds=time.monotonic() - start,
                command=command,
            )

        return ToolResult(
            success=True,
            exit_code=response.status_code,
            stdout=response.text,
            duration_seconds=time.monotonic() - start,
            command=command,
        )


def create_uploader(
    config: RunConfig, repo_root: Path | None = None
) -> CoverallsCliUploader | CoverallsHttpUploader:
    """Build the uploader selected by the configuration."""
    if config.uploader == UploaderKind.HTTP:
        return CoverallsHttpUploader(
            endpoint=config.upload_endpoint,
            timeout_seconds=config.upload_timeout_seconds,
            service_name=config.service_name,
            repo_root=repo_root,
        )
    return CoverallsCliUploader(
        command=config.uploader_command,
        timeout_seconds=config.upload_timeout_seconds,
    )
