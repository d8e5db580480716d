"""
Core data models for a coverage run.

Components, their isolated workspaces, produced artifacts and the
per-component outcome taxonomy reported at the end of a run.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4


class ComponentOutcome(str, Enum):
    """Terminal state of a single component within a run."""

    SKIPPED = "skipped"
    """Matched the exclusion directive; nothing was created or invoked."""

    COLLECTOR_FAILED = "collector_failed"
    """Workspace setup or the coverage collector failed."""

    COLLECTED_NO_REPORT = "collected_no_report"
    """Collector succeeded but produced no report artifact."""

    COLLECTED_UPLOADED = "collected_uploaded"
    """Report produced and accepted by the hosting service."""

    COLLECTED_UPLOAD_FAILED = "collected_upload_failed"
    """Report produced but the upload failed."""

    COLLECTED_NOT_UPLOADED = "collected_not_uploaded"
    """Report produced; uploads are disabled for this run."""


class UploadStatus(str, Enum):
    """What happened in the upload step."""

    NOT_ATTEMPTED = "not_attempted"
    UPLOADED = "uploaded"
    FAILED = "failed"
    DISABLED = "disabled"


@dataclass(frozen=True)
class Component:
    """An independently testable unit identified by a manifest file."""

    identifier: str
    manifest_path: Path
    root: Path

    @classmethod
    def from_manifest(cls, manifest_path: Path) -> "Component":
        """Build a component whose root is the manifest's directory."""
        root = manifest_path.parent
        return cls(identifier=root.name, manifest_path=manifest_path, root=root)


@dataclass(frozen=True)
class Workspace:
    """Scratch directories owned by exactly one component."""

    instrumentation_dir: Path
    report_dir: Path


@dataclass(frozen=True)
class CoverageReport:
    """A report artifact produced for a component."""

    path: Path
    component_identifier: str


@dataclass(frozen=True)
class Badge:
    """A status-badge reference persisted for a component."""

    component_identifier: str
    url: str
    markdown: str
    artifact_path: Path


@dataclass
class ComponentResult:
    """Everything recorded about one component during a run."""

    component: Component
    outcome: ComponentOutcome
    upload_status: UploadStatus = UploadStatus.NOT_ATTEMPTED
    workspace: Workspace | None = None
    report: CoverageReport | None = None
    badge: Badge | None = None
    line_coverage: float | None = None
    branch_coverage: float | None = None
    collector_exit_code: int | None = None
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def identifier(self) -> str:
        """Component identifier shortcut."""
        return self.component.identifier

    @property
    def is_failure(self) -> bool:
        """Whether this component counts as failed for strict exit codes."""
        return self.outcome in (
            ComponentOutcome.COLLECTOR_FAILED,
            ComponentOutcome.COLLECTED_UPLOAD_FAILED,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "component": self.identifier,
            "manifest_path": str(self.component.manifest_path),
            "outcome": self.outcome.value,
            "upload_status": self.upload_status.value,
            "report_path": str(self.report.path) if self.report else None,
            "badge_path": str(self.badge.artifact_path) if self.badge else None,
            "line_coverage": (
                round(self.line_coverage, 2) if self.line_coverage is not None else None
            ),
            "branch_coverage": (
                round(self.branch_coverage, 2) if self.branch_coverage is not None else None
            ),
            "collector_exit_code": self.collector_exit_code,
            "errors": list(self.errors),
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class RunResult:
    """Per-component results for a whole run, in discovery order."""

    root: Path
    results: list[ComponentResult] = field(default_factory=list)
    run_id: str = field(default_factory=lambda: uuid4().hex[:12])
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @property
    def per_component(self) -> dict[str, ComponentOutcome]:
        """Mapping of component identifier to outcome."""
        return {r.identifier: r.outcome for r in self.results}

    @property
    def has_failures(self) -> bool:
        """Whether any component failed to collect or upload."""
        return any(r.is_failure for r in self.results)

    @property
    def duration_seconds(self) -> float | None:
        """Wall-clock duration of the run, once complete."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def get(self, identifier: str) -> ComponentResult | None:
        """Look up the result for a component identifier."""
        for result in self.results:
            if result.identifier == identifier:
                return result
        return None

    def count(self, outcome: ComponentOutcome) -> int:
        """Number of components that ended with the given outcome."""
        return sum(1 for r in self.results if r.outcome == outcome)

    def complete(self) -> None:
        """Mark the run as complete."""
        self.completed_at = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "run_id": self.run_id,
            "root": str(self.root),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "has_failures": self.has_failures,
            "summary": {outcome.value: self.count(outcome) for outcome in ComponentOutcome},
            "components": [r.to_dict() for r in self.results],
        }
