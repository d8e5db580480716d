"""
External tools driven by covrelay.

- Coverage collectors (cargo-tarpaulin)
- Report uploaders (coveralls reporter, Coveralls HTTP API)
- In-process fakes for tests
"""

from covrelay.tools.base import ExternalTool, SubprocessTool, ToolResult
from covrelay.tools.collector import CoverageCollector, TarpaulinCollector
from covrelay.tools.mock import MockCollector, MockUploader
from covrelay.tools.uploader import (
    CoverallsCliUploader,
    CoverallsHttpUploader,
    ReportUploader,
    create_uploader,
)

__all__ = [
    "CoverageCollector",
    "CoverallsCliUploader",
    "CoverallsHttpUploader",
    "ExternalTool",
    "MockCollector",
    "MockUploader",
    "ReportUploader",
    "SubprocessTool",
    "TarpaulinCollector",
    "ToolResult",
    "create_uploader",
]
