"""
External tool invocation.

Every external call (collector, uploader) reports back through a
ToolResult instead of raising, so the run controller can record a
per-component outcome and move on.
"""

import asyncio
import shutil
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from covrelay.logging import get_logger

logger = get_logger("tools")

REDACTED = "***"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one external tool invocation."""

    success: bool
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: str | None = None
    duration_seconds: float = 0.0
    command: list[str] = field(default_factory=list)

    def summary(self, limit: int = 200) -> str:
        """One-line description suitable for logs and reports."""
        if self.success:
            return "ok"
        if self.error:
            return self.error
        tail = self.stderr.strip().splitlines()[-1:] or self.stdout.strip().splitlines()[-1:]
        detail = f": {tail[0][:limit]}" if tail else ""
        return f"exit code {self.exit_code}{detail}"

    @classmethod
    def failed(cls, error: str, command: Sequence[str] = ()) -> "ToolResult":
        """A failure that never reached the external tool."""
        return cls(success=False, error=error, command=list(command))


@runtime_checkable
class ExternalTool(Protocol):
    """Anything covrelay shells out to or calls over the network."""

    @property
    def name(self) -> str:
        """Human-readable tool name for logs."""
        ...

    @property
    def is_available(self) -> bool:
        """Whether the tool can be invoked in this environment."""
        ...


class SubprocessTool:
    """
    Runs an external command with a hard timeout and captured output.

    Subclasses build argument lists; this class owns process lifecycle.
    """

    def __init__(self, command: Sequence[str], timeout_seconds: float = 600.0):
        """
        Initialize the tool.

        Args:
            command: Base command, e.g. ["cargo", "tarpaulin"]
            timeout_seconds: Per-invocation timeout; the process is killed on expiry
        """
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.timeout_seconds = timeout_seconds

    @property
    def name(self) -> str:
        """Tool name for logs."""
        return " ".join(self.command)

    @property
    def is_available(self) -> bool:
        """Check the executable is on PATH."""
        return shutil.which(self.command[0]) is not None

    async def execute(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        secrets: Sequence[str] = (),
    ) -> ToolResult:
        """
        Run the command with extra arguments.

        Args:
            args: Arguments appended to the base command
            cwd: Working directory
            secrets: Values to mask in the recorded command and output

        Returns:
            ToolResult; never raises for process-level failures
        """
        argv = [*self.command, *args]
        shown = _redact(argv, secrets)
        logger.debug("Running: %s", " ".join(shown))

        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd) if cwd else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return ToolResult(
                success=False,
                error=f"could not start {self.command[0]}: {e.strerror or e}",
                duration_seconds=time.monotonic() - start,
                command=shown,
            )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except TimeoutError:
            process.kill()
            await process.wait()
            return ToolResult(
                success=False,
                exit_code=process.returncode,
                error=f"timed out after {self.timeout_seconds:g}s",
                duration_seconds=time.monotonic() - start,
                command=shown,
            )

        exit_code = process.returncode
        return ToolResult(
            success=exit_code == 0,
            exit_code=exit_code,
            stdout=_mask(stdout.decode(errors="replace"), secrets),
            stderr=_mask(stderr.decode(errors="replace"), secrets),
            duration_seconds=time.monotonic() - start,
            command=shown,
        )


def _redact(argv: Sequence[str], secrets: Sequence[str]) -> list[str]:
    hidden = {s for s in secrets if s}
    return [REDACTED if arg in hidden else arg for arg in argv]


def _mask(text: str, secrets: Sequence[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text
