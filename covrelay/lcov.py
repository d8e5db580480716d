"""
LCOV report parsing.

Reads the line (DA) and branch (BRDA) records of an lcov.info file into
per-file hit maps, for run summaries and for building Coveralls jobs.
"""

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from covrelay.logging import get_logger

logger = get_logger("lcov")


@dataclass
class LcovFile:
    """Coverage for one source file."""

    path: Path
    lines: dict[int, int] = field(default_factory=dict)
    branches_found: int = 0
    branches_hit: int = 0

    @property
    def lines_found(self) -> int:
        """Number of instrumented lines."""
        return len(self.lines)

    @property
    def lines_hit(self) -> int:
        """Number of instrumented lines executed at least once."""
        return sum(1 for hits in self.lines.values() if hits > 0)

    def coverage_array(self, line_count: int) -> list[int | None]:
        """Per-line hit counts, None for lines that are not coverable."""
        size = max([line_count, *self.lines.keys()]) if self.lines else line_count
        array: list[int | None] = [None] * size
        for line_no, hits in self.lines.items():
            if line_no >= 1:
                array[line_no - 1] = hits
        return array


@dataclass
class LcovReport:
    """Parsed contents of an LCOV file."""

    files: dict[Path, LcovFile] = field(default_factory=dict)

    @property
    def lines_found(self) -> int:
        return sum(f.lines_found for f in self.files.values())

    @property
    def lines_hit(self) -> int:
        return sum(f.lines_hit for f in self.files.values())

    @property
    def branches_found(self) -> int:
        return sum(f.branches_found for f in self.files.values())

    @property
    def branches_hit(self) -> int:
        return sum(f.branches_hit for f in self.files.values())

    @property
    def line_coverage_percent(self) -> float:
        """Line coverage (0.0 to 100.0); 0.0 when nothing is instrumented."""
        if self.lines_found == 0:
            return 0.0
        return (self.lines_hit / self.lines_found) * 100.0

    @property
    def branch_coverage_percent(self) -> float:
        """Branch coverage (0.0 to 100.0); 0.0 when no branches are recorded."""
        if self.branches_found == 0:
            return 0.0
        return (self.branches_hit / self.branches_found) * 100.0

    def to_coveralls_source_files(self, repo_root: Path) -> list[dict[str, Any]]:
        """
        Build the `source_files` section of a Coveralls job.

        Args:
            repo_root: Repository root that file names are made relative to

        Returns:
            One entry per file with name, source_digest and coverage
        """
        source_files = []
        for path, lcov_file in sorted(self.files.items()):
            try:
                content = path.read_bytes()
            except OSError:
                logger.debug("Source file %s not readable; digest of empty content used", path)
                content = b""
            line_count = len(content.decode(errors="replace").splitlines())
            source_files.append(
                {
                    "name": _relative_name(path, repo_root),
                    "source_digest": hashlib.md5(content).hexdigest(),
                    "coverage": lcov_file.coverage_array(line_count),
                }
            )
        return source_files


def parse_lcov(text: str, source_root: Path | None = None) -> LcovReport:
    """
    Parse LCOV text.

    Relative SF paths resolve against source_root. Records that appear
    more than once for the same file are merged. Malformed lines are skipped.
    """
    report = LcovReport()
    current: LcovFile | None = None

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue

        if line.startswith("SF:"):
            path = Path(line[3:])
            if not path.is_absolute() and source_root is not None:
                path = source_root / path
            current = report.files.setdefault(path, LcovFile(path=path))

        elif line == "end_of_record":
            current = None

        elif current is None:
            continue

        elif line.startswith("DA:"):
            parts = line[3:].split(",")
            if len(parts) < 2:
                continue
            try:
                line_no, hits = int(parts[0]), int(parts[1])
            except ValueError:
                continue
            current.lines[line_no] = current.lines.get(line_no, 0) + hits

        elif line.startswith("BRDA:"):
            parts = line[5:].split(",")
            if len(parts) < 4:
                continue
            current.branches_found += 1
            if parts[3] not in ("-", "0"):
                current.branches_hit += 1

    return report


def read_lcov(path: Path, source_root: Path | None = None) -> LcovReport:
    """Read and parse an LCOV file from disk."""
    return parse_lcov(path.read_text(encoding="utf-8", errors="replace"), source_root)


def _relative_name(path: Path, repo_root: Path) -> str:
    try:
        return path.resolve().relative_to(repo_root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()
