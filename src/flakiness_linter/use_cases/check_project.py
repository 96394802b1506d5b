"""Use Case: Check Project - walk paths, analyze every test file, aggregate a report."""

import logging

from flakiness_linter.domain.constants import DEFAULT_EXCLUDES
from flakiness_linter.domain.entities import FileAnalysisResult, ProjectReport
from flakiness_linter.domain.protocols import FileSystemProtocol, TelemetryPort
from flakiness_linter.use_cases.analyze_file import AnalyzeFileUseCase

logger = logging.getLogger(__name__)


class CheckProjectUseCase:
    """Orchestrate file discovery and per-file analysis. Files are independent of each other."""

    def __init__(
        self,
        filesystem: FileSystemProtocol,
        analyze_file: AnalyzeFileUseCase,
        telemetry: TelemetryPort,
    ) -> None:
        self.filesystem = filesystem
        self.analyze_file = analyze_file
        self.telemetry = telemetry

    def discover(self, paths: list[str]) -> list[str]:
        """Source files under `paths`, deduplicated, in a stable order."""
        excludes = DEFAULT_EXCLUDES + tuple(self.analyze_file.config.exclude)
        seen: dict[str, None] = {}
        for path in paths or ["."]:
            for file_path in self.filesystem.glob_source_files(path, excludes):
                seen.setdefault(file_path, None)
        return sorted(seen)

    def read(self, file_path: str) -> bytes | None:
        try:
            return self.filesystem.read_bytes(file_path)
        except OSError as e:
            self.telemetry.warning(f"Cannot read {file_path}: {e}")
            return None

    def analyze_path(self, file_path: str) -> FileAnalysisResult:
        source = self.read(file_path)
        if source is None:
            return FileAnalysisResult(path=file_path, parse_error="unreadable")
        return self.analyze_file.execute(file_path, source)

    def execute(self, paths: list[str]) -> ProjectReport:
        files = self.discover(paths)
        self.telemetry.step(f"Scanning {len(files)} source file(s)...")
        report = ProjectReport()
        for file_path in files:
            result = self.analyze_path(file_path)
            if not result.in_scope:
                continue
            if result.parse_error:
                self.telemetry.warning(f"Skipped {file_path}: {result.parse_error}")
            for conflict in result.conflicts:
                logger.debug("%s:%d withheld fix for %s (%s)", file_path, conflict.span.line,
                             conflict.detector_id, conflict.reason)
            report.files.append(result)
        self.telemetry.step(
            f"Analyzed {len(report.files)} test file(s): "
            f"{report.error_count} error(s), {report.warning_count} warning(s)."
        )
        return report
