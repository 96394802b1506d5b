"""Use Case: Apply Fixes to test files."""

import logging

from flakiness_linter.domain.constants import MAX_FIX_PASSES
from flakiness_linter.domain.entities import FileAnalysisResult, ProjectReport
from flakiness_linter.domain.fixes import EditApplier
from flakiness_linter.domain.protocols import FileSystemProtocol, TelemetryPort
from flakiness_linter.use_cases.check_project import CheckProjectUseCase

logger = logging.getLogger(__name__)


class ApplyFixesUseCase:
    """
    Re-analyze and apply accepted fixes pass by pass until a file stops changing.

    Each pass applies only fixes that survived conflict arbitration, so the edits of
    one pass never overlap. Later passes pick up fixes that were withheld because of
    an overlap, now that the earlier edit has landed.
    """

    def __init__(
        self,
        check_project: CheckProjectUseCase,
        filesystem: FileSystemProtocol,
        telemetry: TelemetryPort,
        dry_run: bool = False,
        max_passes: int = MAX_FIX_PASSES,
    ) -> None:
        self.check_project = check_project
        self.filesystem = filesystem
        self.telemetry = telemetry
        self.dry_run = dry_run
        self.max_passes = max_passes

    def fix_source(self, path: str, source: bytes) -> tuple[bytes, int, FileAnalysisResult]:
        """Return (fixed source, number of fixes applied, findings left in the fixed source)."""
        analyze = self.check_project.analyze_file
        parser = analyze.parser
        applied = 0
        result = analyze.execute(path, source)
        for _ in range(self.max_passes):
            fixable = result.fixable_findings
            edits = EditApplier.collect_edits(fixable)
            if not edits:
                break
            fixed = EditApplier.apply(source, edits)
            if fixed == source:
                break
            if not parser.parses_cleanly(fixed, path) and parser.parses_cleanly(source, path):
                logger.debug("Stopped fixing %s: combined edits do not parse", path)
                break
            source = fixed
            applied += len(fixable)
            result = analyze.execute(path, source)
        return source, applied, result

    def execute(self, paths: list[str]) -> ProjectReport:
        verb = "Previewing" if self.dry_run else "Applying"
        files = self.check_project.discover(paths)
        self.telemetry.step(f"{verb} fixes across {len(files)} source file(s)...")
        report = ProjectReport()
        for file_path in files:
            original = self.check_project.read(file_path)
            if original is None:
                continue
            if not self.check_project.analyze_file.in_scope(file_path):
                continue
            fixed, applied, result = self.fix_source(file_path, original)
            report.files.append(result)
            if not applied or fixed == original:
                continue
            report.fixes_applied += applied
            report.fixed_files.append(file_path)
            if self.dry_run:
                self.telemetry.step(f"Would fix {file_path} ({applied} fix(es))")
            else:
                self.filesystem.write_bytes(file_path, fixed)
                self.telemetry.step(f"Fixed {file_path} ({applied} fix(es))")
        self.telemetry.step(
            f"{report.fixes_applied} fix(es) in {len(report.fixed_files)} file(s); "
            f"{report.error_count} error(s), {report.warning_count} warning(s) remain."
        )
        return report
