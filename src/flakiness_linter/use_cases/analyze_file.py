"""Use Case: Analyze one test file and return its findings."""

import fnmatch
import logging

from flakiness_linter.domain.config import AnalysisConfig
from flakiness_linter.domain.dispatcher import FileDispatcher
from flakiness_linter.domain.entities import FileAnalysisResult
from flakiness_linter.domain.errors import ParseError
from flakiness_linter.domain.fixes import EditApplier
from flakiness_linter.domain.protocols import ParserProtocol
from flakiness_linter.domain.registry import RuleRegistry
from flakiness_linter.domain.scope import TestFileScope
from flakiness_linter.domain.source_file import SourceFile

logger = logging.getLogger(__name__)


class AnalyzeFileUseCase:
    """Parse, dispatch every node once, then arbitrate fixes between findings."""

    def __init__(self, parser: ParserProtocol, registry: RuleRegistry, config: AnalysisConfig) -> None:
        self.parser = parser
        self.registry = registry
        self.config = config

    def in_scope(self, path: str) -> bool:
        """Test-file naming conventions plus configured include globs, minus exclude globs."""
        normalized = TestFileScope.normalize(path)
        if any(fnmatch.fnmatch(normalized, pattern) for pattern in self.config.exclude):
            return False
        if not self.parser.supports(normalized):
            return False
        if TestFileScope.is_test_file(normalized):
            return True
        return any(fnmatch.fnmatch(normalized, pattern) for pattern in self.config.include)

    def execute(self, path: str, source: bytes) -> FileAnalysisResult:
        """
        Analyze one file.

        Out-of-scope files and files that cannot be decoded produce no findings. Fixes
        that overlap an earlier-registered detector's fix, or that would make a clean
        file unparseable, are withheld and recorded as conflicts.
        """
        if not self.in_scope(path):
            logger.debug("Skipping %s: not a test file", path)
            return FileAnalysisResult(path=path, in_scope=False)
        try:
            root = self.parser.parse(source, path)
        except ParseError as e:
            logger.debug("Skipping %s: %s", path, e.reason)
            return FileAnalysisResult(path=path, parse_error=e.reason)

        source_file = SourceFile(path, source, root, self.parser.dialect_for(path))
        dispatcher = FileDispatcher(self.registry, self.config, source_file)
        findings = dispatcher.run()

        resolved, conflicts = EditApplier.resolve_conflicts(dispatcher.in_registration_order(findings))
        if not source_file.has_syntax_errors:
            resolved, broken = EditApplier.validate_round_trip(
                resolved, source, lambda fixed: self.parser.parses_cleanly(fixed, path),
            )
            conflicts.extend(broken)
        return FileAnalysisResult(path=path, findings=dispatcher.ordered(resolved), conflicts=conflicts)

    def analyze_text(self, path: str, text: str) -> FileAnalysisResult:
        """Convenience entry for in-memory sources."""
        return self.execute(path, text.encode("utf-8"))
