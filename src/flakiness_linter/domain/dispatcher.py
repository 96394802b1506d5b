"""Dispatcher: routes each syntax node to the enabled detectors that filter on its kind."""

import logging
from dataclasses import replace

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import AnalysisConfig, ResolvedRule
from flakiness_linter.domain.context import ContextInspector
from flakiness_linter.domain.detectors import BaseDetector
from flakiness_linter.domain.entities import Finding, Severity
from flakiness_linter.domain.registry import RuleRegistry
from flakiness_linter.domain.source_file import SourceFile

logger = logging.getLogger(__name__)


class FileDispatcher:
    """
    Binds the enabled detectors to one file and runs them in a single depth-first pass.

    Everything held here (detector instances, inspector caches, findings) belongs to
    this file only and is dropped with the dispatcher.
    """

    def __init__(self, registry: RuleRegistry, config: AnalysisConfig, source: SourceFile) -> None:
        self.source = source
        self.inspector = ContextInspector(source)
        self._bound: dict[str, BaseDetector] = {}
        self._order = {detector_id: index for index, detector_id in enumerate(registry.detector_ids)}
        self._by_kind: dict[str, list[tuple[BaseDetector, ResolvedRule]]] = {}
        for kind in registry.node_kinds:
            bound = []
            for detector_cls in registry.for_kind(kind):
                rule = config.rules.get(detector_cls.detector_id)
                if rule is None or rule.severity == Severity.OFF:
                    continue
                bound.append((self._instance(detector_cls), rule))
            if bound:
                self._by_kind[kind] = bound

    def _instance(self, detector_cls: type[BaseDetector]) -> BaseDetector:
        if detector_cls.detector_id not in self._bound:
            self._bound[detector_cls.detector_id] = detector_cls(self.inspector)
        return self._bound[detector_cls.detector_id]

    @property
    def active(self) -> bool:
        return bool(self._by_kind)

    def dispatch(self, node: Node) -> list[Finding]:
        """Findings of every matching detector for one node; detector failures yield nothing."""
        bound = self._by_kind.get(node.type)
        if not bound:
            return []
        context = self.inspector.build_context(node)
        if context.disabled_by_directive:
            return []
        line = self.source.line_of(node)
        findings: list[Finding] = []
        for detector, rule in bound:
            if self.inspector.is_suppressed(detector.detector_id, line):
                continue
            try:
                produced = detector.detect(node, context, rule.options)
            except Exception:
                logger.debug("Detector %s failed on %s at %s:%d", detector.detector_id, node.type,
                             self.source.path, line, exc_info=True)
                continue
            for finding in produced:
                if finding.span.line != line and self.inspector.is_suppressed(detector.detector_id,
                                                                              finding.span.line):
                    continue
                findings.append(replace(finding, severity=rule.severity))
        return findings

    def run(self) -> list[Finding]:
        """Traverse the tree once and return deduplicated findings in source order."""
        if not self.active:
            return []
        findings: list[Finding] = []
        for node in syntax.walk(self.source.root):
            findings.extend(self.dispatch(node))
        return self.ordered(findings)

    def ordered(self, findings: list[Finding]) -> list[Finding]:
        seen: set[tuple[str, str, int, int]] = set()
        unique: list[Finding] = []
        for finding in findings:
            key = (finding.detector_id, finding.message_id, finding.span.start_byte, finding.span.end_byte)
            if key in seen:
                continue
            seen.add(key)
            unique.append(finding)
        return sorted(unique, key=lambda f: (f.span.start_byte, f.span.end_byte,
                                             self._order.get(f.detector_id, len(self._order)), f.message_id))

    def in_registration_order(self, findings: list[Finding]) -> list[Finding]:
        """Catalog order first, so a later-registered detector's overlapping fix is the one withheld."""
        return sorted(findings, key=lambda f: (self._order.get(f.detector_id, len(self._order)),
                                               f.span.start_byte))
