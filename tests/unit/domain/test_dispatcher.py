"""Unit tests for FileDispatcher."""

import unittest
from types import MappingProxyType

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import AnalysisConfig, ResolvedRule
from flakiness_linter.domain.detectors import BaseDetector
from flakiness_linter.domain.dispatcher import FileDispatcher
from flakiness_linter.domain.entities import Capability, Severity
from flakiness_linter.domain.registry import RuleRegistry
from tests.linter_test_utils import parse_source


class EveryCallDetector(BaseDetector):
    detector_id = "every-call"
    code = "XX001"
    capability = Capability.TIMING
    node_kinds = frozenset({syntax.CALL})
    messages = {"call": "Call to {{name}}."}

    def detect(self, node, context, options):
        return [self.finding(node, "call", {"name": syntax.simple_callee_name(node)})]


class BrokenDetector(BaseDetector):
    detector_id = "broken"
    code = "XX002"
    node_kinds = frozenset({syntax.CALL})
    messages = {"never": "never"}

    def detect(self, node, context, options):
        raise RuntimeError("boom")


def _dispatcher(code: str, severities: dict[str, Severity] | None = None) -> FileDispatcher:
    severities = severities or {"every-call": Severity.WARN, "broken": Severity.WARN}
    registry = RuleRegistry((EveryCallDetector, BrokenDetector))
    rules = {detector_id: ResolvedRule(sev, MappingProxyType({})) for detector_id, sev in severities.items()}
    return FileDispatcher(registry, AnalysisConfig(rules=rules), parse_source(code))


class TestFileDispatcher(unittest.TestCase):
    def test_failing_detector_does_not_stop_the_others(self) -> None:
        findings = _dispatcher("a();\nb();\n").run()
        self.assertEqual([f.message for f in findings], ["Call to a.", "Call to b."])
        self.assertEqual([f.span.line for f in findings], [1, 2])

    def test_configured_severity_overrides_default(self) -> None:
        findings = _dispatcher("a();", {"every-call": Severity.ERROR}).run()
        self.assertEqual(findings[0].severity, Severity.ERROR)
        self.assertEqual(findings[0].code, "XX001")

    def test_disabled_rules_are_not_bound(self) -> None:
        dispatcher = _dispatcher("a();", {"every-call": Severity.OFF, "broken": Severity.OFF})
        self.assertFalse(dispatcher.active)
        self.assertEqual(dispatcher.run(), [])

    def test_rule_missing_from_config_is_not_run(self) -> None:
        self.assertEqual(_dispatcher("a();", {"broken": Severity.WARN}).run(), [])

    def test_suppressed_lines_are_skipped(self) -> None:
        code = "// flaky-disable-next-line every-call\na();\nb();\n"
        findings = _dispatcher(code).run()
        self.assertEqual([f.span.line for f in findings], [3])

    def test_findings_are_sorted_and_deduplicated(self) -> None:
        dispatcher = _dispatcher("a(b());")
        findings = dispatcher.run()
        self.assertEqual([f.message for f in findings], ["Call to a.", "Call to b."])
        self.assertEqual(dispatcher.ordered(findings + findings), findings)

    def test_in_registration_order(self) -> None:
        dispatcher = _dispatcher("a();\nb();\n")
        findings = dispatcher.run()
        self.assertEqual(dispatcher.in_registration_order(list(reversed(findings))), findings)
