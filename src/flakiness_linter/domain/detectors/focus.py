"""Focused and skipped tests left in the suite."""

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.bindings import IMPORT
from flakiness_linter.domain.config import BOOL, STRING_LIST, OptionSpec, RuleOptions
from flakiness_linter.domain.constants import DESCRIBE_FUNCTIONS, TEST_FUNCTIONS
from flakiness_linter.domain.detectors.base import BaseDetector
from flakiness_linter.domain.entities import Capability, DetectorContext, Finding, Severity

FOCUS_MARKERS = frozenset({"only"})
SKIP_MARKERS = frozenset({"skip", "todo", "fixme"})
FOCUSED_FUNCTIONS = frozenset({"fit", "fdescribe", "ftest", "fcontext", "fsuite", "fspecify"})
SKIPPED_FUNCTIONS = frozenset({"xit", "xdescribe", "xtest", "xcontext", "xsuite", "xspecify"})
SUITE_ROOTS = TEST_FUNCTIONS | DESCRIBE_FUNCTIONS | frozenset({"context", "suite"})
RENAMED = SUITE_ROOTS | frozenset({"it", "describe", "test", "context", "suite", "specify"})


class TestFocusDetector(BaseDetector):
    """`.only`, `.skip`, `.todo`, `fit`/`xit`-style markers and custom patterns."""

    __test__ = False

    detector_id = "no-test-focus"
    code = "FT012"
    capability = Capability.FOCUS
    node_kinds = frozenset({syntax.CALL})
    default_severity = Severity.ERROR
    description = "Disallow focused and skipped tests."
    fixable = True
    option_schema = {
        "allowSkip": OptionSpec(BOOL, False),
        "allowOnly": OptionSpec(BOOL, False),
        "customFocusPatterns": OptionSpec(STRING_LIST, []),
        "customSkipPatterns": OptionSpec(STRING_LIST, []),
    }
    messages = {
        "noTestOnly": "Remove '.only' from {{method}}; it silently disables the rest of the suite.",
        "noTestSkip": "Remove the skip marker from {{method}} or delete the test.",
        "noFocusedTest": "Focused test '{{method}}' silently disables the rest of the suite.",
        "noSkippedTest": "Skipped test '{{method}}' hides a failing or flaky test.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        target = syntax.callee(node)
        if target is None:
            return []
        if target.type == syntax.IDENTIFIER:
            return self._identifier(node, target, options)
        if target.type not in (syntax.MEMBER, syntax.SUBSCRIPT):
            return []
        path = syntax.path_of(target)
        if path is None:
            return []
        root_name = syntax.path_root(path)
        if root_name in SUITE_ROOTS and self._framework_name(root_name, node):
            findings = self._marker(node, target, root_name, context, options)
            if findings is not None:
                return findings
        return self._custom(node, path, options)

    def _framework_name(self, name: str, node: Node) -> bool:
        binding = self.source.bindings.lookup(name, node)
        return binding is None or binding.kind == IMPORT

    def _marker(self, node: Node, target: Node, root_name: str, context: DetectorContext,
                options: RuleOptions) -> list[Finding] | None:
        marker: tuple[Node, str] | None = None
        current: Node | None = target
        while current is not None and current.type in (syntax.MEMBER, syntax.SUBSCRIPT):
            prop = syntax.property_name(current)
            if prop in FOCUS_MARKERS or prop in SKIP_MARKERS:
                marker = (current, prop)
            current = syntax.member_object(current)
        if marker is None:
            return None
        member, prop = marker
        owner = syntax.member_object(member)
        if prop in FOCUS_MARKERS:
            if options["allowOnly"]:
                return []
            return [self.finding(node, "noTestOnly", {"method": root_name},
                                 fix=lambda: [self.fixes.remove_between(owner, member)])]
        if options["allowSkip"]:
            return []
        if context.inside_test_body and not any(syntax.is_function(syntax.unwrap(a)) for a in syntax.arguments(node)):
            # `test.skip(condition)` inside a test is a runtime skip, not a marker.
            return []
        fix = (lambda: [self.fixes.remove_between(owner, member)]) if prop == "skip" else None
        return [self.finding(node, "noTestSkip", {"method": root_name}, fix=fix)]

    def _identifier(self, node: Node, target: Node, options: RuleOptions) -> list[Finding]:
        name = syntax.text(target)
        if name in FOCUSED_FUNCTIONS or name in SKIPPED_FUNCTIONS:
            if self.source.bindings.is_bound(name, node):
                return []
            focused = name in FOCUSED_FUNCTIONS
            if options["allowOnly" if focused else "allowSkip"]:
                return []
            fix = (lambda: [self.fixes.replace(target, name[1:])]) if name[1:] in RENAMED else None
            return [self.finding(node, "noFocusedTest" if focused else "noSkippedTest", {"method": name}, fix=fix)]
        return self._custom(node, name, options)

    def _custom(self, node: Node, path: str, options: RuleOptions) -> list[Finding]:
        if options["customFocusPatterns"] and not options["allowOnly"] and (
                self.matches_any(path, options["customFocusPatterns"])
                or self.matches_any(syntax.path_tail(path) or path, options["customFocusPatterns"])):
            return [self.finding(node, "noFocusedTest", {"method": path})]
        if options["customSkipPatterns"] and not options["allowSkip"] and (
                self.matches_any(path, options["customSkipPatterns"])
                or self.matches_any(syntax.path_tail(path) or path, options["customSkipPatterns"])):
            return [self.finding(node, "noSkippedTest", {"method": path})]
        return []
