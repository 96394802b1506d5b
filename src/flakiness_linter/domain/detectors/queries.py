"""Query-shape detectors: positional queries and long exact text matches."""

import re

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import BOOL, NUMBER, OptionSpec, RuleOptions
from flakiness_linter.domain.detectors.base import BaseDetector
from flakiness_linter.domain.entities import Capability, DetectorContext, Finding, Framework
from flakiness_linter.domain.fixes import escape_regex

MULTI_QUERY = re.compile(r"^(getAll|queryAll|findAll)By[A-Z]\w*$")
NTH_CHILD = re.compile(r":nth-(?:last-)?(?:child|of-type)\(\s*([^)]*?)\s*\)")
FIRST_LAST = re.compile(r":((?:first|last|only)-(?:child|of-type)|first|last)(?![\w-])")
NTH_SELECTOR = re.compile(r"(?:^|>>\s*)nth=(-?\d+)")
DATA_INDEX = re.compile(r"\[data-index\b")
ARRAY_PASSTHROUGH = frozenset({"filter", "map", "slice", "reverse", "sort", "concat", "flat", "toReversed",
                               "toSorted"})
POSITIONAL_HELPERS = frozenset({"eq", "first", "last", "nth"})
DRIVER_ROOTS = frozenset({"cy", "$", "jQuery", "page", "frame", "browser", "element"})
DRIVER_QUERIES = frozenset({
    "get", "find", "children", "siblings", "contains", "locator", "$", "$$", "getByRole", "getByText",
    "getByTestId", "getByLabel", "getByPlaceholder", "getByTitle", "filter", "all", "querySelectorAll",
})


class IndexQueriesDetector(BaseDetector):
    """Positional selectors and index access on multi-element query results."""

    detector_id = "no-index-queries"
    code = "FT006"
    capability = Capability.QUERY_SHAPE
    node_kinds = frozenset({syntax.STRING, syntax.TEMPLATE, syntax.SUBSCRIPT, syntax.CALL,
                            syntax.VARIABLE_DECLARATOR})
    description = "Disallow index-based and positional element queries."
    messages = {
        "avoidNthChild": "Avoid positional selector ':nth-child({{index}})'; query by role, label or test id.",
        "avoidIndexAccess": "Avoid picking element [{{index}}] from a query result; query the element directly.",
        "avoidFirstLast": "Avoid positional '{{pseudo}}' selection; query the element directly.",
        "avoidArrayIndex": "Avoid destructuring elements by position from a query result.",
        "avoidDataIndex": "Avoid selecting by data-index; positions change when data changes.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if node.type in (syntax.STRING, syntax.TEMPLATE):
            return self._selector(node)
        if node.type == syntax.SUBSCRIPT:
            index = syntax.unwrap(node.child_by_field_name("index"))
            if index is None or syntax.is_string_like(index) or syntax.is_assignment_target(node):
                return []
            if self._is_multi_result(syntax.member_object(node)):
                return [self.finding(node, "avoidIndexAccess", {"index": syntax.text(index)})]
            return []
        if node.type == syntax.VARIABLE_DECLARATOR:
            name = node.child_by_field_name("name")
            if name is not None and name.type == "array_pattern" and self._is_multi_result(node.child_by_field_name("value")):
                return [self.finding(node, "avoidArrayIndex")]
            return []
        return self._positional_call(node)

    def _selector(self, node: Node) -> list[Finding]:
        parent = node.parent
        while parent is not None and parent.type in syntax.WRAPPER_KINDS:
            parent = parent.parent
        if parent is None or parent.type != "arguments":
            return []
        value = syntax.literal_text(node)
        if not value:
            return []
        match = NTH_CHILD.search(value)
        if match:
            return [self.finding(node, "avoidNthChild", {"index": match.group(1)})]
        match = FIRST_LAST.search(value)
        if match:
            return [self.finding(node, "avoidFirstLast", {"pseudo": f":{match.group(1)}"})]
        match = NTH_SELECTOR.search(value)
        if match:
            return [self.finding(node, "avoidIndexAccess", {"index": match.group(1)})]
        if DATA_INDEX.search(value):
            return [self.finding(node, "avoidDataIndex")]
        return []

    def _positional_call(self, node: Node) -> list[Finding]:
        target = syntax.callee(node)
        if target is None or target.type != syntax.MEMBER:
            return []
        method = syntax.property_name(target)
        receiver = syntax.member_object(target)
        if method == "at":
            index = syntax.argument(node, 0)
            if index is not None and self._is_multi_result(receiver):
                return [self.finding(node, "avoidIndexAccess", {"index": syntax.text(index)})]
            return []
        if method not in POSITIONAL_HELPERS or not self._is_driver_chain(receiver):
            return []
        if method in ("eq", "nth"):
            index = syntax.argument(node, 0)
            return [self.finding(node, "avoidIndexAccess", {"index": syntax.text(index) if index is not None else ""})]
        return [self.finding(node, "avoidFirstLast", {"pseudo": f".{method}()"})]

    def _is_driver_chain(self, receiver: Node | None) -> bool:
        receiver = syntax.unwrap(receiver)
        if receiver is None:
            return False
        root = syntax.path_root(syntax.path_of(receiver))
        if root in DRIVER_ROOTS:
            return True
        return any(syntax.simple_callee_name(call) in DRIVER_QUERIES for call in syntax.call_chain(receiver))

    def _is_multi_result(self, node: Node | None, depth: int = 0) -> bool:
        node = syntax.unwrap(node)
        if node is None or depth > 6:
            return False
        if node.type == syntax.AWAIT:
            inner = syntax.named_children(node)
            return bool(inner) and self._is_multi_result(inner[0], depth + 1)
        if node.type == syntax.CALL:
            name = syntax.simple_callee_name(node)
            if name is not None and MULTI_QUERY.match(name):
                return True
            target = syntax.callee(node)
            if name in ARRAY_PASSTHROUGH and target is not None and target.type == syntax.MEMBER:
                return self._is_multi_result(syntax.member_object(target), depth + 1)
            if name == "from" and target is not None and syntax.text(target) == "Array.from":
                return self._is_multi_result(syntax.argument(node, 0), depth + 1)
            return False
        if node.type == syntax.IDENTIFIER:
            binding = self.source.bindings.lookup(syntax.text(node), node)
            if binding is None or binding.init is None or binding.kind not in ("const", "let", "var"):
                return False
            declared = binding.declaration
            name = declared.child_by_field_name("name") if declared.type == syntax.VARIABLE_DECLARATOR else None
            if name is not None and name.type == syntax.IDENTIFIER:
                return self._is_multi_result(binding.init, depth + 1)
        return False


TEXT_QUERY = re.compile(r"^(get|find|query)(All)?ByText$")
TEST_ID_QUERY = re.compile(r"^(get|find|query)(All)?ByTestId$")
TEXT_ASSERTIONS = frozenset({"toHaveTextContent", "toHaveText", "toContainText", "toHaveDisplayValue"})
EQUALITY_MATCHERS = frozenset({"toBe", "toEqual", "toStrictEqual"})
TEXT_READS = ("textContent", "innerText", "innerHTML", "text()", "textContent()", "innerText()")
CYPRESS_TEXT_CHAINERS = frozenset({"have.text", "contain", "contain.text", "include.text"})
NUMERIC_HEAVY = (
    re.compile(r"\d{9,}"),
    re.compile(r"\d{4}-\d{2}-\d{2}"),
    re.compile(r"\d+(?:[.,]\d+){2,}"),
)
TEMPLATE_MARKERS = ("${", "{{")


class LongTextMatchDetector(BaseDetector):
    """Exact text matches on literals longer than `maxLength`."""

    detector_id = "no-long-text-match"
    code = "FT007"
    capability = Capability.QUERY_SHAPE
    node_kinds = frozenset({syntax.CALL})
    description = "Disallow exact matching on long text literals."
    has_suggestions = True
    option_schema = {
        "maxLength": OptionSpec(NUMBER, 50, minimum=1),
        "ignoreComments": OptionSpec(BOOL, False),
        "allowPartialMatch": OptionSpec(BOOL, True),
        "ignoreTestIds": OptionSpec(BOOL, False),
    }
    messages = {
        "textTooLong": "Text match of {{length}} characters exceeds {{maxLength}}; match a shorter, "
                       "stable fragment.",
        "usePartialMatch": "Long templated text is compared exactly; use a partial or regex match.",
        "useTestId": "Text selector of {{length}} characters exceeds {{maxLength}}; select by test id instead.",
        "avoidExactMatch": "Exact match on {{length}} characters of data-dependent text (limit {{maxLength}}); "
                           "use a regex or { exact: false }.",
        "suggestExactFalse": "Pass { exact: false } to match a substring.",
        "suggestUseRegex": "Match with a regular expression on a stable fragment.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        target = self._target(node, options)
        if target is None:
            return []
        argument, kind = target
        max_length = options["maxLength"]
        if options["ignoreComments"] and self.inspector.inside_comment(argument):
            return []
        regex = self._regex_text(argument)
        if regex is not None:
            length = syntax.js_length(regex)
            if options["allowPartialMatch"] or length <= max_length:
                return []
            return [self.finding(argument, "textTooLong", {"length": length, "maxLength": max_length})]
        value = syntax.literal_text(argument)
        if value is None or syntax.js_length(value) <= max_length:
            return []
        data = {"length": syntax.js_length(value), "maxLength": max_length}
        if kind == "equality":
            return [self.finding(argument, "usePartialMatch", data)]
        suggestions = self._suggestions(node, argument, value, kind)
        if self._data_dependent(argument, value):
            return [self.finding(argument, "avoidExactMatch", data, suggestions=suggestions)]
        if kind == "selector":
            return [self.finding(argument, "useTestId", data, suggestions=suggestions)]
        return [self.finding(argument, "textTooLong", data, suggestions=suggestions)]

    def _target(self, node: Node, options: RuleOptions) -> tuple[Node, str] | None:
        """(text argument, kind) where kind is query, testid, selector, assertion or equality."""
        name = syntax.simple_callee_name(node)
        if name is None:
            return None
        if TEXT_QUERY.match(name):
            if self._exact_false(syntax.argument(node, 1)):
                return None
            first = syntax.argument(node, 0)
            kind = "selector" if self.source.framework == Framework.PLAYWRIGHT else "query"
            return (first, kind) if first is not None else None
        if TEST_ID_QUERY.match(name):
            first = syntax.argument(node, 0)
            if options["ignoreTestIds"] or first is None:
                return None
            return first, "testid"
        identity = self.identity(node)
        root = syntax.path_root(identity.object) if identity is not None else None
        if name == "contains" and root == "cy":
            # cy.contains(content) or cy.contains(selector, content)
            second = syntax.argument(node, 1)
            text_arg = second if self._is_textish(second) else syntax.argument(node, 0)
            return (text_arg, "selector") if text_arg is not None else None
        if name == "locator":
            first = syntax.argument(node, 0)
            value = syntax.literal_text(first)
            if value is not None and value.startswith("text="):
                return first, "selector"
            return None
        if name in TEXT_ASSERTIONS:
            first = syntax.argument(node, 0)
            if first is None or self._exact_false(syntax.argument(node, 1)):
                return None
            return first, "assertion"
        if name == "should" and self._in_cypress_chain(node):
            chainer = syntax.string_value(syntax.argument(node, 0))
            if chainer in CYPRESS_TEXT_CHAINERS:
                second = syntax.argument(node, 1)
                return (second, "assertion") if second is not None else None
            return None
        if name in EQUALITY_MATCHERS:
            first = syntax.argument(node, 0)
            if first is not None and first.type == syntax.TEMPLATE and self._expects_text(node):
                return first, "equality"
        return None

    def _is_textish(self, node: Node | None) -> bool:
        return node is not None and (syntax.is_string_like(node) or node.type == syntax.REGEX)

    def _in_cypress_chain(self, node: Node) -> bool:
        target = syntax.callee(node)
        return target is not None and syntax.path_root(syntax.path_of(target)) == "cy"

    def _expects_text(self, matcher: Node) -> bool:
        for call in syntax.call_chain(matcher):
            target = syntax.callee(call)
            if target is not None and target.type == syntax.IDENTIFIER and syntax.text(target) == "expect":
                subject = syntax.argument(call, 0)
                rendered = syntax.path_of(subject) if subject is not None else None
                return rendered is not None and rendered.endswith(TEXT_READS)
        return False

    @staticmethod
    def _exact_false(options_node: Node | None) -> bool:
        exact = syntax.object_property(options_node, "exact")
        return exact is not None and syntax.text(exact) == "false"

    def _regex_text(self, node: Node) -> str | None:
        if node.type == syntax.REGEX:
            return syntax.regex_pattern(node) or ""
        if node.type in (syntax.NEW, syntax.CALL):
            target = syntax.callee(node)
            if target is not None and syntax.text(target) == "RegExp":
                return syntax.literal_text(syntax.argument(node, 0)) or ""
        return None

    @staticmethod
    def _data_dependent(node: Node, value: str) -> bool:
        if node.type == syntax.TEMPLATE and syntax.has_substitution(node):
            return True
        if any(marker in value for marker in TEMPLATE_MARKERS):
            return True
        return any(pattern.search(value) for pattern in NUMERIC_HEAVY)

    def _suggestions(self, call: Node, argument: Node, value: str, kind: str) -> list:
        if kind not in ("query", "selector") or argument.type == syntax.TEMPLATE and syntax.has_substitution(argument):
            return []
        if syntax.simple_callee_name(call) == "locator":
            return []
        suggestions = []
        if kind == "query" and len(syntax.arguments(call)) == 1:
            suggestions.extend(self.suggest("suggestExactFalse", [self.fixes.insert_after(argument, ", { exact: false }")]))
        fragment = next((word for word in re.findall(r"[A-Za-z][\w'-]*", value) if len(word) > 3), None)
        if fragment is not None:
            suggestions.extend(self.suggest("suggestUseRegex", [self.fixes.replace(argument, f"/{escape_regex(fragment)}/")]))
        return suggestions
