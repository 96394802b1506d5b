"""Timing detectors: unconditional waits, hard-coded timeouts, assertions right after state changes."""

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import BOOL, NULLABLE_NUMBER, NUMBER, STRING_LIST, OptionSpec, RuleOptions
from flakiness_linter.domain.constants import ASSERTION_CALLEES
from flakiness_linter.domain.detectors.base import BaseDetector
from flakiness_linter.domain.entities import (
    CallIdentity,
    Capability,
    DetectorContext,
    Finding,
    Framework,
    Severity,
)

SLEEP_HELPERS = frozenset({"sleep", "delay", "wait", "pause"})
TIMER_OWNERS = frozenset({"window", "global", "globalThis", "self"})
FAKE_TIMER_CALLS = frozenset({"useFakeTimers", "setSystemTime", "install"})
ASSERTION_METHOD_PREFIXES = ("expect", "assert", "should", "getBy", "findBy", "queryBy", "getAllBy", "findAllBy")


def is_timer_call(identity: CallIdentity | None, name: str) -> bool:
    if identity is None or identity.method != name:
        return False
    return identity.object is None or identity.object in TIMER_OWNERS


def uses_fake_timers(detector: BaseDetector) -> bool:
    """`jest.useFakeTimers()`, `vi.useFakeTimers()`, `sinon.useFakeTimers()` or `clock.install()` anywhere."""

    def compute() -> bool:
        for node in syntax.walk(detector.source.root):
            if node.type != syntax.CALL:
                continue
            identity = detector.identity(node)
            if identity is None or identity.method not in FAKE_TIMER_CALLS:
                continue
            owner = syntax.path_root(identity.object)
            if identity.method == "install" and owner not in ("clock", "FakeTimers", "lolex"):
                continue
            if owner in ("jest", "vi", "sinon", "clock", "FakeTimers", "lolex", "cy") or identity.method == "useFakeTimers":
                return True
        return False

    return detector.source.fact("uses_fake_timers", compute)


def promise_timeout_delay(node: Node, detector: BaseDetector) -> tuple[Node, float | None] | None:
    """For `new Promise(r => setTimeout(r, n))` return the inner setTimeout call and its literal delay."""
    if node.type != syntax.NEW:
        return None
    target = syntax.callee(node)
    if target is None or syntax.text(target) != "Promise":
        return None
    executor = syntax.argument(node, 0)
    if not syntax.is_function(executor):
        return None
    body = syntax.unwrap(syntax.function_body(executor))
    if body is None:
        return None
    candidate: Node | None = None
    if body.type == syntax.BLOCK:
        statements = syntax.named_children(body)
        if len(statements) == 1 and statements[0].type == syntax.EXPRESSION_STATEMENT:
            candidate = syntax.statement_expression(statements[0])
        elif len(statements) == 1 and statements[0].type == "return_statement":
            inner = syntax.named_children(statements[0])
            candidate = syntax.unwrap(inner[0]) if inner else None
    else:
        candidate = body
    if candidate is None or candidate.type != syntax.CALL:
        return None
    if not is_timer_call(detector.identity(candidate), "setTimeout"):
        return None
    return candidate, syntax.number_value(syntax.argument(candidate, 1))


def inside_promise_executor(node: Node) -> bool:
    for ancestor in syntax.ancestors(node):
        if ancestor.type == syntax.NEW:
            target = syntax.callee(ancestor)
            if target is not None and syntax.text(target) == "Promise":
                return True
    return False


class UnconditionalWaitDetector(BaseDetector):
    """Fixed sleeps and polling helpers that poll nothing."""

    detector_id = "no-unconditional-wait"
    code = "FT001"
    capability = Capability.TIMING
    node_kinds = frozenset({syntax.CALL, syntax.NEW})
    default_severity = Severity.ERROR
    description = "Disallow fixed delays and polling helpers without a condition."
    has_suggestions = True
    option_schema = {
        "maxTimeout": OptionSpec(NULLABLE_NUMBER, None, minimum=0),
        "allowInSetup": OptionSpec(BOOL, True),
        "allowedMethods": OptionSpec(STRING_LIST, []),
    }
    messages = {
        "avoidUnconditionalWait": "Avoid unconditional wait '{{call}}'; wait for a specific condition instead.",
        "useWaitFor": "'{{method}}' callback asserts nothing; put the awaited condition (expect/assert) inside it.",
        "useDataTestId": "Wait for a specific element (for example by data-testid) instead of a fixed delay.",
        "exceedsMaxTimeout": "Wait of {{timeout}}ms exceeds the maximum allowed {{maxTimeout}}ms.",
        "suggestAliasWait": "Wait on a cy.intercept() alias instead of a fixed delay.",
        "suggestWaitUntil": "Use browser.waitUntil() with a condition.",
        "suggestDriverWait": "Use driver.wait() with an explicit condition.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if context.inside_mocked_block:
            return []
        identity = self.identity(node)
        if node.type == syntax.NEW:
            matched = promise_timeout_delay(node, self)
            if matched is None:
                return []
            return self._report(node, context, options, "new Promise(setTimeout)", matched[1])
        if identity is None:
            return []
        allowed = options["allowedMethods"]
        if identity.method in allowed or identity.qualified_name in allowed:
            return []
        root = syntax.path_root(identity.object)
        tail = syntax.path_tail(identity.object)
        first = syntax.argument(node, 0)
        delay = syntax.number_value(first)

        if root == "cy" and identity.method == "wait":
            literal = syntax.string_value(first)
            if delay is None and (literal is None or literal.startswith("@")):
                return []
            suggestion = self.suggest("suggestAliasWait", [
                self.fixes.replace(first, "'@replaceWithAlias' /* cy.intercept(...).as('replaceWithAlias') */")
            ]) if first is not None else []
            return self._report(node, context, options, "cy.wait", delay, suggestion)
        if identity.method == "waitForTimeout":
            suggestion = []
            target = syntax.callee(node)
            receiver = syntax.member_object(target) if target is not None and target.type == syntax.MEMBER else None
            if receiver is not None:
                obj = syntax.text(receiver)
                suggestion = self.suggest("useDataTestId", [self.fixes.replace(
                    node, f"{obj}.waitForSelector('[data-testid=\"replace-me\"]')")])
            return self._report(node, context, options, identity.qualified_name, delay, suggestion)
        if identity.method == "pause" and tail == "browser":
            suggestion = self.suggest("suggestWaitUntil", [self.fixes.replace(
                node, f"{identity.object}.waitUntil(async () => true /* replace with the awaited condition */)")])
            return self._report(node, context, options, identity.qualified_name, delay, suggestion)
        if identity.method == "sleep" and tail in ("driver", "Thread"):
            suggestion = []
            if tail == "driver":
                suggestion = self.suggest("suggestDriverWait", [self.fixes.replace(
                    node, f"{identity.object}.wait(until.elementLocated(By.css('[data-testid=\"replace-me\"]')))")])
            return self._report(node, context, options, identity.qualified_name, delay, suggestion)
        if identity.method in SLEEP_HELPERS and delay is not None:
            return self._report(node, context, options, identity.qualified_name, delay)
        if is_timer_call(identity, "setTimeout"):
            if inside_promise_executor(node) or self.inspector.inside_call_named(node, frozenset({"waitFor", "waitUntil"})):
                return []
            return self._report(node, context, options, "setTimeout", syntax.number_value(syntax.argument(node, 1)))
        if is_timer_call(identity, "setInterval"):
            callback = syntax.argument(node, 0)
            if syntax.is_function(callback) and self._interval_is_conditional(callback):
                return []
            return self._report(node, context, options, "setInterval", None)
        if identity.method in ("waitFor", "waitUntil") and syntax.is_function(first):
            if self._polls_nothing(first):
                if self.setup_allowed(context, options):
                    return []
                return [self.finding(node, "useWaitFor", {"method": identity.method})]
        return []

    def _report(self, node: Node, context: DetectorContext, options: RuleOptions, call: str,
                delay: float | None, suggestions: list | None = None) -> list[Finding]:
        max_timeout = options["maxTimeout"]
        if max_timeout is not None and delay is not None and delay > max_timeout:
            return [self.finding(node, "exceedsMaxTimeout", {
                "timeout": syntax.format_number(delay), "maxTimeout": syntax.format_number(max_timeout)})]
        if self.setup_allowed(context, options):
            return []
        return [self.finding(node, "avoidUnconditionalWait", {"call": call}, suggestions=suggestions or ())]

    def _interval_is_conditional(self, callback: Node) -> bool:
        for inner in syntax.descendants(callback):
            if inner.type in syntax.BRANCHING_KINDS or inner.type == "return_statement":
                return True
            if inner.type == syntax.CALL and syntax.simple_callee_name(inner) in ("clearInterval", "resolve", "done"):
                return True
        return False

    def _polls_nothing(self, callback: Node) -> bool:
        statements = syntax.body_statements(callback)
        if statements is None:
            return False
        if not statements:
            return True
        for statement in statements:
            if statement.type in ("return_statement", "throw_statement") or statement.type in syntax.BRANCHING_KINDS:
                return False
            for inner in syntax.walk(statement):
                if inner.type in syntax.BRANCHING_KINDS:
                    return False
                if inner.type == syntax.CALL and self._is_assertion_call(inner):
                    return False
        return True

    def _is_assertion_call(self, call: Node) -> bool:
        name = syntax.simple_callee_name(call)
        root = syntax.path_root(syntax.path_of(syntax.callee(call)))
        if root in ASSERTION_CALLEES:
            return True
        return name is not None and name.startswith(ASSERTION_METHOD_PREFIXES)


class HardCodedTimeoutDetector(BaseDetector):
    """Literal delays at or above a threshold, and any real `setInterval`."""

    detector_id = "no-hard-coded-timeout"
    code = "FT002"
    capability = Capability.TIMING
    node_kinds = frozenset({syntax.CALL, syntax.NEW})
    default_severity = Severity.ERROR
    description = "Disallow hard-coded timeouts at or above a threshold."
    has_suggestions = True
    option_schema = {
        "maxTimeout": OptionSpec(NUMBER, 1000, minimum=0),
        "allowInSetup": OptionSpec(BOOL, False),
    }
    messages = {
        "avoidHardTimeout": "Avoid hard-coded timeout of {{timeout}}ms; use waitFor() with a condition.",
        "avoidHardTimeoutPlaywright": "Avoid hard-coded timeout of {{timeout}}ms; use a web-first assertion "
                                      "or page.waitForSelector().",
        "avoidHardTimeoutCypress": "Avoid hard-coded timeout of {{timeout}}ms; let Cypress retry with "
                                   "cy.get(...).should(...).",
        "avoidSetInterval": "Avoid setInterval in tests; poll with waitFor() or use fake timers.",
        "avoidPromiseTimeout": "Avoid promise-based timeout of {{timeout}}ms; wait for a condition instead.",
        "avoidPromiseTimeoutPlaywright": "Avoid promise-based timeout of {{timeout}}ms; use expect(locator) "
                                         "auto-waiting instead.",
        "avoidPromiseTimeoutCypress": "Avoid promise-based timeout of {{timeout}}ms; chain Cypress commands "
                                      "instead.",
        "avoidCypressWait": "Avoid cy.wait({{timeout}}); wait on an aliased request or an assertion.",
        "suggestWaitFor": "Replace with waitFor(..., { timeout: {{timeout}} }).",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if self.setup_allowed(context, options) or context.inside_mocked_block or uses_fake_timers(self):
            return []
        max_timeout = options["maxTimeout"]
        if node.type == syntax.NEW:
            matched = promise_timeout_delay(node, self)
            if matched is None or matched[1] is None or matched[1] < max_timeout:
                return []
            timeout = syntax.format_number(matched[1])
            return [self.finding(node, self._variant("avoidPromiseTimeout"), {"timeout": timeout},
                                 suggestions=self._wait_for_suggestion(node, None, timeout))]
        identity = self.identity(node)
        if identity is None:
            return []
        root = syntax.path_root(identity.object)
        tail = syntax.path_tail(identity.object)
        if root == "cy" and identity.method == "wait":
            delay = syntax.number_value(syntax.argument(node, 0))
            if delay is None:
                return []
            return [self.finding(node, "avoidCypressWait", {"timeout": syntax.format_number(delay)})]
        if is_timer_call(identity, "setInterval"):
            return [self.finding(node, "avoidSetInterval")]
        if is_timer_call(identity, "setTimeout"):
            if inside_promise_executor(node):
                return []
            delay_node = syntax.argument(node, 1)
            delay = syntax.number_value(delay_node)
            if delay_node is None or delay is None or delay < max_timeout:
                return []
            timeout = syntax.format_number(delay)
            return [self.finding(delay_node, self._variant("avoidHardTimeout"), {"timeout": timeout},
                                 suggestions=self._wait_for_suggestion(node, syntax.argument(node, 0), timeout))]
        is_wait_helper = (
            identity.method == "waitForTimeout"
            or (identity.method == "pause" and tail == "browser")
            or (identity.method == "sleep" and tail in ("driver", "Thread"))
            or identity.method in SLEEP_HELPERS
        )
        if is_wait_helper:
            delay = syntax.number_value(syntax.argument(node, 0))
            if delay is None or delay < max_timeout:
                return []
            return [self.finding(node, self._variant("avoidHardTimeout"), {"timeout": syntax.format_number(delay)})]
        return []

    def _variant(self, base: str) -> str:
        framework = self.source.framework
        if framework == Framework.PLAYWRIGHT:
            return f"{base}Playwright"
        if framework == Framework.CYPRESS:
            return f"{base}Cypress"
        return base

    def _wait_for_suggestion(self, node: Node, callback: Node | None, timeout: str) -> list:
        if not self.source.offers_wait_for_fixes:
            return []
        condition = "{ /* replace with the awaited condition */ }"
        if syntax.is_function(callback):
            body = syntax.function_body(callback)
            if body is not None and body.type != syntax.BLOCK:
                condition = syntax.text(body)
            elif body is not None:
                statements = syntax.named_children(body)
                if len(statements) == 1 and statements[0].type == syntax.EXPRESSION_STATEMENT:
                    condition = syntax.text(syntax.statement_expression(statements[0]))
        return self.suggest("suggestWaitFor", [
            self.fixes.replace(node, f"waitFor(() => {condition}, {{ timeout: {timeout} }})")
        ], {"timeout": timeout})


STATE_CHANGING_METHODS = frozenset({
    "setState", "setProps", "dispatch", "commit", "click", "type", "change", "submit", "simulate", "trigger",
    "setValue", "setData", "setChecked", "selectOptions", "keyboard",
})
STATE_METHODS = frozenset({"setState", "dispatch", "commit", "setProps"})
EVENT_OWNERS = frozenset({"fireEvent", "userEvent"})
STATE_WORDS = frozenset({"state", "store", "props", "getState"})
TEST_ID_QUERIES = frozenset({"getByTestId", "queryByTestId", "findByTestId", "getAllByTestId",
                             "queryAllByTestId", "findAllByTestId"})


class ImmediateAssertionsDetector(BaseDetector):
    """An assertion statement directly after a synchronous state-changing action."""

    detector_id = "no-immediate-assertions"
    code = "FT017"
    capability = Capability.TIMING
    node_kinds = frozenset({syntax.EXPRESSION_STATEMENT})
    description = "Require waiting for updates before asserting right after a state change."
    fixable = True
    option_schema = {
        "allowedAfterOperations": OptionSpec(STRING_LIST, []),
        "requireWaitFor": OptionSpec(BOOL, True),
        "ignoreDataTestId": OptionSpec(BOOL, False),
    }
    messages = {
        "needsWaitFor": "Assertion runs immediately after '{{action}}'; wrap it in waitFor().",
        "needsWaitForState": "State assertion runs immediately after '{{action}}'; wait for the update "
                             "with waitFor().",
        "needsWaitForDom": "Assertion runs immediately after several DOM actions; wrap it in waitFor().",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if not context.inside_test_body or self.source.framework in (Framework.PLAYWRIGHT, Framework.CYPRESS):
            return []
        action = syntax.unwrap(syntax.statement_expression(node))
        if action is None or action.type == syntax.AWAIT:
            return []
        action_name = self._action_name(action, options)
        if action_name is None:
            return []
        following = syntax.next_statement(node)
        if following is None or following.type != syntax.EXPRESSION_STATEMENT:
            return []
        assertion = syntax.unwrap(syntax.statement_expression(following))
        if assertion is None or assertion.type != syntax.CALL or not self._is_expect(assertion):
            return []
        if options["ignoreDataTestId"] and self._mentions_test_id(assertion):
            return []
        if action.type == "sequence_expression":
            message_id, data = "needsWaitForDom", {}
        elif action_name in STATE_METHODS and self._mentions_state(assertion):
            message_id, data = "needsWaitForState", {"action": action_name}
        else:
            message_id, data = "needsWaitFor", {"action": action_name}
        if message_id != "needsWaitForState" and not options["requireWaitFor"]:
            return []
        return [self.finding(assertion, message_id, data,
                             fix=lambda: self.fixes.wrap_statement_in_wait_for(following))]

    def _action_name(self, expression: Node, options: RuleOptions) -> str | None:
        if expression.type == "sequence_expression":
            for part in syntax.named_children(expression):
                name = self._action_name(syntax.unwrap(part), options)
                if name is not None:
                    return name
            return None
        if expression.type != syntax.CALL:
            return None
        identity = self.identity(expression)
        if identity is None:
            return None
        allowed = options["allowedAfterOperations"]
        if identity.method in allowed or identity.qualified_name in allowed:
            return None
        if syntax.path_root(identity.object) in EVENT_OWNERS or identity.method in STATE_CHANGING_METHODS:
            return identity.method
        return None

    def _is_expect(self, call: Node) -> bool:
        for inner in syntax.call_chain(call):
            target = syntax.callee(inner)
            if target is not None and target.type == syntax.IDENTIFIER and syntax.text(target) in ("expect", "assert"):
                return True
        return syntax.path_root(syntax.path_of(syntax.callee(call))) in ("expect", "assert")

    def _mentions_state(self, assertion: Node) -> bool:
        for inner in syntax.walk(assertion):
            if inner.type in (syntax.IDENTIFIER, "property_identifier") and syntax.text(inner) in STATE_WORDS:
                return True
        return False

    def _mentions_test_id(self, assertion: Node) -> bool:
        for inner in syntax.walk(assertion):
            if inner.type == syntax.CALL and syntax.simple_callee_name(inner) in TEST_ID_QUERIES:
                return True
            if inner.type == syntax.STRING and "data-testid" in (syntax.string_value(inner) or ""):
                return True
        return False
