"""Await detectors: floating interaction promises and racing promises in tests."""

import re

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import BOOL, STRING_LIST, OptionSpec, RuleOptions
from flakiness_linter.domain.detectors.base import BaseDetector
from flakiness_linter.domain.entities import CallIdentity, Capability, DetectorContext, Finding, Framework, Severity
from flakiness_linter.domain.fixes import FIRE_AND_FORGET

USER_EVENT_MODULE = "@testing-library/user-event"
SYNC_FIRE_EVENT_MODULES = frozenset({"@testing-library/react", "@testing-library/react-native",
                                     "@testing-library/preact", "react-dom/test-utils"})
PAGE_OBJECTS = frozenset({"page", "frame", "context", "browser", "browserContext"})
PAGE_METHODS = frozenset({
    "goto", "click", "dblclick", "fill", "type", "press", "check", "uncheck", "selectOption", "hover",
    "focus", "tap", "setInputFiles", "dragAndDrop", "setContent", "reload", "goBack", "goForward",
    "waitForSelector", "waitForNavigation", "waitForLoadState", "waitForURL", "waitForResponse",
    "waitForRequest", "waitForFunction", "waitForEvent", "evaluate", "evaluateHandle", "$eval", "$$eval",
    "screenshot", "close", "newPage", "newContext", "route", "unroute", "setViewportSize", "emulateMedia",
    "addInitScript", "exposeFunction", "insertText", "down", "up", "move", "wheel", "url",
})
ELEMENT_ROOTS = frozenset({"page", "frame", "browser", "driver", "context", "$", "$$"})
ELEMENT_METHODS = frozenset({
    "click", "dblclick", "fill", "type", "press", "pressSequentially", "check", "uncheck", "hover", "focus",
    "blur", "submit", "clear", "selectOption", "selectText", "setValue", "addValue", "clearValue", "tap",
    "sendKeys", "setInputFiles", "dragTo", "scrollIntoViewIfNeeded", "waitFor", "waitForDisplayed",
    "waitForExist", "waitForClickable", "waitForEnabled", "moveTo", "doubleClick",
})
PROMISE_CHAIN = frozenset({"then", "catch", "finally"})
PROMISE_COMBINATORS = frozenset({"Promise.all", "Promise.allSettled", "Promise.any", "Promise.race"})


class AwaitAsyncEventsDetector(BaseDetector):
    """Async interaction helpers whose promise is dropped on the floor."""

    detector_id = "await-async-events"
    code = "FT010"
    capability = Capability.AWAIT
    node_kinds = frozenset({syntax.CALL})
    default_severity = Severity.ERROR
    description = "Require awaiting asynchronous user-event, page and element interactions."
    fixable = True
    option_schema = {
        "customAsyncMethods": OptionSpec(STRING_LIST, []),
    }
    messages = {
        "missingAwait": "'{{method}}' returns a promise; await it.",
        "missingAwaitFireEvent": "fireEvent.{{method}} is asynchronous here; await it.",
        "missingAwaitUserEvent": "userEvent.{{method}} returns a promise; await it.",
        "missingAwaitAct": "act() with an async callback must be awaited.",
        "missingAwaitPage": "page.{{method}}() returns a promise; await it.",
        "missingAwaitElement": "Element action '{{method}}' returns a promise; await it.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if self._handled(node):
            return []
        identity = self.identity(node)
        if identity is None:
            return []
        message_id = self._category(node, identity, options)
        if message_id is None:
            return []
        return [self.finding(node, message_id, {"method": identity.method},
                             fix=lambda: self.fixes.insert_await(node))]

    def _category(self, node: Node, identity: CallIdentity, options: RuleOptions) -> str | None:
        custom = options["customAsyncMethods"]
        if identity.method in custom or identity.qualified_name in custom:
            return "missingAwait"
        if self.source.framework == Framework.CYPRESS:
            return None
        root = syntax.path_root(identity.object)
        if self._is_user_event(node, identity, root):
            return "missingAwaitUserEvent"
        if root == "fireEvent" or (identity.object is None and identity.method == "fireEvent"):
            if identity.module_origin in SYNC_FIRE_EVENT_MODULES:
                return None
            return "missingAwaitFireEvent"
        if identity.method == "act" and identity.object is None:
            callback = syntax.argument(node, 0)
            if syntax.is_function(callback) and syntax.is_async_function(callback):
                return "missingAwaitAct"
            return None
        if identity.object in PAGE_OBJECTS or (
                root in PAGE_OBJECTS and identity.object.count(".") == 1 and "()" not in identity.object):
            if identity.method in PAGE_METHODS:
                return "missingAwaitPage"
            return None
        if root in ELEMENT_ROOTS and identity.method in ELEMENT_METHODS and "()" in (identity.object or ""):
            return "missingAwaitElement"
        return None

    def _is_user_event(self, node: Node, identity: CallIdentity, root: str | None) -> bool:
        if identity.method == "setup" or root is None:
            return False
        if root == "userEvent":
            return True
        if identity.module_origin == USER_EVENT_MODULE:
            return True
        # `const user = userEvent.setup()` with a global userEvent
        binding = self.source.bindings.lookup(root, node)
        init = binding.init if binding is not None else None
        return syntax.path_root(syntax.path_of(init)) == "userEvent"

    @staticmethod
    def _handled(node: Node) -> bool:
        """Awaited, returned, chained, asserted on, stored, yielded or combined."""
        child, parent = node, node.parent
        while parent is not None and parent.type in syntax.WRAPPER_KINDS:
            child, parent = parent, parent.parent
        if parent is None:
            return False
        if parent.type in (syntax.AWAIT, "return_statement", "yield_expression", syntax.VARIABLE_DECLARATOR):
            return True
        if parent.type == "arrow_function":
            return AwaitAsyncEventsDetector._fire_and_forget_body(child, parent)
        if parent.type == syntax.MEMBER:
            chained = parent.parent
            return (syntax.property_name(parent) in PROMISE_CHAIN and chained is not None
                    and chained.type == syntax.CALL)
        in_array = parent.type == syntax.ARRAY
        if in_array:
            parent = parent.parent
        if parent is None or parent.type != "arguments" or parent.parent is None:
            return False
        call = parent.parent
        if syntax.path_of(syntax.callee(call)) in PROMISE_COMBINATORS:
            return True
        if in_array or syntax.simple_callee_name(call) != "expect":
            return False
        matcher = call.parent
        while matcher is not None and matcher.type in syntax.WRAPPER_KINDS:
            matcher = matcher.parent
        return (matcher is not None and matcher.type == syntax.MEMBER
                and syntax.property_name(matcher) in ("resolves", "rejects"))

    @staticmethod
    def _fire_and_forget_body(body: Node, arrow: Node) -> bool:
        expected = arrow.child_by_field_name("body")
        if expected is None or syntax.node_key(expected) != syntax.node_key(body):
            return False
        args = arrow.parent
        while args is not None and args.type in syntax.WRAPPER_KINDS:
            args = args.parent
        if args is None or args.type != "arguments" or args.parent is None:
            return False
        return syntax.simple_callee_name(args.parent) in FIRE_AND_FORGET


TIMEOUT_NAME = re.compile(r"(timeout|delay|sleep|wait)", re.I)
PROMISE_LIBRARIES = frozenset({"bluebird", "q", "pinkie-promise"})


class PromiseRaceDetector(BaseDetector):
    """`Promise.race` and `Promise.any` in tests: the winner is nondeterministic."""

    detector_id = "no-promise-race"
    code = "FT011"
    capability = Capability.AWAIT
    node_kinds = frozenset({syntax.CALL})
    description = "Disallow racing promises in tests."
    option_schema = {
        "allowWithTimeout": OptionSpec(BOOL, False),
        "allowInHelpers": OptionSpec(BOOL, True),
    }
    messages = {
        "avoidPromiseRace": "Avoid Promise.{{method}}(); the winner is nondeterministic.",
        "useProperTimeout": "Racing against a timer is a hand-rolled timeout; use the framework's "
                            "timeout option instead.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        identity = self.identity(node)
        if identity is None or identity.method not in ("race", "any") or identity.object is None:
            return []
        if not self._is_promise_receiver(identity, node):
            return []
        if options["allowInHelpers"] and not (context.inside_test_body or context.inside_setup_hook):
            return []
        if self._races_timer(syntax.argument(node, 0)):
            if options["allowWithTimeout"]:
                return []
            return [self.finding(node, "useProperTimeout", {"method": identity.method})]
        return [self.finding(node, "avoidPromiseRace", {"method": identity.method})]

    def _is_promise_receiver(self, identity: CallIdentity, node: Node) -> bool:
        if identity.object == "Promise":
            return not self.source.bindings.is_bound("Promise", node) or identity.module_origin in PROMISE_LIBRARIES
        if "." in identity.object or "()" in identity.object:
            return False
        if identity.module_origin in PROMISE_LIBRARIES:
            return True
        binding = self.source.bindings.lookup(identity.object, node)
        init = syntax.unwrap(binding.init) if binding is not None else None
        return init is not None and init.type == syntax.IDENTIFIER and syntax.text(init) == "Promise"

    def _races_timer(self, operands: Node | None) -> bool:
        if operands is None:
            return False
        for inner in syntax.walk(operands):
            if inner.type != syntax.CALL:
                continue
            name = syntax.simple_callee_name(inner)
            if name is not None and (name in ("setTimeout", "setInterval") or TIMEOUT_NAME.search(name)):
                return True
        return False
