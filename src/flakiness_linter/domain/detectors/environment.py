"""Environment detectors: animations, viewport geometry, focus state and element removal."""

import re
from dataclasses import dataclass

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import BOOL, STRING_LIST, OptionSpec, RuleOptions
from flakiness_linter.domain.constants import POLLING_HELPERS
from flakiness_linter.domain.context import DESCRIBE, HOOK, TEST
from flakiness_linter.domain.detectors.base import BaseDetector
from flakiness_linter.domain.entities import Capability, DetectorContext, Finding

WINDOW_ROOTS = frozenset({"window", "global", "globalThis", "self"})


@dataclass(frozen=True)
class ExpectCall:
    """`expect(subject)[.not].matcher(...)` split into its parts."""

    expect: Node
    subject: Node | None
    negated: bool
    matcher: str
    awaited: bool


def parse_expect(call: Node) -> ExpectCall | None:
    target = syntax.callee(call)
    if target is None or target.type != syntax.MEMBER:
        return None
    matcher = syntax.property_name(target)
    negated = False
    current = syntax.member_object(target)
    while current is not None and current.type in (syntax.MEMBER, syntax.SUBSCRIPT):
        if syntax.property_name(current) == "not":
            negated = True
        current = syntax.member_object(current)
    if current is None or current.type != syntax.CALL:
        return None
    head = syntax.callee(current)
    if head is None or syntax.path_root(syntax.path_of(head)) != "expect" or matcher is None:
        return None
    return ExpectCall(
        expect=current,
        subject=syntax.argument(current, 0),
        negated=negated,
        matcher=matcher,
        awaited=syntax.is_awaited(call),
    )


def is_window_root(detector: BaseDetector, path: str | None, site: Node) -> bool:
    root = syntax.path_root(path)
    return root in WINDOW_ROOTS and not detector.source.bindings.is_bound(root, site)


ANIMATION_EVENTS = frozenset({
    "transitionend", "transitionstart", "transitionrun", "transitioncancel", "webkitTransitionEnd",
    "animationend", "animationstart", "animationiteration", "animationcancel", "webkitAnimationEnd",
})
LISTENER_METHODS = frozenset({"addEventListener", "on", "once", "one"})
JQUERY_ANIMATIONS = frozenset({
    "animate", "fadeIn", "fadeOut", "fadeTo", "fadeToggle", "slideUp", "slideDown", "slideToggle",
    "show", "hide", "toggle",
})
TWEEN_OWNERS = frozenset({"gsap", "TweenMax", "TweenLite", "TimelineMax", "TimelineLite", "anime"})
ANIMATION_HELPER = re.compile(r"^waitFor(Animation|Transition)s?\w*$")
ANIMATION_COMMENT = re.compile(r"(animat|transition)", re.I)
DISABLED_CSS = re.compile(
    r"(animation\s*:\s*none|transition\s*:\s*none|animation-duration\s*:\s*0|transition-duration\s*:\s*0"
    r"|prefers-reduced-motion)", re.I)


class AnimationWaitDetector(BaseDetector):
    """Waiting on animation or transition completion."""

    detector_id = "no-animation-wait"
    code = "FT013"
    capability = Capability.ENVIRONMENT
    node_kinds = frozenset({syntax.CALL, syntax.MEMBER})
    description = "Disallow waiting on animations and transitions."
    option_schema = {
        "allowAnimationFrame": OptionSpec(BOOL, False),
        "allowIfAnimationsDisabled": OptionSpec(BOOL, True),
        "customAnimationPatterns": OptionSpec(STRING_LIST, []),
        "ignorePatterns": OptionSpec(STRING_LIST, []),
    }
    messages = {
        "avoidAnimationWait": "Avoid waiting for an animation to finish; disable animations in tests.",
        "avoidTransitionWait": "Avoid waiting for a CSS transition; disable transitions in tests.",
        "avoidAnimationFrame": "Avoid requestAnimationFrame timing in tests; use fake timers.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if options["allowIfAnimationsDisabled"] and self._animations_disabled():
            return []
        if node.type == syntax.MEMBER:
            return self._finished(node)
        identity = self.identity(node)
        if identity is None:
            return []
        if options["ignorePatterns"] and (self.matches_any(identity.method, options["ignorePatterns"])
                                          or self.matches_any(identity.qualified_name, options["ignorePatterns"])):
            return []
        method = identity.method
        if method in LISTENER_METHODS:
            event = syntax.literal_text(syntax.argument(node, 0))
            if event in ANIMATION_EVENTS:
                return [self.finding(node, self._kind(event))]
            return []
        if method == "requestAnimationFrame" and (identity.object is None or identity.object in WINDOW_ROOTS):
            if options["allowAnimationFrame"] or context.inside_mocked_block:
                return []
            return [self.finding(node, "avoidAnimationFrame")]
        if ANIMATION_HELPER.match(method):
            return [self.finding(node, self._kind(method))]
        if method in JQUERY_ANIMATIONS and self._jquery_receiver(node) and any(
                syntax.is_function(syntax.unwrap(arg)) for arg in syntax.arguments(node)):
            return [self.finding(node, "avoidAnimationWait")]
        if method in ("velocity", "Velocity") and self._has_option(node, "complete"):
            return [self.finding(node, "avoidAnimationWait")]
        if (syntax.path_root(identity.object) in TWEEN_OWNERS or method == "anime") and self._has_option(node, "onComplete"):
            return [self.finding(node, "avoidAnimationWait")]
        if method == "waitForTimeout" and self._preceded_by_animation_comment(node):
            return [self.finding(node, "avoidAnimationWait")]
        if method == "start" and syntax.is_awaited(node) and "controls" in (syntax.path_tail(identity.object) or "").lower():
            return [self.finding(node, "avoidAnimationWait")]
        custom = options["customAnimationPatterns"]
        if custom and (self.matches_any(method, custom) or self.matches_any(identity.qualified_name, custom)):
            return [self.finding(node, "avoidAnimationWait")]
        return []

    @staticmethod
    def _kind(name: str) -> str:
        return "avoidTransitionWait" if "transition" in name.lower() else "avoidAnimationWait"

    def _finished(self, node: Node) -> list[Finding]:
        if syntax.property_name(node) != "finished":
            return []
        owner = syntax.member_object(node)
        rendered = syntax.path_of(owner) or ""
        animation_like = "animation" in rendered.lower() or rendered.endswith("animate()")
        if not animation_like:
            return []
        parent = node.parent
        chained = parent is not None and parent.type == syntax.MEMBER and syntax.property_name(parent) == "then"
        if syntax.is_awaited(node) or chained:
            return [self.finding(node, "avoidAnimationWait")]
        return []

    def _jquery_receiver(self, node: Node) -> bool:
        target = syntax.callee(node)
        receiver = syntax.member_object(target) if target is not None and target.type == syntax.MEMBER else None
        return syntax.path_root(syntax.path_of(receiver)) in ("$", "jQuery")

    @staticmethod
    def _has_option(node: Node, key: str) -> bool:
        return any(syntax.object_property(arg, key) is not None for arg in syntax.arguments(node))

    def _preceded_by_animation_comment(self, node: Node) -> bool:
        line = self.source.line_of(node)
        for comment in self.source.comments:
            comment_line = comment.end_point[0] + 1
            if comment_line in (line, line - 1) and ANIMATION_COMMENT.search(syntax.text(comment)):
                return True
        return False

    def _animations_disabled(self) -> bool:
        def compute() -> bool:
            for inner in syntax.walk(self.source.root):
                if inner.type in (syntax.STRING, syntax.TEMPLATE):
                    if DISABLED_CSS.search(syntax.literal_text(inner) or ""):
                        return True
                elif inner.type == "pair":
                    key = inner.child_by_field_name("key")
                    value = syntax.literal_text(inner.child_by_field_name("value"))
                    if key is not None and syntax.text(key).strip("'\"") == "reducedMotion" and value == "reduce":
                        return True
                elif inner.type == syntax.ASSIGNMENT:
                    left = syntax.path_of(inner.child_by_field_name("left")) or ""
                    right = syntax.text(inner.child_by_field_name("right") or inner)
                    if left in ("$.fx.off", "jQuery.fx.off") and right == "true":
                        return True
                    if left.endswith("MotionGlobalConfig.skipAnimations") and right == "true":
                        return True
            return False

        return self.source.fact("animations_disabled", compute)


VIEWPORT_PROPS = frozenset({"innerWidth", "innerHeight", "outerWidth", "outerHeight", "devicePixelRatio"})
ROOT_ELEMENT_PROPS = frozenset({"clientWidth", "clientHeight"})
SCREEN_PROPS = frozenset({"width", "height", "availWidth", "availHeight", "orientation", "colorDepth",
                          "pixelDepth"})
SCROLL_PROPS = frozenset({"scrollX", "scrollY", "pageXOffset", "pageYOffset", "scrollTop", "scrollLeft",
                          "scrollHeight", "scrollWidth"})
ROOT_ELEMENTS = ("document.documentElement", "document.body")
VIEWPORT_SETUP_METHODS = frozenset({"setViewportSize", "setViewport", "viewport", "setWindowSize", "resizeTo",
                                    "setWindowRect"})
RESPONSIVE_TITLE = re.compile(r"(responsive|mobile|tablet|desktop|viewport|breakpoint)", re.I)


class ViewportDependentDetector(BaseDetector):
    """Reads of window size, screen size, scroll position and media queries."""

    detector_id = "no-viewport-dependent"
    code = "FT014"
    capability = Capability.ENVIRONMENT
    node_kinds = frozenset({syntax.MEMBER, syntax.CALL, syntax.NEW, syntax.ASSIGNMENT, syntax.VARIABLE_DECLARATOR})
    description = "Disallow assertions that depend on the viewport."
    option_schema = {
        "allowViewportSetup": OptionSpec(BOOL, True),
        "allowResponsiveTests": OptionSpec(BOOL, False),
        "ignoreMediaQueries": OptionSpec(BOOL, False),
    }
    messages = {
        "avoidViewportCheck": "Avoid depending on viewport property '{{property}}'; set a fixed viewport.",
        "avoidScreenCheck": "Avoid depending on screen property '{{property}}'; it differs between machines.",
        "avoidBoundingRect": "Avoid asserting on the document's bounding rectangle; it depends on the viewport.",
        "useFixedViewport": "Viewport-based branching makes the test environment-dependent; set a fixed viewport.",
        "avoidResizeListener": "Avoid relying on resize events in tests; set a fixed viewport.",
        "avoidScrollCheck": "Avoid depending on scroll position; it varies with viewport size.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if options["allowResponsiveTests"] and self._responsive_file():
            return []
        if node.type == syntax.ASSIGNMENT:
            left = syntax.path_of(node.child_by_field_name("left"))
            if left is not None and is_window_root(self, left, node) and syntax.path_tail(left) == "onresize":
                return [self.finding(node, "avoidResizeListener")]
            return []
        if node.type == syntax.VARIABLE_DECLARATOR:
            return self._destructured(node, options)
        if node.type == syntax.NEW:
            return self._observer(node, context)
        if node.type == syntax.CALL:
            return self._call(node, context, options)
        return self._member(node, options)

    def _member(self, node: Node, options: RuleOptions) -> list[Finding]:
        prop = syntax.property_name(node)
        owner = syntax.path_of(syntax.member_object(node))
        if prop is None or owner is None or self._exempt_read(node):
            return []
        if prop in VIEWPORT_PROPS and is_window_root(self, owner, node) and "." not in owner:
            message_id, data = "avoidViewportCheck", {"property": prop}
        elif prop in ROOT_ELEMENT_PROPS and owner in ROOT_ELEMENTS and not self.source.bindings.is_bound("document", node):
            message_id, data = "avoidViewportCheck", {"property": prop}
        elif prop in SCREEN_PROPS and (owner == "screen" and not self.source.bindings.is_bound("screen", node)
                                       or is_window_root(self, owner, node) and owner.endswith(".screen")):
            message_id, data = "avoidScreenCheck", {"property": prop}
        elif prop in SCROLL_PROPS and (is_window_root(self, owner, node) and "." not in owner or owner in ROOT_ELEMENTS):
            message_id, data = "avoidScrollCheck", {"property": prop}
        else:
            return []
        if options["allowViewportSetup"] and self._after_setup(node):
            return []
        if message_id == "avoidViewportCheck" and self._in_computed_declaration(node):
            return [self.finding(node, "useFixedViewport", data)]
        return [self.finding(node, message_id, data)]

    def _exempt_read(self, node: Node) -> bool:
        if syntax.is_assignment_target(node):
            return True
        parent = node.parent
        if parent is not None and parent.type == "pair":
            return True
        for ancestor in syntax.ancestors(node):
            if ancestor.type == syntax.CALL and syntax.path_root(syntax.path_of(syntax.callee(ancestor))) == "console":
                return True
            if ancestor.type in syntax.FUNCTION_KINDS or ancestor.type == syntax.EXPRESSION_STATEMENT:
                break
        return False

    @staticmethod
    def _in_computed_declaration(node: Node) -> bool:
        seen_binary = False
        for ancestor in syntax.ancestors(node):
            if ancestor.type in (syntax.BINARY, "ternary_expression"):
                seen_binary = True
            elif ancestor.type == syntax.VARIABLE_DECLARATOR:
                return seen_binary
            elif ancestor.type in syntax.FUNCTION_KINDS or ancestor.type.endswith("statement"):
                return False
        return False

    def _call(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        identity = self.identity(node)
        if identity is None or context.inside_mocked_block:
            return []
        if identity.method == "matchMedia" and (identity.object is None or identity.object in WINDOW_ROOTS):
            if options["ignoreMediaQueries"] or self.source.bindings.is_bound("matchMedia", node) and identity.object is None:
                return []
            if options["allowViewportSetup"] and self._after_setup(node):
                return []
            return [self.finding(node, "avoidViewportCheck", {"property": "matchMedia"})]
        if identity.method == "getBoundingClientRect" and identity.object in ROOT_ELEMENTS:
            return [self.finding(node, "avoidBoundingRect")]
        if identity.method == "addEventListener" and syntax.literal_text(syntax.argument(node, 0)) == "resize":
            if identity.object is None or is_window_root(self, identity.object, node):
                return [self.finding(node, "avoidResizeListener")]
        return []

    def _observer(self, node: Node, context: DetectorContext) -> list[Finding]:
        identity = self.identity(node)
        if identity is None or identity.object is not None or context.inside_mocked_block:
            return []
        if self.source.bindings.is_bound(identity.method, node):
            return []
        if identity.method == "ResizeObserver":
            return [self.finding(node, "avoidResizeListener")]
        if identity.method == "IntersectionObserver":
            return [self.finding(node, "avoidViewportCheck", {"property": "IntersectionObserver"})]
        return []

    def _destructured(self, node: Node, options: RuleOptions) -> list[Finding]:
        name = node.child_by_field_name("name")
        value = syntax.unwrap(node.child_by_field_name("value"))
        if name is None or name.type != "object_pattern" or value is None:
            return []
        source_path = syntax.path_of(value)
        if source_path is None:
            return []
        keys = [syntax.text(c.child_by_field_name("key") or c) if c.type == "pair_pattern" else syntax.text(c)
                for c in name.named_children]
        if options["allowViewportSetup"] and self._after_setup(node):
            return []
        if is_window_root(self, source_path, node) and "." not in source_path:
            for key in keys:
                if key in VIEWPORT_PROPS:
                    return [self.finding(node, "avoidViewportCheck", {"property": key})]
                if key in SCROLL_PROPS:
                    return [self.finding(node, "avoidScrollCheck", {"property": key})]
        if source_path == "screen" and not self.source.bindings.is_bound("screen", node) \
                or is_window_root(self, source_path, node) and source_path.endswith(".screen"):
            for key in keys:
                if key in SCREEN_PROPS:
                    return [self.finding(node, "avoidScreenCheck", {"property": key})]
        return []

    def _after_setup(self, node: Node) -> bool:
        return any(start < node.start_byte or in_hook for start, in_hook in self._setup_positions())

    def _setup_positions(self) -> list[tuple[int, bool]]:
        def compute() -> list[tuple[int, bool]]:
            positions = []
            for inner in syntax.walk(self.source.root):
                is_setup = False
                if inner.type == syntax.CALL:
                    identity = self.identity(inner)
                    if identity is not None and identity.method in VIEWPORT_SETUP_METHODS:
                        is_setup = identity.method != "viewport" or syntax.path_root(identity.object) == "cy"
                elif inner.type == syntax.ASSIGNMENT:
                    left = syntax.path_of(inner.child_by_field_name("left"))
                    is_setup = left is not None and is_window_root(self, left, inner) and syntax.path_tail(left) in (
                        "innerWidth", "innerHeight", "outerWidth", "outerHeight")
                if is_setup:
                    callback = self.inspector.innermost_callback(inner)
                    positions.append((inner.start_byte, callback is not None and callback.kind == HOOK))
            return positions

        return self.source.fact("viewport_setup_positions", compute)

    def _responsive_file(self) -> bool:
        def compute() -> bool:
            for inner in syntax.walk(self.source.root):
                if inner.type != syntax.CALL:
                    continue
                fn = syntax.argument(inner, 1)
                if not syntax.is_function(fn):
                    continue
                callback = self.inspector.callback(fn)
                if callback is None or callback.kind not in (DESCRIBE, TEST):
                    continue
                if RESPONSIVE_TITLE.search(syntax.literal_text(syntax.argument(inner, 0)) or ""):
                    return True
            return False

        return self.source.fact("responsive_titles", compute)


FOCUS_MATCHERS = frozenset({"toHaveFocus", "toBeFocused"})
FOCUS_TRAP_ATTRIBUTES = frozenset({"tabindex", "tabIndex", "aria-activedescendant"})
FOCUS_SELECTOR = re.compile(r":focus(?:-visible|-within)?(?![\w-])")
FOCUS_STATE = re.compile(r"(toHaveFocus|toBeFocused|activeElement)")


class FocusCheckDetector(BaseDetector):
    """Synchronous assertions on focus, which moves asynchronously in real browsers."""

    detector_id = "no-focus-check"
    code = "FT015"
    capability = Capability.ENVIRONMENT
    node_kinds = frozenset({syntax.CALL, syntax.MEMBER, syntax.STRING})
    description = "Require waiting for focus changes before asserting on them."
    fixable = True
    option_schema = {
        "allowWithWaitFor": OptionSpec(BOOL, True),
    }
    messages = {
        "avoidFocusCheck": "Focus assertions are timing-sensitive; wrap them in waitFor().",
        "useWaitForFocus": "Focus moves asynchronously; wait for it with waitFor() before asserting.",
        "avoidActiveElement": "Avoid asserting on document.activeElement directly; use waitFor() with "
                              "toHaveFocus().",
        "avoidBlurCheck": "Blur assertions are timing-sensitive; wrap them in waitFor().",
        "focusTrapWarning": "Focus-trap attributes change asynchronously; assert them inside waitFor().",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        in_wait_for = self.inside_polling_helper(node, POLLING_HELPERS)
        if in_wait_for and options["allowWithWaitFor"]:
            return []
        if node.type == syntax.STRING:
            return self._selector(node)
        if node.type == syntax.MEMBER:
            if syntax.property_name(node) != "activeElement" or syntax.path_of(syntax.member_object(node)) != "document":
                return []
            if self.inspector.inside_call_named(node, frozenset({"expect", "assert"})):
                return [self.finding(node, "avoidActiveElement")]
            return []
        identity = self.identity(node)
        if identity is not None and identity.method == "focused" and identity.object == "cy":
            return [self.finding(node, "avoidFocusCheck")]
        parsed = parse_expect(node)
        if parsed is not None:
            return self._assertion(node, parsed, in_wait_for)
        if identity is not None and identity.method in ("focus", "blur") and not syntax.arguments(node):
            return self._bare_focus(node, identity.method, identity.object)
        return []

    def _assertion(self, node: Node, parsed: ExpectCall, in_wait_for: bool) -> list[Finding]:
        if parsed.awaited:
            return []
        if parsed.matcher in FOCUS_MATCHERS:
            message_id = "avoidBlurCheck" if parsed.negated else "avoidFocusCheck"
            return [self.finding(node, message_id, fix=None if in_wait_for else self._wrap(node))]
        if parsed.matcher == "toHaveAttribute":
            attribute = syntax.literal_text(syntax.argument(node, 0))
            if attribute in FOCUS_TRAP_ATTRIBUTES:
                return [self.finding(node, "focusTrapWarning")]
        subject = syntax.unwrap(parsed.subject)
        if subject is not None and subject.type == syntax.CALL and syntax.simple_callee_name(subject) == "getAttribute":
            if syntax.literal_text(syntax.argument(subject, 0)) in FOCUS_TRAP_ATTRIBUTES:
                return [self.finding(node, "focusTrapWarning")]
        return []

    def _wrap(self, node: Node):
        statement = syntax.statement_of(node)
        if statement is None:
            return None
        return lambda: self.fixes.wrap_statement_in_wait_for(statement)

    def _bare_focus(self, node: Node, method: str, owner: str | None) -> list[Finding]:
        if owner is None or syntax.path_root(owner) in ("cy", "page", "frame", "browser", "driver"):
            return []
        statement = syntax.statement_of(node)
        if statement is None or syntax.is_awaited(node):
            return []
        following = syntax.next_statement(statement)
        if following is None or not FOCUS_STATE.search(syntax.text(following)):
            return []
        return [self.finding(node, "useWaitForFocus" if method == "focus" else "avoidBlurCheck")]

    def _selector(self, node: Node) -> list[Finding]:
        parent = node.parent
        while parent is not None and parent.type in syntax.WRAPPER_KINDS:
            parent = parent.parent
        if parent is None or parent.type != "arguments":
            return []
        if FOCUS_SELECTOR.search(syntax.string_value(node) or ""):
            return [self.finding(node, "avoidFocusCheck")]
        return []


REMOVAL_WAITERS = frozenset({"waitFor", "waitForElementToBeRemoved", "waitUntil", "waitForExpect"})
ABSENCE_MATCHERS = frozenset({"toBeNull", "toBeUndefined", "toBeFalsy"})
PRESENCE_MATCHERS = frozenset({"toBeDefined", "toBeTruthy"})
QUERY_CALL = re.compile(r"^query(All)?By[A-Z]\w*$")


class ElementRemovalCheckDetector(BaseDetector):
    """Asserting that an element is gone without waiting for it to be removed."""

    detector_id = "no-element-removal-check"
    code = "FT016"
    capability = Capability.ENVIRONMENT
    node_kinds = frozenset({syntax.CALL, syntax.BINARY, syntax.UNARY})
    description = "Require waiting for element removal before asserting on it."
    fixable = True
    messages = {
        "avoidRemovalCheck": "Checking for a removed element without waiting is flaky; use "
                             "waitForElementToBeRemoved().",
        "useWaitForRemoval": "Wait for the element to disappear with waitFor() or waitForElementToBeRemoved().",
        "avoidNotInDocument": "'.not.toBeInTheDocument()' right away is flaky; wrap it in waitFor().",
        "avoidNotVisibleWithoutWaitFor": "'.not.toBeVisible()' right away is flaky; wrap it in waitFor().",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if self.inside_polling_helper(node, REMOVAL_WAITERS):
            return []
        if node.type == syntax.BINARY:
            return self._comparison(node)
        if node.type == syntax.UNARY:
            return self._negated_contains(node)
        parsed = parse_expect(node)
        if parsed is None or parsed.awaited:
            return []
        if parsed.matcher == "toBeInTheDocument" and parsed.negated:
            return [self.finding(node, "avoidNotInDocument", fix=self._wrap(node))]
        if parsed.matcher == "toBeVisible" and parsed.negated:
            return [self.finding(node, "avoidNotVisibleWithoutWaitFor", fix=self._wrap(node))]
        absent = (parsed.matcher in ABSENCE_MATCHERS and not parsed.negated) or (
            parsed.matcher in PRESENCE_MATCHERS and parsed.negated)
        empty = parsed.matcher == "toHaveLength" and syntax.number_value(syntax.argument(node, 0)) == 0
        if (absent or empty) and self._is_query(parsed.subject):
            return [self.finding(node, "useWaitForRemoval", fix=self._wrap(node))]
        return []

    def _wrap(self, node: Node):
        statement = syntax.statement_of(node)
        if statement is None:
            return None
        return lambda: self.fixes.wrap_statement_in_wait_for(statement, block=True)

    @staticmethod
    def _is_query(node: Node | None) -> bool:
        node = syntax.unwrap(node)
        if node is None or node.type != syntax.CALL:
            return False
        name = syntax.simple_callee_name(node)
        return name is not None and bool(QUERY_CALL.match(name))

    def _comparison(self, node: Node) -> list[Finding]:
        operator = node.child_by_field_name("operator")
        if operator is None or syntax.text(operator) not in ("===", "=="):
            return []
        left = syntax.unwrap(node.child_by_field_name("left"))
        right = syntax.unwrap(node.child_by_field_name("right"))
        for query, other in ((left, right), (right, left)):
            if self._is_query(query) and other is not None and syntax.text(other) in ("null", "undefined"):
                return [self.finding(node, "avoidRemovalCheck")]
        return []

    def _negated_contains(self, node: Node) -> list[Finding]:
        if not syntax.text(node).startswith("!"):
            return []
        argument = syntax.unwrap(node.child_by_field_name("argument"))
        if argument is None or argument.type != syntax.CALL:
            return []
        identity = self.identity(argument)
        if identity is None or identity.method != "contains":
            return []
        if syntax.path_root(identity.object) == "document" and not self.source.bindings.is_bound("document", node):
            return [self.finding(node, "avoidRemovalCheck")]
        return []
