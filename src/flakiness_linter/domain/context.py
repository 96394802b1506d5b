"""Scope/context inspector: test bodies, hooks, describe blocks, mocks and suppression."""

from dataclasses import dataclass

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.constants import (
    DESCRIBE_FUNCTIONS,
    HOOK_FUNCTIONS,
    SETUP_HOOKS,
    TEST_FUNCTIONS,
    TEST_MODIFIERS,
)
from flakiness_linter.domain.entities import DetectorContext
from flakiness_linter.domain.source_file import SourceFile

TEST = "test"
HOOK = "hook"
DESCRIBE = "describe"


@dataclass(frozen=True)
class Callback:
    """A function passed to a test-framework call."""

    kind: str
    name: str
    function: Node
    call: Node

    @property
    def is_setup(self) -> bool:
        return self.kind == HOOK and self.name in SETUP_HOOKS


class CallbackClassifier:
    """Classifies `it(...)`, `test.only.each(t)(...)`, `test.describe(...)`, `test.beforeEach(...)`."""

    @staticmethod
    def classify_call(call: Node) -> tuple[str, str] | None:
        target = syntax.callee(call)
        while target is not None and target.type == syntax.CALL:
            # `it.each(table)('name', fn)`: classify by the inner callee.
            target = syntax.callee(target)
        path = syntax.path_of(target)
        if path is None:
            return None
        segments = [s.removesuffix("()") for s in path.split(".")]
        root, rest = segments[0], segments[1:]
        if any(s not in TEST_MODIFIERS and s not in HOOK_FUNCTIONS and s not in ("describe", "step", "extend")
               for s in rest):
            return None
        for segment in rest:
            if segment in HOOK_FUNCTIONS:
                return (HOOK, segment)
            if segment == "describe":
                return (DESCRIBE, "describe")
            if segment == "step":
                return (TEST, "step")
        if root in HOOK_FUNCTIONS and not rest:
            return (HOOK, root)
        if root in DESCRIBE_FUNCTIONS:
            return (DESCRIBE, root)
        if root in TEST_FUNCTIONS:
            return (TEST, root)
        return None

    @staticmethod
    def callback_of(fn: Node) -> Callback | None:
        args = fn.parent
        while args is not None and args.type in syntax.WRAPPER_KINDS:
            args = args.parent
        if args is None or args.type != "arguments":
            return None
        call = args.parent
        if call is None or call.type != syntax.CALL:
            return None
        classified = CallbackClassifier.classify_call(call)
        if classified is None:
            return None
        return Callback(kind=classified[0], name=classified[1], function=fn, call=call)


class ContextInspector:
    """
    Builds a DetectorContext for a node from its ancestors.

    The innermost framework callback decides the kind: code in a helper arrow declared
    inside a hook is still hook code. Results are cached per node and per function.
    """

    def __init__(self, source: SourceFile) -> None:
        self.source = source
        self._callbacks: dict[syntax.NodeKey, Callback | None] = {}
        self._contexts: dict[syntax.NodeKey, DetectorContext] = {}

    def callback(self, fn: Node) -> Callback | None:
        key = syntax.node_key(fn)
        if key not in self._callbacks:
            self._callbacks[key] = CallbackClassifier.callback_of(fn)
        return self._callbacks[key]

    def innermost_callback(self, node: Node) -> Callback | None:
        for ancestor in syntax.ancestors(node):
            if ancestor.type in syntax.FUNCTION_KINDS:
                found = self.callback(ancestor)
                if found is not None:
                    return found
        return None

    def enclosing_callbacks(self, node: Node) -> list[Callback]:
        """Framework callbacks around `node`, innermost first."""
        found: list[Callback] = []
        for ancestor in syntax.ancestors(node):
            if ancestor.type in syntax.FUNCTION_KINDS:
                cb = self.callback(ancestor)
                if cb is not None:
                    found.append(cb)
        return found

    def enclosing_test(self, node: Node) -> Callback | None:
        return next((cb for cb in self.enclosing_callbacks(node) if cb.kind == TEST), None)

    def build_context(self, node: Node) -> DetectorContext:
        key = syntax.node_key(node)
        cached = self._contexts.get(key)
        if cached is not None:
            return cached
        innermost = self.innermost_callback(node)
        fn = syntax.enclosing_function(node)
        identity = None
        if node.type in (syntax.CALL, syntax.NEW):
            identity = self.source.classifier.resolve_call_identity(node)
        elif node.type in (syntax.MEMBER, syntax.SUBSCRIPT):
            identity = self.source.classifier.resolve_member(node)
        context = DetectorContext(
            inside_test_body=innermost is not None and innermost.kind == TEST,
            inside_setup_hook=innermost is not None and innermost.kind == HOOK,
            inside_mocked_block=self.source.mocks.is_mocked(identity, node),
            disabled_by_directive=self.source.directives.disables_everything(self.source.line_of(node)),
            enclosing_function_is_async=fn is not None and syntax.is_async_function(fn),
            hook_name=innermost.name if innermost is not None and innermost.kind == HOOK else None,
            inside_describe_body=innermost is not None and innermost.kind == DESCRIBE,
            source=self.source,
        )
        self._contexts[key] = context
        return context

    def is_suppressed(self, detector_id: str, line: int) -> bool:
        return self.source.directives.is_disabled(detector_id, line)

    def inside_comment(self, node: Node) -> bool:
        return any(
            c.start_byte <= node.start_byte and node.end_byte <= c.end_byte
            for c in self.source.comments
        )

    def inside_call_named(self, node: Node, names: frozenset[str] | set[str]) -> bool:
        """True if `node` sits in an argument of a call whose simple callee name is in `names`."""
        for ancestor in syntax.ancestors(node):
            if ancestor.type == syntax.CALL and syntax.simple_callee_name(ancestor) in names:
                target = syntax.callee(ancestor)
                if target is None or not syntax.contains(target, node):
                    return True
        return False
