"""Mutation and isolation detectors: process-wide objects and state shared between tests."""

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.bindings import CONST, IMPORT, LET, REQUIRE, VAR, Binding
from flakiness_linter.domain.config import BOOL, STRING_LIST, OptionSpec, RuleOptions
from flakiness_linter.domain.context import DESCRIBE, HOOK, Callback, CallbackClassifier
from flakiness_linter.domain.detectors.base import BaseDetector
from flakiness_linter.domain.entities import Capability, DetectorContext, Finding

GLOBAL_ROOTS = frozenset({"global", "globalThis", "window", "self"})
BUILTIN_ROOTS = frozenset({
    "Math", "Date", "console", "navigator", "JSON", "Promise", "Array", "Object", "String", "Number",
    "Boolean", "Function", "RegExp", "Intl", "location", "history",
})
STORAGE_OBJECTS = frozenset({"localStorage", "sessionStorage"})
STORAGE_METHODS = frozenset({"setItem", "removeItem", "clear"})
DOCUMENT_WRITERS = frozenset({"write", "writeln", "open", "close"})
OBJECT_MUTATORS = frozenset({"defineProperty", "defineProperties", "assign", "setPrototypeOf"})
MUTATING_METHODS = frozenset({
    "push", "pop", "shift", "unshift", "splice", "sort", "reverse", "fill", "copyWithin",
    "set", "add", "delete", "clear",
})
PER_TEST_HOOKS = frozenset({"beforeEach", "afterEach", "setup", "teardown"})
SUITE_SETUP_HOOKS = frozenset({"beforeAll", "before", "suiteSetup"})
CLEANUP_HOOKS = frozenset({"afterEach", "afterAll", "after", "teardown", "suiteTeardown"})
ASSIGNMENT_KINDS = frozenset({syntax.ASSIGNMENT, syntax.AUGMENTED_ASSIGNMENT})


def mutation_target(node: Node) -> tuple[Node, str] | None:
    """The expression a node mutates and how: 'assign', 'update', 'delete' or 'call'."""
    if node.type in ASSIGNMENT_KINDS:
        left = syntax.unwrap(node.child_by_field_name("left"))
        return (left, "assign") if left is not None else None
    if node.type == syntax.UPDATE:
        argument = syntax.unwrap(node.child_by_field_name("argument"))
        return (argument, "update") if argument is not None else None
    if node.type == syntax.UNARY and syntax.text(node).startswith("delete"):
        argument = syntax.unwrap(node.child_by_field_name("argument"))
        return (argument, "delete") if argument is not None else None
    if node.type == syntax.CALL:
        target = syntax.callee(node)
        if target is not None and target.type == syntax.MEMBER and syntax.property_name(target) in MUTATING_METHODS:
            receiver = syntax.member_object(target)
            return (receiver, "call") if receiver is not None else None
    return None


def root_identifier(node: Node | None) -> Node | None:
    current = syntax.unwrap(node)
    while current is not None and current.type in (syntax.MEMBER, syntax.SUBSCRIPT):
        current = syntax.member_object(current)
    if current is not None and current.type == syntax.IDENTIFIER:
        return current
    return None


def paths_related(a: str, b: str) -> bool:
    """Equal, or one is a member path below the other."""
    return a == b or a.startswith(b + ".") or b.startswith(a + ".")


class GlobalStateMutationDetector(BaseDetector):
    """Writes to window, document, process.env, built-ins, storage and implicit globals."""

    detector_id = "no-global-state-mutation"
    code = "FT008"
    capability = Capability.MUTATION
    node_kinds = frozenset({syntax.ASSIGNMENT, syntax.AUGMENTED_ASSIGNMENT, syntax.UPDATE, syntax.UNARY, syntax.CALL})
    description = "Disallow mutating process-wide state from tests without cleanup."
    option_schema = {
        "allowInHooks": OptionSpec(BOOL, True),
    }
    messages = {
        "avoidGlobalMutation": "Avoid mutating global '{{object}}'; it leaks into other tests.",
        "useLocalVariable": "Assignment creates an implicit global; declare a local variable instead.",
        "needsCleanup": "'{{storage}}' is changed without being cleared in an afterEach hook.",
        "avoidProcessEnv": "Avoid mutating process.env in tests without restoring it afterwards.",
        "avoidDocumentMutation": "Avoid mutating document outside a cleaned-up render.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if options["allowInHooks"] and context.inside_setup_hook and context.hook_name not in SUITE_SETUP_HOOKS:
            return []
        if node.type == syntax.CALL:
            return self._call(node, context)
        target = mutation_target(node)
        if target is None:
            return []
        left, how = target
        if how == "assign" and self.source.mocks.is_mock_factory(node.child_by_field_name("right")):
            return []
        if left.type == syntax.IDENTIFIER:
            name = syntax.text(left)
            if how != "assign" or self.source.bindings.is_bound(name, left) or name in ("exports", "module"):
                return []
            if name in GLOBAL_ROOTS or name in BUILTIN_ROOTS or name == "undefined":
                return [self.finding(node, "avoidGlobalMutation", {"object": name})]
            return [self.finding(node, "useLocalVariable", {"variable": name})]
        path = syntax.path_of(left)
        classified = self._classify(path, left)
        if classified is None or self._reverted(node, context, path):
            return []
        message_id, data = classified
        return [self.finding(node, message_id, data)]

    def _classify(self, path: str | None, site: Node) -> tuple[str, dict] | None:
        if not path or "." not in path or "()" in path:
            return None
        segments = path.split(".")
        root = segments[0]
        if self.source.bindings.is_bound(root, site):
            return None
        if root in GLOBAL_ROOTS:
            segments = segments[1:]
            if len(segments) >= 2 and segments[0] == "document":
                return "avoidDocumentMutation", {}
            if segments and segments[0] in STORAGE_OBJECTS:
                return "needsCleanup", {"storage": segments[0]}
            return "avoidGlobalMutation", {"object": root}
        if root == "process":
            if len(segments) >= 2 and segments[1] == "env":
                return "avoidProcessEnv", {}
            return "avoidGlobalMutation", {"object": "process"}
        if root == "document":
            return "avoidDocumentMutation", {}
        if root in STORAGE_OBJECTS:
            return "needsCleanup", {"storage": root}
        if root in BUILTIN_ROOTS:
            return "avoidGlobalMutation", {"object": root}
        return None

    def _call(self, node: Node, context: DetectorContext) -> list[Finding]:
        identity = self.identity(node)
        if identity is None or identity.object is None:
            return []
        owner = identity.object
        root = syntax.path_root(owner)
        if root is not None and self.source.bindings.is_bound(root, node):
            return []
        tail = syntax.path_tail(owner)
        if identity.method in STORAGE_METHODS and tail in STORAGE_OBJECTS:
            if identity.method == "clear" or self._reverted(node, context, owner):
                return []
            return [self.finding(node, "needsCleanup", {"storage": tail})]
        if identity.method in DOCUMENT_WRITERS and tail == "document":
            return [self.finding(node, "avoidDocumentMutation")]
        if owner == "Object" and identity.method in OBJECT_MUTATORS:
            subject = syntax.path_of(syntax.argument(node, 0))
            subject_root = syntax.path_root(subject)
            if subject_root is None or self.source.bindings.is_bound(subject_root, node):
                return []
            if subject_root in GLOBAL_ROOTS or subject_root in BUILTIN_ROOTS or subject_root == "document":
                if self._reverted(node, context, subject):
                    return []
                if subject_root == "document":
                    return [self.finding(node, "avoidDocumentMutation")]
                return [self.finding(node, "avoidGlobalMutation", {"object": subject_root})]
        return []

    def _reverted(self, node: Node, context: DetectorContext, path: str | None) -> bool:
        """True when an afterEach/afterAll in an enclosing describe (or the file) restores `path`."""
        if not path or not context.inside_test_body:
            return False
        for hook, restored in self._cleanup_hooks():
            scope = self._hook_scope(hook)
            if scope is not None and not syntax.contains(scope, node):
                continue
            if any(paths_related(path, other) for other in restored):
                return True
        return False

    def _hook_scope(self, hook: Callback) -> Node | None:
        """Body of the describe that registered the hook; None for file-level hooks."""
        describe = next((cb for cb in self.inspector.enclosing_callbacks(hook.call) if cb.kind == DESCRIBE), None)
        return describe.function if describe is not None else None

    def _cleanup_hooks(self) -> list[tuple[Callback, frozenset[str]]]:
        def compute() -> list[tuple[Callback, frozenset[str]]]:
            found = []
            for fn in syntax.walk(self.source.root):
                if fn.type not in syntax.FUNCTION_KINDS:
                    continue
                callback = self.inspector.callback(fn)
                if callback is None or callback.kind != HOOK or callback.name not in CLEANUP_HOOKS:
                    continue
                found.append((callback, frozenset(self._restored_paths(fn))))
            return found

        return self.source.fact("global_cleanup_hooks", compute)

    def _restored_paths(self, fn: Node) -> set[str]:
        paths: set[str] = set()
        for inner in syntax.descendants(fn):
            target = mutation_target(inner)
            if target is not None:
                rendered = syntax.path_of(target[0])
                if rendered:
                    paths.add(rendered)
            if inner.type == syntax.CALL:
                identity = self.identity(inner)
                if identity is None or identity.object is None:
                    continue
                if identity.method in ("clear", "removeItem"):
                    paths.add(identity.object)
                elif identity.object == "Object" and identity.method in OBJECT_MUTATORS:
                    subject = syntax.path_of(syntax.argument(inner, 0))
                    if subject:
                        paths.add(subject)
        return paths


class TestIsolationDetector(BaseDetector):
    """State shared between tests through closures, module bindings and unbalanced hooks."""

    __test__ = False

    detector_id = "no-test-isolation"
    code = "FT009"
    capability = Capability.ISOLATION
    node_kinds = frozenset({syntax.ASSIGNMENT, syntax.AUGMENTED_ASSIGNMENT, syntax.UPDATE, syntax.CALL,
                            syntax.VARIABLE_DECLARATOR})
    description = "Disallow state shared between tests without a reset."
    option_schema = {
        "allowSharedSetup": OptionSpec(BOOL, True),
        "checkGlobalState": OptionSpec(BOOL, True),
        "allowedSharedVariables": OptionSpec(STRING_LIST, []),
    }
    messages = {
        "avoidSharedState": "Test mutates '{{variable}}', which is shared with other tests; reset it in "
                            "beforeEach.",
        "needsCleanup": "'{{hook}}' changes global state but no after hook restores it.",
        "initInSetup": "Initialize '{{variable}}' in beforeEach instead of the describe body.",
        "avoidModuleMutation": "Avoid mutating an imported module; other tests see the change.",
        "globalStateMutation": "Test assigns global '{{property}}'; restore it in afterEach.",
        "disallowedSharedVar": "'{{variable}}' is not in allowedSharedVariables but is shared between tests.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if node.type == syntax.VARIABLE_DECLARATOR:
            return self._describe_level_init(node, context)
        if node.type == syntax.CALL:
            findings = self._unbalanced_hook(node)
            if findings:
                return findings
        if not context.inside_test_body:
            return []
        target = mutation_target(node)
        if target is None:
            return []
        expression, how = target
        root = root_identifier(expression)
        if root is None:
            return []
        name = syntax.text(root)
        binding = self.source.bindings.lookup(name, root)
        if binding is None:
            if options["checkGlobalState"] and how == "assign" and name in GLOBAL_ROOTS and expression.type != syntax.IDENTIFIER:
                return [self.finding(node, "globalStateMutation", {"property": self._property_of(expression)})]
            return []
        if binding.kind in (IMPORT, REQUIRE):
            if expression.type != syntax.IDENTIFIER and how in ("assign", "delete"):
                return [self.finding(node, "avoidModuleMutation", {"variable": name})]
            return []
        if binding.kind not in (CONST, LET, VAR):
            return []
        if expression.type == syntax.IDENTIFIER and binding.kind == CONST:
            return []
        if not self._shared_with_test(binding, node) or self._reset_in_hooks(binding, options):
            return []
        allowed = options["allowedSharedVariables"]
        if allowed:
            if name in allowed:
                return []
            return [self.finding(node, "disallowedSharedVar", {"variable": name})]
        return [self.finding(node, "avoidSharedState", {"variable": name})]

    @staticmethod
    def _property_of(expression: Node) -> str:
        path = syntax.path_of(expression) or syntax.text(expression)
        return path.split(".", 1)[1] if "." in path else path

    def _shared_with_test(self, binding: Binding, node: Node) -> bool:
        test = self.inspector.enclosing_test(node)
        if test is None:
            return False
        return not syntax.contains(test.function, binding.declaration)

    def _reset_in_hooks(self, binding: Binding, options: RuleOptions) -> bool:
        hooks = self._hook_writes().get((syntax.node_key(binding.declaration), binding.name), frozenset())
        if hooks & PER_TEST_HOOKS:
            return True
        return bool(options["allowSharedSetup"]) and bool(hooks)

    def _hook_writes(self) -> dict[tuple[syntax.NodeKey, str], frozenset[str]]:
        """(declaration, name) -> names of the hooks that assign or mutate the binding."""

        def compute() -> dict[tuple[syntax.NodeKey, str], frozenset[str]]:
            writes: dict[tuple[syntax.NodeKey, str], set[str]] = {}
            for inner in syntax.walk(self.source.root):
                target = mutation_target(inner)
                if target is None:
                    continue
                root = root_identifier(target[0])
                if root is None:
                    continue
                callback = self.inspector.innermost_callback(inner)
                if callback is None or callback.kind != HOOK:
                    continue
                binding = self.source.bindings.lookup(syntax.text(root), root)
                if binding is not None:
                    key = (syntax.node_key(binding.declaration), binding.name)
                    writes.setdefault(key, set()).add(callback.name)
            return {key: frozenset(names) for key, names in writes.items()}

        return self.source.fact("isolation_hook_writes", compute)

    def _test_mutated(self) -> frozenset[tuple[syntax.NodeKey, str]]:
        def compute() -> frozenset[tuple[syntax.NodeKey, str]]:
            mutated: set[tuple[syntax.NodeKey, str]] = set()
            for inner in syntax.walk(self.source.root):
                target = mutation_target(inner)
                if target is None:
                    continue
                root = root_identifier(target[0])
                if root is None or self.inspector.enclosing_test(inner) is None:
                    continue
                binding = self.source.bindings.lookup(syntax.text(root), root)
                if binding is not None:
                    mutated.add((syntax.node_key(binding.declaration), binding.name))
            return frozenset(mutated)

        return self.source.fact("isolation_test_mutated", compute)

    def _describe_level_init(self, node: Node, context: DetectorContext) -> list[Finding]:
        if not context.inside_describe_body or syntax.enclosing_function(node) is None:
            return []
        describe = self.inspector.callback(syntax.enclosing_function(node))
        if describe is None or describe.kind != DESCRIBE:
            return []
        name = node.child_by_field_name("name")
        value = syntax.unwrap(node.child_by_field_name("value"))
        if name is None or name.type != syntax.IDENTIFIER or value is None:
            return []
        if value.type not in (syntax.OBJECT, syntax.ARRAY, syntax.NEW):
            return []
        key = (syntax.node_key(node), syntax.text(name))
        if key not in self._test_mutated():
            return []
        if self._hook_writes().get(key, frozenset()) & PER_TEST_HOOKS:
            return []
        return [self.finding(node, "initInSetup", {"variable": syntax.text(name)})]

    def _unbalanced_hook(self, node: Node) -> list[Finding]:
        fn = syntax.argument(node, 0)
        if not syntax.is_function(fn):
            fn = syntax.argument(node, 1)
        if not syntax.is_function(fn):
            return []
        callback = self.inspector.callback(fn)
        if callback is None or callback.kind != HOOK or callback.name not in ("beforeAll", "beforeEach", "before"):
            return []
        if not self._changes_global_state(fn):
            return []
        statement = node.parent
        while statement is not None and statement.type != syntax.EXPRESSION_STATEMENT:
            statement = statement.parent
        if statement is None or statement.parent is None:
            return []
        for sibling in syntax.named_children(statement.parent):
            if sibling.type != syntax.EXPRESSION_STATEMENT:
                continue
            call = syntax.statement_expression(sibling)
            if call is not None and call.type == syntax.CALL:
                classified = self._hook_name(call)
                if classified in CLEANUP_HOOKS:
                    return []
        return [self.finding(node, "needsCleanup", {"hook": callback.name})]

    @staticmethod
    def _hook_name(call: Node) -> str | None:
        classified = CallbackClassifier.classify_call(call)
        return classified[1] if classified is not None and classified[0] == HOOK else None

    def _changes_global_state(self, fn: Node) -> bool:
        for inner in syntax.descendants(fn):
            if inner.type == syntax.CALL:
                identity = self.identity(inner)
                if identity is not None and identity.method == "useFakeTimers":
                    return True
            target = mutation_target(inner)
            if target is None or target[1] == "call":
                continue
            root = root_identifier(target[0])
            if root is None or target[0].type == syntax.IDENTIFIER:
                continue
            name = syntax.text(root)
            if self.source.bindings.is_bound(name, root):
                continue
            path = syntax.path_of(target[0]) or ""
            if name in GLOBAL_ROOTS or name == "document" or path.startswith("process.env"):
                return True
        return False
