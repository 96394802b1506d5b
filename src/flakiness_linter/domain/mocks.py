"""Mock index: module directives, mock libraries, spies/stubs and mock-factory callbacks."""

from dataclasses import dataclass

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.classifier import NodeClassifier
from flakiness_linter.domain.constants import (
    HOOK_FUNCTIONS,
    MOCK_DIRECTIVE_METHODS,
    MOCK_FACTORY_CALLS,
    MOCK_LIBRARIES,
    MOCK_NAMESPACES,
)
from flakiness_linter.domain.entities import CallIdentity

GLOBAL_OBJECTS = frozenset({"global", "globalThis", "window", "self"})
SPY_METHODS = frozenset({"spyOn", "stub", "spy", "replace", "replaceGetter", "replaceSetter", "mock"})
SPY_OWNERS = frozenset({"jest", "vi", "sinon", "td", "sandbox"})


@dataclass(frozen=True)
class SpyInstallation:
    """A spy/stub on (object, method) effective from `start_byte` inside `region`."""

    object: str
    method: str
    origin: str | None
    start_byte: int
    region: Node


def normalize_module(name: str) -> str:
    return name.removeprefix("node:")


def normalize_object(path: str | None) -> str | None:
    if path is None:
        return None
    root, _, rest = path.partition(".")
    if root in GLOBAL_OBJECTS:
        return "global" + ("." + rest if rest else "")
    return path


class MockIndex:
    """
    Everything in one file that replaces a real implementation.

    Directive-style mocks (`jest.mock('fs')`) are hoisted by the runners, so they count
    anywhere in the file. Spies count only after their installation, within the block
    they were installed in (a hook's spy covers its describe block).
    """

    def __init__(self, root: Node, classifier: NodeClassifier) -> None:
        self._classifier = classifier
        self._mocked_modules: set[str] = set()
        self._library_imports: set[str] = set()
        self._spies: list[SpyInstallation] = []
        self._factory_regions: list[Node] = []
        self._build(root)

    @property
    def mocked_modules(self) -> frozenset[str]:
        return frozenset(self._mocked_modules)

    @property
    def mock_libraries(self) -> frozenset[str]:
        return frozenset(self._library_imports)

    def is_module_mocked(self, module: str | None) -> bool:
        if module is None:
            return False
        return normalize_module(module) in self._mocked_modules

    def has_library(self, *names: str) -> bool:
        return any(name in self._library_imports for name in names)

    def is_spied(self, identity: CallIdentity | None, node: Node) -> bool:
        if identity is None:
            return False
        target = normalize_object(identity.object) or "global"
        for spy in self._spies:
            if spy.method != identity.method:
                continue
            if spy.start_byte >= node.start_byte or not syntax.contains(spy.region, node):
                continue
            if spy.object == target:
                return True
            if spy.origin is not None and spy.origin == identity.module_origin:
                return True
        return False

    def inside_mock_factory(self, node: Node) -> bool:
        return any(syntax.contains(region, node) for region in self._factory_regions)

    def is_mocked(self, identity: CallIdentity | None, node: Node) -> bool:
        """Module mocked by directive or library, spied before `node`, or inside a mock implementation."""
        if self.inside_mock_factory(node):
            return True
        if identity is None:
            return False
        return self.is_module_mocked(identity.module_origin) or self.is_spied(identity, node)

    # -- construction ---------------------------------------------------------

    def _build(self, root: Node) -> None:
        for node in syntax.walk(root):
            if node.type == "import_statement":
                self._collect_library(syntax.string_value(node.child_by_field_name("source")))
            elif node.type == syntax.CALL:
                self._collect_call(node)
            elif node.type == syntax.ASSIGNMENT:
                self._collect_assignment(node)

    def _collect_library(self, module: str | None) -> None:
        if module is None:
            return
        if module in MOCK_LIBRARIES:
            self._library_imports.add(module)
            self._mocked_modules.update(normalize_module(m) for m in MOCK_LIBRARIES[module])

    def _collect_call(self, node: Node) -> None:
        target = syntax.callee(node)
        if target is not None and target.type == syntax.IDENTIFIER and syntax.text(target) == "require":
            self._collect_library(syntax.string_value(syntax.argument(node, 0)))
            return
        identity = self._classifier.resolve_call_identity(node)
        if identity is None:
            return
        owner = identity.object or ""
        if owner in MOCK_NAMESPACES and identity.method in MOCK_DIRECTIVE_METHODS:
            module = syntax.string_value(syntax.argument(node, 0))
            if module is not None:
                self._mocked_modules.add(normalize_module(module))
            factory = syntax.argument(node, 1)
            if syntax.is_function(factory):
                self._factory_regions.append(factory)
            return
        if owner in MOCK_NAMESPACES and identity.method == "stubGlobal":
            name = syntax.string_value(syntax.argument(node, 0))
            if name is not None:
                self._add_spy("global", name, None, node)
            return
        if identity.method in SPY_METHODS and (owner in SPY_OWNERS or owner.endswith("andbox")):
            obj = syntax.argument(node, 0)
            method = syntax.string_value(syntax.argument(node, 1))
            path = syntax.path_of(obj)
            if path is not None and method is not None:
                self._add_spy(path, method, self._classifier.module_origin(obj), node)
        if identity.method in MOCK_FACTORY_CALLS and (identity.method != "fn" or owner in MOCK_NAMESPACES):
            for arg in syntax.arguments(node):
                arg = syntax.unwrap(arg)
                if syntax.is_function(arg):
                    self._factory_regions.append(arg)

    def _collect_assignment(self, node: Node) -> None:
        left = syntax.unwrap(node.child_by_field_name("left"))
        right = syntax.unwrap(node.child_by_field_name("right"))
        if left is None or right is None or left.type not in (syntax.MEMBER, syntax.SUBSCRIPT):
            return
        if not self.is_mock_factory(right):
            return
        method = syntax.property_name(left)
        obj = syntax.member_object(left)
        path = syntax.path_of(obj)
        if method is not None and path is not None:
            self._add_spy(path, method, self._classifier.module_origin(obj), node)

    def is_mock_factory(self, node: Node | None) -> bool:
        """`jest.fn()`, `vi.fn(...)`, `sinon.stub()`, `sinon.fake()` and chains hanging off them."""
        for call in syntax.call_chain(node) if node is not None else ():
            identity = self._classifier.resolve_call_identity(call)
            if identity is None:
                continue
            owner = identity.object or ""
            if owner in MOCK_NAMESPACES and identity.method in ("fn", "spyOn"):
                return True
            if owner in ("sinon", "td") and identity.method in ("stub", "spy", "fake", "func"):
                return True
        return False

    def _add_spy(self, path: str, method: str, origin: str | None, node: Node) -> None:
        self._spies.append(SpyInstallation(
            object=normalize_object(path) or path,
            method=method,
            origin=origin,
            start_byte=node.start_byte,
            region=self._spy_region(node),
        ))

    def _spy_region(self, node: Node) -> Node:
        """A spy inside a hook covers the hook's describe block; otherwise its enclosing body."""
        fn = syntax.enclosing_function(node)
        if fn is None:
            root = node
            while root.parent is not None:
                root = root.parent
            return root
        args = fn.parent
        call = args.parent if args is not None else None
        if call is not None and call.type == syntax.CALL and args.type == "arguments":
            name = syntax.simple_callee_name(call)
            root_name = syntax.path_root(syntax.path_of(syntax.callee(call)))
            statement = call.parent
            if (name in HOOK_FUNCTIONS or root_name in HOOK_FUNCTIONS) and statement is not None \
                    and statement.parent is not None:
                return statement.parent
        return fn
