"""Call identity resolution through member chains, imports, require and destructuring."""

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.bindings import Binding, BindingIndex, RequireSource
from flakiness_linter.domain.constants import CONVENTIONAL_MODULES
from flakiness_linter.domain.entities import OPAQUE_RECEIVER, CallIdentity

MAX_ALIAS_DEPTH = 8


class NodeClassifier:
    """
    Resolves the semantic target of calls and member reads.

    Returns None when the target cannot be determined (dynamic computed keys,
    immediately invoked expressions); callers treat None as "no opinion".
    """

    def __init__(self, bindings: BindingIndex) -> None:
        self._bindings = bindings
        self._cache: dict[syntax.NodeKey, CallIdentity | None] = {}

    @property
    def bindings(self) -> BindingIndex:
        return self._bindings

    def resolve_call_identity(self, node: Node) -> CallIdentity | None:
        if node.type not in (syntax.CALL, syntax.NEW):
            return None
        key = syntax.node_key(node)
        if key not in self._cache:
            self._cache[key] = self._resolve_target(syntax.callee(node), node)
        return self._cache[key]

    def resolve_member(self, node: Node) -> CallIdentity | None:
        """Identity of a property read such as `window.innerWidth`."""
        if node.type not in (syntax.MEMBER, syntax.SUBSCRIPT):
            return None
        return self._resolve_target(node, node)

    def _resolve_target(self, target: Node | None, site: Node) -> CallIdentity | None:
        if target is None:
            return None
        if target.type == syntax.IDENTIFIER:
            return self._resolve_identifier(syntax.text(target), site, 0)
        if target.type in (syntax.MEMBER, syntax.SUBSCRIPT):
            method = syntax.property_name(target)
            if method is None:
                return None
            obj = syntax.member_object(target)
            required = RequireSource.module_of_call(obj)
            if required is not None:
                return CallIdentity(object=required, method=method, module_origin=required)
            return CallIdentity(
                object=syntax.path_of(obj) or OPAQUE_RECEIVER,
                method=method,
                module_origin=self.module_origin(obj),
            )
        return None

    def _resolve_identifier(self, name: str, site: Node, depth: int) -> CallIdentity:
        binding = self._bindings.lookup(name, site)
        if binding is None:
            return CallIdentity(object=None, method=name, module_origin=CONVENTIONAL_MODULES.get(name))
        alias = self._follow_alias(binding, depth)
        if alias is not None:
            return alias
        if binding.is_module_binding or binding.imported is not None:
            module = binding.module or self.module_origin(binding.init, depth + 1)
            imported = binding.imported
            if imported in (None, "default", "*"):
                return CallIdentity(object=None, method=name, module_origin=module)
            owner, _, member = imported.rpartition(".")
            if not owner and binding.module is None:
                # `const { click } = userEvent` keeps `userEvent` as the receiver.
                owner = syntax.path_of(binding.init) or ""
            return CallIdentity(object=owner or None, method=member, module_origin=module)
        return CallIdentity(object=None, method=name, module_origin=None)

    def _follow_alias(self, binding: Binding, depth: int) -> CallIdentity | None:
        """`const read = fs.readFileSync` resolves as if `fs.readFileSync` were called."""
        if depth >= MAX_ALIAS_DEPTH or binding.kind != "const" or binding.imported is not None:
            return None
        init = syntax.unwrap(binding.init)
        if init is None:
            return None
        if init.type == syntax.IDENTIFIER:
            return self._resolve_identifier(syntax.text(init), init, depth + 1)
        if init.type in (syntax.MEMBER, syntax.SUBSCRIPT):
            method = syntax.property_name(init)
            if method is None:
                return None
            obj = syntax.member_object(init)
            return CallIdentity(
                object=syntax.path_of(obj) or OPAQUE_RECEIVER,
                method=method,
                module_origin=self.module_origin(obj, depth + 1),
            )
        return None

    def module_origin(self, node: Node | None, depth: int = 0) -> str | None:
        """Module the root of a receiver chain comes from; None when unknown."""
        node = syntax.unwrap(node)
        if node is None or depth > MAX_ALIAS_DEPTH:
            return None
        if node.type == syntax.IDENTIFIER:
            name = syntax.text(node)
            binding = self._bindings.lookup(name, node)
            if binding is None:
                return CONVENTIONAL_MODULES.get(name)
            if binding.module is not None:
                return binding.module
            if binding.init is not None and binding.kind in ("const", "let", "var"):
                return self.module_origin(binding.init, depth + 1)
            return None
        if node.type in (syntax.MEMBER, syntax.SUBSCRIPT):
            return self.module_origin(syntax.member_object(node), depth + 1)
        if node.type == syntax.AWAIT:
            inner = syntax.named_children(node)
            return self.module_origin(inner[0], depth + 1) if inner else None
        if node.type == syntax.CALL:
            required = RequireSource.module_of_call(node)
            if required is not None:
                return required
            target = syntax.callee(node)
            if target is not None and target.type in (syntax.MEMBER, syntax.SUBSCRIPT):
                return self.module_origin(syntax.member_object(target), depth + 1)
        return None
