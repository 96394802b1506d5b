"""Lexical binding index: one pass over a file, nearest-enclosing-declaration lookup."""

from dataclasses import dataclass

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.syntax import NodeKey

IMPORT = "import"
REQUIRE = "require"
CONST = "const"
LET = "let"
VAR = "var"
PARAM = "param"
FUNCTION = "function"
CLASS = "class"
CATCH = "catch"

MUTABLE_KINDS = frozenset({LET, VAR})


@dataclass(frozen=True)
class Binding:
    """One declared name. `imported` is the exported member a named import or destructuring pulls out."""

    name: str
    kind: str
    scope: Node
    declaration: Node
    module: str | None = None
    imported: str | None = None
    init: Node | None = None

    @property
    def mutable(self) -> bool:
        return self.kind in MUTABLE_KINDS

    @property
    def is_module_binding(self) -> bool:
        return self.kind in (IMPORT, REQUIRE)


class BindingIndex:
    """Declarations per scope node; lookup walks outwards from a node to the program."""

    def __init__(self, root: Node) -> None:
        self._root = root
        self._scopes: dict[NodeKey, dict[str, Binding]] = {}
        self._all: list[Binding] = []
        self._build()

    @property
    def bindings(self) -> list[Binding]:
        return list(self._all)

    def lookup(self, name: str, node: Node) -> Binding | None:
        """Nearest enclosing declaration of `name` visible from `node`; None when unbound."""
        current: Node | None = node
        while current is not None:
            if current.type in syntax.SCOPE_KINDS:
                scope = self._scopes.get(syntax.node_key(current))
                if scope is not None and name in scope:
                    return scope[name]
            current = current.parent
        return None

    def is_bound(self, name: str, node: Node) -> bool:
        return self.lookup(name, node) is not None

    def program_binding(self, name: str) -> Binding | None:
        return self._scopes.get(syntax.node_key(self._root), {}).get(name)

    def module_imports(self) -> list[Binding]:
        return [b for b in self._all if b.is_module_binding]

    # -- construction ---------------------------------------------------------

    def _declare(self, binding: Binding) -> None:
        scope = self._scopes.setdefault(syntax.node_key(binding.scope), {})
        # First declaration wins for var redeclaration; later ones are the same binding.
        scope.setdefault(binding.name, binding)
        self._all.append(binding)

    def _build(self) -> None:
        for node in syntax.walk(self._root):
            kind = node.type
            if kind == "import_statement":
                self._collect_import(node)
            elif kind == syntax.VARIABLE_DECLARATOR:
                self._collect_declarator(node)
            elif kind in syntax.FUNCTION_KINDS:
                self._collect_function(node)
            elif kind == "class_declaration":
                name = node.child_by_field_name("name")
                scope = self._scope_for(node, block_scoped=True)
                if name is not None and scope is not None:
                    self._declare(Binding(syntax.text(name), CLASS, scope, node))
            elif kind == "catch_clause":
                param = node.child_by_field_name("parameter")
                if param is not None:
                    for ident in self._pattern_identifiers(param):
                        self._declare(Binding(syntax.text(ident), CATCH, node, param))
            elif kind == "for_in_statement":
                self._collect_for_in(node)

    def _scope_for(self, node: Node, block_scoped: bool) -> Node | None:
        for parent in syntax.ancestors(node):
            if block_scoped and parent.type in syntax.SCOPE_KINDS:
                return parent
            if not block_scoped and (parent.type in syntax.FUNCTION_KINDS or parent.type == syntax.PROGRAM):
                return parent
        return None

    def _collect_import(self, node: Node) -> None:
        source_node = node.child_by_field_name("source")
        module = syntax.string_value(source_node)
        for child in node.named_children:
            if child.type == "import_require_clause":
                ident = next((c for c in child.named_children if c.type == syntax.IDENTIFIER), None)
                source = child.child_by_field_name("source") or next(
                    (c for c in child.named_children if c.type == syntax.STRING), None)
                if ident is not None:
                    self._declare(Binding(syntax.text(ident), IMPORT, self._root, child,
                                          module=syntax.string_value(source), imported="*"))
            if child.type != "import_clause":
                continue
            for part in child.named_children:
                if part.type == syntax.IDENTIFIER:
                    self._declare(Binding(syntax.text(part), IMPORT, self._root, part,
                                          module=module, imported="default"))
                elif part.type == "namespace_import":
                    ident = next((c for c in part.named_children if c.type == syntax.IDENTIFIER), None)
                    if ident is not None:
                        self._declare(Binding(syntax.text(ident), IMPORT, self._root, part,
                                              module=module, imported="*"))
                elif part.type == "named_imports":
                    for spec in part.named_children:
                        if spec.type != "import_specifier":
                            continue
                        name = spec.child_by_field_name("name")
                        alias = spec.child_by_field_name("alias")
                        if name is None:
                            continue
                        imported = syntax.string_value(name) if name.type == syntax.STRING else syntax.text(name)
                        local = syntax.text(alias) if alias is not None else imported
                        self._declare(Binding(local, IMPORT, self._root, spec, module=module, imported=imported))

    def _collect_declarator(self, node: Node) -> None:
        parent = node.parent
        if parent is None:
            return
        if parent.type == "variable_declaration":
            kind = VAR
        else:
            first = parent.children[0] if parent.children else None
            kind = syntax.text(first) if first is not None and syntax.text(first) in (CONST, LET) else CONST
            if first is not None and syntax.text(first) == "using":
                kind = CONST
        scope = self._scope_for(node, block_scoped=kind != VAR)
        if scope is None:
            return
        name = node.child_by_field_name("name")
        value = syntax.unwrap(node.child_by_field_name("value"))
        if name is None:
            return
        module, member = RequireSource.of(value)
        binding_kind = REQUIRE if module is not None else kind
        if name.type == syntax.IDENTIFIER:
            self._declare(Binding(syntax.text(name), binding_kind, scope, node,
                                  module=module, imported=member, init=value))
            return
        if name.type == "object_pattern":
            for local, imported in self._object_pattern_names(name):
                self._declare(Binding(local, binding_kind, scope, node,
                                      module=module, imported=imported if member is None else f"{member}.{imported}",
                                      init=value))
            return
        for ident in self._pattern_identifiers(name):
            self._declare(Binding(syntax.text(ident), kind, scope, node, init=value))

    def _collect_function(self, node: Node) -> None:
        if node.type in ("function_declaration", "generator_function_declaration"):
            name = node.child_by_field_name("name")
            scope = self._scope_for(node, block_scoped=True)
            if name is not None and scope is not None:
                self._declare(Binding(syntax.text(name), FUNCTION, scope, node))
        elif node.type in ("function", "function_expression"):
            # A named function expression binds its own name inside itself.
            name = node.child_by_field_name("name")
            if name is not None:
                self._declare(Binding(syntax.text(name), FUNCTION, node, node))
        for param in syntax.function_params(node):
            for ident in self._pattern_identifiers(param):
                self._declare(Binding(syntax.text(ident), PARAM, node, param))

    def _collect_for_in(self, node: Node) -> None:
        left = node.child_by_field_name("left")
        kind_node = node.child_by_field_name("kind")
        if left is None or kind_node is None:
            return
        kind = syntax.text(kind_node)
        scope = node if kind != VAR else self._scope_for(node, block_scoped=False)
        if scope is None:
            return
        for ident in self._pattern_identifiers(left):
            self._declare(Binding(syntax.text(ident), kind if kind in (CONST, LET, VAR) else CONST, scope, node,
                                  init=node.child_by_field_name("right")))

    def _object_pattern_names(self, pattern: Node) -> list[tuple[str, str]]:
        """(local, imported) pairs of a destructuring pattern, one level deep."""
        pairs: list[tuple[str, str]] = []
        for prop in pattern.named_children:
            if prop.type == "shorthand_property_identifier_pattern":
                pairs.append((syntax.text(prop), syntax.text(prop)))
            elif prop.type == "object_assignment_pattern":
                left = prop.child_by_field_name("left")
                if left is not None:
                    pairs.append((syntax.text(left), syntax.text(left)))
            elif prop.type == "pair_pattern":
                key = prop.child_by_field_name("key")
                value = prop.child_by_field_name("value")
                if key is None or value is None:
                    continue
                imported = syntax.string_value(key) if key.type == syntax.STRING else syntax.text(key)
                if value.type == "assignment_pattern":
                    value = value.child_by_field_name("left") or value
                if value.type == syntax.IDENTIFIER:
                    pairs.append((syntax.text(value), imported))
                else:
                    for ident in self._pattern_identifiers(value):
                        pairs.append((syntax.text(ident), imported))
            elif prop.type == "rest_pattern":
                for ident in self._pattern_identifiers(prop):
                    pairs.append((syntax.text(ident), "*"))
        return pairs

    def _pattern_identifiers(self, pattern: Node) -> list[Node]:
        """Every identifier a parameter or destructuring pattern binds."""
        if pattern.type in ("required_parameter", "optional_parameter"):
            inner = pattern.child_by_field_name("pattern")
            return self._pattern_identifiers(inner) if inner is not None else []
        if pattern.type == syntax.IDENTIFIER:
            return [pattern]
        if pattern.type in ("shorthand_property_identifier_pattern",):
            return [pattern]
        found: list[Node] = []
        if pattern.type in ("assignment_pattern", "object_assignment_pattern"):
            left = pattern.child_by_field_name("left")
            return self._pattern_identifiers(left) if left is not None else []
        if pattern.type == "pair_pattern":
            value = pattern.child_by_field_name("value")
            return self._pattern_identifiers(value) if value is not None else []
        for child in pattern.named_children:
            if child.type in ("type_annotation", syntax.COMMENT):
                continue
            found.extend(self._pattern_identifiers(child))
        return found


class RequireSource:
    """Recognizes `require('m')`, `require('m').member` and `await import('m')` initializers."""

    @staticmethod
    def of(value: Node | None) -> tuple[str | None, str | None]:
        value = syntax.unwrap(value)
        if value is None:
            return (None, None)
        if value.type == syntax.AWAIT:
            inner = syntax.named_children(value)
            return RequireSource.of(inner[0]) if inner else (None, None)
        module = RequireSource.module_of_call(value)
        if module is not None:
            return (module, None)
        if value.type == syntax.MEMBER:
            obj = syntax.member_object(value)
            module = RequireSource.module_of_call(obj)
            if module is not None:
                return (module, syntax.property_name(value))
        return (None, None)

    @staticmethod
    def module_of_call(node: Node | None) -> str | None:
        node = syntax.unwrap(node)
        if node is None or node.type != syntax.CALL:
            return None
        target = node.child_by_field_name("function")
        if target is None:
            return None
        if target.type == "import" or (target.type == syntax.IDENTIFIER and syntax.text(target) == "require"):
            return syntax.string_value(syntax.argument(node, 0))
        return None
