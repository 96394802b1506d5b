"""Structural helpers over tree-sitter nodes. Detectors never look at raw node internals directly."""

import re
from collections.abc import Iterator

from tree_sitter import Node

CALL = "call_expression"
NEW = "new_expression"
MEMBER = "member_expression"
SUBSCRIPT = "subscript_expression"
IDENTIFIER = "identifier"
AWAIT = "await_expression"
ASSIGNMENT = "assignment_expression"
AUGMENTED_ASSIGNMENT = "augmented_assignment_expression"
UPDATE = "update_expression"
UNARY = "unary_expression"
BINARY = "binary_expression"
EXPRESSION_STATEMENT = "expression_statement"
VARIABLE_DECLARATOR = "variable_declarator"
STRING = "string"
TEMPLATE = "template_string"
NUMBER = "number"
REGEX = "regex"
OBJECT = "object"
ARRAY = "array"
PROGRAM = "program"
BLOCK = "statement_block"
COMMENT = "comment"

# "function" is the pre-0.21 grammar name for function expressions.
FUNCTION_KINDS = frozenset({
    "arrow_function",
    "function",
    "function_expression",
    "function_declaration",
    "generator_function",
    "generator_function_declaration",
    "method_definition",
})
SCOPE_KINDS = FUNCTION_KINDS | {
    PROGRAM,
    BLOCK,
    "for_statement",
    "for_in_statement",
    "catch_clause",
}
WRAPPER_KINDS = frozenset({
    "parenthesized_expression",
    "as_expression",
    "non_null_expression",
    "satisfies_expression",
    "type_assertion",
})
BRANCHING_KINDS = frozenset({
    "if_statement",
    "ternary_expression",
    "switch_statement",
    "while_statement",
    "do_statement",
    "throw_statement",
})

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}
_ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|.)", re.S)

NodeKey = tuple[int, int, str]


def text(node: Node) -> str:
    """Source text of a node."""
    raw = node.text
    return raw.decode("utf-8", errors="replace") if raw is not None else ""


def node_key(node: Node) -> NodeKey:
    """Stable identity of a node within one tree."""
    return (node.start_byte, node.end_byte, node.type)


def position(node: Node) -> tuple[int, int]:
    """1-based line and 0-based column of the node start."""
    row, column = node.start_point
    return (row + 1, column)


def unwrap(node: Node | None) -> Node | None:
    """Strip parentheses and TypeScript-only expression wrappers."""
    while node is not None and node.type in WRAPPER_KINDS:
        inner = [c for c in node.named_children if c.type != COMMENT]
        if not inner:
            return node
        node = inner[0]
    return node


def field(node: Node | None, name: str) -> Node | None:
    if node is None:
        return None
    return node.child_by_field_name(name)


def named_children(node: Node) -> list[Node]:
    return [c for c in node.named_children if c.type != COMMENT]


def callee(node: Node) -> Node | None:
    """Unwrapped callee of a call or constructor of a new expression."""
    if node.type == CALL:
        return unwrap(node.child_by_field_name("function"))
    if node.type == NEW:
        return unwrap(node.child_by_field_name("constructor"))
    return None


def arguments(node: Node) -> list[Node]:
    """Argument expressions of a call/new; tagged templates have none."""
    args = node.child_by_field_name("arguments")
    if args is None or args.type == TEMPLATE:
        return []
    return named_children(args)


def argument(node: Node, index: int) -> Node | None:
    args = arguments(node)
    if index < len(args):
        return unwrap(args[index])
    return None


def is_tagged_template(node: Node) -> bool:
    args = node.child_by_field_name("arguments")
    return args is not None and args.type == TEMPLATE


def member_object(node: Node) -> Node | None:
    return unwrap(node.child_by_field_name("object"))


def property_name(node: Node) -> str | None:
    """Name of a member access; computed access only resolves for string or number literals."""
    if node.type == MEMBER:
        prop = node.child_by_field_name("property")
        return text(prop) if prop is not None else None
    if node.type == SUBSCRIPT:
        index = unwrap(node.child_by_field_name("index"))
        if index is None:
            return None
        if index.type == STRING:
            return string_value(index)
        if index.type == TEMPLATE and not has_substitution(index):
            return template_value(index)
        if index.type == NUMBER:
            return text(index)
    return None


def simple_callee_name(node: Node) -> str | None:
    """Identifier name or final member property of a call target."""
    target = callee(node)
    if target is None:
        return None
    if target.type == IDENTIFIER:
        return text(target)
    if target.type in (MEMBER, SUBSCRIPT):
        return property_name(target)
    return None


def path_of(node: Node | None, depth: int = 0) -> str | None:
    """Render a receiver chain (`a.b().c`) from identifiers, members and calls; None when not renderable."""
    node = unwrap(node)
    if node is None or depth > 32:
        return None
    if node.type in (IDENTIFIER, "this", "super"):
        return text(node)
    if node.type in (MEMBER, SUBSCRIPT):
        base = path_of(member_object(node), depth + 1)
        name = property_name(node)
        if base is None or name is None:
            return None
        return f"{base}.{name}"
    if node.type == CALL:
        base = path_of(node.child_by_field_name("function"), depth + 1)
        return f"{base}()" if base is not None else None
    if node.type == AWAIT:
        inner = named_children(node)
        return path_of(inner[0], depth + 1) if inner else None
    return None


def path_root(path: str | None) -> str | None:
    if not path:
        return None
    return path.split(".", 1)[0].removesuffix("()")


def path_tail(path: str | None) -> str | None:
    if not path:
        return None
    return path.rsplit(".", 1)[-1].removesuffix("()")


def _decode_escapes(raw: str) -> str:
    def repl(match: re.Match[str]) -> str:
        seq = match.group(1)
        if seq.startswith("u{"):
            return chr(int(seq[2:-1], 16))
        if seq.startswith("u") and len(seq) == 5:
            return chr(int(seq[1:], 16))
        if seq.startswith("x") and len(seq) == 3:
            return chr(int(seq[1:], 16))
        if seq in ("\n", "\r\n"):
            return ""
        return _ESCAPES.get(seq, seq)

    return _ESCAPE_RE.sub(repl, raw)


def string_value(node: Node | None) -> str | None:
    """Decoded value of a quoted string literal."""
    node = unwrap(node)
    if node is None or node.type != STRING:
        return None
    return _decode_escapes(text(node)[1:-1])


def js_length(value: str) -> int:
    """Length as JavaScript counts it, in UTF-16 code units."""
    return len(value.encode("utf-16-le")) // 2


def has_substitution(node: Node) -> bool:
    return any(c.type == "template_substitution" for c in node.children)


def template_value(node: Node | None, placeholder: str = "X") -> str | None:
    """Cooked template text with each `${...}` replaced by a placeholder."""
    node = unwrap(node)
    if node is None or node.type != TEMPLATE:
        return None
    parts: list[str] = []
    cursor = node.start_byte + 1
    for child in node.children:
        if child.type == "template_substitution":
            parts.append(_slice(node, cursor, child.start_byte))
            parts.append(placeholder)
            cursor = child.end_byte
    parts.append(_slice(node, cursor, node.end_byte - 1))
    return "".join(parts)


def _slice(node: Node, start: int, end: int) -> str:
    raw = node.text or b""
    offset = node.start_byte
    return _decode_escapes(raw[start - offset:end - offset].decode("utf-8", errors="replace"))


def literal_text(node: Node | None) -> str | None:
    """Value of a string literal or a template literal (substitutions become `X`)."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type == STRING:
        return string_value(node)
    if node.type == TEMPLATE:
        return template_value(node)
    return None


def is_string_like(node: Node | None) -> bool:
    node = unwrap(node)
    return node is not None and node.type in (STRING, TEMPLATE)


def number_value(node: Node | None) -> float | None:
    """Numeric literal value, including a leading unary minus."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type == UNARY and text(node).startswith("-"):
        inner = number_value(node.child_by_field_name("argument"))
        return -inner if inner is not None else None
    if node.type != NUMBER:
        return None
    raw = text(node).replace("_", "").lower().removesuffix("n")
    try:
        if raw.startswith("0x"):
            return float(int(raw, 16))
        if raw.startswith("0o"):
            return float(int(raw[2:], 8))
        if raw.startswith("0b"):
            return float(int(raw[2:], 2))
        return float(raw)
    except ValueError:
        return None


def format_number(value: float) -> str:
    return str(int(value)) if value == int(value) else str(value)


def regex_pattern(node: Node | None) -> str | None:
    node = unwrap(node)
    if node is None or node.type != REGEX:
        return None
    pattern = node.child_by_field_name("pattern")
    return text(pattern) if pattern is not None else ""


def object_property(node: Node | None, key: str) -> Node | None:
    """Value node of `key` in an object literal."""
    node = unwrap(node)
    if node is None or node.type != OBJECT:
        return None
    for child in named_children(node):
        if child.type == "pair":
            key_node = child.child_by_field_name("key")
            name = string_value(key_node) if key_node is not None and key_node.type == STRING else (
                text(key_node) if key_node is not None else None)
            if name == key:
                return unwrap(child.child_by_field_name("value"))
        elif child.type == "shorthand_property_identifier" and text(child) == key:
            return child
    return None


def is_function(node: Node | None) -> bool:
    return node is not None and node.type in FUNCTION_KINDS


def is_async_function(node: Node) -> bool:
    return any(child.type == "async" for child in node.children)


def function_body(node: Node) -> Node | None:
    return node.child_by_field_name("body")


def function_params(node: Node) -> list[Node]:
    single = node.child_by_field_name("parameter")
    if single is not None:
        return [single]
    params = node.child_by_field_name("parameters")
    return named_children(params) if params is not None else []


def body_statements(fn: Node) -> list[Node] | None:
    """Statements of a function block body; None for expression-bodied arrows."""
    body = function_body(fn)
    if body is None or body.type != BLOCK:
        return None
    return named_children(body)


def ancestors(node: Node) -> Iterator[Node]:
    parent = node.parent
    while parent is not None:
        yield parent
        parent = parent.parent


def enclosing_function(node: Node) -> Node | None:
    for parent in ancestors(node):
        if parent.type in FUNCTION_KINDS:
            return parent
    return None


def walk(root: Node) -> Iterator[Node]:
    """Pre-order traversal of named nodes."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.named_children))


def descendants(node: Node, kinds: frozenset[str] | set[str] | None = None) -> Iterator[Node]:
    for child in walk(node):
        if child is node:
            continue
        if kinds is None or child.type in kinds:
            yield child


def contains(outer: Node, inner: Node) -> bool:
    return outer.start_byte <= inner.start_byte and inner.end_byte <= outer.end_byte


def statement_of(node: Node) -> Node | None:
    """Expression statement directly holding `node` (through wrappers and await only)."""
    parent = node.parent
    while parent is not None and (parent.type in WRAPPER_KINDS or parent.type == AWAIT):
        parent = parent.parent
    if parent is not None and parent.type == EXPRESSION_STATEMENT:
        return parent
    return None


def statement_expression(statement: Node) -> Node | None:
    inner = named_children(statement)
    return unwrap(inner[0]) if inner else None


def next_statement(statement: Node) -> Node | None:
    sibling = statement.next_named_sibling
    while sibling is not None and sibling.type == COMMENT:
        sibling = sibling.next_named_sibling
    return sibling


def is_assignment_target(node: Node) -> bool:
    parent = node.parent
    if parent is None:
        return False
    if parent.type in (ASSIGNMENT, AUGMENTED_ASSIGNMENT):
        left = parent.child_by_field_name("left")
        return left is not None and node_key(left) == node_key(node)
    if parent.type == UPDATE:
        return True
    return False


def is_awaited(node: Node) -> bool:
    parent = node.parent
    while parent is not None and parent.type in WRAPPER_KINDS:
        parent = parent.parent
    return parent is not None and parent.type == AWAIT


def call_chain(node: Node) -> Iterator[Node]:
    """Calls along a fluent chain, from `node` down to the innermost receiver."""
    current: Node | None = unwrap(node)
    while current is not None:
        if current.type == CALL:
            yield current
            current = callee(current)
        elif current.type in (MEMBER, SUBSCRIPT):
            current = member_object(current)
        elif current.type == AWAIT:
            inner = named_children(current)
            current = unwrap(inner[0]) if inner else None
        else:
            return
