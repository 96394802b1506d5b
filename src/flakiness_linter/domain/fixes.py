"""Diagnostic & fix builder: findings, edit primitives, overlap and round-trip checks."""

import logging
import re
from dataclasses import replace
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.constants import WAIT_FOR_IMPORT_SOURCE
from flakiness_linter.domain.entities import (
    FixConflict,
    FixEdit,
    Finding,
    RuleRegistration,
    Span,
    Suggestion,
)
from flakiness_linter.domain.rule_msgs import RuleMsgBuilder
from flakiness_linter.domain.source_file import SourceFile

logger = logging.getLogger(__name__)

FixStrategy = Callable[[], Sequence[FixEdit] | None]

# Callbacks of these are not awaited by their caller; an await inside changes nothing for the test.
FIRE_AND_FORGET = frozenset({"forEach", "map", "filter", "reduce", "some", "every", "find", "setTimeout", "setInterval",
                             "addEventListener", "on", "once", "subscribe"})


class FixBuilder:
    """
    Pure edit primitives over one SourceFile.

    Every primitive returns None when it cannot produce a safe edit; callers decline
    the whole fix in that case rather than emit part of it.
    """

    def __init__(self, source: SourceFile) -> None:
        self.source = source

    def replace(self, node: Node, text: str) -> FixEdit:
        return FixEdit(Span.from_node(node), text)

    def remove_between(self, left: Node, right: Node) -> FixEdit:
        """Delete from the end of `left` to the end of `right` (e.g. the `.only` of `it.only`)."""
        return FixEdit(Span(left.end_byte, right.end_byte, left.end_point[0] + 1, left.end_point[1],
                            right.end_point[0] + 1, right.end_point[1]), "")

    def insert_before(self, node: Node, text: str) -> FixEdit:
        return FixEdit(Span.point(node.start_byte, node.start_point[0] + 1, node.start_point[1]), text)

    def insert_after(self, node: Node, text: str) -> FixEdit:
        return FixEdit(Span.point(node.end_byte, node.end_point[0] + 1, node.end_point[1]), text)

    def ensure_async(self, fn: Node | None) -> list[FixEdit] | None:
        """Mark a function `async`. Declined for getters, setters, constructors and fire-and-forget callbacks."""
        if fn is None:
            return None
        if syntax.is_async_function(fn):
            return []
        if fn.type == "method_definition":
            name = fn.child_by_field_name("name")
            if name is None or syntax.text(name) == "constructor":
                return None
            if any(c.type in ("get", "set") or syntax.text(c) in ("get", "set") for c in fn.children
                   if c.start_byte < name.start_byte):
                return None
            if any(c.type == "*" for c in fn.children if c.start_byte < name.start_byte):
                return None
            return [self.insert_before(name, "async ")]
        if fn.type in ("generator_function", "generator_function_declaration"):
            return None
        if self._is_fire_and_forget_callback(fn):
            return None
        return [self.insert_before(fn, "async ")]

    def _is_fire_and_forget_callback(self, fn: Node) -> bool:
        args = fn.parent
        while args is not None and args.type in syntax.WRAPPER_KINDS:
            args = args.parent
        if args is None or args.type != "arguments" or args.parent is None:
            return False
        return syntax.simple_callee_name(args.parent) in FIRE_AND_FORGET

    def insert_await(self, call: Node) -> list[FixEdit] | None:
        """`await` before the call plus `async` on the enclosing function."""
        fn = syntax.enclosing_function(call)
        make_async = self.ensure_async(fn)
        if make_async is None:
            return None
        return [*make_async, self.insert_before(call, "await ")]

    def wait_for_import(self) -> list[FixEdit] | None:
        """Edits binding `waitFor` at file level; [] when it is already bound, None for Playwright/Cypress."""
        if not self.source.offers_wait_for_fixes:
            return None
        if self.source.bindings.program_binding("waitFor") is not None:
            return []
        root = self.source.root
        imports = [c for c in syntax.named_children(root) if c.type == "import_statement"]
        testing_library = None
        for statement in imports:
            module = syntax.string_value(statement.child_by_field_name("source"))
            if module and module.startswith("@testing-library/") and module != "@testing-library/user-event" \
                    and module != "@testing-library/jest-dom":
                testing_library = statement
                break
        if testing_library is not None:
            named = next((n for n in syntax.descendants(testing_library, {"named_imports"})), None)
            if named is not None:
                specifiers = [c for c in named.named_children if c.type == "import_specifier"]
                if specifiers:
                    return [self.insert_after(specifiers[-1], ", waitFor")]
        module = WAIT_FOR_IMPORT_SOURCE
        if testing_library is not None:
            module = syntax.string_value(testing_library.child_by_field_name("source")) or module
        if imports:
            return [self.insert_after(imports[-1], f"\nimport {{ waitFor }} from '{module}';")]
        if self._uses_require(root):
            statement = f"const {{ waitFor }} = require('{module}');\n"
        else:
            statement = f"import {{ waitFor }} from '{module}';\n"
        first = self._first_code_statement(root)
        if first is None:
            return None
        return [self.insert_before(first, statement)]

    def _uses_require(self, root: Node) -> bool:
        return any(
            n.type == syntax.CALL and syntax.simple_callee_name(n) == "require"
            for n in syntax.walk(root)
        )

    def _first_code_statement(self, root: Node) -> Node | None:
        for child in root.named_children:
            if child.type == syntax.COMMENT or child.type == "hash_bang_line":
                continue
            if child.type == syntax.EXPRESSION_STATEMENT and syntax.is_string_like(syntax.statement_expression(child)):
                continue  # 'use strict'
            return child
        return None

    def wrap_statement_in_wait_for(self, statement: Node, block: bool = False) -> list[FixEdit] | None:
        """
        `expect(x).y();` -> `await waitFor(() => expect(x).y());` (or a block body), with `async`
        on the enclosing function and a `waitFor` import when needed.
        """
        if statement.type != syntax.EXPRESSION_STATEMENT:
            return None
        expression = syntax.statement_expression(statement)
        if expression is None or expression.type == "sequence_expression":
            return None
        if expression.type == syntax.AWAIT or any(True for _ in syntax.descendants(expression, {syntax.AWAIT})):
            return None
        fn = syntax.enclosing_function(statement)
        make_async = self.ensure_async(fn)
        if make_async is None:
            return None
        import_edits = self.wait_for_import()
        if import_edits is None:
            return None
        body = syntax.text(expression)
        wrapped = f"await waitFor(() => {{ {body}; }});" if block else f"await waitFor(() => {body});"
        return [*import_edits, *make_async, self.replace(statement, wrapped)]


class DiagnosticBuilder:
    """Turns a detector match into a Finding, resolving its fix strategy safely."""

    @staticmethod
    def build_finding(
        registration: RuleRegistration,
        messages: Mapping[str, str],
        source: SourceFile | None,
        node: Node,
        message_id: str,
        message_data: Mapping[str, Any] | None = None,
        fix_strategy: FixStrategy | None = None,
        suggestions: Sequence[Suggestion] = (),
    ) -> Finding:
        data = dict(message_data or {})
        fix: tuple[FixEdit, ...] | None = None
        if fix_strategy is not None:
            edits = fix_strategy()
            if edits:
                fix = DiagnosticBuilder.normalize_edits(edits)
        return Finding(
            detector_id=registration.detector_id,
            severity=registration.default_severity,
            message_id=message_id,
            message=RuleMsgBuilder.render(messages.get(message_id, message_id), data),
            span=Span.from_node(node),
            message_data=data,
            fix=fix,
            suggestions=tuple(suggestions),
            file_path=source.path if source is not None else "",
            code=registration.code,
        )

    @staticmethod
    def normalize_edits(edits: Sequence[FixEdit]) -> tuple[FixEdit, ...] | None:
        """Sort by span, drop exact duplicates; None when any two edits overlap."""
        unique: list[FixEdit] = []
        for edit in sorted(edits, key=lambda e: (e.span.start_byte, e.span.end_byte)):
            if edit in unique:
                continue
            if any(edit.span.overlaps(other.span) for other in unique):
                return None
            unique.append(edit)
        return tuple(unique)

    @staticmethod
    def suggestion(messages: Mapping[str, str], message_id: str, edits: Sequence[FixEdit],
                   data: Mapping[str, Any] | None = None) -> Suggestion:
        return Suggestion(
            message_id=message_id,
            message=RuleMsgBuilder.render(messages.get(message_id, message_id), dict(data or {})),
            edits=tuple(edits),
        )


class EditApplier:
    """Applies edit sets to source bytes and arbitrates between findings."""

    @staticmethod
    def apply(source: bytes, edits: Sequence[FixEdit]) -> bytes:
        """Apply non-overlapping edits from the end backwards so earlier offsets stay valid."""
        result = source
        for edit in sorted(edits, key=lambda e: (e.span.start_byte, e.span.end_byte), reverse=True):
            result = (
                result[: edit.span.start_byte]
                + edit.replacement_text.encode("utf-8")
                + result[edit.span.end_byte:]
            )
        return result

    @staticmethod
    def resolve_conflicts(findings: Sequence[Finding]) -> tuple[list[Finding], list[FixConflict]]:
        """
        Keep fixes in registration order; a later fix overlapping an accepted edit is withheld.

        Edits identical to an accepted one are shared (two findings adding `async` to the
        same function), never counted as a conflict.
        """
        accepted: list[FixEdit] = []
        resolved: list[Finding] = []
        conflicts: list[FixConflict] = []
        for finding in findings:
            if not finding.fix:
                resolved.append(finding)
                continue
            fresh = [e for e in finding.fix if e not in accepted]
            if any(e.span.overlaps(a.span) for e in fresh for a in accepted):
                conflicts.append(FixConflict(finding.detector_id, finding.message_id, finding.span,
                                             "overlaps an earlier fix"))
                logger.debug("Withheld fix for %s at %s: overlaps an earlier fix",
                             finding.detector_id, finding.location)
                resolved.append(_without_fix(finding))
                continue
            accepted.extend(fresh)
            resolved.append(finding)
        return resolved, conflicts

    @staticmethod
    def collect_edits(findings: Sequence[Finding]) -> list[FixEdit]:
        edits: list[FixEdit] = []
        for finding in findings:
            for edit in finding.fix or ():
                if edit not in edits:
                    edits.append(edit)
        return edits

    @staticmethod
    def validate_round_trip(
        findings: Sequence[Finding],
        source: bytes,
        parses_cleanly: Callable[[bytes], bool],
    ) -> tuple[list[Finding], list[FixConflict]]:
        """Withhold any fix whose application alone yields unparseable source."""
        kept: list[Finding] = []
        conflicts: list[FixConflict] = []
        for finding in findings:
            if finding.fix and not parses_cleanly(EditApplier.apply(source, finding.fix)):
                conflicts.append(FixConflict(finding.detector_id, finding.message_id, finding.span,
                                             "fixed source does not parse"))
                logger.debug("Withheld fix for %s at %s: fixed source does not parse",
                             finding.detector_id, finding.location)
                kept.append(_without_fix(finding))
            else:
                kept.append(finding)
        return kept, conflicts


def _without_fix(finding: Finding) -> Finding:
    return replace(finding, fix=None)


_REGEX_SPECIALS = re.compile(r"[.*+?^${}()|[\]\\/]")


def escape_regex(value: str) -> str:
    return _REGEX_SPECIALS.sub(lambda m: "\\" + m.group(0), value)

