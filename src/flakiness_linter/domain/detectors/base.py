"""Detector contract shared by every capability family."""

import re
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar, Protocol

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import OptionSpec, RuleOptions
from flakiness_linter.domain.context import ContextInspector
from flakiness_linter.domain.entities import (
    CallIdentity,
    Capability,
    DetectorContext,
    Finding,
    FixEdit,
    RuleRegistration,
    Severity,
    Suggestion,
)
from flakiness_linter.domain.fixes import DiagnosticBuilder, FixBuilder, FixStrategy
from flakiness_linter.domain.source_file import SourceFile


class Detector(Protocol):
    """(node, context, options) -> findings. Pure: no I/O, no state between calls."""

    option_schema: ClassVar[Mapping[str, OptionSpec]]

    @classmethod
    def registration(cls) -> RuleRegistration:
        """Static catalog entry of the detector."""
        ...

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        """Interrogate one node."""
        ...


class BaseDetector:
    """
    Common plumbing for catalog detectors.

    Subclasses declare the catalog metadata as class attributes and implement
    `detect`. The inspector is bound per file by the dispatcher before any call.
    """

    detector_id: ClassVar[str] = ""
    code: ClassVar[str] = ""
    capability: ClassVar[Capability] = Capability.TIMING
    node_kinds: ClassVar[frozenset[str]] = frozenset()
    option_schema: ClassVar[Mapping[str, OptionSpec]] = {}
    default_severity: ClassVar[Severity] = Severity.WARN
    description: ClassVar[str] = ""
    messages: ClassVar[Mapping[str, str]] = {}
    fixable: ClassVar[bool] = False
    has_suggestions: ClassVar[bool] = False

    def __init__(self, inspector: ContextInspector) -> None:
        self.inspector = inspector

    @classmethod
    def registration(cls) -> RuleRegistration:
        cached = cls.__dict__.get("_registration")
        if cached is None:
            cached = RuleRegistration(
                detector_id=cls.detector_id,
                code=cls.code,
                capability=cls.capability,
                applies_to_node_kinds=cls.node_kinds,
                default_options={name: spec.default for name, spec in cls.option_schema.items()},
                default_severity=cls.default_severity,
                description=cls.description,
                fixable=cls.fixable,
                has_suggestions=cls.has_suggestions,
            )
            cls._registration = cached
        return cached

    @property
    def source(self) -> SourceFile:
        return self.inspector.source

    @property
    def fixes(self) -> FixBuilder:
        return FixBuilder(self.source)

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        raise NotImplementedError

    def identity(self, node: Node) -> CallIdentity | None:
        return self.source.classifier.resolve_call_identity(node)

    def member_identity(self, node: Node) -> CallIdentity | None:
        return self.source.classifier.resolve_member(node)

    def finding(
        self,
        node: Node,
        message_id: str,
        data: Mapping[str, Any] | None = None,
        fix: FixStrategy | None = None,
        suggestions: Sequence[Suggestion] = (),
    ) -> Finding:
        return DiagnosticBuilder.build_finding(
            self.registration(), self.messages, self.source, node, message_id, data, fix, suggestions,
        )

    def suggest(self, message_id: str, edits: Sequence[FixEdit] | None,
                data: Mapping[str, Any] | None = None) -> list[Suggestion]:
        """A one-element suggestion list, or [] when no edit could be built."""
        if not edits:
            return []
        normalized = DiagnosticBuilder.normalize_edits(edits)
        if normalized is None:
            return []
        return [DiagnosticBuilder.suggestion(self.messages, message_id, normalized, data)]

    def setup_allowed(self, context: DetectorContext, options: RuleOptions, key: str = "allowInSetup") -> bool:
        """True inside a setup/teardown hook when the option allows it."""
        return bool(options.get(key)) and context.inside_setup_hook

    def inside_polling_helper(self, node: Node, names: frozenset[str]) -> bool:
        return self.inspector.inside_call_named(node, names)

    @staticmethod
    def matches_any(value: str, patterns: Sequence[str]) -> bool:
        """Case-insensitive match against patterns with `*` wildcards."""
        lowered = value.lower()
        for pattern in patterns:
            regex = "^" + ".*".join(re.escape(part) for part in pattern.lower().split("*")) + "$"
            if re.match(regex, lowered):
                return True
        return False

    @staticmethod
    def statement_of(node: Node) -> Node | None:
        return syntax.statement_of(node)
