from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from tree_sitter import Node

if TYPE_CHECKING:
    from flakiness_linter.domain.source_file import SourceFile

OPAQUE_RECEIVER = "<expression>"


class Severity(Enum):
    """Reporting level of a detector. Ordered: off < warn < error."""
    OFF = "off"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return {"off": 0, "warn": 1, "error": 2}[self.value]

    @classmethod
    def parse(cls, raw: object) -> "Severity | None":
        """Accept 'off'|'warn'|'error' (any case) or 0|1|2; None when unrecognized."""
        if isinstance(raw, bool):
            return None
        if isinstance(raw, int):
            return {0: cls.OFF, 1: cls.WARN, 2: cls.ERROR}.get(raw)
        if isinstance(raw, str):
            lowered = raw.strip().lower()
            if lowered == "warning":
                return cls.WARN
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class Capability(Enum):
    """Detector families sharing one (node, context, options) -> findings contract."""
    TIMING = "TimingDetector"
    QUERY_SHAPE = "QueryShapeDetector"
    MUTATION = "MutationDetector"
    AWAIT = "AwaitDetector"
    ISOLATION = "IsolationDetector"
    ENVIRONMENT = "EnvironmentDetector"
    ACCESS = "AccessDetector"
    FOCUS = "FocusDetector"


class Framework(Enum):
    TESTING_LIBRARY = "testing-library"
    PLAYWRIGHT = "playwright"
    CYPRESS = "cypress"
    VITEST = "vitest"
    JEST = "jest"


@dataclass(frozen=True)
class Span:
    """Byte range in the UTF-8 source plus 1-based line and 0-based column of both ends."""

    start_byte: int
    end_byte: int
    line: int
    column: int
    end_line: int
    end_column: int

    @classmethod
    def from_node(cls, node: Node) -> "Span":
        start_row, start_col = node.start_point
        end_row, end_col = node.end_point
        return cls(
            start_byte=node.start_byte,
            end_byte=node.end_byte,
            line=start_row + 1,
            column=start_col,
            end_line=end_row + 1,
            end_column=end_col,
        )

    @classmethod
    def point(cls, byte: int, line: int, column: int) -> "Span":
        """Empty span used for insertions."""
        return cls(byte, byte, line, column, line, column)

    def overlaps(self, other: "Span") -> bool:
        """True if the ranges share a byte, or an insertion lands where the edit order would matter."""
        if self.start_byte == self.end_byte or other.start_byte == other.end_byte:
            point, rng = (self, other) if self.start_byte == self.end_byte else (other, self)
            if rng.start_byte == rng.end_byte:
                return rng.start_byte == point.start_byte
            return rng.start_byte <= point.start_byte < rng.end_byte
        return self.start_byte < other.end_byte and other.start_byte < self.end_byte


@dataclass(frozen=True)
class FixEdit:
    """Replace the bytes of `span` with `replacement_text`; an empty span is an insertion."""

    span: Span
    replacement_text: str

    @property
    def is_insertion(self) -> bool:
        return self.span.start_byte == self.span.end_byte


@dataclass(frozen=True)
class Suggestion:
    """Optional edit set shown to the user, never applied automatically."""

    message_id: str
    message: str
    edits: tuple[FixEdit, ...]


@dataclass(frozen=True)
class CallIdentity:
    """Resolved target of a call: receiver path, method name and originating module."""

    object: str | None
    method: str
    module_origin: str | None = None

    @property
    def qualified_name(self) -> str:
        return f"{self.object}.{self.method}" if self.object else self.method


@dataclass(frozen=True)
class DetectorContext:
    """Per-node facts derived from the ancestors of a node."""

    inside_test_body: bool = False
    inside_setup_hook: bool = False
    inside_mocked_block: bool = False
    disabled_by_directive: bool = False
    enclosing_function_is_async: bool = False
    hook_name: str | None = None
    inside_describe_body: bool = False
    source: "SourceFile | None" = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Finding:
    """One reported occurrence of an anti-pattern. Never mutated after creation."""

    detector_id: str
    severity: Severity
    message_id: str
    message: str
    span: Span
    message_data: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    fix: tuple[FixEdit, ...] | None = None
    suggestions: tuple[Suggestion, ...] = ()
    file_path: str = ""
    code: str = ""

    @property
    def location(self) -> str:
        """path:line:col, the same shape the reporters print."""
        return f"{self.file_path}:{self.span.line}:{self.span.column}"

    @property
    def fixable(self) -> bool:
        return bool(self.fix)

    def to_dict(self) -> dict[str, Any]:
        return {
            "detectorId": self.detector_id,
            "code": self.code,
            "severity": self.severity.value,
            "messageId": self.message_id,
            "message": self.message,
            "data": dict(self.message_data),
            "path": self.file_path,
            "line": self.span.line,
            "column": self.span.column,
            "endLine": self.span.end_line,
            "endColumn": self.span.end_column,
            "fix": [
                {"range": [e.span.start_byte, e.span.end_byte], "text": e.replacement_text}
                for e in self.fix
            ] if self.fix else None,
            "suggestions": [
                {
                    "messageId": s.message_id,
                    "message": s.message,
                    "fix": [
                        {"range": [e.span.start_byte, e.span.end_byte], "text": e.replacement_text}
                        for e in s.edits
                    ],
                }
                for s in self.suggestions
            ],
        }


@dataclass(frozen=True)
class FixConflict:
    """A fix withheld because it overlaps an earlier one, or because applying it broke parsing."""

    detector_id: str
    message_id: str
    span: Span
    reason: str


@dataclass(frozen=True)
class RuleRegistration:
    """Static catalog entry, created once at import time."""

    detector_id: str
    code: str
    capability: Capability
    applies_to_node_kinds: frozenset[str]
    default_options: dict[str, Any]
    default_severity: Severity
    description: str
    fixable: bool = False
    has_suggestions: bool = False


@dataclass
class FileAnalysisResult:
    """Findings for one file, plus fixes that were withheld."""

    path: str
    findings: list[Finding] = field(default_factory=list)
    conflicts: list[FixConflict] = field(default_factory=list)
    in_scope: bool = True
    parse_error: str | None = None

    @property
    def error_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == Severity.WARN)

    @property
    def fixable_findings(self) -> list[Finding]:
        return [f for f in self.findings if f.fix]


@dataclass
class ProjectReport:
    """Aggregate of every analyzed file in one run."""

    files: list[FileAnalysisResult] = field(default_factory=list)
    fixed_files: list[str] = field(default_factory=list)
    fixes_applied: int = 0

    @property
    def findings(self) -> list[Finding]:
        return [f for result in self.files for f in result.findings]

    @property
    def error_count(self) -> int:
        return sum(r.error_count for r in self.files)

    @property
    def warning_count(self) -> int:
        return sum(r.warning_count for r in self.files)

    def has_errors(self) -> bool:
        return self.error_count > 0

    def has_findings(self) -> bool:
        return any(r.findings for r in self.files)
