"""Domain Protocols - Dependency Inversion for Infrastructure Adapters."""

from typing import Protocol

from tree_sitter import Node

from flakiness_linter.domain.entities import ProjectReport, RuleRegistration


class TelemetryPort(Protocol):
    """Protocol for telemetry/UI updates."""

    def step(self, message: str) -> None: ...
    def error(self, message: str) -> None: ...
    def warning(self, message: str) -> None: ...
    def debug(self, message: str) -> None: ...
    def handshake(self) -> None: ...


class ParserProtocol(Protocol):
    """Protocol for turning source bytes into a syntax tree."""

    def parse(self, source: bytes, path: str) -> Node:
        """Parse `source` with the grammar chosen from `path`'s extension; return the root node."""
        ...

    def dialect_for(self, path: str) -> str:
        """Grammar name used for `path`: javascript, typescript or tsx."""
        ...

    def supports(self, path: str) -> bool:
        """True when `path` has a JavaScript or TypeScript extension."""
        ...

    def parses_cleanly(self, source: bytes, path: str) -> bool:
        """True when the tree for `source` contains no error or missing nodes."""
        ...


class FileSystemProtocol(Protocol):
    """Protocol for filesystem operations - abstracts Path usage."""

    def resolve_path(self, path: str) -> str:
        """Resolve and normalize a path string."""
        ...

    def is_directory(self, path: str) -> bool:
        """Check if path is a directory."""
        ...

    def glob_source_files(self, path: str, excludes: tuple[str, ...] = ()) -> list[str]:
        """JavaScript/TypeScript files in path (recursive if directory), minus excluded globs."""
        ...

    def relative_path(self, path: str, root: str) -> str:
        """`path` relative to `root`, with forward slashes."""
        ...

    def read_bytes(self, path: str) -> bytes:
        """Read raw file content."""
        ...

    def write_bytes(self, path: str, content: bytes) -> None:
        """Write raw file content."""
        ...


class ReporterProtocol(Protocol):
    """Protocol for rendering a project report."""

    def report(self, report: ProjectReport, view: str = "by_rule") -> None:
        """Render findings grouped by rule or by file."""
        ...

    def report_rules(self, registrations: list[RuleRegistration]) -> None:
        """Render the detector catalog."""
        ...
