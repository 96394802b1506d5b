"""One parsed file plus the lazily built per-file indexes every detector shares."""

from collections.abc import Callable
from functools import cached_property
from typing import Any, TypeVar

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.bindings import BindingIndex
from flakiness_linter.domain.classifier import NodeClassifier
from flakiness_linter.domain.directives import DirectiveIndex
from flakiness_linter.domain.entities import Framework
from flakiness_linter.domain.mocks import MockIndex
from flakiness_linter.domain.scope import FrameworkDetector, TestFileScope

T = TypeVar("T")


class SourceFile:
    """
    Per-file analysis state. Allocated fresh for every file and discarded after
    reporting; nothing here is shared between files.
    """

    def __init__(self, path: str, source: bytes, root: Node, dialect: str = "javascript") -> None:
        self.path = path
        self.source = source
        self.root = root
        self.dialect = dialect
        self._facts: dict[str, Any] = {}

    @cached_property
    def bindings(self) -> BindingIndex:
        return BindingIndex(self.root)

    @cached_property
    def classifier(self) -> NodeClassifier:
        return NodeClassifier(self.bindings)

    @cached_property
    def mocks(self) -> MockIndex:
        return MockIndex(self.root, self.classifier)

    @cached_property
    def comments(self) -> list[Node]:
        return [n for n in syntax.walk(self.root) if n.type == syntax.COMMENT]

    @cached_property
    def directives(self) -> DirectiveIndex:
        return DirectiveIndex(self.comments)

    @cached_property
    def framework(self) -> Framework | None:
        return FrameworkDetector.detect(self.root, self.bindings, self.path)

    @cached_property
    def is_integration(self) -> bool:
        return TestFileScope.is_integration_file(self.path)

    @property
    def offers_wait_for_fixes(self) -> bool:
        return self.framework not in (Framework.PLAYWRIGHT, Framework.CYPRESS)

    @property
    def has_syntax_errors(self) -> bool:
        return self.root.has_error

    def fact(self, name: str, compute: Callable[[], T]) -> T:
        """Memoize a derived per-file fact (e.g. "file disables animations")."""
        if name not in self._facts:
            self._facts[name] = compute()
        return self._facts[name]

    def line_of(self, node: Node) -> int:
        return node.start_point[0] + 1
