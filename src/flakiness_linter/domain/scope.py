"""Test-file scope and framework detection."""

import re

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.bindings import BindingIndex, RequireSource
from flakiness_linter.domain.entities import Framework

_EXT = r"\.(?:[cm]?[jt]sx?)$"
TEST_FILE_PATTERNS = (
    re.compile(r"\.(?:test|spec)" + _EXT),
    re.compile(r"\.stories" + _EXT),
    re.compile(r"(?:^|/)__tests__/"),
    re.compile(r"(?:^|/)(?:test|tests|spec|specs)/"),
    re.compile(r"\.(?:e2e|integration|cy)" + _EXT),
    re.compile(r"(?:^|/)(?:cypress|playwright)/"),
    re.compile(r"\.steps?" + _EXT),
)
INTEGRATION_PATTERNS = (
    re.compile(r"\.(?:integration|e2e)(?:\.(?:test|spec))?" + _EXT),
    re.compile(r"(?:^|/)(?:integration|e2e)/"),
)

_IMPORT_FRAMEWORKS = (
    (re.compile(r"^@playwright/test$|^playwright(?:-core)?$"), Framework.PLAYWRIGHT),
    (re.compile(r"^cypress$|^@cypress/"), Framework.CYPRESS),
    (re.compile(r"^@testing-library/"), Framework.TESTING_LIBRARY),
    (re.compile(r"^vitest$"), Framework.VITEST),
    (re.compile(r"^@jest/globals$|^jest$"), Framework.JEST),
)
_FRAMEWORK_PRIORITY = (
    Framework.PLAYWRIGHT,
    Framework.CYPRESS,
    Framework.TESTING_LIBRARY,
    Framework.VITEST,
    Framework.JEST,
)


class TestFileScope:
    """Path conventions deciding which files are analyzed."""

    __test__ = False

    @staticmethod
    def normalize(path: str) -> str:
        return path.replace("\\", "/")

    @staticmethod
    def is_test_file(path: str) -> bool:
        normalized = TestFileScope.normalize(path)
        if not re.search(_EXT, normalized):
            return False
        return any(p.search(normalized) for p in TEST_FILE_PATTERNS)

    @staticmethod
    def is_integration_file(path: str) -> bool:
        normalized = TestFileScope.normalize(path)
        return any(p.search(normalized) for p in INTEGRATION_PATTERNS)


class FrameworkDetector:
    """Imports and requires first, then global `cy`/`vi`/`jest` usage, then the path."""

    @staticmethod
    def detect(root: Node, bindings: BindingIndex, path: str) -> Framework | None:
        found: set[Framework] = set()
        for node in syntax.walk(root):
            if node.type == "import_statement":
                module = syntax.string_value(node.child_by_field_name("source"))
            elif node.type == syntax.CALL:
                module = RequireSource.module_of_call(node)
            else:
                continue
            for pattern, framework in _IMPORT_FRAMEWORKS:
                if module and pattern.search(module):
                    found.add(framework)
        for framework in _FRAMEWORK_PRIORITY:
            if framework in found:
                return framework
        globals_used = FrameworkDetector._global_namespaces(root, bindings)
        if "cy" in globals_used:
            return Framework.CYPRESS
        if "vi" in globals_used:
            return Framework.VITEST
        if "jest" in globals_used:
            return Framework.JEST
        normalized = TestFileScope.normalize(path)
        if "/cypress/" in f"/{normalized}" or re.search(r"\.cy" + _EXT, normalized):
            return Framework.CYPRESS
        if "/playwright/" in f"/{normalized}":
            return Framework.PLAYWRIGHT
        return None

    @staticmethod
    def _global_namespaces(root: Node, bindings: BindingIndex) -> set[str]:
        used: set[str] = set()
        for node in syntax.walk(root):
            if node.type != syntax.MEMBER:
                continue
            obj = syntax.member_object(node)
            if obj is None or obj.type != syntax.IDENTIFIER:
                continue
            name = syntax.text(obj)
            if name in ("cy", "vi", "jest") and not bindings.is_bound(name, obj):
                used.add(name)
        return used
