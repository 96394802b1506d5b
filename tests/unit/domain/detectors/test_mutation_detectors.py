"""Unit tests for the mutation and isolation detectors (FT008, FT009)."""

import unittest

from flakiness_linter.domain.detectors import GlobalStateMutationDetector, TestIsolationDetector
from tests.linter_test_utils import message_ids, run_detector


def _in_test(body: str) -> str:
    return f"it('x', () => {{ {body} }});"


class TestGlobalStateMutationDetector(unittest.TestCase):
    def _run(self, code: str, **options):
        return run_detector(GlobalStateMutationDetector, code, **options)

    def test_window_assignment(self) -> None:
        findings = self._run(_in_test("window.innerWidth = 500;"))
        self.assertEqual(message_ids(findings), ["avoidGlobalMutation"])
        self.assertEqual(findings[0].message_data, {"object": "window"})
        self.assertEqual(findings[0].message, "Avoid mutating global 'window'; it leaks into other tests.")

    def test_mock_factory_assignment_is_allowed(self) -> None:
        self.assertEqual(self._run(_in_test("global.fetch = jest.fn();")), [])

    def test_process_env(self) -> None:
        self.assertEqual(message_ids(self._run(_in_test("process.env.API_URL = 'x';"))), ["avoidProcessEnv"])

    def test_implicit_global(self) -> None:
        findings = self._run(_in_test("counter = 1;"))
        self.assertEqual(message_ids(findings), ["useLocalVariable"])
        self.assertEqual(findings[0].message_data, {"variable": "counter"})
        self.assertEqual(self._run(_in_test("let counter; counter = 1;")), [])

    def test_storage_needs_cleanup(self) -> None:
        findings = self._run(_in_test("localStorage.setItem('k', 'v');"))
        self.assertEqual(message_ids(findings), ["needsCleanup"])
        self.assertEqual(findings[0].message_data, {"storage": "localStorage"})
        cleaned = "afterEach(() => { localStorage.clear(); });\n" + _in_test("localStorage.setItem('k', 'v');")
        self.assertEqual(self._run(cleaned), [])

    def test_restored_in_after_each(self) -> None:
        code = (
            "const original = window.location;\n"
            "afterEach(() => { window.location = original; });\n"
            + _in_test("window.location = { href: '/' };")
        )
        self.assertEqual(self._run(code), [])

    def test_hooks(self) -> None:
        self.assertEqual(self._run("beforeEach(() => { window.foo = 1; });"), [])
        self.assertEqual(len(self._run("beforeAll(() => { window.foo = 1; });")), 1)
        self.assertEqual(len(self._run("beforeEach(() => { window.foo = 1; });", allowInHooks=False)), 1)

    def test_document_and_builtins(self) -> None:
        self.assertEqual(message_ids(self._run(_in_test("document.title = 'x';"))), ["avoidDocumentMutation"])
        findings = self._run(_in_test("Math.random = () => 0.5;"))
        self.assertEqual(findings[0].message_data, {"object": "Math"})
        findings = self._run(_in_test("Object.defineProperty(window, 'innerWidth', { value: 500 });"))
        self.assertEqual(findings[0].message_data, {"object": "window"})

    def test_local_objects_are_fine(self) -> None:
        self.assertEqual(self._run(_in_test("const obj = {}; obj.a = 1; delete obj.a;")), [])


class TestTestIsolationDetector(unittest.TestCase):
    SHARED = (
        "describe('d', () => {\n"
        "  let count = 0;\n"
        "  it('a', () => { count += 1; });\n"
        "});\n"
    )

    def _run(self, code: str, **options):
        return run_detector(TestIsolationDetector, code, **options)

    def test_shared_let_mutated_in_test(self) -> None:
        findings = self._run(self.SHARED)
        self.assertEqual(message_ids(findings), ["avoidSharedState"])
        self.assertEqual(findings[0].message_data, {"variable": "count"})

    def test_reset_in_before_each(self) -> None:
        code = self.SHARED.replace("  let count = 0;\n", "  let count = 0;\n  beforeEach(() => { count = 0; });\n")
        self.assertEqual(self._run(code), [])

    def test_allowed_shared_variables(self) -> None:
        self.assertEqual(self._run(self.SHARED, allowedSharedVariables=["count"]), [])
        findings = self._run(self.SHARED, allowedSharedVariables=["other"])
        self.assertEqual(message_ids(findings), ["disallowedSharedVar"])

    def test_describe_level_collection(self) -> None:
        code = "describe('d', () => {\n  const items = [];\n  it('a', () => { items.push(1); });\n});\n"
        findings = self._run(code)
        self.assertEqual(message_ids(findings), ["initInSetup"])
        self.assertEqual(findings[0].message_data, {"variable": "items"})
        self.assertEqual(findings[0].span.line, 2)

    def test_unbalanced_setup_hook(self) -> None:
        code = "beforeAll(() => { process.env.MODE = 'test'; });\n"
        findings = self._run(code)
        self.assertEqual(message_ids(findings), ["needsCleanup"])
        self.assertEqual(findings[0].message_data, {"hook": "beforeAll"})
        balanced = code + "afterAll(() => { delete process.env.MODE; });\n"
        self.assertEqual(self._run(balanced), [])

    def test_global_assignment_in_test(self) -> None:
        code = _in_test("window.foo = 1;")
        findings = self._run(code)
        self.assertEqual(message_ids(findings), ["globalStateMutation"])
        self.assertEqual(findings[0].message_data, {"property": "foo"})
        self.assertEqual(self._run(code, checkGlobalState=False), [])

    def test_imported_module_mutation(self) -> None:
        code = "import config from './config';\n" + _in_test("config.debug = true;")
        self.assertEqual(message_ids(self._run(code)), ["avoidModuleMutation"])

    def test_test_local_state(self) -> None:
        self.assertEqual(self._run(_in_test("let n = 0; n += 1;")), [])
