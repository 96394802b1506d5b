"""Unit tests for the timing detectors (FT001, FT002, FT017)."""

import unittest

from flakiness_linter.domain.detectors import (
    HardCodedTimeoutDetector,
    ImmediateAssertionsDetector,
    UnconditionalWaitDetector,
)
from tests.linter_test_utils import apply_fix, message_ids, run_detector

PLAYWRIGHT_HEADER = "import { test, expect } from '@playwright/test';\n"


class TestUnconditionalWaitDetector(unittest.TestCase):
    def _run(self, code: str, **options):
        return run_detector(UnconditionalWaitDetector, code, **options)

    def test_cy_wait_with_number(self) -> None:
        findings = self._run("it('x', () => { cy.wait(5000); });")
        self.assertEqual(message_ids(findings), ["avoidUnconditionalWait"])
        self.assertEqual(findings[0].message_data, {"call": "cy.wait"})
        self.assertEqual(findings[0].code, "FT001")
        self.assertEqual([s.message_id for s in findings[0].suggestions], ["suggestAliasWait"])
        self.assertIsNone(findings[0].fix)

    def test_cy_wait_on_alias_is_allowed(self) -> None:
        self.assertEqual(self._run("it('x', () => { cy.wait('@getUser'); });"), [])

    def test_max_timeout_reports_only_the_excess(self) -> None:
        findings = self._run("it('x', () => { cy.wait(5000); cy.wait(200); });", maxTimeout=1000)
        self.assertEqual(message_ids(findings), ["exceedsMaxTimeout", "avoidUnconditionalWait"])
        self.assertEqual(findings[0].message_data, {"timeout": "5000", "maxTimeout": "1000"})
        self.assertEqual(findings[0].message, "Wait of 5000ms exceeds the maximum allowed 1000ms.")

    def test_setup_hooks_allowed_by_default(self) -> None:
        code = "beforeEach(() => { cy.wait(500); });"
        self.assertEqual(self._run(code), [])
        self.assertEqual(message_ids(self._run(code, allowInSetup=False)), ["avoidUnconditionalWait"])

    def test_promise_wrapped_timeout_reported_once(self) -> None:
        findings = self._run("it('x', async () => { await new Promise(r => setTimeout(r, 100)); });")
        self.assertEqual(len(findings), 1)
        self.assertEqual(findings[0].message_data, {"call": "new Promise(setTimeout)"})

    def test_wait_for_without_condition(self) -> None:
        findings = self._run("it('x', async () => { await waitFor(() => {}); });")
        self.assertEqual(message_ids(findings), ["useWaitFor"])
        self.assertEqual(findings[0].message_data, {"method": "waitFor"})

    def test_wait_for_with_assertion_is_fine(self) -> None:
        code = "it('x', async () => { await waitFor(() => { expect(a).toBe(1); }); });"
        self.assertEqual(self._run(code), [])

    def test_wait_for_timeout_suggests_selector(self) -> None:
        code = PLAYWRIGHT_HEADER + "test('x', async ({ page }) => { await page.waitForTimeout(300); });"
        findings = run_detector(UnconditionalWaitDetector, code, "login.spec.ts")
        self.assertEqual(findings[0].message_data, {"call": "page.waitForTimeout"})
        self.assertIn("page.waitForSelector", findings[0].suggestions[0].edits[0].replacement_text)

    def test_allowed_methods(self) -> None:
        code = "it('x', async () => { await sleep(100); });"
        self.assertEqual(message_ids(self._run(code)), ["avoidUnconditionalWait"])
        self.assertEqual(self._run(code, allowedMethods=["sleep"]), [])

    def test_conditional_interval_is_allowed(self) -> None:
        code = "const id = setInterval(() => { if (done) clearInterval(id); }, 50);"
        self.assertEqual(self._run(code), [])
        self.assertEqual(len(self._run("setInterval(tick, 50);")), 1)


class TestHardCodedTimeoutDetector(unittest.TestCase):
    def _run(self, code: str, filename: str = "example.test.js", **options):
        return run_detector(HardCodedTimeoutDetector, code, filename, **options)

    def test_set_timeout_reported_at_delay(self) -> None:
        code = "it('x', (done) => { setTimeout(() => done(), 2000); });"
        findings = self._run(code)
        self.assertEqual(message_ids(findings), ["avoidHardTimeout"])
        self.assertEqual(findings[0].span.start_byte, code.index("2000"))
        self.assertEqual(findings[0].message, "Avoid hard-coded timeout of 2000ms; use waitFor() with a condition.")
        suggestion = findings[0].suggestions[0]
        self.assertEqual(suggestion.edits[0].replacement_text, "waitFor(() => done(), { timeout: 2000 })")

    def test_below_threshold_is_fine(self) -> None:
        self.assertEqual(self._run("setTimeout(fn, 999);"), [])
        self.assertEqual(message_ids(self._run("setTimeout(fn, 600);", maxTimeout=500)), ["avoidHardTimeout"])

    def test_cypress_wait_always_reported(self) -> None:
        findings = self._run("it('x', () => { cy.wait(300); });")
        self.assertEqual(message_ids(findings), ["avoidCypressWait"])
        self.assertEqual(findings[0].message_data, {"timeout": "300"})

    def test_set_interval(self) -> None:
        self.assertEqual(message_ids(self._run("window.setInterval(poll, 10);")), ["avoidSetInterval"])

    def test_fake_timers_disable_the_rule(self) -> None:
        self.assertEqual(self._run("jest.useFakeTimers();\nsetTimeout(fn, 5000);\n"), [])

    def test_playwright_variant(self) -> None:
        code = PLAYWRIGHT_HEADER + "test('x', async ({ page }) => { await page.waitForTimeout(3000); });"
        self.assertEqual(message_ids(self._run(code, "login.spec.ts")), ["avoidHardTimeoutPlaywright"])

    def test_promise_timeout(self) -> None:
        findings = self._run("it('x', async () => { await new Promise(r => setTimeout(r, 2000)); });")
        self.assertEqual(message_ids(findings), ["avoidPromiseTimeout"])

    def test_allow_in_setup(self) -> None:
        code = "beforeAll(() => { setTimeout(start, 5000); });"
        self.assertEqual(len(self._run(code)), 1)
        self.assertEqual(self._run(code, allowInSetup=True), [])


class TestImmediateAssertionsDetector(unittest.TestCase):
    def test_assertion_after_event_is_wrapped(self) -> None:
        code = "test('t', () => {\n  fireEvent.click(button);\n  expect(x).toBe(1);\n});\n"
        findings = run_detector(ImmediateAssertionsDetector, code)
        self.assertEqual(message_ids(findings), ["needsWaitFor"])
        self.assertEqual(findings[0].message_data, {"action": "click"})
        self.assertEqual(findings[0].span.line, 3)
        self.assertEqual(
            apply_fix(code, findings[0]),
            "import { waitFor } from '@testing-library/react';\n"
            "test('t', async () => {\n  fireEvent.click(button);\n  await waitFor(() => expect(x).toBe(1));\n});\n",
        )

    def test_awaited_action_is_not_immediate(self) -> None:
        code = "test('t', async () => {\n  await userEvent.click(button);\n  expect(x).toBe(1);\n});\n"
        self.assertEqual(run_detector(ImmediateAssertionsDetector, code), [])

    def test_state_assertion(self) -> None:
        code = "test('t', () => {\n  store.dispatch(add());\n  expect(store.getState().count).toBe(1);\n});\n"
        findings = run_detector(ImmediateAssertionsDetector, code)
        self.assertEqual(message_ids(findings), ["needsWaitForState"])
        self.assertEqual(message_ids(run_detector(ImmediateAssertionsDetector, code, requireWaitFor=False)),
                         ["needsWaitForState"])

    def test_require_wait_for_off(self) -> None:
        code = "test('t', () => {\n  fireEvent.click(button);\n  expect(x).toBe(1);\n});\n"
        self.assertEqual(run_detector(ImmediateAssertionsDetector, code, requireWaitFor=False), [])

    def test_allowed_after_operations(self) -> None:
        code = "test('t', () => {\n  wrapper.setProps({ a: 1 });\n  expect(x).toBe(1);\n});\n"
        self.assertEqual(len(run_detector(ImmediateAssertionsDetector, code)), 1)
        self.assertEqual(run_detector(ImmediateAssertionsDetector, code, allowedAfterOperations=["setProps"]), [])

    def test_browser_runners_are_skipped(self) -> None:
        code = PLAYWRIGHT_HEADER + "test('t', async ({ page }) => {\n  page.click('a');\n  expect(x).toBe(1);\n});\n"
        self.assertEqual(run_detector(ImmediateAssertionsDetector, code, "a.spec.ts"), [])

    def test_outside_tests_is_ignored(self) -> None:
        self.assertEqual(run_detector(ImmediateAssertionsDetector, "fireEvent.click(b);\nexpect(x).toBe(1);\n"), [])
