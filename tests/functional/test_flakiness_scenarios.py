"""End-to-end scenarios through the full detector catalog."""

from unittest.mock import MagicMock

import pytest

from flakiness_linter.domain import detectors
from flakiness_linter.domain.fixes import EditApplier
from flakiness_linter.use_cases.apply_fixes import ApplyFixesUseCase
from flakiness_linter.use_cases.check_project import CheckProjectUseCase
from tests.linter_test_utils import GATEWAY, TEST_FILE, apply_fix, engine, run_detector, run_engine


def _codes(result) -> list[str]:
    return [f.code for f in result.findings]


def _get_by_text(length: int) -> str:
    text = "Welcome back " + "x" * (length - len("Welcome back "))
    return f"test('greets', () => {{\n  screen.getByText('{text}');\n}});\n"


def _fixer() -> ApplyFixesUseCase:
    check = CheckProjectUseCase(MagicMock(), engine(), MagicMock())
    return ApplyFixesUseCase(check, MagicMock(), MagicMock())


class TestLongTextBoundary:
    def test_fifty_characters_pass(self) -> None:
        assert "FT007" not in _codes(run_engine(_get_by_text(50)))

    def test_fifty_one_characters_fail(self) -> None:
        findings = [f for f in run_engine(_get_by_text(51)).findings if f.code == "FT007"]
        assert len(findings) == 1
        assert findings[0].message_data == {"length": 51, "maxLength": 50}

    def test_long_welcome_message(self) -> None:
        findings = [f for f in run_engine(_get_by_text(128)).findings if f.code == "FT007"]
        assert findings[0].message_data["length"] == 128
        assert findings[0].fix is None
        assert findings[0].suggestions


def test_cypress_fixed_wait_is_one_unconditional_wait() -> None:
    result = run_engine("it('loads', () => {\n  cy.visit('/');\n  cy.wait(5000);\n});\n", "cypress/e2e/load.cy.js")
    assert _codes(result).count("FT001") == 1


class TestMissingAwait:
    CODE = "test('submits', () => {\n  userEvent.click(button);\n});\n"
    FIXED = "test('submits', async () => {\n  await userEvent.click(button);\n});\n"

    def test_fix_adds_async_and_await(self) -> None:
        result = run_engine(self.CODE)
        assert _codes(result) == ["FT010"]
        fixed = EditApplier.apply(self.CODE.encode(), EditApplier.collect_edits(result.fixable_findings))
        assert fixed.decode() == self.FIXED

    def test_fixed_source_is_clean_and_stable(self) -> None:
        assert run_engine(self.FIXED).findings == []
        fixed, applied, _ = _fixer().fix_source("a.test.js", self.FIXED.encode())
        assert fixed.decode() == self.FIXED
        assert applied == 0


class TestSetupHookFilesystem:
    CODE = "const fs = require('fs');\nbeforeAll(() => {\n  fs.mkdirSync('/data/out');\n});\n"

    def test_reported_by_default(self) -> None:
        findings = [f for f in run_engine(self.CODE).findings if f.code == "FT003"]
        assert [f.message_id for f in findings] == ["mockFs"]

    def test_allowed_in_setup(self) -> None:
        config = {"rules": {"no-unmocked-fs": {"options": {"allowInSetup": True}}}}
        assert "FT003" not in _codes(run_engine(self.CODE, config_dict=config))


class TestSuppression:
    def test_named_directive_only_silences_that_detector(self) -> None:
        code = "it('x', () => {\n  // flaky-disable-next-line no-unconditional-wait\n  cy.wait(5000);\n});\n"
        assert _codes(run_engine(code)) == ["FT002"]

    def test_bare_directive_silences_everything(self) -> None:
        code = "it('x', () => {\n  // flaky-disable-next-line\n  cy.wait(5000);\n});\n"
        assert run_engine(code).findings == []


@pytest.mark.parametrize("body", [
    "cy.wait(5000);",
    "userEvent.click(button);",
    "expect(screen.queryByText('Loading')).not.toBeInTheDocument();",
    "const n = Math.random();",
    "fetch('https://api.example.com/users');",
])
def test_findings_do_not_depend_on_enclosing_describe(body: str) -> None:
    test = f"it('x', () => {{\n  {body}\n}});\n"
    nested = f"describe('suite', () => {{\n{test}}});\n"
    flat = [(f.code, f.message_id, f.span.column) for f in run_engine(test).findings]
    wrapped = [(f.code, f.message_id, f.span.column) for f in run_engine(nested).findings]
    assert flat
    assert flat == wrapped


def test_combined_fixes_keep_the_file_parseable() -> None:
    code = (
        "describe.only('form', () => {\n"
        "  fit('saves', () => {\n"
        "    userEvent.click(save);\n"
        "    expect(screen.queryByText('Saving')).not.toBeInTheDocument();\n"
        "  });\n"
        "  xit('cancels', () => {\n"
        "    userEvent.type(input, 'x');\n"
        "  });\n"
        "});\n"
    )
    fixed, applied, result = _fixer().fix_source("form.test.js", code.encode())
    assert applied >= 4
    assert GATEWAY.parses_cleanly(fixed, "form.test.js")
    assert result.fixable_findings == []
    text = fixed.decode()
    assert "describe('form'" in text
    assert "it('saves', async () => {" in text
    assert "await userEvent.click(save);" in text
    assert "await waitFor(() => { expect(screen.queryByText('Saving')).not.toBeInTheDocument(); });" in text


def test_missing_await_scenario_points_at_the_interaction() -> None:
    code = "test('t', () => {\n  userEvent.click(button);\n  expect(x).toBe(y);\n});\n"
    findings = [f for f in run_engine(code).findings if f.code == "FT010"]
    assert len(findings) == 1
    assert (findings[0].span.line, findings[0].span.column) == (2, 2)


def test_directive_mock_covers_calls_before_it() -> None:
    code = (
        "const fs = require('fs');\n"
        "it('reads', () => {\n  fs.readFileSync('/etc/app.json');\n});\n"
        "jest.mock('fs');\n"
    )
    assert "FT003" not in _codes(run_engine(code))


def test_short_query_in_describe_body_stays_clean() -> None:
    code = "describe('toolbar', () => {\n  const save = () => screen.getByText('Save');\n  it('x', () => {});\n});\n"
    assert run_engine(code).findings == []


@pytest.mark.parametrize(("detector_cls", "code"), [
    (detectors.AwaitAsyncEventsDetector, "test('t', () => {\n  userEvent.click(button);\n});\n"),
    (detectors.TestFocusDetector, "it.only('x', () => {});\n"),
    (detectors.FocusCheckDetector, "test('t', () => {\n  expect(input).toHaveFocus();\n});\n"),
    (detectors.ElementRemovalCheckDetector,
     "test('t', () => {\n  expect(screen.queryByText('Loading')).not.toBeInTheDocument();\n});\n"),
    (detectors.ImmediateAssertionsDetector, "test('t', () => {\n  fireEvent.click(button);\n  expect(x).toBe(y);\n});\n"),
], ids=lambda value: getattr(value, "code", None))
def test_fixed_text_parses_and_is_clean_for_its_detector(detector_cls, code: str) -> None:
    findings = run_detector(detector_cls, code)
    assert len(findings) == 1
    fixed = apply_fix(code, findings[0])
    assert GATEWAY.parses_cleanly(fixed.encode(), TEST_FILE)
    assert run_detector(detector_cls, fixed) == []
