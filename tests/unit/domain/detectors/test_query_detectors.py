"""Unit tests for the query-shape detectors (FT006, FT007)."""

import pytest

from flakiness_linter.domain.detectors import IndexQueriesDetector, LongTextMatchDetector
from tests.linter_test_utils import message_ids, run_detector

LONG_TEXT = "Welcome back " + "x" * 38  # 51 characters
EMOJI = "\U0001F600"  # two UTF-16 code units
PLAYWRIGHT_HEADER = "import { test, expect } from '@playwright/test';\n"


def _in_test(body: str) -> str:
    return f"it('x', async () => {{ {body} }});"


class TestIndexQueriesDetector:
    @pytest.mark.parametrize(("body", "message_id", "data"), [
        ("cy.get('li:nth-child(2)');", "avoidNthChild", {"index": "2"}),
        ("screen.getAllByRole('listitem')[0];", "avoidIndexAccess", {"index": "0"}),
        ("const [first] = screen.getAllByRole('row');", "avoidArrayIndex", {}),
        ("cy.get('li').first();", "avoidFirstLast", {"pseudo": ".first()"}),
        ("await page.locator('li').nth(2).click();", "avoidIndexAccess", {"index": "2"}),
        ("document.querySelector('li:last-child');", "avoidFirstLast", {"pseudo": ":last-child"}),
        ("await page.click('li >> nth=1');", "avoidIndexAccess", {"index": "1"}),
        ("document.querySelector('[data-index=\"3\"]');", "avoidDataIndex", {}),
        ("screen.getAllByText('a').filter(Boolean)[1];", "avoidIndexAccess", {"index": "1"}),
    ])
    def test_positional_queries(self, body: str, message_id: str, data: dict) -> None:
        findings = run_detector(IndexQueriesDetector, _in_test(body))
        assert message_ids(findings) == [message_id]
        assert findings[0].message_data == data

    def test_at_on_bound_query_result(self) -> None:
        code = _in_test("const items = screen.getAllByText('x'); items.at(-1);")
        findings = run_detector(IndexQueriesDetector, code)
        assert findings[0].message_data == {"index": "-1"}

    @pytest.mark.parametrize("body", [
        "const selector = ':nth-child(2)';",
        "const values = [1, 2]; values[0];",
        "const rows = screen.getAllByRole('row'); rows[0] = null;",
        "screen.getByRole('button', { name: 'first' });",
        "screen.getAllByRole('row')['length'];",
    ])
    def test_non_positional(self, body: str) -> None:
        assert run_detector(IndexQueriesDetector, _in_test(body)) == []


class TestLongTextMatchDetector:
    def test_boundary(self) -> None:
        assert run_detector(LongTextMatchDetector, _in_test(f"screen.getByText('{LONG_TEXT[:50]}');")) == []
        code = _in_test(f"screen.getByText('{LONG_TEXT}');")
        findings = run_detector(LongTextMatchDetector, code)
        assert message_ids(findings) == ["textTooLong"]
        assert findings[0].message_data == {"length": 51, "maxLength": 50}
        assert findings[0].span.start_byte == code.index(f"'{LONG_TEXT}'")

    def test_length_counts_utf16_code_units(self) -> None:
        assert run_detector(LongTextMatchDetector, _in_test(f"screen.getByText('{EMOJI * 25}');")) == []
        findings = run_detector(LongTextMatchDetector, _in_test(f"screen.getByText('{EMOJI * 30}');"))
        assert message_ids(findings) == ["textTooLong"]
        assert findings[0].message_data == {"length": 60, "maxLength": 50}

    def test_suggestions(self) -> None:
        findings = run_detector(LongTextMatchDetector, _in_test(f"screen.getByText('{LONG_TEXT}');"))
        suggestions = findings[0].suggestions
        assert [s.message_id for s in suggestions] == ["suggestExactFalse", "suggestUseRegex"]
        assert suggestions[0].edits[0].replacement_text == ", { exact: false }"
        assert suggestions[1].edits[0].replacement_text == "/Welcome/"
        assert findings[0].fix is None

    def test_max_length_option(self) -> None:
        code = _in_test(f"screen.getByText('{LONG_TEXT}');")
        assert run_detector(LongTextMatchDetector, code, maxLength=80) == []

    def test_exact_false_is_a_partial_match(self) -> None:
        code = _in_test(f"screen.getByText('{LONG_TEXT}', {{ exact: false }});")
        assert run_detector(LongTextMatchDetector, code) == []

    def test_data_dependent_text(self) -> None:
        text = "Order 123456789 was placed and will ship within two days"
        findings = run_detector(LongTextMatchDetector, _in_test(f"screen.getByText('{text}');"))
        assert message_ids(findings) == ["avoidExactMatch"]

    def test_playwright_selector(self) -> None:
        code = PLAYWRIGHT_HEADER + f"test('x', async ({{ page }}) => {{ await page.getByText('{LONG_TEXT}').click(); }});"
        assert message_ids(run_detector(LongTextMatchDetector, code, "login.spec.ts")) == ["useTestId"]

    def test_text_assertion(self) -> None:
        findings = run_detector(LongTextMatchDetector, _in_test(f"expect(el).toHaveTextContent('{LONG_TEXT}');"))
        assert message_ids(findings) == ["textTooLong"]
        assert findings[0].suggestions == ()

    def test_templated_equality(self) -> None:
        body = "expect(el.textContent).toBe(`Hello ${name}, your order has been placed and will ship soon`);"
        assert message_ids(run_detector(LongTextMatchDetector, _in_test(body))) == ["usePartialMatch"]

    def test_regex_allowed_unless_partial_matches_disabled(self) -> None:
        code = _in_test(f"screen.getByText(/{LONG_TEXT}/);")
        assert run_detector(LongTextMatchDetector, code) == []
        assert message_ids(run_detector(LongTextMatchDetector, code, allowPartialMatch=False)) == ["textTooLong"]

    def test_test_ids(self) -> None:
        code = _in_test(f"screen.getByTestId('{LONG_TEXT}');")
        assert message_ids(run_detector(LongTextMatchDetector, code)) == ["textTooLong"]
        assert run_detector(LongTextMatchDetector, code, ignoreTestIds=True) == []

    def test_cypress_contains(self) -> None:
        code = _in_test(f"cy.contains('button', '{LONG_TEXT}');")
        assert message_ids(run_detector(LongTextMatchDetector, code)) == ["useTestId"]
