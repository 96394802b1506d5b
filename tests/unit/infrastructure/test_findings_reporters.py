"""Unit tests for the terminal and JSON findings reporters."""

import io
import json

import pytest
from rich.console import Console

from flakiness_linter.domain.entities import ProjectReport
from flakiness_linter.domain.registry import RuleRegistry
from flakiness_linter.infrastructure.reporters import BY_FILE, JsonFindingsReporter, TerminalFindingsReporter
from tests.linter_test_utils import run_engine

CODE = (
    "it.only('a', () => {\n"
    "  cy.wait(5000);\n"
    "  cy.wait(300);\n"
    "  cy.get('li').eq(2).click();\n"
    "});\n"
)


@pytest.fixture
def report() -> ProjectReport:
    result = run_engine(CODE, "cypress/e2e/list.cy.js")
    return ProjectReport(files=[result])


def _console() -> Console:
    return Console(file=io.StringIO(), width=240, color_system=None)


def _output(console: Console) -> str:
    return console.file.getvalue()


class TestTerminalFindingsReporter:
    def test_no_findings(self) -> None:
        console = _console()
        TerminalFindingsReporter(console).report(ProjectReport())
        assert "No flaky-test patterns detected." in _output(console)

    def test_by_rule_table_and_details(self, report: ProjectReport) -> None:
        console = _console()
        TerminalFindingsReporter(console).report(report)
        out = _output(console)
        assert "Flaky Test Patterns" in out
        assert "no-unconditional-wait" in out
        for finding in report.findings:
            assert finding.location in out
        assert f"{len(report.findings)} finding(s)" in out

    def test_by_file_table(self, report: ProjectReport) -> None:
        console = _console()
        TerminalFindingsReporter(console).report(report, view=BY_FILE)
        assert "cypress/e2e/list.cy.js" in _output(console)
        assert "(by file)" in _output(console)

    def test_process_results_groups_by_detector(self, report: ProjectReport) -> None:
        rows = TerminalFindingsReporter._process_results(report.findings)
        by_code = {row["code"]: row for row in rows}
        assert by_code["FT001"]["count"] == 2
        assert by_code["FT012"]["fix"] == "Auto"
        assert rows[0]["code"] == "FT001"

    def test_rules_catalog(self) -> None:
        console = _console()
        TerminalFindingsReporter(console).report_rules(RuleRegistry.get_instance().registrations())
        out = _output(console)
        assert "FT001" in out and "FT018" in out


class TestJsonFindingsReporter:
    def test_payload_shape(self, report: ProjectReport) -> None:
        console = _console()
        JsonFindingsReporter(console).report(report)
        payload = json.loads(_output(console))
        assert payload["errorCount"] == report.error_count
        assert payload["fixesApplied"] == 0
        first = payload["files"][0]
        assert first["path"] == "cypress/e2e/list.cy.js"
        focus = [f for f in first["findings"] if f["code"] == "FT012"][0]
        assert focus["detectorId"] == "no-test-focus"
        assert focus["fix"][0]["text"] == ""

    def test_rules_catalog_is_json(self) -> None:
        console = _console()
        JsonFindingsReporter(console).report_rules(RuleRegistry.get_instance().registrations())
        rows = json.loads(_output(console))
        assert [r["code"] for r in rows][:2] == ["FT001", "FT002"]
