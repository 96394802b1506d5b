"""Terminal and JSON reporters - live in infrastructure (write to the console)."""

import json
from collections import defaultdict
from typing import TypedDict

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from flakiness_linter.domain.entities import Finding, ProjectReport, RuleRegistration, Severity
from flakiness_linter.domain.protocols import ReporterProtocol
from flakiness_linter.domain.rule_msgs import RuleMsgBuilder

BY_RULE = "by_rule"
BY_FILE = "by_file"
SEVERITY_STYLES = {Severity.ERROR: "bold red", Severity.WARN: "yellow", Severity.OFF: "dim"}


class FileResultRow(TypedDict):
    """Row for by-file view: file path, total count, code breakdown."""

    file: str
    total: int
    breakdown: str


class ResultRow(TypedDict):
    """Row for by-rule view: code, detector id, count, fix label and first message."""

    code: str
    rule: str
    severity: Severity
    count: int
    fix: str
    message: str


class TerminalFindingsReporter(ReporterProtocol):
    """Rich tables: one summary table plus one line per finding."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def report(self, report: ProjectReport, view: str = BY_RULE) -> None:
        findings = report.findings
        if not findings:
            self.console.print("\n[green]No flaky-test patterns detected.[/green]")
            return
        if view == BY_FILE:
            self._render_by_file(findings)
        else:
            self._render_by_rule(findings)
        self._render_details(findings)
        self.console.print(
            f"\n[bold]{len(findings)}[/bold] finding(s): "
            f"[bold red]{report.error_count} error(s)[/bold red], "
            f"[yellow]{report.warning_count} warning(s)[/yellow], "
            f"{sum(1 for f in findings if f.fixable)} fixable with 'flakiness fix'."
        )

    def _render_by_rule(self, findings: list[Finding]) -> None:
        table = Table(title="Flaky Test Patterns", header_style="bold #F9A602")
        table.add_column("Code", style="#C41E3A")
        table.add_column("Rule")
        table.add_column("Severity")
        table.add_column("Count", style="bold #007BFF", justify="right")
        table.add_column("Fix?")
        table.add_column("Message")
        for row in self._process_results(findings):
            style = SEVERITY_STYLES[row["severity"]]
            table.add_row(row["code"], row["rule"], f"[{style}]{row['severity'].value}[/{style}]",
                          str(row["count"]), row["fix"], escape(row["message"]))
        self.console.print(table)

    def _render_by_file(self, findings: list[Finding]) -> None:
        table = Table(title="Flaky Test Patterns (by file)", header_style="bold #F9A602")
        table.add_column("File", style="#C41E3A")
        table.add_column("Total", style="bold #007BFF", justify="right")
        table.add_column("Rule codes")
        for row in self._process_results_by_file(findings):
            table.add_row(row["file"], str(row["total"]), row["breakdown"])
        self.console.print(table)

    def _render_details(self, findings: list[Finding]) -> None:
        for finding in findings:
            style = SEVERITY_STYLES[finding.severity]
            self.console.print(
                f"{finding.location}  [{style}]{finding.severity.value}[/{style}]  "
                f"{escape(finding.message)}  [dim]{finding.detector_id}[/dim]",
                highlight=False,
            )

    @staticmethod
    def _process_results(findings: list[Finding]) -> list[ResultRow]:
        """Group findings by detector; sorted by count descending."""
        grouped: dict[str, list[Finding]] = defaultdict(list)
        for finding in findings:
            grouped[finding.detector_id].append(finding)
        rows: list[ResultRow] = []
        for detector_id, items in grouped.items():
            if any(f.fix for f in items):
                fix = "Auto"
            elif any(f.suggestions for f in items):
                fix = "Suggest"
            else:
                fix = "Manual"
            rows.append({
                "code": items[0].code,
                "rule": detector_id,
                "severity": max((f.severity for f in items), key=lambda s: s.rank),
                "count": len(items),
                "fix": fix,
                "message": items[0].message,
            })
        return sorted(rows, key=lambda r: (-r["count"], r["code"]))

    @staticmethod
    def _process_results_by_file(findings: list[Finding]) -> list[FileResultRow]:
        """Group findings by file: file, total, breakdown. Sorted by total descending."""
        by_file: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        for finding in findings:
            by_file[finding.file_path][finding.code] += 1
        rows: list[FileResultRow] = []
        for file_path, code_counts in by_file.items():
            parts = sorted(code_counts.items(), key=lambda x: (-x[1], x[0]))
            rows.append({
                "file": file_path,
                "total": sum(code_counts.values()),
                "breakdown": ", ".join(f"{c}: {n}" for c, n in parts),
            })
        return sorted(rows, key=lambda x: (-x["total"], x["file"]))

    def report_rules(self, registrations: list[RuleRegistration]) -> None:
        table = Table(title="Detector Catalog", header_style="bold #F9A602")
        for header in ("Code", "Rule", "Capability", "Severity", "Fix?", "Description"):
            table.add_column(header)
        for row in RuleMsgBuilder.catalog_rows(registrations):
            table.add_row(row["code"], row["id"], row["capability"], row["severity"], row["fixable"],
                          escape(row["description"]))
        self.console.print(table)


class JsonFindingsReporter(ReporterProtocol):
    """Machine-readable output: one object per file with its findings."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def report(self, report: ProjectReport, view: str = BY_RULE) -> None:
        payload = {
            "files": [
                {
                    "path": result.path,
                    "findings": [f.to_dict() for f in result.findings],
                    "withheldFixes": len(result.conflicts),
                    "parseError": result.parse_error,
                }
                for result in report.files
            ],
            "errorCount": report.error_count,
            "warningCount": report.warning_count,
            "fixesApplied": report.fixes_applied,
            "fixedFiles": report.fixed_files,
        }
        self.console.print(json.dumps(payload, indent=2), soft_wrap=True, highlight=False, markup=False)

    def report_rules(self, registrations: list[RuleRegistration]) -> None:
        rows = RuleMsgBuilder.catalog_rows(registrations)
        self.console.print(json.dumps(rows, indent=2), soft_wrap=True, highlight=False, markup=False)
