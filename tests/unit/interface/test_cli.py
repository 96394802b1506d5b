"""Unit tests for the Typer-based CLI."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from flakiness_linter.domain.errors import ConfigError
from flakiness_linter.domain.registry import RuleRegistry
from flakiness_linter.infrastructure.gateways.filesystem_gateway import FileSystemGateway
from flakiness_linter.infrastructure.reporters import JsonFindingsReporter, TerminalFindingsReporter
from flakiness_linter.interface.cli import EXIT_CONFIG, EXIT_FINDINGS, EXIT_OK, CLIAppFactory, CLIDependencies
from tests.linter_test_utils import GATEWAY, engine

runner = CliRunner()


def _make_deps(config_provider=None, **overrides) -> CLIDependencies:
    defaults: dict = {
        "config_provider": config_provider or (lambda: engine().config),
        "telemetry": MagicMock(),
        "registry": RuleRegistry.get_instance(),
        "parser": GATEWAY,
        "filesystem": FileSystemGateway(),
        "reporter": TerminalFindingsReporter(),
        "json_reporter": JsonFindingsReporter(),
    }
    defaults.update(overrides)
    return CLIDependencies(**defaults)


def _invoke(args: list[str], deps: CLIDependencies | None = None):
    return runner.invoke(CLIAppFactory.create_app(deps or _make_deps()), args)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "clean.test.js").write_text("it('adds', () => {\n  expect(1 + 1).toBe(2);\n});\n")
    return tmp_path


class TestTargetPaths:
    def test_defaults_to_current_directory(self) -> None:
        assert CLIAppFactory.target_paths(None) == ["."]

    def test_explicit_paths(self) -> None:
        assert CLIAppFactory.target_paths([Path("e2e"), Path("src")]) == ["e2e", "src"]


class TestCheckCommand:
    def test_clean_project_exits_zero(self, project: Path) -> None:
        result = _invoke(["check", str(project)])
        assert result.exit_code == EXIT_OK
        assert "No flaky-test patterns detected." in result.stdout

    def test_error_findings_exit_one(self, project: Path) -> None:
        (project / "focused.test.js").write_text("it.only('x', () => {});\n")
        result = _invoke(["check", str(project)])
        assert result.exit_code == EXIT_FINDINGS
        assert "no-test-focus" in result.stdout

    def test_warnings_alone_exit_zero(self, project: Path) -> None:
        (project / "random.test.js").write_text("it('x', () => {\n  const n = Math.random();\n});\n")
        result = _invoke(["check", str(project)])
        assert result.exit_code == EXIT_OK
        assert "no-random-data" in result.stdout

    def test_json_output(self, project: Path) -> None:
        (project / "focused.test.js").write_text("it.only('x', () => {});\n")
        result = _invoke(["check", str(project), "--format", "json"])
        payload = json.loads(result.stdout)
        assert payload["errorCount"] == 1
        assert len(payload["files"]) == 2

    def test_invalid_config_exits_two(self, project: Path) -> None:
        def broken():
            raise ConfigError("no-long-text-match", "maxLength", "expected a number")

        deps = _make_deps(config_provider=broken)
        result = _invoke(["check", str(project)], deps)
        assert result.exit_code == EXIT_CONFIG
        deps.telemetry.error.assert_called_once()

    def test_unknown_format_exits_two(self, project: Path) -> None:
        assert _invoke(["check", str(project), "--format", "xml"]).exit_code == EXIT_CONFIG
        assert _invoke(["check", str(project), "--view", "by_color"]).exit_code == EXIT_CONFIG

    def test_table_output_greets_once(self, project: Path) -> None:
        deps = _make_deps()
        _invoke(["check", str(project)], deps)
        deps.telemetry.handshake.assert_called_once()


class TestFixCommand:
    def test_fix_rewrites_files(self, project: Path) -> None:
        target = project / "focused.test.js"
        target.write_text("it.only('x', () => {});\n")
        result = _invoke(["fix", str(project)])
        assert result.exit_code == EXIT_OK
        assert target.read_text() == "it('x', () => {});\n"

    def test_dry_run_does_not_write(self, project: Path) -> None:
        target = project / "focused.test.js"
        target.write_text("it.only('x', () => {});\n")
        result = _invoke(["fix", str(project), "--dry-run", "--format", "json"])
        assert target.read_text() == "it.only('x', () => {});\n"
        assert json.loads(result.stdout)["fixedFiles"] == [str(target)]


class TestRulesCommand:
    def test_json_catalog(self) -> None:
        result = _invoke(["rules", "--format", "json"])
        assert result.exit_code == EXIT_OK
        rows = json.loads(result.stdout)
        assert len(rows) == 18
        assert rows[0]["id"] == "no-unconditional-wait"

    def test_verbose_flag_is_global(self) -> None:
        assert _invoke(["--verbose", "rules"]).exit_code == EXIT_OK
