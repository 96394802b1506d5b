"""CLI entry points for the flakiness linter - Thin Controller using Typer."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import typer

from flakiness_linter.domain.config import AnalysisConfig
from flakiness_linter.domain.constants import FLAKINESS_BANNER
from flakiness_linter.domain.errors import ConfigError
from flakiness_linter.domain.protocols import (
    FileSystemProtocol,
    ParserProtocol,
    ReporterProtocol,
    TelemetryPort,
)
from flakiness_linter.domain.registry import RuleRegistry
from flakiness_linter.use_cases.analyze_file import AnalyzeFileUseCase
from flakiness_linter.use_cases.apply_fixes import ApplyFixesUseCase
from flakiness_linter.use_cases.check_project import CheckProjectUseCase

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_CONFIG = 2
FORMATS = ("table", "json")
VIEWS = ("by_rule", "by_file")


@dataclass(frozen=True)
class CLIDependencies:
    """Explicit dependencies for the CLI. All dependencies injected at composition root."""

    config_provider: Callable[[], AnalysisConfig]
    telemetry: TelemetryPort
    registry: RuleRegistry
    parser: ParserProtocol
    filesystem: FileSystemProtocol
    reporter: ReporterProtocol
    json_reporter: ReporterProtocol


class CLIAppFactory:
    """Creates the Typer app."""

    @staticmethod
    def configure_logging(verbose: bool) -> None:
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.WARNING,
            format="%(levelname)s %(name)s: %(message)s",
            force=True,
        )

    @staticmethod
    def target_paths(paths: list[Path] | None) -> list[str]:
        """Explicit paths as strings, else the current directory."""
        return [str(p) for p in paths] if paths else ["."]

    @staticmethod
    def create_app(deps: CLIDependencies) -> typer.Typer:
        """Create the Typer app with explicitly injected dependencies."""
        app = typer.Typer(
            name="flakiness",
            help="Find flaky-test patterns in JavaScript/TypeScript test files. "
                 "Run 'flakiness check' to report; 'flakiness fix' to apply safe fixes.",
            add_completion=False,
        )

        @app.callback()
        def main(
            verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug diagnostics"),
        ) -> None:
            CLIAppFactory.configure_logging(verbose)

        def _session_start(output_format: str) -> None:
            if output_format == "table":
                typer.echo(FLAKINESS_BANNER, err=True)
                deps.telemetry.handshake()

        def _validate(output_format: str, view: str) -> None:
            if output_format not in FORMATS:
                deps.telemetry.error(f"Unknown format '{output_format}' (expected one of: {', '.join(FORMATS)})")
                raise typer.Exit(EXIT_CONFIG)
            if view not in VIEWS:
                deps.telemetry.error(f"Unknown view '{view}' (expected one of: {', '.join(VIEWS)})")
                raise typer.Exit(EXIT_CONFIG)

        def _check_project() -> CheckProjectUseCase:
            try:
                config = deps.config_provider()
            except ConfigError as e:
                deps.telemetry.error(str(e))
                raise typer.Exit(EXIT_CONFIG) from e
            analyze = AnalyzeFileUseCase(deps.parser, deps.registry, config)
            return CheckProjectUseCase(deps.filesystem, analyze, deps.telemetry)

        def _reporter(output_format: str) -> ReporterProtocol:
            return deps.json_reporter if output_format == "json" else deps.reporter

        @app.command()
        def check(
            paths: list[Path] | None = typer.Argument(None, help="Files or directories to scan (default: .)"),
            output_format: str = typer.Option("table", "--format", help="Output format: table or json"),
            view: str = typer.Option("by_rule", "--view", help="Table view: by_rule (default) or by_file"),
        ) -> None:
            """Report flaky-test patterns. Exits 1 when any finding has error severity."""
            _validate(output_format, view)
            _session_start(output_format)
            use_case = _check_project()
            report = use_case.execute(CLIAppFactory.target_paths(paths))
            _reporter(output_format).report(report, view=view)
            raise typer.Exit(EXIT_FINDINGS if report.has_errors() else EXIT_OK)

        @app.command()
        def fix(
            paths: list[Path] | None = typer.Argument(None, help="Files or directories to fix (default: .)"),
            dry_run: bool = typer.Option(False, "--dry-run", help="Compute fixes without writing files"),
            output_format: str = typer.Option("table", "--format", help="Output format: table or json"),
            view: str = typer.Option("by_rule", "--view", help="Table view: by_rule (default) or by_file"),
        ) -> None:
            """Apply safe fixes in repeated passes, then report what remains."""
            _validate(output_format, view)
            _session_start(output_format)
            use_case = ApplyFixesUseCase(
                check_project=_check_project(),
                filesystem=deps.filesystem,
                telemetry=deps.telemetry,
                dry_run=dry_run,
            )
            report = use_case.execute(CLIAppFactory.target_paths(paths))
            _reporter(output_format).report(report, view=view)
            raise typer.Exit(EXIT_FINDINGS if report.has_errors() else EXIT_OK)

        @app.command()
        def rules(
            output_format: str = typer.Option("table", "--format", help="Output format: table or json"),
        ) -> None:
            """List the detector catalog."""
            _validate(output_format, VIEWS[0])
            _reporter(output_format).report_rules(deps.registry.registrations())

        return app
