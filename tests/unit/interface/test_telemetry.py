"""Unit tests for ProjectTelemetry."""
from unittest.mock import MagicMock

from flakiness_linter.interface.telemetry import ProjectTelemetry


def _telemetry() -> ProjectTelemetry:
    tel = ProjectTelemetry("FLAKY", "magenta", "Hello")
    tel.console = MagicMock()
    tel.logger = MagicMock()
    return tel


def test_console_writes_to_stderr():
    assert ProjectTelemetry("FLAKY", "magenta", "Hello").console.stderr


def test_handshake_prints_banner():
    tel = _telemetry()
    tel.handshake()
    tel.console.print.assert_called()
    tel.logger.info.assert_called_once_with("%s %s", "FLAKY", "Hello")


def test_step_prints_and_logs():
    tel = _telemetry()
    tel.step("Scanning 3 source file(s)...")
    tel.console.print.assert_called_once()
    tel.logger.info.assert_called_once_with("Scanning 3 source file(s)...")


def test_markup_in_messages_is_escaped():
    tel = _telemetry()
    tel.error("Cannot read [bold]x[/bold]")
    printed = tel.console.print.call_args.args[0]
    assert "\\[bold]" in printed
    tel.logger.error.assert_called_once_with("Cannot read [bold]x[/bold]")


def test_warning_prints_and_logs():
    tel = _telemetry()
    tel.warning("Skipped a.test.js")
    tel.logger.warning.assert_called_once_with("Skipped a.test.js")


def test_debug_only_logs():
    tel = _telemetry()
    tel.debug("Detail")
    tel.logger.debug.assert_called_once_with("Detail")
    tel.console.print.assert_not_called()
