"""Telemetry - console output through rich, mirrored to the standard logger."""

import logging

from rich.console import Console
from rich.markup import escape

from flakiness_linter.domain.protocols import TelemetryPort


class ProjectTelemetry(TelemetryPort):
    """Prints progress for the user and records the same messages in the log."""

    def __init__(self, project_name: str, color: str, welcome: str) -> None:
        self.project_name = project_name
        self.color = color
        self.welcome = welcome
        self.console = Console(stderr=True)
        self.logger = logging.getLogger(f"flakiness_linter.{project_name.lower()}")

    def handshake(self) -> None:
        self.console.print(f"[bold {self.color}]{self.project_name}[/bold {self.color}] {escape(self.welcome)}")
        self.logger.info("%s %s", self.project_name, self.welcome)

    def step(self, message: str) -> None:
        self.console.print(f"[{self.color}]>[/{self.color}] {escape(message)}", highlight=False)
        self.logger.info(message)

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]error:[/bold red] {escape(message)}", highlight=False)
        self.logger.error(message)

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]warning:[/yellow] {escape(message)}", highlight=False)
        self.logger.warning(message)

    def debug(self, message: str) -> None:
        self.logger.debug(message)
