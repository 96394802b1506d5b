from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, cast

from flakiness_linter.domain.config import AnalysisConfig, ConfigurationLoader
from flakiness_linter.domain.registry import RuleRegistry
from flakiness_linter.infrastructure.config_file_loader import ConfigFileLoader
from flakiness_linter.infrastructure.gateways.filesystem_gateway import FileSystemGateway
from flakiness_linter.infrastructure.gateways.tree_sitter_gateway import TreeSitterGateway
from flakiness_linter.infrastructure.reporters import JsonFindingsReporter, TerminalFindingsReporter
from flakiness_linter.interface.telemetry import ProjectTelemetry

if TYPE_CHECKING:
    from flakiness_linter.domain.protocols import (
        FileSystemProtocol,
        ParserProtocol,
        ReporterProtocol,
        TelemetryPort,
    )


class FlakinessContainer:
    """Dependency Injection Container for the flakiness linter."""

    _instance: Optional["FlakinessContainer"] = None

    def __init__(self, config_root: Path | None = None) -> None:
        self._singletons: dict[str, Any] = {}
        self._config_root = config_root
        self._register_defaults()

    def _register_defaults(self) -> None:
        """Register default implementations for protocols."""
        self.register_singleton(
            "TelemetryPort", ProjectTelemetry("FLAKINESS", "magenta", "Flaky-test scanner online"))
        self.register_singleton("RuleRegistry", RuleRegistry.get_instance())
        self.register_singleton("TreeSitterGateway", TreeSitterGateway())
        self.register_singleton("FileSystemGateway", FileSystemGateway())
        self.register_singleton("TerminalFindingsReporter", TerminalFindingsReporter())
        self.register_singleton("JsonFindingsReporter", JsonFindingsReporter())
        # ConfigurationLoader is registered lazily by get_config_loader().

    def register_singleton(self, key: str, instance: Any) -> None:
        """Register a singleton instance."""
        self._singletons[key] = instance

    def get(self, key: str) -> Any:
        """Retrieve a dependency by key. Prefer explicit get_* methods for type safety."""
        if key in self._singletons:
            return self._singletons[key]
        raise ValueError(f"Dependency '{key}' not registered.")

    def get_telemetry_port(self) -> "TelemetryPort":
        """Return the telemetry/UI port."""
        return cast("TelemetryPort", self.get("TelemetryPort"))

    def get_rule_registry(self) -> RuleRegistry:
        """Return the detector catalog."""
        return cast(RuleRegistry, self.get("RuleRegistry"))

    def get_parser(self) -> "ParserProtocol":
        """Return the tree-sitter parser gateway."""
        return cast("ParserProtocol", self.get("TreeSitterGateway"))

    def get_filesystem_gateway(self) -> "FileSystemProtocol":
        """Return the filesystem gateway."""
        return cast("FileSystemProtocol", self.get("FileSystemGateway"))

    def get_reporter(self) -> "ReporterProtocol":
        """Return the terminal reporter."""
        return cast("ReporterProtocol", self.get("TerminalFindingsReporter"))

    def get_json_reporter(self) -> "ReporterProtocol":
        """Return the JSON reporter."""
        return cast("ReporterProtocol", self.get("JsonFindingsReporter"))

    def get_config_loader(self) -> ConfigurationLoader:
        """Return the validated configuration. Raises ConfigError on the first call if it is invalid."""
        if "ConfigurationLoader" not in self._singletons:
            config_dict, _ = ConfigFileLoader.load_config_from_fs(self._config_root)
            self.register_singleton(
                "ConfigurationLoader",
                ConfigurationLoader(config_dict, self.get_rule_registry().catalog()),
            )
        return cast(ConfigurationLoader, self.get("ConfigurationLoader"))

    def get_analysis_config(self) -> AnalysisConfig:
        return AnalysisConfig.from_loader(self.get_config_loader())

    @classmethod
    def get_instance(cls) -> "FlakinessContainer":
        """Get or create global container instance."""
        if cls._instance is None:
            cls._instance = FlakinessContainer()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (primarily for testing)."""
        cls._instance = None
