"""Configuration resolver. Immutable value objects created once per run by the composition root."""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from flakiness_linter.domain.constants import PLUGIN_PREFIX
from flakiness_linter.domain.entities import RuleRegistration, Severity
from flakiness_linter.domain.errors import ConfigError

RuleOptions = Mapping[str, Any]

BOOL = "bool"
NUMBER = "number"
NULLABLE_NUMBER = "nullable_number"
STRING_LIST = "string_list"

TOP_LEVEL_KEYS = frozenset({"extends", "include", "exclude", "rules"})
CONFIG_SCOPE = "<config>"


@dataclass(frozen=True)
class OptionSpec:
    """Declared type, default and bounds of one detector option."""

    kind: str
    default: Any
    minimum: float | None = None
    description: str = ""


@dataclass(frozen=True)
class ResolvedRule:
    severity: Severity
    options: RuleOptions


PRESETS: dict[str, dict[str, tuple[Severity, dict[str, Any]]]] = {
    "recommended": {
        "no-hard-coded-timeout": (Severity.ERROR, {}),
    },
    "strict": {
        "no-hard-coded-timeout": (Severity.ERROR, {"maxTimeout": 500, "allowInSetup": False}),
        "no-test-focus": (Severity.ERROR, {"allowSkip": False, "allowOnly": False}),
    },
}


class ConfigurationResolver:
    """Validates raw per-detector options against a schema and fills in defaults."""

    @staticmethod
    def resolve(detector_id: str, raw_options: Mapping[str, Any] | None,
                schema: Mapping[str, OptionSpec]) -> RuleOptions:
        raw_options = raw_options or {}
        if not isinstance(raw_options, Mapping):
            raise ConfigError(detector_id, None, "options must be a table")
        resolved: dict[str, Any] = {name: ConfigurationResolver._copy(spec.default) for name, spec in schema.items()}
        for name, value in raw_options.items():
            spec = schema.get(name)
            if spec is None:
                known = ", ".join(sorted(schema)) or "none"
                raise ConfigError(detector_id, name, f"unknown option (known options: {known})")
            resolved[name] = ConfigurationResolver._validate(detector_id, name, value, spec)
        return MappingProxyType(resolved)

    @staticmethod
    def _copy(value: Any) -> Any:
        return tuple(value) if isinstance(value, (list, tuple)) else value

    @staticmethod
    def _validate(detector_id: str, name: str, value: Any, spec: OptionSpec) -> Any:
        if spec.kind == BOOL:
            if not isinstance(value, bool):
                raise ConfigError(detector_id, name, f"expected a boolean, got {type(value).__name__}")
            return value
        if spec.kind in (NUMBER, NULLABLE_NUMBER):
            if value is None and spec.kind == NULLABLE_NUMBER:
                return None
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(detector_id, name, f"expected a number, got {type(value).__name__}")
            if not math.isfinite(value):
                raise ConfigError(detector_id, name, f"expected a finite number, got {value}")
            if spec.minimum is not None and value < spec.minimum:
                raise ConfigError(detector_id, name, f"must be >= {spec.minimum:g}, got {value}")
            return value
        if spec.kind == STRING_LIST:
            if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
                raise ConfigError(detector_id, name, "expected a list of strings")
            return tuple(value)
        raise ConfigError(detector_id, name, f"unsupported option kind {spec.kind!r}")


class ConfigurationLoader:
    """
    Immutable analysis configuration.

    Created by the composition root from the `[tool.flakiness-linter]` table. Every
    detector id, option key and value is validated here, so a bad configuration fails
    before any file is analyzed.
    """

    def __init__(
        self,
        config_dict: Mapping[str, Any],
        catalog: Iterable[tuple[RuleRegistration, Mapping[str, OptionSpec]]],
    ) -> None:
        self._config = dict(config_dict or {})
        self._catalog = {reg.detector_id: (reg, schema) for reg, schema in catalog}
        self.validate_config(self._config)
        self._rules = MappingProxyType(self._resolve_rules())

    def validate_config(self, config: Mapping[str, Any]) -> None:
        """Reject unknown top-level keys and malformed include/exclude/extends values."""
        for key in config:
            if key not in TOP_LEVEL_KEYS:
                raise ConfigError(CONFIG_SCOPE, key, "unknown configuration key")
        extends = config.get("extends")
        if extends is not None and extends not in ("recommended", "strict", "all"):
            raise ConfigError(CONFIG_SCOPE, "extends", f"unknown preset {extends!r}")
        for key in ("include", "exclude"):
            value = config.get(key, [])
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(CONFIG_SCOPE, key, "expected a list of glob strings")
        if not isinstance(config.get("rules", {}), Mapping):
            raise ConfigError(CONFIG_SCOPE, "rules", "expected a table keyed by detector id")

    def _base_rules(self) -> dict[str, tuple[Severity, dict[str, Any]]]:
        extends = self._config.get("extends")
        base: dict[str, tuple[Severity, dict[str, Any]]] = {}
        for detector_id, (reg, _) in self._catalog.items():
            if extends is None:
                base[detector_id] = (reg.default_severity, {})
            elif extends == "all":
                base[detector_id] = (Severity.ERROR, {})
            else:
                base[detector_id] = (Severity.OFF, {})
        if extends in PRESETS:
            for detector_id, (severity, options) in PRESETS[extends].items():
                base[detector_id] = (severity, dict(options))
        return base

    def _resolve_rules(self) -> dict[str, ResolvedRule]:
        base = self._base_rules()
        rules: Mapping[str, Any] = self._config.get("rules", {})
        for raw_id, entry in rules.items():
            detector_id = str(raw_id).removeprefix(PLUGIN_PREFIX)
            if detector_id not in self._catalog:
                raise ConfigError(detector_id, None, "unknown detector")
            reg, _ = self._catalog[detector_id]
            severity, options = base[detector_id]
            if isinstance(entry, Mapping):
                unknown = set(entry) - {"severity", "options"}
                if unknown:
                    raise ConfigError(detector_id, sorted(unknown)[0], "expected 'severity' or 'options'")
                if "severity" in entry:
                    severity = self._parse_severity(detector_id, entry["severity"])
                elif severity == Severity.OFF:
                    severity = reg.default_severity
                raw_options = entry.get("options", {})
                if not isinstance(raw_options, Mapping):
                    raise ConfigError(detector_id, "options", "expected a table")
                options = {**options, **raw_options}
            else:
                severity = self._parse_severity(detector_id, entry)
            base[detector_id] = (severity, options)
        return {
            detector_id: ResolvedRule(
                severity=severity,
                options=ConfigurationResolver.resolve(detector_id, options, self._catalog[detector_id][1]),
            )
            for detector_id, (severity, options) in base.items()
        }

    @staticmethod
    def _parse_severity(detector_id: str, raw: object) -> Severity:
        severity = Severity.parse(raw)
        if severity is None:
            raise ConfigError(detector_id, "severity", f"expected off|warn|error or 0|1|2, got {raw!r}")
        return severity

    @property
    def config(self) -> dict[str, Any]:
        """Return the raw configuration table."""
        return dict(self._config)

    @property
    def rules(self) -> Mapping[str, ResolvedRule]:
        return self._rules

    @property
    def include(self) -> list[str]:
        return list(self._config.get("include", []))

    @property
    def exclude(self) -> list[str]:
        return list(self._config.get("exclude", []))

    def rule(self, detector_id: str) -> ResolvedRule:
        return self._rules[detector_id]

    def is_enabled(self, detector_id: str) -> bool:
        return self._rules[detector_id].severity != Severity.OFF

    def enabled_rules(self) -> dict[str, ResolvedRule]:
        return {k: v for k, v in self._rules.items() if v.severity != Severity.OFF}


@dataclass(frozen=True)
class AnalysisConfig:
    """What one analysis run needs: resolved rules plus path filters."""

    rules: Mapping[str, ResolvedRule]
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()

    @classmethod
    def from_loader(cls, loader: ConfigurationLoader) -> "AnalysisConfig":
        return cls(rules=loader.rules, include=tuple(loader.include), exclude=tuple(loader.exclude))
