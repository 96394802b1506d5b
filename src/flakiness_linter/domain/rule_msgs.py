"""Pure message rendering from detector templates. No I/O or infrastructure imports."""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from flakiness_linter.domain.entities import RuleRegistration

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class RuleMsgBuilder:
    """Renders `{{name}}` templates and catalog rows for `flakiness rules`."""

    @staticmethod
    def render(template: str, data: Mapping[str, Any]) -> str:
        """Substitute `{{name}}` placeholders; unknown names are left as written."""

        def repl(match: re.Match[str]) -> str:
            key = match.group(1)
            if key not in data:
                return match.group(0)
            value = data[key]
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            return str(value)

        return _PLACEHOLDER.sub(repl, template)

    @staticmethod
    def placeholders(template: str) -> set[str]:
        return set(_PLACEHOLDER.findall(template))

    @staticmethod
    def catalog_rows(registrations: Iterable[RuleRegistration]) -> list[dict[str, str]]:
        """One row per detector, sorted by code."""
        return [
            {
                "code": reg.code,
                "id": reg.detector_id,
                "capability": reg.capability.value,
                "severity": reg.default_severity.value,
                "fixable": "fix" if reg.fixable else ("suggest" if reg.has_suggestions else "-"),
                "description": reg.description,
            }
            for reg in sorted(registrations, key=lambda r: r.code)
        ]
