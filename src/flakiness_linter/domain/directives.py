"""Suppression comments: `flaky-disable[-line|-next-line]` and `flaky-enable`, also with the `eslint-` prefix."""

import re
from dataclasses import dataclass

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.constants import PLUGIN_PREFIX

_DIRECTIVE_RE = re.compile(
    r"^\s*(?:flaky|eslint)-(disable-next-line|disable-line|disable|enable)(?=\s|$)(.*)$",
    re.S,
)


@dataclass(frozen=True)
class Directive:
    kind: str
    line: int
    end_line: int
    detectors: frozenset[str]

    @property
    def applies_to_all(self) -> bool:
        return not self.detectors

    def names(self, detector_id: str) -> bool:
        return self.applies_to_all or detector_id in self.detectors


class DirectiveParser:
    """Parses comment nodes into directives."""

    @staticmethod
    def parse_comment(comment: Node) -> Directive | None:
        raw = syntax.text(comment)
        if raw.startswith("//"):
            body = raw[2:]
        elif raw.startswith("/*"):
            body = raw[2:-2] if raw.endswith("*/") else raw[2:]
        else:
            return None
        match = _DIRECTIVE_RE.match(body.strip())
        if match is None:
            return None
        rest = match.group(2).split("--", 1)[0]
        names = {
            name.strip().removeprefix(PLUGIN_PREFIX)
            for name in rest.replace("\n", ",").split(",")
            if name.strip()
        }
        start_row = comment.start_point[0] + 1
        end_row = comment.end_point[0] + 1
        return Directive(match.group(1), start_row, end_row, frozenset(names))


class DirectiveIndex:
    """Answers whether a detector is suppressed on a given line."""

    def __init__(self, comments: list[Node]) -> None:
        self._line: dict[int, list[Directive]] = {}
        self._blocks: list[Directive] = []
        for comment in comments:
            directive = DirectiveParser.parse_comment(comment)
            if directive is None:
                continue
            if directive.kind == "disable-line":
                self._line.setdefault(directive.line, []).append(directive)
            elif directive.kind == "disable-next-line":
                self._line.setdefault(directive.end_line + 1, []).append(directive)
            else:
                self._blocks.append(directive)
        self._blocks.sort(key=lambda d: d.line)

    def __bool__(self) -> bool:
        return bool(self._line or self._blocks)

    def is_disabled(self, detector_id: str, line: int) -> bool:
        if any(d.names(detector_id) for d in self._line.get(line, ())):
            return True
        all_off = False
        exceptions: set[str] = set()
        disabled: set[str] = set()
        for directive in self._blocks:
            if directive.line > line:
                break
            if directive.kind == "disable":
                if directive.applies_to_all:
                    all_off, exceptions = True, set()
                elif all_off:
                    exceptions -= directive.detectors
                else:
                    disabled |= directive.detectors
            elif directive.applies_to_all:
                all_off, exceptions, disabled = False, set(), set()
            elif all_off:
                exceptions |= directive.detectors
            else:
                disabled -= directive.detectors
        return (all_off and detector_id not in exceptions) or detector_id in disabled

    def disables_everything(self, line: int) -> bool:
        """True when a directive without a detector list covers the line."""
        return self.is_disabled("\0", line)
