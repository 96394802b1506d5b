"""Exception hierarchy for the linter. Detector-level failures never surface through here."""


class FlakinessLinterError(Exception):
    """Base class for every error the linter raises on purpose."""


class ConfigError(FlakinessLinterError):
    """Invalid configuration: unknown detector or option, wrong type, or out-of-bounds value."""

    def __init__(self, detector_id: str, option: str | None, reason: str) -> None:
        self.detector_id = detector_id
        self.option = option
        self.reason = reason
        target = f"{detector_id}.{option}" if option else detector_id
        super().__init__(f"Invalid configuration for '{target}': {reason}")


class ParseError(FlakinessLinterError):
    """A source file could not be read or decoded."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot parse {path}: {reason}")
