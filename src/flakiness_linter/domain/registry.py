"""Rule registry: the fixed detector catalog, indexed by id and node kind."""

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Optional

from flakiness_linter.domain.config import OptionSpec
from flakiness_linter.domain.detectors import ALL_DETECTORS, BaseDetector
from flakiness_linter.domain.entities import RuleRegistration


class RuleRegistry:
    """
    Immutable catalog built once per process.

    There is no runtime registration; a registry is constructed from a fixed tuple of
    detector classes and only read afterwards, so it is safe to share between
    concurrent file analyses.
    """

    _instance: Optional["RuleRegistry"] = None

    def __init__(self, detector_classes: Iterable[type[BaseDetector]] = ALL_DETECTORS) -> None:
        by_id: dict[str, type[BaseDetector]] = {}
        codes: set[str] = set()
        by_kind: dict[str, list[type[BaseDetector]]] = {}
        for detector_cls in detector_classes:
            reg = detector_cls.registration()
            if reg.detector_id in by_id:
                raise ValueError(f"Detector '{reg.detector_id}' registered twice.")
            if reg.code in codes:
                raise ValueError(f"Detector code '{reg.code}' registered twice.")
            by_id[reg.detector_id] = detector_cls
            codes.add(reg.code)
            for kind in reg.applies_to_node_kinds:
                by_kind.setdefault(kind, []).append(detector_cls)
        self._by_id = MappingProxyType(by_id)
        self._by_kind = MappingProxyType({kind: tuple(classes) for kind, classes in by_kind.items()})

    @classmethod
    def get_instance(cls) -> "RuleRegistry":
        """Get or create the process-wide default catalog."""
        if cls._instance is None:
            cls._instance = RuleRegistry()
        return cls._instance

    @property
    def detector_ids(self) -> list[str]:
        return list(self._by_id)

    @property
    def node_kinds(self) -> frozenset[str]:
        return frozenset(self._by_kind)

    def get(self, detector_id: str) -> type[BaseDetector]:
        if detector_id in self._by_id:
            return self._by_id[detector_id]
        raise ValueError(f"Detector '{detector_id}' not registered.")

    def for_kind(self, kind: str) -> tuple[type[BaseDetector], ...]:
        """Detector classes whose node-kind filter includes `kind`, in catalog order."""
        return self._by_kind.get(kind, ())

    def registrations(self) -> list[RuleRegistration]:
        return [cls.registration() for cls in self._by_id.values()]

    def catalog(self) -> list[tuple[RuleRegistration, Mapping[str, OptionSpec]]]:
        """(registration, option schema) pairs, the shape the configuration loader validates against."""
        return [(cls.registration(), cls.option_schema) for cls in self._by_id.values()]

    def messages(self, detector_id: str) -> Mapping[str, str]:
        return self.get(detector_id).messages
