"""Unit tests for the detector catalog (domain/registry.py)."""

import pytest

from flakiness_linter.domain.detectors import (
    ALL_DETECTORS,
    HardCodedTimeoutDetector,
    LongTextMatchDetector,
    UnconditionalWaitDetector,
)
from flakiness_linter.domain.registry import RuleRegistry
from flakiness_linter.domain.rule_msgs import RuleMsgBuilder


def test_catalog_has_eighteen_detectors_in_code_order() -> None:
    registry = RuleRegistry.get_instance()
    codes = [reg.code for reg in registry.registrations()]
    assert codes == [f"FT{n:03d}" for n in range(1, 19)]
    assert registry.detector_ids[0] == "no-unconditional-wait"


def test_get_instance_is_shared() -> None:
    assert RuleRegistry.get_instance() is RuleRegistry.get_instance()


def test_registrations_are_cached_per_class() -> None:
    assert UnconditionalWaitDetector.registration() is UnconditionalWaitDetector.registration()
    assert UnconditionalWaitDetector.registration() != HardCodedTimeoutDetector.registration()


def test_for_kind_preserves_catalog_order() -> None:
    registry = RuleRegistry.get_instance()
    calls = registry.for_kind("call_expression")
    assert calls
    order = list(ALL_DETECTORS)
    assert [order.index(cls) for cls in calls] == sorted(order.index(cls) for cls in calls)
    assert registry.for_kind("no_such_kind") == ()


def test_duplicate_detector_is_rejected() -> None:
    with pytest.raises(ValueError, match="registered twice"):
        RuleRegistry((LongTextMatchDetector, LongTextMatchDetector))


def test_unknown_detector_lookup() -> None:
    with pytest.raises(ValueError, match="not registered"):
        RuleRegistry.get_instance().get("no-such-rule")


def test_default_options_follow_schema() -> None:
    reg = LongTextMatchDetector.registration()
    assert reg.default_options["maxLength"] == 50


@pytest.mark.parametrize("detector_cls", ALL_DETECTORS)
def test_every_message_template_is_renderable(detector_cls) -> None:
    assert detector_cls.messages
    for template in detector_cls.messages.values():
        for name in RuleMsgBuilder.placeholders(template):
            assert name.isidentifier()


@pytest.mark.parametrize("detector_cls", ALL_DETECTORS)
def test_every_detector_filters_on_node_kinds(detector_cls) -> None:
    reg = detector_cls.registration()
    assert reg.applies_to_node_kinds
    assert reg.description
