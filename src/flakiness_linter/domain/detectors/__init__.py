"""Pattern catalog: one detector per flaky-test anti-pattern."""

from flakiness_linter.domain.detectors.awaits import AwaitAsyncEventsDetector, PromiseRaceDetector
from flakiness_linter.domain.detectors.base import BaseDetector, Detector
from flakiness_linter.domain.detectors.database import DatabaseOperationsDetector
from flakiness_linter.domain.detectors.environment import (
    AnimationWaitDetector,
    ElementRemovalCheckDetector,
    FocusCheckDetector,
    ViewportDependentDetector,
)
from flakiness_linter.domain.detectors.focus import TestFocusDetector
from flakiness_linter.domain.detectors.fs import UnmockedFsDetector
from flakiness_linter.domain.detectors.mutation import GlobalStateMutationDetector, TestIsolationDetector
from flakiness_linter.domain.detectors.network import UnmockedNetworkDetector
from flakiness_linter.domain.detectors.queries import IndexQueriesDetector, LongTextMatchDetector
from flakiness_linter.domain.detectors.randomness import RandomDataDetector
from flakiness_linter.domain.detectors.timing import (
    HardCodedTimeoutDetector,
    ImmediateAssertionsDetector,
    UnconditionalWaitDetector,
)

ALL_DETECTORS: tuple[type[BaseDetector], ...] = (
    UnconditionalWaitDetector,
    HardCodedTimeoutDetector,
    UnmockedFsDetector,
    UnmockedNetworkDetector,
    DatabaseOperationsDetector,
    IndexQueriesDetector,
    LongTextMatchDetector,
    GlobalStateMutationDetector,
    TestIsolationDetector,
    AwaitAsyncEventsDetector,
    PromiseRaceDetector,
    TestFocusDetector,
    AnimationWaitDetector,
    ViewportDependentDetector,
    FocusCheckDetector,
    ElementRemovalCheckDetector,
    ImmediateAssertionsDetector,
    RandomDataDetector,
)

__all__ = [
    "ALL_DETECTORS",
    "AnimationWaitDetector",
    "AwaitAsyncEventsDetector",
    "BaseDetector",
    "DatabaseOperationsDetector",
    "Detector",
    "ElementRemovalCheckDetector",
    "FocusCheckDetector",
    "GlobalStateMutationDetector",
    "HardCodedTimeoutDetector",
    "ImmediateAssertionsDetector",
    "IndexQueriesDetector",
    "LongTextMatchDetector",
    "PromiseRaceDetector",
    "RandomDataDetector",
    "TestFocusDetector",
    "TestIsolationDetector",
    "UnconditionalWaitDetector",
    "UnmockedFsDetector",
    "UnmockedNetworkDetector",
    "ViewportDependentDetector",
]
