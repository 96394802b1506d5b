"""Pytest configuration shared by the unit and functional suites.

pythonpath in pyproject.toml puts src/ and the project root on sys.path, so tests
import `flakiness_linter` and `tests.linter_test_utils` without an install.
"""

from collections.abc import Iterator

import pytest

from flakiness_linter.infrastructure.di.container import FlakinessContainer


@pytest.fixture(autouse=True)
def _reset_container() -> Iterator[None]:
    yield
    FlakinessContainer.reset()
