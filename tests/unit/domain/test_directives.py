"""Unit tests for suppression comments (domain/directives.py)."""

import unittest

from tests.linter_test_utils import parse_source


def _index(code: str):
    return parse_source(code).directives


class TestDirectiveIndex(unittest.TestCase):
    def test_disable_next_line_targets_only_the_following_line(self) -> None:
        index = _index("// flaky-disable-next-line no-unconditional-wait\ncy.wait(500);\ncy.wait(500);\n")
        self.assertTrue(index.is_disabled("no-unconditional-wait", 2))
        self.assertFalse(index.is_disabled("no-unconditional-wait", 3))
        self.assertFalse(index.is_disabled("no-hard-coded-timeout", 2))

    def test_disable_line_with_plugin_prefix(self) -> None:
        index = _index("cy.wait(500); // eslint-disable-line test-flakiness/no-unconditional-wait\n")
        self.assertTrue(index.is_disabled("no-unconditional-wait", 1))

    def test_block_disable_and_enable(self) -> None:
        code = (
            "/* flaky-disable no-random-data */\n"
            "Math.random();\n"
            "/* flaky-enable no-random-data */\n"
            "Math.random();\n"
        )
        index = _index(code)
        self.assertTrue(index.is_disabled("no-random-data", 2))
        self.assertFalse(index.is_disabled("no-random-data", 4))

    def test_unmatched_disable_runs_to_end_of_file(self) -> None:
        index = _index("a();\n// flaky-disable\nb();\n\n\nc();\n")
        self.assertFalse(index.disables_everything(1))
        self.assertTrue(index.disables_everything(6))
        self.assertTrue(index.is_disabled("no-test-focus", 6))

    def test_enable_one_detector_after_disabling_all(self) -> None:
        code = "// flaky-disable\n// flaky-enable no-test-focus\nit.only('x', () => {});\n"
        index = _index(code)
        self.assertFalse(index.is_disabled("no-test-focus", 3))
        self.assertTrue(index.is_disabled("no-random-data", 3))

    def test_description_after_double_dash_is_ignored(self) -> None:
        index = _index("// flaky-disable-next-line no-random-data -- seeded upstream\nMath.random();\n")
        self.assertTrue(index.is_disabled("no-random-data", 2))

    def test_ordinary_comments_are_not_directives(self) -> None:
        self.assertFalse(bool(_index("// disable the button\nclick();\n")))
