"""
Tests for the report module (lockstep/report.py).

This module tests rendering of the generated unittest module.
"""

import unittest

from lockstep.report import (
    ASSERT_EXCEPTION_HELPER,
    ASSERT_NAN_EQUAL_HELPER,
    PASSING_MODULE,
    render_test_method,
    render_test_module,
)


def run_module(source):
    namespace = {}
    exec(compile(source, "<generated>", "exec"), namespace)
    result = unittest.TestResult()
    namespace["TestGen"]("test").run(result)
    return result


class TestRenderTestMethod(unittest.TestCase):
    """Tests for the test method body."""

    def test_statements_are_indented(self):
        source = render_test_method(["c0 = Counter()", "self.assertEqual(1, c0.inc())"])
        self.assertEqual(
            source,
            "def test(self):\n    c0 = Counter()\n    self.assertEqual(1, c0.inc())\n",
        )

    def test_empty_body_gets_pass(self):
        self.assertEqual(render_test_method([]), "def test(self):\n    pass\n")


class TestRenderTestModule(unittest.TestCase):
    """Tests for whole-module rendering."""

    def test_no_statements_gives_passing_module(self):
        """Test that an empty sequence renders the trivially passing test."""
        source = render_test_module([])
        self.assertEqual(source, PASSING_MODULE)
        self.assertIn("# Congratulations: no bugs found!", source)
        compile(source, "<generated>", "exec")

    def test_module_layout(self):
        """Test imports, class header, helper, and statements order."""
        source = render_test_module(
            ["c0 = Counter()", "c0.reset()  # should terminate normally"],
            imports=["from counters import Counter"],
        )
        lines = source.splitlines()

        self.assertEqual(lines[0], "import unittest")
        self.assertEqual(lines[1], "from counters import Counter")
        self.assertIn("class TestGen(unittest.TestCase):", lines)
        self.assertIn("    def assertException(self, exc, func):", lines)
        self.assertIn("    def test(self):", lines)
        self.assertIn("        c0.reset()  # should terminate normally", lines)
        self.assertLess(
            lines.index("    def assertException(self, exc, func):"),
            lines.index("    def test(self):"),
        )

    def test_generated_module_compiles(self):
        source = render_test_module(
            ["x = 1", "self.assertException(ValueError, lambda: int('a'))"],
            class_name="TestCounterBug",
        )
        compile(source, "<generated>", "exec")
        self.assertIn("class TestCounterBug(unittest.TestCase):", source)

    def test_generated_module_runs(self):
        """Test that the helper in the generated module behaves like a test assertion."""
        source = render_test_module(
            [
                "self.assertException(ValueError, lambda: int('a'))",
                "self.assertException(None, lambda: 1 / 0)",
            ]
        )
        namespace = {}
        exec(compile(source, "<generated>", "exec"), namespace)
        result = unittest.TestResult()
        namespace["TestGen"]("test").run(result)

        self.assertTrue(result.wasSuccessful())

    def test_helper_detects_missing_exception(self):
        source = render_test_module(["self.assertException(ValueError, lambda: 1)"])
        namespace = {}
        exec(compile(source, "<generated>", "exec"), namespace)
        result = unittest.TestResult()
        namespace["TestGen"]("test").run(result)

        self.assertEqual(len(result.failures), 1)

    def test_nan_helper(self):
        """Test that the NaN-aware helper accepts NaN and still catches real differences."""
        source = render_test_module(
            [
                "self.assertNanEqual(float('nan'), float('nan'))",
                "self.assertNanEqual([1.0, float('nan')], [1.0, float('nan')])",
            ]
        )
        self.assertTrue(run_module(source).wasSuccessful())

        source = render_test_module(["self.assertNanEqual(float('nan'), 1.0)"])
        self.assertEqual(len(run_module(source).failures), 1)

    def test_custom_helpers(self):
        source = render_test_module(["pass"], helpers=())
        self.assertNotIn("assertException", source)
        self.assertIn("def assertException", ASSERT_EXCEPTION_HELPER)
        self.assertIn("def assertNanEqual", ASSERT_NAN_EQUAL_HELPER)


if __name__ == "__main__":
    unittest.main()
