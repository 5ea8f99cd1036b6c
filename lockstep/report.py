"""
Rendering of the generated regression test.

The driver accumulates one statement per executed command. This module wraps
them into a self-contained ``unittest`` module that can be pasted into the
harness's test suite, or produces a trivially passing test when no
divergence was found.
"""

from __future__ import annotations

from textwrap import dedent, indent
from typing import Iterable

INDENT = "    "

ASSERT_EXCEPTION_HELPER = dedent("""\
    def assertException(self, exc, func):
        try:
            func()
        except Exception as e:
            if exc is None:
                return
            self.assertIsInstance(e, exc, "threw wrong exception type: " + str(type(e)))
        else:
            self.fail("should have thrown an exception.")
""")

ASSERT_NAN_EQUAL_HELPER = dedent("""\
    def assertNanEqual(self, expected, actual):
        def same(e, a):
            if isinstance(e, float) and isinstance(a, float) and e != e and a != a:
                return True
            if isinstance(e, (list, tuple)):
                return type(e) is type(a) and len(e) == len(a) and all(map(same, e, a))
            return e == a

        self.assertTrue(same(expected, actual), f"{expected!r} != {actual!r}")
""")

PASSING_MODULE = dedent("""\
    import unittest


    class TestGen(unittest.TestCase):
        def test(self):
            self.assertTrue(True, "Everything is fine")


    # Congratulations: no bugs found!
""")


def render_test_method(statements: Iterable[str], name: str = "test") -> str:
    """Render statements as the body of a test method (without indentation)."""
    body = "\n".join(statements) or "pass"
    return f"def {name}(self):\n" + indent(body, INDENT) + "\n"


def render_test_module(
    statements: list[str],
    imports: Iterable[str] = (),
    class_name: str = "TestGen",
    helpers: Iterable[str] = (ASSERT_EXCEPTION_HELPER, ASSERT_NAN_EQUAL_HELPER),
) -> str:
    """
    Render a complete unittest module.

    Args:
        statements: Generated statements, in execution order.
        imports: Extra import lines needed by the statements (SUT types,
            exception classes).
        class_name: Name of the generated TestCase subclass.
        helpers: Source of helper methods placed before the test method.

    Returns:
        Module source. With no statements, a trivially passing module.
    """
    if not statements:
        return PASSING_MODULE

    lines = ["import unittest"]
    lines.extend(imports)
    header = "\n".join(lines)

    members = [helper.rstrip("\n") + "\n" for helper in helpers]
    members.append(render_test_method(statements))
    body = "\n".join(indent(member, INDENT) for member in members)
    return f"{header}\n\n\nclass {class_name}(unittest.TestCase):\n{body}"
