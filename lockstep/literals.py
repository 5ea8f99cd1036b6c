"""
Conversion of runtime values into Python source literals.

The generated regression test has to mention every value that flowed through
a command: scalar arguments, expected return values, and the objects created
earlier in the sequence. Plain values are rendered as literals; objects of a
registered (mutable) type are rendered as the local variable they were
assigned to when first seen.
"""

from __future__ import annotations

import enum
import math
from abc import ABC, abstractmethod
from typing import Any, Callable


class LiteralBuilder(ABC):
    """
    Turn values into code, and map named reference objects to their SUT twins.

    The driver implements this contract on top of its TestClass registries.
    """

    @abstractmethod
    def to_string(self, value: Any) -> str | None:
        """
        Return code that evaluates to ``value``.

        For an object of a registered type return its registered name, or
        None if it has not been registered yet.
        """

    @abstractmethod
    def is_mutable_object(self, value: Any) -> bool:
        """Return whether ``value`` (from the reference side) compares by identity."""

    @abstractmethod
    def register_mutable_object(self, ref: Any, sut: Any) -> str:
        """Pair a reference object with its SUT counterpart and return its new name."""

    @abstractmethod
    def get_test_object(self, name: str) -> Any:
        """Return the SUT object registered under ``name``."""


def _float_literal(value: float) -> str:
    if math.isnan(value):
        return "float('nan')"
    if math.isinf(value):
        return "float('inf')" if value > 0 else "-float('inf')"
    return repr(value)


def to_literal(value: Any, name_of: Callable[[Any], str | None] | None = None) -> str:
    """
    Render ``value`` as Python source.

    Args:
        value: The value to render.
        name_of: Optional lookup returning the registered name of an object,
            or None if it has no name. Containers are rendered recursively so
            registered objects inside a list still appear by name.

    Returns:
        A string that evaluates to an equal value.
    """
    # IntEnum and StrEnum members are also ints and strs.
    if isinstance(value, enum.Enum):
        return f"{type(value).__name__}.{value.name}"
    if value is None or isinstance(value, (bool, int, str, bytes)):
        return repr(value)
    if isinstance(value, float):
        return _float_literal(value)

    if name_of is not None:
        name = name_of(value)
        if name is not None:
            return name

    def render(item: Any) -> str:
        return to_literal(item, name_of)

    if isinstance(value, list):
        return "[" + ", ".join(render(item) for item in value) + "]"
    if isinstance(value, tuple):
        if len(value) == 1:
            return "(" + render(value[0]) + ",)"
        return "(" + ", ".join(render(item) for item in value) + ")"
    if isinstance(value, (set, frozenset)):
        if not value:
            return "set()" if isinstance(value, set) else "frozenset()"
        body = "{" + ", ".join(sorted(render(item) for item in value)) + "}"
        return body if isinstance(value, set) else f"frozenset({body})"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{render(k)}: {render(v)}" for k, v in value.items()) + "}"
    return repr(value)
