"""
Lifters: wrap plain calls into functions that return Results.

A harness describes each operation twice, once for the reference
implementation and once for the SUT, as ordinary callables. Lifting turns a
callable into one that never raises: a return value becomes a NormalResult
(or an ObjectResult for registered types), and any exception, including a
failed ``assert`` inside the SUT, becomes an ExceptionResult.
"""

from __future__ import annotations

import functools
from typing import Any, Callable

from lockstep.registry import TestClass
from lockstep.results import VOID_RESULT, ExceptionResult, NormalResult, ObjectResult, Result


def lift(func: Callable[..., Any]) -> Callable[..., Result]:
    """Lift a call whose return value should be compared by value."""

    @functools.wraps(func)
    def lifted(*args: Any) -> Result:
        try:
            return NormalResult(func(*args))
        except Exception as e:
            return ExceptionResult(e)

    return lifted


def lift_void(func: Callable[..., Any]) -> Callable[..., Result]:
    """Lift a call made only for its effect; its return value is ignored."""

    @functools.wraps(func)
    def lifted(*args: Any) -> Result:
        try:
            func(*args)
        except Exception as e:
            return ExceptionResult(e)
        return VOID_RESULT

    return lifted


def lift_object(test_class: TestClass, func: Callable[..., Any]) -> Callable[..., Result]:
    """Lift a call returning an object of a registered type (compared by identity)."""

    @functools.wraps(func)
    def lifted(*args: Any) -> Result:
        try:
            return ObjectResult(test_class, func(*args))
        except Exception as e:
            return ExceptionResult(e)

    return lifted
