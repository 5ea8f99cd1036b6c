"""
Outcomes of executing a command, and how expected and actual outcomes compare.

A Result is produced on each side of a command. The reference side's Result
is the *expected* one: ``expected.includes(actual)`` decides whether the SUT
behaved acceptably and, as a side effect, fixes what ``expected`` will report
through ``get_value()`` and ``gen_assert()``.

The hierarchy is closed:

- NormalResult: a plain value, compared structurally.
- ExceptionResult: abrupt termination, compared by exception class.
- ObjectResult: an object of a registered type, compared by identity of the
  paired SUT object (the first sighting registers the pair).
- ChoiceResult / ObjectChoiceResult: the reference cannot predict a unique
  answer and lists the acceptable ones; the first matching observation wins.
"""

from __future__ import annotations

import builtins
import math
from typing import Any, Callable, Iterable

from lockstep.literals import LiteralBuilder
from lockstep.registry import TestClass


def values_equal(expected: Any, actual: Any) -> bool:
    """
    Structural equality used for value results.

    ``True`` never equals ``1``; two NaN floats are equal; lists and tuples
    must have the same type and length and compare element by element;
    everything else uses ``==``.
    """
    if isinstance(expected, float) and isinstance(actual, float) and math.isnan(expected) and math.isnan(actual):
        return True
    if isinstance(expected, bool) or isinstance(actual, bool):
        return type(expected) is type(actual) and expected == actual
    if isinstance(expected, (list, tuple)) or isinstance(actual, (list, tuple)):
        if type(expected) is not type(actual) or len(expected) != len(actual):
            return False
        return all(values_equal(e, a) for e, a in zip(expected, actual))
    return bool(expected == actual)


def contains_nan(value: Any) -> bool:
    """Return whether a value is NaN or a list/tuple holding one."""
    if isinstance(value, float):
        return math.isnan(value)
    if isinstance(value, (list, tuple)):
        return any(contains_nan(item) for item in value)
    return False


def exception_type_name(exc_type: type[BaseException]) -> str:
    """Return the name under which an exception class appears in generated code."""
    if getattr(builtins, exc_type.__name__, None) is exc_type:
        return exc_type.__name__
    return exc_type.__qualname__


class Result:
    """Common interface of all outcomes."""

    resolved: bool = True

    def includes(self, actual: Result) -> bool:
        """Return whether ``actual`` is an acceptable outcome for this expected one."""
        raise NotImplementedError

    def get_value(self) -> Any:
        """Return the value associated with the outcome (None for abrupt termination)."""
        raise NotImplementedError

    def gen_assert(self, builder: LiteralBuilder, code: str) -> str:
        """Return a test statement checking that ``code`` behaves like this outcome."""
        raise NotImplementedError

    def _check_resolved(self) -> None:
        if not self.resolved:
            raise RuntimeError(f"{type(self).__name__} has not been checked yet")


class NormalResult(Result):
    """Normal termination with a value."""

    def __init__(self, value: Any) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"NormalResult({self.value!r})"

    def get_value(self) -> Any:
        self._check_resolved()
        return self.value

    def includes(self, actual: Result) -> bool:
        if not isinstance(actual, NormalResult):
            return False
        if self.value is None:
            return actual.value is None
        if actual.value is None:
            return False
        return values_equal(self.value, actual.value)

    def gen_assert(self, builder: LiteralBuilder, code: str) -> str:
        if self.value is None:
            return f"self.assertIsNone({code})"
        if contains_nan(self.value):
            return f"self.assertNanEqual({builder.to_string(self.value)}, {code})"
        return f"self.assertEqual({builder.to_string(self.value)}, {code})"


class _VoidResult(NormalResult):
    """Normal termination of a call made only for its effect."""

    def __init__(self) -> None:
        super().__init__(None)

    def __repr__(self) -> str:
        return "VOID_RESULT"

    def gen_assert(self, builder: LiteralBuilder, code: str) -> str:
        return f"{code}  # should terminate normally"


NULL_RESULT = NormalResult(None)
VOID_RESULT = _VoidResult()


class ExceptionResult(Result):
    """
    Abrupt termination.

    The expected exception class may be None, meaning any exception is
    acceptable. Otherwise the actual exception must be of the same class or
    a subclass.
    """

    def __init__(self, exc: BaseException | type[BaseException] | None) -> None:
        self.reason = exc
        if exc is None or isinstance(exc, type):
            self.exc_type = exc
        else:
            self.exc_type = type(exc)

    def __repr__(self) -> str:
        name = self.exc_type.__name__ if self.exc_type is not None else "any"
        return f"ExceptionResult({name})"

    def get_value(self) -> Any:
        return None

    def includes(self, actual: Result) -> bool:
        if not isinstance(actual, ExceptionResult):
            return False
        if self.exc_type is None:
            return True
        return actual.exc_type is not None and issubclass(actual.exc_type, self.exc_type)

    def gen_assert(self, builder: LiteralBuilder, code: str) -> str:
        expected = "None" if self.exc_type is None else exception_type_name(self.exc_type)
        return f"self.assertException({expected}, lambda: {code})"


class ObjectResult(NormalResult):
    """
    Normal termination with an object of a registered type.

    On the reference side ``value`` is the reference object; on the SUT side
    it is the SUT object. The first time a reference object is seen, the pair
    is registered and the comparison succeeds; afterwards the SUT side must
    produce the very object that was paired with it.
    """

    def __init__(self, test_class: TestClass, value: Any) -> None:
        super().__init__(value)
        self.test_class = test_class
        self.resolved = False
        self._index = -1
        self._is_new = False

    def __repr__(self) -> str:
        return f"ObjectResult({self.test_class.type_name}, {self.value!r})"

    def includes(self, actual: Result) -> bool:
        if self.resolved:
            raise RuntimeError("ObjectResult has already been checked")
        self.resolved = True
        if self.value is None:
            return super().includes(actual)
        self._index = self.test_class.index_of(self.value)
        if not isinstance(actual, NormalResult) or actual.value is None:
            return False
        if self._index == -1:
            self.test_class.register(self.value, actual.value)
            self._index = self.test_class.size() - 1
            self._is_new = True
            return True
        return actual.value is self.test_class.get_sut_object(self._index)

    def gen_assert(self, builder: LiteralBuilder, code: str) -> str:
        self._check_resolved()
        if self.value is None:
            return super().gen_assert(builder, code)
        if self._is_new:
            return f"{self.test_class.get_identifier(self._index)} = {code}"
        if self._index == -1:
            # The SUT failed where the reference created an object; replaying
            # the assignment reproduces that failure.
            return f"{self.test_class.next_identifier()} = {code}"
        return f"self.assertIs({self.test_class.get_identifier(self._index)}, {code})"


class ChoiceResult(Result):
    """
    One of several acceptable values.

    The first observation that matches a candidate fixes the answer and is
    reported to ``notifier``. If nothing matches, the first candidate is kept
    so that the generated assertion fails at this statement.
    """

    def __init__(self, possibilities: Iterable[Any], notifier: Callable[[Any], None] | None = None) -> None:
        self.possibilities = list(possibilities)
        if not self.possibilities:
            raise ValueError("no possibilities!")
        self.notifier = notifier
        self.delegate: Result | None = None

    def __repr__(self) -> str:
        return f"ChoiceResult({self.possibilities!r})"

    @property
    def resolved(self) -> bool:
        return self.delegate is not None

    def get_value(self) -> Any:
        self._check_resolved()
        return self.delegate.get_value()

    def gen_assert(self, builder: LiteralBuilder, code: str) -> str:
        self._check_resolved()
        return self.delegate.gen_assert(builder, code)

    def includes(self, actual: Result) -> bool:
        if self.delegate is not None:
            raise RuntimeError("ChoiceResult has already been checked")
        if isinstance(actual, (ChoiceResult, ObjectChoiceResult)):
            raise ValueError("cannot have choices on both sides!")
        if isinstance(actual, NormalResult):
            for candidate in self.possibilities:
                if NormalResult(candidate).includes(actual):
                    self.delegate = NormalResult(candidate)
                    if self.notifier is not None:
                        self.notifier(candidate)
                    return True
        self.delegate = NormalResult(self.possibilities[0])
        return False


class ObjectChoiceResult(Result):
    """
    One of several already-registered objects (or None).

    Combines ObjectResult and ChoiceResult. With several candidates it cannot
    handle a newly created object: every candidate must be registered before
    the comparison. A single candidate is checked like an ObjectResult.
    """

    def __init__(
        self,
        test_class: TestClass,
        possibilities: Iterable[Any],
        notifier: Callable[[Any], None] | None = None,
    ) -> None:
        self.test_class = test_class
        self.possibilities = list(possibilities)
        if not self.possibilities:
            raise ValueError("no possibilities!")
        self.notifier = notifier
        self.delegate: Result | None = None

    def __repr__(self) -> str:
        return f"ObjectChoiceResult({self.test_class.type_name}, {self.possibilities!r})"

    @property
    def resolved(self) -> bool:
        return self.delegate is not None

    def get_value(self) -> Any:
        self._check_resolved()
        return self.delegate.get_value()

    def gen_assert(self, builder: LiteralBuilder, code: str) -> str:
        self._check_resolved()
        return self.delegate.gen_assert(builder, code)

    def _fix(self, candidate: Any, actual: Result) -> bool:
        if candidate is None:
            self.delegate = NormalResult(None)
        else:
            self.delegate = ObjectResult(self.test_class, candidate)
        return self.delegate.includes(actual)

    def includes(self, actual: Result) -> bool:
        if self.delegate is not None:
            raise RuntimeError("ObjectChoiceResult has already been checked")
        if isinstance(actual, (ChoiceResult, ObjectChoiceResult)):
            raise ValueError("cannot have choices on both sides!")
        if len(self.possibilities) == 1:
            # A single answer behaves like a plain ObjectResult and may register it.
            candidate = self.possibilities[0]
            matched = self._fix(candidate, actual)
            if matched and self.notifier is not None:
                self.notifier(candidate)
            return matched
        for candidate in self.possibilities:
            if candidate is not None and self.test_class.index_of(candidate) == -1:
                raise LookupError(f"choice {candidate!r} was never registered as a {self.test_class.type_name}")

        if isinstance(actual, NormalResult):
            for candidate in self.possibilities:
                if candidate is None:
                    matched = actual.value is None
                else:
                    index = self.test_class.index_of(candidate)
                    matched = actual.value is not None and actual.value is self.test_class.get_sut_object(index)
                if matched:
                    self._fix(candidate, actual)
                    if self.notifier is not None:
                        self.notifier(candidate)
                    return True
        self._fix(self.possibilities[0], actual)
        return False
