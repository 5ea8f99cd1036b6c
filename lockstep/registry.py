"""
Object registry pairing reference objects with their SUT counterparts.

Every command script runs twice, once against the reference implementation
and once against the SUT, so each object exists twice. A TestClass keeps the
two worlds aligned: slot ``i`` holds the reference object and the SUT object
that were produced by the same command, and the generated test names that
pair ``prefix + i``. Lookups are by identity, never by equality.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

R = TypeVar("R")
S = TypeVar("S")


class TestClass(Generic[R, S]):
    """
    Registry for one logical type of the system under test.

    Created once per type when the harness is set up, cleared between
    generated sequences, and never destroyed during a run.
    """

    # Keep pytest from collecting this as a test case.
    __test__ = False

    def __init__(
        self,
        ref_class: type[R],
        sut_class: type[S],
        type_name: str | None = None,
        prefix: str | None = None,
    ) -> None:
        """
        Args:
            ref_class: Class of the objects from the reference implementation.
            sut_class: Class of the objects from the SUT.
            type_name: Name used for the type in generated code. Defaults to
                the SUT class name.
            prefix: Variable name prefix in generated code. Defaults to the
                lower-cased first letter of the reference class name.
        """
        self.ref_class = ref_class
        self.sut_class = sut_class
        self.type_name = type_name or sut_class.__name__
        self.prefix = prefix or ref_class.__name__[0].lower()
        self._refs: list[R] = []
        self._suts: list[S] = []
        # id() is stable because _refs keeps every registered object alive.
        self._index_by_id: dict[int, int] = {}

    def __repr__(self) -> str:
        return f"TestClass({self.type_name!r}, prefix={self.prefix!r}, size={self.size()})"

    def __len__(self) -> int:
        return self.size()

    def size(self) -> int:
        """Return how many pairs have been registered."""
        return len(self._refs)

    def owns(self, value: Any) -> bool:
        """Return whether ``value`` is an instance of the reference class."""
        return isinstance(value, self.ref_class)

    def register(self, ref: R, sut: S) -> str:
        """
        Append a (reference, SUT) pair.

        Returns:
            The identifier of the new slot.
        """
        index = len(self._refs)
        self._refs.append(ref)
        self._suts.append(sut)
        self._index_by_id[id(ref)] = index
        return self.prefix + str(index)

    def index_of(self, ref: Any) -> int:
        """Return the slot holding exactly this reference object, or -1."""
        return self._index_by_id.get(id(ref), -1)

    def get_identifier(self, index: int) -> str:
        """Return the generated-code name of slot ``index``."""
        if index < 0:
            return "None"
        if index >= len(self._refs):
            raise IndexError(f"no {self.type_name} registered at index {index}")
        return self.prefix + str(index)

    def next_identifier(self) -> str:
        """Return the name the next registered pair will get."""
        return self.prefix + str(len(self._refs))

    def get_ref_object(self, index: int) -> R | None:
        """Return the reference object in slot ``index`` (None for a negative index)."""
        if index < 0:
            return None
        return self._refs[index]

    def get_sut_object(self, index: int) -> S | None:
        """Return the SUT object in slot ``index`` (None for a negative index)."""
        if index < 0:
            return None
        return self._suts[index]

    def clear(self) -> None:
        """Forget every registered pair."""
        self._refs.clear()
        self._suts.clear()
        self._index_by_id.clear()
