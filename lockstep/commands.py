"""
Commands: single operations that can run on either implementation.

A command knows how to execute itself against the reference implementation
or against the SUT, producing a Result, and how to render itself as Python
source for the generated regression test. Commands are immutable once built;
constructor commands register the new pair of objects indirectly, through
the ObjectResult they return.

Code templates:
    A template without ``$`` is a method name: ``("push", "s0", "3")``
    renders as ``s0.push(3)``. Otherwise ``$0``..``$9`` are replaced by the
    receiver and arguments, so ``"len($0)"`` renders as ``len(s0)``. A
    backslash makes the next template character literal.
"""

from __future__ import annotations

from typing import Any, Callable

from lockstep.literals import LiteralBuilder
from lockstep.registry import TestClass
from lockstep.results import ExceptionResult, ObjectResult, Result


def render_template(template: str, *args: str) -> str:
    """Render a method name or ``$``-template with already-rendered arguments."""
    if args and "$" not in template:
        return f"{args[0]}.{template}({', '.join(args[1:])})"
    parts = []
    chars = iter(template)
    for ch in chars:
        if ch == "\\":
            parts.append(next(chars, ""))
        elif ch == "$":
            parts.append(args[int(next(chars))])
        else:
            parts.append(ch)
    return "".join(parts)


def _render_args(builder: LiteralBuilder, args: tuple[Any, ...]) -> list[str]:
    rendered = []
    for arg in args:
        literal = builder.to_string(arg)
        if literal is None:
            raise LookupError(f"argument {arg!r} is an unregistered object")
        rendered.append(literal)
    return rendered


class Command:
    """An operation with a reference-side and a SUT-side execution path."""

    def execute(self, as_reference: bool) -> Result:
        """Run the operation on one side and return its outcome."""
        raise NotImplementedError

    def code(self, builder: LiteralBuilder) -> str:
        """Return a Python expression replaying the operation on the SUT."""
        raise NotImplementedError


class DefaultCommand(Command):
    """A command given directly as two result suppliers and fixed code."""

    def __init__(self, ref_supplier: Callable[[], Result], sut_supplier: Callable[[], Result], code: str) -> None:
        self._ref_supplier = ref_supplier
        self._sut_supplier = sut_supplier
        self._code = code

    def __repr__(self) -> str:
        return f"DefaultCommand({self._code!r})"

    def execute(self, as_reference: bool) -> Result:
        return self._ref_supplier() if as_reference else self._sut_supplier()

    def code(self, builder: LiteralBuilder) -> str:
        return self._code


class NewCommand(Command):
    """Construct a new instance of a registered type from scalar arguments."""

    def __init__(
        self,
        test_class: TestClass,
        ref_constructor: Callable[..., Any],
        sut_constructor: Callable[..., Any],
        *args: Any,
    ) -> None:
        self.test_class = test_class
        self.ref_constructor = ref_constructor
        self.sut_constructor = sut_constructor
        self.args = args

    def __repr__(self) -> str:
        return f"NewCommand({self.test_class.type_name}, {self.args!r})"

    def execute(self, as_reference: bool) -> Result:
        constructor = self.ref_constructor if as_reference else self.sut_constructor
        try:
            return ObjectResult(self.test_class, constructor(*self.args))
        except Exception as e:
            return ExceptionResult(e)

    def code(self, builder: LiteralBuilder) -> str:
        return f"{self.test_class.type_name}({', '.join(_render_args(builder, self.args))})"


class MethodCommand(Command):
    """
    Call a method on a registered receiver with scalar arguments.

    ``ref_func`` and ``sut_func`` are lifted: they take the receiver and the
    arguments and return a Result.
    """

    def __init__(
        self,
        test_class: TestClass,
        index: int,
        ref_func: Callable[..., Result],
        sut_func: Callable[..., Result],
        method_name: str,
        *args: Any,
    ) -> None:
        self.test_class = test_class
        self.index = index
        self.ref_func = ref_func
        self.sut_func = sut_func
        self.method_name = method_name
        self.args = args

    def __repr__(self) -> str:
        return f"MethodCommand({self.test_class.prefix}{self.index}.{self.method_name}, {self.args!r})"

    def execute(self, as_reference: bool) -> Result:
        if as_reference:
            return self.ref_func(self.test_class.get_ref_object(self.index), *self.args)
        return self.sut_func(self.test_class.get_sut_object(self.index), *self.args)

    def code(self, builder: LiteralBuilder) -> str:
        return render_template(
            self.method_name,
            self.test_class.get_identifier(self.index),
            *_render_args(builder, self.args),
        )


class ObjectArgCommand(Command):
    """
    Call a method whose first argument is itself a registered object.

    The argument is given by its slot in ``arg_class``, so each side receives
    its own twin of that object. Extra scalar arguments may follow.
    """

    def __init__(
        self,
        test_class: TestClass,
        arg_class: TestClass,
        index: int,
        arg_index: int,
        ref_func: Callable[..., Result],
        sut_func: Callable[..., Result],
        method_name: str,
        *args: Any,
    ) -> None:
        self.test_class = test_class
        self.arg_class = arg_class
        self.index = index
        self.arg_index = arg_index
        self.ref_func = ref_func
        self.sut_func = sut_func
        self.method_name = method_name
        self.args = args

    def __repr__(self) -> str:
        return (
            f"ObjectArgCommand({self.test_class.prefix}{self.index}.{self.method_name}"
            f"({self.arg_class.prefix}{self.arg_index}), {self.args!r})"
        )

    def execute(self, as_reference: bool) -> Result:
        if as_reference:
            return self.ref_func(
                self.test_class.get_ref_object(self.index),
                self.arg_class.get_ref_object(self.arg_index),
                *self.args,
            )
        return self.sut_func(
            self.test_class.get_sut_object(self.index),
            self.arg_class.get_sut_object(self.arg_index),
            *self.args,
        )

    def code(self, builder: LiteralBuilder) -> str:
        return render_template(
            self.method_name,
            self.test_class.get_identifier(self.index),
            self.arg_class.get_identifier(self.arg_index),
            *_render_args(builder, self.args),
        )
