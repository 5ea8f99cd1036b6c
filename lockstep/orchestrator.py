"""
This module contains the RandomTest driver and the lockstep command-line entry point.

The driver is the "brain" of a differential random-testing run. A harness
subclasses RandomTest, registers the types it wants to exercise, and
implements ``random_command``. The driver then repeatedly draws a command,
runs it on the reference implementation and on the SUT, compares the two
outcomes, and records a replay statement for it. The first divergence (or a
hang) ends the run and the recorded statements are printed as a unittest
module reproducing the failure.

Counterexamples are kept short without any shrinking: sequences are cut off
and restarted once they reach the current test size, and the test size only
doubles when a whole command budget passes without a failure.
"""

from __future__ import annotations

import argparse
import importlib
import os
import random
import sys
import traceback
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from textwrap import dedent
from typing import Any, Callable, TextIO

from lockstep.commands import Command, MethodCommand, NewCommand, ObjectArgCommand
from lockstep.lifting import lift_object
from lockstep.literals import LiteralBuilder, to_literal
from lockstep.metadata import generate_run_metadata, get_process_rss_mb
from lockstep.registry import TestClass
from lockstep.report import render_test_module
from lockstep.results import NormalResult, ObjectResult, Result
from lockstep.timeout import TimeoutExecutor
from lockstep.utils import RunOutcome, TeeLogger, load_run_stats, record_outcome, save_run_stats

DEFAULT_TIMEOUT = 1.0  # seconds allowed per step
DEFAULT_TOTAL = 100_000  # commands per attempt
DEFAULT_INITIAL_TEST_SIZE = 10
DEFAULT_MAX_TEST_SIZE = 1000
STARTUP_TIMEOUT_FACTOR = 5  # startup can be slow
PROGRESS_INTERVAL = 100_000

LOGS_DIR = Path("logs")

REFERENCE_TIMEOUT_MESSAGE = (
    "# ! Timeout in reference implementation. Please report this test to the harness maintainer."
)


def assertions_enabled() -> bool:
    """Return whether ``assert`` statements run (False under python -O)."""
    return __debug__


class TestState(Enum):
    """Which part of a step is currently running."""

    __test__ = False

    FRAMEWORK = auto()  # Choosing, comparing, and recording commands.
    REFERENCE = auto()  # Executing a command on the reference implementation.
    SUT = auto()  # Executing a command on the system under test.


class RandomTest(LiteralBuilder):
    """
    Differential random tester of a SUT type against a reference type.

    Subclasses implement ``random_command`` using the builder helpers
    (``create``, ``build``, ``build_object``, ``clone``,
    ``build_with_object``), which wrap lifted reference/SUT callables into
    command factories. The class attribute ``imports`` lists the import
    lines the generated test needs.
    """

    imports: tuple[str, ...] = ()
    class_name = "TestGen"

    def __init__(
        self,
        ref_class: type,
        sut_class: type,
        type_name: str | None = None,
        prefix: str | None = None,
        total: int = DEFAULT_TOTAL,
        max_test_size: int = DEFAULT_MAX_TEST_SIZE,
        initial_test_size: int = DEFAULT_INITIAL_TEST_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        seed: int | None = None,
        asserts_required: bool = True,
        out: TextIO | None = None,
        exit_func: Callable[[int], Any] | None = None,
        on_timeout: Callable[[RunOutcome], Any] | None = None,
    ):
        """
        Set up the driver and register the main type.

        Args:
            ref_class: Class of the reference implementation.
            sut_class: Class of the system under test.
            type_name: Name of the SUT type in generated code.
            prefix: Variable prefix for SUT objects in generated code.
            total: Number of commands to try per attempt (unless a failure
                is found earlier).
            max_test_size: Largest sequence length to escalate to.
            initial_test_size: Sequence length of the first attempt.
            timeout: Seconds a single step may take before it is a hang.
            seed: Seed for the command generator's random source.
            asserts_required: Refuse to run when assertions are disabled.
            out: Stream receiving the generated test (default: sys.stdout).
            exit_func: Called with the exit status after a hang was reported
                (default: os._exit, since the hung step cannot be interrupted).
            on_timeout: Called on the watchdog thread with the timeout outcome
                just before exit_func, e.g. to record run statistics.
        """
        if asserts_required and not assertions_enabled():
            print("[!] Turn on assertions to run random testing.", file=sys.stderr)
            print("    Run Python without the -O flag (and without PYTHONOPTIMIZE).", file=sys.stderr)
            sys.exit(1)

        self.total = total
        self.max_test_size = max_test_size
        self.initial_test_size = initial_test_size
        self.timeout = timeout
        self.random = random.Random(seed)
        self._out = out
        self._exit = exit_func or os._exit
        self.on_timeout = on_timeout

        self._classes: list[TestClass] = []
        self.main_class = self.register_mutable_class(ref_class, sut_class, type_name, prefix)

        self._steps: list[tuple[Command, Result | None]] = []
        self._state = TestState.FRAMEWORK
        self._current_command: Command | None = None
        self.timer: TimeoutExecutor | None = None
        self.commands_executed = 0
        self.current_test_size = 0
        self._timeout_outcome: RunOutcome | None = None

    @property
    def out(self) -> TextIO:
        """Stream receiving the generated test."""
        return self._out if self._out is not None else sys.stdout

    # --- Registered types and the LiteralBuilder contract ---

    def register_mutable_class(
        self,
        ref_class: type,
        sut_class: type | None = None,
        type_name: str | None = None,
        prefix: str | None = None,
    ) -> TestClass:
        """
        Register a type whose objects are compared by identity.

        Args:
            ref_class: Class of the objects on the reference side.
            sut_class: Class of the objects on the SUT side (default: ref_class).
            type_name: Name of the SUT type in generated code.
            prefix: Short variable prefix for objects of this type.
        """
        test_class = TestClass(ref_class, sut_class or ref_class, type_name, prefix)
        self._classes.append(test_class)
        return test_class

    def class_for(self, value: Any) -> TestClass | None:
        """Return the registered type owning a reference-side value, if any."""
        for test_class in self._classes:
            if test_class.owns(value):
                return test_class
        return None

    def _name_of(self, value: Any) -> str | None:
        for test_class in self._classes:
            index = test_class.index_of(value)
            if index >= 0:
                return test_class.get_identifier(index)
        return None

    def to_string(self, value: Any) -> str | None:
        if self.is_mutable_object(value):
            return self._name_of(value)
        return to_literal(value, self._name_of)

    def is_mutable_object(self, value: Any) -> bool:
        return value is not None and self.class_for(value) is not None

    def register_mutable_object(self, ref: Any, sut: Any) -> str:
        test_class = self.class_for(ref)
        if test_class is None:
            raise ValueError(f"{type(ref).__name__} is not a registered class")
        return test_class.register(ref, sut)

    def get_test_object(self, name: str) -> Any:
        for test_class in self._classes:
            suffix = name[len(test_class.prefix):]
            if name.startswith(test_class.prefix) and suffix.isdigit():
                index = int(suffix)
                if index < test_class.size():
                    return test_class.get_sut_object(index)
        raise LookupError(f"no object registered as {name!r}")

    # --- Command builders for harnesses ---

    def new_command(self, test_class: TestClass | None = None) -> Command:
        """Return a command calling the registered classes' no-argument constructors."""
        if test_class is None:
            test_class = self.main_class
        return NewCommand(test_class, test_class.ref_class, test_class.sut_class)

    def create(
        self,
        ref_constructor: Callable[..., Any],
        sut_constructor: Callable[..., Any] | None = None,
        *,
        test_class: TestClass | None = None,
    ) -> Callable[..., Command]:
        """
        Return a factory of constructor commands.

        The factory takes the (scalar) constructor arguments. The new objects
        are registered when the command's results are compared.
        """
        if test_class is None:
            test_class = self.main_class
        sut_constructor = sut_constructor or ref_constructor

        def factory(*args: Any) -> Command:
            return NewCommand(test_class, ref_constructor, sut_constructor, *args)

        return factory

    def build(
        self,
        method_name: str,
        ref_func: Callable[..., Result],
        sut_func: Callable[..., Result] | None = None,
        *,
        test_class: TestClass | None = None,
    ) -> Callable[..., Command]:
        """
        Return a factory of method-call commands with scalar arguments.

        ``ref_func``/``sut_func`` must be lifted (see lockstep.lifting). The
        factory takes the receiver's slot index followed by the arguments.
        """
        if test_class is None:
            test_class = self.main_class
        sut_func = sut_func or ref_func

        def factory(index: int, *args: Any) -> Command:
            return MethodCommand(test_class, index, ref_func, sut_func, method_name, *args)

        return factory

    def build_object(
        self,
        method_name: str,
        out_class: TestClass,
        ref_func: Callable[..., Any],
        sut_func: Callable[..., Any] | None = None,
        *,
        test_class: TestClass | None = None,
    ) -> Callable[..., Command]:
        """
        Return a factory of commands for a method returning a registered object.

        ``ref_func``/``sut_func`` are plain (unlifted) callables; their results
        are compared by identity as objects of ``out_class``, e.g. a
        collection's ``iterator`` method.
        """
        return self.build(
            method_name,
            lift_object(out_class, ref_func),
            lift_object(out_class, sut_func or ref_func),
            test_class=test_class,
        )

    def clone(
        self,
        method_name: str,
        ref_func: Callable[..., Any],
        sut_func: Callable[..., Any] | None = None,
        *,
        test_class: TestClass | None = None,
    ) -> Callable[..., Command]:
        """Return a factory of commands for a method returning a new object of the same type."""
        if test_class is None:
            test_class = self.main_class
        return self.build_object(method_name, test_class, ref_func, sut_func, test_class=test_class)

    def build_with_object(
        self,
        method_name: str,
        ref_func: Callable[..., Result],
        sut_func: Callable[..., Result] | None = None,
        *,
        arg_class: TestClass | None = None,
        test_class: TestClass | None = None,
    ) -> Callable[..., Command]:
        """
        Return a factory of commands whose first argument is a registered object.

        The factory takes the receiver's slot, the argument's slot in
        ``arg_class`` (default: the receiver's class), and any scalar
        arguments that follow.
        """
        if test_class is None:
            test_class = self.main_class
        if arg_class is None:
            arg_class = test_class
        sut_func = sut_func or ref_func

        def factory(index: int, arg_index: int, *args: Any) -> Command:
            return ObjectArgCommand(test_class, arg_class, index, arg_index, ref_func, sut_func, method_name, *args)

        return factory

    # --- The random-testing loop ---

    def random_command(self, rng: random.Random) -> Command:
        """
        Compute a random command that can be executed at the current point.

        Registries are empty at the start of every sequence, so the generator
        must be able to create the first objects itself.
        """
        raise NotImplementedError

    def clear(self) -> None:
        """Start a new sequence with all new objects."""
        for test_class in self._classes:
            test_class.clear()
        self._steps.clear()

    def start_watchdog(self) -> TimeoutExecutor:
        """(Re)start the hang detector with the startup allowance."""
        if self.timer is not None:
            self.timer.cancel()
        self.timer = TimeoutExecutor(self._do_timeout, self.timeout * STARTUP_TIMEOUT_FACTOR)
        return self.timer

    def _promote(self, result: Result) -> Result:
        # Plain values of a registered type still compare by identity.
        if type(result) is NormalResult and self.is_mutable_object(result.value):
            return ObjectResult(self.class_for(result.value), result.value)
        return result

    def test_command(self, command: Command) -> bool:
        """
        Run one command on both sides, compare, and record the statement.

        Returns:
            False if the SUT diverged or a hang was already declared.
        """
        if self.timer is None:
            raise RuntimeError("the watchdog is not running; call run() or start_watchdog() first")
        if not self.timer.defer(self.timeout):
            return False
        self._state = TestState.REFERENCE
        self._current_command = command
        expected = self._promote(command.execute(True))
        if not self.timer.defer(self.timeout):
            return False
        self._state = TestState.SUT
        actual = command.execute(False)
        if not self.timer.defer(self.timeout):
            return False
        self._state = TestState.FRAMEWORK
        self.commands_executed += 1
        result = expected.includes(actual)
        self._steps.append((command, expected))
        return result

    def test_sequence(self, test_size: int) -> None:
        """
        Run up to ``total`` random commands in sequences of at most ``test_size``.

        Returns early, keeping the recorded statements, on the first
        divergence or hang; otherwise everything is cleared at the end.
        """
        count = 0
        self.clear()
        print(f"# Testing sequences of {test_size} commands.", file=self.out)
        while count < self.total:
            self._state = TestState.FRAMEWORK
            if not self.timer.defer(self.timeout):
                return
            count += 1
            if count % PROGRESS_INTERVAL == 0:
                print(f"# {count} tests passed", file=self.out)
            if len(self._steps) >= test_size:
                self.clear()
            command = self.random_command(self.random)
            if not self.test_command(command):
                return
        self.clear()

    def statements(self) -> list[str]:
        """Render the recorded statements of the current sequence."""
        rendered = []
        for command, expected in self._steps:
            if expected is None:
                rendered.append(f"{command.code(self)}  # timeout")
            else:
                rendered.append(expected.gen_assert(self, command.code(self)))
        return rendered

    def print_test(self) -> str:
        """Print the generated test module for the current sequence and return it."""
        source = render_test_module(self.statements(), self.imports, self.class_name)
        self.out.write(source)
        self.out.flush()
        return source

    def _do_timeout(self) -> None:
        """Report a hang; runs on the watchdog thread."""
        state = self._state
        if state is TestState.FRAMEWORK:
            print(
                "[!!!] CRITICAL: Timeout while the framework itself was running "
                "(is random_command() stuck?).",
                file=sys.stderr,
            )
            sys.stderr.flush()
            self._exit(1)
            return
        if state is TestState.REFERENCE:
            print(REFERENCE_TIMEOUT_MESSAGE, file=self.out)
        print(
            f"[!] Step exceeded {self.timeout}s in {state.name}: {self._current_command!r}",
            file=sys.stderr,
        )
        self._steps.append((self._current_command, None))
        statements = self.statements()
        self._timeout_outcome = RunOutcome(
            status=RunOutcome.TIMEOUT,
            test_size=self.current_test_size,
            commands_executed=self.commands_executed,
            statements=statements,
            source=self.print_test(),
        )
        if self.on_timeout is not None:
            self.on_timeout(self._timeout_outcome)
        sys.stderr.flush()
        self._exit(0)

    def run(self) -> RunOutcome:
        """
        Search for a failing sequence, escalating the sequence length.

        Starts with ``initial_test_size`` and doubles it after every attempt
        that exhausts the command budget without a failure, up to
        ``max_test_size``. Prints the generated test (a trivially passing one
        if nothing was found) and returns the outcome.
        """
        self.start_watchdog()
        test_size = self.initial_test_size
        try:
            while test_size <= self.max_test_size:
                self.current_test_size = test_size
                self.test_sequence(test_size)
                if self.timer.executed() or self._steps:
                    break
                test_size *= 2
        finally:
            self.timer.cancel()

        if self.timer.executed():
            # The hang report is written on the watchdog thread.
            self.timer.join()
            outcome = self._timeout_outcome or RunOutcome(
                status=RunOutcome.TIMEOUT,
                test_size=self.current_test_size,
                commands_executed=self.commands_executed,
            )
        else:
            statements = self.statements()
            outcome = RunOutcome(
                status=RunOutcome.DIVERGENCE if statements else RunOutcome.PASSED,
                test_size=self.current_test_size,
                commands_executed=self.commands_executed,
                statements=statements,
                source=self.print_test(),
            )
        self.clear()
        return outcome


def load_harness(target: str) -> type[RandomTest]:
    """
    Import a harness class given as ``package.module:ClassName``.

    Raises:
        ValueError: If the target is malformed or does not name a RandomTest subclass.
    """
    module_name, sep, class_name = target.partition(":")
    if not sep or not module_name or not class_name:
        raise ValueError(f"harness must be given as 'module:ClassName', got {target!r}")
    module = importlib.import_module(module_name)
    harness = getattr(module, class_name, None)
    if not (isinstance(harness, type) and issubclass(harness, RandomTest)):
        raise ValueError(f"{target!r} is not a RandomTest subclass")
    return harness


def main(argv: list[str] | None = None) -> None:
    """Parse command-line arguments and run a harness."""
    parser = argparse.ArgumentParser(
        description="lockstep: differential random testing against a reference implementation."
    )
    parser.add_argument(
        "harness",
        help="The harness class as 'package.module:ClassName' (a RandomTest subclass).",
    )
    parser.add_argument(
        "--total",
        type=int,
        default=DEFAULT_TOTAL,
        help=f"Number of commands to try per sequence length. (Default: {DEFAULT_TOTAL})",
    )
    parser.add_argument(
        "--initial-test-size",
        type=int,
        default=DEFAULT_INITIAL_TEST_SIZE,
        help="Length of the sequences in the first attempt.",
    )
    parser.add_argument(
        "--max-test-size",
        type=int,
        default=DEFAULT_MAX_TEST_SIZE,
        help="Largest sequence length to escalate to (doubling from the initial size).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Seconds a single step may run before it is declared a hang.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the random command generator.",
    )
    parser.add_argument(
        "--no-asserts-required",
        action="store_true",
        help="Run even if assertions are disabled (python -O).",
    )
    parser.add_argument(
        "--metadata",
        type=Path,
        default=None,
        help="Save run metadata (host, hardware, configuration) to this JSON file.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress comments in the output.",
    )
    args = parser.parse_args(argv)

    try:
        harness_class = load_harness(args.harness)
    except (ImportError, ValueError) as e:
        print(f"[!] Error: could not load harness: {e}", file=sys.stderr)
        sys.exit(2)

    LOGS_DIR.mkdir(exist_ok=True)
    run_start_time = datetime.now()
    safe_timestamp = run_start_time.isoformat().replace(":", "-").replace("+", "Z")
    log_path = LOGS_DIR / f"lockstep_run_{safe_timestamp}.log"

    metadata = generate_run_metadata(args, args.metadata)
    header = f"""
================================================================================
LOCKSTEP RANDOM TESTING RUN
================================================================================
- Harness:           {args.harness}
- Hostname:          {metadata["environment"]["hostname"]}
- Platform:          {metadata["environment"]["os"]}
- Python Version:    {sys.version.replace(chr(10), " ")}
- CPUs / RAM:        {metadata["hardware"]["cpu_count_logical"]} / {metadata["hardware"]["total_ram_gb"]} GB
- Log File:          {log_path}
- Start Time:        {metadata["start_time"]}
- Commands/Attempt:  {args.total}
- Sequence Lengths:  {args.initial_test_size} .. {args.max_test_size}
- Step Timeout:      {args.timeout} seconds
================================================================================
"""
    print(dedent(header), file=sys.stderr)

    original_stdout = sys.stdout
    tee_logger = TeeLogger(log_path, original_stdout, verbose=not args.quiet)
    sys.stdout = tee_logger

    termination_reason = "Completed"
    outcome: RunOutcome | None = None
    recorded_outcomes: list[RunOutcome] = []

    def record_timeout(timeout_outcome: RunOutcome) -> None:
        # The default exit after a hang skips the summary below.
        save_run_stats(record_outcome(load_run_stats(), timeout_outcome))
        recorded_outcomes.append(timeout_outcome)

    try:
        harness = harness_class(
            total=args.total,
            max_test_size=args.max_test_size,
            initial_test_size=args.initial_test_size,
            timeout=args.timeout,
            seed=args.seed,
            asserts_required=not args.no_asserts_required,
            on_timeout=record_timeout,
        )
        outcome = harness.run()
    except KeyboardInterrupt:
        print("\n[!] Random testing stopped by user.", file=sys.stderr)
        termination_reason = "KeyboardInterrupt"
    except Exception as e:
        termination_reason = f"Error: {e}"
        print(f"\n[!!!] An unexpected error occurred in the harness: {e}", file=sys.stderr)
        traceback.print_exc(file=sys.stderr)
    finally:
        tee_logger.close()
        sys.stdout = original_stdout

        duration = datetime.now() - run_start_time
        if outcome is not None:
            if outcome not in recorded_outcomes:
                save_run_stats(record_outcome(load_run_stats(), outcome))
            result_line = f"{outcome.status} ({len(outcome.statements)} statements)"
            commands = outcome.commands_executed
            test_size = outcome.test_size
        else:
            result_line, commands, test_size = "none", 0, 0

        summary = f"""
================================================================================
RANDOM TESTING SUMMARY
================================================================================
- Termination:       {termination_reason}
- Result:            {result_line}
- Commands Run:      {commands}
- Final Test Size:   {test_size}
- Total Duration:    {duration}
- Process RSS:       {get_process_rss_mb()} MB
================================================================================
"""
        print(dedent(summary), file=sys.stderr)
        print(f"[+] Full log saved to: {log_path}", file=sys.stderr)


if __name__ == "__main__":
    main()
