"""
This module contains generic, reusable helper functions and classes for lockstep.

It includes utilities for logging, managing run statistics, and structuring
the outcome of a random-testing run.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

RUN_STATS_FILE = Path("lockstep_run_stats.json")


def _default_run_stats() -> dict[str, Any]:
    """Return the canonical default run statistics structure."""
    return {
        "start_time": datetime.now(timezone.utc).isoformat(),
        "last_update_time": None,
        "total_runs": 0,
        "total_commands": 0,
        "divergences_found": 0,
        "timeouts_found": 0,
        "clean_runs": 0,
    }


def load_run_stats() -> dict[str, Any]:
    """
    Load the persistent run statistics from the JSON file.
    Returns a default structure if the file doesn't exist.
    """
    if not RUN_STATS_FILE.is_file():
        return _default_run_stats()
    try:
        with open(RUN_STATS_FILE, "r", encoding="utf-8") as f:
            stats: dict[str, Any] = json.load(f)
            # Fill in any fields missing from older stats files
            defaults = _default_run_stats()
            for key, value in defaults.items():
                if key != "start_time":
                    stats.setdefault(key, value)
            return stats
    except (json.JSONDecodeError, IOError) as e:
        print(
            f"Warning: Could not load run stats file. Starting fresh. Error: {e}",
            file=sys.stderr,
        )
        return _default_run_stats()


def save_run_stats(stats: dict[str, Any]) -> None:
    """Save the updated run statistics to the JSON file."""
    try:
        with open(RUN_STATS_FILE, "w", encoding="utf-8") as f:
            json.dump(stats, f, indent=2, sort_keys=True)
    except (IOError, OSError) as e:
        print(
            f"Warning: Could not save run stats: {e}",
            file=sys.stderr,
        )


def record_outcome(stats: dict[str, Any], outcome: "RunOutcome") -> dict[str, Any]:
    """Fold one run's outcome into the cumulative statistics."""
    stats["last_update_time"] = datetime.now(timezone.utc).isoformat()
    stats["total_runs"] = stats.get("total_runs", 0) + 1
    stats["total_commands"] = stats.get("total_commands", 0) + outcome.commands_executed
    key = {
        RunOutcome.DIVERGENCE: "divergences_found",
        RunOutcome.TIMEOUT: "timeouts_found",
        RunOutcome.PASSED: "clean_runs",
    }[outcome.status]
    stats[key] = stats.get(key, 0) + 1
    return stats


class TeeLogger:
    """
    A file-like object that writes to both a file and another stream
    (like the original stdout), and flushes immediately.

    The generated test is written through this logger, so lines are never
    rewritten or merged. When verbose=False, progress comments emitted
    between attempts are suppressed from both console and file.
    """

    # Lines matching these prefixes are suppressed in quiet mode.
    _QUIET_SUPPRESS_PREFIXES: tuple[str, ...] = (
        "# Testing sequences of",
    )
    _QUIET_SUPPRESS_SUFFIXES: tuple[str, ...] = ("tests passed",)

    def __init__(
        self,
        file_path: str | Path,
        original_stream: TextIO,
        verbose: bool = True,
    ) -> None:
        """Initialize the logger with a file path and an existing stream.

        Args:
            file_path: Path to the log file.
            original_stream: The original stream (e.g., sys.stdout) to tee to.
            verbose: If False, suppress progress comments. Default True.
        """
        self.original_stream = original_stream
        self.log_file = open(file_path, "w", encoding="utf-8")
        self.verbose = verbose
        # Track whether the last write was suppressed, so the trailing
        # "\n" from print() can be swallowed too.
        self._last_was_suppressed: bool = False

    def _is_suppressed(self, line: str) -> bool:
        """Check if a line should be suppressed in quiet mode."""
        if self.verbose:
            return False
        stripped = line.strip()
        return stripped.startswith(self._QUIET_SUPPRESS_PREFIXES) or (
            stripped.startswith("#") and stripped.endswith(self._QUIET_SUPPRESS_SUFFIXES)
        )

    def write(self, message: str) -> None:
        """Write a message to both the original stream and the log file."""
        if message == "\n" and self._last_was_suppressed:
            self._last_was_suppressed = False
            return
        if message and self._is_suppressed(message):
            self._last_was_suppressed = True
            return
        self._last_was_suppressed = False
        self.original_stream.write(message)
        self.log_file.write(message)
        self.flush()

    def flush(self) -> None:
        """Flush both underlying streams."""
        self.original_stream.flush()
        self.log_file.flush()

    def close(self) -> None:
        """Flush and close the log file."""
        self.flush()
        self.log_file.close()

    @property
    def encoding(self) -> str:
        """Return the encoding of the original stream."""
        return getattr(self.original_stream, "encoding", "utf-8")

    def isatty(self) -> bool:
        """Return whether the original stream is a TTY."""
        return hasattr(self.original_stream, "isatty") and self.original_stream.isatty()

    def fileno(self) -> int:
        """Return the file descriptor of the original stream.

        Raises OSError if the original stream doesn't have a file descriptor.
        """
        if hasattr(self.original_stream, "fileno"):
            return self.original_stream.fileno()
        raise OSError("TeeLogger does not have a file descriptor")


@dataclass
class RunOutcome:
    """What a call to RandomTest.run() found."""

    PASSED = "passed"
    DIVERGENCE = "divergence"
    TIMEOUT = "timeout"

    status: str
    test_size: int
    commands_executed: int
    statements: list[str] = field(default_factory=list)
    source: str = ""

    @property
    def found_bug(self) -> bool:
        """Return True if the run produced a failing test."""
        return self.status != self.PASSED
