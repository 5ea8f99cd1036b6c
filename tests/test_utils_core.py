"""
Tests for the utils module (lockstep/utils.py).

This module tests run stats loading/saving, TeeLogger, and RunOutcome.
"""

import json
import tempfile
import unittest
from io import StringIO
from pathlib import Path
from unittest.mock import patch

from lockstep.report import PASSING_MODULE
from lockstep.utils import (
    RunOutcome,
    TeeLogger,
    _default_run_stats,
    load_run_stats,
    record_outcome,
    save_run_stats,
)


class TestLoadRunStats(unittest.TestCase):
    """Tests for load_run_stats function."""

    def test_returns_default_when_file_not_exists(self):
        """Test that default structure is returned when file doesn't exist."""
        with patch.object(Path, "is_file", return_value=False):
            stats = load_run_stats()

        self.assertIn("start_time", stats)
        self.assertEqual(stats["total_runs"], 0)
        self.assertEqual(stats["divergences_found"], 0)

    def test_loads_and_fills_missing_fields(self):
        """Test loading an older stats file with fields missing."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            stats_file = Path(tmp_dir) / "lockstep_run_stats.json"
            stats_file.write_text(json.dumps({"start_time": "2025-01-01T00:00:00", "total_runs": 4}))

            with patch("lockstep.utils.RUN_STATS_FILE", stats_file):
                stats = load_run_stats()

        self.assertEqual(stats["start_time"], "2025-01-01T00:00:00")
        self.assertEqual(stats["total_runs"], 4)
        self.assertEqual(stats["timeouts_found"], 0)

    def test_corrupt_file_starts_fresh(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            stats_file = Path(tmp_dir) / "lockstep_run_stats.json"
            stats_file.write_text("{not json")

            with patch("lockstep.utils.RUN_STATS_FILE", stats_file), patch("sys.stderr", new_callable=StringIO) as err:
                stats = load_run_stats()

        self.assertEqual(stats["total_runs"], 0)
        self.assertIn("Warning", err.getvalue())


class TestSaveAndRecord(unittest.TestCase):
    """Tests for save_run_stats and record_outcome."""

    def test_save_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            stats_file = Path(tmp_dir) / "lockstep_run_stats.json"
            with patch("lockstep.utils.RUN_STATS_FILE", stats_file):
                stats = _default_run_stats()
                stats["total_runs"] = 3
                save_run_stats(stats)
                self.assertEqual(load_run_stats()["total_runs"], 3)

    def test_record_outcome_counts(self):
        """Test that each outcome kind bumps its own counter."""
        stats = _default_run_stats()
        record_outcome(stats, RunOutcome(RunOutcome.DIVERGENCE, 20, 150))
        record_outcome(stats, RunOutcome(RunOutcome.TIMEOUT, 10, 5))
        record_outcome(stats, RunOutcome(RunOutcome.PASSED, 1000, 600))

        self.assertEqual(stats["total_runs"], 3)
        self.assertEqual(stats["total_commands"], 755)
        self.assertEqual(stats["divergences_found"], 1)
        self.assertEqual(stats["timeouts_found"], 1)
        self.assertEqual(stats["clean_runs"], 1)
        self.assertIsNotNone(stats["last_update_time"])


class TestTeeLogger(unittest.TestCase):
    """Tests for TeeLogger."""

    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.log_path = Path(self.tmp_dir.name) / "run.log"
        self.stream = StringIO()

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_writes_to_both(self):
        logger = TeeLogger(self.log_path, self.stream)
        print("c0 = Counter()", file=logger)
        logger.close()

        self.assertEqual(self.stream.getvalue(), "c0 = Counter()\n")
        self.assertEqual(self.log_path.read_text(), "c0 = Counter()\n")

    def test_quiet_mode_drops_progress_comments(self):
        """Test that progress lines and their newlines are suppressed in quiet mode."""
        logger = TeeLogger(self.log_path, self.stream, verbose=False)
        print("# Testing sequences of 10 commands.", file=logger)
        print("# 100000 tests passed", file=logger)
        print("import unittest", file=logger)
        logger.close()

        self.assertEqual(self.stream.getvalue(), "import unittest\n")
        self.assertEqual(self.log_path.read_text(), "import unittest\n")

    def test_quiet_mode_keeps_generated_module(self):
        """Test that a generated module written in one piece is never dropped."""
        logger = TeeLogger(self.log_path, self.stream, verbose=False)
        logger.write(PASSING_MODULE)
        logger.close()

        self.assertEqual(self.stream.getvalue(), PASSING_MODULE)

    def test_verbose_mode_keeps_everything(self):
        logger = TeeLogger(self.log_path, self.stream)
        print("# 100000 tests passed", file=logger)
        logger.close()

        self.assertEqual(self.stream.getvalue(), "# 100000 tests passed\n")

    def test_stream_attributes(self):
        logger = TeeLogger(self.log_path, self.stream)
        self.assertFalse(logger.isatty())
        with self.assertRaises(OSError):
            logger.fileno()
        logger.close()


class TestRunOutcome(unittest.TestCase):
    """Tests for RunOutcome."""

    def test_found_bug(self):
        self.assertFalse(RunOutcome(RunOutcome.PASSED, 10, 0).found_bug)
        self.assertTrue(RunOutcome(RunOutcome.DIVERGENCE, 10, 3).found_bug)
        self.assertTrue(RunOutcome(RunOutcome.TIMEOUT, 10, 3).found_bug)

    def test_defaults(self):
        outcome = RunOutcome(RunOutcome.PASSED, 10, 0)
        self.assertEqual(outcome.statements, [])
        self.assertEqual(outcome.source, "")


if __name__ == "__main__":
    unittest.main()
