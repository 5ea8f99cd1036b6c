"""
Generate run metadata for lockstep random-testing runs.

This module captures a description of the environment a run executed in
(host, interpreter, hardware) together with the run configuration, so that a
generated counterexample can be traced back to how it was found.
"""

import argparse
import json
import os
import platform
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import psutil

from lockstep import __version__


def get_hardware_info() -> dict[str, Any]:
    """Return CPU, memory, and process figures for the current host."""
    try:
        load_1min = psutil.getloadavg()[0]
    except (OSError, AttributeError):
        load_1min = None
    return {
        "cpu_count_logical": psutil.cpu_count(logical=True),
        "cpu_count_physical": psutil.cpu_count(logical=False),
        "total_ram_gb": round(psutil.virtual_memory().total / (1024**3), 2),
        "process_rss_mb": get_process_rss_mb(),
        "system_load_1min": load_1min,
    }


def get_process_rss_mb() -> float:
    """Return the resident set size of this process in megabytes."""
    return round(psutil.Process().memory_info().rss / (1024 * 1024), 2)


def generate_run_metadata(args: argparse.Namespace, output_path: Path | None = None) -> dict:
    """
    Collect run metadata and optionally save it to a JSON file.

    Args:
        args: Parsed command-line arguments (the run configuration).
        output_path: Where to write the metadata; nothing is written if None.

    Returns:
        Dictionary containing all collected metadata.
    """
    metadata = {
        "run_id": str(uuid.uuid4()),
        "start_time": datetime.now(timezone.utc).isoformat(),
        "environment": {
            "hostname": platform.node(),
            "os": platform.platform(),
            "python_version": sys.version,
            "python_executable": sys.executable,
            "assertions_enabled": __debug__,
            "lockstep_version": __version__,
            "pid": os.getpid(),
        },
        "hardware": get_hardware_info(),
        "configuration": {
            "args": vars(args),
            "working_dir": str(Path.cwd()),
        },
    }

    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(metadata, f, indent=2, default=str)
        print(f"[+] Run metadata saved to {output_path}", file=sys.stderr)

    return metadata
