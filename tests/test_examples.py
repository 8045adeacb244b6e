"""Smoke tests for example scripts.

The example scripts are run in a subprocess so that a broken import or a
crash in their main execution path shows up in the test suite.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def test_optimization_demo_runs() -> None:
    """Test that examples/optimization_demo.py runs successfully."""
    script = ROOT / "examples" / "optimization_demo.py"
    assert script.exists(), f"Example script not found: {script}"

    result = subprocess.run(
        [sys.executable, str(script)],
        capture_output=True,
        text=True,
        check=False,
        timeout=120,
    )

    assert result.returncode == 0, (
        f"Example script failed with return code {result.returncode}.\n"
        f"STDOUT:\n{result.stdout}\n"
        f"STDERR:\n{result.stderr}"
    )

    assert "All examples completed successfully!" in result.stdout
    assert "MINPACK-1 Reference Problems" in result.stdout
