"""
Step timing and sampling-table cleanup for the branch experiment.
"""

import sys
import time
from typing import Callable, List, Tuple

from branch_bench.experiment_sql import SAMPLING_TABLE, drop_table_sql


class StepFailedError(Exception):
    """A pipeline step's statement exited non-zero; the run must stop."""

    def __init__(self, label: str, returncode: int):
        super().__init__(f"{label} failed (exit {returncode})")
        self.label = label
        self.returncode = returncode


class TimingReport:
    """Ordered, append-only (label, seconds) pairs."""

    def __init__(self):
        self.entries: List[Tuple[str, float]] = []

    def add(self, label: str, seconds: float):
        self.entries.append((label, round(seconds, 3)))

    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self.entries]

    def __len__(self):
        return len(self.entries)

    def format(self) -> str:
        """Render the `Timings:` block, or an empty string when nothing was recorded."""
        if not self.entries:
            return ""

        lines = ["Timings:"]
        for label, seconds in self.entries:
            lines.append(f"  {label}: {seconds:.3f}s")
        return "\n".join(lines)


def measure(report: TimingReport, label: str, action: Callable[[], int]) -> float:
    """
    Time one step and record it.

    Args:
        report: Report to append to on success
        label: Step label
        action: Zero-argument callable returning an exit status

    Returns:
        Elapsed seconds (rounded to milliseconds)

    Raises:
        StepFailedError: If the action returned a non-zero status
    """
    start = time.perf_counter()
    try:
        status = action()
    finally:
        end = time.perf_counter()

    if status != 0:
        print(f"ERROR: {label} failed (exit {status})", file=sys.stderr)
        raise StepFailedError(label, status)

    elapsed = round(end - start, 3)
    report.add(label, elapsed)
    return elapsed


def require_success(label: str, status: int):
    """Untimed counterpart of measure(): raise if a statement failed."""
    if status != 0:
        print(f"ERROR: {label} failed (exit {status})", file=sys.stderr)
        raise StepFailedError(label, status)


class SamplingTableGuard:
    """
    Drops the sampling table on exit from the `with` block while armed.

    Arm right after the table is created and disarm right after it is dropped
    in the normal flow. The exit-time drop is best effort: its failure is
    ignored so the original error and exit status surface unchanged.
    """

    def __init__(self, client):
        self.client = client
        self.armed = False

    def arm(self):
        self.armed = True

    def disarm(self):
        self.armed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if self.armed:
            self.armed = False
            try:
                self.client.run_sql(drop_table_sql(SAMPLING_TABLE))
            except OSError as e:
                print(f"Warning: could not drop {SAMPLING_TABLE}: {e}", file=sys.stderr)
        return False
