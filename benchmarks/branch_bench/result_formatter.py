"""
Result formatting and reporting for branch experiment runs.

Handles the console report, JSON output, and hardware metadata.
"""
import json
import platform
from datetime import datetime
from typing import Any, Dict, Optional

import psutil

from branch_bench.timing import TimingReport


class ExperimentResults:
    """Everything recorded by one experiment run."""

    def __init__(self, mode: str, sample_count: int, threshold: float,
                 report: Optional[TimingReport] = None,
                 diff_counts: Optional[Dict[str, Optional[int]]] = None,
                 connection: Optional[Dict[str, Any]] = None):
        self.timestamp = datetime.now().isoformat()
        self.hardware_info = self._get_hardware_info()
        self.mode = mode
        self.sample_count = sample_count
        self.threshold = threshold
        self.report = report if report is not None else TimingReport()
        self.diff_counts = diff_counts if diff_counts is not None else {}
        self.connection = connection or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'hardware': self.hardware_info,
            'connection': self.connection,
            'mode': self.mode,
            'sample_count': self.sample_count,
            'threshold': self.threshold,
            'timings': [
                {'label': label, 'seconds': seconds}
                for label, seconds in self.report.entries
            ],
            'diff_counts': self.diff_counts,
        }

    def to_json(self, indent: int = 2) -> str:
        """Export results to JSON format."""
        return json.dumps(self.to_dict(), indent=indent)

    def save_json(self, filepath: str):
        """Save results to JSON file."""
        with open(filepath, 'w') as f:
            f.write(self.to_json())
            f.write("\n")

    def _get_hardware_info(self) -> Dict[str, Any]:
        return {
            'cpu': platform.processor() or platform.machine(),
            'cpu_count': psutil.cpu_count(logical=False),
            'memory_gb': round(psutil.virtual_memory().total / (1024**3), 1),
            'os': f"{platform.system()} {platform.release()}",
            'python': platform.python_version()
        }


def format_diff_counts(diff_counts: Dict[str, Optional[int]]) -> str:
    """Format parsed diff row counts; steps whose output had no count are skipped."""
    counted = [(label, count) for label, count in diff_counts.items() if count is not None]
    if not counted:
        return ""

    lines = ["Diff counts:"]
    for label, count in counted:
        lines.append(f"  {label}: {count} rows")
    return "\n".join(lines)


def format_report(results: ExperimentResults) -> str:
    """Timings block followed by the diff counts block, whichever are non-empty."""
    blocks = [results.report.format(), format_diff_counts(results.diff_counts)]
    return "\n".join(block for block in blocks if block)
