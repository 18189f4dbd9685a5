"""
Tests for experiment result reporting.
"""
import json

from branch_bench.result_formatter import ExperimentResults, format_diff_counts, format_report
from branch_bench.timing import TimingReport


def _results(**kwargs):
    report = TimingReport()
    report.add("create T1 (branch clone)", 0.25)
    report.add("branch diff T2 vs T1", 1.5)
    return ExperimentResults(mode="branch", sample_count=10, threshold=715.8, report=report, **kwargs)


def test_hardware_info_collected():
    hw = ExperimentResults(mode="sql", sample_count=1, threshold=71.6).hardware_info
    assert set(hw) == {"cpu", "cpu_count", "memory_gb", "os", "python"}
    assert hw["memory_gb"] > 0


def test_to_dict():
    data = _results(diff_counts={"branch diff T2 vs T1": 20}).to_dict()

    assert data["mode"] == "branch"
    assert data["sample_count"] == 10
    assert data["threshold"] == 715.8
    assert data["timings"] == [
        {"label": "create T1 (branch clone)", "seconds": 0.25},
        {"label": "branch diff T2 vs T1", "seconds": 1.5},
    ]
    assert data["diff_counts"] == {"branch diff T2 vs T1": 20}


def test_save_json(tmp_path):
    path = tmp_path / "results.json"
    _results().save_json(str(path))

    data = json.loads(path.read_text())
    assert len(data["timings"]) == 2


def test_format_diff_counts_skips_unparsed():
    assert format_diff_counts({"branch diff T2 vs T1": None}) == ""
    assert format_diff_counts({"sql diff T2 vs T1": 8}) == "Diff counts:\n  sql diff T2 vs T1: 8 rows"


def test_format_report():
    text = format_report(_results(diff_counts={"branch diff T2 vs T1": 20}))
    assert text == (
        "Timings:\n"
        "  create T1 (branch clone): 0.250s\n"
        "  branch diff T2 vs T1: 1.500s\n"
        "Diff counts:\n"
        "  branch diff T2 vs T1: 20 rows"
    )


def test_format_report_empty():
    assert format_report(ExperimentResults(mode="sql", sample_count=1, threshold=71.6)) == ""
