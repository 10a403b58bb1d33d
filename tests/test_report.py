"""
Tests for the build report and its console rendering.
"""

from docmake.report import BuildReport, Outcome, TargetStatus
from docmake.ui.console import Console


def _report():
    r = BuildReport(actions_run=2)
    r.statuses = {
        "src": TargetStatus.FRESH,
        "a": TargetStatus.BUILT,
        "b": TargetStatus.FAILED,
        "c": TargetStatus.SKIPPED_UPSTREAM,
        "d": TargetStatus.BUILT,
        "e": TargetStatus.CANCELLED,
    }
    r.errors = {"b": "[b] command failed (exit=1): false"}
    return r


def test_outcomes():
    assert BuildReport().outcome == Outcome.NOTHING_TO_DO
    assert BuildReport(statuses={"a": TargetStatus.BUILT}, actions_run=1).outcome == Outcome.SUCCEEDED
    assert _report().outcome == Outcome.FAILED


def test_exit_code():
    assert BuildReport().exit_code == 0
    assert _report().exit_code == 1


def test_categories():
    r = _report()
    assert r.built == ["a", "d"]
    assert r.fresh == ["src"]
    assert r.failed == ["b"]
    assert r.skipped_upstream == ["c"]
    assert r.cancelled == ["e"]


def test_to_dict():
    d = _report().to_dict()
    assert d == {
        "outcome": "failed",
        "actions_run": 2,
        "built": ["a", "d"],
        "fresh": ["src"],
        "evaluated": [],
        "failed": {"b": "[b] command failed (exit=1): false"},
        "skipped_upstream": ["c"],
        "cancelled": ["e"],
    }


def test_console_report_lists_failures(capsys):
    Console().print_report(_report())
    out = capsys.readouterr().out
    assert "b: FAILED" in out
    assert "c: SKIPPED(UPSTREAM)" in out
    assert "src" not in out.split("RESULTS")[1].split("built=")[0]
    assert "built=2 fresh=1 failed=1 skipped=1 cancelled=1" in out
    assert "1 TARGET FAILED" in out


def test_console_failure_goes_to_stderr(capsys):
    Console().print_failure("web/a.html", "first line\nsecond line", exit_code=2, hint="Install dmd")
    err = capsys.readouterr().err
    assert "FAILED web/a.html" in err
    assert "Exit code: 2" in err
    assert "Hint: Install dmd" in err
    assert "Error: first line" in err
    assert "second line" not in err


def test_debug_console_shows_commands(capsys):
    Console(debug=True).print_command("t", "dmd -o- x.d")
    Console().print_command("t", "dmd -o- x.d")
    out = capsys.readouterr().out
    assert out.count("dmd -o- x.d") == 1
