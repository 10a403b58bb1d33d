"""
Tests for the docmake command line.

Verifies:
1. `build` runs the graph and reports, and a second run has nothing to do.
2. `--json` emits the structured report.
3. Planning errors exit 2 before anything runs; failed builds exit 1.
4. `plan`, `list` and `clean`.
"""

import json

import pytest
from click.testing import CliRunner

from docmake.cli import cli

TARGETS = '''
import sys
from docmake.dsl import table, target, phony
from docmake.model import Action

WRITE = "import sys, pathlib; pathlib.Path(sys.argv[1]).write_text(sys.argv[2])"


def write(text):
    return Action(argv=(sys.executable, "-c", WRITE, "$TARGET", text))


def targets(config):
    return table(
        target("$GENERATED/data.txt", write("$VERSION")),
        target("$DOC_OUTPUT_DIR/index.html", write("index $FLAVOR $TIMESTAMP"), deps=["$GENERATED/data.txt"]),
        phony("all", deps=["$DOC_OUTPUT_DIR/index.html"]),
        phony("broken", Action(argv=(sys.executable, "-c", "raise SystemExit(4)"))),
        phony("loop", deps=["loop2"]),
        phony("loop2", deps=["loop"]),
    )
'''

UNDEFINED = '''
from docmake.dsl import table, target
from docmake.actions import cmd

TARGETS = table(target("$NOT_DEFINED/x", cmd("touch", "$TARGET")))
'''


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("DOCMAKE_ROOT", "DOCMAKE_FLAVOR", "DOCMAKE_JOBS", "DOCMAKE_DIFFABLE", "DOCMAKE_TARGETS"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def site(tmp_path):
    (tmp_path / "docmake_targets.py").write_text(TARGETS)
    return tmp_path


def _run(*args):
    return CliRunner().invoke(cli, list(args))


def test_build_then_nothing_to_do(site):
    first = _run("build", "--root", str(site), "--doc-version", "2.109.0")
    assert first.exit_code == 0, first.output
    assert "RESULTS" in first.output
    assert "SUCCEEDED" in first.output
    assert (site / ".generated" / "data.txt").read_text() == "2.109.0"
    assert (site / "web" / "index.html").read_text().startswith("index stable ")

    second = _run("build", "--root", str(site))
    assert second.exit_code == 0
    assert "NOTHING TO DO" in second.output


def test_build_json_report(site):
    result = _run("-q", "build", "all", "--root", str(site), "--json")
    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["outcome"] == "succeeded"
    assert report["actions_run"] == 2
    assert report["built"] == [".generated/data.txt", "web/index.html"]


def test_diffable_flag_pins_timestamp(site):
    result = _run("-q", "build", "--root", str(site), "--diffable", "--flavor", "prerelease")
    assert result.exit_code == 0, result.output
    assert (site / "web" / "index.html").read_text() == "index prerelease DIFFABLE"


def test_failed_build_exits_1(site):
    result = _run("build", "broken", "all", "--root", str(site))
    assert result.exit_code == 1
    assert "1 TARGET FAILED" in result.output
    assert (site / "web" / "index.html").exists()


def test_unknown_target_exits_2(site):
    result = _run("build", "nope", "--root", str(site))
    assert result.exit_code == 2
    assert "Unknown target 'nope'" in result.output


def test_cycle_exits_2(site):
    result = _run("build", "loop", "--root", str(site))
    assert result.exit_code == 2
    assert "loop -> loop2 -> loop" in result.output


def test_undefined_variable_exits_2(site):
    (site / "undefined.py").write_text(UNDEFINED)
    result = _run("build", "--root", str(site), "--targets", "undefined.py")
    assert result.exit_code == 2
    assert "$NOT_DEFINED" in result.output


def test_bad_var_exits_2(site):
    result = _run("build", "--root", str(site), "--var", "oops")
    assert result.exit_code == 2
    assert "KEY=VALUE" in result.output


def test_missing_targets_file(tmp_path):
    result = _run("build", "--root", str(tmp_path))
    assert result.exit_code == 1
    assert "Targets file not found" in result.output


def test_plan_runs_nothing(site):
    result = _run("plan", "--root", str(site))
    assert result.exit_code == 0, result.output
    assert "rebuild  web/index.html" in result.output
    assert "2 of 3 target(s) would rebuild" in result.output
    assert not (site / "web").exists()


def test_list(site):
    result = _run("list", "--root", str(site))
    assert result.exit_code == 0, result.output
    assert "web/index.html" in result.output
    assert "broken" in result.output


def test_clean_removes_derived_dirs(site):
    _run("build", "--root", str(site))
    assert (site / "web").exists()

    result = _run("clean", "--root", str(site))
    assert result.exit_code == 0
    assert not (site / "web").exists()
    assert not (site / ".generated").exists()
    assert (site / "docmake_targets.py").exists()
