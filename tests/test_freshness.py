"""
Tests for modification-time staleness checks.
"""

from docmake.freshness import is_stale, mtime_ns
from docmake.model import Action, Target

from conftest import set_mtime, write

NOOP = Action(argv=("true",))


def _file(name, steps=(NOOP,)):
    return Target(name=name, output=name, steps=tuple(steps))


def test_missing_path_has_no_mtime(root):
    assert mtime_ns(root / "nope") is None


def test_directory_uses_newest_contained_file(root):
    write(root / "d" / "a.txt", mtime=100)
    write(root / "d" / "sub" / "b.txt", mtime=300)
    write(root / "d" / "c.txt", mtime=200)
    assert mtime_ns(root / "d") == 300 * 1_000_000_000


def test_empty_directory_uses_own_mtime(root):
    d = root / "empty"
    d.mkdir()
    set_mtime(d, 42)
    assert mtime_ns(d) == 42 * 1_000_000_000


def test_missing_output_is_stale(root):
    assert is_stale(_file("out"), [], root)


def test_existing_output_without_deps_is_fresh(root):
    write(root / "out", mtime=100)
    assert not is_stale(_file("out"), [], root)


def test_equal_timestamps_are_fresh(root):
    write(root / "src", mtime=100)
    write(root / "out", mtime=100)
    assert not is_stale(_file("out"), [_file("src", ())], root)


def test_strictly_newer_dependency_is_stale(root):
    write(root / "src", mtime=101)
    write(root / "out", mtime=100)
    assert is_stale(_file("out"), [_file("src", ())], root)


def test_older_dependency_is_fresh(root):
    write(root / "src", mtime=99)
    write(root / "out", mtime=100)
    assert not is_stale(_file("out"), [_file("src", ())], root)


def test_phony_target_always_stale(root):
    assert is_stale(Target(name="all"), [], root)


def test_phony_dependency_never_makes_dependent_stale(root):
    write(root / "out", mtime=100)
    assert not is_stale(_file("out"), [Target(name="prepare", steps=(NOOP,))], root)


def test_dependency_with_action_but_no_output_forces_rebuild(root):
    write(root / "out", mtime=100)
    assert is_stale(_file("out"), [_file("gen")], root)


def test_declared_dependency_without_action_or_file_is_ignored(root):
    write(root / "out", mtime=100)
    assert not is_stale(_file("out"), [_file("marker", ())], root)


def test_directory_dependency_stale_when_contained_file_newer(root):
    write(root / "repo" / "old.d", mtime=50)
    write(root / "out", mtime=100)
    dep = _file("repo")
    assert not is_stale(_file("out"), [dep], root)

    write(root / "repo" / "new.d", mtime=150)
    assert is_stale(_file("out"), [dep], root)
