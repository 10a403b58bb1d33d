"""
Pytest configuration and fixtures.

Includes:
- Syspath patching so `docmake` imports without installing.
- A Recorder that builds real subprocess actions (the current interpreter)
  and logs which targets actually ran, in order.
- Helpers to pin file modification times.
"""

import os
import sys
from pathlib import Path

import pytest

# Add src to path so we can import 'docmake' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from docmake.dsl import table  # noqa: E402
from docmake.model import Action  # noqa: E402
from docmake.ui.console import Console  # noqa: E402


# writes argv[2] into argv[1] (if given) and appends argv[4] to the log argv[3]
RECORD_SCRIPT = (
    "import sys, pathlib\n"
    "out, text, log, name = sys.argv[1:5]\n"
    "if out:\n"
    "    p = pathlib.Path(out)\n"
    "    p.parent.mkdir(parents=True, exist_ok=True)\n"
    "    p.write_text(text)\n"
    "with open(log, 'a') as f:\n"
    "    f.write(name + '\\n')\n"
)

FAIL_SCRIPT = "import sys; sys.stderr.write('boom\\n'); sys.exit(int(sys.argv[1]))"


class Recorder:
    def __init__(self, root: Path):
        self.root = root
        self.log = root / "ran.log"

    def make(self, out: str, text: str = "built") -> Action:
        """Action that writes `out` and records it ran."""
        return Action(argv=(sys.executable, "-c", RECORD_SCRIPT, out, text, str(self.log), out))

    def note(self, name: str) -> Action:
        """Action that writes nothing, only records it ran."""
        return Action(argv=(sys.executable, "-c", RECORD_SCRIPT, "", "", str(self.log), name))

    def fail(self, code: int = 1) -> Action:
        return Action(argv=(sys.executable, "-c", FAIL_SCRIPT, str(code)))

    @property
    def ran(self) -> list:
        if not self.log.exists():
            return []
        return self.log.read_text().splitlines()

    def reset(self) -> None:
        if self.log.exists():
            self.log.unlink()


def set_mtime(path: Path, seconds: int) -> None:
    ns = seconds * 1_000_000_000
    os.utime(path, ns=(ns, ns))


def write(path: Path, text: str = "x", mtime: int | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    if mtime is not None:
        set_mtime(path, mtime)
    return path


@pytest.fixture
def root(tmp_path):
    return tmp_path


@pytest.fixture
def rec(root):
    return Recorder(root)


@pytest.fixture
def console():
    return Console(quiet=True)


@pytest.fixture
def bind(root):
    """bind(*targets_or_rules, variables=None) -> BuildGraph rooted at tmp_path."""
    def _bind(*items, variables=None):
        return table(*items).bind(variables or {}, root=root)
    return _bind
