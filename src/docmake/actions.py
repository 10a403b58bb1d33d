# actions.py
# Helpers that build typed actions for the external tools the documentation
# build drives. Nothing here runs anything; the runner does.

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from .model import Action

# observed policy for network fetches: small fixed retry count, fixed delay
FETCH_RETRIES = 3
FETCH_DELAY = 5.0


def cmd(
    *argv: str,
    cwd: str | None = None,
    env: Optional[Dict[str, str]] = None,
    stdout: str | None = None,
    volatile: bool = False,
) -> Action:
    """A plain external command."""
    if not argv:
        raise ValueError("cmd() needs at least the program name")
    return Action(argv=tuple(argv), cwd=cwd, env=dict(env or {}), stdout=stdout, volatile=volatile)


# ---------------------------------------------------------------------
# Version control
# ---------------------------------------------------------------------

def git_clone(
    url: str,
    rev: str,
    dest: str,
    *,
    depth: int | None = 1,
    retries: int = FETCH_RETRIES,
    delay: float = FETCH_DELAY,
) -> Tuple[Action, ...]:
    """
    Fresh clone of `url` at branch/tag `rev` into `dest`.

    The destination is removed first so a stale checkout is replaced.
    Only the clone itself is retried.
    """
    argv: List[str] = ["git", "clone", "--quiet", "-b", rev]
    if depth is not None:
        argv += [f"--depth={depth}"]
    argv += [url, dest]
    return (
        Action(argv=("rm", "-rf", dest)),
        Action(argv=tuple(argv), retries=retries, retry_delay=delay),
    )


def fetch(url: str, dest: str, *, retries: int = FETCH_RETRIES, delay: float = FETCH_DELAY) -> Action:
    """Download a remote file (e.g. an article or changelog) with curl."""
    return Action(
        argv=("curl", "--fail", "--silent", "--show-error", "--location", "-o", dest, url),
        retries=retries,
        retry_delay=delay,
    )


# ---------------------------------------------------------------------
# Documentation tools
# ---------------------------------------------------------------------

def ddoc(
    source: str,
    output: str,
    macros: Sequence[str] = (),
    *,
    compiler: str = "$DMD",
    flags: Sequence[str] = (),
    cwd: str | None = None,
    volatile: bool = False,
) -> Action:
    """Run the documentation compiler: source + macro files -> HTML."""
    argv = [compiler, "-conf=", "-c", "-o-", f"-Df{output}", *flags, *macros, source]
    return Action(argv=tuple(argv), cwd=cwd, volatile=volatile)


def apidoc_json(sources: Sequence[str], output: str, *, compiler: str = "$DMD", flags: Sequence[str] = ()) -> Action:
    """Extract the structured doc database the API-doc generator consumes."""
    argv = [compiler, "-c", "-o-", "-D", "-Dd/dev/null", f"-Xf{output}", *flags, *sources]
    return Action(argv=tuple(argv))


def apidoc_html(database: str, outdir: str, *, generator: str = "$DDOX", flags: Sequence[str] = ()) -> Action:
    """Render the doc database to HTML with the API-doc generator."""
    return Action(argv=(generator, "generate-html", "--navigation-type=ModuleTree", *flags, database, outdir))


def latex(tex: str, outdir: str, *, passes: int = 2, engine: str = "pdflatex") -> Tuple[Action, ...]:
    """Typeset a PDF; several passes resolve cross references."""
    argv = (engine, f"-output-directory={outdir}", "-interaction=nonstopmode", "-halt-on-error", tex)
    return tuple(Action(argv=argv) for _ in range(passes))


def ebook(opf: str, output_name: str, *, packager: str = "kindlegen") -> Action:
    """Package an ebook from its OPF manifest."""
    return Action(argv=(packager, opf, "-o", output_name))


# ---------------------------------------------------------------------
# Files & publishing
# ---------------------------------------------------------------------

def copy(src: str, dest: str) -> Action:
    return Action(argv=("cp", "-R", src, dest))


def stamp(path: str) -> Action:
    """Touch a marker file recording that a step finished."""
    return Action(argv=("touch", path))


def rsync(src: str, dest: str, *, delete: bool = True, extra: Sequence[str] = ()) -> Action:
    """Publish a directory tree (world-readable, optionally mirroring deletions)."""
    argv = ["rsync", "-avz", "--chmod=u=rwX,go=rX"]
    if delete:
        argv.append("--delete")
    argv += [*extra, src, dest]
    return Action(argv=tuple(argv), retries=FETCH_RETRIES, retry_delay=FETCH_DELAY)
