# runner.py
from __future__ import annotations

import os
import runpy
import shutil
import subprocess
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple

from .config import DIFFABLE_PLACEHOLDER, BuildConfig
from .freshness import is_stale, output_path
from .graph import BuildGraph, TargetTable, build_dag, transitive_dependents
from .model import Action, PatternRule, Target
from .report import BuildReport, TargetStatus
from .ui.console import Console, get_console


TOOL_HINTS = {
    "dmd": "Build the compiler first (make -C ../dmd) or pass --var DMD=/path/to/dmd.",
    "git": "Install Git or fix PATH.",
    "rsync": "Install rsync or fix PATH.",
    "pdflatex": "Install a TeX distribution (e.g. texlive) or fix PATH.",
    "kindlegen": "Install kindlegen or skip the ebook targets.",
    "dub": "Install dub (needed for the API-doc generator).",
}

# keep the tail of tool output in failures
OUTPUT_TAIL = 4000

# what a suppressed volatile step leaves in its captured file
_PLACEHOLDER_BYTES = f"{DIFFABLE_PLACEHOLDER}\n".encode("utf-8")


# ----------------------------------------------------------------------
# Target declarations (local file)
# ----------------------------------------------------------------------

def load_targets(path: str | Path, config: BuildConfig | None = None) -> TargetTable:
    """
    Load target declarations from a python file.

    The file must define either:
      - targets(config) -> TargetTable | list
      - TARGETS = TargetTable | [Target | PatternRule, ...]
    """
    tf_path = Path(path).expanduser().resolve()
    if not tf_path.exists():
        raise FileNotFoundError(f"Targets file not found: {tf_path}")
    if tf_path.suffix != ".py":
        raise ValueError(f"Targets file must be a .py file, got: {tf_path.name}")

    module_name = f"docmake_targets_{tf_path.stem}"
    globals_dict = runpy.run_path(str(tf_path), run_name=module_name)

    if "targets" in globals_dict and callable(globals_dict["targets"]):
        declared = globals_dict["targets"](config or BuildConfig())
    elif "TARGETS" in globals_dict:
        declared = globals_dict["TARGETS"]
    else:
        raise TypeError(
            "Targets file must define targets(config) -> TargetTable or TARGETS = TargetTable."
        )

    if isinstance(declared, TargetTable):
        return declared
    if isinstance(declared, list) and all(isinstance(d, (Target, PatternRule)) for d in declared):
        return TargetTable.from_targets(
            [d for d in declared if isinstance(d, Target)],
            [d for d in declared if isinstance(d, PatternRule)],
        )
    raise TypeError(
        "Targets file must return/define a TargetTable or a list of Target/PatternRule."
    )


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class ActionFailure(Exception):
    target: str
    cmd: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    hint: str | None = None
    attempts: int = 1

    def __str__(self) -> str:
        msg = f"[{self.target}] command failed (exit={self.exit_code}): {self.cmd}"
        if self.attempts > 1:
            msg += f" (after {self.attempts} attempts)"
        detail = self.stderr.strip().splitlines()
        if detail:
            msg += f"\n{detail[-1]}"
        return msg


# ----------------------------------------------------------------------
# Per-invocation state
# ----------------------------------------------------------------------

@dataclass
class BuildContext:
    """
    Mutable state of one build invocation.

    The graph is read-only; completed and failed names are only ever added,
    under a single lock.
    """
    graph: BuildGraph
    diffable: bool = False
    console: Console = field(default_factory=get_console)
    completed: Set[str] = field(default_factory=set)
    failed: Dict[str, str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def root(self) -> Path:
        return self.graph.root

    def mark_completed(self, name: str) -> None:
        with self._lock:
            self.completed.add(name)

    def mark_failed(self, name: str, error: str) -> None:
        with self._lock:
            self.failed.setdefault(name, error)

    def has_failures(self) -> bool:
        with self._lock:
            return bool(self.failed)


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _env_for(action: Action, diffable: bool) -> Dict[str, str]:
    env = os.environ.copy()
    env.update(action.env)
    if diffable:
        env["SOURCE_DATE_EPOCH"] = "0"
    return env


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _write_stdout(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _run_action(target: Target, action: Action, ctx: BuildContext) -> None:
    console = ctx.console
    root = ctx.root

    if action.volatile and ctx.diffable:
        console.print_suppressed(target.name, action.command)
        if action.stdout is not None:
            _write_stdout(root / action.stdout, _PLACEHOLDER_BYTES)
        return

    cwd = (root / (action.cwd or ".")).resolve()
    if not cwd.exists():
        raise FileNotFoundError(f"[{target.name}] cwd not found: {cwd}")

    attempts = action.retries + 1
    for attempt in range(1, attempts + 1):
        console.print_command(target.name, action.command)
        try:
            proc = subprocess.run(
                list(action.argv),
                cwd=str(cwd),
                env=_env_for(action, ctx.diffable),
                capture_output=True,   # so we can show output on failure
            )
        except FileNotFoundError:
            tool = Path(action.argv[0]).name
            raise ActionFailure(
                target=target.name,
                cmd=action.command,
                exit_code=127,
                stderr=f"{tool}: command not found",
                hint=TOOL_HINTS.get(tool, f"Install {tool} or fix PATH."),
            )

        if proc.returncode == 0:
            if action.stdout is not None:
                _write_stdout(root / action.stdout, proc.stdout)
            elif console.debug and proc.stdout:
                console.print_info(_decode(proc.stdout).rstrip())
            return

        if attempt < attempts:
            console.print_retry(target.name, attempt, attempts, action.retry_delay)
            time.sleep(action.retry_delay)
            continue

        raise ActionFailure(
            target=target.name,
            cmd=action.command,
            exit_code=proc.returncode,
            stdout=_decode(proc.stdout)[-OUTPUT_TAIL:],
            stderr=_decode(proc.stderr)[-OUTPUT_TAIL:],
            attempts=attempts,
        )


def _written_in_other_mode(target: Target, root: Path, diffable: bool) -> bool:
    """
    True if a volatile step's captured output does not match the build mode:
    real content in a diffable build, or the placeholder in a normal one.
    """
    for action in target.steps:
        if not action.volatile or action.stdout is None:
            continue
        path = root / action.stdout
        if not path.is_file():
            return True
        if (path.read_bytes() == _PLACEHOLDER_BYTES) != diffable:
            return True
    return False


def needs_build(target: Target, deps: List[Target], root: Path, diffable: bool = False) -> bool:
    return is_stale(target, deps, root) or _written_in_other_mode(target, root, diffable)


def _remove_output(path: Path | None, console: Console) -> None:
    # like make's .DELETE_ON_ERROR: a partial output must not look fresh
    if path is None or not (path.exists() or path.is_symlink()):
        return
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
    console.print_debug(f"removed output of failed target: {path}")


def _build_target(target: Target, ctx: BuildContext) -> Tuple[str, TargetStatus]:
    """
    Check freshness and run the target's steps if stale.

    Called only once every dependency has completed. Returns
    (target_name, BUILT | FRESH | EVALUATED); raises on failure, after
    deleting whatever output the failed steps left behind.
    """
    deps = ctx.graph.deps_of(target)
    if not needs_build(target, deps, ctx.root, ctx.diffable):
        ctx.console.print_up_to_date(target.name)
        return target.name, TargetStatus.FRESH
    if not target.has_action:
        return target.name, TargetStatus.EVALUATED

    ctx.console.print_target_start(target.name)
    out = output_path(target, ctx.root)
    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)

    try:
        for action in target.steps:
            _run_action(target, action, ctx)
    except Exception:
        _remove_output(out, ctx.console)
        raise

    return target.name, TargetStatus.BUILT


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def plan_build(
    graph: BuildGraph,
    requested: Iterable[str],
    *,
    diffable: bool = False,
) -> List[Tuple[str, bool]]:
    """
    Predict which targets a build would rebuild, without running anything.

    A target is predicted to rebuild if its own freshness check fails or a
    non-phony dependency is predicted to rebuild.
    """
    ordered = graph.order(requested)
    will_run: Dict[str, bool] = {}

    for t in ordered:
        deps = graph.deps_of(t)
        stale = needs_build(t, deps, graph.root, diffable) or any(
            will_run[d.name] for d in deps if not d.phony
        )
        will_run[t.name] = stale and t.has_action

    return [(t.name, will_run[t.name]) for t in ordered]


def run_build(
    graph: BuildGraph,
    requested: Iterable[str],
    *,
    jobs: int = 1,
    keep_going: bool = True,
    diffable: bool = False,
    console: Console | None = None,
) -> BuildReport:
    """
    Build the requested targets and everything they depend on.

    Planning errors (unknown target, cycle) raise before any action runs.
    Action failures are collected into the report: the failed target's
    dependents are skipped, unrelated targets still build unless
    keep_going is False, in which case nothing new starts after the first
    failure and running actions are allowed to finish.
    """
    if jobs < 1:
        raise ValueError(f"jobs must be >= 1, got {jobs}")

    ordered = graph.order(requested)
    by_name = {t.name: t for t in ordered}
    position = {t.name: i for i, t in enumerate(ordered)}
    adj, indeg = build_dag(ordered)

    ctx = BuildContext(graph=graph, diffable=diffable, console=console or get_console())
    results: Dict[str, TargetStatus] = {}
    actions_run = 0

    ready: List[str] = [t.name for t in ordered if indeg[t.name] == 0]
    in_flight: Dict[Future, str] = {}

    with ThreadPoolExecutor(max_workers=jobs) as pool:
        while ready or in_flight:
            # schedule ready targets in dependency order, up to the worker limit
            while ready and len(in_flight) < jobs and (keep_going or not ctx.has_failures()):
                ready.sort(key=position.__getitem__)
                name = ready.pop(0)
                fut = pool.submit(_build_target, by_name[name], ctx)
                in_flight[fut] = name

            if not in_flight:
                break

            # wait for one completion, then loop to schedule newly-ready targets
            fut = next(as_completed(list(in_flight.keys())))
            name = in_flight.pop(fut)

            try:
                _, status = fut.result()
            except Exception as e:
                results[name] = TargetStatus.FAILED
                ctx.mark_failed(name, str(e))
                ctx.console.print_failure(
                    name,
                    str(e),
                    exit_code=getattr(e, "exit_code", None),
                    hint=getattr(e, "hint", None),
                )
                continue

            results[name] = status
            ctx.mark_completed(name)
            if status == TargetStatus.BUILT:
                actions_run += 1

            for nxt in adj[name]:
                indeg[nxt] -= 1
                if indeg[nxt] == 0:
                    ready.append(nxt)

    downstream: Set[str] = set()
    for name in ctx.failed:
        downstream |= transitive_dependents(adj, name)

    report = BuildReport(actions_run=actions_run)
    for t in ordered:
        if t.name in results:
            report.statuses[t.name] = results[t.name]
        elif t.name in downstream:
            report.statuses[t.name] = TargetStatus.SKIPPED_UPSTREAM
            ctx.console.print_skipped(t.name, "upstream failure")
        else:
            report.statuses[t.name] = TargetStatus.CANCELLED
            ctx.console.print_skipped(t.name, "stopped after failure")
    report.errors = dict(ctx.failed)

    return report
