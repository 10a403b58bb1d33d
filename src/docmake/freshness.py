# freshness.py
# Modification-time checks used to decide whether a target must be rebuilt.

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional

from .model import Target


def mtime_ns(path: Path) -> Optional[int]:
    """
    Return the modification time of a path in nanoseconds, or None if absent.

    A directory counts as new as the newest file it contains (recursively);
    an empty directory falls back to its own mtime.
    """
    try:
        st = path.stat()
    except FileNotFoundError:
        return None

    if not path.is_dir():
        return st.st_mtime_ns

    newest: Optional[int] = None
    for dirpath, _dirnames, filenames in os.walk(path):
        for fn in filenames:
            try:
                t = os.stat(os.path.join(dirpath, fn)).st_mtime_ns
            except FileNotFoundError:
                continue
            if newest is None or t > newest:
                newest = t

    return newest if newest is not None else st.st_mtime_ns


def output_path(target: Target, root: Path) -> Optional[Path]:
    if target.output is None:
        return None
    return root / target.output


def output_mtime(target: Target, root: Path) -> Optional[int]:
    p = output_path(target, root)
    return mtime_ns(p) if p is not None else None


def is_stale(target: Target, deps: Iterable[Target], root: Path) -> bool:
    """
    Decide whether `target` needs its action run.

    - phony targets are always stale
    - a missing output is stale
    - otherwise stale iff some dependency output is strictly newer
    - phony dependencies never make a dependent stale
    - a dependency with an action whose output is missing forces a rebuild
    """
    if target.phony:
        return True

    own = output_mtime(target, root)
    if own is None:
        return True

    for dep in deps:
        if dep.phony:
            continue
        t = output_mtime(dep, root)
        if t is None:
            if dep.has_action:
                return True
            continue
        if t > own:
            return True

    return False
