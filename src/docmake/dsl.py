# src/docmake/dsl.py
from __future__ import annotations

from typing import Any, Callable, Iterable, List, Optional, Sequence, Union

from .graph import TargetTable
from .model import Action, PatternRule, Target

Steps = Union[Action, Sequence[Action]]


def _flatten(steps: Iterable[Steps]) -> tuple[Action, ...]:
    # helpers like git_clone() return several actions
    out: List[Action] = []
    for s in steps:
        if isinstance(s, Action):
            out.append(s)
        else:
            out.extend(s)
    return tuple(out)


# ---------------------------------------------------------------------
# Functional helpers
# ---------------------------------------------------------------------

def target(
    name: str,
    *steps: Steps,
    deps: Optional[Sequence[str]] = None,
    output: Optional[str] = None,
) -> Target:
    """A file target; its output defaults to its name."""
    return Target(
        name=name,
        deps=tuple(deps or ()),
        steps=_flatten(steps),
        output=output if output is not None else name,
    )


def phony(name: str, *steps: Steps, deps: Optional[Sequence[str]] = None) -> Target:
    """A symbolic target with no file; always runs when requested."""
    return Target(name=name, deps=tuple(deps or ()), steps=_flatten(steps), output=None)


def rule(pattern: str, *steps: Steps, deps: Optional[Sequence[str]] = None) -> PatternRule:
    """
    Pattern rule: rule("$DOC_OUTPUT_DIR/%.html", ddoc(...), deps=["%.dd"]).
    """
    return PatternRule(pattern=pattern, deps=tuple(deps or ()), steps=_flatten(steps))


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class TargetBuilder:
    def __init__(self, name: str):
        self.name = name
        self._deps: list[str] = []
        self._steps: list[Action] = []
        self._output: Optional[str] = name
        self._phony = False

    def depends_on(self, *names: str):
        self._deps.extend(names)
        return self

    def run(self, *steps: Steps):
        self._steps.extend(_flatten(steps))
        return self

    def produces(self, path: str):
        self._output = path
        self._phony = False
        return self

    def as_phony(self):
        self._phony = True
        return self

    def build(self) -> Target:
        return Target(
            name=self.name,
            deps=tuple(self._deps),
            steps=tuple(self._steps),
            output=None if self._phony else self._output,
        )


def build(name: str) -> TargetBuilder:
    """Convenience: build('web/index.html').depends_on(...).run(...).build()"""
    return TargetBuilder(name)


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

class Matrix:
    """
    Minimal matrix expander.

    Example:
        matrix("repo", ["dmd", "druntime", "phobos"]).targets(
            lambda r: target(f"$GENERATED/{r}", git_clone(...))
        )
    """
    def __init__(self, key: str, values: Iterable[Any]):
        self.key = key
        self.values = list(values)

    def targets(self, builder: Callable[[Any], Target]) -> List[Target]:
        return [builder(v) for v in self.values]


def matrix(key: str, values: Iterable[Any]) -> Matrix:
    return Matrix(key, values)


# ---------------------------------------------------------------------
# Table helper
# ---------------------------------------------------------------------

def table(*items: Union[Target, PatternRule, Iterable[Target]]) -> TargetTable:
    """
    Gather targets, lists of targets (from matrix) and pattern rules into a
    TargetTable. Rules keep their declaration order; the first match wins.
    """
    targets: List[Target] = []
    rules: List[PatternRule] = []
    for item in items:
        if isinstance(item, Target):
            targets.append(item)
        elif isinstance(item, PatternRule):
            rules.append(item)
        else:
            targets.extend(item)
    return TargetTable.from_targets(targets, rules)
