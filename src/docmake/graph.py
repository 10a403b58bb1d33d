# graph.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .model import PatternRule, Target


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class UnknownTargetError(Exception):
    names: Tuple[str, ...]
    needed_by: str | None = None

    def __str__(self) -> str:
        listed = ", ".join(repr(n) for n in self.names)
        if self.needed_by:
            return f"No rule to make target {listed}, needed by {self.needed_by!r}"
        return f"Unknown target {listed}"


@dataclass
class CycleError(Exception):
    chain: Tuple[str, ...]

    def __str__(self) -> str:
        return "Dependency cycle: " + " -> ".join(self.chain)


@dataclass
class DuplicateTargetError(Exception):
    names: Tuple[str, ...]

    def __str__(self) -> str:
        return f"Duplicate target names found: {list(self.names)}"


# ----------------------------------------------------------------------
# Declared graph
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class TargetTable:
    """
    The static, declared target table.

    Names, outputs and commands are still templates; `bind` resolves them
    once per build invocation and returns a BuildGraph.
    """
    targets: Mapping[str, Target] = field(default_factory=dict)
    rules: Tuple[PatternRule, ...] = ()

    @classmethod
    def from_targets(cls, targets: Iterable[Target], rules: Iterable[PatternRule] = ()) -> "TargetTable":
        targets = list(targets)
        names = [t.name for t in targets]
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise DuplicateTargetError(tuple(dupes))
        return cls(
            targets=MappingProxyType({t.name: t for t in targets}),
            rules=tuple(rules),
        )

    def __contains__(self, name: str) -> bool:
        return name in self.targets

    def __len__(self) -> int:
        return len(self.targets)

    def bind(self, variables: Mapping[str, str], root: str | Path = ".") -> "BuildGraph":
        bound = [t.bind(variables) for t in self.targets.values()]
        # substitution can make two declarations collide
        table = TargetTable.from_targets(bound)
        return BuildGraph(
            targets=table.targets,
            rules=tuple(r.bind(variables) for r in self.rules),
            root=Path(root),
            variables=MappingProxyType(dict(variables)),
        )


# ----------------------------------------------------------------------
# Bound graph (one per build invocation)
# ----------------------------------------------------------------------

class BuildGraph:
    """
    Resolves names to concrete targets for one build invocation.

    Lookup order: declared targets, then pattern rules (first match wins,
    synthesized nodes are memoized), then existing files as implicit
    source leaves.
    """

    # how deep pattern rules may chain when checking a rule applies
    MAX_RULE_DEPTH = 4

    def __init__(
        self,
        targets: Mapping[str, Target],
        rules: Tuple[PatternRule, ...],
        root: Path,
        variables: Mapping[str, str],
    ):
        self.targets = targets
        self.rules = rules
        self.root = root
        self.variables = variables
        self._implicit: Dict[str, Target] = {}

    # -- lookup -------------------------------------------------------

    def _exists(self, name: str) -> bool:
        return (self.root / name).exists()

    def _can_make(self, name: str, depth: int) -> bool:
        if name in self.targets or name in self._implicit or self._exists(name):
            return True
        if depth >= self.MAX_RULE_DEPTH:
            return False
        return self._match_rule(name, depth + 1) is not None

    def _match_rule(self, name: str, depth: int = 0) -> Optional[Tuple[PatternRule, str]]:
        for rule in self.rules:
            stem = rule.match(name)
            if stem is None:
                continue
            deps = [d.replace("%", stem) for d in rule.deps]
            if all(self._can_make(d, depth) for d in deps):
                return rule, stem
        return None

    def find(self, name: str) -> Optional[Target]:
        """Return the target for `name`, or None if nothing can make it."""
        if name in self.targets:
            return self.targets[name]
        if name in self._implicit:
            return self._implicit[name]

        hit = self._match_rule(name)
        if hit is not None:
            rule, stem = hit
            node = rule.instantiate(name, stem, self.variables)
        elif self._exists(name):
            node = Target(name=name, output=name)
        else:
            return None

        self._implicit[name] = node
        return node

    def lookup(self, name: str, needed_by: str | None = None) -> Target:
        node = self.find(name)
        if node is None:
            raise UnknownTargetError((name,), needed_by=needed_by)
        return node

    def resolve(self, names: Iterable[str]) -> List[Target]:
        """Resolve requested names, reporting every unknown one at once."""
        names = list(dict.fromkeys(names))
        missing = [n for n in names if self.find(n) is None]
        if missing:
            raise UnknownTargetError(tuple(missing))
        return [self.lookup(n) for n in names]

    def deps_of(self, target: Target) -> List[Target]:
        return [self.lookup(d, needed_by=target.name) for d in dict.fromkeys(target.deps)]

    # -- ordering -----------------------------------------------------

    def order(self, names: Iterable[str]) -> List[Target]:
        """
        Depth-first topological order of everything reachable from `names`.

        Dependencies always come before their dependents; shared
        dependencies appear once.
        """
        requested = self.resolve(names)

        done: Dict[str, Target] = {}
        path: List[str] = []
        on_path: Set[str] = set()

        def visit(target: Target) -> None:
            if target.name in done:
                return
            if target.name in on_path:
                start = path.index(target.name)
                raise CycleError(tuple(path[start:] + [target.name]))

            path.append(target.name)
            on_path.add(target.name)
            for dep in self.deps_of(target):
                visit(dep)
            path.pop()
            on_path.discard(target.name)

            done[target.name] = target

        for t in requested:
            visit(t)

        return list(done.values())


def build_dag(ordered: List[Target]) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Adjacency (dep -> dependents) and in-degree for an already ordered,
    closed set of targets.
    """
    adj: Dict[str, Set[str]] = {t.name: set() for t in ordered}
    indeg: Dict[str, int] = {t.name: 0 for t in ordered}

    for t in ordered:
        for dep in dict.fromkeys(t.deps):
            if t.name not in adj[dep]:
                adj[dep].add(t.name)
                indeg[t.name] += 1

    return adj, indeg


def transitive_dependents(adj: Mapping[str, Set[str]], name: str) -> Set[str]:
    seen: Set[str] = set()
    stack = list(adj.get(name, ()))
    while stack:
        n = stack.pop()
        if n in seen:
            continue
        seen.add(n)
        stack.extend(adj.get(n, ()))
    return seen
