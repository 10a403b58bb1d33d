# model.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from string import Template
from typing import Dict, Mapping, Optional, Tuple


@dataclass
class UndefinedVariableError(Exception):
    name: str
    template: str

    def __str__(self) -> str:
        return f"Undefined variable ${self.name} in {self.template!r} (pass --var {self.name}=...)"


def expand(template: str, variables: Mapping[str, str]) -> str:
    """Substitute $NAME / ${NAME} in a template; a literal dollar is $$."""
    try:
        return Template(template).substitute(variables)
    except KeyError as e:
        raise UndefinedVariableError(e.args[0], template) from None
    except ValueError:
        raise ValueError(f"Malformed template (use $$ for a literal $): {template!r}") from None


@dataclass(frozen=True)
class Action:
    """
    A single external command run on behalf of a target.

    argv is never passed through a shell. `stdout` optionally names a file
    that receives the command's standard output.
    """
    argv: Tuple[str, ...]
    cwd: str | None = None
    env: Dict[str, str] = field(default_factory=dict)
    stdout: str | None = None

    # network fetches get a bounded retry
    retries: int = 0
    retry_delay: float = 0.0

    # output embeds the current time or other non-deterministic content
    volatile: bool = False

    @property
    def command(self) -> str:
        return " ".join(self.argv)

    def substitute(self, variables: Mapping[str, str]) -> "Action":
        return replace(
            self,
            argv=tuple(expand(a, variables) for a in self.argv),
            cwd=expand(self.cwd, variables) if self.cwd is not None else None,
            env={k: expand(v, variables) for k, v in self.env.items()},
            stdout=expand(self.stdout, variables) if self.stdout is not None else None,
        )


@dataclass(frozen=True)
class Target:
    """
    A named buildable unit.

    `output` is the file or directory whose modification time decides
    freshness. A target without an output is phony.
    """
    name: str
    deps: Tuple[str, ...] = ()
    steps: Tuple[Action, ...] = ()
    output: Optional[str] = None

    @property
    def phony(self) -> bool:
        return self.output is None

    @property
    def has_action(self) -> bool:
        return bool(self.steps)

    def bind(self, variables: Mapping[str, str]) -> "Target":
        name = expand(self.name, variables)
        deps = tuple(expand(d, variables) for d in self.deps)
        output = expand(self.output, variables) if self.output is not None else None

        # automatic variables, like make's $@ and $<
        local = dict(variables)
        local["TARGET"] = output if output is not None else name
        local["SOURCE"] = deps[0] if deps else ""

        return replace(
            self,
            name=name,
            deps=deps,
            output=output,
            steps=tuple(s.substitute(local) for s in self.steps),
        )


@dataclass(frozen=True)
class PatternRule:
    """
    An implicit rule such as "any `web/%.html` from `%.dd`".

    The pattern contains exactly one `%`; the matched part is the stem and is
    available to deps (as `%`) and to steps (as $STEM).
    """
    pattern: str
    deps: Tuple[str, ...] = ()
    steps: Tuple[Action, ...] = ()

    def __post_init__(self) -> None:
        if self.pattern.count("%") != 1:
            raise ValueError(f"Pattern rule must contain exactly one '%': {self.pattern!r}")

    def bind(self, variables: Mapping[str, str]) -> "PatternRule":
        # steps stay as templates until a concrete path is matched
        return replace(
            self,
            pattern=expand(self.pattern, variables),
            deps=tuple(expand(d, variables) for d in self.deps),
        )

    def match(self, path: str) -> Optional[str]:
        prefix, suffix = self.pattern.split("%")
        if len(path) < len(prefix) + len(suffix):
            return None
        if not (path.startswith(prefix) and path.endswith(suffix)):
            return None
        stem = path[len(prefix):len(path) - len(suffix)]
        return stem or None

    def instantiate(self, path: str, stem: str, variables: Mapping[str, str]) -> Target:
        deps = tuple(d.replace("%", stem) for d in self.deps)
        local = dict(variables)
        local["STEM"] = stem
        local["TARGET"] = path
        local["SOURCE"] = deps[0] if deps else ""
        return Target(
            name=path,
            deps=deps,
            steps=tuple(s.substitute(local) for s in self.steps),
            output=path,
        )
