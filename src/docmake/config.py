# config.py
# Build configuration: environment defaults, CLI overrides, and the
# substitution variables handed to the target table once per invocation.

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Mapping


DEFAULT_TARGETS_FILE = "docmake_targets.py"
DEFAULT_OUTPUT_DIR = "web"
DEFAULT_GENERATED_DIR = ".generated"
DEFAULT_VERSION = "0.0.0"

FLAVORS = ("stable", "prerelease", "release")

# stands in for anything time-dependent in diffable builds
DIFFABLE_PLACEHOLDER = "DIFFABLE"

# variables whose value changes between otherwise identical builds
VOLATILE_VARIABLES = ("TIMESTAMP", "YEAR")

# external tools; DOCMAKE_<KEY> in the environment or --var KEY=... override
TOOL_DEFAULTS = {
    "DMD": "dmd",
    "DDOX": "ddox",
}

_TRUE = {"1", "true", "yes", "on"}


@dataclass
class ConfigError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


def _env_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


def parse_vars(pairs: Iterable[str]) -> Dict[str, str]:
    """Parse KEY=VALUE strings (from --var) into a dict."""
    out: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key or not key.replace("_", "").isalnum():
            raise ConfigError(f"Expected KEY=VALUE, got {pair!r}")
        out[key] = value
    return out


@dataclass
class BuildConfig:
    root: Path = field(default_factory=lambda: Path("."))
    targets_file: str = DEFAULT_TARGETS_FILE
    flavor: str = "stable"
    version: str = DEFAULT_VERSION
    latest: str | None = None           # latest shipped release; defaults to version
    output_dir: str = DEFAULT_OUTPUT_DIR
    generated_dir: str = DEFAULT_GENERATED_DIR
    jobs: int = 1
    keep_going: bool = True
    diffable: bool = False
    extra_vars: Dict[str, str] = field(default_factory=dict)
    tools: Dict[str, str] = field(default_factory=lambda: dict(TOOL_DEFAULTS))

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        if self.flavor not in FLAVORS:
            raise ConfigError(f"Unknown flavor {self.flavor!r}; expected one of {', '.join(FLAVORS)}")
        if self.jobs < 1:
            raise ConfigError(f"jobs must be >= 1, got {self.jobs}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BuildConfig":
        env = os.environ if environ is None else environ
        return cls(
            root=Path(env.get("DOCMAKE_ROOT", ".")),
            targets_file=env.get("DOCMAKE_TARGETS", DEFAULT_TARGETS_FILE),
            flavor=env.get("DOCMAKE_FLAVOR", "stable"),
            version=env.get("DOCMAKE_VERSION", DEFAULT_VERSION),
            latest=env.get("DOCMAKE_LATEST") or None,
            output_dir=env.get("DOCMAKE_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
            generated_dir=env.get("DOCMAKE_GENERATED_DIR", DEFAULT_GENERATED_DIR),
            jobs=_env_int(env, "DOCMAKE_JOBS", 1),
            keep_going=_env_bool(env, "DOCMAKE_KEEP_GOING", True),
            diffable=_env_bool(env, "DOCMAKE_DIFFABLE", False),
            tools={key: env.get(f"DOCMAKE_{key}", value) for key, value in TOOL_DEFAULTS.items()},
        )

    def override(self, **changes) -> "BuildConfig":
        """Apply CLI overrides; None means 'not given'."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @property
    def docsrc_rev(self) -> str:
        """Revision of the component repositories the docs are built from."""
        if self.flavor == "prerelease":
            return "master"
        if self.flavor == "release":
            return f"v{self.version}"
        return f"v{self.latest or self.version}"

    def variables(self, now: datetime | None = None) -> Dict[str, str]:
        now = now or datetime.now(timezone.utc)
        out = {
            "ROOT": str(self.root.resolve()),
            "FLAVOR": self.flavor,
            "VERSION": self.version,
            "LATEST": self.latest or self.version,
            "DOC_OUTPUT_DIR": self.output_dir,
            "GENERATED": self.generated_dir,
            "DOCSRC_REV": self.docsrc_rev,
            "TIMESTAMP": now.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "YEAR": str(now.year),
        }
        out.update(self.tools)
        if self.diffable:
            for key in VOLATILE_VARIABLES:
                out[key] = DIFFABLE_PLACEHOLDER
        out.update(self.extra_vars)
        return out

    def derived_dirs(self) -> list[Path]:
        """Directories that hold nothing but re-derivable build products."""
        return [self.root / self.generated_dir, self.root / self.output_dir]
