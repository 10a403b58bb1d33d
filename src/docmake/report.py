# report.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List


class TargetStatus(str, Enum):
    BUILT = "built"
    FRESH = "fresh"                          # already up to date, nothing run
    EVALUATED = "evaluated"                  # stale but has no action; dependencies only
    FAILED = "failed"
    SKIPPED_UPSTREAM = "skipped(upstream)"   # a dependency failed
    CANCELLED = "cancelled"                  # never started after stop-on-failure


class Outcome(str, Enum):
    NOTHING_TO_DO = "nothing to do"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class BuildReport:
    """Structured result of one build invocation."""
    statuses: Dict[str, TargetStatus] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)   # first error per failed target
    actions_run: int = 0

    def _named(self, status: TargetStatus) -> List[str]:
        return [n for n, s in self.statuses.items() if s == status]

    @property
    def built(self) -> List[str]:
        return self._named(TargetStatus.BUILT)

    @property
    def fresh(self) -> List[str]:
        return self._named(TargetStatus.FRESH)

    @property
    def evaluated(self) -> List[str]:
        return self._named(TargetStatus.EVALUATED)

    @property
    def failed(self) -> List[str]:
        return self._named(TargetStatus.FAILED)

    @property
    def skipped_upstream(self) -> List[str]:
        return self._named(TargetStatus.SKIPPED_UPSTREAM)

    @property
    def cancelled(self) -> List[str]:
        return self._named(TargetStatus.CANCELLED)

    @property
    def outcome(self) -> Outcome:
        if self.failed:
            return Outcome.FAILED
        if self.actions_run == 0:
            return Outcome.NOTHING_TO_DO
        return Outcome.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return 1 if self.outcome == Outcome.FAILED else 0

    def summary(self) -> str:
        if self.outcome == Outcome.FAILED:
            n = len(self.failed)
            return f"{n} target{'s' if n != 1 else ''} failed"
        return self.outcome.value

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "actions_run": self.actions_run,
            "built": self.built,
            "fresh": self.fresh,
            "evaluated": self.evaluated,
            "failed": {n: self.errors.get(n, "") for n in self.failed},
            "skipped_upstream": self.skipped_upstream,
            "cancelled": self.cancelled,
        }
