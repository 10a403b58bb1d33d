from .dsl import target, phony, rule, matrix, table, TargetBuilder, build
from .runner import run_build, plan_build, load_targets
from .model import Action, PatternRule, Target
from .graph import BuildGraph, TargetTable
from .report import BuildReport, TargetStatus

__all__ = [
    "target", "phony", "rule", "matrix", "table", "TargetBuilder", "build",
    "run_build", "plan_build", "load_targets",
    "Action", "PatternRule", "Target", "BuildGraph", "TargetTable",
    "BuildReport", "TargetStatus",
]
