"""Console output formatting utilities for docmake."""

from __future__ import annotations

import sys
import threading
from typing import Optional

from ..report import BuildReport, Outcome, TargetStatus


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, quiet: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show commands, full tool output and stack traces
            quiet: If True, only errors and the final summary are printed
        """
        self.debug = debug
        self.quiet = quiet
        # workers report concurrently
        self._lock = threading.Lock()

    def _out(self, text: str, err: bool = False) -> None:
        with self._lock:
            print(text, file=sys.stderr if err else sys.stdout)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._out(f"\n{title}\n" + "-" * len(title))

    def print_build_started(
        self,
        targets_file: str,
        flavor: str,
        requested: list[str],
        jobs: int,
        diffable: bool = False,
    ) -> None:
        """Print build start information."""
        if self.quiet:
            return
        self._out(
            "\nBUILD STARTED\n"
            f"Targets file: {targets_file}\n"
            f"Flavor: {flavor}{' (diffable)' if diffable else ''}\n"
            f"Requested: {', '.join(requested)}\n"
            f"Jobs: {jobs}\n"
        )

    def print_target_start(self, name: str) -> None:
        if not self.quiet:
            self._out(f"BUILD {name}")

    def print_command(self, name: str, command: str) -> None:
        """Print a command about to run (debug only)."""
        if self.debug:
            self._out(f"  [{name}] $ {command}")

    def print_suppressed(self, name: str, command: str) -> None:
        if not self.quiet:
            self._out(f"  [{name}] diffable: suppressed {command}")

    def print_retry(self, name: str, attempt: int, attempts: int, delay: float) -> None:
        self._out(f"  [{name}] attempt {attempt}/{attempts} failed, retrying in {delay:g}s", err=True)

    def print_up_to_date(self, name: str) -> None:
        if self.debug:
            self._out(f"FRESH {name}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Target name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        lines = [f"FAILED {name}"]
        if exit_code is not None:
            lines.append(f"Exit code: {exit_code}")
        if hint:
            lines.append(f"Hint: {hint}")
        if self.debug:
            lines.append(f"Error details: {reason}")
        else:
            # first line only outside debug mode
            error_line = reason.split("\n")[0] if reason else "Unknown error"
            lines.append(f"Error: {error_line}")
        self._out("\n".join(lines), err=True)

    def print_skipped(self, name: str, reason: str) -> None:
        if not self.quiet:
            self._out(f"SKIPPED {name} ({reason})")

    def print_plan(self, entries: list[tuple[str, bool]]) -> None:
        """Print a dry-run plan: (target, would_rebuild) in build order."""
        for name, stale in entries:
            self._out(f"  {'rebuild' if stale else 'fresh  '}  {name}")

    def print_targets(self, names: list[str]) -> None:
        for n in names:
            self._out(f"  {n}")

    def print_report(self, report: BuildReport) -> None:
        """Print final results summary."""
        lines = ["", "=" * 40, "RESULTS", "=" * 40]
        if self.debug or report.outcome != Outcome.NOTHING_TO_DO:
            for name, status in report.statuses.items():
                if status in (TargetStatus.FRESH, TargetStatus.EVALUATED) and not self.debug:
                    continue
                lines.append(f"  {name}: {status.value.upper()}")
        lines.append(
            f"built={len(report.built)} fresh={len(report.fresh)} "
            f"failed={len(report.failed)} skipped={len(report.skipped_upstream)} "
            f"cancelled={len(report.cancelled)}"
        )
        lines.append(report.summary().upper())
        for name in report.failed:
            lines.append(f"  {name}: {report.errors.get(name, '')}")
        self._out("\n".join(lines))

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        for detail in details or []:
            lines.append(f"  {detail}")
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._out("\n".join(lines), err=True)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            self._out(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._out(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._out(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
