"""Console output formatting utilities for kashti-ci."""

from __future__ import annotations

import sys
import threading
from typing import Optional, Sequence


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug
        # Jobs in a stage report from worker threads.
        self._lock = threading.Lock()

    def _print(self, *lines: str, err: bool = False) -> None:
        stream = sys.stderr if err else sys.stdout
        with self._lock:
            for line in lines:
                print(line, file=stream)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._print(f"\n{title}", "-" * len(title))

    def print_run_started(
        self,
        repository: str,
        event: str,
        build_id: str,
        job_count: int,
    ) -> None:
        """Print run start information."""
        self._print(
            "\nRUN STARTED",
            f"Repository: {repository}",
            f"Event: {event}",
            f"Build: {build_id or '-'}",
            f"Jobs: {job_count}",
            "",
        )

    def print_stage_started(self, index: int, job_names: Sequence[str]) -> None:
        """Print stage start message."""
        self._print(f"=== Stage {index + 1}: {list(job_names)} ===")

    def print_job_start(self, name: str, image: str) -> None:
        """Print job start message."""
        self._print(f"JOB STARTED: {name} ({image})")

    def print_job_result(self, name: str, succeeded: bool, exit_status: Optional[int] = None) -> None:
        if succeeded:
            self._print(f"✓ {name}")
        else:
            self._print(f"✗ Job failed: {name} (exit={exit_status})")

    def print_stage_skipped(self, index: int, reason: str) -> None:
        self._print(f"=== Stage {index + 1}: skipped ({reason}) ===")

    def print_failure(self, title: str, reason: str) -> None:
        """
        Print failure message.

        Only the first line of the reason is shown unless debug is on.
        """
        lines = [f"FAILED: {title}"]
        if self.debug:
            lines.append(f"Error details: {reason}")
        else:
            error_line = reason.split('\n')[0] if reason else "Unknown error"
            lines.append(f"Error: {error_line}")
        self._print(*lines)

    def print_notification(self, name: str, state: str) -> None:
        """Print terminal notification message."""
        self._print(f"NOTIFY: {name} (state={state})")

    def print_results(self, results: dict[str, str]) -> None:
        """Print final results summary."""
        lines = ["\n" + "=" * 40, "RESULTS", "=" * 40]
        for job, status in results.items():
            status_display = status.upper() if status != "ok" else "SUCCESS"
            lines.append(f"  {job}: {status_display}")
        self._print(*lines)

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
        lines = [f"\nERROR: {title}", f"{message}"]
        if details:
            lines.extend(f"  {detail}" for detail in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._print(*lines, err=True)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            self._print(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._print(f"[DEBUG] {message}", err=True)


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
