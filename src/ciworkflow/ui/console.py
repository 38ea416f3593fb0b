"""Console output formatting utilities for ciworkflow."""

from __future__ import annotations

import json
import sys
from typing import Any, Iterable, Optional


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_graph_summary(
        self,
        pipeline: str,
        node_count: int,
        edge_count: int,
        stages: Optional[list[str]] = None,
    ) -> None:
        """Print graph build information (debug mode only; stdout stays machine readable)."""
        if not self.debug:
            return
        print("\nGRAPH BUILT", file=sys.stderr)
        print(f"Pipeline: {pipeline}", file=sys.stderr)
        print(f"Nodes: {node_count}", file=sys.stderr)
        print(f"Edges: {edge_count}", file=sys.stderr)
        if stages:
            print(f"Stages: {', '.join(stages)}", file=sys.stderr)

    def print_json(self, data: Any) -> None:
        """Print a JSON document."""
        print(json.dumps(data, indent=2))

    def print_jobs(self, jobs: Iterable[str]) -> None:
        """Print one job name per line."""
        for job in jobs:
            print(job)

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
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


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
