# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(eq=False)
class WorkflowError(Exception):
    """
    Structured workflow error with enough context for:
      - clean CLI output
      - HTTP error bodies
      - debugging without full tracebacks
    """
    kind: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class MissingInputError(WorkflowError):
    """No trigger, job name, job config or pipeline id where one is required."""

    def __init__(self, message: str, **details: Any):
        super().__init__("missing_input", message, details)


class InvalidTriggerError(WorkflowError):
    """A trigger that cannot be evaluated, e.g. a PR event without a PR number."""

    def __init__(self, message: str, **details: Any):
        super().__init__("invalid_trigger", message, details)


class ExternalResolutionError(WorkflowError):
    """The trigger resolver failed. Never retried here; the caller owns retry policy."""

    def __init__(self, message: str, **details: Any):
        super().__init__("external_resolution", message, details)
