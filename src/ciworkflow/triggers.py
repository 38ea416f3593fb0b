# triggers.py
"""
Node-name and trigger grammar.

Every pattern the parser relies on lives here:

    ~pr  ~commit  ~release  ~tag  ~pr-closed  ~subscribe     events
    ~commit:main  ~pr:/^feature-/                            branch-scoped events
    PR-12:main                                               PR-scoped job
    sd@123:main  ~sd@123:main                                external job (AND / OR)
    ~stage@deploy  stage@deploy                              stage placeholder
    stage@deploy:setup  stage@deploy:teardown                stage boundary
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

PR_EVENT = "~pr"
COMMIT_EVENT = "~commit"
RESERVED_NODES = (PR_EVENT, COMMIT_EVENT)

EVENT_KINDS = ("pr-closed", "pr", "commit", "release", "tag", "subscribe")

_KIND_ALT = "|".join(re.escape(k) for k in EVENT_KINDS)

EVENT_RE = re.compile(rf"^~({_KIND_ALT})(?::(.+))?$")
PR_JOB_NAME_RE = re.compile(r"^(PR-(\d+)):(.+)$")
EXTERNAL_RE = re.compile(r"^~?sd@(\d+):(.+)$")
STAGE_PLACEHOLDER_RE = re.compile(r"^~?stage@([\w-]+)$")
STAGE_BOUNDARY_RE = re.compile(r"^~?stage@([\w-]+):(setup|teardown)$")

# `~` on these is part of the node name, not an OR marker
_KEEP_TILDE_RE = re.compile(rf"^~(?:(?:{_KIND_ALT})(?::|$)|sd@)")


@dataclass(frozen=True)
class TriggerRef:
    """
    A parsed event reference.

    `~commit`            -> TriggerRef("commit", None, False)
    `~commit:main`       -> TriggerRef("commit", "main", False)
    `~commit:/^rel-/`    -> TriggerRef("commit", "^rel-", True)
    """
    kind: str
    value: Optional[str]
    is_regex_filtered: bool = False

    def matches(self, other: TriggerRef) -> bool:
        """True if `other` (a concrete trigger) satisfies this branch filter."""
        if not self.is_regex_filtered or other.is_regex_filtered:
            return False
        if self.kind != other.kind or other.value is None:
            return False
        try:
            return re.search(self.value or "", other.value) is not None
        except re.error:
            # an unparsable filter never fires
            return False


def parse_event(name: str) -> Optional[TriggerRef]:
    m = EVENT_RE.match(name)
    if not m:
        return None
    kind, value = m.group(1), m.group(2)
    if value is not None and len(value) > 2 and value.startswith("/") and value.endswith("/"):
        return TriggerRef(kind, value[1:-1], True)
    return TriggerRef(kind, value, False)


def is_or_requirement(name: str) -> bool:
    return name.startswith("~")


def filter_node_name(name: str) -> str:
    """
    Strip the logical-OR marker from a requirement.

    foo -> foo, ~foo -> foo, ~stage@x:setup -> stage@x:setup
    ~pr, ~commit:main, ~sd@1:foo and ~stage@x are kept as-is.
    """
    if _KEEP_TILDE_RE.match(name):
        return name
    if STAGE_PLACEHOLDER_RE.match(name):
        return name
    if name.startswith("~"):
        return name[1:]
    return name


# ---------------------------------------------------------------------
# PR namespace
# ---------------------------------------------------------------------

def split_pr(name: str) -> Tuple[Optional[str], str]:
    """'PR-12:main' -> ('PR-12', 'main'); 'main' -> (None, 'main')."""
    m = PR_JOB_NAME_RE.match(name)
    if not m:
        return None, name
    return m.group(1), m.group(3)


def pr_job_name(pr_num: int | str, name: str) -> str:
    return f"PR-{pr_num}:{name}"


def is_pr_open_event(trigger: str) -> bool:
    return trigger == PR_EVENT or trigger.startswith(PR_EVENT + ":")


# ---------------------------------------------------------------------
# External pipelines
# ---------------------------------------------------------------------

def is_external(name: str) -> bool:
    return EXTERNAL_RE.match(name) is not None


def external_name(pipeline_id: int | str, job_name: str, *, logical_or: bool = False) -> str:
    name = f"sd@{pipeline_id}:{job_name}"
    return f"~{name}" if logical_or else name


# ---------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------

def stage_placeholder(stage: str) -> str:
    return f"~stage@{stage}"


def stage_setup(stage: str) -> str:
    return f"stage@{stage}:setup"


def stage_teardown(stage: str) -> str:
    return f"stage@{stage}:teardown"


def placeholder_stage(name: str) -> Optional[str]:
    """Stage name if `name` is a placeholder (`stage@x` / `~stage@x`)."""
    m = STAGE_PLACEHOLDER_RE.match(name)
    return m.group(1) if m else None


def boundary_stage(name: str) -> Optional[Tuple[str, str]]:
    """(stage, 'setup'|'teardown') if `name` is a stage boundary node."""
    m = STAGE_BOUNDARY_RE.match(name)
    return (m.group(1), m.group(2)) if m else None


def is_stage_setup(name: str) -> bool:
    b = boundary_stage(name)
    return b is not None and b[1] == "setup"
