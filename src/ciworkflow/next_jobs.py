# next_jobs.py
from __future__ import annotations

from typing import Dict, List, Optional

from .errors import InvalidTriggerError, MissingInputError
from .model import Node, WorkflowGraph
from .triggers import (
    boundary_stage,
    is_external,
    is_pr_open_event,
    is_stage_setup,
    parse_event,
    pr_job_name,
    split_pr,
)


def _stage_membership(index: Dict[str, Node], name: str) -> Optional[str]:
    """Stage a node belongs to: boundaries by name, jobs by their stage_name."""
    boundary = boundary_stage(name)
    if boundary is not None:
        return boundary[0]
    node = index.get(name)
    return node.stage_name if node is not None else None


class _OrderedJobs:
    def __init__(self) -> None:
        self.items: List[str] = []
        self._seen: set[str] = set()

    def add(self, name: str) -> None:
        if name not in self._seen:
            self._seen.add(name)
            self.items.append(name)


def get_next_jobs(
    workflow_graph: WorkflowGraph,
    trigger: Optional[str],
    *,
    pr_num: int | str | None = None,
    chain_pr: bool = False,
    start_from: Optional[str] = None,
) -> List[str]:
    """
    Jobs to start after `trigger` fires.

    trigger can be an event (~commit, ~pr, ~commit:main), a job name
    (main, sd@12:main) or a PR-scoped job (PR-3:main). PR events and
    PR-scoped triggers produce PR-scoped jobs.

    Raises:
      MissingInputError: no trigger
      InvalidTriggerError: ~pr / ~pr:<branch> without pr_num
    """
    if not trigger:
        raise MissingInputError("Must provide a trigger")
    if is_pr_open_event(trigger) and (pr_num is None or pr_num == ""):
        raise InvalidTriggerError('Must provide a PR number with "~pr" trigger', trigger=trigger)

    index = {n.name: n for n in workflow_graph.nodes}
    trigger_pr, trigger_name = split_pr(trigger)
    setup_stage = boundary_stage(trigger_name)[0] if is_stage_setup(trigger_name) else None

    # Resuming a stage part way through: restart exactly at start_from
    if setup_stage is not None and start_from:
        _, start_name = split_pr(start_from)
        if not is_stage_setup(start_name) and _stage_membership(index, start_name) == setup_stage:
            return [start_from]

    trigger_ref = parse_event(trigger)
    jobs = _OrderedJobs()

    for edge in workflow_graph.edges:
        src_ref = parse_event(edge.src)

        if src_ref is not None and src_ref.is_regex_filtered:
            if trigger_ref is not None and src_ref.matches(trigger_ref):
                jobs.add(pr_job_name(pr_num, edge.dest) if src_ref.kind == "pr" else edge.dest)

        elif edge.src == trigger:
            # PR jobs are PR-$num:$job
            jobs.add(pr_job_name(pr_num, edge.dest) if is_pr_open_event(trigger) else edge.dest)

        elif (
            trigger_pr is not None
            and split_pr(edge.src)[1] == trigger_name
            and not is_external(edge.dest)
        ):
            if chain_pr:
                jobs.add(f"{trigger_pr}:{edge.dest}")
            elif setup_stage is not None and _stage_membership(index, edge.dest) == setup_stage:
                # a PR'd stage always runs its own jobs inside the PR
                jobs.add(f"{trigger_pr}:{edge.dest}")

    return jobs.items
