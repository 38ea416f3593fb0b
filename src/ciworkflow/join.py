# join.py
from __future__ import annotations

from typing import FrozenSet, Optional

from .errors import MissingInputError
from .model import Node, WorkflowGraph
from .triggers import is_external, split_pr


def get_src_for_join(workflow_graph: WorkflowGraph, job_name: Optional[str]) -> FrozenSet[Node]:
    """
    Upstream nodes `job_name` has to wait for (sources of its join edges).

    For a PR job (`PR-12:deploy`) the sources come back in the same PR
    namespace, except external jobs which live in another pipeline.

    Raises:
      MissingInputError: no job name
    """
    if not job_name:
        raise MissingInputError("Must provide a job name")

    pr_prefix, dest = split_pr(job_name)
    index = {n.name: n for n in workflow_graph.nodes}
    sources: set[Node] = set()

    for edge in workflow_graph.edges:
        if edge.dest != dest or not edge.join:
            continue
        node = index.get(edge.src) or Node(name=edge.src)
        if pr_prefix is not None and not is_external(node.name):
            node = node.with_name(f"{pr_prefix}:{node.name}")
        sources.add(node)

    return frozenset(sources)


def has_join(workflow_graph: WorkflowGraph, job_name: Optional[str] = None) -> bool:
    """True if the graph has any join edge, or, given a job, if that job is a join."""
    if job_name is None:
        return any(e.join for e in workflow_graph.edges)
    return bool(get_src_for_join(workflow_graph, job_name))
