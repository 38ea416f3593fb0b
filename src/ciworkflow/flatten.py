# flatten.py
from __future__ import annotations

from typing import Mapping, Optional, Union

from .model import Edge, StagedWorkflow, WorkflowGraph
from .triggers import placeholder_stage, stage_setup, stage_teardown


def _flatten_edge(edge: Edge) -> Edge:
    # A stage as a source means "after it completes",
    # as a destination "begin at its entry point"
    src, dest = edge.src, edge.dest

    src_stage = placeholder_stage(src)
    if src_stage is not None:
        src = stage_teardown(src_stage)

    dest_stage = placeholder_stage(dest)
    if dest_stage is not None:
        dest = stage_setup(dest_stage)

    return Edge(src=src, dest=dest, join=edge.join)


def get_flattened_workflow(
    workflow_graph: Union[WorkflowGraph, StagedWorkflow],
    stage_workflows: Optional[Mapping[str, WorkflowGraph]] = None,
) -> WorkflowGraph:
    """
    Merge the top-level graph and the stage subgraphs into one executable graph.

    Stage placeholders are rewritten to the stage boundaries and dropped from
    the node list; each stage's nodes and edges are appended in stage order.
    """
    if isinstance(workflow_graph, StagedWorkflow):
        if stage_workflows is None:
            stage_workflows = workflow_graph.stages
        workflow_graph = workflow_graph.workflow

    nodes = [n for n in workflow_graph.nodes if placeholder_stage(n.name) is None]
    edges = [_flatten_edge(e) for e in workflow_graph.edges]

    for stage in (stage_workflows or {}).values():
        nodes.extend(stage.nodes)
        edges.extend(stage.edges)

    return WorkflowGraph.of(nodes, edges)
