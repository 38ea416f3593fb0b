# workflow.py
"""
Graph builder: pipeline config -> workflow graph.

    jobs:
      main:   {requires: [~commit, ~pr]}
      test:   {requires: [main]}
      deploy: {requires: [~test, sd@12:smoke]}

becomes

    ~commit -> main, ~pr -> main, main -> test (join),
    test -> deploy, sd@12:smoke -> deploy (join)

Stage members are routed into a private subgraph per stage and the
top-level graph only carries a `~stage@<name>` placeholder for them.
"""
from __future__ import annotations

import asyncio
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .config import JobConfig, PipelineConfig, coerce_pipeline
from .errors import MissingInputError
from .model import Edge, Node, StagedWorkflow, WorkflowGraph
from .resolvers.base import TriggerResolver
from .triggers import (
    RESERVED_NODES,
    boundary_stage,
    external_name,
    filter_node_name,
    is_or_requirement,
    is_stage_setup,
    placeholder_stage,
    stage_placeholder,
    stage_setup,
    stage_teardown,
)
from .ui.console import get_console


class _NodeList:
    """Insertion-ordered nodes, unique by name."""

    def __init__(self, names: Iterable[str] = ()):
        self._nodes: "OrderedDict[str, Node]" = OrderedDict()
        for name in names:
            self.add(name)

    def __contains__(self, name: str) -> bool:
        return name in self._nodes

    def add(self, name: str) -> None:
        if name not in self._nodes:
            self._nodes[name] = Node(name=name)

    def put(self, node: Node) -> None:
        # a job's own node replaces a bare entry added via someone's requires,
        # but keeps its position
        self._nodes[node.name] = node

    def values(self) -> List[Node]:
        return list(self._nodes.values())


class _EdgeList:
    """Insertion-ordered edges without exact duplicates."""

    def __init__(self) -> None:
        self._edges: List[Edge] = []
        self._seen: set[Edge] = set()

    def add(self, edge: Edge) -> None:
        if edge not in self._seen:
            self._seen.add(edge)
            self._edges.append(edge)

    def values(self) -> List[Edge]:
        return list(self._edges)


class _StageGraphBuilder:
    """Private subgraph of one stage while the pipeline is being built."""

    def __init__(self, name: str):
        self.name = name
        self.nodes = _NodeList()
        self.edges = _EdgeList()

    def build(self) -> WorkflowGraph:
        setup, teardown = stage_setup(self.name), stage_teardown(self.name)
        nodes = self.nodes.values()
        if setup not in self.nodes:
            nodes.insert(0, Node(name=setup, stage_name=self.name))
        if teardown not in self.nodes:
            nodes.append(Node(name=teardown, stage_name=self.name))
        return WorkflowGraph.of(nodes, self.edges.values())


def _unique(items: Iterable[str]) -> List[str]:
    return list(OrderedDict.fromkeys(items))


def _stage_of(config: PipelineConfig, name: str) -> Optional[str]:
    stage = config.stage_of(name)
    if stage is not None:
        return stage
    boundary = boundary_stage(name)
    return boundary[0] if boundary else None


def _job_node(name: str, job: JobConfig, stage_name: Optional[str]) -> Node:
    return Node(
        name=name,
        display_name=job.annotations.display_name,
        virtual=job.annotations.virtual_job,
        stage_name=stage_name,
    )


def _requirement_edges(requires: Iterable[str], dest: str) -> List[Edge]:
    """OR edges first, then AND edges; every AND edge is a join edge."""
    requires = _unique(requires)
    upstream_or = [r for r in requires if is_or_requirement(r)]
    upstream_and = [r for r in requires if not is_or_requirement(r)]

    edges = [Edge(src=filter_node_name(r), dest=dest) for r in upstream_or]
    edges.extend(Edge(src=r, dest=dest, join=True) for r in upstream_and)
    return edges


def _add_requirement_node(config: PipelineConfig, nodes: _NodeList, requirement: str) -> None:
    name = filter_node_name(requirement)

    placeholder = placeholder_stage(name)
    if placeholder is not None:
        nodes.add(stage_placeholder(placeholder))
        return

    # stage members and stage boundaries live in the stage subgraph
    if _stage_of(config, name) is not None:
        return
    nodes.add(name)


# ---------------------------------------------------------------------
# External (cross-pipeline) fan-out
# ---------------------------------------------------------------------

async def _resolve_downstream(
    job_name: str,
    pipeline_id: int | str,
    resolver: TriggerResolver,
) -> Tuple[List[str], List[Edge]]:
    """
    Depth-first walk of the external triggers fired by one job.

    Each identifier is queried once per walk, so a cycle across pipelines
    ends the walk instead of looping. Edges discovered by querying an AND
    source (`sd@...`) are join edges, those from an OR source (`~sd@...`)
    are not.
    """
    console = get_console()
    found: List[str] = []
    edges: List[Edge] = []
    queried: set[str] = set()

    # (edge source, identifier to query); popped from the end
    stack: List[Tuple[str, str]] = [
        (job_name, external_name(pipeline_id, job_name)),
        (job_name, external_name(pipeline_id, job_name, logical_or=True)),
    ]

    while stack:
        src, query = stack.pop()
        if query in queried:
            continue
        queried.add(query)

        dests = await resolver.get_dest_from_src(query)
        console.print_debug(f"trigger lookup {query} -> {dests}")

        join = not is_or_requirement(query)
        for dest in dests:
            if dest not in found:
                found.append(dest)
            edges.append(Edge(src=src, dest=dest, join=join))

        stack.extend((dest, dest) for dest in reversed(dests) if dest not in queried)

    return found, edges


async def _gather_downstream(
    job_names: Iterable[str],
    pipeline_id: int | str,
    resolver: TriggerResolver,
) -> List[Tuple[List[str], List[Edge]]]:
    """Walk every job concurrently; results come back in job order."""
    tasks = [
        asyncio.ensure_future(_resolve_downstream(name, pipeline_id, resolver))
        for name in job_names
    ]
    try:
        return list(await asyncio.gather(*tasks))
    except Exception:
        # one failed lookup fails the build: stop the other walks first
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

async def get_workflow(
    pipeline_config: Union[PipelineConfig, Mapping[str, Any], None],
    trigger_resolver: Optional[TriggerResolver] = None,
    pipeline_id: int | str | None = None,
) -> Union[WorkflowGraph, StagedWorkflow]:
    """
    Build the directed graph of a pipeline.

    Returns a WorkflowGraph, or a StagedWorkflow when the pipeline declares
    stages. With a trigger resolver, every job's external downstream jobs
    are resolved transitively and added to the top-level graph.

    Raises:
      MissingInputError: no job config, or a resolver without a pipeline id
    """
    config = coerce_pipeline(pipeline_config)
    if config.jobs is None:
        raise MissingInputError("No Job config provided")
    if trigger_resolver is not None and pipeline_id is None:
        raise MissingInputError("Must provide a pipeline id to resolve external triggers")

    console = get_console()
    jobs: Dict[str, JobConfig] = config.jobs

    # Lookups for distinct jobs are independent: fan out, then merge in job order
    external: List[Tuple[List[str], List[Edge]]] = [([], []) for _ in jobs]
    if trigger_resolver is not None:
        external = await _gather_downstream(jobs, pipeline_id, trigger_resolver)

    nodes = _NodeList(RESERVED_NODES)
    edges = _EdgeList()
    stages: Dict[str, _StageGraphBuilder] = OrderedDict(
        (name, _StageGraphBuilder(name)) for name in config.stages
    )

    for (job_name, job), (ext_nodes, ext_edges) in zip(jobs.items(), external):
        stage_name = _stage_of(config, job_name)
        stage = None
        if stage_name is not None:
            stage = stages.setdefault(stage_name, _StageGraphBuilder(stage_name))
            stage.nodes.put(_job_node(job_name, job, stage_name))
            console.print_debug(f"job {job_name} routed to stage {stage_name}")
        else:
            nodes.put(_job_node(job_name, job, None))

        for requirement in job.requires:
            _add_requirement_node(config, nodes, requirement)
        for name in ext_nodes:
            nodes.add(name)

        start_from = job.stage is not None and job.stage.start_from
        for edge in _requirement_edges(job.requires, job_name):
            if stage is None or is_stage_setup(edge.src):
                edges.add(edge)
            elif start_from:
                console.print_debug(f"skip {edge.src} -> {job_name}: {job_name} is the startFrom job")
            else:
                stage.edges.add(edge)

        for edge in ext_edges:
            edges.add(edge)

    for stage_name, stage_cfg in config.stages.items():
        for requirement in stage_cfg.requires:
            _add_requirement_node(config, nodes, requirement)
        for edge in _requirement_edges(stage_cfg.requires, stage_setup(stage_name)):
            edges.add(edge)

    if not stages:
        return WorkflowGraph.of(nodes.values(), edges.values())

    for stage_name in stages:
        nodes.add(stage_placeholder(stage_name))

    return StagedWorkflow(
        workflow=WorkflowGraph.of(nodes.values(), edges.values()),
        stages={name: builder.build() for name, builder in stages.items()},
    )
