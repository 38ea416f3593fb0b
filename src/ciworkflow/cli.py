# cli.py
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from ciworkflow import settings
from ciworkflow.dag import has_cycle
from ciworkflow.errors import WorkflowError
from ciworkflow.flatten import get_flattened_workflow
from ciworkflow.join import get_src_for_join
from ciworkflow.loader import load_pipeline, load_triggers
from ciworkflow.model import StagedWorkflow, WorkflowGraph
from ciworkflow.next_jobs import get_next_jobs
from ciworkflow.ui.console import Console, get_console, set_console
from ciworkflow.workflow import get_workflow


async def _build(config, resolver, pipeline_id):
    try:
        return await get_workflow(config, resolver, pipeline_id)
    finally:
        # connection pools belong to this event loop
        close = getattr(resolver, "close", None)
        if close is not None:
            await close()


def build_graph(
    pipeline_path: str,
    pipeline_id: str | None = None,
    triggers: str | None = None,
    flatten: bool = True,
) -> WorkflowGraph | StagedWorkflow:
    """
    Load a pipeline file and build its graph.

    Args:
        pipeline_path: .json or .py pipeline definition
        pipeline_id: Id of the pipeline, needed for external triggers
        triggers: Optional JSON file of external triggers
        flatten: Merge stage subgraphs into the top-level graph

    Returns:
        WorkflowGraph, or StagedWorkflow when not flattening a staged pipeline
    """
    console = get_console()
    config = load_pipeline(pipeline_path)

    resolver = None
    if triggers:
        resolver = load_triggers(triggers)
    elif pipeline_id is not None:
        resolver = settings.default_resolver()
    if resolver is not None:
        console.print_debug(f"resolving external triggers with {type(resolver).__name__}")

    graph = asyncio.run(_build(config, resolver, pipeline_id))

    stages = list(graph.stages) if isinstance(graph, StagedWorkflow) else None
    if isinstance(graph, StagedWorkflow) and flatten:
        graph = get_flattened_workflow(graph)

    top = graph.workflow if isinstance(graph, StagedWorkflow) else graph
    console.print_graph_summary(Path(pipeline_path).name, len(top.nodes), len(top.edges), stages)
    return graph


def _fail(ctx, e: Exception) -> None:
    console = get_console()
    if isinstance(e, WorkflowError):
        console.print_error(
            e.kind.replace("_", " ").capitalize(),
            e.message,
            details=[f"{k}={v}" for k, v in e.details.items()] or None,
        )
    elif isinstance(e, FileNotFoundError):
        console.print_error(
            "File not found",
            str(e),
            suggestion="Check the path, or create a pipeline file:\n  pipeline.json",
        )
    else:
        console.print_exception(e)
    if ctx.obj.get("debug", False) and isinstance(e, WorkflowError):
        import traceback
        traceback.print_exc()
    sys.exit(1)


def _flat(graph: WorkflowGraph | StagedWorkflow) -> WorkflowGraph:
    return get_flattened_workflow(graph) if isinstance(graph, StagedWorkflow) else graph


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """ciworkflow: CI workflow graph parser."""
    # Initialize console with debug flag
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("pipeline", type=click.Path(dir_okay=False))
@click.option("--pipeline-id", default=None, help="Pipeline id (enables external trigger resolution)")
@click.option("--triggers", default=None, type=click.Path(dir_okay=False), help="JSON file of external triggers")
@click.option("--flatten/--no-flatten", default=True, show_default=True, help="Merge stage subgraphs")
@click.pass_context
def graph(ctx, pipeline, pipeline_id, triggers, flatten):
    """Print the workflow graph of a pipeline as JSON."""
    try:
        result = build_graph(pipeline, pipeline_id, triggers, flatten)
        get_console().print_json(result.to_dict())
    except Exception as e:
        _fail(ctx, e)


@cli.command("next-jobs")
@click.argument("pipeline", type=click.Path(dir_okay=False))
@click.argument("trigger")
@click.option("--pr-num", default=None, help="PR number (required for ~pr triggers)")
@click.option("--chain-pr/--no-chain-pr", default=False, show_default=True, help="PR jobs trigger their successors")
@click.option("--start-from", default=None, help="Job to resume a stage at")
@click.option("--pipeline-id", default=None, help="Pipeline id (enables external trigger resolution)")
@click.option("--triggers", default=None, type=click.Path(dir_okay=False), help="JSON file of external triggers")
@click.pass_context
def next_jobs(ctx, pipeline, trigger, pr_num, chain_pr, start_from, pipeline_id, triggers):
    """Print the jobs TRIGGER starts."""
    try:
        wf = _flat(build_graph(pipeline, pipeline_id, triggers))
        jobs = get_next_jobs(wf, trigger, pr_num=pr_num, chain_pr=chain_pr, start_from=start_from)
        get_console().print_jobs(jobs)
    except Exception as e:
        _fail(ctx, e)


@cli.command("join-sources")
@click.argument("pipeline", type=click.Path(dir_okay=False))
@click.argument("job")
@click.option("--pipeline-id", default=None, help="Pipeline id (enables external trigger resolution)")
@click.option("--triggers", default=None, type=click.Path(dir_okay=False), help="JSON file of external triggers")
@click.pass_context
def join_sources(ctx, pipeline, job, pipeline_id, triggers):
    """Print the jobs JOB waits for."""
    try:
        wf = _flat(build_graph(pipeline, pipeline_id, triggers))
        sources = get_src_for_join(wf, job)
        get_console().print_jobs(sorted(n.name for n in sources))
    except Exception as e:
        _fail(ctx, e)


@cli.command("check-cycle")
@click.argument("pipeline", type=click.Path(dir_okay=False))
@click.option("--pipeline-id", default=None, help="Pipeline id (enables external trigger resolution)")
@click.option("--triggers", default=None, type=click.Path(dir_okay=False), help="JSON file of external triggers")
@click.pass_context
def check_cycle(ctx, pipeline, pipeline_id, triggers):
    """Exit non-zero if the pipeline graph has a cycle."""
    console = get_console()
    try:
        wf = _flat(build_graph(pipeline, pipeline_id, triggers))
    except Exception as e:
        _fail(ctx, e)
        return

    if has_cycle(wf):
        console.print_error(
            "Cycle detected",
            f"The workflow of {pipeline} cannot be scheduled.",
            suggestion="Remove the requires entry that points back up the chain.",
        )
        sys.exit(1)
    console.print_info("No cycle")


if __name__ == "__main__":
    cli()
