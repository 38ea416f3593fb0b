from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from .. import settings
from ..dag import has_cycle
from ..errors import ExternalResolutionError, WorkflowError
from ..flatten import get_flattened_workflow
from ..join import get_src_for_join
from ..model import StagedWorkflow, WorkflowGraph
from ..next_jobs import get_next_jobs
from ..resolvers.base import TriggerResolver
from ..workflow import get_workflow

# -------------------- Startup --------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    # One resolver (and connection pool) for the whole process
    app.state.resolver = settings.default_resolver()
    try:
        yield
    finally:
        resolver, app.state.resolver = app.state.resolver, None
        close = getattr(resolver, "close", None)
        if close is not None:
            await close()

app = FastAPI(title="ciworkflow graph service", lifespan=lifespan)

# -------------------- Schemas --------------------

class BuildRequest(BaseModel):
    pipeline: dict[str, Any]
    pipeline_id: int | str | None = None
    flatten: bool = True

class NextJobsRequest(BaseModel):
    workflow: dict[str, Any]
    trigger: str | None = None
    pr_num: int | str | None = None
    chain_pr: bool = False
    start_from: str | None = None

class NextJobsResponse(BaseModel):
    jobs: list[str]

class JoinSourcesRequest(BaseModel):
    workflow: dict[str, Any]
    job_name: str | None = None

class JoinSourcesResponse(BaseModel):
    sources: list[dict[str, Any]]

class CycleRequest(BaseModel):
    workflow: dict[str, Any]

class CycleResponse(BaseModel):
    has_cycle: bool

class FlattenRequest(BaseModel):
    workflow: dict[str, Any]
    stages: dict[str, dict[str, Any]] = Field(default_factory=dict)

# -------------------- Dependencies --------------------

def get_resolver(request: Request) -> Optional[TriggerResolver]:
    return getattr(request.app.state, "resolver", None)

# -------------------- Helpers --------------------

def http_error(e: WorkflowError) -> HTTPException:
    # resolver faults belong to an upstream dependency
    status = 502 if isinstance(e, ExternalResolutionError) else 400
    return HTTPException(status_code=status, detail={"kind": e.kind, "message": e.message, **e.details})

def graph_from(data: dict[str, Any]) -> WorkflowGraph:
    try:
        return WorkflowGraph.from_dict(data)
    except (KeyError, TypeError) as e:
        raise HTTPException(status_code=422, detail=f"Malformed workflow graph: {e}")

# -------------------- Endpoints --------------------

@app.post("/workflows")
async def build(req: BuildRequest, resolver: Optional[TriggerResolver] = Depends(get_resolver)):
    if req.pipeline_id is None:
        resolver = None
    try:
        graph = await get_workflow(req.pipeline, resolver, req.pipeline_id)
    except WorkflowError as e:
        raise http_error(e)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    if isinstance(graph, StagedWorkflow) and req.flatten:
        graph = get_flattened_workflow(graph)
    return graph.to_dict()

@app.post("/workflows/next-jobs", response_model=NextJobsResponse)
async def next_jobs(req: NextJobsRequest):
    try:
        jobs = get_next_jobs(
            graph_from(req.workflow),
            req.trigger,
            pr_num=req.pr_num,
            chain_pr=req.chain_pr,
            start_from=req.start_from,
        )
    except WorkflowError as e:
        raise http_error(e)
    return NextJobsResponse(jobs=jobs)

@app.post("/workflows/join-sources", response_model=JoinSourcesResponse)
async def join_sources(req: JoinSourcesRequest):
    try:
        sources = get_src_for_join(graph_from(req.workflow), req.job_name)
    except WorkflowError as e:
        raise http_error(e)
    return JoinSourcesResponse(sources=[n.to_dict() for n in sorted(sources, key=lambda n: n.name)])

@app.post("/workflows/has-cycle", response_model=CycleResponse)
async def cycle(req: CycleRequest):
    return CycleResponse(has_cycle=has_cycle(graph_from(req.workflow)))

@app.post("/workflows/flatten")
async def flatten(req: FlattenRequest):
    stages = {name: graph_from(g) for name, g in req.stages.items()}
    return get_flattened_workflow(graph_from(req.workflow), stages).to_dict()
