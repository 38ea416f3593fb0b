from .workflow import get_workflow
from .next_jobs import get_next_jobs
from .join import get_src_for_join, has_join
from .flatten import get_flattened_workflow
from .dag import has_cycle
from .model import Node, Edge, WorkflowGraph, StagedWorkflow
from .errors import WorkflowError, MissingInputError, InvalidTriggerError, ExternalResolutionError

__all__ = [
    "get_workflow", "get_next_jobs", "get_src_for_join", "get_flattened_workflow", "has_cycle", "has_join",
    "Node", "Edge", "WorkflowGraph", "StagedWorkflow",
    "WorkflowError", "MissingInputError", "InvalidTriggerError", "ExternalResolutionError",
]
