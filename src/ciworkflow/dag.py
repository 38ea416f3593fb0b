# dag.py
from __future__ import annotations

from typing import Dict, Iterator, List, Tuple

from .model import WorkflowGraph

WHITE, GREY, BLACK = 0, 1, 2


def adjacency(workflow_graph: WorkflowGraph) -> Dict[str, List[str]]:
    """
    src -> [dest, ...] for every node.

    Edge endpoints missing from the node list still get an entry, so
    malformed edges take part in traversal instead of raising.
    """
    adj: Dict[str, List[str]] = {n.name: [] for n in workflow_graph.nodes}
    for edge in workflow_graph.edges:
        adj.setdefault(edge.src, []).append(edge.dest)
        adj.setdefault(edge.dest, [])
    return adj


def has_cycle(workflow_graph: WorkflowGraph) -> bool:
    """
    Depth-first search with three colours:

      WHITE  not visited
      GREY   on the current path
      BLACK  fully explored

    Reaching a GREY node means a back edge (self-loops included). Every
    WHITE node starts a new search, so detached subgraphs are checked too.
    Join flags are ignored: two joins into one job is plain convergence.
    """
    adj = adjacency(workflow_graph)
    color: Dict[str, int] = {name: WHITE for name in adj}

    for root in adj:
        if color[root] != WHITE:
            continue

        color[root] = GREY
        # explicit stack: job chains can be deeper than the recursion limit
        stack: List[Tuple[str, Iterator[str]]] = [(root, iter(adj[root]))]

        while stack:
            node, children = stack[-1]
            for child in children:
                if color[child] == GREY:
                    return True
                if color[child] == WHITE:
                    color[child] = GREY
                    stack.append((child, iter(adj[child])))
                    break
            else:
                color[node] = BLACK
                stack.pop()

    return False
