# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple


@dataclass(frozen=True)
class Node:
    """
    A schedulable unit in a workflow graph.

    `name` is the identity: a job name, an event (`~pr`, `~commit:main`),
    a stage placeholder (`~stage@deploy`), a stage boundary
    (`stage@deploy:setup`) or an external reference (`sd@123:main`).
    """
    name: str
    id: Optional[int] = None
    display_name: Optional[str] = None
    virtual: Optional[bool] = None
    stage_name: Optional[str] = None

    def with_name(self, name: str) -> Node:
        return Node(
            name=name,
            id=self.id,
            display_name=self.display_name,
            virtual=self.virtual,
            stage_name=self.stage_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.id is not None:
            data["id"] = self.id
        if self.display_name is not None:
            data["displayName"] = self.display_name
        if self.virtual is not None:
            data["virtual"] = self.virtual
        if self.stage_name is not None:
            data["stageName"] = self.stage_name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Node:
        return cls(
            name=data["name"],
            id=data.get("id"),
            display_name=data.get("displayName"),
            virtual=data.get("virtual"),
            stage_name=data.get("stageName"),
        )


@dataclass(frozen=True)
class Edge:
    """src -> dest. join=True marks one member of an AND prerequisite set."""
    src: str
    dest: str
    join: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"src": self.src, "dest": self.dest}
        if self.join:
            data["join"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Edge:
        return cls(src=data["src"], dest=data["dest"], join=data.get("join") is True)


@dataclass(frozen=True)
class WorkflowGraph:
    """Immutable directed graph: nodes plus edges."""
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()

    @classmethod
    def of(cls, nodes: Iterable[Node] = (), edges: Iterable[Edge] = ()) -> WorkflowGraph:
        return cls(nodes=tuple(nodes), edges=tuple(edges))

    @property
    def node_names(self) -> list[str]:
        return [n.name for n in self.nodes]

    def find_node(self, name: str) -> Optional[Node]:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> WorkflowGraph:
        # Some callers only ship edges (e.g. ad-hoc trigger checks)
        return cls.of(
            nodes=(Node.from_dict(n) for n in data.get("nodes") or []),
            edges=(Edge.from_dict(e) for e in data.get("edges") or []),
        )


@dataclass(frozen=True)
class StagedWorkflow:
    """
    Result of building a pipeline that declares stages.

    `workflow` is the top-level graph where stage members are hidden behind
    `~stage@<name>` placeholders; `stages` holds one private subgraph per
    stage, keyed by stage name in declaration order.
    """
    workflow: WorkflowGraph
    stages: Dict[str, WorkflowGraph] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow": self.workflow.to_dict(),
            "stages": {name: g.to_dict() for name, g in self.stages.items()},
        }
