# resolvers/base.py
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Protocol, runtime_checkable


@runtime_checkable
class TriggerResolver(Protocol):
    """
    Looks up the downstream jobs of an external trigger source.

    `src` is fully qualified: `sd@<pipelineId>:<jobName>` (AND) or
    `~sd@<pipelineId>:<jobName>` (OR). Returns the destinations it notifies,
    in the same notation, or an empty list.
    """

    async def get_dest_from_src(self, src: str) -> List[str]:
        ...


class StaticTriggerResolver:
    """In-memory resolver backed by a plain mapping."""

    def __init__(self, triggers: Mapping[str, Iterable[str]] | None = None):
        self.triggers: Dict[str, List[str]] = {
            src: list(dests) for src, dests in (triggers or {}).items()
        }
        self.queries: List[str] = []

    async def get_dest_from_src(self, src: str) -> List[str]:
        self.queries.append(src)
        return list(self.triggers.get(src, []))
