# src/botflow/core/dag/execution_graph.py
"""ExecutionGraph: a read-only arena view of a plugin graph for the compiler.

String node ids are resolved to dense integer indices once, at build time.
Everything downstream (the code generator's walk, its visited set) works on
indices, so a node id can never collide with anything else in a lookup.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from botflow.contracts.enums import NodeKind
from botflow.contracts.graph import Edge, Node


@dataclass(frozen=True, slots=True)
class Link:
    """One end of an edge as seen from a slot: the other node and the handle."""

    index: int
    handle: str | None


@dataclass(frozen=True, slots=True)
class NodeSlot:
    node: Node
    next: tuple[Link, ...]
    previous: tuple[Link, ...]


class ExecutionGraph(Mapping[str, dict[str, Any]]):
    """Arena of node slots addressed by integer index.

    Mapping access by node id returns the editor-facing view
    ``{"node": Node, "next": [(target_id, handle)], "previous": [(source_id, handle)]}``.
    """

    __slots__ = ("_index_by_id", "_slots")

    def __init__(self, slots: tuple[NodeSlot, ...], index_by_id: dict[str, int]) -> None:
        self._slots = slots
        self._index_by_id = index_by_id

    def __getitem__(self, node_id: str) -> dict[str, Any]:
        slot = self._slots[self._index_by_id[node_id]]
        return {
            "node": slot.node,
            "next": [(self._slots[link.index].node.id, link.handle) for link in slot.next],
            "previous": [(self._slots[link.index].node.id, link.handle) for link in slot.previous],
        }

    def __iter__(self) -> Iterator[str]:
        return (slot.node.id for slot in self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def slot(self, index: int) -> NodeSlot:
        return self._slots[index]

    def index_of(self, node_id: str) -> int | None:
        return self._index_by_id.get(node_id)

    def indices_of_kind(self, kind: NodeKind) -> list[int]:
        return [index for index, slot in enumerate(self._slots) if slot.node.kind == kind]


def build_execution_graph(nodes: Iterable[Node], edges: Iterable[Edge]) -> ExecutionGraph:
    """Index nodes and attach every edge to both of its endpoints.

    Edges whose source or target is unknown are skipped. A duplicated node
    id keeps its first occurrence. No other validation happens here.
    """
    ordered: list[Node] = []
    index_by_id: dict[str, int] = {}
    for node in nodes:
        if node.id in index_by_id:
            continue
        index_by_id[node.id] = len(ordered)
        ordered.append(node)

    next_links: list[list[Link]] = [[] for _ in ordered]
    previous_links: list[list[Link]] = [[] for _ in ordered]
    for edge in edges:
        source = index_by_id.get(edge.source)
        target = index_by_id.get(edge.target)
        if source is None or target is None:
            continue
        next_links[source].append(Link(target, edge.source_handle))
        previous_links[target].append(Link(source, edge.target_handle))

    slots = tuple(
        NodeSlot(node=node, next=tuple(next_links[i]), previous=tuple(previous_links[i])) for i, node in enumerate(ordered)
    )
    return ExecutionGraph(slots, index_by_id)
