# src/botflow/core/dag/validator.py
"""Structural and complexity checks for plugin graphs.

Both checks collect every problem instead of stopping at the first one, so
the editor can show the author the full list in one round trip.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

import networkx as nx
from networkx import DiGraph

from botflow.contracts.enums import NodeKind
from botflow.contracts.graph import Edge, Node
from botflow.contracts.plugin import ValidationResult
from botflow.core.config import CompilerSettings


class GraphValidator:
    """Validates plugin graphs before compilation."""

    def __init__(self, settings: CompilerSettings | None = None) -> None:
        self._settings = settings if settings is not None else CompilerSettings()

    def validate(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> ValidationResult:
        """Check trigger/response presence, connectivity and id uniqueness.

        Validates:
        1. Exactly one trigger node
        2. At least one response node
        3. Every non-trigger node is an endpoint of some edge
        4. Node ids are unique
        """
        errors: list[str] = []

        triggers = [node for node in nodes if node.kind == NodeKind.TRIGGER]
        if not triggers:
            errors.append("Plugin must have exactly one trigger node")
        elif len(triggers) > 1:
            errors.append("Plugin can only have one trigger node")

        if not any(node.kind == NodeKind.RESPONSE for node in nodes):
            errors.append("Plugin must have at least one response node")

        connected: set[str] = set()
        for edge in edges:
            connected.add(edge.source)
            connected.add(edge.target)
        for node in nodes:
            if node.kind != NodeKind.TRIGGER and node.id not in connected:
                errors.append(f'Node "{node.display_name}" is not connected')

        counts = Counter(node.id for node in nodes)
        for node_id, count in counts.items():
            if count > 1:
                errors.append(f'Duplicate node id "{node_id}"')

        return ValidationResult.from_errors(errors)

    def check_complexity(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> ValidationResult:
        """Check size ceilings, trigger depth and acyclicity.

        Depth is the longest shortest-path distance from a trigger, with the
        trigger itself at depth 0. Edges naming unknown nodes are ignored.
        """
        settings = self._settings
        errors: list[str] = []

        if len(nodes) > settings.max_nodes:
            errors.append(f"Plugin has {len(nodes)} nodes; the limit is {settings.max_nodes}")
        if len(edges) > settings.max_edges:
            errors.append(f"Plugin has {len(edges)} edges; the limit is {settings.max_edges}")

        graph: DiGraph[str] = nx.DiGraph()
        graph.add_nodes_from(node.id for node in nodes)
        graph.add_edges_from((edge.source, edge.target) for edge in edges if edge.source in graph and edge.target in graph)

        for trigger in (node for node in nodes if node.kind == NodeKind.TRIGGER):
            distances = nx.single_source_shortest_path_length(graph, trigger.id)
            depth = max(distances.values())
            if depth > settings.max_depth:
                errors.append(f'Trigger "{trigger.display_name}" reaches depth {depth}; the limit is {settings.max_depth}')

        if not nx.is_directed_acyclic_graph(graph):
            try:
                cycle = nx.find_cycle(graph)
                cycle_str = " -> ".join([*(str(edge[0]) for edge in cycle), str(cycle[0][0])])
                errors.append(f"Graph contains a cycle: {cycle_str}")
            except nx.NetworkXNoCycle:
                errors.append("Graph contains a cycle")

        return ValidationResult.from_errors(errors)
