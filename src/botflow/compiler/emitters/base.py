# src/botflow/compiler/emitters/base.py
"""Walk state shared by all emitters.

An emitter receives the node's arena index, the node, its parsed config and
the depth to emit at. Non-branching emitters finish by calling follow();
branching emitters pick their arms with follow_branch().
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from botflow.compiler.ir import CodeBuffer
from botflow.contracts.enums import BranchHandle, NodeKind
from botflow.contracts.graph import Node
from botflow.contracts.node_configs import parse_node_config
from botflow.core.config import CompilerSettings
from botflow.core.dag.execution_graph import ExecutionGraph

type Emitter = Callable[[EmitContext, int, Node, Any, int], None]


class EmitContext:
    """Depth-first walk over an ExecutionGraph, recording into a CodeBuffer.

    Each node is emitted at most once; a node reached again (a join or a
    cycle) is skipped.
    """

    def __init__(
        self,
        graph: ExecutionGraph,
        buffer: CodeBuffer,
        settings: CompilerSettings,
        emitters: Mapping[NodeKind, Emitter],
    ) -> None:
        self.graph = graph
        self.buffer = buffer
        self.settings = settings
        self._emitters = emitters
        self._visited: set[int] = set()

    def walk(self, index: int, depth: int) -> None:
        if index in self._visited:
            return
        self._visited.add(index)
        node = self.graph.slot(index).node
        config = parse_node_config(node)
        self._emitters[node.kind](self, index, node, config, depth)

    def heading(self, depth: int, title: str, node: Node) -> None:
        """Comment opening a node's code.

        Names the node by id only: labels and other free text stay out of the
        body, since the sandbox gate scans comments too.
        """
        self.buffer.comment(depth, f"{title} [{node.id}]")

    def follow(self, index: int, depth: int) -> None:
        """Continue into every successor, in edge order."""
        for link in self.graph.slot(index).next:
            self.walk(link.index, depth)

    def follow_branch(self, index: int, tag: BranchHandle, depth: int) -> None:
        """Continue into the successors whose handle contains ``tag``."""
        for link in self.graph.slot(index).next:
            if link.handle is not None and tag in link.handle:
                self.walk(link.index, depth)

    def block(self, index: int, tag: BranchHandle, depth: int) -> None:
        """Emit one arm of a compound statement; an empty arm gets ``pass``."""
        mark = self.buffer.mark()
        self.follow_branch(index, tag, depth)
        self.buffer.ensure_block(mark, depth)

    def if_else(self, index: int, condition: str, arms: tuple[BranchHandle, BranchHandle], depth: int) -> None:
        self.buffer.statement(depth, f"if {condition}:")
        self.block(index, arms[0], depth + 1)
        self.buffer.statement(depth, "else:")
        self.block(index, arms[1], depth + 1)

    @staticmethod
    def temp(prefix: str, index: int) -> str:
        """Local name unique to one node, e.g. ``_count_3``."""
        return f"_{prefix}_{index}"
