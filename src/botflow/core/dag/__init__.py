# src/botflow/core/dag/__init__.py
"""Graph operations run before code generation: validation and arena building."""

from botflow.core.dag.execution_graph import ExecutionGraph, Link, NodeSlot, build_execution_graph
from botflow.core.dag.validator import GraphValidator

__all__ = [
    "ExecutionGraph",
    "GraphValidator",
    "Link",
    "NodeSlot",
    "build_execution_graph",
]
