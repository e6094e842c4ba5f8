# src/botflow/compiler/__init__.py
"""Code generation: plugin graphs to routine bodies."""

from botflow.compiler.compiler import ROUTINE_SIGNATURE, NodeCompiler
from botflow.compiler.expressions import compile_expression
from botflow.compiler.interpolation import fstring, interpolate
from botflow.compiler.json_path import PathStep, extract_path, parse_json_path

__all__ = [
    "ROUTINE_SIGNATURE",
    "NodeCompiler",
    "PathStep",
    "compile_expression",
    "extract_path",
    "fstring",
    "interpolate",
    "parse_json_path",
]
