# src/botflow/registry/__init__.py
"""Sandbox gate and plugin registry."""

from botflow.registry.gate import DENYLIST, GateResult, SandboxGate
from botflow.registry.registry import PluginRegistry

__all__ = ["DENYLIST", "GateResult", "PluginRegistry", "SandboxGate"]
