"""Loading and running compiled routines: context, state, HTTP and helpers."""

from botflow.runtime.context import Invocation, RuntimeContext, Variables
from botflow.runtime.executor import ExecutionResult, PluginRuntime
from botflow.runtime.http import PluginHttpClient
from botflow.runtime.state import InMemoryStateStore, PluginState, SqlStateStore, StateStore

__all__ = [
    "ExecutionResult",
    "InMemoryStateStore",
    "Invocation",
    "PluginHttpClient",
    "PluginRuntime",
    "PluginState",
    "RuntimeContext",
    "SqlStateStore",
    "StateStore",
    "Variables",
]
