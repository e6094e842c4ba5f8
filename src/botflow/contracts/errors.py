"""Exception hierarchy shared by the compiler, registry and runtime.

Validation problems are collected and reported together; compile errors are
fatal for a single compile call; runtime errors only escape a routine when
the routine itself could not run (load failure, timeout, uncaught error).
Node-level failures inside a running routine never reach these classes:
the generated code records them in ``<name>_error`` variables.
"""

from __future__ import annotations


class BotflowError(Exception):
    """Base class for all botflow errors."""


class GraphValidationError(BotflowError, ValueError):
    """Raised when a plugin graph fails validation.

    Carries every collected message, not just the first one.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) if self.errors else "Graph validation failed")


class CompileError(BotflowError):
    """Raised when a graph cannot be turned into a routine body."""


class ExpressionSecurityError(CompileError):
    """Raised when an expression contains forbidden constructs."""


class ExpressionSyntaxError(CompileError):
    """Raised when an expression is not valid Python expression syntax."""


class PluginLoadError(BotflowError):
    """Raised when a routine body cannot be loaded into the runtime."""


class PluginExecutionError(BotflowError):
    """Raised when a routine times out or fails outside any node boundary."""


class PluginNotFoundError(BotflowError, KeyError):
    """Raised when a plugin id is not registered."""

    def __init__(self, plugin_id: str) -> None:
        self.plugin_id = plugin_id
        super().__init__(f"Plugin {plugin_id} not found")

    def __str__(self) -> str:
        return f"Plugin {self.plugin_id} not found"


class PluginDisabledError(BotflowError):
    """Raised when a disabled plugin is asked to execute."""

    def __init__(self, plugin_id: str, name: str) -> None:
        self.plugin_id = plugin_id
        super().__init__(f"Plugin {name} is disabled")


class ForbiddenUrlError(BotflowError, ValueError):
    """Raised when a routine requests a URL outside the allowed schemes."""
