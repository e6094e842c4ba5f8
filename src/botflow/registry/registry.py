# src/botflow/registry/registry.py
"""Registry of compiled plugins accepted past the sandbox gate."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import structlog

from botflow.contracts.enums import CommandType
from botflow.contracts.errors import PluginDisabledError, PluginNotFoundError
from botflow.contracts.plugin import CommandTypeCounts, CompiledPlugin, RegistryStatistics
from botflow.core.logging import get_logger
from botflow.registry.gate import SandboxGate

if TYPE_CHECKING:
    from botflow.runtime.context import Invocation
    from botflow.runtime.executor import ExecutionResult, PluginRuntime


class PluginRegistry:
    """In-memory registry keyed by plugin id.

    Thread-safe for concurrent access. Records are frozen; enabling or
    disabling swaps in a copy.

    Example:
        registry = PluginRegistry(runtime=PluginRuntime())
        if registry.register(plugin):
            result = await registry.execute(plugin.id, invocation)
    """

    def __init__(
        self,
        gate: SandboxGate | None = None,
        runtime: PluginRuntime | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._gate = gate if gate is not None else SandboxGate()
        self._runtime = runtime
        self._logger = logger if logger is not None else get_logger(__name__)
        self._plugins: dict[str, CompiledPlugin] = {}
        self._lock = threading.Lock()

    def register(self, plugin: CompiledPlugin) -> bool:
        """Add or replace a plugin. Returns False, without raising, if the gate rejects it."""
        result = self._gate.scan(plugin.body)
        if not result.allowed:
            self._logger.warning(
                "plugin_rejected",
                plugin_id=plugin.id,
                name=plugin.name,
                violations=list(result.violations),
            )
            return False
        with self._lock:
            replaced = plugin.id in self._plugins
            self._plugins[plugin.id] = plugin
        self._logger.info("plugin_registered", plugin_id=plugin.id, enabled=plugin.enabled, replaced=replaced)
        return True

    def unregister(self, plugin_id: str) -> bool:
        with self._lock:
            removed = self._plugins.pop(plugin_id, None)
        if removed is None:
            return False
        if self._runtime is not None:
            self._runtime.evict(plugin_id)
        self._logger.info("plugin_unregistered", plugin_id=plugin_id)
        return True

    def _set_enabled(self, plugin_id: str, enabled: bool) -> bool:
        with self._lock:
            plugin = self._plugins.get(plugin_id)
            if plugin is None:
                return False
            self._plugins[plugin_id] = plugin.with_enabled(enabled)
        self._logger.info("plugin_enabled" if enabled else "plugin_disabled", plugin_id=plugin_id)
        return True

    def enable(self, plugin_id: str) -> bool:
        return self._set_enabled(plugin_id, True)

    def disable(self, plugin_id: str) -> bool:
        return self._set_enabled(plugin_id, False)

    def get(self, plugin_id: str) -> CompiledPlugin | None:
        with self._lock:
            return self._plugins.get(plugin_id)

    def all(self) -> list[CompiledPlugin]:
        with self._lock:
            return list(self._plugins.values())

    def enabled_plugins(self) -> list[CompiledPlugin]:
        return [plugin for plugin in self.all() if plugin.enabled]

    def find_by_command(self, command: str, command_type: CommandType = CommandType.SLASH) -> list[CompiledPlugin]:
        """Enabled plugins whose trigger matches ``command`` (case-insensitive).

        A plugin registered for "both" matches either command type.
        """
        wanted = command.lower()
        return [
            plugin
            for plugin in self.enabled_plugins()
            if plugin.trigger.command is not None
            and plugin.trigger.command.lower() == wanted
            and plugin.trigger.command_type in (command_type, CommandType.BOTH)
        ]

    def statistics(self) -> RegistryStatistics:
        plugins = self.all()
        enabled = sum(1 for plugin in plugins if plugin.enabled)
        slash = sum(1 for plugin in plugins if plugin.trigger.command_type in (CommandType.SLASH, CommandType.BOTH))
        text = sum(1 for plugin in plugins if plugin.trigger.command_type in (CommandType.TEXT, CommandType.BOTH))
        return RegistryStatistics(
            total=len(plugins),
            enabled=enabled,
            disabled=len(plugins) - enabled,
            by_type=CommandTypeCounts(slash=slash, text=text),
        )

    async def execute(self, plugin_id: str, invocation: Invocation) -> ExecutionResult:
        """Run a registered, enabled plugin through the runtime.

        Raises:
            PluginNotFoundError: If the id is not registered.
            PluginDisabledError: If the plugin is disabled.
            RuntimeError: If the registry was built without a runtime.
        """
        plugin = self.get(plugin_id)
        if plugin is None:
            raise PluginNotFoundError(plugin_id)
        if not plugin.enabled:
            raise PluginDisabledError(plugin_id, plugin.name)
        if self._runtime is None:
            raise RuntimeError("PluginRegistry was created without a runtime")
        return await self._runtime.execute(plugin, invocation)

    def clear(self) -> None:
        """Remove every plugin (for testing)."""
        with self._lock:
            self._plugins.clear()
