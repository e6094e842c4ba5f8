# src/botflow/compiler/compiler.py
"""NodeCompiler: plugin graph in, routine body out.

compile() walks the execution graph depth-first from the trigger and
records lines into a CodeBuffer; compile_plugin() wraps that with both
validation passes and packages the result as a CompiledPlugin.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from botflow.compiler.emitters import EMITTERS, EmitContext
from botflow.compiler.interpolation import variable_name
from botflow.compiler.ir import CodeBuffer
from botflow.contracts.enums import NodeKind, VariableSource
from botflow.contracts.errors import CompileError, GraphValidationError
from botflow.contracts.graph import Edge, Node
from botflow.contracts.node_configs import TriggerConfig, VariableConfig, parse_node_config
from botflow.contracts.plugin import CommandOption, CompiledPlugin, PluginTrigger
from botflow.core.config import CompilerSettings
from botflow.core.dag import GraphValidator, build_execution_graph
from botflow.core.logging import get_logger

ROUTINE_SIGNATURE = "async def execute(ctx, state, http, log, resolve):"


class NodeCompiler:
    """Compiles plugin graphs into routine bodies.

    Compilation is synchronous and pure; one instance can be shared.
    """

    def __init__(
        self,
        settings: CompilerSettings | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._settings = settings if settings is not None else CompilerSettings()
        self._logger = logger if logger is not None else get_logger(__name__)
        self._validator = GraphValidator(self._settings)

    @property
    def validator(self) -> GraphValidator:
        return self._validator

    def compile(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> str:
        """Generate the routine body for a graph.

        Raises:
            CompileError: If the graph has no trigger, or a node's
                configuration or expression is rejected.
        """
        graph = build_execution_graph(nodes, edges)
        triggers = graph.indices_of_kind(NodeKind.TRIGGER)
        if not triggers:
            raise CompileError("Plugin must have a trigger node")

        buffer = CodeBuffer(self._settings.max_indent_depth)
        buffer.comment(0, "Auto-generated plugin code")
        buffer.comment(0, "DO NOT EDIT MANUALLY")
        buffer.blank()
        buffer.statement(0, ROUTINE_SIGNATURE)
        buffer.statement(1, "variables = ctx.variables")
        buffer.statement(1, "pending_response = None")
        buffer.blank()

        EmitContext(graph, buffer, self._settings, EMITTERS).walk(triggers[0], 1)

        buffer.blank()
        buffer.comment(1, "Send final response")
        buffer.statement(1, "if pending_response is not None:")
        buffer.statement(2, "await resolve(pending_response)")

        body = buffer.render()
        self._logger.debug("plugin_compiled", nodes=len(graph), lines=len(buffer.lines))
        return body

    def extract_options(self, nodes: Sequence[Node]) -> list[CommandOption]:
        """One command option per named user_input variable node, in node order."""
        options: list[CommandOption] = []
        for node in nodes:
            if node.kind != NodeKind.VARIABLE or not node.config.get("name"):
                continue
            config = parse_node_config(node)
            if not isinstance(config, VariableConfig) or config.source != VariableSource.USER_INPUT:
                continue
            name = variable_name(config.name)
            options.append(
                CommandOption(
                    name=name,
                    description=config.description or f"Enter {name}",
                    required=config.required,
                )
            )
        return options

    def extract_trigger(self, nodes: Sequence[Node]) -> PluginTrigger:
        for node in nodes:
            config = parse_node_config(node) if node.kind == NodeKind.TRIGGER else None
            if isinstance(config, TriggerConfig):
                return PluginTrigger(
                    command=config.command,
                    command_type=config.command_type,
                    event=config.event,
                    pattern=config.pattern,
                )
        raise CompileError("Plugin must have a trigger node")

    def compile_plugin(
        self,
        plugin_id: str,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
        *,
        name: str | None = None,
        enabled: bool = True,
    ) -> CompiledPlugin:
        """Validate, compile and package a plugin.

        Raises:
            GraphValidationError: With every structural and complexity
                message; compilation is not attempted.
            CompileError: If code generation fails.
        """
        errors = [
            *self._validator.validate(nodes, edges).errors,
            *self._validator.check_complexity(nodes, edges).errors,
        ]
        if errors:
            self._logger.info("plugin_validation_failed", plugin_id=plugin_id, errors=errors)
            raise GraphValidationError(errors)

        body = self.compile(nodes, edges)
        plugin = CompiledPlugin(
            id=plugin_id,
            name=name or plugin_id,
            nodes=tuple(nodes),
            edges=tuple(edges),
            body=body,
            trigger=self.extract_trigger(nodes),
            enabled=enabled,
            options=tuple(self.extract_options(nodes)),
        )
        self._logger.info("plugin_compiled", plugin_id=plugin_id, options=len(plugin.options))
        return plugin
