"""Shared contracts for cross-boundary data types.

Everything that crosses the compiler / registry / runtime boundary is
defined here. This package is a leaf: it imports nothing from core,
compiler, registry or runtime.

Settings are not re-exported here; import them from botflow.core.config.
"""

from botflow.contracts.enums import (
    ActionType,
    ArrayOperation,
    BranchHandle,
    CommandType,
    ComparisonOperator,
    DatabaseOperation,
    DataType,
    DiscordActionType,
    HttpMethod,
    JsonOperation,
    MathOperation,
    NodeKind,
    ObjectOperation,
    PermissionCheck,
    PermissionMode,
    StringOperation,
    VariableSource,
)
from botflow.contracts.errors import (
    BotflowError,
    CompileError,
    ExpressionSecurityError,
    ExpressionSyntaxError,
    ForbiddenUrlError,
    GraphValidationError,
    PluginDisabledError,
    PluginExecutionError,
    PluginLoadError,
    PluginNotFoundError,
)
from botflow.contracts.graph import Edge, Node, PluginGraph
from botflow.contracts.node_configs import NodeConfig, parse_node_config
from botflow.contracts.plugin import (
    CommandOption,
    CommandTypeCounts,
    CompiledPlugin,
    PluginTrigger,
    RegistryStatistics,
    ValidationResult,
)

__all__ = [
    "ActionType",
    "ArrayOperation",
    "BotflowError",
    "BranchHandle",
    "CommandOption",
    "CommandType",
    "CommandTypeCounts",
    "ComparisonOperator",
    "CompileError",
    "CompiledPlugin",
    "DataType",
    "DatabaseOperation",
    "DiscordActionType",
    "Edge",
    "ExpressionSecurityError",
    "ExpressionSyntaxError",
    "ForbiddenUrlError",
    "GraphValidationError",
    "HttpMethod",
    "JsonOperation",
    "MathOperation",
    "Node",
    "NodeConfig",
    "NodeKind",
    "ObjectOperation",
    "PermissionCheck",
    "PermissionMode",
    "PluginDisabledError",
    "PluginExecutionError",
    "PluginGraph",
    "PluginLoadError",
    "PluginNotFoundError",
    "PluginTrigger",
    "RegistryStatistics",
    "StringOperation",
    "ValidationResult",
    "VariableSource",
    "parse_node_config",
]
