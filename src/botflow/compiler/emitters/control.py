# src/botflow/compiler/emitters/control.py
"""Emitters for the trigger, the response and every branching node kind."""

from __future__ import annotations

from botflow.compiler.emitters.base import EmitContext
from botflow.compiler.expressions import compile_expression
from botflow.compiler.interpolation import fstring, value_expression, variable_name, variable_ref
from botflow.compiler.ir import literal
from botflow.contracts.enums import BranchHandle, ComparisonOperator, PermissionCheck, PermissionMode
from botflow.contracts.errors import CompileError
from botflow.contracts.graph import Node
from botflow.contracts.node_configs import (
    ComparisonConfig,
    ConditionConfig,
    ForLoopConfig,
    PermissionConfig,
    ResponseConfig,
    TriggerConfig,
    WhileLoopConfig,
)

_TRUE_FALSE = (BranchHandle.TRUE, BranchHandle.FALSE)
_ALLOWED_DENIED = (BranchHandle.ALLOWED, BranchHandle.DENIED)


def emit_trigger(ctx: EmitContext, index: int, node: Node, config: TriggerConfig, depth: int) -> None:
    ctx.heading(depth, "Trigger", node)
    ctx.buffer.statement(depth, "log.info('plugin_executed')")
    ctx.follow(index, depth)


def emit_response(ctx: EmitContext, index: int, node: Node, config: ResponseConfig, depth: int) -> None:
    ctx.heading(depth, "Response", node)
    ctx.buffer.statement(depth, f"pending_response = {fstring(config.message)}")
    ctx.follow(index, depth)


def emit_condition(ctx: EmitContext, index: int, node: Node, config: ConditionConfig, depth: int) -> None:
    condition = compile_expression(config.condition)
    ctx.heading(depth, "Condition", node)
    ctx.if_else(index, condition, _TRUE_FALSE, depth)


def comparison_source(config: ComparisonConfig) -> str:
    """Boolean expression source for a comparison node."""
    left, right = fstring(config.left), fstring(config.right)
    match config.operator:
        case ComparisonOperator.EQUAL | ComparisonOperator.STRICT_EQUAL:
            return f"{left} == {right}"
        case ComparisonOperator.NOT_EQUAL | ComparisonOperator.STRICT_NOT_EQUAL:
            return f"{left} != {right}"
        case (
            ComparisonOperator.GREATER
            | ComparisonOperator.LESS
            | ComparisonOperator.GREATER_EQUAL
            | ComparisonOperator.LESS_EQUAL
        ):
            left_number = f"to_number({value_expression(config.left)})"
            right_number = f"to_number({value_expression(config.right)})"
            return f"{left_number} {config.operator.value} {right_number}"
        case ComparisonOperator.INCLUDES:
            return f"{right} in {left}"
        case ComparisonOperator.STARTS_WITH:
            return f"{left}.startswith({right})"
        case ComparisonOperator.ENDS_WITH:
            return f"{left}.endswith({right})"
    raise CompileError(f"Unknown comparison operator: {config.operator!r}")


def emit_comparison(ctx: EmitContext, index: int, node: Node, config: ComparisonConfig, depth: int) -> None:
    ctx.heading(depth, f"Comparison {config.operator.value}", node)
    ctx.if_else(index, comparison_source(config), _TRUE_FALSE, depth)


def permission_source(config: PermissionConfig) -> str:
    values = literal(list(config.values))
    match config.check_type:
        case PermissionCheck.USER_ID:
            check = f"ctx.user_id in {values}"
        case PermissionCheck.ROLE:
            check = f"ctx.has_any_role({values})"
        case PermissionCheck.PERMISSION:
            check = f"ctx.has_permissions({values})"
        case _:
            raise CompileError(f"Unknown permission check: {config.check_type!r}")
    if config.mode == PermissionMode.BLACKLIST:
        return f"not ({check})"
    return check


def emit_permission(ctx: EmitContext, index: int, node: Node, config: PermissionConfig, depth: int) -> None:
    ctx.heading(depth, "Permission Check", node)
    ctx.if_else(index, permission_source(config), _ALLOWED_DENIED, depth)


def _max_iterations(ctx: EmitContext, configured: int | None) -> int:
    return configured if configured is not None else ctx.settings.default_max_iterations


def emit_for_loop(ctx: EmitContext, index: int, node: Node, config: ForLoopConfig, depth: int) -> None:
    count, item = ctx.temp("count", index), ctx.temp("item", index)
    array = variable_ref(variable_name(config.array_var))
    ctx.heading(depth, "For Loop", node)
    ctx.buffer.statement(depth, f"for {count}, {item} in enumerate(as_list({array})):")
    ctx.buffer.statement(depth + 1, f"if {count} >= {_max_iterations(ctx, config.max_iterations)}:")
    ctx.buffer.statement(depth + 2, "break")
    ctx.buffer.statement(depth + 1, f"{variable_ref(variable_name(config.iterator_var))} = {item}")
    ctx.follow_branch(index, BranchHandle.LOOP_BODY, depth + 1)
    ctx.follow_branch(index, BranchHandle.COMPLETE, depth)


def emit_while_loop(ctx: EmitContext, index: int, node: Node, config: WhileLoopConfig, depth: int) -> None:
    condition = compile_expression(config.condition)
    count = ctx.temp("count", index)
    ctx.heading(depth, "While Loop", node)
    ctx.buffer.statement(depth, f"{count} = 0")
    ctx.buffer.statement(depth, f"while ({condition}) and {count} < {_max_iterations(ctx, config.max_iterations)}:")
    ctx.buffer.statement(depth + 1, f"{count} += 1")
    ctx.follow_branch(index, BranchHandle.LOOP_BODY, depth + 1)
    ctx.follow_branch(index, BranchHandle.COMPLETE, depth)
