# src/botflow/compiler/emitters/data.py
"""Emitters for nodes that only read and write the variable mapping."""

from __future__ import annotations

import json

from botflow.compiler.emitters.base import EmitContext
from botflow.compiler.expressions import compile_expression
from botflow.compiler.interpolation import fstring, interpolate, value_expression, variable_name, variable_ref
from botflow.compiler.ir import literal
from botflow.compiler.json_path import parse_json_path
from botflow.contracts.enums import (
    ArrayOperation,
    DataType,
    JsonOperation,
    ObjectOperation,
    StringOperation,
    VariableSource,
)
from botflow.contracts.graph import Node
from botflow.contracts.node_configs import (
    ArrayOperationConfig,
    DataConfig,
    JsonConfig,
    MathOperationConfig,
    ObjectOperationConfig,
    StringOperationConfig,
    VariableConfig,
)

_CONTEXT_SOURCES: dict[VariableSource, str] = {
    VariableSource.USER_NAME: "ctx.user_name",
    VariableSource.USER_ID: "ctx.user_id",
    VariableSource.CHANNEL_ID: "ctx.channel_id",
    VariableSource.GUILD_ID: "ctx.guild_id",
    VariableSource.TIMESTAMP: "now_iso()",
}

_DATA_SOURCES: dict[DataType, str] = {
    DataType.SERVER_NAME: "ctx.server_name",
    DataType.CHANNEL_NAME: "ctx.channel_name",
    DataType.TIMESTAMP: "now_iso()",
    DataType.CHANNEL_ID: "ctx.channel_id",
    DataType.SERVER_ID: "ctx.guild_id",
    DataType.MEMBER_COUNT: "ctx.member_count",
}


def unescape_separator(separator: str) -> str:
    """Editors type ``\\n`` for a newline separator; turn the common escapes into characters."""
    return separator.replace("\\n", "\n").replace("\\t", "\t").replace("\\r", "\r")


def variable_source(config: VariableConfig) -> str:
    match config.source:
        case VariableSource.USER_INPUT:
            return f"ctx.option({variable_name(config.name)!r})"
        case VariableSource.RANDOM_NUMBER:
            return f"random_int({config.minimum}, {config.maximum})"
        case VariableSource.LITERAL:
            return literal(config.value)
        case VariableSource.STRING:
            value = config.value if isinstance(config.value, str) else json.dumps(config.value)
            return fstring(value)
        case source:
            return _CONTEXT_SOURCES[source]


def emit_variable(ctx: EmitContext, index: int, node: Node, config: VariableConfig, depth: int) -> None:
    ctx.heading(depth, "Variable", node)
    ctx.buffer.statement(depth, f"{variable_ref(config.name)} = {variable_source(config)}")
    ctx.follow(index, depth)


def emit_data(ctx: EmitContext, index: int, node: Node, config: DataConfig, depth: int) -> None:
    ctx.heading(depth, f"Data {config.data_type.value}", node)
    ctx.buffer.statement(depth, f"{variable_ref(config.name)} = {_DATA_SOURCES[config.data_type]}")
    ctx.follow(index, depth)


def array_source(config: ArrayOperationConfig) -> str | None:
    """Right-hand side for the result variable, or None for in-place operations."""
    array = variable_ref(variable_name(config.array_var))
    match config.operation:
        case ArrayOperation.CREATE:
            return f"split_items({fstring(config.items)})"
        case ArrayOperation.POP:
            return f"pop_item({array})"
        case ArrayOperation.FILTER:
            condition = compile_expression(config.expression or "True", loop_locals=True)
            return f"[item for item in as_list({array}) if ({condition})]"
        case ArrayOperation.MAP:
            mapped = compile_expression(config.expression or "item", loop_locals=True)
            return f"[({mapped}) for index, item in enumerate(as_list({array}))]"
        case ArrayOperation.LENGTH:
            return f"len(as_list({array}))"
        case ArrayOperation.JOIN:
            return f"join_items({array}, {literal(unescape_separator(config.separator))})"
        case ArrayOperation.PUSH:
            return None


def emit_array_operation(ctx: EmitContext, index: int, node: Node, config: ArrayOperationConfig, depth: int) -> None:
    ctx.heading(depth, f"Array Operation {config.operation.value}", node)
    source = array_source(config)
    if source is None:
        name = variable_name(config.array_var)
        ctx.buffer.statement(depth, f"ensure_list(variables, {name!r}).append({fstring(config.item)})")
    else:
        ctx.buffer.statement(depth, f"{variable_ref(config.result_var)} = {source}")
    ctx.follow(index, depth)


def _condition_mapping(config: StringOperationConfig) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for condition in config.conditions:
        for alternative in condition.if_.split(","):
            mapping.setdefault(alternative.strip(), condition.then)
    return mapping


def string_source(config: StringOperationConfig) -> str:
    text = fstring(config.input)
    match config.operation:
        case StringOperation.CONCAT:
            return 'f"' + "".join(interpolate(part) for part in config.strings) + '"'
        case StringOperation.SPLIT:
            return f"split_text({text}, {literal(config.delimiter)})"
        case StringOperation.REPLACE:
            # Literal search text; never compiled as a pattern.
            return f"{text}.replace({literal(config.search)}, {fstring(config.replace)})"
        case StringOperation.UPPERCASE:
            return f"{text}.upper()"
        case StringOperation.LOWERCASE:
            return f"{text}.lower()"
        case StringOperation.TRIM:
            return f"{text}.strip()"
        case StringOperation.SUBSTRING:
            if config.end is None:
                return f"substring({text}, {fstring(config.start)})"
            return f"substring({text}, {fstring(config.start)}, {fstring(config.end)})"
        case StringOperation.CONDITION:
            return f"{literal(_condition_mapping(config))}.get({text}, {literal(config.default)})"
        case StringOperation.JOIN:
            array = variable_ref(variable_name(config.array_var))
            return f"join_items({array}, {literal(unescape_separator(config.separator))})"


def emit_string_operation(ctx: EmitContext, index: int, node: Node, config: StringOperationConfig, depth: int) -> None:
    ctx.heading(depth, f"String Operation {config.operation.value}", node)
    ctx.buffer.statement(depth, f"{variable_ref(config.result_var)} = {string_source(config)}")
    ctx.follow(index, depth)


def emit_object_operation(ctx: EmitContext, index: int, node: Node, config: ObjectOperationConfig, depth: int) -> None:
    target = variable_ref(config.output_var)
    source = variable_ref(variable_name(config.object_var))
    ctx.heading(depth, f"Object Operation {config.operation.value}", node)
    match config.operation:
        case ObjectOperation.CREATE:
            entries = ", ".join(f"{pair.key!r}: {fstring(pair.value)}" for pair in config.pairs)
            ctx.buffer.statement(depth, f"{target} = {{{entries}}}")
        case ObjectOperation.GET:
            ctx.buffer.statement(depth, f"{target} = get_key({source}, {config.key!r})")
        case ObjectOperation.SET:
            name = variable_name(config.object_var)
            ctx.buffer.statement(depth, f"ensure_dict(variables, {name!r})[{config.key!r}] = {fstring(config.value)}")
        case ObjectOperation.KEYS:
            ctx.buffer.statement(depth, f"{target} = object_keys({source})")
        case ObjectOperation.VALUES:
            ctx.buffer.statement(depth, f"{target} = object_values({source})")
    ctx.follow(index, depth)


def emit_math_operation(ctx: EmitContext, index: int, node: Node, config: MathOperationConfig, depth: int) -> None:
    left, right = value_expression(config.left), value_expression(config.right)
    ctx.heading(depth, f"Math {config.operation.value}", node)
    ctx.buffer.statement(
        depth,
        f"{variable_ref(config.result_var)} = calculate({config.operation.value!r}, {left}, {right})",
    )
    ctx.follow(index, depth)


def emit_json(ctx: EmitContext, index: int, node: Node, config: JsonConfig, depth: int) -> None:
    source = variable_ref(variable_name(config.input_var))
    target = variable_ref(config.output_var)
    error = variable_ref(f"{variable_name(config.output_var)}_error")
    failure = ctx.temp("exc", index)
    buffer = ctx.buffer
    ctx.heading(depth, f"JSON {config.operation.value}", node)
    match config.operation:
        case JsonOperation.PARSE:
            buffer.statement(depth, "try:")
            buffer.statement(depth + 1, f"{target} = parse_json({source})")
            buffer.statement(depth, f"except Exception as {failure}:")
            buffer.statement(depth + 1, f"{error} = str({failure})")
        case JsonOperation.STRINGIFY:
            buffer.statement(depth, f"{target} = to_json({source})")
        case JsonOperation.EXTRACT:
            steps = [(step.kind, step.value) for step in parse_json_path(config.path, ctx.settings.max_json_path_length)]
            buffer.statement(depth, "try:")
            buffer.statement(depth + 1, f"{target} = navigate({source}, {literal(steps)})")
            buffer.statement(depth, f"except Exception as {failure}:")
            buffer.statement(depth + 1, f"{error} = str({failure})")
            buffer.statement(depth + 1, f"{target} = None")
    ctx.follow(index, depth)
