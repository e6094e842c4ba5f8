# src/botflow/compiler/emitters/io.py
"""Emitters for nodes that wait on something outside the routine:
logging and delays, the state store, HTTP, and embed replies.
"""

from __future__ import annotations

import re

from botflow.compiler.emitters.base import EmitContext
from botflow.compiler.interpolation import fstring, variable_name, variable_ref
from botflow.compiler.ir import literal
from botflow.contracts.enums import ActionType, DatabaseOperation, HttpMethod
from botflow.contracts.errors import CompileError
from botflow.contracts.graph import Node
from botflow.contracts.node_configs import (
    ActionConfig,
    DatabaseConfig,
    EmbedBuilderConfig,
    EmbedResponseConfig,
    HttpRequestConfig,
)

_HEX_COLOR = re.compile(r"[0-9A-Fa-f]{1,6}")


def emit_action(ctx: EmitContext, index: int, node: Node, config: ActionConfig, depth: int) -> None:
    buffer = ctx.buffer
    ctx.heading(depth, f"Action {config.action_type.value}", node)
    match config.action_type:
        case ActionType.LOG:
            buffer.statement(depth, f"log.info('plugin_log', message={fstring(config.message)})")
        case ActionType.WAIT:
            if isinstance(config.duration, str):
                duration = fstring(config.duration)
            else:
                duration = literal(max(config.duration, 0))
            buffer.statement(depth, f"await sleep_ms({duration})")
        case ActionType.SET_STATE:
            buffer.statement(depth, f"await state.set({config.key!r}, {fstring(config.value)})")
    ctx.follow(index, depth)


def emit_http_request(ctx: EmitContext, index: int, node: Node, config: HttpRequestConfig, depth: int) -> None:
    name = variable_name(config.response_var)
    response, failure = ctx.temp("response", index), ctx.temp("exc", index)
    arguments = [repr(config.method.value), fstring(config.url)]
    if config.headers:
        arguments.append(f"headers={literal(config.headers)}")
    if config.body is not None and config.method != HttpMethod.GET:
        arguments.append(f"content={fstring(config.body)}")

    buffer = ctx.buffer
    ctx.heading(depth, f"HTTP Request {config.method.value}", node)
    buffer.statement(depth, "try:")
    buffer.statement(depth + 1, f"{response} = await http.request({', '.join(arguments)})")
    buffer.statement(depth + 1, f"{variable_ref(name)} = {response}.json()")
    buffer.statement(depth + 1, f"{variable_ref(name + '_status')} = {response}.status_code")
    buffer.statement(depth, f"except Exception as {failure}:")
    buffer.statement(depth + 1, f"{variable_ref(name + '_error')} = str({failure})")
    buffer.statement(depth + 1, f"log.error('http_request_failed', node={node.id!r}, error=str({failure}))")
    ctx.follow(index, depth)


def emit_database(ctx: EmitContext, index: int, node: Node, config: DatabaseConfig, depth: int) -> None:
    key, target = fstring(config.key), variable_ref(config.result_var)
    buffer = ctx.buffer
    ctx.heading(depth, f"Database {config.operation.value}", node)
    match config.operation:
        case DatabaseOperation.GET:
            buffer.statement(depth, f"{target} = await state.get({key})")
        case DatabaseOperation.SET:
            buffer.statement(depth, f"await state.set({key}, {fstring(config.value)})")
        case DatabaseOperation.DELETE:
            buffer.statement(depth, f"await state.delete({key})")
        case DatabaseOperation.LIST:
            buffer.statement(depth, f"{target} = await state.list()")
        case DatabaseOperation.EXISTS:
            buffer.statement(depth, f"{target} = await state.exists({key})")
    ctx.follow(index, depth)


def parse_color(color: str) -> int:
    """``#ff0000`` / ``ff0000`` to the integer Discord expects."""
    digits = color.strip().removeprefix("#")
    if not _HEX_COLOR.fullmatch(digits):
        raise CompileError(f"Invalid embed color {color!r}; expected a hex value such as #5865F2")
    return int(digits, 16)


def emit_embed_builder(ctx: EmitContext, index: int, node: Node, config: EmbedBuilderConfig, depth: int) -> None:
    embed = ctx.temp("embed", index)
    buffer = ctx.buffer

    def put(key: str, value: str) -> None:
        buffer.statement(depth, f"{embed}[{key!r}] = {value}")

    ctx.heading(depth, "Build Embed", node)
    buffer.statement(depth, f"{embed} = {{}}")
    if config.title:
        put("title", fstring(config.title))
    if config.description:
        put("description", fstring(config.description))
    if config.color:
        put("color", str(parse_color(config.color)))
    if config.author is not None:
        author = [f"'name': {fstring(config.author.name)}"]
        if config.author.icon:
            author.append(f"'icon_url': {fstring(config.author.icon)}")
        if config.author.url:
            author.append(f"'url': {fstring(config.author.url)}")
        put("author", "{" + ", ".join(author) + "}")
    if config.thumbnail:
        put("thumbnail", f"{{'url': {fstring(config.thumbnail)}}}")
    if config.image:
        put("image", f"{{'url': {fstring(config.image)}}}")
    if config.footer is not None:
        footer = [f"'text': {fstring(config.footer.text)}"]
        if config.footer.icon:
            footer.append(f"'icon_url': {fstring(config.footer.icon)}")
        put("footer", "{" + ", ".join(footer) + "}")
    if config.timestamp:
        put("timestamp", "now_iso()")
    if config.fields:
        fields = ", ".join(
            f"{{'name': {fstring(field.name)}, 'value': {fstring(field.value)}, 'inline': {field.inline!r}}}"
            for field in config.fields
        )
        put("fields", f"[{fields}]")
    buffer.statement(depth, f"{variable_ref(config.output_var)} = {embed}")
    ctx.follow(index, depth)


def emit_embed_response(ctx: EmitContext, index: int, node: Node, config: EmbedResponseConfig, depth: int) -> None:
    sent, failure = ctx.temp("sent", index), ctx.temp("exc", index)
    embed = variable_ref(variable_name(config.embed_var))
    buffer = ctx.buffer
    ctx.heading(depth, "Send Embed", node)
    buffer.statement(depth, f"pending_response = {{'embeds': [{embed}], 'ephemeral': {config.ephemeral!r}}}")
    buffer.statement(depth, "try:")
    buffer.statement(depth + 1, f"{sent} = await ctx.send_response(pending_response)")
    buffer.statement(depth + 1, "await resolve(pending_response, already_sent=True)")
    buffer.statement(depth + 1, "pending_response = None")
    buffer.statement(depth + 1, f"variables['_sent_message'] = {sent}")
    buffer.statement(depth + 1, f"variables['_message_id'] = {sent}.id")
    buffer.statement(depth + 1, f"variables['_channel_id'] = {sent}.channel.id")
    buffer.statement(depth, f"except Exception as {failure}:")
    buffer.statement(depth + 1, f"log.error('embed_send_failed', node={node.id!r}, error=str({failure}))")
    ctx.follow(index, depth)
