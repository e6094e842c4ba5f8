# src/botflow/compiler/emitters/discord.py
"""Emitter for discord_action nodes.

Every action is one awaited call on the runtime context inside its own
try/except. A failed call is logged and stored as ``<output or action>_error``;
the routine carries on with the next node.
"""

from __future__ import annotations

from botflow.compiler.emitters.base import EmitContext
from botflow.compiler.interpolation import fstring, variable_name, variable_ref
from botflow.contracts.enums import DiscordActionType
from botflow.contracts.graph import Node
from botflow.contracts.node_configs import DiscordActionConfig


def _user(config: DiscordActionConfig) -> str:
    return fstring(config.user_id) if config.user_id else "ctx.user_id"


def _channel(config: DiscordActionConfig) -> str:
    return fstring(config.channel_id) if config.channel_id else "ctx.channel_id"


def _message_id(config: DiscordActionConfig) -> str:
    return fstring(config.message_id) if config.message_id else "variables['_message_id']"


def action_call(config: DiscordActionConfig) -> str:
    """The statement performing ``config.action``."""
    match config.action:
        case DiscordActionType.SEND_MESSAGE:
            return f"await ctx.send_message({_channel(config)}, {fstring(config.message)})"
        case DiscordActionType.SEND_DM:
            return f"await ctx.send_dm({_user(config)}, {fstring(config.message)})"
        case DiscordActionType.ADD_REACTION:
            return f"await ctx.add_reaction({config.emoji!r})"
        case DiscordActionType.ADD_MULTIPLE_REACTIONS:
            emojis = variable_ref(variable_name(config.emojis))
            return f"await ctx.add_reactions(as_list({emojis}))"
        case DiscordActionType.SETUP_SINGLE_CHOICE_VOTING:
            emojis = variable_ref(variable_name(config.emojis))
            duration = variable_ref(variable_name(config.duration))
            return f"ctx.setup_single_choice_voting(variables['_sent_message'], as_list({emojis}), {duration})"
        case DiscordActionType.COLLECT_REACTIONS:
            target = variable_ref(config.output_var or "reactions")
            return (
                f"{target} = await ctx.collect_reactions("
                f"{_channel(config)}, {_message_id(config)}, {config.emoji!r}, {config.time})"
            )
        case DiscordActionType.CHECK_ROLE:
            return f"{variable_ref(config.output_var or 'hasRole')} = ctx.has_role({config.role_id!r})"
        case DiscordActionType.ADD_ROLE:
            return f"await ctx.add_role({_user(config)}, {config.role_id!r})"
        case DiscordActionType.REMOVE_ROLE:
            return f"await ctx.remove_role({_user(config)}, {config.role_id!r})"
        case DiscordActionType.KICK_MEMBER:
            reason = fstring(config.reason or "Kicked by bot")
            return f"await ctx.kick_member({_user(config)}, reason={reason})"
        case DiscordActionType.BAN_MEMBER:
            reason = fstring(config.reason or "Banned by bot")
            return f"await ctx.ban_member({_user(config)}, reason={reason}, delete_days={config.delete_days})"
        case DiscordActionType.TIMEOUT_MEMBER:
            reason = fstring(config.reason or "Timed out by bot")
            return f"await ctx.timeout_member({_user(config)}, {config.time}, reason={reason})"
        case DiscordActionType.CREATE_CHANNEL:
            target = variable_ref(config.output_var or "newChannel")
            return (
                f"{target} = await ctx.create_channel("
                f"{fstring(config.name)}, {config.channel_type!r}, topic={fstring(config.topic)})"
            )
        case DiscordActionType.DELETE_CHANNEL:
            return f"await ctx.delete_channel({_channel(config)})"
        case DiscordActionType.DELETE_MESSAGE:
            return f"await ctx.delete_message({_channel(config)}, {_message_id(config)})"


def emit_discord_action(ctx: EmitContext, index: int, node: Node, config: DiscordActionConfig, depth: int) -> None:
    failure = ctx.temp("exc", index)
    error = variable_ref(f"{variable_name(config.output_var or config.action.value)}_error")
    buffer = ctx.buffer
    ctx.heading(depth, f"Discord Action {config.action.value}", node)
    buffer.statement(depth, "try:")
    buffer.statement(depth + 1, action_call(config))
    buffer.statement(depth, f"except Exception as {failure}:")
    buffer.statement(depth + 1, f"{error} = str({failure})")
    buffer.statement(
        depth + 1,
        f"log.error('discord_action_failed', action={config.action.value!r}, node={node.id!r}, error=str({failure}))",
    )
    ctx.follow(index, depth)
