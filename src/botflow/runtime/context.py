# src/botflow/runtime/context.py
"""Per-invocation context handed to a routine as ``ctx``.

The bot objects are duck-typed against the discord.py shapes (interaction,
message, client, member, guild). Nothing here imports discord.py, so the
runtime can be driven by any object with the same attributes, fakes
included.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import structlog

from botflow.core.logging import get_logger

if TYPE_CHECKING:
    from botflow.runtime.state import StateStore


class Variables(dict[str, Any]):
    """Variable mapping for one invocation; a name never assigned reads as None."""

    def __missing__(self, key: str) -> None:
        return None


@dataclass
class Invocation:
    """What triggered a routine: a slash-command interaction or a text message."""

    interaction: Any = None
    message: Any = None
    client: Any = None
    # Overrides the runtime's state store for this invocation.
    state: StateStore | None = None
    # Explicit option values; take precedence over the interaction's namespace.
    options: Mapping[str, Any] = field(default_factory=dict)
    # Turns an embed dict into the library's embed object (e.g. discord.Embed.from_dict).
    embed_factory: Callable[[dict[str, Any]], Any] | None = None
    auto_reply: bool = True


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def permission_attribute(name: str) -> str:
    """``ManageMessages`` / ``MANAGE_MESSAGES`` / ``manage_messages`` to ``manage_messages``."""
    name = name.strip()
    if not name.isupper():
        name = _CAMEL_BOUNDARY.sub("_", name)
    return name.lower()


def _id(value: Any) -> int:
    return int(str(value).strip())


class RuntimeContext:
    """Accessors and side effects available to generated code."""

    def __init__(self, invocation: Invocation, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._invocation = invocation
        self._logger = logger if logger is not None else get_logger(__name__)
        self.variables = Variables()
        self._background: set[asyncio.Task[None]] = set()

    # --- invoking objects ---

    @property
    def interaction(self) -> Any:
        return self._invocation.interaction

    @property
    def message(self) -> Any:
        return self._invocation.message

    @property
    def client(self) -> Any:
        return self._invocation.client

    @property
    def user(self) -> Any:
        if self.interaction is not None:
            return getattr(self.interaction, "user", None)
        if self.message is not None:
            return getattr(self.message, "author", None)
        return None

    @property
    def channel(self) -> Any:
        source = self.interaction if self.interaction is not None else self.message
        return getattr(source, "channel", None)

    @property
    def guild(self) -> Any:
        source = self.interaction if self.interaction is not None else self.message
        return getattr(source, "guild", None)

    # --- read accessors ---

    @property
    def user_name(self) -> str:
        return getattr(self.user, "name", None) or "Unknown"

    @property
    def user_id(self) -> str:
        user_id = getattr(self.user, "id", None)
        return "" if user_id is None else str(user_id)

    @property
    def channel_id(self) -> str:
        channel_id = getattr(self.channel, "id", None)
        return "" if channel_id is None else str(channel_id)

    @property
    def guild_id(self) -> str:
        guild_id = getattr(self.guild, "id", None)
        return "" if guild_id is None else str(guild_id)

    @property
    def server_name(self) -> str:
        return getattr(self.guild, "name", None) or "Unknown"

    @property
    def channel_name(self) -> str:
        return getattr(self.channel, "name", None) or "Unknown"

    @property
    def member_count(self) -> int:
        return getattr(self.guild, "member_count", None) or 0

    def option(self, name: str) -> Any:
        """A command option by name, else the raw message text, else ``""``."""
        if name in self._invocation.options:
            return self._invocation.options[name]
        namespace = getattr(self.interaction, "namespace", None)
        value = getattr(namespace, name, None) if namespace is not None else None
        if value is not None:
            return value
        content = getattr(self.message, "content", None)
        return content or ""

    # --- permission checks ---

    def _role_ids(self) -> set[str]:
        roles: Iterable[Any] = getattr(self.user, "roles", None) or ()
        return {str(role.id) for role in roles}

    def has_role(self, role_id: str) -> bool:
        return str(role_id) in self._role_ids()

    def has_any_role(self, role_ids: Iterable[str]) -> bool:
        return not self._role_ids().isdisjoint(str(role_id) for role_id in role_ids)

    def has_permissions(self, names: Iterable[str]) -> bool:
        """True only if the invoking member holds every named permission."""
        permissions = getattr(self.user, "guild_permissions", None)
        if permissions is None:
            return False
        return all(getattr(permissions, permission_attribute(name), False) is True for name in names)

    # --- replies ---

    def _reply_arguments(self, payload: Any) -> tuple[str | None, dict[str, Any]]:
        if not isinstance(payload, dict):
            return str(payload), {}
        factory = self._invocation.embed_factory
        embeds = [factory(embed) if factory is not None else embed for embed in payload.get("embeds", [])]
        kwargs: dict[str, Any] = {"embeds": embeds}
        return payload.get("content"), kwargs

    async def send_response(self, payload: Any) -> Any:
        """Reply to the invocation and return the sent message.

        A string payload is sent as content; a dict carries ``embeds`` and
        ``ephemeral``.
        """
        content, kwargs = self._reply_arguments(payload)
        ephemeral = isinstance(payload, dict) and bool(payload.get("ephemeral"))
        if self.interaction is not None:
            response = self.interaction.response
            if not response.is_done():
                await response.send_message(content=content, ephemeral=ephemeral, **kwargs)
                return await self.interaction.original_response()
            return await self.interaction.followup.send(content=content, ephemeral=ephemeral, wait=True, **kwargs)
        if self.message is not None:
            return await self.message.channel.send(content, **kwargs)
        raise RuntimeError("Invocation has neither an interaction nor a message to reply to")

    # --- lookups ---

    def _require_client(self) -> Any:
        if self.client is None:
            raise RuntimeError("Invocation has no client")
        return self.client

    def _require_guild(self) -> Any:
        if self.guild is None:
            raise RuntimeError("Invocation is not in a guild")
        return self.guild

    async def _channel(self, channel_id: str) -> Any:
        if self.channel is not None and str(channel_id) == self.channel_id:
            return self.channel
        client = self._require_client()
        return client.get_channel(_id(channel_id)) or await client.fetch_channel(_id(channel_id))

    async def _member(self, user_id: str) -> Any:
        guild = self._require_guild()
        return guild.get_member(_id(user_id)) or await guild.fetch_member(_id(user_id))

    def _reaction_target(self) -> Any:
        target = self.variables.get("_sent_message") or self.message
        if target is None:
            raise RuntimeError("No message to react to")
        return target

    # --- side effects ---

    async def send_message(self, channel_id: str, content: str) -> Any:
        channel = await self._channel(channel_id)
        return await channel.send(content)

    async def send_dm(self, user_id: str, content: str) -> Any:
        client = self._require_client()
        user = client.get_user(_id(user_id)) or await client.fetch_user(_id(user_id))
        return await user.send(content)

    async def add_reaction(self, emoji: str) -> None:
        await self._reaction_target().add_reaction(emoji)

    async def add_reactions(self, emojis: Iterable[Any]) -> None:
        """React with each emoji in turn; one failed reaction does not stop the rest."""
        target = self._reaction_target()
        for emoji in emojis:
            try:
                await target.add_reaction(emoji)
            except Exception as e:
                self._logger.warning("reaction_failed", emoji=str(emoji), error=str(e))

    def setup_single_choice_voting(self, message: Any, emojis: list[Any], duration_ms: Any) -> None:
        """Keep at most one of ``emojis`` per voter on ``message`` for ``duration_ms``.

        Runs in the background; the routine does not wait for the vote to end.
        """
        if message is None or not emojis or not duration_ms:
            raise RuntimeError("Voting needs a sent message, emojis and a duration")
        client = self._require_client()
        task = asyncio.get_running_loop().create_task(
            self._run_single_choice_voting(client, message, [str(emoji) for emoji in emojis], float(duration_ms) / 1000)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run_single_choice_voting(self, client: Any, message: Any, emojis: list[str], seconds: float) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + seconds
        bot_user = getattr(client, "user", None)

        def is_vote(reaction: Any, user: Any) -> bool:
            return (
                getattr(reaction.message, "id", None) == message.id
                and str(reaction.emoji) in emojis
                and user != bot_user
                and not getattr(user, "bot", False)
            )

        while (remaining := deadline - loop.time()) > 0:
            try:
                reaction, user = await client.wait_for("reaction_add", check=is_vote, timeout=remaining)
            except TimeoutError:
                break
            for emoji in emojis:
                if emoji != str(reaction.emoji):
                    try:
                        await message.remove_reaction(emoji, user)
                    except Exception as e:
                        self._logger.warning("vote_cleanup_failed", emoji=emoji, error=str(e))
        self._logger.debug("voting_closed", message_id=str(message.id))

    async def collect_reactions(self, channel_id: str, message_id: Any, emoji: str, timeout_ms: int) -> int:
        """Wait ``timeout_ms``, then count non-bot reactions of ``emoji`` on the message."""
        channel = await self._channel(channel_id)
        await asyncio.sleep(max(timeout_ms, 0) / 1000)
        message = await channel.fetch_message(_id(message_id))
        for reaction in getattr(message, "reactions", ()):
            if str(reaction.emoji) == emoji:
                return int(reaction.count) - (1 if getattr(reaction, "me", False) else 0)
        return 0

    async def add_role(self, user_id: str, role_id: str) -> None:
        member = await self._member(user_id)
        role = self._require_guild().get_role(_id(role_id))
        if role is None:
            raise LookupError(f"Role {role_id} not found")
        await member.add_roles(role)

    async def remove_role(self, user_id: str, role_id: str) -> None:
        member = await self._member(user_id)
        role = self._require_guild().get_role(_id(role_id))
        if role is None:
            raise LookupError(f"Role {role_id} not found")
        await member.remove_roles(role)

    async def kick_member(self, user_id: str, reason: str | None = None) -> None:
        member = await self._member(user_id)
        await member.kick(reason=reason)

    async def ban_member(self, user_id: str, reason: str | None = None, delete_days: int = 0) -> None:
        member = await self._member(user_id)
        await self._require_guild().ban(member, reason=reason, delete_message_seconds=max(delete_days, 0) * 86400)

    async def timeout_member(self, user_id: str, duration_ms: int, reason: str | None = None) -> None:
        member = await self._member(user_id)
        await member.timeout(timedelta(milliseconds=duration_ms), reason=reason)

    async def create_channel(self, name: str, channel_type: str = "text", topic: str = "") -> Any:
        guild = self._require_guild()
        match channel_type.lower():
            case "voice" | "2":
                return await guild.create_voice_channel(name)
            case "category" | "4":
                return await guild.create_category(name)
            case _:
                return await guild.create_text_channel(name, topic=topic or None)

    async def delete_channel(self, channel_id: str) -> None:
        channel = await self._channel(channel_id)
        await channel.delete()

    async def delete_message(self, channel_id: str, message_id: Any) -> None:
        channel = await self._channel(channel_id)
        message = await channel.fetch_message(_id(message_id))
        await message.delete()

    async def wait_background(self) -> None:
        """Wait for background work such as voting collectors (for testing)."""
        if self._background:
            await asyncio.gather(*self._background)
