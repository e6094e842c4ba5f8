# src/botflow/contracts/plugin.py
"""Compiled plugin record and the small result types around it."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from botflow.contracts.enums import CommandType
from botflow.contracts.graph import Edge, Node


class CommandOption(BaseModel):
    """A slash-command option derived from a user_input variable node."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    required: bool = True


class PluginTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    command: str | None = None
    command_type: CommandType = CommandType.SLASH
    event: str | None = None
    pattern: str | None = None


class CompiledPlugin(BaseModel):
    """A plugin whose graph has been compiled into a routine body.

    Frozen. Enablement changes go through ``with_enabled`` which returns a
    copy, so a record handed out by the registry never changes under the
    caller.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    body: str
    trigger: PluginTrigger = Field(default_factory=PluginTrigger)
    enabled: bool = True
    options: tuple[CommandOption, ...] = ()

    def with_enabled(self, enabled: bool) -> CompiledPlugin:
        if enabled == self.enabled:
            return self
        return self.model_copy(update={"enabled": enabled})


class ValidationResult(BaseModel):
    """Outcome of a structural or complexity check. ``valid`` iff no errors."""

    model_config = ConfigDict(frozen=True)

    errors: tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    @classmethod
    def from_errors(cls, errors: list[str]) -> ValidationResult:
        return cls(errors=tuple(errors))


class CommandTypeCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    slash: int = 0
    text: int = 0


class RegistryStatistics(BaseModel):
    """Counts over the registry. A plugin of type "both" counts toward slash and text."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    enabled: int = 0
    disabled: int = 0
    by_type: CommandTypeCounts = Field(default_factory=CommandTypeCounts)
