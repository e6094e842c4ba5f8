# src/botflow/contracts/graph.py
"""Graph model: the node/edge payload supplied by the editor.

Accepts both the flat shape ``{id, kind, label, config}`` and the editor's
nested shape ``{id, type, data: {label, config}}``. Node ids are restricted
to a small identifier grammar because they end up in generated comments,
log events and file names.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from botflow.contracts.enums import NodeKind

NODE_ID_PATTERN = r"^[A-Za-z0-9_-]{1,128}$"


class Node(BaseModel):
    """One typed step in a plugin graph.

    ``config`` stays an untyped mapping here; each kind's typed view is
    parsed by the compiler (see node_configs.py) so a bad configuration is
    reported against the node that carries it.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str = Field(pattern=NODE_ID_PATTERN)
    kind: NodeKind = Field(validation_alias=AliasChoices("kind", "type"))
    label: str = ""
    config: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten_editor_shape(cls, data: Any) -> Any:
        """Lift ``data.label`` / ``data.config`` from the editor's node shape."""
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            inner = data["data"]
            data = {key: value for key, value in data.items() if key != "data"}
            if "label" not in data:
                data["label"] = inner.get("label") or ""
            if "config" not in data:
                data["config"] = inner.get("config") or {}
        return data

    @property
    def display_name(self) -> str:
        """Label for human-facing messages, falling back to the id."""
        return self.label or self.id


class Edge(BaseModel):
    """A directed connection between two nodes.

    ``source_handle`` selects among multiple outgoing branches of the
    source node ("true"/"false", "allowed"/"denied", "loop-body"/"complete").
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str = ""
    source: str
    target: str
    source_handle: str | None = Field(
        default=None,
        validation_alias=AliasChoices("source_handle", "sourceHandle"),
    )
    target_handle: str | None = Field(
        default=None,
        validation_alias=AliasChoices("target_handle", "targetHandle"),
    )


class PluginGraph(BaseModel):
    """The ``{nodes, edges}`` payload for one plugin."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PluginGraph:
        """Parse an editor payload. Raises pydantic.ValidationError on bad input."""
        return cls.model_validate(payload)
