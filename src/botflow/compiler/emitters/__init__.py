# src/botflow/compiler/emitters/__init__.py
"""Per-kind emitters, keyed by node kind."""

from botflow.compiler.emitters.base import EmitContext, Emitter
from botflow.compiler.emitters.control import (
    emit_comparison,
    emit_condition,
    emit_for_loop,
    emit_permission,
    emit_response,
    emit_trigger,
    emit_while_loop,
)
from botflow.compiler.emitters.data import (
    emit_array_operation,
    emit_data,
    emit_json,
    emit_math_operation,
    emit_object_operation,
    emit_string_operation,
    emit_variable,
)
from botflow.compiler.emitters.discord import emit_discord_action
from botflow.compiler.emitters.io import (
    emit_action,
    emit_database,
    emit_embed_builder,
    emit_embed_response,
    emit_http_request,
)
from botflow.contracts.enums import NodeKind

EMITTERS: dict[NodeKind, Emitter] = {
    NodeKind.TRIGGER: emit_trigger,
    NodeKind.RESPONSE: emit_response,
    NodeKind.VARIABLE: emit_variable,
    NodeKind.CONDITION: emit_condition,
    NodeKind.PERMISSION: emit_permission,
    NodeKind.COMPARISON: emit_comparison,
    NodeKind.ACTION: emit_action,
    NodeKind.DATA: emit_data,
    NodeKind.HTTP_REQUEST: emit_http_request,
    NodeKind.EMBED_BUILDER: emit_embed_builder,
    NodeKind.EMBED_RESPONSE: emit_embed_response,
    NodeKind.DISCORD_ACTION: emit_discord_action,
    NodeKind.FOR_LOOP: emit_for_loop,
    NodeKind.WHILE_LOOP: emit_while_loop,
    NodeKind.ARRAY_OPERATION: emit_array_operation,
    NodeKind.STRING_OPERATION: emit_string_operation,
    NodeKind.OBJECT_OPERATION: emit_object_operation,
    NodeKind.MATH_OPERATION: emit_math_operation,
    NodeKind.DATABASE: emit_database,
    NodeKind.JSON: emit_json,
}

__all__ = ["EMITTERS", "EmitContext", "Emitter"]
