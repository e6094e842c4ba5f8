# src/botflow/contracts/node_configs.py
"""Typed configuration payloads, one model per node kind.

The editor stores configuration with camelCase keys and treats empty
values as "use the default" (its forms submit ``""`` for untouched
inputs). Every model therefore accepts camelCase aliases and drops keys
whose value is ``None`` or ``""`` before validation.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from botflow.contracts.enums import (
    ActionType,
    ArrayOperation,
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
from botflow.contracts.errors import CompileError
from botflow.contracts.graph import Node


class _NodeConfig(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        coerce_numbers_to_str=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None and value != ""}
        return data


class TriggerConfig(_NodeConfig):
    command: str | None = Field(default=None, validation_alias=AliasChoices("command", "triggerCommand"))
    command_type: CommandType = Field(
        default=CommandType.SLASH,
        validation_alias=AliasChoices("command_type", "commandType"),
    )
    event: str | None = None
    pattern: str | None = None


class ResponseConfig(_NodeConfig):
    message: str = "Hello!"


class VariableConfig(_NodeConfig):
    name: str = "var"
    source: VariableSource = Field(
        default=VariableSource.STRING,
        validation_alias=AliasChoices("source", "type"),
    )
    # Raw JSON value; only the string source treats it as a template.
    value: Any = ""
    minimum: int = Field(default=1, validation_alias=AliasChoices("minimum", "min"))
    maximum: int = Field(default=100, validation_alias=AliasChoices("maximum", "max"))
    description: str | None = None
    required: bool = True


class ConditionConfig(_NodeConfig):
    condition: str = "True"


class ComparisonConfig(_NodeConfig):
    operator: ComparisonOperator = ComparisonOperator.EQUAL
    left: str = ""
    right: str = ""


class PermissionConfig(_NodeConfig):
    check_type: PermissionCheck = PermissionCheck.USER_ID
    values: tuple[str, ...] = ()
    mode: PermissionMode = PermissionMode.WHITELIST

    @field_validator("values", mode="before")
    @classmethod
    def _split_values(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value


class ActionConfig(_NodeConfig):
    action_type: ActionType = ActionType.LOG
    message: str = "Log message"
    duration: int | float | str = 1000
    key: str = "key"
    value: str = ""


class DataConfig(_NodeConfig):
    data_type: DataType = DataType.SERVER_NAME
    name: str = "data"


class HttpRequestConfig(_NodeConfig):
    method: HttpMethod = HttpMethod.GET
    url: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None
    response_var: str = Field(
        default="response",
        validation_alias=AliasChoices("response_var", "responseVar", "outputVar"),
    )

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("body", mode="before")
    @classmethod
    def _encode_structured_body(cls, value: Any) -> Any:
        if isinstance(value, dict | list):
            return json.dumps(value)
        return value


class EmbedAuthor(_NodeConfig):
    name: str = ""
    icon: str | None = None
    url: str | None = None


class EmbedFooter(_NodeConfig):
    text: str = ""
    icon: str | None = None


class EmbedField(_NodeConfig):
    name: str = ""
    value: str = ""
    inline: bool = False


class EmbedBuilderConfig(_NodeConfig):
    output_var: str = Field(default="embed", validation_alias=AliasChoices("output_var", "embedVar", "outputVar"))
    title: str | None = None
    description: str | None = None
    color: str | None = None
    author: EmbedAuthor | None = None
    thumbnail: str | None = None
    image: str | None = None
    footer: EmbedFooter | None = None
    timestamp: bool = False
    fields: tuple[EmbedField, ...] = ()


class EmbedResponseConfig(_NodeConfig):
    embed_var: str = "embed"
    ephemeral: bool = False


class DiscordActionConfig(_NodeConfig):
    action: DiscordActionType = Field(
        default=DiscordActionType.SEND_MESSAGE,
        validation_alias=AliasChoices("action", "actionType"),
    )
    user_id: str | None = None
    channel_id: str | None = None
    message_id: str | None = None
    role_id: str = ""
    message: str = ""
    emoji: str = "\N{THUMBS UP SIGN}"
    # Variable names (braces optional) holding the emoji list and vote duration.
    emojis: str = "emojis"
    duration: str = "duration_ms"
    reason: str | None = None
    delete_days: int = 0
    name: str = "new-channel"
    channel_type: str = Field(default="text", validation_alias=AliasChoices("channel_type", "channelType", "type"))
    topic: str = ""
    time: int = 30000
    output_var: str | None = None


class ForLoopConfig(_NodeConfig):
    array_var: str = "array"
    iterator_var: str = "item"
    max_iterations: int | None = Field(default=None, ge=0)


class WhileLoopConfig(_NodeConfig):
    condition: str = "False"
    max_iterations: int | None = Field(default=None, ge=0)


class ArrayOperationConfig(_NodeConfig):
    operation: ArrayOperation = ArrayOperation.CREATE
    result_var: str = Field(default="array", validation_alias=AliasChoices("result_var", "resultVar", "outputVar"))
    array_var: str = "array"
    items: str = ""
    item: str = ""
    expression: str | None = None
    separator: str = ", "


class StringCondition(_NodeConfig):
    if_: str = Field(default="", validation_alias=AliasChoices("if_", "if"))
    then: str = ""


class StringOperationConfig(_NodeConfig):
    operation: StringOperation = StringOperation.CONCAT
    result_var: str = Field(default="result", validation_alias=AliasChoices("result_var", "resultVar", "outputVar"))
    strings: tuple[str, ...] = ()
    input: str = Field(default="", validation_alias=AliasChoices("input", "string"))
    delimiter: str = ","
    search: str = Field(default="", validation_alias=AliasChoices("search", "param1"))
    replace: str = Field(default="", validation_alias=AliasChoices("replace", "param2"))
    start: str = "0"
    end: str | None = None
    conditions: tuple[StringCondition, ...] = ()
    default: str = ""
    array_var: str = "array"
    separator: str = ", "


class KeyValuePair(_NodeConfig):
    key: str = ""
    value: str = ""


class ObjectOperationConfig(_NodeConfig):
    operation: ObjectOperation = ObjectOperation.CREATE
    output_var: str = "object"
    object_var: str = "object"
    pairs: tuple[KeyValuePair, ...] = ()
    key: str = ""
    value: str = ""


class MathOperationConfig(_NodeConfig):
    operation: MathOperation = MathOperation.ADD
    left: str = Field(default="0", validation_alias=AliasChoices("left", "value1"))
    right: str = Field(default="0", validation_alias=AliasChoices("right", "value2"))
    result_var: str = Field(default="result", validation_alias=AliasChoices("result_var", "resultVar", "outputVar"))


class DatabaseConfig(_NodeConfig):
    operation: DatabaseOperation = DatabaseOperation.GET
    key: str = ""
    value: str = ""
    result_var: str = Field(default="dbValue", validation_alias=AliasChoices("result_var", "resultVar", "outputVar"))


class JsonConfig(_NodeConfig):
    operation: JsonOperation = JsonOperation.PARSE
    input_var: str = "json"
    output_var: str = "parsed"
    path: str = ""


type NodeConfig = (
    TriggerConfig
    | ResponseConfig
    | VariableConfig
    | ConditionConfig
    | ComparisonConfig
    | PermissionConfig
    | ActionConfig
    | DataConfig
    | HttpRequestConfig
    | EmbedBuilderConfig
    | EmbedResponseConfig
    | DiscordActionConfig
    | ForLoopConfig
    | WhileLoopConfig
    | ArrayOperationConfig
    | StringOperationConfig
    | ObjectOperationConfig
    | MathOperationConfig
    | DatabaseConfig
    | JsonConfig
)

NODE_CONFIG_MODELS: dict[NodeKind, type[_NodeConfig]] = {
    NodeKind.TRIGGER: TriggerConfig,
    NodeKind.RESPONSE: ResponseConfig,
    NodeKind.VARIABLE: VariableConfig,
    NodeKind.CONDITION: ConditionConfig,
    NodeKind.PERMISSION: PermissionConfig,
    NodeKind.COMPARISON: ComparisonConfig,
    NodeKind.ACTION: ActionConfig,
    NodeKind.DATA: DataConfig,
    NodeKind.HTTP_REQUEST: HttpRequestConfig,
    NodeKind.EMBED_BUILDER: EmbedBuilderConfig,
    NodeKind.EMBED_RESPONSE: EmbedResponseConfig,
    NodeKind.DISCORD_ACTION: DiscordActionConfig,
    NodeKind.FOR_LOOP: ForLoopConfig,
    NodeKind.WHILE_LOOP: WhileLoopConfig,
    NodeKind.ARRAY_OPERATION: ArrayOperationConfig,
    NodeKind.STRING_OPERATION: StringOperationConfig,
    NodeKind.OBJECT_OPERATION: ObjectOperationConfig,
    NodeKind.MATH_OPERATION: MathOperationConfig,
    NodeKind.DATABASE: DatabaseConfig,
    NodeKind.JSON: JsonConfig,
}

_missing_kinds = set(NodeKind) - NODE_CONFIG_MODELS.keys()
if _missing_kinds:
    raise RuntimeError(f"Node kinds without a configuration model: {sorted(_missing_kinds)}")


def parse_node_config(node: Node) -> NodeConfig:
    """Parse a node's raw configuration into its kind's typed model.

    Raises:
        CompileError: If the configuration does not validate.
    """
    model = NODE_CONFIG_MODELS[node.kind]
    try:
        config: NodeConfig = model.model_validate(node.config)  # type: ignore[assignment]
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}" for error in e.errors()
        )
        raise CompileError(f'Invalid configuration for node "{node.display_name}": {problems}') from e
    return config
