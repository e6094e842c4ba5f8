"""All kinds, sub-kinds and modes used across subsystem boundaries.

These are closed sets. A value outside an enumeration is rejected when the
graph payload is parsed, so the compiler never sees an unknown kind.
"""

from enum import StrEnum


class NodeKind(StrEnum):
    """Kind of a node in a plugin graph.

    The editor stores this as the node's ``type`` field.
    """

    TRIGGER = "trigger"
    RESPONSE = "response"
    VARIABLE = "variable"
    CONDITION = "condition"
    PERMISSION = "permission"
    COMPARISON = "comparison"
    ACTION = "action"
    DATA = "data"
    HTTP_REQUEST = "http_request"
    EMBED_BUILDER = "embed_builder"
    EMBED_RESPONSE = "embed_response"
    DISCORD_ACTION = "discord_action"
    FOR_LOOP = "for_loop"
    WHILE_LOOP = "while_loop"
    ARRAY_OPERATION = "array_operation"
    STRING_OPERATION = "string_operation"
    OBJECT_OPERATION = "object_operation"
    MATH_OPERATION = "math_operation"
    DATABASE = "database"
    JSON = "json"


class BranchHandle(StrEnum):
    """Source handle tags that select an outgoing branch.

    An edge belongs to a branch when its handle contains the tag, so
    editor handles such as ``"source-true"`` still match ``TRUE``.
    """

    TRUE = "true"
    FALSE = "false"
    ALLOWED = "allowed"
    DENIED = "denied"
    LOOP_BODY = "loop-body"
    COMPLETE = "complete"


class CommandType(StrEnum):
    """How a plugin's trigger command can be invoked."""

    SLASH = "slash"
    TEXT = "text"
    BOTH = "both"


class VariableSource(StrEnum):
    """Where a variable node takes its value from."""

    USER_INPUT = "user_input"
    USER_NAME = "user_name"
    USER_ID = "user_id"
    CHANNEL_ID = "channel_id"
    GUILD_ID = "guild_id"
    TIMESTAMP = "timestamp"
    RANDOM_NUMBER = "random_number"
    STRING = "string"
    LITERAL = "literal"


class ComparisonOperator(StrEnum):
    """Operators accepted by comparison nodes.

    ``===`` and ``!==`` are editor spellings of string (in)equality.
    """

    EQUAL = "=="
    STRICT_EQUAL = "==="
    NOT_EQUAL = "!="
    STRICT_NOT_EQUAL = "!=="
    GREATER = ">"
    LESS = "<"
    GREATER_EQUAL = ">="
    LESS_EQUAL = "<="
    INCLUDES = "includes"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"


class PermissionCheck(StrEnum):
    USER_ID = "user_id"
    ROLE = "role"
    PERMISSION = "permission"


class PermissionMode(StrEnum):
    WHITELIST = "whitelist"
    BLACKLIST = "blacklist"


class ActionType(StrEnum):
    LOG = "log"
    WAIT = "wait"
    SET_STATE = "set_state"


class DataType(StrEnum):
    """Ambient context values a data node can read."""

    SERVER_NAME = "server_name"
    CHANNEL_NAME = "channel_name"
    TIMESTAMP = "timestamp"
    CHANNEL_ID = "channel_id"
    SERVER_ID = "server_id"
    MEMBER_COUNT = "member_count"


class HttpMethod(StrEnum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class DiscordActionType(StrEnum):
    """Side effects a discord_action node can perform."""

    SEND_MESSAGE = "send_message"
    SEND_DM = "send_dm"
    ADD_REACTION = "add_reaction"
    ADD_MULTIPLE_REACTIONS = "add_multiple_reactions"
    SETUP_SINGLE_CHOICE_VOTING = "setup_single_choice_voting"
    COLLECT_REACTIONS = "collect_reactions"
    CHECK_ROLE = "check_role"
    ADD_ROLE = "add_role"
    REMOVE_ROLE = "remove_role"
    KICK_MEMBER = "kick_member"
    BAN_MEMBER = "ban_member"
    TIMEOUT_MEMBER = "timeout_member"
    CREATE_CHANNEL = "create_channel"
    DELETE_CHANNEL = "delete_channel"
    DELETE_MESSAGE = "delete_message"


class ArrayOperation(StrEnum):
    CREATE = "create"
    PUSH = "push"
    POP = "pop"
    FILTER = "filter"
    MAP = "map"
    LENGTH = "length"
    JOIN = "join"


class StringOperation(StrEnum):
    CONCAT = "concat"
    SPLIT = "split"
    REPLACE = "replace"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    TRIM = "trim"
    SUBSTRING = "substring"
    CONDITION = "condition"
    JOIN = "join"


class ObjectOperation(StrEnum):
    CREATE = "create"
    GET = "get"
    SET = "set"
    KEYS = "keys"
    VALUES = "values"


class MathOperation(StrEnum):
    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"
    MODULO = "modulo"
    POWER = "power"
    SQRT = "sqrt"
    ABS = "abs"


class DatabaseOperation(StrEnum):
    GET = "get"
    SET = "set"
    DELETE = "delete"
    LIST = "list"
    EXISTS = "exists"


class JsonOperation(StrEnum):
    PARSE = "parse"
    STRINGIFY = "stringify"
    EXTRACT = "extract"
