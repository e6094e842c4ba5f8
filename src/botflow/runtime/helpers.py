# src/botflow/runtime/helpers.py
"""Functions injected into every routine's namespace.

Generated bodies call these instead of inlining conversions, so numeric and
collection behaviour stays the same whichever node produced a value. The
numeric helpers follow the editor's JavaScript heritage: text converts like
``Number(text)``, and division by zero gives inf/nan instead of raising.
"""

from __future__ import annotations

import asyncio
import json
import math
import random
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from botflow.compiler.json_path import PathStep, extract_path

type Number = int | float


def to_number(value: Any) -> Number:
    """Convert like JavaScript ``Number(value)``: unparseable text is nan."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int | float):
        return value
    if value is None:
        return 0
    text = str(value).strip()
    if not text:
        return 0
    lowered = text.lower()
    if "_" in text:
        return math.nan
    if lowered in ("infinity", "+infinity"):
        return math.inf
    if lowered == "-infinity":
        return -math.inf
    if lowered.startswith(("0x", "0o", "0b")):
        try:
            return int(text, 0)
        except ValueError:
            return math.nan
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return math.nan
    # float() accepts "nan"/"inf" spellings that Number() does not.
    return math.nan if lowered.lstrip("+-") in ("nan", "inf") else number


def _normalize(value: float) -> Number:
    if math.isfinite(value) and value.is_integer():
        return int(value)
    return value


def _divide(left: Number, right: Number) -> Number:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1, right)
    return left / right


def _modulo(left: Number, right: Number) -> Number:
    if right == 0 or math.isinf(left) or math.isnan(left) or math.isnan(right):
        return math.nan
    if math.isinf(right):
        return left
    return math.fmod(left, right)


def _power(left: Number, right: Number) -> Number:
    try:
        return math.pow(left, right)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


def _sqrt(left: Number, right: Number) -> Number:
    if math.isnan(left) or left < 0:
        return math.nan
    return math.sqrt(left)


_OPERATIONS: dict[str, Callable[[Number, Number], Number]] = {
    "add": lambda left, right: left + right,
    "subtract": lambda left, right: left - right,
    "multiply": lambda left, right: left * right,
    "divide": _divide,
    "modulo": _modulo,
    "power": _power,
    "sqrt": _sqrt,
    "abs": lambda left, right: abs(left),
}


def calculate(operation: str, left: Any, right: Any = 0) -> Number:
    """Apply a math node operation. Integral results come back as int."""
    result = _OPERATIONS[operation](to_number(left), to_number(right))
    return _normalize(result) if isinstance(result, float) else result


def as_list(value: Any) -> list[Any]:
    """View a variable as a list. A list is returned as-is, so mutations stick."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, tuple | set):
        return list(value)
    if isinstance(value, str):
        return list(value)
    if isinstance(value, dict):
        return list(value.values())
    return [value]


def ensure_list(variables: dict[str, Any], name: str) -> list[Any]:
    current = variables.get(name)
    if not isinstance(current, list):
        current = as_list(current)
        variables[name] = current
    return current


def ensure_dict(variables: dict[str, Any], name: str) -> dict[str, Any]:
    current = variables.get(name)
    if not isinstance(current, dict):
        current = {}
        variables[name] = current
    return current


def pop_item(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value.pop()
    return None


def split_items(text: str) -> list[str]:
    """Comma-separated text to a list of trimmed items; blank text is an empty list."""
    if not text.strip():
        return []
    return [part.strip() for part in text.split(",")]


def split_text(text: str, delimiter: str) -> list[str]:
    if delimiter == "":
        return list(text)
    return text.split(delimiter)


def join_items(value: Any, separator: str) -> str:
    return separator.join("" if item is None else str(item) for item in as_list(value))


def substring(text: str, start: Any, end: Any = None) -> str:
    """JavaScript ``String.prototype.substring``: clamped, and swapped if start > end."""
    length = len(text)

    def clamp(raw: Any) -> int:
        number = to_number(raw)
        if math.isnan(number):
            return 0
        return int(max(0, min(number, length)))

    lo = clamp(start)
    hi = length if end is None else clamp(end)
    if lo > hi:
        lo, hi = hi, lo
    return text[lo:hi]


def get_key(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        return value.get(key)
    return None


def object_keys(value: Any) -> list[str]:
    return list(value.keys()) if isinstance(value, dict) else []


def object_values(value: Any) -> list[Any]:
    return list(value.values()) if isinstance(value, dict) else []


def parse_json(text: Any) -> Any:
    if isinstance(text, bytes | bytearray):
        text = text.decode("utf-8")
    if not isinstance(text, str):
        raise TypeError(f"Cannot parse JSON from {type(text).__name__}")
    return json.loads(text)


def to_json(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


def navigate(value: Any, steps: list[tuple[str, str | int]]) -> Any:
    return extract_path(value, [PathStep(kind, step) for kind, step in steps])  # type: ignore[arg-type]


def random_int(minimum: int, maximum: int) -> int:
    """Uniform integer in the closed range, whichever bound is larger."""
    lo, hi = sorted((int(minimum), int(maximum)))
    return random.randint(lo, hi)


def now_iso() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def sleep_ms(duration: Any) -> None:
    """Suspend for ``duration`` milliseconds; non-numeric, non-finite or negative waits nothing."""
    milliseconds = to_number(duration)
    if not math.isfinite(milliseconds) or milliseconds <= 0:
        return
    await asyncio.sleep(milliseconds / 1000)


async def checkpoint() -> bool:
    """Yield to the event loop once so a timeout can cancel the routine.

    The loader calls this at the top of every loop body and as the first
    filter of every list, set and dict comprehension, so it always returns True.
    """
    await asyncio.sleep(0)
    return True


ROUTINE_HELPERS: dict[str, Any] = {
    "as_list": as_list,
    "calculate": calculate,
    "ensure_dict": ensure_dict,
    "ensure_list": ensure_list,
    "get_key": get_key,
    "join_items": join_items,
    "navigate": navigate,
    "now_iso": now_iso,
    "object_keys": object_keys,
    "object_values": object_values,
    "parse_json": parse_json,
    "pop_item": pop_item,
    "random_int": random_int,
    "sleep_ms": sleep_ms,
    "split_items": split_items,
    "split_text": split_text,
    "substring": substring,
    "to_json": to_json,
    "to_number": to_number,
}
