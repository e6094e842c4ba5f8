# src/botflow/compiler/json_path.py
"""Dot/bracket path parsing for json extract nodes.

Supports ``data.weather.temp``, ``items[0].name``, ``data["key-with-dash"]``
and ``data['k']``. The scanner is a single linear pass with no regular
expressions over the whole path, and overlong paths are refused outright.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

MAX_PATH_LENGTH = 1000

_NAME_START = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_$")
_NAME_CHARS = _NAME_START | frozenset("0123456789")


@dataclass(frozen=True, slots=True)
class PathStep:
    kind: Literal["property", "index"]
    value: str | int


def _bracket_step(content: str) -> PathStep | None:
    content = content.strip()
    if len(content) >= 2 and content[0] in "'\"" and content[-1] in "'\"":
        return PathStep("property", content[1:-1])
    if content.isascii() and content.isdigit():
        return PathStep("index", int(content))
    return None


def parse_json_path(path: Any, max_length: int = MAX_PATH_LENGTH) -> list[PathStep]:
    """Parse ``path`` into ordered steps.

    Empty, non-string or overlong paths give ``[]``. Characters that start
    no step are skipped, and malformed bracket content (unclosed, or neither
    quoted nor an integer) yields no step for that segment.
    """
    if not path or not isinstance(path, str) or len(path) > max_length:
        return []

    steps: list[PathStep] = []
    i = 0
    while i < len(path):
        char = path[i]
        if char == ".":
            i += 1
        elif char in _NAME_START:
            start = i
            while i < len(path) and path[i] in _NAME_CHARS:
                i += 1
            steps.append(PathStep("property", path[start:i]))
        elif char == "[":
            i += 1
            depth = 1
            content: list[str] = []
            while i < len(path) and depth > 0:
                if path[i] == "[":
                    depth += 1
                elif path[i] == "]":
                    depth -= 1
                else:
                    content.append(path[i])
                i += 1
            if depth == 0:
                step = _bracket_step("".join(content))
                if step is not None:
                    steps.append(step)
        else:
            i += 1
    return steps


def extract_path(value: Any, steps: list[PathStep] | tuple[PathStep, ...]) -> Any:
    """Walk ``steps`` into ``value``; a missing intermediate yields None."""
    current = value
    for step in steps:
        if current is None:
            return None
        if isinstance(current, dict):
            key = step.value if step.kind == "property" else str(step.value)
            current = current.get(key)
        elif isinstance(current, list | tuple | str):
            if step.kind == "index" and isinstance(step.value, int) and step.value < len(current):
                current = current[step.value]
            elif step.kind == "property" and step.value == "length":
                current = len(current)
            else:
                return None
        else:
            return None
    return current
