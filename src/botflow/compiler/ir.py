# src/botflow/compiler/ir.py
"""Line-level IR for generated bodies and the single renderer that turns it
into text.

Emitters never build indented strings themselves. They record a depth and a
line; the buffer clamps the depth when the line is recorded, and only
render() knows about indentation or comment syntax.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from botflow.contracts.errors import CompileError

INDENT = "  "


@dataclass(frozen=True, slots=True)
class Statement:
    depth: int
    text: str


@dataclass(frozen=True, slots=True)
class Comment:
    depth: int
    text: str


type Line = Statement | Comment


def sanitize_comment(text: str) -> str:
    """Collapse a comment to one printable line."""
    return " ".join("".join(char if char.isprintable() else " " for char in text).split())


class CodeBuffer:
    """Ordered lines of a body under construction."""

    def __init__(self, max_depth: int = 50) -> None:
        self._lines: list[Line] = []
        self._max_depth = max_depth
        self._statements = 0

    def _clamp(self, depth: int) -> int:
        return max(0, min(depth, self._max_depth))

    def statement(self, depth: int, text: str) -> None:
        if "\n" in text or "\r" in text:
            raise CompileError(f"Generated statement spans lines: {text!r}")
        self._lines.append(Statement(self._clamp(depth), text))
        if text:
            self._statements += 1

    def comment(self, depth: int, text: str) -> None:
        self._lines.append(Comment(self._clamp(depth), text))

    def blank(self) -> None:
        self._lines.append(Statement(0, ""))

    def mark(self) -> int:
        """Statement count so far; pair with ensure_block()."""
        return self._statements

    def ensure_block(self, mark: int, depth: int) -> None:
        """Add ``pass`` if no statement was recorded since ``mark``."""
        if self._statements == mark:
            self.statement(depth, "pass")

    @property
    def lines(self) -> tuple[Line, ...]:
        return tuple(self._lines)

    def render(self) -> str:
        rendered: list[str] = []
        for line in self._lines:
            match line:
                case Comment(depth=depth, text=text):
                    rendered.append(f"{INDENT * depth}# {sanitize_comment(text)}")
                case Statement(text=""):
                    rendered.append("")
                case Statement(depth=depth, text=text):
                    rendered.append(f"{INDENT * depth}{text}")
        return "\n".join(rendered) + "\n"


def literal(value: Any) -> str:
    """Python source for a JSON-shaped configuration value.

    Raises:
        CompileError: For values that are not plain JSON data.
    """
    _check_literal(value)
    return repr(value)


def _check_literal(value: Any) -> None:
    if value is None or isinstance(value, bool | int | str):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise CompileError(f"Non-finite number {value!r} cannot be embedded")
        return
    if isinstance(value, list | tuple):
        for item in value:
            _check_literal(item)
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise CompileError(f"Object keys must be strings, got {type(key).__name__}")
            _check_literal(item)
        return
    raise CompileError(f"Unsupported configuration value of type {type(value).__name__}")
