# src/botflow/compiler/interpolation.py
"""Template interpolation into f-string literals.

Template text comes from end users, so this is the routine that keeps
user text from becoming code. Everything outside a placeholder is escaped
for a double-quoted f-string; every placeholder becomes a subscript into
the invocation's ``variables`` mapping and nothing else.
"""

from __future__ import annotations

import re

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)(?:\[(\d+)\])?\}", re.ASCII)

_ESCAPES: dict[str, str] = {
    "\\": "\\\\",
    '"': '\\"',
    "{": "{{",
    "}": "}}",
    "\n": "\\n",
    "\r": "\\r",
}


def _escape_char(char: str) -> str:
    escaped = _ESCAPES.get(char)
    if escaped is not None:
        return escaped
    if not char.isprintable():
        return char.encode("unicode_escape").decode("ascii")
    return char


def escape_literal(text: str) -> str:
    """Escape text for the literal part of a double-quoted f-string."""
    return "".join(_escape_char(char) for char in text)


def variable_ref(name: str) -> str:
    """Source for reading or assigning ``variables[name]``; braces around the name are dropped."""
    return f"variables[{variable_name(name)!r}]"


def variable_name(raw: str) -> str:
    """Normalize a configured variable name; surrounding braces are optional."""
    name = raw.strip()
    if name.startswith("{") and name.endswith("}"):
        name = name[1:-1].strip()
    return name


def _placeholder_source(match: re.Match[str]) -> str:
    name, index = match.group(1), match.group(2)
    reference = variable_ref(name)
    if index is not None:
        reference = f"{reference}[{int(index)}]"
    return reference


def interpolate(template: str) -> str:
    """Return the inside of a double-quoted f-string rendering ``template``.

    ``{name}`` becomes ``{variables['name']}`` and ``{name[2]}`` becomes
    ``{variables['name'][2]}``. Text without placeholders and without
    characters that need escaping is returned unchanged.
    """
    parts: list[str] = []
    position = 0
    for match in PLACEHOLDER_PATTERN.finditer(template):
        parts.append(escape_literal(template[position : match.start()]))
        parts.append("{" + _placeholder_source(match) + "}")
        position = match.end()
    parts.append(escape_literal(template[position:]))
    return "".join(parts)


def fstring(template: str) -> str:
    """Source of an f-string literal rendering ``template``."""
    return f'f"{interpolate(template)}"'


def value_expression(template: str) -> str:
    """Source for a template used as a value.

    A template that is exactly one placeholder keeps the variable's own
    type (a list stays a list); anything else renders to a string.
    """
    match = PLACEHOLDER_PATTERN.fullmatch(template.strip())
    if match is not None:
        return _placeholder_source(match)
    return fstring(template)


def substitute_references(expression: str) -> str:
    """Replace placeholders in an expression with bare variable references.

    The result is validated as an expression before use; see expressions.py.
    """
    return PLACEHOLDER_PATTERN.sub(_placeholder_source, expression)
