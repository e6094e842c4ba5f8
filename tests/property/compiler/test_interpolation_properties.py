# tests/property/compiler/test_interpolation_properties.py
"""Property-based tests for template interpolation.

Template text is end-user input. Whatever it contains, the generated
f-string must parse as one expression whose only names are reads of the
``variables`` mapping, and must render the text verbatim when it holds no
placeholders.
"""

from __future__ import annotations

import ast

from hypothesis import given
from hypothesis import strategies as st

from botflow.compiler.interpolation import PLACEHOLDER_PATTERN, fstring
from botflow.compiler.ir import CodeBuffer

_ALLOWED_NODES = (ast.Expression, ast.JoinedStr, ast.Constant, ast.FormattedValue, ast.Subscript, ast.Name, ast.Load)

templates = st.text(alphabet=st.characters(codec="utf-8"), max_size=60)
placeholder_names = st.from_regex(r"[a-z_][a-z0-9_]{0,8}", fullmatch=True)


@given(template=templates)
def test_fstring_is_one_safe_expression(template: str) -> None:
    source = fstring(template)

    tree = ast.parse(source, mode="eval")

    for node in ast.walk(tree):
        assert isinstance(node, _ALLOWED_NODES), f"{type(node).__name__} in {source!r}"
        if isinstance(node, ast.Name):
            assert node.id == "variables"


@given(template=templates.filter(lambda text: PLACEHOLDER_PATTERN.search(text) is None))
def test_text_without_placeholders_renders_verbatim(template: str) -> None:
    rendered = eval(compile(ast.parse(fstring(template), mode="eval"), "<template>", "eval"), {"variables": {}})

    assert rendered == template


@given(prefix=templates, name=placeholder_names, value=st.text(max_size=10), suffix=templates)
def test_placeholder_reads_variable(prefix: str, name: str, value: str, suffix: str) -> None:
    template = prefix + "{" + name + "}" + suffix
    variables = {name: value}

    rendered = eval(compile(ast.parse(fstring(template), mode="eval"), "<template>", "eval"), {"variables": variables})

    assert value in rendered


@given(template=templates)
def test_statement_stays_on_one_line(template: str) -> None:
    buffer = CodeBuffer()
    buffer.statement(1, f"pending_response = {fstring(template)}")

    assert buffer.render().count("\n") == 1
