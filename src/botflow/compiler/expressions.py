# src/botflow/compiler/expressions.py
"""Whitelist validation for freeform expressions in condition, while_loop
and array filter/map nodes.

Expressions use Python expression syntax. Placeholders are first replaced
by variable references, then the expression is parsed in eval mode and
every AST node is checked against a whitelist. Only the canonical
``ast.unparse`` form of a validated tree is ever emitted, so the text the
author typed never reaches the generated body directly.

Allowed:
- Variable access: {name}, variables['name'], variables.get('name')
- Loop locals: item, index (array filter/map only)
- Comparisons: ==, !=, <, >, <=, >=, in, not in, is/is not (None checks)
- Boolean operators: and, or, not
- Literals: strings, numbers, booleans, None (and true/false/null)
- List/tuple/dict/set literals
- Ternary expressions: x if condition else y
- Arithmetic: +, -, *, /, //, %
- Calls: len, str, int, float, abs, min, max, round, bool
- Methods: lower, upper, strip, startswith, endswith, get

Forbidden: every other name, call or attribute, lambdas, comprehensions,
assignment expressions, await/yield, f-strings, starred expressions and
slices.
"""

from __future__ import annotations

import ast

from botflow.compiler.interpolation import substitute_references
from botflow.contracts.errors import ExpressionSecurityError, ExpressionSyntaxError

SAFE_CALLS = frozenset({"len", "str", "int", "float", "abs", "min", "max", "round", "bool"})
SAFE_METHODS = frozenset({"lower", "upper", "strip", "startswith", "endswith", "get"})

_EDITOR_CONSTANTS: dict[str, bool | None] = {"true": True, "false": False, "null": None}

_COMPARISON_OPS = (ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE, ast.Is, ast.IsNot, ast.In, ast.NotIn)
_BINARY_OPS = (ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod)
_UNARY_OPS = (ast.Not, ast.USub, ast.UAdd)


class _EditorConstants(ast.NodeTransformer):
    """Turn the editor spellings true/false/null into constants."""

    def visit_Name(self, node: ast.Name) -> ast.expr:
        if node.id in _EDITOR_CONSTANTS:
            return ast.copy_location(ast.Constant(value=_EDITOR_CONSTANTS[node.id]), node)
        return node


class _ExpressionValidator(ast.NodeVisitor):
    """AST visitor that collects every forbidden construct."""

    def __init__(self, names: frozenset[str]) -> None:
        self.errors: list[str] = []
        self._names = names

    def _is_none_constant(self, node: ast.expr) -> bool:
        return isinstance(node, ast.Constant) and node.value is None

    def visit_Name(self, node: ast.Name) -> None:
        if node.id not in self._names and node.id not in ("True", "False", "None"):
            self.errors.append(f"Forbidden name: {node.id!r}")

    def visit_Subscript(self, node: ast.Subscript) -> None:
        if isinstance(node.slice, ast.Slice):
            self.errors.append("Slice syntax (e.g., [1:3]) is forbidden")
            return
        self.generic_visit(node)

    def visit_Slice(self, node: ast.Slice) -> None:
        self.errors.append("Slice syntax (e.g., [1:3]) is forbidden")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        # Methods are checked in visit_Call; a bare attribute is never allowed.
        self.errors.append(f"Forbidden attribute access: {node.attr!r}")

    def visit_Call(self, node: ast.Call) -> None:
        if node.keywords:
            self.errors.append("Keyword arguments are forbidden")
        func = node.func
        if isinstance(func, ast.Name) and func.id in SAFE_CALLS:
            pass
        elif isinstance(func, ast.Attribute) and func.attr in SAFE_METHODS:
            self.visit(func.value)
        else:
            self.errors.append(f"Forbidden function call: {ast.unparse(func)}")
            return
        for arg in node.args:
            self.visit(arg)

    def visit_Compare(self, node: ast.Compare) -> None:
        operands = [node.left, *node.comparators]
        for i, op in enumerate(node.ops):
            if not isinstance(op, _COMPARISON_OPS):
                self.errors.append(f"Forbidden comparison operator: {type(op).__name__}")
            elif isinstance(op, ast.Is | ast.IsNot) and not (
                self._is_none_constant(operands[i]) or self._is_none_constant(operands[i + 1])
            ):
                self.errors.append("'is' and 'is not' operators are only allowed for None checks")
        self.generic_visit(node)

    def visit_BinOp(self, node: ast.BinOp) -> None:
        if not isinstance(node.op, _BINARY_OPS):
            self.errors.append(f"Forbidden binary operator: {type(node.op).__name__}")
        self.generic_visit(node)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> None:
        if not isinstance(node.op, _UNARY_OPS):
            self.errors.append(f"Forbidden unary operator: {type(node.op).__name__}")
        self.generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> None:
        if node.value is None or isinstance(node.value, str | int | float | bool):
            return
        self.errors.append(f"Forbidden constant type: {type(node.value).__name__}")

    def visit_Dict(self, node: ast.Dict) -> None:
        if any(key is None for key in node.keys):
            self.errors.append("Dict spread (**) is forbidden")
        self.generic_visit(node)

    # Expression, BoolOp, IfExp, List, Tuple, Set and Load fall through to
    # generic_visit. Everything below is rejected outright.

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self.errors.append("Lambda expressions are forbidden")

    def visit_ListComp(self, node: ast.ListComp) -> None:
        self.errors.append("List comprehensions are forbidden")

    def visit_DictComp(self, node: ast.DictComp) -> None:
        self.errors.append("Dict comprehensions are forbidden")

    def visit_SetComp(self, node: ast.SetComp) -> None:
        self.errors.append("Set comprehensions are forbidden")

    def visit_GeneratorExp(self, node: ast.GeneratorExp) -> None:
        self.errors.append("Generator expressions are forbidden")

    def visit_Await(self, node: ast.Await) -> None:
        self.errors.append("Await expressions are forbidden")

    def visit_Yield(self, node: ast.Yield) -> None:
        self.errors.append("Yield expressions are forbidden")

    def visit_YieldFrom(self, node: ast.YieldFrom) -> None:
        self.errors.append("Yield from expressions are forbidden")

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        self.errors.append("Assignment expressions (:=) are forbidden")

    def visit_JoinedStr(self, node: ast.JoinedStr) -> None:
        self.errors.append("F-strings are forbidden")

    def visit_Starred(self, node: ast.Starred) -> None:
        self.errors.append("Starred expressions (*) are forbidden")


def compile_expression(expression: str, *, loop_locals: bool = False) -> str:
    """Validate an editor expression and return its canonical source.

    Args:
        expression: Expression text, possibly containing {name} placeholders.
        loop_locals: Allow the ``item`` and ``index`` names (array filter/map).

    Raises:
        ExpressionSyntaxError: If the expression does not parse.
        ExpressionSecurityError: If it contains forbidden constructs.
    """
    source = substitute_references(expression).strip()
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise ExpressionSyntaxError(f"Invalid syntax in expression {expression!r}: {e.msg}") from e

    tree = ast.fix_missing_locations(_EditorConstants().visit(tree))

    names = frozenset({"variables", "item", "index"}) if loop_locals else frozenset({"variables"})
    validator = _ExpressionValidator(names)
    validator.visit(tree)
    if validator.errors:
        raise ExpressionSecurityError(f"Expression {expression!r} rejected: " + "; ".join(validator.errors))

    return ast.unparse(tree)
