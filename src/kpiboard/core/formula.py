"""Restricted expression language for calculated KPIs.

Formulas are parsed with Python's ``ast`` module and every node is checked
against an allow-list before anything is evaluated. Nothing is ever handed
to ``eval``: the evaluator walks the tree itself and only knows numbers,
arithmetic, comparisons, variable names and the built-in functions below.

SAFETY:
- No attribute access, subscripts, lambdas, comprehensions or keywords
- Calls only to the upper-case built-in functions, by bare name
- Bounded formula length and exponent size
"""

from __future__ import annotations

import ast
import math
import operator
import statistics
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from kpiboard.core.exceptions import FormulaError

MAX_FORMULA_LENGTH = 500
MAX_EXPONENT = 100


def _growth(current: float, previous: float) -> float:
    return 0.0 if previous == 0 else (current - previous) / previous * 100


def _round(value: float, decimals: float = 0) -> float:
    return round(value, int(decimals))


def _if(condition: float, when_true: float, when_false: float) -> float:
    return when_true if condition else when_false


def _pow(base: float, exponent: float) -> float:
    if abs(exponent) > MAX_EXPONENT:
        raise FormulaError(f"exponent {exponent} exceeds {MAX_EXPONENT}")
    return float(base**exponent)


def _sqrt(value: float) -> float:
    if value < 0:
        raise FormulaError("SQRT of a negative number")
    return math.sqrt(value)


@dataclass(frozen=True)
class FormulaFunction:
    """A built-in function: implementation and accepted argument counts."""

    execute: Callable[..., float]
    min_args: int
    max_args: int | None  # None = variadic
    description: str


FUNCTIONS: dict[str, FormulaFunction] = {
    "SUM": FormulaFunction(lambda *v: float(sum(v)), 1, None, "Sum of all values"),
    "AVG": FormulaFunction(lambda *v: statistics.fmean(v), 1, None, "Average of all values"),
    "MIN": FormulaFunction(lambda *v: float(min(v)), 1, None, "Minimum value"),
    "MAX": FormulaFunction(lambda *v: float(max(v)), 1, None, "Maximum value"),
    "ABS": FormulaFunction(lambda v: float(abs(v)), 1, 1, "Absolute value"),
    "ROUND": FormulaFunction(_round, 1, 2, "Round to N decimals"),
    "SQRT": FormulaFunction(_sqrt, 1, 1, "Square root"),
    "POW": FormulaFunction(_pow, 2, 2, "Power (base^exponent)"),
    "IF": FormulaFunction(_if, 3, 3, "IF(condition, true_value, false_value)"),
    "GROWTH": FormulaFunction(_growth, 2, 2, "((current - previous) / previous) * 100"),
}

_BINARY_OPERATORS: dict[type[ast.operator], Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Pow: _pow,
}

_UNARY_OPERATORS: dict[type[ast.unaryop], Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_COMPARISONS: dict[type[ast.cmpop], Callable[[float, float], bool]] = {
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
}


@dataclass(frozen=True)
class Formula:
    """A parsed and validated formula."""

    source: str
    tree: ast.Expression
    variables: frozenset[str]

    def evaluate(self, values: Mapping[str, float]) -> float:
        """Evaluate the formula with ``values`` bound to its variables.

        Raises:
            FormulaError: On unknown variables, division by zero or a
                function error.
        """
        missing = self.variables - values.keys()
        if missing:
            raise FormulaError(f"unbound variables: {', '.join(sorted(missing))}")
        try:
            result = _Evaluator(values).visit(self.tree.body)
        except ZeroDivisionError as e:
            raise FormulaError("division by zero") from e
        except (OverflowError, ValueError, TypeError) as e:
            raise FormulaError(str(e)) from e
        if not math.isfinite(result):
            raise FormulaError("formula produced a non-finite value")
        return result


def parse_formula(source: str) -> Formula:
    """Parse and validate a formula.

    Args:
        source: Formula text, e.g. ``"GROWTH(revenue, last_revenue)"``.

    Returns:
        Formula ready for evaluation.

    Raises:
        FormulaError: If the text is empty, too long, not an expression or
            uses anything outside the allowed grammar.

    Examples:
        >>> parse_formula("revenue / orders").variables == {"revenue", "orders"}
        True
        >>> parse_formula("__import__('os')")
        Traceback (most recent call last):
        ...
        kpiboard.core.exceptions.FormulaError: unknown function: __import__
    """
    if not source or not source.strip():
        raise FormulaError("empty formula")
    if len(source) > MAX_FORMULA_LENGTH:
        raise FormulaError(f"formula longer than {MAX_FORMULA_LENGTH} characters")

    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as e:
        raise FormulaError(f"invalid formula syntax: {e.msg}") from e

    names: set[str] = set()
    callees = {id(node.func) for node in ast.walk(tree) if isinstance(node, ast.Call)}
    for node in ast.walk(tree):
        _check_node(node, names, callees)

    return Formula(source=source, tree=tree, variables=frozenset(names))


def _check_node(node: ast.AST, names: set[str], callees: set[int]) -> None:
    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name):
            raise FormulaError("only built-in functions can be called")
        function = FUNCTIONS.get(node.func.id)
        if function is None:
            raise FormulaError(f"unknown function: {node.func.id}")
        if node.keywords:
            raise FormulaError(f"{node.func.id} does not take keyword arguments")
        count = len(node.args)
        if count < function.min_args or (
            function.max_args is not None and count > function.max_args
        ):
            raise FormulaError(f"wrong number of arguments to {node.func.id}")
        return
    if isinstance(node, ast.Name):
        if not isinstance(node.ctx, ast.Load):
            raise FormulaError("assignment is not allowed")
        if node.id in FUNCTIONS:
            if id(node) not in callees:
                raise FormulaError(f"{node.id} is a function and must be called")
        else:
            names.add(node.id)
        return
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise FormulaError(f"unsupported literal: {node.value!r}")
        return
    if isinstance(node, ast.BinOp) and type(node.op) not in _BINARY_OPERATORS:
        raise FormulaError(f"unsupported operator: {type(node.op).__name__}")
    if isinstance(node, ast.UnaryOp) and type(node.op) not in _UNARY_OPERATORS:
        raise FormulaError(f"unsupported operator: {type(node.op).__name__}")
    if isinstance(node, ast.Compare):
        for op in node.ops:
            if type(op) not in _COMPARISONS:
                raise FormulaError(f"unsupported comparison: {type(op).__name__}")
    if not isinstance(
        node,
        (
            ast.Expression,
            ast.BinOp,
            ast.UnaryOp,
            ast.Compare,
            ast.operator,
            ast.unaryop,
            ast.cmpop,
            ast.Load,
        ),
    ):
        raise FormulaError(f"unsupported expression: {type(node).__name__}")


class _Evaluator(ast.NodeVisitor):
    """Walks a validated tree. Only reached after ``_check_node`` passed."""

    def __init__(self, values: Mapping[str, float]) -> None:
        self._values = values

    def visit_BinOp(self, node: ast.BinOp) -> float:
        op = _BINARY_OPERATORS[type(node.op)]
        return float(op(self.visit(node.left), self.visit(node.right)))

    def visit_UnaryOp(self, node: ast.UnaryOp) -> float:
        return float(_UNARY_OPERATORS[type(node.op)](self.visit(node.operand)))

    def visit_Compare(self, node: ast.Compare) -> float:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = self.visit(comparator)
            if not _COMPARISONS[type(op)](left, right):
                return 0.0
            left = right
        return 1.0

    def visit_Call(self, node: ast.Call) -> float:
        assert isinstance(node.func, ast.Name)
        args = [self.visit(arg) for arg in node.args]
        return float(FUNCTIONS[node.func.id].execute(*args))

    def visit_Name(self, node: ast.Name) -> float:
        return float(self._values[node.id])

    def visit_Constant(self, node: ast.Constant) -> float:
        return float(node.value)

    def generic_visit(self, node: ast.AST) -> Any:
        raise FormulaError(f"unsupported expression: {type(node).__name__}")
