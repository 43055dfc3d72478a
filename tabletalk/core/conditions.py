"""
Condition Evaluator

Evaluates a single WHERE comparison (`<col> <op> <value>`) against a row.
Only one comparison is supported; there are no boolean connectives.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional
import operator

from tabletalk.core.dataset import Cell, CellKind

# Tested in this order so that '>=' is never read as '>' followed by '='.
OPERATORS = (">=", "<=", "!=", "<>", "=", ">", "<")

_NUMERIC_OPS = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


def resolve_column(row: Mapping[str, Any], name: str) -> Optional[str]:
    """Find the actual row key matching `name` case-insensitively."""
    if name in row:
        return name
    lowered = name.lower()
    for key in row:
        if key.lower() == lowered:
            return key
    return None


@dataclass(frozen=True)
class Condition:
    """A parsed comparison. `op` is None when no operator was found."""
    text: str
    left: str = ""
    op: Optional[str] = None
    right: str = ""

    @property
    def column(self) -> str:
        return self.left.replace("`", "").strip()

    def matches(self, row: Mapping[str, Any]) -> bool:
        """
        Test the condition against a row.

        Equality operators compare case-insensitive text renderings.
        Ordering operators compare numbers; anything that is not a number
        becomes NaN and every comparison against NaN is false.
        """
        if self.op is None:
            # No recognised operator: the condition passes every row
            return True

        key = resolve_column(row, self.column)
        left = Cell.of(row[key]) if key is not None else Cell(CellKind.TEXT, self.left)
        right = Cell(CellKind.TEXT, self.right)

        if self.op == "=":
            return left.as_text().lower() == right.as_text().lower()
        if self.op in ("!=", "<>"):
            return left.as_text().lower() != right.as_text().lower()
        return _NUMERIC_OPS[self.op](left.as_number(), right.as_number())


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value.strip("'\"")


def parse_condition(text: str) -> Condition:
    """Split condition text on the first occurrence of the highest-priority operator."""
    for op in OPERATORS:
        if op in text:
            left, _, right = text.partition(op)
            return Condition(text=text, left=left.strip(), op=op, right=_strip_quotes(right))
    return Condition(text=text)


class ConditionEvaluator:
    """Evaluates WHERE condition text against rows."""

    def evaluate(self, row: Mapping[str, Any], condition_text: str) -> bool:
        return parse_condition(condition_text).matches(row)
