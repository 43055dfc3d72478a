"""
Aggregation Engine

Computes a single SUM/COUNT/AVG/MAX/MIN over a filtered row set.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import logging
import math
import re

from tabletalk.core.conditions import resolve_column
from tabletalk.core.dataset import Cell, CellKind
from tabletalk.core.errors import ExecutionError

logger = logging.getLogger(__name__)

Number = Union[int, float]

_ALIAS = r"(?:\s+as\s+(?:`([^`]+)`|(\w+)))?"


def _function_pattern(name: str, allow_star: bool = False) -> re.Pattern:
    argument = r"(\*|`[^`]*`|\w+)" if allow_star else r"(`[^`]*`|\w+)"
    return re.compile(rf"{name}\(\s*{argument}\s*\){_ALIAS}", re.I)


# Priority order when several functions appear in one query.
AGGREGATE_FUNCTIONS: Tuple[Tuple[str, re.Pattern], ...] = (
    ("SUM", _function_pattern("SUM")),
    ("COUNT", _function_pattern("COUNT", allow_star=True)),
    ("AVG", _function_pattern("AVG")),
    ("MAX", _function_pattern("MAX")),
    ("MIN", _function_pattern("MIN")),
)


def coerce_number(cell: Cell) -> Number:
    """Numeric value of a cell; anything non-numeric counts as 0."""
    if cell.kind is CellKind.NUMBER and isinstance(cell.value, int):
        return int(cell.value)
    value = cell.as_number()
    return 0 if math.isnan(value) else value


class AggregationEngine:
    """Detects the aggregate function in query text and evaluates it."""

    def detect(self, sql: str) -> Optional[Tuple[str, str, str]]:
        """
        Find the aggregate call to evaluate.

        Returns:
            (function, column, alias) or None when no call matches
        """
        for name, pattern in AGGREGATE_FUNCTIONS:
            match = pattern.search(sql)
            if not match:
                continue
            column = match.group(1).replace("`", "").strip()
            alias = match.group(2) or match.group(3)
            if not alias:
                alias = "COUNT" if name == "COUNT" else f"{name}({column})"
            return name, column, alias
        return None

    def aggregate(self, rows: Sequence[Mapping[str, Any]], sql: str) -> List[Dict[str, Any]]:
        """
        Aggregate rows according to the function named in `sql`.

        Args:
            rows: Filtered rows (Cells or raw values)
            sql: Full query text

        Returns:
            Exactly one row with one key

        Raises:
            ExecutionError: if no supported aggregate call is present
        """
        detected = self.detect(sql)
        if detected is None:
            raise ExecutionError("Unsupported aggregate expression", code="UnsupportedAggregate")

        name, column, alias = detected
        logger.debug(f"Aggregating {name}({column}) over {len(rows)} rows as {alias!r}")

        if name == "COUNT":
            return [{alias: len(rows)}]

        values = [coerce_number(self._cell(row, column)) for row in rows]
        if name == "SUM":
            result: Optional[Number] = sum(values)
        elif not values:
            result = None
        elif name == "AVG":
            result = sum(values) / len(rows)
        elif name == "MAX":
            result = max(values)
        else:
            result = min(values)
        return [{alias: result}]

    @staticmethod
    def _cell(row: Mapping[str, Any], column: str) -> Cell:
        key = resolve_column(row, column)
        if key is None:
            return Cell(CellKind.NULL)
        return Cell.of(row[key])
