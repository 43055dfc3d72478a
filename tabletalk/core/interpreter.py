"""
SQL Interpreter

Executes validated query text against an in-memory Dataset.

Execution order is fixed:
    1. start from the dataset rows
    2. resolve FROM and apply the WHERE filter
    3. aggregate short-circuit: any aggregate function returns one row
       immediately, skipping ORDER BY, LIMIT and projection
    4. ORDER BY (stable)
    5. LIMIT
    6. column projection
"""

from typing import Any, Dict, List, Mapping, Sequence
import logging

from tabletalk.core.aggregation import AggregationEngine
from tabletalk.core.conditions import resolve_column
from tabletalk.core.dataset import Cell, Dataset, Row, unwrap
from tabletalk.core.errors import ExecutionError
from tabletalk.core.parser import OrderBy, Projection, Statement, parse

logger = logging.getLogger(__name__)

QueryResult = List[Dict[str, Any]]


class SQLInterpreter:
    """
    Interpreter for the supported SELECT subset.

    The source dataset is never mutated; every step builds a new list.
    """

    def __init__(self, aggregator: AggregationEngine = None):
        self.aggregator = aggregator or AggregationEngine()

    def execute(self, dataset: Dataset, sql: str) -> QueryResult:
        """
        Execute a query.

        Args:
            dataset: Data to query
            sql: Query text, already grammar-validated

        Returns:
            Result rows with plain values

        Raises:
            ExecutionError: if FROM is missing or names another table
        """
        statement = parse(sql)
        return self.run(dataset, statement)

    def run(self, dataset: Dataset, statement: Statement) -> QueryResult:
        """Execute an already parsed statement."""
        self._check_source(dataset, statement)

        rows: List[Row] = list(dataset.rows)

        if statement.filter is not None:
            rows = [row for row in rows if statement.filter.matches(row)]
            logger.debug(f"WHERE {statement.filter.text!r} kept {len(rows)} of {len(dataset)} rows")

        if statement.has_aggregate:
            return self.aggregator.aggregate(rows, statement.text)

        if statement.order_by is not None:
            rows = self._sort(rows, statement.order_by)

        if statement.limit is not None:
            rows = rows[:statement.limit]

        return self._project(rows, statement.projection)

    def _check_source(self, dataset: Dataset, statement: Statement) -> None:
        if not statement.source:
            raise ExecutionError("Invalid SQL: Missing FROM clause", code="MissingFrom")
        if dataset.name and statement.source.lower() != dataset.name.lower():
            raise ExecutionError(
                f"Invalid SQL: unknown table '{statement.source}' (expected '{dataset.name}')",
                code="InvalidFrom",
            )

    @staticmethod
    def _sort(rows: Sequence[Row], order_by: OrderBy) -> List[Row]:
        def key(row: Row):
            column = resolve_column(row, order_by.column)
            cell = row[column] if column is not None else Cell.of("")
            return cell.sort_key()

        # sorted() is stable in both directions
        return sorted(rows, key=key, reverse=order_by.descending)

    @staticmethod
    def _project(rows: Sequence[Mapping[str, Cell]], projection: Projection) -> QueryResult:
        if projection.star:
            return [unwrap(row) for row in rows]

        results = []
        for row in rows:
            out = {}
            for item in projection.items:
                column = resolve_column(row, item.expression)
                if column is None:
                    continue
                out[item.alias or column] = row[column].raw
            results.append(out)
        return results
