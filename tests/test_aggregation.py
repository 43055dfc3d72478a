import pytest

from tabletalk.core.aggregation import AggregationEngine, coerce_number
from tabletalk.core.dataset import Cell, Column, ColumnType, Dataset, Schema
from tabletalk.core.errors import ExecutionError


@pytest.fixture
def engine():
    return AggregationEngine()


def _rows(*values):
    schema = Schema([Column("Sales", ColumnType.NUMBER)])
    return list(Dataset(schema, [{"Sales": v} for v in values]).rows)


def test_sum_treats_non_numeric_as_zero(engine, sales):
    result = engine.aggregate(list(sales.rows), "SELECT SUM(`Sales`) as total FROM data")
    assert result == [{"total": 300}]


@pytest.mark.parametrize("sql, alias", [
    ("SELECT SUM(`Sales`) FROM data", "SUM(Sales)"),
    ("SELECT COUNT(*) FROM data", "COUNT"),
    ("SELECT AVG(Sales) FROM data", "AVG(Sales)"),
    ("SELECT MAX(`Sales`) FROM data", "MAX(Sales)"),
    ("SELECT min(`Sales`) FROM data", "MIN(Sales)"),
])
def test_default_aliases(engine, sql, alias):
    _, _, detected = engine.detect(sql)
    assert detected == alias


def test_backtick_alias(engine):
    assert engine.detect("SELECT AVG(`Sales`) AS `Mean Sales` FROM data") == ("AVG", "Sales", "Mean Sales")


def test_avg_divides_by_row_count(engine):
    result = engine.aggregate(_rows(100, 200, "abc"), "SELECT AVG(`Sales`) as a FROM data")
    assert result == [{"a": 100.0}]


def test_min_and_max_count_non_numeric_as_zero(engine):
    rows = _rows(-5, -10, "abc")
    assert engine.aggregate(rows, "SELECT MIN(`Sales`) as m FROM data") == [{"m": -10}]
    assert engine.aggregate(rows, "SELECT MAX(`Sales`) as m FROM data") == [{"m": 0}]


def test_count_ignores_column_values(engine):
    rows = _rows(1, None, "abc")
    assert engine.aggregate(rows, "SELECT COUNT(`Sales`) as n FROM data") == [{"n": 3}]


def test_priority_order_when_several_functions_appear(engine):
    name, column, _ = engine.detect("SELECT MAX(`a`), SUM(`b`) FROM data")
    assert (name, column) == ("SUM", "b")


def test_empty_row_set(engine):
    assert engine.aggregate([], "SELECT SUM(`Sales`) as s FROM data") == [{"s": 0}]
    assert engine.aggregate([], "SELECT COUNT(*) as n FROM data") == [{"n": 0}]
    assert engine.aggregate([], "SELECT AVG(`Sales`) as a FROM data") == [{"a": None}]
    assert engine.aggregate([], "SELECT MAX(`Sales`) as m FROM data") == [{"m": None}]


def test_unsupported_aggregate_expression(engine):
    with pytest.raises(ExecutionError) as exc:
        engine.aggregate(_rows(1), "SELECT SUM(`Sales` + 1) FROM data")
    assert exc.value.code == "UnsupportedAggregate"


def test_coerce_number():
    assert coerce_number(Cell.of(7)) == 7
    assert isinstance(coerce_number(Cell.of(7)), int)
    assert coerce_number(Cell.of("2.5")) == 2.5
    assert coerce_number(Cell.of("n/a")) == 0
    assert coerce_number(Cell.of(None)) == 0
