import pytest

from tabletalk.core.context_builder import ContextBuilder, VectorStoreEntry
from tabletalk.core.dataset import Column, ColumnType, Schema


@pytest.fixture
def builder():
    return ContextBuilder()


def test_one_entry_per_column(builder, rankings):
    entries = builder.build(rankings.schema, rankings.rows)
    assert [e.column for e in entries] == ["Country", "Rank"]
    assert entries[0].context == "Column: Country, Type: TEXT, Sample values: Nepal, India"
    assert entries[1].context == "Column: Rank, Type: NUMBER, Sample values: 5, 1"
    assert entries[0].sample_count == 2


def test_context_and_distinct_limits(builder):
    schema = Schema([Column("City", ColumnType.TEXT)])
    names = ["A", "B", "A", "C", "D", "E", "F", "G", "H", "I", "J", "K", "L"]
    rows = [{"City": n} for n in names]

    entry = builder.build(schema, rows)[0]

    assert entry.context.endswith("Sample values: A, B, A, C, D")
    assert entry.distinct_values == ["A", "B", "C", "D", "E", "F", "G", "H", "I", "J"]
    assert entry.sample_count == 13


def test_build_is_deterministic(builder, scores):
    assert builder.build(scores.schema, scores.rows) == builder.build(scores.schema, scores.rows)


def test_relevant_by_column_name_and_value(builder, rankings):
    entries = builder.build(rankings.schema, rankings.rows)
    relevant = builder.relevant("What is the rank of Nepal?", entries)
    assert [e.column for e in relevant] == ["Country", "Rank"]


def test_relevant_only_checks_first_distinct_values(builder):
    schema = Schema([Column("City", ColumnType.TEXT)])
    rows = [{"City": c} for c in ["Oslo", "Rome", "Lima", "Kyiv", "Doha", "Baku"]]
    entries = builder.build(schema, rows)

    assert builder.relevant("weather in doha", entries)
    assert builder.relevant("weather in baku", entries) == []


def test_unrelated_question(builder, rankings):
    entries = builder.build(rankings.schema, rankings.rows)
    assert builder.relevant("how many records are there", entries) == []


def test_null_values_are_never_relevant(builder):
    schema = Schema([Column("Note", ColumnType.TEXT)])
    entries = builder.build(schema, [{"Note": None}, {"Note": ""}])
    assert builder.relevant("anything at all", entries) == []


def test_wire_format(builder, rankings):
    entry = builder.build(rankings.schema, rankings.rows)[1]
    data = entry.to_dict()
    assert data == {
        "column": "Rank",
        "type": "NUMBER",
        "context": "Column: Rank, Type: NUMBER, Sample values: 5, 1",
        "metadata": {"distinctValues": [5, 1], "sampleCount": 2},
    }
    assert VectorStoreEntry.from_dict(data) == entry
