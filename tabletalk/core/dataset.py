"""
Dataset Model

In-memory tabular data handed to the core by the ingestion layer.
Every raw value is tagged once as a Cell when the Dataset is built, so
execution dispatches on the tag instead of sniffing Python types.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple
import math
import numbers
import re

from tabletalk.core.errors import DatasetError


class ColumnType(Enum):
    """Declared column type, inferred once at ingestion."""
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DATE = "DATE"


class CellKind(Enum):
    """Runtime tag of a single cell."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    NULL = "null"


_NUMERIC_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def parse_number(text: str) -> float:
    """Parse numeric text, returning NaN when it is not a number."""
    stripped = text.strip()
    if _NUMERIC_RE.match(stripped):
        return float(stripped)
    return math.nan


def format_number(value) -> str:
    """Render a number the way it is written in query text (5.0 -> '5')."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


@dataclass(frozen=True)
class Cell:
    """
    A tagged scalar value.

    `text` holds the source text of a value parsed at ingestion (dates read
    from CSV or JSON); it is what comparisons and results see.
    """
    kind: CellKind
    value: Any = None
    text: Optional[str] = None

    @classmethod
    def of(cls, raw: Any) -> "Cell":
        """Tag a raw scalar."""
        if isinstance(raw, Cell):
            return raw
        if raw is None:
            return NULL_CELL
        if isinstance(raw, bool):
            return cls(CellKind.NUMBER, raw)
        if isinstance(raw, numbers.Real):
            if isinstance(raw, numbers.Integral):
                return cls(CellKind.NUMBER, int(raw))
            as_float = float(raw)
            if math.isnan(as_float):
                return NULL_CELL
            return cls(CellKind.NUMBER, as_float)
        if isinstance(raw, (datetime, date)):
            return cls(CellKind.DATE, raw)
        return cls(CellKind.TEXT, str(raw))

    @property
    def is_null(self) -> bool:
        return self.kind is CellKind.NULL

    @property
    def raw(self) -> Any:
        """Value handed back to callers: the source text when there is one."""
        return self.text if self.text is not None else self.value

    def as_number(self) -> float:
        """Numeric coercion; anything that is not a number becomes NaN."""
        if self.kind is CellKind.NUMBER:
            return float(self.value)
        if self.kind is CellKind.TEXT:
            return parse_number(self.value)
        return math.nan

    def as_text(self) -> str:
        """String rendering used for equality comparisons."""
        if self.text is not None:
            return self.text
        if self.kind is CellKind.NULL:
            return "null"
        if self.kind is CellKind.NUMBER:
            return format_number(self.value)
        if self.kind is CellKind.DATE:
            return self.value.isoformat()
        return self.value

    def display(self) -> str:
        """Rendering used in prompts and context strings (null is blank)."""
        if self.kind is CellKind.NULL:
            return ""
        return self.as_text()

    def sort_key(self) -> Tuple:
        """
        Ordering key; numbers sort before dates, dates before text.

        Null ranks as the number 0, so it lands among the numbers of a
        numeric column and ahead of every value in a text column.
        """
        if self.kind is CellKind.NUMBER:
            return (0, float(self.value), "")
        if self.kind is CellKind.DATE:
            return (1, 0.0, self.value.isoformat())
        if self.kind is CellKind.NULL:
            return (0, 0.0, "")
        return (2, 0.0, self.value)


NULL_CELL = Cell(CellKind.NULL)


@dataclass(frozen=True)
class Column:
    """A named, typed column."""
    name: str
    type: ColumnType = ColumnType.TEXT

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Column":
        try:
            col_type = ColumnType(str(data.get("type", "TEXT")).upper())
        except ValueError:
            raise DatasetError(f"Unknown column type for {data.get('name')!r}: {data.get('type')!r}")
        return cls(name=str(data["name"]), type=col_type)


class Schema:
    """Ordered sequence of uniquely named columns."""

    def __init__(self, columns: Iterable[Column]):
        self._columns: Tuple[Column, ...] = tuple(columns)
        seen = set()
        for col in self._columns:
            if col.name in seen:
                raise DatasetError(f"Duplicate column name in schema: {col.name}")
            seen.add(col.name)

    @classmethod
    def from_list(cls, data: Iterable[Mapping[str, Any]]) -> "Schema":
        return cls(Column.from_dict(item) for item in data)

    @property
    def columns(self) -> Tuple[Column, ...]:
        return self._columns

    @property
    def names(self) -> List[str]:
        return [c.name for c in self._columns]

    def get(self, name: str) -> Optional[Column]:
        for col in self._columns:
            if col.name == name:
                return col
        return None

    def to_list(self) -> List[Dict[str, str]]:
        return [c.to_dict() for c in self._columns]

    def __iter__(self) -> Iterator[Column]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __eq__(self, other) -> bool:
        return isinstance(other, Schema) and self._columns == other._columns

    def __repr__(self) -> str:
        return f"Schema({list(self._columns)!r})"


Row = Mapping[str, Cell]


class Dataset:
    """
    Schema plus an ordered, read-only sequence of rows.

    Rows must carry exactly the schema's columns; a row with missing or
    extra keys is rejected instead of being reshaped.
    """

    def __init__(
        self,
        schema: Schema,
        rows: Iterable[Mapping[str, Any]],
        name: Optional[str] = None,
    ):
        """
        Build a dataset.

        Args:
            schema: Column definitions
            rows: Raw row mappings (column name -> scalar or Cell)
            name: Table name queries must reference in FROM
        """
        self.schema = schema
        self.name = name
        expected = set(schema.names)

        tagged = []
        for index, raw in enumerate(rows):
            keys = set(raw.keys())
            if keys != expected:
                missing = sorted(expected - keys)
                extra = sorted(keys - expected)
                raise DatasetError(
                    f"Row {index} does not match schema (missing={missing}, extra={extra})"
                )
            tagged.append(MappingProxyType({k: Cell.of(raw[k]) for k in schema.names}))
        self._rows: Tuple[Row, ...] = tuple(tagged)

    @property
    def rows(self) -> Tuple[Row, ...]:
        return self._rows

    def records(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Plain-value copies of the rows (optionally only the first `limit`)."""
        rows = self._rows if limit is None else self._rows[:limit]
        return [{k: cell.raw for k, cell in row.items()} for row in rows]

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"Dataset(name={self.name!r}, columns={self.schema.names!r}, rows={len(self)})"


def unwrap(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert a row of Cells into plain values."""
    return {k: (v.raw if isinstance(v, Cell) else v) for k, v in row.items()}
