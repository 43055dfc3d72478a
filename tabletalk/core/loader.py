"""
Dataset Loader

Ingestion side of the pipeline: turns CSV, Excel and JSON files (or
JSON-like row lists received over HTTP) into a typed Dataset.
"""

from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
import logging
import math
import numbers
import re

import pandas as pd

from tabletalk.core.dataset import Cell, CellKind, Column, ColumnType, Dataset, Schema
from tabletalk.core.errors import DatasetError

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {"csv", "tsv", "txt"}
EXCEL_EXTENSIONS = {"xlsx", "xls", "xlsm"}
JSON_EXTENSIONS = {"json"}
ALLOWED_EXTENSIONS = CSV_EXTENSIONS | EXCEL_EXTENSIONS | JSON_EXTENSIONS

_DATE_RE = re.compile(
    r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T](\d{1,2}):(\d{2})(?::(\d{2})(?:\.(\d+))?)?)?$"
)


def table_name_for(path: Union[str, Path]) -> str:
    """Derive a table name from a file name ("sales 2024.csv" -> "sales_2024")."""
    return re.sub(r"[^a-zA-Z0-9]", "_", Path(path).stem)


def parse_date(value: str) -> Optional[datetime]:
    """Parse an ISO-like date string, or return None."""
    if not isinstance(value, str):
        return None
    match = _DATE_RE.match(value.strip())
    if not match:
        return None
    year, month, day, hour, minute, second, fraction = match.groups()
    micros = int((fraction or "0")[:6].ljust(6, "0"))
    try:
        return datetime(
            int(year), int(month), int(day),
            int(hour or 0), int(minute or 0), int(second or 0), micros,
        )
    except ValueError:
        return None


def detect_column_type(records: Sequence[Mapping[str, Any]], column: str) -> ColumnType:
    """
    Infer a column's type from the first row only.

    Later rows are not inspected, so a leading null or a mixed column
    is typed by whatever the first row holds.
    """
    sample = records[0].get(column) if records else None
    if isinstance(sample, numbers.Real) and not isinstance(sample, bool):
        return ColumnType.NUMBER
    if isinstance(sample, (date, datetime)) or parse_date(sample) is not None:
        return ColumnType.DATE
    return ColumnType.TEXT


def infer_schema(records: Sequence[Mapping[str, Any]]) -> Schema:
    """Build a schema from the first record's keys."""
    if not records:
        raise DatasetError("Cannot infer a schema from an empty dataset")
    return Schema(Column(name, detect_column_type(records, name)) for name in records[0].keys())


def _clean(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        # numpy scalar
        return value.item()
    return value


def _normalize_dates(schema: Schema, records: List[Dict[str, Any]]) -> None:
    """Tag date text in DATE columns, keeping the text as written."""
    date_columns = [c.name for c in schema if c.type is ColumnType.DATE]
    for record in records:
        for name in date_columns:
            text = record.get(name)
            parsed = parse_date(text)
            if parsed is not None:
                value = parsed.date() if parsed.time() == datetime.min.time() else parsed
                record[name] = Cell(CellKind.DATE, value, text=text)


def dataset_from_records(
    records: Sequence[Mapping[str, Any]],
    name: Optional[str] = None,
    schema: Optional[Schema] = None,
) -> Dataset:
    """
    Build a Dataset from row dictionaries.

    Args:
        records: Row mappings
        name: Table name
        schema: Explicit schema; inferred from the first row when omitted
    """
    rows = [{str(k): _clean(v) for k, v in record.items()} for record in records]
    if schema is None:
        schema = infer_schema(rows)
    _normalize_dates(schema, rows)
    return Dataset(schema, rows, name=name)


def read_records(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read a supported file into a list of row dictionaries."""
    path = Path(path)
    ext = path.suffix.lower().lstrip(".")
    if ext not in ALLOWED_EXTENSIONS:
        raise DatasetError(
            f'Invalid file type ".{ext}". Supported: CSV (.csv, .tsv, .txt), '
            f"Excel (.xlsx, .xls, .xlsm), JSON (.json)"
        )
    if not path.exists():
        raise DatasetError(f"File not found: {path}")

    try:
        if ext in CSV_EXTENSIONS:
            sep = "\t" if ext == "tsv" else ","
            try:
                df = pd.read_csv(path, sep=sep, encoding="utf-8", skip_blank_lines=True)
            except UnicodeDecodeError:
                df = pd.read_csv(path, sep=sep, encoding="latin-1", skip_blank_lines=True)
        elif ext in EXCEL_EXTENSIONS:
            # first sheet only
            df = pd.read_excel(path, sheet_name=0)
        else:
            df = pd.read_json(path, orient="records")
    except (ValueError, OSError, pd.errors.ParserError) as e:
        raise DatasetError(f"Could not read {path.name}: {e}") from e

    df = df.dropna(how="all")
    # spreadsheet headers such as 2024 come back as numbers
    df.columns = [str(c) for c in df.columns]
    return df.astype(object).where(pd.notna(df), None).to_dict(orient="records")


def load_dataset(path: Union[str, Path], table_name: Optional[str] = None) -> Dataset:
    """
    Load a file into a Dataset.

    Args:
        path: CSV/TSV/Excel/JSON file
        table_name: Overrides the name derived from the file stem

    Returns:
        Dataset with an inferred schema
    """
    records = read_records(path)
    if not records:
        raise DatasetError(f"No rows found in {Path(path).name}")
    dataset = dataset_from_records(records, name=table_name or table_name_for(path))
    logger.info(
        f"Loaded {len(dataset)} rows from {Path(path).name} as table "
        f"'{dataset.name}' ({', '.join(dataset.schema.names)})"
    )
    return dataset
