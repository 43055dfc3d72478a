"""
Context Builder

Builds per-column retrieval records ("vector store entries") from a schema
and sample rows, and selects the entries relevant to a question. Matching is
purely lexical; no embeddings are computed.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence
import logging

from tabletalk.core.dataset import Cell, ColumnType, Schema

logger = logging.getLogger(__name__)


@dataclass
class VectorStoreEntry:
    """Retrieval record for one column."""
    column: str
    type: ColumnType
    context: str
    distinct_values: List[Any] = field(default_factory=list)
    sample_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "type": self.type.value,
            "context": self.context,
            "metadata": {
                "distinctValues": list(self.distinct_values),
                "sampleCount": self.sample_count,
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VectorStoreEntry":
        metadata = data.get("metadata") or {}
        try:
            col_type = ColumnType(str(data.get("type", "TEXT")).upper())
        except ValueError:
            col_type = ColumnType.TEXT
        return cls(
            column=str(data["column"]),
            type=col_type,
            context=str(data.get("context", "")),
            distinct_values=list(metadata.get("distinctValues") or []),
            sample_count=int(metadata.get("sampleCount") or 0),
        )


class ContextBuilder:
    """
    Derives RAG context from schema and sample data.

    Attributes:
        context_values: Sample values embedded in each context string
        max_distinct: Distinct values kept per column
        relevance_values: Distinct values checked against a question
    """

    def __init__(self, context_values: int = 5, max_distinct: int = 10, relevance_values: int = 5):
        self.context_values = context_values
        self.max_distinct = max_distinct
        self.relevance_values = relevance_values

    def build(self, schema: Schema, sample_rows: Sequence[Mapping[str, Any]]) -> List[VectorStoreEntry]:
        """
        Build one entry per schema column.

        Args:
            schema: Dataset schema
            sample_rows: Rows to summarize (raw values or Cells)

        Returns:
            Entries in schema order
        """
        entries = []
        for col in schema:
            cells = [Cell.of(row.get(col.name)) for row in sample_rows]
            shown = ", ".join(c.display() for c in cells[:self.context_values])
            context = f"Column: {col.name}, Type: {col.type.value}, Sample values: {shown}"

            entries.append(VectorStoreEntry(
                column=col.name,
                type=col.type,
                context=context,
                distinct_values=self._distinct(cells),
                sample_count=len(sample_rows),
            ))

        logger.debug(f"Built {len(entries)} context entries from {len(sample_rows)} sample rows")
        return entries

    def _distinct(self, cells: Iterable[Cell]) -> List[Any]:
        """First unique values in order of first appearance."""
        seen = set()
        values = []
        for cell in cells:
            key = (cell.kind, cell.raw)
            if key in seen:
                continue
            seen.add(key)
            values.append(cell.raw)
            if len(values) >= self.max_distinct:
                break
        return values

    def relevant(self, question: str, entries: Iterable[VectorStoreEntry]) -> List[VectorStoreEntry]:
        """
        Filter entries whose column name or a sample value appears in the question.

        Args:
            question: Natural-language question
            entries: Vector store entries

        Returns:
            Relevant entries, original order preserved
        """
        q = (question or "").lower()
        matched = []
        for entry in entries:
            if entry.column.lower() in q:
                matched.append(entry)
                continue
            for value in entry.distinct_values[:self.relevance_values]:
                text = Cell.of(value).display().lower()
                if text and text in q:
                    matched.append(entry)
                    break
        return matched
