"""
Prompt Templates for SQL Generation

Renders the generation prompt and post-processes raw completions.
Rendering is a pure function of its inputs so identical requests produce
byte-identical prompts.
"""

from typing import Any, Mapping, Optional, Sequence
from dataclasses import dataclass
import json
import re

from tabletalk.core.context_builder import VectorStoreEntry
from tabletalk.core.dataset import Cell, CellKind, Schema


@dataclass
class PromptTemplates:
    """Collection of prompt templates for SQL generation."""

    SYSTEM_PROMPT = "You are an expert SQL query generator. Return ONLY valid SQL. No explanations."

    SQL_GENERATION_PROMPT = """You are an expert SQL query generator. Generate a syntactically correct SQL query.

DATABASE SCHEMA:
Table Name: {table_name}
Columns: {schema_context}

SAMPLE DATA (first 3 rows):
{sample_rows}

RELEVANT CONTEXT:
{relevant_context}

IMPORTANT RULES:
1. ALWAYS use backticks around column names: `Column Name`
2. ALWAYS include the FROM clause with table name: FROM {table_name}
3. Use exact column names from schema (case-sensitive)
4. Use proper SQL syntax: SELECT `col1`, `col2` FROM {table_name} WHERE `col3` = 'value'
5. Return ONLY the SQL query, no explanations

FEW-SHOT EXAMPLES:
Q: "Find rank of Nepal"
A: SELECT `Country`, `Year`, `Rank` FROM {table_name} WHERE `Country` = 'Nepal'

Q: "Total sales in 2024"
A: SELECT SUM(`Sales`) as total_sales FROM {table_name} WHERE `Year` = 2024

Q: "Average price of products"
A: SELECT AVG(`Price`) as avg_price FROM {table_name}

USER QUESTION: "{question}"

Generate the SQL query now:"""

    RELEVANT_COLUMN_LINE = "- Column `{column}` ({type}): Sample values: {values}"


def _json_value(value: Any) -> str:
    cell = Cell.of(value)
    if cell.kind is CellKind.NUMBER:
        return cell.as_text()
    if cell.kind is CellKind.DATE:
        return json.dumps(cell.as_text())
    return json.dumps(cell.value, ensure_ascii=False)


class PromptComposer:
    """Builds the RAG-enhanced generation prompt."""

    def __init__(self, prompt_rows: int = 3, relevance_values: int = 5, default_table: str = "data"):
        self.prompt_rows = prompt_rows
        self.relevance_values = relevance_values
        self.default_table = default_table

    def compose(
        self,
        table_name: Optional[str],
        schema: Schema,
        sample_rows: Sequence[Mapping[str, Any]],
        relevant: Sequence[VectorStoreEntry],
        question: str,
    ) -> str:
        """
        Render the prompt.

        Args:
            table_name: Table the query must select FROM
            schema: Dataset schema
            sample_rows: Sample rows; only the first few are embedded
            relevant: Relevant context entries
            question: User question, embedded literally

        Returns:
            Prompt text
        """
        schema_context = ", ".join(f"`{col.name}` {col.type.value}" for col in schema)

        rows = "\n".join(
            ", ".join(f"`{key}`: {_json_value(value)}" for key, value in row.items())
            for row in sample_rows[:self.prompt_rows]
        )

        context_lines = []
        for entry in relevant:
            values = ", ".join(
                Cell.of(v).display() for v in entry.distinct_values[:self.relevance_values]
            )
            context_lines.append(PromptTemplates.RELEVANT_COLUMN_LINE.format(
                column=entry.column,
                type=entry.type.value,
                values=values or "N/A",
            ))

        return PromptTemplates.SQL_GENERATION_PROMPT.format(
            table_name=table_name or self.default_table,
            schema_context=schema_context,
            sample_rows=rows,
            relevant_context="\n".join(context_lines),
            question=question,
        )


_CODE_FENCE = re.compile(r"```(?:sql)?[ \t]*\n?", re.I)


def extract_sql(completion: str) -> str:
    """
    Pull the query out of raw completion text.

    Code fences are removed; when the completion spans several lines the
    first line starting with SELECT is taken, otherwise the whole text.
    """
    text = _CODE_FENCE.sub("", completion or "").strip()
    for line in text.split("\n"):
        if line.strip().upper().startswith("SELECT"):
            return line.strip()
    return text
