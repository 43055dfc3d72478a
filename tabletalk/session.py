"""
Query Session

Session-scoped state threaded through the pipeline: the loaded dataset,
its vector store, the conversation messages, the security log and the
in-flight flag.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging
import time

import pandas as pd

from tabletalk.core.context_builder import ContextBuilder, VectorStoreEntry
from tabletalk.core.dataset import Dataset
from tabletalk.core.errors import DatasetError, SessionBusy, TableTalkError
from tabletalk.core.grammar import GrammarValidator
from tabletalk.core.interpreter import QueryResult, SQLInterpreter
from tabletalk.core.security import SecurityLog, SecurityScanner
from tabletalk.inference.generator import GenerationRequest, SQLGenerator

logger = logging.getLogger(__name__)


@dataclass
class Message:
    """One entry of the session transcript."""
    type: str  # "system", "user", "assistant", "error"
    content: str
    sql: Optional[str] = None
    results: Optional[QueryResult] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class QuerySession:
    """
    Question-answering session over one dataset.

    A session handles one question at a time; asking while a question is
    in flight raises SessionBusy.
    """

    def __init__(
        self,
        dataset: Dataset,
        generator: SQLGenerator,
        security_log: SecurityLog = None,
        scanner: SecurityScanner = None,
    ):
        """
        Initialize the session.

        Args:
            dataset: Dataset to query
            generator: Generation service (authoritative security check)
            security_log: Log shared with the caller; a fresh one by default
            scanner: Early-exit scanner
        """
        self.dataset = dataset
        self.generator = generator
        self.security_log = security_log if security_log is not None else SecurityLog()
        self.scanner = scanner or SecurityScanner()
        self.validator = GrammarValidator()
        self.interpreter = SQLInterpreter()
        self.messages: List[Message] = []
        self.in_flight = False

        rag = generator.config.rag
        builder = ContextBuilder(
            context_values=rag.context_values,
            max_distinct=rag.max_distinct_values,
            relevance_values=rag.relevance_values,
        )
        self.vector_store: List[VectorStoreEntry] = builder.build(dataset.schema, dataset.rows)
        self.messages.append(Message(
            type="system",
            content=(
                f"Database loaded: table {dataset.name}, {len(dataset)} rows, "
                f"columns: {', '.join(dataset.schema.names)}"
            ),
        ))

    def ask(self, question: str) -> QueryResult:
        """
        Answer a natural-language question.

        Args:
            question: User question

        Returns:
            Result rows

        Raises:
            SessionBusy: another question is still being processed
            TableTalkError: any pipeline failure (also recorded as a message)
        """
        if self.in_flight:
            raise SessionBusy("A question is already being processed")
        if not question or not question.strip():
            raise TableTalkError("Question is required")

        self.messages.append(Message(type="user", content=question))
        self.in_flight = True
        start = time.time()
        try:
            # Early exit before any network round trip; the generator re-checks
            self.scanner.enforce(question, self.security_log)

            generated = self.generator.generate(GenerationRequest(
                question=question,
                schema=self.dataset.schema,
                sample_rows=self.dataset.records(self.generator.config.rag.sample_rows),
                table_name=self.dataset.name,
                vector_store=self.vector_store,
            ))
            results = self.interpreter.execute(self.dataset, generated.sql)
        except TableTalkError as e:
            self.messages.append(Message(type="error", content=str(e)))
            raise
        finally:
            self.in_flight = False

        elapsed = time.time() - start
        self.messages.append(Message(
            type="assistant",
            content="Query executed successfully",
            sql=generated.sql,
            results=results,
            metadata={
                "securityPassed": True,
                "grammarValid": True,
                "ragUsed": generated.rag_used,
                "executionTime": f"{elapsed:.2f}s",
            },
        ))
        return results

    def run_sql(self, sql: str) -> QueryResult:
        """Validate and execute hand-written query text."""
        self.validator.enforce(sql)
        results = self.interpreter.execute(self.dataset, sql)
        self.messages.append(Message(
            type="assistant", content="Query executed successfully", sql=sql, results=results,
        ))
        return results

    @property
    def last_sql(self) -> Optional[str]:
        for message in reversed(self.messages):
            if message.sql:
                return message.sql
        return None


def export_results(results: QueryResult, path: Union[str, Path]) -> Path:
    """
    Write result rows to .csv or .xlsx.

    Args:
        results: Rows returned by the interpreter
        path: Output file; the extension picks the format
    """
    path = Path(path)
    df = pd.DataFrame(results)
    ext = path.suffix.lower()
    if ext == ".csv":
        df.to_csv(path, index=False)
    elif ext in (".xlsx", ".xlsm"):
        df.to_excel(path, index=False, sheet_name="Results")
    else:
        raise DatasetError(f"Unsupported export format: {ext or path.name}")
    logger.info(f"Exported {len(results)} rows to {path}")
    return path
