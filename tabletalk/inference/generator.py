"""
SQL Generator

Trust-boundary generation service:

    question -> security scan (authoritative) -> relevant context ->
    prompt -> LLM -> extract query text -> grammar validation

Only fully validated query text leaves this module.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol
import logging

from tabletalk.config import TableTalkConfig
from tabletalk.core.context_builder import ContextBuilder, VectorStoreEntry
from tabletalk.core.dataset import Schema
from tabletalk.core.grammar import GrammarValidator
from tabletalk.core.security import SecurityLog, SecurityScanner
from tabletalk.inference.prompts import PromptComposer, extract_sql

logger = logging.getLogger(__name__)


class CompletionEngine(Protocol):
    """Anything that maps a prompt to completion text."""

    model: str

    def complete(self, prompt: str) -> str:
        ...


@dataclass
class GenerationRequest:
    """Everything the generator needs for one question."""
    question: str
    schema: Schema
    sample_rows: List[Mapping[str, Any]] = field(default_factory=list)
    table_name: Optional[str] = None
    vector_store: Optional[List[VectorStoreEntry]] = None


@dataclass
class GenerationResult:
    """Validated query text plus pipeline metadata."""
    sql: str
    model: str
    rag_used: bool
    relevant_columns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sql": self.sql,
            "metadata": {
                "model": self.model,
                "securityChecked": True,
                "grammarValidated": True,
                "ragUsed": self.rag_used,
            },
        }


class SQLGenerator:
    """Turns questions into validated query text via the LLM collaborator."""

    def __init__(
        self,
        llm: CompletionEngine,
        config: TableTalkConfig = None,
        security_log: SecurityLog = None,
        scanner: SecurityScanner = None,
        validator: GrammarValidator = None,
    ):
        self.config = config or TableTalkConfig()
        rag = self.config.rag
        self.llm = llm
        self.security_log = security_log if security_log is not None else SecurityLog()
        self.scanner = scanner or SecurityScanner()
        self.validator = validator or GrammarValidator()
        self.context_builder = ContextBuilder(
            context_values=rag.context_values,
            max_distinct=rag.max_distinct_values,
            relevance_values=rag.relevance_values,
        )
        self.composer = PromptComposer(
            prompt_rows=rag.prompt_rows,
            relevance_values=rag.relevance_values,
            default_table=self.config.default_table,
        )

    def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate validated query text for a question.

        Raises:
            SecurityViolation: question flagged by the scanner
            ExternalServiceError: LLM failure
            GrammarViolation: generated text failed validation
        """
        self.scanner.enforce(request.question, self.security_log)

        vector_store = request.vector_store
        if vector_store is None:
            vector_store = self.context_builder.build(request.schema, request.sample_rows)
        relevant = self.context_builder.relevant(request.question, vector_store)

        prompt = self.composer.compose(
            request.table_name,
            request.schema,
            request.sample_rows,
            relevant,
            request.question,
        )
        logger.debug(f"Prompt for {request.question!r}:\n{prompt}")

        completion = self.llm.complete(prompt)
        sql = extract_sql(completion)
        self.validator.enforce(sql)

        logger.info(f"Generated SQL: {sql}")
        return GenerationResult(
            sql=sql,
            model=getattr(self.llm, "model", "unknown"),
            rag_used=bool(relevant),
            relevant_columns=[e.column for e in relevant],
        )
