"""Core modules for TableTalk."""

from tabletalk.core.dataset import Cell, Column, ColumnType, Dataset, Schema
from tabletalk.core.security import SecurityLog, SecurityScanner, ThreatKind
from tabletalk.core.context_builder import ContextBuilder, VectorStoreEntry
from tabletalk.core.grammar import GrammarError, GrammarValidator
from tabletalk.core.conditions import ConditionEvaluator
from tabletalk.core.aggregation import AggregationEngine
from tabletalk.core.interpreter import SQLInterpreter

__all__ = [
    "Cell",
    "Column",
    "ColumnType",
    "Dataset",
    "Schema",
    "SecurityLog",
    "SecurityScanner",
    "ThreatKind",
    "ContextBuilder",
    "VectorStoreEntry",
    "GrammarError",
    "GrammarValidator",
    "ConditionEvaluator",
    "AggregationEngine",
    "SQLInterpreter",
]
