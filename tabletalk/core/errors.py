"""
Error Types

Exception hierarchy shared by every stage of the query pipeline.
Every error is terminal for the request that raised it.
"""

from typing import Iterable, List, Optional


class TableTalkError(Exception):
    """Base class for all TableTalk errors."""
    pass


class SecurityViolation(TableTalkError):
    """Raised when the threat scanner flags a question."""

    def __init__(self, query: str, threats: Iterable):
        self.query = query
        self.threats = sorted(threats, key=lambda t: t.order)
        labels = ", ".join(t.label for t in self.threats)
        super().__init__(f"Security Alert: {labels}")

    @property
    def labels(self) -> List[str]:
        return [t.label for t in self.threats]


class GrammarViolation(TableTalkError):
    """Raised when generated query text fails grammar validation."""

    def __init__(self, sql: str, errors: List):
        self.sql = sql
        self.errors = list(errors)
        super().__init__("SQL grammar error: " + "; ".join(str(e.value) for e in self.errors))

    @property
    def details(self) -> List[str]:
        return [e.value for e in self.errors]


class ExecutionError(TableTalkError):
    """Raised by the interpreter when a query cannot be executed."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class ExternalServiceError(TableTalkError):
    """Raised when the LLM collaborator fails (network, timeout, bad response)."""
    pass


class DatasetError(TableTalkError):
    """Raised when a dataset is malformed or cannot be loaded."""
    pass


class SessionBusy(TableTalkError):
    """Raised when a session receives a question while another is in flight."""
    pass


class ConfigError(TableTalkError):
    """Raised for invalid configuration."""
    pass
