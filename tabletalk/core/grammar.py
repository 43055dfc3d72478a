"""
Grammar Validator

Structural checks applied to generated query text before it is allowed
anywhere near the interpreter.
"""

from enum import Enum
from typing import List
import re

from tabletalk.core.errors import GrammarViolation


class GrammarError(str, Enum):
    """Validation failures; values are the messages reported to clients."""
    MISSING_FROM = "Missing FROM clause"
    UNBALANCED_BACKTICKS = "Unbalanced backticks"
    MUST_START_WITH_SELECT = "Query must start with SELECT"
    DANGEROUS_OPERATION = "Dangerous SQL operation detected"

    def __str__(self) -> str:
        return self.value


FROM_CLAUSE = re.compile(r"FROM\s+`?\w+`?", re.I)
STARTS_WITH_SELECT = re.compile(r"^SELECT\s+", re.I)
DANGEROUS_AFTER_WHERE = re.compile(r"WHERE.*?(DROP|DELETE|INSERT|UPDATE|CREATE|ALTER)", re.I | re.S)


class GrammarValidator:
    """Runs every check and collects all failures."""

    def validate(self, sql: str) -> List[GrammarError]:
        """
        Validate query text.

        Args:
            sql: Candidate query text

        Returns:
            List of errors, empty when the text is acceptable
        """
        sql = sql or ""
        errors = []

        if not FROM_CLAUSE.search(sql):
            errors.append(GrammarError.MISSING_FROM)

        if sql.count("`") % 2 != 0:
            errors.append(GrammarError.UNBALANCED_BACKTICKS)

        if not STARTS_WITH_SELECT.match(sql.strip() + " "):
            errors.append(GrammarError.MUST_START_WITH_SELECT)

        if DANGEROUS_AFTER_WHERE.search(sql):
            errors.append(GrammarError.DANGEROUS_OPERATION)

        return errors

    def enforce(self, sql: str) -> None:
        """Raise GrammarViolation if validation finds anything."""
        errors = self.validate(sql)
        if errors:
            raise GrammarViolation(sql, errors)
