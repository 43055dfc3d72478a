"""
Query Parser

Tokenizer and recursive-descent parser for the supported SELECT subset:

    SELECT (<col>[ AS <alias>][, ...] | *) FROM <table>
      [WHERE <col> <op> <value>]
      [ORDER BY <col> [ASC|DESC]]
      [LIMIT <n>]

The parser is tolerant: a clause it cannot make sense of (for example a
LIMIT without a number) is dropped instead of failing the whole query.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import re

from tabletalk.core.conditions import Condition, parse_condition


class TokenType(Enum):
    IDENT = "ident"
    QUOTED_IDENT = "quoted_ident"
    STRING = "string"
    NUMBER = "number"
    OPERATOR = "operator"
    COMMA = "comma"
    LPAREN = "lparen"
    RPAREN = "rparen"
    STAR = "star"
    OTHER = "other"


@dataclass(frozen=True)
class Token:
    type: TokenType
    text: str
    start: int
    end: int

    @property
    def value(self) -> str:
        """Token text without quoting."""
        if self.type in (TokenType.QUOTED_IDENT, TokenType.STRING):
            return self.text[1:-1] if len(self.text) >= 2 and self.text[-1] == self.text[0] else self.text[1:]
        return self.text

    def is_keyword(self, word: str) -> bool:
        return self.type is TokenType.IDENT and self.text.upper() == word


_TOKEN_SPEC = [
    (TokenType.QUOTED_IDENT, r"`[^`]*`?"),
    (TokenType.STRING, r"'[^']*'|\"[^\"]*\"|'[^'\s]*|\"[^\"\s]*"),
    (TokenType.NUMBER, r"\d+(?:\.\d*)?(?:[eE][+-]?\d+)?|\.\d+"),
    (TokenType.IDENT, r"[A-Za-z_][A-Za-z0-9_]*"),
    (TokenType.OPERATOR, r">=|<=|!=|<>|=|>|<"),
    (TokenType.COMMA, r","),
    (TokenType.LPAREN, r"\("),
    (TokenType.RPAREN, r"\)"),
    (TokenType.STAR, r"\*"),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{t.name}>{p})" for t, p in _TOKEN_SPEC))

CLAUSE_KEYWORDS = ("WHERE", "ORDER", "GROUP", "LIMIT")
AGGREGATE_TOKEN = re.compile(r"(SUM|COUNT|AVG|MAX|MIN)\(", re.I)


def tokenize(sql: str) -> List[Token]:
    """Split query text into tokens, keeping source offsets."""
    tokens = []
    pos = 0
    length = len(sql)
    while pos < length:
        if sql[pos].isspace():
            pos += 1
            continue
        match = _TOKEN_RE.match(sql, pos)
        if match:
            tokens.append(Token(TokenType[match.lastgroup], match.group(), pos, match.end()))
            pos = match.end()
        else:
            tokens.append(Token(TokenType.OTHER, sql[pos], pos, pos + 1))
            pos += 1
    return tokens


@dataclass
class ProjectionItem:
    """One entry of the SELECT list."""
    expression: str
    alias: Optional[str] = None
    function: Optional[str] = None

    @property
    def output_name(self) -> str:
        return self.alias or self.expression


@dataclass
class Projection:
    items: List[ProjectionItem] = field(default_factory=list)
    star: bool = False


@dataclass
class OrderBy:
    column: str
    descending: bool = False


@dataclass
class Statement:
    """Parsed query."""
    text: str
    projection: Projection
    source: Optional[str] = None
    filter: Optional[Condition] = None
    order_by: Optional[OrderBy] = None
    limit: Optional[int] = None

    @property
    def has_aggregate(self) -> bool:
        """Any aggregate function token anywhere in the raw text."""
        return AGGREGATE_TOKEN.search(self.text) is not None


class Parser:
    """Recursive-descent parser over the token stream."""

    def __init__(self, sql: str):
        self.sql = sql
        self.tokens = tokenize(sql)
        self.pos = 0

    def _peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _advance(self) -> Optional[Token]:
        token = self._peek()
        if token is not None:
            self.pos += 1
        return token

    def _at_keyword(self, *words: str) -> bool:
        token = self._peek()
        return token is not None and any(token.is_keyword(w) for w in words)

    def _at_clause(self) -> bool:
        return self._at_keyword(*CLAUSE_KEYWORDS)

    def _slice(self, tokens: List[Token]) -> str:
        if not tokens:
            return ""
        return self.sql[tokens[0].start:tokens[-1].end]

    def parse(self) -> Statement:
        if self._at_keyword("SELECT"):
            self._advance()

        statement = Statement(text=self.sql, projection=self._parse_projection())

        if self._at_keyword("FROM"):
            self._advance()
            statement.source = self._parse_identifier()

        while self._peek() is not None:
            if self._at_keyword("WHERE"):
                self._advance()
                statement.filter = self._parse_filter()
            elif self._at_keyword("ORDER"):
                self._advance()
                order_by = self._parse_order_by()
                if order_by is not None:
                    statement.order_by = order_by
            elif self._at_keyword("LIMIT"):
                self._advance()
                statement.limit = self._parse_limit()
            else:
                # GROUP BY and stray tokens are not supported; skip them
                self._advance()

        return statement

    def _parse_identifier(self) -> Optional[str]:
        token = self._peek()
        if token is None or token.type not in (TokenType.IDENT, TokenType.QUOTED_IDENT):
            return None
        if token.type is TokenType.IDENT and token.text.upper() in CLAUSE_KEYWORDS:
            return None
        self._advance()
        return token.value.strip()

    def _parse_projection(self) -> Projection:
        items: List[List[Token]] = [[]]
        depth = 0
        while self._peek() is not None:
            token = self._peek()
            if depth == 0 and token.is_keyword("FROM"):
                break
            self._advance()
            if token.type is TokenType.LPAREN:
                depth += 1
            elif token.type is TokenType.RPAREN:
                depth = max(0, depth - 1)
            if token.type is TokenType.COMMA and depth == 0:
                items.append([])
                continue
            items[-1].append(token)

        items = [item for item in items if item]
        if len(items) == 1 and len(items[0]) == 1 and items[0][0].type is TokenType.STAR:
            return Projection(star=True)
        return Projection(items=[self._parse_item(item) for item in items])

    def _parse_item(self, tokens: List[Token]) -> ProjectionItem:
        alias = None
        if (
            len(tokens) >= 3
            and tokens[-2].is_keyword("AS")
            and tokens[-1].type in (TokenType.IDENT, TokenType.QUOTED_IDENT)
        ):
            alias = tokens[-1].value
            tokens = tokens[:-2]

        function = None
        if len(tokens) >= 3 and tokens[0].type is TokenType.IDENT and tokens[1].type is TokenType.LPAREN:
            function = tokens[0].text.upper()

        expression = self._slice(tokens).replace("`", "").strip()
        return ProjectionItem(expression=expression, alias=alias, function=function)

    def _parse_filter(self) -> Optional[Condition]:
        tokens = []
        while self._peek() is not None and not self._at_clause():
            tokens.append(self._advance())
        text = self._slice(tokens).strip()
        return parse_condition(text) if text else None

    def _parse_order_by(self) -> Optional[OrderBy]:
        if not self._at_keyword("BY"):
            return None
        self._advance()
        column = self._parse_identifier()
        if column is None:
            return None
        descending = False
        if self._at_keyword("ASC", "DESC"):
            descending = self._advance().text.upper() == "DESC"
        return OrderBy(column=column, descending=descending)

    def _parse_limit(self) -> Optional[int]:
        token = self._peek()
        if token is None or token.type is not TokenType.NUMBER:
            return None
        self._advance()
        if not token.text.isdigit():
            return None
        return int(token.text)


def parse(sql: str) -> Statement:
    """Parse query text into a Statement."""
    return Parser(sql).parse()
