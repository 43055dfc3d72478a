"""
Security Scanner

Shared prompt/SQL injection policy. The same pattern table is used by the
session-side early exit and by the generation service at the trust boundary,
where it is authoritative.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Set, Tuple
import logging
import re
import threading

from tabletalk.core.errors import SecurityViolation

logger = logging.getLogger(__name__)


class ThreatKind(Enum):
    """Categories of malicious input."""
    INSTRUCTION_OVERRIDE = ("InstructionOverride", "Instruction Override Attempt", 0)
    SYSTEM_ROLE_HIJACK = ("SystemRoleHijack", "System Role Hijacking", 1)
    SQL_COMMENT_INJECTION = ("SQLCommentInjection", "SQL Comment Injection", 2)
    SQL_INJECTION = ("SQLInjection", "SQL Injection Attack", 3)
    UNION_INJECTION = ("UnionInjection", "UNION-based SQL Injection", 4)
    AUTH_BYPASS = ("AuthBypass", "Authentication Bypass Attempt", 5)
    CODE_EXECUTION = ("CodeExecution", "Code Execution Attempt", 6)
    XSS_INJECTION = ("XSSInjection", "XSS Injection Attempt", 7)
    TEMPLATE_INJECTION = ("TemplateInjection", "Template Injection", 8)

    def __init__(self, code: str, label: str, order: int):
        self.code = code
        self.label = label
        self.order = order

    @classmethod
    def from_code(cls, code: str) -> "ThreatKind":
        for kind in cls:
            if kind.code == code or kind.label == code:
                return kind
        raise ValueError(f"Unknown threat kind: {code}")


# Ordered policy table. Every pattern is tested independently.
THREAT_PATTERNS: Tuple[Tuple[re.Pattern, ThreatKind], ...] = (
    (re.compile(r"ignore\s+(previous|above|all)\s+instructions?", re.I), ThreatKind.INSTRUCTION_OVERRIDE),
    (re.compile(r"system\s*:\s*you\s+are", re.I), ThreatKind.SYSTEM_ROLE_HIJACK),
    (re.compile(r"/\*|\*/|--|#"), ThreatKind.SQL_COMMENT_INJECTION),
    (re.compile(r";\s*(drop|delete|truncate|insert|update)\s+", re.I), ThreatKind.SQL_INJECTION),
    (re.compile(r"(union|union\s+all)\s+select", re.I), ThreatKind.UNION_INJECTION),
    (re.compile(r"'\s*or\s+'?1'?\s*=\s*'?1", re.I), ThreatKind.AUTH_BYPASS),
    (re.compile(r"(exec|execute|eval|script)", re.I), ThreatKind.CODE_EXECUTION),
    (re.compile(r"<script|javascript:|onerror=", re.I), ThreatKind.XSS_INJECTION),
    (re.compile(r"\$\{|\{\{|<%"), ThreatKind.TEMPLATE_INJECTION),
)


@dataclass(frozen=True)
class ThreatReport:
    """Result of scanning a piece of text."""
    text: str
    threats: FrozenSet[ThreatKind] = frozenset()

    @property
    def is_clean(self) -> bool:
        return not self.threats

    @property
    def labels(self) -> List[str]:
        return [t.label for t in sorted(self.threats, key=lambda t: t.order)]


@dataclass(frozen=True)
class SecurityLogEntry:
    """One rejected question."""
    query: str
    threats: Tuple[ThreatKind, ...]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict:
        return {
            "query": self.query,
            "threats": [t.label for t in self.threats],
            "timestamp": self.timestamp.isoformat(),
        }


class SecurityLog:
    """Append-only audit trail, safe for concurrent appends."""

    def __init__(self):
        self._entries: List[SecurityLogEntry] = []
        self._lock = threading.Lock()

    def append(self, query: str, threats: Iterable[ThreatKind]) -> SecurityLogEntry:
        entry = SecurityLogEntry(
            query=query,
            threats=tuple(sorted(threats, key=lambda t: t.order)),
        )
        with self._lock:
            self._entries.append(entry)
        return entry

    def entries(self) -> Tuple[SecurityLogEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def to_list(self) -> List[Dict]:
        return [e.to_dict() for e in self.entries()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SecurityScanner:
    """
    Stateless threat detector over free text.

    All patterns are evaluated, so one question can trigger several
    threat kinds at once.
    """

    def __init__(self, patterns: Tuple[Tuple[re.Pattern, ThreatKind], ...] = THREAT_PATTERNS):
        self.patterns = patterns

    def scan(self, text: str) -> Set[ThreatKind]:
        """
        Scan text against every pattern.

        Args:
            text: Untrusted input

        Returns:
            Set of matched threat kinds (empty when clean)
        """
        return {kind for pattern, kind in self.patterns if pattern.search(text or "")}

    def report(self, text: str) -> ThreatReport:
        return ThreatReport(text=text, threats=frozenset(self.scan(text)))

    def enforce(self, text: str, log: SecurityLog = None) -> None:
        """
        Fail closed on any detected threat.

        The rejected text is appended to `log` before raising.

        Raises:
            SecurityViolation: if any pattern matched
        """
        threats = self.scan(text)
        if not threats:
            return
        if log is not None:
            log.append(text, threats)
        violation = SecurityViolation(text, threats)
        logger.warning(f"Rejected question with threats: {', '.join(violation.labels)}")
        raise violation
