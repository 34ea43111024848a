# siteaudit/scanner/rules.py
"""
Declarative detection rules.

Every regex heuristic used by the probes lives in one of the tables below as
a (pattern, label, severity) rule. One generic matcher consumes them, so a
new secret format or error banner is a one-line table change.

Tables:
    DISCLOSURE_RULES   — secrets / sensitive content in the served page
    SECRET_RULES       — secrets inside leaked files (redacted + counted)
    SQL_ERROR_RULES    — database error banners
    TRAVERSAL_RULES    — system file contents
    SSRF_RULES         — cloud metadata service markers
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Pattern


@dataclass(frozen=True)
class Rule:
    id: str
    pattern: Pattern[str]
    label: str
    severity: str


def _rule(rule_id: str, pattern: str, label: str, severity: str, flags: int = re.IGNORECASE) -> Rule:
    return Rule(id=rule_id, pattern=re.compile(pattern, flags), label=label, severity=severity)


def match_rules(text: str, rules: Iterable[Rule]) -> List[Rule]:
    """Rules whose pattern occurs at least once in text, in table order."""
    if not text:
        return []
    return [r for r in rules if r.pattern.search(text)]


def count_matches(text: str, rules: Iterable[Rule]) -> Dict[str, int]:
    """Occurrences per rule id. Rules with zero hits are omitted."""
    counts: Counter = Counter()
    if not text:
        return {}
    for r in rules:
        n = sum(1 for _ in r.pattern.finditer(text))
        if n:
            counts[r.id] += n
    return dict(counts)


# ---------------------------------------------------------------------------
# Page content disclosure
# ---------------------------------------------------------------------------

DISCLOSURE_RULES: List[Rule] = [
    _rule("api-key", r"(?:api[_-]?key|apikey)\s*[:=]\s*[\"']?[a-zA-Z0-9_-]{20,}",
          "Exposed API key", "critical"),
    _rule("hardcoded-password", r"(?:password|passwd|pwd)\s*[:=]\s*[\"'][^\"']+[\"']",
          "Hard-coded password in page source", "critical"),
    _rule("secret-key", r"(?:secret[_-]?key|private[_-]?key)\s*[:=]\s*[\"']?[a-zA-Z0-9_/+=]{20,}",
          "Exposed secret key", "critical"),
    _rule("sensitive-comment", r"<!--[\s\S]*?(?:TODO|FIXME|HACK|BUG|password|secret)[\s\S]*?-->",
          "Sensitive HTML comment", "medium"),
    _rule("db-connection-string", r"(?:mysql|postgres(?:ql)?|mongodb(?:\+srv)?)://[^\s\"'<]+",
          "Exposed database connection string", "critical"),
    _rule("aws-access-key", r"\bAKIA[0-9A-Z]{16}\b", "AWS access key ID in page source", "critical",
          flags=0),
    _rule("private-key-block", r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----",
          "Private key in page source", "critical"),
]

# <script type="application/ld+json"> and inline JSON state are legitimate
# SEO / hydration payloads and routinely contain key-like strings.
STRUCTURED_DATA_RE = re.compile(
    r"<script[^>]*type\s*=\s*[\"']application/(?:ld\+)?json[\"'][^>]*>[\s\S]*?</script>",
    re.IGNORECASE,
)


def strip_structured_data(html: str) -> str:
    return STRUCTURED_DATA_RE.sub("", html or "")


# ---------------------------------------------------------------------------
# Secrets inside leaked files
# ---------------------------------------------------------------------------
# Rules with a named group "secret" get only that group redacted; the rest
# of the match (the key name) stays readable.

SECRET_RULES: List[Rule] = [
    _rule("aws-access-key", r"\b(?P<secret>AKIA[0-9A-Z]{16})\b", "AWS access key ID", "critical", flags=0),
    _rule("private-key", r"-----BEGIN (?:RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY(?: BLOCK)?-----",
          "Private key", "critical"),
    _rule("credential-assignment",
          r"(?:password|passwd|pwd|secret|token|api[_-]?key|access[_-]?key|auth)[A-Z0-9_]*\s*[:=]\s*[\"']?(?P<secret>[^\s\"'#]{6,})",
          "Credential assignment", "critical"),
    _rule("connection-string-credentials",
          r"(?:mysql|postgres(?:ql)?|mongodb(?:\+srv)?|redis|amqp)://[^:\s/]+:(?P<secret>[^@\s]+)@",
          "Connection string with credentials", "critical"),
    _rule("stripe-live-key", r"\b(?P<secret>sk_live_[0-9a-zA-Z]{16,})", "Stripe live secret key", "critical",
          flags=0),
    _rule("github-token", r"\b(?P<secret>gh[pousr]_[A-Za-z0-9]{36,})", "GitHub token", "critical", flags=0),
    _rule("slack-token", r"\b(?P<secret>xox[baprs]-[0-9A-Za-z-]{10,})", "Slack token", "high", flags=0),
    _rule("google-api-key", r"\b(?P<secret>AIza[0-9A-Za-z_-]{35})", "Google API key", "high", flags=0),
    _rule("jwt", r"\b(?P<secret>eyJ[a-zA-Z0-9_-]{8,}\.eyJ[a-zA-Z0-9_-]{8,}\.[a-zA-Z0-9_-]+)", "JSON Web Token",
          "high", flags=0),
]


def _mask(value: str) -> str:
    keep = value[:4] if len(value) > 8 else ""
    return f"{keep}{'*' * 8}"


def redact_secrets(text: str, rules: Iterable[Rule] = SECRET_RULES) -> str:
    """Mask every secret substring matched by the rules."""
    if not text:
        return text

    def _sub(m: "re.Match[str]") -> str:
        if "secret" in m.re.groupindex and m.group("secret"):
            start, end = m.span("secret")
            base = m.start()
            whole = m.group(0)
            return whole[: start - base] + _mask(m.group("secret")) + whole[end - base:]
        return _mask(m.group(0))

    for r in rules:
        text = r.pattern.sub(_sub, text)
    return text


# ---------------------------------------------------------------------------
# Injection response signatures
# ---------------------------------------------------------------------------

SQL_ERROR_RULES: List[Rule] = [
    _rule("mysql", r"you have an error in your sql syntax|warning: mysql|mysqli?_(?:fetch|query|num_rows)",
          "MySQL error", "critical"),
    _rule("postgresql", r"pg_(?:query|exec)\(|PSQLException|ERROR:\s+syntax error at or near|unterminated quoted string",
          "PostgreSQL error", "critical"),
    _rule("mssql", r"Unclosed quotation mark|Microsoft OLE DB Provider for SQL Server|SQLServer JDBC|Incorrect syntax near",
          "Microsoft SQL Server error", "critical"),
    _rule("oracle", r"\bORA-\d{5}\b|quoted string not properly terminated|SQL command not properly ended",
          "Oracle error", "critical"),
    _rule("sqlite", r"SQLite3::|SQLITE_ERROR|sqlite3\.OperationalError|unrecognized token:",
          "SQLite error", "critical"),
]

TRAVERSAL_RULES: List[Rule] = [
    _rule("etc-passwd", r"root:[x*]?:0:0:", "/etc/passwd contents", "critical", flags=0),
    _rule("win-ini", r"\[(?:fonts|extensions|boot loader)\]", "Windows system file contents", "critical"),
]

SSRF_RULES: List[Rule] = [
    _rule("aws-metadata", r"\bami-id\b|\binstance-id\b|iam/security-credentials", "AWS metadata service response",
          "critical"),
    _rule("gcp-metadata", r"computeMetadata|\"project-id\"", "GCP metadata service response", "critical"),
    _rule("azure-metadata", r"\"azEnvironment\"|\"vmId\"", "Azure metadata service response", "critical"),
]
