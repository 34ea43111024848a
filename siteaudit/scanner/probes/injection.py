# siteaudit/scanner/probes/injection.py
"""
Injection probes: SQL injection, path traversal, SSRF, open redirect.

Each check is a (parameter, payload) pair sent as a query string on the
final URL. Success is a literal signature:
    sqli       — a database error banner in the response (rules.SQL_ERROR_RULES)
    traversal  — system file contents (rules.TRAVERSAL_RULES)
    ssrf       — cloud metadata markers echoed back (rules.SSRF_RULES)
    redirect   — a Location header pointing at one of our decoy hosts

A signature that the unmodified page already contains is ignored. At most
one finding is reported per (kind, parameter).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit

import httpx

from siteaudit.scanner.base import AuditContext, BaseProbe
from siteaudit.scanner.http import gather_in_batches, response_text, safe_request
from siteaudit.scanner.models import VulnerabilityFinding
from siteaudit.scanner.rules import SQL_ERROR_RULES, SSRF_RULES, TRAVERSAL_RULES, Rule, match_rules

logger = logging.getLogger(__name__)

DECOY_HOSTS = ("example.org", "www.example.org")


@dataclass(frozen=True)
class InjectionCase:
    kind: str
    param: str
    payload: str


def _cases(kind: str, params: List[str], payloads: List[str]) -> List[InjectionCase]:
    return [InjectionCase(kind, p, v) for p in params for v in payloads]


INJECTION_CASES: List[InjectionCase] = (
    _cases("sqli", ["id", "q", "search", "page", "category"], ["'", "1' OR '1'='1", "1\""])
    + _cases("traversal", ["file", "path", "page", "include", "doc"], [
        "../../../../../../etc/passwd",
        "..%2f..%2f..%2f..%2f..%2f..%2fetc%2fpasswd",
        "..\\..\\..\\..\\..\\..\\windows\\win.ini",
    ])
    + _cases("ssrf", ["url", "uri", "target", "feed", "image_url", "proxy"], [
        "http://169.254.169.254/latest/meta-data/",
        "http://metadata.google.internal/computeMetadata/v1/?recursive=true",
    ])
    + _cases("redirect", ["next", "url", "redirect", "redirect_uri", "return", "returnTo", "continue", "dest"], [
        "https://example.org/",
        "//example.org/",
    ])
)

SIGNATURES: Dict[str, List[Rule]] = {
    "sqli": SQL_ERROR_RULES,
    "traversal": TRAVERSAL_RULES,
    "ssrf": SSRF_RULES,
}


def is_foreign_redirect(location: str, base_url: str, origin_host: str) -> bool:
    """Location resolves off-site AND onto one of the decoy hosts we injected."""
    host = (urlsplit(urljoin(base_url, location)).hostname or "").lower()
    if not host:
        return False
    if host == origin_host or host.endswith(f".{origin_host}"):
        return False
    return host in DECOY_HOSTS


def _finding(case: InjectionCase, detail: str) -> VulnerabilityFinding:
    if case.kind == "sqli":
        return VulnerabilityFinding(
            id=f"vuln-sqli-{case.param}",
            title=f"SQL injection indicator on parameter '{case.param}'",
            severity="critical",
            category="Injection",
            description=(
                f"Sending {case.payload!r} in '{case.param}' produced a database error "
                f"({detail}). User input reaches an SQL query unescaped."
            ),
            remediation="Use parameterized queries / prepared statements and hide database errors from responses.",
            affected_component="URL parameters",
            cvss=9.8,
        )
    if case.kind == "traversal":
        return VulnerabilityFinding(
            id=f"vuln-path-traversal-{case.param}",
            title=f"Path traversal on parameter '{case.param}'",
            severity="critical",
            category="Injection",
            description=(
                f"A traversal sequence in '{case.param}' returned {detail}. Arbitrary "
                f"files on the server can be read."
            ),
            remediation="Never build file paths from user input. Resolve against an allow-list of files.",
            affected_component="URL parameters",
            cvss=8.6,
        )
    if case.kind == "ssrf":
        return VulnerabilityFinding(
            id=f"vuln-ssrf-{case.param}",
            title=f"Server-side request forgery on parameter '{case.param}'",
            severity="critical",
            category="Injection",
            description=(
                f"A cloud metadata URL in '{case.param}' returned a {detail}. The server "
                f"fetches attacker-chosen URLs, exposing internal services and credentials."
            ),
            remediation=(
                "Validate outbound URLs against an allow-list, block link-local and "
                "private ranges, and require IMDSv2 on cloud instances."
            ),
            affected_component="URL parameters",
            cvss=9.1,
        )
    return VulnerabilityFinding(
        id=f"vuln-open-redirect-{case.param}",
        title=f"Open redirect on parameter '{case.param}'",
        severity="medium",
        category="Injection",
        description=(
            f"'{case.param}' redirects visitors to an arbitrary external site "
            f"({detail}). This is used in phishing to borrow the site's reputation."
        ),
        remediation="Only redirect to relative paths or to an allow-list of trusted hosts.",
        affected_component="URL parameters",
        cvss=6.1,
    )


class InjectionProbe(BaseProbe):

    @property
    def name(self) -> str:
        return "injection"

    async def probe(self, ctx: AuditContext, config: Dict[str, Any]) -> List[VulnerabilityFinding]:
        timeout = float(config.get("timeout", 8))
        batch_size = int(config.get("batch_size", 5))
        base_url = ctx.final_url
        origin_host = ctx.target.hostname
        baseline_body = ctx.body

        # Signatures already present on the untouched page prove nothing
        preexisting = {
            kind: {r.id for r in match_rules(baseline_body, rules)}
            for kind, rules in SIGNATURES.items()
        }

        async def run(case: InjectionCase) -> Optional[Tuple[InjectionCase, str]]:
            url = httpx.URL(base_url).copy_merge_params({case.param: case.payload})
            resp = await safe_request(ctx.client, "GET", str(url), timeout=timeout)
            if resp is None:
                return None

            if case.kind == "redirect":
                location = resp.headers.get("location", "")
                if resp.is_redirect and is_foreign_redirect(location, base_url, origin_host):
                    return case, f"Location: {location}"
                return None

            body = response_text(resp)
            for rule in match_rules(body, SIGNATURES[case.kind]):
                if rule.id not in preexisting[case.kind]:
                    return case, rule.label
            return None

        outcomes = await gather_in_batches(INJECTION_CASES, run, batch_size)

        findings: List[VulnerabilityFinding] = []
        seen = set()
        for outcome in outcomes:
            if outcome is None:
                continue
            case, detail = outcome
            key = (case.kind, case.param)
            if key in seen:
                continue
            seen.add(key)
            findings.append(_finding(case, detail))

        logger.info(f"InjectionProbe: {len(INJECTION_CASES)} cases on {base_url}, {len(findings)} finding(s)")
        return findings
