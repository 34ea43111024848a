# siteaudit/scanner/analyzers/cookie_analyzer.py
"""
Cookie security analyzer.

Parses every Set-Cookie header of the initial response into a CookieCheck
and raises one medium finding per cookie missing Secure, HttpOnly or a
restrictive SameSite attribute.
"""

from __future__ import annotations

import logging
from typing import List

from siteaudit.scanner.base import AuditContext, BaseAnalyzer
from siteaudit.scanner.models import CookieCheck, VulnerabilityFinding

logger = logging.getLogger(__name__)

ISSUE_NO_SECURE = "Secure attribute missing: cookie is sent in clear over HTTP"
ISSUE_NO_HTTPONLY = "HttpOnly attribute missing: cookie is readable from JavaScript (XSS risk)"
ISSUE_SAMESITE = "SameSite missing or None: cookie is sent on cross-site requests (CSRF risk)"


def parse_cookie(raw: str) -> CookieCheck:
    parts = [p.strip() for p in raw.split(";")]
    name = parts[0].split("=", 1)[0].strip()
    flags = [p.lower() for p in parts[1:]]

    secure = "secure" in flags
    http_only = "httponly" in flags
    same_site = None
    path = "/"
    domain = ""
    for flag in flags:
        key, _, value = flag.partition("=")
        key = key.strip()
        if key == "samesite":
            same_site = value.strip()
        elif key == "path":
            path = value.strip()
        elif key == "domain":
            domain = value.strip()

    issues: List[str] = []
    if not secure:
        issues.append(ISSUE_NO_SECURE)
    if not http_only:
        issues.append(ISSUE_NO_HTTPONLY)
    if not same_site or same_site == "none":
        issues.append(ISSUE_SAMESITE)

    return CookieCheck(
        name=name,
        secure=secure,
        http_only=http_only,
        same_site=same_site,
        path=path,
        domain=domain,
        issues=issues,
    )


def parse_cookies(set_cookie_headers: List[str]) -> List[CookieCheck]:
    return [parse_cookie(raw) for raw in set_cookie_headers if raw and raw.strip()]


class CookieAnalyzer(BaseAnalyzer):

    @property
    def name(self) -> str:
        return "cookie_analyzer"

    @property
    def required_engines(self) -> List[str]:
        return ["http"]

    def analyze(self, ctx: AuditContext) -> List[VulnerabilityFinding]:
        findings: List[VulnerabilityFinding] = []

        for cookie in parse_cookies(ctx.set_cookies):
            if not cookie.issues:
                continue
            findings.append(VulnerabilityFinding(
                id=f"vuln-cookie-{cookie.name}",
                title=f"Insecure cookie \"{cookie.name}\"",
                severity="medium",
                category="Cookies",
                description=". ".join(cookie.issues),
                remediation="Set the cookie with Secure; HttpOnly; SameSite=Strict (or Lax where needed).",
                affected_component="Session management",
            ))

        return findings
