# siteaudit/scanner/analyzers/header_analyzer.py
"""
HTTP Security Header Analyzer.

Reads the response headers of the initial fetch and produces:
    - one HeaderCheck per recommended security header (the report's
      "headers" section; missing headers also cost score points by weight)
    - Server header disclosure (info behind a CDN/platform, low otherwise)
    - X-Powered-By disclosure (low)

Checks performed (weight = score penalty before the per-header cap):
    Content-Security-Policy            15
    Strict-Transport-Security          15
    X-Frame-Options                    10
    X-Content-Type-Options              5
    Referrer-Policy                     3
    Permissions-Policy                  3
    Cross-Origin-Opener-Policy          3
    Cross-Origin-Resource-Policy        3
    Cross-Origin-Embedder-Policy        2
    X-Permitted-Cross-Domain-Policies   2
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from siteaudit.scanner.base import AuditContext, BaseAnalyzer
from siteaudit.scanner.models import HeaderCheck, VulnerabilityFinding

logger = logging.getLogger(__name__)


# Ordered as they appear in the report.
SECURITY_HEADERS = {
    "content-security-policy": {
        "label": "Content-Security-Policy",
        "weight": 15,
        "recommendation": "Define a strict CSP to block XSS and content injection.",
    },
    "x-frame-options": {
        "label": "X-Frame-Options",
        "weight": 10,
        "recommendation": "Add X-Frame-Options: DENY or SAMEORIGIN to prevent clickjacking.",
    },
    "x-content-type-options": {
        "label": "X-Content-Type-Options",
        "weight": 5,
        "recommendation": "Add X-Content-Type-Options: nosniff to prevent MIME sniffing.",
    },
    "strict-transport-security": {
        "label": "Strict-Transport-Security",
        "weight": 15,
        "recommendation": "Enable HSTS: max-age=31536000; includeSubDomains; preload",
    },
    "referrer-policy": {
        "label": "Referrer-Policy",
        "weight": 3,
        "recommendation": "Set Referrer-Policy: strict-origin-when-cross-origin",
    },
    "permissions-policy": {
        "label": "Permissions-Policy",
        "weight": 3,
        "recommendation": "Restrict browser APIs: camera=(), microphone=(), geolocation=()",
    },
    "cross-origin-opener-policy": {
        "label": "Cross-Origin-Opener-Policy",
        "weight": 3,
        "recommendation": "Add Cross-Origin-Opener-Policy: same-origin",
    },
    "cross-origin-resource-policy": {
        "label": "Cross-Origin-Resource-Policy",
        "weight": 3,
        "recommendation": "Add Cross-Origin-Resource-Policy: same-origin",
    },
    "cross-origin-embedder-policy": {
        "label": "Cross-Origin-Embedder-Policy",
        "weight": 2,
        "recommendation": "Add Cross-Origin-Embedder-Policy: require-corp",
    },
    "x-permitted-cross-domain-policies": {
        "label": "X-Permitted-Cross-Domain-Policies",
        "weight": 2,
        "recommendation": "Add X-Permitted-Cross-Domain-Policies: none",
    },
}

# Server values that belong to a CDN or hosting platform, not to the site.
CDN_SERVER_RE = re.compile(r"cloudflare|fastly|akamai|cloudfront|vercel|netlify", re.IGNORECASE)


def check_headers(headers: Dict[str, str]) -> List[HeaderCheck]:
    """One HeaderCheck per recommended header. `headers` has lower-cased names."""
    checks: List[HeaderCheck] = []
    for name, spec in SECURITY_HEADERS.items():
        value = headers.get(name)
        present = value is not None
        checks.append(HeaderCheck(
            name=spec["label"],
            present=present,
            value=value if present else None,
            recommendation=None if present else spec["recommendation"],
            weight=spec["weight"],
        ))
    return checks


class HeaderAnalyzer(BaseAnalyzer):
    """
    Header disclosure findings. Missing security headers are not findings:
    they are reported as HeaderChecks and weighed by the score aggregator.
    """

    @property
    def name(self) -> str:
        return "header_analyzer"

    @property
    def required_engines(self) -> List[str]:
        return ["http"]

    def analyze(self, ctx: AuditContext) -> List[VulnerabilityFinding]:
        findings: List[VulnerabilityFinding] = []
        headers = ctx.headers

        server_finding = self._check_server_header(headers)
        if server_finding:
            findings.append(server_finding)

        powered_finding = self._check_powered_by(headers)
        if powered_finding:
            findings.append(powered_finding)

        return findings

    def _check_server_header(self, headers: Dict[str, str]) -> Optional[VulnerabilityFinding]:
        server = headers.get("server", "")
        if not server:
            return None

        if CDN_SERVER_RE.search(server):
            return VulnerabilityFinding(
                id="vuln-server-header",
                title=f"Server header exposed: {server}",
                severity="info",
                category="Information Disclosure",
                description=(
                    f"The Server header reads '{server}', which identifies the CDN or "
                    f"hosting platform. It usually cannot be changed on that platform."
                ),
                remediation="No action required; the header is set by the CDN/platform.",
                affected_component="HTTP server",
            )

        return VulnerabilityFinding(
            id="vuln-server-header",
            title=f"Server header exposed: {server}",
            severity="low",
            category="Information Disclosure",
            description=(
                f"The Server header reveals '{server}'. This helps attackers match the "
                f"server software against known exploits."
            ),
            remediation=(
                "Hide the version: ServerTokens Prod (Apache) or server_tokens off (nginx)."
            ),
            affected_component="HTTP server",
        )

    def _check_powered_by(self, headers: Dict[str, str]) -> Optional[VulnerabilityFinding]:
        powered_by = headers.get("x-powered-by", "")
        if not powered_by:
            return None

        return VulnerabilityFinding(
            id="vuln-powered-by",
            title=f"Technology exposed by X-Powered-By: {powered_by}",
            severity="low",
            category="Information Disclosure",
            description=(
                f"The X-Powered-By header reveals '{powered_by}', giving attackers the "
                f"application stack to look up version-specific vulnerabilities."
            ),
            remediation=(
                "Remove the X-Powered-By header. PHP: expose_php = Off. "
                "Express: app.disable('x-powered-by'). Or strip it at the reverse proxy."
            ),
            affected_component="Application stack",
        )
