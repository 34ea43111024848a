# siteaudit/scanner/probes/disclosure.py
"""
Page content disclosure probe.

Runs DISCLOSURE_RULES over the served page with structured-data blocks
(JSON-LD, hydration state) removed first, then checks for a directory
listing and for insecure subresources on an HTTPS page.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List

from siteaudit.scanner.base import AuditContext, BaseProbe
from siteaudit.scanner.models import VulnerabilityFinding
from siteaudit.scanner.rules import DISCLOSURE_RULES, match_rules, strip_structured_data

MIXED_CONTENT_RE = re.compile(r"(?:src|href|action)\s*=\s*[\"']http://", re.IGNORECASE)


class DisclosureProbe(BaseProbe):

    @property
    def name(self) -> str:
        return "disclosure"

    async def probe(self, ctx: AuditContext, config: Dict[str, Any]) -> List[VulnerabilityFinding]:
        body = ctx.body
        findings: List[VulnerabilityFinding] = []

        for rule in match_rules(strip_structured_data(body), DISCLOSURE_RULES):
            findings.append(VulnerabilityFinding(
                id=f"vuln-disclosure-{rule.id}",
                title=rule.label,
                severity=rule.severity,
                category="Information Disclosure",
                description=(
                    "A sensitive pattern was found in the page's HTML source "
                    "(outside JSON-LD / structured data)."
                ),
                remediation=(
                    "Remove sensitive values from client-side code. Keep secrets in "
                    "server-side environment variables."
                ),
                affected_component="HTML source",
            ))

        if "Index of /" in body or "Directory listing for" in body:
            findings.append(VulnerabilityFinding(
                id="vuln-dir-listing",
                title="Directory listing enabled",
                severity="medium",
                category="Configuration",
                description="The server lists directory contents. An attacker can browse for sensitive files.",
                remediation="Disable directory listing: Options -Indexes (Apache) or autoindex off (Nginx).",
                affected_component="Server configuration",
            ))

        if ctx.final_url.startswith("https://"):
            insecure = MIXED_CONTENT_RE.findall(body)
            if insecure:
                findings.append(VulnerabilityFinding(
                    id="vuln-mixed-content",
                    title=f"Mixed content detected ({len(insecure)} HTTP resource(s))",
                    severity="medium",
                    category="Transport",
                    description=(
                        "Resources are loaded over unencrypted HTTP on an HTTPS page, "
                        "exposing data in transit."
                    ),
                    remediation="Serve every resource over HTTPS. Add upgrade-insecure-requests to the CSP.",
                    affected_component="External resources",
                ))

        return findings
