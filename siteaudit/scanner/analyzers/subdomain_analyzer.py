# siteaudit/scanner/analyzers/subdomain_analyzer.py
"""
Subdomain exposure analyzer.

Reads the certificate-transparency enumeration and flags pre-production or
internal hosts (dev, staging, admin...) that answer from the internet.
"""

from __future__ import annotations

import logging
from typing import List

from siteaudit.scanner.base import AuditContext, BaseAnalyzer
from siteaudit.scanner.models import VulnerabilityFinding

logger = logging.getLogger(__name__)

MAX_LISTED_HOSTS = 10


class SubdomainAnalyzer(BaseAnalyzer):

    @property
    def name(self) -> str:
        return "subdomain_analyzer"

    @property
    def required_engines(self) -> List[str]:
        return ["subdomains"]

    def analyze(self, ctx: AuditContext) -> List[VulnerabilityFinding]:
        data = ctx.get_engine_data("subdomains")
        live = data.get("live_suspicious", [])
        if not live:
            return []

        apex = data.get("apex", ctx.target.root_domain)
        listed = ", ".join(f"{h['host']} ({h['status']})" for h in live[:MAX_LISTED_HOSTS])
        return [VulnerabilityFinding(
            id="vuln-preprod-subdomains",
            title=f"{len(live)} pre-production/internal subdomain(s) reachable",
            severity="medium",
            category="Infrastructure",
            description=(
                f"Certificate-transparency logs list subdomains of {apex} whose names "
                f"suggest development, staging or internal use, and they answer from "
                f"the internet: {listed}. Such hosts are often less hardened than production."
            ),
            remediation=(
                "Restrict non-production hosts to a VPN or an IP allow-list, require "
                "authentication, or take them offline."
            ),
            affected_component=f"Subdomains of {apex}",
        )]
