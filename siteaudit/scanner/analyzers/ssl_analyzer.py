# siteaudit/scanner/analyzers/ssl_analyzer.py
"""
SSL/TLS Analyzer.

Reads the certificate and negotiated protocol collected by the SSL engine.

Checks performed:
    CRITICAL:
        - Certificate expired (days until expiry <= 0)
        - Obsolete protocol negotiated by default (TLS 1.0 / 1.1)
    HIGH:
        - Certificate expires within 30 days

Legacy protocols the server merely *accepts* are the TLS downgrade
probe's job; this analyzer only looks at what was negotiated.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from siteaudit.scanner.base import AuditContext, BaseAnalyzer
from siteaudit.scanner.engines.ssl_engine import LEGACY_VERSIONS
from siteaudit.scanner.models import TlsResult, VulnerabilityFinding

logger = logging.getLogger(__name__)

EXPIRY_WARNING_DAYS = 30


class SSLAnalyzer(BaseAnalyzer):

    @property
    def name(self) -> str:
        return "ssl_analyzer"

    @property
    def required_engines(self) -> List[str]:
        return ["ssl"]

    def analyze(self, ctx: AuditContext) -> List[VulnerabilityFinding]:
        tls: Optional[TlsResult] = ctx.get_engine_data("ssl").get("tls")
        if tls is None:
            return []

        findings: List[VulnerabilityFinding] = []

        # --- Certificate lifecycle ---
        if tls.days_until_expiry <= 0:
            findings.append(VulnerabilityFinding(
                id="vuln-tls-expired",
                title="TLS certificate expired",
                severity="critical",
                category="Cryptography",
                description=(
                    f"The certificate expired on {tls.valid_to}. Browsers show a "
                    f"security warning to every visitor."
                ),
                remediation="Renew the TLS certificate immediately.",
                affected_component="TLS certificate",
                cvss=9.0,
            ))
        elif tls.days_until_expiry <= EXPIRY_WARNING_DAYS:
            findings.append(VulnerabilityFinding(
                id="vuln-tls-expiring",
                title=f"TLS certificate expires in {tls.days_until_expiry} days",
                severity="high",
                category="Cryptography",
                description=f"The certificate expires on {tls.valid_to}. Renewal is urgent.",
                remediation="Renew the certificate before it expires and automate renewal (ACME).",
                affected_component="TLS certificate",
            ))

        # --- Negotiated protocol ---
        if tls.version in LEGACY_VERSIONS:
            findings.append(VulnerabilityFinding(
                id="vuln-tls-old",
                title=f"Obsolete TLS version: {tls.version}",
                severity="critical",
                category="Cryptography",
                description=(
                    f"{tls.version} is deprecated and vulnerable (POODLE, BEAST). "
                    f"Modern browsers refuse it."
                ),
                remediation="Configure the server for TLS 1.2 minimum, ideally TLS 1.3.",
                affected_component="TLS configuration",
                cvss=9.1,
                cve="CVE-2014-3566",
            ))

        logger.info(
            f"SSLAnalyzer: {ctx.target.hostname} {tls.version} grade={tls.grade} "
            f"expires_in={tls.days_until_expiry}d"
        )
        return findings
