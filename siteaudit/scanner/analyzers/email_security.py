# siteaudit/scanner/analyzers/email_security.py
"""
Email authentication posture analyzer.

Reads the SPF / DMARC / DKIM summary built by the DNS engine for the
mail domain and produces findings for missing or permissive policies.

Checks performed:
    HIGH:
        - SPF ends with +all (any server may send as the domain)
    MEDIUM:
        - No SPF record
        - No DMARC record
        - DMARC policy p=none (monitoring only)
    LOW:
        - DMARC without an aggregate report address (rua)
    INFO:
        - No DKIM record for any common selector (inconclusive)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from siteaudit.scanner.base import AuditContext, BaseAnalyzer
from siteaudit.scanner.models import VulnerabilityFinding

logger = logging.getLogger(__name__)


class EmailSecurityAnalyzer(BaseAnalyzer):

    @property
    def name(self) -> str:
        return "email_security"

    @property
    def required_engines(self) -> List[str]:
        return ["dns"]

    def analyze(self, ctx: AuditContext) -> List[VulnerabilityFinding]:
        dns_data = ctx.get_engine_data("dns")
        email_auth = dns_data.get("email_auth", {})
        domain = dns_data.get("mail_domain") or ctx.target.hostname

        findings: List[VulnerabilityFinding] = []
        findings.extend(self._check_spf(email_auth.get("spf", {}), domain))
        findings.extend(self._check_dmarc(email_auth.get("dmarc", {}), domain))
        findings.extend(self._check_dkim(email_auth.get("dkim", {}), domain))
        return findings

    # -------------------------------------------------------------------
    # SPF
    # -------------------------------------------------------------------

    def _check_spf(self, spf: Dict[str, Any], domain: str) -> List[VulnerabilityFinding]:
        if spf.get("status") != "present":
            return [VulnerabilityFinding(
                id="vuln-no-spf",
                title="SPF record missing",
                severity="medium",
                category="DNS/Email",
                description=(
                    f"No SPF record was found for {domain}. Anyone can send email "
                    f"pretending to come from this domain (phishing)."
                ),
                remediation="Add an SPF TXT record, e.g. v=spf1 include:<provider> -all",
                affected_component="DNS configuration",
            )]

        if spf.get("all_qualifier") == "+":
            return [VulnerabilityFinding(
                id="vuln-spf-plus-all",
                title="SPF record authorizes every sender (+all)",
                severity="high",
                category="DNS/Email",
                description=(
                    f"The SPF record for {domain} ends with +all, which authorizes ANY "
                    f"server to send email as the domain. SPF provides no protection."
                ),
                remediation=f"Replace +all with -all (or ~all). Current record: {spf.get('record', '')}",
                affected_component="DNS configuration",
            )]

        return []

    # -------------------------------------------------------------------
    # DMARC
    # -------------------------------------------------------------------

    def _check_dmarc(self, dmarc: Dict[str, Any], domain: str) -> List[VulnerabilityFinding]:
        if dmarc.get("status") != "present":
            return [VulnerabilityFinding(
                id="vuln-no-dmarc",
                title="DMARC record missing",
                severity="medium",
                category="DNS/Email",
                description=(
                    f"No DMARC record was found at _dmarc.{domain}. Receivers have no "
                    f"policy for mail that fails SPF/DKIM."
                ),
                remediation=f"Add a TXT record at _dmarc.{domain}: v=DMARC1; p=reject; rua=mailto:dmarc@{domain}",
                affected_component="DNS configuration",
            )]

        findings: List[VulnerabilityFinding] = []

        if dmarc.get("policy") in (None, "none"):
            findings.append(VulnerabilityFinding(
                id="vuln-dmarc-none",
                title="DMARC policy is 'none' (monitoring only)",
                severity="medium",
                category="DNS/Email",
                description=(
                    f"The DMARC policy for {domain} is p=none: mail failing authentication "
                    f"is still delivered. This does not prevent spoofing."
                ),
                remediation=(
                    "Once reports confirm legitimate senders pass SPF/DKIM, move to "
                    "p=quarantine then p=reject."
                ),
                affected_component="DNS configuration",
            ))

        if not dmarc.get("rua"):
            findings.append(VulnerabilityFinding(
                id="vuln-dmarc-no-rua",
                title="DMARC record has no report address (rua)",
                severity="low",
                category="DNS/Email",
                description=(
                    f"The DMARC record for {domain} has no rua tag, so no aggregate "
                    f"reports about authentication failures are received."
                ),
                remediation=f"Add rua=mailto:dmarc-reports@{domain} to the DMARC record.",
                affected_component="DNS configuration",
            ))

        return findings

    # -------------------------------------------------------------------
    # DKIM
    # -------------------------------------------------------------------

    def _check_dkim(self, dkim: Dict[str, Any], domain: str) -> List[VulnerabilityFinding]:
        if dkim.get("status") == "present":
            return []

        tried = dkim.get("selectors_tried", 0)
        return [VulnerabilityFinding(
            id="vuln-no-dkim",
            title="No DKIM record detected (inconclusive)",
            severity="info",
            category="DNS/Email",
            description=(
                f"No DKIM record was found for {domain} after trying {tried} common "
                f"selectors. This is inconclusive: the mail provider may sign with a "
                f"non-standard selector."
            ),
            remediation=(
                "Check that the mail provider signs outgoing mail with DKIM and that "
                "its selector record is published."
            ),
            affected_component="DNS configuration",
        )]
