# siteaudit/scanner/probes/tls_downgrade.py
"""
TLS downgrade probe.

Explicitly negotiates TLS 1.0 and TLS 1.1 with a context pinned to that one
version. Completing the handshake is itself the finding: the server still
accepts a protocol an active attacker can force clients down to.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from siteaudit.scanner.base import AuditContext, BaseProbe
from siteaudit.scanner.engines.ssl_engine import LEGACY_VERSIONS, probe_protocol
from siteaudit.scanner.models import VulnerabilityFinding

logger = logging.getLogger(__name__)

# version → (severity, cvss, cve)
LEGACY_RISK = {
    "TLSv1": ("high", 7.4, "CVE-2011-3389"),
    "TLSv1.1": ("medium", 5.9, None),
}


class TLSDowngradeProbe(BaseProbe):

    @property
    def name(self) -> str:
        return "tls_downgrade"

    @property
    def required_engines(self) -> List[str]:
        return ["ssl"]

    async def probe(self, ctx: AuditContext, config: Dict[str, Any]) -> List[VulnerabilityFinding]:
        host = ctx.target.hostname
        port = int(config.get("port", 443))
        timeout = float(config.get("timeout", 8))

        versions = list(LEGACY_VERSIONS)
        accepted = await asyncio.gather(*(probe_protocol(host, port, v, timeout) for v in versions))

        findings: List[VulnerabilityFinding] = []
        for version, ok in zip(versions, accepted):
            if not ok:
                continue
            severity, cvss, cve = LEGACY_RISK[version]
            slug = version.lower().replace(".", "-")
            findings.append(VulnerabilityFinding(
                id=f"vuln-tls-downgrade-{slug}",
                title=f"Server accepts obsolete protocol {version}",
                severity=severity,
                category="Cryptography",
                description=(
                    f"{host}:{port} completed a handshake pinned to {version}. An active "
                    f"attacker can downgrade clients to this deprecated protocol (RFC 8996)."
                ),
                remediation="Disable TLS 1.0 and 1.1. Allow only TLS 1.2 and TLS 1.3.",
                affected_component=f"TLS {host}:{port}",
                cvss=cvss,
                cve=cve,
            ))

        logger.info(f"TLSDowngradeProbe: {host}:{port} legacy accepted={[v for v, ok in zip(versions, accepted) if ok]}")
        return findings
