# siteaudit/scanner/analyzers/port_risk.py
"""
Port Risk Analyzer.

Reads the open ports found by the port engine and flags the ones that
should not be reachable from the internet.

Classification logic:
    - Only ports whose reference risk tier is critical or high become findings.
    - 80 and 443 are the site itself and never count.
    - When the target is behind Cloudflare, the proxy's standard ports answer
      on its edge, not on the origin server. They are excluded from the
      findings and listed once in an info finding instead.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from siteaudit.scanner.base import AuditContext, BaseAnalyzer
from siteaudit.scanner.models import PortResult, VulnerabilityFinding

logger = logging.getLogger(__name__)

WEB_PORTS = {80, 443}

CLOUDFLARE_PORTS = {80, 443, 2052, 2053, 2082, 2083, 2086, 2087, 2095, 2096, 8080, 8443}

# Why a service should stay private. Ports without an entry get a generic line.
PORT_RISK_NOTES: Dict[int, str] = {
    21: "FTP sends credentials in clear text and is a common brute-force target.",
    23: "Telnet sends everything, credentials included, in clear text.",
    110: "POP3 without TLS exposes mailbox credentials.",
    143: "IMAP without TLS exposes mailbox credentials.",
    445: "SMB is the entry point of wormable exploits (EternalBlue, WannaCry).",
    1433: "A database listener reachable from the internet invites credential attacks and data theft.",
    3306: "A database listener reachable from the internet invites credential attacks and data theft.",
    3389: "RDP is a top brute-force and ransomware target (BlueKeep, DejaBlue).",
    5432: "A database listener reachable from the internet invites credential attacks and data theft.",
    5900: "VNC often runs with weak or no authentication.",
    6379: "Redis has no authentication by default and allows remote code execution when exposed.",
    27017: "MongoDB instances exposed without authentication are routinely wiped and ransomed.",
}


class PortRiskAnalyzer(BaseAnalyzer):

    @property
    def name(self) -> str:
        return "port_risk"

    @property
    def required_engines(self) -> List[str]:
        return ["ports"]

    def analyze(self, ctx: AuditContext) -> List[VulnerabilityFinding]:
        findings: List[VulnerabilityFinding] = []
        open_ports: List[PortResult] = ctx.get_engine_data("ports").get("open_ports", [])
        proxied = ctx.proxied

        for p in open_ports:
            if p.port in WEB_PORTS:
                continue
            if proxied and p.port in CLOUDFLARE_PORTS:
                continue
            if p.risk not in ("critical", "high"):
                continue
            findings.append(self._exposed_port_finding(p))

        if proxied:
            cdn_ports = [p.port for p in open_ports if p.port in CLOUDFLARE_PORTS and p.port not in WEB_PORTS]
            if cdn_ports:
                listed = ", ".join(str(n) for n in cdn_ports)
                findings.append(VulnerabilityFinding(
                    id="vuln-cloudflare-ports",
                    title=f"Cloudflare proxy ports detected ({listed})",
                    severity="info",
                    category="Infrastructure",
                    description=(
                        f"The site is behind Cloudflare. Ports {listed} are standard "
                        f"Cloudflare proxy ports, not ports of your origin server."
                    ),
                    remediation="No action required; these ports are managed by the Cloudflare CDN.",
                    affected_component="Cloudflare CDN",
                ))

        logger.info(
            f"PortRiskAnalyzer: {ctx.target.hostname} {len(open_ports)} open, "
            f"{len(findings)} finding(s), proxied={proxied}"
        )
        return findings

    def _exposed_port_finding(self, p: PortResult) -> VulnerabilityFinding:
        note = PORT_RISK_NOTES.get(p.port, f"{p.service} should not be exposed publicly.")
        banner = f" Banner: {p.banner}." if p.banner else ""
        return VulnerabilityFinding(
            id=f"vuln-port-{p.port}",
            title=f"Port {p.port} ({p.service}) open to the internet",
            severity="critical" if p.risk == "critical" else "high",
            category="Infrastructure",
            description=f"Port {p.port} ({p.service}) accepts connections from the internet.{banner} {note}",
            remediation=(
                f"Close port {p.port} at the firewall. If the service is needed, "
                f"restrict it by source IP or put it behind a VPN."
            ),
            affected_component=f"Service {p.service}",
            cvss=8.5,
        )
