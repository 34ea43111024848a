# siteaudit/scanner/models.py
"""
Report entities.

Everything here is created fresh for one audit and discarded afterwards.
Components build these once; only the orchestrator's final merge step
reorders them. to_dict() renders the camelCase JSON shape the dashboard
consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from siteaudit.utils.scoring import SEVERITY_ORDER


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass
class HeaderCheck:
    name: str
    present: bool
    value: Optional[str] = None
    recommendation: Optional[str] = None
    weight: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "name": self.name,
            "present": self.present,
            "value": self.value,
            "recommendation": self.recommendation,
        })


@dataclass
class PortResult:
    port: int
    service: str
    state: str                          # open, closed, filtered
    risk: str                           # critical, high, medium, low, info
    banner: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "port": self.port,
            "service": self.service,
            "state": self.state,
            "banner": self.banner,
            "risk": self.risk,
        })


@dataclass
class TlsResult:
    version: str
    cipher: str
    cipher_bits: int
    valid_from: str
    valid_to: str
    issuer: str
    subject: str
    days_until_expiry: int
    grade: str
    alt_names: List[str] = field(default_factory=list)
    serial_number: str = "N/A"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "cipher": self.cipher,
            "cipherBits": self.cipher_bits,
            "validFrom": self.valid_from,
            "validTo": self.valid_to,
            "issuer": self.issuer,
            "subject": self.subject,
            "daysUntilExpiry": self.days_until_expiry,
            "grade": self.grade,
            "altNames": list(self.alt_names),
            "serialNumber": self.serial_number,
        }


@dataclass
class DnsRecord:
    type: str                           # A, AAAA, MX, NS, TXT, CNAME, SOA, SPF, DMARC, DKIM
    value: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "value": self.value}


@dataclass
class CookieCheck:
    name: str
    secure: bool
    http_only: bool
    same_site: Optional[str]
    path: str = "/"
    domain: str = ""
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "secure": self.secure,
            "httpOnly": self.http_only,
            "sameSite": self.same_site,
            "path": self.path,
            "domain": self.domain,
            "issues": list(self.issues),
        }


@dataclass
class VulnerabilityFinding:
    """
    One finding from a probe or analyzer.

    `id` is derived only from the probe and what it observed (port number,
    cookie name, path...), never from time or randomness, so two runs that
    observe the same thing produce the same id and can be deduplicated.
    """
    id: str
    title: str
    severity: str
    category: str
    description: str
    remediation: str
    affected_component: str
    cvss: Optional[float] = None
    cve: Optional[str] = None

    # Source tracking, not rendered
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "title": self.title,
            "severity": self.severity,
            "category": self.category,
            "description": self.description,
            "remediation": self.remediation,
            "affectedComponent": self.affected_component,
            "cvss": self.cvss,
            "cve": self.cve,
        })


@dataclass
class ComplianceCheck:
    name: str
    passed: bool
    details: str
    category: str
    signals: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "passed": self.passed,
            "details": self.details,
            "category": self.category,
        }
        if self.signals:
            d["signals"] = list(self.signals)
        return d


@dataclass
class SourceLeakFinding:
    id: str
    leak_type: str
    url: str
    severity: str
    title: str
    description: str
    remediation: str
    excerpt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "type": self.leak_type,
            "url": self.url,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "excerpt": self.excerpt,
            "remediation": self.remediation,
        })


def sort_by_severity(items: List[Any]) -> List[Any]:
    """Stable sort: critical, high, medium, low, info. Unknown severities go last."""
    return sorted(items, key=lambda f: SEVERITY_ORDER.get(f.severity, len(SEVERITY_ORDER)))


@dataclass
class AuditResult:
    target: str
    scan_date: str
    duration: int = 0
    reachable: bool = False
    status_code: Optional[int] = None
    final_url: Optional[str] = None
    redirect_chain: List[str] = field(default_factory=list)
    server_header: Optional[str] = None
    powered_by: Optional[str] = None
    proxied: bool = False
    headers: List[HeaderCheck] = field(default_factory=list)
    ports: List[PortResult] = field(default_factory=list)
    tls_info: Optional[TlsResult] = None
    dns_records: List[DnsRecord] = field(default_factory=list)
    email_auth: Dict[str, Any] = field(default_factory=dict)
    cookies: List[CookieCheck] = field(default_factory=list)
    vulnerabilities: List[VulnerabilityFinding] = field(default_factory=list)
    source_leaks: List[SourceLeakFinding] = field(default_factory=list)
    leak_exposure: Dict[str, Any] = field(default_factory=dict)
    leak_summary: Optional[str] = None
    compliance: List[ComplianceCheck] = field(default_factory=list)
    subdomains: List[str] = field(default_factory=list)
    score: int = 0
    error: Optional[str] = None

    @classmethod
    def unreachable(cls, target: str, scan_date: str, duration: int, error: str) -> "AuditResult":
        return cls(target=target, scan_date=scan_date, duration=duration,
                   reachable=False, score=0, error=error)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "target": self.target,
            "scanDate": self.scan_date,
            "duration": self.duration,
            "reachable": self.reachable,
            "statusCode": self.status_code,
            "finalUrl": self.final_url,
            "redirectChain": list(self.redirect_chain),
            "serverHeader": self.server_header,
            "poweredBy": self.powered_by,
            "proxied": self.proxied,
            "headers": [h.to_dict() for h in self.headers],
            "ports": [p.to_dict() for p in self.ports],
            "tlsInfo": self.tls_info.to_dict() if self.tls_info else None,
            "dnsRecords": [r.to_dict() for r in self.dns_records],
            "emailAuth": dict(self.email_auth),
            "cookies": [c.to_dict() for c in self.cookies],
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
            "sourceLeaks": [s.to_dict() for s in self.source_leaks],
            "leakExposure": dict(self.leak_exposure),
            "leakSummary": self.leak_summary,
            "compliance": [c.to_dict() for c in self.compliance],
            "subdomains": list(self.subdomains),
            "score": self.score,
            "error": self.error,
        }
        return _drop_none(d)
