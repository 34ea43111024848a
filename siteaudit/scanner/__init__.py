# siteaudit/scanner/__init__.py
"""
SiteAudit website security-audit engine.

Usage:
    from siteaudit.scanner import run_audit

    result = run_audit("example.com")
    payload = result.to_dict()

Architecture:
    AuditOrchestrator
    ├── Engines (collect raw data)
    │   ├── HTTPEngine       — initial fetch + redirect chain
    │   ├── PortEngine       — batched TCP connect + banner grab
    │   ├── SSLEngine        — certificate, protocol, cipher, grade
    │   ├── DNSEngine        — records + SPF / DMARC / DKIM discovery
    │   ├── LeakEngine       — sensitive paths with content-shape checks
    │   └── SubdomainEngine  — certificate-transparency enumeration
    │
    ├── Probes (active tests → findings)
    │   reflection, csrf, disclosure, admin_paths, login,
    │   injection, tls_downgrade, session
    │
    ├── Analyzers (interpret data → findings)
    │   header_analyzer, cookie_analyzer, port_risk, ssl_analyzer,
    │   email_security, subdomain_analyzer, leak_analyzer
    │
    └── ComplianceChecker → score → AuditResult
"""

from siteaudit.scanner.orchestrator import AuditInternalError, AuditOrchestrator, run_audit
from siteaudit.scanner.target import TargetError

__all__ = ["AuditOrchestrator", "AuditInternalError", "TargetError", "run_audit"]
