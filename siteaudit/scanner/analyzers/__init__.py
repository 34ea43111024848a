# siteaudit/scanner/analyzers/__init__.py
"""
Finding analyzers.
Each analyzer reads raw engine data and produces VulnerabilityFindings
with a severity and remediation guidance.
Analyzers never touch the network. They interpret what the engines collected.
"""
from siteaudit.scanner.analyzers.header_analyzer import HeaderAnalyzer, check_headers
from siteaudit.scanner.analyzers.cookie_analyzer import CookieAnalyzer, parse_cookies
from siteaudit.scanner.analyzers.port_risk import PortRiskAnalyzer
from siteaudit.scanner.analyzers.ssl_analyzer import SSLAnalyzer
from siteaudit.scanner.analyzers.email_security import EmailSecurityAnalyzer
from siteaudit.scanner.analyzers.subdomain_analyzer import SubdomainAnalyzer
from siteaudit.scanner.analyzers.leak_analyzer import analyze_leaks

# Registry of all available analyzers.
# The orchestrator runs these in order after probes complete.
ALL_ANALYZERS = {
    "header_analyzer": HeaderAnalyzer,
    "cookie_analyzer": CookieAnalyzer,
    "port_risk": PortRiskAnalyzer,
    "ssl_analyzer": SSLAnalyzer,
    "email_security": EmailSecurityAnalyzer,
    "subdomain_analyzer": SubdomainAnalyzer,
}

__all__ = [
    "HeaderAnalyzer", "CookieAnalyzer", "PortRiskAnalyzer", "SSLAnalyzer",
    "EmailSecurityAnalyzer", "SubdomainAnalyzer", "ALL_ANALYZERS",
    "check_headers", "parse_cookies", "analyze_leaks",
]
