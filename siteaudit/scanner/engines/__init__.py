# siteaudit/scanner/engines/__init__.py
"""
Data collection engines.
Each engine collects raw data from a single source.
Engines gather facts. Severity is decided by the analyzers.
"""
from siteaudit.scanner.engines.http_engine import HTTPEngine
from siteaudit.scanner.engines.port_engine import PortEngine
from siteaudit.scanner.engines.ssl_engine import SSLEngine
from siteaudit.scanner.engines.dns_engine import DNSEngine
from siteaudit.scanner.engines.leak_engine import LeakEngine
from siteaudit.scanner.engines.subdomain_engine import SubdomainEngine

# Registry of all available engines.
# "http" runs alone first; the orchestrator runs the rest per phase.
ALL_ENGINES = {
    "http": HTTPEngine,
    "ports": PortEngine,
    "ssl": SSLEngine,
    "dns": DNSEngine,
    "leak": LeakEngine,
    "subdomains": SubdomainEngine,
}

__all__ = [
    "HTTPEngine", "PortEngine", "SSLEngine", "DNSEngine", "LeakEngine", "SubdomainEngine",
    "ALL_ENGINES",
]
