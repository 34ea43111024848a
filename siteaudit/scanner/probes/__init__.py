# siteaudit/scanner/probes/__init__.py
"""
Active vulnerability probes.
Each probe tests one weakness class against the live target and returns
findings directly. Probes run concurrently; one failing never affects another.
"""
from siteaudit.scanner.probes.reflection import ReflectionProbe
from siteaudit.scanner.probes.csrf import CSRFProbe
from siteaudit.scanner.probes.disclosure import DisclosureProbe
from siteaudit.scanner.probes.admin_paths import AdminPathsProbe
from siteaudit.scanner.probes.login import LoginProbe
from siteaudit.scanner.probes.injection import InjectionProbe
from siteaudit.scanner.probes.tls_downgrade import TLSDowngradeProbe
from siteaudit.scanner.probes.session import SessionProbe

# Registry of all available probes.
ALL_PROBES = {
    "reflection": ReflectionProbe,
    "csrf": CSRFProbe,
    "disclosure": DisclosureProbe,
    "admin_paths": AdminPathsProbe,
    "login": LoginProbe,
    "injection": InjectionProbe,
    "tls_downgrade": TLSDowngradeProbe,
    "session": SessionProbe,
}

__all__ = [
    "ReflectionProbe", "CSRFProbe", "DisclosureProbe", "AdminPathsProbe",
    "LoginProbe", "InjectionProbe", "TLSDowngradeProbe", "SessionProbe",
    "ALL_PROBES",
]
