# siteaudit/scanner/probes/session.py
"""
Session / JWT probe.

Picks the session-looking cookies from the initial response, and for those
whose value is a JWT decodes the header segment (no signature check, we
never have the key). Flags:
    alg "none"           — unsigned token, trivially forgeable
    alg HS256/384/512    — shared-secret signing, brute-forceable offline
                           when the secret is weak
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from typing import Any, Dict, List, Optional, Tuple

from siteaudit.scanner.base import AuditContext, BaseProbe
from siteaudit.scanner.models import VulnerabilityFinding

SESSION_NAME_RE = re.compile(r"sess|sid|token|auth|jwt|access|id_token", re.IGNORECASE)
JWT_RE = re.compile(r"^eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*$")


def split_cookie(raw: str) -> Tuple[str, str]:
    first = raw.split(";", 1)[0]
    name, _, value = first.partition("=")
    return name.strip(), value.strip().strip('"')


def jwt_header(token: str) -> Optional[Dict[str, Any]]:
    """Decoded JOSE header of a compact JWT, or None if it does not decode."""
    if not JWT_RE.match(token):
        return None
    segment = token.split(".", 1)[0]
    segment += "=" * (-len(segment) % 4)
    try:
        header = json.loads(base64.urlsafe_b64decode(segment))
    except (binascii.Error, ValueError):
        return None
    return header if isinstance(header, dict) else None


class SessionProbe(BaseProbe):

    @property
    def name(self) -> str:
        return "session"

    async def probe(self, ctx: AuditContext, config: Dict[str, Any]) -> List[VulnerabilityFinding]:
        findings: List[VulnerabilityFinding] = []

        for raw in ctx.set_cookies:
            name, value = split_cookie(raw)
            if not name or not SESSION_NAME_RE.search(name):
                continue
            header = jwt_header(value)
            if header is None:
                continue

            alg = str(header.get("alg", "")).upper()
            if alg == "NONE":
                findings.append(VulnerabilityFinding(
                    id=f"vuln-jwt-none-{name.lower()}",
                    title=f"Unsigned JWT in cookie '{name}' (alg=none)",
                    severity="critical",
                    category="Session Management",
                    description=(
                        f"The session cookie '{name}' carries a JWT whose header declares "
                        f"alg=none. Anyone can forge a token the server accepts."
                    ),
                    remediation="Reject alg=none server-side and pin the accepted algorithm list.",
                    affected_component=f"Cookie {name}",
                    cvss=9.1,
                ))
            elif alg.startswith("HS"):
                findings.append(VulnerabilityFinding(
                    id=f"vuln-jwt-symmetric-{name.lower()}",
                    title=f"Symmetric JWT signing in cookie '{name}' ({alg})",
                    severity="low",
                    category="Session Management",
                    description=(
                        f"The session cookie '{name}' is a JWT signed with a shared secret "
                        f"({alg}). A weak secret can be brute-forced offline from any token."
                    ),
                    remediation=(
                        "Use a long random signing secret, or an asymmetric algorithm "
                        "(RS256/ES256) with key rotation."
                    ),
                    affected_component=f"Cookie {name}",
                ))

        return findings
