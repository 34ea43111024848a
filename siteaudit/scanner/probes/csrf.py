# siteaudit/scanner/probes/csrf.py
"""
CSRF posture probe.

Tri-state outcome for a page with forms:
    vulnerable        — no token markers and no cookie/CSP defense
    modern-protected  — no token, but SameSite cookies or CSP form-action
    (nothing)         — forms carry a classic token, or there are no forms
"""

from __future__ import annotations

import re
from typing import Any, Dict, List

from siteaudit.scanner.base import AuditContext, BaseProbe
from siteaudit.scanner.models import VulnerabilityFinding

FORM_RE = re.compile(r"<form[^>]*>", re.IGNORECASE)
TOKEN_MARKERS = ("csrf", "_token", "authenticity_token", "__RequestVerificationToken")
COOKIE_TOKEN_MARKERS = ("csrf-token", "__Host-next-auth.csrf", "XSRF-TOKEN")


def csrf_posture(body: str, headers: Dict[str, str], set_cookies: List[str]) -> str:
    """Returns "none", "token", "modern" or "vulnerable"."""
    forms = FORM_RE.findall(body or "")
    if not forms:
        return "none"
    if any(m in body for m in TOKEN_MARKERS):
        return "token"

    cookies = " ".join(set_cookies).lower()
    has_cookie_token = any(m in body for m in COOKIE_TOKEN_MARKERS) or "xsrf-token" in cookies
    has_same_site = "samesite=lax" in cookies or "samesite=strict" in cookies
    has_form_action = "form-action" in headers.get("content-security-policy", "")

    if has_cookie_token or has_same_site or has_form_action:
        return "modern"
    return "vulnerable"


class CSRFProbe(BaseProbe):

    @property
    def name(self) -> str:
        return "csrf"

    async def probe(self, ctx: AuditContext, config: Dict[str, Any]) -> List[VulnerabilityFinding]:
        posture = csrf_posture(ctx.body, ctx.headers, ctx.set_cookies)
        form_count = len(FORM_RE.findall(ctx.body))

        if posture == "vulnerable":
            return [VulnerabilityFinding(
                id="vuln-csrf-missing",
                title="Forms lack CSRF protection",
                severity="high",
                category="CSRF",
                description=(
                    f"{form_count} form(s) found with no visible CSRF token and no "
                    f"cookie-based defense (SameSite, CSP form-action). User actions "
                    f"could be forged from another site."
                ),
                remediation="Add CSRF tokens, or use SameSite=Strict cookies plus CSP form-action 'self'.",
                affected_component="Forms",
                cvss=6.5,
            )]

        if posture == "modern":
            return [VulnerabilityFinding(
                id="vuln-csrf-modern",
                title="CSRF protection via cookies (modern approach)",
                severity="info",
                category="CSRF",
                description=(
                    f"{form_count} form(s) found. No classic CSRF token, but SameSite "
                    f"cookies and/or CSP form-action provide protection."
                ),
                remediation="No action required.",
                affected_component="Forms",
            )]

        return []
