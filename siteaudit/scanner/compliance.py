# siteaudit/scanner/compliance.py
"""
Compliance checker.

Regulatory and best-practice heuristics over what the audit already
collected (body, headers, cookies, DNS), plus two small active lookups:
common consent endpoints and security.txt.

Each check is an independent pass/fail with a detail string:
    GDPR:     cookie consent, privacy policy link, legal notice
    Security: HTTPS, HSTS, CSP, cookie flags, security.txt (RFC 9116)
    Email:    SPF, DMARC, DKIM

Cookie consent is the hard one. Consent managers are injected in many
different ways, so any single signal firing is enough, and every signal
that fired is recorded on the check:
    body      — consent wording in the page
    script    — a known consent-platform script origin
    cookie    — a consent cookie set by the response
    state     — client-side consent API markers (__tcfapi, didomiConfig...)
    endpoint  — a common cookie-policy / consent endpoint answers
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from siteaudit.scanner.base import AuditContext
from siteaudit.scanner.http import gather_in_batches, looks_like_html, response_text, safe_request
from siteaudit.scanner.models import ComplianceCheck, CookieCheck
from siteaudit.scanner.soft404 import is_soft_404

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Consent signals
# ---------------------------------------------------------------------------

CONSENT_BODY_RE = re.compile(
    r"cookie.?(?:consent|banner|notice|policy|accept|settings|preferences)"
    r"|accept(?:er)? (?:all )?(?:les )?cookies|gestion des cookies|manage cookies",
    re.IGNORECASE,
)

CONSENT_SCRIPT_ORIGINS = {
    "cdn.cookielaw.org": "OneTrust",
    "optanon.blob.core.windows.net": "OneTrust",
    "consent.cookiebot.com": "Cookiebot",
    "consentcdn.cookiebot.com": "Cookiebot",
    "sdk.privacy-center.org": "Didomi",
    "static.axept.io": "Axeptio",
    "tarteaucitron": "tarteaucitron",
    "cdn.iubenda.com": "iubenda",
    "app.termly.io": "Termly",
    "quantcast.mgr.consensu.org": "Quantcast Choice",
    "cmp.quantcast.com": "Quantcast Choice",
    "app.usercentrics.eu": "Usercentrics",
    "cdn.consentmanager.net": "consentmanager",
    "cdn-cookieyes.com": "CookieYes",
    "cmp.osano.com": "Osano",
    "consent.trustarc.com": "TrustArc",
    "cookie-script.com": "Cookie-Script",
    "klaro": "Klaro",
}

SCRIPT_SRC_RE = re.compile(r"<script[^>]+src\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)

CONSENT_COOKIE_RE = re.compile(
    r"^(?:OptanonConsent|OptanonAlertBoxClosed|CookieConsent|cookieyes-consent|euconsent(?:-v2)?"
    r"|didomi_token|axeptio_\w+|tarteaucitron|cmplz_\w+|borlabs-cookie|uc_settings|"
    r"cookie_?consent\w*|consent\w*)$",
    re.IGNORECASE,
)

CONSENT_STATE_RE = re.compile(
    r"__tcfapi|__cmp\(|didomiConfig|window\._iub|UC_UI|Cookiebot\.|OneTrust\.|axeptioSettings"
    r"|tarteaucitron\.init|klaroConfig|cookieconsent\.initialise",
)

CONSENT_ENDPOINTS = [
    "/cookie-policy",
    "/cookies",
    "/politique-cookies",
    "/cookie-settings",
    "/api/consent",
]

# ---------------------------------------------------------------------------
# Page-content heuristics
# ---------------------------------------------------------------------------

PRIVACY_RE = re.compile(
    r"privacy|politique de confidentialit|confidentialit[eé]|rgpd|gdpr|donn[eé]es.?personnelles|vie.?priv",
    re.IGNORECASE,
)

LEGAL_RE = re.compile(
    r"mentions?.?l[eé]gales|legal.?notice|imprint|impressum|terms of (?:use|service)"
    r"|\bcgu\b|\bcgv\b|conditions.?g[eé]n[eé]rales",
    re.IGNORECASE,
)

SECURITY_TXT_PATHS = ["/.well-known/security.txt", "/security.txt"]
SECURITY_TXT_CONTACT_RE = re.compile(r"^\s*Contact:\s*\S+", re.IGNORECASE | re.MULTILINE)


def consent_signals(body: str, set_cookies: List[str]) -> List[str]:
    """Passive consent evidence: body wording, CMP scripts, consent cookies, client state."""
    signals: List[str] = []

    m = CONSENT_BODY_RE.search(body)
    if m:
        signals.append(f"body: '{m.group(0)}'")

    platforms = []
    for src in SCRIPT_SRC_RE.findall(body):
        for origin, platform in CONSENT_SCRIPT_ORIGINS.items():
            if origin in src.lower() and platform not in platforms:
                platforms.append(platform)
    if platforms:
        signals.append(f"script: {', '.join(platforms)}")

    names = []
    for raw in set_cookies:
        name = raw.split(";", 1)[0].split("=", 1)[0].strip()
        if CONSENT_COOKIE_RE.match(name):
            names.append(name)
    if names:
        signals.append(f"cookie: {', '.join(names)}")

    m = CONSENT_STATE_RE.search(body)
    if m:
        signals.append(f"state: {m.group(0)}")

    return signals


class ComplianceChecker:

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.timeout = float(config.get("timeout", 5))
        self.batch_size = int(config.get("batch_size", 5))

    async def check(self, ctx: AuditContext, cookies: List[CookieCheck]) -> List[ComplianceCheck]:
        body = ctx.body
        headers = ctx.headers
        checks: List[ComplianceCheck] = []

        checks.append(await self._consent_check(ctx))
        checks.extend(self._gdpr_checks(body))
        checks.extend(self._transport_checks(ctx, headers, cookies))
        checks.extend(self._email_checks(ctx))
        checks.append(await self._security_txt_check(ctx))

        passed = sum(1 for c in checks if c.passed)
        logger.info(f"ComplianceChecker: {ctx.target.hostname} {passed}/{len(checks)} checks passed")
        return checks

    # -------------------------------------------------------------------
    # GDPR
    # -------------------------------------------------------------------

    async def _consent_check(self, ctx: AuditContext) -> ComplianceCheck:
        signals = consent_signals(ctx.body, ctx.set_cookies)
        if not signals:
            signals = await self._probe_consent_endpoints(ctx)

        passed = bool(signals)
        return ComplianceCheck(
            name="Cookie consent banner (GDPR)",
            passed=passed,
            details=(
                "A cookie consent mechanism was detected."
                if passed else
                "No cookie consent mechanism detected. Required when non-essential "
                "cookies (analytics, advertising...) are set."
            ),
            category="GDPR",
            signals=signals,
        )

    async def _probe_consent_endpoints(self, ctx: AuditContext) -> List[str]:
        origin = ctx.target.origin

        async def probe(path: str) -> Optional[str]:
            resp = await safe_request(ctx.client, "GET", origin + path, timeout=self.timeout)
            if resp is None or resp.status_code != 200:
                return None
            if is_soft_404(ctx.soft404, resp.status_code, response_text(resp)):
                return None
            return path

        found = [p for p in await gather_in_batches(CONSENT_ENDPOINTS, probe, self.batch_size) if p]
        return [f"endpoint: {p}" for p in found]

    def _gdpr_checks(self, body: str) -> List[ComplianceCheck]:
        has_privacy = bool(PRIVACY_RE.search(body))
        has_legal = bool(LEGAL_RE.search(body))
        return [
            ComplianceCheck(
                name="Privacy policy link",
                passed=has_privacy,
                details=(
                    "A link to a privacy / data-protection policy was detected."
                    if has_privacy else
                    "No privacy policy link detected on the page."
                ),
                category="GDPR",
            ),
            ComplianceCheck(
                name="Legal notice",
                passed=has_legal,
                details=(
                    "Links to a legal notice or terms of service were detected."
                    if has_legal else
                    "No legal notice or terms detected (mandatory for French sites)."
                ),
                category="GDPR",
            ),
        ]

    # -------------------------------------------------------------------
    # Transport & browser hardening
    # -------------------------------------------------------------------

    def _transport_checks(
        self,
        ctx: AuditContext,
        headers: Dict[str, str],
        cookies: List[CookieCheck],
    ) -> List[ComplianceCheck]:
        https = ctx.final_url.lower().startswith("https://")
        hsts = headers.get("strict-transport-security")
        csp = headers.get("content-security-policy")
        insecure = [c.name for c in cookies if c.issues]

        return [
            ComplianceCheck(
                name="HTTPS encryption",
                passed=https,
                details=(
                    "The site is served over HTTPS."
                    if https else
                    f"The site ends up on a clear-text URL: {ctx.final_url}"
                ),
                category="Security",
            ),
            ComplianceCheck(
                name="HSTS (HTTP Strict Transport Security)",
                passed=hsts is not None,
                details=(
                    f"HSTS enabled: {hsts}"
                    if hsts is not None else
                    "HSTS not enabled. Browsers may still connect over plain HTTP."
                ),
                category="Security",
            ),
            ComplianceCheck(
                name="Content Security Policy",
                passed=csp is not None,
                details=(
                    "A CSP is configured."
                    if csp is not None else
                    "No CSP defined. The site has no defense in depth against script injection (XSS)."
                ),
                category="Security",
            ),
            ComplianceCheck(
                name="Cookie security",
                passed=not insecure,
                details=(
                    "Every cookie carries the required security attributes."
                    if not insecure else
                    f"{len(insecure)} cookie(s) with security issues: {', '.join(insecure)}"
                ),
                category="Security",
            ),
        ]

    # -------------------------------------------------------------------
    # Email authentication
    # -------------------------------------------------------------------

    def _email_checks(self, ctx: AuditContext) -> List[ComplianceCheck]:
        records = ctx.dns_records
        spf = next((r.value for r in records if r.type == "SPF"), None)
        dmarc = next((r.value for r in records if r.type == "DMARC"), None)
        dkim_status = ctx.get_engine_data("dns").get("email_auth", {}).get("dkim", {})
        dkim = next((r.value for r in records if r.type == "DKIM"), None)

        if dkim:
            dkim_details = f"DKIM configured: {dkim}"
        elif dkim_status:
            dkim_details = dkim_status.get("note") or "No DKIM record detected (inconclusive)."
        else:
            dkim_details = "DNS lookup failed; DKIM could not be checked."

        return [
            ComplianceCheck(
                name="SPF record (email anti-spoofing)",
                passed=spf is not None,
                details=(
                    f"SPF configured: {spf}"
                    if spf else
                    "No SPF record detected. Mail from this domain can be spoofed."
                ),
                category="Email",
            ),
            ComplianceCheck(
                name="DMARC record",
                passed=dmarc is not None,
                details=(
                    f"DMARC configured: {dmarc}"
                    if dmarc else
                    "No DMARC record detected. No email authentication policy."
                ),
                category="Email",
            ),
            ComplianceCheck(
                name="DKIM record",
                passed=dkim is not None,
                details=dkim_details,
                category="Email",
            ),
        ]

    # -------------------------------------------------------------------
    # security.txt
    # -------------------------------------------------------------------

    async def _security_txt_check(self, ctx: AuditContext) -> ComplianceCheck:
        found_at = None
        for path in SECURITY_TXT_PATHS:
            resp = await safe_request(ctx.client, "GET", ctx.target.origin + path, timeout=self.timeout)
            if resp is None or resp.status_code != 200:
                continue
            text = response_text(resp)
            if looks_like_html(text, resp.headers.get("content-type", "")):
                continue
            if SECURITY_TXT_CONTACT_RE.search(text):
                found_at = path
                break

        return ComplianceCheck(
            name="security.txt (RFC 9116)",
            passed=found_at is not None,
            details=(
                f"security.txt published at {found_at}."
                if found_at else
                "No security.txt found. Recommended for responsible vulnerability disclosure."
            ),
            category="Security",
        )
