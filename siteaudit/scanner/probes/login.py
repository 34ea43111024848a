# siteaudit/scanner/probes/login.py
"""
Login discovery & credential rate-limit probe.

Discovery runs in three phases and stops at the first that succeeds:
    a) known login paths on the origin, www.<host> and app.<root>, looking
       for a password field or authentication-library markers
    b) the NextAuth CSRF-token endpoint (/api/auth/csrf)
    c) a redirect from a login path to an external OAuth/SSO provider

Then LOGIN_ATTEMPTS rapid wrong-credential POSTs are sent to the endpoint:
    - a 429/403 (or the server dropping the connection) → rate-limit-ok
    - every attempt redirected while NextAuth processes the credentials
      server-side → informational: lockout not verifiable by status code
    - anything else → no rate limiting

NextAuth always answers a credentials callback with a redirect, whatever its
lockout logic does, so the second rule trades a possible false negative for
a certain false positive.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlsplit

from siteaudit.scanner.base import AuditContext, BaseProbe
from siteaudit.scanner.http import fetch_follow, gather_in_batches, response_text, safe_request
from siteaudit.scanner.models import VulnerabilityFinding

logger = logging.getLogger(__name__)

LOGIN_PATHS = [
    "/login", "/signin", "/auth/signin", "/auth/login", "/auth/sign-in", "/wp-login.php",
    "/admin/login", "/user/login", "/api/auth/signin", "/account/login", "/connect/login",
    "/session/new",
]

PASSWORD_INPUT_RE = re.compile(r"<input[^>]*type\s*=\s*[\"']password[\"']", re.IGNORECASE)
FORM_RE = re.compile(r"<form", re.IGNORECASE)
LOGIN_WORDS_RE = re.compile(r"password|login|sign.?in|connexion|e.?mail", re.IGNORECASE)
AUTH_LIBRARY_RE = re.compile(
    r"csrfToken|callbackUrl|credentials|next-auth|nextauth|__Host-next-auth|signIn\(",
    re.IGNORECASE,
)
CAPTCHA_RE = re.compile(r"captcha|recaptcha|hcaptcha|turnstile|g-recaptcha", re.IGNORECASE)
MFA_RE = re.compile(r"two.?factor|2fa|mfa|otp|authenticator|verification.?code", re.IGNORECASE)

SSO_PROVIDERS = [
    "accounts.google.com", "login.microsoftonline.com", "login.live.com", "auth0.com",
    "okta.com", "onelogin.com", "amazoncognito.com", "github.com", "gitlab.com",
    "appleid.apple.com", "facebook.com", "clerk.", "workos.com",
]
SSO_PATH_RE = re.compile(r"/oauth2?/|/authorize|/realms/|/saml|/sso/", re.IGNORECASE)

BLOCK_STATUSES = (429, 403)
ENUMERATION_LENGTH_DELTA = 20


@dataclass
class LoginEndpoint:
    login_url: str
    auth_endpoint: str
    framework: Optional[str] = None          # "nextauth"
    csrf_token: str = ""
    page_body: str = ""
    sso_provider: Optional[str] = None


def looks_like_login(body: str) -> bool:
    if PASSWORD_INPUT_RE.search(body):
        return True
    if FORM_RE.search(body) and LOGIN_WORDS_RE.search(body):
        return True
    return bool(AUTH_LIBRARY_RE.search(body))


def candidate_origins(scheme: str, hostname: str, root: str, origin: str) -> List[str]:
    origins = [origin]
    if not hostname.startswith("www."):
        origins.append(f"{scheme}://www.{hostname}")
    if not hostname.startswith("app."):
        origins.append(f"{scheme}://app.{root}")
    return list(dict.fromkeys(origins))


def sso_provider_for(location: str) -> Optional[str]:
    host = (urlsplit(location).hostname or "").lower()
    for provider in SSO_PROVIDERS:
        if provider in host:
            return host
    if SSO_PATH_RE.search(location):
        return host or None
    return None


class LoginProbe(BaseProbe):

    @property
    def name(self) -> str:
        return "login"

    async def probe(self, ctx: AuditContext, config: Dict[str, Any]) -> List[VulnerabilityFinding]:
        timeout = float(config.get("timeout", 5))
        attempts = int(config.get("attempts", 10))

        endpoint = await self.discover(ctx, timeout)
        if endpoint is None:
            return [VulnerabilityFinding(
                id="vuln-no-login-found",
                title="No login form detected",
                severity="info",
                category="Authentication",
                description=(
                    f"No login page found on the tested paths ({', '.join(LOGIN_PATHS)}), "
                    f"no auth-framework endpoint and no SSO redirect. Brute-force checks "
                    f"were not run."
                ),
                remediation="If a login form exists on a non-standard path, audit it manually.",
                affected_component="Authentication pages",
            )]

        if endpoint.sso_provider:
            return [VulnerabilityFinding(
                id="vuln-login-sso",
                title=f"Login delegated to external identity provider ({endpoint.sso_provider})",
                severity="info",
                category="Authentication",
                description=(
                    f"{endpoint.login_url} redirects to {endpoint.sso_provider}. Credential "
                    f"handling, rate limiting and MFA are enforced by the provider."
                ),
                remediation="Ensure MFA and lockout policies are enabled at the identity provider.",
                affected_component="Authentication system",
            )]

        findings = await self._rate_limit(ctx, endpoint, attempts, timeout)
        findings += await self._enumeration(ctx, endpoint, timeout)
        findings += self._page_defenses(endpoint)
        return findings

    # -------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------

    async def discover(self, ctx: AuditContext, timeout: float) -> Optional[LoginEndpoint]:
        target = ctx.target
        origins = candidate_origins(target.scheme, target.hostname, target.root_domain, target.origin)

        # a) known paths
        for origin in origins:
            async def fetch(path: str, origin: str = origin) -> Optional[str]:
                resp = await fetch_follow(ctx.client, f"{origin}{path}", timeout=timeout)
                if resp is None or resp.status_code != 200:
                    return None
                body = response_text(resp)
                return body if looks_like_login(body) else None

            bodies = await gather_in_batches(LOGIN_PATHS, fetch, 5)
            for path, body in zip(LOGIN_PATHS, bodies):
                if body is None:
                    continue
                login_url = f"{origin}{path}"
                endpoint = LoginEndpoint(login_url=login_url, auth_endpoint=login_url, page_body=body)
                await self._detect_nextauth(ctx, origin, endpoint, timeout)
                logger.info(f"LoginProbe: login page {login_url} (framework={endpoint.framework})")
                return endpoint

        # b) auth framework endpoint
        endpoint = LoginEndpoint(
            login_url=f"{target.origin}/api/auth/signin",
            auth_endpoint=f"{target.origin}/api/auth/signin",
        )
        if await self._detect_nextauth(ctx, target.origin, endpoint, timeout):
            logger.info(f"LoginProbe: NextAuth detected on {target.origin}")
            return endpoint

        # c) SSO redirect
        for path in LOGIN_PATHS[:4]:
            resp = await safe_request(ctx.client, "GET", f"{target.origin}{path}", timeout=timeout)
            if resp is None or not resp.is_redirect:
                continue
            location = urljoin(f"{target.origin}{path}", resp.headers.get("location", ""))
            provider = sso_provider_for(location)
            if provider and provider != target.hostname:
                return LoginEndpoint(
                    login_url=f"{target.origin}{path}",
                    auth_endpoint=location,
                    sso_provider=provider,
                )

        return None

    async def _detect_nextauth(
        self,
        ctx: AuditContext,
        origin: str,
        endpoint: LoginEndpoint,
        timeout: float,
    ) -> bool:
        resp = await safe_request(ctx.client, "GET", f"{origin}/api/auth/csrf", timeout=timeout)
        if resp is None or resp.status_code != 200:
            return False
        try:
            token = resp.json().get("csrfToken")
        except (ValueError, AttributeError):
            return False
        if not token:
            return False

        endpoint.framework = "nextauth"
        endpoint.csrf_token = str(token)
        endpoint.auth_endpoint = f"{origin}/api/auth/callback/credentials"
        return True

    # -------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------

    def _form(self, endpoint: LoginEndpoint, username: str, password: str) -> Dict[str, str]:
        data = {"username": username, "password": password, "email": username}
        if endpoint.framework == "nextauth":
            if endpoint.csrf_token:
                data["csrfToken"] = endpoint.csrf_token
            data["callbackUrl"] = endpoint.login_url
            data["json"] = "true"
        return data

    async def _rate_limit(
        self,
        ctx: AuditContext,
        endpoint: LoginEndpoint,
        attempts: int,
        timeout: float,
    ) -> List[VulnerabilityFinding]:
        statuses: List[int] = []
        blocked = False
        retry_hint: Optional[str] = None

        for _ in range(attempts):
            resp = await safe_request(
                ctx.client, "POST", endpoint.auth_endpoint, timeout=timeout,
                data=self._form(endpoint, "admin", "wrongpassword123"),
            )
            if resp is None:
                # Dropped connection mid-burst: treated as the server cutting us off
                blocked = True
                break
            statuses.append(resp.status_code)
            if resp.status_code in BLOCK_STATUSES:
                blocked = True
                retry_hint = resp.headers.get("retry-after") or resp.headers.get("x-ratelimit-remaining")
                break

        if blocked:
            hint = f" Header: {retry_hint}." if retry_hint else ""
            return [VulnerabilityFinding(
                id="vuln-rate-limit-ok",
                title="Rate limiting detected on authentication",
                severity="info",
                category="Authentication",
                description=(
                    f"Rapid login attempts were blocked after {max(len(statuses), 1)} "
                    f"request(s).{hint}"
                ),
                remediation="No action required.",
                affected_component="Authentication system",
            )]

        all_redirects = bool(statuses) and all(300 <= s < 400 for s in statuses)
        if endpoint.framework == "nextauth" and all_redirects:
            return [VulnerabilityFinding(
                id="vuln-rate-limit-unverifiable",
                title="Login processed server-side, lockout not independently verifiable",
                severity="info",
                category="Authentication",
                description=(
                    f"{endpoint.auth_endpoint} answered all {len(statuses)} attempts with a "
                    f"redirect. NextAuth handles failed credentials server-side, so any "
                    f"lockout cannot be observed from status codes."
                ),
                remediation="Confirm that the authorize() callback enforces attempt limits.",
                affected_component="Authentication system",
            )]

        return [VulnerabilityFinding(
            id="vuln-no-rate-limit",
            title="No rate limiting on authentication",
            severity="high",
            category="Authentication",
            description=(
                f"The login endpoint ({endpoint.auth_endpoint}) accepted {len(statuses)} rapid "
                f"attempts without blocking (statuses: {', '.join(map(str, statuses))}). "
                f"It is exposed to brute-force attacks."
            ),
            remediation=(
                "Rate-limit authentication (e.g. 5 attempts per minute), add a CAPTCHA "
                "after repeated failures, and consider fail2ban server-side."
            ),
            affected_component="Authentication system",
            cvss=7.5,
        )]

    async def _enumeration(
        self,
        ctx: AuditContext,
        endpoint: LoginEndpoint,
        timeout: float,
    ) -> List[VulnerabilityFinding]:
        known = await safe_request(
            ctx.client, "POST", endpoint.auth_endpoint, timeout=timeout,
            data=self._form(endpoint, "admin", "wrongpassword"),
        )
        unknown = await safe_request(
            ctx.client, "POST", endpoint.auth_endpoint, timeout=timeout,
            data=self._form(endpoint, f"nonexistent_{uuid.uuid4().hex[:10]}", "wrongpassword"),
        )
        if known is None or unknown is None:
            return []

        delta = abs(len(response_text(known)) - len(response_text(unknown)))
        if delta <= ENUMERATION_LENGTH_DELTA:
            return []

        return [VulnerabilityFinding(
            id="vuln-user-enumeration",
            title="Account enumeration possible",
            severity="medium",
            category="Authentication",
            description=(
                f"Failed-login responses differ by {delta} bytes depending on whether the "
                f"username exists. An attacker can discover valid accounts."
            ),
            remediation="Return one identical generic error whether or not the account exists.",
            affected_component="Login form",
            cvss=5.3,
        )]

    def _page_defenses(self, endpoint: LoginEndpoint) -> List[VulnerabilityFinding]:
        body = endpoint.page_body
        if not body:
            return []

        findings: List[VulnerabilityFinding] = []
        if CAPTCHA_RE.search(body):
            findings.append(VulnerabilityFinding(
                id="vuln-captcha-ok",
                title="CAPTCHA detected on login",
                severity="info",
                category="Authentication",
                description="A CAPTCHA is in place on the login page.",
                remediation="No action required.",
                affected_component="Login form",
            ))
        else:
            findings.append(VulnerabilityFinding(
                id="vuln-no-captcha",
                title="No CAPTCHA on the login form",
                severity="medium",
                category="Authentication",
                description="No CAPTCHA found on the login page. Automated attacks are easier.",
                remediation="Add a CAPTCHA (reCAPTCHA v3, hCaptcha, Cloudflare Turnstile) to the login form.",
                affected_component="Login form",
            ))

        if MFA_RE.search(body):
            findings.append(VulnerabilityFinding(
                id="vuln-mfa-detected",
                title="Multi-factor authentication detected",
                severity="info",
                category="Authentication",
                description="The login flow appears to support two-factor authentication (2FA/MFA).",
                remediation="No action required.",
                affected_component="Authentication system",
            ))
        return findings
