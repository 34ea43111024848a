import asyncio

import httpx

from conftest import make_context, mock_client
from siteaudit.scanner.analyzers.cookie_analyzer import parse_cookies
from siteaudit.scanner.base import EngineResult
from siteaudit.scanner.compliance import ComplianceChecker, consent_signals
from siteaudit.scanner.models import DnsRecord
from siteaudit.scanner.soft404 import capture_baseline

PAGE = (
    "<html><body><footer>"
    "<a href='/privacy'>Privacy policy</a> <a href='/legal'>Legal notice</a>"
    "</footer></body></html>"
)


def _by_name(checks):
    return {c.name: c for c in checks}


def test_consent_signals_each_kind():
    body = (
        "<div>We use cookies. <button>Accept all cookies</button></div>"
        "<script src='https://cdn.cookielaw.org/scripttemplates/otSDKStub.js'></script>"
        "<script>window.__tcfapi('addEventListener', 2, cb)</script>"
    )
    signals = consent_signals(body, ["OptanonConsent=isGpcEnabled=0; Path=/", "sid=1"])

    assert signals[0].startswith("body: ")
    assert "script: OneTrust" in signals
    assert "cookie: OptanonConsent" in signals
    assert "state: __tcfapi" in signals


def test_consent_signals_none():
    assert consent_signals("<p>Hello</p>", ["sid=1; Path=/"]) == []


def test_full_compliance_pass():
    def handler(request):
        if request.url.path == "/.well-known/security.txt":
            return httpx.Response(
                200, text="Contact: mailto:security@example.com\nExpires: 2027-01-01T00:00:00Z\n",
                headers={"content-type": "text/plain"},
            )
        if request.url.path == "/cookies":
            return httpx.Response(200, text="<html>Our cookie usage</html>")
        return httpx.Response(404)

    ctx = make_context(handler, http_data={
        "body": PAGE,
        "headers": {
            "strict-transport-security": "max-age=31536000",
            "content-security-policy": "default-src 'self'",
        },
    })
    ctx.engine_results["dns"] = EngineResult(engine_name="dns", data={
        "records": [
            DnsRecord("SPF", "v=spf1 -all"),
            DnsRecord("DMARC", "v=DMARC1; p=reject"),
            DnsRecord("DKIM", "google._domainkey: v=DKIM1; p=MIIB"),
        ],
        "email_auth": {"dkim": {"status": "present", "selector": "google"}},
    })
    cookies = parse_cookies(["sid=1; Secure; HttpOnly; SameSite=Strict"])

    checks = asyncio.run(ComplianceChecker({"timeout": 1}).check(ctx, cookies))

    assert len(checks) == 11
    assert all(c.passed for c in checks), [c.name for c in checks if not c.passed]
    by_name = _by_name(checks)
    assert by_name["Cookie consent banner (GDPR)"].signals == ["endpoint: /cookies"]
    assert by_name["security.txt (RFC 9116)"].details == "security.txt published at /.well-known/security.txt."
    assert {c.category for c in checks} == {"GDPR", "Security", "Email"}


def test_bare_site_fails_checks():
    ctx = make_context(target="http://example.com", http_data={"final_url": "http://example.com"})
    cookies = parse_cookies(["tracking=1"])

    checks = _by_name(asyncio.run(ComplianceChecker({"timeout": 1}).check(ctx, cookies)))

    assert not checks["HTTPS encryption"].passed
    assert not checks["Cookie security"].passed
    assert "tracking" in checks["Cookie security"].details
    assert not checks["Cookie consent banner (GDPR)"].passed
    assert checks["Cookie consent banner (GDPR)"].signals == []
    assert not checks["SPF record (email anti-spoofing)"].passed
    assert checks["DKIM record"].details == "DNS lookup failed; DKIM could not be checked."


def test_soft_404_endpoints_are_not_consent_evidence():
    def catch_all(request):
        return httpx.Response(200, text="<html><body>App shell</body></html>", headers={"content-type": "text/html"})

    async def scenario():
        async with mock_client(catch_all) as client:
            baseline = await capture_baseline(client, "https://example.com")
        ctx = make_context(catch_all, soft404=baseline)
        return await ComplianceChecker({"timeout": 1}).check(ctx, [])

    checks = _by_name(asyncio.run(scenario()))
    assert not checks["Cookie consent banner (GDPR)"].passed
    # The catch-all page is HTML, so it is not a security.txt either
    assert not checks["security.txt (RFC 9116)"].passed


def test_security_txt_fallback_path():
    def handler(request):
        if request.url.path == "/security.txt":
            return httpx.Response(200, text="Contact: https://example.com/report\n")
        return httpx.Response(404)

    checks = _by_name(asyncio.run(ComplianceChecker({"timeout": 1}).check(make_context(handler), [])))
    assert checks["security.txt (RFC 9116)"].passed
    assert "/security.txt" in checks["security.txt (RFC 9116)"].details
