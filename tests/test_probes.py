import asyncio
import base64
import html
import json

import httpx

from conftest import make_context
from siteaudit.scanner.base import EngineResult
from siteaudit.scanner.models import TlsResult
from siteaudit.scanner.probes import tls_downgrade
from siteaudit.scanner.probes.csrf import CSRFProbe, csrf_posture
from siteaudit.scanner.probes.disclosure import DisclosureProbe
from siteaudit.scanner.probes.injection import InjectionProbe, is_foreign_redirect
from siteaudit.scanner.probes.reflection import ReflectionProbe
from siteaudit.scanner.probes.session import SessionProbe, jwt_header, split_cookie
from siteaudit.scanner.probes.tls_downgrade import TLSDowngradeProbe


def _ids(findings):
    return [f.id for f in findings]


# ---------------------------------------------------------------------------
# CSRF
# ---------------------------------------------------------------------------

def test_csrf_posture_states():
    assert csrf_posture("<p>No forms here</p>", {}, []) == "none"
    assert csrf_posture("<form><input name='csrf_token' value='x'></form>", {}, []) == "token"
    assert csrf_posture("<form method='post'></form>", {}, ["sid=1; Path=/; SameSite=Lax"]) == "modern"
    assert csrf_posture(
        "<form method='post'></form>", {"content-security-policy": "form-action 'self'"}, [],
    ) == "modern"
    assert csrf_posture("<form method='post'></form>", {}, ["sid=1; Path=/"]) == "vulnerable"


def test_csrf_probe_flags_unprotected_forms():
    ctx = make_context(http_data={"body": "<form action='/contact' method='post'></form><form></form>"})
    findings = asyncio.run(CSRFProbe().run(ctx))
    assert _ids(findings) == ["vuln-csrf-missing"]
    assert findings[0].severity == "high"
    assert findings[0].description.startswith("2 form(s)")
    assert findings[0].source == "csrf"


# ---------------------------------------------------------------------------
# Session / JWT
# ---------------------------------------------------------------------------

def _jwt(header):
    segment = base64.urlsafe_b64encode(json.dumps(header).encode()).rstrip(b"=").decode()
    return f"{segment}.eyJzdWIiOiIxMjMifQ.c2ln"


def test_jwt_header_decodes_only_jwts():
    assert jwt_header(_jwt({"alg": "HS256", "typ": "JWT"})) == {"alg": "HS256", "typ": "JWT"}
    assert jwt_header("abc.def.ghi") is None
    assert jwt_header("eyJnotbase64!.x.y") is None


def test_split_cookie():
    assert split_cookie('sid="abc"; Path=/') == ("sid", "abc")
    assert split_cookie("flag") == ("flag", "")


def test_session_probe_flags_weak_jwt_algorithms():
    ctx = make_context(http_data={"set_cookies": [
        f"session={_jwt({'alg': 'none'})}; Path=/; HttpOnly",
        f"access_token={_jwt({'alg': 'HS256'})}; Path=/",
        f"refresh_token={_jwt({'alg': 'RS256'})}; Path=/",
        f"theme={_jwt({'alg': 'none'})}; Path=/",
    ]})
    findings = asyncio.run(SessionProbe().run(ctx))

    by_id = {f.id: f for f in findings}
    assert set(by_id) == {"vuln-jwt-none-session", "vuln-jwt-symmetric-access_token"}
    assert by_id["vuln-jwt-none-session"].severity == "critical"
    assert by_id["vuln-jwt-symmetric-access_token"].severity == "low"


# ---------------------------------------------------------------------------
# Reflection / disclosure
# ---------------------------------------------------------------------------

def test_reflection_detects_unescaped_echo():
    def echo(request):
        return httpx.Response(200, text=f"<p>Results for {request.url.params.get('q', '')}</p>")

    findings = asyncio.run(ReflectionProbe().run(make_context(echo)))
    assert _ids(findings) == ["vuln-xss-reflected"]


def test_reflection_ignores_encoded_echo():
    def encoded(request):
        return httpx.Response(200, text=f"<p>Results for {html.escape(request.url.params.get('q', ''))}</p>")

    assert asyncio.run(ReflectionProbe().run(make_context(encoded))) == []


def test_disclosure_probe():
    body = (
        '<script>var apiKey = "abcdefghijklmnopqrstuvwx";</script>'
        '<script type="application/ld+json">{"hint": "password=\'hunter2\'"}</script>'
        '<img src="http://cdn.example.net/logo.png">'
    )
    findings = asyncio.run(DisclosureProbe().run(make_context(http_data={"body": body})))
    ids = _ids(findings)

    assert "vuln-disclosure-api-key" in ids
    assert "vuln-disclosure-hardcoded-password" not in ids
    assert "vuln-mixed-content" in ids


def test_disclosure_directory_listing():
    body = "<html><title>Index of /</title><a href='a.txt'>a.txt</a></html>"
    findings = asyncio.run(DisclosureProbe().run(make_context(http_data={"body": body})))
    assert "vuln-dir-listing" in _ids(findings)


# ---------------------------------------------------------------------------
# Injection
# ---------------------------------------------------------------------------

def test_is_foreign_redirect():
    base = "https://example.com/login"
    assert is_foreign_redirect("https://example.org/", base, "example.com")
    assert is_foreign_redirect("//www.example.org/", base, "example.com")
    assert not is_foreign_redirect("/dashboard", base, "example.com")
    assert not is_foreign_redirect("https://evil.net/", base, "example.com")
    assert not is_foreign_redirect("https://sso.example.com/", base, "example.com")


def test_injection_probe_reports_sqli_and_open_redirect():
    def handler(request):
        params = request.url.params
        if params.get("id") == "'":
            return httpx.Response(500, text="Warning: You have an error in your SQL syntax near ''")
        if "next" in params:
            return httpx.Response(302, headers={"location": params["next"]})
        return httpx.Response(200, text="<html><body>Catalogue</body></html>")

    findings = asyncio.run(InjectionProbe().run(make_context(handler), {"timeout": 1, "batch_size": 10}))
    ids = _ids(findings)

    assert ids.count("vuln-sqli-id") == 1
    assert ids.count("vuln-open-redirect-next") == 1
    assert not any(i.startswith("vuln-path-traversal") or i.startswith("vuln-ssrf") for i in ids)


def test_injection_ignores_signatures_already_on_the_page():
    page = "<html><pre>ORA-00942: table or view does not exist</pre></html>"

    def handler(request):
        return httpx.Response(200, text=page)

    ctx = make_context(handler, http_data={"body": page})
    assert asyncio.run(InjectionProbe().run(ctx, {"timeout": 1, "batch_size": 10})) == []


# ---------------------------------------------------------------------------
# TLS downgrade
# ---------------------------------------------------------------------------

def test_tls_downgrade_reports_accepted_versions(monkeypatch):
    async def fake_probe(host, port, version, timeout):
        return version == "TLSv1"

    monkeypatch.setattr(tls_downgrade, "probe_protocol", fake_probe)
    ctx = make_context()
    ctx.engine_results["ssl"] = EngineResult(engine_name="ssl", data={"tls": TlsResult(
        version="TLSv1.2", cipher="ECDHE-RSA-AES128-GCM-SHA256", cipher_bits=128,
        valid_from="2025-01-01", valid_to="2027-01-01", issuer="CA", subject="example.com",
        days_until_expiry=300, grade="B",
    )})

    findings = asyncio.run(TLSDowngradeProbe().run(ctx, {"timeout": 1}))

    assert _ids(findings) == ["vuln-tls-downgrade-tlsv1"]
    assert findings[0].severity == "high"
    assert findings[0].cve == "CVE-2011-3389"


def test_tls_downgrade_skipped_without_tls():
    assert asyncio.run(TLSDowngradeProbe().run(make_context())) == []
