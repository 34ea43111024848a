from conftest import make_context
from siteaudit.scanner.analyzers.cookie_analyzer import CookieAnalyzer, parse_cookie, parse_cookies
from siteaudit.scanner.analyzers.header_analyzer import HeaderAnalyzer, check_headers
from siteaudit.scanner.analyzers.port_risk import PortRiskAnalyzer
from siteaudit.scanner.analyzers.ssl_analyzer import SSLAnalyzer
from siteaudit.scanner.base import EngineResult
from siteaudit.scanner.models import PortResult, TlsResult


def _by_id(findings):
    return {f.id: f for f in findings}


def test_check_headers_reports_every_recommended_header():
    checks = check_headers({"content-security-policy": "default-src 'self'"})
    assert len(checks) == 10
    assert checks[0].name == "Content-Security-Policy"
    assert checks[0].present and checks[0].value == "default-src 'self'"
    assert checks[0].recommendation is None
    hsts = next(c for c in checks if c.name == "Strict-Transport-Security")
    assert not hsts.present and hsts.weight == 15 and hsts.recommendation


def test_header_analyzer_disclosures():
    ctx = make_context(http_data={"headers": {"server": "Apache/2.4.41 (Ubuntu)", "x-powered-by": "PHP/7.4.3"}})
    findings = _by_id(HeaderAnalyzer().run(ctx))
    assert findings["vuln-server-header"].severity == "low"
    assert findings["vuln-powered-by"].severity == "low"


def test_cdn_server_header_is_informational():
    ctx = make_context(http_data={"headers": {"server": "cloudflare"}})
    findings = HeaderAnalyzer().run(ctx)
    assert [(f.id, f.severity) for f in findings] == [("vuln-server-header", "info")]


def test_parse_cookie_flags():
    strict = parse_cookie("sid=abc; Path=/app; Domain=.example.com; Secure; HttpOnly; SameSite=Strict")
    assert strict.name == "sid"
    assert strict.secure and strict.http_only
    assert strict.same_site == "strict"
    assert strict.path == "/app" and strict.domain == ".example.com"
    assert strict.issues == []

    loose = parse_cookie("tracking=1; SameSite=None")
    assert not loose.secure and not loose.http_only
    assert len(loose.issues) == 3


def test_parse_cookies_skips_blank_headers():
    assert [c.name for c in parse_cookies(["a=1", "", "  ", "b=2"])] == ["a", "b"]


def test_cookie_analyzer_one_finding_per_weak_cookie():
    ctx = make_context(http_data={"set_cookies": [
        "sid=abc; Secure; HttpOnly; SameSite=Lax",
        "tracking=1; Path=/",
    ]})
    findings = CookieAnalyzer().run(ctx)
    assert [f.id for f in findings] == ["vuln-cookie-tracking"]
    assert findings[0].category == "Cookies"
    assert findings[0].severity == "medium"


def _with_ports(ports, headers=None):
    ctx = make_context(http_data={"headers": headers or {}})
    ctx.engine_results["ports"] = EngineResult(engine_name="ports", data={"open_ports": ports, "scanned": 21})
    return ctx


def test_port_risk_flags_dangerous_services():
    ctx = _with_ports([
        PortResult(80, "HTTP", "open", "info"),
        PortResult(22, "SSH", "open", "medium"),
        PortResult(110, "POP3", "open", "high"),
        PortResult(3306, "MySQL", "open", "critical", banner="5.7.33"),
    ])
    findings = _by_id(PortRiskAnalyzer().run(ctx))

    assert set(findings) == {"vuln-port-110", "vuln-port-3306"}
    assert findings["vuln-port-3306"].severity == "critical"
    assert findings["vuln-port-110"].severity == "high"
    assert "Banner: 5.7.33" in findings["vuln-port-3306"].description


def test_port_risk_behind_cloudflare():
    ctx = _with_ports(
        [PortResult(443, "HTTPS", "open", "info"), PortResult(2083, "cPanel-SSL", "open", "high"),
         PortResult(8443, "HTTPS-Alt", "open", "low")],
        headers={"server": "cloudflare", "cf-ray": "8a1b2c3d4e"},
    )
    findings = PortRiskAnalyzer().run(ctx)

    assert [f.id for f in findings] == ["vuln-cloudflare-ports"]
    assert findings[0].severity == "info"
    assert "2083, 8443" in findings[0].title


def _with_tls(version="TLSv1.3", days=200):
    ctx = make_context()
    ctx.engine_results["ssl"] = EngineResult(engine_name="ssl", data={"tls": TlsResult(
        version=version, cipher="TLS_AES_256_GCM_SHA384", cipher_bits=256,
        valid_from="2025-01-01", valid_to="2026-12-31", issuer="CA", subject="example.com",
        days_until_expiry=days, grade="A",
    )})
    return ctx


def test_ssl_analyzer_certificate_lifecycle():
    assert _by_id(SSLAnalyzer().run(_with_tls(days=0)))["vuln-tls-expired"].severity == "critical"
    assert _by_id(SSLAnalyzer().run(_with_tls(days=12)))["vuln-tls-expiring"].severity == "high"
    assert SSLAnalyzer().run(_with_tls(days=31)) == []


def test_ssl_analyzer_obsolete_protocol():
    findings = _by_id(SSLAnalyzer().run(_with_tls(version="TLSv1.1")))
    assert findings["vuln-tls-old"].cve == "CVE-2014-3566"


def test_ssl_analyzer_skipped_without_tls_data():
    assert SSLAnalyzer().run(make_context()) == []
