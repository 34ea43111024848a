import asyncio
from datetime import datetime, timedelta, timezone

import httpx
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from conftest import mock_client
from siteaudit.scanner.base import BaseEngine, EngineResult
from siteaudit.scanner.engines import ALL_ENGINES
from siteaudit.scanner.engines.ssl_engine import build_tls_result, grade_tls
from siteaudit.scanner.models import PortResult, TlsResult
from siteaudit.scanner.orchestrator import AuditOrchestrator
from siteaudit.utils.scoring import calc_audit_score

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _self_signed(not_before, not_after):
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "example.com")])
    issuer = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example Trust"),
        x509.NameAttribute(NameOID.COMMON_NAME, "Example R1"),
    ])
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(0xABC123)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName("example.com"), x509.DNSName("www.example.com")]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.DER)


def _tls(grade="A+", days=200, version="TLSv1.3"):
    return TlsResult(
        version=version,
        cipher="TLS_AES_256_GCM_SHA384",
        cipher_bits=256,
        valid_from="2025-01-01",
        valid_to="2026-07-20",
        issuer="Example Trust — Example R1",
        subject="example.com",
        days_until_expiry=days,
        grade=grade,
    )


def test_grade_rules():
    assert grade_tls("TLSv1.3", "TLS_AES_256_GCM_SHA384", 60) == "A+"
    assert grade_tls("TLSv1.3", "TLS_CHACHA20_POLY1305_SHA256", 60) == "A"
    assert grade_tls("TLSv1.3", "TLS_AES_128_GCM_SHA256", 10) == "A"
    assert grade_tls("TLSv1.2", "ECDHE-RSA-AES128-GCM-SHA256", 60) == "B"
    assert grade_tls("TLSv1.2", "ECDHE-RSA-AES128-GCM-SHA256", 10) == "B-"
    assert grade_tls("TLSv1", "AES128-SHA", 300) == "F"
    assert grade_tls(None, None, 300) == "C"


def test_expired_certificate_is_always_f():
    assert grade_tls("TLSv1.3", "TLS_AES_256_GCM_SHA384", 0) == "F"
    assert grade_tls("TLSv1.2", "AES", -5) == "F"


def test_build_tls_result_from_certificate():
    der = _self_signed(NOW - timedelta(days=30), NOW + timedelta(days=60))
    tls = build_tls_result(der, ("TLS_AES_256_GCM_SHA384", "TLSv1.3", 256), "TLSv1.3", now=NOW)

    assert tls.version == "TLSv1.3"
    assert tls.cipher == "TLS_AES_256_GCM_SHA384"
    assert tls.cipher_bits == 256
    assert tls.days_until_expiry == 60
    assert tls.grade == "A+"
    assert tls.subject == "example.com"
    assert tls.issuer == "Example Trust — Example R1"
    assert tls.alt_names == ["example.com", "www.example.com"]
    assert tls.serial_number == "ABC123"
    assert tls.valid_to == "2026-03-02"


def test_build_tls_result_expired_certificate():
    der = _self_signed(NOW - timedelta(days=400), NOW - timedelta(days=3))
    tls = build_tls_result(der, ("ECDHE-RSA-AES128-GCM-SHA256", "TLSv1.2", 128), "TLSv1.2", now=NOW)
    assert tls.days_until_expiry == -3
    assert tls.grade == "F"


# ---------------------------------------------------------------------------
# Whole-audit scenarios with the network engines replaced
# ---------------------------------------------------------------------------

def _fake_engine(name, data):
    class FakeEngine(BaseEngine):
        @property
        def name(self):
            return name

        async def execute(self, ctx, config):
            return EngineResult(engine_name=name, data=data)

    return FakeEngine


def _site(headers):
    def handler(request):
        if request.url.path in ("", "/"):
            return httpx.Response(200, text="<!doctype html><html><body>Shop</body></html>", headers=headers)
        return httpx.Response(404, text="Not Found")

    return handler


def _audit(handler, enabled):
    async def scenario():
        async with mock_client(handler) as client:
            orchestrator = AuditOrchestrator(client=client, enabled=enabled, summarize=False)
            return await orchestrator.execute("example.com")

    return asyncio.run(scenario())


def test_bare_site_with_expired_certificate(monkeypatch):
    expired = _tls(grade="F", days=-2, version="TLSv1.2")
    monkeypatch.setitem(ALL_ENGINES, "ssl", _fake_engine("ssl", {"tls": expired}))

    result = _audit(_site({"content-type": "text/html"}), {"ssl", "ssl_analyzer", "header_analyzer"})

    assert result.reachable
    assert result.score < 50
    assert "vuln-tls-expired" in [v.id for v in result.vulnerabilities]
    assert len(result.headers) == 10
    assert all(not h.present for h in result.headers)
    assert result.to_dict()["tlsInfo"]["grade"] == "F"


def test_hardened_site_scores_above_baseline(monkeypatch):
    monkeypatch.setitem(ALL_ENGINES, "ssl", _fake_engine("ssl", {"tls": _tls()}))
    monkeypatch.setitem(ALL_ENGINES, "ports", _fake_engine("ports", {
        "open_ports": [PortResult(port=443, service="HTTPS", state="open", risk="info")],
        "scanned": 21,
    }))
    headers = {
        "content-type": "text/html",
        "strict-transport-security": "max-age=31536000; includeSubDomains",
        "content-security-policy": "default-src 'self'",
    }

    result = _audit(
        _site(headers),
        {"ssl", "ports", "ssl_analyzer", "header_analyzer", "port_risk"},
    )

    assert not any(v.severity == "critical" for v in result.vulnerabilities)
    missing = [h.weight for h in result.headers if not h.present]
    without_tls_bonus = calc_audit_score([v.severity for v in result.vulnerabilities], missing, None)
    assert result.score > without_tls_bonus
    assert result.score == 79
    assert [p.port for p in result.ports] == [443]
