import asyncio

import httpx
import pytest

from conftest import mock_client
from siteaudit.scanner import orchestrator
from siteaudit.scanner.analyzers import ALL_ANALYZERS
from siteaudit.scanner.base import BaseEngine, EngineResult
from siteaudit.scanner.engines import ALL_ENGINES
from siteaudit.scanner.models import DnsRecord, PortResult, TlsResult, VulnerabilityFinding
from siteaudit.scanner.orchestrator import AuditInternalError, AuditOrchestrator, dedupe_findings, run_audit
from siteaudit.scanner.probes import ALL_PROBES
from siteaudit.scanner.target import TargetError
from siteaudit.utils.scoring import SEVERITY_ORDER, calc_audit_score


def _fake_engine(name, data):
    class FakeEngine(BaseEngine):
        @property
        def name(self):
            return name

        async def execute(self, ctx, config):
            return EngineResult(engine_name=name, data=data)

    return FakeEngine


def _finding(fid, severity="low"):
    return VulnerabilityFinding(
        id=fid, title=fid, severity=severity, category="Test",
        description="", remediation="", affected_component="",
    )


def test_dedupe_keeps_first_occurrence():
    a1, b, a2 = _finding("a", "low"), _finding("b"), _finding("a", "critical")
    assert dedupe_findings([a1, b, a2]) == [a1, b]


def test_empty_target_raises_before_any_request():
    with pytest.raises(TargetError):
        run_audit("   ")


def test_unreachable_target_stops_early():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    async def scenario():
        async with mock_client(handler) as client:
            return await AuditOrchestrator(client=client, summarize=False).execute("example.com")

    result = asyncio.run(scenario())
    payload = result.to_dict()

    assert result.reachable is False
    assert result.score == 0
    assert result.error == "Unable to reach example.com: Connection refused"
    assert payload["reachable"] is False
    assert payload["vulnerabilities"] == []
    assert isinstance(payload["duration"], int)


def test_internal_fault_carries_empty_report(monkeypatch):
    def explode(ctx):
        raise RuntimeError("analyzer state corrupted")

    monkeypatch.setattr(orchestrator, "analyze_leaks", explode)

    async def scenario():
        async with mock_client(lambda request: httpx.Response(200, text="ok")) as client:
            orch = AuditOrchestrator(client=client, enabled={"header_analyzer"}, summarize=False)
            return await orch.execute("example.com")

    with pytest.raises(AuditInternalError) as excinfo:
        asyncio.run(scenario())

    report = excinfo.value.report
    assert report.target == "example.com"
    assert report.error == "Internal error during the audit"
    assert report.vulnerabilities == []
    assert "RuntimeError" in str(excinfo.value)


def _full_site(request):
    path = request.url.path
    if path in ("", "/"):
        return httpx.Response(200, text="<!doctype html><html><body>Shop</body></html>", headers=[
            ("Server", "nginx/1.18.0"),
            ("Set-Cookie", "tracking=1; Path=/"),
            ("Content-Type", "text/html"),
        ])
    if path == "/.env":
        return httpx.Response(
            200, text="APP_ENV=production\nDB_PASSWORD=supersecret123\n",
            headers={"content-type": "text/plain"},
        )
    return httpx.Response(404, text="Not Found")


def test_full_audit_assembles_report(monkeypatch):
    tls = TlsResult(
        version="TLSv1.2", cipher="ECDHE-RSA-AES128-GCM-SHA256", cipher_bits=128,
        valid_from="2025-01-01", valid_to="2026-12-31", issuer="CA", subject="example.com",
        days_until_expiry=120, grade="B",
    )
    monkeypatch.setitem(ALL_ENGINES, "ssl", _fake_engine("ssl", {"tls": tls}))
    monkeypatch.setitem(ALL_ENGINES, "ports", _fake_engine("ports", {
        "open_ports": [PortResult(443, "HTTPS", "open", "info"), PortResult(3306, "MySQL", "open", "critical")],
        "scanned": 21,
    }))
    monkeypatch.setitem(ALL_ENGINES, "dns", _fake_engine("dns", {
        "records": [DnsRecord("A", "93.184.216.34")],
        "mail_domain": "example.com",
        "email_auth": {
            "spf": {"status": "absent"},
            "dmarc": {"status": "absent"},
            "dkim": {"status": "absent", "selectors_tried": 31},
        },
    }))
    monkeypatch.setitem(ALL_ENGINES, "subdomains", _fake_engine("subdomains", {
        "apex": "example.com", "subdomains": ["www.example.com"], "live_suspicious": [], "ct_available": True,
    }))

    enabled = (set(ALL_ENGINES) | set(ALL_PROBES) | set(ALL_ANALYZERS) | {"compliance"}) - {"tls_downgrade"}

    async def scenario():
        async with mock_client(_full_site) as client:
            return await AuditOrchestrator(client=client, enabled=enabled, summarize=False).execute("example.com")

    result = asyncio.run(scenario())
    ids = [v.id for v in result.vulnerabilities]

    assert result.reachable
    assert result.status_code == 200
    assert result.server_header == "nginx/1.18.0"
    assert len(ids) == len(set(ids))
    for expected in ("vuln-port-3306", "vuln-cookie-tracking", "vuln-no-spf",
                     "vuln-server-header", "vuln-no-login-found"):
        assert expected in ids

    ranks = [SEVERITY_ORDER[v.severity] for v in result.vulnerabilities]
    assert ranks == sorted(ranks)

    assert [l.id for l in result.source_leaks] == ["leak-env-env"]
    assert result.leak_exposure["filesExposed"] == 1
    assert result.leak_summary is None
    assert result.subdomains == ["www.example.com"]
    assert len(result.compliance) == 11
    assert [c.name for c in result.cookies] == ["tracking"]

    expected_score = calc_audit_score(
        [v.severity for v in result.vulnerabilities] + [l.severity for l in result.source_leaks],
        [h.weight for h in result.headers if not h.present],
        "B",
    )
    assert result.score == expected_score

    payload = result.to_dict()
    for key in ("scanDate", "statusCode", "finalUrl", "redirectChain", "tlsInfo", "dnsRecords",
                "emailAuth", "sourceLeaks", "leakExposure", "compliance", "score"):
        assert key in payload
    assert "error" not in payload
    assert "leakSummary" not in payload


def test_exposed_env_costs_one_critical_penalty():
    async def scenario():
        async with mock_client(_full_site) as client:
            orch = AuditOrchestrator(client=client, enabled={"leak", "admin_paths"}, summarize=False)
            return await orch.execute("example.com")

    result = asyncio.run(scenario())
    severities = [v.severity for v in result.vulnerabilities] + [l.severity for l in result.source_leaks]

    assert [l.id for l in result.source_leaks] == ["leak-env-env"]
    assert severities.count("critical") == 1
    assert result.score == calc_audit_score(
        ["critical"], [h.weight for h in result.headers if not h.present], None,
    )


def test_failing_engine_does_not_abort_audit(monkeypatch):
    class BrokenSSL(BaseEngine):
        @property
        def name(self):
            return "ssl"

        async def execute(self, ctx, config):
            raise OSError("handshake exploded")

    monkeypatch.setitem(ALL_ENGINES, "ssl", BrokenSSL)

    async def scenario():
        async with mock_client(lambda request: httpx.Response(200, text="<html>ok</html>")) as client:
            orch = AuditOrchestrator(client=client, enabled={"ssl", "ssl_analyzer", "header_analyzer"}, summarize=False)
            return await orch.execute("example.com")

    result = asyncio.run(scenario())
    assert result.reachable
    assert result.tls_info is None
    assert "tlsInfo" not in result.to_dict()
