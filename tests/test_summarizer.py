import asyncio

import httpx

from conftest import mock_client
from siteaudit import config
from siteaudit.scanner.models import SourceLeakFinding
from siteaudit.scanner.summarizer import build_prompt, leak_set_key, summarize_leaks
from siteaudit.utils.cache import AuditRegistry

LEAKS = [
    SourceLeakFinding(
        id="leak-env-env", leak_type="env", url="https://example.com/.env", severity="critical",
        title="Environment File Exposed (.env)", description="", remediation="",
        excerpt="DB_PASSWORD=supe********",
    ),
]


def _run(handler, registry=None):
    async def scenario():
        async with mock_client(handler) as client:
            return await summarize_leaks(client, registry or AuditRegistry(), "example.com", LEAKS)

    return asyncio.run(scenario())


def test_no_api_key_means_no_call(monkeypatch):
    monkeypatch.setattr(config, "LEAK_SUMMARY_API_KEY", None)
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    assert _run(handler) is None
    assert calls == []


def test_summary_is_returned_and_cached(monkeypatch):
    monkeypatch.setattr(config, "LEAK_SUMMARY_API_KEY", "test-key")
    calls = []

    def handler(request):
        calls.append(request)
        assert request.headers["authorization"] == "Bearer test-key"
        return httpx.Response(200, json={"choices": [{"message": {"content": "  Rotate the DB password.  "}}]})

    registry = AuditRegistry()
    assert _run(handler, registry) == "Rotate the DB password."
    assert _run(handler, registry) == "Rotate the DB password."
    assert len(calls) == 1


def test_upstream_failure_yields_no_summary(monkeypatch):
    monkeypatch.setattr(config, "LEAK_SUMMARY_API_KEY", "test-key")

    assert _run(lambda request: httpx.Response(502)) is None
    assert _run(lambda request: httpx.Response(200, json={"choices": []})) is None


def test_prompt_contains_redacted_excerpt_only():
    prompt = build_prompt("example.com", LEAKS)
    assert "[critical] Environment File Exposed (.env)" in prompt
    assert "supe********" in prompt


def test_leak_set_key_ignores_order():
    other = SourceLeakFinding(
        id="leak-vcs-git-head", leak_type="vcs", url="u", severity="high", title="t",
        description="", remediation="",
    )
    assert leak_set_key([LEAKS[0], other]) == leak_set_key([other, LEAKS[0]])
