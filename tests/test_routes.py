import pytest

from siteaudit import create_app, extensions
from siteaudit.audit import routes
from siteaudit.extensions import close_extensions, get_registry
from siteaudit.scanner.models import AuditResult
from siteaudit.scanner.orchestrator import AuditInternalError


@pytest.fixture
def app():
    app = create_app()
    app.config["TESTING"] = True
    yield app
    close_extensions(app)


@pytest.fixture
def client(app):
    return app.test_client()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "up and running"}


@pytest.mark.parametrize("body", [{}, {"target": ""}, {"target": "   "}, {"target": 42}])
def test_missing_target_is_a_bad_request(client, body):
    resp = client.post("/audit", json=body)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Target is required"}


def test_non_json_body_is_a_bad_request(client):
    resp = client.post("/audit", data="example.com", content_type="text/plain")
    assert resp.status_code == 400


def test_unreachable_target_is_still_a_report(client, monkeypatch):
    seen = {}

    def fake_run_audit(target, registry=None):
        seen["target"] = target
        seen["registry"] = registry
        return AuditResult.unreachable(target, "2026-01-01T00:00:00+00:00", 12, f"Unable to reach {target}: timed out")

    monkeypatch.setattr(routes, "run_audit", fake_run_audit)
    resp = client.post("/audit", json={"target": "down.example.com"})

    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["reachable"] is False
    assert payload["score"] == 0
    assert payload["error"] == "Unable to reach down.example.com: timed out"
    assert seen["target"] == "down.example.com"
    assert seen["registry"] is not None


def test_registry_is_shared_across_requests(app, client, monkeypatch):
    registries = []

    def fake_run_audit(target, registry=None):
        registries.append(registry)
        return AuditResult(target=target, scan_date="2026-01-01T00:00:00+00:00", reachable=True, score=100)

    monkeypatch.setattr(routes, "run_audit", fake_run_audit)
    client.post("/audit", json={"target": "a.example.com"})
    client.post("/audit", json={"target": "b.example.com"})

    with app.app_context():
        assert registries == [get_registry(), get_registry()]


def test_internal_error_returns_best_effort_report(client, monkeypatch):
    def broken_run_audit(target, registry=None):
        report = AuditResult(target=target, scan_date="2026-01-01T00:00:00+00:00",
                             error="Internal error during the audit")
        raise AuditInternalError("KeyError: 'tls'", report)

    monkeypatch.setattr(routes, "run_audit", broken_run_audit)
    resp = client.post("/audit", json={"target": "example.com"})

    assert resp.status_code == 500
    payload = resp.get_json()
    assert payload["target"] == "example.com"
    assert payload["error"] == "Internal error during the audit"
    assert "KeyError" not in str(payload)


def test_unknown_route_is_json(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Not found"



def test_wrong_method_is_json(client):
    resp = client.get("/audit")
    assert resp.status_code == 405
    assert resp.get_json()["error"] == "Method not allowed"

@pytest.mark.parametrize("target", ["example.com:99999", "https://[::1"])
def test_malformed_target_is_a_bad_request(client, target):
    resp = client.post("/audit", json={"target": target})
    assert resp.status_code == 400
    assert "Invalid target" in resp.get_json()["error"]


def test_registry_is_closed_at_process_exit(monkeypatch):
    hooks = []
    monkeypatch.setattr(extensions.atexit, "register", lambda fn, *args: hooks.append((fn, args)))

    app = create_app()
    registry = app.extensions[extensions.REGISTRY_KEY]
    assert len(hooks) == 1

    fn, args = hooks[0]
    fn(*args)
    assert registry.closed
    assert extensions.REGISTRY_KEY not in app.extensions
