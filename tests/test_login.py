import asyncio

import httpx

from conftest import make_context
from siteaudit.scanner.probes.login import LoginProbe, candidate_origins, looks_like_login, sso_provider_for
from siteaudit.scanner.target import normalize_target

LOGIN_PAGE = (
    "<html><body><form method='post'>"
    "<input type='email' name='email'><input type='password' name='password'>"
    "</form></body></html>"
)


def login_site(post_status):
    """GET /login serves a password form; POST /login answers post_status(n) on the n-th attempt."""
    posts = []

    def handler(request):
        if request.url.host != "example.com":
            return httpx.Response(404)
        if request.url.path == "/login":
            if request.method == "GET":
                return httpx.Response(200, text=LOGIN_PAGE, headers={"content-type": "text/html"})
            posts.append(request)
            return httpx.Response(post_status(len(posts)), text="Invalid credentials")
        return httpx.Response(404, text="Not Found")

    handler.posts = posts
    return handler


def _ids(findings):
    return [f.id for f in findings]


def test_block_on_fourth_attempt_is_rate_limit_ok():
    handler = login_site(lambda n: 429 if n == 4 else 401)
    ctx = make_context(handler)

    findings = asyncio.run(LoginProbe().run(ctx, {"timeout": 1, "attempts": 10}))
    ids = _ids(findings)

    assert "vuln-rate-limit-ok" in ids
    assert "vuln-no-rate-limit" not in ids
    ok = next(f for f in findings if f.id == "vuln-rate-limit-ok")
    assert "after 4 request(s)" in ok.description


def test_no_block_is_reported_high():
    handler = login_site(lambda n: 401)
    ctx = make_context(handler)

    findings = asyncio.run(LoginProbe().run(ctx, {"timeout": 1, "attempts": 5}))
    no_limit = [f for f in findings if f.id == "vuln-no-rate-limit"]

    assert len(no_limit) == 1
    assert no_limit[0].severity == "high"
    assert "accepted 5 rapid attempts" in no_limit[0].description
    # 5 brute-force attempts plus the two enumeration requests
    assert len(handler.posts) == 7
    assert "vuln-no-captcha" in _ids(findings)


def test_nextauth_redirects_are_not_verifiable():
    def handler(request):
        path = request.url.path
        if request.url.host != "example.com":
            return httpx.Response(404)
        if path == "/api/auth/csrf":
            return httpx.Response(200, json={"csrfToken": "tok123"})
        if path == "/api/auth/callback/credentials":
            return httpx.Response(302, headers={"location": "/login?error=CredentialsSignin"})
        return httpx.Response(404)

    ctx = make_context(handler)
    findings = asyncio.run(LoginProbe().run(ctx, {"timeout": 1, "attempts": 3}))
    ids = _ids(findings)

    assert "vuln-rate-limit-unverifiable" in ids
    assert "vuln-no-rate-limit" not in ids


def test_sso_redirect_is_informational():
    def handler(request):
        if request.url.host == "example.com" and request.url.path == "/login":
            return httpx.Response(302, headers={
                "location": "https://accounts.google.com/o/oauth2/v2/auth?client_id=x",
            })
        return httpx.Response(404)

    ctx = make_context(handler)
    findings = asyncio.run(LoginProbe().run(ctx, {"timeout": 1}))
    assert _ids(findings) == ["vuln-login-sso"]
    assert findings[0].severity == "info"


def test_no_login_found():
    ctx = make_context()
    findings = asyncio.run(LoginProbe().run(ctx, {"timeout": 1}))
    assert _ids(findings) == ["vuln-no-login-found"]


def test_looks_like_login():
    assert looks_like_login(LOGIN_PAGE)
    assert looks_like_login("<script>window.__NEXT_DATA__={callbackUrl:'/'}</script>")
    assert not looks_like_login("<html><body>About us</body></html>")


def test_candidate_origins():
    assert candidate_origins("https", "example.com", "example.com", "https://example.com") == [
        "https://example.com", "https://www.example.com", "https://app.example.com",
    ]
    assert candidate_origins("https", "www.example.com", "example.com", "https://www.example.com") == [
        "https://www.example.com", "https://app.example.com",
    ]


def test_candidate_origins_stay_on_the_registrable_domain():
    t = normalize_target("shop.example.co.uk")
    origins = candidate_origins(t.scheme, t.hostname, t.root_domain, t.origin)
    assert "https://app.example.co.uk" in origins
    assert "https://app.co.uk" not in origins


def test_sso_provider_for():
    assert sso_provider_for("https://login.microsoftonline.com/common/oauth2/authorize") == "login.microsoftonline.com"
    assert sso_provider_for("https://id.example.org/realms/main/protocol") == "id.example.org"
    assert sso_provider_for("https://example.com/dashboard") is None
