# siteaudit/scanner/engines/leak_engine.py
"""
Source-leak detection engine.

Probes a fixed catalogue of well-known sensitive paths on the target origin:
version-control metadata, environment files, web server config files,
generated source maps, backup artifacts, dependency/container manifests,
debug endpoints and directory listings. Source maps for the scripts referenced by the home page are added
to the catalogue.

A bare 200 is never enough. Every hit must pass:
    1. a content-shape check specific to the path (an env file has KEY=value
       lines, a git config has [core] sections...)
    2. an HTML rejection, except for categories that are HTML by nature
       (debug pages, directory listings)
    3. the soft-404 baseline comparison

This engine collects raw data. The LeakAnalyzer redacts and classifies it.

Output data structure (stored in EngineResult.data):
    {
        "hits": [
            {
                "path": "/.env",
                "url": "https://example.com/.env",
                "category": "env",
                "severity": "critical",
                "title": "Environment File Exposed (.env)",
                "status": 200,
                "content": "DB_HOST=...\\nDB_PASSWORD=..."
            }
        ],
        "paths_checked": 64
    }

Config options:
    timeout:    float — per-path timeout in seconds (default: 5)
    batch_size: int   — concurrent path probes (default: 5)
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin, urlsplit

from siteaudit.scanner.base import AuditContext, BaseEngine, EngineResult
from siteaudit.scanner.http import gather_in_batches, looks_like_html, response_text, safe_request
from siteaudit.scanner.soft404 import is_soft_404

logger = logging.getLogger(__name__)

# Bytes of each hit kept for the analyzer
MAX_CAPTURE_CHARS = 32768
MAX_DISCOVERED_MAPS = 5

# Categories whose real content is an HTML page
HTML_CATEGORIES = {"debug", "listing"}

Confirm = Callable[[str, bytes], bool]


# ───────────────────────────────────────────────────────────────
# Content-shape checks
# ───────────────────────────────────────────────────────────────

_ENV_LINE_RE = re.compile(r"^(?:export\s+)?[A-Z_][A-Z0-9_]*\s*=", re.MULTILINE)
_SHA_PAIR_RE = re.compile(r"^[0-9a-f]{40} [0-9a-f]{40} ", re.MULTILINE)
_REQUIREMENT_RE = re.compile(r"^[A-Za-z0-9_.\-\[\]]+\s*(?:[=<>~!]=|>|<|$)", re.MULTILINE)


def _confirm_git_head(body: str, _head: bytes) -> bool:
    text = body.strip()
    return text.startswith("ref:") or bool(re.fullmatch(r"[0-9a-f]{40}", text))


def _confirm_git_config(body: str, _head: bytes) -> bool:
    return "[core]" in body or "[remote" in body


def _confirm_git_index(_body: str, head: bytes) -> bool:
    return head.startswith(b"DIRC")


def _confirm_git_log(body: str, _head: bytes) -> bool:
    return bool(_SHA_PAIR_RE.search(body))


def _confirm_svn_entries(body: str, _head: bytes) -> bool:
    first = body.lstrip().split("\n", 1)[0].strip()
    return first.isdigit() or "svn:" in body


def _confirm_sqlite(_body: str, head: bytes) -> bool:
    return head.startswith(b"SQLite format 3")


def _confirm_hgrc(body: str, _head: bytes) -> bool:
    return "[paths]" in body or "[ui]" in body


def _confirm_bzr(body: str, _head: bytes) -> bool:
    return "Bazaar" in body


def _confirm_env(body: str, _head: bytes) -> bool:
    lines = "\n".join(body.strip().split("\n")[:30])
    return len(_ENV_LINE_RE.findall(lines)) >= 2


_HTACCESS_RE = re.compile(
    r"^\s*(?:RewriteEngine|RewriteRule|RewriteCond|Options|Deny from|Allow from|Require|AuthType|AuthUserFile|<IfModule)",
    re.MULTILINE | re.IGNORECASE,
)


def _confirm_htaccess(body: str, _head: bytes) -> bool:
    return bool(_HTACCESS_RE.search(body))


def _confirm_htpasswd(body: str, _head: bytes) -> bool:
    return bool(re.search(r"^[^:\s]+:(?:\$apr1\$|\$2[aby]\$|\{SHA\})", body, re.MULTILINE))


def _confirm_aws_credentials(body: str, _head: bytes) -> bool:
    return "aws_access_key_id" in body.lower()


def _confirm_npmrc(body: str, _head: bytes) -> bool:
    return "registry" in body.lower() or "_authToken" in body or "//npm" in body


def _confirm_docker_config(body: str, _head: bytes) -> bool:
    return '"auths"' in body or '"credsStore"' in body


def _confirm_source_map(body: str, _head: bytes) -> bool:
    return '"version"' in body and '"mappings"' in body and '"sources"' in body


def _confirm_sql_dump(body: str, _head: bytes) -> bool:
    return "CREATE TABLE" in body or "INSERT INTO" in body or "DROP TABLE" in body


def _confirm_archive(_body: str, head: bytes) -> bool:
    # zip, gzip, 7z, rar
    return head.startswith((b"PK\x03\x04", b"\x1f\x8b", b"7z\xbc\xaf", b"Rar!"))


def _confirm_php_source(body: str, _head: bytes) -> bool:
    return "<?php" in body and ("define(" in body or "$" in body)


def _confirm_ds_store(_body: str, head: bytes) -> bool:
    return head[4:8] == b"Bud1"


def _confirm_web_config(body: str, _head: bytes) -> bool:
    return "<configuration" in body.lower()


def _confirm_package_json(body: str, _head: bytes) -> bool:
    return '"name"' in body and ('"version"' in body or '"dependencies"' in body)


def _confirm_package_lock(body: str, _head: bytes) -> bool:
    return '"lockfileVersion"' in body


def _confirm_composer_json(body: str, _head: bytes) -> bool:
    return '"require"' in body


def _confirm_composer_lock(body: str, _head: bytes) -> bool:
    return '"packages"' in body and '"content-hash"' in body


def _confirm_yarn_lock(body: str, _head: bytes) -> bool:
    return "# yarn lockfile" in body or "__metadata:" in body


def _confirm_gemfile(body: str, _head: bytes) -> bool:
    return "source " in body and "gem " in body


def _confirm_requirements(body: str, _head: bytes) -> bool:
    lines = [l for l in body.strip().split("\n")[:40] if l.strip() and not l.startswith("#")]
    return len(lines) >= 2 and sum(1 for l in lines if _REQUIREMENT_RE.match(l.strip())) >= 2


def _confirm_pipfile(body: str, _head: bytes) -> bool:
    return "[packages]" in body


def _confirm_dockerfile(body: str, _head: bytes) -> bool:
    return "FROM " in body and ("RUN " in body or "CMD " in body or "COPY " in body)


def _confirm_docker_compose(body: str, _head: bytes) -> bool:
    return "services:" in body


def _confirm_phpinfo(body: str, _head: bytes) -> bool:
    return "phpinfo()" in body or "PHP Version" in body


def _confirm_server_status(body: str, _head: bytes) -> bool:
    return "Apache Server Status" in body or "Server uptime" in body


def _confirm_server_info(body: str, _head: bytes) -> bool:
    return "Apache Server Information" in body


def _confirm_actuator_env(body: str, _head: bytes) -> bool:
    return '"propertySources"' in body or '"activeProfiles"' in body


def _confirm_expvar(body: str, _head: bytes) -> bool:
    return '"memstats"' in body or '"cmdline"' in body


def _confirm_pprof(body: str, _head: bytes) -> bool:
    return "Types of profiles available" in body


def _confirm_elmah(body: str, _head: bytes) -> bool:
    return "Error Log for" in body


def _confirm_trace_axd(body: str, _head: bytes) -> bool:
    return "Application Trace" in body


def _confirm_django_debug(body: str, _head: bytes) -> bool:
    return "djdt" in body or "Django Debug Toolbar" in body


def _confirm_telescope(body: str, _head: bytes) -> bool:
    return "Laravel Telescope" in body or "telescope-" in body


def _confirm_listing(body: str, _head: bytes) -> bool:
    return bool(re.search(r"<title>\s*(?:Index of /|Directory listing for)", body, re.IGNORECASE))


# ───────────────────────────────────────────────────────────────
# Path catalogue
# ───────────────────────────────────────────────────────────────

def _path(path: str, category: str, severity: str, title: str, confirm: Confirm) -> Dict[str, Any]:
    return {"path": path, "category": category, "severity": severity, "title": title, "confirm": confirm}


LEAK_PATHS: List[Dict[str, Any]] = [
    # -- Version control --
    _path("/.git/HEAD", "vcs", "critical", "Git Repository Exposed", _confirm_git_head),
    _path("/.git/config", "vcs", "critical", "Git Config Exposed", _confirm_git_config),
    _path("/.git/index", "vcs", "critical", "Git Index Exposed", _confirm_git_index),
    _path("/.git/logs/HEAD", "vcs", "high", "Git Reflog Exposed", _confirm_git_log),
    _path("/.svn/entries", "vcs", "high", "SVN Repository Exposed", _confirm_svn_entries),
    _path("/.svn/wc.db", "vcs", "high", "SVN Working Copy Database Exposed", _confirm_sqlite),
    _path("/.hg/hgrc", "vcs", "high", "Mercurial Repository Exposed", _confirm_hgrc),
    _path("/.bzr/branch-format", "vcs", "medium", "Bazaar Repository Exposed", _confirm_bzr),

    # -- Environment / credentials --
    _path("/.env", "env", "critical", "Environment File Exposed (.env)", _confirm_env),
    _path("/.env.local", "env", "critical", "Local Environment File Exposed", _confirm_env),
    _path("/.env.production", "env", "critical", "Production Environment File Exposed", _confirm_env),
    _path("/.env.development", "env", "high", "Development Environment File Exposed", _confirm_env),
    _path("/.env.staging", "env", "high", "Staging Environment File Exposed", _confirm_env),
    _path("/.env.backup", "env", "critical", "Environment Backup File Exposed", _confirm_env),
    _path("/.env.bak", "env", "critical", "Environment Backup File Exposed", _confirm_env),
    _path("/config/.env", "env", "critical", "Environment File Exposed (config/)", _confirm_env),
    _path("/api/.env", "env", "critical", "Environment File Exposed (api/)", _confirm_env),
    _path("/backend/.env", "env", "critical", "Environment File Exposed (backend/)", _confirm_env),
    _path("/.aws/credentials", "env", "critical", "AWS Credentials File Exposed", _confirm_aws_credentials),
    _path("/.npmrc", "env", "high", "npm Configuration Exposed", _confirm_npmrc),
    _path("/.docker/config.json", "env", "critical", "Docker Registry Credentials Exposed", _confirm_docker_config),
    _path("/.htaccess", "config", "medium", "Apache .htaccess Exposed", _confirm_htaccess),
    _path("/.htpasswd", "config", "critical", "Apache Password File Exposed", _confirm_htpasswd),

    # -- Source maps --
    _path("/main.js.map", "sourcemap", "medium", "JavaScript Source Map Exposed", _confirm_source_map),
    _path("/app.js.map", "sourcemap", "medium", "JavaScript Source Map Exposed", _confirm_source_map),
    _path("/bundle.js.map", "sourcemap", "medium", "JavaScript Source Map Exposed", _confirm_source_map),
    _path("/static/js/main.js.map", "sourcemap", "medium", "JavaScript Source Map Exposed", _confirm_source_map),
    _path("/assets/index.js.map", "sourcemap", "medium", "JavaScript Source Map Exposed", _confirm_source_map),
    _path("/js/app.js.map", "sourcemap", "medium", "JavaScript Source Map Exposed", _confirm_source_map),

    # -- Backups / dumps --
    _path("/backup.sql", "backup", "critical", "SQL Backup Exposed", _confirm_sql_dump),
    _path("/dump.sql", "backup", "critical", "SQL Dump Exposed", _confirm_sql_dump),
    _path("/db.sql", "backup", "critical", "SQL Dump Exposed", _confirm_sql_dump),
    _path("/database.sql", "backup", "critical", "SQL Dump Exposed", _confirm_sql_dump),
    _path("/backup.zip", "backup", "high", "Backup Archive Exposed", _confirm_archive),
    _path("/backup.tar.gz", "backup", "high", "Backup Archive Exposed", _confirm_archive),
    _path("/site.zip", "backup", "high", "Site Archive Exposed", _confirm_archive),
    _path("/www.zip", "backup", "high", "Site Archive Exposed", _confirm_archive),
    _path("/wp-config.php.bak", "backup", "critical", "WordPress Config Backup Exposed", _confirm_php_source),
    _path("/wp-config.php~", "backup", "critical", "WordPress Config Backup Exposed", _confirm_php_source),
    _path("/config.php.bak", "backup", "critical", "PHP Config Backup Exposed", _confirm_php_source),
    _path("/index.php.bak", "backup", "high", "PHP Source Backup Exposed", _confirm_php_source),
    _path("/web.config.bak", "backup", "high", "IIS Config Backup Exposed", _confirm_web_config),
    _path("/.DS_Store", "backup", "low", "macOS Directory Metadata Exposed", _confirm_ds_store),

    # -- Dependency / container manifests --
    _path("/package.json", "manifest", "low", "npm Manifest Exposed", _confirm_package_json),
    _path("/package-lock.json", "manifest", "low", "npm Lockfile Exposed", _confirm_package_lock),
    _path("/yarn.lock", "manifest", "low", "Yarn Lockfile Exposed", _confirm_yarn_lock),
    _path("/composer.json", "manifest", "low", "Composer Manifest Exposed", _confirm_composer_json),
    _path("/composer.lock", "manifest", "low", "Composer Lockfile Exposed", _confirm_composer_lock),
    _path("/Gemfile", "manifest", "low", "Gemfile Exposed", _confirm_gemfile),
    _path("/requirements.txt", "manifest", "low", "Python Requirements Exposed", _confirm_requirements),
    _path("/Pipfile", "manifest", "low", "Pipfile Exposed", _confirm_pipfile),
    _path("/Dockerfile", "manifest", "medium", "Dockerfile Exposed", _confirm_dockerfile),
    _path("/docker-compose.yml", "manifest", "high", "Docker Compose File Exposed", _confirm_docker_compose),
    _path("/docker-compose.yaml", "manifest", "high", "Docker Compose File Exposed", _confirm_docker_compose),

    # -- Debug / profiling --
    _path("/phpinfo.php", "debug", "high", "phpinfo() Page Exposed", _confirm_phpinfo),
    _path("/info.php", "debug", "high", "phpinfo() Page Exposed", _confirm_phpinfo),
    _path("/_profiler/phpinfo", "debug", "high", "Symfony Profiler Exposed", _confirm_phpinfo),
    _path("/server-status", "debug", "medium", "Apache Server Status Exposed", _confirm_server_status),
    _path("/server-info", "debug", "medium", "Apache Server Info Exposed", _confirm_server_info),
    _path("/actuator/env", "debug", "critical", "Spring Boot Actuator Environment Exposed", _confirm_actuator_env),
    _path("/debug/vars", "debug", "medium", "Go expvar Endpoint Exposed", _confirm_expvar),
    _path("/debug/pprof/", "debug", "medium", "Go pprof Profiler Exposed", _confirm_pprof),
    _path("/elmah.axd", "debug", "high", "ELMAH Error Log Exposed", _confirm_elmah),
    _path("/trace.axd", "debug", "high", "ASP.NET Trace Exposed", _confirm_trace_axd),
    _path("/__debug__/", "debug", "medium", "Django Debug Toolbar Exposed", _confirm_django_debug),
    _path("/telescope/requests", "debug", "high", "Laravel Telescope Exposed", _confirm_telescope),

    # -- Directory listings --
    _path("/uploads/", "listing", "medium", "Directory Listing Enabled (uploads)", _confirm_listing),
    _path("/backup/", "listing", "high", "Directory Listing Enabled (backup)", _confirm_listing),
    _path("/backups/", "listing", "high", "Directory Listing Enabled (backups)", _confirm_listing),
    _path("/logs/", "listing", "high", "Directory Listing Enabled (logs)", _confirm_listing),
    _path("/files/", "listing", "medium", "Directory Listing Enabled (files)", _confirm_listing),
    _path("/tmp/", "listing", "medium", "Directory Listing Enabled (tmp)", _confirm_listing),
]

_SCRIPT_SRC_RE = re.compile(r"<script[^>]+src\s*=\s*[\"']([^\"'#?]+\.js)(?:\?[^\"']*)?[\"']", re.IGNORECASE)


def discover_source_maps(body: str, page_url: str, origin: str) -> List[Dict[str, Any]]:
    """Catalogue entries for the .map of each same-origin script on the page."""
    origin_host = urlsplit(origin).hostname
    known = {p["path"] for p in LEAK_PATHS}
    found: List[Dict[str, Any]] = []

    for src in _SCRIPT_SRC_RE.findall(body or ""):
        url = urljoin(page_url, src)
        parts = urlsplit(url)
        if parts.hostname != origin_host:
            continue
        path = f"{parts.path}.map"
        if path in known:
            continue
        known.add(path)
        found.append(_path(path, "sourcemap", "medium", "JavaScript Source Map Exposed", _confirm_source_map))
        if len(found) >= MAX_DISCOVERED_MAPS:
            break
    return found


class LeakEngine(BaseEngine):

    @property
    def name(self) -> str:
        return "leak"

    async def execute(self, ctx: AuditContext, config: Dict[str, Any]) -> EngineResult:
        result = EngineResult(engine_name=self.name)
        timeout = float(config.get("timeout", 5))
        batch_size = int(config.get("batch_size", 5))
        origin = ctx.target.origin
        baseline = ctx.soft404

        catalogue = LEAK_PATHS + discover_source_maps(ctx.body, ctx.final_url, origin)

        async def check(entry: Dict[str, Any]) -> Optional[Dict[str, Any]]:
            url = f"{origin}{entry['path']}"
            resp = await safe_request(ctx.client, "GET", url, timeout=timeout)
            if resp is None or resp.status_code != 200:
                return None

            body = response_text(resp)
            head = resp.content[:16]

            if entry["category"] not in HTML_CATEGORIES and looks_like_html(
                body, resp.headers.get("content-type", "")
            ):
                return None
            if is_soft_404(baseline, resp.status_code, body):
                return None
            if not entry["confirm"](body, head):
                return None

            return {
                "path": entry["path"],
                "url": url,
                "category": entry["category"],
                "severity": entry["severity"],
                "title": entry["title"],
                "status": resp.status_code,
                "content": body[:MAX_CAPTURE_CHARS],
            }

        outcomes = await gather_in_batches(catalogue, check, batch_size)
        hits = [h for h in outcomes if h is not None]

        result.data = {"hits": hits, "paths_checked": len(catalogue)}
        logger.info(
            f"LeakEngine: checked {len(catalogue)} paths on {origin}, "
            f"{len(hits)} confirmed {[h['path'] for h in hits]}"
        )
        return result
