# siteaudit/scanner/probes/admin_paths.py
"""
Administration interface discovery (/wp-admin, /phpmyadmin, /graphql, ...).

These pages are HTML by nature, so a hit needs a 200 whose body has the
interface's expected shape and differs from the soft-404 baseline. A 401
proves the endpoint exists. All hits are folded into one low-severity
reconnaissance finding.

Sensitive files (.env, .git/config, .htaccess, ...) are the leak engine's
job and are reported as source leaks, never here.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Pattern, Tuple

from siteaudit.scanner.base import AuditContext, BaseProbe
from siteaudit.scanner.http import gather_in_batches, response_text, safe_request
from siteaudit.scanner.models import VulnerabilityFinding
from siteaudit.scanner.soft404 import is_soft_404

logger = logging.getLogger(__name__)

_PASSWORD_INPUT = r"<input[^>]*type\s*=\s*[\"']?password"

# path → expected content shape
ADMIN_INTERFACES: Dict[str, Pattern[str]] = {
    "/admin": re.compile(f"{_PASSWORD_INPUT}|admin panel|dashboard", re.IGNORECASE),
    "/administrator": re.compile(f"{_PASSWORD_INPUT}|joomla", re.IGNORECASE),
    "/wp-admin": re.compile(f"{_PASSWORD_INPUT}|wp-login|wordpress", re.IGNORECASE),
    "/wp-login.php": re.compile(f"{_PASSWORD_INPUT}|wordpress", re.IGNORECASE),
    "/panel": re.compile(_PASSWORD_INPUT, re.IGNORECASE),
    "/phpmyadmin": re.compile(r"phpMyAdmin|pma_username", re.IGNORECASE),
    "/pma": re.compile(r"phpMyAdmin|pma_username", re.IGNORECASE),
    "/adminer": re.compile(r"Adminer|adminer\.org", re.IGNORECASE),
    "/cpanel": re.compile(r"cPanel", re.IGNORECASE),
    "/api/debug": re.compile(r"\"(?:debug|stack|trace|env)\"\s*:", re.IGNORECASE),
    "/graphql": re.compile(r"GraphiQL|\"errors\"\s*:\s*\[|graphql-playground", re.IGNORECASE),
    "/swagger": re.compile(r"swagger-ui|\"swagger\"\s*:|\"openapi\"\s*:", re.IGNORECASE),
    "/api-docs": re.compile(r"swagger-ui|\"swagger\"\s*:|\"openapi\"\s*:|redoc", re.IGNORECASE),
}


class AdminPathsProbe(BaseProbe):

    @property
    def name(self) -> str:
        return "admin_paths"

    async def probe(self, ctx: AuditContext, config: Dict[str, Any]) -> List[VulnerabilityFinding]:
        timeout = float(config.get("timeout", 5))
        batch_size = int(config.get("batch_size", 5))
        origin = ctx.target.origin
        baseline = ctx.soft404

        async def check(path: str) -> Optional[Tuple[str, int]]:
            resp = await safe_request(ctx.client, "GET", f"{origin}{path}", timeout=timeout)
            if resp is None:
                return None
            if resp.status_code == 401:
                return path, 401
            if resp.status_code != 200:
                return None

            body = response_text(resp)
            if is_soft_404(baseline, resp.status_code, body):
                return None
            if not ADMIN_INTERFACES[path].search(body):
                return None
            return path, resp.status_code

        outcomes = await gather_in_batches(list(ADMIN_INTERFACES), check, batch_size)
        hits = [o for o in outcomes if o is not None]

        logger.info(f"AdminPathsProbe: {origin} {len(hits)} hit(s) out of {len(ADMIN_INTERFACES)} candidates")
        if not hits:
            return []

        found = [f"{path} ({status})" for path, status in hits]
        return [VulnerabilityFinding(
            id="vuln-admin-paths",
            title=f"{len(found)} administration path(s) detected",
            severity="low",
            category="Reconnaissance",
            description=f"Reachable endpoints: {', '.join(found)}. These are common attack targets.",
            remediation="Restrict administration interfaces by IP, VPN or strong authentication (MFA).",
            affected_component="Endpoints",
        )]
