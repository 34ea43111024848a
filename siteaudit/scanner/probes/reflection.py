# siteaudit/scanner/probes/reflection.py
"""
Reflected-content probe.

Puts a harmless marker containing HTML metacharacters into the common
search parameters and refetches the page. If the marker comes back
verbatim (not entity-encoded) the page reflects input unescaped, which is
the precondition for reflected XSS.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

import httpx

from siteaudit.scanner.base import AuditContext, BaseProbe
from siteaudit.scanner.http import fetch_follow, response_text
from siteaudit.scanner.models import VulnerabilityFinding

logger = logging.getLogger(__name__)

REFLECTION_PARAMS = ["q", "search", "s", "query", "keyword"]


def make_marker() -> str:
    return f"\"'><sa{uuid.uuid4().hex[:10]}>"


class ReflectionProbe(BaseProbe):

    @property
    def name(self) -> str:
        return "reflection"

    async def probe(self, ctx: AuditContext, config: Dict[str, Any]) -> List[VulnerabilityFinding]:
        marker = make_marker()
        url = httpx.URL(ctx.final_url).copy_merge_params({p: marker for p in REFLECTION_PARAMS})

        resp = await fetch_follow(ctx.client, str(url), timeout=config.get("timeout", 8))
        if resp is None:
            return []

        if marker not in response_text(resp):
            return []

        logger.info(f"ReflectionProbe: unescaped reflection on {ctx.final_url}")
        return [VulnerabilityFinding(
            id="vuln-xss-reflected",
            title="Reflected XSS detected",
            severity="critical",
            category="Injection",
            description=(
                f"A marker containing HTML metacharacters sent in the "
                f"{', '.join(REFLECTION_PARAMS)} query parameters is echoed back "
                f"unescaped. An attacker can inject arbitrary JavaScript into the page."
            ),
            remediation=(
                "HTML-encode every value written into the page. Deploy a strict "
                "Content-Security-Policy and validate input server-side."
            ),
            affected_component="URL parameters",
            cvss=8.2,
        )]
