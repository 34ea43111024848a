# siteaudit/scanner/engines/subdomain_engine.py
"""
Subdomain enumeration engine: certificate transparency via crt.sh.

Queries crt.sh for every certificate issued under the apex domain,
deduplicates the names, then live-probes the ones whose first label looks
like a pre-production or internal host (dev, staging, admin...).

crt.sh is slow and often down. The lookup goes through the audit registry:
results are cached per apex, and a "crt.sh" circuit breaker stops calling it
after repeated failures. When it is unavailable the subdomain list is simply
empty.

Output data structure (stored in EngineResult.data):
    {
        "apex": "example.com",
        "subdomains": ["api.example.com", "dev.example.com", ...],
        "live_suspicious": [{"host": "dev.example.com", "status": 200}],
        "ct_available": true
    }

Config options:
    search_url:    str   — crt.sh base URL
    timeout:       float — crt.sh request timeout (default: 15)
    probe_timeout: float — live-probe timeout per host (default: 5)
    max_probes:    int   — suspicious hosts to live-probe (default: 10)
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from siteaudit.scanner.base import AuditContext, BaseEngine, EngineResult
from siteaudit.scanner.http import gather_in_batches, safe_request
from siteaudit.utils.cache import CircuitOpenError

logger = logging.getLogger(__name__)

DOMAIN_RE = re.compile(r"^(?:\*\.)?([a-z0-9-]+\.)+[a-z]{2,63}$", re.IGNORECASE)

SUSPICIOUS_PREFIXES = {
    "dev", "develop", "development", "staging", "stage", "stg", "test", "testing", "qa", "uat",
    "preprod", "pre-prod", "beta", "alpha", "admin", "internal", "intranet", "old", "backup",
    "debug", "sandbox", "demo", "jenkins", "gitlab", "grafana", "kibana",
}


def normalize_name(name: str) -> str:
    name = (name or "").strip().lower().strip(".")
    if name.startswith("*."):
        name = name[2:]
    return name


def in_scope(apex: str, name: str) -> bool:
    return name == apex or name.endswith("." + apex)


def parse_ct_rows(rows: Any, apex: str) -> List[str]:
    """Unique, in-scope, syntactically valid names from crt.sh JSON rows."""
    seen = set()
    if not isinstance(rows, list):
        return []
    for row in rows:
        if not isinstance(row, dict):
            continue
        for line in str(row.get("name_value") or "").splitlines():
            name = normalize_name(line)
            if not name or name == apex or len(name) > 253:
                continue
            if DOMAIN_RE.match(name) and in_scope(apex, name):
                seen.add(name)
    return sorted(seen)


def is_suspicious(name: str, apex: str) -> bool:
    label = name[: -(len(apex) + 1)].split(".")[0] if name != apex else ""
    return label in SUSPICIOUS_PREFIXES or any(label.startswith(f"{p}-") for p in SUSPICIOUS_PREFIXES)


def is_live_status(status: int) -> bool:
    """2xx/3xx answers, or 401/403 (the host exists behind an auth wall)."""
    return 200 <= status < 400 or status in (401, 403)


class SubdomainEngine(BaseEngine):

    @property
    def name(self) -> str:
        return "subdomains"

    async def execute(self, ctx: AuditContext, config: Dict[str, Any]) -> EngineResult:
        result = EngineResult(engine_name=self.name)
        apex = ctx.target.root_domain
        search_url = config.get("search_url", "https://crt.sh/")
        timeout = float(config.get("timeout", 15))
        probe_timeout = float(config.get("probe_timeout", 5))
        max_probes = int(config.get("max_probes", 10))

        async def query_ct() -> List[str]:
            resp = await ctx.client.get(
                search_url,
                params={"q": f"%.{apex}", "output": "json"},
                headers={"Accept": "application/json"},
                timeout=httpx.Timeout(timeout),
            )
            resp.raise_for_status()
            body = (resp.text or "").strip()
            return parse_ct_rows(resp.json(), apex) if body else []

        ct_available = True
        try:
            names = await ctx.registry.cached(f"ct:{apex}", query_ct, upstream="crt.sh")
        except CircuitOpenError as e:
            logger.warning(f"SubdomainEngine: skipping crt.sh for {apex}: {e}")
            names, ct_available = [], False
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"SubdomainEngine: crt.sh lookup failed for {apex}: {type(e).__name__}: {e}")
            names, ct_available = [], False

        suspicious = [n for n in names if is_suspicious(n, apex)][:max_probes]

        async def probe(host: str) -> Optional[Dict[str, Any]]:
            resp = await safe_request(ctx.client, "GET", f"https://{host}/", timeout=probe_timeout)
            if resp is None or not is_live_status(resp.status_code):
                return None
            return {"host": host, "status": resp.status_code}

        live = [r for r in await gather_in_batches(suspicious, probe, 5) if r is not None]

        result.data = {
            "apex": apex,
            "subdomains": names,
            "live_suspicious": live,
            "ct_available": ct_available,
        }
        logger.info(
            f"SubdomainEngine: {apex} {len(names)} name(s) from CT, "
            f"{len(live)}/{len(suspicious)} suspicious host(s) live"
        )
        return result
