# siteaudit/scanner/engines/http_engine.py
"""
HTTP fetch & redirect tracking engine.

Follows the redirect chain by hand (bounded hops) so every hop is recorded,
then issues one final GET against the resolved URL with a browser-like
header set to capture the body and headers a visitor would actually get.

This is the only engine whose failure matters to the whole audit: when the
target cannot be fetched at all, the orchestrator stops and returns an
"unreachable" report.

Output data structure (stored in EngineResult.data):
    {
        "reachable": true,
        "status_code": 200,
        "final_url": "https://www.example.com/",
        "redirect_chain": ["https://example.com", "https://www.example.com/"],
        "headers": {"server": "nginx", "content-type": "text/html", ...},
        "set_cookies": ["sid=abc; Path=/; HttpOnly", ...],
        "body": "<!doctype html>...",
        "response_time_ms": 245
    }

Config options:
    timeout:       float — per-request timeout in seconds (default: 15)
    max_redirects: int   — redirect hops to follow (default: 5)
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List
from urllib.parse import urljoin

import httpx

from siteaudit.scanner.base import AuditContext, BaseEngine, EngineResult
from siteaudit.scanner.http import BROWSER_HEADERS, MAX_BODY_CHARS

logger = logging.getLogger(__name__)


def _flatten_headers(headers: httpx.Headers) -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key in headers.keys():
        flat[key.lower()] = ", ".join(headers.get_list(key))
    return flat


class HTTPEngine(BaseEngine):

    @property
    def name(self) -> str:
        return "http"

    async def execute(self, ctx: AuditContext, config: Dict[str, Any]) -> EngineResult:
        result = EngineResult(engine_name=self.name)
        timeout = httpx.Timeout(config.get("timeout", 15))
        max_redirects = int(config.get("max_redirects", 5))

        current = ctx.target.url
        chain: List[str] = [current]

        try:
            # --- Redirect chain ---
            for _ in range(max_redirects):
                resp = await ctx.client.get(current, headers=BROWSER_HEADERS, timeout=timeout)
                if not resp.is_redirect:
                    break
                location = resp.headers.get("location")
                if not location:
                    break
                current = urljoin(current, location)
                chain.append(current)

            # --- Final fetch against the resolved URL ---
            start = time.monotonic()
            resp = await ctx.client.get(current, headers=BROWSER_HEADERS, timeout=timeout)
            elapsed_ms = round((time.monotonic() - start) * 1000)

        except (httpx.HTTPError, httpx.InvalidURL) as e:
            reason = str(e) or type(e).__name__
            logger.info(f"HTTPEngine: {ctx.target.url} unreachable: {reason}")
            result.success = False
            result.add_error(f"Unable to reach {ctx.target.raw}: {reason}")
            result.data = {"reachable": False}
            return result

        body = resp.text[:MAX_BODY_CHARS]

        result.data = {
            "reachable": True,
            "status_code": resp.status_code,
            "final_url": current,
            "redirect_chain": chain if len(chain) > 1 else [],
            "headers": _flatten_headers(resp.headers),
            "set_cookies": resp.headers.get_list("set-cookie"),
            "body": body,
            "response_time_ms": elapsed_ms,
        }

        logger.info(
            f"HTTPEngine: {ctx.target.url} → {current} [{resp.status_code}] "
            f"{len(chain) - 1} redirect(s), {len(body)} chars"
        )
        return result
