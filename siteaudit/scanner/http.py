# siteaudit/scanner/http.py
"""
Shared async HTTP helpers.

All outbound HTTP goes through one httpx.AsyncClient per audit:
    - certificate verification is off (we audit broken certs, not trust them)
    - redirects are never followed implicitly; callers decide per request

safe_request() is the connectivity-fault boundary: DNS errors, refused
connections, TLS failures and timeouts all come back as None, never raise.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar
from urllib.parse import urljoin

import httpx

from siteaudit import config

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Some origins vary their response by request signature; the final fetch
# looks like a regular desktop browser.
BROWSER_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9,fr;q=0.5",
}

HTML_START_RE = re.compile(r"^\s*(?:<!doctype\s+html|<html|<head|<body)", re.IGNORECASE)

# Max response body kept in memory for analysis (512KB)
MAX_BODY_CHARS = 524288


def make_client(timeout: float = config.PROBE_TIMEOUT) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=False,
        verify=False,
        headers={"User-Agent": config.USER_AGENT},
    )


async def safe_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> Optional[httpx.Response]:
    """Send one request; any transport-level failure returns None."""
    if timeout is not None:
        kwargs["timeout"] = httpx.Timeout(timeout)
    try:
        return await client.request(method, url, **kwargs)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug(f"{method} {url} failed: {type(e).__name__}: {e}")
        return None


async def fetch_follow(
    client: httpx.AsyncClient,
    url: str,
    max_hops: int = 3,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> Optional[httpx.Response]:
    """GET with a bounded number of manually-followed redirects."""
    current = url
    for _ in range(max_hops + 1):
        resp = await safe_request(client, "GET", current, timeout=timeout, **kwargs)
        if resp is None:
            return None
        if resp.is_redirect:
            location = resp.headers.get("location")
            if not location:
                return resp
            current = urljoin(current, location)
            continue
        return resp
    return None


def response_text(resp: Optional[httpx.Response]) -> str:
    if resp is None:
        return ""
    try:
        return resp.text[:MAX_BODY_CHARS]
    except (UnicodeDecodeError, LookupError):
        return resp.content[:MAX_BODY_CHARS].decode("utf-8", errors="replace")


def looks_like_html(body: str, content_type: str = "") -> bool:
    """True for an HTML document, usually a custom error page rather than the real file."""
    if "text/html" in (content_type or "").lower():
        return True
    return bool(HTML_START_RE.match(body[:512] if body else ""))


async def gather_in_batches(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    batch_size: int,
) -> List[Optional[R]]:
    """
    Run fn over items, at most `batch_size` at a time. Each batch completes
    before the next starts. A failing call yields None in its slot.
    """
    items = list(items)
    results: List[Optional[R]] = []
    batch_size = max(1, batch_size)

    for i in range(0, len(items), batch_size):
        batch = items[i:i + batch_size]
        outcomes = await asyncio.gather(*(fn(item) for item in batch), return_exceptions=True)
        for item, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                logger.debug(f"Batched call failed for {item!r}: {outcome}")
                results.append(None)
            else:
                results.append(outcome)
    return results
