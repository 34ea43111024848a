# siteaudit/scanner/soft404.py
"""
Soft-404 baseline.

Many sites answer every unknown path with "200 OK" and their SPA shell or a
custom error page. Before trusting any path hit we fetch one random path that
cannot exist and remember what "not found" looks like; a candidate response
that resembles it is not a hit.
"""

from __future__ import annotations

import hashlib
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx

from siteaudit import config
from siteaudit.scanner.http import response_text, safe_request

logger = logging.getLogger(__name__)

# Volatile fragments (digits: timestamps, request ids, nonces) are dropped
# before fingerprinting so two renders of the same error page hash alike.
_VOLATILE_RE = re.compile(r"\d+|\s+")


def fingerprint(body: str) -> str:
    normalized = _VOLATILE_RE.sub("", body or "").lower()
    return hashlib.sha1(normalized.encode("utf-8", errors="replace")).hexdigest()


@dataclass(frozen=True)
class Soft404Baseline:
    status: int
    length: int
    fingerprint: str

    def matches(self, status: int, body: str, tolerance: float = config.SOFT404_LENGTH_TOLERANCE) -> bool:
        """
        True when (status, body) is indistinguishable from the not-found
        baseline: same status and either the same fingerprint or a length
        within `tolerance` of the baseline length.
        """
        if status != self.status:
            return False
        if fingerprint(body) == self.fingerprint:
            return True
        length = len(body or "")
        allowed = max(self.length * tolerance, 16)
        return abs(length - self.length) <= allowed


async def capture_baseline(
    client: httpx.AsyncClient,
    origin: str,
    timeout: Optional[float] = None,
) -> Optional[Soft404Baseline]:
    """
    Probe one random nonexistent path. Returns None if the origin answers
    it with a real 404 class status (no soft-404 behaviour to guard against)
    or could not be reached.
    """
    path = f"/{uuid.uuid4().hex}-{uuid.uuid4().hex[:8]}.html"
    resp = await safe_request(client, "GET", f"{origin}{path}", timeout=timeout)
    if resp is None:
        return None
    if resp.status_code >= 400:
        return None

    body = response_text(resp)
    logger.debug(f"Soft-404 baseline for {origin}: status={resp.status_code} length={len(body)}")
    return Soft404Baseline(status=resp.status_code, length=len(body), fingerprint=fingerprint(body))


def is_soft_404(
    baseline: Optional[Soft404Baseline],
    status: int,
    body: str,
    tolerance: float = config.SOFT404_LENGTH_TOLERANCE,
) -> bool:
    return baseline is not None and baseline.matches(status, body, tolerance)
