# siteaudit/scanner/summarizer.py
"""
Optional language-model summary of source-leak findings.

When LEAK_SUMMARY_API_KEY is set, the titles and redacted excerpts of the
leak findings are sent to an OpenAI-compatible chat-completions endpoint and
the returned prose is attached to the report as `leakSummary`.

This is pure enrichment. The call goes through the "llm" circuit breaker,
results are cached per leak set, and any failure (missing key, upstream
down, malformed payload, open breaker) simply yields no summary.
"""

from __future__ import annotations

import hashlib
import logging
from typing import List, Optional

import httpx

from siteaudit import config
from siteaudit.scanner.models import SourceLeakFinding
from siteaudit.utils.cache import AuditRegistry, CircuitOpenError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a web security analyst. Summarize the exposed files below for a "
    "site owner in at most five sentences: what leaked, the realistic impact, "
    "and what to do first. Never repeat secret values."
)

MAX_EXCERPT_IN_PROMPT = 300


def build_prompt(hostname: str, leaks: List[SourceLeakFinding]) -> str:
    lines = [f"Target: {hostname}", f"Exposed files: {len(leaks)}", ""]
    for leak in leaks:
        lines.append(f"- [{leak.severity}] {leak.title} ({leak.url})")
        if leak.excerpt:
            lines.append(f"  excerpt: {leak.excerpt[:MAX_EXCERPT_IN_PROMPT]}")
    return "\n".join(lines)


def leak_set_key(leaks: List[SourceLeakFinding]) -> str:
    digest = hashlib.sha256("|".join(sorted(l.id for l in leaks)).encode()).hexdigest()[:16]
    return f"llm:{digest}"


async def summarize_leaks(
    client: httpx.AsyncClient,
    registry: AuditRegistry,
    hostname: str,
    leaks: List[SourceLeakFinding],
) -> Optional[str]:
    if not leaks or not config.LEAK_SUMMARY_API_KEY:
        return None

    async def call_llm() -> Optional[str]:
        resp = await client.post(
            config.LEAK_SUMMARY_API_URL,
            headers={"Authorization": f"Bearer {config.LEAK_SUMMARY_API_KEY}"},
            json={
                "model": config.LEAK_SUMMARY_MODEL,
                "temperature": 0.2,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(hostname, leaks)},
                ],
            },
            timeout=httpx.Timeout(config.LEAK_SUMMARY_TIMEOUT),
        )
        resp.raise_for_status()
        content = resp.json()["choices"][0]["message"]["content"]
        return content.strip() if isinstance(content, str) and content.strip() else None

    try:
        return await registry.cached(f"{leak_set_key(leaks)}:{hostname}", call_llm, upstream="llm")
    except CircuitOpenError as e:
        logger.warning(f"Leak summary skipped: {e}")
    except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
        logger.warning(f"Leak summary failed for {hostname}: {type(e).__name__}: {e}")
    return None
