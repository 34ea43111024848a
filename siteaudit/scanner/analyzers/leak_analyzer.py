# siteaudit/scanner/analyzers/leak_analyzer.py
"""
Leak Detection Analyzer.

Turns the leak engine's confirmed hits into SourceLeakFindings and measures
the total secret exposure across everything that was captured.

Secrets are redacted before any content reaches a finding: the excerpt
shows the shape of the file, never the credential itself.

Required engine: leak
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Tuple

from siteaudit.scanner.base import AuditContext
from siteaudit.scanner.models import SourceLeakFinding
from siteaudit.scanner.rules import SECRET_RULES, count_matches, redact_secrets

logger = logging.getLogger(__name__)

MAX_EXCERPT_CHARS = 500

CATEGORY_DESCRIPTIONS = {
    "vcs": "Version-control metadata is publicly readable. The full source history can often be rebuilt from it.",
    "env": "An environment file is publicly readable. These files usually hold database passwords and API keys.",
    "config": "A web server configuration file is publicly readable. It reveals access rules and sometimes credential files.",
    "sourcemap": "A JavaScript source map is publicly readable. It exposes the original, unminified front-end source.",
    "backup": "A backup or dump file is publicly readable. It may contain source code or real data.",
    "manifest": "A dependency or container manifest is publicly readable. It reveals the exact stack and versions.",
    "debug": "A debug or profiling endpoint is publicly reachable. It leaks runtime configuration and internals.",
    "listing": "A directory listing is enabled. Every file in the directory can be enumerated and downloaded.",
}

CATEGORY_REMEDIATIONS = {
    "vcs": "Remove the repository metadata from the web root and deny dot-directories at the web server.",
    "env": "Remove the file from the web root immediately and rotate every credential it contains.",
    "config": "Deny dot-files at the web server and rotate any password listed in an exposed .htpasswd.",
    "sourcemap": "Do not deploy .map files to production, or restrict them to authenticated users.",
    "backup": "Delete backup and dump files from the web root and keep them in private storage.",
    "manifest": "Exclude manifests from the deployed artifact or deny them at the web server.",
    "debug": "Disable debug endpoints in production or restrict them by IP.",
    "listing": "Disable automatic indexes (Options -Indexes on Apache, autoindex off on nginx).",
}

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def path_slug(path: str) -> str:
    return _SLUG_RE.sub("-", path.lower()).strip("-") or "root"


def build_source_leaks(hits: List[Dict[str, Any]]) -> List[SourceLeakFinding]:
    """One SourceLeakFinding per confirmed hit, content redacted."""
    leaks: List[SourceLeakFinding] = []
    for hit in hits:
        category = hit.get("category", "backup")
        path = hit.get("path", "")
        content = hit.get("content") or ""
        excerpt = redact_secrets(content[:MAX_EXCERPT_CHARS]).strip() or None

        leaks.append(SourceLeakFinding(
            id=f"leak-{category}-{path_slug(path)}",
            leak_type=category,
            url=hit.get("url", path),
            severity=hit.get("severity", "medium"),
            title=hit.get("title", f"Exposed file: {path}"),
            description=CATEGORY_DESCRIPTIONS.get(category, f"{path} is publicly readable."),
            remediation=CATEGORY_REMEDIATIONS.get(category, f"Remove or restrict access to {path}."),
            excerpt=excerpt,
        ))
    return leaks


def measure_exposure(hits: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Secret occurrences across all captured content, by secret type."""
    labels = {r.id: r.label for r in SECRET_RULES}
    by_type: Dict[str, int] = {}
    files_with_secrets = 0

    for hit in hits:
        counts = count_matches(hit.get("content") or "", SECRET_RULES)
        if counts:
            files_with_secrets += 1
        for rule_id, n in counts.items():
            label = labels.get(rule_id, rule_id)
            by_type[label] = by_type.get(label, 0) + n

    return {
        "filesExposed": len(hits),
        "filesWithSecrets": files_with_secrets,
        "secretCount": sum(by_type.values()),
        "byType": by_type,
    }


def analyze_leaks(ctx: AuditContext) -> Tuple[List[SourceLeakFinding], Dict[str, Any]]:
    """Leak findings and the exposure summary for the report. Empty when the engine failed."""
    hits = ctx.get_engine_data("leak").get("hits", [])
    if not hits:
        return [], {}

    leaks = build_source_leaks(hits)
    exposure = measure_exposure(hits)
    logger.info(
        f"LeakAnalyzer: {ctx.target.hostname} {len(leaks)} leak(s), "
        f"{exposure['secretCount']} secret occurrence(s)"
    )
    return leaks, exposure
