# siteaudit/config.py
"""
Runtime configuration.

Every tunable is read from the environment once at import time, with a
hard-coded default. Scoring constants are product decisions, not derived
values. They live here as named settings so they can be changed without
touching the aggregator.

load_engine_config() returns the per-component config dicts handed to each
engine / probe, the same way scan profiles feed engine config.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [v.strip() for v in raw.split(",") if v.strip()]


# ── Scoring ──────────────────────────────────────────────────────────
PENALTY_CRITICAL = _env_int("PENALTY_CRITICAL", 15)
PENALTY_HIGH = _env_int("PENALTY_HIGH", 10)
PENALTY_MEDIUM = _env_int("PENALTY_MEDIUM", 5)
PENALTY_LOW = _env_int("PENALTY_LOW", 2)
HEADER_PENALTY_CAP = _env_int("HEADER_PENALTY_CAP", 5)
TLS_BONUS_A_PLUS = _env_int("TLS_BONUS_A_PLUS", 5)
TLS_BONUS_A = _env_int("TLS_BONUS_A", 3)
BASE_SCORE = 100

# ── Concurrency ──────────────────────────────────────────────────────
PORT_BATCH_SIZE = _env_int("PORT_BATCH_SIZE", 7)
PATH_BATCH_SIZE = _env_int("PATH_BATCH_SIZE", 5)

# ── Timeouts (seconds) ───────────────────────────────────────────────
PORT_TIMEOUT = _env_float("PORT_TIMEOUT", 3.0)
BANNER_WAIT = _env_float("BANNER_WAIT", 0.5)
TLS_TIMEOUT = _env_float("TLS_TIMEOUT", 8.0)
DNS_TIMEOUT = _env_float("DNS_TIMEOUT", 5.0)
DNS_LIFETIME = _env_float("DNS_LIFETIME", 10.0)
FETCH_TIMEOUT = _env_float("FETCH_TIMEOUT", 15.0)
PROBE_TIMEOUT = _env_float("PROBE_TIMEOUT", 8.0)
PATH_TIMEOUT = _env_float("PATH_TIMEOUT", 5.0)
CT_TIMEOUT = _env_float("CT_TIMEOUT", 15.0)

# ── Probe behaviour ──────────────────────────────────────────────────
MAX_REDIRECTS = _env_int("MAX_REDIRECTS", 5)
LOGIN_ATTEMPTS = _env_int("LOGIN_ATTEMPTS", 10)
SOFT404_LENGTH_TOLERANCE = _env_float("SOFT404_LENGTH_TOLERANCE", 0.10)
MAX_SUBDOMAIN_PROBES = _env_int("MAX_SUBDOMAIN_PROBES", 10)
DNS_RESOLVERS = _env_list("DNS_RESOLVERS", ["8.8.8.8", "1.1.1.1"])
CT_SEARCH_URL = os.getenv("CT_SEARCH_URL", "https://crt.sh/")

# ── Shared resources ─────────────────────────────────────────────────
CACHE_TTL = _env_int("CACHE_TTL", 300)
CACHE_MAX_ENTRIES = _env_int("CACHE_MAX_ENTRIES", 256)
BREAKER_THRESHOLD = _env_int("BREAKER_THRESHOLD", 3)
BREAKER_RESET = _env_float("BREAKER_RESET", 60.0)

# ── Optional language-model leak summary ─────────────────────────────
LEAK_SUMMARY_API_URL = os.getenv(
    "LEAK_SUMMARY_API_URL", "https://api.mistral.ai/v1/chat/completions"
)
LEAK_SUMMARY_API_KEY = os.getenv("LEAK_SUMMARY_API_KEY")
LEAK_SUMMARY_MODEL = os.getenv("LEAK_SUMMARY_MODEL", "mistral-small-latest")
LEAK_SUMMARY_TIMEOUT = _env_float("LEAK_SUMMARY_TIMEOUT", 15.0)

USER_AGENT = os.getenv("AUDIT_USER_AGENT", "SiteAudit-SecurityAudit/1.0")


def load_engine_config() -> Dict[str, Dict[str, Any]]:
    """Per-component config, keyed by engine / probe name."""
    return {
        "http": {"timeout": FETCH_TIMEOUT, "max_redirects": MAX_REDIRECTS},
        "ports": {
            "timeout": PORT_TIMEOUT,
            "banner_wait": BANNER_WAIT,
            "batch_size": PORT_BATCH_SIZE,
        },
        "ssl": {"timeout": TLS_TIMEOUT, "port": 443},
        "dns": {
            "nameservers": DNS_RESOLVERS,
            "timeout": DNS_TIMEOUT,
            "lifetime": DNS_LIFETIME,
        },
        "leak": {"timeout": PATH_TIMEOUT, "batch_size": PATH_BATCH_SIZE},
        "reflection": {"timeout": PROBE_TIMEOUT},
        "admin_paths": {"timeout": PATH_TIMEOUT, "batch_size": PATH_BATCH_SIZE},
        "login": {"timeout": PATH_TIMEOUT, "attempts": LOGIN_ATTEMPTS},
        "injection": {"timeout": PROBE_TIMEOUT, "batch_size": PATH_BATCH_SIZE},
        "subdomains": {
            "timeout": CT_TIMEOUT,
            "probe_timeout": PATH_TIMEOUT,
            "max_probes": MAX_SUBDOMAIN_PROBES,
            "search_url": CT_SEARCH_URL,
        },
        "tls_downgrade": {"timeout": TLS_TIMEOUT, "port": 443},
        "compliance": {"timeout": PATH_TIMEOUT, "batch_size": PATH_BATCH_SIZE},
    }
