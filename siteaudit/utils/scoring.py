# File: siteaudit/utils/scoring.py
# =============================================================================
# Centralized Audit Score Calculator
# =============================================================================
# Single source of truth for the 0–100 security score attached to a report.
#
# Scale (higher is better):
#   100     = no findings, every recommended header present
#   70–99   = minor issues
#   50–70   = significant issues
#   < 50    = critical posture, needs immediate action
#
# Deterministic and side-effect free: the same findings, header checks and TLS
# grade always produce the same score.
# =============================================================================

from __future__ import annotations

from typing import Dict, Iterable, Optional

from siteaudit import config

SEVERITY_ORDER: Dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3, "info": 4}


def severity_penalties() -> Dict[str, int]:
    return {
        "critical": config.PENALTY_CRITICAL,
        "high": config.PENALTY_HIGH,
        "medium": config.PENALTY_MEDIUM,
        "low": config.PENALTY_LOW,
        "info": 0,
    }


def tls_bonus(grade: Optional[str]) -> int:
    if grade == "A+":
        return config.TLS_BONUS_A_PLUS
    if grade == "A":
        return config.TLS_BONUS_A
    return 0


def clamp_score(value: float) -> int:
    return int(max(0, min(100, round(value))))


def calc_audit_score(
    severities: Iterable[str],
    missing_header_weights: Iterable[int],
    tls_grade: Optional[str] = None,
) -> int:
    """
    Start at 100 and:
      - subtract the per-severity penalty for every finding
        (critical 15, high 10, medium 5, low 2, info 0)
      - subtract min(weight, HEADER_PENALTY_CAP) for every missing recommended header
      - add a bonus for TLS grade A+ (5) or A (3)
      - clamp to [0, 100]
    """
    penalties = severity_penalties()
    score = config.BASE_SCORE

    for sev in severities:
        score -= penalties.get(sev, 0)

    for weight in missing_header_weights:
        score -= min(int(weight), config.HEADER_PENALTY_CAP)

    score += tls_bonus(tls_grade)
    return clamp_score(score)

