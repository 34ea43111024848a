# =============================================================================
# File: siteaudit/audit/routes.py
# Description: Website security audit endpoint.
#
# Endpoints:
#   POST /audit  {"target": "example.com"}
#
# Responses:
#   200: the report (also when the target is unreachable: reachable=false
#         plus an error string is a negative result, not a failed call)
#   400: missing / empty target
#   500: internal fault, body is a best-effort empty report
# =============================================================================

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from siteaudit.extensions import get_registry
from siteaudit.scanner import AuditInternalError, TargetError, run_audit

logger = logging.getLogger(__name__)

audit_bp = Blueprint("audit", __name__)


@audit_bp.post("/audit")
def audit():
    body = request.get_json(silent=True) or {}
    target = body.get("target")
    if not isinstance(target, str):
        target = ""

    try:
        result = run_audit(target, registry=get_registry())
    except TargetError as e:
        return jsonify(error=str(e)), 400
    except AuditInternalError as e:
        logger.error(f"Audit failed for '{target}': {e}")
        return jsonify(e.report.to_dict()), 500

    return jsonify(result.to_dict()), 200
