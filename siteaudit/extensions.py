# siteaudit/extensions.py
from __future__ import annotations

import atexit

from flask import Flask, current_app

from siteaudit.utils.cache import AuditRegistry

REGISTRY_KEY = "audit_registry"


def init_extensions(app: Flask) -> AuditRegistry:
    # One registry per app: shared cache and circuit breakers across audits
    registry = AuditRegistry()
    app.extensions[REGISTRY_KEY] = registry
    atexit.register(close_extensions, app)
    return registry


def get_registry() -> AuditRegistry:
    return current_app.extensions[REGISTRY_KEY]


def close_extensions(app: Flask) -> None:
    registry = app.extensions.pop(REGISTRY_KEY, None)
    if registry is not None:
        registry.close()
