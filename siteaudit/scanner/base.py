# siteaudit/scanner/base.py
"""
Base classes for the audit pipeline.

Architecture:
    AuditContext flows through:  Engines → Probes / Analyzers → Report

BaseEngine:   Collects raw facts from the target (HTTP fetch, ports, TLS,
              DNS, leak paths). Engines NEVER classify severity.

BaseProbe:    Actively tests the target (reflection, injection, login
              rate limiting...) and returns findings. Probes may send
              requests, but each one only reads the context.

BaseAnalyzer: Interprets engine data and produces findings. Analyzers
              NEVER touch the network.

Every component fails on its own: an exception inside one engine, probe or
analyzer is logged and degrades to "no data" / "no findings". Nothing a
single component does can abort the audit. Only a failed initial fetch stops it.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from siteaudit.scanner.models import DnsRecord, VulnerabilityFinding
from siteaudit.scanner.soft404 import Soft404Baseline
from siteaudit.scanner.target import Target
from siteaudit.utils.cache import AuditRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def now_utc() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Data structures shared by the whole pipeline
# ---------------------------------------------------------------------------

@dataclass
class EngineResult:
    """
    Standardized output from any engine run.

    Fields:
        engine_name:      Which engine produced this (e.g., "ports", "ssl")
        success:          Did the engine complete without fatal errors?
        data:             Raw collected data; structure varies per engine.
        errors:           Non-fatal error messages (e.g., "timeout on port 8443")
        duration_seconds: Wall-clock time the engine took
    """
    engine_name: str
    success: bool = True
    data: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def add_error(self, msg: str):
        self.errors.append(msg)


@dataclass
class AuditContext:
    """
    The data bag shared by every stage of one audit.

    Created by the orchestrator after target normalization. Engines' results
    land in engine_results; probes and analyzers only read from here.
    """
    target: Target
    client: httpx.AsyncClient
    registry: AuditRegistry

    engine_results: Dict[str, EngineResult] = field(default_factory=dict)
    started_at: Optional[datetime] = None

    # What a nonexistent path looks like on this origin (None: real 404s)
    soft404: Optional[Soft404Baseline] = None

    def get_engine_data(self, engine_name: str) -> Dict[str, Any]:
        """
        Get raw data from a specific engine.
        Returns empty dict if engine didn't run or failed. Never raises.
        """
        result = self.engine_results.get(engine_name)
        if result and result.success:
            return result.data
        return {}

    def has_engine_data(self, engine_name: str) -> bool:
        result = self.engine_results.get(engine_name)
        return result is not None and result.success and bool(result.data)

    # -- Shortcuts over the initial fetch ----------------------------------

    @property
    def body(self) -> str:
        return self.get_engine_data("http").get("body", "")

    @property
    def headers(self) -> Dict[str, str]:
        """Response headers of the final fetch, lower-cased names."""
        return self.get_engine_data("http").get("headers", {})

    @property
    def set_cookies(self) -> List[str]:
        return self.get_engine_data("http").get("set_cookies", [])

    @property
    def final_url(self) -> str:
        return self.get_engine_data("http").get("final_url") or self.target.url

    @property
    def dns_records(self) -> List[DnsRecord]:
        return self.get_engine_data("dns").get("records", [])

    @property
    def proxied(self) -> bool:
        """Target sits behind a CDN reverse proxy (Cloudflare)."""
        headers = self.headers
        if "cloudflare" in headers.get("server", "").lower():
            return True
        return "cf-ray" in headers or "cf-cache-status" in headers


# ---------------------------------------------------------------------------
# Abstract base classes
# ---------------------------------------------------------------------------

class BaseEngine(ABC):
    """
    Abstract base for data collection engines.

    To create a new engine:
        1. Subclass BaseEngine
        2. Set the `name` property (e.g., "ports", "ssl", "dns")
        3. Implement `async execute(ctx, config) -> EngineResult`

    The base class handles timing and error catching automatically.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique engine identifier. Used as key in AuditContext.engine_results."""
        ...

    async def run(self, ctx: AuditContext, config: Dict[str, Any] | None = None) -> EngineResult:
        """
        Execute the engine with automatic timing and error handling.

        DO NOT OVERRIDE THIS METHOD. Override `execute()` instead.

        Always returns an EngineResult, even on failure.
        """
        config = config or {}
        result = EngineResult(engine_name=self.name)
        start = time.monotonic()

        try:
            result = await self.execute(ctx, config)
            result.engine_name = self.name
        except Exception as e:
            logger.exception(f"Engine '{self.name}' failed for {ctx.target.hostname}")
            result = EngineResult(
                engine_name=self.name,
                success=False,
                errors=[f"{type(e).__name__}: {str(e)}"],
            )
        finally:
            result.duration_seconds = round(time.monotonic() - start, 2)

        return result

    @abstractmethod
    async def execute(self, ctx: AuditContext, config: Dict[str, Any]) -> EngineResult:
        ...


class BaseProbe(ABC):
    """
    Abstract base for active vulnerability probes.

    Probes run concurrently with each other. A probe that raises contributes
    no findings; its siblings are unaffected.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    def required_engines(self) -> List[str]:
        """Probe is skipped unless ALL of these engines produced data."""
        return ["http"]

    def can_run(self, ctx: AuditContext) -> bool:
        return all(ctx.has_engine_data(e) for e in self.required_engines)

    async def run(self, ctx: AuditContext, config: Dict[str, Any] | None = None) -> List[VulnerabilityFinding]:
        """DO NOT OVERRIDE THIS METHOD. Override `probe()` instead."""
        if not self.can_run(ctx):
            logger.debug(f"Probe '{self.name}' skipped: missing engine data {self.required_engines}")
            return []

        try:
            findings = await self.probe(ctx, config or {})
        except Exception:
            logger.exception(f"Probe '{self.name}' failed for {ctx.target.hostname}")
            return []

        for f in findings:
            if not f.source:
                f.source = self.name
        return findings

    @abstractmethod
    async def probe(self, ctx: AuditContext, config: Dict[str, Any]) -> List[VulnerabilityFinding]:
        ...


class BaseAnalyzer(ABC):
    """
    Abstract base for finding analyzers.

    To create a new analyzer:
        1. Subclass BaseAnalyzer
        2. Set the `name` property
        3. Set `required_engines` to list which engines you need data from
        4. Implement `analyze(ctx) -> List[VulnerabilityFinding]`
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    def required_engines(self) -> List[str]:
        """
        Which engines must have data for this analyzer to run.
        Uses OR logic: analyzer runs if ANY of these have data.
        """
        return []

    def can_run(self, ctx: AuditContext) -> bool:
        if not self.required_engines:
            return True
        return any(ctx.has_engine_data(e) for e in self.required_engines)

    def run(self, ctx: AuditContext) -> List[VulnerabilityFinding]:
        """DO NOT OVERRIDE THIS METHOD. Override `analyze()` instead."""
        if not self.can_run(ctx):
            logger.debug(
                f"Analyzer '{self.name}' skipped: no data from required engines "
                f"{self.required_engines}"
            )
            return []

        try:
            findings = self.analyze(ctx)
        except Exception:
            logger.exception(f"Analyzer '{self.name}' failed for {ctx.target.hostname}")
            return []

        for f in findings:
            if not f.source:
                f.source = self.name
        return findings

    @abstractmethod
    def analyze(self, ctx: AuditContext) -> List[VulnerabilityFinding]:
        ...
