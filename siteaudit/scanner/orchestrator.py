# siteaudit/scanner/orchestrator.py
"""
Audit Orchestrator: runs one website audit end to end.

Coordinates the full pipeline:

    1. Normalize the target and build the AuditContext
    2. Fetch the target (http engine). If that fails the audit stops here
       with an "unreachable" report.
    3. Ports, TLS, DNS and the soft-404 baseline, concurrently
    4. Leak and subdomain engines plus every probe, concurrently
    5. Analyzers (pure, in registry order)
    6. Compliance checks
    7. Optional language-model leak summary
    8. Score, sort and assemble the AuditResult

Usage:
    from siteaudit.scanner import AuditOrchestrator

    result = await AuditOrchestrator(registry=registry).execute("example.com")

or synchronously:
    from siteaudit.scanner import run_audit
    result = run_audit("example.com")
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import httpx

from siteaudit import config as app_config
from siteaudit.scanner.analyzers import ALL_ANALYZERS, analyze_leaks, check_headers, parse_cookies
from siteaudit.scanner.base import AuditContext, BaseAnalyzer, BaseEngine, BaseProbe, EngineResult, now_utc
from siteaudit.scanner.compliance import ComplianceChecker
from siteaudit.scanner.engines import ALL_ENGINES
from siteaudit.scanner.http import make_client
from siteaudit.scanner.models import AuditResult, ComplianceCheck, CookieCheck, VulnerabilityFinding, sort_by_severity
from siteaudit.scanner.probes import ALL_PROBES
from siteaudit.scanner.soft404 import capture_baseline
from siteaudit.scanner.summarizer import summarize_leaks
from siteaudit.scanner.target import Target, normalize_target
from siteaudit.utils.cache import AuditRegistry
from siteaudit.utils.scoring import calc_audit_score

logger = logging.getLogger(__name__)

# Engines per phase. "http" is phase 1 on its own.
NETWORK_ENGINES = ["ports", "ssl", "dns"]
CONTENT_ENGINES = ["leak", "subdomains"]


class AuditInternalError(Exception):
    """An unexpected fault escaped the pipeline. Carries a best-effort empty report."""

    def __init__(self, message: str, report: AuditResult):
        super().__init__(message)
        self.report = report


def dedupe_findings(findings: List[VulnerabilityFinding]) -> List[VulnerabilityFinding]:
    """Keep the first finding for each id."""
    seen = set()
    unique: List[VulnerabilityFinding] = []
    for f in findings:
        if f.id in seen:
            continue
        seen.add(f.id)
        unique.append(f)
    return unique


class AuditOrchestrator:
    """
    Stateless between runs apart from the registry it is given. All per-run
    state lives in the AuditContext.

    Args:
        registry:      shared cache / circuit breakers (a private one if None)
        client:        httpx client to use (one is created and closed per run if None)
        engine_config: per-component config, defaults to config.load_engine_config()
        enabled:       names of engines / probes / analyzers to run (all if None).
                       "http" always runs.
        summarize:     request the language-model leak summary when configured
    """

    def __init__(
        self,
        registry: Optional[AuditRegistry] = None,
        client: Optional[httpx.AsyncClient] = None,
        engine_config: Optional[Dict[str, Dict[str, Any]]] = None,
        enabled: Optional[Iterable[str]] = None,
        summarize: bool = True,
    ):
        self.registry = registry or AuditRegistry()
        self.client = client
        self.engine_config = engine_config or app_config.load_engine_config()
        self.enabled = set(enabled) if enabled is not None else None
        self.summarize = summarize

    def _is_enabled(self, name: str) -> bool:
        return self.enabled is None or name in self.enabled

    def _config(self, name: str) -> Dict[str, Any]:
        return dict(self.engine_config.get(name, {}))

    async def execute(self, raw_target: str) -> AuditResult:
        """
        Run the full audit for one target.

        Raises:
            TargetError:        the target is empty or malformed (caller input fault)
            AuditInternalError: an unexpected fault escaped the pipeline
        """
        target = normalize_target(raw_target)
        start = time.monotonic()
        scan_date = now_utc().isoformat()

        owns_client = self.client is None
        client = self.client or make_client()
        try:
            return await self._run(target, client, scan_date, start)
        except Exception as e:
            logger.exception(f"Audit of {target.hostname} aborted by an internal error")
            report = AuditResult(
                target=target.raw,
                scan_date=scan_date,
                duration=_elapsed_ms(start),
                error="Internal error during the audit",
            )
            raise AuditInternalError(f"{type(e).__name__}: {e}", report) from e
        finally:
            if owns_client:
                await client.aclose()

    async def _run(
        self,
        target: Target,
        client: httpx.AsyncClient,
        scan_date: str,
        start: float,
    ) -> AuditResult:
        ctx = AuditContext(
            target=target,
            client=client,
            registry=self.registry,
            started_at=now_utc(),
        )

        # --- 1. Initial fetch ---
        logger.info(f"Audit started for {target.url}")
        http_result = await self._run_engine("http", ctx)
        if not http_result.success:
            error = http_result.errors[0] if http_result.errors else f"Unable to reach {target.raw}"
            logger.warning(f"Audit of {target.hostname} stopped: {error}")
            return AuditResult.unreachable(target.raw, scan_date, _elapsed_ms(start), error)

        # --- 2. Network engines + soft-404 baseline ---
        network = [n for n in NETWORK_ENGINES if self._is_enabled(n)]
        baseline_timeout = self._config("leak").get("timeout")
        outcomes = await asyncio.gather(
            *(self._run_engine(n, ctx) for n in network),
            capture_baseline(client, target.origin, timeout=baseline_timeout),
        )
        ctx.soft404 = outcomes[-1]

        # --- 3. Content engines + probes ---
        content = [n for n in CONTENT_ENGINES if self._is_enabled(n)]
        probes: List[BaseProbe] = [cls() for name, cls in ALL_PROBES.items() if self._is_enabled(name)]
        outcomes = await asyncio.gather(
            *(self._run_engine(n, ctx) for n in content),
            *(p.run(ctx, self._config(p.name)) for p in probes),
        )
        findings: List[VulnerabilityFinding] = []
        for probe, probe_findings in zip(probes, outcomes[len(content):]):
            logger.info(f"Probe '{probe.name}' produced {len(probe_findings)} findings")
            findings.extend(probe_findings)

        # --- 4. Analyzers ---
        for name, analyzer_cls in ALL_ANALYZERS.items():
            if not self._is_enabled(name):
                continue
            analyzer: BaseAnalyzer = analyzer_cls()
            drafts = analyzer.run(ctx)
            logger.info(f"Analyzer '{name}' produced {len(drafts)} findings")
            findings.extend(drafts)

        source_leaks, leak_exposure = analyze_leaks(ctx)
        header_checks = check_headers(ctx.headers)
        cookies = parse_cookies(ctx.set_cookies)

        # --- 5. Compliance ---
        compliance = await self._run_compliance(ctx, cookies)

        # --- 6. Leak summary ---
        leak_summary = None
        if self.summarize and source_leaks:
            leak_summary = await summarize_leaks(client, self.registry, target.hostname, source_leaks)

        # --- 7. Score & assemble ---
        findings = sort_by_severity(dedupe_findings(findings))
        source_leaks = sort_by_severity(source_leaks)

        tls = ctx.get_engine_data("ssl").get("tls")
        score = calc_audit_score(
            [f.severity for f in findings] + [l.severity for l in source_leaks],
            [h.weight for h in header_checks if not h.present],
            tls.grade if tls else None,
        )

        http_data = ctx.get_engine_data("http")
        dns_data = ctx.get_engine_data("dns")
        headers = ctx.headers

        result = AuditResult(
            target=target.raw,
            scan_date=scan_date,
            duration=_elapsed_ms(start),
            reachable=True,
            status_code=http_data.get("status_code"),
            final_url=http_data.get("final_url"),
            redirect_chain=http_data.get("redirect_chain", []),
            server_header=headers.get("server"),
            powered_by=headers.get("x-powered-by"),
            proxied=ctx.proxied,
            headers=header_checks,
            ports=ctx.get_engine_data("ports").get("open_ports", []),
            tls_info=tls,
            dns_records=ctx.dns_records,
            email_auth=dns_data.get("email_auth", {}),
            cookies=cookies,
            vulnerabilities=findings,
            source_leaks=source_leaks,
            leak_exposure=leak_exposure,
            leak_summary=leak_summary,
            compliance=compliance,
            subdomains=ctx.get_engine_data("subdomains").get("subdomains", []),
            score=score,
        )

        counts = {sev: sum(1 for f in findings if f.severity == sev) for sev in ("critical", "high", "medium")}
        logger.info(
            f"Audit of {target.hostname} done in {result.duration}ms: score={score} "
            f"findings={len(findings)} {counts} leaks={len(source_leaks)}"
        )
        return result

    async def _run_engine(self, name: str, ctx: AuditContext) -> EngineResult:
        engine: BaseEngine = ALL_ENGINES[name]()
        result = await engine.run(ctx, self._config(name))
        ctx.engine_results[name] = result

        if result.success:
            logger.info(f"Engine '{name}' completed in {result.duration_seconds}s")
        else:
            logger.warning(f"Engine '{name}' failed: {result.errors}")
        return result

    async def _run_compliance(self, ctx: AuditContext, cookies: List[CookieCheck]) -> List[ComplianceCheck]:
        if not self._is_enabled("compliance"):
            return []
        try:
            return await ComplianceChecker(self._config("compliance")).check(ctx, cookies)
        except Exception:
            logger.exception(f"Compliance checks failed for {ctx.target.hostname}")
            return []


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def run_audit(
    target: str,
    registry: Optional[AuditRegistry] = None,
    client: Optional[httpx.AsyncClient] = None,
    **kwargs: Any,
) -> AuditResult:
    """Synchronous entry point: one event loop per audit."""
    orchestrator = AuditOrchestrator(registry=registry, client=client, **kwargs)
    return asyncio.run(orchestrator.execute(target))
