# siteaudit/scanner/engines/port_engine.py
"""
TCP port scanning engine.

Tries a plain TCP connect against every port in PORTS_TO_SCAN, a few at a
time. On connect it waits briefly for the service to volunteer a banner,
then closes. A timeout or connection error simply means "not open": this
engine does not try to tell closed from filtered.

What this engine does NOT do:
    - Decide which open ports are a problem (that's the Port Risk Analyzer)

Output data structure (stored in EngineResult.data):
    {
        "open_ports": [PortResult(port=22, service="SSH", state="open",
                                  risk="medium", banner="SSH-2.0-OpenSSH_9.6"), ...],
        "scanned": 21
    }

Config options:
    timeout:     float — connect timeout per port (default: 3)
    banner_wait: float — how long to listen for a banner (default: 0.5)
    batch_size:  int   — concurrent connection attempts (default: 7)
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from siteaudit.scanner.base import AuditContext, BaseEngine, EngineResult
from siteaudit.scanner.http import gather_in_batches
from siteaudit.scanner.models import PortResult

logger = logging.getLogger(__name__)

# (port, service label, risk tier when exposed)
PORTS_TO_SCAN: List[Tuple[int, str, str]] = [
    (21, "FTP", "critical"),
    (22, "SSH", "medium"),
    (23, "Telnet", "critical"),
    (25, "SMTP", "medium"),
    (53, "DNS", "low"),
    (80, "HTTP", "info"),
    (110, "POP3", "high"),
    (143, "IMAP", "high"),
    (443, "HTTPS", "info"),
    (445, "SMB", "critical"),
    (993, "IMAPS", "info"),
    (995, "POP3S", "info"),
    (1433, "MSSQL", "critical"),
    (3306, "MySQL", "critical"),
    (3389, "RDP", "critical"),
    (5432, "PostgreSQL", "critical"),
    (5900, "VNC", "critical"),
    (6379, "Redis", "critical"),
    (8080, "HTTP-Alt", "medium"),
    (8443, "HTTPS-Alt", "low"),
    (27017, "MongoDB", "critical"),
]

MAX_BANNER_CHARS = 200
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


async def _probe_port(
    host: str,
    port: int,
    timeout: float,
    banner_wait: float,
) -> Optional[str]:
    """
    Returns the banner ("" if the service stayed silent) when the port
    accepts a connection, None otherwise.
    """
    try:
        reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError):
        return None

    banner = ""
    try:
        data = await asyncio.wait_for(reader.read(1024), timeout=banner_wait)
        banner = _CONTROL_RE.sub("", data.decode("utf-8", errors="replace")).strip()
    except (OSError, asyncio.TimeoutError):
        pass
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

    return banner[:MAX_BANNER_CHARS]


class PortEngine(BaseEngine):

    @property
    def name(self) -> str:
        return "ports"

    async def execute(self, ctx: AuditContext, config: Dict[str, Any]) -> EngineResult:
        result = EngineResult(engine_name=self.name)
        host = ctx.target.hostname
        timeout = float(config.get("timeout", 3))
        banner_wait = float(config.get("banner_wait", 0.5))
        batch_size = int(config.get("batch_size", 7))

        async def scan(entry: Tuple[int, str, str]) -> Optional[PortResult]:
            port, service, risk = entry
            banner = await _probe_port(host, port, timeout, banner_wait)
            if banner is None:
                return None
            return PortResult(port=port, service=service, state="open", risk=risk, banner=banner or None)

        outcomes = await gather_in_batches(PORTS_TO_SCAN, scan, batch_size)
        open_ports = sorted((p for p in outcomes if p is not None), key=lambda p: p.port)

        result.data = {"open_ports": open_ports, "scanned": len(PORTS_TO_SCAN)}
        logger.info(
            f"PortEngine: {host} {len(open_ports)}/{len(PORTS_TO_SCAN)} open "
            f"{[p.port for p in open_ports]}"
        )
        return result
