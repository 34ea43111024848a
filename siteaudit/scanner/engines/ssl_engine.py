# siteaudit/scanner/engines/ssl_engine.py
"""
TLS inspection engine.

Opens one raw TLS connection to the target (no chain validation: we want to
see the certificate even when it is invalid) and extracts the negotiated
protocol, cipher and the leaf certificate fields. The DER certificate is
parsed with `cryptography`, since ssl.getpeercert() returns an empty dict
when verification is disabled.

Any connection or parse failure yields no data. TLS inspection is an
enrichment; its absence never fails the audit.

Output data structure (stored in EngineResult.data):
    {
        "tls": TlsResult(version="TLSv1.3", cipher="TLS_AES_256_GCM_SHA384",
                         grade="A+", days_until_expiry=52, ...)
    }

Config options:
    port:    int   — TLS port (default: 443)
    timeout: float — handshake timeout in seconds (default: 8)
"""

from __future__ import annotations

import asyncio
import logging
import math
import ssl
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from cryptography import x509
from cryptography.x509.oid import NameOID

from siteaudit.scanner.base import AuditContext, BaseEngine, EngineResult
from siteaudit.scanner.models import TlsResult

logger = logging.getLogger(__name__)

MAX_ALT_NAMES = 20

# Obsolete versions the downgrade probe tries to negotiate
LEGACY_VERSIONS = {
    "TLSv1": ssl.TLSVersion.TLSv1,
    "TLSv1.1": ssl.TLSVersion.TLSv1_1,
}

Handshake = Tuple[bytes, Optional[tuple], Optional[str]]


def grade_tls(protocol: Optional[str], cipher: Optional[str], days_until_expiry: int) -> str:
    """
    Letter grade from negotiated protocol, cipher and remaining validity.
    Rules are evaluated in order; an expired certificate is always F.
    """
    cipher = cipher or ""
    grade = "C"
    if protocol == "TLSv1.3" and days_until_expiry > 30 and "AES" in cipher:
        grade = "A+"
    elif protocol == "TLSv1.3" and days_until_expiry > 0:
        grade = "A"
    elif protocol == "TLSv1.2" and days_until_expiry > 30:
        grade = "B"
    elif protocol == "TLSv1.2" and days_until_expiry > 0:
        grade = "B-"
    elif protocol in ("TLSv1.1", "TLSv1"):
        grade = "F"
    if days_until_expiry <= 0:
        grade = "F"
    return grade


def _name_attr(name: x509.Name, oid) -> str:
    attrs = name.get_attributes_for_oid(oid)
    return str(attrs[0].value) if attrs else ""


def build_tls_result(
    cert_der: bytes,
    cipher: Optional[tuple],
    protocol: Optional[str],
    now: Optional[datetime] = None,
) -> TlsResult:
    """Turn a DER leaf certificate plus handshake facts into a TlsResult."""
    cert = x509.load_der_x509_certificate(cert_der)
    now = now or datetime.now(timezone.utc)

    not_before = cert.not_valid_before_utc
    not_after = cert.not_valid_after_utc
    days_until_expiry = math.floor((not_after - now).total_seconds() / 86400)

    issuer_parts = [
        _name_attr(cert.issuer, NameOID.ORGANIZATION_NAME),
        _name_attr(cert.issuer, NameOID.COMMON_NAME),
    ]
    issuer = " — ".join(p for p in issuer_parts if p) or "Unknown"
    subject = (
        _name_attr(cert.subject, NameOID.COMMON_NAME)
        or _name_attr(cert.subject, NameOID.ORGANIZATION_NAME)
        or "Unknown"
    )

    alt_names = []
    try:
        san_ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        alt_names = san_ext.value.get_values_for_type(x509.DNSName)
    except x509.ExtensionNotFound:
        pass

    cipher_name = cipher[0] if cipher else "Unknown"
    cipher_bits = int(cipher[2]) if cipher and len(cipher) > 2 and cipher[2] else 0

    return TlsResult(
        version=protocol or "Unknown",
        cipher=cipher_name,
        cipher_bits=cipher_bits,
        valid_from=not_before.date().isoformat(),
        valid_to=not_after.date().isoformat(),
        issuer=issuer,
        subject=subject,
        days_until_expiry=days_until_expiry,
        grade=grade_tls(protocol, cipher_name, days_until_expiry),
        alt_names=list(alt_names)[:MAX_ALT_NAMES],
        serial_number=format(cert.serial_number, "X"),
    )


def _insecure_context() -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


async def _handshake(
    host: str,
    port: int,
    timeout: float,
    context: Optional[ssl.SSLContext] = None,
) -> Handshake:
    """Complete one TLS handshake and return (leaf DER, cipher, protocol)."""
    context = context or _insecure_context()
    reader, writer = await asyncio.wait_for(
        asyncio.open_connection(host, port, ssl=context, server_hostname=host),
        timeout=timeout,
    )
    try:
        ssl_object = writer.get_extra_info("ssl_object")
        der = ssl_object.getpeercert(binary_form=True) if ssl_object else b""
        cipher = ssl_object.cipher() if ssl_object else None
        protocol = ssl_object.version() if ssl_object else None
        return der or b"", cipher, protocol
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ssl.SSLError):
            pass


async def probe_protocol(host: str, port: int, version: str, timeout: float) -> bool:
    """
    True when the server completes a handshake pinned to one legacy
    protocol version. Local OpenSSL builds that refuse the version count
    as "not negotiated".
    """
    pinned = LEGACY_VERSIONS.get(version)
    if pinned is None:
        return False
    try:
        context = _insecure_context()
        context.minimum_version = pinned
        context.maximum_version = pinned
        context.set_ciphers("ALL:@SECLEVEL=0")
        _, _, negotiated = await _handshake(host, port, timeout, context)
    except (OSError, ssl.SSLError, ValueError, asyncio.TimeoutError) as e:
        logger.debug(f"{version} handshake with {host}:{port} refused: {e}")
        return False
    return negotiated == version


class SSLEngine(BaseEngine):

    @property
    def name(self) -> str:
        return "ssl"

    async def execute(self, ctx: AuditContext, config: Dict[str, Any]) -> EngineResult:
        result = EngineResult(engine_name=self.name)
        host = ctx.target.hostname
        port = int(config.get("port", 443))
        timeout = float(config.get("timeout", 8))

        try:
            der, cipher, protocol = await _handshake(host, port, timeout)
        except (OSError, ssl.SSLError, asyncio.TimeoutError) as e:
            logger.debug(f"SSLEngine: no TLS on {host}:{port}: {e}")
            result.success = False
            result.add_error(f"TLS connection to {host}:{port} failed: {e}")
            return result

        if not der:
            result.success = False
            result.add_error(f"No certificate presented by {host}:{port}")
            return result

        try:
            tls = build_tls_result(der, cipher, protocol)
        except ValueError as e:
            logger.debug(f"SSLEngine: unparsable certificate from {host}:{port}: {e}")
            result.success = False
            result.add_error(f"Could not parse certificate: {e}")
            return result

        result.data = {"tls": tls}
        logger.info(
            f"SSLEngine: {host}:{port} {tls.version} {tls.cipher} "
            f"grade={tls.grade} expires_in={tls.days_until_expiry}d"
        )
        return result
