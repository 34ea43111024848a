# siteaudit/scanner/target.py
"""Target normalization: raw input → scheme, hostname, origin."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

import tldextract


class TargetError(ValueError):
    """The caller supplied no usable target."""


# Bundled public suffix snapshot only, no download at runtime
_extract = tldextract.TLDExtract(suffix_list_urls=())


@dataclass(frozen=True)
class Target:
    raw: str
    url: str
    scheme: str
    hostname: str
    origin: str

    @property
    def is_https(self) -> bool:
        return self.scheme == "https"

    @property
    def root_domain(self) -> str:
        """Registrable domain ("shop.example.co.uk" → "example.co.uk"). IPs and single-label hosts come back unchanged."""
        ext = _extract(self.hostname)
        if not ext.domain or not ext.suffix:
            return self.hostname
        return f"{ext.domain}.{ext.suffix}"


def normalize_target(raw: str) -> Target:
    """
    Accept a bare host or a full URL. Bare hosts get https:// prepended.

    Raises TargetError for empty input and for input that does not parse
    to a host (bad port, unbalanced IPv6 brackets).
    """
    value = (raw or "").strip()
    if not value:
        raise TargetError("Target is required")

    url = value
    if not url.lower().startswith(("http://", "https://")):
        url = f"https://{url}"

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise TargetError(f"Invalid target '{value}': {e}") from e

    hostname = (parts.hostname or "").lower().rstrip(".")
    if not hostname:
        raise TargetError(f"No host in target '{value}'")

    scheme = parts.scheme.lower()
    netloc = f"[{hostname}]" if ":" in hostname else hostname
    if port:
        netloc = f"{netloc}:{port}"

    return Target(
        raw=value,
        url=url,
        scheme=scheme,
        hostname=hostname,
        origin=f"{scheme}://{netloc}",
    )
