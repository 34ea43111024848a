# siteaudit/scanner/engines/dns_engine.py
"""
DNS reconnaissance engine.

Queries two fixed public resolvers (never the local/ISP resolver) with
dnspython's async resolver.

What this engine collects:
    - A, AAAA, MX, NS, TXT, CNAME, SOA records for the hostname
    - TXT records classified by prefix into SPF / DMARC / DKIM / TXT
    - The DMARC record at _dmarc.<mail domain>
    - A DKIM record, found by trying common selectors (TXT, then CNAME)
      until the first hit
    - An email-auth summary where every mechanism is either "present" or
      "absent". DKIM absence is inconclusive: a provider may use a selector
      that is not in the list.

Output data structure (stored in EngineResult.data):
    {
        "records": [DnsRecord(type="A", value="1.2.3.4"), ...],
        "mail_domain": "example.com",
        "email_auth": {
            "spf":   {"status": "present", "record": "v=spf1 ... -all", "all_qualifier": "-"},
            "dmarc": {"status": "present", "record": "v=DMARC1; p=reject; ...",
                      "policy": "reject", "rua": "mailto:..."},
            "dkim":  {"status": "absent", "selectors_tried": 31, "note": "..."}
        }
    }

Config options:
    nameservers: list[str] — resolvers to query (default: 8.8.8.8, 1.1.1.1)
    timeout:     float     — per-query timeout (default: 5)
    lifetime:    float     — total time per resolution (default: 10)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver

from siteaudit.scanner.base import AuditContext, BaseEngine, EngineResult
from siteaudit.scanner.models import DnsRecord

logger = logging.getLogger(__name__)

RECORD_TYPES = ["A", "AAAA", "MX", "NS", "TXT", "CNAME", "SOA"]

# Common DKIM selectors to probe
DKIM_SELECTORS = [
    "default", "google", "selector1", "selector2",  # Google / Microsoft
    "k1", "k2", "k3",                                # Mailchimp
    "s1", "s2",                                       # Generic
    "dkim", "mail", "email",                          # Common
    "mandrill", "mxvault", "everlytickey1", "cm",     # ESPs
    "smtp", "ses", "amazonses",                       # AWS SES
    "postmark", "pm",                                 # Postmark
    "mailjet", "turbo-smtp",                          # Others
    "protonmail", "protonmail2", "protonmail3",       # Proton
    "zendesk1", "zendesk2",                           # Zendesk
    "sendgrid", "smtpapi",                            # SendGrid
    "hubspot",                                        # HubSpot
]

DKIM_ABSENT_NOTE = (
    "No DKIM record found for any common selector. This is inconclusive: "
    "the mail provider may sign with a non-standard selector."
)

MAX_TXT_CHARS = 200


def make_resolver(nameservers: List[str], timeout: float, lifetime: float) -> dns.asyncresolver.Resolver:
    resolver = dns.asyncresolver.Resolver(configure=False)
    resolver.nameservers = list(nameservers)
    resolver.timeout = timeout
    resolver.lifetime = lifetime
    return resolver


def _format_rdata(rdtype: str, rdata: Any) -> str:
    if rdtype == "TXT":
        return b"".join(rdata.strings).decode("utf-8", errors="replace")
    if rdtype == "MX":
        return f"{rdata.preference} {str(rdata.exchange).rstrip('.')}"
    if rdtype == "SOA":
        return f"{str(rdata.mname).rstrip('.')} {str(rdata.rname).rstrip('.')} (serial: {rdata.serial})"
    return str(rdata).rstrip(".")


async def query(resolver: dns.asyncresolver.Resolver, name: str, rdtype: str) -> List[str]:
    """Resolve one record type. Any DNS failure returns an empty list."""
    try:
        answers = await resolver.resolve(name, rdtype)
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers):
        return []
    except dns.exception.DNSException as e:
        logger.debug(f"DNS query failed for {name} {rdtype}: {e}")
        return []
    return [_format_rdata(rdtype, r) for r in answers]


def classify_txt(value: str) -> str:
    if value.startswith("v=spf1"):
        return "SPF"
    if value.startswith("v=DMARC1"):
        return "DMARC"
    if value.startswith("v=DKIM1"):
        return "DKIM"
    return "TXT"


def mail_domain_for(hostname: str) -> str:
    """Email auth lives on the domain, not on the "www." web host."""
    return hostname[4:] if hostname.startswith("www.") else hostname


def parse_spf_all(record: str) -> Optional[str]:
    """Qualifier of the terminal "all" mechanism ("+", "-", "~", "?"), if any."""
    for part in record.split()[1:]:
        part = part.lower()
        if part.endswith("all") and len(part) <= 4:
            prefix = part[:-3]
            return prefix or "+"
    return None


def parse_dmarc(record: str) -> Dict[str, str]:
    tags: Dict[str, str] = {}
    for part in record.split(";"):
        if "=" not in part:
            continue
        tag, value = part.split("=", 1)
        tags[tag.strip().lower()] = value.strip()
    return tags


class DNSEngine(BaseEngine):

    @property
    def name(self) -> str:
        return "dns"

    async def execute(self, ctx: AuditContext, config: Dict[str, Any]) -> EngineResult:
        result = EngineResult(engine_name=self.name)
        hostname = ctx.target.hostname
        mail_domain = mail_domain_for(hostname)

        resolver = make_resolver(
            config.get("nameservers", ["8.8.8.8", "1.1.1.1"]),
            float(config.get("timeout", 5)),
            float(config.get("lifetime", 10)),
        )

        # --- Standard record types, all at once ---
        answers = await asyncio.gather(*(query(resolver, hostname, t) for t in RECORD_TYPES))

        records: List[DnsRecord] = []
        for rdtype, values in zip(RECORD_TYPES, answers):
            for value in values:
                if rdtype == "TXT":
                    kind = classify_txt(value)
                    records.append(DnsRecord(kind, value if kind != "TXT" else value[:MAX_TXT_CHARS]))
                else:
                    records.append(DnsRecord(rdtype, value))

        # SPF may live on the mail domain when the target is the www host
        spf_records = [r.value for r in records if r.type == "SPF"]
        if not spf_records and mail_domain != hostname:
            spf_records = [v for v in await query(resolver, mail_domain, "TXT") if classify_txt(v) == "SPF"]
            records.extend(DnsRecord("SPF", v) for v in spf_records)

        # --- DMARC ---
        dmarc_records = [
            v for v in await query(resolver, f"_dmarc.{mail_domain}", "TXT")
            if v.startswith("v=DMARC1")
        ]
        records.extend(DnsRecord("DMARC", v) for v in dmarc_records)

        # --- DKIM ---
        dkim = None
        if not any(r.type == "DKIM" for r in records):
            dkim = await self._find_dkim(resolver, mail_domain)
            if dkim:
                records.append(DnsRecord("DKIM", f"{dkim['selector']}._domainkey: {dkim['record']}"))

        email_auth = self._summarize(records, spf_records, dmarc_records, dkim)

        result.data = {
            "records": records,
            "mail_domain": mail_domain,
            "email_auth": email_auth,
        }
        logger.info(
            f"DNSEngine: {hostname} {len(records)} records, "
            f"spf={email_auth['spf']['status']} dmarc={email_auth['dmarc']['status']} "
            f"dkim={email_auth['dkim']['status']}"
        )
        return result

    async def _find_dkim(
        self,
        resolver: dns.asyncresolver.Resolver,
        domain: str,
    ) -> Optional[Dict[str, str]]:
        """Try each selector (TXT, then CNAME); stop at the first hit."""
        for selector in DKIM_SELECTORS:
            name = f"{selector}._domainkey.{domain}"
            for value in await query(resolver, name, "TXT"):
                if "p=" in value or value.startswith("v=DKIM1"):
                    return {"selector": selector, "record": value[:MAX_TXT_CHARS]}
            cname = await query(resolver, name, "CNAME")
            if cname:
                return {"selector": selector, "record": f"CNAME {cname[0]}"}
        return None

    def _summarize(
        self,
        records: List[DnsRecord],
        spf_records: List[str],
        dmarc_records: List[str],
        dkim: Optional[Dict[str, str]],
    ) -> Dict[str, Dict[str, Any]]:
        summary: Dict[str, Dict[str, Any]] = {}

        if spf_records:
            summary["spf"] = {
                "status": "present",
                "record": spf_records[0],
                "count": len(spf_records),
                "all_qualifier": parse_spf_all(spf_records[0]),
            }
        else:
            summary["spf"] = {"status": "absent"}

        if dmarc_records:
            tags = parse_dmarc(dmarc_records[0])
            summary["dmarc"] = {
                "status": "present",
                "record": dmarc_records[0],
                "policy": tags.get("p", "").lower() or None,
                "rua": tags.get("rua"),
            }
        else:
            summary["dmarc"] = {"status": "absent"}

        existing = [r for r in records if r.type == "DKIM"]
        if dkim:
            summary["dkim"] = {"status": "present", "selector": dkim["selector"], "record": dkim["record"]}
        elif existing:
            summary["dkim"] = {"status": "present", "record": existing[0].value}
        else:
            summary["dkim"] = {
                "status": "absent",
                "selectors_tried": len(DKIM_SELECTORS),
                "note": DKIM_ABSENT_NOTE,
            }

        return summary
