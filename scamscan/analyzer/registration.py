"""Domain registration age via RDAP, with API Ninjas whois as a fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import httpx

from ..config import Config
from ..utils.domains import hostname, is_ip_host, registered_domain

logger = logging.getLogger(__name__)

UNKNOWN_AGE_WARNING = "Domain age unknown (Hidden Whois?)"

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y.%m.%d",
    "%Y/%m/%d",
    "%d-%b-%Y",
    "%d.%m.%Y",
)


def _from_epoch(number: float) -> Optional[datetime]:
    seconds = number / 1000 if number > 1e12 else number
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and value.strip().isdigit()


def to_datetime(value: Any) -> Optional[datetime]:
    """Canonical UTC instant from epoch (s or ms), numeric string, date string or a list of those."""
    if value is None or value == "" or isinstance(value, bool):
        return None

    if isinstance(value, (list, tuple)):
        numeric = next((v for v in value if _is_numeric(v)), None)
        if numeric is not None:
            return to_datetime(numeric)
        return to_datetime(value[0]) if value else None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        return _from_epoch(float(value))

    if not isinstance(value, str):
        return None

    text = value.strip()
    if text.isdigit():
        return _from_epoch(float(int(text)))

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def age_in_days(created: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days since `created`; None for missing or future dates."""
    if created is None:
        return None
    now = now or datetime.now(timezone.utc)
    delta = now - created
    if delta.total_seconds() <= 0:
        return None
    return delta.days


def score_age(age_days: Optional[int], bands: Iterable[tuple[int, int, str]]) -> tuple[int, Optional[str]]:
    """(points, warning) for the first band the age falls below."""
    if age_days is None:
        return 0, UNKNOWN_AGE_WARNING
    for max_days, points, template in sorted(bands, key=lambda band: band[0]):
        if age_days < max_days:
            return points, template.format(days=age_days)
    return 0, None


def _extract_vcard_value(vcard_array: object, name: str) -> Optional[str]:
    """First vCard value for a property name (e.g. 'fn')."""
    if not isinstance(vcard_array, list) or len(vcard_array) < 2:
        return None
    entries = vcard_array[1]
    if not isinstance(entries, list):
        return None
    for entry in entries:
        if not isinstance(entry, list) or len(entry) < 4:
            continue
        if str(entry[0]).lower() != name:
            continue
        value = entry[3]
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


@dataclass
class RegistrationRecord:
    """Dates and registrar as reported by one source."""

    source: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    registrar: Optional[str] = None


def parse_rdap(data: object) -> RegistrationRecord:
    record = RegistrationRecord(source="rdap")
    if not isinstance(data, dict):
        return record

    for event in data.get("events") or []:
        if not isinstance(event, dict):
            continue
        action = str(event.get("eventAction") or "").lower()
        when = to_datetime(event.get("eventDate"))
        if action == "registration":
            record.created_at = record.created_at or when
        elif action == "last changed":
            record.updated_at = when
        elif action == "expiration":
            record.expires_at = when

    for entity in data.get("entities") or []:
        if not isinstance(entity, dict):
            continue
        if "registrar" in (entity.get("roles") or []):
            record.registrar = _extract_vcard_value(entity.get("vcardArray"), "fn") or record.registrar
    return record


def parse_api_ninjas(data: object) -> RegistrationRecord:
    record = RegistrationRecord(source="api-ninjas")
    if not isinstance(data, dict):
        return record
    record.created_at = to_datetime(data.get("creation_date") or data.get("created"))
    record.updated_at = to_datetime(data.get("updated_date") or data.get("updated") or data.get("changed"))
    record.expires_at = to_datetime(data.get("expiration_date") or data.get("expires"))
    registrar = data.get("registrar_name") or data.get("registrar")
    record.registrar = str(registrar) if registrar else None
    return record


def rdap_endpoints_for(domain: str) -> list[str]:
    """Return a list of RDAP endpoints to try (ordered)."""
    normalized = (domain or "").strip().lower()
    endpoints = [f"https://rdap.org/domain/{normalized}"]

    tld = normalized.rsplit(".", 1)[-1] if "." in normalized else ""
    if tld in {"com", "net"}:
        endpoints.append(f"https://rdap.verisign.com/{tld}/v1/domain/{normalized}")
    elif tld == "org":
        endpoints.append(f"https://rdap.publicinterestregistry.net/rdap/org/domain/{normalized}")

    endpoints.append(f"https://rdap.iana.org/domain/{normalized}")
    return endpoints


@dataclass
class RegistrationInfo:
    domain: str
    age_days: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    registrar: Optional[str] = None
    source: str = "none"
    risk_score: int = 0
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "domain": self.domain,
            "ageDays": self.age_days,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
            "expiresAt": iso(self.expires_at),
            "registrar": self.registrar,
            "source": self.source,
            "riskScore": self.risk_score,
            "warnings": list(self.warnings),
            "error": self.error,
        }


class RegistrationLookup:
    """Resolves domain age and registrar, scoring young domains."""

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.whois_timeout,
            follow_redirects=True,
            transport=self._transport,
            headers={"User-Agent": "ScamScan/2.0"},
        )

    async def _fetch_rdap(self, client: httpx.AsyncClient, domain: str) -> tuple[Optional[RegistrationRecord], str]:
        last_error = "RDAP lookup failed (all endpoints)"
        for url in rdap_endpoints_for(domain):
            try:
                resp = await client.get(url)
            except httpx.TimeoutException:
                last_error = "RDAP lookup timed out"
                continue
            except httpx.HTTPError as e:
                last_error = f"RDAP lookup failed: {e}"
                continue
            if resp.status_code != 200:
                last_error = f"RDAP lookup failed ({resp.status_code})"
                continue
            try:
                data = resp.json()
            except ValueError:
                last_error = "RDAP returned non-JSON response"
                continue
            return parse_rdap(data), ""
        return None, last_error

    async def _fetch_api_ninjas(self, client: httpx.AsyncClient, domain: str) -> tuple[Optional[RegistrationRecord], str]:
        try:
            resp = await client.get(
                self.config.api_ninjas_whois_url,
                params={"domain": domain},
                headers={"X-Api-Key": self.config.api_ninjas_whois_key},
            )
        except httpx.TimeoutException:
            return None, "Whois lookup timed out"
        except httpx.HTTPError as e:
            return None, f"Whois lookup failed: {e}"
        if resp.status_code != 200:
            return None, f"Whois lookup failed ({resp.status_code})"
        try:
            return parse_api_ninjas(resp.json()), ""
        except ValueError:
            return None, "Whois returned non-JSON response"

    async def lookup(self, value: str, now: Optional[datetime] = None) -> RegistrationInfo:
        host = hostname(value)
        if not host:
            info = RegistrationInfo(domain=value or "", error="No domain to look up")
            info.warnings.append(UNKNOWN_AGE_WARNING)
            return info
        if is_ip_host(host):
            return RegistrationInfo(domain=host, source="skipped")

        domain = registered_domain(host) or host
        info = RegistrationInfo(domain=domain)
        errors: list[str] = []

        async with self._client() as client:
            record, error = await self._fetch_rdap(client, domain)
            if error:
                errors.append(error)
            if (record is None or record.created_at is None) and self.config.api_ninjas_whois_key:
                fallback, error = await self._fetch_api_ninjas(client, domain)
                if error:
                    errors.append(error)
                if fallback is not None and (fallback.created_at or record is None):
                    record = fallback
            elif record is None or record.created_at is None:
                logger.debug("No API_NINJAS_WHOIS_KEY configured; skipping whois fallback for %s", domain)

        if record is not None:
            info.source = record.source
            info.created_at = record.created_at
            info.updated_at = record.updated_at
            info.expires_at = record.expires_at
            info.registrar = record.registrar
        if errors and info.created_at is None:
            info.error = "; ".join(errors)
            logger.info("Registration lookup incomplete for %s: %s", domain, info.error)

        info.age_days = age_in_days(info.created_at, now)
        info.risk_score, warning = score_age(info.age_days, self.config.age_bands)
        if warning:
            info.warnings.append(warning)
        return info
