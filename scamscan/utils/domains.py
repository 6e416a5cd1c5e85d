"""Domain and URL normalization utilities."""

from __future__ import annotations

import ipaddress
from urllib.parse import urlparse

import tldextract

# Bundled public-suffix snapshot only; lookups never touch the network.
_extract = tldextract.TLDExtract(suffix_list_urls=())


def ensure_url(value: str) -> str:
    """Return an absolute http(s) URL for a bare host or URL."""
    raw = (value or "").strip()
    if not raw:
        return ""
    lowered = raw.lower()
    if lowered.startswith("http://") or lowered.startswith("https://"):
        return raw
    return f"https://{raw}"


def canonicalize_domain(value: str) -> str:
    """
    Normalize a domain/URL to a canonical host key.

    - Lowercase
    - Strip leading "www."
    - Preserve port (if present)
    - Ignore path/query/fragment
    """
    raw = (value or "").strip()
    if not raw:
        return ""

    candidate = raw if "://" in raw else f"https://{raw}"
    try:
        parsed = urlparse(candidate)
        port = parsed.port
    except ValueError:
        return ""
    host = (parsed.hostname or raw.split("/")[0]).strip().lower().strip(".")
    if not host:
        return ""

    if host.startswith("www.") and len(host) > 4:
        host = host[4:]

    if port:
        host = f"{host}:{port}"

    return host


def _strip_port(host: str) -> str:
    if not host:
        return ""
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


def hostname(value: str) -> str:
    """Bare hostname of a URL (lowercase, no port, www. kept)."""
    try:
        parsed = urlparse(ensure_url(value))
    except ValueError:
        return ""
    return (parsed.hostname or "").lower().strip(".")


def url_path(value: str) -> str:
    try:
        parsed = urlparse(ensure_url(value))
    except ValueError:
        return "/"
    return parsed.path or "/"


def is_ip_host(value: str) -> bool:
    host = hostname(value)
    if not host:
        return False
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def registered_domain(value: str) -> str:
    """Return the registrable domain for a host or URL (best-effort)."""
    host = canonicalize_domain(value)
    if not host:
        return ""
    host = _strip_port(host)
    extracted = _extract(host)
    if extracted.domain and extracted.suffix:
        return f"{extracted.domain}.{extracted.suffix}".lower()
    return host.lower()


def whitelist_contains(value: str, whitelist: set[str]) -> str:
    """Return the matching canonical host if the URL's host is whitelisted, else ""."""
    if not whitelist:
        return ""
    host = _strip_port(canonicalize_domain(value))
    if host and host in whitelist:
        return host
    return ""
