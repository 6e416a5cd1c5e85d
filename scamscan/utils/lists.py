"""Whitelist / blacklist file helpers."""

from __future__ import annotations

from pathlib import Path

from .domains import canonicalize_domain


def read_list_file(path: Path) -> list[str]:
    """Read non-empty, non-comment lines from a list file (order preserved)."""
    if not path.exists():
        return []

    entries: list[str] = []
    for line in path.read_text().splitlines():
        value = line.strip()
        if not value or value.startswith("#"):
            continue
        entries.append(value)
    return entries


def read_domain_list(path: Path) -> set[str]:
    """Read domain entries from disk, canonicalized to host keys."""
    entries: set[str] = set()
    for value in read_list_file(path):
        normalized = canonicalize_domain(value)
        if normalized:
            entries.add(normalized)
    return entries


def parse_csv(value: str) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]
