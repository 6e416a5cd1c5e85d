"""Input classification: URL vs. IP vs. blockchain address, and chain family.

Rule order is fixed. Bitcoin and Solana both use base58 with overlapping
lengths, so Bitcoin patterns are always tried first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class InputKind(str, Enum):
    URL = "url"
    WALLET = "wallet"
    CONTRACT = "contract"
    IP = "ip"
    UNKNOWN = "unknown"


class ChainFamily(str, Enum):
    EVM = "evm"
    SOLANA = "solana"
    TRON = "tron"
    TON = "ton"
    BITCOIN = "bitcoin"
    UNKNOWN = "unknown"


IP_RE = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")
EVM_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
TRON_RE = re.compile(r"^T[A-Za-z0-9]{33}$")
TON_RE = re.compile(r"^(?:[A-Za-z0-9_-]{48}|EQ[A-Za-z0-9_-]{46})$")
BTC_LEGACY_RE = re.compile(r"^[13][a-km-zA-HJ-NP-Z1-9]{25,34}$")
BTC_BECH32_RE = re.compile(r"^bc1[a-zA-Z0-9]{39,59}$")
SOLANA_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

# (family, pattern) in precedence order.
ADDRESS_RULES: tuple[tuple[ChainFamily, tuple[re.Pattern, ...]], ...] = (
    (ChainFamily.EVM, (EVM_RE,)),
    (ChainFamily.TRON, (TRON_RE,)),
    (ChainFamily.TON, (TON_RE,)),
    (ChainFamily.BITCOIN, (BTC_LEGACY_RE, BTC_BECH32_RE)),
    (ChainFamily.SOLANA, (SOLANA_RE,)),
)

# Unanchored patterns for pulling addresses out of page text.
EXTRACTION_PATTERNS: tuple[tuple[ChainFamily, re.Pattern], ...] = (
    (ChainFamily.EVM, re.compile(r"0x[a-fA-F0-9]{40}")),
    (ChainFamily.BITCOIN, re.compile(r"bc1[a-zA-Z0-9]{25,39}|[13][a-zA-Z0-9]{25,39}")),
    (ChainFamily.TRON, re.compile(r"T[1-9A-HJ-NP-Za-km-z]{33}")),
    (ChainFamily.SOLANA, re.compile(r"[1-9A-HJ-NP-Za-km-z]{32,44}")),
    (ChainFamily.TON, re.compile(r"(?:EQ|UQ)[A-Za-z0-9_-]{46}")),
    (ChainFamily.TON, re.compile(r"0:[0-9a-fA-F]{64}")),
)

EXPLICIT_KINDS = {kind.value: kind for kind in (InputKind.URL, InputKind.WALLET, InputKind.CONTRACT, InputKind.IP)}
KIND_ALIASES = {"domain": InputKind.URL}
# Inbound type value that asks for detection, same as omitting it.
AUTO_KIND = "auto"


@dataclass(frozen=True)
class ClassifiedInput:
    """A raw query value with its derived kind and chain family."""

    raw_value: str
    kind: InputKind
    chain_family: ChainFamily

    @property
    def is_address(self) -> bool:
        return self.kind in (InputKind.WALLET, InputKind.CONTRACT)


def chain_family_of(value: str) -> ChainFamily:
    """Chain family of an address string, or UNKNOWN."""
    candidate = (value or "").strip()
    if not candidate:
        return ChainFamily.UNKNOWN
    for family, patterns in ADDRESS_RULES:
        if any(p.match(candidate) for p in patterns):
            return family
    return ChainFamily.UNKNOWN


def detect_kind(value: str) -> InputKind:
    """Kind of a raw string. Anything unmatched is checked as a web resource."""
    candidate = (value or "").strip()
    if not candidate:
        return InputKind.UNKNOWN
    if IP_RE.match(candidate):
        return InputKind.IP
    if chain_family_of(candidate) is not ChainFamily.UNKNOWN:
        return InputKind.WALLET
    return InputKind.URL


def resolve_kind(kind: Optional[str]) -> Optional[InputKind]:
    """InputKind for an inbound type value; None for auto, omitted or unknown values."""
    key = (kind or "").strip().lower()
    return EXPLICIT_KINDS.get(key) or KIND_ALIASES.get(key)


def is_supported_kind(kind: Optional[str]) -> bool:
    key = (kind or "").strip().lower()
    return key in ("", AUTO_KIND) or resolve_kind(key) is not None


def classify(value: str, kind: Optional[str] = None) -> ClassifiedInput:
    """Classify a raw value. An explicit `kind` (url|domain|wallet|contract|ip) overrides detection."""
    raw = (value or "").strip()
    explicit = resolve_kind(kind)
    detected = explicit or detect_kind(raw)
    family = chain_family_of(raw) if detected in (InputKind.WALLET, InputKind.CONTRACT) else ChainFamily.UNKNOWN
    return ClassifiedInput(raw_value=raw, kind=detected, chain_family=family)
