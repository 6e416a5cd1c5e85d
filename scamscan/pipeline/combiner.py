"""Risk combination: sub-analysis outputs -> one score, verdict and warning list.

Pure functions only. The URL path sums registration and content scores; the
address path takes the maximum over signal categories, since on-chain signals
tend to restate the same underlying fact.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Iterator, Optional

from ..analyzer.content import ContentAnalysis
from ..analyzer.registration import RegistrationInfo
from ..classifier import ClassifiedInput, InputKind
from ..config import Config
from ..ledger.base import LedgerSnapshot
from ..ledger.contract import FLAG_TRANSFER_SIMULATION_FAILED
from ..utils.domains import canonicalize_domain, url_path, whitelist_contains

BLACKLIST_WARNING = "CRITICAL: Address found in internal SCAM BLACKLIST."
PARTIAL_URL_WARNING = (
    "Content analysis was not completed for this URL (DNS / network issues); verdict is based on limited data."
)
PARTIAL_CHAIN_WARNING = "On-chain data could not be retrieved from any provider; verdict is based on limited data."
UNKNOWN_INPUT_WARNING = "Unknown input type. Cannot analyze."
HONEYPOT_WARNING = "DETECTED HONEYPOT CONTRACT!"
SIMULATION_WARNING = "Honeypot simulation failed (beta: potential transfer/sell restrictions)."
WHITELIST_SOURCE = "global-url-whitelist"


class Verdict(str, Enum):
    SAFE = "SAFE"
    WARNING = "WARNING"
    SUSPICIOUS = "SUSPICIOUS"
    SCAM = "SCAM"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {Verdict.SAFE: 0, Verdict.WARNING: 1, Verdict.SUSPICIOUS: 2, Verdict.SCAM: 3}


class WarningList:
    """Ordered set of warning strings."""

    def __init__(self, items: Iterable[str] = ()):
        self._items: list[str] = []
        self.extend(items)

    def add(self, message: Optional[str]) -> None:
        if message and message not in self._items:
            self._items.append(message)

    def extend(self, messages: Iterable[str]) -> None:
        for message in messages or ():
            self.add(message)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, message: object) -> bool:
        return message in self._items

    def to_list(self) -> list[str]:
        return list(self._items)


def clamp_score(value: float) -> int:
    return max(0, min(100, int(value)))


def verdict_for(score: int, partial: bool = False, scam_threshold: int = 75, suspicious_threshold: int = 40) -> Verdict:
    """Score band; partial analyses never come out SAFE."""
    if score >= scam_threshold:
        return Verdict.SCAM
    if score >= suspicious_threshold:
        return Verdict.SUSPICIOUS
    if partial:
        return Verdict.WARNING
    return Verdict.SAFE


@dataclass(frozen=True)
class AggregateResult:
    """Final answer for one query."""

    input: str
    kind: InputKind
    risk_score: int
    verdict: Verdict
    warnings: tuple[str, ...] = ()
    details: dict = field(default_factory=dict)
    partial: bool = False
    whitelisted_domain: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "input": self.input,
            "type": self.kind.value,
            "riskScore": self.risk_score,
            "verdict": self.verdict.value,
            "warnings": list(self.warnings),
            "details": copy.deepcopy(self.details),
            "partialAnalysis": self.partial,
        }
        if self.whitelisted_domain:
            data["whitelistedDomain"] = self.whitelisted_domain
        return data


@dataclass
class AddressScore:
    score: int = 0
    warnings: WarningList = field(default_factory=WarningList)
    partial: bool = False
    blacklisted: bool = False


def _verdict(score: int, partial: bool, config: Config) -> Verdict:
    return verdict_for(score, partial, config.scam_threshold, config.suspicious_threshold)


def is_blacklisted(address: str, config: Config) -> bool:
    return (address or "").strip().lower() in config.blacklist


def signal_score(signal: str, config: Config) -> int:
    """Score for a connector signal via the keyword table; first matching row wins."""
    lower = signal.lower()
    for keywords, score in config.signal_keywords:
        if any(keyword in lower for keyword in keywords):
            return score
    return config.default_signal_score


def combine_url(
    classified: ClassifiedInput,
    registration: RegistrationInfo,
    content: ContentAnalysis,
    config: Config,
) -> AggregateResult:
    score = clamp_score(registration.risk_score + content.score)
    warnings = WarningList(registration.warnings)
    warnings.extend(content.warnings)

    partial = content.failed
    if partial:
        warnings.add(PARTIAL_URL_WARNING)

    return AggregateResult(
        input=classified.raw_value,
        kind=classified.kind,
        risk_score=score,
        verdict=_verdict(score, partial, config),
        warnings=tuple(warnings),
        details={"whois": registration.to_dict(), "content": content.to_dict()},
        partial=partial,
    )


def score_snapshots(address: str, snapshots: list[LedgerSnapshot], config: Config) -> AddressScore:
    """Maximum over signal categories. A blacklist hit short-circuits everything else."""
    if is_blacklisted(address, config):
        return AddressScore(score=100, warnings=WarningList([BLACKLIST_WARNING]), blacklisted=True)

    result = AddressScore()
    for snap in snapshots:
        prefix = f"[{snap.network}]"
        check = snap.contract_check

        if snap.is_contract and check is not None:
            if check.is_honeypot:
                result.score = max(result.score, config.honeypot_score)
                result.warnings.add(f"{prefix} {HONEYPOT_WARNING}")
            if FLAG_TRANSFER_SIMULATION_FAILED in check.flags:
                result.score = max(result.score, config.simulation_failure_score)
                result.warnings.add(f"{prefix} {SIMULATION_WARNING}")

        if not snap.is_contract and snap.status == "active":
            for band in config.activity_bands:
                if band["min_tx"] <= snap.tx_count <= band["max_tx"]:
                    result.score = max(result.score, band["score"])
                    if band.get("warning"):
                        result.warnings.add(f"{prefix} {band['warning']}")
                    break

        for signal in snap.scam_signals:
            if not signal:
                continue
            result.warnings.add(f"{prefix} {signal}")
            result.score = max(result.score, signal_score(signal, config))

    if not snapshots or all(not snap.answered for snap in snapshots):
        result.partial = True
        result.warnings.add(PARTIAL_CHAIN_WARNING)

    # quiet or empty addresses land in the low band, never at zero
    result.score = clamp_score(max(result.score, config.baseline_address_score))
    return result


def _on_chain_details(snapshots: list[LedgerSnapshot]) -> dict:
    answered = [s for s in snapshots if s.answered]
    return {
        "provider": answered[0].provider_used if answered else None,
        "type": "contract" if any(s.is_contract for s in snapshots) else "wallet",
        "networks": [s.to_dict() for s in snapshots],
    }


def combine_address(
    classified: ClassifiedInput,
    snapshots: list[LedgerSnapshot],
    config: Config,
) -> AggregateResult:
    scored = score_snapshots(classified.raw_value, snapshots, config)
    details: dict = {"chain": classified.chain_family.value}
    if scored.blacklisted:
        details["blacklisted"] = True
    else:
        details["onChain"] = _on_chain_details(snapshots)

    return AggregateResult(
        input=classified.raw_value,
        kind=classified.kind,
        risk_score=scored.score,
        verdict=_verdict(scored.score, scored.partial, config),
        warnings=tuple(scored.warnings),
        details=details,
        partial=scored.partial,
    )


def combine_unanalyzable(
    classified: ClassifiedInput,
    config: Config,
    reason: str = UNKNOWN_INPUT_WARNING,
) -> AggregateResult:
    """Inputs no sub-analysis can handle: unknown is not evidence of safety."""
    return AggregateResult(
        input=classified.raw_value,
        kind=classified.kind,
        risk_score=0,
        verdict=_verdict(0, True, config),
        warnings=(reason,),
        details={"chain": classified.chain_family.value} if classified.is_address else {},
        partial=True,
    )


def _downgrade(verdict: Verdict, ceiling: Verdict) -> Verdict:
    return ceiling if verdict.severity > ceiling.severity else verdict


def _is_demo_url(value: str, demo_url: str) -> bool:
    if not demo_url:
        return False
    demo_host = canonicalize_domain(demo_url)
    return bool(demo_host) and canonicalize_domain(value) == demo_host and url_path(value).startswith(url_path(demo_url))


def apply_overrides(result: AggregateResult, config: Config) -> AggregateResult:
    """Demo fixture, then domain whitelist. Both only ever lower severity."""
    if result.kind is not InputKind.URL:
        return result

    details = copy.deepcopy(result.details)
    content = details.get("content")

    if content is not None and _is_demo_url(result.input, config.demo_url):
        content["score"] = config.demo_score
        return replace(
            result,
            risk_score=min(result.risk_score, config.demo_score),
            verdict=_downgrade(result.verdict, Verdict.WARNING),
            details=details,
        )

    host = whitelist_contains(result.input, config.whitelist)
    if not host:
        return result

    cap = config.whitelist_score_cap
    details["whitelist"] = {"domain": host, "source": WHITELIST_SOURCE}
    if content is not None and isinstance(content.get("score"), int):
        content["score"] = min(content["score"], cap)
    verdict = Verdict.WARNING if result.verdict is Verdict.SCAM else result.verdict
    return replace(
        result,
        risk_score=min(result.risk_score, cap),
        verdict=verdict,
        details=details,
        whitelisted_domain=host,
    )
