"""Content risk scoring for rendered web pages.

Phrase categories add fixed points per hit. Co-occurrence floors then lift the
score (never add to it), and the total is capped below the certain-scam band so
page text alone cannot produce a SCAM verdict without age or on-chain evidence.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..classifier import EXTRACTION_PATTERNS, ChainFamily, classify
from ..config import Config
from ..ledger.evm import EvmConnector
from ..ledger.solana import SolanaConnector
from .render import ContentSource, RenderPipeline

logger = logging.getLogger(__name__)

WALLET_DISPLAY_WARNING = "Displaying crypto addresses on a website is a common scam indicator."
FETCH_FAILED_WARNING = "Unable to fetch site content for analysis."

PAGE_CONTRACT_FLAG = "page_contract"
EVM_NETWORKS = ("ethereum", "bsc")

SOLANA_ENTITY_KINDS = {
    "program": "contract",
    "mint": "token",
    "token-account": "token-account",
    "wallet": "wallet",
}


@dataclass
class ExtractedWallet:
    address: str
    detected_kind: str = "unknown"
    detected_chain: str = "unknown"
    entity_type: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "address": self.address,
            "detectedType": self.detected_kind,
            "detectedChain": self.detected_chain,
        }
        if self.entity_type:
            data["solanaEntityType"] = self.entity_type
        return data


@dataclass
class PhraseScore:
    score: int = 0
    matched: list[str] = field(default_factory=list)
    categories: set[str] = field(default_factory=set)


@dataclass
class ContentAnalysis:
    """Scored page text plus the addresses found on it."""

    score: int = 0
    matched_phrases: list[str] = field(default_factory=list)
    extracted_wallets: list[ExtractedWallet] = field(default_factory=list)
    source: ContentSource = ContentSource.FAILED
    warnings: list[str] = field(default_factory=list)
    flags: set[str] = field(default_factory=set)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.source is ContentSource.FAILED

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "matches": list(self.matched_phrases),
            "source": self.source.value,
            "wallets": [w.to_dict() for w in self.extracted_wallets],
            "rawWallets": [w.address for w in self.extracted_wallets],
            "warnings": list(self.warnings),
            "flags": sorted(self.flags),
            "error": self.error,
        }


def apply_floors(score: int, flags: set[str], floors: Iterable[tuple[tuple[str, ...], int]]) -> int:
    """Raise `score` to every floor whose required flags are all present."""
    for requires, floor in floors:
        if set(requires) <= flags:
            score = max(score, floor)
    return score


def score_phrases(
    text: str,
    categories: Iterable[dict],
    floors: Iterable[tuple[tuple[str, ...], int]] = (),
    cap: Optional[int] = None,
) -> PhraseScore:
    """Generic phrase scorer: each phrase found adds its category's points once."""
    lower = (text or "").lower()
    result = PhraseScore()
    for category in categories:
        for phrase in category["phrases"]:
            if phrase in lower:
                if phrase not in result.matched:
                    result.matched.append(phrase)
                result.score += int(category["points"])
                result.categories.add(category["name"])
    result.score = apply_floors(result.score, result.categories, floors)
    if cap is not None:
        result.score = min(result.score, cap)
    return result


def extract_wallet_candidates(text: str, limit: int = 20) -> list[str]:
    """Address-like substrings in first-seen order, minus proper substrings of longer matches."""
    if not text:
        return []
    seen: list[str] = []
    for _, pattern in EXTRACTION_PATTERNS:
        for match in pattern.finditer(text):
            candidate = match.group(0)
            if candidate not in seen:
                seen.append(candidate)
    filtered = [c for c in seen if not any(len(o) > len(c) and c in o for o in seen)]
    return filtered[:limit]


def pattern_family(candidate: str) -> ChainFamily:
    for family, pattern in EXTRACTION_PATTERNS:
        if pattern.fullmatch(candidate):
            return family
    return ChainFamily.UNKNOWN


class ContentEvaluator:
    """Scores page text and resolves the addresses it displays."""

    def __init__(
        self,
        config: Config,
        pipeline: Optional[RenderPipeline] = None,
        evm: Optional[EvmConnector] = None,
        solana: Optional[SolanaConnector] = None,
    ):
        self.config = config
        self.pipeline = pipeline
        self.evm = evm
        self.solana = solana

    async def _resolve_evm(self, wallet: ExtractedWallet) -> None:
        answers = await asyncio.gather(*(self.evm.code_at(network, wallet.address) for network in EVM_NETWORKS))
        wallet_network = None
        for network, has_code in zip(EVM_NETWORKS, answers):
            if has_code:
                wallet.detected_kind = "contract"
                wallet.detected_chain = network
                return
            if has_code is False and wallet_network is None:
                wallet_network = network
        if wallet_network:
            wallet.detected_kind = "wallet"
            wallet.detected_chain = wallet_network

    async def _resolve_solana(self, wallet: ExtractedWallet) -> None:
        entity = await self.solana.describe_account(wallet.address)
        if entity is None:
            return
        wallet.entity_type = entity
        wallet.detected_kind = SOLANA_ENTITY_KINDS.get(entity, "wallet")

    async def classify_candidate(self, address: str) -> ExtractedWallet:
        classified = classify(address)
        family = classified.chain_family
        if family is ChainFamily.UNKNOWN:
            family = pattern_family(address)
        wallet = ExtractedWallet(
            address=address,
            detected_kind="wallet" if family is not ChainFamily.UNKNOWN else "unknown",
            detected_chain=family.value,
        )
        try:
            if family is ChainFamily.EVM and self.evm:
                await self._resolve_evm(wallet)
            elif family is ChainFamily.SOLANA and self.solana:
                await self._resolve_solana(wallet)
        except Exception as e:
            logger.warning("Address lookup failed for %s: %s", address, e)
        return wallet

    async def evaluate(self, text: str, source: ContentSource = ContentSource.LIGHT_FETCH) -> ContentAnalysis:
        cfg = self.config
        phrases = score_phrases(text, cfg.phrase_categories, cfg.content_floors, cfg.content_score_cap)
        analysis = ContentAnalysis(
            score=phrases.score,
            matched_phrases=phrases.matched,
            source=source,
            flags=set(phrases.categories),
        )

        candidates = extract_wallet_candidates(text, limit=cfg.max_page_wallets)
        if candidates:
            analysis.extracted_wallets = list(
                await asyncio.gather(*(self.classify_candidate(c) for c in candidates))
            )
            analysis.warnings.append(WALLET_DISPLAY_WARNING)
            analysis.score += cfg.page_wallet_points

        if any(w.detected_kind == "contract" and w.detected_chain in EVM_NETWORKS for w in analysis.extracted_wallets):
            analysis.flags.add(PAGE_CONTRACT_FLAG)

        analysis.score = min(apply_floors(analysis.score, analysis.flags, cfg.content_floors), cfg.content_score_cap)
        return analysis

    async def analyze_url(self, url: str) -> ContentAnalysis:
        page = await self.pipeline.fetch_content(url)
        if not page.ok:
            return ContentAnalysis(source=ContentSource.FAILED, warnings=[FETCH_FAILED_WARNING], error=page.error)
        return await self.evaluate(page.text, source=page.source)
