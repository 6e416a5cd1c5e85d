"""Risk engine: one request in, one aggregated verdict out."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..analyzer.content import FETCH_FAILED_WARNING, ContentAnalysis, ContentEvaluator
from ..analyzer.registration import UNKNOWN_AGE_WARNING, RegistrationInfo, RegistrationLookup
from ..analyzer.render import ContentSource, RenderPipeline
from ..classifier import ChainFamily, ClassifiedInput, InputKind, classify, is_supported_kind
from ..config import Config, load_config
from ..errors import InvalidInputError
from ..ledger.base import LedgerConnector, LedgerSnapshot
from ..ledger.http import ProviderClient
from ..ledger.registry import build_connectors
from ..utils.domains import hostname
from .combiner import (
    AggregateResult,
    apply_overrides,
    combine_address,
    combine_unanalyzable,
    combine_url,
    is_blacklisted,
)

logger = logging.getLogger(__name__)

MAX_INPUT_LENGTH = 2048


class RiskEngine:
    """Routes a query to the web or ledger analyses and combines their outputs.

    Holds no per-request state: the shared HTTP client, the render pipeline
    and the connectors are reused across calls, everything else is rebuilt
    per query.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        client: Optional[ProviderClient] = None,
        connectors: Optional[dict[ChainFamily, LedgerConnector]] = None,
        pipeline: Optional[RenderPipeline] = None,
        registration: Optional[RegistrationLookup] = None,
        content: Optional[ContentEvaluator] = None,
    ):
        self.config = config or load_config()
        self.client = client or ProviderClient(timeout=self.config.rpc_timeout)
        self.connectors = connectors if connectors is not None else build_connectors(self.config, self.client)
        self.pipeline = pipeline or RenderPipeline(self.config)
        self.registration = registration or RegistrationLookup(self.config)
        self.content = content or ContentEvaluator(
            self.config,
            pipeline=self.pipeline,
            evm=self.connectors.get(ChainFamily.EVM),
            solana=self.connectors.get(ChainFamily.SOLANA),
        )

    async def __aenter__(self) -> "RiskEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        await self.client.close()
        await self.pipeline.close()

    def _validate(self, value: Optional[str], kind: Optional[str]) -> tuple[str, Optional[str]]:
        raw = (value or "").strip()
        if not raw:
            raise InvalidInputError("Missing value to check")
        if len(raw) > MAX_INPUT_LENGTH:
            raise InvalidInputError(f"Value too long (max {MAX_INPUT_LENGTH} characters)")
        if not is_supported_kind(kind):
            raise InvalidInputError(f"Unsupported type: {kind}")
        return raw, kind

    async def check(self, value: Optional[str], kind: Optional[str] = None) -> AggregateResult:
        """Classify `value` and run the analyses that apply. Raises InvalidInputError."""
        raw, kind = self._validate(value, kind)
        classified = classify(raw, kind)
        logger.info("Checking %s as %s (%s)", raw, classified.kind.value, classified.chain_family.value)

        if classified.kind is InputKind.URL:
            result = await self.check_url(classified)
        elif classified.is_address and (
            classified.chain_family in self.connectors or is_blacklisted(classified.raw_value, self.config)
        ):
            result = await self.check_address(classified)
        else:
            result = combine_unanalyzable(classified, self.config)

        result = apply_overrides(result, self.config)
        logger.info("Verdict for %s: %s (%d)", raw, result.verdict.value, result.risk_score)
        return result

    async def _lookup_registration(self, url: str, now: Optional[datetime]) -> RegistrationInfo:
        try:
            return await asyncio.wait_for(self.registration.lookup(url, now=now), timeout=self.config.check_timeout)
        except asyncio.TimeoutError:
            logger.warning("Registration lookup timed out for %s", url)
            return RegistrationInfo(
                domain=hostname(url) or url,
                warnings=[UNKNOWN_AGE_WARNING],
                error="Registration lookup timed out",
            )

    async def _analyze_content(self, url: str) -> ContentAnalysis:
        try:
            return await asyncio.wait_for(self.content.analyze_url(url), timeout=self.config.check_timeout)
        except asyncio.TimeoutError:
            logger.warning("Content analysis timed out for %s", url)
            return ContentAnalysis(
                source=ContentSource.FAILED,
                warnings=[FETCH_FAILED_WARNING],
                error="Content analysis timed out",
            )

    async def check_url(self, classified: ClassifiedInput, now: Optional[datetime] = None) -> AggregateResult:
        registration, content = await asyncio.gather(
            self._lookup_registration(classified.raw_value, now),
            self._analyze_content(classified.raw_value),
        )
        return combine_url(classified, registration, content, self.config)

    async def scan_address(self, classified: ClassifiedInput) -> list[LedgerSnapshot]:
        connector = self.connectors[classified.chain_family]
        try:
            return await asyncio.wait_for(connector.scan(classified.raw_value), timeout=self.config.check_timeout)
        except asyncio.TimeoutError:
            logger.warning("Ledger scan timed out for %s", classified.raw_value)
            return []

    async def check_address(self, classified: ClassifiedInput) -> AggregateResult:
        if is_blacklisted(classified.raw_value, self.config):
            logger.warning("Blacklisted address queried: %s", classified.raw_value)
            return combine_address(classified, [], self.config)
        snapshots = await self.scan_address(classified)
        return combine_address(classified, snapshots, self.config)
