"""Tests for request routing in the risk engine."""

import asyncio

import pytest

from scamscan.analyzer.content import ContentAnalysis, ContentEvaluator
from scamscan.analyzer.registration import UNKNOWN_AGE_WARNING, RegistrationInfo
from scamscan.analyzer.render import ContentSource, PageContent
from scamscan.classifier import ChainFamily
from scamscan.config import Config
from scamscan.errors import InvalidInputError
from scamscan.ledger.base import LedgerSnapshot, NativeCurrency
from scamscan.pipeline.combiner import BLACKLIST_WARNING, PARTIAL_URL_WARNING, UNKNOWN_INPUT_WARNING, Verdict
from scamscan.pipeline.engine import RiskEngine

ZERO = "0x" + "0" * 40
ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
ETH = NativeCurrency("Ethereum", "ETH", 18)


class _FakeClient:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class _FakePipeline:
    def __init__(self, page=None):
        self.page = page
        self.closed = False

    async def fetch_content(self, url):
        return self.page

    async def close(self):
        self.closed = True


class _FakeConnector:
    def __init__(self, snapshots):
        self.snapshots = snapshots
        self.scanned: list[str] = []

    async def scan(self, address):
        self.scanned.append(address)
        return self.snapshots


class _FakeEvm(_FakeConnector):
    async def code_at(self, network, address):
        return network == "ethereum"


class _FakeRegistration:
    def __init__(self, info=None):
        self.info = info
        self.looked_up: list[str] = []

    async def lookup(self, value, now=None):
        self.looked_up.append(value)
        return self.info or RegistrationInfo(domain=value, warnings=[UNKNOWN_AGE_WARNING])


class _SlowContent:
    async def analyze_url(self, url):
        await asyncio.sleep(1)
        return ContentAnalysis(source=ContentSource.LIGHT_FETCH)


def _engine(config, *, connectors=None, page=None, registration=None, content=None) -> RiskEngine:
    return RiskEngine(
        config,
        client=_FakeClient(),
        connectors=connectors if connectors is not None else {},
        pipeline=_FakePipeline(page),
        registration=registration or _FakeRegistration(),
        content=content,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("value,kind", [("", None), ("   ", None), ("x" * 5000, None), ("example.com", "domain-name")])
async def test_invalid_input_is_rejected(config, value, kind):
    engine = _engine(config)
    with pytest.raises(InvalidInputError):
        await engine.check(value, kind)


@pytest.mark.asyncio
async def test_zero_address_end_to_end(config):
    evm = _FakeConnector(
        [
            LedgerSnapshot(network="ethereum", currency=ETH, provider_used="llamarpc", status="empty"),
            LedgerSnapshot(network="bsc", currency=ETH, provider_used="binance", status="empty"),
        ]
    )
    engine = _engine(config, connectors={ChainFamily.EVM: evm})

    result = await engine.check(ZERO)

    assert evm.scanned == [ZERO]
    assert result.verdict is Verdict.SAFE
    assert result.risk_score == 10
    assert result.to_dict()["type"] == "wallet"
    assert result.to_dict()["details"]["chain"] == "evm"


@pytest.mark.asyncio
async def test_auto_type_runs_detection(config):
    evm = _FakeConnector([LedgerSnapshot(network="ethereum", currency=ETH, provider_used="llamarpc", status="empty")])
    engine = _engine(config, connectors={ChainFamily.EVM: evm})

    result = await engine.check(ZERO, "auto")

    assert evm.scanned == [ZERO]
    assert result.to_dict()["type"] == "wallet"


@pytest.mark.asyncio
async def test_domain_type_is_checked_as_url(config):
    registration = _FakeRegistration()
    page = PageContent(url="https://example.com", text="Welcome", source=ContentSource.LIGHT_FETCH)
    engine = _engine(config, page=page, registration=registration)

    result = await engine.check("example.com", "domain")

    assert registration.looked_up == ["example.com"]
    assert result.to_dict()["type"] == "url"


@pytest.mark.asyncio
async def test_blacklisted_address_skips_scan(tmp_path):
    config = Config(config_dir=tmp_path, blacklist={ADDRESS})
    evm = _FakeConnector([])
    engine = _engine(config, connectors={ChainFamily.EVM: evm})

    result = await engine.check(ADDRESS.lower(), "contract")

    assert evm.scanned == []
    assert result.risk_score == 100
    assert result.verdict is Verdict.SCAM
    assert result.warnings == (BLACKLIST_WARNING,)
    assert result.to_dict()["type"] == "contract"


@pytest.mark.asyncio
async def test_blacklisted_value_of_unknown_chain_still_scores(tmp_path):
    config = Config(config_dir=tmp_path, blacklist={"scammer-wallet-7"})
    engine = _engine(config, connectors={ChainFamily.EVM: _FakeConnector([])})

    result = await engine.check("Scammer-Wallet-7", "wallet")

    assert result.risk_score == 100
    assert result.verdict is Verdict.SCAM
    assert result.warnings == (BLACKLIST_WARNING,)
    assert result.to_dict()["details"]["chain"] == "unknown"


@pytest.mark.asyncio
async def test_scam_page_on_new_domain(config):
    page = PageContent(
        url="https://fresh-scam.xyz",
        text=f"Investment platform with guaranteed profit. Send funds to {ADDRESS}",
        source=ContentSource.LIGHT_FETCH,
    )
    evm = _FakeEvm([])
    pipeline = _FakePipeline(page)
    registration = _FakeRegistration(
        RegistrationInfo(
            domain="fresh-scam.xyz",
            age_days=3,
            risk_score=60,
            warnings=["VERY NEW DOMAIN (3 days old). High scam risk."],
        )
    )
    engine = RiskEngine(
        config,
        client=_FakeClient(),
        connectors={ChainFamily.EVM: evm},
        pipeline=pipeline,
        registration=registration,
    )
    assert isinstance(engine.content, ContentEvaluator)

    result = await engine.check("fresh-scam.xyz")

    assert registration.looked_up == ["fresh-scam.xyz"]
    assert result.details["content"]["score"] == 80
    assert result.risk_score == 100
    assert result.verdict is Verdict.SCAM
    assert "VERY NEW DOMAIN (3 days old). High scam risk." in result.warnings


@pytest.mark.asyncio
async def test_whitelisted_domain_is_downgraded(config):
    page = PageContent(
        url="https://binance.com",
        text="Trading platform. Guaranteed daily profit. Referral program.",
        source=ContentSource.LIGHT_FETCH,
    )
    engine = _engine(
        config,
        page=page,
        registration=_FakeRegistration(RegistrationInfo(domain="binance.com", risk_score=60)),
    )

    result = await engine.check("https://www.binance.com/")

    assert result.whitelisted_domain == "binance.com"
    assert result.risk_score == 60
    assert result.verdict is Verdict.WARNING


@pytest.mark.asyncio
async def test_unreachable_site_is_partial(config):
    engine = _engine(config, page=PageContent(url="https://gone.example", error="Render failed"))

    result = await engine.check("gone.example")

    assert result.partial
    assert result.verdict is Verdict.WARNING
    assert PARTIAL_URL_WARNING in result.warnings


@pytest.mark.asyncio
async def test_slow_content_times_out_as_partial(config):
    config.check_timeout = 0.05
    engine = _engine(config, content=_SlowContent())

    result = await engine.check("slow.example")

    assert result.partial
    assert result.details["content"]["error"] == "Content analysis timed out"
    assert result.verdict is Verdict.WARNING


@pytest.mark.asyncio
@pytest.mark.parametrize("value,kind", [("10.0.0.1", None), ("not-an-address", "wallet")])
async def test_unanalyzable_inputs(config, value, kind):
    engine = _engine(config)

    result = await engine.check(value, kind)

    assert result.verdict is Verdict.WARNING
    assert result.warnings == (UNKNOWN_INPUT_WARNING,)


@pytest.mark.asyncio
async def test_context_manager_closes_resources(config):
    client = _FakeClient()
    pipeline = _FakePipeline()

    async with RiskEngine(config, client=client, connectors={}, pipeline=pipeline, registration=_FakeRegistration()):
        pass

    assert client.closed
    assert pipeline.closed
