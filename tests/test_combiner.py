"""Tests for risk combination and overrides."""

import pytest

from scamscan.analyzer.content import WALLET_DISPLAY_WARNING, ContentAnalysis
from scamscan.analyzer.registration import UNKNOWN_AGE_WARNING, RegistrationInfo
from scamscan.analyzer.render import ContentSource
from scamscan.classifier import classify
from scamscan.config import Config
from scamscan.ledger.base import DRAINED_SIGNAL, FRESH_SIGNAL, ContractInspection, LedgerSnapshot, NativeCurrency
from scamscan.ledger.contract import FLAG_TRANSFER_SIMULATION_FAILED
from scamscan.pipeline.combiner import (
    BLACKLIST_WARNING,
    PARTIAL_CHAIN_WARNING,
    PARTIAL_URL_WARNING,
    UNKNOWN_INPUT_WARNING,
    Verdict,
    WarningList,
    apply_overrides,
    clamp_score,
    combine_address,
    combine_unanalyzable,
    combine_url,
    score_snapshots,
    signal_score,
    verdict_for,
)

ETH = NativeCurrency("Ethereum", "ETH", 18)
ZERO = "0x" + "0" * 40
ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


def _snap(network="ethereum", **kwargs) -> LedgerSnapshot:
    kwargs.setdefault("provider_used", "llamarpc")
    return LedgerSnapshot(network=network, currency=ETH, **kwargs)


def _registration(score=0, warnings=()) -> RegistrationInfo:
    return RegistrationInfo(domain="example.xyz", risk_score=score, warnings=list(warnings))


def _content(score=0, warnings=(), source=ContentSource.LIGHT_FETCH) -> ContentAnalysis:
    return ContentAnalysis(score=score, warnings=list(warnings), source=source)


class TestPrimitives:
    def test_clamp_score(self):
        assert clamp_score(-5) == 0
        assert clamp_score(140) == 100
        assert clamp_score(42) == 42

    @pytest.mark.parametrize(
        "score,partial,verdict",
        [
            (0, False, Verdict.SAFE),
            (39, False, Verdict.SAFE),
            (39, True, Verdict.WARNING),
            (40, False, Verdict.SUSPICIOUS),
            (40, True, Verdict.SUSPICIOUS),
            (74, False, Verdict.SUSPICIOUS),
            (75, False, Verdict.SCAM),
            (100, True, Verdict.SCAM),
        ],
    )
    def test_verdict_bands(self, score, partial, verdict):
        assert verdict_for(score, partial) is verdict

    def test_warning_list_keeps_first_occurrence_order(self):
        warnings = WarningList(["b", "a"])
        warnings.extend(["a", "c", "", "b"])
        warnings.add(None)
        assert warnings.to_list() == ["b", "a", "c"]
        assert "c" in warnings
        assert len(warnings) == 3

    def test_signal_keyword_table(self, config):
        assert signal_score("Account created today", config) == 65
        assert signal_score(FRESH_SIGNAL, config) == 40
        assert signal_score(DRAINED_SIGNAL, config) == 50
        assert signal_score("Something unusual", config) == 20


class TestUrlCombination:
    def test_scores_add_and_warnings_keep_order(self, config):
        registration = _registration(60, ["VERY NEW DOMAIN (3 days old). High scam risk."])
        content = _content(80, [WALLET_DISPLAY_WARNING])

        result = combine_url(classify("fresh-scam.xyz"), registration, content, config)

        assert result.risk_score == 100
        assert result.verdict is Verdict.SCAM
        assert result.warnings == (
            "VERY NEW DOMAIN (3 days old). High scam risk.",
            WALLET_DISPLAY_WARNING,
        )
        assert not result.partial

    def test_failed_content_is_partial(self, config):
        content = _content(source=ContentSource.FAILED, warnings=["Unable to fetch site content for analysis."])

        result = combine_url(classify("down.example"), _registration(), content, config)

        assert result.partial
        assert result.verdict is Verdict.WARNING
        assert result.warnings[-1] == PARTIAL_URL_WARNING

    def test_partial_never_lowers_a_scored_verdict(self, config):
        content = _content(source=ContentSource.FAILED)

        result = combine_url(classify("new.example"), _registration(60), content, config)

        assert result.verdict is Verdict.SUSPICIOUS

    def test_to_dict_shape(self, config):
        result = combine_url(classify("example.xyz"), _registration(0, [UNKNOWN_AGE_WARNING]), _content(), config)

        data = result.to_dict()

        assert data["input"] == "example.xyz"
        assert data["type"] == "url"
        assert data["riskScore"] == 0
        assert data["verdict"] == "SAFE"
        assert data["warnings"] == [UNKNOWN_AGE_WARNING]
        assert set(data["details"]) == {"whois", "content"}
        assert "whitelistedDomain" not in data


class TestAddressScoring:
    def test_empty_zero_address_is_safe(self, config):
        snapshots = [_snap("ethereum", status="empty"), _snap("bsc", status="empty")]

        result = combine_address(classify(ZERO), snapshots, config)

        assert result.risk_score == 10
        assert result.verdict is Verdict.SAFE
        assert result.warnings == ()
        on_chain = result.to_dict()["details"]["onChain"]
        assert on_chain["type"] == "wallet"
        assert on_chain["provider"] == "llamarpc"
        assert [n["txCount"] for n in on_chain["networks"]] == [0, 0]

    def test_blacklist_overrides_everything(self, tmp_path):
        config = Config(config_dir=tmp_path, blacklist={ADDRESS})
        snapshots = [_snap(status="active", tx_count=2, scam_signals=[FRESH_SIGNAL])]

        scored = score_snapshots(ADDRESS.upper().replace("0X", "0x"), snapshots, config)

        assert scored.score == 100
        assert scored.warnings.to_list() == [BLACKLIST_WARNING]
        assert scored.blacklisted

    def test_maximum_of_categories_not_sum(self, config):
        snapshots = [
            _snap(status="active", tx_count=3, scam_signals=[FRESH_SIGNAL, DRAINED_SIGNAL]),
            _snap("bsc", status="active", tx_count=10),
        ]

        scored = score_snapshots(ADDRESS, snapshots, config)

        assert scored.score == 50
        assert scored.warnings.to_list() == [
            "[ethereum] Caution: Very fresh wallet (< 5 transactions).",
            f"[ethereum] {FRESH_SIGNAL}",
            f"[ethereum] {DRAINED_SIGNAL}",
        ]

    def test_fresh_wallet_band_is_not_rescored(self, config):
        snapshots = [
            _snap(status="active", tx_count=3, balance_raw=10**17),
            _snap("bsc", status="empty"),
        ]

        result = combine_address(classify(ADDRESS), snapshots, config)

        assert result.risk_score == 35
        assert result.verdict is Verdict.SAFE
        assert result.warnings == ("[ethereum] Caution: Very fresh wallet (< 5 transactions).",)

    def test_baseline_score_is_configurable(self, tmp_path):
        config = Config(config_dir=tmp_path, baseline_address_score=0)
        assert score_snapshots(ZERO, [_snap(status="empty")], config).score == 0

    def test_moderate_activity_band(self, config):
        scored = score_snapshots(ADDRESS, [_snap(status="active", tx_count=12)], config)
        assert scored.score == 10
        assert scored.warnings.to_list() == []

    def test_honeypot_contract(self, config):
        check = ContractInspection(is_contract=True, is_honeypot=True)
        scored = score_snapshots(ADDRESS, [_snap(status="active", is_contract=True, contract_check=check)], config)
        assert scored.score == 100
        assert scored.warnings.to_list() == ["[ethereum] DETECTED HONEYPOT CONTRACT!"]

    def test_transfer_simulation_failure(self, config):
        check = ContractInspection(is_contract=True, flags=[FLAG_TRANSFER_SIMULATION_FAILED])
        scored = score_snapshots(
            ADDRESS, [_snap("bsc", status="active", tx_count=2, is_contract=True, contract_check=check)], config
        )
        assert scored.score == 60
        assert scored.warnings.to_list() == [
            "[bsc] Honeypot simulation failed (beta: potential transfer/sell restrictions)."
        ]

    def test_all_networks_unanswered_is_partial(self, config):
        snapshots = [_snap(provider_used=None, error="x"), _snap("bsc", provider_used=None, error="y")]

        result = combine_address(classify(ADDRESS), snapshots, config)

        assert result.partial
        assert result.verdict is Verdict.WARNING
        assert result.warnings == (PARTIAL_CHAIN_WARNING,)

    def test_one_answering_network_is_enough(self, config):
        snapshots = [_snap(status="empty"), _snap("bsc", provider_used=None, error="y")]
        assert not score_snapshots(ADDRESS, snapshots, config).partial


def test_unanalyzable_input_is_a_warning(config):
    result = combine_unanalyzable(classify("10.0.0.1"), config)
    assert result.verdict is Verdict.WARNING
    assert result.risk_score == 0
    assert result.warnings == (UNKNOWN_INPUT_WARNING,)


class TestOverrides:
    def test_whitelist_caps_and_downgrades(self, config):
        result = combine_url(
            classify("https://www.Binance.com/en/login"),
            _registration(25, ["Young domain (20 days old)."]),
            _content(80),
            config,
        )
        assert result.verdict is Verdict.SCAM

        final = apply_overrides(result, config)

        assert final.risk_score == 60
        assert final.verdict is Verdict.WARNING
        assert final.whitelisted_domain == "binance.com"
        assert final.warnings == result.warnings
        data = final.to_dict()
        assert data["whitelistedDomain"] == "binance.com"
        assert data["details"]["whitelist"] == {"domain": "binance.com", "source": "global-url-whitelist"}
        assert data["details"]["content"]["score"] == 60

    def test_whitelist_never_raises_severity(self, config):
        result = combine_url(classify("google.com"), _registration(), _content(5), config)

        final = apply_overrides(result, config)

        assert final.verdict is Verdict.SAFE
        assert final.risk_score == 5
        assert final.whitelisted_domain == "google.com"

    def test_subdomain_of_whitelisted_host_is_not_whitelisted(self, config):
        result = combine_url(classify("binance.com.evil.xyz"), _registration(), _content(80), config)
        assert apply_overrides(result, config) is result

    def test_demo_url_pins_content_and_caps(self, config):
        result = combine_url(
            classify("https://scamscan.online/demo-gray-url?x=1"), _registration(25), _content(80), config
        )

        final = apply_overrides(result, config)

        assert final.risk_score == 60
        assert final.verdict is Verdict.WARNING
        assert final.details["content"]["score"] == 60
        assert final.whitelisted_domain is None

    def test_overrides_leave_addresses_alone(self, tmp_path):
        config = Config(config_dir=tmp_path, blacklist={ADDRESS})
        result = combine_address(classify(ADDRESS), [], config)
        assert apply_overrides(result, config) is result
        assert result.risk_score == 100
        assert result.warnings == (BLACKLIST_WARNING,)
