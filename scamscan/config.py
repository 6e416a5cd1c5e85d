"""Configuration management for ScamScan."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Set
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv

from .utils.domains import canonicalize_domain
from .utils.lists import parse_csv, read_domain_list, read_list_file

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderEndpoint:
    """One upstream ledger-data endpoint. `name` also selects the API dialect where a family has several."""

    name: str
    url: str


# Ordered fallback lists per network. Override via config/providers.yaml.
DEFAULT_PROVIDERS: dict[str, list[ProviderEndpoint]] = {
    "ethereum": [
        ProviderEndpoint("llamarpc", "https://eth.llamarpc.com"),
        ProviderEndpoint("ankr", "https://rpc.ankr.com/eth"),
        ProviderEndpoint("1rpc", "https://1rpc.io/eth"),
    ],
    "bsc": [
        ProviderEndpoint("binance", "https://bsc-dataseed1.binance.org"),
        ProviderEndpoint("ankr", "https://rpc.ankr.com/bsc"),
        ProviderEndpoint("1rpc", "https://1rpc.io/bnb"),
    ],
    "solana": [
        ProviderEndpoint("solana-mainnet", "https://api.mainnet-beta.solana.com"),
        ProviderEndpoint("publicnode", "https://solana-rpc.publicnode.com"),
    ],
    "tron": [
        ProviderEndpoint("trongrid", "https://api.trongrid.io"),
    ],
    "ton": [
        ProviderEndpoint("toncenter", "https://toncenter.com/api/v3"),
        ProviderEndpoint("tonapi", "https://tonapi.io/v2"),
    ],
    "bitcoin": [
        ProviderEndpoint("blockstream", "https://blockstream.info/api"),
        ProviderEndpoint("mempool", "https://mempool.space/api"),
    ],
}

# Content phrase categories: every phrase found adds `points`.
DEFAULT_PHRASE_CATEGORIES: list[dict] = [
    {
        "name": "soft",
        "points": 5,
        "phrases": [
            "giveaway",
            "airdrop",
            "connect wallet",
            "claim reward",
            "validate wallet",
            "synchronize",
            "official promotion",
            "support team",
        ],
    },
    {
        "name": "investment",
        "points": 15,
        "phrases": [
            "investment platform",
            "trading platform",
            "trading bot",
            "forex",
            "forex trading",
            "copy trading",
            "signal group",
            "crypto investment",
            "investment plan",
            "investment package",
        ],
    },
    {
        "name": "yield",
        "points": 20,
        "phrases": [
            "passive income",
            "stable income",
            "guaranteed",
            "guaranteed profit",
            "fixed income",
            "fixed return",
            "daily profit",
            "monthly profit",
            "% per day",
            "% daily",
            "per day roi",
            "return on investment",
            "high roi",
            "double your money",
            "2x your",
            "3x your",
        ],
    },
    {
        "name": "referral",
        "points": 15,
        "phrases": [
            "referral program",
            "affiliate program",
            "multi level marketing",
            "multi-level marketing",
            "mlm",
            "invite friends and earn",
        ],
    },
]

# Co-occurrence floors: when every listed category matched, score >= floor.
# "page_contract" is set when an address on the page is a deployed EVM/BSC contract.
DEFAULT_CONTENT_FLOORS: list[tuple[tuple[str, ...], int]] = [
    (("investment", "yield"), 60),
    (("investment", "yield", "referral"), 70),
    (("page_contract", "investment", "yield"), 80),
]

# (upper bound in days, exclusive; points; warning template)
DEFAULT_AGE_BANDS: list[tuple[int, int, str]] = [
    (7, 60, "VERY NEW DOMAIN ({days} days old). High scam risk."),
    (30, 25, "Young domain ({days} days old)."),
    (90, 10, "Recently registered domain ({days} days old)."),
]

# Connector signal text -> address score. First matching row wins.
DEFAULT_SIGNAL_KEYWORDS: list[tuple[tuple[str, ...], int]] = [
    (("less than 24h", "created today"), 65),
    (("fresh",), 40),
    (("zero current balance", "all funds moved out"), 50),
]

# Non-contract activity bands (inclusive tx ranges).
DEFAULT_ACTIVITY_BANDS: list[dict] = [
    {"min_tx": 1, "max_tx": 5, "score": 35, "warning": "Caution: Very fresh wallet (< 5 transactions)."},
    {"min_tx": 6, "max_tx": 19, "score": 10, "warning": ""},
]

DEFAULT_URL_WHITELIST: set[str] = {
    # Own domain
    "scamscan.online",
    # Search engines
    "google.com",
    "yandex.ru",
    "ya.ru",
    "bing.com",
    "duckduckgo.com",
    # Explorers
    "etherscan.io",
    "bscscan.com",
    "polygonscan.com",
    "arbiscan.io",
    "snowtrace.io",
    "ftmscan.com",
    "basescan.org",
    # Centralized exchanges
    "binance.com",
    "binance.us",
    "coinbase.com",
    "kraken.com",
    "pro.kraken.com",
    "bybit.com",
    "okx.com",
    "kucoin.com",
    "htx.com",
    "gate.io",
    "mexc.com",
    "bitfinex.com",
    "bitstamp.net",
    "crypto.com",
    "bitget.com",
    "bingx.com",
    # DEX & DeFi fronts
    "uniswap.org",
    "app.uniswap.org",
    "pancakeswap.finance",
    "app.pancakeswap.finance",
    "1inch.io",
    "app.1inch.io",
    "curve.fi",
    "app.curve.fi",
    "balancer.fi",
    "app.balancer.fi",
    "traderjoexyz.com",
    "app.traderjoexyz.com",
    "quickswap.exchange",
    "sushi.com",
    "app.sushi.com",
    "raydium.io",
    "jup.ag",
    # Wallets / key vendors
    "metamask.io",
    "trustwallet.com",
    "phantom.app",
    "rabby.io",
    "ledger.com",
    "trezor.io",
}

# Code hashes (hex) of standard TON wallet contracts. An account running one of
# these is a user wallet, anything else with code is a smart contract.
DEFAULT_TON_WALLET_CODE_HASHES: set[str] = {
    # v3R1 / v3R2
    "b61041a58a7980b946e8fb9e198e3c904d24799ffa36574ea4251c41a566f581",
    "84dafa449f98a6987789ba232358072bc0f76dc4524002a5d0918b9a75d2d599",
    "857bb3eeb1b9ebce3b3b207db2d0bbd10b191ed257a7b82d49f683e4bd2f8cd0",
    "b08b8510cc2f6e0f2f6213b5636e33d7e6443da8932e8def5a0e327c52fa0da1",
    # v4R1 / v4R2
    "64dd54805522c5be8a9db59cea0105ccf0d08786ca79beb8cb79e880a8d7322d",
    "feb5ff6820e2ff0d9483e7e0d62c817d846789fb4ae580c878866d959dabd5c0",
    "f3e8e3eec1abcb447ded60a1e00c7cd5f9126eb47f55bb2b5f7f7c32a2dfc047",
    "7f602a58aab6fa41063f63683bcab9a9a56dd97ab3c4a45e485ace180105d581",
    # v5R1
    "20834b7b72b112147e1b2fb457b84e74d1a30f04f737d4f62a668e9552d2b72f",
    # highload v1/v2
    "492459e6f43dc3dfbd2a0d6d683c90e3f1bfa6fe9f6cf2c6938e615cb78f6f91",
    "3b85b1ecdcf7192b4f8a82e5b80e6ca0e9b8148f1d626bb8b078d5d927e0c8ed",
    # multisig
    "ae32e5b3e2a7b18101e7c0fe8f5a1bdc9b3bf762b0bf61c96f6c2c22fcf04e3a",
}

BLACKLIST_ENV_VARS = (
    "ETH_SCAM_WALLETS",
    "TRON_SCAM_WALLETS",
    "TON_SCAM_WALLETS",
    "BTC_SCAM_WALLETS",
    "SOL_SCAM_WALLETS",
)


@dataclass
class Config:
    """Engine configuration loaded from environment and config/*.yaml."""

    # Upstream timeouts (seconds)
    fetch_timeout: float = 7.0
    render_timeout: float = 15.0
    render_settle_delay: float = 1.0
    render_queue_timeout: float = 10.0
    rpc_timeout: float = 10.0
    whois_timeout: float = 10.0
    check_timeout: float = 45.0

    fetch_user_agent: str = "Mozilla/5.0 ScamScanBot/1.0"
    render_headless: bool = True

    # Optional API keys (a missing key skips that source)
    etherscan_api_key: str = ""
    etherscan_base_url: str = "https://api.etherscan.io/v2/api"
    trongrid_api_key: str = ""
    api_ninjas_whois_key: str = ""
    api_ninjas_whois_url: str = "https://api.api-ninjas.com/v1/whois"

    providers: dict[str, list[ProviderEndpoint]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_PROVIDERS.items()}
    )

    max_page_wallets: int = 20
    solana_signature_limit: int = 20
    tron_tx_limit: int = 20
    ton_tx_limit: int = 15
    fresh_tx_threshold: int = 5

    # Overrides
    demo_url: str = "https://scamscan.online/demo-gray-url"
    whitelist_score_cap: int = 60
    demo_score: int = 60

    # Verdict thresholds
    scam_threshold: int = 75
    suspicious_threshold: int = 40

    config_dir: Path = field(default_factory=lambda: Path("./config"))

    # Loaded lists
    whitelist: Set[str] = field(default_factory=lambda: set(DEFAULT_URL_WHITELIST))
    blacklist: Set[str] = field(default_factory=set)
    ton_wallet_code_hashes: Set[str] = field(
        default_factory=lambda: set(DEFAULT_TON_WALLET_CODE_HASHES)
    )

    # Heuristics (override via config/heuristics.yaml)
    phrase_categories: list[dict] = field(
        default_factory=lambda: [dict(c) for c in DEFAULT_PHRASE_CATEGORIES]
    )
    content_floors: list[tuple[tuple[str, ...], int]] = field(
        default_factory=lambda: list(DEFAULT_CONTENT_FLOORS)
    )
    content_score_cap: int = 80
    page_wallet_points: int = 5
    age_bands: list[tuple[int, int, str]] = field(default_factory=lambda: list(DEFAULT_AGE_BANDS))
    signal_keywords: list[tuple[tuple[str, ...], int]] = field(
        default_factory=lambda: list(DEFAULT_SIGNAL_KEYWORDS)
    )
    default_signal_score: int = 20
    baseline_address_score: int = 10
    activity_bands: list[dict] = field(default_factory=lambda: [dict(b) for b in DEFAULT_ACTIVITY_BANDS])
    honeypot_score: int = 100
    simulation_failure_score: int = 60

    def __post_init__(self):
        """Normalize paths and merge list files."""
        self.config_dir = Path(self.config_dir)
        self.whitelist = {canonicalize_domain(d) or d for d in self.whitelist}
        self.blacklist = {a.strip().lower() for a in self.blacklist if a.strip()}
        self._load_lists()

    def _load_lists(self):
        """Load whitelist and blacklist additions from config files."""
        whitelist_path = self.config_dir / "whitelist.txt"
        blacklist_path = self.config_dir / "blacklist.txt"

        if whitelist_path.exists():
            self.whitelist |= read_domain_list(whitelist_path)
        if blacklist_path.exists():
            self.blacklist |= {item.lower() for item in read_list_file(blacklist_path)}

    def providers_for(self, network: str) -> list[ProviderEndpoint]:
        return list(self.providers.get(network, []))


def _endpoint_from(entry) -> Optional[ProviderEndpoint]:
    if isinstance(entry, str):
        url = entry.strip()
        if not url:
            return None
        return ProviderEndpoint(urlparse(url).hostname or url, url)
    if isinstance(entry, dict):
        url = str(entry.get("url") or "").strip()
        if not url:
            return None
        name = str(entry.get("name") or "").strip() or (urlparse(url).hostname or url)
        return ProviderEndpoint(name, url)
    return None


def _load_providers(config_dir: Path) -> dict[str, list[ProviderEndpoint]]:
    """Load provider overrides from config/providers.yaml (optional)."""
    path = Path(config_dir or ".") / "providers.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        logger.warning("Failed to parse providers.yaml: %s", exc)
        return {}
    if not isinstance(data, dict):
        return {}

    providers: dict[str, list[ProviderEndpoint]] = {}
    for network, entries in data.items():
        if not isinstance(entries, list):
            continue
        endpoints = [ep for ep in (_endpoint_from(e) for e in entries) if ep]
        if endpoints:
            providers[str(network).strip().lower()] = endpoints
    return providers


def _load_heuristics(config_dir: Path) -> dict:
    """Load heuristic overrides from config/heuristics.yaml (optional)."""
    path = Path(config_dir or ".") / "heuristics.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        logger.warning("Failed to parse heuristics.yaml: %s", exc)
        return {}
    if not isinstance(data, dict):
        return {}

    def _coerce_categories(raw):
        items: list[dict] = []
        for entry in raw or []:
            if not isinstance(entry, dict):
                continue
            name = str(entry.get("name") or "").strip()
            try:
                points = int(entry.get("points"))
            except Exception:
                continue
            phrases = [str(p).strip().lower() for p in entry.get("phrases") or [] if str(p).strip()]
            if name and phrases:
                items.append({"name": name, "points": points, "phrases": phrases})
        return items

    def _coerce_floors(raw):
        items: list[tuple[tuple[str, ...], int]] = []
        for entry in raw or []:
            if not isinstance(entry, dict):
                continue
            requires = tuple(str(r).strip() for r in entry.get("requires") or [] if str(r).strip())
            try:
                floor = int(entry.get("floor"))
            except Exception:
                continue
            if requires:
                items.append((requires, floor))
        return items

    def _coerce_age_bands(raw):
        items: list[tuple[int, int, str]] = []
        for entry in raw or []:
            if not isinstance(entry, dict):
                continue
            try:
                max_days = int(entry.get("max_days"))
                points = int(entry.get("points"))
            except Exception:
                continue
            warning = str(entry.get("warning") or "").strip() or "Domain is {days} days old."
            items.append((max_days, points, warning))
        return sorted(items, key=lambda band: band[0])

    def _coerce_signal_keywords(raw):
        items: list[tuple[tuple[str, ...], int]] = []
        for entry in raw or []:
            if not isinstance(entry, dict):
                continue
            keywords = tuple(str(k).strip().lower() for k in entry.get("keywords") or [] if str(k).strip())
            try:
                score = int(entry.get("score"))
            except Exception:
                continue
            if keywords:
                items.append((keywords, score))
        return items

    def _coerce_activity_bands(raw):
        items: list[dict] = []
        for entry in raw or []:
            if not isinstance(entry, dict):
                continue
            try:
                band = {
                    "min_tx": int(entry.get("min_tx")),
                    "max_tx": int(entry.get("max_tx")),
                    "score": int(entry.get("score")),
                }
            except Exception:
                continue
            band["warning"] = str(entry.get("warning") or "").strip()
            items.append(band)
        return items

    content_cfg = data.get("content", {}) if isinstance(data.get("content"), dict) else {}
    registration_cfg = data.get("registration", {}) if isinstance(data.get("registration"), dict) else {}
    onchain_cfg = data.get("onchain", {}) if isinstance(data.get("onchain"), dict) else {}

    overrides: dict = {}
    categories = _coerce_categories(content_cfg.get("categories"))
    if categories:
        overrides["phrase_categories"] = categories
    floors = _coerce_floors(content_cfg.get("floors"))
    if floors:
        overrides["content_floors"] = floors
    age_bands = _coerce_age_bands(registration_cfg.get("age_bands"))
    if age_bands:
        overrides["age_bands"] = age_bands
    signal_keywords = _coerce_signal_keywords(onchain_cfg.get("signal_keywords"))
    if signal_keywords:
        overrides["signal_keywords"] = signal_keywords
    activity_bands = _coerce_activity_bands(onchain_cfg.get("activity_bands"))
    if activity_bands:
        overrides["activity_bands"] = activity_bands

    for key, section, target in (
        ("cap", content_cfg, "content_score_cap"),
        ("wallet_points", content_cfg, "page_wallet_points"),
        ("default_signal_score", onchain_cfg, "default_signal_score"),
        ("baseline_score", onchain_cfg, "baseline_address_score"),
    ):
        if key in section:
            try:
                overrides[target] = int(section[key])
            except Exception:
                logger.warning("Ignoring non-numeric heuristics value for %s", key)

    wallet_hashes = onchain_cfg.get("ton_wallet_code_hashes")
    if isinstance(wallet_hashes, list):
        overrides["ton_wallet_code_hashes"] = set(DEFAULT_TON_WALLET_CODE_HASHES) | {
            str(h).strip().lower() for h in wallet_hashes if str(h).strip()
        }

    return overrides


def load_config() -> Config:
    """Load configuration from environment variables."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))
    heuristics = _load_heuristics(config_dir)

    providers = {k: list(v) for k, v in DEFAULT_PROVIDERS.items()}
    providers.update(_load_providers(config_dir))
    solana_rpc = os.getenv("SOLANA_RPC_URL", "").strip()
    if solana_rpc:
        providers["solana"] = [ProviderEndpoint("solana-custom", solana_rpc)] + [
            ep for ep in providers.get("solana", []) if ep.url != solana_rpc
        ]

    blacklist: set[str] = set()
    for var in BLACKLIST_ENV_VARS:
        blacklist.update(parse_csv(os.getenv(var, "")))

    whitelist = set(DEFAULT_URL_WHITELIST) | set(parse_csv(os.getenv("URL_WHITELIST", "")))

    return Config(
        fetch_timeout=float(os.getenv("FETCH_TIMEOUT", "7")),
        render_timeout=float(os.getenv("RENDER_TIMEOUT", "15")),
        render_settle_delay=float(os.getenv("RENDER_SETTLE_DELAY", "1.0")),
        render_queue_timeout=float(os.getenv("RENDER_QUEUE_TIMEOUT", "10")),
        rpc_timeout=float(os.getenv("RPC_TIMEOUT", "10")),
        whois_timeout=float(os.getenv("WHOIS_TIMEOUT", "10")),
        check_timeout=float(os.getenv("CHECK_TIMEOUT", "45")),
        render_headless=os.getenv("RENDER_HEADLESS", "true").lower() == "true",
        etherscan_api_key=os.getenv("ETHERSCAN_API_KEY", ""),
        etherscan_base_url=os.getenv("ETHERSCAN_BASE_URL", "https://api.etherscan.io/v2/api"),
        trongrid_api_key=os.getenv("TRONGRID_API_KEY", ""),
        api_ninjas_whois_key=os.getenv("API_NINJAS_WHOIS_KEY", ""),
        providers=providers,
        max_page_wallets=int(os.getenv("MAX_PAGE_WALLETS", "20")),
        demo_url=os.getenv("DEMO_URL", "https://scamscan.online/demo-gray-url"),
        config_dir=config_dir,
        whitelist=whitelist,
        blacklist=blacklist,
        **heuristics,
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of error messages."""
    errors: list[str] = []
    for network in ("ethereum", "bsc", "solana", "tron", "ton", "bitcoin"):
        if not config.providers_for(network):
            errors.append(f"No providers configured for network: {network}")

    for name in ("fetch_timeout", "render_timeout", "render_queue_timeout", "rpc_timeout", "whois_timeout"):
        if getattr(config, name) <= 0:
            errors.append(f"{name} must be positive")

    if config.suspicious_threshold >= config.scam_threshold:
        errors.append("suspicious_threshold must be below scam_threshold")

    if not config.api_ninjas_whois_key:
        logger.info("No API_NINJAS_WHOIS_KEY configured; whois fallback disabled (RDAP only)")
    if not config.etherscan_api_key:
        logger.info("No ETHERSCAN_API_KEY configured; Ethereum history lookups disabled")

    return errors
