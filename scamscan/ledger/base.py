"""Ledger connector interface and snapshot models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..classifier import ChainFamily
from ..config import Config, ProviderEndpoint
from .http import ProviderClient, first_success

FRESH_SIGNAL = "Very fresh address with small historical activity."
DRAINED_SIGNAL = "Zero current balance — all funds moved out."
DEPOSIT_ONLY_SIGNAL = "Wallet has only incoming transactions (possible deposit-only)."


@dataclass(frozen=True)
class NativeCurrency:
    name: str
    symbol: str
    decimals: int


@dataclass
class TokenMetadata:
    name: str
    symbol: str
    decimals: Optional[int] = None
    total_supply: Optional[str] = None
    total_supply_formatted: Optional[str] = None
    standard: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": self.total_supply,
            "totalSupplyFormatted": self.total_supply_formatted,
            "standard": self.standard,
        }


@dataclass
class ContractInspection:
    """Outcome of probing an EVM contract."""

    is_contract: bool
    code_size: int = 0
    token_metadata: Optional[TokenMetadata] = None
    flags: list[str] = field(default_factory=list)
    is_honeypot: bool = False

    def to_dict(self) -> dict:
        return {
            "isContract": self.is_contract,
            "codeSize": self.code_size,
            "isHoneypot": self.is_honeypot,
            "flags": list(self.flags),
            "tokenMeta": self.token_metadata.to_dict() if self.token_metadata else None,
        }


@dataclass
class LedgerSnapshot:
    """What one network knows about one address, for one request."""

    network: str
    currency: NativeCurrency
    provider_used: Optional[str] = None
    balance_raw: int = 0
    tx_count: int = 0
    is_contract: bool = False
    is_token_contract: bool = False
    token_metadata: Optional[TokenMetadata] = None
    scam_signals: list[str] = field(default_factory=list)
    status: str = "unknown"  # active | empty | inactive | unknown
    contract_check: Optional[ContractInspection] = None
    summary: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def balance(self) -> str:
        return format_units(self.balance_raw, self.currency.decimals)

    @property
    def answered(self) -> bool:
        """At least one provider responded for this network."""
        return self.provider_used is not None

    def add_error(self, message: str) -> None:
        self.error = f"{self.error}; {message}" if self.error else message

    def settle_status(self) -> None:
        """Set status from activity once a provider has answered."""
        if self.answered:
            self.status = "active" if (self.tx_count > 0 or self.balance_raw > 0) else "empty"

    def to_dict(self) -> dict:
        return {
            "network": self.network,
            "provider": self.provider_used,
            "status": self.status,
            "balanceRaw": str(self.balance_raw),
            "balance": self.balance,
            "nativeCurrency": {
                "name": self.currency.name,
                "symbol": self.currency.symbol,
                "decimals": self.currency.decimals,
            },
            "txCount": self.tx_count,
            "isContract": self.is_contract,
            "isTokenContract": self.is_token_contract,
            "tokenMeta": self.token_metadata.to_dict() if self.token_metadata else None,
            "honeypotCheck": self.contract_check.to_dict() if self.contract_check else None,
            "scamSignals": list(self.scam_signals),
            "summary": self.summary,
            "extra": dict(self.extra),
            "error": self.error,
        }


def failed_snapshot(network: str, currency: NativeCurrency, error: str) -> LedgerSnapshot:
    """Snapshot for a network no provider could answer for. Unknown, not clean."""
    return LedgerSnapshot(network=network, currency=currency, status="unknown", error=error)


def format_units(raw: int, decimals: int, max_fraction: int = 6) -> str:
    """Scale an integer amount of smallest units to a decimal string."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return "0"
    if decimals <= 0:
        return str(value)
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10 ** decimals)
    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0")[:max_fraction].rstrip("0")
    if not fraction_str:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{fraction_str}"


def activity_signals(
    *,
    tx_count: int,
    balance_raw: int,
    is_contract: bool,
    fresh_threshold: int = 5,
    incoming: Optional[int] = None,
    outgoing: Optional[int] = None,
    balance_signals: bool = True,
) -> list[str]:
    """Coarse warnings derived from activity counters.

    With `balance_signals` off only the flow pattern is reported.
    """
    signals: list[str] = []
    if is_contract or tx_count <= 0:
        return signals
    if balance_signals and tx_count < fresh_threshold:
        signals.append(FRESH_SIGNAL)
    if balance_signals and balance_raw == 0:
        signals.append(DRAINED_SIGNAL)
    if incoming is not None and outgoing is not None and incoming > 0 and outgoing == 0:
        signals.append(DEPOSIT_ONLY_SIGNAL)
    return signals


class LedgerConnector(ABC):
    """Read-only view of one chain family."""

    family: ChainFamily = ChainFamily.UNKNOWN

    def __init__(self, config: Config, client: ProviderClient):
        self.config = config
        self.client = client

    def endpoints(self, network: str) -> list[ProviderEndpoint]:
        return self.config.providers_for(network)

    async def _rpc(self, network: str, method: str, params: list) -> tuple[ProviderEndpoint, Any]:
        """JSON-RPC call with fixed-order provider fallback."""

        async def call(endpoint: ProviderEndpoint):
            return await self.client.rpc(endpoint, method, params, timeout=self.config.rpc_timeout)

        return await first_success(network, self.endpoints(network), call)

    async def _get(self, network: str, path: str, **kwargs) -> tuple[ProviderEndpoint, Any]:
        """REST GET against each endpoint base URL in order."""
        kwargs.setdefault("timeout", self.config.rpc_timeout)

        async def call(endpoint: ProviderEndpoint):
            url = endpoint.url.rstrip("/") + "/" + path.lstrip("/")
            return await self.client.get_json(url, provider=endpoint.name, **kwargs)

        return await first_success(network, self.endpoints(network), call)

    @abstractmethod
    async def scan(self, address: str) -> list[LedgerSnapshot]:
        """Return one snapshot per network checked. Must not raise on provider failure."""
        raise NotImplementedError
