"""EVM-compatible networks (Ethereum mainnet and BNB Smart Chain)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..classifier import ChainFamily
from ..config import Config
from ..errors import AllProvidersFailedError, ProviderError
from .base import (
    ContractInspection,
    LedgerConnector,
    LedgerSnapshot,
    NativeCurrency,
    activity_signals,
    failed_snapshot,
)
from .contract import FLAG_RPC_FAIL, ContractInspector, has_code
from .http import ProviderClient

logger = logging.getLogger(__name__)

NETWORKS: dict[str, NativeCurrency] = {
    "ethereum": NativeCurrency("Ethereum", "ETH", 18),
    "bsc": NativeCurrency("BNB Chain", "BNB", 18),
}

# Networks with Etherscan-style history (chain id for the v2 API).
ETHERSCAN_CHAIN_IDS = {"ethereum": 1}


def hex_to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if not value or not isinstance(value, str):
        return 0
    try:
        return int(value, 16)
    except ValueError:
        return 0


@dataclass
class TxHistory:
    """Directional summary of an address's transaction list."""

    tx_count: int = 0
    incoming: int = 0
    outgoing: int = 0
    unique_senders: int = 0
    unique_receivers: int = 0
    last_timestamp: Optional[int] = None


def summarize_history(txs: list[dict], address: str) -> TxHistory:
    addr = address.lower()
    history = TxHistory(tx_count=len(txs))
    senders: set[str] = set()
    receivers: set[str] = set()
    for tx in txs:
        sender = str(tx.get("from") or "").lower()
        recipient = str(tx.get("to") or "").lower()
        if recipient == addr:
            history.incoming += 1
            if sender:
                senders.add(sender)
        if sender == addr:
            history.outgoing += 1
            if recipient:
                receivers.add(recipient)
        try:
            ts = int(tx.get("timeStamp"))
        except (TypeError, ValueError):
            continue
        if history.last_timestamp is None or ts > history.last_timestamp:
            history.last_timestamp = ts
    history.unique_senders = len(senders)
    history.unique_receivers = len(receivers)
    return history


class EvmConnector(LedgerConnector):
    """Scans an address on every configured EVM network in parallel."""

    family = ChainFamily.EVM

    def __init__(self, config: Config, client: ProviderClient, networks: Optional[dict[str, NativeCurrency]] = None):
        super().__init__(config, client)
        self.networks = dict(networks or NETWORKS)
        self.inspector = ContractInspector(self)

    async def rpc(self, network: str, method: str, params: list) -> Any:
        """JSON-RPC call with provider fallback. Raises AllProvidersFailedError."""
        _, result = await self._rpc(network, method, params)
        return result

    async def code_at(self, network: str, address: str) -> Optional[bool]:
        """True if bytecode is deployed at `address`, None when no provider answered."""
        try:
            code = await self.rpc(network, "eth_getCode", [address, "latest"])
        except ProviderError as exc:
            logger.debug("eth_getCode failed for %s on %s: %s", address, network, exc)
            return None
        return has_code(code)

    async def _history(self, network: str, address: str) -> Optional[TxHistory]:
        chain_id = ETHERSCAN_CHAIN_IDS.get(network)
        if chain_id is None or not self.config.etherscan_api_key:
            return None

        params = {
            "chainid": str(chain_id),
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": "0",
            "endblock": "99999999",
            "sort": "desc",
            "apikey": self.config.etherscan_api_key,
        }
        try:
            data = await self.client.get_json(
                self.config.etherscan_base_url,
                provider="etherscan",
                params=params,
                timeout=self.config.rpc_timeout,
            )
        except ProviderError as exc:
            logger.info("Etherscan history unavailable for %s: %s", address, exc)
            return None

        if not isinstance(data, dict):
            return None
        result = data.get("result")
        if str(data.get("status")) == "1" and isinstance(result, list):
            return summarize_history(result, address)
        # status "0" with "No transactions found" is a valid empty answer
        return TxHistory()

    async def scan_network(self, network: str, address: str) -> LedgerSnapshot:
        currency = self.networks[network]
        history = await self._history(network, address)

        try:
            endpoint, balance_hex = await self._rpc(network, "eth_getBalance", [address, "latest"])
        except AllProvidersFailedError as exc:
            logger.warning("No %s provider answered eth_getBalance for %s", network, address)
            return failed_snapshot(network, currency, str(exc))

        snapshot = LedgerSnapshot(
            network=network,
            currency=currency,
            provider_used=endpoint.name,
            balance_raw=hex_to_int(balance_hex),
        )
        if history is not None:
            snapshot.tx_count = history.tx_count
            snapshot.extra.update(
                {
                    "historySource": "etherscan",
                    "incoming": history.incoming,
                    "outgoing": history.outgoing,
                    "uniqueSenders": history.unique_senders,
                    "uniqueReceivers": history.unique_receivers,
                    "lastActivity": history.last_timestamp,
                }
            )

        if snapshot.tx_count == 0:
            try:
                snapshot.tx_count = hex_to_int(
                    await self.rpc(network, "eth_getTransactionCount", [address, "latest"])
                )
            except AllProvidersFailedError as exc:
                snapshot.add_error(str(exc))

        if snapshot.tx_count == 0 and snapshot.balance_raw == 0:
            snapshot.status = "empty"
            return snapshot

        snapshot.status = "active"
        try:
            code = await self.rpc(network, "eth_getCode", [address, "latest"])
        except AllProvidersFailedError as exc:
            logger.debug("Code probe failed for %s on %s: %s", address, network, exc)
            snapshot.contract_check = ContractInspection(is_contract=False, flags=[FLAG_RPC_FAIL])
            code = None

        if has_code(code):
            inspection = await self.inspector.inspect(network, address, code=code)
            snapshot.contract_check = inspection
            snapshot.is_contract = True
            snapshot.token_metadata = inspection.token_metadata
            snapshot.is_token_contract = inspection.token_metadata is not None

        snapshot.scam_signals = activity_signals(
            tx_count=snapshot.tx_count,
            balance_raw=snapshot.balance_raw,
            is_contract=snapshot.is_contract,
            incoming=history.incoming if history else None,
            outgoing=history.outgoing if history else None,
            balance_signals=False,
        )
        return snapshot

    async def scan(self, address: str) -> list[LedgerSnapshot]:
        results = await asyncio.gather(
            *(self.scan_network(network, address) for network in self.networks),
            return_exceptions=True,
        )
        snapshots: list[LedgerSnapshot] = []
        for network, result in zip(self.networks, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error("Unexpected error scanning %s on %s: %s", address, network, result)
                snapshots.append(failed_snapshot(network, self.networks[network], str(result)))
            else:
                snapshots.append(result)
        return snapshots
