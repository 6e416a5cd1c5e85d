"""Bitcoin mainnet via Esplora-compatible APIs (Blockstream, mempool.space)."""

from __future__ import annotations

import logging
from typing import Any

from ..classifier import ChainFamily
from ..config import ProviderEndpoint
from ..errors import AllProvidersFailedError, ProviderError
from .base import LedgerConnector, LedgerSnapshot, NativeCurrency, activity_signals, format_units
from .http import first_success

logger = logging.getLogger(__name__)

NETWORK = "bitcoin"
BTC = NativeCurrency("Bitcoin", "BTC", 8)


def _stat(stats: Any, key: str) -> int:
    if not isinstance(stats, dict):
        return 0
    try:
        return int(stats.get(key) or 0)
    except (TypeError, ValueError):
        return 0


class BitcoinConnector(LedgerConnector):
    family = ChainFamily.BITCOIN

    async def _address_stats(self, endpoint: ProviderEndpoint, address: str) -> dict:
        url = endpoint.url.rstrip("/") + f"/address/{address}"
        data = await self.client.get_json(url, provider=endpoint.name, timeout=self.config.rpc_timeout)
        if not isinstance(data, dict) or "chain_stats" not in data:
            raise ProviderError(endpoint.name, "malformed address stats")
        return data

    async def scan(self, address: str) -> list[LedgerSnapshot]:
        snapshot = LedgerSnapshot(network=NETWORK, currency=BTC)

        try:
            endpoint, data = await first_success(
                NETWORK, self.endpoints(NETWORK), lambda ep: self._address_stats(ep, address)
            )
        except AllProvidersFailedError as exc:
            logger.warning("No Bitcoin provider answered for %s", address)
            snapshot.add_error(str(exc))
            return [snapshot]

        chain = data.get("chain_stats")
        mempool = data.get("mempool_stats")
        funded = _stat(chain, "funded_txo_sum")
        spent = _stat(chain, "spent_txo_sum")
        funded_count = _stat(chain, "funded_txo_count")
        spent_count = _stat(chain, "spent_txo_count")

        snapshot.provider_used = endpoint.name
        snapshot.balance_raw = funded - spent
        snapshot.tx_count = _stat(chain, "tx_count") + _stat(mempool, "tx_count")
        snapshot.extra.update(
            {
                "totalReceived": str(funded),
                "totalSent": str(spent),
                "mempoolTxCount": _stat(mempool, "tx_count"),
            }
        )
        snapshot.settle_status()

        if snapshot.tx_count > 0:
            snapshot.summary = (
                f"Total received: {format_units(funded, BTC.decimals, 8)} BTC • "
                f"Total sent: {format_units(spent, BTC.decimals, 8)} BTC • "
                f"Net balance: {format_units(snapshot.balance_raw, BTC.decimals, 8)} BTC"
            )

        snapshot.scam_signals = activity_signals(
            tx_count=snapshot.tx_count,
            balance_raw=snapshot.balance_raw,
            is_contract=False,
            fresh_threshold=self.config.fresh_tx_threshold,
            incoming=funded_count,
            outgoing=spent_count,
        )
        return [snapshot]
