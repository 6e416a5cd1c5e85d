"""TRON mainnet via TronGrid-compatible REST endpoints."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..classifier import ChainFamily
from ..errors import AllProvidersFailedError
from .base import LedgerConnector, LedgerSnapshot, NativeCurrency, TokenMetadata

logger = logging.getLogger(__name__)

NETWORK = "tron"
TRX = NativeCurrency("TRON", "TRX", 6)

TRC20_CORE_FUNCTIONS = {"totalsupply", "balanceof", "transfer"}


def _first(data: Any) -> Optional[dict]:
    """First element of a TronGrid `{"data": [...]}` envelope."""
    if not isinstance(data, dict):
        return None
    items = data.get("data")
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return None


def is_trc20_abi(contract: Optional[dict]) -> bool:
    """True when the contract ABI exposes totalSupply, balanceOf and transfer."""
    if not isinstance(contract, dict):
        return False
    abi = contract.get("abi")
    entries = abi.get("entrys") if isinstance(abi, dict) else None
    if not isinstance(entries, list):
        return False
    names = {
        str(entry.get("name")).lower()
        for entry in entries
        if isinstance(entry, dict) and entry.get("name") and str(entry.get("type", "")).lower() == "function"
    }
    return TRC20_CORE_FUNCTIONS <= names


class TronConnector(LedgerConnector):
    family = ChainFamily.TRON

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.config.trongrid_api_key:
            headers["TRON-PRO-API-KEY"] = self.config.trongrid_api_key
        return headers

    async def _fetch(self, path: str, **kwargs):
        return await self._get(NETWORK, path, headers=self._headers(), **kwargs)

    async def scan(self, address: str) -> list[LedgerSnapshot]:
        snapshot = LedgerSnapshot(network=NETWORK, currency=TRX)

        try:
            endpoint, data = await self._fetch(f"/v1/accounts/{address}")
            snapshot.provider_used = endpoint.name
            account = _first(data)
            snapshot.extra["accountExists"] = account is not None
            if account is not None:
                balance = account.get("balance")
                if isinstance(balance, int):
                    snapshot.balance_raw = balance
                account_type = account.get("type")
                if isinstance(account_type, str):
                    snapshot.extra["accountType"] = account_type
                    if account_type.lower() == "contract":
                        snapshot.is_contract = True
        except AllProvidersFailedError as exc:
            snapshot.add_error(f"Tron account error: {exc}")

        # The account type is not always reliable, so the contract record is always checked.
        try:
            endpoint, data = await self._fetch(f"/v1/contracts/{address}", empty_statuses=(404,))
            snapshot.provider_used = snapshot.provider_used or endpoint.name
            contract = _first(data)
            if contract is not None:
                snapshot.is_contract = True
                if contract.get("type"):
                    snapshot.extra["contractType"] = contract.get("type")
                if is_trc20_abi(contract):
                    snapshot.is_token_contract = True
        except AllProvidersFailedError as exc:
            snapshot.add_error(f"Contract meta error: {exc}")

        try:
            endpoint, data = await self._fetch(f"/v1/contracts/{address}/tokens", empty_statuses=(404,))
            snapshot.provider_used = snapshot.provider_used or endpoint.name
            record = _first(data)
            if record is not None:
                snapshot.is_token_contract = True
                info = record.get("token_info")
                if isinstance(info, dict):
                    decimals = info.get("decimals")
                    try:
                        decimals = int(decimals) if decimals is not None else None
                    except (TypeError, ValueError):
                        decimals = None
                    snapshot.token_metadata = TokenMetadata(
                        name=str(info.get("name") or "Unknown"),
                        symbol=str(info.get("symbol") or "TKN"),
                        decimals=decimals,
                        standard="TRC20",
                    )
        except AllProvidersFailedError as exc:
            snapshot.add_error(f"TRC20 detect error: {exc}")

        if snapshot.is_token_contract and snapshot.token_metadata is None:
            snapshot.token_metadata = TokenMetadata(name="Unknown", symbol="TKN", standard="TRC20")

        try:
            endpoint, data = await self._fetch(
                f"/v1/accounts/{address}/transactions",
                params={"limit": str(self.config.tron_tx_limit), "only_confirmed": "true"},
            )
            snapshot.provider_used = snapshot.provider_used or endpoint.name
            items = data.get("data") if isinstance(data, dict) else None
            if isinstance(items, list):
                snapshot.tx_count = len(items)
        except AllProvidersFailedError as exc:
            logger.debug("Tron transaction list unavailable for %s: %s", address, exc)

        if not snapshot.answered:
            logger.warning("No TRON provider answered for %s", address)
            return [snapshot]

        snapshot.settle_status()
        return [snapshot]
