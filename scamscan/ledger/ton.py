"""TON mainnet via toncenter v3 or tonapi v2."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from ..classifier import ChainFamily
from ..config import ProviderEndpoint
from ..errors import AllProvidersFailedError, ProviderError
from .base import LedgerConnector, LedgerSnapshot, NativeCurrency
from .http import first_success

logger = logging.getLogger(__name__)

NETWORK = "ton"
TON = NativeCurrency("TON", "TON", 9)

_NON_B64URL_RE = re.compile(r"[^A-Za-z0-9_-]")
_HEX_HASH_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def normalize_address(address: str) -> str:
    return _NON_B64URL_RE.sub("", address or "")


def normalize_code_hash(value: Any) -> Optional[str]:
    """Code hash as lowercase hex. Accepts hex or (url-safe) base64."""
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    if _HEX_HASH_RE.match(value):
        return value.lower()
    try:
        padded = value.replace("-", "+").replace("_", "/")
        padded += "=" * (-len(padded) % 4)
        raw = base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError):
        return None
    if len(raw) != 32:
        return None
    return raw.hex()


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass
class TonAccountState:
    balance: int = 0
    status: str = "unknown"
    code_hash: Optional[str] = None
    has_code: bool = False
    interfaces: list[str] = field(default_factory=list)


def _is_tonapi(endpoint: ProviderEndpoint) -> bool:
    return "tonapi" in endpoint.name.lower() or "tonapi" in endpoint.url.lower()


class TonConnector(LedgerConnector):
    family = ChainFamily.TON

    def _url(self, endpoint: ProviderEndpoint, path: str) -> str:
        return endpoint.url.rstrip("/") + "/" + path

    async def _account_state(self, endpoint: ProviderEndpoint, address: str) -> TonAccountState:
        timeout = self.config.rpc_timeout
        if _is_tonapi(endpoint):
            data = await self.client.get_json(
                self._url(endpoint, f"blockchain/accounts/{address}"), provider=endpoint.name, timeout=timeout
            )
            account = data.get("account", data) if isinstance(data, dict) else None
            if not isinstance(account, dict):
                raise ProviderError(endpoint.name, "malformed account state")
            interfaces = account.get("interfaces")
            return TonAccountState(
                balance=_int(account.get("balance")),
                status=str(account.get("status") or "unknown"),
                code_hash=normalize_code_hash(account.get("code_hash")),
                has_code=bool(account.get("code") or account.get("code_hash")),
                interfaces=[str(i).lower() for i in interfaces] if isinstance(interfaces, list) else [],
            )

        data = await self.client.get_json(
            self._url(endpoint, "accountStates"),
            provider=endpoint.name,
            params={"address": address, "include_boc": "false"},
            timeout=timeout,
        )
        accounts = data.get("accounts") if isinstance(data, dict) else None
        if not isinstance(accounts, list):
            raise ProviderError(endpoint.name, "malformed account state")
        if not accounts:
            return TonAccountState(status="nonexist")
        account = accounts[0] if isinstance(accounts[0], dict) else {}
        code_hash = normalize_code_hash(account.get("code_hash"))
        return TonAccountState(
            balance=_int(account.get("balance")),
            status=str(account.get("status") or "unknown"),
            code_hash=code_hash,
            has_code=code_hash is not None,
        )

    async def _transactions(self, endpoint: ProviderEndpoint, address: str) -> int:
        limit = str(self.config.ton_tx_limit)
        if _is_tonapi(endpoint):
            url = self._url(endpoint, f"blockchain/accounts/{address}/transactions")
            params = {"limit": limit}
        else:
            url = self._url(endpoint, "transactions")
            params = {"account": address, "limit": limit}
        data = await self.client.get_json(url, provider=endpoint.name, params=params, timeout=self.config.rpc_timeout)
        txs = data.get("transactions") if isinstance(data, dict) else None
        if not isinstance(txs, list):
            raise ProviderError(endpoint.name, "malformed transaction list")
        return len(txs)

    def is_contract(self, state: TonAccountState) -> bool:
        """Code running on the account that is not a known wallet contract."""
        if state.code_hash:
            return state.code_hash not in self.config.ton_wallet_code_hashes
        if state.has_code:
            return not any(i.startswith("wallet") for i in state.interfaces)
        return False

    async def scan(self, address: str) -> list[LedgerSnapshot]:
        clean = normalize_address(address)
        snapshot = LedgerSnapshot(network=NETWORK, currency=TON)
        endpoints = self.endpoints(NETWORK)

        try:
            endpoint, state = await first_success(NETWORK, endpoints, lambda ep: self._account_state(ep, clean))
        except AllProvidersFailedError as exc:
            logger.warning("No TON provider answered for %s", clean)
            snapshot.add_error(str(exc))
            return [snapshot]

        snapshot.provider_used = endpoint.name
        snapshot.balance_raw = state.balance
        snapshot.is_contract = self.is_contract(state)
        snapshot.extra.update(
            {
                "accountStatus": state.status,
                "codeHash": state.code_hash,
                "isWalletContract": bool(state.code_hash) and not snapshot.is_contract,
            }
        )

        try:
            _, snapshot.tx_count = await first_success(
                NETWORK, endpoints, lambda ep: self._transactions(ep, clean)
            )
        except AllProvidersFailedError as exc:
            snapshot.add_error(f"Transactions unavailable: {exc}")

        snapshot.settle_status()
        return [snapshot]
