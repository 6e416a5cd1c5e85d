"""Solana mainnet via JSON-RPC."""

from __future__ import annotations

import logging
from typing import Optional

from ..classifier import ChainFamily
from ..errors import AllProvidersFailedError
from .base import LedgerConnector, LedgerSnapshot, NativeCurrency, TokenMetadata

logger = logging.getLogger(__name__)

NETWORK = "solana"
SOL = NativeCurrency("Solana", "SOL", 9)

TOKEN_PROGRAM_IDS = {
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
    "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb",  # Token-2022
}

ENTITY_PROGRAM = "program"
ENTITY_MINT = "mint"
ENTITY_TOKEN_ACCOUNT = "token-account"
ENTITY_WALLET = "wallet"


def entity_type(account: Optional[dict]) -> str:
    """Map a jsonParsed getAccountInfo value to program / mint / token-account / wallet."""
    if not isinstance(account, dict):
        return ENTITY_WALLET
    if account.get("executable"):
        return ENTITY_PROGRAM
    if account.get("owner") in TOKEN_PROGRAM_IDS:
        data = account.get("data")
        parsed = data.get("parsed") if isinstance(data, dict) else None
        parsed_type = parsed.get("type") if isinstance(parsed, dict) else None
        if parsed_type == "mint":
            return ENTITY_MINT
        if parsed_type == "account":
            return ENTITY_TOKEN_ACCOUNT
    return ENTITY_WALLET


def _parsed_info(account: Optional[dict]) -> dict:
    if not isinstance(account, dict):
        return {}
    data = account.get("data")
    parsed = data.get("parsed") if isinstance(data, dict) else None
    info = parsed.get("info") if isinstance(parsed, dict) else None
    return info if isinstance(info, dict) else {}


class SolanaConnector(LedgerConnector):
    family = ChainFamily.SOLANA

    async def _account_info(self, address: str) -> tuple[str, Optional[dict]]:
        endpoint, result = await self._rpc(NETWORK, "getAccountInfo", [address, {"encoding": "jsonParsed"}])
        value = result.get("value") if isinstance(result, dict) else None
        return endpoint.name, value if isinstance(value, dict) else None

    async def describe_account(self, address: str) -> Optional[str]:
        """Entity type of an address, or None when no provider answered."""
        try:
            _, account = await self._account_info(address)
        except AllProvidersFailedError as exc:
            logger.debug("getAccountInfo failed for %s: %s", address, exc)
            return None
        return entity_type(account)

    async def scan(self, address: str) -> list[LedgerSnapshot]:
        snapshot = LedgerSnapshot(network=NETWORK, currency=SOL)

        try:
            endpoint, result = await self._rpc(NETWORK, "getBalance", [address])
            snapshot.provider_used = endpoint.name
            value = result.get("value") if isinstance(result, dict) else result
            if isinstance(value, int):
                snapshot.balance_raw = value
        except AllProvidersFailedError as exc:
            snapshot.add_error(f"Balance RPC error: {exc}")

        try:
            provider, account = await self._account_info(address)
            snapshot.provider_used = snapshot.provider_used or provider
            entity = entity_type(account)
            snapshot.extra["entityType"] = entity
            snapshot.extra["accountExists"] = account is not None
            if account is not None:
                snapshot.extra["owner"] = account.get("owner")
                snapshot.extra["executable"] = bool(account.get("executable"))
            snapshot.is_contract = entity in (ENTITY_PROGRAM, ENTITY_MINT)
            snapshot.is_token_contract = entity == ENTITY_MINT
            if entity == ENTITY_MINT:
                info = _parsed_info(account)
                decimals = info.get("decimals")
                supply = info.get("supply")
                snapshot.token_metadata = TokenMetadata(
                    name="Unknown",
                    symbol="SPL",
                    decimals=decimals if isinstance(decimals, int) else None,
                    total_supply=str(supply) if supply is not None else None,
                    standard="SPL",
                )
                snapshot.extra["mintAuthority"] = info.get("mintAuthority")
                snapshot.extra["freezeAuthority"] = info.get("freezeAuthority")
        except AllProvidersFailedError as exc:
            snapshot.add_error(f"AccountInfo RPC error: {exc}")

        try:
            endpoint, signatures = await self._rpc(
                NETWORK,
                "getSignaturesForAddress",
                [address, {"limit": self.config.solana_signature_limit}],
            )
            snapshot.provider_used = snapshot.provider_used or endpoint.name
            if isinstance(signatures, list):
                snapshot.tx_count = len(signatures)
        except AllProvidersFailedError as exc:
            snapshot.add_error(f"Signatures RPC error: {exc}")

        if not snapshot.answered:
            logger.warning("No Solana provider answered for %s", address)
            return [snapshot]

        snapshot.settle_status()
        return [snapshot]
