"""EVM contract probing: ERC20 metadata and transfer-path simulation.

A reverted transfer simulation is recorded as a flag only. Simulations revert
for many benign reasons (zero-amount guards, paused tokens, proxies), so a
failure alone never marks a contract as a honeypot.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Optional

from ..errors import ProviderError
from .base import ContractInspection, TokenMetadata, format_units

if TYPE_CHECKING:
    from .evm import EvmConnector

logger = logging.getLogger(__name__)

SELECTOR_NAME = "0x06fdde03"
SELECTOR_SYMBOL = "0x95d89b41"
SELECTOR_DECIMALS = "0x313ce567"
SELECTOR_TOTAL_SUPPLY = "0x18160ddd"
SELECTOR_TRANSFER = "0xa9059cbb"

BURN_ADDRESS = "000000000000000000000000000000000000dEaD"

FLAG_NOT_STD_ERC20 = "NOT_STD_ERC20"
FLAG_TRANSFER_SIMULATION_FAILED = "TRANSFER_SIMULATION_FAILED"
FLAG_RPC_FAIL = "RPC_FAIL"

DEFAULT_DECIMALS = 18
MAX_DECIMALS = 36

_EMPTY_CODE_RE = re.compile(r"^0x0*$")


def has_code(code: Optional[str]) -> bool:
    """True for non-empty bytecode. "0x", "0x0" and all-zero strings are EOAs."""
    if not code or not isinstance(code, str):
        return False
    return not _EMPTY_CODE_RE.match(code.strip())


def transfer_calldata(to_hex: str = BURN_ADDRESS, amount: int = 0) -> str:
    """ABI-encode transfer(address,uint256)."""
    to_word = to_hex.lower().removeprefix("0x").rjust(64, "0")
    amount_word = format(amount, "x").rjust(64, "0")
    return SELECTOR_TRANSFER + to_word + amount_word


def _hex_bytes(value: Optional[str]) -> bytes:
    if not value or not isinstance(value, str):
        return b""
    clean = value[2:] if value.startswith("0x") else value
    if len(clean) % 2:
        clean = clean[:-1]
    try:
        return bytes.fromhex(clean)
    except ValueError:
        return b""


def _printable(text: str) -> str:
    return "".join(ch for ch in text if ch.isprintable()).strip()


def decode_abi_string(value: Optional[str]) -> str:
    """Decode a `string` return value, tolerating bytes32 and non-standard encodings."""
    data = _hex_bytes(value)
    if not data:
        return ""

    if len(data) >= 64:
        offset = int.from_bytes(data[:32], "big")
        if offset + 32 <= len(data):
            length = int.from_bytes(data[offset : offset + 32], "big")
            start = offset + 32
            if start + length <= len(data):
                return _printable(data[start : start + length].decode("utf-8", errors="ignore"))

    if len(data) == 32:
        return _printable(data.rstrip(b"\x00").decode("utf-8", errors="ignore"))

    return _printable("".join(chr(b) for b in data if 32 <= b <= 126))


def decode_uint(value: Optional[str]) -> Optional[int]:
    data = _hex_bytes(value)
    if not data:
        return None
    return int.from_bytes(data[:32], "big")


class ContractInspector:
    """Probes EVM contracts through the EVM connector's provider fallback."""

    def __init__(self, evm: "EvmConnector"):
        self.evm = evm

    async def _eth_call(self, network: str, address: str, data: str):
        return await self.evm.rpc(network, "eth_call", [{"to": address, "data": data}, "latest"])

    async def _call_or_none(self, network: str, address: str, data: str) -> Optional[str]:
        try:
            return await self._eth_call(network, address, data)
        except ProviderError:
            return None

    async def _succeeds(self, network: str, address: str, data: str) -> bool:
        try:
            await self._eth_call(network, address, data)
        except ProviderError as exc:
            logger.debug("eth_call %s on %s/%s failed: %s", data[:10], network, address, exc)
            return False
        return True

    async def token_metadata(self, network: str, address: str) -> Optional[TokenMetadata]:
        """Best-effort ERC20 metadata. None when neither name nor symbol decodes."""
        name_hex, symbol_hex, decimals_hex, supply_hex = await asyncio.gather(
            self._call_or_none(network, address, SELECTOR_NAME),
            self._call_or_none(network, address, SELECTOR_SYMBOL),
            self._call_or_none(network, address, SELECTOR_DECIMALS),
            self._call_or_none(network, address, SELECTOR_TOTAL_SUPPLY),
        )

        name = decode_abi_string(name_hex)
        symbol = decode_abi_string(symbol_hex)
        if not name and not symbol:
            return None

        decimals = DEFAULT_DECIMALS
        raw_decimals = decode_uint(decimals_hex)
        if raw_decimals is not None and 0 <= raw_decimals <= MAX_DECIMALS:
            decimals = raw_decimals

        total_supply = decode_uint(supply_hex)
        return TokenMetadata(
            name=name or "Unknown",
            symbol=symbol or "TKN",
            decimals=decimals,
            total_supply=str(total_supply) if total_supply is not None else None,
            total_supply_formatted=format_units(total_supply, decimals) if total_supply is not None else None,
            standard="ERC20",
        )

    async def inspect(self, network: str, address: str, code: Optional[str] = None) -> ContractInspection:
        if code is None:
            try:
                code = await self.evm.rpc(network, "eth_getCode", [address, "latest"])
            except ProviderError as exc:
                logger.debug("Code probe failed for %s on %s: %s", address, network, exc)
                return ContractInspection(is_contract=False, flags=[FLAG_RPC_FAIL])

        if not has_code(code):
            return ContractInspection(is_contract=False)

        result = ContractInspection(is_contract=True, code_size=len(_hex_bytes(code)))
        supply_ok, transfer_ok, metadata = await asyncio.gather(
            self._succeeds(network, address, SELECTOR_TOTAL_SUPPLY),
            self._succeeds(network, address, transfer_calldata()),
            self.token_metadata(network, address),
        )
        if not supply_ok:
            result.flags.append(FLAG_NOT_STD_ERC20)
        if not transfer_ok:
            result.flags.append(FLAG_TRANSFER_SIMULATION_FAILED)
        result.token_metadata = metadata
        return result
