"""Read-only ledger access, one connector per chain family."""

from .base import LedgerConnector, LedgerSnapshot, NativeCurrency, TokenMetadata
from .contract import ContractInspector
from .evm import EvmConnector
from .http import ProviderClient, first_success
from .registry import build_connectors
from .solana import SolanaConnector

__all__ = [
    "ContractInspector",
    "EvmConnector",
    "LedgerConnector",
    "LedgerSnapshot",
    "NativeCurrency",
    "ProviderClient",
    "SolanaConnector",
    "TokenMetadata",
    "build_connectors",
    "first_success",
]
