"""Chain family -> connector selection."""

from __future__ import annotations

from ..classifier import ChainFamily
from ..config import Config
from .base import LedgerConnector
from .bitcoin import BitcoinConnector
from .evm import EvmConnector
from .http import ProviderClient
from .solana import SolanaConnector
from .ton import TonConnector
from .tron import TronConnector

CONNECTOR_CLASSES: tuple[type[LedgerConnector], ...] = (
    EvmConnector,
    SolanaConnector,
    TronConnector,
    TonConnector,
    BitcoinConnector,
)


def build_connectors(config: Config, client: ProviderClient) -> dict[ChainFamily, LedgerConnector]:
    """One connector instance per supported chain family, sharing one HTTP client."""
    return {cls.family: cls(config, client) for cls in CONNECTOR_CLASSES}
