"""Exception types for the risk engine."""

from __future__ import annotations

from typing import Optional


class ScamScanError(Exception):
    """Base exception for engine errors."""

    pass


class InvalidInputError(ScamScanError):
    """Query value is missing or unusable. Surfaced to the caller as a client error."""

    pass


class ProviderError(ScamScanError):
    """A single upstream provider failed (timeout, transport error, bad payload)."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class AllProvidersFailedError(ProviderError):
    """Every configured provider for one network failed."""

    def __init__(self, network: str, last_error: Optional[ProviderError] = None):
        self.network = network
        self.last_error = last_error
        detail = last_error.message if last_error else "no providers configured"
        super().__init__(network, f"all providers failed ({detail})")


class RenderBusyError(ScamScanError):
    """Render slot could not be acquired within the queue ceiling."""

    def __init__(self, message: str = "Server busy (render queue full). Try again later."):
        super().__init__(message)


class RenderError(ScamScanError):
    """Headless render failed to produce content."""

    pass
