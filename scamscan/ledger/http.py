"""Shared HTTP plumbing for ledger-data providers."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

import aiohttp

from ..config import ProviderEndpoint
from ..errors import AllProvidersFailedError, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_rpc_ids = itertools.count(1)


class ProviderClient:
    """Thin aiohttp wrapper: every failure becomes a ProviderError so callers can fall back."""

    def __init__(self, timeout: float = 10.0, user_agent: str = "ScamScan/2.0"):
        self.timeout = timeout
        self.user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            )
        return self._session

    async def close(self):
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _timeout(self, timeout: Optional[float]) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=timeout or self.timeout)

    @staticmethod
    async def _read_json(resp, provider: str) -> Any:
        try:
            return await resp.json(content_type=None)
        except Exception as exc:
            raise ProviderError(provider, f"non-JSON response ({exc})", resp.status)

    async def get_json(
        self,
        url: str,
        *,
        provider: str = "",
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
        timeout: Optional[float] = None,
        empty_statuses: Iterable[int] = (),
    ) -> Any:
        """GET a JSON document. Statuses in `empty_statuses` return None instead of failing."""
        provider = provider or url
        session = await self._get_session()
        try:
            async with session.get(url, params=params, headers=headers, timeout=self._timeout(timeout)) as resp:
                if resp.status in set(empty_statuses):
                    return None
                if resp.status != 200:
                    raise ProviderError(provider, f"HTTP {resp.status}", resp.status)
                return await self._read_json(resp, provider)
        except asyncio.TimeoutError:
            raise ProviderError(provider, "request timed out")
        except aiohttp.ClientError as exc:
            raise ProviderError(provider, f"request failed: {exc}")

    async def post_json(
        self,
        url: str,
        payload: dict,
        *,
        provider: str = "",
        headers: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        provider = provider or url
        session = await self._get_session()
        try:
            async with session.post(url, json=payload, headers=headers, timeout=self._timeout(timeout)) as resp:
                if resp.status != 200:
                    raise ProviderError(provider, f"HTTP {resp.status}", resp.status)
                return await self._read_json(resp, provider)
        except asyncio.TimeoutError:
            raise ProviderError(provider, "request timed out")
        except aiohttp.ClientError as exc:
            raise ProviderError(provider, f"request failed: {exc}")

    async def rpc(
        self,
        endpoint: ProviderEndpoint,
        method: str,
        params: list,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        """JSON-RPC 2.0 call. A missing `result` or an `error` member counts as a provider failure."""
        payload = {"jsonrpc": "2.0", "id": next(_rpc_ids), "method": method, "params": params}
        data = await self.post_json(endpoint.url, payload, provider=endpoint.name, timeout=timeout)
        if not isinstance(data, dict):
            raise ProviderError(endpoint.name, f"{method}: malformed response")
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderError(endpoint.name, f"{method}: {message}")
        if "result" not in data:
            raise ProviderError(endpoint.name, f"{method}: response has no result")
        return data["result"]


async def first_success(
    network: str,
    endpoints: Iterable[ProviderEndpoint],
    call: Callable[[ProviderEndpoint], Awaitable[T]],
) -> tuple[ProviderEndpoint, T]:
    """Try endpoints in fixed order; return the first that answers without raising ProviderError.

    A structurally valid but empty answer is accepted as-is.
    """
    last_error: Optional[ProviderError] = None
    for endpoint in endpoints:
        try:
            result = await call(endpoint)
        except ProviderError as exc:
            logger.debug("Provider %s failed for %s: %s", endpoint.name, network, exc.message)
            last_error = exc
            continue
        return endpoint, result
    raise AllProvidersFailedError(network, last_error)
