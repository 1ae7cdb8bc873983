import asyncio
import math
from dataclasses import replace
from typing import Any

from .config import DiscoveryOptions
from .context import DiscoveryContext
from .discovery import discover
from .router import EndpointResult


class NozomiClient:
    """Keeps the last ranking around so callers can reuse it between sends."""

    def __init__(
        self,
        api_key: str | None = None,
        options: DiscoveryOptions | None = None,
        context: DiscoveryContext | None = None,
    ):
        self.api_key = api_key
        self.options = options or DiscoveryOptions()
        self.context = context
        self._endpoints: list[EndpointResult] | None = None
        self._lock = asyncio.Lock()

    def _options(self, **overrides: Any) -> DiscoveryOptions:
        if self.context is not None and self.options.context is None:
            overrides.setdefault("context", self.context)
        return replace(self.options, **overrides)

    async def find_fastest_endpoints(self) -> list[EndpointResult]:
        """Run discovery now and remember the ranking."""
        endpoints = await discover(self._options())
        self._endpoints = endpoints
        return endpoints

    async def get_endpoints(self) -> list[EndpointResult]:
        """Cached ranking; discovers on first use."""
        async with self._lock:
            if self._endpoints is None:
                await self.find_fastest_endpoints()
            return list(self._endpoints)

    async def refresh(self) -> list[EndpointResult]:
        async with self._lock:
            return await self.find_fastest_endpoints()

    def endpoint_url(self, endpoint: EndpointResult | str) -> str:
        """
        URL to send requests to, with the API key attached.

        Args:
            endpoint: A ranked result or a bare endpoint URL

        Returns:
            ``<url>/?c=<api_key>``, or the bare URL when no key is set
        """
        url = endpoint.url if isinstance(endpoint, EndpointResult) else endpoint
        url = url.rstrip("/")
        if not self.api_key:
            return url
        return f"{url}/?c={self.api_key}"

    async def fastest_endpoint_url(self) -> str:
        endpoints = await self.get_endpoints()
        return self.endpoint_url(endpoints[0])

    async def list_endpoints(self) -> list[dict]:
        """Get latency information for every candidate endpoint."""
        measured: list[EndpointResult] = []
        user_callback = self.options.on_result

        def collect(result: EndpointResult):
            measured.append(result)
            if user_callback is not None:
                return user_callback(result)

        async with self._lock:
            self._endpoints = await discover(self._options(on_result=collect))

        reachable = [r for r in measured if r.reachable]
        fastest = min(reachable, key=lambda r: r.min_time) if reachable else None

        endpoints_info = []
        for result in measured:
            endpoints_info.append({
                "url": result.url,
                "region": result.region,
                "kind": result.kind.value,
                "min_ms": result.min_time if math.isfinite(result.min_time) else None,
                "samples_ms": [t if math.isfinite(t) else None for t in result.times],
                "warmup_ms": [t if math.isfinite(t) else None for t in result.warmup_times],
                "skipped": result.skipped,
                "fastest": fastest is not None and result.url == fastest.url,
            })

        return endpoints_info
