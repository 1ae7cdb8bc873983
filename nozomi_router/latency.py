import asyncio
import logging
import math
import time
from dataclasses import dataclass, field

import aiohttp

from .context import FailureCooldownTracker
from .regions import EndpointDescriptor

logger = logging.getLogger(__name__)

UNREACHABLE = math.inf
NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


@dataclass(frozen=True)
class ProbeSample:
    warmup_times: list[float] = field(default_factory=list)
    times: list[float] = field(default_factory=list)
    min_time: float = UNREACHABLE
    skipped: bool = False

    @classmethod
    def from_times(cls, warmup_times: list[float], times: list[float]) -> "ProbeSample":
        return cls(
            warmup_times=warmup_times,
            times=times,
            min_time=min(times) if times else UNREACHABLE,
        )

    @property
    def reachable(self) -> bool:
        return math.isfinite(self.min_time)


def probe_target(url: str, path: str) -> str:
    return url.rstrip("/") + path


async def http_ping(session: aiohttp.ClientSession, url: str, path: str = "/ping", timeout_ms: int = 5000) -> float:
    """Time one GET against ``url + path`` in milliseconds.

    Any non-2xx status, timeout or transport failure yields ``math.inf``.
    """
    target = probe_target(url, path)
    timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)
    try:
        start = time.perf_counter()
        async with session.get(target, headers=NO_CACHE_HEADERS, timeout=timeout) as response:
            elapsed = (time.perf_counter() - start) * 1000.0
            # Drain the body so the connection goes back to the pool
            await response.read()
            if 200 <= response.status < 300:
                return elapsed
            logger.debug("Probe %s: HTTP %d", target, response.status)
    except asyncio.TimeoutError:
        logger.debug("Probe %s: timed out after %d ms", target, timeout_ms)
    except Exception as e:
        logger.debug("Probe %s: %s", target, e)
    return UNREACHABLE


async def probe_endpoint(
    session: aiohttp.ClientSession,
    endpoint: EndpointDescriptor,
    warmup_count: int = 2,
    ping_count: int = 5,
    path: str = "/ping",
    timeout_ms: int = 5000,
    cooldown: FailureCooldownTracker | None = None,
) -> ProbeSample:
    """Warm up, then measure one endpoint with strictly sequential probes.

    Warmup timings absorb DNS/TCP/TLS setup and are kept for inspection only.
    """
    if cooldown is not None and cooldown.in_cooldown(endpoint.url):
        logger.debug("Skipping %s: in failure cooldown", endpoint.url)
        return ProbeSample(skipped=True)

    try:
        warmup_times = []
        for _ in range(warmup_count):
            warmup_times.append(await http_ping(session, endpoint.url, path, timeout_ms))

        times = []
        for _ in range(ping_count):
            times.append(await http_ping(session, endpoint.url, path, timeout_ms))
    except Exception as e:
        logger.debug("Probing %s failed unexpectedly: %s", endpoint.url, e)
        return ProbeSample()

    sample = ProbeSample.from_times(warmup_times, times)

    if cooldown is not None:
        if sample.reachable:
            cooldown.mark_succeeded(endpoint.url)
        else:
            cooldown.mark_failed(endpoint.url)

    return sample
