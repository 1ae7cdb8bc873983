import asyncio
import inspect
import logging
from dataclasses import replace
from typing import Any, Mapping

import aiohttp

from .config import DiscoveryOptions, DiscoverySettings, sanitize_options
from .latency import ProbeSample, probe_endpoint
from .manifest import resolve_endpoints
from .regions import STATIC_ENDPOINTS, EndpointDescriptor, coerce_descriptor
from .router import EndpointResult, fallback_result, rank_results

logger = logging.getLogger(__name__)


async def resolve_candidates(session: aiohttp.ClientSession, settings: DiscoverySettings) -> list[EndpointDescriptor]:
    """Caller-supplied endpoints win; otherwise the manifest, then the static list."""
    if settings.endpoints is not None:
        candidates = [d for d in (coerce_descriptor(c) for c in settings.endpoints) if d is not None]
        if not candidates:
            logger.warning("No valid caller-supplied endpoints, using %d static endpoints", len(STATIC_ENDPOINTS))
        return candidates or list(STATIC_ENDPOINTS)

    cache = settings.context.manifest_cache if settings.context else None
    candidates = await resolve_endpoints(
        session,
        settings.manifest_url,
        timeout_ms=settings.manifest_timeout_ms,
        max_retries=settings.manifest_retries,
        cache=cache,
    )
    return candidates or list(STATIC_ENDPOINTS)


async def _notify(on_result, result: EndpointResult) -> None:
    # Observer failures never reach the pipeline
    try:
        outcome = on_result(result)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        pass


async def _measure(
    session: aiohttp.ClientSession,
    endpoint: EndpointDescriptor,
    settings: DiscoverySettings,
    limiter: asyncio.Semaphore,
) -> EndpointResult:
    cooldown = settings.context.cooldown if settings.context else None
    try:
        async with limiter:
            sample = await probe_endpoint(
                session,
                endpoint,
                warmup_count=settings.warmup_count,
                ping_count=settings.ping_count,
                path=settings.probe_path,
                timeout_ms=settings.timeout_ms,
                cooldown=cooldown,
            )
    except Exception as e:
        logger.debug("Endpoint %s failed: %s", endpoint.url, e)
        sample = ProbeSample()

    result = EndpointResult.from_sample(endpoint, sample)
    if settings.on_result is not None:
        await _notify(settings.on_result, result)
    return result


async def _run(settings: DiscoverySettings, session: aiohttp.ClientSession) -> list[EndpointResult]:
    candidates = await resolve_candidates(session, settings)
    logger.debug(
        "Probing %d endpoints (%d warmup + %d pings, %d ms timeout)",
        len(candidates), settings.warmup_count, settings.ping_count, settings.timeout_ms,
    )

    limiter = asyncio.Semaphore(settings.max_concurrency)
    results = await asyncio.gather(*(_measure(session, endpoint, settings, limiter) for endpoint in candidates))

    ranked = rank_results(list(results), top_count=settings.top_count, include_auto=settings.include_auto)
    logger.debug("Ranked: %s", ", ".join(f"{r.url} ({r.min_time:.1f} ms)" for r in ranked))
    return ranked


async def discover(
    options: DiscoveryOptions | Mapping[str, Any] | None = None,
    *,
    session: aiohttp.ClientSession | None = None,
    **kwargs: Any,
) -> list[EndpointResult]:
    """
    Find the fastest endpoints.

    By default returns the two fastest regional endpoints followed by the
    auto-routed endpoint. Never raises: every failure degrades to slower or
    unreachable entries, and at worst to the auto-routed endpoint alone with
    ``min_time == math.inf``.

    Args:
        options: DiscoveryOptions, or a mapping of its fields
        session: Optional aiohttp session to probe through; one is opened
            and closed per call otherwise
        **kwargs: DiscoveryOptions fields; they override ``options``

    Returns:
        Endpoints sorted by minimum latency, auto-routed entry last when
        included. Never empty.
    """
    try:
        if options is None:
            options = DiscoveryOptions.from_mapping(kwargs)
        elif isinstance(options, Mapping):
            options = DiscoveryOptions.from_mapping({**options, **kwargs})
        elif isinstance(options, DiscoveryOptions):
            options = replace(options, **DiscoveryOptions.known_fields(kwargs))
        else:
            logger.warning("Ignoring discovery options of type %s", type(options).__name__)
            options = DiscoveryOptions.from_mapping(kwargs)
        settings = sanitize_options(options)

        if session is not None:
            return await _run(settings, session)
        async with aiohttp.ClientSession() as own_session:
            return await _run(settings, own_session)
    except Exception as e:
        logger.warning("Endpoint discovery failed, using auto-routed endpoint: %s", e)
        return [fallback_result()]
