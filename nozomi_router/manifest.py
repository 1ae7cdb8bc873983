import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping

import aiohttp

from .context import ManifestCache
from .latency import NO_CACHE_HEADERS
from .regions import STATIC_ENDPOINTS, EndpointDescriptor, coerce_descriptor

logger = logging.getLogger(__name__)

BACKOFF_STEP_MS = 500


@dataclass(frozen=True)
class Manifest:
    version: int
    updated: str
    endpoints: list[EndpointDescriptor]


def parse_descriptor(entry: Any) -> EndpointDescriptor | None:
    """Validate one manifest entry. Bare strings are not manifest entries."""
    if not isinstance(entry, Mapping):
        return None
    return coerce_descriptor(entry)


def parse_manifest(data: Any) -> Manifest:
    """
    Validate a decoded manifest body.

    Invalid entries are dropped one by one. The manifest as a whole is
    rejected when it is not an object, its ``endpoints`` field is missing or
    not a list, or no entry survives validation.

    Raises:
        ValueError: If the manifest is unusable
    """
    if not isinstance(data, Mapping):
        raise ValueError("Invalid manifest: body is not an object")

    entries = data.get("endpoints")
    if not isinstance(entries, list):
        raise ValueError("Invalid manifest: 'endpoints' is missing or not a list")

    endpoints = []
    for entry in entries:
        descriptor = parse_descriptor(entry)
        if descriptor is None:
            logger.debug("Dropping invalid manifest entry: %r", entry)
            continue
        endpoints.append(descriptor)

    if not endpoints:
        raise ValueError("Invalid manifest: no valid endpoints")

    version = data.get("version")
    updated = data.get("updated")
    return Manifest(
        version=version if isinstance(version, int) and not isinstance(version, bool) else 0,
        updated=updated if isinstance(updated, str) else "",
        endpoints=endpoints,
    )


def backoff_delay(attempt: int, step_ms: int = BACKOFF_STEP_MS) -> float:
    """Seconds to wait before ``attempt`` (0-based): 0, 0.5, 1.0, ..."""
    return attempt * step_ms / 1000.0


async def fetch_manifest(
    session: aiohttp.ClientSession,
    source_url: str,
    timeout_ms: int = 5000,
    max_retries: int = 2,
) -> Manifest | None:
    """Fetch and validate the manifest, retrying with linear backoff.

    Returns None once every attempt has failed.
    """
    timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)

    for attempt in range(max_retries + 1):
        if attempt > 0:
            await asyncio.sleep(backoff_delay(attempt))
        try:
            async with session.get(source_url, headers=NO_CACHE_HEADERS, timeout=timeout) as response:
                if response.status < 200 or response.status >= 300:
                    logger.debug(
                        "Manifest attempt %d/%d: HTTP %d from %s",
                        attempt + 1, max_retries + 1, response.status, source_url,
                    )
                    continue
                data = await response.json(content_type=None)
            manifest = parse_manifest(data)
            logger.debug(
                "Manifest v%d (%s) from %s: %d endpoints",
                manifest.version, manifest.updated or "n/a", source_url, len(manifest.endpoints),
            )
            return manifest
        except asyncio.TimeoutError:
            logger.debug("Manifest attempt %d/%d timed out: %s", attempt + 1, max_retries + 1, source_url)
        except Exception as e:
            logger.debug("Manifest attempt %d/%d failed: %s", attempt + 1, max_retries + 1, e)

    return None


async def resolve_endpoints(
    session: aiohttp.ClientSession,
    source_url: str,
    timeout_ms: int = 5000,
    max_retries: int = 2,
    cache: ManifestCache | None = None,
) -> list[EndpointDescriptor]:
    """Remote manifest endpoints, or the static list if the manifest is unusable.

    With a cache, a fresh entry for ``source_url`` skips the fetch and a
    successful fetch is stored. The static list is never cached.
    """
    if cache is not None:
        cached = cache.get(source_url)
        if cached:
            logger.debug("Using cached manifest for %s", source_url)
            return cached

    manifest = await fetch_manifest(session, source_url, timeout_ms, max_retries)
    if manifest is None:
        logger.warning("Manifest unavailable from %s, using %d static endpoints", source_url, len(STATIC_ENDPOINTS))
        return list(STATIC_ENDPOINTS)

    if cache is not None:
        cache.put(source_url, manifest.endpoints)
    return list(manifest.endpoints)
