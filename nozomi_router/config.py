import logging
import math
import os
from dataclasses import dataclass, fields
from typing import Any, Callable, Iterable, Mapping, Sequence

from .context import DiscoveryContext
from .regions import DEFAULT_MANIFEST_URL

logger = logging.getLogger(__name__)

ENDPOINTS_URL_ENV = "NOZOMI_ENDPOINTS_URL"
LOG_LEVEL_ENV = "NOZOMI_LOG_LEVEL"

DEFAULT_PROBE_PATH = "/ping"

# (minimum, maximum, default)
PING_COUNT = (1, 20, 5)
WARMUP_COUNT = (0, 5, 2)
TOP_COUNT = (1, 10, 2)
TIMEOUT_MS = (1000, 30000, 5000)
MANIFEST_TIMEOUT_MS = (1000, 30000, 5000)
MANIFEST_RETRIES = (0, 5, 2)
MAX_CONCURRENCY = (1, 256, 64)


@dataclass(frozen=True)
class DiscoveryOptions:
    """Caller-facing options; every field is optional and clamped later."""

    endpoints: Sequence[Any] | None = None
    manifest_url: str | None = None
    ping_count: Any = None
    warmup_count: Any = None
    top_count: Any = None
    timeout_ms: Any = None
    probe_path: Any = None
    include_auto: Any = None
    on_result: Callable[..., Any] | None = None
    manifest_timeout_ms: Any = None
    manifest_retries: Any = None
    max_concurrency: Any = None
    context: DiscoveryContext | None = None

    @classmethod
    def known_fields(cls, values: Mapping[str, Any]) -> dict[str, Any]:
        """Keep the recognised option names; anything else is dropped with a warning."""
        known = {f.name for f in fields(cls)}
        unknown = [key for key in values if key not in known]
        if unknown:
            logger.warning("Ignoring unknown discovery options: %s", ", ".join(sorted(map(str, unknown))))
        return {key: value for key, value in values.items() if key in known}

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "DiscoveryOptions":
        return cls(**cls.known_fields(values))


@dataclass(frozen=True)
class DiscoverySettings:
    endpoints: Sequence[Any] | None
    manifest_url: str
    ping_count: int
    warmup_count: int
    top_count: int
    timeout_ms: int
    probe_path: str
    include_auto: bool
    on_result: Callable[..., Any] | None
    manifest_timeout_ms: int
    manifest_retries: int
    max_concurrency: int
    context: DiscoveryContext | None


def clamp(value: Any, bounds: tuple[int, int, int]) -> int:
    """Clamp a caller value into [minimum, maximum]; junk takes the default."""
    minimum, maximum, default = bounds
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float):
        if math.isnan(value):
            return default
        if math.isinf(value):
            return maximum if value > 0 else minimum
        value = int(value)
    return max(minimum, min(maximum, value))


def manifest_url_from_env() -> str:
    return os.environ.get(ENDPOINTS_URL_ENV) or DEFAULT_MANIFEST_URL


def _note_replaced(name: str, raw: Any, value: Any) -> None:
    if raw is not None:
        logger.debug("Option %s=%r replaced with %r", name, raw, value)


def sanitize_options(options: DiscoveryOptions) -> DiscoverySettings:
    manifest_url = options.manifest_url
    if not isinstance(manifest_url, str) or not manifest_url:
        manifest_url = manifest_url_from_env()
        _note_replaced("manifest_url", options.manifest_url, manifest_url)

    probe_path = options.probe_path
    if not isinstance(probe_path, str):
        probe_path = DEFAULT_PROBE_PATH
        _note_replaced("probe_path", options.probe_path, probe_path)

    include_auto = options.include_auto
    if not isinstance(include_auto, bool):
        include_auto = True
        _note_replaced("include_auto", options.include_auto, include_auto)

    on_result = options.on_result
    if not callable(on_result):
        on_result = None
        _note_replaced("on_result", options.on_result, on_result)

    context = options.context
    if not isinstance(context, DiscoveryContext):
        context = None
        _note_replaced("context", options.context, context)

    endpoints = options.endpoints
    if isinstance(endpoints, str):
        endpoints = [endpoints]
    elif isinstance(endpoints, (bytes, Mapping)) or (endpoints is not None and not isinstance(endpoints, Iterable)):
        endpoints = []
        _note_replaced("endpoints", options.endpoints, endpoints)
    elif endpoints is not None:
        endpoints = list(endpoints)

    numeric = {}
    for name, bounds in (
        ("ping_count", PING_COUNT),
        ("warmup_count", WARMUP_COUNT),
        ("top_count", TOP_COUNT),
        ("timeout_ms", TIMEOUT_MS),
        ("manifest_timeout_ms", MANIFEST_TIMEOUT_MS),
        ("manifest_retries", MANIFEST_RETRIES),
        ("max_concurrency", MAX_CONCURRENCY),
    ):
        raw = getattr(options, name)
        numeric[name] = clamp(raw, bounds)
        if not (type(raw) is int and raw == numeric[name]):
            _note_replaced(name, raw, numeric[name])

    return DiscoverySettings(
        endpoints=endpoints,
        manifest_url=manifest_url,
        probe_path=probe_path,
        include_auto=include_auto,
        on_result=on_result,
        context=context,
        **numeric,
    )


def configure_logging(level: str | int | None = None) -> None:
    """Send package logs to stderr; level defaults to $NOZOMI_LOG_LEVEL."""
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "WARNING")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logger = logging.getLogger("nozomi_router")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
