import pytest
import logging
import math

from nozomi_router.config import (
    DEFAULT_PROBE_PATH,
    PING_COUNT,
    TIMEOUT_MS,
    DiscoveryOptions,
    clamp,
    configure_logging,
    manifest_url_from_env,
    sanitize_options,
)
from nozomi_router.context import DiscoveryContext
from nozomi_router.regions import DEFAULT_MANIFEST_URL

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("value,expected", [
    (100, 20),
    (20, 20),
    (7, 7),
    (1, 1),
    (0, 1),
    (-5, 1),
    (3.9, 3),
    (math.inf, 20),
    (-math.inf, 1),
    (math.nan, 5),
    (None, 5),
    ("10", 5),
    (True, 5),
])
def test_clamp_ping_count(value, expected):
    assert clamp(value, PING_COUNT) == expected


def test_defaults():
    settings = sanitize_options(DiscoveryOptions())

    assert settings.ping_count == 5
    assert settings.warmup_count == 2
    assert settings.top_count == 2
    assert settings.timeout_ms == 5000
    assert settings.probe_path == DEFAULT_PROBE_PATH
    assert settings.include_auto is True
    assert settings.manifest_url == DEFAULT_MANIFEST_URL
    assert settings.manifest_retries == 2
    assert settings.endpoints is None
    assert settings.on_result is None
    assert settings.context is None


def test_out_of_range_values_are_clamped():
    settings = sanitize_options(DiscoveryOptions(
        ping_count=100,
        warmup_count=-3,
        top_count=0,
        timeout_ms=10,
        manifest_retries=99,
        max_concurrency=0,
    ))

    assert settings.ping_count == 20
    assert settings.warmup_count == 0
    assert settings.top_count == 1
    assert settings.timeout_ms == TIMEOUT_MS[0]
    assert settings.manifest_retries == 5
    assert settings.max_concurrency == 1

    assert sanitize_options(DiscoveryOptions(warmup_count=50, top_count=50, timeout_ms=10**9)).timeout_ms == 30000


def test_junk_values_take_defaults():
    settings = sanitize_options(DiscoveryOptions(
        probe_path=42,
        include_auto="yes",
        on_result="not callable",
        manifest_url="",
        context="nope",
    ))

    assert settings.probe_path == DEFAULT_PROBE_PATH
    assert settings.include_auto is True
    assert settings.on_result is None
    assert settings.manifest_url == DEFAULT_MANIFEST_URL
    assert settings.context is None


def test_empty_probe_path_is_kept():
    assert sanitize_options(DiscoveryOptions(probe_path="")).probe_path == ""


def test_single_url_string_becomes_list():
    assert sanitize_options(DiscoveryOptions(endpoints="https://a.xyz")).endpoints == ["https://a.xyz"]
    assert sanitize_options(DiscoveryOptions(endpoints=42)).endpoints == []


def test_context_passes_through():
    context = DiscoveryContext.default()
    assert sanitize_options(DiscoveryOptions(context=context)).context is context


def test_manifest_url_env_override(monkeypatch):
    monkeypatch.setenv("NOZOMI_ENDPOINTS_URL", "https://bucket.example.com/endpoints.json")
    assert manifest_url_from_env() == "https://bucket.example.com/endpoints.json"
    assert sanitize_options(DiscoveryOptions()).manifest_url == "https://bucket.example.com/endpoints.json"
    assert sanitize_options(DiscoveryOptions(manifest_url="https://mine.xyz/e.json")).manifest_url == "https://mine.xyz/e.json"


def test_from_mapping_drops_unknown_keys(caplog):
    with caplog.at_level(logging.WARNING, logger="nozomi_router.config"):
        options = DiscoveryOptions.from_mapping({"ping_count": 1, "pingCount": 3, 7: "x"})

    assert options == DiscoveryOptions(ping_count=1)
    assert "pingCount" in caplog.text


def test_replaced_values_are_logged(caplog):
    with caplog.at_level(logging.DEBUG, logger="nozomi_router.config"):
        settings = sanitize_options(DiscoveryOptions(ping_count="many", top_count=99, warmup_count=1, probe_path=3))

    assert settings.ping_count == 5
    assert settings.top_count == 10
    assert "ping_count='many' replaced with 5" in caplog.text
    assert "top_count=99 replaced with 10" in caplog.text
    assert "probe_path=3 replaced with '/ping'" in caplog.text
    assert "warmup_count" not in caplog.text


def test_configure_logging_levels(monkeypatch):
    logger = logging.getLogger("nozomi_router")

    configure_logging("info")
    assert logger.level == logging.INFO

    monkeypatch.setenv("NOZOMI_LOG_LEVEL", "ERROR")
    configure_logging()
    assert logger.level == logging.ERROR

    configure_logging("not-a-level")
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
