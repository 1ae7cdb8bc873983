import pytest
import os
import re
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Environment variables for testing
os.environ.setdefault("NOZOMI_LOG_LEVEL", "DEBUG")
os.environ.pop("NOZOMI_ENDPOINTS_URL", None)

from nozomi_router.regions import DEFAULT_MANIFEST_URL, EndpointDescriptor, EndpointKind

# Matches every probe against the built-in endpoint list
STATIC_PING_RE = re.compile(r"^https://[a-z0-9.]*nozomi\.temporal\.xyz/ping$")


def count_requests(mock, url: str, method: str = "GET") -> int:
    """Number of requests aioresponses saw for ``url``."""
    return sum(
        len(calls)
        for (req_method, req_url), calls in mock.requests.items()
        if req_method == method and str(req_url) == url
    )


def manifest_body(endpoints):
    return {"version": 1, "updated": "2026-01-07", "endpoints": endpoints}


@pytest.fixture
def manifest_url():
    return DEFAULT_MANIFEST_URL


@pytest.fixture
def custom_endpoints():
    return [
        EndpointDescriptor(url="https://custom1.xyz", region="custom1", kind=EndpointKind.DIRECT),
        EndpointDescriptor(url="https://custom2.xyz", region="custom2", kind=EndpointKind.DIRECT),
    ]
