import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

SECURE_SCHEME = "https://"

# Remote manifest published alongside the SDK
DEFAULT_MANIFEST_URL = "https://raw.githubusercontent.com/temporalxyz/nozomi-sdk/main/endpoints.json"

# Auto-routed endpoint (provider picks the region)
AUTO_ENDPOINT = "https://nozomi.temporal.xyz"
AUTO_REGION = "auto"

_REGION_RE = re.compile(r"^https://([a-z]+)\d*\.nozomi", re.IGNORECASE)
_DIRECT_LABEL_RE = re.compile(r"^https://[a-z]+\d+\.", re.IGNORECASE)


class EndpointKind(str, Enum):
    AUTO = "auto"
    DIRECT = "direct"
    PROXIED = "proxied"

    @classmethod
    def parse(cls, value: Any) -> "EndpointKind":
        """Map a manifest kind to an enum member; unknown values are direct."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            value = value.strip().lower()
            if value == "cloudflare":
                return cls.PROXIED
            for member in cls:
                if member.value == value:
                    return member
        return cls.DIRECT


@dataclass(frozen=True)
class EndpointDescriptor:
    url: str          # "https://ewr1.nozomi.temporal.xyz"
    region: str       # dedup key, "ewr"
    kind: EndpointKind = EndpointKind.DIRECT


def normalize_url(url: str) -> str:
    return url.rstrip("/")


def is_auto_url(url: str) -> bool:
    return normalize_url(url) == AUTO_ENDPOINT


def region_for_url(url: str) -> str:
    """Best-effort region token for descriptors that carry no region.

    ``https://ewr1.nozomi...`` and ``https://ewr.nozomi...`` both map to
    ``ewr``; the auto endpoint maps to ``auto``. Anything else is its own
    region.
    """
    if is_auto_url(url):
        return AUTO_REGION
    match = _REGION_RE.match(url)
    if match:
        return match.group(1).lower()
    return url


def kind_for_url(url: str) -> EndpointKind:
    if is_auto_url(url):
        return EndpointKind.AUTO
    if _DIRECT_LABEL_RE.match(url):
        return EndpointKind.DIRECT
    return EndpointKind.PROXIED


def is_valid_url(url: Any) -> bool:
    return isinstance(url, str) and len(url) > len(SECURE_SCHEME) and url.lower().startswith(SECURE_SCHEME)


def descriptor_from_url(url: str) -> EndpointDescriptor:
    return EndpointDescriptor(url=url, region=region_for_url(url), kind=kind_for_url(url))


def coerce_descriptor(candidate: Any) -> EndpointDescriptor | None:
    """Turn a caller- or manifest-supplied candidate into a descriptor.

    Accepts descriptors, manifest-style mappings and bare URL strings.
    Returns None when the candidate fails validation.
    """
    if isinstance(candidate, EndpointDescriptor):
        url, region, kind = candidate.url, candidate.region, candidate.kind
    elif isinstance(candidate, str):
        if not is_valid_url(candidate):
            return None
        return descriptor_from_url(candidate)
    elif isinstance(candidate, Mapping):
        url = candidate.get("url")
        region = candidate.get("region")
        kind = candidate.get("kind", candidate.get("type"))
    else:
        return None

    if not is_valid_url(url):
        return None
    if not isinstance(region, str) or not region.strip():
        return None
    return EndpointDescriptor(url=url, region=region.strip(), kind=EndpointKind.parse(kind))


AUTO_DESCRIPTOR = EndpointDescriptor(url=AUTO_ENDPOINT, region=AUTO_REGION, kind=EndpointKind.AUTO)

_DIRECT_HOSTS = ["pit1", "tyo1", "sgp1", "ewr1", "ams1", "fra2", "ash1", "lax1", "lon1"]
_PROXIED_HOSTS = ["pit", "tyo", "sgp", "ewr", "ams", "fra", "ash", "lax", "lon"]

STATIC_ENDPOINTS: list[EndpointDescriptor] = [AUTO_DESCRIPTOR] + [
    EndpointDescriptor(
        url=f"https://{host}.nozomi.temporal.xyz",
        region=host.rstrip("0123456789"),
        kind=EndpointKind.DIRECT,
    )
    for host in _DIRECT_HOSTS
] + [
    EndpointDescriptor(
        url=f"https://{host}.nozomi.temporal.xyz",
        region=host,
        kind=EndpointKind.PROXIED,
    )
    for host in _PROXIED_HOSTS
]
