import math
from dataclasses import asdict, dataclass, field

from .latency import UNREACHABLE, ProbeSample
from .regions import AUTO_DESCRIPTOR, EndpointDescriptor, EndpointKind, normalize_url, region_for_url


@dataclass(frozen=True)
class EndpointResult:
    url: str
    region: str
    kind: EndpointKind
    min_time: float = UNREACHABLE
    times: list[float] = field(default_factory=list)
    warmup_times: list[float] = field(default_factory=list)
    skipped: bool = False

    @classmethod
    def from_sample(cls, endpoint: EndpointDescriptor, sample: ProbeSample) -> "EndpointResult":
        return cls(
            url=endpoint.url,
            region=endpoint.region,
            kind=endpoint.kind,
            min_time=sample.min_time,
            times=list(sample.times),
            warmup_times=list(sample.warmup_times),
            skipped=sample.skipped,
        )

    @property
    def reachable(self) -> bool:
        return math.isfinite(self.min_time)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


def fallback_result(auto: EndpointDescriptor = AUTO_DESCRIPTOR) -> EndpointResult:
    return EndpointResult(url=auto.url, region=auto.region, kind=auto.kind)


def dedupe_key(result: EndpointResult) -> str:
    return result.region or region_for_url(result.url)


def _dedupe(results: list[EndpointResult]) -> list[EndpointResult]:
    seen = set()
    deduped = []
    for result in results:
        key = dedupe_key(result)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(result)
    return deduped


def rank_results(
    results: list[EndpointResult],
    top_count: int = 2,
    include_auto: bool = True,
    auto: EndpointDescriptor = AUTO_DESCRIPTOR,
) -> list[EndpointResult]:
    """Order reachable endpoints by latency, one per region.

    With ``include_auto`` the auto-routed endpoint is always appended last,
    measured or not. The returned list is never empty.
    """
    auto_url = normalize_url(auto.url)

    def is_auto(result: EndpointResult) -> bool:
        return normalize_url(result.url) == auto_url

    # sorted() is stable, equal latencies keep probe order
    reachable = sorted(
        (r for r in results if math.isfinite(r.min_time)),
        key=lambda r: r.min_time,
    )

    if include_auto:
        top = _dedupe([r for r in reachable if not is_auto(r)])[:top_count]
        auto_result = next((r for r in reachable if is_auto(r)), None)
        if auto_result is None:
            auto_result = next((r for r in results if is_auto(r)), None)
        top.append(auto_result or fallback_result(auto))
    else:
        top = _dedupe(reachable)[:top_count]

    return top or [fallback_result(auto)]
