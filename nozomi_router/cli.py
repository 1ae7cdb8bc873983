import typer
import asyncio
import json
import math
import aiohttp
from .client import NozomiClient
from .config import (
    MANIFEST_RETRIES,
    MANIFEST_TIMEOUT_MS,
    DiscoveryOptions,
    clamp,
    configure_logging,
    manifest_url_from_env,
)
from .discovery import discover
from .manifest import resolve_endpoints

app = typer.Typer(help="Nozomi endpoint discovery")


def _fmt_ms(value: float | None) -> str:
    if value is None or not math.isfinite(value):
        return "n/a"
    return f"{value:.1f} ms"


def list_endpoints(
    pings: int = typer.Option(5, help="Measurement probes per endpoint"),
    warmup: int = typer.Option(2, help="Warmup probes per endpoint"),
    timeout: int = typer.Option(5000, help="Per-probe timeout in ms"),
    manifest_url: str = typer.Option(None, help="Manifest URL (default: $NOZOMI_ENDPOINTS_URL or built-in)"),
    log_level: str = typer.Option(None, help="Log level (default: $NOZOMI_LOG_LEVEL or WARNING)"),
):
    """Show latency to all endpoints and highlight the fastest."""
    configure_logging(log_level)

    async def run():
        client = NozomiClient(options=DiscoveryOptions(
            ping_count=pings,
            warmup_count=warmup,
            timeout_ms=timeout,
            manifest_url=manifest_url,
        ))
        endpoints = await client.list_endpoints()

        # Sort by latency
        endpoints.sort(key=lambda x: (x["min_ms"] is None, x["min_ms"] or 0))

        for endpoint in endpoints:
            mark = "★" if endpoint["fastest"] else " "
            status = "skipped" if endpoint["skipped"] else _fmt_ms(endpoint["min_ms"])
            print(f"{mark} {endpoint['region']:6}  {endpoint['kind']:8} min={status:10}  {endpoint['url']}")

    asyncio.run(run())


def fastest(
    top: int = typer.Option(2, help="Number of regional endpoints to return"),
    pings: int = typer.Option(5, help="Measurement probes per endpoint"),
    warmup: int = typer.Option(2, help="Warmup probes per endpoint"),
    timeout: int = typer.Option(5000, help="Per-probe timeout in ms"),
    path: str = typer.Option("/ping", help="Probe path appended to each endpoint"),
    no_auto: bool = typer.Option(False, "--no-auto", help="Do not append the auto-routed endpoint"),
    manifest_url: str = typer.Option(None, help="Manifest URL (default: $NOZOMI_ENDPOINTS_URL or built-in)"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
    log_level: str = typer.Option(None, help="Log level (default: $NOZOMI_LOG_LEVEL or WARNING)"),
):
    """Rank endpoints by latency, one per region."""
    configure_logging(log_level)

    async def run():
        results = await discover(DiscoveryOptions(
            top_count=top,
            ping_count=pings,
            warmup_count=warmup,
            timeout_ms=timeout,
            probe_path=path,
            include_auto=not no_auto,
            manifest_url=manifest_url,
        ))

        if as_json:
            rows = []
            for result in results:
                row = result.to_dict()
                # JSON has no infinity
                row["min_time"] = row["min_time"] if math.isfinite(row["min_time"]) else None
                row["times"] = [t if math.isfinite(t) else None for t in row["times"]]
                row["warmup_times"] = [t if math.isfinite(t) else None for t in row["warmup_times"]]
                rows.append(row)
            print(json.dumps(rows, indent=2))
            return

        for rank, result in enumerate(results, start=1):
            print(f"{rank}. {result.url}  region={result.region}  min={_fmt_ms(result.min_time)}")

    asyncio.run(run())


def show_manifest(
    manifest_url: str = typer.Option(None, help="Manifest URL (default: $NOZOMI_ENDPOINTS_URL or built-in)"),
    timeout: int = typer.Option(5000, help="Fetch timeout in ms"),
    retries: int = typer.Option(2, help="Retries after the first attempt"),
    log_level: str = typer.Option(None, help="Log level (default: $NOZOMI_LOG_LEVEL or WARNING)"),
):
    """Print the candidate endpoints discovery would probe."""
    configure_logging(log_level)

    async def run():
        async with aiohttp.ClientSession() as session:
            endpoints = await resolve_endpoints(
                session,
                manifest_url or manifest_url_from_env(),
                timeout_ms=clamp(timeout, MANIFEST_TIMEOUT_MS),
                max_retries=clamp(retries, MANIFEST_RETRIES),
            )
        for endpoint in endpoints:
            print(f"{endpoint.region:6}  {endpoint.kind.value:8} {endpoint.url}")

    asyncio.run(run())


app.command()(list_endpoints)
app.command()(fastest)
app.command()(show_manifest)

if __name__ == "__main__":
    app()
