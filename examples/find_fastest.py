#!/usr/bin/env python3
"""
Find the fastest Nozomi endpoints and print the URL to send through.

Set NOZOMI_API_KEY to get a ready-to-use RPC URL and NOZOMI_LOG_LEVEL=DEBUG
to watch every probe.
"""

import os
import anyio

from nozomi_router.client import NozomiClient
from nozomi_router.config import DiscoveryOptions, configure_logging
from nozomi_router.context import DiscoveryContext


def show(result):
    warmup = ", ".join(f"{t:.1f}" for t in result.warmup_times) or "n/a"
    pings = ", ".join(f"{t:.1f}" for t in result.times) or "n/a"
    print(f"  {result.url}: min={result.min_time:.1f}ms | warmup=[{warmup}] | pings=[{pings}]")


async def main():
    configure_logging()

    client = NozomiClient(
        api_key=os.environ.get("NOZOMI_API_KEY"),
        options=DiscoveryOptions(top_count=3, on_result=show),
        context=DiscoveryContext.default(),
    )

    print("Probing endpoints (2 warmup + 5 pings each)...")
    endpoints = await client.get_endpoints()

    print("\nFallback order:")
    for rank, endpoint in enumerate(endpoints, start=1):
        print(f"  {rank}. {endpoint.url} ({endpoint.min_time:.2f} ms)")

    print(f"\nRPC URL: {await client.fastest_endpoint_url()}")


if __name__ == "__main__":
    anyio.run(main)
