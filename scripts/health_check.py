#!/usr/bin/env python
"""Client health check.

Prints which ``MEDCLIENT_*`` settings are set in the environment and,
unless ``--offline`` is given, probes the configured API server.  Use
it to check a deployment can reach the backend before starting
anything that depends on it.  Exits non-zero when the server is
unreachable.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from medclient.config import ClientSettings, configure_logging
from medclient.transport import AiohttpTransport

KEYS = [
    "MEDCLIENT_API_URL",
    "MEDCLIENT_TIMEOUT",
    "MEDCLIENT_REFRESH_TIMEOUT",
    "MEDCLIENT_REFRESH_PATH",
    "MEDCLIENT_MAX_RETRIES",
    "MEDCLIENT_RETRY_DELAY",
    "MEDCLIENT_CACHE_TTL",
    "MEDCLIENT_STORAGE_PATH",
    "MEDCLIENT_DIAGNOSE_CONNECTION",
    "LOG_LEVEL",
]


async def probe(settings: ClientSettings) -> bool:
    async with AiohttpTransport(settings.api_url, timeout=settings.timeout) as transport:
        diagnosis = await transport.probe()
    print(diagnosis.message)
    return diagnosis.reachable


def main() -> None:
    parser = argparse.ArgumentParser(description="Report client settings and probe the API server")
    parser.add_argument("--offline", action="store_true", help="Only report settings")
    args = parser.parse_args()

    configure_logging()
    print("Health Check:")
    for key in KEYS:
        set_directly = bool(os.environ.get(key))
        set_by_file = bool(os.environ.get(f"{key}_FILE"))
        status = "set" if set_directly else "set (file)" if set_by_file else "default"
        print(f"{key}: {status}")

    if args.offline:
        return
    settings = ClientSettings.from_env()
    if not asyncio.run(probe(settings)):
        sys.exit(1)


if __name__ == "__main__":
    main()
