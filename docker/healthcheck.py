"""Container probe polling the ``/health`` endpoint until it reports healthy.

The server may still be running migrations when the first probe fires, so
the check retries for roughly half a minute before giving up. A 500 answer
(database unreachable) counts as a failed attempt.
"""

from __future__ import annotations

import os
import sys
import time

import httpx

_DEFAULT_URL = "http://localhost:8000/health"
_TIMEOUT_SECONDS = 3.0
_RETRY_ATTEMPTS = 30
_RETRY_DELAY_SECONDS = 1.0


def _probe_once(client: httpx.Client, url: str) -> bool:
    try:
        response = client.get(url)
    except httpx.HTTPError:
        return False
    return response.status_code == 200


def main(transport: httpx.BaseTransport | None = None) -> int:
    """Return ``0`` when the probe succeeds and ``1`` otherwise."""
    url = os.environ.get("HEALTHCHECK_URL", _DEFAULT_URL)
    with httpx.Client(timeout=_TIMEOUT_SECONDS, transport=transport) as client:
        for attempt in range(1, _RETRY_ATTEMPTS + 1):
            if _probe_once(client, url):
                return 0
            if attempt < _RETRY_ATTEMPTS:
                time.sleep(_RETRY_DELAY_SECONDS)
    print(
        f"healthcheck failed: {url} not healthy after {_RETRY_ATTEMPTS} attempts",
        file=sys.stderr,
    )
    return 1


if __name__ == "__main__":
    sys.exit(main())
