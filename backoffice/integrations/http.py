"""
Outbound HTTP helper shared by the provider clients.

Policy: explicit timeout on every call and exactly one retry when the
failure is transient (network error, timeout, HTTP 429 or 5xx). Anything
else fails fast.
"""
import logging

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
MAX_ATTEMPTS = 2


def is_transient(response: httpx.Response) -> bool:
    return response.status_code in RETRYABLE_STATUS_CODES


async def send_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs,
) -> httpx.Response:
    """
    Send a request, retrying once on a transient failure.

    Returns the last response (which may still be an error status);
    re-raises the transport error if the final attempt could not connect.
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            if attempt == MAX_ATTEMPTS:
                raise
            logger.warning(
                f"{method} {url} failed ({type(e).__name__}), retrying",
                extra={"event": "external.retry", "attempt": attempt},
            )
            continue

        if is_transient(response) and attempt < MAX_ATTEMPTS:
            logger.warning(
                f"{method} {url} returned {response.status_code}, retrying",
                extra={"event": "external.retry", "attempt": attempt},
            )
            continue
        return response

    # Unreachable: the loop either returns or raises on the last attempt
    raise RuntimeError("send_with_retry exhausted without a response")
