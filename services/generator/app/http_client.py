"""Outbound HTTP for source adapters: one bounded-timeout client per cycle."""

from typing import Any

import httpx

from shared.app_logging.logger import get_logger
from shared.config.settings import ServiceSettings
from shared.utils.retry import async_retry

logger = get_logger("generator.http")


class ProviderError(Exception):
    """A provider answered, but not with anything usable."""


def build_client(settings: ServiceSettings, **kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.http_timeout,
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
        **kwargs,
    )


# a timeout fails the sub-step at once; only connection-level errors are retried
@async_retry(retryable_exceptions=(httpx.ConnectError, httpx.RemoteProtocolError))
async def _get(client: httpx.AsyncClient, url: str, **kwargs) -> httpx.Response:
    response = await client.get(url, **kwargs)
    response.raise_for_status()
    return response


async def fetch_json(client: httpx.AsyncClient, url: str, **kwargs) -> Any:
    """GET ``url`` and decode JSON; connection errors are retried, timeouts and bad payloads are not."""
    response = await _get(client, url, **kwargs)
    try:
        return response.json()
    except ValueError as e:
        raise ProviderError(f"Malformed JSON from {url}") from e


async def fetch_text(client: httpx.AsyncClient, url: str, **kwargs) -> str:
    response = await _get(client, url, **kwargs)
    return response.text
