"""
HTTP metric source with exponential backoff.

Fetches the current metric list from ``METRICS_URL`` as a JSON array of
``{"name": ..., "value": ...}`` objects and validates it into MetricSample
models. Designed to be robust:

- Exponential backoff on consecutive failures (capped at MAX_BACKOFF_S).
- Never crashes the ingest loop; every failure returns ``None``.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging

import httpx
from pydantic import TypeAdapter, ValidationError

from pvuplink.src.models import MetricSample

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_BACKOFF_S: float = 1.0
"""Initial backoff delay in seconds after the first failure."""

MAX_BACKOFF_S: float = 60.0
"""Maximum backoff delay in seconds (cap for exponential growth)."""

_SAMPLES = TypeAdapter(list[MetricSample])


class HttpMetricSource:
    """Stateful metric fetcher with exponential backoff.

    Maintains a failure counter so that consecutive failures cause an
    exponentially growing sleep before the next attempt. The backoff resets
    after any successful fetch.

    Args:
        url: Endpoint returning the metric list as JSON.
        timeout_s: Per-request timeout in seconds.
    """

    def __init__(self, *, url: str, timeout_s: float = 10.0) -> None:
        self._url = url
        self._timeout_s = timeout_s
        self._consecutive_failures: int = 0

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    async def fetch(self) -> list[MetricSample] | None:
        """Fetch one metric list, sleeping first if previous fetches failed.

        Returns:
            The validated samples, or ``None`` on any error.
        """
        if self._consecutive_failures > 0:
            delay = min(
                BASE_BACKOFF_S * (2 ** (self._consecutive_failures - 1)),
                MAX_BACKOFF_S,
            )
            logger.warning(
                "Backoff: sleeping %.1fs before retry (consecutive failures: %d)",
                delay,
                self._consecutive_failures,
            )
            await asyncio.sleep(delay)

        result = await self._fetch_once()
        if result is not None:
            self._consecutive_failures = 0
        else:
            self._consecutive_failures += 1
        return result

    async def _fetch_once(self) -> list[MetricSample] | None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                response = await client.get(self._url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Metric fetch from %s failed: %s", self._url, exc)
            return None

        try:
            return _SAMPLES.validate_json(response.content)
        except ValidationError as exc:
            logger.warning(
                "Metric response from %s is not a sample list: %s",
                self._url,
                exc,
            )
            return None
