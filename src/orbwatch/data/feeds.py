"""HTTP client for the external conjunction feeds.

Synchronous fetches go through a ``requests.Session``. The async fetches
use ``httpx.AsyncClient`` so a host event loop can poll the feeds with a
timeout and cancel a slow poll without blocking propagation or screening.

A failed fetch never raises: it returns a :class:`FeedResult` whose
``error`` is set.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import httpx
import requests

from orbwatch.config import FeedConfig
from orbwatch.data import keeptrack, socrates
from orbwatch.data.normalize import FeedResult

logger = logging.getLogger(__name__)


@dataclass
class FeedClient:
    """Client for the CelesTrak and KeepTrack SOCRATES feeds.

    Attributes:
        config: Feed endpoints and timeout.
    """

    config: FeedConfig = field(default_factory=FeedConfig)
    _session: requests.Session = field(default_factory=requests.Session, repr=False)
    _transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    def _get(self, url: str) -> requests.Response:
        """GET ``url`` with the configured timeout.

        Raises:
            requests.RequestException: On network failure or a non-2xx status.
        """
        response = self._session.get(url, timeout=self.config.timeout_seconds)
        response.raise_for_status()
        return response

    def fetch_socrates(self) -> FeedResult:
        """Fetch and normalize the CelesTrak SOCRATES CSV report."""
        try:
            response = self._get(str(self.config.socrates_url))
        except requests.RequestException as exc:
            return FeedResult.unavailable(socrates.SOURCE, str(exc) or type(exc).__name__)
        return socrates.parse_socrates_csv(response.text)

    def fetch_keeptrack(self) -> FeedResult:
        """Fetch and normalize the KeepTrack SOCRATES JSON report."""
        try:
            response = self._get(str(self.config.keeptrack_url))
        except requests.RequestException as exc:
            return FeedResult.unavailable(keeptrack.SOURCE, str(exc) or type(exc).__name__)
        try:
            payload = response.json()
        except ValueError as exc:
            return FeedResult.unavailable(keeptrack.SOURCE, f"invalid JSON: {exc}")
        return keeptrack.parse_keeptrack_records(payload)

    async def _get_async(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.config.timeout_seconds, transport=self._transport
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response

    async def _fetch_async(self, source: str, url: str) -> httpx.Response | FeedResult:
        # wait_for bounds the whole exchange, not just each socket operation
        try:
            return await asyncio.wait_for(self._get_async(url), timeout=self.config.timeout_seconds)
        except asyncio.TimeoutError:
            return FeedResult.unavailable(
                source, f"timed out after {self.config.timeout_seconds:g}s"
            )
        except httpx.HTTPError as exc:
            return FeedResult.unavailable(source, str(exc) or type(exc).__name__)

    async def fetch_socrates_async(self) -> FeedResult:
        """Async variant of :meth:`fetch_socrates`. Cancellation propagates."""
        response = await self._fetch_async(socrates.SOURCE, str(self.config.socrates_url))
        if isinstance(response, FeedResult):
            return response
        return socrates.parse_socrates_csv(response.text)

    async def fetch_keeptrack_async(self) -> FeedResult:
        """Async variant of :meth:`fetch_keeptrack`. Cancellation propagates."""
        response = await self._fetch_async(keeptrack.SOURCE, str(self.config.keeptrack_url))
        if isinstance(response, FeedResult):
            return response
        try:
            payload = response.json()
        except ValueError as exc:
            return FeedResult.unavailable(keeptrack.SOURCE, f"invalid JSON: {exc}")
        return keeptrack.parse_keeptrack_records(payload)

    async def fetch_all_async(self) -> list[FeedResult]:
        """Poll both feeds concurrently.

        Returns:
            ``[socrates_result, keeptrack_result]``.
        """
        results = await asyncio.gather(self.fetch_socrates_async(), self.fetch_keeptrack_async())
        logger.debug(
            "fetch_all_async: %s",
            ", ".join(f"{r.source}={len(r.events)}" for r in results),
        )
        return list(results)
