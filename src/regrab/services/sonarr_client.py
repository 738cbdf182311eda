"""Read-only HTTP client for the Sonarr v3 API."""

from typing import Any, Optional, TypeVar

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from regrab import __version__
from regrab.core.config import SonarrConfig
from regrab.core.exceptions import UpstreamError
from regrab.models import Episode, HistoryPage, HistoryRecord, Release, Series

logger = structlog.get_logger()

T = TypeVar("T")


class SonarrClient:
    """Client for the Sonarr catalog, episode, release and history endpoints."""

    def __init__(
        self,
        config: SonarrConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.url,
                timeout=self.config.timeout,
                headers=self._get_headers(),
                transport=self._transport,
            )
        return self._client

    def _get_headers(self) -> dict[str, str]:
        """Get request headers including authentication."""
        return {
            "Accept": "application/json",
            "User-Agent": f"regrab/{__version__}",
            "X-Api-Key": self.config.api_key,
        }

    async def _get(self, path: str, model: type[T], params: Optional[dict[str, Any]] = None) -> T:
        """GET a Sonarr endpoint and validate the JSON body into ``model``.

        Raises:
            UpstreamError: On transport failure, non-2xx status or a body
                that does not match ``model``
        """
        client = await self._get_client()

        try:
            response = await client.get(path, params=params)
        except httpx.RequestError as e:
            raise UpstreamError(f"sonarr request to {path} failed: {e}") from e

        if not response.is_success:
            raise UpstreamError(
                f"sonarr returned {response.status_code} for {path}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return TypeAdapter(model).validate_json(response.content)
        except ValidationError as e:
            raise UpstreamError(
                f"unexpected sonarr response from {path}: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def list_series(self) -> list[Series]:
        """List every series in the library."""
        series = await self._get("/api/v3/series", list[Series])
        logger.debug("sonarr_series_listed", count=len(series))
        return series

    async def list_episodes(self, series_id: int) -> list[Episode]:
        """List the episodes of one series."""
        return await self._get(
            "/api/v3/episode",
            list[Episode],
            params={"seriesId": series_id},
        )

    async def search_releases(self, episode_id: int) -> list[Release]:
        """Run a live indexer search for an episode.

        This is slow on the Sonarr side since it queries every indexer.
        """
        releases = await self._get(
            "/api/v3/release",
            list[Release],
            params={"episodeId": episode_id},
        )
        logger.debug("sonarr_releases_found", episode_id=episode_id, count=len(releases))
        return releases

    async def get_history(self, episode_id: int) -> list[HistoryRecord]:
        """Get history for an episode, newest first."""
        page = await self._get(
            "/api/v3/history",
            HistoryPage,
            params={
                "episodeId": episode_id,
                "page": 1,
                "pageSize": self.config.history_page_size,
                "sortKey": "date",
                "sortDirection": "descending",
            },
        )
        return page.records

    async def system_status(self) -> dict:
        """Get Sonarr's system status. Used as a connectivity check."""
        return await self._get("/api/v3/system/status", dict)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
