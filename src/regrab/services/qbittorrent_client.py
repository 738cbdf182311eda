"""HTTP client for submitting releases to qBittorrent."""

from typing import Optional

import httpx
import structlog

from regrab import __version__
from regrab.core.config import QBittorrentConfig
from regrab.core.exceptions import SubmissionError, UpstreamError

logger = structlog.get_logger()


class QBittorrentClient:
    """Client for the qBittorrent Web API v2."""

    def __init__(
        self,
        config: QBittorrentConfig,
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
                headers={"User-Agent": f"regrab/{__version__}"},
                transport=self._transport,
            )
        return self._client

    async def submit(self, url: str, category: str) -> None:
        """Add a torrent by URL into a category.

        Args:
            url: Download URL of the release payload
            category: qBittorrent category to file it under

        Raises:
            SubmissionError: If qBittorrent is unreachable or does not answer 2xx
        """
        client = await self._get_client()

        # (None, value) tuples force a multipart body with plain text fields
        files = {
            "urls": (None, url),
            "category": (None, category),
        }

        try:
            response = await client.post("/api/v2/torrents/add", files=files)
        except httpx.RequestError as e:
            raise SubmissionError(f"qbittorrent request failed: {e}") from e

        if not response.is_success:
            raise SubmissionError(
                f"unexpected status {response.status_code}, {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        logger.info("torrent_added", url=url, category=category)

    async def app_version(self) -> str:
        """Get the qBittorrent version string. Used as a connectivity check."""
        client = await self._get_client()

        try:
            response = await client.get("/api/v2/app/version")
        except httpx.RequestError as e:
            raise UpstreamError(f"qbittorrent request failed: {e}") from e

        if not response.is_success:
            raise UpstreamError(
                f"qbittorrent returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response.text.strip()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
