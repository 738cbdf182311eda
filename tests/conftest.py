"""Shared fixtures and in-memory fakes for Sonarr and qBittorrent."""

from datetime import datetime, timezone
from typing import Optional

import pytest

from regrab.core.exceptions import SubmissionError, UpstreamError
from regrab.models import Episode, HistoryRecord, Release, Season, Series

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_series(series_id: int = 1, title: str = "Foo", seasons: Optional[list] = None) -> Series:
    if seasons is None:
        seasons = [make_season()]
    return Series(id=series_id, title=title, seasons=seasons)


def make_season(number: int = 1, monitored: bool = True, percent: float = 40.0) -> Season:
    return Season.model_validate(
        {
            "seasonNumber": number,
            "monitored": monitored,
            "statistics": {"percentOfEpisodes": percent},
        }
    )


def grabbed(guid: Optional[str], published: Optional[datetime] = T0) -> HistoryRecord:
    data = {}
    if guid is not None:
        data["guid"] = guid
    if published is not None:
        data["publishedDate"] = published.isoformat()
    return HistoryRecord.model_validate({"eventType": "grabbed", "data": data})


def event(event_type: str, guid: Optional[str] = None) -> HistoryRecord:
    return HistoryRecord.model_validate(
        {"eventType": event_type, "data": {"guid": guid} if guid else {}}
    )


def release(guid: str, url: Optional[str] = None, published: Optional[datetime] = T0) -> Release:
    return Release(
        guid=guid,
        download_url=url or f"http://x/{guid}.torrent",
        publish_date=published,
    )


class FakeSonarr:
    """In-memory stand-in for SonarrClient."""

    def __init__(self):
        self.series: list[Series] = []
        self.episodes: dict[int, list[Episode]] = {}
        self.history: dict[int, list[HistoryRecord]] = {}
        self.releases: dict[int, list[Release]] = {}
        self.fail_on: set[str] = set()
        self.calls: list[tuple] = []

    def _call(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise UpstreamError(f"{name} failed", status_code=500)

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    async def list_series(self) -> list[Series]:
        self._call("list_series")
        return self.series

    async def list_episodes(self, series_id: int) -> list[Episode]:
        self._call("list_episodes", series_id)
        return self.episodes.get(series_id, [])

    async def get_history(self, episode_id: int) -> list[HistoryRecord]:
        self._call("get_history", episode_id)
        return self.history.get(episode_id, [])

    async def search_releases(self, episode_id: int) -> list[Release]:
        self._call("search_releases", episode_id)
        return self.releases.get(episode_id, [])

    async def close(self) -> None:
        pass


class FakeQBittorrent:
    """In-memory stand-in for QBittorrentClient."""

    def __init__(self):
        self.submitted: list[tuple[str, str]] = []
        self.fail = False

    async def submit(self, url: str, category: str) -> None:
        if self.fail:
            raise SubmissionError("unexpected status 500, boom", status_code=500, body="boom")
        self.submitted.append((url, category))

    async def close(self) -> None:
        pass


@pytest.fixture
def sonarr():
    """A Sonarr fake holding series "Foo" with one 40% complete season."""
    fake = FakeSonarr()
    fake.series = [make_series()]
    fake.episodes[1] = [
        Episode(id=102, series_id=1, season_number=1, episode_number=2),
        Episode(id=101, series_id=1, season_number=1, episode_number=1),
        Episode(id=201, series_id=1, season_number=2, episode_number=1),
    ]
    return fake


@pytest.fixture
def qbittorrent():
    return FakeQBittorrent()
