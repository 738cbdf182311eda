"""Release resolution - pick the release Sonarr already grabbed for a season."""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import structlog

from regrab.core.exceptions import (
    NoEpisodesForSeason,
    NoGrabHistory,
    ResolutionError,
    UpstreamError,
)
from regrab.models import Episode, Grabbed, HistoryRecord, Release, Season, Series
from regrab.services.sonarr_client import SonarrClient

logger = structlog.get_logger()


def first_episode(episodes: Iterable[Episode], season_number: int) -> Episode:
    """Return the lowest-numbered episode of a season.

    It stands in for the whole season when looking up history and releases.

    Raises:
        NoEpisodesForSeason: No episode belongs to the season
    """
    in_season = [e for e in episodes if e.season_number == season_number]
    if not in_season:
        raise NoEpisodesForSeason(f"no episodes found for season {season_number}")
    return min(in_season, key=lambda e: e.episode_number)


def latest_grab(history: Iterable[HistoryRecord]) -> Grabbed:
    """Return the first grab in a newest-first history.

    Raises:
        NoGrabHistory: Nothing was ever grabbed
        MalformedHistory: The newest grab has no GUID
    """
    for record in history:
        grabbed = record.grabbed()
        if grabbed is not None:
            return grabbed
    raise NoGrabHistory("no grabbed event in history")


def is_expired(release: Release, max_age: timedelta, now: datetime) -> bool:
    """Check whether a release is outside the freshness window.

    A release published exactly ``max_age`` ago is expired. A release with
    no publish date cannot be shown to be fresh, so it is expired too.
    """
    published = release.publish_date
    if published is None:
        return True
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return published + max_age <= now


class ReleaseResolver:
    """Finds the release to download for one season of a series.

    Sonarr's history says which release it decided on; the live search says
    whether that release can still be fetched. A season resolves only when
    both agree on the GUID.
    """

    def __init__(self, sonarr: SonarrClient):
        self.sonarr = sonarr

    async def resolve(self, series: Series, season: Season) -> Optional[Release]:
        """Resolve the release for a season.

        Args:
            series: Series the season belongs to
            season: Season to resolve

        Returns:
            The live release matching the latest grab, or None if the
            grabbed release is no longer offered

        Raises:
            ResolutionError: Any Sonarr failure, or one of its subclasses
                NoEpisodesForSeason, NoGrabHistory, MalformedHistory
        """
        try:
            episodes = await self.sonarr.list_episodes(series.id)
            episode = first_episode(episodes, season.season_number)

            history = await self.sonarr.get_history(episode.id)
            grabbed = latest_grab(history)

            releases = await self.sonarr.search_releases(episode.id)
        except UpstreamError as e:
            raise ResolutionError(f"sonarr query failed: {e}") from e

        release = next((r for r in releases if r.guid == grabbed.guid), None)
        if release is None:
            logger.debug(
                "grabbed_release_not_offered",
                episode_id=episode.id,
                guid=grabbed.guid,
                candidates=len(releases),
            )
            return None

        if release.publish_date is None and grabbed.published_date is not None:
            release = release.model_copy(update={"publish_date": grabbed.published_date})

        return release
