"""Tests for release resolution and the freshness filter."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from conftest import T0, event, grabbed, make_season, make_series, release
from regrab.core.exceptions import (
    MalformedHistory,
    NoEpisodesForSeason,
    NoGrabHistory,
    ResolutionError,
)
from regrab.models import Episode
from regrab.services.resolver import ReleaseResolver, first_episode, is_expired, latest_grab


def resolve(sonarr, season_number=1):
    resolver = ReleaseResolver(sonarr)
    series = sonarr.series[0]
    season = make_season(number=season_number)
    return asyncio.run(resolver.resolve(series, season))


class TestFirstEpisode:
    def test_picks_lowest_episode_number_in_season(self):
        episodes = [
            Episode(id=3, series_id=1, season_number=1, episode_number=3),
            Episode(id=9, series_id=1, season_number=2, episode_number=1),
            Episode(id=1, series_id=1, season_number=1, episode_number=1),
        ]
        assert first_episode(episodes, 1).id == 1
        assert first_episode(episodes, 2).id == 9

    def test_missing_season(self):
        episodes = [Episode(id=1, series_id=1, season_number=1, episode_number=1)]
        with pytest.raises(NoEpisodesForSeason):
            first_episode(episodes, 5)


class TestLatestGrab:
    def test_newest_grab_wins(self):
        history = [event("downloadFolderImported"), grabbed("new"), grabbed("old")]
        assert latest_grab(history).guid == "new"

    def test_no_grab(self):
        with pytest.raises(NoGrabHistory):
            latest_grab([event("downloadFailed"), event("episodeFileDeleted")])

    def test_empty_history(self):
        with pytest.raises(NoGrabHistory):
            latest_grab([])

    def test_grab_without_guid(self):
        with pytest.raises(MalformedHistory):
            latest_grab([grabbed(None), grabbed("older")])


class TestResolve:
    def test_returns_release_matching_grab(self, sonarr):
        sonarr.history[101] = [grabbed("abc")]
        sonarr.releases[101] = [release("xyz"), release("abc")]

        result = resolve(sonarr)

        assert result is not None
        assert result.guid == "abc"
        assert result.download_url == "http://x/abc.torrent"

    def test_uses_first_episode_of_season(self, sonarr):
        sonarr.history[101] = [grabbed("abc")]
        sonarr.releases[101] = [release("abc")]

        resolve(sonarr)

        assert sonarr.called("get_history") == [("get_history", 101)]
        assert sonarr.called("search_releases") == [("search_releases", 101)]

    def test_grabbed_release_no_longer_offered(self, sonarr):
        sonarr.history[101] = [grabbed("abc")]
        sonarr.releases[101] = [release("xyz")]

        assert resolve(sonarr) is None

    def test_no_search_results(self, sonarr):
        sonarr.history[101] = [grabbed("abc")]

        assert resolve(sonarr) is None

    def test_no_grab_history_skips_search(self, sonarr):
        sonarr.history[101] = [event("downloadFolderImported", "abc")]
        sonarr.releases[101] = [release("abc")]

        with pytest.raises(NoGrabHistory):
            resolve(sonarr)
        assert sonarr.called("search_releases") == []

    def test_only_newest_grab_counts(self, sonarr):
        sonarr.history[101] = [grabbed("new"), grabbed("old")]
        sonarr.releases[101] = [release("old")]

        assert resolve(sonarr) is None

    def test_malformed_history(self, sonarr):
        sonarr.history[101] = [grabbed(None)]

        with pytest.raises(MalformedHistory):
            resolve(sonarr)

    def test_season_without_episodes(self, sonarr):
        with pytest.raises(NoEpisodesForSeason):
            resolve(sonarr, season_number=7)

    @pytest.mark.parametrize("failing", ["list_episodes", "get_history", "search_releases"])
    def test_upstream_failure_becomes_resolution_error(self, sonarr, failing):
        sonarr.history[101] = [grabbed("abc")]
        sonarr.releases[101] = [release("abc")]
        sonarr.fail_on.add(failing)

        with pytest.raises(ResolutionError) as exc_info:
            resolve(sonarr)
        assert not isinstance(exc_info.value, NoGrabHistory)

    def test_publish_date_falls_back_to_history(self, sonarr):
        sonarr.history[101] = [grabbed("abc", published=T0)]
        sonarr.releases[101] = [release("abc", published=None)]

        result = resolve(sonarr)

        assert result.publish_date == T0

    def test_release_publish_date_preferred(self, sonarr):
        later = T0 + timedelta(hours=3)
        sonarr.history[101] = [grabbed("abc", published=T0)]
        sonarr.releases[101] = [release("abc", published=later)]

        assert resolve(sonarr).publish_date == later


class TestIsExpired:
    max_age = timedelta(days=7)

    def test_fresh(self):
        assert not is_expired(release("a"), self.max_age, T0 + timedelta(days=1))

    def test_boundary_is_expired(self):
        assert is_expired(release("a"), self.max_age, T0 + self.max_age)

    def test_just_inside_window(self):
        now = T0 + self.max_age - timedelta(seconds=1)
        assert not is_expired(release("a"), self.max_age, now)

    def test_old(self):
        assert is_expired(release("a"), self.max_age, T0 + timedelta(days=30))

    def test_unknown_publish_date(self):
        assert is_expired(release("a", published=None), self.max_age, T0)

    def test_naive_timestamps_are_utc(self):
        naive = datetime(2024, 6, 1, 12, 0)
        rel = release("a", published=naive)
        assert not is_expired(rel, self.max_age, T0 + timedelta(days=1))
        assert is_expired(rel, self.max_age, datetime(2024, 6, 8, 12, 0, tzinfo=timezone.utc))
