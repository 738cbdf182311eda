"""Reconciliation loop - submits grabbed releases for incomplete seasons."""

import asyncio
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import structlog

from regrab.core.config import ReconcileConfig
from regrab.core.exceptions import (
    MalformedHistory,
    NoEpisodesForSeason,
    NoGrabHistory,
    RegrabError,
    ResolutionError,
)
from regrab.models import Season, Series
from regrab.services.qbittorrent_client import QBittorrentClient
from regrab.services.resolver import ReleaseResolver, is_expired
from regrab.services.skip_set import SkipSet
from regrab.services.sonarr_client import SonarrClient

logger = structlog.get_logger()


@dataclass
class TickReport:
    """What one reconciliation pass did."""

    series_checked: int = 0
    series_skipped: int = 0
    seasons_checked: int = 0
    submitted: int = 0
    expired: int = 0
    unmatched: int = 0
    not_grabbed: int = 0
    errors: int = 0


def next_tick_after(previous: float, now: float, interval: float) -> float:
    """Return the next tick time on the fixed grid started at ``previous``.

    Ticks that were missed while a pass overran are dropped, not queued.
    """
    deadline = previous + interval
    if deadline < now:
        missed = math.floor((now - previous) / interval)
        deadline = previous + (missed + 1) * interval
    return deadline


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Reconciler:
    """Periodically pushes Sonarr's grabbed releases into qBittorrent."""

    def __init__(
        self,
        config: ReconcileConfig,
        sonarr: SonarrClient,
        qbittorrent: QBittorrentClient,
        category: str,
        skip_set: Optional[SkipSet] = None,
        now: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.sonarr = sonarr
        self.qbittorrent = qbittorrent
        self.category = category
        self.skip_set = skip_set
        self.resolver = ReleaseResolver(sonarr)

        self._now = now
        self._monotonic = monotonic
        self._sleep = sleep

    async def run_forever(self) -> None:
        """Run a pass every ``check_interval``, starting immediately."""
        interval = self.config.check_interval.total_seconds()
        logger.info(
            "reconciler_started",
            interval_seconds=interval,
            max_age_seconds=self.config.max_age.total_seconds(),
            skip_set=self.skip_set is not None,
        )

        deadline = self._monotonic()
        while True:
            delay = deadline - self._monotonic()
            if delay > 0:
                await self._sleep(delay)

            await self.tick()
            deadline = next_tick_after(deadline, self._monotonic(), interval)

    async def tick(self) -> Optional[TickReport]:
        """Run one pass, logging instead of raising on failure.

        Returns:
            The pass report, or None if the pass was aborted
        """
        report = None
        try:
            report = await self.run_once()
        except Exception as e:
            logger.error(
                "reconcile_tick_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=not isinstance(e, RegrabError),
            )
        finally:
            if self.skip_set is not None:
                self.skip_set.maybe_reset(self._monotonic())
        return report

    async def run_once(self) -> TickReport:
        """Reconcile every series once.

        Raises:
            UpstreamError: Listing series failed
            SubmissionError: qBittorrent refused a release; the rest of
                the pass is abandoned
        """
        report = TickReport()
        logger.info("reconcile_tick_started")

        series_list = await self.sonarr.list_series()

        for series in series_list:
            if self.skip_set is not None and self.skip_set.should_skip(series.id):
                report.series_skipped += 1
                continue

            report.series_checked += 1
            for season in series.seasons:
                if season.needs_update():
                    await self._reconcile_season(series, season, report)

        logger.info(
            "reconcile_tick_finished",
            series_checked=report.series_checked,
            series_skipped=report.series_skipped,
            seasons_checked=report.seasons_checked,
            submitted=report.submitted,
            expired=report.expired,
            unmatched=report.unmatched,
            not_grabbed=report.not_grabbed,
            errors=report.errors,
        )
        return report

    async def _reconcile_season(
        self, series: Series, season: Season, report: TickReport
    ) -> None:
        """Resolve, filter and submit one season."""
        log = logger.bind(
            series_id=series.id,
            series_title=series.title,
            season=season.season_number,
        )
        report.seasons_checked += 1

        try:
            release = await self.resolver.resolve(series, season)
        except NoGrabHistory:
            report.not_grabbed += 1
            log.debug("resolution_skipped_no_grab")
            return
        except MalformedHistory as e:
            report.errors += 1
            log.error("history_malformed", error=str(e))
            return
        except NoEpisodesForSeason as e:
            report.errors += 1
            log.warning("season_has_no_episodes", error=str(e))
            return
        except ResolutionError as e:
            report.errors += 1
            log.warning("resolution_failed", error=str(e))
            return

        if release is None:
            report.unmatched += 1
            log.info("release_unmatched")
            return

        log = log.bind(guid=release.guid, published=release.publish_date)
        if is_expired(release, self.config.max_age, self._now()):
            report.expired += 1
            log.info("release_expired")
            return

        url = release.fetch_url
        if url is None:
            report.errors += 1
            log.warning("release_has_no_url")
            return

        log.info("release_resolved", url=url)
        await self.qbittorrent.submit(url, self.category)
        report.submitted += 1
        log.info("release_submitted", category=self.category)

        if self.skip_set is not None:
            self.skip_set.mark(series.id)
