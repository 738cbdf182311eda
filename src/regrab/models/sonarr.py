"""Sonarr API v3 models.

Only the fields the reconciler reads are modelled; everything else in the
payloads is ignored.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from regrab.core.exceptions import MalformedHistory

GRABBED_EVENT = "grabbed"


class SonarrModel(BaseModel):
    """Base for camelCase Sonarr payloads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SeasonStatistics(SonarrModel):
    percent_of_episodes: float = 0.0


class Season(SonarrModel):
    """A season as listed on a series."""

    season_number: int = Field(ge=0)
    monitored: bool = False
    statistics: SeasonStatistics = Field(default_factory=SeasonStatistics)

    @property
    def completion(self) -> float:
        return self.statistics.percent_of_episodes

    def needs_update(self) -> bool:
        """Monitored and not yet fully downloaded."""
        return self.monitored and self.completion < 100.0


class Series(SonarrModel):
    id: int
    title: str
    seasons: list[Season] = Field(default_factory=list)


class Episode(SonarrModel):
    id: int
    series_id: int
    season_number: int
    episode_number: int


class Release(SonarrModel):
    """A release offered by a live Sonarr search."""

    guid: str
    download_url: Optional[str] = None
    magnet_url: Optional[str] = None
    publish_date: Optional[datetime] = None

    @property
    def fetch_url(self) -> Optional[str]:
        """URL qBittorrent can fetch the payload from, torrent file first."""
        return self.download_url or self.magnet_url


class HistoryData(SonarrModel):
    guid: Optional[str] = None
    published_date: Optional[datetime] = None


class HistoryRecord(SonarrModel):
    event_type: str
    data: HistoryData = Field(default_factory=HistoryData)

    @field_validator("data", mode="before")
    @classmethod
    def null_data_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def grabbed(self) -> Optional["Grabbed"]:
        """Return the grab this record describes, if it is a grab.

        Raises:
            MalformedHistory: The record is a grab without a GUID
        """
        if self.event_type != GRABBED_EVENT:
            return None
        if not self.data.guid:
            raise MalformedHistory("grabbed history record is missing its guid")
        return Grabbed(guid=self.data.guid, published_date=self.data.published_date)


class HistoryPage(SonarrModel):
    """One page of /history results."""

    page: int = 1
    page_size: int = 0
    total_records: int = 0
    records: list[HistoryRecord] = Field(default_factory=list)


class Grabbed(BaseModel):
    """The most recent grab recorded for an episode."""

    guid: str
    published_date: Optional[datetime] = None
