"""Pydantic models for Sonarr payloads."""

from .sonarr import (
    GRABBED_EVENT,
    Episode,
    Grabbed,
    HistoryData,
    HistoryPage,
    HistoryRecord,
    Release,
    Season,
    SeasonStatistics,
    Series,
)

__all__ = [
    "GRABBED_EVENT",
    "Episode",
    "Grabbed",
    "HistoryData",
    "HistoryPage",
    "HistoryRecord",
    "Release",
    "Season",
    "SeasonStatistics",
    "Series",
]
