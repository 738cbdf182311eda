"""Exception hierarchy for regrab."""

from typing import Optional


class RegrabError(Exception):
    """Base class for all regrab errors."""


class ConfigError(RegrabError):
    """Invalid or missing configuration. Fatal at startup."""


class UpstreamError(RegrabError):
    """A Sonarr or qBittorrent call failed.

    Covers transport errors, non-2xx responses and payloads that do not
    match the expected shape.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SubmissionError(UpstreamError):
    """qBittorrent rejected or failed to receive a release."""


class ResolutionError(RegrabError):
    """Could not resolve a release for a season."""


class NoEpisodesForSeason(ResolutionError):
    """The series has no episodes in the requested season."""


class NoGrabHistory(ResolutionError):
    """Nothing was ever grabbed for the season's first episode.

    This is the normal state for most incomplete seasons and is not
    worth alerting on.
    """


class MalformedHistory(ResolutionError):
    """A grabbed history record is missing its release GUID."""
