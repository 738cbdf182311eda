"""Services - Sonarr and qBittorrent clients, release resolution, the reconcile loop."""

from .qbittorrent_client import QBittorrentClient
from .reconciler import Reconciler, TickReport
from .resolver import ReleaseResolver
from .skip_set import SkipSet
from .sonarr_client import SonarrClient

__all__ = [
    "QBittorrentClient",
    "Reconciler",
    "ReleaseResolver",
    "SkipSet",
    "SonarrClient",
    "TickReport",
]
