"""regrab - re-submits Sonarr's grabbed releases to qBittorrent."""

__version__ = "0.1.0"
