"""Playlist player daemon with an external audio transformer."""

__version__ = "0.1.0"
