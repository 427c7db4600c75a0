"""Museick - monthly muse and ick picks from your Spotify listening."""

__version__ = "0.1.0"
