"""Client-side data layer for the Music Release Tracker dashboard."""

__version__ = "0.1.0"
