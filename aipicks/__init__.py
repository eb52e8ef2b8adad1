"""AI Picks: daily football fixture predictions served over HTTP."""

__version__ = "3.0.0"
