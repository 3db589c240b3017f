"""geolayers - geolocation layers extracted from markdown notes."""

__version__ = "0.1.0"
