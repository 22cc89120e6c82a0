"""Low-latency TCP relay that fans out media frames from publishers to subscribers."""

__version__ = "0.1.0"