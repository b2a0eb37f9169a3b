"""Client-side caching and session layer for the TrebleSurf API."""

__version__ = "0.1.0"
