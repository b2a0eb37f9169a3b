"""In-memory and on-disk caches with time-based expiry."""
