"""Domain services built on the API client and caches."""
