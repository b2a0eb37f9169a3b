"""Configuration and small async utilities."""
