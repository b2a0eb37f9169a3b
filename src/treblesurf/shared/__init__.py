"""Helpers shared across packages."""
