"""Pydantic models for backend request and response bodies."""
