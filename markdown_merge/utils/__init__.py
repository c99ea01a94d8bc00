"""Logging and error helpers shared across the package."""
